from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Tuple

from .models import DocumentMetadata, Message, now_ms
from .processor import DocumentProcessor

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are acting as a helpful assistant that can answer questions about PDF documents.
The user has uploaded a PDF document named "{name}".
Please answer their question to the best of your ability based on your knowledge.
If you don't know the answer, just say that you don't know.

Question: {query}"""


class ModelRuntime(Protocol):
    async def list(self) -> list[str]: ...

    async def generate(self, prompt: str, model: str) -> str: ...


class QueryDispatcher:
    """Ответы модели на вопросы о загруженном документе.

    Содержимое документа в промпт не попадает: модель видит только имя
    файла и вопрос.
    """

    def __init__(
        self,
        processor: DocumentProcessor,
        runtime: ModelRuntime,
        default_model: str = "llama3",
    ):
        self.processor = processor
        self.runtime = runtime
        self.default_model = default_model

    def resolve(self, document_id: str) -> DocumentMetadata:
        return self.processor.load_metadata(document_id)

    @staticmethod
    def build_prompt(metadata: DocumentMetadata, user_query: str) -> str:
        return PROMPT_TEMPLATE.format(
            name=Path(metadata.file_path).name, query=user_query
        )

    async def dispatch(self, prompt: str, model: str) -> str:
        return await self.runtime.generate(prompt, model)

    async def chat(
        self, document_id: str, message: str, model: Optional[str] = None
    ) -> Tuple[Message, Message]:
        """Один ход диалога: пара сообщений ``user`` и ``assistant``."""
        metadata = self.resolve(document_id)
        model = model or metadata.model or self.default_model
        prompt = self.build_prompt(metadata, message)
        timestamp = now_ms()
        logger.info("Querying document %s with model %s", document_id, model)
        reply = await self.dispatch(prompt, model)
        return (
            Message(role="user", content=message, timestamp=timestamp),
            Message(role="assistant", content=reply, timestamp=timestamp),
        )


__all__ = ["QueryDispatcher", "ModelRuntime", "PROMPT_TEMPLATE"]
