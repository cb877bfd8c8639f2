from __future__ import annotations

import time
import uuid
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Текущее время в миллисекундах с эпохи."""
    return int(time.time() * 1000)


class DocumentRecord(BaseModel):
    id: str
    name: str
    size: int
    uploaded: int = Field(default_factory=now_ms)
    path: str


class DocumentMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    file_path: str = Field(alias="filePath")
    model: str
    created: int = Field(default_factory=now_ms)


class Message(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "assistant"]
    content: str
    timestamp: int = Field(default_factory=now_ms)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: Optional[str] = Field(default=None, alias="documentId")
    message: Optional[str] = None
    model: Optional[str] = None


class UploadResponse(BaseModel):
    document: DocumentRecord


class DocumentsResponse(BaseModel):
    documents: List[DocumentRecord] = Field(default_factory=list)


class ModelsResponse(BaseModel):
    models: List[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    messages: List[Message] = Field(default_factory=list)
