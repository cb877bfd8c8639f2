"""Зависимости FastAPI: настройки, хранилище, процессор, клиент модели.

Объекты создаются лениво при первом запросе; тесты подменяют их через
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from ..config import Settings, load_settings
from ..dispatcher import QueryDispatcher
from ..ollama import OllamaClient
from ..processor import DocumentProcessor
from ..storage import DocumentStore


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=1)
def _store() -> DocumentStore:
    settings = get_settings()
    return DocumentStore(
        settings.upload_dir, settings.registry_path, settings.documents_dir
    )


@lru_cache(maxsize=1)
def _runtime() -> OllamaClient:
    settings = get_settings()
    return OllamaClient(
        settings.ollama_host,
        timeout=settings.ollama_timeout,
        max_attempts=settings.ollama_max_attempts,
    )


def get_store() -> DocumentStore:
    return _store()


def get_runtime() -> OllamaClient:
    return _runtime()


def get_processor(settings: Settings = Depends(get_settings)) -> DocumentProcessor:
    return DocumentProcessor(settings.documents_dir)


def get_dispatcher(
    settings: Settings = Depends(get_settings),
    processor: DocumentProcessor = Depends(get_processor),
    runtime=Depends(get_runtime),
) -> QueryDispatcher:
    return QueryDispatcher(processor, runtime, default_model=settings.default_model)
