from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ...errors import InputError
from ...models import DocumentsResponse
from ...storage import DocumentStore, run_sync
from ..deps import get_store

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/documents", response_model=DocumentsResponse)
async def list_documents(store: DocumentStore = Depends(get_store)):
    """Получить список всех документов."""
    return DocumentsResponse(documents=await run_sync(store.list))


@router.delete("/documents")
async def delete_document(
    id: Optional[str] = None, store: DocumentStore = Depends(get_store)
):
    """Удалить документ, его файл и каталог."""
    if not id:
        raise InputError("Document ID is required")
    await run_sync(store.remove, id)
    return {"success": True}
