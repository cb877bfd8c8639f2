from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request

from ...config import Settings
from ...errors import InputError, StorageError
from ...models import UploadResponse
from ...multipart import MultipartDecoder
from ...processor import DocumentProcessor
from ...storage import DocumentStore, run_sync
from ...utils.names import base_mime_type, sanitize_filename
from ..deps import get_processor, get_settings, get_store

router = APIRouter()

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPE = "application/pdf"


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    store: DocumentStore = Depends(get_store),
    processor: DocumentProcessor = Depends(get_processor),
    settings: Settings = Depends(get_settings),
):
    """Принять PDF, сохранить его и подготовить к вопросам."""
    if settings.tmp_dir:
        try:
            Path(settings.tmp_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to prepare temp directory: {exc}") from exc

    with MultipartDecoder(
        request.headers.get("content-type"), settings.tmp_dir
    ) as decoder:
        async for chunk in request.stream():
            decoder.feed(chunk)
        form = decoder.finish()
        uploaded = form.require_file()

        if base_mime_type(uploaded.content_type) != ALLOWED_MIME_TYPE:
            logger.warning(
                "Rejected upload %s with type %s",
                uploaded.filename,
                uploaded.content_type,
            )
            raise InputError("Only PDF files are allowed")

        name = sanitize_filename(uploaded.filename)
        with uploaded.open() as fh:
            record = await run_sync(store.add, fh, name, uploaded.size)

        model = form.fields.get("model") or settings.default_model
        try:
            await run_sync(processor.process, record, model)
        except StorageError:
            logger.error("Rolling back document %s after processing failure", record.id)
            await run_sync(store.remove, record.id)
            raise

    return UploadResponse(document=record)
