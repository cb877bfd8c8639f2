from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from pydantic import ValidationError

from .errors import NotFoundError, StorageError
from .models import DocumentMetadata, DocumentRecord
from .storage import atomic_write_json

logger = logging.getLogger(__name__)

METADATA_FILENAME = "metadata.json"


class DocumentProcessor:
    """Разместить сохранённый документ в собственном каталоге."""

    def __init__(self, documents_dir: str | Path):
        self.documents_dir = Path(documents_dir)

    def document_dir(self, doc_id: str) -> Path:
        return self.documents_dir / doc_id

    def process(self, record: DocumentRecord, model: str) -> str:
        """Скопировать файл в ``<documents_dir>/<id>/`` и записать метаданные.

        Возвращает идентификатор документа. При ошибке файловой системы
        каталог документа удаляется и поднимается ``StorageError``.
        """
        doc_dir = self.document_dir(record.id)
        source = Path(record.path)
        try:
            doc_dir.mkdir(parents=True, exist_ok=True)
            dest = doc_dir / source.name
            shutil.copy2(source, dest)
            metadata = DocumentMetadata(id=record.id, file_path=str(dest), model=model)
            atomic_write_json(
                doc_dir / METADATA_FILENAME, metadata.model_dump(by_alias=True)
            )
        except OSError as exc:
            logger.exception("Failed to process document %s", record.id)
            shutil.rmtree(doc_dir, ignore_errors=True)
            raise StorageError(f"Failed to process document: {exc}") from exc
        logger.info("Processed document %s for model %s", record.id, model)
        return record.id

    def load_metadata(self, doc_id: str) -> DocumentMetadata:
        """Прочитать ``metadata.json`` документа."""
        # Идентификатор приходит от клиента и не должен выводить за пределы каталога.
        if not doc_id or Path(doc_id).name != doc_id or doc_id in {".", ".."}:
            raise NotFoundError(f"Document metadata not found for ID: {doc_id}")
        path = self.document_dir(doc_id) / METADATA_FILENAME
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return DocumentMetadata(**raw)
        except FileNotFoundError as exc:
            raise NotFoundError(
                f"Document metadata not found for ID: {doc_id}"
            ) from exc
        except (ValueError, ValidationError) as exc:
            raise StorageError(f"Corrupt metadata for {doc_id}: {exc}") from exc


__all__ = ["DocumentProcessor", "METADATA_FILENAME"]
