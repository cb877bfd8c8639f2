"""Хранилище документов: файлы на диске и реестр в JSON.

Реестр читается и перезаписывается целиком, поэтому все изменения идут
через ``Registry.transaction`` под блокировкой, общей для всех объектов с
одним и тем же путём к файлу реестра.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Dict, Iterator, List, Union

from pydantic import ValidationError

from .errors import NotFoundError, StorageError
from .models import DocumentRecord

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


async def run_sync(func, *args, **kwargs):
    """Запустить синхронную операцию хранилища в отдельном потоке.

    Сами операции захватывают блокировку реестра, поэтому из разных потоков
    они выполняются последовательно.
    """
    return await asyncio.to_thread(func, *args, **kwargs)


def registry_lock(path: str | Path) -> threading.Lock:
    """Вернуть блокировку, привязанную к пути реестра."""
    key = str(Path(path).resolve())
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Записать файл через временный файл и ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def atomic_write_json(path: Path, data) -> None:
    atomic_write_bytes(
        path, json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")
    )


class Registry:
    """Реестр ``DocumentRecord``: индекс в памяти и снимок на диске."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = registry_lock(self.path)
        self._records: List[DocumentRecord] = []
        with self._lock:
            self._records = self._load()

    def _load(self, strict: bool = False) -> List[DocumentRecord]:
        """Прочитать снимок реестра.

        Нечитаемый файл даёт пустой список, а при ``strict`` поднимает
        ``StorageError``, чтобы запись не затёрла существующие записи.
        """
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("registry is not a JSON array")
            return [DocumentRecord(**item) for item in raw]
        except (ValueError, TypeError, ValidationError) as exc:
            logger.error("Failed to read registry %s: %s", self.path, exc)
            if strict:
                raise StorageError(f"Registry is unreadable: {exc}") from exc
            return []

    def snapshot(self) -> List[DocumentRecord]:
        """Текущее содержимое реестра в порядке регистрации."""
        with self._lock:
            self._records = self._load()
            return list(self._records)

    @contextmanager
    def transaction(self) -> Iterator[List[DocumentRecord]]:
        """Перечитать реестр, отдать список на изменение и записать его.

        Если блок внутри ``with`` бросает исключение, файл не меняется.
        """
        with self._lock:
            records = self._load(strict=True)
            yield records
            try:
                atomic_write_json(
                    self.path, [r.model_dump() for r in records]
                )
            except OSError as exc:
                raise StorageError(f"Failed to write registry: {exc}") from exc
            self._records = records


class DocumentStore:
    """Файлы документов и их реестр."""

    def __init__(
        self,
        upload_dir: str | Path,
        registry_path: str | Path,
        documents_dir: str | Path | None = None,
    ):
        self.upload_dir = Path(upload_dir)
        self.documents_dir = Path(documents_dir) if documents_dir else None
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            Path(registry_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to prepare storage: {exc}") from exc
        self.registry = Registry(registry_path)

    def add(
        self, source: Union[bytes, BinaryIO], name: str, size: int
    ) -> DocumentRecord:
        """Сохранить байты документа и зарегистрировать запись."""
        doc_id = str(uuid.uuid4())
        dest = self.upload_dir / f"{doc_id}{Path(name).suffix}"
        try:
            written = self._write(dest, source)
        except OSError as exc:
            logger.exception("Failed to store %s", name)
            raise StorageError(f"Failed to store file: {exc}") from exc

        if written != size:
            logger.warning(
                "Declared size %s of %s differs from %s bytes written",
                size,
                name,
                written,
            )
        record = DocumentRecord(id=doc_id, name=name, size=written, path=str(dest))
        try:
            with self.registry.transaction() as records:
                if any(r.id == doc_id for r in records):
                    raise StorageError(f"Duplicate document id {doc_id}")
                records.append(record)
        except StorageError:
            dest.unlink(missing_ok=True)
            raise
        logger.info("Stored document %s (%s, %s bytes)", doc_id, name, written)
        return record

    def _write(self, dest: Path, source: Union[bytes, BinaryIO]) -> int:
        """Записать байты во временный файл и переименовать; вернуть их число."""
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", dir=dest.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                if isinstance(source, (bytes, bytearray)):
                    fh.write(source)
                    written = len(source)
                else:
                    written = 0
                    while True:
                        chunk = source.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        fh.write(chunk)
                        written += len(chunk)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, dest)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return written

    def list(self) -> List[DocumentRecord]:
        return self.registry.snapshot()

    def get(self, doc_id: str) -> DocumentRecord:
        for record in self.registry.snapshot():
            if record.id == doc_id:
                return record
        raise NotFoundError("Document not found")

    def open(self, doc_id: str) -> BinaryIO:
        """Открыть сохранённый файл документа на чтение."""
        record = self.get(doc_id)
        try:
            return open(record.path, "rb")
        except FileNotFoundError as exc:
            raise NotFoundError("Document file is missing") from exc

    def remove(self, doc_id: str) -> None:
        """Удалить запись, файл и каталог документа."""
        with self.registry.transaction() as records:
            for idx, record in enumerate(records):
                if record.id == doc_id:
                    break
            else:
                raise NotFoundError("Document not found")
            del records[idx]

        try:
            Path(record.path).unlink(missing_ok=True)
            if self.documents_dir is not None:
                doc_dir = self.documents_dir / doc_id
                if doc_dir.exists():
                    shutil.rmtree(doc_dir)
        except OSError as exc:
            logger.exception("Failed to delete files of %s", doc_id)
            raise StorageError(f"Failed to delete document files: {exc}") from exc
        logger.info("Removed document %s", doc_id)


__all__ = [
    "DocumentStore",
    "Registry",
    "registry_lock",
    "run_sync",
    "atomic_write_bytes",
    "atomic_write_json",
]
