"""Потоковый разбор тела ``multipart/form-data``.

Декодер получает тело запроса произвольными кусками и проходит состояния
``AWAITING_PART -> READING_HEADERS -> READING_FIELD_BODY | READING_FILE_BODY
-> PART_COMPLETE -> ... -> DONE``. Граница и строки заголовков могут быть
разрезаны между кусками; между вызовами ``feed`` хранится только хвост,
который может оказаться началом границы. Тело файловой части сразу пишется
во временный файл, поэтому память не зависит от размера загрузки.
"""

from __future__ import annotations

import enum
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Dict, Optional

from python_multipart.multipart import parse_options_header

from .errors import MalformedMultipart, NoFileField, UnsupportedContentType

logger = logging.getLogger(__name__)

CRLF = b"\r\n"
DEFAULT_FILE_TYPE = "application/octet-stream"


class State(enum.Enum):
    AWAITING_PART = "awaiting_part"
    PART_COMPLETE = "part_complete"
    READING_HEADERS = "reading_headers"
    READING_FIELD_BODY = "reading_field_body"
    READING_FILE_BODY = "reading_file_body"
    DONE = "done"


class UploadedFile:
    """Загруженный файл во временном каталоге.

    Живёт в пределах одного запроса; ``cleanup`` (или выход из ``with``)
    удаляет временный файл.
    """

    def __init__(self, path: Path, filename: str, content_type: str, size: int):
        self.path = Path(path)
        self.filename = filename
        self.content_type = content_type
        self.size = size

    def open(self) -> BinaryIO:
        return self.path.open("rb")

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def cleanup(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def __enter__(self) -> "UploadedFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def __repr__(self) -> str:
        return (
            f"UploadedFile(filename={self.filename!r}, "
            f"content_type={self.content_type!r}, size={self.size})"
        )


@dataclass
class MultipartForm:
    fields: Dict[str, str] = field(default_factory=dict)
    file: Optional[UploadedFile] = None

    def require_file(self) -> UploadedFile:
        if self.file is None:
            raise NoFileField("No file uploaded")
        return self.file


def parse_boundary(content_type: str | None) -> bytes:
    """Извлечь boundary из заголовка ``Content-Type``."""
    ctype, params = parse_options_header((content_type or "").encode("latin-1"))
    if ctype.lower() != b"multipart/form-data":
        raise UnsupportedContentType("Expected multipart/form-data")
    boundary = params.get(b"boundary", b"")
    if not boundary:
        raise MalformedMultipart("Multipart boundary not found")
    return boundary


def _parse_headers(block: bytes) -> Dict[str, bytes]:
    headers: Dict[str, bytes] = {}
    for line in block.split(CRLF):
        if not line:
            continue
        name, sep, value = line.partition(b":")
        if not sep:
            raise MalformedMultipart("Malformed part header line")
        headers[name.strip().decode("latin-1").lower()] = value.strip()
    return headers


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class MultipartDecoder:
    """Инкрементальный декодер ``multipart/form-data``.

    Принимает не более одного файла; последующие файловые части вычитываются
    и отбрасываются. Используется как контекстный менеджер: временный файл
    удаляется при выходе на любом пути.
    """

    def __init__(
        self,
        content_type: str | None,
        tmp_dir: str | Path | None = None,
        *,
        max_header_size: int = 16 * 1024,
        max_field_size: int = 1024 * 1024,
    ) -> None:
        boundary = parse_boundary(content_type)
        # Тело считается начинающимся с CRLF, так что первая граница
        # ищется тем же разделителем, что и последующие.
        self._delimiter = CRLF + b"--" + boundary
        self._keep = len(self._delimiter) - 1
        self._buffer = bytearray(CRLF)
        self._tmp_dir = Path(tmp_dir) if tmp_dir is not None else None
        self._max_header_size = max_header_size
        self._max_field_size = max_field_size

        self.state = State.AWAITING_PART
        self.fields: Dict[str, str] = {}
        self.file: Optional[UploadedFile] = None

        self._part_name: Optional[str] = None
        self._field_value = bytearray()
        self._file_handle: Optional[BinaryIO] = None
        self._file_info: Optional[tuple[Path, str, str]] = None
        self._file_size = 0
        self._discarding = False

    # ------------------------------------------------------------------
    def feed(self, chunk: bytes) -> None:
        """Обработать очередной кусок тела."""
        if self.state is State.DONE or not chunk:
            return
        self._buffer += chunk
        while self._step():
            pass

    def finish(self) -> MultipartForm:
        """Завершить разбор и вернуть поля и файл."""
        if self.state is not State.DONE:
            raise MalformedMultipart(
                "Multipart stream ended before the closing boundary"
            )
        return MultipartForm(fields=dict(self.fields), file=self.file)

    def close(self) -> None:
        """Закрыть и удалить временный файл, если он был создан."""
        if self._file_handle is not None:
            self._file_handle.close()
            self._file_handle = None
        path = self.file.path if self.file else None
        if path is None and self._file_info is not None:
            path = self._file_info[0]
        if path is not None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def __enter__(self) -> "MultipartDecoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    def _step(self) -> bool:
        """Сделать один переход; ``False`` означает, что нужны ещё данные."""
        if self.state is State.AWAITING_PART:
            idx = self._buffer.find(self._delimiter)
            if idx < 0:
                # Преамбула: оставляем только возможное начало границы.
                if len(self._buffer) > self._keep:
                    del self._buffer[: len(self._buffer) - self._keep]
                return False
            del self._buffer[: idx + len(self._delimiter)]
            self.state = State.PART_COMPLETE
            return True

        if self.state is State.PART_COMPLETE:
            if len(self._buffer) < 2:
                return False
            if self._buffer.startswith(b"--"):
                self.state = State.DONE
                self._buffer.clear()
                return False
            end = self._buffer.find(CRLF)
            if end < 0:
                if len(self._buffer) > self._max_header_size:
                    raise MalformedMultipart("Garbage after multipart boundary")
                return False
            if self._buffer[:end].strip(b" \t"):
                raise MalformedMultipart("Garbage after multipart boundary")
            del self._buffer[: end + 2]
            self.state = State.READING_HEADERS
            return True

        if self.state is State.READING_HEADERS:
            if self._buffer.startswith(CRLF):
                block, consumed = b"", 2
            else:
                end = self._buffer.find(CRLF + CRLF)
                if end < 0:
                    if len(self._buffer) > self._max_header_size:
                        raise MalformedMultipart("Part headers too large")
                    return False
                block, consumed = bytes(self._buffer[:end]), end + 4
            if consumed > self._max_header_size:
                raise MalformedMultipart("Part headers too large")
            del self._buffer[:consumed]
            self._start_part(_parse_headers(block))
            return True

        if self.state in (State.READING_FIELD_BODY, State.READING_FILE_BODY):
            idx = self._buffer.find(self._delimiter)
            if idx < 0:
                flush = len(self._buffer) - self._keep
                if flush > 0:
                    self._write_body(bytes(self._buffer[:flush]))
                    del self._buffer[:flush]
                return False
            self._write_body(bytes(self._buffer[:idx]))
            del self._buffer[: idx + len(self._delimiter)]
            self._end_part()
            self.state = State.PART_COMPLETE
            return True

        return False

    def _start_part(self, headers: Dict[str, bytes]) -> None:
        disposition, params = parse_options_header(
            headers.get("content-disposition", b"")
        )
        if disposition.lower() != b"form-data":
            raise MalformedMultipart("Part is missing form-data disposition")
        self._part_name = _decode(params.get(b"name", b""))
        if b"filename" not in params:
            self._field_value = bytearray()
            self.state = State.READING_FIELD_BODY
            return

        self.state = State.READING_FILE_BODY
        filename = Path(_decode(params[b"filename"]).replace("\\", "/")).name
        if self._file_info is not None or not filename:
            # Лишний файл или пустой input без выбранного файла.
            logger.debug("Skipping file part %r", self._part_name)
            self._discarding = True
            return
        self._discarding = False
        content_type = _decode(headers.get("content-type", b"")).strip()
        fd, tmp_name = tempfile.mkstemp(
            prefix="upload-", dir=str(self._tmp_dir) if self._tmp_dir else None
        )
        self._file_handle = os.fdopen(fd, "wb")
        self._file_info = (
            Path(tmp_name),
            filename,
            content_type or DEFAULT_FILE_TYPE,
        )
        self._file_size = 0
        logger.debug("Streaming file part %r to %s", filename, tmp_name)

    def _write_body(self, data: bytes) -> None:
        if not data:
            return
        if self.state is State.READING_FIELD_BODY:
            self._field_value += data
            if len(self._field_value) > self._max_field_size:
                raise MalformedMultipart("Form field too large")
        elif not self._discarding and self._file_handle is not None:
            self._file_handle.write(data)
            self._file_size += len(data)

    def _end_part(self) -> None:
        if self.state is State.READING_FIELD_BODY:
            self.fields[self._part_name or ""] = _decode(bytes(self._field_value))
            self._field_value = bytearray()
            return
        if self._discarding:
            self._discarding = False
            return
        if self._file_handle is not None and self._file_info is not None:
            self._file_handle.close()
            self._file_handle = None
            path, filename, content_type = self._file_info
            self.file = UploadedFile(path, filename, content_type, self._file_size)


__all__ = [
    "State",
    "UploadedFile",
    "MultipartForm",
    "MultipartDecoder",
    "parse_boundary",
]
