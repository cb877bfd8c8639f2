"""Иерархия ошибок сервиса и их HTTP-статусы."""

from __future__ import annotations


class DocChatError(Exception):
    """Базовое исключение docchat."""

    status_code = 500


class InputError(DocChatError):
    """Некорректный запрос: битое тело, неподдерживаемый тип файла."""

    status_code = 400


class UnsupportedContentType(InputError):
    """Заголовок Content-Type не является ``multipart/form-data``."""


class MalformedMultipart(InputError):
    """Нет boundary или поток оборвался до завершающей границы."""


class NoFileField(InputError):
    """В теле запроса отсутствует часть с файлом."""


class NotFoundError(DocChatError):
    """Документ с указанным идентификатором не найден."""

    status_code = 404


class StorageError(DocChatError):
    """Ошибка файловой системы при сохранении или удалении документа."""


class UpstreamError(DocChatError, RuntimeError):
    """Исключение при обращении к среде исполнения моделей."""


class ModelUnavailable(UpstreamError):
    """Сервер моделей недоступен (после исчерпания повторов)."""


class ModelError(UpstreamError):
    """Сервер моделей ответил ошибкой или невалидным JSON."""


__all__ = [
    "DocChatError",
    "InputError",
    "UnsupportedContentType",
    "MalformedMultipart",
    "NoFileField",
    "NotFoundError",
    "StorageError",
    "UpstreamError",
    "ModelUnavailable",
    "ModelError",
]
