from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

# Запрещённые для имён файлов символы (Windows-совместимо)
INVALID_CHARS_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_SPACES_RE = re.compile(r"\s+")

DEFAULT_UPLOAD_NAME = "unnamed.pdf"


def sanitize_filename(name: Optional[str], replacement: str = "_") -> str:
    """Привести имя загруженного файла к безопасному виду.

    - Отбрасывает каталоги (``../../x.pdf`` -> ``x.pdf``), в том числе
      пути в стиле Windows.
    - Заменяет недопустимые символы на ``replacement``.
    - Схлопывает пробелы и убирает ведущие точки.
    - Пустой результат заменяется на ``unnamed.pdf``.
    """
    if not name:
        return DEFAULT_UPLOAD_NAME
    base = Path(name.replace("\\", "/")).name
    base = INVALID_CHARS_PATTERN.sub(replacement, base)
    base = _SPACES_RE.sub(" ", base).strip().lstrip(".")
    return base or DEFAULT_UPLOAD_NAME


def base_mime_type(content_type: Optional[str]) -> str:
    """``application/PDF; charset=x`` -> ``application/pdf``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


__all__ = ["sanitize_filename", "base_mime_type", "DEFAULT_UPLOAD_NAME"]
