from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: str,
    log_file: str | Path | None = None,
    *,
    max_bytes: int = 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Настроить корневой логгер: консоль и, при необходимости, файл.

    Parameters
    ----------
    level:
        Log level name (e.g., "INFO", "DEBUG").
    log_file:
        If provided, logs are also written to this file with rotation
        after ``max_bytes``; ``backup_count`` old files are kept.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=FORMAT,
        handlers=handlers,
        force=True,
    )
    # uvicorn настраивает свои логгеры отдельно; пусть пишут в наши обработчики.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers = []
        uv_logger.propagate = True
