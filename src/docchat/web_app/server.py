from __future__ import annotations

import logging
import os

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..errors import DocChatError
from ..logging_config import setup_logging
from .deps import get_settings
from .routes import chat, documents, models, upload

logger = logging.getLogger(__name__)

app = FastAPI(title="docchat")


@app.exception_handler(DocChatError)
async def _handle_docchat_error(request: Request, exc: DocChatError) -> JSONResponse:
    """Перевести ошибку сервиса в JSON-ответ ``{"error": ...}``."""
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
        )
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Невалидное тело запроса: 400 вместо 422, в том же формате ошибок."""
    logger.warning(
        "%s %s rejected: %s", request.method, request.url.path, exc.errors()
    )
    message = "Invalid request"
    if request.url.path == "/chat":
        message = "Missing required parameters"
    return JSONResponse(status_code=400, content={"error": message})


# --------- Подключение маршрутов ----------
app.include_router(upload.router)
app.include_router(documents.router)
app.include_router(models.router)
app.include_router(chat.router)


def main() -> None:
    """Запустить сервер с параметрами из переменных окружения."""
    settings = get_settings()
    setup_logging(
        settings.log_level,
        settings.log_file,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes"}
    logger.info("Starting FastAPI server on %s:%s", host, port)
    if reload:
        uvicorn.run(
            "docchat.web_app.server:app",
            host=host,
            port=port,
            reload=True,
            log_config=None,
        )
    else:
        uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
