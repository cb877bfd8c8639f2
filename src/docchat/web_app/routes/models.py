from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...config import Settings
from ...errors import UpstreamError
from ...models import ModelsResponse
from ..deps import get_runtime, get_settings

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/models", response_model=ModelsResponse)
async def list_models(
    runtime=Depends(get_runtime), settings: Settings = Depends(get_settings)
):
    """Список моделей Ollama; при сбое отдаём запасной список."""
    try:
        models = await runtime.list()
    except UpstreamError:
        logger.exception("Failed to fetch models")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to fetch models",
                "models": list(settings.fallback_models),
            },
        )
    return ModelsResponse(models=models)
