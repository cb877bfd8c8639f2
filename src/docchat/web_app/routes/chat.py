from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...dispatcher import QueryDispatcher
from ...errors import DocChatError, InputError
from ...models import ChatRequest, ChatResponse
from ..deps import get_dispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest, dispatcher: QueryDispatcher = Depends(get_dispatcher)
):
    """Задать вопрос о документе и получить пару сообщений."""
    if not body.document_id or not body.message:
        raise InputError("Missing required parameters")
    try:
        user_message, assistant_message = await dispatcher.chat(
            body.document_id, body.message, body.model
        )
    except DocChatError:
        logger.exception("Error processing chat for %s", body.document_id)
        return JSONResponse(
            status_code=500, content={"error": "Failed to process chat"}
        )
    return ChatResponse(messages=[user_message, assistant_message])
