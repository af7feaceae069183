"""Streaming chat endpoint."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from citechat.api.dependencies import get_orchestrator
from citechat.models.schemas import ChatRequest
from citechat.streaming.encoder import STREAM_HEADERS, STREAM_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat")
async def chat(body: ChatRequest, request: Request) -> StreamingResponse:
    """Answer the conversation's last user message as a frame stream.

    Request validation (no trailing user message, empty content) fails with
    422 before anything is streamed. Once streaming starts, backend failures
    are reported inside the stream as an error completion frame.

    Args:
        body: Conversation and primary search mode.
        request: Used to reach the application's services.

    Returns:
        Streaming response in the line-oriented frame protocol.
    """
    orchestrator = get_orchestrator(request)
    logger.info(f"Chat request: mode={body.search_mode.value}, messages={len(body.messages)}")

    return StreamingResponse(
        orchestrator.stream(body.messages, body.search_mode),
        media_type=STREAM_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )
