"""Streaming chat client for the UI."""

import logging
import os
from collections.abc import Callable, Sequence

import httpx

from citechat.models.frames import EndFrame, FinishFrame, SearchResultsFrame, TextDelta
from citechat.models.schemas import ChatMessage, SearchMode
from citechat.streaming.decoder import decode_frames
from citechat.streaming.short_ids import ShortIdTable

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")

GENERIC_ERROR = "The assistant could not generate a response."
INTERRUPTED_MESSAGE = "The response was interrupted."


async def stream_chat_response(
    messages: Sequence[ChatMessage],
    search_mode: SearchMode,
    on_search_results: Callable[[ShortIdTable], None],
    on_delta: Callable[[str], None],
    on_complete: Callable[[], None],
    on_error: Callable[[str], None],
    client: httpx.AsyncClient | None = None,
    api_base_url: str = API_BASE_URL,
) -> None:
    """Consume the frame stream from the /api/chat endpoint.

    Exactly one of ``on_complete`` and ``on_error`` is called.

    Args:
        messages: Conversation to send, ending with the user's question.
        search_mode: Primary backend mode.
        on_search_results: Receives the passage table of this response.
        on_delta: Receives each text delta.
        on_complete: Called once the response finished normally.
        on_error: Called with a displayable message on failure.
        client: HTTP client to use; a short-lived one is created if omitted.
        api_base_url: API root URL.
    """
    payload = {
        "messages": [message.model_dump() for message in messages],
        "searchMode": search_mode.value,
    }

    async def consume(http: httpx.AsyncClient) -> None:
        finished = False
        async with http.stream(
            "POST",
            f"{api_base_url}/api/chat",
            json=payload,
        ) as response:
            response.raise_for_status()
            async for frame in decode_frames(response.aiter_bytes()):
                match frame:
                    case SearchResultsFrame():
                        on_search_results(ShortIdTable.from_wire(frame.results))
                    case TextDelta():
                        on_delta(frame.text)
                    case FinishFrame() if frame.is_error:
                        logger.warning(f"Server reported an error: {frame.message or frame.finish_reason}")
                        on_error(frame.message or GENERIC_ERROR)
                        return
                    case FinishFrame():
                        finished = True
                    case EndFrame():
                        break
        if finished:
            on_complete()
        else:
            on_error(INTERRUPTED_MESSAGE)

    try:
        if client is not None:
            await consume(client)
        else:
            async with httpx.AsyncClient(timeout=120.0) as http:
                await consume(http)
    except httpx.HTTPStatusError as e:
        on_error(f"HTTP {e.response.status_code}")
    except httpx.RequestError as e:
        on_error(f"Connection failed: {e}")
