"""Wire protocol encoder.

Frames are UTF-8, newline-terminated lines of the form ``<tag>:<json>``:

    8:[{"type":"searchResults","data":{...}}]   out-of-band passage table
    0:"text"                                     text delta
    3:{"finishReason":"stop","usage":{...}}      completion signal
    d:{}                                         end of stream

A response always ends with exactly one completion frame and one
terminator, even when encoding fails halfway.
"""

import asyncio
import json
import logging
import os
from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator
from typing import Any

from pydantic import BaseModel, Field

from citechat.errors import StreamEncodingError
from citechat.models.frames import FinishReason
from citechat.streaming.short_ids import ShortIdTable

logger = logging.getLogger(__name__)

TEXT_TAG = "0"
DATA_TAG = "8"
FINISH_TAG = "3"
END_TAG = "d"

END_FRAME = b"d:{}\n"

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "x-vercel-ai-data-stream": "v1",
}


class StreamConfig(BaseModel):
    """Encoder settings.

    Attributes:
        token_delay: Seconds to wait between word frames when replaying a
            non-streaming answer. 0 disables pacing.
    """

    token_delay: float = Field(
        default_factory=lambda: float(os.getenv("STREAM_TOKEN_DELAY", "0.03")),
        ge=0.0,
        le=5.0,
    )


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def _frame(tag: str, payload: str) -> bytes:
    return f"{tag}:{payload}\n".encode()


def text_frame(delta: str) -> bytes:
    return _frame(TEXT_TAG, _dumps(delta))


def metadata_frame(table: ShortIdTable) -> bytes:
    """Serialize the whole short-id table as a single searchResults event."""
    try:
        payload = _dumps([{"type": "searchResults", "data": table.to_wire()}])
    except (TypeError, ValueError) as e:
        raise StreamEncodingError(f"Cannot serialize search results: {e}") from e
    return _frame(DATA_TAG, payload)


def finish_frame(reason: FinishReason) -> bytes:
    return _frame(
        FINISH_TAG,
        _dumps({"finishReason": reason.value, "usage": {"promptTokens": 0, "completionTokens": 0}}),
    )


class StreamEncoder:
    """Turns answers into wire protocol byte frames."""

    def __init__(self, config: StreamConfig | None = None) -> None:
        self._config = config or StreamConfig()

    @property
    def token_delay(self) -> float:
        return self._config.token_delay

    async def encode(
        self,
        text: str,
        table: ShortIdTable | None = None,
    ) -> AsyncGenerator[bytes]:
        """Replay a complete answer as word-by-word text deltas.

        Args:
            text: The generated answer.
            table: Passages referenced by the answer, sent before any text.

        Yields:
            Encoded frames.
        """
        async for frame in self._frames(self._paced_words(text), table):
            yield frame

    async def encode_deltas(
        self,
        deltas: AsyncIterable[str],
        table: ShortIdTable | None = None,
    ) -> AsyncGenerator[bytes]:
        """Frame an already-streaming answer, one text frame per delta."""
        async for frame in self._frames(deltas, table):
            yield frame

    async def encode_error(self) -> AsyncGenerator[bytes]:
        """Close a response that produced no answer."""
        yield finish_frame(FinishReason.ERROR)
        yield END_FRAME

    async def _paced_words(self, text: str) -> AsyncGenerator[str]:
        words = text.split(" ")
        for index, word in enumerate(words):
            yield word if index == 0 else f" {word}"
            if self.token_delay and index < len(words) - 1:
                await asyncio.sleep(self.token_delay)

    async def _frames(
        self,
        deltas: AsyncIterable[str],
        table: ShortIdTable | None,
    ) -> AsyncIterator[bytes]:
        reason = FinishReason.STOP
        try:
            if table:
                yield metadata_frame(table)
            async for delta in deltas:
                if not isinstance(delta, str):
                    raise StreamEncodingError(f"Text delta must be str, got {type(delta).__name__}")
                yield text_frame(delta)
        except Exception:
            logger.exception("Streaming failed, closing response with an error frame")
            reason = FinishReason.ERROR
        yield finish_frame(reason)
        yield END_FRAME
