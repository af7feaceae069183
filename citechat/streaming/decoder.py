"""Client-side wire protocol decoding.

Two layers:

* ``FrameRepairer`` / ``repair_frames`` - a byte-stream transform that
  reassembles lines split across network chunks and rewrites completion
  frames carrying ``{"message": ...}`` objects into the bare string payload
  the conversation layer expects. Every other line passes through untouched.
* ``parse_frame`` / ``decode_frames`` - turn repaired lines into typed
  frames.
"""

import codecs
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

from pydantic import ValidationError

from citechat.errors import FrameParseError
from citechat.models.frames import (
    EndFrame,
    FinishFrame,
    SearchResultsFrame,
    StreamFrame,
    TextDelta,
)
from citechat.streaming.short_ids import ShortIdTable

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred."


def repair_line(line: str) -> str:
    """Rewrite a ``3:{"message": ...}`` line to ``3:"..."``.

    Lines with any other tag, string payloads and unparseable payloads are
    returned unchanged.
    """
    if not line.startswith("3:"):
        return line
    try:
        payload = json.loads(line[2:])
    except ValueError:
        return line
    if isinstance(payload, dict) and "message" in payload:
        message = payload["message"] or DEFAULT_ERROR_MESSAGE
        return "3:" + json.dumps(message, ensure_ascii=False)
    return line


class FrameRepairer:
    """Incremental line reassembly plus error frame repair.

    Bytes are decoded incrementally, so a multibyte character split across
    two chunks is not corrupted.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[bytes]:
        """Consume one chunk and return the complete lines it finished."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [f"{repair_line(line)}\n".encode() for line in lines]

    def flush(self) -> bytes:
        """Return whatever partial line is left at end of stream."""
        self._buffer += self._decoder.decode(b"", final=True)
        rest, self._buffer = self._buffer, ""
        return rest.encode()


async def repair_frames(chunks: AsyncIterable[bytes]) -> AsyncGenerator[bytes]:
    """Apply ``FrameRepairer`` to an async byte stream."""
    repairer = FrameRepairer()
    async for chunk in chunks:
        for line in repairer.feed(chunk):
            yield line
    if tail := repairer.flush():
        yield tail


def _parse_search_results(payload: Any, line: str) -> SearchResultsFrame:
    if not isinstance(payload, list):
        raise FrameParseError("Data frame payload is not an array", line)
    for item in payload:
        if isinstance(item, dict) and item.get("type") == "searchResults":
            data = item.get("data")
            if not isinstance(data, dict):
                raise FrameParseError("searchResults data is not an object", line)
            return SearchResultsFrame(results=dict(ShortIdTable.from_wire(data)))
    raise FrameParseError("Data frame carries no searchResults event", line)


def _parse_finish(payload: Any, line: str) -> FinishFrame:
    if isinstance(payload, str):
        return FinishFrame(message=payload)
    if not isinstance(payload, dict):
        raise FrameParseError("Completion payload is neither string nor object", line)
    try:
        return FinishFrame(
            finish_reason=payload.get("finishReason"),
            usage=payload.get("usage") or {},
        )
    except ValidationError as e:
        raise FrameParseError(f"Invalid completion frame: {e.error_count()} errors", line) from e


def parse_frame(line: str) -> StreamFrame:
    """Parse one protocol line (without its newline) into a frame.

    Raises:
        FrameParseError: If the tag is unknown or the payload is malformed.
    """
    tag, sep, raw = line.partition(":")
    if not sep:
        raise FrameParseError("Missing frame tag", line)
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise FrameParseError("Frame payload is not JSON", line) from e

    match tag:
        case "0":
            if not isinstance(payload, str):
                raise FrameParseError("Text delta payload is not a string", line)
            return TextDelta(text=payload)
        case "8":
            return _parse_search_results(payload, line)
        case "3":
            return _parse_finish(payload, line)
        case "d":
            return EndFrame()
        case _:
            raise FrameParseError(f"Unknown frame tag {tag!r}", line)


async def decode_frames(chunks: AsyncIterable[bytes]) -> AsyncGenerator[StreamFrame]:
    """Repair and parse a raw byte stream into frames.

    Unparseable lines are logged and skipped; they never abort the stream.
    """
    async for raw in repair_frames(chunks):
        line = raw.decode("utf-8", errors="replace").rstrip("\n")
        if not line:
            continue
        try:
            yield parse_frame(line)
        except FrameParseError as e:
            logger.warning(f"Skipping unparseable frame: {e} ({e.line[:80]!r})")
