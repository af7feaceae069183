"""Tiered answering strategy for one chat request.

    TRY_PRIMARY_MODE --ok--> DONE
          | failure
    TRY_SEARCH_PLUS_GENERATION --ok--> DONE
          | failure
    EMIT_ERROR_FRAME

The primary tier is the backend's RAG or agent endpoint, chosen by the
caller. The terminal tier searches for passages itself and asks the
generation service to answer from them. Failures of the primary tier are
logged and swallowed; only a terminal failure reaches the user, as an error
frame inside the stream.
"""

import logging
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from typing import Protocol

from citechat.errors import RetrievalError
from citechat.models.schemas import ChatMessage, Passage, SearchMode, last_user_message
from citechat.retrieval.responses import AdapterMode, RetrievalAnswer
from citechat.streaming.encoder import StreamEncoder
from citechat.streaming.short_ids import build_short_id_table

logger = logging.getLogger(__name__)

NO_CONTEXT_NOTICE = "No relevant documents found."

MODE_FOR_SEARCH_MODE: dict[SearchMode, AdapterMode] = {
    SearchMode.AGENT: "agent",
    SearchMode.RAG: "direct",
}


class RetrievalBackend(Protocol):
    async def invoke(self, mode: AdapterMode, query: str) -> RetrievalAnswer | RetrievalError: ...

    async def search(self, query: str, limit: int | None = None) -> list[Passage]: ...


class GenerationBackend(Protocol):
    def stream_answer(self, context: str, messages: Sequence[ChatMessage]) -> AsyncIterator[str]: ...


def build_context(passages: Sequence[Passage]) -> str:
    """Number passages as ``[i] <text>`` in backend order."""
    if not passages:
        return NO_CONTEXT_NOTICE
    return "\n\n".join(f"[{index}] {passage.text}" for index, passage in enumerate(passages, start=1))


class FallbackOrchestrator:
    """Runs the fallback tiers and encodes whichever answer succeeds.

    Args:
        retrieval: Backend adapter used for both tiers.
        generation: LLM used by the terminal tier.
        encoder: Wire protocol encoder.
        search_limit: Passages fetched by the terminal tier.
    """

    def __init__(
        self,
        retrieval: RetrievalBackend,
        generation: GenerationBackend,
        encoder: StreamEncoder | None = None,
        search_limit: int = 5,
    ) -> None:
        self._retrieval = retrieval
        self._generation = generation
        self._encoder = encoder or StreamEncoder()
        self._search_limit = search_limit

    async def try_primary(self, mode: SearchMode, query: str) -> RetrievalAnswer | None:
        adapter_mode = MODE_FOR_SEARCH_MODE[mode]
        match await self._retrieval.invoke(adapter_mode, query):
            case RetrievalAnswer() as answer:
                return answer
            case RetrievalError() as error:
                logger.warning(f"{mode.value} mode failed ({type(error).__name__}: {error}), falling back to search")
                return None

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        mode: SearchMode = SearchMode.RAG,
    ) -> AsyncGenerator[bytes]:
        """Answer the conversation's last user message as wire frames.

        Args:
            messages: Conversation ending with the user's question.
            mode: Primary operating mode.

        Yields:
            Encoded protocol frames, always ending with completion and
            terminator frames.
        """
        query = last_user_message(list(messages)).content

        answer = await self.try_primary(mode, query)
        if answer is not None:
            table = build_short_id_table(answer.passages)
            async for frame in self._encoder.encode(answer.text, table):
                yield frame
            return

        try:
            passages = await self._retrieval.search(query, self._search_limit)
        except RetrievalError as e:
            logger.error(f"Search fallback failed: {e}")
            async for frame in self._encoder.encode_error():
                yield frame
            return

        context = build_context(passages)
        table = build_short_id_table(passages)
        deltas = self._generation.stream_answer(context, messages)
        async for frame in self._encoder.encode_deltas(deltas, table):
            yield frame
