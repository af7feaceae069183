"""Client-held conversation state.

Each assistant turn keeps the passage table it was decoded with, so markers
in an older answer never resolve against passages retrieved for a newer one.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from citechat.models.schemas import ChatMessage, NumberedCitation, SearchMode
from citechat.streaming.short_ids import ShortIdTable
from citechat.ui.citations import CitationSegments, resolve


def _now() -> str:
    return datetime.now().strftime("%I:%M %p")


@dataclass
class ConversationTurn:
    """One message of the conversation as displayed."""

    role: Literal["user", "assistant"]
    content: str
    resolved_passages: ShortIdTable = field(default_factory=ShortIdTable)
    time: str = field(default_factory=_now)
    error: bool = False

    def numbered_citations(self) -> list[NumberedCitation]:
        return self.resolved_passages.numbered_citations()

    def segments(self) -> CitationSegments:
        return resolve(self.content, self.numbered_citations(), self.resolved_passages)


class ChatSession:
    """Manages chat state for a user session.

    Submissions are serialized: a new request may only start once the
    previous response has completed or failed.
    """

    def __init__(self) -> None:
        self.turns: list[ConversationTurn] = []
        self.session_id: str = str(uuid.uuid4())
        self.search_mode: SearchMode = SearchMode.RAG
        self.is_streaming: bool = False
        self.pending_text: str = ""
        self.pending_passages: ShortIdTable = ShortIdTable()

    def history(self) -> list[ChatMessage]:
        """Conversation as sent to the API.

        Failed turns are left out together with the user message that
        caused them, so roles keep alternating.
        """
        messages: list[ChatMessage] = []
        for turn in self.turns:
            if turn.error:
                if messages and messages[-1].role == "user":
                    messages.pop()
                continue
            if turn.content:
                messages.append(ChatMessage(role=turn.role, content=turn.content))
        return messages

    def begin_request(self, text: str) -> list[ChatMessage]:
        """Record the user's message and reset per-turn state.

        Returns:
            The message list to send.

        Raises:
            RuntimeError: If a response is still streaming.
        """
        if self.is_streaming:
            raise RuntimeError("A response is already streaming")
        self.pending_text = ""
        self.pending_passages = ShortIdTable()
        self.is_streaming = True
        self.turns.append(ConversationTurn(role="user", content=text))
        return self.history()

    def receive_search_results(self, table: ShortIdTable) -> None:
        self.pending_passages = table

    def append_delta(self, text: str) -> None:
        self.pending_text += text

    def pending_segments(self) -> CitationSegments:
        return resolve(
            self.pending_text,
            self.pending_passages.numbered_citations(),
            self.pending_passages,
        )

    def complete_response(self) -> ConversationTurn:
        turn = ConversationTurn(
            role="assistant",
            content=self.pending_text,
            resolved_passages=self.pending_passages,
        )
        self._finish(turn)
        return turn

    def fail_response(self, message: str) -> ConversationTurn:
        turn = ConversationTurn(role="assistant", content=f"Error: {message}", error=True)
        self._finish(turn)
        return turn

    def abandon_response(self, message: str) -> ConversationTurn | None:
        """Fail a response that ended without completing or failing.

        Returns:
            The error turn, or None if no response was streaming.
        """
        if not self.is_streaming:
            return None
        return self.fail_response(message)

    def _finish(self, turn: ConversationTurn) -> None:
        self.turns.append(turn)
        self.pending_text = ""
        self.pending_passages = ShortIdTable()
        self.is_streaming = False

    def clear(self) -> None:
        """Start a new conversation."""
        self.turns.clear()
        self.session_id = str(uuid.uuid4())
        self.pending_text = ""
        self.pending_passages = ShortIdTable()
        self.is_streaming = False
