from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from citechat.errors import ConversationValidationError


class SearchMode(str, Enum):
    """Operating mode requested by the caller."""

    RAG = "rag"
    AGENT = "agent"


class Passage(BaseModel):
    """A retrieved text chunk with its relevance score.

    Accepts both the backend's snake_case and the SDK's camelCase field names
    and always serializes with camelCase aliases.

    Attributes:
        id: Chunk identifier (usually a UUID).
        document_id: Identifier of the document the chunk belongs to.
        owner_id: Identifier of the document owner, if known.
        collection_ids: Collections the document is part of.
        score: Relevance score, normally within 0..1.
        text: Chunk text.
        metadata: Arbitrary backend metadata (title, page, ...).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    document_id: str = ""
    owner_id: str | None = None
    collection_ids: list[str] = Field(default_factory=list)
    score: float = 0.0
    text: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "document_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Backends may send UUID objects or ints as identifiers."""
        if v is None:
            return ""
        if not isinstance(v, str):
            return str(v)
        return v

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class NumberedCitation(BaseModel):
    """An entry of an ordered citation list; ``[n]`` refers to index ``n - 1``."""

    id: str
    document_id: str
    chunk_id: str | None = None
    text: str
    score: float
    metadata: dict[str, Any] | None = None

    @classmethod
    def from_passage(cls, passage: Passage) -> "NumberedCitation":
        return cls(
            id=passage.id,
            document_id=passage.document_id,
            chunk_id=passage.id,
            text=passage.text,
            score=passage.score,
            metadata=passage.metadata or None,
        )


class ChatMessage(BaseModel):
    """A single message of the conversation sent with each request."""

    role: Literal["user", "assistant", "system"]
    content: str

    @field_validator("content", mode="before")
    @classmethod
    def strip_content(cls, v: str) -> str:
        """Strip whitespace from content before validation."""
        if isinstance(v, str):
            return v.strip()
        return v


def last_user_message(messages: list[ChatMessage]) -> ChatMessage:
    """Return the trailing user message of a conversation.

    Raises:
        ConversationValidationError: If the conversation does not end with a
            non-empty user message.
    """
    if not messages:
        raise ConversationValidationError("No user message found")
    last = messages[-1]
    if last.role != "user" or not last.content:
        raise ConversationValidationError("No user message found")
    return last


class ChatRequest(BaseModel):
    """Request payload for the streaming chat endpoint.

    Attributes:
        messages: Conversation so far, ending with the user's question.
        search_mode: Primary operating mode (``rag`` or ``agent``).
    """

    model_config = ConfigDict(populate_by_name=True)

    messages: list[ChatMessage] = Field(..., min_length=1)
    search_mode: SearchMode = Field(SearchMode.RAG, alias="searchMode")

    @field_validator("messages")
    @classmethod
    def require_user_message(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        last_user_message(v)
        return v

    @property
    def query(self) -> str:
        return last_user_message(self.messages).content


class UploadedDocument(BaseModel):
    """Result of forwarding one file to the retrieval backend.

    Attributes:
        filename: Name of the uploaded file.
        document_id: Identifier assigned by the backend.
        success: Whether ingestion was accepted.
        error: Error message if the file was rejected.
    """

    filename: str
    document_id: str | None = None
    success: bool
    error: str | None = None


class UploadResponse(BaseModel):
    """Response of the upload endpoint, one entry per file."""

    documents: list[UploadedDocument]
