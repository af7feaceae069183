"""Typed views of the retrieval backend's response shapes.

The backend answers RAG ("direct") and agent requests with differently shaped
payloads, and its SDKs disagree on camelCase vs snake_case. Both shapes are
validated once here into a discriminated union so callers never inspect raw
dictionaries.
"""

import logging
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from citechat.models.schemas import Passage

logger = logging.getLogger(__name__)

AdapterMode = Literal["agent", "direct"]


def parse_passages(raw: list[Any]) -> list[Passage]:
    """Validate raw passage records, skipping the ones that do not fit.

    Order is preserved. Missing or broken passages never fail the request.
    """
    passages: list[Passage] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-object passage at position {index}")
            continue
        try:
            passages.append(Passage.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping malformed passage at position {index}: {e.error_count()} errors")
    return passages


class BackendMessage(BaseModel):
    """One entry of an agent conversation history."""

    model_config = ConfigDict(extra="ignore")

    role: str = ""
    content: str | list[Any] | None = None

    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            # content blocks: [{"type": "text", "text": "..."}]
            return "".join(
                part.get("text", "")
                for part in self.content
                if isinstance(part, dict) and part.get("type") == "text"
            )
        return ""


class SearchResultsEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    chunk_search_results: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("chunkSearchResults", "chunk_search_results"),
    )

    @field_validator("chunk_search_results", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class GenerationResults(BaseModel):
    """The ``results`` object shared by both response shapes."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    completion: str | None = None
    generated_answer: str | None = Field(
        None,
        validation_alias=AliasChoices("generatedAnswer", "generated_answer"),
    )
    messages: list[BackendMessage] = Field(default_factory=list)
    search_results: SearchResultsEnvelope | None = Field(
        None,
        validation_alias=AliasChoices("searchResults", "search_results"),
    )

    @field_validator("completion", mode="before")
    @classmethod
    def unwrap_chat_completion(cls, v: Any) -> Any:
        """Older backends return an OpenAI chat completion object here."""
        if isinstance(v, dict):
            choices = v.get("choices") or []
            if choices and isinstance(choices[0], dict):
                message = choices[0].get("message") or {}
                return message.get("content")
            return None
        return v

    @field_validator("messages", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("search_results", mode="before")
    @classmethod
    def wrap_bare_list(cls, v: Any) -> Any:
        if isinstance(v, list):
            return {"chunk_search_results": v}
        return v

    def fallback_text(self) -> str | None:
        return self.completion or self.generated_answer or None

    def passages(self) -> list[Passage]:
        if self.search_results is None:
            return []
        return parse_passages(self.search_results.chunk_search_results)


class DirectResponse(BaseModel):
    """Single-shot RAG completion."""

    kind: Literal["direct"] = "direct"
    results: GenerationResults

    def answer_text(self) -> str | None:
        return self.results.fallback_text()


class AgentResponse(BaseModel):
    """Multi-turn agent run; the answer lives in the message history."""

    kind: Literal["agent"] = "agent"
    results: GenerationResults

    def answer_text(self) -> str | None:
        for message in reversed(self.results.messages):
            if message.role == "assistant" and (text := message.text()):
                return text
        return self.results.fallback_text()


BackendResponse = Annotated[DirectResponse | AgentResponse, Field(discriminator="kind")]

backend_response_adapter: TypeAdapter[DirectResponse | AgentResponse] = TypeAdapter(BackendResponse)


class RetrievalAnswer(BaseModel):
    """Normalized result of a retrieval call: generated text plus passages."""

    mode: AdapterMode
    text: str
    passages: list[Passage] = Field(default_factory=list)
