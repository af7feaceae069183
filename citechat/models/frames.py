"""Decoded wire protocol frames.

One response is a sequence of frames: at most one ``SearchResultsFrame``,
then ``TextDelta`` frames, then exactly one ``FinishFrame`` and one
``EndFrame``.
"""

from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from citechat.models.schemas import Passage


class FinishReason(str, Enum):
    STOP = "stop"
    ERROR = "error"


class Usage(BaseModel):
    """Token usage placeholders carried by the completion frame."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0


class TextDelta(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class SearchResultsFrame(BaseModel):
    kind: Literal["search_results"] = "search_results"
    results: dict[str, Passage] = Field(default_factory=dict)


class FinishFrame(BaseModel):
    """Completion signal.

    ``message`` is set instead of ``finish_reason`` when the server (or the
    repair middleware) delivered a bare error string.
    """

    kind: Literal["finish"] = "finish"
    finish_reason: FinishReason | None = None
    usage: Usage = Field(default_factory=Usage)
    message: str | None = None

    @property
    def is_error(self) -> bool:
        return self.finish_reason == FinishReason.ERROR or self.message is not None


class EndFrame(BaseModel):
    kind: Literal["end"] = "end"


StreamFrame = Annotated[
    TextDelta | SearchResultsFrame | FinishFrame | EndFrame,
    Field(discriminator="kind"),
]
