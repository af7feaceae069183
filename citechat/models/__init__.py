"""Pydantic models for requests, retrieved passages and stream frames.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - ChatMessage / ChatRequest: Incoming chat request payload
    - Passage: Retrieved chunk used as context and citation target
    - NumberedCitation: Entry of an ordered citation list
    - UploadResponse: Per-file ingestion results
    - TextDelta, SearchResultsFrame, FinishFrame, EndFrame: decoded frames
"""

from citechat.models.frames import (
    EndFrame,
    FinishFrame,
    FinishReason,
    SearchResultsFrame,
    StreamFrame,
    TextDelta,
    Usage,
)
from citechat.models.schemas import (
    ChatMessage,
    ChatRequest,
    NumberedCitation,
    Passage,
    SearchMode,
    UploadedDocument,
    UploadResponse,
    last_user_message,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "EndFrame",
    "FinishFrame",
    "FinishReason",
    "NumberedCitation",
    "Passage",
    "SearchMode",
    "SearchResultsFrame",
    "StreamFrame",
    "TextDelta",
    "UploadResponse",
    "UploadedDocument",
    "Usage",
    "last_user_message",
]
