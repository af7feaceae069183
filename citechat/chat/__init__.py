"""Request orchestration across the backend's operating modes."""

from citechat.chat.orchestrator import (
    NO_CONTEXT_NOTICE,
    FallbackOrchestrator,
    build_context,
)

__all__ = ["NO_CONTEXT_NOTICE", "FallbackOrchestrator", "build_context"]
