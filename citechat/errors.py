"""Error types shared by the server and client halves of the chat pipeline."""


class CitechatError(Exception):
    """Base class for all citechat errors."""


class RetrievalError(CitechatError):
    """Raised when the retrieval backend call fails for any reason."""


class BackendUnavailable(RetrievalError):
    """Network failure, timeout or non-2xx status from the backend."""


class MalformedResponse(RetrievalError):
    """Backend answered, but the payload does not have a usable shape."""


class ConversationValidationError(CitechatError, ValueError):
    """Raised when a chat request carries no usable user message."""


class StreamEncodingError(CitechatError):
    """Raised when a frame cannot be serialized."""


class FrameParseError(CitechatError):
    """Raised when a wire protocol line cannot be parsed into a frame."""

    def __init__(self, message: str, line: str) -> None:
        super().__init__(message)
        self.line = line
