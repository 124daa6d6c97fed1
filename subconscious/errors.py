from typing import Any, Literal

ErrorCode = Literal[
    "invalid_request",
    "authentication_failed",
    "permission_denied",
    "not_found",
    "rate_limited",
    "internal_error",
    "service_unavailable",
    "timeout",
]


class SubconsciousError(Exception):
    """Base exception class for Subconscious client errors."""


class SubconsciousConfigurationError(SubconsciousError):
    """Raised when the client is misconfigured or missing required settings."""


class APIError(SubconsciousError):
    """Raised when the API answers a request with a non-success status."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        status: int,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, status={self.status}, message={self.message!r})"


class AuthenticationError(APIError):
    def __init__(self, message: str = "Invalid API key"):
        super().__init__("authentication_failed", message, 401)


class RateLimitError(APIError):
    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__("rate_limited", message, 429)


class NotFoundError(APIError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__("not_found", message, 404)


class InvalidRequestError(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__("invalid_request", message, 400, details)


class TransportError(SubconsciousError):
    """Raised when the API could not be reached at all."""


class InvalidResponseError(SubconsciousError):
    """Raised when a successful response body does not match the expected shape."""


class StreamError(SubconsciousError):
    """Base class for fatal streaming failures."""


class StreamUnavailableError(StreamError):
    """Raised when a stream response has no readable body."""


class StreamProtocolError(StreamError):
    """Raised when a stream ends in a state its protocol does not allow."""


class OperationCancelledError(SubconsciousError):
    """Raised when a caller-provided cancellation signal interrupts an operation."""


class StreamCancelledError(OperationCancelledError):
    """Raised when a stream is cancelled while waiting for the next chunk."""


class SleepCancelledError(OperationCancelledError):
    """Raised when a polling delay is cancelled before it elapsed."""


class PollingCancelledError(OperationCancelledError):
    """Raised when polling is cancelled before the next status check."""


class PollingTimeoutError(SubconsciousError):
    """Raised when polling gives up before the run reached a terminal status."""


__all__ = [
    "ErrorCode",
    "SubconsciousError",
    "SubconsciousConfigurationError",
    "APIError",
    "AuthenticationError",
    "RateLimitError",
    "NotFoundError",
    "InvalidRequestError",
    "TransportError",
    "InvalidResponseError",
    "StreamError",
    "StreamUnavailableError",
    "StreamProtocolError",
    "OperationCancelledError",
    "StreamCancelledError",
    "SleepCancelledError",
    "PollingCancelledError",
    "PollingTimeoutError",
]
