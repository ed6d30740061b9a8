"""Project error hierarchy."""

from __future__ import annotations


UNAUTHENTICATED_MESSAGE = "You must be signed in to use the AI coach."
INVALID_MESSAGES_MESSAGE = "messages must be an array of { role, content }."
API_KEY_MISSING_MESSAGE = "OpenAI API key not configured."
INTERNAL_MESSAGE = "AI service failed."


class GainsGateError(Exception):
    """Base error."""


class CallableError(GainsGateError):
    """Caller-facing error; only ``status`` and ``message`` ever leave the process."""

    status = "INTERNAL"
    http_status = 500
    default_message = INTERNAL_MESSAGE

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> dict:
        return {"error": {"status": self.status, "message": self.message}}


class UnauthenticatedError(CallableError):
    status = "UNAUTHENTICATED"
    http_status = 401
    default_message = UNAUTHENTICATED_MESSAGE


class InvalidArgumentError(CallableError):
    status = "INVALID_ARGUMENT"
    http_status = 400
    default_message = INVALID_MESSAGES_MESSAGE


class FailedPreconditionError(CallableError):
    status = "FAILED_PRECONDITION"
    http_status = 400
    default_message = API_KEY_MISSING_MESSAGE


class InternalError(CallableError):
    """Generic failure; the cause stays in server logs."""


class MessageFormatError(GainsGateError):
    """Raised when a caller message cannot be translated."""


class UpstreamError(GainsGateError):
    """Raised when the chat-completion call fails or returns garbage."""
