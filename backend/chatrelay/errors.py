"""Error types shared across the persistence engine, services and API.

Every error carries an ``error_code`` so callers can map it to a response
without inspecting the message text.
"""
import enum
from typing import Any, Dict, Optional


class ErrorCode(str, enum.Enum):
    """Distinguishable error kinds."""
    NOT_FOUND = "NOT_FOUND"
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    INVALID_TITLE = "INVALID_TITLE"
    NO_MESSAGES_FOUND = "NO_MESSAGES_FOUND"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    STORAGE_ERROR = "STORAGE_ERROR"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    UNSUPPORTED_MODEL = "UNSUPPORTED_MODEL"
    LLM_PROVIDER_ERROR = "LLM_PROVIDER_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"


class ChatRelayError(Exception):
    """Base exception for the chat relay."""

    error_code: ErrorCode = ErrorCode.STORAGE_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(ChatRelayError):
    """Raised when a referenced resource does not exist."""

    error_code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, details={"resource": resource, "identifier": str(identifier)})


class ConversationNotFoundError(NotFoundError):
    def __init__(self, conversation_id: str):
        super().__init__("Conversation", conversation_id)


class MessageNotFoundError(NotFoundError):
    def __init__(self, message_id: int):
        super().__init__("Message", message_id)


class InvalidTimestampError(ChatRelayError):
    """Raised when a branch cutoff is zero, negative or not a finite number."""

    error_code = ErrorCode.INVALID_TIMESTAMP

    def __init__(self, value: Any):
        super().__init__(
            f"Invalid timestamp: {value!r}. Must be a positive epoch-ms value no larger than 2**63 - 1",
            details={"value": repr(value)}
        )


class InvalidTitleError(ChatRelayError):
    error_code = ErrorCode.INVALID_TITLE

    def __init__(self, message: str = "Title cannot be empty"):
        super().__init__(message)


class NoMessagesFoundError(ChatRelayError):
    """Raised when a branch cutoff selects no messages from the source."""

    error_code = ErrorCode.NO_MESSAGES_FOUND

    def __init__(self, conversation_id: str, up_to_timestamp: Any):
        super().__init__(
            f"No messages found in conversation '{conversation_id}' at or before {up_to_timestamp}",
            details={"conversation_id": conversation_id, "up_to_timestamp": up_to_timestamp}
        )


class InvalidMessageError(ChatRelayError):
    error_code = ErrorCode.INVALID_MESSAGE


class StorageError(ChatRelayError):
    """Raised when the underlying store cannot be opened, initialized or written."""

    error_code = ErrorCode.STORAGE_ERROR


class ProviderUnavailableError(ChatRelayError):
    error_code = ErrorCode.PROVIDER_UNAVAILABLE

    def __init__(self, provider: str, available: list):
        super().__init__(
            f"Provider '{provider}' is not available. Available providers: {', '.join(available) or 'none'}",
            details={"provider": provider, "available": list(available)}
        )


class UnsupportedModelError(ChatRelayError):
    error_code = ErrorCode.UNSUPPORTED_MODEL

    def __init__(self, provider_name: str, model: str, models: list):
        super().__init__(
            f"Model {model} not supported by {provider_name}. Available models: {', '.join(models)}",
            details={"model": model, "models": list(models)}
        )


class LLMProviderError(ChatRelayError):
    """Raised when the upstream provider call fails."""

    error_code = ErrorCode.LLM_PROVIDER_ERROR

    def __init__(self, provider_name: str, message: str):
        super().__init__(f"{provider_name} API error: {message}", details={"provider": provider_name})


class RateLimitExceededError(ChatRelayError):
    error_code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, limit: int, window: int):
        super().__init__(
            "Too many requests. Please wait a moment before trying again.",
            details={"limit": limit, "window": window}
        )
