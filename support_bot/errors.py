from __future__ import annotations

from fastapi import HTTPException, status


class ChatServiceError(HTTPException):
    """Base class for chat failures that map onto an HTTP status and a short message."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.message = message


class MissingFieldsError(ChatServiceError):
    def __init__(self, message: str = "Missing sessionId or message") -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class SessionLimitReached(ChatServiceError):
    def __init__(self, message: str = "Conversation limit reached. Please contact support directly.") -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class RateLimitExceeded(ChatServiceError):
    def __init__(self, message: str = "Rate limit exceeded. Please try again later.") -> None:
        super().__init__(status.HTTP_429_TOO_MANY_REQUESTS, message)


class ProviderNotConfigured(ChatServiceError):
    def __init__(self, message: str = "API key not configured") -> None:
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class CompletionFailed(ChatServiceError):
    """Provider failure; the only error whose underlying cause reaches the caller."""

    def __init__(self, reason: str) -> None:
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, reason)


class InternalChatError(ChatServiceError):
    def __init__(self, message: str = "Internal error") -> None:
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class CompletionError(Exception):
    """Raised by the completion client on transport failure or an empty response."""
