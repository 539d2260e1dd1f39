"""Custom exception classes for structured error handling."""

from typing import Any


class LinguaChatError(Exception):
    """Base exception for all LinguaChat errors."""

    def __init__(self, code: str, message: str, status_code: int = 500) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"code": self.code, "message": self.message}}


class AuthenticationRequiredError(LinguaChatError):
    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(code="AUTHENTICATION_REQUIRED", message=message, status_code=401)


class NotParticipantError(LinguaChatError):
    def __init__(self, message: str = "You are not a participant in this conversation") -> None:
        super().__init__(code="NOT_A_PARTICIPANT", message=message, status_code=403)


class NotMessageOwnerError(LinguaChatError):
    def __init__(self, message: str = "You can only delete your own messages") -> None:
        super().__init__(code="NOT_MESSAGE_OWNER", message=message, status_code=403)


class MessageNotFoundError(LinguaChatError):
    def __init__(self, message: str = "Message not found") -> None:
        super().__init__(code="MESSAGE_NOT_FOUND", message=message, status_code=404)


class ProfileNotFoundError(LinguaChatError):
    def __init__(self, message: str = "Profile not found") -> None:
        super().__init__(code="PROFILE_NOT_FOUND", message=message, status_code=404)


class ConversationNotFoundError(LinguaChatError):
    def __init__(self, message: str = "Conversation not found") -> None:
        super().__init__(code="CONVERSATION_NOT_FOUND", message=message, status_code=404)


class EmptyMessageError(LinguaChatError):
    def __init__(self, message: str = "Message text must not be empty") -> None:
        super().__init__(code="EMPTY_MESSAGE", message=message, status_code=400)


class UnsupportedLanguageError(LinguaChatError):
    def __init__(self, language: str) -> None:
        super().__init__(
            code="UNSUPPORTED_LANGUAGE",
            message=f"Unsupported language code: {language!r}",
            status_code=400,
        )


class InvalidConversationError(LinguaChatError):
    def __init__(self, message: str = "Invalid conversation request") -> None:
        super().__init__(code="INVALID_CONVERSATION", message=message, status_code=400)


class InvalidActionError(LinguaChatError):
    def __init__(self, message: str = "Invalid action") -> None:
        super().__init__(code="INVALID_ACTION", message=message, status_code=400)


class ConversationCreationError(LinguaChatError):
    def __init__(self, message: str = "Failed to create conversation") -> None:
        super().__init__(code="CONVERSATION_CREATION_FAILED", message=message, status_code=500)


class DatabaseConnectionError(LinguaChatError):
    def __init__(self, message: str = "Database connection failed") -> None:
        super().__init__(code="DATABASE_CONNECTION_ERROR", message=message, status_code=503)


class RedisConnectionError(LinguaChatError):
    def __init__(self, message: str = "Redis connection failed") -> None:
        super().__init__(code="REDIS_CONNECTION_ERROR", message=message, status_code=503)


class TranslationProviderError(Exception):
    """Raised by translation providers. Never surfaced to API clients."""
