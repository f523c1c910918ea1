"""Custom exceptions for ctxwindow."""

from typing import Any, Optional


class ContextWindowError(Exception):
    """Base exception for all ctxwindow errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidConversation(ContextWindowError):
    """Raised when a conversation cannot be processed.

    Examples:
    - Empty message list
    - Message dict without a role or with an unknown role
    - Content that is neither a string nor a list of blocks
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message, details={"index": index})
        self.index = index


class InvalidFraction(ContextWindowError):
    """Raised when a truncation fraction is outside [0, 1]."""

    def __init__(self, fraction: float):
        super().__init__(
            f"Truncation fraction must be between 0 and 1, got {fraction}",
            details={"fraction": fraction},
        )
        self.fraction = fraction


class EstimationFailed(ContextWindowError):
    """Raised when the token counter fails on a message that has no fallback.

    Only the measurement of the newest message raises this; failures while
    re-measuring a summarized conversation are replaced by a penalty cost.
    """

    def __init__(self, message_index: int, reason: str):
        super().__init__(
            f"Token estimation failed for message {message_index}: {reason}",
            details={"message_index": message_index, "reason": reason},
        )
        self.message_index = message_index
        self.reason = reason


class ConfigError(ContextWindowError):
    """Raised when a WindowConfig holds invalid values."""

    def __init__(self, field_name: str, value: Any, expected: str):
        super().__init__(
            f"Invalid {field_name}={value!r}: expected {expected}",
            details={"field": field_name, "value": value, "expected": expected},
        )
        self.field_name = field_name
        self.value = value
