"""Core types, configuration, and errors for ctxwindow."""

from ctxwindow.core.config import (
    DEFAULT_RESERVED_PERCENTAGE,
    TOKEN_BUFFER_PERCENTAGE,
    WindowConfig,
)
from ctxwindow.core.errors import (
    ConfigError,
    ContextWindowError,
    EstimationFailed,
    InvalidConversation,
    InvalidFraction,
)
from ctxwindow.core.types import (
    ContentBlock,
    ImageBlock,
    Message,
    RawBlock,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    block_from_dict,
    messages_from_dicts,
    messages_to_dicts,
)

__all__ = [
    # Types
    "Role",
    "Message",
    "ContentBlock",
    "TextBlock",
    "ImageBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "RawBlock",
    "block_from_dict",
    "messages_from_dicts",
    "messages_to_dicts",
    # Config
    "WindowConfig",
    "TOKEN_BUFFER_PERCENTAGE",
    "DEFAULT_RESERVED_PERCENTAGE",
    # Errors
    "ContextWindowError",
    "InvalidConversation",
    "InvalidFraction",
    "EstimationFailed",
    "ConfigError",
]
