"""Core type definitions for ctxwindow.

Messages follow the provider message-param shape: a role plus either a plain
string or an ordered list of typed content blocks. All types here are frozen;
reductions build new objects instead of editing history in place.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, Union

from ctxwindow.core.errors import InvalidConversation


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextBlock:
    """Plain text content."""

    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ImageBlock:
    """Image content (base64 or URL source)."""

    source: dict[str, Any]
    type: str = field(default="image", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "source": self.source}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation emitted by the assistant."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: str = field(default="tool_use", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResultBlock:
    """Result of a tool invocation, sent back in a user message."""

    tool_use_id: str
    content: Any = ""
    is_error: bool = False
    type: str = field(default="tool_result", init=False)

    def to_dict(self) -> dict[str, Any]:
        result = {"type": self.type, "tool_use_id": self.tool_use_id, "content": self.content}
        if self.is_error:
            result["is_error"] = True
        return result


@dataclass(frozen=True)
class RawBlock:
    """Block of a type ctxwindow does not model; kept verbatim."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.data, "type": self.type}


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock, RawBlock]
Content = Union[str, tuple[ContentBlock, ...]]


def block_from_dict(data: dict[str, Any]) -> ContentBlock:
    """Parse a provider content-block dict.

    Args:
        data: Dict with at least a "type" key.

    Returns:
        The matching block type, or RawBlock for unknown types.

    Raises:
        InvalidConversation: If the dict has no type.
    """
    if not isinstance(data, dict) or "type" not in data:
        raise InvalidConversation(f"Content block must be a dict with a 'type': {data!r}")

    block_type = data["type"]
    if block_type == "text":
        return TextBlock(text=data.get("text", ""))
    if block_type == "image":
        return ImageBlock(source=data.get("source", {}))
    if block_type == "tool_use":
        return ToolUseBlock(id=data.get("id", ""), name=data.get("name", ""), input=data.get("input", {}))
    if block_type == "tool_result":
        return ToolResultBlock(
            tool_use_id=data.get("tool_use_id", ""),
            content=data.get("content", ""),
            is_error=bool(data.get("is_error", False)),
        )
    return RawBlock(type=block_type, data={k: v for k, v in data.items() if k != "type"})


@dataclass(frozen=True)
class Message:
    """A single conversation message."""

    role: Role
    content: Content

    def __post_init__(self):
        # Accept plain role strings and lists of blocks for convenience.
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))

    @property
    def has_blocks(self) -> bool:
        """True if content is a block sequence rather than a bare string."""
        return not isinstance(self.content, str)

    def content_blocks(self) -> tuple[ContentBlock, ...]:
        """Return content as blocks, wrapping a bare string in one TextBlock."""
        if isinstance(self.content, str):
            return (TextBlock(text=self.content),)
        return self.content

    def with_content(self, content: Sequence[ContentBlock]) -> "Message":
        """Return a copy of this message with new content."""
        return Message(role=self.role, content=tuple(content))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the provider message-param shape."""
        if isinstance(self.content, str):
            return {"role": self.role.value, "content": self.content}
        return {"role": self.role.value, "content": [b.to_dict() for b in self.content]}

    @classmethod
    def from_dict(cls, data: dict[str, Any], index: Optional[int] = None) -> "Message":
        """Create from a provider message-param dict.

        Raises:
            InvalidConversation: If role or content is malformed.
        """
        role = data.get("role") if isinstance(data, dict) else None
        try:
            role_enum = Role(role)
        except ValueError:
            raise InvalidConversation(f"Unknown message role: {role!r}", index=index)

        content = data.get("content", "")
        if isinstance(content, str):
            return cls(role=role_enum, content=content)
        if isinstance(content, list):
            return cls(role=role_enum, content=tuple(block_from_dict(b) for b in content))
        raise InvalidConversation(
            f"Message content must be a string or a list of blocks, got {type(content).__name__}",
            index=index,
        )

    @classmethod
    def user(cls, content: Union[str, Sequence[ContentBlock]]) -> "Message":
        return cls(role=Role.USER, content=content if isinstance(content, str) else tuple(content))

    @classmethod
    def assistant(cls, content: Union[str, Sequence[ContentBlock]]) -> "Message":
        return cls(role=Role.ASSISTANT, content=content if isinstance(content, str) else tuple(content))


def messages_from_dicts(data: Sequence[dict[str, Any]]) -> list[Message]:
    """Parse a list of provider message dicts."""
    return [Message.from_dict(item, index=i) for i, item in enumerate(data)]


def messages_to_dicts(messages: Sequence[Message]) -> list[dict[str, Any]]:
    """Serialize messages to provider message dicts."""
    return [m.to_dict() for m in messages]
