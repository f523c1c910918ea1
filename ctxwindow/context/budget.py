"""Token budget for a single model call."""

from dataclasses import dataclass
from typing import Optional

from ctxwindow.core.config import WindowConfig
from ctxwindow.core.errors import ConfigError


@dataclass(frozen=True)
class TokenBudget:
    """Token budget allocation for one turn."""

    context_window: int  # Total tokens the model can take (prompt + response)
    reserved_tokens: float  # Held back for the response
    buffer_fraction: float  # Safety margin as a fraction of the window

    @property
    def buffer_tokens(self) -> float:
        """Safety margin in tokens."""
        return self.context_window * self.buffer_fraction

    @property
    def allowed_tokens(self) -> float:
        """Tokens the conversation history may use."""
        return self.context_window * (1 - self.buffer_fraction) - self.reserved_tokens

    def exceeded_by(self, tokens: float) -> bool:
        """True if a conversation of ``tokens`` does not fit."""
        return tokens > self.allowed_tokens

    def to_dict(self) -> dict:
        return {
            "context_window": self.context_window,
            "reserved_tokens": self.reserved_tokens,
            "buffer_tokens": self.buffer_tokens,
            "allowed_tokens": self.allowed_tokens,
        }


def compute_budget(
    context_window: int,
    max_response_tokens: Optional[int] = None,
    config: Optional[WindowConfig] = None,
) -> TokenBudget:
    """Derive the budget for a model call.

    Args:
        context_window: Model context window in tokens.
        max_response_tokens: Explicit response reserve. When None, the reserve
            defaults to ``config.default_reserved_fraction`` of the window.
        config: Window configuration (defaults if not given).

    Returns:
        TokenBudget for the call.

    Raises:
        ConfigError: If context_window is not positive.
    """
    if context_window <= 0:
        raise ConfigError("context_window", context_window, "a positive integer")
    config = config or WindowConfig()

    if max_response_tokens is not None:
        reserved = max_response_tokens
    else:
        reserved = context_window * config.default_reserved_fraction

    return TokenBudget(
        context_window=context_window,
        reserved_tokens=reserved,
        buffer_fraction=config.buffer_fraction,
    )
