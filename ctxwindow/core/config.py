"""Configuration dataclasses for ctxwindow."""

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ctxwindow.core.errors import ConfigError

# Fraction of the context window held back as a safety buffer
TOKEN_BUFFER_PERCENTAGE = 0.1

# Fraction of the context window reserved for the response when no max is given
DEFAULT_RESERVED_PERCENTAGE = 0.2

ENV_PREFIX = "CTXWINDOW_"


@dataclass
class WindowConfig:
    """Tunables for the context-window controller.

    The defaults reproduce the established behavior: a 10% buffer, a 20%
    response reserve, halving the history when falling back to truncation,
    and a 1000-token penalty for messages the counter fails on.
    """

    buffer_fraction: float = TOKEN_BUFFER_PERCENTAGE
    default_reserved_fraction: float = DEFAULT_RESERVED_PERCENTAGE
    fallback_truncation_fraction: float = 0.5
    estimation_penalty_tokens: int = 1000

    # first + at least one interior + last
    min_messages_for_reduction: int = 3

    # Re-measure summarized messages with asyncio.gather instead of one by one
    concurrent_estimation: bool = False

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If any value is out of range.
        """
        for name in ("buffer_fraction", "default_reserved_fraction", "fallback_truncation_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(name, value, "a fraction between 0 and 1")
        if self.buffer_fraction + self.default_reserved_fraction >= 1.0:
            raise ConfigError(
                "default_reserved_fraction",
                self.default_reserved_fraction,
                "buffer + reserve below the whole window",
            )
        if self.estimation_penalty_tokens < 0:
            raise ConfigError("estimation_penalty_tokens", self.estimation_penalty_tokens, "a non-negative integer")
        if self.min_messages_for_reduction < 3:
            raise ConfigError("min_messages_for_reduction", self.min_messages_for_reduction, "at least 3")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "buffer_fraction": self.buffer_fraction,
            "default_reserved_fraction": self.default_reserved_fraction,
            "fallback_truncation_fraction": self.fallback_truncation_fraction,
            "estimation_penalty_tokens": self.estimation_penalty_tokens,
            "min_messages_for_reduction": self.min_messages_for_reduction,
            "concurrent_estimation": self.concurrent_estimation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WindowConfig":
        """Create from dictionary, falling back to defaults for missing keys."""
        defaults = cls()
        config = cls(
            buffer_fraction=float(data.get("buffer_fraction", defaults.buffer_fraction)),
            default_reserved_fraction=float(
                data.get("default_reserved_fraction", defaults.default_reserved_fraction)
            ),
            fallback_truncation_fraction=float(
                data.get("fallback_truncation_fraction", defaults.fallback_truncation_fraction)
            ),
            estimation_penalty_tokens=int(
                data.get("estimation_penalty_tokens", defaults.estimation_penalty_tokens)
            ),
            min_messages_for_reduction=int(
                data.get("min_messages_for_reduction", defaults.min_messages_for_reduction)
            ),
            concurrent_estimation=bool(data.get("concurrent_estimation", defaults.concurrent_estimation)),
        )
        config.validate()
        return config

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "WindowConfig":
        """Create from CTXWINDOW_* environment variables.

        Recognized: CTXWINDOW_BUFFER_FRACTION, CTXWINDOW_RESERVED_FRACTION,
        CTXWINDOW_FALLBACK_FRACTION, CTXWINDOW_PENALTY_TOKENS,
        CTXWINDOW_CONCURRENT_ESTIMATION.
        """
        env = os.environ if environ is None else environ
        data: dict[str, Any] = {}

        mapping = {
            "BUFFER_FRACTION": "buffer_fraction",
            "RESERVED_FRACTION": "default_reserved_fraction",
            "FALLBACK_FRACTION": "fallback_truncation_fraction",
            "PENALTY_TOKENS": "estimation_penalty_tokens",
        }
        for suffix, key in mapping.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                data[key] = float(raw) if "FRACTION" in suffix else int(raw)
            except ValueError:
                raise ConfigError(key, raw, "a number")

        concurrent = env.get(ENV_PREFIX + "CONCURRENT_ESTIMATION")
        if concurrent:
            data["concurrent_estimation"] = concurrent.lower() in {"1", "true", "yes"}

        return cls.from_dict(data)
