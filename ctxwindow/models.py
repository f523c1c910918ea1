"""Model registry with context window configurations.

Lets callers derive a context window and response reserve from a model name
instead of passing raw numbers.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ModelConfig:
    """Context limits for a supported model."""

    context_window: int  # Total context window in tokens
    output_token_limit: int  # Max output tokens
    provider: str

    def counter_backend(self) -> str:
        """Best-fitting token counter backend for this model."""
        if self.provider == "anthropic":
            return "anthropic"
        if self.provider == "openai":
            return "tiktoken"
        return "heuristic"


SUPPORTED_MODELS: dict[str, ModelConfig] = {
    # ============= Anthropic =============
    "claude-opus-4-5-20251101": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-sonnet-4-5-20250929": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-haiku-4-5-20251001": ModelConfig(200_000, 64_000, "anthropic"),
    "claude-3-7-sonnet-20250219": ModelConfig(200_000, 8_192, "anthropic"),
    "claude-3-5-haiku-20241022": ModelConfig(200_000, 8_192, "anthropic"),
    # ============= OpenAI =============
    "gpt-5": ModelConfig(400_000, 128_000, "openai"),
    "gpt-4.1": ModelConfig(1_047_576, 32_768, "openai"),
    "gpt-4o": ModelConfig(128_000, 16_384, "openai"),
    "gpt-4o-mini": ModelConfig(128_000, 16_384, "openai"),
    "o3": ModelConfig(200_000, 100_000, "openai"),
    "o4-mini": ModelConfig(200_000, 100_000, "openai"),
    # ============= Google Gemini =============
    "gemini-2.5-pro": ModelConfig(1_048_576, 65_536, "google"),
    "gemini-2.5-flash": ModelConfig(1_048_576, 65_536, "google"),
    # ============= Open models via OpenRouter =============
    "deepseek-r1": ModelConfig(128_000, 8_192, "openrouter"),
    "llama-3.3-70b-instruct": ModelConfig(131_000, 4_096, "openrouter"),
    "qwen3-coder-480b": ModelConfig(256_000, 32_768, "openrouter"),
}


def get_model_config(model: str) -> ModelConfig:
    """Get config for a supported model.

    Args:
        model: Model name, optionally prefixed by its provider
            (e.g., "gpt-4o" or "anthropic/claude-sonnet-4-5-20250929").

    Returns:
        ModelConfig for the model.

    Raises:
        ValueError: If model is not in SUPPORTED_MODELS.
    """
    name = model.strip()
    if "/" in name:
        name = name.split("/", 1)[1]
    if name not in SUPPORTED_MODELS:
        supported = ", ".join(sorted(SUPPORTED_MODELS.keys()))
        raise ValueError(f"Unsupported model: '{model}'.\nSupported models:\n{supported}")
    return SUPPORTED_MODELS[name]


def is_supported_model(model: str) -> bool:
    """Check if model is in supported list."""
    try:
        get_model_config(model)
    except ValueError:
        return False
    return True


def resolve_window(
    model: Optional[str] = None,
    context_window: Optional[int] = None,
    max_response_tokens: Optional[int] = None,
) -> tuple[int, Optional[int]]:
    """Resolve (context_window, max_response_tokens) from a model and overrides.

    Explicit numbers win over the registry. Without a model, context_window
    is required and the response reserve is left to the controller default.
    """
    if model is None:
        if context_window is None:
            raise ValueError("Either a model or a context window is required")
        return context_window, max_response_tokens

    config = get_model_config(model)
    return (
        context_window if context_window is not None else config.context_window,
        max_response_tokens if max_response_tokens is not None else config.output_token_limit,
    )
