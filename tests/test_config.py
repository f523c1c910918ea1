"""Tests for configuration, budgets, messages and the model registry."""

import pytest

from ctxwindow.context.budget import compute_budget
from ctxwindow.core.config import WindowConfig
from ctxwindow.core.errors import ConfigError, ContextWindowError, InvalidConversation
from ctxwindow.core.types import (
    ImageBlock,
    Message,
    RawBlock,
    Role,
    TextBlock,
    ToolResultBlock,
    messages_from_dicts,
    messages_to_dicts,
)
from ctxwindow.models import get_model_config, is_supported_model, resolve_window


class TestWindowConfig:
    """Tests for WindowConfig."""

    def test_defaults(self):
        """Test the default tunables."""
        config = WindowConfig()
        config.validate()

        assert config.buffer_fraction == 0.1
        assert config.default_reserved_fraction == 0.2
        assert config.fallback_truncation_fraction == 0.5
        assert config.estimation_penalty_tokens == 1000

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"buffer_fraction": -0.1},
            {"fallback_truncation_fraction": 1.5},
            {"buffer_fraction": 0.5, "default_reserved_fraction": 0.5},
            {"estimation_penalty_tokens": -1},
            {"min_messages_for_reduction": 2},
        ],
    )
    def test_invalid(self, kwargs):
        """Test that out-of-range values raise ConfigError."""
        with pytest.raises(ConfigError):
            WindowConfig(**kwargs).validate()

    def test_dict_roundtrip(self):
        """Test that to_dict and from_dict agree."""
        config = WindowConfig(buffer_fraction=0.05, concurrent_estimation=True)

        assert WindowConfig.from_dict(config.to_dict()) == config

    def test_from_dict_partial(self):
        """Test that missing keys use defaults."""
        config = WindowConfig.from_dict({"estimation_penalty_tokens": 250})

        assert config.estimation_penalty_tokens == 250
        assert config.buffer_fraction == 0.1

    def test_from_env(self):
        """Test that CTXWINDOW_* variables are read."""
        config = WindowConfig.from_env(
            {
                "CTXWINDOW_BUFFER_FRACTION": "0.05",
                "CTXWINDOW_RESERVED_FRACTION": "0.25",
                "CTXWINDOW_FALLBACK_FRACTION": "0.75",
                "CTXWINDOW_PENALTY_TOKENS": "500",
                "CTXWINDOW_CONCURRENT_ESTIMATION": "true",
            }
        )

        assert config.buffer_fraction == 0.05
        assert config.default_reserved_fraction == 0.25
        assert config.fallback_truncation_fraction == 0.75
        assert config.estimation_penalty_tokens == 500
        assert config.concurrent_estimation is True

    def test_from_env_empty(self):
        """Test that an empty environment gives the defaults."""
        assert WindowConfig.from_env({}) == WindowConfig()

    def test_from_env_not_a_number(self):
        """Test that unparseable values raise ConfigError."""
        with pytest.raises(ConfigError) as exc_info:
            WindowConfig.from_env({"CTXWINDOW_PENALTY_TOKENS": "lots"})

        assert exc_info.value.to_dict()["error_type"] == "ConfigError"
        assert isinstance(exc_info.value, ContextWindowError)


class TestComputeBudget:
    """Tests for compute_budget."""

    def test_default_reserve(self):
        """Test the 20% reserve and 10% buffer."""
        budget = compute_budget(200_000)

        assert budget.reserved_tokens == pytest.approx(40_000)
        assert budget.buffer_tokens == pytest.approx(20_000)
        assert budget.allowed_tokens == pytest.approx(140_000)

    def test_explicit_reserve(self):
        """Test that an explicit reserve replaces the default."""
        budget = compute_budget(128_000, 16_384)

        assert budget.allowed_tokens == pytest.approx(128_000 * 0.9 - 16_384)

    def test_exceeded_by_is_strict(self):
        """Test that exactly the allowance still fits."""
        budget = compute_budget(1000, 100)

        assert not budget.exceeded_by(800)
        assert budget.exceeded_by(801)

    def test_custom_config(self):
        """Test that buffer and reserve fractions come from the config."""
        config = WindowConfig(buffer_fraction=0.0, default_reserved_fraction=0.5)

        assert compute_budget(1000, config=config).allowed_tokens == pytest.approx(500)

    def test_non_positive_window(self):
        """Test that a window must be positive."""
        for window in (0, -1000):
            with pytest.raises(ConfigError) as exc_info:
                compute_budget(window)
            assert exc_info.value.details["field"] == "context_window"


class TestMessages:
    """Tests for message parsing and serialization."""

    def test_from_dicts(self):
        """Test parsing of string and block content."""
        messages = messages_from_dicts(
            [
                {"role": "user", "content": "hi"},
                {
                    "role": "assistant",
                    "content": [{"type": "text", "text": "hello"}],
                },
                {
                    "role": "user",
                    "content": [
                        {"type": "image", "source": {"type": "url", "url": "u"}},
                        {"type": "tool_result", "tool_use_id": "t1", "content": "ok"},
                        {"type": "document", "title": "notes"},
                    ],
                },
            ]
        )

        assert messages[0].role == Role.USER
        assert messages[0].content == "hi"
        assert messages[1].content == (TextBlock("hello"),)
        assert isinstance(messages[2].content[0], ImageBlock)
        assert isinstance(messages[2].content[1], ToolResultBlock)
        assert isinstance(messages[2].content[2], RawBlock)

    def test_to_dicts_preserves_shape(self):
        """Test that serialization keeps unknown block fields."""
        data = [
            {"role": "user", "content": "hi"},
            {"role": "user", "content": [{"type": "document", "title": "notes"}]},
        ]

        assert messages_to_dicts(messages_from_dicts(data)) == data

    def test_unknown_role(self):
        """Test that an unknown role names the message index."""
        with pytest.raises(InvalidConversation) as exc_info:
            messages_from_dicts([{"role": "user", "content": "a"}, {"role": "system", "content": "b"}])

        assert exc_info.value.index == 1

    def test_bad_content(self):
        """Test that content must be a string or a list."""
        with pytest.raises(InvalidConversation):
            messages_from_dicts([{"role": "user", "content": 42}])

    def test_content_blocks_wraps_string(self):
        """Test that string content is seen as one text block."""
        assert Message.user("hi").content_blocks() == (TextBlock("hi"),)

    def test_list_content_becomes_tuple(self):
        """Test that list content is stored as a tuple and role strings are coerced."""
        message = Message(role="user", content=[TextBlock("a")])

        assert message.content == (TextBlock("a"),)
        assert message.role is Role.USER


class TestModels:
    """Tests for the model registry."""

    def test_known_model(self):
        """Test a registry lookup."""
        config = get_model_config("gpt-4o")

        assert config.context_window == 128_000
        assert config.counter_backend() == "tiktoken"

    def test_provider_prefix(self):
        """Test that a provider/ prefix is ignored."""
        config = get_model_config("anthropic/claude-sonnet-4-5-20250929")

        assert config.provider == "anthropic"
        assert config.counter_backend() == "anthropic"

    def test_unknown_model(self):
        """Test that unknown models raise ValueError."""
        with pytest.raises(ValueError, match="Unsupported model"):
            get_model_config("gpt-1")
        assert not is_supported_model("gpt-1")

    def test_resolve_window_from_model(self):
        """Test that the registry supplies window and reserve."""
        assert resolve_window("gpt-4o") == (128_000, 16_384)

    def test_resolve_window_overrides(self):
        """Test that explicit numbers win."""
        assert resolve_window("gpt-4o", 64_000, 0) == (64_000, 0)

    def test_resolve_window_without_model(self):
        """Test that a raw window leaves the reserve to the controller."""
        assert resolve_window(None, 8_000) == (8_000, None)

    def test_resolve_window_requires_something(self):
        """Test that a model or a window is required."""
        with pytest.raises(ValueError):
            resolve_window()
