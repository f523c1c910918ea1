"""Pytest fixtures for ctxwindow tests."""

from typing import Callable

import pytest

from ctxwindow.core.types import Message, Role, TextBlock
from ctxwindow.llm.counters import MockTokenCounter
from ctxwindow.metrics.hooks import RecordingHook


def tagged(content_id: str, body: str) -> str:
    """Wrap body in a tagged-content marker."""
    return f'<tagged_content id="{content_id}">{body}</tagged_content>'


@pytest.fixture
def make_conversation() -> Callable[[int], list[Message]]:
    """Factory for alternating user/assistant conversations with texts m0..mN."""

    def factory(n: int) -> list[Message]:
        return [
            Message(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"m{i}")
            for i in range(n)
        ]

    return factory


@pytest.fixture
def mock_counter() -> MockTokenCounter:
    """Counter charging 10 tokens per block."""
    return MockTokenCounter(default_cost=10)


@pytest.fixture
def recording_hook() -> RecordingHook:
    """Hook that records every controller event."""
    return RecordingHook()


@pytest.fixture
def tagged_conversation() -> list[Message]:
    """Five-message conversation whose interior user message carries tagged content."""
    return [
        Message.user("Please refactor the loader."),
        Message.assistant("Sure, send me the files."),
        Message.user(
            [
                TextBlock("Here is the file:"),
                TextBlock(tagged("abc", "long text " * 50)),
            ]
        ),
        Message.assistant("Thanks, looking at it."),
        Message.user("What do you think?"),
    ]
