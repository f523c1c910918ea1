"""Token counting backends for ctxwindow.

Supports:
- Character heuristic (no dependencies)
- tiktoken (local BPE encoding)
- Anthropic (provider-side counting)
- Mock (tests)
"""

from ctxwindow.llm.counters import (
    DEFAULT_CHARS_PER_TOKEN,
    AnthropicTokenCounter,
    CounterBackend,
    HeuristicTokenCounter,
    MockTokenCounter,
    TiktokenCounter,
    TokenCounter,
    create_counter,
)

__all__ = [
    "TokenCounter",
    "CounterBackend",
    "HeuristicTokenCounter",
    "TiktokenCounter",
    "AnthropicTokenCounter",
    "MockTokenCounter",
    "create_counter",
    "DEFAULT_CHARS_PER_TOKEN",
]
