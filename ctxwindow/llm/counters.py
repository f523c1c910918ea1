"""Token counting backends.

The context controller never tokenizes text itself; it awaits one of these
counters. Supported backends:
- Heuristic (characters per token, no dependencies)
- tiktoken (BPE encoding, local)
- Anthropic (provider-side count_tokens endpoint)
- Mock (deterministic, for tests and dry runs)
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from ctxwindow.core.types import ContentBlock, ImageBlock, TextBlock

logger = logging.getLogger(__name__)


class CounterBackend(str, Enum):
    """Supported token counting backends."""

    HEURISTIC = "heuristic"
    TIKTOKEN = "tiktoken"
    ANTHROPIC = "anthropic"
    MOCK = "mock"


# Average characters per token across common providers
DEFAULT_CHARS_PER_TOKEN = 4.0

# Rough provider cost of one image block (~1.15 megapixels)
IMAGE_TOKEN_ESTIMATE = 1600

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"


def _block_text(block: ContentBlock) -> str:
    """Text used to size a block: its text, or its JSON form for other blocks."""
    if isinstance(block, TextBlock):
        return block.text
    return json.dumps(block.to_dict(), ensure_ascii=False, default=str)


class TokenCounter(ABC):
    """Abstract base class for token counters."""

    backend: CounterBackend

    @abstractmethod
    async def count_tokens(self, blocks: Sequence[ContentBlock]) -> int:
        """Count tokens for a sequence of content blocks.

        Args:
            blocks: Content blocks of a single message.

        Returns:
            Non-negative token count.
        """
        pass


class HeuristicTokenCounter(TokenCounter):
    """Character-based approximation (about 4 characters per token)."""

    backend = CounterBackend.HEURISTIC

    def __init__(self, chars_per_token: float = DEFAULT_CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    async def count_tokens(self, blocks: Sequence[ContentBlock]) -> int:
        total = 0
        for block in blocks:
            if isinstance(block, ImageBlock):
                total += IMAGE_TOKEN_ESTIMATE
                continue
            text = _block_text(block)
            if text:
                total += max(1, int(len(text) / self.chars_per_token))
        return total


class TiktokenCounter(TokenCounter):
    """Counts with a tiktoken BPE encoding.

    cl100k_base is a reasonable approximation for non-OpenAI models in budget
    planning.
    """

    backend = CounterBackend.TIKTOKEN

    def __init__(self, encoding: str = "cl100k_base"):
        self.encoding_name = encoding
        self._encoder = None

    def _get_encoder(self):
        if self._encoder is None:
            try:
                import tiktoken
            except ImportError:
                raise ImportError("tiktoken package required. Install: pip install ctxwindow[tiktoken]")
            self._encoder = tiktoken.get_encoding(self.encoding_name)
            logger.debug(f"[Tokens] Loaded tiktoken encoding {self.encoding_name}")
        return self._encoder

    async def count_tokens(self, blocks: Sequence[ContentBlock]) -> int:
        encoder = self._get_encoder()
        total = 0
        for block in blocks:
            if isinstance(block, ImageBlock):
                total += IMAGE_TOKEN_ESTIMATE
                continue
            total += len(encoder.encode(_block_text(block), disallowed_special=()))
        return total


class AnthropicTokenCounter(TokenCounter):
    """Asks the Anthropic API to count the tokens of a user message."""

    backend = CounterBackend.ANTHROPIC

    def __init__(
        self,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self._api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self._client = None

        if not self._api_key:
            raise ValueError("Anthropic API key required. Set ANTHROPIC_API_KEY env var or pass api_key.")

    def _get_client(self):
        if self._client is None:
            try:
                import anthropic
            except ImportError:
                raise ImportError("anthropic package required. Install: pip install ctxwindow[anthropic]")
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def count_tokens(self, blocks: Sequence[ContentBlock]) -> int:
        client = self._get_client()
        response = await client.messages.count_tokens(
            model=self.model,
            messages=[{"role": "user", "content": [b.to_dict() for b in blocks]}],
        )
        return response.input_tokens


class MockTokenCounter(TokenCounter):
    """Deterministic counter for tests.

    Each text block costs ``costs[text]`` if present, otherwise
    ``default_cost``; non-text blocks cost ``default_cost``. A call fails with
    RuntimeError when any text block contains one of ``fail_on``.
    """

    backend = CounterBackend.MOCK

    def __init__(
        self,
        costs: Optional[Mapping[str, int]] = None,
        default_cost: int = 10,
        fail_on: Iterable[str] = (),
    ):
        self.costs = dict(costs or {})
        self.default_cost = default_cost
        self.fail_on = tuple(fail_on)
        self.calls: list[tuple[ContentBlock, ...]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def count_tokens(self, blocks: Sequence[ContentBlock]) -> int:
        self.calls.append(tuple(blocks))
        total = 0
        for block in blocks:
            if isinstance(block, TextBlock):
                if any(marker in block.text for marker in self.fail_on):
                    raise RuntimeError(f"mock counter failure for {block.text[:40]!r}")
                total += self.costs.get(block.text, self.default_cost)
            else:
                total += self.default_cost
        return total


def create_counter(
    backend: str = "heuristic",
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    **kwargs,
) -> TokenCounter:
    """Create a token counter for the given backend.

    Args:
        backend: Backend name (heuristic, tiktoken, anthropic, mock).
        model: Model name for provider-side counting.
        api_key: API key for provider-side counting. Uses env var if not given.
        **kwargs: Backend-specific arguments (chars_per_token, encoding, costs...).

    Returns:
        TokenCounter instance.

    Raises:
        ValueError: If the backend is unknown.
    """
    try:
        backend_enum = CounterBackend(backend.lower())
    except ValueError:
        valid = [b.value for b in CounterBackend]
        raise ValueError(f"Unknown counter backend: {backend}. Valid backends: {valid}")

    if backend_enum == CounterBackend.HEURISTIC:
        return HeuristicTokenCounter(chars_per_token=kwargs.get("chars_per_token", DEFAULT_CHARS_PER_TOKEN))
    if backend_enum == CounterBackend.TIKTOKEN:
        return TiktokenCounter(encoding=kwargs.get("encoding", "cl100k_base"))
    if backend_enum == CounterBackend.ANTHROPIC:
        return AnthropicTokenCounter(model=model or DEFAULT_ANTHROPIC_MODEL, api_key=api_key)
    return MockTokenCounter(
        costs=kwargs.get("costs"),
        default_cost=kwargs.get("default_cost", 10),
        fail_on=kwargs.get("fail_on", ()),
    )
