"""Token estimation on top of a pluggable counter."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from ctxwindow.core.types import ContentBlock, Message
from ctxwindow.llm.counters import TokenCounter

logger = logging.getLogger(__name__)

# Cost assumed for a message the counter fails on
DEFAULT_PENALTY_TOKENS = 1000


@dataclass
class EstimateSummary:
    """Result of measuring a whole conversation."""

    total: int
    per_message: list[int] = field(default_factory=list)
    failures: list[int] = field(default_factory=list)  # indexes that got the penalty

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "per_message": list(self.per_message),
            "failures": list(self.failures),
        }


class TokenEstimator:
    """Adapter that awaits a TokenCounter for message content."""

    def __init__(self, counter: TokenCounter):
        self.counter = counter

    async def estimate(self, blocks: Optional[Sequence[ContentBlock]]) -> int:
        """Count tokens for content blocks; empty input costs 0 without calling the counter."""
        if not blocks:
            return 0
        return await self.counter.count_tokens(list(blocks))

    async def estimate_message(self, message: Message) -> int:
        """Count tokens for one message, wrapping string content in a text block."""
        return await self.estimate(message.content_blocks())

    async def estimate_total(
        self,
        messages: Sequence[Message],
        penalty_tokens: int = DEFAULT_PENALTY_TOKENS,
        concurrent: bool = False,
        on_failure: Optional[Callable[[int, BaseException], None]] = None,
    ) -> EstimateSummary:
        """Sum per-message estimates, substituting a penalty for failures.

        Args:
            messages: Messages to measure.
            penalty_tokens: Cost used for a message whose estimate raised.
            concurrent: Gather all estimates at once instead of one by one.
            on_failure: Called with (index, error) for each failed message.

        Returns:
            EstimateSummary with per-message costs in input order.
        """
        if concurrent:
            outcomes = await asyncio.gather(
                *(self.estimate_message(m) for m in messages),
                return_exceptions=True,
            )
        else:
            outcomes = []
            for message in messages:
                try:
                    outcomes.append(await self.estimate_message(message))
                except Exception as e:
                    outcomes.append(e)

        per_message: list[int] = []
        failures: list[int] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(
                    f"[Summarization] Token estimation failed for message {index}, "
                    f"using penalty of {penalty_tokens} tokens: {outcome}"
                )
                if on_failure is not None:
                    on_failure(index, outcome)
                failures.append(index)
                per_message.append(penalty_tokens)
            else:
                per_message.append(outcome)

        return EstimateSummary(total=sum(per_message), per_message=per_message, failures=failures)
