"""Hooks invoked at each decision point of a context reduction.

Hooks let callers observe the controller (logging, tracing, test
assertions) without the controller writing to any global output.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from opentelemetry import trace

if TYPE_CHECKING:
    from ctxwindow.context.budget import TokenBudget
    from ctxwindow.context.controller import ReductionResult, ReductionState

logger = logging.getLogger(__name__)


class ReductionHook(ABC):
    """Abstract base class for reduction hooks."""

    @abstractmethod
    def on_measure(
        self,
        budget: "TokenBudget",
        effective_tokens: int,
        last_message_tokens: int,
    ) -> None:
        """Called once the newest message has been measured.

        Args:
            budget: Budget derived for this call.
            effective_tokens: Prior total plus the newest message.
            last_message_tokens: Estimated cost of the newest message.
        """
        pass

    @abstractmethod
    def on_complete(self, result: "ReductionResult") -> None:
        """Called when the controller has decided.

        Args:
            result: Final result including the reduction path.
        """
        pass

    def on_transition(self, previous: Optional["ReductionState"], state: "ReductionState") -> None:
        """Called for every state machine transition (optional)."""
        pass

    def on_summarization(self, applied: bool, summarized_ids: list[str]) -> None:
        """Called after the summarizer ran (optional)."""
        pass

    def on_estimation_failure(self, index: int, error: BaseException) -> None:
        """Called when a message got the penalty cost (optional)."""
        pass


class LoggingHook(ReductionHook):
    """Logs each decision point through the standard logging module."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_measure(self, budget, effective_tokens, last_message_tokens) -> None:
        if budget.exceeded_by(effective_tokens):
            self.log.info(
                f"[Truncation] Need to truncate. Effective tokens {effective_tokens:,} > "
                f"Allowed tokens {budget.allowed_tokens:,.0f}"
            )
        else:
            self.log.debug(
                f"[Budget] Within budget: {effective_tokens:,} <= {budget.allowed_tokens:,.0f} tokens"
            )

    def on_transition(self, previous, state) -> None:
        self.log.debug(f"[Budget] {previous.value if previous else 'start'} -> {state.value}")

    def on_summarization(self, applied, summarized_ids) -> None:
        if applied:
            self.log.info(f"[Summarization] Applied {len(summarized_ids)} summaries: {', '.join(summarized_ids)}")
        else:
            self.log.info("[Truncation] No summaries applied, performing standard truncation.")

    def on_estimation_failure(self, index, error) -> None:
        self.log.warning(f"[Summarization] Error estimating token count for message {index}: {error}")

    def on_complete(self, result) -> None:
        if result.summarized_tokens is not None:
            self.log.info(f"[Summarization] Tokens after summarization: {result.summarized_tokens:,}")
        if result.path.value != "unchanged":
            self.log.info(
                f"[Budget] Reduction path: {result.path.value} "
                f"({result.original_count} -> {len(result.messages)} messages)"
            )


@dataclass
class RecordingHook(ReductionHook):
    """Hook that collects every event, in order."""

    events: list[dict[str, Any]] = field(default_factory=list)
    results: list[Any] = field(default_factory=list)

    def _record(self, kind: str, **data: Any) -> None:
        self.events.append({"event": kind, "time": time.time(), **data})

    def on_measure(self, budget, effective_tokens, last_message_tokens) -> None:
        self._record(
            "measure",
            allowed_tokens=budget.allowed_tokens,
            effective_tokens=effective_tokens,
            last_message_tokens=last_message_tokens,
        )

    def on_transition(self, previous, state) -> None:
        self._record("transition", previous=previous, state=state)

    def on_summarization(self, applied, summarized_ids) -> None:
        self._record("summarization", applied=applied, summarized_ids=list(summarized_ids))

    def on_estimation_failure(self, index, error) -> None:
        self._record("estimation_failure", index=index, error=str(error))

    def on_complete(self, result) -> None:
        self.results.append(result)
        self._record("complete", path=result.path)

    @property
    def states(self) -> list:
        """States visited, in order."""
        return [e["state"] for e in self.events if e["event"] == "transition"]

    def clear(self) -> None:
        self.events.clear()
        self.results.clear()


class SpanHook(ReductionHook):
    """Adds reduction events and attributes to the current OpenTelemetry span."""

    def on_measure(self, budget, effective_tokens, last_message_tokens) -> None:
        span = trace.get_current_span()
        span.set_attribute("ctxwindow.context_window", budget.context_window)
        span.set_attribute("ctxwindow.allowed_tokens", float(budget.allowed_tokens))
        span.set_attribute("ctxwindow.effective_tokens", effective_tokens)
        span.set_attribute("ctxwindow.last_message_tokens", last_message_tokens)

    def on_transition(self, previous, state) -> None:
        trace.get_current_span().add_event("ctxwindow.transition", {"state": state.value})

    def on_summarization(self, applied, summarized_ids) -> None:
        trace.get_current_span().add_event(
            "ctxwindow.summarization",
            {"applied": applied, "summarized_ids": list(summarized_ids)},
        )

    def on_estimation_failure(self, index, error) -> None:
        trace.get_current_span().add_event(
            "ctxwindow.estimation_failure",
            {"message_index": index, "error": str(error)},
        )

    def on_complete(self, result) -> None:
        span = trace.get_current_span()
        span.set_attribute("ctxwindow.path", result.path.value)
        span.set_attribute("ctxwindow.messages_before", result.original_count)
        span.set_attribute("ctxwindow.messages_after", len(result.messages))
