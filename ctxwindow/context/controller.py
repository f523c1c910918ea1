"""Budget controller: keeps a conversation inside the model's context window.

Called once per turn before a model call. When the conversation is over
budget it first swaps tagged content for summaries, then falls back to
parity-preserving truncation. Every call is a single pass through the
state machine below; there is no repeated truncation loop.

    MEASURE -> OK -> DONE
    MEASURE -> OVER_BUDGET -> TOO_SHORT -> DONE
    OVER_BUDGET -> SUMMARIZE -> SUMMARY_INSUFFICIENT -> TRUNCATE_ORIGINAL -> DONE
    SUMMARIZE -> SUMMARY_APPLIED -> REMEASURE -> WITHIN_BUDGET -> DONE
    REMEASURE -> STILL_OVER -> TRUNCATE_SUMMARIZED -> DONE
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional, Sequence

from ctxwindow.context.budget import TokenBudget, compute_budget
from ctxwindow.context.estimator import TokenEstimator
from ctxwindow.context.summarizer import SummarizationResult, summarize_conversation
from ctxwindow.context.truncation import truncate_conversation
from ctxwindow.core.config import WindowConfig
from ctxwindow.core.errors import EstimationFailed, InvalidConversation
from ctxwindow.core.types import Message
from ctxwindow.llm.counters import TokenCounter
from ctxwindow.metrics.hooks import LoggingHook, ReductionHook
from ctxwindow.telemetry.otel import get_tracer

logger = logging.getLogger(__name__)


class ReductionState(str, Enum):
    """States of a single reduction pass."""

    MEASURE = "measure"
    OK = "ok"
    OVER_BUDGET = "over_budget"
    TOO_SHORT = "too_short"
    SUMMARIZE = "summarize"
    SUMMARY_INSUFFICIENT = "summary_insufficient"
    SUMMARY_APPLIED = "summary_applied"
    REMEASURE = "remeasure"
    STILL_OVER = "still_over"
    WITHIN_BUDGET = "within_budget"
    TRUNCATE_ORIGINAL = "truncate_original"
    TRUNCATE_SUMMARIZED = "truncate_summarized"
    DONE = "done"


class ReductionPath(str, Enum):
    """How the returned conversation was produced."""

    UNCHANGED = "unchanged"
    TOO_SHORT = "too_short"
    TRUNCATED = "truncated"
    SUMMARIZED = "summarized"
    SUMMARIZED_AND_TRUNCATED = "summarized_and_truncated"


_S = ReductionState

TRANSITIONS: dict[Optional[ReductionState], frozenset] = {
    None: frozenset({_S.MEASURE}),
    _S.MEASURE: frozenset({_S.OK, _S.OVER_BUDGET}),
    _S.OK: frozenset({_S.DONE}),
    _S.OVER_BUDGET: frozenset({_S.TOO_SHORT, _S.SUMMARIZE}),
    _S.TOO_SHORT: frozenset({_S.DONE}),
    _S.SUMMARIZE: frozenset({_S.SUMMARY_INSUFFICIENT, _S.SUMMARY_APPLIED}),
    _S.SUMMARY_INSUFFICIENT: frozenset({_S.TRUNCATE_ORIGINAL}),
    _S.SUMMARY_APPLIED: frozenset({_S.REMEASURE}),
    _S.REMEASURE: frozenset({_S.STILL_OVER, _S.WITHIN_BUDGET}),
    _S.STILL_OVER: frozenset({_S.TRUNCATE_SUMMARIZED}),
    _S.WITHIN_BUDGET: frozenset({_S.DONE}),
    _S.TRUNCATE_ORIGINAL: frozenset({_S.DONE}),
    _S.TRUNCATE_SUMMARIZED: frozenset({_S.DONE}),
    _S.DONE: frozenset(),
}


@dataclass
class ReductionResult:
    """Outcome of one controller invocation."""

    messages: list[Message]
    path: ReductionPath
    budget: TokenBudget
    effective_tokens: int
    last_message_tokens: int
    original_count: int
    summarized_tokens: Optional[int] = None
    summarized_ids: list[str] = field(default_factory=list)
    estimation_failures: list[int] = field(default_factory=list)
    transitions: list[ReductionState] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        """Messages dropped by truncation."""
        return self.original_count - len(self.messages)

    @property
    def reduced(self) -> bool:
        return self.path in (
            ReductionPath.TRUNCATED,
            ReductionPath.SUMMARIZED,
            ReductionPath.SUMMARIZED_AND_TRUNCATED,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without the messages themselves)."""
        return {
            "path": self.path.value,
            "budget": self.budget.to_dict(),
            "effective_tokens": self.effective_tokens,
            "last_message_tokens": self.last_message_tokens,
            "summarized_tokens": self.summarized_tokens,
            "summarized_ids": list(self.summarized_ids),
            "estimation_failures": list(self.estimation_failures),
            "original_count": self.original_count,
            "final_count": len(self.messages),
            "removed_count": self.removed_count,
            "transitions": [s.value for s in self.transitions],
        }


class _ReductionRun:
    """Per-invocation state; one instance walks the state machine once."""

    def __init__(
        self,
        controller: "BudgetController",
        messages: Sequence[Message],
        prior_total_tokens: int,
        budget: TokenBudget,
        summaries: Mapping[str, str],
    ):
        self.controller = controller
        self.config = controller.config
        self.hooks = controller.hooks
        self.messages = messages
        self.prior_total_tokens = prior_total_tokens
        self.budget = budget
        self.summaries = summaries

        self.state: Optional[ReductionState] = None
        self.transitions: list[ReductionState] = []

        self.last_message_tokens = 0
        self.effective_tokens = 0
        self.summarization: Optional[SummarizationResult] = None
        self.summarized_tokens: Optional[int] = None
        self.estimation_failures: list[int] = []
        self.output: Optional[list[Message]] = None
        self.path: Optional[ReductionPath] = None

        self._handlers: dict[ReductionState, Callable[[], Awaitable[ReductionState]]] = {
            _S.MEASURE: self._measure,
            _S.OK: self._ok,
            _S.OVER_BUDGET: self._over_budget,
            _S.TOO_SHORT: self._too_short,
            _S.SUMMARIZE: self._summarize,
            _S.SUMMARY_INSUFFICIENT: self._summary_insufficient,
            _S.SUMMARY_APPLIED: self._summary_applied,
            _S.REMEASURE: self._remeasure,
            _S.STILL_OVER: self._still_over,
            _S.WITHIN_BUDGET: self._within_budget,
            _S.TRUNCATE_ORIGINAL: self._truncate_original,
            _S.TRUNCATE_SUMMARIZED: self._truncate_summarized,
        }

    def _enter(self, state: ReductionState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal reduction transition: {self.state} -> {state}")
        for hook in self.hooks:
            hook.on_transition(self.state, state)
        self.state = state
        self.transitions.append(state)

    async def execute(self) -> ReductionResult:
        self._enter(_S.MEASURE)
        while self.state != _S.DONE:
            next_state = await self._handlers[self.state]()
            self._enter(next_state)

        result = ReductionResult(
            messages=self.output,
            path=self.path,
            budget=self.budget,
            effective_tokens=self.effective_tokens,
            last_message_tokens=self.last_message_tokens,
            original_count=len(self.messages),
            summarized_tokens=self.summarized_tokens,
            summarized_ids=list(self.summarization.summarized_ids) if self.summarization else [],
            estimation_failures=self.estimation_failures,
            transitions=self.transitions,
        )
        for hook in self.hooks:
            hook.on_complete(result)
        return result

    # --------- states ----------

    async def _measure(self) -> ReductionState:
        last_index = len(self.messages) - 1
        try:
            self.last_message_tokens = await self.controller.estimator.estimate_message(
                self.messages[last_index]
            )
        except Exception as e:
            raise EstimationFailed(last_index, str(e)) from e

        self.effective_tokens = self.prior_total_tokens + self.last_message_tokens
        for hook in self.hooks:
            hook.on_measure(self.budget, self.effective_tokens, self.last_message_tokens)

        if self.budget.exceeded_by(self.effective_tokens):
            return _S.OVER_BUDGET
        return _S.OK

    async def _ok(self) -> ReductionState:
        self.output = self.messages
        self.path = ReductionPath.UNCHANGED
        return _S.DONE

    async def _over_budget(self) -> ReductionState:
        if len(self.messages) < self.config.min_messages_for_reduction:
            return _S.TOO_SHORT
        return _S.SUMMARIZE

    async def _too_short(self) -> ReductionState:
        self.output = self.messages
        self.path = ReductionPath.TOO_SHORT
        return _S.DONE

    async def _summarize(self) -> ReductionState:
        self.summarization = summarize_conversation(self.messages, self.summaries)
        for hook in self.hooks:
            hook.on_summarization(self.summarization.applied, self.summarization.summarized_ids)
        if self.summarization.applied:
            return _S.SUMMARY_APPLIED
        return _S.SUMMARY_INSUFFICIENT

    async def _summary_insufficient(self) -> ReductionState:
        return _S.TRUNCATE_ORIGINAL

    async def _truncate_original(self) -> ReductionState:
        self.output = truncate_conversation(self.messages, self.config.fallback_truncation_fraction)
        self.path = ReductionPath.TRUNCATED
        return _S.DONE

    async def _summary_applied(self) -> ReductionState:
        return _S.REMEASURE

    async def _remeasure(self) -> ReductionState:
        def notify(index: int, error: BaseException) -> None:
            for hook in self.hooks:
                hook.on_estimation_failure(index, error)

        summary = await self.controller.estimator.estimate_total(
            self.summarization.messages,
            penalty_tokens=self.config.estimation_penalty_tokens,
            concurrent=self.config.concurrent_estimation,
            on_failure=notify,
        )
        self.summarized_tokens = summary.total
        self.estimation_failures = summary.failures

        if self.budget.exceeded_by(summary.total):
            return _S.STILL_OVER
        return _S.WITHIN_BUDGET

    async def _still_over(self) -> ReductionState:
        return _S.TRUNCATE_SUMMARIZED

    async def _truncate_summarized(self) -> ReductionState:
        self.output = truncate_conversation(
            self.summarization.messages, self.config.fallback_truncation_fraction
        )
        self.path = ReductionPath.SUMMARIZED_AND_TRUNCATED
        return _S.DONE

    async def _within_budget(self) -> ReductionState:
        self.output = self.summarization.messages
        self.path = ReductionPath.SUMMARIZED
        return _S.DONE


class BudgetController:
    """Decides whether a conversation fits the context window and shrinks it if not."""

    def __init__(
        self,
        counter: TokenCounter,
        config: Optional[WindowConfig] = None,
        hooks: Optional[Iterable[ReductionHook]] = None,
    ):
        """Initialize the controller.

        Args:
            counter: Token counter used for every estimate.
            config: Window configuration (defaults if not given).
            hooks: Observability hooks. Defaults to a single LoggingHook.
        """
        self.config = config or WindowConfig()
        self.config.validate()
        self.estimator = TokenEstimator(counter)
        self.hooks: list[ReductionHook] = list(hooks) if hooks is not None else [LoggingHook()]

    async def reduce(
        self,
        messages: Sequence[Message],
        prior_total_tokens: int,
        context_window: int,
        max_response_tokens: Optional[int] = None,
        summaries: Optional[Mapping[str, str]] = None,
    ) -> ReductionResult:
        """Run one reduction pass and return the full result.

        Args:
            messages: Conversation; the last message is the newest user turn.
            prior_total_tokens: Tokens used by everything except the last message.
            context_window: Model context window in tokens.
            max_response_tokens: Response reserve; defaults to 20% of the window.
            summaries: Content id -> summary for tagged content.

        Returns:
            ReductionResult with the conversation to send.

        Raises:
            InvalidConversation: If messages is empty.
            EstimationFailed: If the newest message cannot be measured.
        """
        if not messages:
            raise InvalidConversation("Cannot reduce an empty conversation")

        budget = compute_budget(context_window, max_response_tokens, self.config)
        run = _ReductionRun(self, messages, prior_total_tokens, budget, summaries or {})

        with get_tracer().start_as_current_span("ctxwindow.reduce"):
            return await run.execute()

    async def reduce_if_needed(
        self,
        messages: Sequence[Message],
        prior_total_tokens: int,
        context_window: int,
        max_response_tokens: Optional[int] = None,
        summaries: Optional[Mapping[str, str]] = None,
    ) -> list[Message]:
        """Return the conversation to send: the input itself if it fits."""
        result = await self.reduce(
            messages,
            prior_total_tokens,
            context_window,
            max_response_tokens=max_response_tokens,
            summaries=summaries,
        )
        return result.messages


async def truncate_conversation_if_needed(
    messages: Sequence[Message],
    total_tokens: int,
    context_window: int,
    counter: TokenCounter,
    max_tokens: Optional[int] = None,
    content_summaries: Optional[Mapping[str, str]] = None,
    config: Optional[WindowConfig] = None,
) -> list[Message]:
    """One-shot helper: build a controller and reduce a single turn."""
    controller = BudgetController(counter, config=config)
    return await controller.reduce_if_needed(
        messages,
        total_tokens,
        context_window,
        max_response_tokens=max_tokens,
        summaries=content_summaries,
    )
