"""Context-window management for LLM conversations.

This module provides:
- Token estimation through a pluggable counter
- Parity-preserving truncation
- Tagged-content summarization
- The budget controller that chains them once per turn
"""

from ctxwindow.context.budget import TokenBudget, compute_budget
from ctxwindow.context.controller import (
    BudgetController,
    ReductionPath,
    ReductionResult,
    ReductionState,
    truncate_conversation_if_needed,
)
from ctxwindow.context.estimator import (
    DEFAULT_PENALTY_TOKENS,
    EstimateSummary,
    TokenEstimator,
)
from ctxwindow.context.summarizer import (
    SUMMARY_PLACEHOLDER,
    SummarizationResult,
    TaggedSpan,
    replace_tagged_content,
    scan_tagged_content,
    summarize_conversation,
    summarize_message,
)
from ctxwindow.context.truncation import messages_to_remove, truncate_conversation

__all__ = [
    # Controller
    "BudgetController",
    "ReductionPath",
    "ReductionResult",
    "ReductionState",
    "truncate_conversation_if_needed",
    # Budget
    "TokenBudget",
    "compute_budget",
    # Estimation
    "TokenEstimator",
    "EstimateSummary",
    "DEFAULT_PENALTY_TOKENS",
    # Summarization
    "TaggedSpan",
    "SummarizationResult",
    "SUMMARY_PLACEHOLDER",
    "scan_tagged_content",
    "replace_tagged_content",
    "summarize_message",
    "summarize_conversation",
    # Truncation
    "truncate_conversation",
    "messages_to_remove",
]
