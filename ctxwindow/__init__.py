"""ctxwindow - conversation context-window manager for LLM agents.

Decides once per turn whether a conversation fits the model's context budget
and, if not, shrinks it without losing the first turn:
- Summaries replace tagged content first
- Parity-preserving truncation is the fallback
- Token counting is delegated to a pluggable counter

Usage:
    from ctxwindow import BudgetController, Message, create_counter

    controller = BudgetController(create_counter("tiktoken"))
    messages = await controller.reduce_if_needed(
        messages, prior_total_tokens=150_000, context_window=200_000,
        summaries={"file-1": "config loader, 300 lines"},
    )
"""

from ctxwindow.context import (
    BudgetController,
    ReductionPath,
    ReductionResult,
    ReductionState,
    TokenBudget,
    TokenEstimator,
    compute_budget,
    summarize_conversation,
    truncate_conversation,
    truncate_conversation_if_needed,
)
from ctxwindow.core.config import TOKEN_BUFFER_PERCENTAGE, WindowConfig
from ctxwindow.core.errors import (
    ContextWindowError,
    EstimationFailed,
    InvalidConversation,
    InvalidFraction,
)
from ctxwindow.core.types import Message, Role, TextBlock
from ctxwindow.llm.counters import TokenCounter, create_counter

__version__ = "0.1.0"

__all__ = [
    # Controller
    "BudgetController",
    "ReductionPath",
    "ReductionResult",
    "ReductionState",
    "truncate_conversation_if_needed",
    # Building blocks
    "TokenBudget",
    "TokenEstimator",
    "compute_budget",
    "summarize_conversation",
    "truncate_conversation",
    # Types
    "Message",
    "Role",
    "TextBlock",
    # Counters
    "TokenCounter",
    "create_counter",
    # Config
    "WindowConfig",
    "TOKEN_BUFFER_PERCENTAGE",
    # Errors
    "ContextWindowError",
    "EstimationFailed",
    "InvalidConversation",
    "InvalidFraction",
    # Version
    "__version__",
]
