"""Parity-preserving conversation truncation."""

import logging
import math
from typing import Sequence

from ctxwindow.core.errors import InvalidConversation, InvalidFraction
from ctxwindow.core.types import Message

logger = logging.getLogger(__name__)


def messages_to_remove(message_count: int, fraction: float) -> int:
    """Number of messages truncation drops from a conversation.

    Takes the fraction of everything after the first message and rounds it
    down to an even number, so user/assistant alternation survives the cut.

    Args:
        message_count: Total messages, including the first.
        fraction: Fraction (0..1) of the non-first messages to drop.

    Returns:
        Even, non-negative count.

    Raises:
        InvalidFraction: If fraction is outside [0, 1].
    """
    if not 0.0 <= fraction <= 1.0:
        raise InvalidFraction(fraction)
    raw = math.floor(max(message_count - 1, 0) * fraction)
    return raw - (raw % 2)


def truncate_conversation(messages: Sequence[Message], fraction: float) -> list[Message]:
    """Drop an even-sized run of messages right after the first one.

    The first message is always kept. With a removal count of 0 the result
    equals the input.

    Args:
        messages: The conversation.
        fraction: Fraction (0..1) of messages after the first to remove.

    Returns:
        A new list: [messages[0], *messages[removed + 1:]].

    Raises:
        InvalidConversation: If messages is empty.
        InvalidFraction: If fraction is outside [0, 1].
    """
    if not messages:
        raise InvalidConversation("Cannot truncate an empty conversation")

    removed = messages_to_remove(len(messages), fraction)
    truncated = [messages[0], *messages[removed + 1 :]]

    if removed:
        logger.debug(f"[Truncation] Removed {removed} of {len(messages)} messages (fraction={fraction})")
    return truncated
