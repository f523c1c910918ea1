"""Replace tagged content with precomputed summaries.

Large pieces of user-supplied content (file bodies, tool output) are wrapped
in markers of the form::

    <tagged_content id="ID">...body...</tagged_content>

When a summary for ID is available, the whole marker is swapped for a short
placeholder. Summaries are produced elsewhere; this module only substitutes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ctxwindow.core.types import Message, Role, TextBlock

logger = logging.getLogger(__name__)

OPEN_TAG_PREFIX = '<tagged_content id="'
OPEN_TAG_SUFFIX = '">'
CLOSE_TAG = "</tagged_content>"

SUMMARY_PLACEHOLDER = "[Content for part {id} was summarized: {summary}]"


@dataclass(frozen=True)
class TaggedSpan:
    """One marker occurrence: text[start:end] is the full span, tags included."""

    start: int
    end: int
    id: str
    body: str


def scan_tagged_content(text: str) -> list[TaggedSpan]:
    """Find every non-overlapping tagged-content marker in text.

    Each marker is closed by the nearest following close tag, so adjacent
    markers stay separate. An opening tag with an empty id, or without the
    closing '">', is not a marker; scanning resumes one character later.
    """
    spans: list[TaggedSpan] = []
    pos = 0
    while True:
        start = text.find(OPEN_TAG_PREFIX, pos)
        if start < 0:
            break

        id_start = start + len(OPEN_TAG_PREFIX)
        id_end = text.find('"', id_start)
        if id_end <= id_start or not text.startswith(OPEN_TAG_SUFFIX, id_end):
            pos = start + 1
            continue

        body_start = id_end + len(OPEN_TAG_SUFFIX)
        close = text.find(CLOSE_TAG, body_start)
        if close < 0:
            # No later opening can be closed either
            break

        end = close + len(CLOSE_TAG)
        spans.append(
            TaggedSpan(start=start, end=end, id=text[id_start:id_end], body=text[body_start:close])
        )
        pos = end
    return spans


def replace_tagged_content(text: str, summaries: Mapping[str, str]) -> tuple[str, list[str]]:
    """Swap summarized markers for placeholders.

    Args:
        text: Text that may contain markers.
        summaries: Content id -> summary. Ids missing here (or mapped to an
            empty summary) are left verbatim.

    Returns:
        (new_text, ids_replaced_in_order). new_text is ``text`` itself when
        nothing was replaced.
    """
    if not summaries or OPEN_TAG_PREFIX not in text:
        return text, []

    pieces: list[str] = []
    replaced: list[str] = []
    cursor = 0
    for span in scan_tagged_content(text):
        summary = summaries.get(span.id)
        if not summary:
            continue
        pieces.append(text[cursor : span.start])
        pieces.append(SUMMARY_PLACEHOLDER.format(id=span.id, summary=summary))
        replaced.append(span.id)
        cursor = span.end
        logger.debug(f"[Summarization] Applying summary for ID: {span.id}")

    if not replaced:
        return text, []
    pieces.append(text[cursor:])
    return "".join(pieces), replaced


@dataclass
class SummarizationResult:
    """Outcome of summarizing a conversation."""

    messages: list[Message]
    applied: bool
    summarized_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_count": len(self.messages),
            "applied": self.applied,
            "summarized_ids": list(self.summarized_ids),
        }


def summarize_message(message: Message, summaries: Mapping[str, str]) -> tuple[Message, list[str]]:
    """Summarize the text blocks of one user message.

    Assistant messages and string content pass through. The message is only
    rebuilt if a block changed; unchanged blocks are reused.
    """
    if message.role != Role.USER or not message.has_blocks:
        return message, []

    new_blocks = []
    replaced_ids: list[str] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            new_text, ids = replace_tagged_content(block.text, summaries)
            if ids:
                replaced_ids.extend(ids)
                new_blocks.append(TextBlock(text=new_text))
                continue
        new_blocks.append(block)

    if not replaced_ids:
        return message, []
    return message.with_content(new_blocks), replaced_ids


def summarize_conversation(
    messages: Sequence[Message],
    summaries: Optional[Mapping[str, str]],
) -> SummarizationResult:
    """Apply summaries to the interior of a conversation.

    The first and last messages are never touched and the message count never
    changes. Running it again on its own output is a no-op.

    Args:
        messages: Full conversation.
        summaries: Content id -> summary; None means no summaries.

    Returns:
        SummarizationResult; ``applied`` is True iff any marker was replaced.
    """
    summaries = summaries or {}
    result = list(messages)
    if len(result) <= 2 or not summaries:
        return SummarizationResult(messages=result, applied=False)

    summarized_ids: list[str] = []
    for index in range(1, len(result) - 1):
        new_message, ids = summarize_message(result[index], summaries)
        if ids:
            result[index] = new_message
            summarized_ids.extend(ids)

    return SummarizationResult(
        messages=result,
        applied=bool(summarized_ids),
        summarized_ids=summarized_ids,
    )
