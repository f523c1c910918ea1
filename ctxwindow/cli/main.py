"""CLI entrypoint for ctxwindow.

Commands:
- reduce: Run the budget controller over a conversation file
- budget: Show the token budget for a model or context window
- scan: List tagged-content markers in a conversation
- truncate: Apply parity-preserving truncation to a conversation
- list-models: List known models and their context limits
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from ctxwindow.cli.arguments import (
    add_counter_arg,
    add_format_arg,
    add_input_arg,
    add_verbose_arg,
    add_window_args,
)
from ctxwindow.cli.formatting import OutputFormatter
from ctxwindow.core.errors import ContextWindowError
from ctxwindow.core.types import Message, TextBlock, messages_from_dicts, messages_to_dicts

# Load .env file from current directory
load_dotenv()


@dataclass
class ConversationFile:
    """Contents of a conversation JSON file."""

    messages: list[Message]
    summaries: dict[str, str] = field(default_factory=dict)
    prior_tokens: Optional[int] = None


def load_conversation_file(path: str) -> ConversationFile:
    """Load a conversation file.

    Accepts either a bare list of provider message dicts, or an object with
    "messages" and optional "summaries" / "prior_tokens" keys.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the JSON is invalid or has the wrong shape.
        InvalidConversation: If a message is malformed.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        return ConversationFile(messages=messages_from_dicts(data))
    if isinstance(data, dict) and isinstance(data.get("messages"), list):
        summaries = data.get("summaries") or {}
        if not isinstance(summaries, dict):
            raise ValueError(f"{path}: 'summaries' must be an object of id -> summary")

        prior_tokens = data.get("prior_tokens")
        # bool is an int subclass
        if prior_tokens is not None and (not isinstance(prior_tokens, int) or isinstance(prior_tokens, bool)):
            raise ValueError(f"{path}: 'prior_tokens' must be an integer, got {prior_tokens!r}")

        return ConversationFile(
            messages=messages_from_dicts(data["messages"]),
            summaries={str(k): str(v) for k, v in summaries.items()},
            prior_tokens=prior_tokens,
        )
    raise ValueError(f"{path}: expected a list of messages or an object with 'messages'")


def load_summaries_file(path: str) -> dict[str, str]:
    """Load a JSON object mapping content ids to summaries."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object of id -> summary")
    return {str(k): str(v) for k, v in data.items()}


def write_conversation_file(path: str, messages: list[Message]) -> None:
    """Write messages as provider message dicts."""
    Path(path).write_text(json.dumps(messages_to_dicts(messages), indent=2, ensure_ascii=False), encoding="utf-8")


def configure_logging(verbose: bool) -> None:
    """Configure root logging for CLI runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_counter(args: argparse.Namespace):
    from ctxwindow.llm.counters import create_counter
    from ctxwindow.models import get_model_config

    backend = args.counter
    model = None
    if args.model:
        config = get_model_config(args.model)
        model = args.model.split("/", 1)[-1]
        backend = backend or config.counter_backend()
    return create_counter(backend or "heuristic", model=model)


async def _run_reduce(
    conversation: ConversationFile,
    counter,
    context_window: int,
    max_tokens: Optional[int],
    prior_tokens: Optional[int],
):
    from ctxwindow.context.controller import BudgetController
    from ctxwindow.core.config import WindowConfig
    from ctxwindow.metrics.hooks import LoggingHook, SpanHook

    controller = BudgetController(counter, config=WindowConfig.from_env(), hooks=[LoggingHook(), SpanHook()])

    if prior_tokens is None:
        # Everything but the newest message
        summary = await controller.estimator.estimate_total(conversation.messages[:-1])
        prior_tokens = summary.total

    return await controller.reduce(
        conversation.messages,
        prior_tokens,
        context_window,
        max_response_tokens=max_tokens,
        summaries=conversation.summaries,
    )


def reduce_command(args: argparse.Namespace) -> int:
    """Run the budget controller over a conversation file.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    from ctxwindow.models import resolve_window
    from ctxwindow.telemetry.otel import TelemetryConfig, TelemetryManager

    fmt = OutputFormatter(args.format)
    try:
        conversation = load_conversation_file(args.input)
        if args.summaries:
            conversation.summaries.update(load_summaries_file(args.summaries))
        context_window, max_tokens = resolve_window(args.model, args.context_window, args.max_tokens)
        counter = _build_counter(args)
    except (OSError, ValueError, ImportError, ContextWindowError) as e:
        fmt.print_error(str(e))
        return 1

    prior_tokens = args.prior_tokens if args.prior_tokens is not None else conversation.prior_tokens

    telemetry = None
    telemetry_config = TelemetryConfig()
    if telemetry_config.enabled:
        telemetry = TelemetryManager(telemetry_config)
        telemetry.init()

    try:
        result = asyncio.run(_run_reduce(conversation, counter, context_window, max_tokens, prior_tokens))
    except ContextWindowError as e:
        fmt.print_error(str(e))
        return 1
    finally:
        if telemetry:
            telemetry.shutdown()

    if args.output:
        write_conversation_file(args.output, result.messages)

    def table() -> None:
        fmt.print_key_values(
            "Context Reduction",
            {
                "Path": result.path.value,
                "Messages": f"{result.original_count} -> {len(result.messages)}",
                "Context window": result.budget.context_window,
                "Reserved for response": result.budget.reserved_tokens,
                "Allowed tokens": result.budget.allowed_tokens,
                "Last message tokens": result.last_message_tokens,
                "Effective tokens": result.effective_tokens,
                "Tokens after summarization": result.summarized_tokens,
                "Summarized ids": result.summarized_ids,
                "Estimation failures": result.estimation_failures,
                "States": [s.value for s in result.transitions],
            },
        )
        if args.output:
            fmt.console.print(f"Wrote {len(result.messages)} messages to {args.output}")

    fmt.output(result.to_dict(), table)
    return 0


def budget_command(args: argparse.Namespace) -> int:
    """Show the token budget for a model or context window.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    from ctxwindow.context.budget import compute_budget
    from ctxwindow.core.config import WindowConfig
    from ctxwindow.models import resolve_window

    fmt = OutputFormatter(args.format)
    try:
        context_window, max_tokens = resolve_window(args.model, args.context_window, args.max_tokens)
        budget = compute_budget(context_window, max_tokens, WindowConfig.from_env())
    except (ValueError, ContextWindowError) as e:
        fmt.print_error(str(e))
        return 1

    fmt.output(
        budget.to_dict(),
        lambda: fmt.print_key_values(
            "Token Budget",
            {
                "Context window": budget.context_window,
                "Reserved for response": budget.reserved_tokens,
                "Safety buffer": budget.buffer_tokens,
                "Allowed tokens": budget.allowed_tokens,
            },
        ),
    )
    return 0


def scan_command(args: argparse.Namespace) -> int:
    """List tagged-content markers in a conversation file.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    from ctxwindow.context.summarizer import scan_tagged_content

    fmt = OutputFormatter(args.format)
    try:
        conversation = load_conversation_file(args.input)
        if args.summaries:
            conversation.summaries.update(load_summaries_file(args.summaries))
    except (OSError, ValueError, ContextWindowError) as e:
        fmt.print_error(str(e))
        return 1

    markers: list[dict[str, Any]] = []
    for index, message in enumerate(conversation.messages):
        for block in message.content_blocks():
            if not isinstance(block, TextBlock):
                continue
            for span in scan_tagged_content(block.text):
                markers.append(
                    {
                        "message_index": index,
                        "role": message.role.value,
                        "id": span.id,
                        "body_chars": len(span.body),
                        "has_summary": bool(conversation.summaries.get(span.id)),
                    }
                )

    fmt.output(
        {"count": len(markers), "markers": markers},
        lambda: fmt.print_table(
            f"Tagged content ({len(markers)} markers)",
            ["Message", "Role", "ID", "Body chars", "Summary"],
            [
                (m["message_index"], m["role"], m["id"], f"{m['body_chars']:,}", "yes" if m["has_summary"] else "no")
                for m in markers
            ],
        ),
    )
    return 0


def truncate_command(args: argparse.Namespace) -> int:
    """Apply parity-preserving truncation to a conversation file.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    from ctxwindow.context.truncation import truncate_conversation

    fmt = OutputFormatter(args.format)
    try:
        conversation = load_conversation_file(args.input)
        truncated = truncate_conversation(conversation.messages, args.fraction)
    except (OSError, ValueError, ContextWindowError) as e:
        fmt.print_error(str(e))
        return 1

    if args.output:
        write_conversation_file(args.output, truncated)

    data = {
        "fraction": args.fraction,
        "original_count": len(conversation.messages),
        "final_count": len(truncated),
        "removed_count": len(conversation.messages) - len(truncated),
    }
    fmt.output(
        data,
        lambda: fmt.print_key_values(
            "Truncation",
            {
                "Fraction": args.fraction,
                "Messages": f"{data['original_count']} -> {data['final_count']}",
                "Removed": data["removed_count"],
            },
        ),
    )
    return 0


def list_models_command(args: argparse.Namespace) -> int:
    """List known models and their context limits.

    Args:
        args: Command line arguments.

    Returns:
        Exit code.
    """
    from ctxwindow.models import SUPPORTED_MODELS

    fmt = OutputFormatter(args.format)
    models = [
        {
            "model": name,
            "provider": config.provider,
            "context_window": config.context_window,
            "output_token_limit": config.output_token_limit,
        }
        for name, config in sorted(SUPPORTED_MODELS.items(), key=lambda item: (item[1].provider, item[0]))
    ]
    fmt.output(
        models,
        lambda: fmt.print_table(
            "Supported models",
            ["Provider", "Model", "Context window", "Max output"],
            [
                (m["provider"], m["model"], f"{m['context_window']:,}", f"{m['output_token_limit']:,}")
                for m in models
            ],
        ),
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv).

    Returns:
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="ctxwindow",
        description="Keep LLM conversations inside the model's context window",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # reduce command
    reduce_parser = subparsers.add_parser(
        "reduce",
        help="Run the budget controller over a conversation file",
    )
    add_input_arg(reduce_parser)
    add_window_args(reduce_parser)
    add_counter_arg(reduce_parser)
    reduce_parser.add_argument(
        "--prior-tokens",
        "-p",
        type=int,
        default=None,
        help="Tokens used by all but the last message (default: from file, else measured)",
    )
    reduce_parser.add_argument(
        "--summaries",
        type=str,
        default=None,
        help="JSON file mapping content ids to summaries",
    )
    reduce_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write the resulting conversation to this file",
    )
    add_format_arg(reduce_parser)
    add_verbose_arg(reduce_parser)

    # budget command
    budget_parser = subparsers.add_parser(
        "budget",
        help="Show the token budget for a model or context window",
    )
    add_window_args(budget_parser)
    add_format_arg(budget_parser)

    # scan command
    scan_parser = subparsers.add_parser(
        "scan",
        help="List tagged-content markers in a conversation file",
    )
    add_input_arg(scan_parser)
    scan_parser.add_argument(
        "--summaries",
        type=str,
        default=None,
        help="JSON file mapping content ids to summaries",
    )
    add_format_arg(scan_parser)

    # truncate command
    truncate_parser = subparsers.add_parser(
        "truncate",
        help="Apply parity-preserving truncation to a conversation file",
    )
    add_input_arg(truncate_parser)
    truncate_parser.add_argument(
        "--fraction",
        type=float,
        default=0.5,
        help="Fraction of messages after the first to remove (default: 0.5)",
    )
    truncate_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write the truncated conversation to this file",
    )
    add_format_arg(truncate_parser)

    # list-models command
    models_parser = subparsers.add_parser(
        "list-models",
        help="List known models and their context limits",
    )
    add_format_arg(models_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(getattr(args, "verbose", False))

    if args.command == "reduce":
        return reduce_command(args)
    elif args.command == "budget":
        return budget_command(args)
    elif args.command == "scan":
        return scan_command(args)
    elif args.command == "truncate":
        return truncate_command(args)
    elif args.command == "list-models":
        return list_models_command(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
