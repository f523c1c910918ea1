"""Shared argument builders for CLI commands."""

import argparse


def add_format_arg(parser: argparse.ArgumentParser) -> None:
    """Add --format argument for output format selection."""
    parser.add_argument(
        "--format",
        "-f",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)",
    )


def add_verbose_arg(parser: argparse.ArgumentParser) -> None:
    """Add --verbose argument for verbose output."""
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output (debug logging)",
    )


def add_input_arg(parser: argparse.ArgumentParser) -> None:
    """Add the positional conversation file argument."""
    parser.add_argument(
        "input",
        type=str,
        help="Conversation JSON file (a list of messages, or an object with 'messages')",
    )


def add_window_args(parser: argparse.ArgumentParser) -> None:
    """Add --model / --context-window / --max-tokens."""
    parser.add_argument(
        "--model",
        "-m",
        type=str,
        default=None,
        help="Model name used to look up context limits (e.g., gpt-4o, anthropic/claude-sonnet-4-5-20250929)",
    )
    parser.add_argument(
        "--context-window",
        "-w",
        type=int,
        default=None,
        help="Context window in tokens (overrides the model's)",
    )
    parser.add_argument(
        "--max-tokens",
        type=int,
        default=None,
        help="Tokens reserved for the response (default: model output limit, or 20%% of the window)",
    )


def add_counter_arg(parser: argparse.ArgumentParser) -> None:
    """Add --counter argument for the token counting backend."""
    parser.add_argument(
        "--counter",
        "-c",
        choices=["heuristic", "tiktoken", "anthropic"],
        default=None,
        help="Token counter backend (default: best fit for --model, else heuristic)",
    )
