"""Output formatting utilities for CLI commands.

Consolidates json/table output logic to eliminate repeated format checks.
"""

import json
from typing import Any, Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Handles consistent output formatting across CLI commands."""

    def __init__(self, format_type: str = "table", console: Optional[Console] = None):
        """Initialize formatter.

        Args:
            format_type: Output format - 'json' or 'table'.
            console: Rich console for table output.
        """
        self.format_type = format_type
        self.console = console or Console()

    @property
    def is_json(self) -> bool:
        """Check if output should be JSON."""
        return self.format_type == "json"

    def output(self, data: Any, table_fn: callable) -> None:
        """Output data in the configured format.

        Args:
            data: Data to output (used directly for JSON).
            table_fn: Function to call for table output (no args).
        """
        if self.is_json:
            self.print_json(data)
        else:
            table_fn()

    def print_json(self, data: Any) -> None:
        """Print data as JSON."""
        print(json.dumps(data, indent=2, default=str))

    def print_table(
        self,
        title: str,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
    ) -> None:
        """Print rows as a rich table."""
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self.console.print(table)

    def print_key_values(self, title: str, values: dict[str, Any]) -> None:
        """Print a two-column key/value table."""
        table = Table(title=title, show_header=False, box=None, padding=(0, 2))
        table.add_column("key", style="bold")
        table.add_column("value")
        for key, value in values.items():
            table.add_row(key, _format_value(value))
        self.console.print(table)

    def print_error(self, message: str) -> None:
        """Print an error message."""
        if self.is_json:
            self.print_json({"error": message})
        else:
            self.console.print(f"[red]Error:[/red] {message}")


def _format_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:,.0f}" if value.is_integer() else f"{value:,.2f}"
    if isinstance(value, int) and not isinstance(value, bool):
        return f"{value:,}"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "-"
    if value is None:
        return "-"
    return str(value)
