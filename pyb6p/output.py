"""Console output formatting for pyb6p."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Prints messages, tables and JSON for the command line.

    Errors and warnings go to stderr so that ``--json`` output on stdout
    stays machine readable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def print(self, message: str = "") -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message, highlight=False)

    def info(self, message: str) -> None:
        self.print(message)

    def success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(
                f"[yellow]Warning:[/yellow] {message}", highlight=False
            )

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}", highlight=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def output_table(
        self,
        rows: list[dict],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table, or as a JSON list in JSON mode."""
        if self.json_output:
            self.output_json(rows)
            return
        if self.quiet:
            return
        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, Any]]) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(f"\n[bold]{title}[/bold]")
        for key, value in items:
            self.console.print(f"  {key}: {value}", highlight=False)
