"""Console output helpers for the BackupWarden CLI."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .sync.report import SyncStatus

# Rich style per status, used by tables and summaries
STATUS_STYLES: dict[SyncStatus, str] = {
    SyncStatus.UNKNOWN: "dim",
    SyncStatus.IN_SYNC: "green",
    SyncStatus.OUT_OF_SYNC: "yellow",
    SyncStatus.SYNCING: "cyan",
    SyncStatus.FAILED: "bold red",
    SyncStatus.WARNING: "dark_orange",
    SyncStatus.NOT_YET_BACKED_UP: "blue",
}


class OutputFormatter:
    """Formats CLI output as rich text or JSON.

    In JSON mode only :meth:`output_json` writes to stdout; informational
    messages are suppressed so the output stays machine readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit JSON instead of tables and messages
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def info(self, message: str) -> None:
        if not self._silent():
            self.console.print(message, highlight=False)

    def success(self, message: str) -> None:
        if not self._silent():
            self.console.print(f"[green]{message}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        if not self.json_output:
            self.err_console.print(f"[yellow]{message}[/yellow]", highlight=False)

    def error(self, message: str) -> None:
        self.err_console.print(
            f"[bold red]Error:[/bold red] {message}", highlight=False
        )

    def print(self, message: str = "", markup: bool = True) -> None:
        if not self._silent():
            self.console.print(message, markup=markup, highlight=False)

    def output_json(self, data: Any) -> None:
        sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")

    def status_text(self, status: SyncStatus) -> str:
        style = STATUS_STYLES.get(status, "")
        if not style:
            return status.display_name
        return f"[{style}]{status.display_name}[/{style}]"

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a table, or as JSON in JSON mode.

        Args:
            data: Rows as dictionaries
            columns: Keys to show, in order
            headers: Optional column titles keyed by column
            title: Optional table title
        """
        if self.json_output:
            self.output_json([{c: row.get(c) for c in columns} for row in data])
            return

        headers = headers or {}
        table = Table(title=title, show_lines=False)
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(str(row.get(c, "")) for c in columns))
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self.json_output:
            self.output_json({label: value for label, value in items})
            return
        if self.quiet:
            return

        self.console.print(f"\n[bold]{title}[/bold]")
        self.console.print("─" * max(len(title), 20))
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            self.console.print(f"{label.ljust(width)}  {value}", highlight=False)
