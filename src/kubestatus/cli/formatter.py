# src/kubestatus/cli/formatter.py
import sys
from typing import Optional

from rich.console import Console
from rich.markup import escape


class ReportWriter:
    """
    ReportWriter: the only place that touches the terminal.
    Reports and notices go to stdout, errors to stderr.
    """

    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None,
                 color_system: str = "auto"):
        system = None if color_system == "none" else color_system
        self.console = console or Console(file=sys.stdout, color_system=system, highlight=False,
                                          soft_wrap=True)
        self.err_console = err_console or Console(file=sys.stderr, color_system=system, highlight=False,
                                                  soft_wrap=True)

    def write_report(self, markup: str):
        """One object's report, set off by a blank line on either side."""
        self.console.print()
        self.console.print(markup)
        self.console.print()

    def write_notice(self, message: str):
        self.console.print(f"[dim]{escape(message)}[/dim]")

    def write_error(self, error: Exception):
        self.err_console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
