import logging
from typing import Any, Optional, Sequence

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from metquery.domain.interfaces.user_interface import UserInterface
from metquery.domain.models.common import JSONDocument
from metquery.domain.models.payment import CallResult, RunSummary

logger = logging.getLogger(__name__)


def format_usdc(amount: Any) -> str:
    return f"${amount:.4f} USDC"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None):
        """Initializes the rich consoles: reports on stdout, diagnostics on stderr."""
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def display_heading(self, title: str, **kwargs: Any) -> None:
        self.console.print("")
        self.console.rule(f"[bold cyan]{title}[/bold cyan]", style=kwargs.get("style", "cyan"))

    def display_output(self, output: str, **kwargs: Any) -> None:
        # Report lines contain user data (wallets, coin names) that must not be read as markup.
        self.console.print(output, markup=False, highlight=False)

    def display_json(self, data: JSONDocument, title: Optional[str] = None) -> None:
        """Pretty prints a payload; non-JSON values (Decimals, dates) are stringified."""
        if title:
            self.console.print(f"\n[dim]--- {title} ---[/dim]")
        self.console.print_json(data=data, default=str)

    def display_table(self, columns: Sequence[str], rows: Sequence[Sequence[Any]], title: Optional[str] = None) -> None:
        table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self.console.print(table)

    def display_payment(self, result: CallResult) -> None:
        """Displays cost and settlement of one call, noting when a fallback endpoint served it."""
        if result.used_fallback:
            self.console.print(f"[yellow]Served by fallback:[/yellow] {result.label}")
        if result.endpoint is not None:
            self.console.print(f"Endpoint used: {result.endpoint}", markup=False)
        self.console.print(f"Paid: {format_usdc(result.price)}")
        self.console.print(f"Settlement TX: {result.settlement_tx or 'N/A'}")

    def display_summary(self, summary: RunSummary, title: str = "COST SUMMARY") -> None:
        table = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        table.add_column("Metric", style="bold")
        table.add_column("Value")
        table.add_row("Total USDC spent", format_usdc(summary.total_cost))
        table.add_row("API calls made", str(summary.call_count))
        self.console.print(Panel(table, title=f"[bold cyan]{title}[/bold cyan]", border_style="cyan", box=ROUNDED))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message on standard error in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.err_console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)
