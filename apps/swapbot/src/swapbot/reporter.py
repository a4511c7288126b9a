"""Console output for grid summaries and trade history.

Uses rich library for color-coded terminal tables.
"""

from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from swapcore.config import GridConfig
from swapcore.events import Direction
from swapcore.records import TradeRecord
from swapcore.recompute import Recomputation

from swapbot.store import PortfolioSummary

console = Console()


def _format_amount(val: Optional[float], places: int = 6) -> str:
    """Format a number for display, '-' when unknown."""
    if val is None:
        return "-"
    return f"{val:.{places}f}".rstrip("0").rstrip(".") or "0"


def _profit_text(val: float) -> Text:
    if val > 0:
        return Text(_format_amount(val), style="green")
    if val < 0:
        return Text(_format_amount(val), style="red")
    return Text("0", style="dim")


def print_summary(summary: PortfolioSummary, out: Optional[Console] = None) -> None:
    """Print every grid and the portfolio totals."""
    out = out or console
    out.print()
    out.rule("[bold]Grid Summary[/bold]")

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Grid", style="white", no_wrap=True)
    table.add_column("Pair")
    table.add_column("Status", justify="center")
    table.add_column("Range", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Invested", justify="right")
    table.add_column("Buys", justify="right")
    table.add_column("Sells", justify="right")
    table.add_column("Profit", justify="right")
    table.add_column("Value", justify="right")

    for g in summary.grids:
        level = "-" if g.current_level is None else f"{g.current_level}/{g.level_count}"
        status_style = "bold green" if g.status == "active" else "yellow"
        table.add_row(
            g.grid_id[:8],
            g.pair,
            Text(g.status, style=status_style),
            f"{_format_amount(g.lower_limit)} - {_format_amount(g.upper_limit)}",
            level,
            _format_amount(g.current_price),
            _format_amount(g.quantity_invested, 2),
            str(g.total_buys),
            str(g.total_sells),
            _profit_text(g.profit),
            _format_amount(g.current_value, 2),
        )

    out.print(table)
    out.print(
        f"  Grids: {len(summary.grids)} ({summary.active_grids} active)  |  "
        f"Invested: {_format_amount(summary.total_invested, 2)}  |  "
        f"Buys: {summary.total_buys}  |  Sells: {summary.total_sells}  |  "
        f"Profit: {_format_amount(summary.total_profit)} ({summary.profit_percentage:.2f}%)  |  "
        f"Value: {_format_amount(summary.total_value, 2)}"
    )
    out.print()


def print_trades(trades: list[TradeRecord], out: Optional[Console] = None) -> None:
    """Print trades newest first."""
    out = out or console
    if not trades:
        out.print("[dim]No trades recorded[/dim]")
        return

    table = Table(title="Trades", show_header=True, header_style="bold cyan")
    table.add_column("Executed", no_wrap=True)
    table.add_column("Grid", no_wrap=True)
    table.add_column("Side", justify="center")
    table.add_column("Level", justify="right")
    table.add_column("Level price", justify="right")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Profit", justify="right")
    table.add_column("Transaction", overflow="fold")

    for t in trades:
        side_style = "bold green" if t.side == Direction.BUY else "bold red"
        table.add_row(
            t.executed_at.strftime("%Y-%m-%d %H:%M:%S"),
            t.grid_id[:8],
            Text(str(t.side), style=side_style),
            str(t.grid_level),
            _format_amount(t.level_price),
            f"{_format_amount(t.input_amount)} {t.input_token}",
            f"{_format_amount(t.output_amount)} {t.output_token}",
            "-" if t.profit is None else _profit_text(t.profit),
            t.transaction_ref or "-",
        )

    out.print(table)


def print_grid(config: GridConfig, current_level: Optional[int] = None, out: Optional[Console] = None) -> None:
    """Print a grid's parameters and level table, marking the current level."""
    out = out or console
    table = Table(
        title=f"{config.pair} grid {config.grid_id}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Level", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("", justify="left")

    for level in reversed(range(config.level_count + 1)):
        marker = Text("<- current", style="bold yellow") if level == current_level else ""
        table.add_row(str(level), _format_amount(config.levels[level]), marker)

    out.print(table)
    out.print(
        f"  Invested: {_format_amount(config.quantity_invested, 2)} {config.target_token_symbol}  |  "
        f"Per level: {_format_amount(config.quantity_per_level)} {config.target_token_symbol}"
    )


def print_recomputation(result: Recomputation, out: Optional[Console] = None) -> None:
    """Print the outcome of a grid edit."""
    print_grid(result.config, result.current_level, out=out)
