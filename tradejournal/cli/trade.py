"""Trade commands for TradeJournal CLI.

Handles manual trade entry and the trade listing.
"""

from datetime import datetime
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

console = Console()

DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M"]

# Exit codes: 1 for storage failures, 2 for rejected duplicates
EXIT_STORAGE_ERROR = 1
EXIT_DUPLICATE = 2


def _get_config():
    """Lazily load configuration."""
    from tradejournal.config import load_config
    from tradejournal.errors import ConfigError

    try:
        return load_config()
    except ConfigError as e:
        console.print(Panel(
            f"[red]{e}[/red]",
            title="[bold red]Configuration Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(1)


def _get_data_store(config):
    """Get the data store instance."""
    from tradejournal.db.store import DataStore

    return DataStore(config.db_path)


def _localize(value: Optional[datetime], config) -> Optional[datetime]:
    """Attach the reporting timezone to a naive command-line timestamp."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=config.tz)


def _format_pnl(value: Optional[float]) -> str:
    if value is None:
        return "-"
    color = "green" if value >= 0 else "red"
    sign = "+" if value >= 0 else ""
    return f"[{color}]{sign}${value:,.2f}[/{color}]"


def _refresh_warning(error) -> str:
    return (
        f"[yellow]Calendar refresh failed ({escape(str(error))}); "
        "run `tradejournal reconcile --fix` to update it.[/yellow]"
    )


def _print_conflict(conflict) -> None:
    """Show a duplicate rejection."""
    matched = conflict.matched_trade
    lines = [
        f"[bold]{conflict.tier.value}[/bold] duplicate "
        f"(confidence {conflict.confidence:.1f}): {conflict.reason}",
    ]
    if matched is not None:
        lines.append(
            f"\nExisting trade #{matched.id}: {matched.side} {matched.quantity:g} "
            f"{matched.symbol} @ {matched.entry_price:.2f} "
            f"({matched.entry_time.strftime('%Y-%m-%d %H:%M:%S %Z')}, {matched.source_tag})"
        )
    lines.append("\n[dim]Use --force to record it anyway.[/dim]")
    console.print(Panel(
        "\n".join(lines),
        title="[bold yellow]Duplicate Trade[/bold yellow]",
        border_style="yellow",
    ))


@click.command()
@click.option("--symbol", required=True, help="Instrument symbol, e.g. MNQU5.")
@click.option(
    "--side",
    type=click.Choice(["LONG", "SHORT"], case_sensitive=False),
    required=True,
    help="Position side.",
)
@click.option("--qty", "quantity", type=float, required=True, help="Position size.")
@click.option(
    "--entry-time",
    type=click.DateTime(formats=DATETIME_FORMATS),
    required=True,
    help="Entry time (reporting timezone unless an offset is given).",
)
@click.option("--entry-price", type=float, required=True, help="Entry price.")
@click.option("--exit-time", type=click.DateTime(formats=DATETIME_FORMATS), default=None, help="Exit time.")
@click.option("--exit-price", type=float, default=None, help="Exit price.")
@click.option("--fees", type=float, default=0.0, help="Total fees and commissions.")
@click.option("--pnl", "net_pnl", type=float, default=None, help="Net P&L, if known.")
@click.option("--tag", "source_tag", default="manual", help="Provenance tag.")
@click.option("--owner", default=None, help="Journal account (default from config).")
@click.option("--force", is_flag=True, default=False, help="Record even if it is a duplicate.")
def add(
    symbol: str,
    side: str,
    quantity: float,
    entry_time: datetime,
    entry_price: float,
    exit_time: Optional[datetime],
    exit_price: Optional[float],
    fees: float,
    net_pnl: Optional[float],
    source_tag: str,
    owner: Optional[str],
    force: bool,
) -> None:
    """Record a trade manually.

    The trade is checked against the journal first. Exact and
    near-certain duplicates are rejected unless --force is given;
    probable duplicates are recorded with a warning.

    \b
    Examples:
      tradejournal add --symbol MNQU5 --side LONG --qty 1 \\
          --entry-time 2025-07-18T09:31:05 --entry-price 23219.25
      tradejournal add ... --force
    """
    from pydantic import ValidationError

    from tradejournal.errors import StorageError
    from tradejournal.integrity import AggregateReconciler, IngestionGate, trading_day
    from tradejournal.models import DuplicateConflict, TradeInput

    config = _get_config()
    owner = owner or config.owner

    try:
        trade_input = TradeInput(
            symbol=symbol,
            side=side,
            quantity=quantity,
            entry_time=_localize(entry_time, config),
            entry_price=entry_price,
            exit_time=_localize(exit_time, config),
            exit_price=exit_price,
            fees=fees,
            multiplier=config.multiplier_for(symbol),
            net_pnl=net_pnl,
            source_tag=source_tag,
        )
    except ValidationError as e:
        console.print(f"[red]Invalid trade: {e}[/red]")
        raise SystemExit(1)

    try:
        store = _get_data_store(config)
        gate = IngestionGate(store, config.tz)
        result = gate.accept(owner, trade_input, force_create=force)
    except StorageError as e:
        console.print(Panel(
            f"[red]Failed to record trade:[/red]\n\n{e}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(EXIT_STORAGE_ERROR)

    if isinstance(result, DuplicateConflict):
        _print_conflict(result)
        raise SystemExit(EXIT_DUPLICATE)

    trade = result.trade

    # The trade is committed; a failed refresh only leaves the calendar stale
    refresh_error = None
    try:
        AggregateReconciler(store, config.tz).refresh_day(
            owner, trading_day(trade.entry_time, config.tz)
        )
    except StorageError as e:
        refresh_error = e

    text = (
        f"[bold]Trade #{trade.id} recorded[/bold]\n\n"
        f"{trade.side} {trade.quantity:g} {trade.symbol} @ {trade.entry_price:.2f}\n"
        f"Status: {trade.status}   Net P&L: {_format_pnl(trade.net_pnl)}"
    )
    if trade.forced:
        text += f"\n\n[yellow]Forced duplicate of trade #{trade.duplicate_of}[/yellow]"
    if result.warning is not None:
        matched = result.warning.matched_trade
        text += (
            f"\n\n[yellow]Possible duplicate of trade #{matched.id if matched else '?'}: "
            f"{result.warning.reason}[/yellow]"
        )
    if refresh_error is not None:
        text += f"\n\n{_refresh_warning(refresh_error)}"

    console.print(Panel(
        text,
        title="[bold green]Trade Recorded[/bold green]",
        border_style="green",
    ))


@click.command()
@click.option(
    "--date",
    "trade_date",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Only show trades of this day (YYYY-MM-DD).",
)
@click.option("--owner", default=None, help="Journal account (default from config).")
def trades(trade_date: Optional[datetime], owner: Optional[str]) -> None:
    """List recorded trades.

    \b
    Examples:
      tradejournal trades
      tradejournal trades --date 2025-07-18
    """
    from tradejournal.errors import StorageError
    from tradejournal.integrity import day_bounds

    config = _get_config()
    owner = owner or config.owner

    try:
        store = _get_data_store(config)
        if trade_date is not None:
            start, end = day_bounds(trade_date.date(), config.tz)
            rows = store.query_trades_by_owner_day(owner, start, end)
        else:
            rows = store.get_trades(owner)
    except StorageError as e:
        console.print(f"[red]Failed to read trades: {e}[/red]")
        raise SystemExit(EXIT_STORAGE_ERROR)

    if not rows:
        console.print(Panel(
            "[dim]No trades found[/dim]",
            title="[bold]Trades[/bold]",
            border_style="dim",
        ))
        return

    table = Table(
        title=f"Trades ({owner})",
        show_header=True,
        header_style="bold cyan",
    )

    table.add_column("#", justify="right", style="dim")
    table.add_column("Entry", style="dim")
    table.add_column("Symbol", style="bold")
    table.add_column("Side", justify="center")
    table.add_column("Qty", justify="right")
    table.add_column("Entry Px", justify="right")
    table.add_column("Exit Px", justify="right")
    table.add_column("Net P&L", justify="right")
    table.add_column("Source", style="dim")

    total_pnl = 0.0
    for trade in rows:
        side_color = "green" if trade.side == "LONG" else "red"
        source = trade.source_tag
        if trade.forced:
            source += " [yellow](forced)[/yellow]"
        table.add_row(
            str(trade.id),
            trade.entry_time.astimezone(config.tz).strftime("%Y-%m-%d %H:%M:%S"),
            trade.symbol,
            f"[{side_color}]{trade.side}[/{side_color}]",
            f"{trade.quantity:g}",
            f"{trade.entry_price:,.2f}",
            f"{trade.exit_price:,.2f}" if trade.exit_price is not None else "-",
            _format_pnl(trade.net_pnl),
            source,
        )
        total_pnl += trade.net_pnl or 0.0

    console.print(table)
    console.print(f"\n[bold]Total Trades:[/bold] {len(rows)}")
    console.print(f"[bold]Total P&L:[/bold] {_format_pnl(total_pnl)}")
