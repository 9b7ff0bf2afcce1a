"""Calendar commands for TradeJournal CLI.

Handles the daily diary, the per-day view and calendar reconciliation.
"""

from datetime import datetime
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.trade import EXIT_STORAGE_ERROR, _format_pnl, _get_config, _get_data_store

console = Console()

DATE_TYPE = click.DateTime(formats=["%Y-%m-%d"])


@click.command()
@click.argument("day", type=DATE_TYPE)
@click.option("--owner", default=None, help="Journal account (default from config).")
def day(day: datetime, owner: Optional[str]) -> None:
    """Show the calendar entry and trades of a day.

    \b
    Examples:
      tradejournal day 2025-07-18
    """
    from tradejournal.errors import StorageError
    from tradejournal.integrity import AggregateReconciler, day_bounds

    config = _get_config()
    owner = owner or config.owner
    target = day.date()

    try:
        store = _get_data_store(config)
        entry = store.get_aggregate(owner, target)
        start, end = day_bounds(target, config.tz)
        rows = store.query_trades_by_owner_day(owner, start, end)
        actual = AggregateReconciler(store, config.tz).actual_stats(owner, target)
    except StorageError as e:
        console.print(f"[red]Failed to read {target}: {e}[/red]")
        raise SystemExit(EXIT_STORAGE_ERROR)

    if entry is None and not rows:
        console.print(Panel(
            f"[dim]Nothing recorded on {target}[/dim]",
            title=f"[bold]{target}[/bold]",
            border_style="dim",
        ))
        return

    lines = []
    if entry is not None:
        win_rate = f"{entry.win_rate:.1f}%" if entry.win_rate is not None else "-"
        lines.append(
            f"[bold]Calendar:[/bold] {entry.trades_count} trades, "
            f"P&L {_format_pnl(entry.daily_pnl)}, "
            f"W/L {entry.winning_trades}/{entry.losing_trades}, win rate {win_rate}"
        )
        if entry.mood is not None:
            lines.append(f"[bold]Mood:[/bold] {entry.mood}/5")
        if entry.notes:
            lines.append(f"[bold]Notes:[/bold] {entry.notes}")
        if entry.images:
            lines.append(f"[bold]Images:[/bold] {', '.join(entry.images)}")
    lines.append(
        f"[bold]Ledger:[/bold]   {actual.trades_count} trades, P&L {_format_pnl(actual.daily_pnl)}"
    )

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold cyan]{target}[/bold cyan]",
        border_style="cyan",
    ))

    if rows:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Time", style="dim")
        table.add_column("Symbol", style="bold")
        table.add_column("Side", justify="center")
        table.add_column("Qty", justify="right")
        table.add_column("Net P&L", justify="right")
        for trade in rows:
            table.add_row(
                str(trade.id),
                trade.entry_time.astimezone(config.tz).strftime("%H:%M:%S"),
                trade.symbol,
                trade.side,
                f"{trade.quantity:g}",
                _format_pnl(trade.net_pnl),
            )
        console.print(table)


@click.command()
@click.argument("day", type=DATE_TYPE)
@click.option("--notes", default=None, help="Diary notes (empty string clears them).")
@click.option("--mood", type=click.IntRange(1, 5), default=None, help="Mood rating 1-5.")
@click.option("--image", "images", multiple=True, help="Attach an image reference (repeatable).")
@click.option("--clear-images", is_flag=True, default=False, help="Remove attached images.")
@click.option("--clear-mood", is_flag=True, default=False, help="Remove the mood rating.")
@click.option("--owner", default=None, help="Journal account (default from config).")
def diary(
    day: datetime,
    notes: Optional[str],
    mood: Optional[int],
    images: tuple[str, ...],
    clear_images: bool,
    clear_mood: bool,
    owner: Optional[str],
) -> None:
    """Save diary content for a day.

    The day's trade statistics are refreshed from the journal at the
    same time.

    \b
    Examples:
      tradejournal diary 2025-07-18 --notes "great day" --mood 4
    """
    from tradejournal.errors import StorageError
    from tradejournal.integrity import AggregateReconciler

    config = _get_config()
    owner = owner or config.owner

    image_list = None
    if clear_images:
        image_list = []
    elif images:
        image_list = list(images)

    try:
        store = _get_data_store(config)
        entry = AggregateReconciler(store, config.tz).save_diary(
            owner, day.date(), notes=notes, mood=mood, images=image_list,
            clear_mood=clear_mood,
        )
    except StorageError as e:
        console.print(f"[red]Failed to save diary: {e}[/red]")
        raise SystemExit(EXIT_STORAGE_ERROR)

    console.print(Panel(
        f"Saved diary for [bold]{entry.day}[/bold] "
        f"({entry.trades_count} trades, P&L {_format_pnl(entry.daily_pnl)})",
        title="[bold green]Diary[/bold green]",
        border_style="green",
    ))


@click.command()
@click.option("--date", "single_day", type=DATE_TYPE, default=None, help="Reconcile one day.")
@click.option("--from", "start", type=DATE_TYPE, default=None, help="First day of a range.")
@click.option("--to", "end", type=DATE_TYPE, default=None, help="Last day of a range.")
@click.option("--fix", is_flag=True, default=False, help="Apply repairs (default is a dry run).")
@click.option("--owner", default=None, help="Journal account (default from config).")
def reconcile(
    single_day: Optional[datetime],
    start: Optional[datetime],
    end: Optional[datetime],
    fix: bool,
    owner: Optional[str],
) -> None:
    """Check calendar statistics against the trade ledger.

    Without --fix only reports what would change. With --fix, entries
    with statistics but no trades are cleared (diary kept) or deleted
    (no diary), and mismatching statistics are recomputed.

    \b
    Examples:
      tradejournal reconcile
      tradejournal reconcile --date 2025-07-18 --fix
      tradejournal reconcile --from 2025-07-01 --to 2025-07-31 --fix
    """
    from tradejournal.errors import ReconciliationInProgress, StorageError
    from tradejournal.integrity import AggregateReconciler

    config = _get_config()
    owner = owner or config.owner

    try:
        store = _get_data_store(config)
        report = AggregateReconciler(store, config.tz).reconcile(
            owner,
            day=single_day.date() if single_day else None,
            start=start.date() if start else None,
            end=end.date() if end else None,
            dry_run=not fix,
        )
    except ReconciliationInProgress as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise SystemExit(1)
    except ValueError as e:
        raise click.BadParameter(str(e))
    except StorageError as e:
        console.print(Panel(
            f"[red]Reconciliation failed:[/red]\n\n{e}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(EXIT_STORAGE_ERROR)

    if report.issues:
        table = Table(
            title="Calendar Issues",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Date", style="bold")
        table.add_column("Issue")
        table.add_column("Stored", justify="right")
        table.add_column("Actual", justify="right")
        table.add_column("Diary", justify="center")
        table.add_column("Action")

        for issue in report.issues:
            table.add_row(
                issue.day.isoformat(),
                issue.type,
                f"{issue.stored.trades_count} / {_format_pnl(issue.stored.daily_pnl)}",
                f"{issue.actual.trades_count} / {_format_pnl(issue.actual.daily_pnl)}",
                "yes" if issue.has_diary else "-",
                issue.action,
            )
        console.print(table)

    if report.dry_run:
        summary = (
            f"[bold]Dry run[/bold]: {report.issues_found} issues in "
            f"{report.checked} entries\n\n"
            "[dim]Re-run with --fix to apply the repairs.[/dim]"
        )
    else:
        summary = (
            f"[bold]Reconciled {report.checked} entries[/bold]\n\n"
            f"Issues:  {report.issues_found}\n"
            f"Updated: {report.updated}\n"
            f"Deleted: {report.deleted}\n"
            f"Skipped: {report.skipped}"
        )
    for error in report.errors:
        summary += f"\n[red]{error}[/red]"

    console.print(Panel(
        summary,
        title="[bold cyan]Calendar Reconciliation[/bold cyan]",
        border_style="red" if report.errors else "cyan",
    ))

    if report.errors:
        raise SystemExit(EXIT_STORAGE_ERROR)
