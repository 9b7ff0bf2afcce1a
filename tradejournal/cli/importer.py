"""Import command for TradeJournal CLI.

Imports broker CSV exports through the ingestion gate, so overlapping
exports can be imported repeatedly without duplicating trades.
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tradejournal.cli.trade import (
    EXIT_DUPLICATE,
    EXIT_STORAGE_ERROR,
    _get_config,
    _get_data_store,
    _refresh_warning,
)

console = Console()


def _duplicate_table(title: str, rows) -> Table:
    table = Table(title=title, show_header=True, header_style="bold yellow")
    table.add_column("Row", justify="right", style="dim")
    table.add_column("Trade")
    table.add_column("Tier", justify="center")
    table.add_column("Matches", justify="right")
    table.add_column("Reason", max_width=50)

    for row in rows:
        t = row.trade_input
        matched = row.match.matched_trade if row.match else None
        table.add_row(
            str(row.index + 1),
            f"{t.side} {t.quantity:g} {t.symbol} @ {t.entry_price:.2f} "
            f"{t.entry_time.strftime('%Y-%m-%d %H:%M')}",
            row.match.tier.value if row.match else "-",
            f"#{matched.id}" if matched is not None else "-",
            row.match.reason if row.match else "",
        )
    return table


@click.command(name="import")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--on-duplicate",
    type=click.Choice(["prompt", "skip", "force"]),
    default="prompt",
    help="prompt: import nothing if duplicates exist; skip: import the rest; force: import all.",
)
@click.option("--validate-only", is_flag=True, default=False, help="Classify rows without importing.")
@click.option("--tag", "source_tag", default=None, help="Provenance tag (default csv:<filename>).")
@click.option("--owner", default=None, help="Journal account (default from config).")
def import_trades(
    csv_path: Path,
    on_duplicate: str,
    validate_only: bool,
    source_tag: Optional[str],
    owner: Optional[str],
) -> None:
    """Import trades from a broker CSV export.

    Every row is checked against the journal and against earlier rows
    of the same file. Calendar statistics of the affected days are
    refreshed afterwards.

    \b
    Examples:
      tradejournal import july.csv --validate-only
      tradejournal import july.csv --on-duplicate skip
    """
    from tradejournal.errors import StorageError
    from tradejournal.importers import read_trades_csv
    from tradejournal.integrity import AggregateReconciler, IngestionGate, trading_day

    config = _get_config()
    owner = owner or config.owner

    try:
        parsed = read_trades_csv(csv_path, config, source_tag=source_tag)
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read {csv_path}: {e}[/red]")
        raise SystemExit(1)

    for error in parsed.errors:
        console.print(f"[yellow]Line {error.line} ignored:[/yellow] {error.message}")

    if not parsed.trades:
        console.print(Panel(
            "[dim]No valid trades in file[/dim]",
            title="[bold]Import[/bold]",
            border_style="dim",
        ))
        return

    try:
        store = _get_data_store(config)
        gate = IngestionGate(store, config.tz)
        report = gate.accept_batch(
            owner,
            parsed.trades,
            on_duplicate=on_duplicate,
            validate_only=validate_only,
        )
    except StorageError as e:
        console.print(Panel(
            f"[red]Import failed:[/red]\n\n{e}",
            title="[bold red]Error[/bold red]",
            border_style="red",
        ))
        raise SystemExit(EXIT_STORAGE_ERROR)

    # Imported rows are committed; a failed refresh only leaves the calendar stale
    refresh_error = None
    if not validate_only and report.imported:
        reconciler = AggregateReconciler(store, config.tz)
        days = sorted({trading_day(r.trade.entry_time, config.tz) for r in report.imported})
        try:
            for day in days:
                reconciler.refresh_day(owner, day)
        except StorageError as e:
            refresh_error = e

    if report.conflicts:
        console.print(_duplicate_table("Duplicates", report.conflicts))
    if report.warnings:
        console.print(_duplicate_table("Possible Duplicates", report.warnings))

    new_rows = report.total - len(report.conflicts)
    if validate_only:
        summary = (
            f"[bold]Validation[/bold] ({csv_path.name})\n\n"
            f"Rows:            {report.total}\n"
            f"Importable:      {new_rows}\n"
            f"Duplicates:      {len(report.conflicts)}\n"
            f"Possible dupes:  {len(report.warnings)}"
        )
    elif report.needs_resolution and not report.imported:
        summary = (
            f"[bold]Nothing imported[/bold] ({csv_path.name})\n\n"
            f"{len(report.conflicts)} of {report.total} rows duplicate existing trades.\n\n"
            "[dim]Re-run with --on-duplicate skip or --on-duplicate force.[/dim]"
        )
    else:
        summary = (
            f"[bold]Import Complete[/bold] ({csv_path.name})\n\n"
            f"Imported: {len(report.imported)} trades\n"
            f"Skipped:  {len(report.skipped)} (already in journal)\n"
            f"Flagged:  {len(report.warnings)} possible duplicates\n"
            f"Errors:   {len(report.errors)}"
        )
        for row in report.errors:
            summary += f"\n[red]Row {row.index + 1}: {row.error}[/red]"
        if refresh_error is not None:
            summary += f"\n\n{_refresh_warning(refresh_error)}"

    console.print(Panel(
        summary,
        title="[bold cyan]Trade Import[/bold cyan]",
        border_style="yellow" if report.needs_resolution else "cyan",
    ))

    if report.needs_resolution and not validate_only:
        raise SystemExit(EXIT_DUPLICATE)
