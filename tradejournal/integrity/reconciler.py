"""Calendar aggregate reconciliation.

Calendar entries carry statistics derived from the trade ledger (P&L, trade
count, wins, losses, win rate) next to diary content the user owns (notes,
mood, images). The reconciler recomputes the derived fields from the ledger,
classifies every entry that carries statistics and repairs drift:

* ``orphaned_stats``: no trades that day but statistics stored. With diary
  content only the statistics are cleared; without it the entry is deleted.
* ``inconsistent_data``: trades exist but stored statistics differ. The
  derived fields are overwritten; diary fields are never touched.

Repairs are idempotent: a second pass over an unchanged ledger finds
nothing. Each day is repaired on its own, so a failure or a cancellation
partway through a range leaves earlier days corrected.
"""

import logging
import threading
from datetime import date, timezone, tzinfo
from typing import Literal, Optional

from tradejournal.db.base import LedgerStore
from tradejournal.errors import ReconciliationInProgress, StorageError
from tradejournal.integrity.days import day_bounds
from tradejournal.integrity.pnl import calculate_day_stats
from tradejournal.models import (
    CalendarDayAggregate,
    CalendarIssue,
    DayStats,
    ReconciliationReport,
    ValidationResult,
)

logger = logging.getLogger(__name__)

RepairOutcome = Literal["deleted", "updated", "skipped"]

_owner_locks: dict[str, threading.Lock] = {}
_owner_locks_guard = threading.Lock()


def _owner_lock(owner: str) -> threading.Lock:
    with _owner_locks_guard:
        return _owner_locks.setdefault(owner, threading.Lock())


def _resolve_range(
    day: Optional[date], start: Optional[date], end: Optional[date]
) -> tuple[Optional[date], Optional[date]]:
    if day is not None:
        if start is not None or end is not None:
            raise ValueError("Pass either day or a start/end range, not both")
        return day, day
    if start is not None and end is not None and start > end:
        raise ValueError(f"Range start {start} is after end {end}")
    return start, end


def _cancelled(cancel: Optional[threading.Event]) -> bool:
    return cancel is not None and cancel.is_set()


class AggregateReconciler:
    """Detects and repairs drift between calendar entries and the ledger."""

    # Currency tolerance when comparing stored and recomputed amounts
    PNL_TOLERANCE = 0.01
    WIN_RATE_TOLERANCE = 0.01

    def __init__(self, store: LedgerStore, tz: tzinfo = timezone.utc):
        """Initialize the reconciler.

        Args:
            store: Ledger store holding trades and calendar entries.
            tz: Reporting timezone that defines calendar days.
        """
        self._store = store
        self._tz = tz

    def actual_stats(self, owner: str, day: date) -> DayStats:
        """Recompute a day's derived fields from the ledger."""
        start, end = day_bounds(day, self._tz)
        return calculate_day_stats(self._store.query_trades_by_owner_day(owner, start, end))

    def classify(
        self, aggregate: CalendarDayAggregate, actual: DayStats
    ) -> Optional[CalendarIssue]:
        """Compare a stored entry with recomputed statistics.

        Returns:
            The issue and its planned repair, or None if the entry is valid.
        """
        stored = aggregate.stats
        has_diary = aggregate.has_diary

        if actual.trades_count == 0:
            orphaned = (
                stored.trades_count > 0
                or (stored.daily_pnl or 0.0) != 0
                or stored.winning_trades > 0
                or stored.losing_trades > 0
                or (stored.win_rate or 0.0) != 0
            )
            if not orphaned:
                return None
            return CalendarIssue(
                day=aggregate.day,
                type="orphaned_stats",
                action="clear_stats" if has_diary else "delete",
                message="Calendar entry has trading statistics but no actual trades found",
                stored=stored,
                actual=actual,
                has_diary=has_diary,
            )

        inconsistent = (
            abs((stored.daily_pnl or 0.0) - (actual.daily_pnl or 0.0)) > self.PNL_TOLERANCE
            or stored.trades_count != actual.trades_count
            or stored.winning_trades != actual.winning_trades
            or stored.losing_trades != actual.losing_trades
            or abs((stored.win_rate or 0.0) - (actual.win_rate or 0.0))
            > self.WIN_RATE_TOLERANCE
        )
        if not inconsistent:
            return None
        return CalendarIssue(
            day=aggregate.day,
            type="inconsistent_data",
            action="update_stats",
            message="Calendar statistics don't match actual trade data",
            stored=stored,
            actual=actual,
            has_diary=has_diary,
        )

    def validate(
        self,
        owner: str,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ValidationResult:
        """Classify calendar entries without repairing anything.

        Raises:
            StorageError: If the store cannot be read.
        """
        start, end = _resolve_range(day, start, end)
        issues = []
        checked = 0
        for aggregate in self._store.list_aggregates_with_stats(owner, start, end):
            if _cancelled(cancel):
                return ValidationResult(
                    is_valid=not issues, issues=issues, checked=checked, cancelled=True
                )
            checked += 1
            issue = self.classify(aggregate, self.actual_stats(owner, aggregate.day))
            if issue is not None:
                issues.append(issue)
        return ValidationResult(is_valid=not issues, issues=issues, checked=checked)

    def reconcile(
        self,
        owner: str,
        day: Optional[date] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        dry_run: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> ReconciliationReport:
        """Repair calendar drift for one owner.

        Args:
            owner: Journal account id.
            day: Single day to reconcile.
            start: First day of a range, inclusive.
            end: Last day of a range, inclusive.
            dry_run: Plan the repairs without writing anything.
            cancel: Event checked between days; set it to stop early.

        Returns:
            Issues found and repairs applied. Per-day failures are listed in
            ``errors`` rather than raised.

        Raises:
            ReconciliationInProgress: If another pass for this owner is running.
            StorageError: If the candidate entries cannot be listed.
        """
        start, end = _resolve_range(day, start, end)

        if dry_run:
            return self._run(owner, start, end, dry_run=True, cancel=cancel)

        lock = _owner_lock(owner)
        if not lock.acquire(blocking=False):
            raise ReconciliationInProgress(owner)
        try:
            return self._run(owner, start, end, dry_run=False, cancel=cancel)
        finally:
            lock.release()

    def _run(
        self,
        owner: str,
        start: Optional[date],
        end: Optional[date],
        dry_run: bool,
        cancel: Optional[threading.Event],
    ) -> ReconciliationReport:
        report = ReconciliationReport(owner=owner, dry_run=dry_run)
        candidates = self._store.list_aggregates_with_stats(owner, start, end)
        logger.info(
            "Reconciling %d calendar entries for %s%s",
            len(candidates),
            owner,
            " (dry run)" if dry_run else "",
        )

        for aggregate in candidates:
            if _cancelled(cancel):
                report.cancelled = True
                logger.info("Reconciliation for %s cancelled after %s", owner, report.last_day)
                break

            report.checked += 1
            try:
                issue = self.classify(aggregate, self.actual_stats(owner, aggregate.day))
                if issue is not None:
                    report.issues.append(issue)
                    if not dry_run:
                        outcome = self._repair(owner, issue)
                        if outcome == "deleted":
                            report.deleted += 1
                        elif outcome == "updated":
                            report.updated += 1
                        else:
                            report.skipped += 1
            except StorageError as e:
                logger.warning("Failed to reconcile %s for %s: %s", aggregate.day, owner, e)
                report.errors.append(f"Failed to fix {aggregate.day.isoformat()}: {e}")
            report.last_day = aggregate.day

        return report

    def _repair(self, owner: str, issue: CalendarIssue) -> RepairOutcome:
        """Apply the planned repair for one day.

        A row that changed or vanished since it was classified is skipped;
        the next pass will see its current state.
        """
        if issue.type == "inconsistent_data":
            if not self._store.update_aggregate_stats(owner, issue.day, issue.actual):
                logger.info("Calendar entry %s for %s vanished, skipping", issue.day, owner)
                return "skipped"
            logger.info(
                "Updated %s for %s: %d trades, P&L %.2f",
                issue.day,
                owner,
                issue.actual.trades_count,
                issue.actual.daily_pnl or 0.0,
            )
            return "updated"

        # Diary content is re-read so a note saved since classification is kept
        current = self._store.get_aggregate(owner, issue.day)
        if current is None:
            logger.info("Calendar entry %s for %s vanished, skipping", issue.day, owner)
            return "skipped"

        if current.has_diary:
            if not self._store.update_aggregate_stats(owner, issue.day, DayStats.empty()):
                return "skipped"
            logger.info("Cleared orphaned statistics on %s for %s", issue.day, owner)
            return "updated"

        if not self._store.delete_aggregate(owner, issue.day, only_if_no_diary=True):
            logger.info("Calendar entry %s for %s changed, skipping delete", issue.day, owner)
            return "skipped"
        logger.info("Deleted orphaned calendar entry %s for %s", issue.day, owner)
        return "deleted"

    # ==================== Write-time helpers ====================

    def refresh_day(self, owner: str, day: date) -> Optional[CalendarDayAggregate]:
        """Recompute one day's statistics after trades were written.

        Creates the entry if the day has trades, never touches diary fields
        and removes an entry left with neither trades nor diary content.

        Returns:
            The entry as now stored, or None if there is none.
        """
        actual = self.actual_stats(owner, day)
        existing = self._store.get_aggregate(owner, day)

        if existing is None:
            if actual.trades_count == 0:
                return None
            aggregate = CalendarDayAggregate(owner=owner, day=day, **actual.model_dump())
            self._store.upsert_aggregate(aggregate)
            return aggregate

        if actual.trades_count == 0 and not existing.has_diary:
            if self._store.delete_aggregate(owner, day, only_if_no_diary=True):
                return None

        if not self._store.update_aggregate_stats(owner, day, actual):
            return None
        return existing.with_stats(actual)

    def save_diary(
        self,
        owner: str,
        day: date,
        notes: Optional[str] = None,
        mood: Optional[int] = None,
        images: Optional[list[str]] = None,
        clear_mood: bool = False,
    ) -> CalendarDayAggregate:
        """Save diary content for a day and refresh its statistics.

        Arguments left as None keep their stored value; an empty string or
        list clears it. Mood has no empty value, so ``clear_mood`` removes it.

        Returns:
            The stored entry.
        """
        existing = self._store.get_aggregate(owner, day) or CalendarDayAggregate(
            owner=owner, day=day
        )
        update = {}
        if notes is not None:
            update["notes"] = notes or None
        if clear_mood:
            update["mood"] = None
        elif mood is not None:
            update["mood"] = mood
        if images is not None:
            update["images"] = list(images)

        aggregate = CalendarDayAggregate.model_validate(
            {
                **existing.model_dump(),
                **update,
                **self.actual_stats(owner, day).model_dump(),
            }
        )
        self._store.upsert_aggregate(aggregate)
        return aggregate
