"""Ingestion gate: the single entry point for writing trades to the ledger.

The duplicate resolver is consulted first so a likely duplicate gets an
informative rejection before any write. The store's unique index on
``(owner, fingerprint)`` is what actually guarantees that two concurrent
submissions of the same trade cannot both be stored; losing that race is
reported exactly like an ``EXACT`` duplicate.
"""

import logging
import threading
import time
from datetime import timezone, tzinfo
from typing import Iterable, Literal, Optional, Union

from tradejournal.db.base import LedgerStore
from tradejournal.errors import FingerprintConflict, StorageError
from tradejournal.integrity.fingerprint import fingerprint_trade
from tradejournal.integrity.pnl import calculate_trade_pnl
from tradejournal.integrity.resolver import DuplicateResolver
from tradejournal.models import (
    TIER_CONFIDENCE,
    Accepted,
    BatchImportReport,
    BatchRowResult,
    DuplicateConflict,
    DuplicateMatch,
    DuplicateTier,
    Trade,
    TradeInput,
)

logger = logging.getLogger(__name__)

DuplicateHandling = Literal["prompt", "skip", "force"]
DUPLICATE_HANDLING_MODES = ("prompt", "skip", "force")

FORCED_SUFFIX = "#forced-"


class _MonotonicStamp:
    """Strictly increasing nanosecond stamps, safe across threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next(self) -> int:
        with self._lock:
            self._last = max(self._last + 1, time.time_ns())
            return self._last


_stamps = _MonotonicStamp()


def is_forced_fingerprint(value: str) -> bool:
    """True if a fingerprint carries a force-create disambiguation suffix."""
    return FORCED_SUFFIX in value


def _conflict_as_match(conflict: DuplicateConflict) -> DuplicateMatch:
    return DuplicateMatch(
        tier=conflict.tier,
        confidence=conflict.confidence,
        reason=conflict.reason,
        matched_trade=conflict.matched_trade,
    )


class IngestionGate:
    """Accepts, rejects or flags trades on their way into the ledger."""

    # Attempts at a unique suffixed fingerprint for a forced insert
    FORCED_INSERT_ATTEMPTS = 5

    def __init__(
        self,
        store: LedgerStore,
        tz: tzinfo = timezone.utc,
        resolver: Optional[DuplicateResolver] = None,
    ):
        """Initialize the gate.

        Args:
            store: Ledger store to write to.
            tz: Reporting timezone used for fingerprint days.
            resolver: Duplicate resolver; one over the same store by default.
        """
        self._store = store
        self._tz = tz
        self._resolver = resolver or DuplicateResolver(store, tz)

    @property
    def resolver(self) -> DuplicateResolver:
        return self._resolver

    def fingerprint(self, owner: str, trade_input: TradeInput) -> str:
        return fingerprint_trade(owner, trade_input, self._tz)

    def build_trade(
        self,
        owner: str,
        trade_input: TradeInput,
        fingerprint: str,
        forced: bool = False,
        duplicate_of: Optional[int] = None,
    ) -> Trade:
        """Turn a submitted trade into a ledger record (without an id)."""
        gross_pnl, net_pnl = calculate_trade_pnl(trade_input)
        return Trade(
            owner=owner,
            symbol=trade_input.symbol,
            side=trade_input.side,
            quantity=trade_input.quantity,
            entry_time=trade_input.entry_time,
            entry_price=trade_input.entry_price,
            exit_time=trade_input.exit_time,
            exit_price=trade_input.exit_price,
            gross_pnl=gross_pnl,
            fees=trade_input.fees,
            net_pnl=net_pnl,
            status="CLOSED" if trade_input.exit_time is not None else "OPEN",
            fingerprint=fingerprint,
            source_tag=trade_input.source_tag,
            forced=forced,
            duplicate_of=duplicate_of,
        )

    def accept(
        self,
        owner: str,
        trade_input: TradeInput,
        force_create: bool = False,
    ) -> Union[Accepted, DuplicateConflict]:
        """Admit a trade into the ledger.

        Args:
            owner: Journal account id.
            trade_input: Submitted trade.
            force_create: Skip the duplicate check and store the trade even
                if it duplicates an existing one.

        Returns:
            ``Accepted`` with the stored trade (and a warning for a MEDIUM
            match), or ``DuplicateConflict`` for an EXACT or HIGH match.

        Raises:
            StorageError: If the store fails.
        """
        fp = self.fingerprint(owner, trade_input)

        if force_create:
            return Accepted(trade=self._insert_forced(owner, trade_input, fp))

        match = self._resolver.classify(owner, trade_input, fp)
        if match.tier.blocks_insert:
            logger.info(
                "Rejected %s %s %s for %s: %s duplicate of trade %s",
                trade_input.side,
                trade_input.quantity,
                trade_input.symbol,
                owner,
                match.tier.value,
                match.matched_trade.id if match.matched_trade else None,
            )
            return DuplicateConflict.from_match(match)

        try:
            stored = self._store.insert_trade(self.build_trade(owner, trade_input, fp))
        except FingerprintConflict:
            # Another writer stored the same trade after our check
            existing = self._store.find_trade_by_fingerprint(owner, fp)
            logger.info("Lost insert race for %s on trade %s", owner, existing.id if existing else None)
            return DuplicateConflict(
                tier=DuplicateTier.EXACT,
                confidence=TIER_CONFIDENCE[DuplicateTier.EXACT],
                reason="identical normalized fields",
                matched_trade=existing,
            )

        warning = match if match.tier is DuplicateTier.MEDIUM else None
        if warning is not None:
            logger.warning(
                "Stored trade %s for %s despite possible duplicate of trade %s",
                stored.id,
                owner,
                warning.matched_trade.id if warning.matched_trade else None,
            )
        else:
            logger.info("Stored trade %s for %s", stored.id, owner)
        return Accepted(trade=stored, warning=warning)

    def _insert_forced(self, owner: str, trade_input: TradeInput, fp: str) -> Trade:
        """Store a trade even if its fingerprint is taken.

        On a collision the fingerprint gets a suffix from a strictly
        increasing stamp, so the row still satisfies the unique index and
        stays recognisable as a forced duplicate.
        """
        try:
            return self._store.insert_trade(self.build_trade(owner, trade_input, fp))
        except FingerprintConflict:
            pass

        existing = self._store.find_trade_by_fingerprint(owner, fp)
        duplicate_of = existing.id if existing else None

        last_error: Optional[FingerprintConflict] = None
        for _ in range(self.FORCED_INSERT_ATTEMPTS):
            forced_fp = f"{fp}{FORCED_SUFFIX}{_stamps.next()}"
            trade = self.build_trade(
                owner, trade_input, forced_fp, forced=True, duplicate_of=duplicate_of
            )
            try:
                stored = self._store.insert_trade(trade)
            except FingerprintConflict as e:
                last_error = e
                continue
            logger.warning(
                "Force-created trade %s for %s duplicating trade %s",
                stored.id,
                owner,
                duplicate_of,
            )
            return stored

        raise StorageError(
            f"Could not allocate a unique fingerprint for a forced insert: {last_error}"
        )

    def _match_earlier_rows(
        self, trade_input: TradeInput, earlier: list[TradeInput]
    ) -> Optional[DuplicateMatch]:
        """Fuzzy-match a row against the rows before it in the same batch.

        Uses the resolver's window, tolerance and tier thresholds; the
        closest earlier row in entry time decides.
        """
        resolver = self._resolver
        closest = None
        for index, other in enumerate(earlier):
            if (
                other.symbol != trade_input.symbol
                or other.side != trade_input.side
                or abs(other.quantity - trade_input.quantity) >= 1e-9
            ):
                continue
            time_diff = abs((other.entry_time - trade_input.entry_time).total_seconds())
            price_diff = resolver.price_diff_pct(trade_input.entry_price, other.entry_price)
            if (
                time_diff > resolver.TIME_WINDOW_SECONDS
                or price_diff > resolver.PRICE_TOLERANCE_PCT
            ):
                continue
            if closest is None or time_diff < closest[0]:
                closest = (time_diff, price_diff, index)

        if closest is None:
            return None
        time_diff, price_diff, index = closest
        tier = resolver.tier_for(time_diff, price_diff)
        return DuplicateMatch(
            tier=tier,
            confidence=TIER_CONFIDENCE[tier],
            reason=(
                f"similar to row {index} of this batch; entered {time_diff:.0f}s apart "
                f"at a {price_diff:.4f}% price difference"
            ),
            time_diff_seconds=time_diff,
            price_diff_pct=price_diff,
        )

    def _preclassify(self, owner: str, inputs: list[TradeInput]) -> list[BatchRowResult]:
        """Classify every row against the ledger and against earlier rows."""
        rows = []
        seen: dict[str, int] = {}
        for index, trade_input in enumerate(inputs):
            fp = self.fingerprint(owner, trade_input)
            match = self._resolver.classify(owner, trade_input, fp)
            if not match.tier.blocks_insert:
                if fp in seen:
                    match = DuplicateMatch(
                        tier=DuplicateTier.EXACT,
                        confidence=TIER_CONFIDENCE[DuplicateTier.EXACT],
                        reason=f"identical normalized fields as row {seen[fp]} of this batch",
                    )
                else:
                    in_batch = self._match_earlier_rows(trade_input, inputs[:index])
                    if in_batch is not None and in_batch.confidence > match.confidence:
                        match = in_batch
            seen.setdefault(fp, index)
            rows.append(BatchRowResult(index=index, trade_input=trade_input, match=match))
        return rows

    def accept_batch(
        self,
        owner: str,
        inputs: Iterable[TradeInput],
        on_duplicate: DuplicateHandling = "prompt",
        validate_only: bool = False,
        allow_partial: bool = True,
    ) -> BatchImportReport:
        """Import many trades, e.g. the rows of a broker export.

        Args:
            owner: Journal account id.
            inputs: Submitted trades.
            on_duplicate: ``prompt`` writes nothing if any row is an EXACT or
                HIGH duplicate; ``skip`` imports everything else; ``force``
                imports every row.
            validate_only: Classify rows without writing.
            allow_partial: Keep going after a storage error on one row.

        Returns:
            Per-row outcome summary.

        Raises:
            ValueError: For an unknown ``on_duplicate`` mode.
            StorageError: On a storage failure while classifying, or on a
                write failure when ``allow_partial`` is False.
        """
        if on_duplicate not in DUPLICATE_HANDLING_MODES:
            raise ValueError(
                f"Invalid duplicate handling: {on_duplicate}. "
                f"Must be one of {list(DUPLICATE_HANDLING_MODES)}"
            )

        inputs = list(inputs)
        report = BatchImportReport(total=len(inputs), validate_only=validate_only)

        if validate_only or on_duplicate == "prompt":
            rows = self._preclassify(owner, inputs)
            conflicts = [r for r in rows if r.match and r.match.tier.blocks_insert]
            if validate_only:
                report.conflicts = conflicts
                report.warnings = [
                    r for r in rows if r.match and r.match.tier is DuplicateTier.MEDIUM
                ]
                report.needs_resolution = bool(conflicts)
                return report
            if conflicts:
                report.conflicts = conflicts
                report.needs_resolution = True
                logger.info(
                    "Batch for %s needs resolution: %d of %d rows are duplicates",
                    owner,
                    len(conflicts),
                    len(inputs),
                )
                return report

        for index, trade_input in enumerate(inputs):
            try:
                result = self.accept(
                    owner, trade_input, force_create=(on_duplicate == "force")
                )
            except StorageError as e:
                if not allow_partial:
                    raise
                logger.warning("Row %d of batch for %s failed: %s", index, owner, e)
                report.errors.append(
                    BatchRowResult(index=index, trade_input=trade_input, error=str(e))
                )
                continue

            if isinstance(result, DuplicateConflict):
                row = BatchRowResult(
                    index=index, trade_input=trade_input, match=_conflict_as_match(result)
                )
                if on_duplicate == "skip":
                    report.skipped.append(row)
                else:
                    # A writer raced the pre-classification in prompt mode
                    report.conflicts.append(row)
                    report.needs_resolution = True
                continue

            row = BatchRowResult(
                index=index,
                trade_input=trade_input,
                match=result.warning,
                trade=result.trade,
            )
            report.imported.append(row)
            if result.warning is not None:
                report.warnings.append(row)

        logger.info(
            "Batch for %s: %d imported, %d skipped, %d conflicts, %d errors",
            owner,
            len(report.imported),
            len(report.skipped),
            len(report.conflicts),
            len(report.errors),
        )
        return report
