"""Duplicate resolver.

Classifies a candidate trade against an owner's ledger:

1. Exact fingerprint lookup gives ``EXACT``.
2. Otherwise a bounded fuzzy query (same symbol, side and quantity, entry
   within five minutes, price within 0.1%) returns at most five trades,
   closest in time first. The closest one decides between ``HIGH``,
   ``MEDIUM`` and ``LOW``; no candidate gives ``NONE``.

The resolver only reads. Store errors propagate to the caller.
"""

import logging
from datetime import timezone, tzinfo
from typing import Optional

from tradejournal.db.base import LedgerStore
from tradejournal.integrity.fingerprint import fingerprint_trade
from tradejournal.models import (
    TIER_CONFIDENCE,
    DuplicateMatch,
    DuplicateTier,
    Trade,
    TradeInput,
)

logger = logging.getLogger(__name__)


class DuplicateResolver:
    """Classifies candidate trades into duplicate confidence tiers."""

    # Fuzzy search bounds
    TIME_WINDOW_SECONDS = 300
    PRICE_TOLERANCE_PCT = 0.1
    MAX_FUZZY_MATCHES = 5

    # Tier thresholds, applied to the closest fuzzy match
    HIGH_MAX_SECONDS = 60
    HIGH_MAX_PRICE_PCT = 0.01
    MEDIUM_MAX_SECONDS = 300
    MEDIUM_MAX_PRICE_PCT = 0.1

    def __init__(self, store: LedgerStore, tz: tzinfo = timezone.utc):
        """Initialize the resolver.

        Args:
            store: Ledger store to read from.
            tz: Reporting timezone used for fingerprint days.
        """
        self._store = store
        self._tz = tz

    @classmethod
    def tier_for(cls, time_diff_seconds: float, price_diff_pct: float) -> DuplicateTier:
        """Map the distance to the closest fuzzy match onto a tier."""
        if time_diff_seconds <= cls.HIGH_MAX_SECONDS and price_diff_pct <= cls.HIGH_MAX_PRICE_PCT:
            return DuplicateTier.HIGH
        if (
            time_diff_seconds <= cls.MEDIUM_MAX_SECONDS
            and price_diff_pct <= cls.MEDIUM_MAX_PRICE_PCT
        ):
            return DuplicateTier.MEDIUM
        return DuplicateTier.LOW

    @staticmethod
    def price_diff_pct(candidate_price: float, existing_price: float) -> float:
        """Relative price distance in percent of the candidate price."""
        return abs(candidate_price - existing_price) / candidate_price * 100

    def find_fuzzy_matches(self, owner: str, candidate: TradeInput) -> list[Trade]:
        """Get up to five near-identical trades, closest entry time first."""
        tolerance = candidate.entry_price * self.PRICE_TOLERANCE_PCT / 100
        return self._store.query_trades_by_owner_time_window(
            owner=owner,
            symbol=candidate.symbol,
            side=candidate.side,
            quantity=candidate.quantity,
            around=candidate.entry_time,
            window_seconds=self.TIME_WINDOW_SECONDS,
            price_low=candidate.entry_price - tolerance,
            price_high=candidate.entry_price + tolerance,
            limit=self.MAX_FUZZY_MATCHES,
        )

    def classify(
        self,
        owner: str,
        candidate: TradeInput,
        candidate_fingerprint: Optional[str] = None,
    ) -> DuplicateMatch:
        """Classify a candidate trade against the owner's ledger.

        Args:
            owner: Journal account id.
            candidate: Submitted trade.
            candidate_fingerprint: Precomputed fingerprint, if the caller has one.

        Returns:
            Tier, confidence, reason and the matched trade (if any).

        Raises:
            StorageError: If the store cannot be read.
        """
        fp = candidate_fingerprint or fingerprint_trade(owner, candidate, self._tz)

        existing = self._store.find_trade_by_fingerprint(owner, fp)
        if existing is not None:
            return DuplicateMatch(
                tier=DuplicateTier.EXACT,
                confidence=TIER_CONFIDENCE[DuplicateTier.EXACT],
                reason="identical normalized fields",
                matched_trade=existing,
                time_diff_seconds=abs(
                    (existing.entry_time - candidate.entry_time).total_seconds()
                ),
                price_diff_pct=self.price_diff_pct(candidate.entry_price, existing.entry_price),
            )

        matches = self.find_fuzzy_matches(owner, candidate)
        if not matches:
            return DuplicateMatch(
                tier=DuplicateTier.NONE,
                confidence=TIER_CONFIDENCE[DuplicateTier.NONE],
                reason="no similar trade found",
            )

        closest = matches[0]
        time_diff = abs((closest.entry_time - candidate.entry_time).total_seconds())
        price_diff = self.price_diff_pct(candidate.entry_price, closest.entry_price)
        tier = self.tier_for(time_diff, price_diff)

        logger.debug(
            "Fuzzy match for %s %s: trade %s, %.0fs apart, %.4f%% price diff -> %s",
            candidate.symbol,
            candidate.side,
            closest.id,
            time_diff,
            price_diff,
            tier.value,
        )

        return DuplicateMatch(
            tier=tier,
            confidence=TIER_CONFIDENCE[tier],
            reason=(
                f"{len(matches)} similar trade(s); closest entered {time_diff:.0f}s apart "
                f"at a {price_diff:.4f}% price difference"
            ),
            matched_trade=closest,
            time_diff_seconds=time_diff,
            price_diff_pct=price_diff,
        )
