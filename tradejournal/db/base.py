"""Ledger store interface for TradeJournal."""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from tradejournal.models import CalendarDayAggregate, DayStats, Trade


class LedgerStore(ABC):
    """Abstract persistence for trades and calendar day aggregates.

    Implementations must enforce a unique index on ``(owner, fingerprint)``
    for trades and on ``(owner, day)`` for aggregates. Every failure is
    reported as :class:`tradejournal.errors.StorageError`; a unique index
    violation on insert as :class:`tradejournal.errors.FingerprintConflict`.
    """

    # ==================== Trades ====================

    @abstractmethod
    def insert_trade(self, trade: Trade) -> Trade:
        """Insert a trade.

        Args:
            trade: Trade without an id.

        Returns:
            The stored trade with its assigned id.

        Raises:
            FingerprintConflict: If the owner already has this fingerprint.
        """
        pass

    @abstractmethod
    def find_trade_by_fingerprint(self, owner: str, fingerprint: str) -> Optional[Trade]:
        """Get the trade with an exact fingerprint, if any."""
        pass

    @abstractmethod
    def query_trades_by_owner_time_window(
        self,
        owner: str,
        symbol: str,
        side: str,
        quantity: float,
        around: datetime,
        window_seconds: float,
        price_low: float,
        price_high: float,
        limit: int,
    ) -> list[Trade]:
        """Get trades matching a fuzzy duplicate window.

        Args:
            owner: Journal account id.
            symbol: Exact symbol.
            side: Exact side.
            quantity: Exact quantity.
            around: Centre of the entry time window.
            window_seconds: Half width of the window.
            price_low: Lowest entry price, inclusive.
            price_high: Highest entry price, inclusive.
            limit: Maximum number of rows.

        Returns:
            Matching trades ordered by ascending distance from ``around``.
        """
        pass

    @abstractmethod
    def query_trades_by_owner_day(
        self, owner: str, start: datetime, end: datetime
    ) -> list[Trade]:
        """Get trades whose entry falls in ``[start, end)``, ordered by entry."""
        pass

    @abstractmethod
    def get_trades(self, owner: str) -> list[Trade]:
        """Get every trade of an owner, ordered by entry."""
        pass

    # ==================== Calendar ====================

    @abstractmethod
    def get_aggregate(self, owner: str, day: date) -> Optional[CalendarDayAggregate]:
        """Get one calendar entry."""
        pass

    @abstractmethod
    def upsert_aggregate(self, aggregate: CalendarDayAggregate) -> None:
        """Create or fully replace a calendar entry."""
        pass

    @abstractmethod
    def update_aggregate_stats(self, owner: str, day: date, stats: DayStats) -> bool:
        """Overwrite only the derived fields of an existing entry.

        Returns:
            False if the entry no longer exists.
        """
        pass

    @abstractmethod
    def delete_aggregate(self, owner: str, day: date, only_if_no_diary: bool = False) -> bool:
        """Delete a calendar entry.

        Args:
            owner: Journal account id.
            day: Calendar day.
            only_if_no_diary: Leave the row alone if it has notes, mood or images.

        Returns:
            True if a row was deleted.
        """
        pass

    @abstractmethod
    def list_aggregates_with_stats(
        self,
        owner: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[CalendarDayAggregate]:
        """Get entries with at least one non-empty derived field.

        Args:
            owner: Journal account id.
            start: First day, inclusive.
            end: Last day, inclusive.

        Returns:
            Entries ordered by day.
        """
        pass
