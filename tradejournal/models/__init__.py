"""Data models for TradeJournal."""

from tradejournal.models.trade import Side, Trade, TradeInput, TradeStatus
from tradejournal.models.calendar import CalendarDayAggregate, DayStats
from tradejournal.models.duplicate import (
    TIER_CONFIDENCE,
    Accepted,
    BatchImportReport,
    BatchRowResult,
    DuplicateConflict,
    DuplicateMatch,
    DuplicateTier,
)
from tradejournal.models.reconcile import (
    CalendarIssue,
    ReconciliationReport,
    ValidationResult,
)

__all__ = [
    "Side",
    "Trade",
    "TradeInput",
    "TradeStatus",
    "CalendarDayAggregate",
    "DayStats",
    "TIER_CONFIDENCE",
    "Accepted",
    "BatchImportReport",
    "BatchRowResult",
    "DuplicateConflict",
    "DuplicateMatch",
    "DuplicateTier",
    "CalendarIssue",
    "ReconciliationReport",
    "ValidationResult",
]
