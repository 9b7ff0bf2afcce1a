"""Trade-ingestion integrity engine.

Fingerprinting, duplicate classification, the ingestion gate and calendar
reconciliation.
"""

from tradejournal.integrity.days import day_bounds, trading_day
from tradejournal.integrity.fingerprint import fingerprint, fingerprint_trade
from tradejournal.integrity.gate import IngestionGate, is_forced_fingerprint
from tradejournal.integrity.pnl import calculate_day_stats, calculate_trade_pnl
from tradejournal.integrity.reconciler import AggregateReconciler
from tradejournal.integrity.resolver import DuplicateResolver

__all__ = [
    "AggregateReconciler",
    "DuplicateResolver",
    "IngestionGate",
    "calculate_day_stats",
    "calculate_trade_pnl",
    "day_bounds",
    "fingerprint",
    "fingerprint_trade",
    "is_forced_fingerprint",
    "trading_day",
]
