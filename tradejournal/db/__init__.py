"""Ledger persistence for TradeJournal."""

from tradejournal.db.base import LedgerStore
from tradejournal.db.store import DataStore

__all__ = [
    "DataStore",
    "LedgerStore",
]
