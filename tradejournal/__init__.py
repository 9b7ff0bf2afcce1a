"""TradeJournal - trade ledger with duplicate-safe ingestion and calendar reconciliation."""

__version__ = "0.1.0"
