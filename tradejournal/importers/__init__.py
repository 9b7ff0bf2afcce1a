"""Trade import sources for TradeJournal."""

from tradejournal.importers.broker_csv import CsvImport, CsvRowError, read_trades_csv

__all__ = [
    "CsvImport",
    "CsvRowError",
    "read_trades_csv",
]
