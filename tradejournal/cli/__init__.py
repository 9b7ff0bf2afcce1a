"""CLI commands for TradeJournal.

This package provides the command-line interface for TradeJournal:
recording and importing trades, the daily diary, and calendar
reconciliation.
"""

from tradejournal.cli.main import cli, main

__all__ = ["cli", "main"]
