"""Tests for the broker CSV reader.

**Feature: trade-integrity**
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from tradejournal.config import JournalConfig
from tradejournal.db.store import DataStore
from tradejournal.importers import read_trades_csv
from tradejournal.integrity import IngestionGate

TOPSTEP_EXPORT = """ContractName,EnteredAt,ExitedAt,EntryPrice,ExitPrice,Fees,PnL,Size,Type
MNQU5,2025-07-18 09:31:05,2025-07-18 09:40:00,23219.25,23225.00,1.24,$11.50,1,Long
MNQU5,2025-07-18 10:02:11,2025-07-18 10:05:00,23240.00,23230.00,1.24,($20.00),1,Short
"""


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_csv(directory: Path, text: str, name: str = "export.csv") -> Path:
    path = directory / name
    path.write_text(text)
    return path


class TestReadTradesCsv:
    """
    **Feature: trade-integrity, Property 24: CSV Row Mapping**

    *For any* broker export, recognised columns map onto trade inputs and
    invalid rows are reported without aborting the file.
    """

    def test_canonical_columns(self, tmp_dir: Path):
        path = write_csv(
            tmp_dir,
            "symbol,side,quantity,entry_time,entry_price\n"
            "mnqu5,buy,2,2025-07-18T13:31:05+00:00,23219.25\n",
        )

        parsed = read_trades_csv(path)

        assert parsed.errors == []
        trade = parsed.trades[0]
        assert trade.symbol == "MNQU5"
        assert trade.side == "LONG"
        assert trade.quantity == 2
        assert trade.entry_time == datetime(2025, 7, 18, 13, 31, 5, tzinfo=timezone.utc)
        assert trade.source_tag == "csv:export.csv"

    def test_broker_aliases_and_money(self, tmp_dir: Path):
        path = write_csv(tmp_dir, TOPSTEP_EXPORT)
        config = JournalConfig(multipliers={"MNQ": 2.0})

        parsed = read_trades_csv(path, config, source_tag="topstep")

        assert len(parsed.trades) == 2
        long_trade, short_trade = parsed.trades
        assert long_trade.side == "LONG"
        assert long_trade.net_pnl == 11.5
        assert long_trade.fees == 1.24
        assert long_trade.multiplier == 2.0
        assert long_trade.source_tag == "topstep"
        assert short_trade.side == "SHORT"
        assert short_trade.net_pnl == -20.0

    def test_naive_times_use_reporting_timezone(self, tmp_dir: Path):
        path = write_csv(tmp_dir, TOPSTEP_EXPORT)
        config = JournalConfig(reporting_timezone="America/New_York")

        parsed = read_trades_csv(path, config)

        assert parsed.trades[0].entry_time == datetime(2025, 7, 18, 13, 31, 5, tzinfo=timezone.utc)

    def test_bad_rows_reported(self, tmp_dir: Path):
        path = write_csv(
            tmp_dir,
            "symbol,side,quantity,entry_time,entry_price\n"
            "MNQU5,LONG,1,2025-07-18 09:31:05,23219.25\n"
            "MNQU5,SIDEWAYS,1,2025-07-18 09:32:05,23219.25\n"
            "MNQU5,LONG,1,,23219.25\n"
            "MNQU5,LONG,1,2025-07-18 09:33:05,-5\n",
        )

        parsed = read_trades_csv(path)

        assert len(parsed.trades) == 1
        assert [e.line for e in parsed.errors] == [3, 4, 5]

    def test_missing_required_column(self, tmp_dir: Path):
        path = write_csv(tmp_dir, "symbol,side,entry_time\nMNQU5,LONG,2025-07-18 09:31:05\n")

        with pytest.raises(ValueError, match="quantity"):
            read_trades_csv(path)

    def test_reimport_is_duplicate_free(self, tmp_dir: Path):
        """Importing the same export twice stores each trade once."""
        path = write_csv(tmp_dir, TOPSTEP_EXPORT)
        store = DataStore(tmp_dir / "test.db")
        gate = IngestionGate(store)

        first = gate.accept_batch("alice", read_trades_csv(path).trades, on_duplicate="skip")
        second = gate.accept_batch("alice", read_trades_csv(path).trades, on_duplicate="skip")

        assert len(first.imported) == 2
        assert second.imported == []
        assert len(second.skipped) == 2
        assert len(store.get_trades("alice")) == 2
