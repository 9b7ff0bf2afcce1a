"""Property-based tests for the ledger store.

**Feature: trade-integrity**
"""

import sqlite3
import tempfile
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.db.store import DataStore
from tradejournal.errors import FingerprintConflict, StorageError
from tradejournal.models import CalendarDayAggregate, DayStats, Trade

BASE_TIME = datetime(2025, 7, 18, 13, 31, 5, tzinfo=timezone.utc)


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        yield DataStore(db_path)


def make_trade(
    fingerprint: str,
    owner: str = "alice",
    entry_time: datetime = BASE_TIME,
    entry_price: float = 23219.25,
    **overrides,
) -> Trade:
    values = dict(
        owner=owner,
        symbol="MNQU5",
        side="LONG",
        quantity=1,
        entry_time=entry_time,
        entry_price=entry_price,
        fingerprint=fingerprint,
    )
    values.update(overrides)
    return Trade(**values)


class TestDatabaseSchemaCompleteness:
    """
    **Feature: trade-integrity, Property 4: Database Schema Completeness**

    *For any* fresh database, the trades and calendar_days tables exist.
    """

    def test_schema_completeness(self, temp_db: DataStore):
        tables = temp_db.get_tables()

        for table in DataStore.REQUIRED_TABLES:
            assert table in tables, f"Required table '{table}' is missing"

    def test_reopening_keeps_data(self, temp_db: DataStore):
        temp_db.insert_trade(make_trade("fp-1"))

        reopened = DataStore(temp_db.db_path)
        assert reopened.get_stats()["trades"] == 1


class TestTradeStorage:
    """
    **Feature: trade-integrity, Property 5: Fingerprint Uniqueness**

    *For any* owner, at most one trade per fingerprint can be stored; the
    same fingerprint is free for other owners.
    """

    def test_insert_assigns_id_and_preserves_fields(self, temp_db: DataStore):
        stored = temp_db.insert_trade(
            make_trade("fp-1", exit_time=BASE_TIME + timedelta(minutes=5), exit_price=23225.0,
                       net_pnl=11.5, status="CLOSED", source_tag="csv:july.csv")
        )

        assert stored.id is not None
        found = temp_db.find_trade_by_fingerprint("alice", "fp-1")
        assert found == stored
        assert found.entry_time == BASE_TIME
        assert found.status == "CLOSED"
        assert found.source_tag == "csv:july.csv"

    def test_duplicate_fingerprint_rejected(self, temp_db: DataStore):
        temp_db.insert_trade(make_trade("fp-1"))

        with pytest.raises(FingerprintConflict) as exc_info:
            temp_db.insert_trade(make_trade("fp-1", entry_price=1.0))

        assert exc_info.value.fingerprint == "fp-1"
        assert len(temp_db.get_trades("alice")) == 1

    def test_same_fingerprint_other_owner_allowed(self, temp_db: DataStore):
        temp_db.insert_trade(make_trade("fp-1", owner="alice"))
        temp_db.insert_trade(make_trade("fp-1", owner="bob"))

        assert len(temp_db.get_trades("alice")) == 1
        assert len(temp_db.get_trades("bob")) == 1

    def test_missing_fingerprint_returns_none(self, temp_db: DataStore):
        assert temp_db.find_trade_by_fingerprint("alice", "nope") is None


class TestTimeWindowQuery:
    """
    **Feature: trade-integrity, Property 6: Bounded Fuzzy Query**

    *For any* set of stored trades, the window query returns only trades
    inside the time window and price band, closest entry first, never more
    than the limit.
    """

    @given(offsets=st.lists(st.integers(min_value=-900, max_value=900), min_size=0, max_size=15, unique=True))
    @settings(max_examples=30, deadline=None)
    def test_window_ordering_and_limit(self, offsets: list[int]):
        with tempfile.TemporaryDirectory() as tmpdir:
            store = DataStore(Path(tmpdir) / "test.db")
            for i, offset in enumerate(offsets):
                store.insert_trade(
                    make_trade(f"fp-{i}", entry_time=BASE_TIME + timedelta(seconds=offset))
                )

            results = store.query_trades_by_owner_time_window(
                owner="alice",
                symbol="MNQU5",
                side="LONG",
                quantity=1,
                around=BASE_TIME,
                window_seconds=300,
                price_low=23200.0,
                price_high=23240.0,
                limit=5,
            )

            inside = sorted(abs(o) for o in offsets if abs(o) <= 300)
            distances = [abs((t.entry_time - BASE_TIME).total_seconds()) for t in results]
            assert len(results) == min(5, len(inside))
            assert distances == sorted(distances)
            assert distances == inside[: len(results)]

    def test_filters_symbol_side_quantity_and_price(self, temp_db: DataStore):
        temp_db.insert_trade(make_trade("match"))
        temp_db.insert_trade(make_trade("symbol", symbol="MESU5"))
        temp_db.insert_trade(make_trade("side", side="SHORT"))
        temp_db.insert_trade(make_trade("qty", quantity=2))
        temp_db.insert_trade(make_trade("price", entry_price=23300.0))
        temp_db.insert_trade(make_trade("owner", owner="bob"))

        results = temp_db.query_trades_by_owner_time_window(
            owner="alice",
            symbol="MNQU5",
            side="LONG",
            quantity=1,
            around=BASE_TIME,
            window_seconds=300,
            price_low=23200.0,
            price_high=23240.0,
            limit=5,
        )

        assert [t.fingerprint for t in results] == ["match"]

    def test_day_query_is_half_open(self, temp_db: DataStore):
        start = datetime(2025, 7, 18, tzinfo=timezone.utc)
        end = start + timedelta(days=1)
        temp_db.insert_trade(make_trade("start", entry_time=start))
        temp_db.insert_trade(make_trade("inside", entry_time=start + timedelta(hours=12)))
        temp_db.insert_trade(make_trade("end", entry_time=end))
        temp_db.insert_trade(make_trade("before", entry_time=start - timedelta(microseconds=1)))

        results = temp_db.query_trades_by_owner_day("alice", start, end)

        assert [t.fingerprint for t in results] == ["start", "inside"]


class TestCalendarStorage:
    """
    **Feature: trade-integrity, Property 7: Calendar Entry Storage**

    *For any* calendar entry, stats updates never touch diary fields and
    conditional deletes never remove an entry with diary content.
    """

    DAY = date(2025, 7, 18)

    def test_upsert_and_get(self, temp_db: DataStore):
        entry = CalendarDayAggregate(
            owner="alice",
            day=self.DAY,
            daily_pnl=120.5,
            trades_count=3,
            winning_trades=2,
            losing_trades=1,
            win_rate=66.67,
            notes="patient",
            mood=4,
            images=["chart.png"],
        )
        temp_db.upsert_aggregate(entry)

        assert temp_db.get_aggregate("alice", self.DAY) == entry
        assert temp_db.get_aggregate("bob", self.DAY) is None

    def test_update_stats_keeps_diary(self, temp_db: DataStore):
        temp_db.upsert_aggregate(
            CalendarDayAggregate(owner="alice", day=self.DAY, trades_count=1, notes="keep", mood=2)
        )

        updated = temp_db.update_aggregate_stats(
            "alice", self.DAY, DayStats(trades_count=4, daily_pnl=10.0)
        )

        entry = temp_db.get_aggregate("alice", self.DAY)
        assert updated is True
        assert entry.trades_count == 4
        assert entry.daily_pnl == 10.0
        assert entry.notes == "keep"
        assert entry.mood == 2

    def test_update_stats_missing_row(self, temp_db: DataStore):
        assert temp_db.update_aggregate_stats("alice", self.DAY, DayStats()) is False

    def test_conditional_delete_respects_diary(self, temp_db: DataStore):
        temp_db.upsert_aggregate(
            CalendarDayAggregate(owner="alice", day=self.DAY, trades_count=1, images=["a.png"])
        )

        assert temp_db.delete_aggregate("alice", self.DAY, only_if_no_diary=True) is False
        assert temp_db.get_aggregate("alice", self.DAY) is not None

        assert temp_db.delete_aggregate("alice", self.DAY) is True
        assert temp_db.get_aggregate("alice", self.DAY) is None

    def test_list_with_stats_filters_and_orders(self, temp_db: DataStore):
        temp_db.upsert_aggregate(CalendarDayAggregate(owner="alice", day=date(2025, 7, 20), trades_count=1))
        temp_db.upsert_aggregate(CalendarDayAggregate(owner="alice", day=date(2025, 7, 18), daily_pnl=0.0))
        temp_db.upsert_aggregate(CalendarDayAggregate(owner="alice", day=date(2025, 7, 19), notes="diary only"))
        temp_db.upsert_aggregate(CalendarDayAggregate(owner="bob", day=date(2025, 7, 18), trades_count=1))

        entries = temp_db.list_aggregates_with_stats("alice")
        assert [e.day for e in entries] == [date(2025, 7, 18), date(2025, 7, 20)]

        ranged = temp_db.list_aggregates_with_stats("alice", start=date(2025, 7, 19), end=date(2025, 7, 20))
        assert [e.day for e in ranged] == [date(2025, 7, 20)]


class TestCorruptRows:
    """
    **Feature: trade-integrity, Property 26: Corrupt Rows Surface as Storage Errors**

    *For any* stored row that no longer decodes into a model, reading it
    raises StorageError rather than a validation error.
    """

    def test_corrupt_trade_row(self, temp_db: DataStore):
        stored = temp_db.insert_trade(make_trade("fp-1"))
        with sqlite3.connect(temp_db.db_path) as conn:
            conn.execute("UPDATE trades SET quantity = -1 WHERE id = ?", (stored.id,))

        with pytest.raises(StorageError, match="Corrupt trade row"):
            temp_db.get_trades("alice")

    def test_corrupt_calendar_row(self, temp_db: DataStore):
        day = date(2025, 7, 18)
        temp_db.upsert_aggregate(CalendarDayAggregate(owner="alice", day=day, trades_count=1))
        with sqlite3.connect(temp_db.db_path) as conn:
            conn.execute("UPDATE calendar_days SET mood = 9 WHERE day = ?", (day.isoformat(),))

        with pytest.raises(StorageError, match="Corrupt calendar row"):
            temp_db.get_aggregate("alice", day)
