"""Property-based tests for trade fingerprints and day boundaries.

**Feature: trade-integrity**
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from hypothesis import given, settings
from hypothesis import strategies as st

from tradejournal.integrity import day_bounds, fingerprint, fingerprint_trade, trading_day
from tradejournal.integrity.fingerprint import normalize_price, normalize_quantity
from tradejournal.models import TradeInput

NEW_YORK = ZoneInfo("America/New_York")

symbols = st.text(
    alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
    min_size=1,
    max_size=10,
)
prices = st.floats(min_value=1.0, max_value=50000.0, allow_nan=False, allow_infinity=False)
cent_prices = prices.map(lambda p: round(p, 2))
quantities = st.integers(min_value=1, max_value=100)
days = st.dates(min_value=date(2020, 1, 1), max_value=date(2030, 12, 31))


class TestFingerprintDeterminism:
    """
    **Feature: trade-integrity, Property 1: Fingerprint Determinism**

    *For any* trade fields, the fingerprint is a stable SHA-256 hex digest
    and ignores symbol case and surrounding whitespace.
    """

    @given(symbol=symbols, side=st.sampled_from(["LONG", "SHORT"]), day=days, price=prices, qty=quantities)
    @settings(max_examples=100)
    def test_same_fields_same_fingerprint(self, symbol, side, day, price, qty):
        first = fingerprint("alice", symbol, side, day, price, qty)
        second = fingerprint("alice", symbol, side, day, price, qty)

        assert first == second
        assert len(first) == 64
        int(first, 16)

    @given(symbol=symbols, day=days, price=prices)
    @settings(max_examples=50)
    def test_symbol_case_and_whitespace_ignored(self, symbol, day, price):
        upper = fingerprint("alice", symbol.upper(), "LONG", day, price, 1)
        lower = fingerprint("alice", f"  {symbol.lower()} ", "LONG", day, price, 1)

        assert upper == lower

    def test_quantity_representation_ignored(self):
        day = date(2025, 7, 18)
        assert fingerprint("alice", "MNQU5", "LONG", day, 23219.25, 1) == fingerprint(
            "alice", "MNQU5", "LONG", day, 23219.25, 1.0
        )


class TestFingerprintSensitivity:
    """
    **Feature: trade-integrity, Property 2: Fingerprint Sensitivity**

    *For any* trade, changing the owner, symbol, side, entry day, quantity
    or the price by at least one cent changes the fingerprint.
    """

    @given(day=days, price=cent_prices, qty=quantities)
    @settings(max_examples=100)
    def test_each_field_changes_fingerprint(self, day, price, qty):
        base = fingerprint("alice", "MNQU5", "LONG", day, price, qty)

        assert fingerprint("bob", "MNQU5", "LONG", day, price, qty) != base
        assert fingerprint("alice", "MESU5", "LONG", day, price, qty) != base
        assert fingerprint("alice", "MNQU5", "SHORT", day, price, qty) != base
        assert fingerprint("alice", "MNQU5", "LONG", day + timedelta(days=1), price, qty) != base
        assert fingerprint("alice", "MNQU5", "LONG", day, price, qty + 1) != base
        assert fingerprint("alice", "MNQU5", "LONG", day, price + 0.01, qty) != base

    def test_sub_cent_difference_collapses(self):
        day = date(2025, 7, 18)
        assert fingerprint("alice", "MNQU5", "LONG", day, 23219.251, 1) == fingerprint(
            "alice", "MNQU5", "LONG", day, 23219.254, 1
        )

    def test_field_boundaries_are_unambiguous(self):
        day = date(2025, 7, 18)
        assert fingerprint("ab", "C", "LONG", day, 10.0, 1) != fingerprint(
            "a", "BC", "LONG", day, 10.0, 1
        )


class TestNormalization:
    """Price and quantity normalization."""

    def test_price_rounds_half_up(self):
        assert normalize_price(23219.255) == "23219.26"
        assert normalize_price(0.125) == "0.13"
        assert normalize_price(100) == "100.00"

    def test_quantity_drops_trailing_zeros(self):
        assert normalize_quantity(1.0) == "1"
        assert normalize_quantity(2.50) == "2.5"
        assert normalize_quantity(100) == "100"


class TestEntryDay:
    """
    **Feature: trade-integrity, Property 3: Entry Day in Reporting Timezone**

    *For any* timestamp, the day used by the fingerprint is the calendar
    day in the reporting timezone, so the same instant written with
    different offsets fingerprints identically.
    """

    def test_day_follows_reporting_timezone(self):
        late_evening = datetime(2025, 7, 19, 1, 30, tzinfo=timezone.utc)

        assert trading_day(late_evening, timezone.utc) == date(2025, 7, 19)
        assert trading_day(late_evening, NEW_YORK) == date(2025, 7, 18)

    def test_offsets_of_same_instant_match(self):
        utc_entry = TradeInput(
            symbol="MNQU5",
            side="LONG",
            quantity=1,
            entry_time=datetime(2025, 7, 18, 13, 31, 5, tzinfo=timezone.utc),
            entry_price=23219.25,
        )
        local_entry = utc_entry.model_copy(
            update={"entry_time": datetime(2025, 7, 18, 9, 31, 5, tzinfo=NEW_YORK)}
        )

        assert fingerprint_trade("alice", utc_entry, NEW_YORK) == fingerprint_trade(
            "alice", local_entry, NEW_YORK
        )

    @given(day=days)
    @settings(max_examples=50)
    def test_day_bounds_are_half_open(self, day):
        start, end = day_bounds(day, NEW_YORK)

        assert start.tzinfo == timezone.utc
        assert trading_day(start, NEW_YORK) == day
        assert trading_day(end, NEW_YORK) == day + timedelta(days=1)
        assert trading_day(end - timedelta(microseconds=1), NEW_YORK) == day

    def test_dst_transition_day_length(self):
        start, end = day_bounds(date(2025, 3, 9), NEW_YORK)
        assert end - start == timedelta(hours=23)

        start, end = day_bounds(date(2025, 11, 2), NEW_YORK)
        assert end - start == timedelta(hours=25)
