"""SQLite ledger store for TradeJournal."""

import json
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from tradejournal.db.base import LedgerStore
from tradejournal.errors import FingerprintConflict, StorageError
from tradejournal.models import CalendarDayAggregate, DayStats, Trade

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_TRADE_COLUMNS = """
    id, owner, symbol, side, quantity, entry_time, entry_price, exit_time,
    exit_price, gross_pnl, fees, net_pnl, status, fingerprint, source_tag,
    forced, duplicate_of, created_at
"""

_AGGREGATE_COLUMNS = """
    owner, day, daily_pnl, trades_count, winning_trades, losing_trades,
    win_rate, notes, mood, images
"""


def _to_micros(value: datetime) -> int:
    """Convert an aware timestamp to integer microseconds since the epoch."""
    delta = value.astimezone(timezone.utc) - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class DataStore(LedgerStore):
    """SQLite-based ledger store."""

    REQUIRED_TABLES = [
        "trades",
        "calendar_days",
    ]

    # Seconds a connection waits on a locked database before failing
    BUSY_TIMEOUT = 30.0

    def __init__(self, db_path: Path):
        """Initialize the data store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._ensure_db_dir()
        self._init_schema()

    def _ensure_db_dir(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path, timeout=self.BUSY_TIMEOUT)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, commit on success and translate sqlite errors."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema on first run."""
        with self._connection() as conn:
            cursor = conn.cursor()

            # Trades table; the unique index is the duplicate guarantee
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    quantity REAL NOT NULL,
                    entry_time TEXT NOT NULL,
                    entry_us INTEGER NOT NULL,
                    entry_price REAL NOT NULL,
                    exit_time TEXT,
                    exit_price REAL,
                    gross_pnl REAL,
                    fees REAL NOT NULL DEFAULT 0,
                    net_pnl REAL,
                    status TEXT NOT NULL DEFAULT 'OPEN',
                    fingerprint TEXT NOT NULL,
                    source_tag TEXT NOT NULL DEFAULT 'manual',
                    forced INTEGER NOT NULL DEFAULT 0,
                    duplicate_of INTEGER,
                    created_at TEXT NOT NULL,
                    UNIQUE(owner, fingerprint)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_trades_match
                ON trades (owner, symbol, side, entry_us)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_trades_owner_entry
                ON trades (owner, entry_us)
            """)

            # Calendar table
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS calendar_days (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    owner TEXT NOT NULL,
                    day TEXT NOT NULL,
                    daily_pnl REAL,
                    trades_count INTEGER NOT NULL DEFAULT 0,
                    winning_trades INTEGER NOT NULL DEFAULT 0,
                    losing_trades INTEGER NOT NULL DEFAULT 0,
                    win_rate REAL,
                    notes TEXT,
                    mood INTEGER,
                    images TEXT,
                    updated_at TEXT NOT NULL,
                    UNIQUE(owner, day)
                )
            """)

    def get_tables(self) -> list[str]:
        """Get list of all tables in the database."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
            )
            return [row["name"] for row in cursor.fetchall()]

    # ==================== Trades ====================

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> Trade:
        try:
            return Trade(
                id=row["id"],
                owner=row["owner"],
                symbol=row["symbol"],
                side=row["side"],
                quantity=row["quantity"],
                entry_time=datetime.fromisoformat(row["entry_time"]),
                entry_price=row["entry_price"],
                exit_time=_parse_time(row["exit_time"]),
                exit_price=row["exit_price"],
                gross_pnl=row["gross_pnl"],
                fees=row["fees"],
                net_pnl=row["net_pnl"],
                status=row["status"],
                fingerprint=row["fingerprint"],
                source_tag=row["source_tag"],
                forced=bool(row["forced"]),
                duplicate_of=row["duplicate_of"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
        except ValueError as e:
            raise StorageError(f"Corrupt trade row {row['id']}: {e}") from e

    def insert_trade(self, trade: Trade) -> Trade:
        """Insert a trade.

        Args:
            trade: Trade to insert; its ``id`` is ignored.

        Returns:
            The stored trade with its assigned id.

        Raises:
            FingerprintConflict: If the owner already has this fingerprint.
            StorageError: On any other database failure.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO trades
                    (owner, symbol, side, quantity, entry_time, entry_us, entry_price,
                     exit_time, exit_price, gross_pnl, fees, net_pnl, status,
                     fingerprint, source_tag, forced, duplicate_of, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        trade.owner,
                        trade.symbol,
                        trade.side,
                        trade.quantity,
                        trade.entry_time.isoformat(),
                        _to_micros(trade.entry_time),
                        trade.entry_price,
                        trade.exit_time.isoformat() if trade.exit_time else None,
                        trade.exit_price,
                        trade.gross_pnl,
                        trade.fees,
                        trade.net_pnl,
                        trade.status,
                        trade.fingerprint,
                        trade.source_tag,
                        1 if trade.forced else 0,
                        trade.duplicate_of,
                        trade.created_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as e:
                if "trades.fingerprint" in str(e):
                    raise FingerprintConflict(trade.owner, trade.fingerprint) from e
                raise
            return trade.model_copy(update={"id": cursor.lastrowid})

    def find_trade_by_fingerprint(self, owner: str, fingerprint: str) -> Optional[Trade]:
        """Get the trade with an exact fingerprint.

        Args:
            owner: Journal account id.
            fingerprint: Canonical identity hash.

        Returns:
            Trade if found, None otherwise.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_TRADE_COLUMNS} FROM trades WHERE owner = ? AND fingerprint = ?",
                (owner, fingerprint),
            )
            row = cursor.fetchone()
            return self._row_to_trade(row) if row else None

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
        """Get fuzzy duplicate candidates, closest entry time first.

        The window, price band, ordering and limit are all applied in SQL so
        the cost does not grow with the size of the ledger.
        """
        centre = _to_micros(around)
        half_width = int(window_seconds * 1_000_000)
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_TRADE_COLUMNS}
                FROM trades
                WHERE owner = ? AND symbol = ? AND side = ?
                AND ABS(quantity - ?) < 1e-9
                AND entry_us BETWEEN ? AND ?
                AND entry_price BETWEEN ? AND ?
                ORDER BY ABS(entry_us - ?), id
                LIMIT ?
                """,
                (
                    owner,
                    symbol,
                    side,
                    quantity,
                    centre - half_width,
                    centre + half_width,
                    price_low,
                    price_high,
                    centre,
                    limit,
                ),
            )
            return [self._row_to_trade(row) for row in cursor.fetchall()]

    def query_trades_by_owner_day(
        self, owner: str, start: datetime, end: datetime
    ) -> list[Trade]:
        """Get trades entered in ``[start, end)``.

        Args:
            owner: Journal account id.
            start: Inclusive lower bound (aware datetime).
            end: Exclusive upper bound (aware datetime).

        Returns:
            Trades ordered by entry time.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_TRADE_COLUMNS}
                FROM trades
                WHERE owner = ? AND entry_us >= ? AND entry_us < ?
                ORDER BY entry_us, id
                """,
                (owner, _to_micros(start), _to_micros(end)),
            )
            return [self._row_to_trade(row) for row in cursor.fetchall()]

    def get_trades(self, owner: str) -> list[Trade]:
        """Get every trade of an owner, ordered by entry time."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_TRADE_COLUMNS} FROM trades WHERE owner = ? ORDER BY entry_us, id",
                (owner,),
            )
            return [self._row_to_trade(row) for row in cursor.fetchall()]

    # ==================== Calendar ====================

    @staticmethod
    def _row_to_aggregate(row: sqlite3.Row) -> CalendarDayAggregate:
        try:
            return CalendarDayAggregate(
                owner=row["owner"],
                day=date.fromisoformat(row["day"]),
                daily_pnl=row["daily_pnl"],
                trades_count=row["trades_count"],
                winning_trades=row["winning_trades"],
                losing_trades=row["losing_trades"],
                win_rate=row["win_rate"],
                notes=row["notes"],
                mood=row["mood"],
                images=json.loads(row["images"]) if row["images"] else [],
            )
        except ValueError as e:
            raise StorageError(f"Corrupt calendar row {row['day']}: {e}") from e

    def get_aggregate(self, owner: str, day: date) -> Optional[CalendarDayAggregate]:
        """Get one calendar entry.

        Args:
            owner: Journal account id.
            day: Calendar day.

        Returns:
            Entry if found, None otherwise.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_AGGREGATE_COLUMNS} FROM calendar_days WHERE owner = ? AND day = ?",
                (owner, day.isoformat()),
            )
            row = cursor.fetchone()
            return self._row_to_aggregate(row) if row else None

    def upsert_aggregate(self, aggregate: CalendarDayAggregate) -> None:
        """Create a calendar entry or replace every field of an existing one.

        Args:
            aggregate: Entry to save.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO calendar_days
                (owner, day, daily_pnl, trades_count, winning_trades, losing_trades,
                 win_rate, notes, mood, images, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(owner, day) DO UPDATE SET
                    daily_pnl = excluded.daily_pnl,
                    trades_count = excluded.trades_count,
                    winning_trades = excluded.winning_trades,
                    losing_trades = excluded.losing_trades,
                    win_rate = excluded.win_rate,
                    notes = excluded.notes,
                    mood = excluded.mood,
                    images = excluded.images,
                    updated_at = excluded.updated_at
                """,
                (
                    aggregate.owner,
                    aggregate.day.isoformat(),
                    aggregate.daily_pnl,
                    aggregate.trades_count,
                    aggregate.winning_trades,
                    aggregate.losing_trades,
                    aggregate.win_rate,
                    aggregate.notes,
                    aggregate.mood,
                    json.dumps(aggregate.images) if aggregate.images else None,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )

    def update_aggregate_stats(self, owner: str, day: date, stats: DayStats) -> bool:
        """Overwrite the derived fields of an entry, leaving diary fields alone.

        Args:
            owner: Journal account id.
            day: Calendar day.
            stats: New derived values.

        Returns:
            False if the entry does not exist.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE calendar_days
                SET daily_pnl = ?, trades_count = ?, winning_trades = ?,
                    losing_trades = ?, win_rate = ?, updated_at = ?
                WHERE owner = ? AND day = ?
                """,
                (
                    stats.daily_pnl,
                    stats.trades_count,
                    stats.winning_trades,
                    stats.losing_trades,
                    stats.win_rate,
                    datetime.now(timezone.utc).isoformat(),
                    owner,
                    day.isoformat(),
                ),
            )
            return cursor.rowcount > 0

    def delete_aggregate(self, owner: str, day: date, only_if_no_diary: bool = False) -> bool:
        """Delete a calendar entry.

        Args:
            owner: Journal account id.
            day: Calendar day.
            only_if_no_diary: Keep the row if it has notes, mood or images.

        Returns:
            True if a row was deleted.
        """
        query = "DELETE FROM calendar_days WHERE owner = ? AND day = ?"
        if only_if_no_diary:
            query += """
                AND (notes IS NULL OR notes = '')
                AND mood IS NULL
                AND (images IS NULL OR images = '' OR images = '[]')
            """
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, (owner, day.isoformat()))
            return cursor.rowcount > 0

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
        query = f"""
            SELECT {_AGGREGATE_COLUMNS}
            FROM calendar_days
            WHERE owner = ?
            AND (
                daily_pnl IS NOT NULL
                OR trades_count > 0
                OR winning_trades > 0
                OR losing_trades > 0
                OR win_rate IS NOT NULL
            )
        """
        params: list = [owner]
        if start is not None:
            query += " AND day >= ?"
            params.append(start.isoformat())
        if end is not None:
            query += " AND day <= ?"
            params.append(end.isoformat())
        query += " ORDER BY day"

        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_aggregate(row) for row in cursor.fetchall()]

    # ==================== Stats ====================

    def get_stats(self) -> dict:
        """Get database statistics.

        Returns:
            Dictionary with table record counts.
        """
        with self._connection() as conn:
            cursor = conn.cursor()
            stats = {}
            for table in self.REQUIRED_TABLES:
                cursor.execute(f"SELECT COUNT(*) as count FROM {table}")
                stats[table] = cursor.fetchone()["count"]
            return stats
