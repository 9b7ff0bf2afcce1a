"""Calendar day aggregate data models."""

from datetime import date as date_type
from typing import Optional

from pydantic import BaseModel, Field


class DayStats(BaseModel):
    """Derived statistics for one calendar day, computed from the ledger."""

    trades_count: int = Field(default=0, ge=0, description="Number of trades")
    daily_pnl: Optional[float] = Field(default=None, description="Sum of net P&L")
    winning_trades: int = Field(default=0, ge=0, description="Closed trades with P&L > 0")
    losing_trades: int = Field(default=0, ge=0, description="Closed trades with P&L < 0")
    win_rate: Optional[float] = Field(
        default=None, ge=0, le=100, description="Win rate percentage over closed trades"
    )

    model_config = {"frozen": True}

    @classmethod
    def empty(cls) -> "DayStats":
        """Stats for a day without trades: counts zero, amounts null."""
        return cls()


class CalendarDayAggregate(BaseModel):
    """Represents the denormalized per-day calendar entry of one owner."""

    owner: str = Field(..., min_length=1, description="Journal account id")
    day: date_type = Field(..., description="Calendar day in the reporting timezone")

    # Derived from the trade ledger
    daily_pnl: Optional[float] = Field(default=None, description="Total P&L for the day")
    trades_count: int = Field(default=0, ge=0, description="Number of trades")
    winning_trades: int = Field(default=0, ge=0, description="Winning closed trades")
    losing_trades: int = Field(default=0, ge=0, description="Losing closed trades")
    win_rate: Optional[float] = Field(default=None, description="Win rate percentage")

    # Diary content owned by the user
    notes: Optional[str] = Field(default=None, description="User notes")
    mood: Optional[int] = Field(default=None, ge=1, le=5, description="Mood rating (1-5)")
    images: list[str] = Field(default_factory=list, description="Attached image references")

    model_config = {"frozen": True}

    @property
    def stats(self) -> DayStats:
        return DayStats(
            trades_count=self.trades_count,
            daily_pnl=self.daily_pnl,
            winning_trades=self.winning_trades,
            losing_trades=self.losing_trades,
            win_rate=self.win_rate,
        )

    @property
    def has_stats(self) -> bool:
        """True if any derived field carries a non-empty value."""
        return (
            self.trades_count > 0
            or self.daily_pnl is not None
            or self.winning_trades > 0
            or self.losing_trades > 0
            or self.win_rate is not None
        )

    @property
    def has_diary(self) -> bool:
        """True if the user wrote notes, picked a mood or attached images."""
        return bool(self.notes) or self.mood is not None or bool(self.images)

    def with_stats(self, stats: DayStats) -> "CalendarDayAggregate":
        """Return a copy with the derived fields replaced."""
        return self.model_copy(update=stats.model_dump())
