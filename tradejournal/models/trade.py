"""Trade data models."""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

Side = Literal["LONG", "SHORT"]
TradeStatus = Literal["OPEN", "CLOSED"]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive timestamps as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TradeInput(BaseModel):
    """Trade fields as submitted by a manual entry or an import row."""

    symbol: str = Field(..., min_length=1, description="Instrument symbol")
    side: Side = Field(..., description="Position side (LONG/SHORT)")
    quantity: float = Field(..., gt=0, description="Position size")
    entry_time: datetime = Field(..., description="Entry timestamp")
    entry_price: float = Field(..., gt=0, description="Entry price")
    exit_time: Optional[datetime] = Field(default=None, description="Exit timestamp")
    exit_price: Optional[float] = Field(default=None, gt=0, description="Exit price")
    fees: float = Field(default=0.0, ge=0, description="Total fees and commissions")
    multiplier: float = Field(default=1.0, gt=0, description="Contract point value")
    net_pnl: Optional[float] = Field(
        default=None, description="Net P&L if already known (e.g. broker export)"
    )
    source_tag: str = Field(default="manual", description="Provenance of the record")

    model_config = {"frozen": True}

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("symbol must not be blank")
        return value

    @field_validator("side", mode="before")
    @classmethod
    def _normalize_side(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("entry_time", "exit_time")
    @classmethod
    def _normalize_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_exit(self) -> "TradeInput":
        if self.exit_time is not None and self.exit_time < self.entry_time:
            raise ValueError("exit_time must not be before entry_time")
        return self


class Trade(BaseModel):
    """Represents one executed position stored in the ledger."""

    id: Optional[int] = Field(default=None, description="Database ID")
    owner: str = Field(..., min_length=1, description="Journal account id")
    symbol: str = Field(..., min_length=1, description="Instrument symbol (uppercase)")
    side: Side = Field(..., description="Position side (LONG/SHORT)")
    quantity: float = Field(..., gt=0, description="Position size")
    entry_time: datetime = Field(..., description="Entry timestamp (UTC)")
    entry_price: float = Field(..., gt=0, description="Entry price")
    exit_time: Optional[datetime] = Field(default=None, description="Exit timestamp (UTC)")
    exit_price: Optional[float] = Field(default=None, description="Exit price")
    gross_pnl: Optional[float] = Field(default=None, description="P&L before fees")
    fees: float = Field(default=0.0, description="Total fees and commissions")
    net_pnl: Optional[float] = Field(default=None, description="Realized P&L after fees")
    status: TradeStatus = Field(default="OPEN", description="OPEN until an exit is recorded")
    fingerprint: str = Field(..., min_length=1, description="Canonical identity hash")
    source_tag: str = Field(default="manual", description="Provenance of the record")
    forced: bool = Field(default=False, description="Inserted through a force-create override")
    duplicate_of: Optional[int] = Field(
        default=None, description="ID of the trade a forced row duplicates"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Row creation timestamp",
    )

    model_config = {"frozen": True}

    @field_validator("entry_time", "exit_time", "created_at")
    @classmethod
    def _normalize_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def is_closed(self) -> bool:
        return self.status == "CLOSED"
