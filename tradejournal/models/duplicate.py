"""Duplicate classification and ingestion result models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from tradejournal.models.trade import Trade, TradeInput


class DuplicateTier(str, Enum):
    """Confidence tier assigned by the duplicate resolver."""

    EXACT = "EXACT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"

    @property
    def blocks_insert(self) -> bool:
        return self in (DuplicateTier.EXACT, DuplicateTier.HIGH)


TIER_CONFIDENCE = {
    DuplicateTier.EXACT: 1.0,
    DuplicateTier.HIGH: 0.9,
    DuplicateTier.MEDIUM: 0.7,
    DuplicateTier.LOW: 0.3,
    DuplicateTier.NONE: 0.0,
}


class DuplicateMatch(BaseModel):
    """Classification of a candidate trade against the ledger."""

    tier: DuplicateTier = Field(..., description="Confidence tier")
    confidence: float = Field(..., ge=0, le=1, description="Numeric confidence")
    reason: str = Field(default="", description="Human readable explanation")
    matched_trade: Optional[Trade] = Field(default=None, description="Closest existing trade")
    time_diff_seconds: Optional[float] = Field(
        default=None, ge=0, description="Entry time distance to the match"
    )
    price_diff_pct: Optional[float] = Field(
        default=None, ge=0, description="Entry price distance to the match in percent"
    )

    model_config = {"frozen": True}

    @property
    def is_duplicate(self) -> bool:
        return self.tier is not DuplicateTier.NONE


class DuplicateConflict(BaseModel):
    """Rejection returned instead of a write (HTTP 409 equivalent)."""

    tier: DuplicateTier = Field(..., description="EXACT or HIGH")
    confidence: float = Field(..., ge=0, le=1, description="Numeric confidence")
    reason: str = Field(..., description="Why the trade was rejected")
    matched_trade: Optional[Trade] = Field(default=None, description="Conflicting trade")

    model_config = {"frozen": True}

    @property
    def matched_trade_id(self) -> Optional[int]:
        return self.matched_trade.id if self.matched_trade else None

    @classmethod
    def from_match(cls, match: DuplicateMatch) -> "DuplicateConflict":
        return cls(
            tier=match.tier,
            confidence=match.confidence,
            reason=match.reason,
            matched_trade=match.matched_trade,
        )


class Accepted(BaseModel):
    """Successful write (HTTP 201 equivalent), possibly with an advisory."""

    trade: Trade = Field(..., description="Persisted trade")
    warning: Optional[DuplicateMatch] = Field(
        default=None, description="MEDIUM tier match the caller may surface"
    )

    model_config = {"frozen": True}

    @property
    def forced(self) -> bool:
        return self.trade.forced


class BatchRowResult(BaseModel):
    """Outcome of one row of a batch import."""

    index: int = Field(..., ge=0, description="Row position in the batch")
    trade_input: TradeInput = Field(..., description="Submitted row")
    match: Optional[DuplicateMatch] = Field(default=None, description="Advisory classification")
    trade: Optional[Trade] = Field(default=None, description="Persisted trade, if written")
    error: Optional[str] = Field(default=None, description="Storage error message")

    model_config = {"frozen": True}


class BatchImportReport(BaseModel):
    """Summary of a batch import."""

    total: int = Field(default=0, ge=0, description="Rows submitted")
    imported: list[BatchRowResult] = Field(default_factory=list)
    skipped: list[BatchRowResult] = Field(default_factory=list)
    conflicts: list[BatchRowResult] = Field(default_factory=list)
    warnings: list[BatchRowResult] = Field(default_factory=list)
    errors: list[BatchRowResult] = Field(default_factory=list)
    validate_only: bool = Field(default=False)
    needs_resolution: bool = Field(
        default=False, description="Prompt mode found conflicts and wrote nothing"
    )
