"""Calendar reconciliation result models."""

from datetime import date as date_type
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tradejournal.models.calendar import DayStats

IssueType = Literal["orphaned_stats", "inconsistent_data"]
RepairAction = Literal["clear_stats", "delete", "update_stats"]


class CalendarIssue(BaseModel):
    """Drift found between one calendar entry and the trade ledger."""

    day: date_type = Field(..., description="Calendar day")
    type: IssueType = Field(..., description="Drift classification")
    action: RepairAction = Field(..., description="Repair the reconciler applies")
    message: str = Field(..., description="Human readable description")
    stored: DayStats = Field(..., description="Derived fields as stored")
    actual: DayStats = Field(..., description="Derived fields recomputed from trades")
    has_diary: bool = Field(default=False, description="Entry carries diary content")

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Classification of calendar entries without any repair."""

    is_valid: bool = Field(..., description="No issues were found")
    issues: list[CalendarIssue] = Field(default_factory=list)
    checked: int = Field(default=0, ge=0, description="Entries examined")
    cancelled: bool = Field(default=False, description="Stopped early by a cancel signal")


class ReconciliationReport(BaseModel):
    """Outcome of a reconciliation pass."""

    owner: str = Field(..., description="Journal account id")
    dry_run: bool = Field(default=False, description="Planned only, nothing written")
    checked: int = Field(default=0, ge=0, description="Entries examined")
    issues: list[CalendarIssue] = Field(default_factory=list)
    deleted: int = Field(default=0, ge=0, description="Entries removed")
    updated: int = Field(default=0, ge=0, description="Entries whose stats were rewritten")
    skipped: int = Field(
        default=0, ge=0, description="Entries changed concurrently, left for the next pass"
    )
    errors: list[str] = Field(default_factory=list, description="Per-day repair failures")
    cancelled: bool = Field(default=False, description="Stopped early by a cancel signal")
    last_day: Optional[date_type] = Field(
        default=None, description="Last day processed, for resuming a range"
    )

    @property
    def issues_found(self) -> int:
        return len(self.issues)

    def to_summary(self) -> dict:
        """Return the batch-call output shape."""
        return {
            "issues_found": self.issues_found,
            "deleted": self.deleted,
            "updated": self.updated,
            "errors": list(self.errors),
        }
