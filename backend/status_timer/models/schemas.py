"""
Pydantic schemas for data validation and serialization.
Covers tracking records, the persisted snapshot, and the issue-tracker
observations that feed reconciliation.
"""
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize timestamps to UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ==========================================
# TRACKING SCHEMAS
# ==========================================

class LatestComment(BaseModel):
    """Most recent comment on an issue, cached for alert messages."""
    model_config = ConfigDict(frozen=True)

    text: str = ""
    author: str = "Unknown"
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value):
        return _ensure_aware(value)


class TrackingRecord(BaseModel):
    """
    One tracked issue and the status it is being timed in.

    JSON field names follow the persisted snapshot layout (camelCase);
    Python code uses the snake_case attribute names.
    """
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., min_length=1)
    state: str
    start_time: datetime = Field(..., alias="startTime")
    last_alert_time: Optional[datetime] = Field(None, alias="lastAlertTime")
    summary: str = ""
    assignee: Optional[str] = None
    latest_comment: Optional[LatestComment] = Field(None, alias="latestComment")

    @field_validator("start_time", "last_alert_time")
    @classmethod
    def ensure_aware(cls, value):
        return _ensure_aware(value)

    def to_snapshot_entry(self) -> dict:
        """Serialize for the snapshot file (key lives in the enclosing map)."""
        exclude = {"key"}
        if self.latest_comment is None:
            exclude.add("latest_comment")
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)

    @classmethod
    def from_snapshot_entry(cls, key: str, entry: dict) -> "TrackingRecord":
        return cls.model_validate({**entry, "key": key})


class TrackingSnapshot(BaseModel):
    """The persisted document: one collection of records keyed by issue key."""
    campaign: dict[str, dict] = Field(default_factory=dict)

    @classmethod
    def from_records(cls, records: dict[str, TrackingRecord]) -> "TrackingSnapshot":
        return cls(campaign={key: record.to_snapshot_entry() for key, record in records.items()})

    def to_records(self) -> dict[str, TrackingRecord]:
        return {
            key: TrackingRecord.from_snapshot_entry(key, entry)
            for key, entry in self.campaign.items()
        }


# ==========================================
# ISSUE TRACKER OBSERVATIONS
# ==========================================

class IssueSnapshot(BaseModel):
    """An active issue as listed by the issue tracker."""
    key: str
    state: str
    created_at: datetime
    summary: str = ""
    assignee: Optional[str] = None

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, value):
        return _ensure_aware(value)


class StateChange(BaseModel):
    """A single field transition from an issue's changelog."""
    timestamp: datetime
    field: str
    new_value: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value):
        return _ensure_aware(value)


class ObservedItem(BaseModel):
    """
    An active issue plus its status history, ready for reconciliation.

    state_changes is None when the history lookup failed, which is
    different from an issue with no recorded transitions.
    """
    key: str
    state: str
    created_at: datetime
    summary: str = ""
    assignee: Optional[str] = None
    state_changes: Optional[list[StateChange]] = None

    @field_validator("created_at")
    @classmethod
    def ensure_aware(cls, value):
        return _ensure_aware(value)

    @classmethod
    def from_issue(
        cls,
        issue: IssueSnapshot,
        state_changes: Optional[list[StateChange]]
    ) -> "ObservedItem":
        return cls(
            key=issue.key,
            state=issue.state,
            created_at=issue.created_at,
            summary=issue.summary,
            assignee=issue.assignee,
            state_changes=state_changes,
        )


# ==========================================
# COMMAND SCHEMAS
# ==========================================

class ThresholdUpdateRequest(BaseModel):
    """Request body for changing a status threshold."""
    state: str = Field(..., min_length=1, description="Status name as configured")
    minutes: Optional[int] = Field(None, description="Minutes before alerting; null disables the timer")


class ThresholdEntry(BaseModel):
    """One enabled threshold, as listed by the facade."""
    state: str
    minutes: int
    hours: float
