"""
Data models for the Status Timer service.
"""
from .enums import AlertKind, DeliveryOutcome, SnapshotSource
from .schemas import (
    LatestComment,
    TrackingRecord,
    TrackingSnapshot,
    IssueSnapshot,
    StateChange,
    ObservedItem,
    ThresholdUpdateRequest,
    ThresholdEntry,
)

__all__ = [
    "AlertKind",
    "DeliveryOutcome",
    "SnapshotSource",
    "LatestComment",
    "TrackingRecord",
    "TrackingSnapshot",
    "IssueSnapshot",
    "StateChange",
    "ObservedItem",
    "ThresholdUpdateRequest",
    "ThresholdEntry",
]
