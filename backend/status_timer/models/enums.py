"""
Enum types shared by the alerting and reporting services.
"""
from enum import Enum


class AlertKind(str, Enum):
    """Whether an alert is the first for a record or a repeating reminder."""
    FIRST_ALERT = "FIRST_ALERT"
    REMINDER = "REMINDER"


class DeliveryOutcome(str, Enum):
    """What happened to the notification for a fired alert."""
    SENT = "SENT"
    SUPPRESSED = "SUPPRESSED"  # Notification gate closed (weekend)
    FAILED = "FAILED"
    DISABLED = "DISABLED"  # No transport configured


class SnapshotSource(str, Enum):
    """Where the tracking map came from after a reconciliation pass."""
    ISSUE_TRACKER = "ISSUE_TRACKER"
    SNAPSHOT = "SNAPSHOT"
