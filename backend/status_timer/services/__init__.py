# Services - Business Logic Layer
"""
Status Timer Services Module.

This module provides the core business logic for:
- Business time measurement in the reference timezone
- Status thresholds and tracking data
- Jira reconciliation and the alert pass
- Slack notification delivery
- Background Job Scheduling
"""

# Business Time Calculations
from .business_time import (
    REFERENCE_TIMEZONE,
    is_weekend,
    business_duration,
    is_notification_window_open,
    to_minutes,
    to_hours,
    to_business_days,
)

# Thresholds
from .thresholds import (
    DEFAULT_THRESHOLDS,
    DEFAULT_THRESHOLD_MINUTES,
    ThresholdPolicy,
)

# Tracking Data
from .persistence import (
    PersistenceGuard,
    SaveOutcome,
    JsonSnapshotPersistence,
)
from .tracking_store import (
    ReconcileSummary,
    TrackingStore,
    find_state_entry_time,
)

# External Systems
from .jira_client import IssueSource, JiraIssueSource
from .slack_client import SlackMessage, NotificationTransport, SlackTransport

# Notification Services
from .notifications import (
    StatusAlert,
    SlackTemplates,
    NotificationService,
)

# Alerting and Commands
from .reconciliation import TrackingReconciler
from .alert_engine import (
    REMINDER_INTERVAL,
    AlertEngine,
    AlertRunSummary,
    should_fire,
)
from .commands import CommandFacade, CommandResult, DurationReport
from .runtime import MonitorRuntime, build_runtime, get_runtime, set_runtime

# Background Job Scheduler
from .scheduler import (
    JobFailureMonitor,
    TimerJob,
    TimerScheduler,
    get_scheduler
)


__all__ = [
    # Business Time
    "REFERENCE_TIMEZONE",
    "is_weekend",
    "business_duration",
    "is_notification_window_open",
    "to_minutes",
    "to_hours",
    "to_business_days",

    # Thresholds
    "DEFAULT_THRESHOLDS",
    "DEFAULT_THRESHOLD_MINUTES",
    "ThresholdPolicy",

    # Tracking Data
    "PersistenceGuard",
    "SaveOutcome",
    "JsonSnapshotPersistence",
    "ReconcileSummary",
    "TrackingStore",
    "find_state_entry_time",

    # External Systems
    "IssueSource",
    "JiraIssueSource",
    "SlackMessage",
    "NotificationTransport",
    "SlackTransport",

    # Notifications
    "StatusAlert",
    "SlackTemplates",
    "NotificationService",

    # Alerting and Commands
    "TrackingReconciler",
    "REMINDER_INTERVAL",
    "AlertEngine",
    "AlertRunSummary",
    "should_fire",
    "CommandFacade",
    "CommandResult",
    "DurationReport",
    "MonitorRuntime",
    "build_runtime",
    "get_runtime",
    "set_runtime",

    # Scheduler
    "JobFailureMonitor",
    "TimerJob",
    "TimerScheduler",
    "get_scheduler",
]
