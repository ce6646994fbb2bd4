"""
Command facade over the tracking store and threshold policy.

These are the operations behind the chat/REST commands:
- check how long an issue has been in its status
- update or list status thresholds
- force a reload from Jira
- stop tracking an issue
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

from status_timer.core.clock import Clock, SystemClock
from status_timer.core.exceptions import ValidationError
from status_timer.services.business_time import (
    REFERENCE_TIMEZONE,
    business_duration,
    is_weekend,
    to_hours,
    to_minutes,
)
from status_timer.services.notifications import format_timestamp
from status_timer.services.reconciliation import TrackingReconciler
from status_timer.services.thresholds import ThresholdPolicy
from status_timer.services.tracking_store import TrackingStore


logger = logging.getLogger(__name__)


@dataclass
class DurationReport:
    """How long an issue has been in its current status."""
    key: str
    state: str
    start_time: datetime
    total_minutes: int
    total_hours: float
    business_minutes: int
    business_hours: float
    last_alert_time: Optional[datetime]
    timer_paused: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "state": self.state,
            "start_time": self.start_time.isoformat(),
            "total_minutes": self.total_minutes,
            "total_hours": self.total_hours,
            "business_minutes": self.business_minutes,
            "business_hours": self.business_hours,
            "last_alert_time": self.last_alert_time.isoformat() if self.last_alert_time else None,
            "timer_paused": self.timer_paused,
        }


@dataclass
class CommandResult:
    ok: bool
    message: str
    reason: Optional[str] = None  # "unknown_state" or "invalid_minutes" on rejection


def format_duration_report(report: DurationReport) -> str:
    last_alert = format_timestamp(report.last_alert_time) if report.last_alert_time else "No alerts sent"
    currently = "🔕 Weekend - timer paused" if report.timer_paused else "⏱️ Weekday - timer active"
    return "\n".join([
        f"⏱️ Status Duration for {report.key}",
        f"Campaign Status: {report.state}",
        f"Started At: {format_timestamp(report.start_time)}",
        f"Total Time in Status: {report.total_minutes} minutes ({report.total_hours} hours)",
        f"Business Time in Status: {report.business_minutes} minutes ({report.business_hours} hours) - excludes weekends",
        f"Last Alert: {last_alert}",
        f"Currently: {currently}",
    ])


class CommandFacade:
    """Query and mutation operations exposed to the command surface."""

    def __init__(
        self,
        store: TrackingStore,
        policy: ThresholdPolicy,
        reconciler: Optional[TrackingReconciler] = None,
        clock: Optional[Clock] = None,
        tz: str = REFERENCE_TIMEZONE
    ):
        self.store = store
        self.policy = policy
        self.reconciler = reconciler
        self.clock = clock or SystemClock()
        self.tz = tz

    def query_duration(self, key: str) -> Optional[DurationReport]:
        """Duration report for an issue, or None if it is not tracked."""
        record = self.store.get(key.strip())
        if record is None:
            return None

        now = self.clock.now()
        total = max(now - record.start_time, timedelta(0))
        business = business_duration(record.start_time, now, self.tz)
        return DurationReport(
            key=record.key,
            state=record.state,
            start_time=record.start_time,
            total_minutes=to_minutes(total),
            total_hours=to_hours(total),
            business_minutes=to_minutes(business),
            business_hours=to_hours(business),
            last_alert_time=record.last_alert_time,
            timer_paused=is_weekend(now, self.tz),
        )

    def update_threshold(self, state: str, minutes: Any) -> CommandResult:
        """
        Change the threshold for a configured status.

        Unknown statuses and invalid minutes are rejected without changes.
        """
        try:
            parsed = _parse_minutes(minutes)
            updated = self.policy.update(state, parsed)
        except ValidationError as e:
            return CommandResult(ok=False, message=f"Error: {e.message}", reason="invalid_minutes")

        if not updated:
            return CommandResult(
                ok=False,
                message=f'Warning: "{state}" is not a valid Campaign Status',
                reason="unknown_state"
            )

        if parsed is None:
            return CommandResult(ok=True, message=f'Disabled timer for "{state}"')
        return CommandResult(
            ok=True,
            message=f'Updated threshold for "{state}" to {parsed} minutes ({parsed / 60:.1f} hours)'
        )

    def list_thresholds(self) -> List[Tuple[str, int]]:
        return self.policy.list()

    async def force_reload(self) -> Dict[str, Any]:
        if self.reconciler is None:
            logger.warning("Reload requested but Jira is not configured; reloading snapshot")
            return {"source": "SNAPSHOT", "loaded": self.store.load(), "tracked_count": len(self.store)}
        return await self.reconciler.run()

    def clear(self, key: str) -> bool:
        return self.store.clear(key.strip())


def _parse_minutes(minutes: Any) -> Optional[int]:
    if minutes is None:
        return None
    if isinstance(minutes, bool):
        raise ValidationError(f'"{minutes}" is not a valid number of minutes', field="minutes", value=minutes)
    if isinstance(minutes, int):
        return minutes
    try:
        return int(str(minutes).strip())
    except ValueError:
        raise ValidationError(f'"{minutes}" is not a valid number of minutes', field="minutes", value=minutes)
