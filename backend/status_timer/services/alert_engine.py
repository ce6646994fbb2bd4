"""
Alert Engine for the Status Timer.

Runs once per tick over every tracked issue:
1. Drop records whose issue no longer exists in Jira
2. Measure business time in the current status (weekends excluded)
3. Fire when the status threshold is exceeded, then remind every
   24 business hours
4. Refresh the cached latest comment
5. Notify Slack, unless the weekend notification gate is closed

Bookkeeping policy: last_alert_time advances whenever an alert fires, even
when delivery is muted for the weekend or the transport fails. A flaky
transport therefore cannot cause an alert storm, and Monday does not bring
a burst of missed weekend alerts.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from status_timer.core.clock import Clock, SystemClock
from status_timer.core.exceptions import IssueNotFoundError, IssueSourceError, TimerException
from status_timer.models.enums import AlertKind, DeliveryOutcome
from status_timer.models.schemas import TrackingRecord
from status_timer.services.business_time import (
    REFERENCE_TIMEZONE,
    business_duration,
    is_notification_window_open,
    to_hours,
    to_minutes,
)
from status_timer.services.jira_client import IssueSource
from status_timer.services.notifications import NotificationService, StatusAlert
from status_timer.services.thresholds import ThresholdPolicy
from status_timer.services.tracking_store import TrackingStore


logger = logging.getLogger(__name__)


REMINDER_INTERVAL = timedelta(hours=24)


@dataclass
class FiredAlert:
    key: str
    kind: AlertKind
    outcome: DeliveryOutcome


@dataclass
class AlertRunSummary:
    """What one alert pass did."""
    checked: int = 0
    fired: List[FiredAlert] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    notifications_open: bool = True
    saved: Optional[bool] = None

    def _count(self, predicate: Callable[[FiredAlert], bool]) -> int:
        return sum(1 for alert in self.fired if predicate(alert))

    @property
    def first_alerts(self) -> int:
        return self._count(lambda a: a.kind == AlertKind.FIRST_ALERT)

    @property
    def reminders(self) -> int:
        return self._count(lambda a: a.kind == AlertKind.REMINDER)

    @property
    def suppressed(self) -> int:
        return self._count(lambda a: a.outcome == DeliveryOutcome.SUPPRESSED)

    @property
    def delivery_failures(self) -> int:
        return self._count(lambda a: a.outcome == DeliveryOutcome.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checked": self.checked,
            "fired": len(self.fired),
            "first_alerts": self.first_alerts,
            "reminders": self.reminders,
            "suppressed": self.suppressed,
            "delivery_failures": self.delivery_failures,
            "evicted": self.evicted,
            "errors": self.errors,
            "notifications_open": self.notifications_open,
            "saved": self.saved,
        }


def should_fire(
    business_time_in_state: timedelta,
    threshold: timedelta,
    last_alert_time: Optional[datetime],
    time_since_last_alert: timedelta,
    reminder_interval: timedelta = REMINDER_INTERVAL
) -> bool:
    """Threshold crossed, and either never alerted or due for a reminder."""
    if business_time_in_state <= threshold:
        return False
    return last_alert_time is None or time_since_last_alert >= reminder_interval


class AlertEngine:
    """Decides which tracked issues need an alert and records the outcome."""

    def __init__(
        self,
        store: TrackingStore,
        policy: ThresholdPolicy,
        issue_source: IssueSource,
        notifier: NotificationService,
        browse_url: Callable[[str], str],
        clock: Optional[Clock] = None,
        reminder_interval: timedelta = REMINDER_INTERVAL,
        tz: str = REFERENCE_TIMEZONE
    ):
        self.store = store
        self.policy = policy
        self.issue_source = issue_source
        self.notifier = notifier
        self.browse_url = browse_url
        self.clock = clock or SystemClock()
        self.reminder_interval = reminder_interval
        self.tz = tz

    async def check_alerts(self) -> AlertRunSummary:
        now = self.clock.now()
        summary = AlertRunSummary(notifications_open=is_notification_window_open(now, self.tz))

        if not summary.notifications_open:
            logger.info("🔕 Weekend mode active: tracking pauses on weekends and Slack notifications are paused")

        records = self.store.all()
        logger.info(f"🔍 Checking {len(records)} tracked campaign statuses")

        changed = False
        for record in records:
            summary.checked += 1
            try:
                changed = await self._check_record(record, now, summary) or changed
            except TimerException as e:
                logger.error(f"❌ Error checking {record.key}: {e.message}")
                summary.errors.append(record.key)

        if changed:
            summary.saved = self.store.save()

        return summary

    async def _check_record(
        self,
        record: TrackingRecord,
        now: datetime,
        summary: AlertRunSummary
    ) -> bool:
        """Evaluate one record. Returns True if the store was mutated."""
        key = record.key

        try:
            exists = await self.issue_source.exists(key)
        except IssueSourceError as e:
            logger.error(f"❌ Could not confirm {key} still exists: {e.message}")
            summary.errors.append(key)
            return False

        if not exists:
            self.store.evict(key, persist=False)
            summary.evicted.append(key)
            return True

        business_time = business_duration(record.start_time, now, self.tz)
        logger.debug(
            f"🕒 Issue {key}: {to_hours(now - record.start_time)}h total, "
            f"{to_hours(business_time)}h business time in {record.state}"
        )

        threshold = self.policy.threshold_for(record.state)
        if threshold is None:
            return False

        if record.last_alert_time is None:
            since_last_alert = threshold
        else:
            since_last_alert = business_duration(record.last_alert_time, now, self.tz)

        fire = should_fire(
            business_time,
            threshold,
            record.last_alert_time,
            since_last_alert,
            self.reminder_interval,
        )

        changed = False
        latest_comment = record.latest_comment
        try:
            fetched = await self.issue_source.get_latest_comment(key)
        except (IssueSourceError, IssueNotFoundError) as e:
            logger.error(f"❌ Error fetching comments for {key}: {e.message}")
            fetched = None

        if fetched is not None:
            latest_comment = fetched
            changed = self.store.cache_comment(key, fetched)

        if not fire:
            return changed

        logger.info(
            f"⚠️ Campaign Status threshold exceeded for {key}: "
            f"{to_minutes(business_time)}m in {record.state} (business time only)"
        )
        self.store.mark_alerted(key, now)
        kind = AlertKind.FIRST_ALERT if record.last_alert_time is None else AlertKind.REMINDER

        if summary.notifications_open:
            outcome = await self.notifier.send_status_alert(StatusAlert(
                key=key,
                state=record.state,
                kind=kind,
                business_time_in_state=business_time,
                threshold=threshold,
                issue_url=self.browse_url(key),
                latest_comment=latest_comment,
            ))
        else:
            logger.info(f"🔕 Weekend mode: Skipped sending campaign alert to Slack for {key}")
            outcome = DeliveryOutcome.SUPPRESSED

        summary.fired.append(FiredAlert(key=key, kind=kind, outcome=outcome))
        return True
