"""
Notification Service for the Status Timer.

Turns a fired alert into a Slack Block Kit message and hands it to the
transport. Provides:
- Message templates (first alert vs. daily reminder)
- Channel join before posting
- Delivery outcome reporting (never raises on transport failure)
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo
import logging

from status_timer.models.enums import AlertKind, DeliveryOutcome
from status_timer.models.schemas import LatestComment
from status_timer.services.business_time import (
    REFERENCE_TIMEZONE,
    to_business_days,
    to_minutes,
)
from status_timer.services.slack_client import NotificationTransport, SlackMessage


logger = logging.getLogger(__name__)


@dataclass
class StatusAlert:
    """Everything a status timer notification shows."""
    key: str
    state: str
    kind: AlertKind
    business_time_in_state: timedelta
    threshold: timedelta
    issue_url: str
    latest_comment: Optional[LatestComment] = None

    @property
    def is_first_alert(self) -> bool:
        return self.kind == AlertKind.FIRST_ALERT


def format_timestamp(value: datetime, tz: str = REFERENCE_TIMEZONE) -> str:
    """Human-readable timestamp in the reference timezone."""
    return value.astimezone(ZoneInfo(tz)).strftime("%b %d, %Y %I:%M %p %Z")


# ==========================================
# SLACK TEMPLATES
# ==========================================

class SlackTemplates:
    """Block Kit message definitions."""

    @classmethod
    def status_alert(cls, alert: StatusAlert) -> tuple[str, List[Dict[str, Any]]]:
        """Generate the status timer alert or reminder message."""
        if alert.is_first_alert:
            header = "⏰ Campaign Status Timer Alert"
            detail = f"*Alert:*\nExceeded time threshold of {round(alert.threshold.total_seconds() / 3600)} hours"
        else:
            header = "🔄 Campaign Status Reminder"
            detail = (
                f"*Reminder:*\nDaily reminder - issue has been in {alert.state} "
                f"for {to_business_days(alert.business_time_in_state)} business days"
            )

        blocks: List[Dict[str, Any]] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": header, "emoji": True}
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Issue:*\n<{alert.issue_url}|{alert.key}>"},
                    {"type": "mrkdwn", "text": f"*Campaign:*\n{alert.state}"},
                    {"type": "mrkdwn", "text": detail},
                    {
                        "type": "mrkdwn",
                        "text": (
                            f"*Business Time in Status:*\n{to_minutes(alert.business_time_in_state)} "
                            "minutes (excludes weekends)"
                        )
                    },
                ]
            },
        ]

        comment = alert.latest_comment
        if comment is not None:
            when = f" at {format_timestamp(comment.timestamp)}" if comment.timestamp else ""
            blocks.append({
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Latest Comment:*\n>{comment.text}\n_by {comment.author}{when}_"
                }
            })

        text = f"Campaign Status {'Alert' if alert.is_first_alert else 'Reminder'} for {alert.key}"
        return text, blocks


# ==========================================
# NOTIFICATION SERVICE
# ==========================================

class NotificationService:
    """Sends status alerts to the configured Slack channel."""

    def __init__(
        self,
        transport: Optional[NotificationTransport],
        channel_id: Optional[str]
    ):
        self.transport = transport
        self.channel_id = channel_id

    @property
    def enabled(self) -> bool:
        return bool(self.transport and self.channel_id)

    async def send_status_alert(self, alert: StatusAlert) -> DeliveryOutcome:
        """
        Post an alert. Transport failures are logged and reported as FAILED.
        """
        if not self.enabled:
            logger.warning(f"Slack is not configured; alert for {alert.key} not sent")
            return DeliveryOutcome.DISABLED

        text, blocks = SlackTemplates.status_alert(alert)
        label = "alert" if alert.is_first_alert else "reminder"

        try:
            await self.transport.join_channel(self.channel_id)
            delivered = await self.transport.post_message(
                SlackMessage(channel_id=self.channel_id, text=text, blocks=blocks)
            )
        except Exception as e:
            logger.error(f"❌ Failed to send campaign {label} for {alert.key}: {e}")
            return DeliveryOutcome.FAILED

        if not delivered:
            logger.error(f"❌ Slack rejected campaign {label} for {alert.key}")
            return DeliveryOutcome.FAILED

        logger.info(f"✅ Sent campaign {label} to Slack for {alert.key}")
        return DeliveryOutcome.SENT
