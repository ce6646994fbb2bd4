"""
Business Time Calculator for the Status Timer.

Measures how long an issue has sat in a status while excluding weekends.
All calendar decisions are made in one reference timezone (US Eastern by
default), regardless of the host machine's local timezone.

Key Rules:
- Saturday and Sunday in the reference timezone contribute no time
- Partial first/last days only count the overlapping part
- Day boundaries are local midnights, so DST days are 23h or 25h long
- Slack notifications are muted while it is weekend in the reference timezone
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


REFERENCE_TIMEZONE = "America/New_York"

_ZERO = timedelta(0)


def _zone(tz: str | ZoneInfo) -> ZoneInfo:
    return tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)


def _as_utc(timestamp: datetime) -> datetime:
    """Normalize to an aware UTC datetime (naive input is taken as UTC)."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def _local_midnight_utc(day: date, zone: ZoneInfo) -> datetime:
    # Arithmetic between datetimes sharing a ZoneInfo ignores the offset,
    # so boundaries are converted to UTC first.
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


def is_weekend(timestamp: datetime, tz: str | ZoneInfo = REFERENCE_TIMEZONE) -> bool:
    """Check if an instant falls on Saturday or Sunday in the reference timezone."""
    local = _as_utc(timestamp).astimezone(_zone(tz))
    return local.weekday() >= 5


def business_duration(
    start: datetime,
    end: datetime,
    tz: str | ZoneInfo = REFERENCE_TIMEZONE
) -> timedelta:
    """
    Elapsed time between two instants, excluding weekend days.

    Walks [start, end) one reference-timezone calendar day at a time and
    adds the overlap of every weekday with the interval.

    Example:
        start = Friday 22:00 ET
        end   = Monday 02:00 ET
        result = 4 hours (2h Friday + 2h Monday)

    Args:
        start: Beginning of the interval
        end: End of the interval (exclusive)
        tz: Reference timezone name or ZoneInfo

    Returns:
        Business duration; zero when start >= end
    """
    start_utc = _as_utc(start)
    end_utc = _as_utc(end)

    if start_utc >= end_utc:
        return _ZERO

    zone = _zone(tz)
    day = start_utc.astimezone(zone).date()
    last_day = end_utc.astimezone(zone).date()

    total = _ZERO
    while day <= last_day:
        if day.weekday() < 5:
            day_start = _local_midnight_utc(day, zone)
            day_end = _local_midnight_utc(day + timedelta(days=1), zone)

            overlap = min(day_end, end_utc) - max(day_start, start_utc)
            if overlap > _ZERO:
                total += overlap

        day += timedelta(days=1)

    return total


def is_notification_window_open(
    now: Optional[datetime] = None,
    tz: str | ZoneInfo = REFERENCE_TIMEZONE
) -> bool:
    """
    Notification gate: closed while it is weekend in the reference timezone.

    Alert bookkeeping keeps running while the gate is closed; only the
    outbound message is skipped.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return not is_weekend(now, tz)


# ==========================================
# DISPLAY HELPERS
# ==========================================

def to_minutes(duration: timedelta) -> int:
    """Whole minutes, rounded."""
    return round(duration.total_seconds() / 60)


def to_hours(duration: timedelta) -> float:
    """Hours with one decimal."""
    return round(duration.total_seconds() / 3600, 1)


def to_business_days(duration: timedelta) -> float:
    """24-hour days with one decimal."""
    return round(duration.total_seconds() / 86400, 1)
