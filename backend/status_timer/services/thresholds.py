"""
Status threshold policy.

Maps a campaign status to the business time it may sit in that status
before an alert fires. A threshold of None disables the timer for the
status entirely: such issues are never tracked.
"""
from datetime import timedelta
from typing import Mapping, Optional
import logging

from status_timer.core.exceptions import ValidationError


logger = logging.getLogger(__name__)


# Status names are matched by prefix because Jira truncates long names.
DEFAULT_THRESHOLDS: dict[str, Optional[int]] = {
    "1: Lander URL delivery": None,
    "2: Creative Delivery (video, i": None,
    "3: Angle (copy y headline) cre": None,
    "4: Campaign creation": 1440,       # 24 hours
    "5: Submission Review": 1440,       # 24 hours
    "6: Live - FASE1-5": 12960,         # 9 days
    "7: mediabuyer handout": None,
}

# Applied to statuses missing from the table.
DEFAULT_THRESHOLD_MINUTES = 5


class ThresholdPolicy:
    """Runtime-mutable status → threshold table."""

    def __init__(
        self,
        thresholds: Optional[Mapping[str, Optional[int]]] = None,
        default_minutes: int = DEFAULT_THRESHOLD_MINUTES
    ):
        source = DEFAULT_THRESHOLDS if thresholds is None else thresholds
        self._thresholds: dict[str, Optional[int]] = dict(source)
        self.default_minutes = default_minutes

    @classmethod
    def from_overrides(cls, overrides: Optional[Mapping[str, Optional[int]]] = None) -> "ThresholdPolicy":
        """Defaults with configured overrides merged on top."""
        table = dict(DEFAULT_THRESHOLDS)
        for state, minutes in (overrides or {}).items():
            _validate_minutes(state, minutes)
            table[state] = minutes
        return cls(table)

    def _match(self, state: str) -> Optional[str]:
        """Find the table key for a status name (exact first, then prefix)."""
        if state in self._thresholds:
            return state

        normalized = state.strip().upper()
        for key in self._thresholds:
            if normalized.startswith(key.upper()):
                return key
        return None

    def minutes_for(self, state: str) -> Optional[int]:
        """Threshold in minutes, or None when the timer is disabled."""
        key = self._match(state)
        if key is None:
            return self.default_minutes
        return self._thresholds[key]

    def threshold_for(self, state: str) -> Optional[timedelta]:
        """
        Threshold for a status as a duration.

        Returns:
            timedelta, or None if the status is not timed
        """
        minutes = self.minutes_for(state)
        if minutes is None:
            return None
        return timedelta(minutes=minutes)

    def is_timed(self, state: str) -> bool:
        return self.minutes_for(state) is not None

    def update(self, state: str, minutes: Optional[int]) -> bool:
        """
        Replace the threshold for an already-configured status.

        Unknown statuses are left alone and a warning is logged.

        Returns:
            True if the table changed
        """
        if state not in self._thresholds:
            logger.warning(f'"{state}" is not a valid Campaign Status')
            return False

        _validate_minutes(state, minutes)
        self._thresholds[state] = minutes
        logger.info(f'Updated threshold for "{state}" to {minutes} minutes')
        return True

    def list(self) -> list[tuple[str, int]]:
        """Enabled thresholds in table order."""
        return [
            (state, minutes)
            for state, minutes in self._thresholds.items()
            if minutes is not None
        ]

    def __contains__(self, state: str) -> bool:
        return state in self._thresholds


def _validate_minutes(state: str, minutes: Optional[int]) -> None:
    if minutes is None:
        return
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise ValidationError(
            f'Threshold for "{state}" must be a whole number of minutes',
            field="minutes",
            value=minutes
        )
    if minutes < 0:
        raise ValidationError(
            f'Threshold for "{state}" cannot be negative',
            field="minutes",
            value=minutes
        )
