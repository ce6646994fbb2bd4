"""
Tracking Store for the Status Timer.

Sole owner of the issue key → TrackingRecord map. Reconciliation merges a
fresh view of the issue tracker into the map; the alert engine records
alert times and cached comments through the mutators here. Every change
ends in a full snapshot write through JsonSnapshotPersistence.

Invariant: a record exists iff its issue was seen in the latest
reconciliation AND its status has an enabled threshold.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence
import logging

from status_timer.models.schemas import (
    LatestComment,
    ObservedItem,
    StateChange,
    TrackingRecord,
)
from status_timer.services.persistence import JsonSnapshotPersistence, SaveOutcome
from status_timer.services.thresholds import ThresholdPolicy


logger = logging.getLogger(__name__)


STATUS_FIELD = "status"


@dataclass
class ReconcileSummary:
    """What a reconciliation pass did to the store."""
    tracked: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)  # Timer disabled for status
    evicted: list[str] = field(default_factory=list)
    saved: bool = False

    def to_dict(self) -> dict:
        return {
            "tracked_count": len(self.tracked),
            "tracked": self.tracked,
            "skipped": self.skipped,
            "evicted": self.evicted,
            "saved": self.saved,
        }


def find_state_entry_time(
    state: str,
    created_at: datetime,
    state_changes: Sequence[StateChange],
    status_field: str = STATUS_FIELD
) -> datetime:
    """
    Most recent transition into `state`, never earlier than creation.

    Falls back to created_at when no matching transition exists.
    """
    entered = created_at
    for change in state_changes:
        if change.field != status_field or change.new_value != state:
            continue
        if change.timestamp > entered:
            entered = change.timestamp
    return entered


class TrackingStore:
    """In-memory tracking map with durable snapshot persistence."""

    def __init__(
        self,
        persistence: JsonSnapshotPersistence,
        policy: ThresholdPolicy
    ):
        self.persistence = persistence
        self.policy = policy
        self._records: dict[str, TrackingRecord] = {}
        self.last_save: Optional[SaveOutcome] = None

    # ------------------------------------------
    # QUERIES
    # ------------------------------------------

    def get(self, key: str) -> Optional[TrackingRecord]:
        record = self._records.get(key)
        return record.model_copy() if record else None

    def all(self) -> list[TrackingRecord]:
        """Snapshot of every record."""
        return [record.model_copy() for record in self._records.values()]

    def keys(self) -> list[str]:
        return list(self._records)

    def __contains__(self, key: str) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------
    # RECONCILIATION
    # ------------------------------------------

    def reconcile(self, observed: Sequence[ObservedItem]) -> ReconcileSummary:
        """
        Merge freshly observed issues into the store.

        - Issues in a disabled status are skipped (and thereby evicted)
        - Existing records keep last_alert_time and latest_comment
        - start_time comes from the changelog; see _resolve_start_time
        - Keys not observed are evicted
        - The map is rebuilt fully, then persisted once
        """
        summary = ReconcileSummary()
        rebuilt: dict[str, TrackingRecord] = {}

        for item in observed:
            if not self.policy.is_timed(item.state):
                logger.info(f"⏭️ Skipping tracking for {item.key}: {item.state} (timer disabled for this status)")
                summary.skipped.append(item.key)
                continue

            existing = self._records.get(item.key)
            start_time = self._resolve_start_time(item, existing)

            rebuilt[item.key] = TrackingRecord(
                key=item.key,
                state=item.state,
                start_time=start_time,
                last_alert_time=existing.last_alert_time if existing else None,
                summary=item.summary,
                assignee=item.assignee,
                latest_comment=existing.latest_comment if existing else None,
            )
            summary.tracked.append(item.key)
            logger.debug(f"⏱️ Tracking {item.key}: {item.state} (since {start_time.isoformat()})")

        for key in self._records:
            if key not in rebuilt:
                logger.info(f"🧹 Removing stale campaign tracking for {key}")
                summary.evicted.append(key)

        self._records = rebuilt
        summary.saved = self.save()
        return summary

    @staticmethod
    def _resolve_start_time(item: ObservedItem, existing: Optional[TrackingRecord]) -> datetime:
        if item.state_changes is not None:
            return find_state_entry_time(item.state, item.created_at, item.state_changes)

        # History lookup failed: keep the stored start time, even across a status change.
        if existing is not None:
            return existing.start_time
        return item.created_at

    # ------------------------------------------
    # MUTATIONS
    # ------------------------------------------

    def mark_alerted(self, key: str, at: datetime) -> bool:
        """Record that an alert fired. Does not persist."""
        record = self._records.get(key)
        if record is None:
            return False
        self._records[key] = record.model_copy(update={"last_alert_time": at})
        return True

    def cache_comment(self, key: str, comment: LatestComment) -> bool:
        """
        Cache the latest comment on a record. Does not persist.

        Returns:
            True if the cached comment changed
        """
        record = self._records.get(key)
        if record is None or record.latest_comment == comment:
            return False
        self._records[key] = record.model_copy(update={"latest_comment": comment})
        return True

    def evict(self, key: str, persist: bool = True) -> bool:
        """Remove a record; persists immediately unless told otherwise."""
        if key not in self._records:
            return False
        del self._records[key]
        logger.info(f"🧹 Cleared campaign tracking for {key}")
        if persist:
            self.save()
        return True

    def clear(self, key: str) -> bool:
        """Explicitly stop tracking an issue."""
        return self.evict(key, persist=True)

    # ------------------------------------------
    # PERSISTENCE
    # ------------------------------------------

    def load(self) -> bool:
        """
        Replace the in-memory map with the durable snapshot.

        Leaves the map untouched if the snapshot could not be read.
        """
        records = self.persistence.read()
        if records is None:
            return False
        self._records = records
        return True

    def save(self) -> bool:
        self.last_save = self.persistence.write(self._records)
        return self.last_save.success
