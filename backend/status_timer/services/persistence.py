"""
Durable snapshot storage for tracking data.

The snapshot is a JSON document:

    {"campaign": {"AS-123": {"state": ..., "startTime": ..., "lastAlertTime": ...,
                             "summary": ..., "assignee": ..., "latestComment": {...}}}}

Writes are crash-safe: the document goes to a side file, is parsed back,
and then atomically replaces the snapshot. If the replace fails, a
best-effort copy goes to a secondary location and the failure is reported
to the caller instead of raised.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional
import json
import logging
import os
import threading

from pydantic import ValidationError as PydanticValidationError

from status_timer.core.exceptions import PersistenceError
from status_timer.models.schemas import TrackingRecord, TrackingSnapshot


logger = logging.getLogger(__name__)


class PersistenceGuard:
    """
    Mutual exclusion for snapshot reads and writes.

    Process-local: the snapshot is only shared by one service process.
    Failing to acquire within the timeout means the caller skips its
    operation rather than waiting indefinitely.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self.timeout_seconds = timeout_seconds
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        acquired = self._lock.acquire(timeout=self.timeout_seconds)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()

    @property
    def locked(self) -> bool:
        return self._lock.locked()


@dataclass
class SaveOutcome:
    """Result of a snapshot write."""
    success: bool
    path: Optional[Path] = None
    used_fallback: bool = False
    skipped: bool = False
    error: Optional[str] = None


class JsonSnapshotPersistence:
    """Reads and writes the tracking snapshot file."""

    def __init__(
        self,
        path: Path | str,
        fallback_path: Path | str = "/tmp/tracking.json",
        guard: Optional[PersistenceGuard] = None
    ):
        self.path = Path(path)
        self.fallback_path = Path(fallback_path)
        self.guard = guard or PersistenceGuard()

    @property
    def temp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def _ensure_directory(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"❌ Error creating data directory {self.path.parent}: {e}")

    # ------------------------------------------
    # READ
    # ------------------------------------------

    def read(self) -> Optional[dict[str, TrackingRecord]]:
        """
        Load records from the snapshot.

        Returns:
            Records keyed by issue key, or None when nothing usable was
            read (lock busy, file missing/empty, or unparseable)
        """
        with self.guard.hold() as acquired:
            if not acquired:
                logger.warning("⚠️ Could not acquire lock, using cached data")
                return None
            return self._read_unlocked()

    def _read_unlocked(self) -> Optional[dict[str, TrackingRecord]]:
        self._ensure_directory()

        if not self.path.exists():
            logger.info(f"📝 No existing tracking file found at {self.path}")
            return None

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"❌ Error reading tracking file {self.path}: {e}")
            return None

        if not raw.strip():
            logger.warning("⚠️ Tracking file is empty, initializing new data")
            return None

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"❌ Error parsing tracking data: {e}")
            return None

        if not isinstance(document, dict):
            logger.warning("⚠️ Invalid tracking data format, initializing new data")
            return None

        records: dict[str, TrackingRecord] = {}
        for key, entry in (document.get("campaign") or {}).items():
            if not isinstance(entry, dict):
                continue
            try:
                records[key] = TrackingRecord.from_snapshot_entry(key, entry)
            except PydanticValidationError as e:
                logger.error(f"❌ Skipping malformed tracking entry {key}: {e}")

        logger.info(f"📥 Loaded tracking data from file: {len(records)} campaigns")
        return records

    # ------------------------------------------
    # WRITE
    # ------------------------------------------

    def write(self, records: dict[str, TrackingRecord]) -> SaveOutcome:
        """
        Persist the full record map.

        Never raises: failures are logged and described in the outcome.
        """
        with self.guard.hold() as acquired:
            if not acquired:
                logger.warning("⚠️ Could not acquire lock for saving, will retry on next update")
                return SaveOutcome(success=False, skipped=True, error="lock unavailable")
            return self._write_unlocked(records)

    def _write_unlocked(self, records: dict[str, TrackingRecord]) -> SaveOutcome:
        self._ensure_directory()
        payload = json.dumps(
            TrackingSnapshot.from_records(records).model_dump(mode="json"),
            indent=2
        )

        try:
            self._write_atomic(payload)
            logger.info(f"💾 Saved tracking data: {len(records)} campaigns to {self.path}")
            return SaveOutcome(success=True, path=self.path)
        except PersistenceError as e:
            logger.error(f"❌ Error writing tracking file: {e.message} {e.details}")
            return self._write_fallback(payload, e.message)

    def _write_atomic(self, payload: str) -> None:
        temp_path = self.temp_path
        try:
            temp_path.write_text(payload, encoding="utf-8")

            written = json.loads(temp_path.read_text(encoding="utf-8"))
            if not isinstance(written, dict):
                self._discard_temp()
                raise PersistenceError(
                    "Failed to write valid data to temporary file",
                    path=str(temp_path)
                )

            os.replace(temp_path, self.path)
        except (OSError, json.JSONDecodeError) as e:
            self._discard_temp()
            raise PersistenceError(
                "Could not replace tracking snapshot",
                path=str(self.path),
                original_error=str(e)
            ) from e

        if not self.path.exists():
            raise PersistenceError("File does not exist after save operation", path=str(self.path))

    def _discard_temp(self) -> None:
        try:
            self.temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"⚠️ Could not remove temporary file {self.temp_path}: {e}")

    def _write_fallback(self, payload: str, error: str) -> SaveOutcome:
        try:
            self.fallback_path.write_text(payload, encoding="utf-8")
            logger.warning(f"💾 Saved tracking data to fallback location: {self.fallback_path}")
            return SaveOutcome(
                success=False,
                path=self.fallback_path,
                used_fallback=True,
                error=error
            )
        except OSError as e:
            logger.error(f"❌ Failed to save tracking data to fallback location: {e}")
            return SaveOutcome(success=False, error=f"{error}; fallback failed: {e}")
