"""
Reconciliation of tracking data against Jira.

Lists the project's issues, pulls each one's changelog, and hands the
result to the TrackingStore. If Jira cannot be listed at all, the store
falls back to the last durable snapshot instead of being emptied.
"""
from typing import Any, Dict
import logging

from status_timer.core.exceptions import IssueNotFoundError, IssueSourceError
from status_timer.models.enums import SnapshotSource
from status_timer.models.schemas import ObservedItem
from status_timer.services.jira_client import IssueSource
from status_timer.services.tracking_store import TrackingStore


logger = logging.getLogger(__name__)


class TrackingReconciler:
    """Runs one reconciliation pass."""

    def __init__(self, issue_source: IssueSource, store: TrackingStore):
        self.issue_source = issue_source
        self.store = store

    async def run(self) -> Dict[str, Any]:
        logger.info("🔄 Initializing tracking data from Jira...")

        try:
            issues = await self.issue_source.list_active_items()
        except IssueSourceError as e:
            logger.error(f"❌ Error initializing tracking data from Jira: {e.message} {e.details}")
            logger.warning("⚠️ Falling back to local tracking data")
            loaded = self.store.load()
            return {
                "source": SnapshotSource.SNAPSHOT.value,
                "loaded": loaded,
                "tracked_count": len(self.store),
                "error": e.message,
            }

        observed = []
        history_failures = []
        for issue in issues:
            if not self.store.policy.is_timed(issue.state):
                # No changelog needed; reconcile skips it.
                observed.append(ObservedItem.from_issue(issue, state_changes=[]))
                continue

            try:
                state_changes = await self.issue_source.get_state_change_history(issue.key)
            except (IssueSourceError, IssueNotFoundError) as e:
                logger.error(f"❌ Error retrieving history for {issue.key}: {e.message}")
                history_failures.append(issue.key)
                state_changes = None

            observed.append(ObservedItem.from_issue(issue, state_changes))

        summary = self.store.reconcile(observed)
        logger.info(
            f"✅ Jira tracking data initialized: {len(summary.tracked)} tracked, "
            f"{len(summary.skipped)} skipped, {len(summary.evicted)} removed"
        )

        return {
            "source": SnapshotSource.ISSUE_TRACKER.value,
            "history_failures": history_failures,
            **summary.to_dict(),
        }
