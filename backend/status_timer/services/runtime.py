"""
Service wiring.

Builds the store, policy, Jira/Slack adapters and the passes that use them
from Settings. Collaborators can be injected, which is how the tests run
the whole stack without network access.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
import logging

from status_timer.core.clock import Clock, SystemClock
from status_timer.core.config import Settings, settings as default_settings
from status_timer.services.alert_engine import AlertEngine
from status_timer.services.commands import CommandFacade
from status_timer.services.jira_client import IssueSource, JiraIssueSource
from status_timer.services.notifications import NotificationService
from status_timer.services.persistence import JsonSnapshotPersistence, PersistenceGuard
from status_timer.services.reconciliation import TrackingReconciler
from status_timer.services.slack_client import NotificationTransport, SlackTransport
from status_timer.services.thresholds import ThresholdPolicy
from status_timer.services.tracking_store import TrackingStore


logger = logging.getLogger(__name__)


@dataclass
class MonitorRuntime:
    """Everything the scheduler jobs and API routes operate on."""
    settings: Settings
    policy: ThresholdPolicy
    store: TrackingStore
    notifier: NotificationService
    commands: CommandFacade
    issue_source: Optional[IssueSource] = None
    reconciler: Optional[TrackingReconciler] = None
    engine: Optional[AlertEngine] = None

    async def reconcile(self) -> dict:
        return await self.commands.force_reload()

    async def check_alerts(self) -> dict:
        if self.engine is None:
            logger.warning("Alert check skipped: Jira is not configured")
            return {"skipped": True, "reason": "jira_not_configured"}
        return (await self.engine.check_alerts()).to_dict()

    async def aclose(self) -> None:
        for adapter in (self.issue_source, self.notifier.transport):
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()


def build_runtime(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    issue_source: Optional[IssueSource] = None,
    transport: Optional[NotificationTransport] = None
) -> MonitorRuntime:
    settings = settings or default_settings
    clock = clock or SystemClock()

    policy = ThresholdPolicy.from_overrides(settings.threshold_overrides)
    persistence = JsonSnapshotPersistence(
        path=settings.tracking_file_path,
        fallback_path=settings.fallback_tracking_path,
        guard=PersistenceGuard(timeout_seconds=settings.lock_timeout_seconds),
    )
    store = TrackingStore(persistence, policy)

    if issue_source is None and settings.jira_enabled:
        issue_source = JiraIssueSource(
            host=settings.jira_host,
            email=settings.jira_email,
            api_token=settings.jira_api_token,
            project=settings.jira_project,
            timeout_seconds=settings.http_timeout_seconds,
            max_results=settings.jira_max_results,
        )

    if transport is None and settings.slack_bot_token:
        transport = SlackTransport(
            bot_token=settings.slack_bot_token,
            base_url=settings.slack_api_base_url,
            timeout_seconds=settings.http_timeout_seconds,
        )

    notifier = NotificationService(transport, settings.slack_alerts_channel)

    reconciler = None
    engine = None
    if issue_source is not None:
        reconciler = TrackingReconciler(issue_source, store)
        engine = AlertEngine(
            store=store,
            policy=policy,
            issue_source=issue_source,
            notifier=notifier,
            browse_url=getattr(issue_source, "browse_url", None)
            or (lambda key: f"https://{settings.jira_host}/browse/{key}"),
            clock=clock,
            reminder_interval=timedelta(hours=settings.reminder_interval_hours),
            tz=settings.reference_timezone,
        )

    commands = CommandFacade(
        store=store,
        policy=policy,
        reconciler=reconciler,
        clock=clock,
        tz=settings.reference_timezone,
    )

    return MonitorRuntime(
        settings=settings,
        policy=policy,
        store=store,
        notifier=notifier,
        commands=commands,
        issue_source=issue_source,
        reconciler=reconciler,
        engine=engine,
    )


# ==========================================
# GLOBAL RUNTIME INSTANCE
# ==========================================

_runtime: Optional[MonitorRuntime] = None


def get_runtime() -> MonitorRuntime:
    """Get (building on first use) the process-wide runtime."""
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def set_runtime(runtime: Optional[MonitorRuntime]) -> None:
    """Replace the process-wide runtime (startup and tests)."""
    global _runtime
    _runtime = runtime
