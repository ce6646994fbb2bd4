"""
Periodic driver for the Status Timer.

Two APScheduler interval jobs run through one monitored runner:
- alert_check: alert pass (every 5 minutes)
- tracking_reload: reconciliation with Jira (every 60 minutes)

Jobs never overlap (max_instances=1) and missed runs are coalesced. A job
that keeps failing is paused and announced in the alerts channel until it
succeeds again or is resumed by hand.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from status_timer.core.config import settings
from status_timer.services.runtime import MonitorRuntime, get_runtime
from status_timer.services.slack_client import SlackMessage


logger = logging.getLogger(__name__)

FAILURE_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class TimerJob:
    """One periodic pass over the runtime."""
    id: str
    name: str
    minutes: int
    run: Callable[[MonitorRuntime], Awaitable[Dict[str, Any]]]


def default_jobs(
    alert_check_minutes: Optional[int] = None,
    reconcile_minutes: Optional[int] = None
) -> List[TimerJob]:
    return [
        TimerJob(
            id="alert_check",
            name="Campaign Status Alert Check",
            minutes=alert_check_minutes or settings.alert_check_interval_minutes,
            run=lambda runtime: runtime.check_alerts(),
        ),
        TimerJob(
            id="tracking_reload",
            name="Tracking Reload from Jira",
            minutes=reconcile_minutes or settings.reconcile_interval_minutes,
            run=lambda runtime: runtime.reconcile(),
        ),
    ]


class JobFailureMonitor:
    """Failure timestamps per job over a rolling window."""

    def __init__(self, failure_threshold: int = 2, window: timedelta = FAILURE_WINDOW):
        self.failure_threshold = failure_threshold
        self.window = window
        self.paused_jobs: set = set()
        self._failures: Dict[str, List[datetime]] = {}

    def reset(self, job_id: str) -> None:
        self._failures.pop(job_id, None)
        self.paused_jobs.discard(job_id)

    def record_failure(self, job_id: str, at: Optional[datetime] = None) -> bool:
        """True exactly when this failure crosses the threshold; the job is then marked paused."""
        at = at or datetime.now(timezone.utc)
        recent = [t for t in self._failures.get(job_id, []) if t > at - self.window]
        recent.append(at)
        self._failures[job_id] = recent

        if len(recent) < self.failure_threshold or job_id in self.paused_jobs:
            return False
        self.paused_jobs.add(job_id)
        return True

    def failure_count(self, job_id: str) -> int:
        return len(self._failures.get(job_id, []))

    def get_status(self) -> Dict[str, Any]:
        return {
            job_id: {
                "failure_count": len(failures),
                "last_failure": failures[-1].isoformat(),
                "is_paused": job_id in self.paused_jobs,
            }
            for job_id, failures in self._failures.items()
        }


class TimerScheduler:
    """Drives the reconciliation and alert passes on fixed intervals."""

    def __init__(
        self,
        jobs: Optional[List[TimerJob]] = None,
        monitor: Optional[JobFailureMonitor] = None,
        runtime_provider: Callable[[], MonitorRuntime] = get_runtime
    ):
        self.jobs = {job.id: job for job in (jobs or default_jobs())}
        self.monitor = monitor or JobFailureMonitor(settings.job_failure_alert_threshold)
        self.runtime_provider = runtime_provider
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def start(self) -> None:
        if self.is_running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
            timezone="UTC",
        )
        for job in self.jobs.values():
            self.scheduler.add_job(
                self.run_job,
                IntervalTrigger(minutes=job.minutes),
                args=[job.id],
                id=job.id,
                name=job.name,
                replace_existing=True,
            )
        self.scheduler.start()

        logger.info("🚀 Status Timer scheduler started successfully")
        for scheduled in self.scheduler.get_jobs():
            logger.info(f"  - {scheduled.name}: Next run at {scheduled.next_run_time}")

    def stop(self) -> None:
        if self.is_running:
            self.scheduler.shutdown(wait=False)
            logger.info("🛑 Status Timer scheduler stopped")
        self.scheduler = None

    async def run_job(self, job_id: str) -> Dict[str, Any]:
        """Run one pass and record its outcome. Exceptions propagate to APScheduler."""
        job = self.jobs[job_id]
        started = datetime.now(timezone.utc)
        try:
            result = await job.run(self.runtime_provider())
        except Exception as e:
            logger.error(f"❌ Job {job_id} failed: {e}", exc_info=True)
            if self.monitor.record_failure(job_id):
                await self._pause_after_failures(job, str(e))
            raise

        elapsed = (datetime.now(timezone.utc) - started).total_seconds()
        logger.info(f"Job {job_id} completed in {elapsed:.2f}s: {result}")
        self.monitor.reset(job_id)
        return result

    async def _pause_after_failures(self, job: TimerJob, error: str) -> None:
        count = self.monitor.failure_count(job.id)
        self.pause_job(job.id)
        logger.critical(
            f"CRITICAL: Job {job.id} failed {count} times in the last 24 hours. "
            f"Last error: {error}. Job paused."
        )

        notifier = self.runtime_provider().notifier
        if not notifier.enabled:
            return
        try:
            await notifier.transport.post_message(SlackMessage(
                channel_id=notifier.channel_id,
                text=(
                    f"🚨 CRITICAL: Scheduler job '{job.name}' ({job.id}) failed {count} times "
                    f"in the last 24 hours. Last error: {error}. The job has been paused."
                ),
            ))
        except Exception as e:
            logger.error(f"Failed to send critical alert: {e}")

    # ------------------------------------------
    # MANUAL CONTROL
    # ------------------------------------------

    def trigger_job(self, job_id: str) -> bool:
        """Run a job on the next scheduler tick."""
        if not self.is_running:
            return False
        scheduled = self.scheduler.get_job(job_id)
        if scheduled is None:
            logger.error(f"Job not found: {job_id}")
            return False
        scheduled.modify(next_run_time=datetime.now(timezone.utc))
        logger.info(f"Manually triggered job: {job_id}")
        return True

    def pause_job(self, job_id: str) -> bool:
        if not self.is_running:
            return False
        try:
            self.scheduler.pause_job(job_id)
        except JobLookupError:
            return False
        logger.info(f"Paused job: {job_id}")
        return True

    def resume_job(self, job_id: str) -> bool:
        """Resume a job and forget its failure history."""
        if not self.is_running:
            return False
        try:
            self.scheduler.resume_job(job_id)
        except JobLookupError:
            return False
        self.monitor.reset(job_id)
        logger.info(f"Resumed job: {job_id}")
        return True

    def get_health_status(self) -> Dict[str, Any]:
        failures = self.monitor.get_status()
        jobs = []
        if self.is_running:
            jobs = [
                {
                    "id": scheduled.id,
                    "name": scheduled.name,
                    "next_run_time": scheduled.next_run_time.isoformat() if scheduled.next_run_time else None,
                    "paused": scheduled.next_run_time is None,
                }
                for scheduled in self.scheduler.get_jobs()
            ]

        return {
            "status": "degraded" if failures else "healthy",
            "is_running": self.is_running,
            "jobs": jobs,
            "failures": failures,
            "paused_jobs": sorted(self.monitor.paused_jobs),
        }


# ==========================================
# GLOBAL SCHEDULER INSTANCE
# ==========================================

scheduler = TimerScheduler()


def get_scheduler() -> TimerScheduler:
    """Get the global scheduler instance."""
    return scheduler
