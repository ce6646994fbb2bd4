"""
Pytest fixtures and configuration for Status Timer tests.

Provides:
- Tracking store on a temporary snapshot file
- In-memory Jira and mocked Slack transport
- Fixed clock pinned to a weekday
- Test client wired to a test runtime
"""
import pytest
from datetime import datetime
from typing import Generator
from unittest.mock import patch

from fastapi.testclient import TestClient
from freezegun import freeze_time

from status_timer.core.clock import FixedClock
from status_timer.core.config import Settings
from status_timer.services.persistence import JsonSnapshotPersistence, PersistenceGuard
from status_timer.services.runtime import build_runtime, set_runtime
from status_timer.services.thresholds import ThresholdPolicy
from status_timer.services.tracking_store import TrackingStore

from helpers import FakeIssueSource, et, make_transport


# ==========================================
# STORE FIXTURES
# ==========================================

@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "data" / "tracking.json"


@pytest.fixture
def fallback_path(tmp_path):
    return tmp_path / "fallback" / "tracking.json"


@pytest.fixture
def persistence(snapshot_path, fallback_path) -> JsonSnapshotPersistence:
    fallback_path.parent.mkdir(parents=True, exist_ok=True)
    return JsonSnapshotPersistence(
        path=snapshot_path,
        fallback_path=fallback_path,
        guard=PersistenceGuard(timeout_seconds=0.1),
    )


@pytest.fixture
def policy() -> ThresholdPolicy:
    return ThresholdPolicy()


@pytest.fixture
def store(persistence, policy) -> TrackingStore:
    return TrackingStore(persistence, policy)


# ==========================================
# COLLABORATOR FIXTURES
# ==========================================

@pytest.fixture
def issue_source() -> FakeIssueSource:
    return FakeIssueSource()


@pytest.fixture
def transport():
    return make_transport()


@pytest.fixture
def clock() -> FixedClock:
    """Monday, April 14 2025, 09:00 ET."""
    return FixedClock(et(2025, 4, 14, 9))


@pytest.fixture
def app_settings(tmp_path) -> Settings:
    return Settings(
        data_dir=str(tmp_path / "data"),
        fallback_tracking_path=str(tmp_path / "fallback.json"),
        lock_timeout_seconds=0.1,
        jira_host="acme.atlassian.net",
        jira_email="bot@acme.test",
        jira_api_token="token",
        jira_project="CAM",
        slack_bot_token="xoxb-test",
        slack_alerts_channel="C0ALERTS",
        enable_scheduler=False,
        run_scheduler=False,
    )


@pytest.fixture
def runtime(app_settings, clock, issue_source, transport):
    runtime = build_runtime(
        app_settings,
        clock=clock,
        issue_source=issue_source,
        transport=transport,
    )
    set_runtime(runtime)
    yield runtime
    set_runtime(None)


@pytest.fixture
def client(runtime) -> Generator[TestClient, None, None]:
    """
    Test client whose lifespan uses the test runtime.

    Startup reconciles against the in-memory issue source, so seed issues
    before requesting this fixture's client.
    """
    from status_timer.main import app

    with patch("status_timer.main.build_runtime", return_value=runtime):
        with TestClient(app) as test_client:
            yield test_client


# ==========================================
# TIME FIXTURES
# ==========================================

@pytest.fixture
def frozen_monday():
    """Freeze time at Monday 1:00 PM UTC (April 14, 2025)."""
    monday = datetime(2025, 4, 14, 13, 0, 0)
    with freeze_time(monday):
        yield monday


@pytest.fixture
def frozen_weekend():
    """Freeze time at Saturday 4:00 PM UTC (April 19, 2025)."""
    saturday = datetime(2025, 4, 19, 16, 0, 0)
    with freeze_time(saturday):
        yield saturday


# ==========================================
# PYTEST CONFIGURATION
# ==========================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (isolated, fast)")
    config.addinivalue_line("markers", "integration: Integration tests (several services together)")
    config.addinivalue_line("markers", "edge: Edge case tests")
