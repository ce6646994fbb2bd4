"""
Tests for the reconciliation pass against Jira.
"""
import asyncio
import json
import pytest

from helpers import et, status_change


class TestTrackingReconciler:
    """Tests for TrackingReconciler.run()."""

    @pytest.fixture
    def reconciler(self, issue_source, store):
        from status_timer.services.reconciliation import TrackingReconciler

        return TrackingReconciler(issue_source, store)

    @pytest.mark.unit
    def test_builds_store_from_jira(self, reconciler, issue_source, store):
        issue_source.add_issue(
            "CAM-1", "4: Campaign creation", et(2025, 4, 1),
            history=[status_change("4: Campaign creation", et(2025, 4, 14, 9))],
            summary="Spring launch",
            assignee="Dana",
        )

        result = asyncio.run(reconciler.run())

        assert result["source"] == "ISSUE_TRACKER"
        assert result["tracked_count"] == 1
        record = store.get("CAM-1")
        assert record.start_time == et(2025, 4, 14, 9)
        assert record.summary == "Spring launch"
        assert record.assignee == "Dana"

    @pytest.mark.unit
    def test_disabled_statuses_skip_history_lookup(self, reconciler, issue_source, store):
        issue_source.add_issue("CAM-1", "1: Lander URL delivery", et(2025, 4, 1))
        issue_source.add_issue("CAM-2", "5: Submission Review", et(2025, 4, 1))

        result = asyncio.run(reconciler.run())

        assert issue_source.history_calls == ["CAM-2"]
        assert result["skipped"] == ["CAM-1"]
        assert store.keys() == ["CAM-2"]

    @pytest.mark.unit
    def test_unreachable_jira_falls_back_to_snapshot(self, reconciler, issue_source, store, snapshot_path):
        snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot_path.write_text(json.dumps({
            "campaign": {
                "CAM-9": {
                    "state": "4: Campaign creation",
                    "startTime": "2025-04-10T13:00:00Z",
                    "lastAlertTime": None,
                }
            }
        }))
        issue_source.list_failure = "Jira returned 503 during list_active_items"

        result = asyncio.run(reconciler.run())

        assert result["source"] == "SNAPSHOT"
        assert result["loaded"] == True
        assert store.keys() == ["CAM-9"]

    @pytest.mark.edge
    def test_unreachable_jira_without_snapshot_keeps_memory(self, reconciler, issue_source, store):
        issue_source.add_issue("CAM-1", "4: Campaign creation", et(2025, 4, 1))
        asyncio.run(reconciler.run())
        store.persistence.path.unlink()

        issue_source.list_failure = "timeout"
        result = asyncio.run(reconciler.run())

        assert result["loaded"] == False
        assert "CAM-1" in store

    @pytest.mark.edge
    def test_history_failure_is_isolated(self, reconciler, issue_source, store):
        issue_source.add_issue("CAM-1", "4: Campaign creation", et(2025, 4, 2))
        issue_source.add_issue(
            "CAM-2", "4: Campaign creation", et(2025, 4, 1),
            history=[status_change("4: Campaign creation", et(2025, 4, 14, 9))],
        )
        issue_source.history_failures.add("CAM-1")

        result = asyncio.run(reconciler.run())

        assert result["history_failures"] == ["CAM-1"]
        assert store.get("CAM-1").start_time == et(2025, 4, 2)
        assert store.get("CAM-2").start_time == et(2025, 4, 14, 9)

    @pytest.mark.unit
    def test_closed_issues_are_evicted(self, reconciler, issue_source, store):
        issue_source.add_issue("CAM-1", "4: Campaign creation", et(2025, 4, 1))
        issue_source.add_issue("CAM-2", "4: Campaign creation", et(2025, 4, 1))
        asyncio.run(reconciler.run())

        issue_source.remove_issue("CAM-1")
        result = asyncio.run(reconciler.run())

        assert result["evicted"] == ["CAM-1"]
        assert store.keys() == ["CAM-2"]

    @pytest.mark.edge
    def test_unreadable_changelog_is_isolated(self, store):
        import httpx

        from status_timer.services.reconciliation import TrackingReconciler
        from helpers import jira_issue, make_jira_source

        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path.endswith("/search/jql"):
                return httpx.Response(200, json={
                    "issues": [jira_issue("CAM-1", "4: Campaign creation"), jira_issue("CAM-2", "4: Campaign creation")],
                    "isLast": True,
                })
            if path == "/rest/api/3/issue/CAM-1/changelog":
                return httpx.Response(200, json={
                    "values": [{"items": [{"field": "status", "toString": "4: Campaign creation"}]}],
                    "isLast": True,
                })
            return httpx.Response(200, json={"values": [{
                "created": "2025-04-14T11:00:00.000-0400",
                "items": [{"field": "status", "toString": "4: Campaign creation"}],
            }], "isLast": True})

        reconciler = TrackingReconciler(make_jira_source(handler), store)

        result = asyncio.run(reconciler.run())

        assert result["history_failures"] == ["CAM-1"]
        assert store.get("CAM-1").start_time == et(2025, 4, 14, 9)
        assert store.get("CAM-2").start_time == et(2025, 4, 14, 11)
