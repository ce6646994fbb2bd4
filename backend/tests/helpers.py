"""
Test helper functions for the Status Timer.

Provides an in-memory issue source, a mocked Slack transport and
timezone-aware timestamp builders.
"""
from datetime import datetime
from typing import Dict, List, Optional, Set
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

from status_timer.core.exceptions import IssueSourceError
from status_timer.models.schemas import IssueSnapshot, LatestComment, StateChange
from status_timer.services.slack_client import SlackTransport


ET = ZoneInfo("America/New_York")


def et(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware datetime in the reference timezone."""
    return datetime(year, month, day, hour, minute, tzinfo=ET)


def status_change(state: str, at: datetime, field: str = "status") -> StateChange:
    return StateChange(timestamp=at, field=field, new_value=state)


def make_transport(delivered: bool = True) -> AsyncMock:
    """Slack transport double; post_message reports `delivered`."""
    transport = AsyncMock(spec=SlackTransport)
    transport.post_message.return_value = delivered
    return transport


class FakeIssueSource:
    """
    In-memory issue tracker.

    Issues not in `issues` do not exist. Keys listed in the *_failures sets
    raise IssueSourceError for that operation.
    """

    def __init__(self):
        self.issues: Dict[str, IssueSnapshot] = {}
        self.histories: Dict[str, List[StateChange]] = {}
        self.comments: Dict[str, LatestComment] = {}
        self.list_failure: Optional[str] = None
        self.history_failures: Set[str] = set()
        self.exists_failures: Set[str] = set()
        self.comment_failures: Set[str] = set()
        self.history_calls: List[str] = []

    def add_issue(
        self,
        key: str,
        state: str,
        created_at: datetime,
        history: Optional[List[StateChange]] = None,
        summary: str = "",
        assignee: Optional[str] = None
    ) -> IssueSnapshot:
        issue = IssueSnapshot(
            key=key,
            state=state,
            created_at=created_at,
            summary=summary,
            assignee=assignee,
        )
        self.issues[key] = issue
        self.histories[key] = list(history or [])
        return issue

    def remove_issue(self, key: str) -> None:
        self.issues.pop(key, None)
        self.histories.pop(key, None)

    async def list_active_items(self) -> List[IssueSnapshot]:
        if self.list_failure:
            raise IssueSourceError(self.list_failure, operation="list_active_items")
        return list(self.issues.values())

    async def get_state_change_history(self, key: str) -> List[StateChange]:
        self.history_calls.append(key)
        if key in self.history_failures:
            raise IssueSourceError("changelog unavailable", issue_key=key, operation="get_state_change_history")
        return list(self.histories.get(key, []))

    async def exists(self, key: str) -> bool:
        if key in self.exists_failures:
            raise IssueSourceError("Jira timed out", issue_key=key, operation="exists")
        return key in self.issues

    async def get_latest_comment(self, key: str) -> Optional[LatestComment]:
        if key in self.comment_failures:
            raise IssueSourceError("comments unavailable", issue_key=key, operation="get_latest_comment")
        return self.comments.get(key)


def make_jira_source(handler, max_results: int = 2):
    """JiraIssueSource whose requests are answered by `handler` via httpx.MockTransport."""
    import httpx

    from status_timer.services.jira_client import JiraIssueSource

    client = httpx.AsyncClient(
        base_url="https://acme.atlassian.net/rest/api/3",
        transport=httpx.MockTransport(handler),
    )
    return JiraIssueSource(
        host="acme.atlassian.net",
        email="bot@acme.test",
        api_token="token",
        project="CAM",
        max_results=max_results,
        client=client,
    )


def jira_issue(key: str, status: str, created: str = "2025-04-14T09:00:00.000-0400") -> dict:
    """Search result entry as returned by /search/jql."""
    return {
        "key": key,
        "fields": {
            "status": {"name": status},
            "summary": f"Campaign {key}",
            "created": created,
            "assignee": {"displayName": "Dana"},
        },
    }
