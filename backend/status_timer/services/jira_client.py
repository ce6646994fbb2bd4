"""
Jira issue source.

Implements the issue-tracker contract the timer core depends on:
- list active issues in the configured project
- status change history (changelog)
- existence checks
- latest comment lookup

Every call is bounded by the httpx timeout. Network failures, timeouts and
unexpected responses raise IssueSourceError (transient); a 404 is reported
as "not found" rather than as an error.
"""
from datetime import datetime
from typing import Any, Optional, Protocol
import logging
import re

import httpx

from status_timer.core.exceptions import IssueNotFoundError, IssueSourceError
from status_timer.models.schemas import IssueSnapshot, LatestComment, StateChange


logger = logging.getLogger(__name__)


class IssueSource(Protocol):
    """What the reconciler and alert engine need from the issue tracker."""

    async def list_active_items(self) -> list[IssueSnapshot]:
        ...

    async def get_state_change_history(self, key: str) -> list[StateChange]:
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def get_latest_comment(self, key: str) -> Optional[LatestComment]:
        ...


_OFFSET_WITHOUT_COLON = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_jira_datetime(value: str) -> datetime:
    """Parse Jira timestamps such as 2024-01-08T10:15:30.000+0000."""
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    normalized = _OFFSET_WITHOUT_COLON.sub(r"\1:\2", normalized)
    return datetime.fromisoformat(normalized)


def extract_comment_text(body: Any) -> str:
    """
    Flatten a comment body to plain text.

    Atlassian Document Format bodies keep only paragraph text nodes, one
    line per paragraph. Plain string bodies are returned unchanged.
    """
    if isinstance(body, str):
        return body
    if not isinstance(body, dict) or body.get("type") != "doc":
        return ""

    lines = []
    for block in body.get("content") or []:
        if block.get("type") != "paragraph":
            lines.append("")
            continue
        lines.append("".join(
            node.get("text", "")
            for node in block.get("content") or []
            if node.get("type") == "text"
        ))
    return "\n".join(lines).strip()


class JiraIssueSource:
    """Jira Cloud REST v3 client."""

    SEARCH_FIELDS = "key,status,summary,created,updated,assignee"

    def __init__(
        self,
        host: str,
        email: str,
        api_token: str,
        project: str,
        timeout_seconds: float = 10.0,
        max_results: int = 100,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.host = host
        self.project = project
        self.max_results = max_results
        self._client = client or httpx.AsyncClient(
            base_url=f"https://{host}/rest/api/3",
            auth=(email, api_token),
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
        )

    def browse_url(self, key: str) -> str:
        return f"https://{self.host}/browse/{key}"

    @property
    def jql(self) -> str:
        return f'project = "{self.project}"'

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(
        self,
        path: str,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        issue_key: Optional[str] = None
    ) -> httpx.Response:
        try:
            return await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise IssueSourceError(
                f"Jira request failed during {operation}",
                issue_key=issue_key,
                operation=operation,
                original_error=str(e) or e.__class__.__name__
            ) from e

    @staticmethod
    def _raise_for_status(
        response: httpx.Response,
        operation: str,
        issue_key: Optional[str] = None
    ) -> None:
        if response.status_code == 404 and issue_key:
            raise IssueNotFoundError(f"Issue {issue_key} no longer exists", issue_key=issue_key)
        if response.is_error:
            raise IssueSourceError(
                f"Jira returned {response.status_code} during {operation}",
                issue_key=issue_key,
                operation=operation,
                original_error=response.text[:200]
            )

    @staticmethod
    def _read_json(
        response: httpx.Response,
        operation: str,
        issue_key: Optional[str] = None
    ) -> dict[str, Any]:
        """Decode a Jira reply; anything other than a JSON object is an IssueSourceError."""
        try:
            data = response.json()
        except ValueError as e:
            raise IssueSourceError(
                f"Jira returned a non-JSON response during {operation}",
                issue_key=issue_key,
                operation=operation,
                original_error=response.text[:200]
            ) from e

        if not isinstance(data, dict):
            raise IssueSourceError(
                f"Jira returned an unexpected payload during {operation}",
                issue_key=issue_key,
                operation=operation,
                original_error=type(data).__name__
            )
        return data

    # ------------------------------------------
    # CONTRACT
    # ------------------------------------------

    async def list_active_items(self) -> list[IssueSnapshot]:
        """All issues in the project, following search pagination."""
        issues: list[IssueSnapshot] = []
        next_page_token: Optional[str] = None

        while True:
            params: dict[str, Any] = {
                "jql": self.jql,
                "maxResults": self.max_results,
                "fields": self.SEARCH_FIELDS,
            }
            if next_page_token:
                params["nextPageToken"] = next_page_token

            response = await self._get("/search/jql", "list_active_items", params=params)
            self._raise_for_status(response, "list_active_items")
            data = self._read_json(response, "list_active_items")

            for raw in data.get("issues") or []:
                try:
                    issues.append(self._parse_issue(raw))
                except (AttributeError, KeyError, TypeError, ValueError) as e:
                    key = raw.get("key") if isinstance(raw, dict) else None
                    logger.error(f"❌ Skipping unparseable issue {key}: {e}")

            next_page_token = data.get("nextPageToken")
            if not next_page_token or data.get("isLast", True):
                break

        logger.info(f"🔍 Found {len(issues)} active issues to track")
        return issues

    @staticmethod
    def _parse_issue(raw: dict[str, Any]) -> IssueSnapshot:
        fields = raw["fields"]
        assignee = fields.get("assignee") or {}
        return IssueSnapshot(
            key=raw["key"],
            state=fields["status"]["name"],
            created_at=parse_jira_datetime(fields["created"]),
            summary=fields.get("summary") or "",
            assignee=assignee.get("displayName"),
        )

    async def get_state_change_history(self, key: str) -> list[StateChange]:
        """Every field transition in the changelog, oldest page first."""
        changes: list[StateChange] = []
        start_at = 0

        while True:
            response = await self._get(
                f"/issue/{key}/changelog",
                "get_state_change_history",
                params={"startAt": start_at},
                issue_key=key,
            )
            self._raise_for_status(response, "get_state_change_history", issue_key=key)
            data = self._read_json(response, "get_state_change_history", issue_key=key)
            values = data.get("values") or []

            try:
                for history in values:
                    created = parse_jira_datetime(history["created"])
                    for item in history.get("items") or []:
                        changes.append(StateChange(
                            timestamp=created,
                            field=item.get("field", ""),
                            new_value=item.get("toString"),
                        ))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                raise IssueSourceError(
                    f"Unreadable changelog entry for {key}",
                    issue_key=key,
                    operation="get_state_change_history",
                    original_error=repr(e)
                ) from e

            start_at += len(values)
            if data.get("isLast", True) or not values:
                break

        return changes

    async def exists(self, key: str) -> bool:
        response = await self._get(f"/issue/{key}", "exists", params={"fields": "key"}, issue_key=key)
        if response.status_code == 404:
            logger.info(f"🗑️ Issue {key} no longer exists")
            return False
        self._raise_for_status(response, "exists", issue_key=key)
        return True

    async def get_latest_comment(self, key: str) -> Optional[LatestComment]:
        response = await self._get(
            f"/issue/{key}/comment",
            "get_latest_comment",
            params={"maxResults": 1, "orderBy": "-created"},
            issue_key=key,
        )
        self._raise_for_status(response, "get_latest_comment", issue_key=key)
        comments = self._read_json(response, "get_latest_comment", issue_key=key).get("comments") or []

        if not comments:
            logger.debug(f"📝 No comments found for issue {key}")
            return None

        try:
            comment = comments[0]
            author = (comment.get("author") or {}).get("displayName", "Unknown")
            created = comment.get("created")
            return LatestComment(
                text=extract_comment_text(comment.get("body")),
                author=author,
                timestamp=parse_jira_datetime(created) if created else None,
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise IssueSourceError(
                f"Unreadable comment for {key}",
                issue_key=key,
                operation="get_latest_comment",
                original_error=repr(e)
            ) from e
