"""
Tests for the Jira issue source.

Requests are answered by httpx.MockTransport; nothing leaves the process.
"""
import asyncio
import pytest
from datetime import datetime, timezone

import httpx

from helpers import et, jira_issue, make_jira_source


class TestParsing:
    """Tests for Jira payload helpers."""

    @pytest.mark.unit
    def test_parse_offset_without_colon(self):
        from status_timer.services.jira_client import parse_jira_datetime

        assert parse_jira_datetime("2025-04-14T09:00:00.000-0400") == et(2025, 4, 14, 9)

    @pytest.mark.unit
    def test_parse_zulu(self):
        from status_timer.services.jira_client import parse_jira_datetime

        assert parse_jira_datetime("2025-04-14T13:00:00Z") == datetime(2025, 4, 14, 13, tzinfo=timezone.utc)

    @pytest.mark.unit
    def test_adf_comment_text(self):
        from status_timer.services.jira_client import extract_comment_text

        body = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [
                    {"type": "text", "text": "Waiting on "},
                    {"type": "text", "text": "creatives"},
                ]},
                {"type": "paragraph", "content": [{"type": "text", "text": "ETA Friday"}]},
            ],
        }

        assert extract_comment_text(body) == "Waiting on creatives\nETA Friday"

    @pytest.mark.unit
    def test_plain_comment_text(self):
        from status_timer.services.jira_client import extract_comment_text

        assert extract_comment_text("plain") == "plain"
        assert extract_comment_text(None) == ""


class TestListActiveItems:
    """Tests for project search."""

    @pytest.mark.unit
    def test_follows_next_page_token(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rest/api/3/search/jql"
            assert request.url.params["jql"] == 'project = "CAM"'
            token = request.url.params.get("nextPageToken")
            seen.append(token)
            if token is None:
                return httpx.Response(200, json={
                    "issues": [jira_issue("CAM-1", "4: Campaign creation"), jira_issue("CAM-2", "5: Submission Review")],
                    "nextPageToken": "page-2",
                    "isLast": False,
                })
            return httpx.Response(200, json={"issues": [jira_issue("CAM-3", "Backlog")], "isLast": True})

        async def run():
            source = make_jira_source(handler)
            try:
                return await source.list_active_items()
            finally:
                await source.aclose()

        issues = asyncio.run(run())

        assert seen == [None, "page-2"]
        assert [issue.key for issue in issues] == ["CAM-1", "CAM-2", "CAM-3"]
        assert issues[0].state == "4: Campaign creation"
        assert issues[0].assignee == "Dana"
        assert issues[0].created_at == et(2025, 4, 14, 9)

    @pytest.mark.unit
    def test_server_error_raises_issue_source_error(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(503, text="maintenance")

        with pytest.raises(IssueSourceError) as exc_info:
            asyncio.run(make_jira_source(handler).list_active_items())

        assert exc_info.value.status_code == 502

    @pytest.mark.unit
    def test_network_error_raises_issue_source_error(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(IssueSourceError):
            asyncio.run(make_jira_source(handler).list_active_items())

    @pytest.mark.edge
    def test_unparseable_issue_is_skipped(self):
        def handler(request):
            return httpx.Response(200, json={
                "issues": [{"key": "CAM-9", "fields": {}}, jira_issue("CAM-1", "4: Campaign creation")],
                "isLast": True,
            })

        issues = asyncio.run(make_jira_source(handler).list_active_items())

        assert [issue.key for issue in issues] == ["CAM-1"]


class TestIssueLookups:
    """Tests for changelog, existence and comment lookups."""

    @pytest.mark.unit
    def test_changelog_pagination(self):
        pages = {
            "0": {"values": [{"created": "2025-04-10T09:00:00.000-0400", "items": [
                {"field": "status", "toString": "4: Campaign creation"},
            ]}], "isLast": False},
            "1": {"values": [{"created": "2025-04-14T09:00:00.000-0400", "items": [
                {"field": "status", "toString": "5: Submission Review"},
                {"field": "assignee", "toString": "Dana"},
            ]}], "isLast": True},
        }

        def handler(request):
            assert request.url.path == "/rest/api/3/issue/CAM-1/changelog"
            return httpx.Response(200, json=pages[request.url.params["startAt"]])

        changes = asyncio.run(make_jira_source(handler).get_state_change_history("CAM-1"))

        assert [(c.field, c.new_value) for c in changes] == [
            ("status", "4: Campaign creation"),
            ("status", "5: Submission Review"),
            ("assignee", "Dana"),
        ]
        assert changes[1].timestamp == et(2025, 4, 14, 9)

    @pytest.mark.unit
    def test_exists(self):
        def handler(request):
            if request.url.path.endswith("/CAM-1"):
                return httpx.Response(200, json={"key": "CAM-1"})
            return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})

        source = make_jira_source(handler)

        assert asyncio.run(source.exists("CAM-1")) == True
        assert asyncio.run(source.exists("CAM-404")) == False

    @pytest.mark.unit
    def test_exists_server_error_is_not_deletion(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(500)

        with pytest.raises(IssueSourceError):
            asyncio.run(make_jira_source(handler).exists("CAM-1"))

    @pytest.mark.unit
    def test_latest_comment(self):
        def handler(request):
            assert request.url.params["orderBy"] == "-created"
            return httpx.Response(200, json={"comments": [{
                "author": {"displayName": "Dana"},
                "created": "2025-04-15T09:30:00.000-0400",
                "body": {"type": "doc", "content": [
                    {"type": "paragraph", "content": [{"type": "text", "text": "On it"}]},
                ]},
            }]})

        comment = asyncio.run(make_jira_source(handler).get_latest_comment("CAM-1"))

        assert comment.text == "On it"
        assert comment.author == "Dana"
        assert comment.timestamp == et(2025, 4, 15, 9, 30)

    @pytest.mark.unit
    def test_no_comments(self):
        def handler(request):
            return httpx.Response(200, json={"comments": []})

        assert asyncio.run(make_jira_source(handler).get_latest_comment("CAM-1")) is None

    @pytest.mark.unit
    def test_comment_on_deleted_issue(self):
        from status_timer.core.exceptions import IssueNotFoundError

        def handler(request):
            return httpx.Response(404)

        with pytest.raises(IssueNotFoundError):
            asyncio.run(make_jira_source(handler).get_latest_comment("CAM-404"))

    @pytest.mark.unit
    def test_browse_url(self):
        source = make_jira_source(lambda request: httpx.Response(200))

        assert source.browse_url("CAM-1") == "https://acme.atlassian.net/browse/CAM-1"


class TestMalformedReplies:
    """Tests that unreadable Jira replies surface as IssueSourceError."""

    @pytest.mark.edge
    def test_html_comment_reply(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(200, text="<html>proxy</html>")

        with pytest.raises(IssueSourceError) as exc_info:
            asyncio.run(make_jira_source(handler).get_latest_comment("CAM-1"))

        assert exc_info.value.details["issue_key"] == "CAM-1"
        assert exc_info.value.details["operation"] == "get_latest_comment"

    @pytest.mark.edge
    def test_comment_with_bad_timestamp(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(200, json={"comments": [{"author": {}, "created": "yesterday", "body": "x"}]})

        with pytest.raises(IssueSourceError):
            asyncio.run(make_jira_source(handler).get_latest_comment("CAM-1"))

    @pytest.mark.edge
    def test_changelog_entry_without_created(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(200, json={
                "values": [{"items": [{"field": "status", "toString": "5: Submission Review"}]}],
                "isLast": True,
            })

        with pytest.raises(IssueSourceError) as exc_info:
            asyncio.run(make_jira_source(handler).get_state_change_history("CAM-1"))

        assert exc_info.value.details["operation"] == "get_state_change_history"

    @pytest.mark.edge
    def test_non_json_search_reply(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(200, text="<html>login</html>")

        with pytest.raises(IssueSourceError):
            asyncio.run(make_jira_source(handler).list_active_items())

    @pytest.mark.edge
    def test_search_reply_that_is_not_an_object(self):
        from status_timer.core.exceptions import IssueSourceError

        def handler(request):
            return httpx.Response(200, json=["CAM-1"])

        with pytest.raises(IssueSourceError):
            asyncio.run(make_jira_source(handler).list_active_items())
