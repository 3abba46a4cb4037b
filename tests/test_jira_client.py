from __future__ import annotations

import base64

import httpx
import pytest

from jira_connector.core.exceptions import JiraAuthenticationError, JiraFetchError
from jira_connector.integrations.jira.client import JiraClient


def _client(settings, handler) -> JiraClient:  # noqa: ANN001
    client = JiraClient(settings, transport=httpx.MockTransport(handler))
    client.backoff = 0
    return client


def test_search_issues_sends_paging_params_and_basic_auth(settings, issue_payload) -> None:  # noqa: ANN001
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"startAt": 100, "maxResults": 50, "total": 101, "issues": [issue_payload("TEST-1")]},
        )

    result = _client(settings, handler).search_issues("project IN ('TEST')", 100, 50)

    assert result.total == 101
    assert [issue.key for issue in result.issues] == ["TEST-1"]
    request = seen[0]
    assert request.url.path == "/rest/api/2/search"
    assert request.url.params["jql"] == "project IN ('TEST')"
    assert request.url.params["startAt"] == "100"
    assert request.url.params["maxResults"] == "50"
    expected = base64.b64encode(b"svc-connector:secret-token").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Accept"] == "application/json"


def test_search_issues_retries_transient_failures(settings) -> None:  # noqa: ANN001
    statuses = [503, 429, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        status = statuses.pop(0)
        if status != 200:
            return httpx.Response(status)
        return httpx.Response(200, json={"total": 0, "issues": []})

    result = _client(settings, handler).search_issues("jql", 0, 10)

    assert result.issues == []
    assert statuses == []


def test_search_issues_raises_fetch_error_when_retries_exhausted(settings) -> None:  # noqa: ANN001
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(500, text="boom")

    with pytest.raises(JiraFetchError) as excinfo:
        _client(settings, handler).search_issues("jql", 200, 10)

    assert len(attempts) == 3
    assert excinfo.value.details == {"start_at": 200, "status_code": 500}


def test_search_issues_wraps_transport_errors(settings) -> None:  # noqa: ANN001
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(JiraFetchError, match="connection refused"):
        _client(settings, handler).search_issues("jql", 0, 10)


def test_search_issues_rejects_bad_credentials(settings) -> None:  # noqa: ANN001
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401)

    with pytest.raises(JiraAuthenticationError):
        _client(settings, handler).search_issues("jql", 0, 10)


def test_get_issue_returns_none_when_missing(settings, issue_payload) -> None:  # noqa: ANN001
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/TEST-1"):
            return httpx.Response(200, json=issue_payload("TEST-1", summary="First Issue"))
        return httpx.Response(404, json={"errorMessages": ["Issue does not exist"]})

    client = _client(settings, handler)

    assert client.get_issue("TEST-1").fields.summary == "First Issue"
    assert client.get_issue("TEST-404") is None
    assert client.get_issue("  ") is None


def test_test_connection_reports_server_state(settings) -> None:  # noqa: ANN001
    def healthy(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/api/2/serverInfo"
        return httpx.Response(200, json={"serverTitle": "Jira", "version": "9.12.0"})

    def forbidden(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403)

    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _client(settings, healthy).test_connection() is True
    assert _client(settings, forbidden).test_connection() is False
    assert _client(settings, down).test_connection() is False
