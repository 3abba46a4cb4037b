from __future__ import annotations

import datetime as dt
import threading

import pytest

from jira_connector.core.exceptions import JiraFetchError, SyncCancelledError
from jira_connector.integrations.jira.pagination import (
    IssueFetcher,
    build_project_jql,
    build_updated_since_jql,
)
from jira_connector.integrations.jira.schemas import JiraSearchResult


class FakeSource:
    def __init__(self, issues: list, *, fail_at: int | None = None, total: int | None = None) -> None:  # noqa: ANN001
        self.issues = issues
        self.fail_at = fail_at
        self.total = len(issues) if total is None else total
        self.calls: list[tuple[int, int]] = []

    def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult:
        self.calls.append((start_at, max_results))
        if self.fail_at is not None and start_at >= self.fail_at:
            raise JiraFetchError("page failed", start_at=start_at)
        page = self.issues[start_at:start_at + max_results]
        return JiraSearchResult(startAt=start_at, maxResults=max_results, total=self.total, issues=page)


class EndlessSource:
    def __init__(self, issue) -> None:  # noqa: ANN001
        self.issue = issue
        self.calls: list[int] = []

    def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult:
        self.calls.append(start_at)
        return JiraSearchResult(total=50_000, issues=[self.issue] * max_results)


def test_build_project_jql_quotes_every_key() -> None:
    assert build_project_jql(["TEST", "OPS"]) == "project IN ('TEST', 'OPS') ORDER BY updated DESC"


def test_build_updated_since_jql_floors_to_the_minute() -> None:
    since = dt.datetime(2024, 5, 3, 14, 27, 59, 999000, tzinfo=dt.timezone(dt.timedelta(hours=2)))

    jql = build_updated_since_jql(since, ["TEST"])

    assert jql == "updated >= '2024-05-03 12:27' AND project IN ('TEST')"
    assert build_updated_since_jql(since) == "updated >= '2024-05-03 12:27'"


def test_fetch_advances_offset_by_records_returned(make_issue) -> None:  # noqa: ANN001
    issues = [make_issue(f"TEST-{number}") for number in range(1, 251)]
    source = FakeSource(issues)

    result = IssueFetcher(source, 100).fetch("jql")

    assert [start for start, _ in source.calls] == [0, 100, 200]
    assert len(result.issues) == 250
    assert result.pages == 3
    assert result.truncated is False
    assert result.warnings == []


def test_fetch_stops_on_empty_page_after_exact_multiple(make_issue) -> None:  # noqa: ANN001
    issues = [make_issue(f"TEST-{number}") for number in range(1, 21)]
    source = FakeSource(issues)

    result = IssueFetcher(source, 10).fetch("jql")

    assert [start for start, _ in source.calls] == [0, 10, 20]
    assert len(result.issues) == 20


def test_fetch_stops_at_result_ceiling_with_warning(make_issue) -> None:  # noqa: ANN001
    source = EndlessSource(make_issue("TEST-1"))

    result = IssueFetcher(source, 1000).fetch("jql")

    assert source.calls == [index * 1000 for index in range(10)]
    assert len(result.issues) == 10_000
    assert result.truncated is True
    assert result.total_available == 50_000
    assert len(result.warnings) == 1
    assert "10000" in result.warnings[0]


def test_fetch_shrinks_last_request_to_the_ceiling(make_issue) -> None:  # noqa: ANN001
    source = FakeSource([make_issue(f"TEST-{number}") for number in range(1, 31)])

    result = IssueFetcher(source, 10, max_results=25).fetch("jql")

    assert source.calls == [(0, 10), (10, 10), (20, 5)]
    assert len(result.issues) == 25
    assert result.truncated is True


def test_page_size_is_bounded_by_provider_maximum() -> None:
    assert IssueFetcher(FakeSource([]), 5000).page_size == 1000
    assert IssueFetcher(FakeSource([]), 0).page_size == 1


def test_fetch_failure_discards_partial_result(make_issue) -> None:  # noqa: ANN001
    source = FakeSource([make_issue(f"TEST-{number}") for number in range(1, 31)], fail_at=10)

    with pytest.raises(JiraFetchError):
        IssueFetcher(source, 10).fetch("jql")

    assert [start for start, _ in source.calls] == [0, 10]


def test_fetch_wraps_unexpected_source_errors() -> None:
    class BrokenSource:
        def search_issues(self, jql: str, start_at: int, max_results: int):  # noqa: ANN201
            raise RuntimeError("socket closed")

    with pytest.raises(JiraFetchError, match="socket closed"):
        IssueFetcher(BrokenSource(), 10).fetch("jql")


def test_fetch_checks_cancellation_between_pages(make_issue) -> None:  # noqa: ANN001
    cancel = threading.Event()
    issues = [make_issue(f"TEST-{number}") for number in range(1, 31)]

    class CancellingSource(FakeSource):
        def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult:
            page = super().search_issues(jql, start_at, max_results)
            cancel.set()
            return page

    source = CancellingSource(issues)

    with pytest.raises(SyncCancelledError):
        IssueFetcher(source, 10).fetch("jql", cancel)

    assert len(source.calls) == 1


def test_fetch_updated_since_uses_incremental_jql(make_issue) -> None:  # noqa: ANN001
    seen: list[str] = []

    class RecordingSource:
        def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult:
            seen.append(jql)
            return JiraSearchResult(total=1, issues=[make_issue("TEST-1")])

    since = dt.datetime(2024, 1, 1, 8, 0, tzinfo=dt.timezone.utc)
    result = IssueFetcher(RecordingSource(), 50).fetch_updated_since(since, ["TEST"])

    assert seen == ["updated >= '2024-01-01 08:00' AND project IN ('TEST')"]
    assert len(result.issues) == 1
