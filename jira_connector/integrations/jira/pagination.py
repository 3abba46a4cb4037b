"""Offset-paginated issue retrieval over the Jira search API.

The search endpoint hands out results in pages addressed by ``startAt``.
``IssueFetcher`` walks those pages until a short page signals the end of the
result set, or until the hard result ceiling Jira Server enforces on deep
offsets. Nothing is returned when any page fails; callers never see a partial
set they could mistake for a complete one.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass, field

from jira_connector.core.exceptions import JiraException, JiraFetchError, SyncCancelledError
from jira_connector.integrations.jira.client import IssueSource
from jira_connector.integrations.jira.schemas import JiraIssue

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
MAX_TOTAL_RESULTS = 10_000
JQL_DATE_FORMAT = "%Y-%m-%d %H:%M"


def _project_clause(project_keys: list[str]) -> str:
    quoted = ", ".join(f"'{key}'" for key in project_keys)
    return f"project IN ({quoted})"


def build_project_jql(project_keys: list[str]) -> str:
    return f"{_project_clause(project_keys)} ORDER BY updated DESC"


def build_updated_since_jql(since: dt.datetime, project_keys: list[str] | None = None) -> str:
    # JQL has minute precision; flooring keeps the queried instant <= since.
    instant = since if since.tzinfo is not None else since.replace(tzinfo=dt.timezone.utc)
    instant = instant.astimezone(dt.timezone.utc).replace(second=0, microsecond=0)
    jql = f"updated >= '{instant.strftime(JQL_DATE_FORMAT)}'"
    if project_keys:
        jql += f" AND {_project_clause(project_keys)}"
    return jql


@dataclass
class FetchResult:
    issues: list[JiraIssue] = field(default_factory=list)
    pages: int = 0
    total_available: int = 0
    truncated: bool = False
    warnings: list[str] = field(default_factory=list)


class IssueFetcher:
    def __init__(self, source: IssueSource, page_size: int, *, max_results: int = MAX_TOTAL_RESULTS) -> None:
        self.source = source
        self.page_size = max(1, min(MAX_PAGE_SIZE, page_size))
        self.max_results = max(1, max_results)

    def fetch(self, jql: str, cancel_event: threading.Event | None = None) -> FetchResult:
        result = FetchResult()
        start_at = 0
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SyncCancelledError(stage="fetch")

            if start_at >= self.max_results:
                result.truncated = True
                message = (
                    f"Reached maximum result limit of {self.max_results} issues; "
                    f"{max(0, result.total_available - start_at)} more were not fetched"
                )
                logger.warning(message)
                result.warnings.append(message)
                break

            requested = min(self.page_size, self.max_results - start_at)
            try:
                page = self.source.search_issues(jql, start_at, requested)
            except JiraException:
                logger.error("Jira search page at offset %s failed, discarding %s fetched issues", start_at, len(result.issues))
                raise
            except Exception as exc:  # noqa: BLE001
                raise JiraFetchError(f"Jira search page failed: {exc}", start_at=start_at) from exc

            result.pages += 1
            result.total_available = max(result.total_available, page.total)
            result.issues.extend(page.issues)
            returned = len(page.issues)
            logger.debug("Fetched page %s: offset=%s returned=%s total=%s", result.pages, start_at, returned, page.total)

            start_at += returned
            if returned < requested:
                break

        logger.info("Fetched %s issues in %s pages", len(result.issues), result.pages)
        return result

    def fetch_all(self, project_keys: list[str], cancel_event: threading.Event | None = None) -> FetchResult:
        return self.fetch(build_project_jql(project_keys), cancel_event)

    def fetch_updated_since(
        self,
        since: dt.datetime,
        project_keys: list[str] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> FetchResult:
        return self.fetch(build_updated_since_jql(since, project_keys), cancel_event)
