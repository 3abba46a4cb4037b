"""Jira REST v2 client wrapper with retries."""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from jira_connector.core.config import Settings, get_settings
from jira_connector.core.exceptions import JiraAuthenticationError, JiraConnectionError, JiraFetchError
from jira_connector.integrations.jira.schemas import JiraIssue, JiraSearchResult

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    "summary,description,project,issuetype,status,priority,assignee,reporter,"
    "created,updated,resolutiondate,resolution,labels,components,fixVersions"
)
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class IssueSource(Protocol):
    def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult: ...

    def get_issue(self, issue_key: str) -> JiraIssue | None: ...

    def test_connection(self) -> bool: ...


class JiraClient:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_url = settings.JIRA_BASE_URL.rstrip("/")
        self.username = settings.JIRA_USERNAME
        self.token = settings.JIRA_PERSONAL_ACCESS_TOKEN
        self.timeout = float(settings.JIRA_TIMEOUT_SECONDS)
        self.max_retries = 3
        self.backoff = 0.5
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            auth=(self.username, self.token),
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send with retries; returns the last response without raising on HTTP status."""
        url = f"{self.base_url}{path}"
        backoff = self.backoff
        with self._client() as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = client.request(method, url, **kwargs)
                except httpx.TransportError as exc:
                    if attempt >= self.max_retries:
                        raise JiraConnectionError(f"Jira request {method} {path} failed: {exc}") from exc
                    logger.warning("Jira request %s %s failed (attempt %s): %s", method, path, attempt, exc)
                    time.sleep(backoff)
                    backoff *= 2
                    continue

                if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                    logger.warning(
                        "Jira request %s %s returned %s (attempt %s), retrying",
                        method,
                        path,
                        response.status_code,
                        attempt,
                    )
                    time.sleep(backoff)
                    backoff *= 2
                    continue

                if response.status_code in {401, 403}:
                    raise JiraAuthenticationError(
                        f"Jira rejected credentials for {self.username} (status={response.status_code})"
                    )
                return response
        raise JiraConnectionError(f"Jira request {method} {path} exhausted retries")

    def search_issues(self, jql: str, start_at: int, max_results: int) -> JiraSearchResult:
        try:
            response = self._send(
                "GET",
                "/rest/api/2/search",
                params={
                    "jql": jql,
                    "startAt": start_at,
                    "maxResults": max_results,
                    "fields": SEARCH_FIELDS,
                },
            )
        except JiraConnectionError as exc:
            raise JiraFetchError(exc.message, start_at=start_at) from exc
        if response.is_error:
            raise JiraFetchError(
                f"Jira search failed with status {response.status_code}: {response.text[:200]}",
                start_at=start_at,
                status_code=response.status_code,
            )
        try:
            return JiraSearchResult.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise JiraFetchError(f"Unreadable Jira search page: {exc}", start_at=start_at) from exc

    def get_issue(self, issue_key: str) -> JiraIssue | None:
        key = (issue_key or "").strip()
        if not key:
            return None
        response = self._send("GET", f"/rest/api/2/issue/{key}", params={"fields": SEARCH_FIELDS})
        if response.status_code == 404:
            logger.info("Jira issue %s not found", key)
            return None
        if response.is_error:
            raise JiraFetchError(
                f"Jira issue {key} failed with status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return JiraIssue.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise JiraFetchError(f"Unreadable Jira issue {key}: {exc}") from exc

    def test_connection(self) -> bool:
        try:
            response = self._send("GET", "/rest/api/2/serverInfo")
        except (JiraConnectionError, JiraAuthenticationError) as exc:
            logger.error("Jira connection test failed: %s", exc)
            return False
        if response.is_error:
            logger.error("Jira connection test failed with status %s", response.status_code)
            return False
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            logger.info("Connected to Jira %s (%s)", data.get("serverTitle", ""), data.get("version", "unknown"))
        return True
