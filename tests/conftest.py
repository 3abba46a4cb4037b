from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

from jira_connector.core.config import Settings  # noqa: E402
from jira_connector.db.store import IssueStore  # noqa: E402
from jira_connector.integrations.jira.schemas import JiraIssue  # noqa: E402


def _issue_payload(
    key: str,
    *,
    issue_id: str | None = None,
    summary: str | None = None,
    project_key: str | None = None,
    status: tuple[str, str, int, str] = ("1", "Open", 2, "new"),
    assignee: dict[str, Any] | None = None,
    unassigned: bool = False,
    reporter: dict[str, Any] | None = None,
    created: str = "2024-01-01T10:00:00.000+0000",
    updated: str = "2024-01-02T10:00:00.000+0000",
    resolved: str | None = None,
    resolution: str | None = None,
    labels: list[str] | None = None,
) -> dict[str, Any]:
    project = project_key or key.split("-")[0]
    status_id, status_name, category_id, category_key = status
    return {
        "id": issue_id or f"id-{key}",
        "key": key,
        "self": f"https://jira.example.com/rest/api/2/issue/{key}",
        "fields": {
            "summary": summary or f"Issue {key}",
            "description": f"Description of {key}",
            "project": {"id": f"p-{project}", "key": project, "name": f"Project {project}"},
            "issuetype": {"id": "3", "name": "Task", "iconUrl": "https://jira.example.com/task.png"},
            "status": {
                "id": status_id,
                "name": status_name,
                "statusCategory": {"id": category_id, "key": category_key, "name": category_key.title()},
            },
            "priority": {"id": "3", "name": "Medium"},
            "assignee": None if unassigned else (assignee if assignee is not None else {"name": "jdoe", "displayName": "John Doe"}),
            "reporter": reporter if reporter is not None else {"accountId": "acc-1", "displayName": "Reporter One"},
            "created": created,
            "updated": updated,
            "resolutiondate": resolved,
            "resolution": {"id": "1", "name": resolution} if resolution else None,
            "labels": labels or [],
        },
    }


@pytest.fixture
def issue_payload() -> Callable[..., dict[str, Any]]:
    return _issue_payload


@pytest.fixture
def make_issue() -> Callable[..., JiraIssue]:
    def factory(key: str, **kwargs: Any) -> JiraIssue:
        return JiraIssue.model_validate(_issue_payload(key, **kwargs))

    return factory


@pytest.fixture
def settings(tmp_path) -> Settings:  # noqa: ANN001
    return Settings(
        _env_file=None,
        JIRA_BASE_URL="https://jira.example.com",
        JIRA_USERNAME="svc-connector",
        JIRA_PERSONAL_ACCESS_TOKEN="secret-token",
        JIRA_PROJECT_KEYS="TEST",
        JIRA_MAX_RESULTS_PER_REQUEST=100,
        DATABASE_URL=f"sqlite:///{tmp_path / 'jira_data.db'}",
        SYNC_BATCH_SIZE=10,
        SYNC_LOOKBACK_DAYS=7,
    )


@pytest.fixture
def store(settings: Settings):  # noqa: ANN201
    issue_store = IssueStore(settings.DATABASE_URL)
    issue_store.initialize_schema()
    try:
        yield issue_store
    finally:
        issue_store.close()
