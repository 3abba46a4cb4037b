"""Mapping utilities from Jira issue payloads to store rows."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from jira_connector.integrations.jira.schemas import JiraIssue, JiraUser

logger = logging.getLogger(__name__)

UNKNOWN_USER_ID = "unknown"


def parse_datetime(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    candidates = [
        normalized.replace("Z", "+00:00"),
        normalized,
    ]
    for candidate in candidates:
        try:
            parsed = dt.datetime.fromisoformat(candidate)
            if parsed.tzinfo is None:
                return parsed.replace(tzinfo=dt.timezone.utc)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    formats = ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z")
    for fmt in formats:
        try:
            parsed = dt.datetime.strptime(normalized, fmt)
            return parsed.astimezone(dt.timezone.utc)
        except ValueError:
            continue
    logger.warning("Could not parse Jira datetime: %s", value)
    return None


def as_utc(value: dt.datetime | None) -> dt.datetime | None:
    """Attach UTC to naive values read back from backends that drop the offset."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def user_id_for(user: JiraUser) -> str:
    """Cloud users carry accountId, Server users carry name; neither means unknown."""
    for candidate in (user.account_id, user.name):
        value = (candidate or "").strip()
        if value:
            return value
    return UNKNOWN_USER_ID


def _normalize_labels(labels: list[str]) -> list[str]:
    return sorted({label.strip() for label in labels if label and label.strip()})


@dataclass
class IssueRows:
    """Rows for one issue, in the order they have to be written."""

    issue_key: str
    project: dict[str, Any]
    issue_type: dict[str, Any]
    status_category: dict[str, Any] | None
    status: dict[str, Any]
    priority: dict[str, Any] | None
    assignee: dict[str, Any] | None
    reporter: dict[str, Any] | None
    issue: dict[str, Any]
    warnings: list[str] = field(default_factory=list)


def _user_row(user: JiraUser, synced_at: dt.datetime) -> dict[str, Any]:
    return {
        "user_id": user_id_for(user),
        "username": user.name,
        "display_name": user.display_name,
        "email_address": user.email_address,
        "updated_date": synced_at,
    }


def map_issue(issue: JiraIssue, *, synced_at: dt.datetime) -> IssueRows:
    fields = issue.fields
    if not issue.id or not issue.key:
        raise ValueError("missing_issue_identity")
    if fields.project is None:
        raise ValueError(f"missing_project:{issue.key}")
    if fields.issue_type is None:
        raise ValueError(f"missing_issue_type:{issue.key}")
    if fields.status is None:
        raise ValueError(f"missing_status:{issue.key}")

    warnings: list[str] = []

    category = fields.status.status_category
    status_category = None
    if category is not None:
        status_category = {
            "status_category_id": category.id,
            "category_name": category.name,
            "category_key": category.key,
        }

    priority = None
    if fields.priority is not None:
        priority = {
            "priority_id": fields.priority.id,
            "priority_name": fields.priority.name,
            "icon_url": fields.priority.icon_url,
        }

    assignee = _user_row(fields.assignee, synced_at) if fields.assignee is not None else None
    reporter = _user_row(fields.reporter, synced_at) if fields.reporter is not None else None
    for role, row in (("assignee", assignee), ("reporter", reporter)):
        if row is not None and row["user_id"] == UNKNOWN_USER_ID:
            message = f"{issue.key}: {role} has no accountId or name, stored as '{UNKNOWN_USER_ID}'"
            logger.warning(message)
            warnings.append(message)

    return IssueRows(
        issue_key=issue.key,
        project={
            "project_id": fields.project.id,
            "project_key": fields.project.key,
            "project_name": fields.project.name,
            "updated_date": synced_at,
        },
        issue_type={
            "issue_type_id": fields.issue_type.id,
            "issue_type_name": fields.issue_type.name,
            "icon_url": fields.issue_type.icon_url,
        },
        status_category=status_category,
        status={
            "status_id": fields.status.id,
            "status_name": fields.status.name,
            "status_category_id": category.id if category is not None else None,
        },
        priority=priority,
        assignee=assignee,
        reporter=reporter,
        issue={
            "issue_id": issue.id,
            "issue_key": issue.key,
            "project_id": fields.project.id,
            "issue_type_id": fields.issue_type.id,
            "status_id": fields.status.id,
            "priority_id": priority["priority_id"] if priority else None,
            "assignee_id": assignee["user_id"] if assignee else None,
            "reporter_id": reporter["user_id"] if reporter else None,
            "summary": fields.summary,
            "description": fields.description,
            "created_date": fields.created,
            "updated_date": fields.updated,
            "resolved_date": fields.resolution_date,
            "resolution": fields.resolution.name if fields.resolution else None,
            "labels": _normalize_labels(fields.labels),
            "last_synced": synced_at,
        },
        warnings=warnings,
    )
