"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE statements."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection

from jira_connector.models import Issue, IssueType, JiraUser, Priority, Project, Status, StatusCategory

# Columns refreshed on conflict. Keys and issue creation time are insert-only.
UPDATE_COLUMNS: dict[str, tuple[str, ...]] = {
    "projects": ("project_key", "project_name", "updated_date"),
    "issue_types": ("issue_type_name", "icon_url"),
    "status_categories": ("category_name", "category_key"),
    "statuses": ("status_name", "status_category_id"),
    "priorities": ("priority_name", "icon_url"),
    "users": ("username", "display_name", "email_address", "updated_date"),
    "issues": (
        "status_id",
        "assignee_id",
        "summary",
        "description",
        "updated_date",
        "resolved_date",
        "resolution",
        "labels",
        "last_synced",
    ),
}

CONFLICT_KEYS: dict[str, str] = {
    "projects": "project_id",
    "issue_types": "issue_type_id",
    "status_categories": "status_category_id",
    "statuses": "status_id",
    "priorities": "priority_id",
    "users": "user_id",
    "issues": "issue_id",
}


def _insert_for(dialect_name: str):
    if dialect_name == "sqlite":
        return sqlite.insert
    if dialect_name == "postgresql":
        return postgresql.insert
    raise NotImplementedError(f"upsert is not supported for dialect {dialect_name!r}")


def upsert_row(connection: Connection, table: Table, row: dict[str, Any]) -> None:
    insert = _insert_for(connection.dialect.name)
    stmt = insert(table).values(**row)
    stmt = stmt.on_conflict_do_update(
        index_elements=[CONFLICT_KEYS[table.name]],
        set_={column: stmt.excluded[column] for column in UPDATE_COLUMNS[table.name]},
    )
    connection.execute(stmt)


def upsert_project(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, Project.__table__, row)


def upsert_issue_type(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, IssueType.__table__, row)


def upsert_status_category(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, StatusCategory.__table__, row)


def upsert_status(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, Status.__table__, row)


def upsert_priority(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, Priority.__table__, row)


def upsert_user(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, JiraUser.__table__, row)


def upsert_issue(connection: Connection, row: dict[str, Any]) -> None:
    upsert_row(connection, Issue.__table__, row)
