"""Local relational store for synchronized Jira issues.

``IssueStore`` owns a lazily created SQLAlchemy engine. Nothing touches the
database until the first operation, and ``close()`` releases the pool so a
store can be reopened later. Writes go through ``upsert_issues``: one
transaction per call, dependents before the issue row, rollback on any error.
"""

from __future__ import annotations

import datetime as dt
import decimal
import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from sqlalchemy import func, select, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from jira_connector.core.exceptions import DatabaseConnectionError, DatabaseQueryError, SyncCancelledError
from jira_connector.db import upsert
from jira_connector.db.base import Base
from jira_connector.db.session import create_db_engine, mask_database_url
from jira_connector.integrations.jira.mapper import IssueRows, as_utc, map_issue
from jira_connector.integrations.jira.schemas import JiraIssue
from jira_connector.models import Issue, IssueType, JiraUser, Priority, Project, Status, StatusCategory, SyncHistory
from jira_connector.models.sync_history import SYNC_STATUS_COMPLETED

logger = logging.getLogger(__name__)

QueryValue = Union[None, int, float, str, dt.datetime]
QueryRow = dict[str, QueryValue]

ISSUE_METRICS_DEFAULT_LIMIT = 1000
DONE_CATEGORY = "done"
IN_PROGRESS_CATEGORY = "indeterminate"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass
class UpsertCounts:
    inserted: int = 0
    updated: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.inserted + self.updated


@dataclass
class IssueRecord:
    issue_id: str
    issue_key: str
    project_id: str
    issue_type_id: str
    status_id: str
    priority_id: str | None
    assignee_id: str | None
    reporter_id: str | None
    summary: str
    description: str | None
    created_date: dt.datetime
    updated_date: dt.datetime
    resolved_date: dt.datetime | None
    resolution: str | None
    labels: list[str]
    last_synced: dt.datetime


@dataclass
class ProjectSummary:
    project_id: str
    project_key: str
    project_name: str
    total_issues: int = 0
    resolved_issues: int = 0
    open_issues: int = 0
    in_progress_issues: int = 0
    avg_resolution_days: float | None = None
    first_issue_date: dt.datetime | None = None
    last_updated_date: dt.datetime | None = None


@dataclass
class IssueMetric:
    issue_id: str
    issue_key: str
    project_key: str
    project_name: str
    issue_type_name: str
    status_name: str
    status_category: str | None
    priority_name: str | None
    assignee_name: str | None
    reporter_name: str | None
    summary: str
    created_date: dt.datetime
    updated_date: dt.datetime
    resolved_date: dt.datetime | None
    age_days: int
    resolution_days: int | None
    labels: list[str] = field(default_factory=list)


@dataclass
class DatabaseHealthStatus:
    is_healthy: bool
    database_url: str
    database_size_bytes: int | None = None
    total_issues: int = 0
    total_projects: int = 0
    last_sync_time: dt.datetime | None = None
    issues: list[str] = field(default_factory=list)


def _query_value(value: Any) -> QueryValue:
    if value is None or isinstance(value, (str, float)):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, decimal.Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class IssueStore:
    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.database_url = database_url
        self.echo = echo
        self._engine: Engine | None = None
        self._lock = threading.Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    try:
                        self._engine = create_db_engine(self.database_url, echo=self.echo)
                    except (SQLAlchemyError, ValueError) as exc:
                        raise DatabaseConnectionError(f"Cannot open database: {exc}") from exc
                    logger.info("Opened database %s", mask_database_url(self.database_url))
        return self._engine

    def close(self) -> None:
        with self._lock:
            engine = self._engine
            self._engine = None
        if engine is not None:
            engine.dispose()

    def __enter__(self) -> IssueStore:
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    def initialize_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise DatabaseConnectionError(f"Schema initialization failed: {exc}") from exc
        logger.debug("Database schema ready")

    # ----- writes -----

    def upsert_issues(
        self,
        issues: Iterable[JiraIssue],
        cancel_event: threading.Event | None = None,
    ) -> UpsertCounts:
        batch = list(issues)
        counts = UpsertCounts()
        if not batch:
            return counts

        synced_at = utcnow()
        try:
            with self.engine.begin() as connection:
                seen = self._existing_issue_ids(connection, [issue.id for issue in batch])
                for issue in batch:
                    if cancel_event is not None and cancel_event.is_set():
                        raise SyncCancelledError(stage="persist")
                    rows = map_issue(issue, synced_at=synced_at)
                    self._write_issue_rows(connection, rows)
                    counts.warnings.extend(rows.warnings)
                    if issue.id in seen:
                        counts.updated += 1
                    else:
                        counts.inserted += 1
                        seen.add(issue.id)
        except SyncCancelledError:
            logger.warning("Batch of %s issues rolled back after cancellation", len(batch))
            raise
        except SQLAlchemyError as exc:
            logger.error("Batch of %s issues rolled back: %s", len(batch), exc)
            raise DatabaseQueryError(f"Failed to upsert batch of {len(batch)} issues: {exc}") from exc
        except ValueError as exc:
            logger.error("Batch of %s issues rolled back: %s", len(batch), exc)
            raise DatabaseQueryError(f"Issue payload could not be stored: {exc}") from exc

        logger.debug("Upserted batch: inserted=%s updated=%s", counts.inserted, counts.updated)
        return counts

    def _existing_issue_ids(self, connection: Connection, issue_ids: list[str]) -> set[str]:
        stmt = select(Issue.issue_id).where(Issue.issue_id.in_(set(issue_ids)))
        return set(connection.execute(stmt).scalars())

    def _write_issue_rows(self, connection: Connection, rows: IssueRows) -> None:
        upsert.upsert_project(connection, rows.project)
        upsert.upsert_issue_type(connection, rows.issue_type)
        if rows.status_category is not None:
            upsert.upsert_status_category(connection, rows.status_category)
        upsert.upsert_status(connection, rows.status)
        if rows.priority is not None:
            upsert.upsert_priority(connection, rows.priority)
        if rows.assignee is not None:
            upsert.upsert_user(connection, rows.assignee)
        if rows.reporter is not None:
            upsert.upsert_user(connection, rows.reporter)
        upsert.upsert_issue(connection, rows.issue)

    # ----- checkpoint -----

    def get_last_sync_timestamp(self) -> dt.datetime | None:
        stmt = select(func.max(SyncHistory.end_time)).where(SyncHistory.status == SYNC_STATUS_COMPLETED)
        try:
            with self.engine.connect() as connection:
                value = connection.execute(stmt).scalar()
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Failed to read last sync timestamp: {exc}") from exc
        return as_utc(value)

    def update_last_sync_timestamp(
        self,
        timestamp: dt.datetime,
        *,
        sync_type: str = "full",
        start_time: dt.datetime | None = None,
        records_processed: int = 0,
    ) -> None:
        row = SyncHistory.__table__.insert().values(
            sync_type=sync_type,
            start_time=start_time or timestamp,
            end_time=timestamp,
            status=SYNC_STATUS_COMPLETED,
            records_processed=records_processed,
        )
        try:
            with self.engine.begin() as connection:
                connection.execute(row)
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Failed to record sync checkpoint: {exc}") from exc
        logger.info("Recorded %s sync checkpoint at %s (%s records)", sync_type, timestamp.isoformat(), records_processed)

    # ----- reads -----

    def get_issues_by_keys(self, issue_keys: Iterable[str]) -> list[IssueRecord]:
        keys = sorted({key for key in issue_keys if key})
        if not keys:
            return []
        stmt = select(Issue.__table__).where(Issue.issue_key.in_(keys)).order_by(Issue.issue_key)
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(stmt).mappings().all()
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Failed to load issues: {exc}") from exc
        return [self._issue_record(row) for row in rows]

    def _issue_record(self, row: Mapping[str, Any]) -> IssueRecord:
        values = dict(row)
        for column in ("created_date", "updated_date", "resolved_date", "last_synced"):
            values[column] = as_utc(values[column])
        values["labels"] = list(values.get("labels") or [])
        return IssueRecord(**values)

    def get_project_summaries(self) -> list[ProjectSummary]:
        stmt = (
            select(
                Project.project_id,
                Project.project_key,
                Project.project_name,
                Issue.issue_id,
                Issue.created_date,
                Issue.updated_date,
                Issue.resolved_date,
                StatusCategory.category_key,
            )
            .select_from(Project)
            .outerjoin(Issue, Issue.project_id == Project.project_id)
            .outerjoin(Status, Status.status_id == Issue.status_id)
            .outerjoin(StatusCategory, StatusCategory.status_category_id == Status.status_category_id)
        )
        try:
            with self.engine.connect() as connection:
                rows = connection.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Failed to summarize projects: {exc}") from exc

        summaries: dict[str, ProjectSummary] = {}
        resolution_days: dict[str, list[float]] = {}
        for row in rows:
            summary = summaries.get(row.project_id)
            if summary is None:
                summary = ProjectSummary(row.project_id, row.project_key, row.project_name)
                summaries[row.project_id] = summary
                resolution_days[row.project_id] = []
            if row.issue_id is None:
                continue

            created = as_utc(row.created_date)
            updated = as_utc(row.updated_date)
            resolved = as_utc(row.resolved_date)
            summary.total_issues += 1
            if row.category_key == DONE_CATEGORY:
                summary.resolved_issues += 1
            elif row.category_key == IN_PROGRESS_CATEGORY:
                summary.in_progress_issues += 1
            else:
                summary.open_issues += 1
            if resolved is not None:
                resolution_days[row.project_id].append((resolved - created).total_seconds() / 86400)
            if summary.first_issue_date is None or created < summary.first_issue_date:
                summary.first_issue_date = created
            if summary.last_updated_date is None or updated > summary.last_updated_date:
                summary.last_updated_date = updated

        for project_id, durations in resolution_days.items():
            if durations:
                summaries[project_id].avg_resolution_days = round(sum(durations) / len(durations), 2)
        return sorted(summaries.values(), key=lambda item: item.project_name)

    def get_issue_metrics(self, project_key: str | None = None) -> list[IssueMetric]:
        assignee = aliased(JiraUser)
        reporter = aliased(JiraUser)
        stmt = (
            select(
                Issue.issue_id,
                Issue.issue_key,
                Project.project_key,
                Project.project_name,
                IssueType.issue_type_name,
                Status.status_name,
                StatusCategory.category_name,
                Priority.priority_name,
                assignee.display_name.label("assignee_name"),
                reporter.display_name.label("reporter_name"),
                Issue.summary,
                Issue.created_date,
                Issue.updated_date,
                Issue.resolved_date,
                Issue.labels,
            )
            .join(Project, Project.project_id == Issue.project_id)
            .join(IssueType, IssueType.issue_type_id == Issue.issue_type_id)
            .join(Status, Status.status_id == Issue.status_id)
            .outerjoin(StatusCategory, StatusCategory.status_category_id == Status.status_category_id)
            .outerjoin(Priority, Priority.priority_id == Issue.priority_id)
            .outerjoin(assignee, assignee.user_id == Issue.assignee_id)
            .outerjoin(reporter, reporter.user_id == Issue.reporter_id)
            .order_by(Issue.updated_date.desc())
        )
        if project_key:
            stmt = stmt.where(Project.project_key == project_key)
        else:
            stmt = stmt.limit(ISSUE_METRICS_DEFAULT_LIMIT)

        try:
            with self.engine.connect() as connection:
                rows = connection.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Failed to load issue metrics: {exc}") from exc

        now = utcnow()
        metrics: list[IssueMetric] = []
        for row in rows:
            created = as_utc(row.created_date)
            resolved = as_utc(row.resolved_date)
            metrics.append(
                IssueMetric(
                    issue_id=row.issue_id,
                    issue_key=row.issue_key,
                    project_key=row.project_key,
                    project_name=row.project_name,
                    issue_type_name=row.issue_type_name,
                    status_name=row.status_name,
                    status_category=row.category_name,
                    priority_name=row.priority_name,
                    assignee_name=row.assignee_name,
                    reporter_name=row.reporter_name,
                    summary=row.summary,
                    created_date=created,
                    updated_date=as_utc(row.updated_date),
                    resolved_date=resolved,
                    age_days=(now - created).days,
                    resolution_days=(resolved - created).days if resolved is not None else None,
                    labels=list(row.labels or []),
                )
            )
        return metrics

    def execute_analytical_query(self, sql: str, params: Mapping[str, Any] | None = None) -> list[QueryRow]:
        try:
            with self.engine.connect() as connection:
                result = connection.execute(text(sql), dict(params or {}))
                columns = list(result.keys())
                rows = result.all()
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Analytical query failed: {exc}", query=sql) from exc
        return [{column: _query_value(value) for column, value in zip(columns, row)} for row in rows]

    def get_health_status(self) -> DatabaseHealthStatus:
        status = DatabaseHealthStatus(is_healthy=True, database_url=mask_database_url(self.database_url))
        try:
            url = make_url(self.database_url)
            if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
                if os.path.exists(url.database):
                    status.database_size_bytes = os.path.getsize(url.database)
            # a fresh database has no tables yet; the probe must not fail on that
            self.initialize_schema()
            with self.engine.connect() as connection:
                status.total_issues = int(connection.execute(select(func.count()).select_from(Issue)).scalar() or 0)
                status.total_projects = int(connection.execute(select(func.count()).select_from(Project)).scalar() or 0)
            status.last_sync_time = self.get_last_sync_timestamp()
        except Exception as exc:  # noqa: BLE001
            logger.error("Error getting database health status: %s", exc)
            status.is_healthy = False
            status.issues.append(str(exc))
        return status
