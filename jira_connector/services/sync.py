"""Full and incremental synchronization of Jira issues into the local store."""

from __future__ import annotations

import datetime as dt
import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from jira_connector.core.config import Settings
from jira_connector.core.exceptions import JiraConnectionError, SyncCancelledError
from jira_connector.db.store import IssueStore, utcnow
from jira_connector.integrations.jira.client import IssueSource
from jira_connector.integrations.jira.pagination import FetchResult, IssueFetcher
from jira_connector.integrations.jira.schemas import JiraIssue

logger = logging.getLogger(__name__)

NO_PROJECTS_WARNING = "No projects specified for synchronization"


class SyncType(str, enum.Enum):
    full = "full"
    incremental = "incremental"


@dataclass
class SyncResult:
    sync_type: SyncType
    start_time: dt.datetime = field(default_factory=utcnow)
    end_time: dt.datetime | None = None
    success: bool = False
    issues_processed: int = 0
    issues_inserted: int = 0
    issues_updated: int = 0
    issues_skipped: int = 0
    warnings: list[str] = field(default_factory=list)
    error_message: str | None = None

    @property
    def duration(self) -> dt.timedelta:
        if self.end_time is None:
            return dt.timedelta(0)
        return self.end_time - self.start_time


@dataclass
class SyncStatus:
    last_sync: dt.datetime | None
    is_healthy: bool
    total_issues: int = 0
    total_projects: int = 0
    last_error: str | None = None


def _chunks(issues: list[JiraIssue], size: int) -> list[list[JiraIssue]]:
    return [issues[index:index + size] for index in range(0, len(issues), size)]


class SyncService:
    def __init__(self, client: IssueSource, store: IssueStore, settings: Settings) -> None:
        self.client = client
        self.store = store
        self.settings = settings
        self.fetcher = IssueFetcher(client, settings.JIRA_MAX_RESULTS_PER_REQUEST)
        self.last_error: str | None = None

    def test_connections(self, cancel_event: threading.Event | None = None) -> bool:
        logger.info("Testing connections to Jira and database")
        try:
            if cancel_event is not None and cancel_event.is_set():
                return False
            if not self.client.test_connection():
                logger.error("Jira connection test failed")
                return False
            health = self.store.get_health_status()
            if not health.is_healthy:
                logger.error("Database health check failed: %s", "; ".join(health.issues))
                return False
        except Exception as exc:  # noqa: BLE001
            logger.error("Connection test failed: %s", exc)
            return False
        logger.info("All connections tested successfully")
        return True

    def perform_full_sync(self, cancel_event: threading.Event | None = None) -> SyncResult:
        logger.info("Starting full synchronization")
        result = SyncResult(sync_type=SyncType.full)
        return self._run(
            result,
            lambda keys: self.fetcher.fetch_all(keys, cancel_event),
            cancel_event,
        )

    def perform_incremental_sync(self, cancel_event: threading.Event | None = None) -> SyncResult:
        logger.info("Starting incremental synchronization")
        result = SyncResult(sync_type=SyncType.incremental)
        try:
            self._prepare(cancel_event)
            last_sync = self.store.get_last_sync_timestamp()
        except Exception as exc:  # noqa: BLE001
            return self._fail(result, exc)

        if last_sync is None:
            logger.warning("No previous sync found, performing full sync instead")
            return self.perform_full_sync(cancel_event)

        lookback = last_sync - dt.timedelta(days=self.settings.SYNC_LOOKBACK_DAYS)
        logger.info("Syncing changes since %s", lookback.isoformat())
        return self._run(
            result,
            lambda keys: self.fetcher.fetch_updated_since(lookback, keys, cancel_event),
            cancel_event,
            prepared=True,
        )

    def get_last_sync_status(self) -> SyncStatus:
        health = self.store.get_health_status()
        return SyncStatus(
            last_sync=health.last_sync_time,
            is_healthy=health.is_healthy,
            total_issues=health.total_issues,
            total_projects=health.total_projects,
            last_error=self.last_error or ("; ".join(health.issues) or None),
        )

    def _prepare(self, cancel_event: threading.Event | None) -> None:
        if not self.test_connections(cancel_event):
            if cancel_event is not None and cancel_event.is_set():
                raise SyncCancelledError(stage="connect")
            raise JiraConnectionError("Connection test failed")
        self.store.initialize_schema()

    def _run(
        self,
        result: SyncResult,
        fetch: Callable[[list[str]], FetchResult],
        cancel_event: threading.Event | None,
        *,
        prepared: bool = False,
    ) -> SyncResult:
        try:
            if not prepared:
                self._prepare(cancel_event)

            project_keys = self.settings.project_keys
            if not project_keys:
                logger.warning(NO_PROJECTS_WARNING)
                result.warnings.append(NO_PROJECTS_WARNING)
            else:
                fetched = fetch(project_keys)
                result.warnings.extend(fetched.warnings)
                logger.info("Retrieved %s issues from Jira", len(fetched.issues))
                if fetched.issues:
                    self._persist(result, fetched.issues, cancel_event)
                else:
                    logger.info("No issues found that need updating")

            finished = utcnow()
            self.store.update_last_sync_timestamp(
                finished,
                sync_type=result.sync_type.value,
                start_time=result.start_time,
                records_processed=result.issues_processed,
            )
            result.success = True
            result.end_time = finished
            self.last_error = None
            logger.info(
                "%s synchronization completed successfully. Processed %s issues (inserted=%s updated=%s) in %s",
                result.sync_type.value.capitalize(),
                result.issues_processed,
                result.issues_inserted,
                result.issues_updated,
                result.duration,
            )
            return result
        except Exception as exc:  # noqa: BLE001
            return self._fail(result, exc)

    def _persist(
        self,
        result: SyncResult,
        issues: list[JiraIssue],
        cancel_event: threading.Event | None,
    ) -> None:
        batch_size = max(1, self.settings.SYNC_BATCH_SIZE)
        for number, batch in enumerate(_chunks(issues, batch_size), start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise SyncCancelledError(stage="persist")
            counts = self.store.upsert_issues(batch, cancel_event)
            result.issues_processed += len(batch)
            result.issues_inserted += counts.inserted
            result.issues_updated += counts.updated
            result.warnings.extend(counts.warnings)
            logger.debug("Processed batch %s of %s issues", number, len(batch))

    def _fail(self, result: SyncResult, exc: Exception) -> SyncResult:
        result.success = False
        result.error_message = str(exc) or exc.__class__.__name__
        result.end_time = utcnow()
        self.last_error = result.error_message
        if isinstance(exc, SyncCancelledError):
            logger.warning("%s synchronization cancelled after %s", result.sync_type.value.capitalize(), result.duration)
        else:
            logger.exception("%s synchronization failed after %s", result.sync_type.value.capitalize(), result.duration)
        return result
