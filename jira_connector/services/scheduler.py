"""Background loop running incremental syncs on a fixed interval."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable

from jira_connector.services.sync import SyncResult, SyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(
        self,
        service: SyncService,
        interval_minutes: int,
        *,
        startup_delay_seconds: float = 0,
        on_result: Callable[[SyncResult], None] | None = None,
    ) -> None:
        self.service = service
        self.interval_seconds = max(60, int(interval_minutes) * 60)
        self.startup_delay_seconds = max(0.0, startup_delay_seconds)
        self.on_result = on_result
        self.cancel_event = threading.Event()
        self.last_result: SyncResult | None = None
        self.sync_count = 0
        self.error_count = 0
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> SyncResult:
        result = self.service.perform_incremental_sync(self.cancel_event)
        self.last_result = result
        self.sync_count += 1
        if not result.success:
            self.error_count += 1
        logger.info(
            "Scheduled sync completed: type=%s success=%s processed=%s warnings=%s",
            result.sync_type.value,
            result.success,
            result.issues_processed,
            len(result.warnings),
        )
        if self.on_result is not None:
            try:
                self.on_result(result)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Sync result callback failed: %s", exc)
        return result

    async def _loop(self) -> None:
        if self.startup_delay_seconds:
            await asyncio.sleep(self.startup_delay_seconds)
        while not self.cancel_event.is_set():
            await asyncio.to_thread(self.run_once)
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        if self._task is not None:
            return
        self.cancel_event.clear()
        self._task = asyncio.create_task(self._loop(), name="jira-sync-scheduler")
        logger.info("Sync scheduler started (every %s seconds)", self.interval_seconds)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        self.cancel_event.set()
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Sync scheduler stopped after %s runs (%s failed)", self.sync_count, self.error_count)
