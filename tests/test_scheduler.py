from __future__ import annotations

import asyncio

from jira_connector.services.scheduler import SyncScheduler
from jira_connector.services.sync import SyncResult, SyncType


class FakeSyncService:
    def __init__(self, outcomes: list[bool]) -> None:
        self.outcomes = outcomes
        self.cancel_events: list = []

    def perform_incremental_sync(self, cancel_event=None) -> SyncResult:  # noqa: ANN001
        self.cancel_events.append(cancel_event)
        success = self.outcomes.pop(0) if self.outcomes else True
        return SyncResult(sync_type=SyncType.incremental, success=success, issues_processed=3 if success else 0)


def test_run_once_tracks_results_and_failures() -> None:
    service = FakeSyncService([True, False])
    seen: list[SyncResult] = []
    scheduler = SyncScheduler(service, 30, on_result=seen.append)

    scheduler.run_once()
    last = scheduler.run_once()

    assert scheduler.sync_count == 2
    assert scheduler.error_count == 1
    assert scheduler.last_result is last
    assert [result.success for result in seen] == [True, False]
    assert service.cancel_events == [scheduler.cancel_event, scheduler.cancel_event]


def test_callback_errors_do_not_break_the_loop() -> None:
    def explode(_result: SyncResult) -> None:
        raise RuntimeError("printer on fire")

    scheduler = SyncScheduler(FakeSyncService([True]), 30, on_result=explode)

    assert scheduler.run_once().success is True
    assert scheduler.sync_count == 1


def test_interval_has_one_minute_floor() -> None:
    assert SyncScheduler(FakeSyncService([]), 0).interval_seconds == 60
    assert SyncScheduler(FakeSyncService([]), 15).interval_seconds == 900


def test_start_runs_immediately_and_stop_cancels() -> None:
    service = FakeSyncService([True])
    scheduler = SyncScheduler(service, 30)

    async def scenario() -> None:
        await scheduler.start()
        assert scheduler.running is True
        for _ in range(200):
            if scheduler.sync_count:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

    asyncio.run(scenario())

    assert scheduler.sync_count == 1
    assert scheduler.running is False
    assert scheduler.cancel_event.is_set()
