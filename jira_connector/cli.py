"""Command line entry point: sync Jira issues into the local store.

Usage examples:

    jira-connector
    jira-connector --full-sync
    jira-connector --watch --env-file ./prod.env
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import Sequence

from pydantic import ValidationError

from jira_connector.core.config import Settings, load_settings
from jira_connector.core.exceptions import InvalidConfigurationError
from jira_connector.core.logging import setup_logging
from jira_connector.db.session import mask_database_url
from jira_connector.db.store import IssueStore
from jira_connector.integrations.jira.client import JiraClient
from jira_connector.services.scheduler import SyncScheduler
from jira_connector.services.sync import SyncResult, SyncService

logger = logging.getLogger(__name__)

TOP_PROJECTS = 10


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="jira-connector", description="Synchronize Jira issues into a local database")
    parser.add_argument("--full-sync", action="store_true", help="Reload every issue instead of catching up")
    parser.add_argument("--watch", action="store_true", help="Keep running incremental syncs every SYNC_INTERVAL_MINUTES")
    parser.add_argument("--env-file", default="", help="Read settings from this .env file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(argv)


def _format_duration(result: SyncResult) -> str:
    seconds = int(result.duration.total_seconds())
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def print_configuration(settings: Settings) -> None:
    projects = ", ".join(settings.project_keys) or "none configured"
    print("\nConfiguration Summary:")
    print(f"   Jira Server: {settings.JIRA_BASE_URL}")
    print(f"   Username: {settings.JIRA_USERNAME}")
    print(f"   Database: {mask_database_url(settings.DATABASE_URL)}")
    print(f"   Projects: {projects}")
    print(f"   Sync Interval: {settings.SYNC_INTERVAL_MINUTES} minutes")
    print(f"   Batch Size: {settings.SYNC_BATCH_SIZE}")


def print_sync_result(result: SyncResult) -> None:
    print("\nSynchronization Results:")
    print(f"   Type: {result.sync_type.value}")
    print(f"   Status: {'Success' if result.success else 'Failed'}")
    print(f"   Duration: {_format_duration(result)}")
    print(f"   Issues Processed: {result.issues_processed:,}")
    print(f"   Issues Inserted: {result.issues_inserted:,}")
    print(f"   Issues Updated: {result.issues_updated:,}")
    if result.warnings:
        print(f"   Warnings: {len(result.warnings)}")
        for warning in result.warnings:
            print(f"     ! {warning}")
    if not result.success and result.error_message:
        print(f"   Error: {result.error_message}")


def print_project_stats(store: IssueStore) -> None:
    try:
        summaries = store.get_project_summaries()
    except Exception as exc:  # noqa: BLE001
        print(f"Could not retrieve database statistics: {exc}")
        return
    if not summaries:
        return

    print("\nProject Statistics:")
    print(f"{'Project':<15} {'Total':<8} {'Open':<6} {'InProg':<7} {'Done':<6} {'Avg Days':<9}")
    print("-" * 65)
    for summary in summaries[:TOP_PROJECTS]:
        avg = f"{summary.avg_resolution_days:.1f}" if summary.avg_resolution_days is not None else "-"
        print(
            f"{summary.project_key:<15} {summary.total_issues:<8,} {summary.open_issues:<6,} "
            f"{summary.in_progress_issues:<7,} {summary.resolved_issues:<6,} {avg:<9}"
        )
    if len(summaries) > TOP_PROJECTS:
        print(f"... and {len(summaries) - TOP_PROJECTS} more projects")

    total = sum(summary.total_issues for summary in summaries)
    resolved = sum(summary.resolved_issues for summary in summaries)
    share = (resolved / total * 100) if total else 0.0
    print(f"\nOverall: {total:,} total issues, {resolved:,} resolved ({share:.1f}%)")


async def _watch(scheduler: SyncScheduler) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            signal.signal(sig, lambda *_args: loop.call_soon_threadsafe(stop.set))
    await scheduler.start()
    await stop.wait()
    await scheduler.stop()


def run(settings: Settings, *, full_sync: bool = False, watch: bool = False) -> int:
    settings.validate_required()
    print_configuration(settings)

    with IssueStore(settings.DATABASE_URL, echo=settings.DATABASE_ECHO) as store:
        service = SyncService(JiraClient(settings), store, settings)

        print("\nTesting connections...")
        if not service.test_connections():
            print("Connection tests failed. Please check your configuration.")
            return 1
        print("All connections successful!")

        use_full = full_sync or settings.SYNC_FULL_ON_STARTUP
        print(f"\nStarting {'full' if use_full else 'incremental'} synchronization...")
        result = service.perform_full_sync() if use_full else service.perform_incremental_sync()
        print_sync_result(result)
        if not result.success:
            return 1

        print_project_stats(store)

        if watch:
            scheduler = SyncScheduler(
                service,
                settings.SYNC_INTERVAL_MINUTES,
                startup_delay_seconds=settings.SYNC_INTERVAL_MINUTES * 60,
                on_result=print_sync_result,
            )
            print(f"\nWatching for changes every {settings.SYNC_INTERVAL_MINUTES} minutes (Ctrl+C to stop)")
            asyncio.run(_watch(scheduler))

    print("\nJira connector completed successfully!")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.env_file or None)
    except ValidationError as exc:
        setup_logging()
        logger.error("Invalid configuration: %s", exc)
        print(f"Invalid configuration:\n{exc}")
        return 1

    setup_logging("DEBUG" if args.verbose else settings.LOG_LEVEL, settings.LOG_FILE or None)
    try:
        return run(settings, full_sync=args.full_sync, watch=args.watch)
    except InvalidConfigurationError as exc:
        logger.error("%s", exc.message)
        print(exc.message)
        return 1
    except Exception as exc:  # noqa: BLE001
        logger.exception("Application terminated unexpectedly")
        print(f"Fatal error: {exc}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
