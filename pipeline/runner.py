"""Runs the pipeline jobs with schema latches and single-run guards."""
import asyncio
import json
import logging
import uuid
from datetime import timedelta
from typing import Awaitable, Callable, Optional, Sequence

from notifier.discord_webhook import DARK_RED, DiscordWebhookNotifier
from pipeline.deadlines import DeadlineScheduler
from pipeline.import_coordinator import ImportCoordinator
from pipeline.key_reminders import KeyAccessReminder
from processor.closed_sets import ClosedSets
from processor.errors import SchemaMismatchError
from processor.event_builder import EventRecordBuilder
from schema_guard.guard import FormSchemaGuard, PipelineHealth, StoreSchemaGuard, load_snapshot
from sheets.host_form_sheet import HostFormSheet
from storage.notion_calendar import NotionCalendarClient

logger = logging.getLogger(__name__)

MISMATCH_TITLES = {
    'form': '🚫 Google Sheets table columns changed!',
    'store': '🚫 Notion database changed!',
}
MISMATCH_SUBJECTS = {
    'form': 'Google Sheets',
    'store': 'Notion database',
}

# Longest a Lambda invocation can run
SYNC_LOCK_TTL = timedelta(minutes=15)


class PipelineRunner:
    """
    Entry point for the sync, deadline, and key reminder jobs.

    Overlapping runs of the same job are skipped, since two syncs could both
    see the same unprocessed row and import it twice. Within one process the
    guard is an in-memory set. Separate processes, such as concurrent Lambda
    invocations, also share the sync lease kept in the host form sheet.
    """

    def __init__(
        self,
        config,
        health: PipelineHealth,
        importer,
        scheduler,
        key_reminder,
        notifier,
        lock=None
    ):
        self.config = config
        self.health = health
        self.importer = importer
        self.scheduler = scheduler
        self.key_reminder = key_reminder
        self.notifier = notifier
        self.lock = lock
        self._running = set()

    @classmethod
    def from_config(cls, config, health: Optional[PipelineHealth] = None) -> 'PipelineRunner':
        """Wire the production clients from configuration."""
        snapshot = load_snapshot()
        closed_sets = ClosedSets.from_snapshot(snapshot)
        form_guard = FormSchemaGuard(snapshot)
        store_guard = StoreSchemaGuard(snapshot)

        store = NotionCalendarClient(config.notion_token, timeout=config.timeout_seconds)
        sheet = HostFormSheet(
            config.sheets_doc_id,
            config.sheet_name,
            checkbox_sheet_name=config.checkbox_sheet_name,
            key_file=config.sheets_key_file
        )
        notifier = DiscordWebhookNotifier(config.webhook_url, timeout=config.timeout_seconds)
        builder = EventRecordBuilder(closed_sets, timezone=config.timezone)

        return cls(
            config=config,
            health=health or PipelineHealth(),
            importer=ImportCoordinator(
                config, sheet, store, notifier, form_guard, store_guard, builder
            ),
            scheduler=DeadlineScheduler(config, store, notifier, store_guard),
            key_reminder=KeyAccessReminder(config, store, notifier, store_guard),
            notifier=notifier,
            lock=sheet
        )

    async def run_sync(self):
        return await self._run_job('sync', self.importer.sync, ('form', 'store'), shared=True)

    async def run_deadlines(self):
        return await self._run_job('deadlines', self.scheduler.run, ('store',))

    async def run_key_reminders(self):
        return await self._run_job('key_reminders', self.key_reminder.run, ('store',))

    async def run_daily_checks(self):
        deadlines = await self.run_deadlines()
        reminders = await self.run_key_reminders()
        return deadlines, reminders

    async def _run_job(
        self,
        name: str,
        job: Callable[[], Awaitable],
        sources: Sequence[str],
        shared: bool = False
    ):
        """
        Run one job unless it is already running.

        Args:
            name: Job name for the in-progress guard
            job: Coroutine function to run
            sources: Schema sources the job validates, reset to healthy when
                the job completes without error
            shared: Also hold the cross-process lease while the job runs

        Returns:
            The job's result, or None if it was skipped or aborted by a
            schema mismatch
        """
        if name in self._running:
            logger.warning(f"Job '{name}' is already running; skipping this trigger")
            return None

        self._running.add(name)
        owner = None
        try:
            if shared and self.lock is not None:
                owner = await self._acquire_lease(name)
                if owner is None:
                    return None
            result = await job()
        except SchemaMismatchError as e:
            await self._report_schema_mismatch(e)
            return None
        finally:
            if owner is not None:
                await self._release_lease(owner)
            self._running.discard(name)

        self.health.mark_healthy(*sources)
        return result

    async def _acquire_lease(self, name: str) -> Optional[str]:
        owner = f"{name}-{uuid.uuid4().hex[:8]}"
        acquired = await asyncio.to_thread(self.lock.acquire_lock, owner, SYNC_LOCK_TTL)
        if not acquired:
            logger.warning(f"Job '{name}' is running elsewhere; skipping this trigger")
            return None
        return owner

    async def _release_lease(self, owner: str) -> None:
        try:
            await asyncio.to_thread(self.lock.release_lock, owner)
        except Exception as e:
            # The lease expires on its own
            logger.warning(f"Could not release sync lock {owner}: {e}")

    async def _report_schema_mismatch(self, error: SchemaMismatchError) -> None:
        if not self.health.trip(error.source):
            logger.info(f"Schema mismatch on {error.source} already reported; staying quiet")
            return

        diff = json.dumps(error.diff.to_dict(), indent=2)
        try:
            await asyncio.to_thread(
                self.notifier.notify,
                self.config.mentions('logistics', 'maintainer'),
                MISMATCH_TITLES.get(error.source, '🚫 Schema changed!'),
                f"Changes found:\n```json\n{diff}\n```",
                DARK_RED,
                "I will not run the pipeline again until y'all confirm the "
                f"{MISMATCH_SUBJECTS.get(error.source, 'schema')} changes."
            )
        except Exception as e:
            logger.warning(f"Schema mismatch notification failed: {e}")

    async def run_forever(self) -> None:
        """Run the sync and daily checks on their configured intervals."""
        await asyncio.gather(
            self._every(self.config.sync_interval_minutes * 60, self.run_sync),
            self._every(self.config.deadline_interval_hours * 3600, self.run_daily_checks)
        )

    async def _every(self, interval_seconds: int, job: Callable[[], Awaitable]) -> None:
        while True:
            try:
                await job()
            except Exception as e:
                logger.error(f"Scheduled job failed: {e}", exc_info=True)
            await asyncio.sleep(max(60, int(interval_seconds)))
