"""Imports new host form responses into the Notion calendar."""
import asyncio
import logging
import uuid
from typing import List, Union

from notifier.discord_webhook import DARK_RED, GREEN, RED
from processor.errors import UploadError, ValidationError
from processor.models import (
    CalendarEventRecord,
    CreatedPage,
    HostedEventPage,
    HostFormResponse,
    ImportedEvent,
    ImportFailure,
    ImportResult,
    SheetData,
    UploadState,
)
from processor.normalizer import normalize
from storage.notion_calendar import (
    HOSTED_EVENT_TEMPLATE,
    calendar_event_properties,
    hosted_event_page_properties,
)

logger = logging.getLogger(__name__)


def select_rows(sheet_data: SheetData) -> List[HostFormResponse]:
    """
    Pick the host form rows that still need importing.

    A row is selected when its checkbox is unticked and it has an event name.
    The Sheets API reports formatted but empty rows, so nameless rows are
    skipped.

    Args:
        sheet_data: Loaded host form sheet

    Returns:
        Normalized responses of the selected rows, in sheet order
    """
    selected = []
    for index, raw_row in enumerate(sheet_data.rows):
        row_number = SheetData.row_number(index)
        processed = index < len(sheet_data.processed_flags) and sheet_data.processed_flags[index]
        if processed:
            continue

        response = normalize(sheet_data.headers, raw_row, row_number)
        if not response.event_name:
            answered = [cell for cell in raw_row if cell.strip() and cell.strip().upper() != 'FALSE']
            if answered:
                logger.warning(f"Row {row_number} has answers but no event name; skipping")
            continue

        selected.append(response)
    return selected


class ImportCoordinator:
    """Runs one host form to Notion calendar import."""

    def __init__(self, config, sheet, store, notifier, form_guard, store_guard, builder):
        """
        Initialize the coordinator.

        Args:
            config: PipelineConfig
            sheet: Host form sheet client (load_sheet, write_row)
            store: Notion calendar client (get_schema, create_record,
                create_linked_child)
            notifier: Notification sink
            form_guard: FormSchemaGuard
            store_guard: StoreSchemaGuard
            builder: EventRecordBuilder
        """
        self.config = config
        self.sheet = sheet
        self.store = store
        self.notifier = notifier
        self.form_guard = form_guard
        self.store_guard = store_guard
        self.builder = builder

    async def sync(self) -> ImportResult:
        """
        Import every unprocessed host form row.

        Both schemas are validated before anything is written. Each row is
        isolated: a bad row is reported and the rest continue.

        Returns:
            ImportResult with the imported events and per-row failures

        Raises:
            FormSchemaMismatchError: If the sheet columns drifted
            StoreSchemaMismatchError: If the calendar database drifted
        """
        logger.info("Syncing host form to Notion calendar")

        live_properties = await asyncio.to_thread(
            self.store.get_schema, self.config.notion_calendar_id
        )
        self.store_guard.validate(live_properties)

        sheet_data = await asyncio.to_thread(self.sheet.load_sheet)
        self.form_guard.validate(sheet_data.headers)

        responses = select_rows(sheet_data)
        result = ImportResult(selected=len(responses))
        logger.info(f"{len(responses)} new events detected in {len(sheet_data.rows)} rows")

        if not responses:
            return result

        records = []
        for response in responses:
            try:
                record = self.builder.build(response)
            except ValidationError as e:
                failure = ImportFailure(
                    row_number=response.row_number,
                    event_name=response.event_name,
                    stage='validation',
                    message=str(e)
                )
                logger.error(
                    f"Could not convert event '{response.event_name}': {e}",
                    extra={'row_number': response.row_number}
                )
                result.failures.append(failure)
                await self._notify_validation_failure(failure)
                continue

            logger.debug(f"Row {record.source_row} is {UploadState.BUILT.value}")
            records.append(record.with_destination(
                self.config.notion_calendar_id,
                self.config.notion_hosted_events_id
            ))

        outcomes = await asyncio.gather(*(self._import_record(record) for record in records))
        for outcome in outcomes:
            if isinstance(outcome, ImportedEvent):
                result.imported.append(outcome)
            else:
                result.failures.append(outcome)

        logger.info(
            f"Import complete: {len(result.imported)} imported, "
            f"{len(result.failures)} failed"
        )
        return result

    async def _import_record(
        self,
        record: CalendarEventRecord
    ) -> Union[ImportedEvent, ImportFailure]:
        correlation_id = uuid.uuid4().hex[:8]

        try:
            parent, child = await self._upload(record)
        except UploadError as e:
            failure = ImportFailure(
                row_number=record.source_row,
                event_name=record.name,
                stage=e.stage,
                message=str(e),
                correlation_id=correlation_id,
                last_state=e.last_state
            )
            logger.error(
                f"Error creating event '{record.name}': {e}",
                extra={'correlation_id': correlation_id, 'row_number': record.source_row},
                exc_info=e.cause
            )
            await self._notify_upload_failure(failure, e.parent_url)
            return failure

        try:
            await asyncio.to_thread(self.sheet.mark_processed, record.source_row)
        except Exception as e:
            failure = ImportFailure(
                row_number=record.source_row,
                event_name=record.name,
                stage='mark_processed',
                message=f"Imported to {parent.url} but could not tick the checkbox: {e}",
                correlation_id=correlation_id,
                last_state=UploadState.CHILD_CREATED
            )
            logger.error(
                f"Error marking row {record.source_row} as imported: {e}",
                extra={'correlation_id': correlation_id, 'row_number': record.source_row},
                exc_info=True
            )
            await self._notify_upload_failure(failure, parent.url)
            return failure

        logger.debug(f"Row {record.source_row} is {UploadState.DONE.value}")
        imported = ImportedEvent(
            row_number=record.source_row,
            name=record.name,
            calendar_url=parent.url,
            page_url=child.url
        )
        await self._notify(
            self.config.mentions('logistics'),
            '📥 Imported new event!',
            f"**Event name:** {record.name}\n**URL:** {parent.url}",
            GREEN
        )
        return imported

    async def _upload(self, record: CalendarEventRecord):
        """
        Create the calendar page, then its linked hosted event page.

        The child needs the parent's ID, so it is never attempted when the
        parent fails. A failed child leaves the parent in place.

        Returns:
            Tuple of (calendar page, hosted event page)

        Raises:
            UploadError: With stage 'parent' or 'child' and the last state
                the record reached
        """
        if not record.has_destination:
            raise ValueError(f"Record for row {record.source_row} has no destination databases")

        state = UploadState.BUILT
        logger.debug(f"Row {record.source_row} is {UploadState.UPLOADING_PARENT.value}")
        try:
            parent: CreatedPage = await asyncio.to_thread(
                self.store.create_record,
                record.parent_calendar_id,
                calendar_event_properties(record)
            )
        except Exception as e:
            raise UploadError('parent', record.name, e, last_state=state) from e

        state = UploadState.PARENT_CREATED
        logger.debug(f"Row {record.source_row} is {state.value}: {parent.url}")
        logger.debug(f"Row {record.source_row} is {UploadState.UPLOADING_CHILD.value}")
        page = HostedEventPage(
            name=record.name,
            date=record.start.date(),
            calendar_event_id=parent.id
        )
        try:
            child: CreatedPage = await asyncio.to_thread(
                self.store.create_linked_child,
                record.hosted_event_database_id,
                page.calendar_event_id,
                hosted_event_page_properties(page),
                HOSTED_EVENT_TEMPLATE
            )
        except Exception as e:
            raise UploadError(
                'child', record.name, e, parent_url=parent.url, last_state=state
            ) from e

        logger.debug(f"Row {record.source_row} is {UploadState.CHILD_CREATED.value}")
        return parent, child

    async def _notify_validation_failure(self, failure: ImportFailure) -> None:
        await self._notify(
            self.config.mentions('logistics', 'maintainer'),
            '⚠️ Error importing event!',
            f"**Event name:** {failure.event_name}\n"
            f"**Row:** {failure.row_number}\n"
            f"**Error:** ```{failure.message}```",
            DARK_RED
        )

    async def _notify_upload_failure(self, failure: ImportFailure, parent_url=None) -> None:
        body = (
            f"**Event name:** {failure.event_name}\n"
            f"**Row:** {failure.row_number}\n"
            f"**Stage:** {failure.stage}\n"
            f"**Error:** `{failure.message}`\n"
            f"**Correlation ID:** `{failure.correlation_id}`"
        )
        if parent_url:
            body += f"\n**Partially imported as:** {parent_url}"
        await self._notify(
            self.config.mentions('logistics', 'maintainer'),
            '⚠️ Error creating event on Notion!',
            body,
            RED
        )

    async def _notify(self, mentions, title: str, body: str, color: int) -> None:
        try:
            await asyncio.to_thread(self.notifier.notify, mentions, title, body, color)
        except Exception as e:
            logger.warning(f"Notification '{title}' failed: {e}")
