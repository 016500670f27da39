"""Google Sheets client for the host form response spreadsheet."""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

import gspread

from processor.models import SheetData

logger = logging.getLogger(__name__)

IMPORTED_COLUMN = 'Imported to Notion'
LOCK_COLUMN = 'Sync Lock'
LOCK_ROW = 2
LEASE_SEPARATOR = ' until '


def format_lease(owner: str, expires: datetime) -> str:
    return f"{owner}{LEASE_SEPARATOR}{expires.isoformat()}"


def parse_lease(value: Optional[str]) -> Tuple[Optional[str], Optional[datetime]]:
    """Split a lock cell into (owner, expiry); unreadable cells count as free."""
    owner, _, expires = (value or '').partition(LEASE_SEPARATOR)
    try:
        return owner, datetime.fromisoformat(expires)
    except ValueError:
        return None, None


class HostFormSheet:
    """
    Reads host form responses and their "Imported to Notion" checkboxes.

    Responses live on the form's response tab. The checkboxes live on a
    separate tab whose rows line up one-to-one with the response rows.
    """

    def __init__(
        self,
        doc_id: str,
        sheet_name: str,
        checkbox_sheet_name: str = 'Notion Event Pipeline',
        key_file: Optional[str] = None,
        client: Optional[gspread.Client] = None
    ):
        """
        Initialize the sheet client.

        Args:
            doc_id: Spreadsheet key
            sheet_name: Tab holding the host form responses
            checkbox_sheet_name: Tab holding the import checkboxes
            key_file: Service account key file, used when no client is given
            client: Pre-authorized gspread client
        """
        self.doc_id = doc_id
        self.sheet_name = sheet_name
        self.checkbox_sheet_name = checkbox_sheet_name
        self.client = client or gspread.service_account(filename=key_file)
        self._checkbox_headers = None

    def _worksheets(self):
        spreadsheet = self.client.open_by_key(self.doc_id)
        return (
            spreadsheet.worksheet(self.sheet_name),
            spreadsheet.worksheet(self.checkbox_sheet_name)
        )

    def load_sheet(self) -> SheetData:
        """
        Download the host form responses and their processed flags.

        Returns:
            SheetData with the published header order, raw rows, and one
            processed flag per row
        """
        responses_ws, checkbox_ws = self._worksheets()
        values = responses_ws.get_all_values()
        checkbox_values = checkbox_ws.get_all_values()

        if not values:
            return SheetData(headers=[], rows=[], processed_flags=[])

        headers = values[0]
        rows = values[1:]

        self._checkbox_headers = checkbox_values[0] if checkbox_values else [IMPORTED_COLUMN]
        checkbox_rows = checkbox_values[1:]
        column = self._column_index(IMPORTED_COLUMN)

        processed_flags = []
        for index in range(len(rows)):
            cells = checkbox_rows[index] if index < len(checkbox_rows) else []
            cell = cells[column] if column < len(cells) else ''
            processed_flags.append(cell.strip().upper() == 'TRUE')

        logger.info(
            f"Loaded {len(rows)} host form rows from '{self.sheet_name}'"
        )
        return SheetData(headers=headers, rows=rows, processed_flags=processed_flags)

    def write_row(self, row_number: int, updated_fields: Dict[str, str]) -> None:
        """
        Write fields of one checkbox tab row.

        Values are written as user-entered, so 'TRUE' ticks a checkbox instead
        of storing the text.

        Args:
            row_number: Spreadsheet row number (header is row 1)
            updated_fields: Column header to new value
        """
        _, checkbox_ws = self._worksheets()
        if self._checkbox_headers is None:
            self._checkbox_headers = checkbox_ws.row_values(1)

        for header, value in updated_fields.items():
            checkbox_ws.update_cell(row_number, self._column_index(header) + 1, value)
        logger.debug(f"Updated row {row_number}: {sorted(updated_fields)}")

    def mark_processed(self, row_number: int) -> None:
        self.write_row(row_number, {IMPORTED_COLUMN: 'TRUE'})

    def _column_index(self, header: str) -> int:
        try:
            return self._checkbox_headers.index(header)
        except ValueError:
            raise KeyError(
                f"Column '{header}' not found on tab '{self.checkbox_sheet_name}'"
            ) from None

    def acquire_lock(
        self,
        owner: str,
        ttl: timedelta,
        settle_seconds: float = 2.0,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Take the sync lease stored in the "Sync Lock" cell of the checkbox tab.

        Sheets has no compare-and-set, so the lease is written and then read
        back after a short pause. When two runs race, the later write wins and
        the earlier run sees a foreign owner and backs off. A lease past its
        expiry is free, so a run that died without releasing only blocks
        others until then.

        Args:
            owner: Unique ID of the run taking the lease
            ttl: How long the lease holds without being released
            settle_seconds: Pause before reading the lease back
            now: Current time, defaults to the clock

        Returns:
            True when this run holds the lease
        """
        now = now or datetime.now(timezone.utc)
        holder, expires = parse_lease(self._read_lock())
        if holder and holder != owner and expires > now:
            logger.warning(f"Sync lock held by {holder} until {expires.isoformat()}")
            return False

        self.write_row(LOCK_ROW, {LOCK_COLUMN: format_lease(owner, now + ttl)})
        time.sleep(settle_seconds)

        holder, _ = parse_lease(self._read_lock())
        if holder != owner:
            logger.warning(f"Sync lock taken over by {holder}; backing off")
            return False

        logger.debug(f"Sync lock acquired by {owner}")
        return True

    def release_lock(self, owner: str) -> None:
        """Clear the sync lease if this run still holds it."""
        holder, _ = parse_lease(self._read_lock())
        if holder != owner:
            logger.warning(f"Sync lock is held by {holder}, not {owner}; leaving it")
            return
        self.write_row(LOCK_ROW, {LOCK_COLUMN: ''})

    def _read_lock(self) -> str:
        _, checkbox_ws = self._worksheets()
        if self._checkbox_headers is None:
            self._checkbox_headers = checkbox_ws.row_values(1)
        return checkbox_ws.cell(LOCK_ROW, self._column_index(LOCK_COLUMN) + 1).value or ''
