"""Host form row normalization."""
from typing import Sequence

from processor.models import HostFormResponse


def normalize(
    header_order: Sequence[str],
    raw_row: Sequence[str],
    row_number: int = 0
) -> HostFormResponse:
    """
    Project a raw sheet row onto the live header order.

    The Sheets API drops trailing empty cells, so missing cells read as ''.
    No content validation happens here; header drift is the schema guard's job.

    Args:
        header_order: Header labels in the order currently published
        raw_row: Cell values of one row
        row_number: Spreadsheet row number of the row

    Returns:
        HostFormResponse keyed by header label
    """
    answers = {}
    for index, header in enumerate(header_order):
        value = raw_row[index] if index < len(raw_row) else ''
        answers[header] = '' if value is None else str(value)
    return HostFormResponse(row_number=row_number, answers=answers)
