"""
Regenerate the bundled schema snapshots from the live sheet and database.

Run from the repository root after confirming an upstream schema change:

    python -m scripts.refresh_schema_snapshot

Reads the same environment variables as the Lambda function.
"""
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from lambda_function import setup_logging
from pipeline.config import PipelineConfig
from schema_guard.guard import (
    FORM_SNAPSHOT_PATH,
    STORE_SNAPSHOT_PATH,
    normalize_notion_properties,
)
from sheets.host_form_sheet import HostFormSheet
from storage.notion_calendar import NotionCalendarClient

logger = logging.getLogger(__name__)


def _next_version(path: Path) -> int:
    try:
        with open(path, encoding='utf-8') as f:
            return int(json.load(f).get('version', 0)) + 1
    except FileNotFoundError:
        return 1


def write_snapshots(
    headers: Sequence[str],
    properties: Mapping[str, dict],
    captured_at: str,
    form_path: Path = FORM_SNAPSHOT_PATH,
    store_path: Path = STORE_SNAPSHOT_PATH
) -> None:
    """
    Write both snapshot files, bumping their versions.

    Args:
        headers: Live host form header row
        properties: Raw `properties` object of the calendar database
        captured_at: ISO timestamp recorded in both files
        form_path: Host form snapshot path
        store_path: Notion calendar snapshot path
    """
    form = {
        'version': _next_version(form_path),
        'captured_at': captured_at,
        'headers': list(headers)
    }
    store = {
        'version': _next_version(store_path),
        'captured_at': captured_at,
        'properties': normalize_notion_properties(properties)
    }

    with open(form_path, 'w', encoding='utf-8') as f:
        json.dump(form, f, indent=2, ensure_ascii=False)
        f.write('\n')
    with open(store_path, 'w', encoding='utf-8') as f:
        json.dump(store, f, indent=2, ensure_ascii=False)
        f.write('\n')

    logger.info(
        f"Wrote form snapshot v{form['version']} and store snapshot v{store['version']}"
    )


def main(config: Optional[PipelineConfig] = None) -> None:
    config = config or PipelineConfig.from_env()
    setup_logging(config.log_level)

    store = NotionCalendarClient(config.notion_token, timeout=config.timeout_seconds)
    sheet = HostFormSheet(
        config.sheets_doc_id,
        config.sheet_name,
        checkbox_sheet_name=config.checkbox_sheet_name,
        key_file=config.sheets_key_file
    )

    properties = store.get_schema(config.notion_calendar_id)
    headers = sheet.load_sheet().headers
    captured_at = datetime.now(ZoneInfo(config.timezone)).isoformat(timespec='seconds')
    write_snapshots(headers, properties, captured_at)


if __name__ == '__main__':
    main()
