"""Schema guards for the host form sheet and the Notion calendar database."""
import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from processor.errors import FormSchemaMismatchError, StoreSchemaMismatchError

logger = logging.getLogger(__name__)

SNAPSHOT_DIR = Path(__file__).resolve().parent / 'snapshots'
FORM_SNAPSHOT_PATH = SNAPSHOT_DIR / 'host_form_headers.json'
STORE_SNAPSHOT_PATH = SNAPSHOT_DIR / 'notion_calendar.json'

OPTION_TYPES = ('select', 'multi_select', 'status')


@dataclass
class SchemaDiff:
    """Structural difference between a snapshot and a live schema."""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    changed: Dict[str, dict] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.changed)

    def to_dict(self) -> dict:
        return {
            'added': list(self.added),
            'removed': list(self.removed),
            'changed': dict(self.changed)
        }


@dataclass(frozen=True)
class SchemaSnapshot:
    """Hand-maintained copy of the expected external schemas."""
    form_headers: tuple
    store_properties: Mapping[str, dict]
    form_version: Optional[int] = None
    store_version: Optional[int] = None


def load_snapshot(
    form_path: Path = FORM_SNAPSHOT_PATH,
    store_path: Path = STORE_SNAPSHOT_PATH
) -> SchemaSnapshot:
    """
    Load the bundled schema snapshots.

    Args:
        form_path: Path to the host form header snapshot
        store_path: Path to the Notion calendar property snapshot

    Returns:
        SchemaSnapshot with both schemas
    """
    with open(form_path, encoding='utf-8') as f:
        form = json.load(f)
    with open(store_path, encoding='utf-8') as f:
        store = json.load(f)

    return SchemaSnapshot(
        form_headers=tuple(form['headers']),
        store_properties=store['properties'],
        form_version=form.get('version'),
        store_version=store.get('version')
    )


def normalize_notion_properties(properties: Mapping[str, dict]) -> Dict[str, dict]:
    """
    Reduce a Notion database `properties` object to the snapshot shape.

    Property IDs and option colours change without any effect on the pipeline,
    so only property types and option names are kept.

    Args:
        properties: The `properties` object of a Notion database

    Returns:
        Mapping of property name to {"type": ..., "options": [...]}
    """
    normalized = {}
    for name, prop in properties.items():
        prop_type = prop.get('type')
        entry = {'type': prop_type}
        if prop_type in OPTION_TYPES:
            options = (prop.get(prop_type) or {}).get('options') or []
            entry['options'] = [option['name'] for option in options]
        normalized[name] = entry
    return normalized


def diff_headers(expected: Sequence[str], live: Sequence[str]) -> SchemaDiff:
    """
    Compare the ordered host form headers against the snapshot.

    Rows are normalized by header name, so a header repeated in the live row
    is a change as well: the later column would shadow the earlier one.

    Args:
        expected: Snapshot headers
        live: Headers as currently published

    Returns:
        SchemaDiff; `changed` lists common headers whose relative order moved
        and headers that appear more than once
    """
    expected_set = set(expected)
    live_set = set(live)
    live_counts = Counter(live)

    diff = SchemaDiff(
        added=[header for header in live_counts if header not in expected_set],
        removed=[header for header in expected if header not in live_set]
    )

    expected_common = [header for header in expected if header in live_set]
    live_common = [header for header in live_counts if header in expected_set]
    for index, header in enumerate(expected_common):
        if live_common[index] != header:
            diff.changed[header] = {
                'expected': index,
                'actual': live_common.index(header)
            }

    for header, count in live_counts.items():
        if count > 1:
            diff.changed[header] = {'expected_count': 1, 'actual_count': count}
    return diff


def diff_properties(
    expected: Mapping[str, dict],
    live: Mapping[str, dict]
) -> SchemaDiff:
    """
    Compare normalized Notion properties against the snapshot.

    Args:
        expected: Snapshot properties
        live: Normalized live properties

    Returns:
        SchemaDiff; `changed` holds the expected and actual property specs
    """
    diff = SchemaDiff(
        added=sorted(name for name in live if name not in expected),
        removed=sorted(name for name in expected if name not in live)
    )
    for name in sorted(set(expected) & set(live)):
        if _property_spec(expected[name]) != _property_spec(live[name]):
            diff.changed[name] = {
                'expected': expected[name],
                'actual': live[name]
            }
    return diff


def _property_spec(spec: Mapping) -> tuple:
    # Option order in Notion is presentation only
    return (spec.get('type'), tuple(sorted(spec.get('options') or ())))


class FormSchemaGuard:
    """Guards the host form sheet column layout."""

    def __init__(self, snapshot: SchemaSnapshot):
        self.expected = snapshot.form_headers

    def validate(self, live_headers: Sequence[str]) -> None:
        """
        Raise FormSchemaMismatchError if the live headers drifted.

        Args:
            live_headers: Header row of the host form sheet
        """
        diff = diff_headers(self.expected, live_headers)
        if diff:
            logger.error(
                "Google Sheets schema is mismatched! Halting!",
                extra={'diff': diff.to_dict()}
            )
            raise FormSchemaMismatchError(diff)


class StoreSchemaGuard:
    """Guards the Notion calendar database property layout."""

    def __init__(self, snapshot: SchemaSnapshot):
        self.expected = snapshot.store_properties

    def validate(self, live_properties: Mapping[str, dict]) -> None:
        """
        Raise StoreSchemaMismatchError if the live database drifted.

        Args:
            live_properties: Raw `properties` object of the Notion database
        """
        diff = diff_properties(
            self.expected,
            normalize_notion_properties(live_properties)
        )
        if diff:
            logger.error(
                "Notion calendar schema is mismatched! Halting!",
                extra={'diff': diff.to_dict()}
            )
            raise StoreSchemaMismatchError(diff)


@dataclass
class PipelineHealth:
    """
    Schema health latches for one process.

    A latch trips on the first mismatch of its source and stays tripped until
    a full run completes without error.
    """
    form_schema_ok: bool = True
    store_schema_ok: bool = True

    def trip(self, source: str) -> bool:
        """
        Mark a schema source as broken.

        Args:
            source: 'form' or 'store'

        Returns:
            True if the source was healthy before, i.e. the mismatch should
            be reported
        """
        attribute = f"{source}_schema_ok"
        was_ok = getattr(self, attribute)
        setattr(self, attribute, False)
        return was_ok

    def mark_healthy(self, *sources: str) -> None:
        for source in sources:
            setattr(self, f"{source}_schema_ok", True)
