"""Data models for the host form sync pipeline."""
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


@dataclass(frozen=True)
class HostFormResponse:
    """One host form spreadsheet row, keyed by the live header labels."""
    row_number: int
    answers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Read-only view so the response cannot be mutated after it is read
        object.__setattr__(self, 'answers', MappingProxyType(dict(self.answers)))

    def __getitem__(self, label: str) -> str:
        return self.answers[label]

    def get(self, label: str, default: str = '') -> str:
        return self.answers.get(label, default)

    @property
    def headers(self) -> Tuple[str, ...]:
        return tuple(self.answers.keys())

    @property
    def event_name(self) -> str:
        return self.get('Event name').strip()


@dataclass(frozen=True)
class CalendarEventRecord:
    """Validated calendar event, ready to be uploaded to the Notion calendar."""
    source_row: int
    name: str
    description: str
    plain_description: str
    event_type: str
    start: datetime
    end: datetime
    date_time_notes: str
    projected_attendance: int
    check_in_code: str
    organizations: Tuple[str, ...]
    logistics_by: str
    token_pass: str
    token_event_group: str
    token_use_number: Optional[int]
    off_campus_guests: str
    location: str
    location_backup_1: Optional[str]
    location_backup_2: Optional[str]
    location_details: str
    location_url: Optional[str]
    projector_status: str
    tech_requests: str
    funding_status: str
    requested_items: str
    food_pickup_time: Optional[datetime]
    non_food_requests: str
    funding_sponsor: str
    additional_finance_info: str
    tap_status: str
    booking_status: str
    csi_status: str
    parent_calendar_id: Optional[str] = None
    hosted_event_database_id: Optional[str] = None

    def with_destination(
        self,
        parent_calendar_id: str,
        hosted_event_database_id: str
    ) -> 'CalendarEventRecord':
        """
        Attach the databases the record and its hosted event page upload to.

        This is the only way to set the externally assigned identifiers. It
        returns a copy; the original record is left untouched.

        Args:
            parent_calendar_id: Notion calendar database ID
            hosted_event_database_id: Notion hosted events database ID

        Returns:
            Copy of this record carrying both database IDs
        """
        return replace(
            self,
            parent_calendar_id=parent_calendar_id,
            hosted_event_database_id=hosted_event_database_id
        )

    @property
    def has_destination(self) -> bool:
        return bool(self.parent_calendar_id and self.hosted_event_database_id)


@dataclass(frozen=True)
class HostedEventPage:
    """Lightweight hosted event page linked back to its calendar record."""
    name: str
    date: date
    calendar_event_id: str


@dataclass(frozen=True)
class CreatedPage:
    """Identifiers Notion assigns to a created page."""
    id: str
    url: str


@dataclass
class SheetData:
    """Host form sheet contents as currently published."""
    headers: List[str]
    rows: List[List[str]]
    processed_flags: List[bool]

    @staticmethod
    def row_number(index: int) -> int:
        # Sheet rows are 1-indexed and the header occupies row 1
        return index + 2


class UploadState(str, Enum):
    """Per-record upload progress."""
    BUILT = 'built'
    UPLOADING_PARENT = 'uploading_parent'
    PARENT_CREATED = 'parent_created'
    UPLOADING_CHILD = 'uploading_child'
    CHILD_CREATED = 'child_created'
    DONE = 'done'


@dataclass(frozen=True)
class ImportedEvent:
    """An event fully imported into Notion and marked processed."""
    row_number: int
    name: str
    calendar_url: str
    page_url: str


@dataclass(frozen=True)
class ImportFailure:
    """A row that failed validation, upload, or checkbox marking."""
    row_number: int
    event_name: str
    stage: str
    message: str
    correlation_id: Optional[str] = None
    last_state: Optional[UploadState] = None


@dataclass
class ImportResult:
    """Result of one sync run."""
    selected: int = 0
    imported: List[ImportedEvent] = field(default_factory=list)
    failures: List[ImportFailure] = field(default_factory=list)


@dataclass(frozen=True)
class NotionRecord:
    """A page returned by a Notion calendar query."""
    id: str
    url: str
    properties: Mapping[str, dict]

    @property
    def title(self) -> str:
        for prop in self.properties.values():
            if prop.get('type') == 'title':
                return _plain_text(prop.get('title') or []) or 'Untitled'
        return 'Untitled'

    @property
    def start_date(self) -> Optional[date]:
        prop = self.properties.get('Date') or {}
        value = prop.get('date') or {}
        start = value.get('start')
        if not start:
            return None
        return date.fromisoformat(start[:10])

    def property_value(self, name: str) -> Optional[str]:
        """
        Get a Notion property as plain text.

        Args:
            name: Property name

        Returns:
            Select/status name, comma-joined multi-select or people names,
            plain text, or None when the property is unset
        """
        prop = self.properties.get(name)
        if not prop:
            return None

        prop_type = prop.get('type')
        value = prop.get(prop_type)
        if value is None:
            return None

        if prop_type in ('select', 'status'):
            return value.get('name') or None
        if prop_type == 'multi_select':
            return ', '.join(option['name'] for option in value) or None
        if prop_type == 'people':
            return ', '.join(
                person.get('name') or 'Unknown' for person in value
            ) or None
        if prop_type in ('rich_text', 'title'):
            return _plain_text(value) or None
        if prop_type in ('url', 'number', 'checkbox'):
            return str(value)
        return None


def _plain_text(rich_text: List[dict]) -> str:
    return ''.join(part.get('plain_text', '') for part in rich_text).strip()


@dataclass(frozen=True)
class DeadlineRule:
    """One day-offset/status threshold in the deadline catalog."""
    days_before: int
    property_name: str
    statuses: Tuple[str, ...]
    audience: Tuple[str, ...]
    message: str

    def status_of(self, record: NotionRecord) -> str:
        # Blank properties get a placeholder so they never match a rule
        return record.property_value(self.property_name) or f"{self.property_name} N/A"


@dataclass(frozen=True)
class PingCategory:
    """Named group of deadline rules that share one notification."""
    name: str
    color: int
    rules: Tuple[DeadlineRule, ...]


@dataclass
class CategoryReport:
    """Rules of one category that fired, with their matching events."""
    category: str
    matches: Dict[DeadlineRule, List[NotionRecord]] = field(default_factory=dict)
    mentions: List[str] = field(default_factory=list)
