"""Builds calendar event records from host form responses."""
import logging
import re
from datetime import datetime
from typing import List, Optional, Tuple
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

from processor.closed_sets import (
    BOOKING_NA,
    BOOKING_TODO,
    CSI_NA,
    CSI_TODO,
    FUNDING_NOT_REQUESTED,
    FUNDING_TODO,
    NEED_VENUE,
    OFF_CAMPUS_LOCATION,
    OTHER_EVENT_TYPE,
    OTHER_LOCATION,
    REMOTE_LOCATIONS,
    TAP_NA,
    TAP_TODO,
    ClosedSets,
    venue_location,
)
from processor.errors import ValidationError
from processor.models import CalendarEventRecord, HostFormResponse

logger = logging.getLogger(__name__)

# Host form question labels
EVENT_NAME = 'Event name'
DESCRIPTION = 'Event description'
PLAIN_DESCRIPTION = 'Plain description'
EVENT_TYPE = 'What kind of event is this?'
PREFERRED_DATE = 'Preferred date'
START_TIME = 'Preferred start time'
END_TIME = 'Preferred end time'
DATE_TIME_NOTES = 'Additional Date/Time Notes'
ATTENDANCE = 'Estimated Attendance?'
CHECK_IN_CODE = 'Check-in Code'
ORGANIZATIONS = 'Which of the following organizations are involved in this event?'
LOGISTICS_BY = 'If this is a collab event, who will be handling the logistics?'
TOKEN_PASS = 'Which pass will this event be submitted under?'
TOKEN_GROUP = 'Which team/community will be using their token?'
TOKEN_NUMBER = 'What token number will you be using?'
WHERE = 'Where is your event taking place?'
VENUE_CHOICE = 'Ideal Venue Choice'
VENUE_DETAILS = 'Other venue details?'
PROJECTOR = 'Will you need a projector and/or other tech?'
TECH_REQUESTS = 'If you need tech or equipment, please specify here'
EVENT_LINK = 'Event Link (ACMURL)'
REQUIRES_FUNDING = 'Will your event require funding?'
REQUESTED_ITEMS = 'What food do you need funding for?'
FOOD_PICKUP_TIME = 'Food Pickup Time'
NON_FOOD_REQUESTS = 'Non-food system requests: Vendor website or menu'
SPONSOR = 'Is there a sponsor that will pay for this event?'
FINANCE_DETAILS = 'Any additional funding details?'
OFF_CAMPUS_GUESTS = 'Are you planning on inviting off campus guests?'

BARE_DOMAIN = re.compile(r'^[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+(:\d+)?(/|\?|#|$)')
WHOLE_NUMBER = re.compile(r'\d+')


def tap_status(where: str) -> str:
    """TAP is only needed for events that use a campus space."""
    return TAP_NA if where.strip() in REMOTE_LOCATIONS else TAP_TODO


def booking_status(where: str) -> str:
    return BOOKING_TODO if where.strip() == NEED_VENUE else BOOKING_NA


def csi_status(tap: str, location: str) -> str:
    """CSI intake is needed when no TAP form covers an on-campus presence."""
    return CSI_TODO if tap == TAP_NA and location != OFF_CAMPUS_LOCATION else CSI_NA


def funding_status(requires_funding: str) -> str:
    return FUNDING_TODO if requires_funding.strip() == 'Yes' else FUNDING_NOT_REQUESTED


def sanitize_url(raw: str, event_name: str = '') -> Optional[str]:
    """
    Turn a user supplied event link into an absolute URL.

    Links typed without a scheme (e.g. "acmurl.com/hack") get https://.
    Anything that still does not parse as an http(s) URL is dropped with a
    warning.

    Args:
        raw: The link as typed into the host form
        event_name: Event name, for the warning message

    Returns:
        Absolute URL string or None
    """
    text = (raw or '').strip()
    if not text:
        return None

    if '://' not in text and BARE_DOMAIN.match(text):
        text = f"https://{text}"

    try:
        parts = urlsplit(text)
        valid = parts.scheme in ('http', 'https') and bool(parts.hostname)
    except ValueError:
        valid = False

    if not valid:
        logger.warning(
            f"Event '{event_name}' has an invalid event link; setting it to null",
            extra={'input': raw}
        )
        return None
    return text


def whole_number(raw: str) -> Optional[int]:
    """
    Parse an answer that is a whole number, allowing thousands separators.

    Ranges, decimals and answers with words around the number are not
    guessed at: "30-40", "2.5k" and "about 50" all return None.
    """
    text = (raw or '').strip().replace(',', '')
    if not WHOLE_NUMBER.fullmatch(text):
        return None
    return int(text)


def attendance_estimate(raw: str) -> int:
    """Whole number of the answer, or -1 when unknown."""
    number = whole_number(raw)
    return -1 if number is None else number


def token_number(raw: str) -> Optional[int]:
    return whole_number(raw)


def split_choices(raw: str) -> List[str]:
    # Google Forms stores checkbox answers as ", "-joined strings
    return [choice.strip() for choice in (raw or '').split(', ') if choice.strip()]


class EventRecordBuilder:
    """Converts host form responses into validated calendar event records."""

    DATETIME_FORMATS = [
        '%m/%d/%Y %I:%M:%S %p',  # Google Sheets export
        '%m/%d/%Y %I:%M %p',
        '%m/%d/%Y %H:%M:%S',
        '%m/%d/%Y %H:%M',
    ]
    MAX_TEXT_LENGTH = 2000  # Notion rich text limit

    def __init__(self, closed_sets: ClosedSets, timezone: str = 'America/Los_Angeles'):
        self.closed_sets = closed_sets
        self.tz = ZoneInfo(timezone)

    def build(self, response: HostFormResponse) -> CalendarEventRecord:
        """
        Build a calendar event record from one host form response.

        Args:
            response: Normalized host form row

        Returns:
            CalendarEventRecord

        Raises:
            ValidationError: If the event time interval is invalid or the token
                team/community is not a known option
        """
        name = response.event_name
        issues = []

        start, end = self._event_interval(response, issues)

        token_group = response.get(TOKEN_GROUP).strip()
        if not self.closed_sets.token_event_groups.is_member(token_group):
            issues.append(f"{TOKEN_GROUP}: Invalid token team/community: '{token_group}'")

        if issues:
            raise ValidationError(name, issues)

        where = response.get(WHERE)
        location, backup_1, backup_2 = self._locations(response)
        tap = tap_status(where)

        return CalendarEventRecord(
            source_row=response.row_number,
            name=name,
            description=response.get(DESCRIPTION).strip(),
            plain_description=response.get(PLAIN_DESCRIPTION).strip(),
            event_type=self.closed_sets.event_types.coerce(
                response.get(EVENT_TYPE).strip(), OTHER_EVENT_TYPE
            ),
            start=start,
            end=end,
            date_time_notes=response.get(DATE_TIME_NOTES).strip(),
            projected_attendance=attendance_estimate(response.get(ATTENDANCE)),
            check_in_code=response.get(CHECK_IN_CODE).strip(),
            organizations=self._organizations(response),
            logistics_by=self.closed_sets.logistics_by.coerce(
                response.get(LOGISTICS_BY).strip(), 'N/A'
            ),
            token_pass=self.closed_sets.token_passes.coerce(
                response.get(TOKEN_PASS).strip(), 'No Pass'
            ),
            token_event_group=token_group,
            token_use_number=token_number(response.get(TOKEN_NUMBER)),
            off_campus_guests=self.closed_sets.off_campus_guests.coerce(
                response.get(OFF_CAMPUS_GUESTS).strip(), 'No'
            ),
            location=location,
            location_backup_1=backup_1,
            location_backup_2=backup_2,
            location_details=self._location_details(response, location),
            location_url=sanitize_url(response.get(EVENT_LINK), name),
            projector_status=self.closed_sets.projector_statuses.coerce(
                response.get(PROJECTOR).strip(), 'No'
            ),
            tech_requests=response.get(TECH_REQUESTS).strip(),
            funding_status=funding_status(response.get(REQUIRES_FUNDING)),
            requested_items=response.get(REQUESTED_ITEMS).strip(),
            food_pickup_time=self._food_pickup_time(response),
            non_food_requests=response.get(NON_FOOD_REQUESTS).strip()[:self.MAX_TEXT_LENGTH],
            funding_sponsor=self.closed_sets.sponsor_statuses.coerce(
                response.get(SPONSOR).strip(), 'No'
            ),
            additional_finance_info=response.get(FINANCE_DETAILS).strip(),
            tap_status=tap,
            booking_status=booking_status(where),
            csi_status=csi_status(tap, location)
        )

    def _event_interval(
        self,
        response: HostFormResponse,
        issues: List[str]
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        date_text = response.get(PREFERRED_DATE)
        start = self._parse_datetime(date_text, response.get(START_TIME))
        end = self._parse_datetime(date_text, response.get(END_TIME))

        if start is None:
            issues.append(
                f"{START_TIME}: Could not parse '{date_text} {response.get(START_TIME)}'"
            )
        if end is None:
            issues.append(
                f"{END_TIME}: Could not parse '{date_text} {response.get(END_TIME)}'"
            )
        if start is not None and end is not None and end <= start:
            issues.append(f"{END_TIME}: The end time must be later than the start time")
        return start, end

    def _parse_datetime(self, date_text: str, time_text: str) -> Optional[datetime]:
        """
        Parse a Google Sheets date and time pair in the event time zone.

        Args:
            date_text: Date cell, e.g. "10/24/2025"
            time_text: Time cell, e.g. "7:00:00 PM"

        Returns:
            Timezone-aware datetime or None if parsing fails
        """
        combined = f"{(date_text or '').strip()} {(time_text or '').strip()}"
        for fmt in self.DATETIME_FORMATS:
            try:
                return datetime.strptime(combined, fmt).replace(tzinfo=self.tz)
            except ValueError:
                continue
        return None

    def _locations(
        self,
        response: HostFormResponse
    ) -> Tuple[str, Optional[str], Optional[str]]:
        where = response.get(WHERE).strip()
        if where in REMOTE_LOCATIONS:
            return REMOTE_LOCATIONS[where], None, None

        choices = split_choices(response.get(VENUE_CHOICE))
        resolved = [venue_location(choice) or OTHER_LOCATION for choice in choices[:3]]
        resolved += [None] * (3 - len(resolved))

        primary = resolved[0] or OTHER_LOCATION
        return primary, resolved[1], resolved[2]

    def _location_details(self, response: HostFormResponse, location: str) -> str:
        details = response.get(VENUE_DETAILS).strip()
        if details or location != OTHER_LOCATION:
            return details
        return response.get(VENUE_CHOICE).strip()

    def _organizations(self, response: HostFormResponse) -> Tuple[str, ...]:
        organizations = []
        for choice in split_choices(response.get(ORGANIZATIONS)):
            if self.closed_sets.organizations.is_member(choice) and choice not in organizations:
                organizations.append(choice)
        return tuple(organizations)

    def _food_pickup_time(self, response: HostFormResponse) -> Optional[datetime]:
        raw = response.get(FOOD_PICKUP_TIME).strip()
        if not raw:
            return None

        pickup = self._parse_datetime(response.get(PREFERRED_DATE), raw)
        if pickup is None:
            logger.warning(
                f"Event '{response.event_name}' has an unparseable food pickup time",
                extra={'input': raw}
            )
        return pickup
