"""Notion API client for the calendar and hosted events databases."""
import logging
import time
from typing import Dict, List, Optional

import requests

from processor.models import CalendarEventRecord, CreatedPage, HostedEventPage, NotionRecord

logger = logging.getLogger(__name__)

RICH_TEXT_LIMIT = 2000


def to_rich_text(text: str) -> List[dict]:
    """
    Convert plain text to a Notion rich text array.

    Notion caps each text object at 2000 characters, so longer text is split.

    Args:
        text: Plain text

    Returns:
        List of Notion rich text objects
    """
    return [
        {'type': 'text', 'text': {'content': text[i:i + RICH_TEXT_LIMIT]}}
        for i in range(0, len(text), RICH_TEXT_LIMIT)
    ]


def _heading(text: str) -> dict:
    return {'type': 'heading_1', 'heading_1': {'rich_text': to_rich_text(text)}}


def _hint(text: str) -> dict:
    rich_text = to_rich_text(text)
    for part in rich_text:
        part['annotations'] = {'italic': True}
    return {'type': 'paragraph', 'paragraph': {'rich_text': rich_text}}


# Body of every new hosted event page
HOSTED_EVENT_TEMPLATE = [
    _heading('Description'),
    _hint('Quick description of your event to be marketed. '
          'Also feel free to change the icon and make it fun!'),
    _heading('Logistics'),
    _hint('Run of show, supplies, and who is responsible for what.'),
    _heading('Marketing'),
    _hint('Graphics, captions, and where the event will be posted.'),
    _heading('Post-event'),
    _hint('Attendance, feedback, and anything to do differently next time.'),
]


def calendar_event_properties(record: CalendarEventRecord) -> Dict[str, dict]:
    """
    Convert a calendar event record to Notion page properties.

    Empty optional text fields are omitted rather than written as blanks.

    Args:
        record: The calendar event record

    Returns:
        Notion `properties` payload
    """
    properties = {
        'Name': {'title': to_rich_text(record.name)},
        'Type': {'select': {'name': record.event_type}},
        'Date': {
            'date': {
                'start': record.start.isoformat(),
                'end': record.end.isoformat()
            }
        },
        'Funding Status': {'select': {'name': record.funding_status}},
        'TAP Status': {'select': {'name': record.tap_status}},
        'Booking Status': {'select': {'name': record.booking_status}},
        'CSI Form Status': {'select': {'name': record.csi_status}},
        'Location': {'select': {'name': record.location}},
        'Organizations': {
            'multi_select': [{'name': org} for org in record.organizations]
        },
        'Projected Attendance': {'number': record.projected_attendance},
        'Projector?': {'select': {'name': record.projector_status}},
        'Sponsor?': {'select': {'name': record.funding_sponsor}},
        'Off Campus Guests': {'select': {'name': record.off_campus_guests}},
        'Logistics By': {'select': {'name': record.logistics_by}},
        'Token Pass': {'select': {'name': record.token_pass}},
        'Token Event Group': {'select': {'name': record.token_event_group}},
    }

    if record.location_backup_1:
        properties['Location Backup 1'] = {'select': {'name': record.location_backup_1}}
    if record.location_backup_2:
        properties['Location Backup 2'] = {'select': {'name': record.location_backup_2}}
    if record.location_url:
        properties['Location URL'] = {'url': record.location_url}
    if record.token_use_number is not None:
        properties['Token Use Number'] = {'number': record.token_use_number}
    if record.food_pickup_time:
        properties['Food Pickup Time'] = {
            'date': {'start': record.food_pickup_time.isoformat()}
        }

    optional_text = {
        'Event Description': record.description,
        'Plain Description': record.plain_description,
        'Date/Time Notes': record.date_time_notes,
        'Check-in Code': record.check_in_code,
        'Location Details': record.location_details,
        'Tech Requests': record.tech_requests,
        'Requested Items': record.requested_items,
        'Non-food Requests': record.non_food_requests,
        'Additional Finance Info': record.additional_finance_info,
    }
    for name, text in optional_text.items():
        if text:
            properties[name] = {'rich_text': to_rich_text(text)}

    return properties


def hosted_event_page_properties(page: HostedEventPage) -> Dict[str, dict]:
    return {
        'Name': {'title': to_rich_text(page.name)},
        'Date': {'date': {'start': page.date.isoformat()}},
    }


class NotionCalendarClient:
    """Client for the Notion databases backing the event calendar."""

    BASE_URL = 'https://api.notion.com/v1'
    NOTION_VERSION = '2022-06-28'
    MAX_RETRIES = 3
    RETRY_STATUSES = (429, 500, 502, 503, 504)

    def __init__(self, token: str, timeout: int = 30, base_delay: float = 1):
        """
        Initialize the Notion client.

        Args:
            token: Notion integration token
            timeout: HTTP request timeout in seconds (default: 30)
            base_delay: First retry delay in seconds, doubled per attempt
        """
        self.timeout = timeout
        self.base_delay = base_delay
        self.session = requests.Session()
        self.session.headers.update({
            'Authorization': f"Bearer {token}",
            'Notion-Version': self.NOTION_VERSION,
            'Content-Type': 'application/json'
        })

    def get_schema(self, database_id: str) -> Dict[str, dict]:
        """
        Retrieve the property schema of a database.

        Args:
            database_id: Notion database ID

        Returns:
            The database `properties` object
        """
        database = self._request('GET', f"/databases/{database_id}")
        return database['properties']

    def create_record(self, database_id: str, properties: Dict[str, dict]) -> CreatedPage:
        """
        Create a page in a database.

        Args:
            database_id: Notion database ID
            properties: Page properties payload

        Returns:
            CreatedPage with the new page's ID and URL
        """
        page = self._request('POST', '/pages', {
            'parent': {'database_id': database_id},
            'properties': properties
        })
        logger.debug(f"Page {page['id']} created in database {database_id}")
        return CreatedPage(id=page['id'], url=page['url'])

    def create_linked_child(
        self,
        database_id: str,
        parent_id: str,
        properties: Dict[str, dict],
        children: Optional[List[dict]] = None
    ) -> CreatedPage:
        """
        Create a page related back to an existing calendar page.

        Args:
            database_id: Notion database the child page lives in
            parent_id: ID of the calendar page to link to
            properties: Child page properties payload
            children: Optional page body blocks

        Returns:
            CreatedPage with the child page's ID and URL
        """
        payload = {
            'parent': {'database_id': database_id},
            'properties': {
                **properties,
                'Calendar Event': {'relation': [{'id': parent_id}]}
            }
        }
        if children:
            payload['children'] = children

        page = self._request('POST', '/pages', payload)
        logger.debug(f"Page {page['id']} created and linked to {parent_id}")
        return CreatedPage(id=page['id'], url=page['url'])

    def query_records(self, database_id: str, filter: dict) -> List[NotionRecord]:
        """
        Query a database, following pagination.

        Args:
            database_id: Notion database ID
            filter: Notion compound filter object

        Returns:
            List of NotionRecord objects
        """
        records = []
        payload = {'filter': filter, 'page_size': 100}

        while True:
            response = self._request('POST', f"/databases/{database_id}/query", payload)
            for page in response.get('results', []):
                records.append(NotionRecord(
                    id=page['id'],
                    url=page.get('url', ''),
                    properties=page.get('properties', {})
                ))

            if not response.get('has_more'):
                break
            payload = {**payload, 'start_cursor': response['next_cursor']}

        logger.info(f"Query on database {database_id} returned {len(records)} pages")
        return records

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        """
        Send a request to the Notion API with retry logic.

        Args:
            method: HTTP method
            path: API path below /v1
            payload: JSON body

        Returns:
            Decoded JSON response

        Raises:
            requests.RequestException: If the request fails for good
        """
        url = f"{self.BASE_URL}{path}"

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.request(
                    method,
                    url,
                    json=payload,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                status = e.response.status_code if e.response is not None else None
                retryable = status is None or status in self.RETRY_STATUSES

                if retryable and attempt < self.MAX_RETRIES - 1:
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Notion request {method} {path} failed "
                        f"(attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(f"Notion request {method} {path} failed: {e}")
                    raise
