"""Unit tests for NotionCalendarClient."""
import json

import pytest
import responses
from requests.exceptions import ConnectionError, HTTPError

from processor.models import HostFormResponse
from storage.notion_calendar import (
    HOSTED_EVENT_TEMPLATE,
    NotionCalendarClient,
    calendar_event_properties,
    to_rich_text,
)

API = 'https://api.notion.com/v1'


@pytest.fixture
def client():
    return NotionCalendarClient('secret_test', timeout=5, base_delay=0)


class TestToRichText:
    """Test cases for to_rich_text."""

    def test_short_text(self):
        """Test short text is one text object."""
        assert to_rich_text('hi') == [{'type': 'text', 'text': {'content': 'hi'}}]

    def test_long_text_split(self):
        """Test text over the Notion limit is split into chunks."""
        parts = to_rich_text('a' * 4500)

        assert [len(p['text']['content']) for p in parts] == [2000, 2000, 500]

    def test_empty_text(self):
        assert to_rich_text('') == []


class TestCalendarEventProperties:
    """Test cases for calendar_event_properties."""

    def test_required_and_optional_fields(self, builder, form_answers):
        """Test empty optional fields are omitted."""
        record = builder.build(HostFormResponse(row_number=2, answers=form_answers))

        properties = calendar_event_properties(record)

        assert properties['Name']['title'][0]['text']['content'] == 'Intro to Git'
        assert properties['Date']['date']['start'] == '2025-10-24T19:00:00-07:00'
        assert properties['Organizations'] == {'multi_select': [{'name': 'ACM Hack'}]}
        assert properties['Location URL'] == {'url': 'https://acmurl.com/git'}
        assert 'Date/Time Notes' not in properties
        assert 'Location Backup 1' not in properties
        assert 'Food Pickup Time' not in properties


class TestNotionCalendarClient:
    """Test cases for NotionCalendarClient."""

    @responses.activate
    def test_get_schema(self, client):
        """Test the database properties are returned with auth headers sent."""
        responses.add(
            responses.GET,
            f"{API}/databases/calendar-db",
            json={'object': 'database', 'properties': {'Name': {'type': 'title'}}},
            status=200
        )

        assert client.get_schema('calendar-db') == {'Name': {'type': 'title'}}
        request = responses.calls[0].request
        assert request.headers['Authorization'] == 'Bearer secret_test'
        assert request.headers['Notion-Version'] == '2022-06-28'

    @responses.activate
    def test_create_record(self, client):
        """Test a page is created under the database."""
        responses.add(
            responses.POST,
            f"{API}/pages",
            json={'id': 'page-1', 'url': 'https://www.notion.so/page-1'},
            status=200
        )

        page = client.create_record('calendar-db', {'Name': {'title': to_rich_text('X')}})

        assert page.id == 'page-1'
        assert page.url == 'https://www.notion.so/page-1'
        body = json.loads(responses.calls[0].request.body)
        assert body['parent'] == {'database_id': 'calendar-db'}

    @responses.activate
    def test_create_linked_child(self, client):
        """Test the child page is related back to its calendar page."""
        responses.add(
            responses.POST,
            f"{API}/pages",
            json={'id': 'page-2', 'url': 'https://www.notion.so/page-2'},
            status=200
        )

        client.create_linked_child(
            'hosted-db', 'page-1', {'Name': {'title': to_rich_text('X')}}, HOSTED_EVENT_TEMPLATE
        )

        body = json.loads(responses.calls[0].request.body)
        assert body['parent'] == {'database_id': 'hosted-db'}
        assert body['properties']['Calendar Event'] == {'relation': [{'id': 'page-1'}]}
        assert len(body['children']) == len(HOSTED_EVENT_TEMPLATE)

    @responses.activate
    def test_query_follows_pagination(self, client):
        """Test every result page is collected."""
        responses.add(
            responses.POST,
            f"{API}/databases/calendar-db/query",
            json={
                'results': [{'id': 'a', 'url': 'https://www.notion.so/a', 'properties': {}}],
                'has_more': True,
                'next_cursor': 'cursor-1'
            },
            status=200
        )
        responses.add(
            responses.POST,
            f"{API}/databases/calendar-db/query",
            json={
                'results': [{'id': 'b', 'url': 'https://www.notion.so/b', 'properties': {}}],
                'has_more': False,
                'next_cursor': None
            },
            status=200
        )

        records = client.query_records('calendar-db', {'or': []})

        assert [r.id for r in records] == ['a', 'b']
        second = json.loads(responses.calls[1].request.body)
        assert second['start_cursor'] == 'cursor-1'
        assert second['page_size'] == 100

    @responses.activate
    def test_retry_then_success(self, client):
        """Test transient failures are retried."""
        responses.add(responses.GET, f"{API}/databases/calendar-db",
                      body=ConnectionError('reset'))
        responses.add(responses.GET, f"{API}/databases/calendar-db", status=503)
        responses.add(responses.GET, f"{API}/databases/calendar-db",
                      json={'properties': {}}, status=200)

        assert client.get_schema('calendar-db') == {}
        assert len(responses.calls) == 3

    @responses.activate
    def test_retries_exhausted(self, client):
        """Test the last error is raised after three attempts."""
        for _ in range(3):
            responses.add(responses.GET, f"{API}/databases/calendar-db", status=502)

        with pytest.raises(HTTPError):
            client.get_schema('calendar-db')
        assert len(responses.calls) == 3

    @responses.activate
    def test_client_error_not_retried(self, client):
        """Test validation errors from Notion fail immediately."""
        responses.add(responses.POST, f"{API}/pages",
                      json={'code': 'validation_error'}, status=400)

        with pytest.raises(HTTPError):
            client.create_record('calendar-db', {})
        assert len(responses.calls) == 1
