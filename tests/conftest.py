"""Shared fixtures for the pipeline tests."""
from unittest.mock import Mock

import pytest

from pipeline.config import PipelineConfig
from processor.closed_sets import ClosedSets
from processor.event_builder import EventRecordBuilder
from processor.models import NotionRecord, SheetData
from schema_guard.guard import FormSchemaGuard, StoreSchemaGuard, load_snapshot


@pytest.fixture
def snapshot():
    """Bundled schema snapshot."""
    return load_snapshot()


@pytest.fixture
def closed_sets(snapshot):
    return ClosedSets.from_snapshot(snapshot)


@pytest.fixture
def builder(closed_sets):
    return EventRecordBuilder(closed_sets, timezone='America/Los_Angeles')


@pytest.fixture
def config():
    """Pipeline configuration with every team ID set."""
    return PipelineConfig(
        notion_token='secret_test',
        notion_calendar_id='calendar-db',
        notion_hosted_events_id='hosted-db',
        sheets_doc_id='doc-id',
        sheets_key_file='key.json',
        webhook_url='https://discord.com/api/webhooks/1/abc',
        logistics_team_id='111',
        finance_team_id='222',
        events_team_id='333',
        maintainer_id='444'
    )


@pytest.fixture
def live_store_properties(snapshot):
    """Raw Notion `properties` object matching the snapshot."""
    properties = {}
    for index, (name, spec) in enumerate(snapshot.store_properties.items()):
        prop = {'id': f"p{index}", 'name': name, 'type': spec['type']}
        if 'options' in spec:
            prop[spec['type']] = {
                'options': [
                    {'id': f"o{i}", 'name': option, 'color': 'default'}
                    for i, option in enumerate(spec['options'])
                ]
            }
        else:
            prop[spec['type']] = {}
        properties[name] = prop
    return properties


@pytest.fixture
def form_answers():
    """Answers of a well-formed on-campus host form submission."""
    return {
        'Timestamp': '10/01/2025 12:00:00',
        'Email Address': 'host@ucsd.edu',
        'Event name': 'Intro to Git',
        'Event description': 'Learn **Git** basics.',
        'Plain description': 'Learn Git basics.',
        'Event director(s)': 'Alex',
        'What kind of event is this?': 'Workshop',
        'Preferred date': '10/24/2025',
        'Preferred start time': '7:00:00 PM',
        'Preferred end time': '9:00:00 PM',
        'Additional Date/Time Notes': '',
        'Estimated Attendance?': '50',
        'Check-in Code': 'git-good',
        'Which of the following organizations are involved in this event?': 'ACM Hack',
        'If this is a collab event, who will be handling the logistics?': 'ACM',
        'Which pass will this event be submitted under?': 'Standard Pass',
        'Which team/community will be using their token?': 'ACM Hack',
        'What token number will you be using?': '3',
        'Where is your event taking place?': 'I need a venue on campus',
        'Ideal Venue Choice': 'CSE 1202',
        'Other venue details?': '',
        'Will you need a projector and/or other tech?': 'Yes',
        'If you need tech or equipment, please specify here': 'HDMI adapter',
        'Event Link (ACMURL)': 'acmurl.com/git',
        'Will your event require funding?': 'No',
        'What food do you need funding for?': '',
        'Food Pickup Time': '',
        'I understand that I will arrange someone to pickup the food or other items required for my event': '',
        'Non-food system requests: Vendor website or menu': '',
        'Is there a sponsor that will pay for this event?': 'No',
        'Any additional funding details?': '',
        'Will your event require ADDITIONAL marketing?': 'No',
        'Are you planning on inviting off campus guests?': 'No',
    }


@pytest.fixture
def make_sheet(snapshot, form_answers):
    """Factory for SheetData built from answer overrides."""
    def _make(rows, processed_flags=None):
        headers = list(snapshot.form_headers)
        raw_rows = []
        for overrides in rows:
            answers = {**form_answers, **overrides}
            raw_rows.append([answers.get(header, '') for header in headers])
        flags = processed_flags if processed_flags is not None else [False] * len(raw_rows)
        return SheetData(headers=headers, rows=raw_rows, processed_flags=list(flags))
    return _make


@pytest.fixture
def form_guard(snapshot):
    return FormSchemaGuard(snapshot)


@pytest.fixture
def store_guard(snapshot):
    return StoreSchemaGuard(snapshot)


@pytest.fixture
def mock_store(live_store_properties):
    """Notion calendar client double whose schema matches the snapshot."""
    store = Mock()
    store.get_schema.return_value = live_store_properties
    store.query_records.return_value = []
    return store


@pytest.fixture
def mock_notifier():
    notifier = Mock()
    notifier.notify.return_value = True
    return notifier


def notion_page(page_id, title, start, hosts=(), **selects):
    """Build a NotionRecord as returned by a database query."""
    properties = {
        'Name': {
            'type': 'title',
            'title': [{'plain_text': title}]
        },
        'Date': {'type': 'date', 'date': {'start': start, 'end': None}},
        'Hosted by': {
            'type': 'people',
            'people': [{'name': host} for host in hosts]
        },
    }
    for name, value in selects.items():
        prop_name = name.replace('_', ' ')
        properties[prop_name] = {
            'type': 'select',
            'select': {'name': value} if value else None
        }
    return NotionRecord(
        id=page_id,
        url=f"https://www.notion.so/{page_id}",
        properties=properties
    )


@pytest.fixture
def make_page():
    """Factory for query result pages."""
    return notion_page
