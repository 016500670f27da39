"""Unit tests for the key access reminder."""
import asyncio
from datetime import date

import pytest

from pipeline.key_reminders import KeyAccessReminder

TODAY = date(2025, 10, 1)


@pytest.fixture
def reminder(config, mock_store, mock_notifier, store_guard):
    return KeyAccessReminder(config, mock_store, mock_notifier, store_guard)


class TestKeyAccessReminder:
    """Test cases for KeyAccessReminder.run."""

    def test_groups_by_location(self, reminder, mock_store, mock_notifier, make_page):
        """Test events four days out are grouped by locked room."""
        mock_store.query_records.return_value = [
            make_page('evt-1', 'Hack Night', '2025-10-05', hosts=['Alex'], Location='CSE 1202'),
            make_page('evt-2', 'Design Jam', '2025-10-05', hosts=['Sam'], Location='Room 2315'),
            make_page('evt-3', 'AI Talk', '2025-10-05', hosts=['Kai'], Location='CSE 1202'),
        ]

        grouped = asyncio.run(reminder.run(today=TODAY))

        assert list(grouped) == ['CSE 1202', 'Room 2315']
        assert [r.id for r in grouped['CSE 1202']] == ['evt-1', 'evt-3']

        mock_notifier.notify.assert_called_once()
        mentions, title, body, _ = mock_notifier.notify.call_args.args
        assert mentions == ['<@&111>']
        assert title == '🔑 Key reminders'
        assert '**CSE 1202** (key card)' in body
        assert '**Room 2315** (key code)' in body
        assert '- Alex: Hack Night' in body
        assert '- Sam: Design Jam' in body

    def test_query_targets_four_days_out(self, reminder, mock_store):
        """Test the store is queried once for the exact target date."""
        asyncio.run(reminder.run(today=TODAY))

        mock_store.query_records.assert_called_once()
        query = mock_store.query_records.call_args.args[1]
        date_clause, location_clause = query['and']
        assert date_clause == {'property': 'Date', 'date': {'equals': '2025-10-05'}}
        assert {'property': 'Location', 'select': {'equals': 'CSE B225 (Fishbowl)'}} \
            in location_clause['or']

    def test_cancelled_events_skipped(self, reminder, mock_store, mock_notifier, make_page):
        """Test cancelled events need no key."""
        mock_store.query_records.return_value = [
            make_page('evt-1', 'Hack Night', '2025-10-05', Location='CSE 1202', Type='CANCELLED'),
        ]

        assert asyncio.run(reminder.run(today=TODAY)) == {}
        mock_notifier.notify.assert_not_called()

    def test_unlocked_rooms_and_other_dates_skipped(self, reminder, mock_store, mock_notifier,
                                                    make_page):
        """Test results outside the locked rooms or target date are dropped."""
        mock_store.query_records.return_value = [
            make_page('evt-1', 'Social', '2025-10-05', Location='PC Forum'),
            make_page('evt-2', 'Hack Night', '2025-10-06', Location='CSE 1202'),
        ]

        assert asyncio.run(reminder.run(today=TODAY)) == {}
        mock_notifier.notify.assert_not_called()
