"""Reminders to pick up key cards and key codes for locked rooms."""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo

from notifier.discord_webhook import BLUE
from pipeline.deadlines import DATE_PROPERTY, host_names
from processor.models import NotionRecord

logger = logging.getLogger(__name__)

DAYS_OUT = 4
LOCATION_PROPERTY = 'Location'
TYPE_PROPERTY = 'Type'
CANCELLED = 'CANCELLED'

KEY_CARD_LOCATIONS = ('CSE 1202', 'CSE 2154', 'CSE 4140', 'CSE B225 (Fishbowl)')
KEY_CODE_LOCATIONS = ('Design and Innovation Building 202/208', 'Room 2315')


class KeyAccessReminder:
    """Reminds hosts of rooms that need a key card or key code."""

    def __init__(self, config, store, notifier, store_guard):
        self.config = config
        self.store = store
        self.notifier = notifier
        self.store_guard = store_guard

    async def run(self, today: Optional[date] = None) -> Dict[str, List[NotionRecord]]:
        """
        Ping about non-cancelled events in locked rooms four days out.

        Args:
            today: Reference date (default: today in the event time zone)

        Returns:
            Matching events grouped by location, in location list order

        Raises:
            StoreSchemaMismatchError: If the calendar database drifted
        """
        today = today or datetime.now(ZoneInfo(self.config.timezone)).date()
        target = today + timedelta(days=DAYS_OUT)

        live_properties = await asyncio.to_thread(
            self.store.get_schema, self.config.notion_calendar_id
        )
        self.store_guard.validate(live_properties)

        locations = KEY_CARD_LOCATIONS + KEY_CODE_LOCATIONS
        records = await asyncio.to_thread(
            self.store.query_records,
            self.config.notion_calendar_id,
            {'and': [
                {'property': DATE_PROPERTY, 'date': {'equals': target.isoformat()}},
                {'or': [
                    {'property': LOCATION_PROPERTY, 'select': {'equals': location}}
                    for location in locations
                ]},
            ]}
        )

        grouped: Dict[str, List[NotionRecord]] = {}
        for location in locations:
            matched = [
                record for record in records
                if record.start_date == target
                and record.property_value(LOCATION_PROPERTY) == location
                and record.property_value(TYPE_PROPERTY) != CANCELLED
            ]
            if matched:
                grouped[location] = matched

        if not grouped:
            logger.info(f"No key reminders for {target.isoformat()}")
            return grouped

        sections = []
        for location, matched in grouped.items():
            access = 'key card' if location in KEY_CARD_LOCATIONS else 'key code'
            lines = [f"**{location}** ({access})"]
            lines.extend(f"- {host_names(record)}: {record.title}" for record in matched)
            sections.append('\n'.join(lines))

        try:
            await asyncio.to_thread(
                self.notifier.notify,
                self.config.mentions('logistics'),
                '🔑 Key reminders',
                f"Events on {target.strftime('%A, %B %d')} need room access:\n\n"
                + '\n\n'.join(sections),
                BLUE
            )
        except Exception as e:
            logger.warning(f"Key reminder notification failed: {e}")

        logger.info(f"Key reminders sent for {sum(len(v) for v in grouped.values())} events")
        return grouped
