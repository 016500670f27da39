"""Deadline reminders for TAP, CSI, funding, booking, and event details."""
import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from notifier.discord_webhook import BLUE, GOLD, ORANGE, PURPLE, RED
from processor.models import CategoryReport, DeadlineRule, NotionRecord, PingCategory

logger = logging.getLogger(__name__)

# Extra day so events starting early in the morning are not pinged late
BUFFER_DAYS = 1

DATE_PROPERTY = 'Date'
HOST_PROPERTY = 'Hosted by'

FUNDING_OPEN = ('Funding TODO', 'Funding In Progress')
TAP_OPEN = ('TAP TODO', 'TAP In Progress')
CSI_OPEN = ('CSI Form TODO', 'CSI Form In Progress')
BOOKING_OPEN = ('Booking TODO', 'Booking In Progress')

PING_CATEGORIES = (
    PingCategory('Funding Deadline', GOLD, (
        DeadlineRule(28, 'Funding Status', FUNDING_OPEN, ('finance',),
                     'Funding requests due in a week'),
        DeadlineRule(21, 'Funding Status', FUNDING_OPEN, ('finance',),
                     'Funding requests due today'),
    )),
    PingCategory('TAP Invoice Deadline', ORANGE, (
        DeadlineRule(21, 'TAP Status', TAP_OPEN, ('logistics',),
                     'TAP due in two weeks'),
        DeadlineRule(14, 'TAP Status', TAP_OPEN, ('logistics',),
                     'TAP due in a week'),
        DeadlineRule(7, 'TAP Status', TAP_OPEN, ('logistics',),
                     'TAP due today'),
    )),
    PingCategory('CSI Intake Deadline', PURPLE, (
        DeadlineRule(14, 'CSI Form Status', CSI_OPEN, ('logistics',),
                     'CSI intake form due in a week'),
        DeadlineRule(7, 'CSI Form Status', CSI_OPEN, ('logistics',),
                     'CSI intake form due today'),
    )),
    PingCategory('Booking Deadline', RED, (
        DeadlineRule(21, 'Booking Status', BOOKING_OPEN, ('logistics',),
                     'Venue booking needed within a week'),
        DeadlineRule(14, 'Booking Status', BOOKING_OPEN, ('logistics', 'events'),
                     'Venue booking overdue'),
    )),
    PingCategory('Event Details', BLUE, (
        DeadlineRule(14, 'Type', ('Unconfirmed Details',), ('events',),
                     'Details still unconfirmed two weeks out'),
        DeadlineRule(7, 'Type', ('Unconfirmed Details',), ('events',),
                     'Details still unconfirmed a week out'),
    )),
)


def rule_date(rule: DeadlineRule, today: date) -> date:
    return today + timedelta(days=rule.days_before + BUFFER_DAYS)


def build_deadline_filter(categories: Sequence[PingCategory], today: date) -> dict:
    """
    Build one OR-of-ANDs filter covering every rule in the catalog.

    The filter is a superset; matches are re-checked locally per rule.

    Args:
        categories: Ping categories to cover
        today: Reference date

    Returns:
        Notion compound filter
    """
    clauses = []
    seen = set()
    for category in categories:
        for rule in category.rules:
            target = rule_date(rule, today).isoformat()
            for status in rule.statuses:
                key = (target, rule.property_name, status)
                if key in seen:
                    continue
                seen.add(key)
                clauses.append({'and': [
                    {'property': DATE_PROPERTY, 'date': {'equals': target}},
                    {'property': rule.property_name, 'select': {'equals': status}},
                ]})
    return {'or': clauses}


def rule_matches(rule: DeadlineRule, record: NotionRecord, today: date) -> bool:
    return (
        record.start_date == rule_date(rule, today)
        and rule.status_of(record) in rule.statuses
    )


def host_names(record: NotionRecord) -> str:
    return record.property_value(HOST_PROPERTY) or 'no host listed'


def format_event_line(record: NotionRecord) -> str:
    return f"- [{record.title}]({record.url}) (hosted by {host_names(record)})"


class DeadlineScheduler:
    """Pings each team about calendar events approaching a deadline."""

    def __init__(self, config, store, notifier, store_guard, categories=PING_CATEGORIES):
        self.config = config
        self.store = store
        self.notifier = notifier
        self.store_guard = store_guard
        self.categories = categories

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.config.timezone)).date()

    async def run(self, today: Optional[date] = None) -> List[CategoryReport]:
        """
        Send one notification per ping category with matching events.

        Events are re-pinged every day their date and status satisfy a rule;
        the status field, not this scheduler, records that a task is handled.

        Args:
            today: Reference date (default: today in the event time zone)

        Returns:
            Reports of the categories that fired

        Raises:
            StoreSchemaMismatchError: If the calendar database drifted
        """
        today = today or self.today()
        logger.info(f"Checking deadlines relative to {today.isoformat()}")

        live_properties = await asyncio.to_thread(
            self.store.get_schema, self.config.notion_calendar_id
        )
        self.store_guard.validate(live_properties)

        records = await asyncio.to_thread(
            self.store.query_records,
            self.config.notion_calendar_id,
            build_deadline_filter(self.categories, today)
        )

        reports = []
        for category in self.categories:
            report = self.evaluate_category(category, records, today)
            if report is None:
                continue
            reports.append(report)
            await self._send(category, report)

        logger.info(
            f"Deadline check complete: {len(records)} candidate events, "
            f"{len(reports)} categories pinged"
        )
        return reports

    def evaluate_category(
        self,
        category: PingCategory,
        records: Sequence[NotionRecord],
        today: date
    ) -> Optional[CategoryReport]:
        """
        Re-partition the query results for one category.

        Args:
            category: Ping category to evaluate
            records: Result set of the combined query
            today: Reference date

        Returns:
            CategoryReport with rules in ascending day offset, or None if no
            rule in the category matched
        """
        matches: Dict[DeadlineRule, List[NotionRecord]] = {}
        for rule in sorted(category.rules, key=lambda r: r.days_before):
            matched = [record for record in records if rule_matches(rule, record, today)]
            if matched:
                matches[rule] = matched

        if not matches:
            return None

        audience = [name for rule in matches for name in rule.audience]
        return CategoryReport(
            category=category.name,
            matches=matches,
            mentions=self.config.mentions(*audience)
        )

    async def _send(self, category: PingCategory, report: CategoryReport) -> None:
        sections = []
        for rule, records in report.matches.items():
            lines = [f"**{rule.message}**"]
            lines.extend(format_event_line(record) for record in records)
            sections.append('\n'.join(lines))

        try:
            await asyncio.to_thread(
                self.notifier.notify,
                report.mentions,
                f"⏰ {category.name}",
                '\n\n'.join(sections),
                category.color
            )
        except Exception as e:
            logger.warning(f"Deadline notification for '{category.name}' failed: {e}")
