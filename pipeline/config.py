"""Pipeline configuration read from environment variables."""
import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from processor.errors import ConfigurationError

REQUIRED_VARIABLES = (
    'NOTION_INTEGRATION_TOKEN',
    'NOTION_CALENDAR_ID',
    'NOTION_HOSTED_EVENTS_ID',
    'GOOGLE_SHEETS_DOC_ID',
    'GOOGLE_SHEETS_KEY_FILE',
    'DISCORD_WEBHOOK_URL',
)


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared by the sync, deadline, and key reminder jobs."""
    notion_token: str
    notion_calendar_id: str
    notion_hosted_events_id: str
    sheets_doc_id: str
    sheets_key_file: str
    webhook_url: str
    sheet_name: str = 'Form Responses 1'
    checkbox_sheet_name: str = 'Notion Event Pipeline'
    logistics_team_id: str = ''
    finance_team_id: str = ''
    events_team_id: str = ''
    maintainer_id: str = ''
    timezone: str = 'America/Los_Angeles'
    timeout_seconds: int = 30
    sync_interval_minutes: int = 30
    deadline_interval_hours: int = 24
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PipelineConfig':
        """
        Build the configuration from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            PipelineConfig

        Raises:
            ConfigurationError: If a required variable is missing or a numeric
                variable is not a number
        """
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_VARIABLES if not env.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        try:
            timeout_seconds = int(env.get('TIMEOUT_SECONDS', '30'))
            sync_interval_minutes = int(env.get('SYNC_INTERVAL_MINUTES', '30'))
            deadline_interval_hours = int(env.get('DEADLINE_INTERVAL_HOURS', '24'))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        return cls(
            notion_token=env['NOTION_INTEGRATION_TOKEN'],
            notion_calendar_id=env['NOTION_CALENDAR_ID'],
            notion_hosted_events_id=env['NOTION_HOSTED_EVENTS_ID'],
            sheets_doc_id=env['GOOGLE_SHEETS_DOC_ID'],
            sheets_key_file=env['GOOGLE_SHEETS_KEY_FILE'],
            webhook_url=env['DISCORD_WEBHOOK_URL'],
            sheet_name=env.get('GOOGLE_SHEETS_SHEET_NAME', 'Form Responses 1'),
            checkbox_sheet_name=env.get(
                'GOOGLE_SHEETS_CHECKBOX_SHEET_NAME', 'Notion Event Pipeline'
            ),
            logistics_team_id=env.get('LOGISTICS_TEAM_ID', ''),
            finance_team_id=env.get('FINANCE_TEAM_ID', ''),
            events_team_id=env.get('EVENTS_TEAM_ID', ''),
            maintainer_id=env.get('MAINTAINER_ID', ''),
            timezone=env.get('EVENT_TIMEZONE', 'America/Los_Angeles'),
            timeout_seconds=timeout_seconds,
            sync_interval_minutes=sync_interval_minutes,
            deadline_interval_hours=deadline_interval_hours,
            log_level=env.get('LOG_LEVEL', 'INFO')
        )

    def mentions(self, *audience: str) -> List[str]:
        """
        Resolve audience names to Discord mention strings.

        Args:
            audience: Any of 'logistics', 'finance', 'events', 'maintainer'

        Returns:
            Deduplicated mention strings, in audience order; audiences without
            a configured ID are skipped
        """
        roles = {
            'logistics': self.logistics_team_id,
            'finance': self.finance_team_id,
            'events': self.events_team_id,
        }
        mentions = []
        for name in audience:
            if name == 'maintainer':
                mention = f"<@{self.maintainer_id}>" if self.maintainer_id else None
            else:
                role_id = roles.get(name)
                mention = f"<@&{role_id}>" if role_id else None
            if mention and mention not in mentions:
                mentions.append(mention)
        return mentions
