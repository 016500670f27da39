"""Discord webhook notification sink."""
import logging
from typing import Optional, Sequence

import requests

logger = logging.getLogger(__name__)

GREEN = 0x2ECC71
RED = 0xE74C3C
DARK_RED = 0x992D22
ORANGE = 0xE67E22
GOLD = 0xF1C40F
BLUE = 0x3498DB
PURPLE = 0x9B59B6

EMBED_DESCRIPTION_LIMIT = 4096


class DiscordWebhookNotifier:
    """Posts embeds to a Discord channel webhook."""

    def __init__(self, webhook_url: str, timeout: int = 30):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def notify(
        self,
        mentions: Sequence[str],
        title: str,
        body: str,
        color: int,
        footer: Optional[str] = None
    ) -> bool:
        """
        Send one notification. Best effort: failures are logged, never raised.

        Args:
            mentions: Discord mention strings to ping
            title: Embed title
            body: Embed description (Markdown)
            color: Embed colour
            footer: Optional embed footer text

        Returns:
            True if Discord accepted the message
        """
        if len(body) > EMBED_DESCRIPTION_LIMIT:
            body = body[:EMBED_DESCRIPTION_LIMIT - 3] + '...'

        embed = {'title': title, 'description': body, 'color': color}
        if footer:
            embed['footer'] = {'text': footer}

        payload = {'embeds': [embed]}
        if mentions:
            payload['content'] = f"Paging {' and '.join(mentions)}!"

        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.RequestException as e:
            logger.warning(
                f"Failed to send Discord notification '{title}': {e}",
                extra={'error_type': type(e).__name__}
            )
            return False
