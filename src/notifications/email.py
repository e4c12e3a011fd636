"""Weekly menu summary email over a Resend-compatible HTTP API."""

import html
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from src.utils.config import config
from src.utils.logger import logger

DEFAULT_TIME_ESTIMATE = "30 mins"


def render_weekly_menu(week_start: date, suggestions: Sequence[Dict[str, Any]]) -> str:
    """Plain HTML list of the week's suggestions with their time estimates."""
    items = "\n".join(
        f"<li><strong>{html.escape(str(s.get('title', 'Untitled')))}</strong> "
        f"&middot; {html.escape(str(s.get('time_estimate') or DEFAULT_TIME_ESTIMATE))}</li>"
        for s in suggestions
    )
    return (
        f"<h1>Your menu for the week of {week_start.isoformat()}</h1>\n"
        f"<ul>\n{items}\n</ul>\n"
        "<p>Open the app to see full recipes and add them to your plan.</p>"
    )


class WeeklyMenuNotifier:
    """Sends the weekly menu summary. Disabled when no API key is configured."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_key = config.RESEND_API_KEY if api_key is None else api_key
        self.api_url = api_url or config.EMAIL_API_URL
        self.sender = sender or config.EMAIL_FROM
        self.timeout_seconds = timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, week_start: date, suggestions: List[Dict[str, Any]]) -> bool:
        """Send the summary; returns True when the API accepted it.

        Failures are logged and reported through the return value, never raised.
        """
        if not self.enabled:
            logger.debug("Weekly menu email skipped: no email API key configured")
            return False

        payload = {
            "from": self.sender,
            "to": to,
            "subject": f"Your weekly menu: {week_start.isoformat()}",
            "html": render_weekly_menu(week_start, suggestions),
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.api_url,
                    headers=headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status >= 400:
                        body = await response.text()
                        logger.error(f"Weekly menu email rejected ({response.status}): {body[:300]}")
                        return False
        except Exception as e:
            logger.error(f"Weekly menu email failed: {e}")
            return False

        logger.info(f"Weekly menu email sent for week {week_start.isoformat()}")
        return True
