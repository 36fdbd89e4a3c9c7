"""Notification sink - dashboard feed, webhooks (Slack, Discord, etc.) and email (SMTP).

Configuration is read from the setup store (web UI) first, falling back to
environment variables. Delivery is fire-and-forget: channel failures are
logged and never reach the caller.
"""

import logging
from collections import deque
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

import httpx
import aiosmtplib

from services.setup_store import SetupStore

logger = logging.getLogger(__name__)

# Notification priority -> channel severity level
PRIORITY_LEVELS = {"low": "info", "normal": "warning", "high": "critical"}
FEED_SIZE = 50


class Notifier:
    """Delivers (title, message, priority) notifications."""

    def __init__(self, setup_store: SetupStore, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._setup_store = setup_store
        self._transport = transport
        self._feed: deque = deque(maxlen=FEED_SIZE)

    def _get_smtp_config(self) -> dict:
        store = self._setup_store
        return {
            "host": store.get("notify_smtp_host", ""),
            "port": int(store.get("notify_smtp_port", 587)),
            "username": store.get("notify_smtp_username", ""),
            "password": store.get("notify_smtp_password", ""),
            "from_email": store.get("notify_smtp_from", ""),
            "to_email": store.get("notify_email", ""),
        }

    def _get_webhook_url(self) -> str:
        return self._setup_store.get("notify_webhook_url", "")

    def recent(self, limit: int = 20) -> list[dict]:
        """Most recent notifications, newest first, for on-screen delivery."""
        return list(self._feed)[::-1][:limit]

    async def send(self, title: str, message: str, priority: str = "normal") -> list[tuple[str, bool]]:
        """Send a notification via the feed and all configured channels.

        Args:
            title: Short notification title
            message: Notification body
            priority: "low", "normal", or "high"
        """
        level = PRIORITY_LEVELS.get(priority, "info")
        self._feed.append({
            "title": title,
            "message": message,
            "priority": priority,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("Notification [%s] %s: %s", priority, title, message)
        results = []

        # Email
        smtp = self._get_smtp_config()
        if smtp["host"] and smtp["to_email"]:
            try:
                await self.send_email(title, message, smtp)
                results.append(("email", True))
            except Exception as e:
                logger.error("Email notification failed: %s", e)
                results.append(("email", False))

        # Webhook
        webhook_url = self._get_webhook_url()
        if webhook_url:
            try:
                await self.send_webhook(title, message, level, webhook_url)
                results.append(("webhook", True))
            except Exception as e:
                logger.error("Webhook notification failed: %s", e)
                results.append(("webhook", False))

        return results

    async def send_email(self, subject: str, body: str, smtp: dict):
        """Send an email notification via SMTP."""
        msg = MIMEMultipart()
        msg["From"] = smtp["from_email"] or smtp["username"]
        msg["To"] = smtp["to_email"]
        msg["Subject"] = f"[TeslaDash] {subject}"
        msg.attach(MIMEText(body, "plain"))

        await aiosmtplib.send(
            msg,
            hostname=smtp["host"],
            port=smtp["port"],
            username=smtp["username"] or None,
            password=smtp["password"] or None,
            use_tls=smtp["port"] == 465,
            start_tls=smtp["port"] != 465,
        )
        logger.info("Sent email notification: %s", subject)

    async def send_webhook(self, title: str, message: str, level: str, url: str):
        """Send a webhook notification (supports Slack, Discord, and generic JSON)."""
        if "discord" in url.lower():
            payload = _format_discord(title, message, level)
        elif "hooks.slack.com" in url.lower():
            payload = _format_slack(title, message, level)
        else:
            payload = {
                "title": title,
                "message": message,
                "level": level,
                "source": "TeslaDash",
            }

        async with httpx.AsyncClient(transport=self._transport) as client:
            response = await client.post(url, json=payload, timeout=10.0)
            response.raise_for_status()

        logger.info("Sent webhook notification: %s", title)


def _format_slack(title: str, message: str, level: str) -> dict:
    """Format payload for Slack incoming webhooks."""
    color_map = {"info": "#36a64f", "warning": "#ff9900", "critical": "#ff0000"}
    return {
        "attachments": [
            {
                "color": color_map.get(level, "#36a64f"),
                "title": title,
                "text": message,
                "footer": "TeslaDash",
            }
        ]
    }


def _format_discord(title: str, message: str, level: str) -> dict:
    """Format payload for Discord webhooks."""
    color_map = {"info": 0x36A64F, "warning": 0xFF9900, "critical": 0xFF0000}
    return {
        "embeds": [
            {
                "title": title,
                "description": message,
                "color": color_map.get(level, 0x36A64F),
                "footer": {"text": "TeslaDash"},
            }
        ]
    }
