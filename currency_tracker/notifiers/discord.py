"""
Discord webhook notifier.
"""

import time
from typing import Any

import requests

from .base import Notification, Notifier, NotificationResult


class DiscordNotifier(Notifier):
    """Sends notifications via Discord webhook."""

    COLOR_THRESHOLD = 0xFFA500  # Orange
    COLOR_DAILY = 0x3498DB  # Blue

    def __init__(self, webhook_url: str, mention: bool = False):
        """
        Initialize Discord notifier.

        Args:
            webhook_url: Discord webhook URL
            mention: Whether to @here on threshold alerts
        """
        self.webhook_url = webhook_url
        self.mention = mention

    def send(self, notification: Notification) -> NotificationResult:
        """Send notification to Discord."""
        try:
            payload = self._create_payload(notification)
            response = self._send_webhook(payload)

            if response.ok:
                return NotificationResult(success=True, channel="discord")
            else:
                return NotificationResult(
                    success=False,
                    channel="discord",
                    error=f"HTTP {response.status_code}: {response.text}",
                )

        except requests.exceptions.ConnectionError as e:
            return NotificationResult(
                success=False,
                channel="discord",
                error=f"Connection error: {str(e)}",
            )
        except Exception as e:
            return NotificationResult(
                success=False,
                channel="discord",
                error=str(e),
            )

    def _send_webhook(self, payload: dict[str, Any]) -> requests.Response:
        """Send webhook with rate limit handling."""
        response = requests.post(
            self.webhook_url,
            json=payload,
            timeout=10,
        )

        # Handle rate limiting
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "1")
            time.sleep(float(retry_after))
            response = requests.post(
                self.webhook_url,
                json=payload,
                timeout=10,
            )

        return response

    def _create_payload(self, notification: Notification) -> dict[str, Any]:
        """Create Discord webhook payload."""
        payload: dict[str, Any] = {
            "embeds": [self._create_embed(notification)],
        }

        if self.mention and not notification.recurring:
            payload["content"] = "@here"

        return payload

    def _create_embed(self, notification: Notification) -> dict[str, Any]:
        """Create Discord embed for notification."""
        return {
            "title": notification.title,
            "description": notification.body,
            "color": self.COLOR_DAILY if notification.recurring else self.COLOR_THRESHOLD,
            "timestamp": notification.created_at.isoformat(),
        }
