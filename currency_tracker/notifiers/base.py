"""
Base notifier classes.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Any

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    """A user-visible notification ready for delivery."""

    id: str
    title: str
    body: str
    created_at: datetime = field(default_factory=datetime.now)
    recurring: bool = False


@dataclass
class NotificationResult:
    """Result of a notification attempt."""

    success: bool
    channel: str
    error: Optional[str] = None


class Notifier(ABC):
    """Abstract base class for notifiers."""

    @abstractmethod
    def send(self, notification: Notification) -> NotificationResult:
        """
        Deliver a single notification.

        Args:
            notification: Notification to deliver

        Returns:
            NotificationResult indicating success or failure
        """
        pass


class LogNotifier(Notifier):
    """Writes notifications to the application log."""

    def send(self, notification: Notification) -> NotificationResult:
        logger.info(f"{notification.title} - {notification.body}")
        return NotificationResult(success=True, channel="log")


class NotifierFactory:
    """Factory for creating notifier instances."""

    @staticmethod
    def create(config: dict[str, Any]) -> Notifier:
        """
        Create a notifier from configuration.

        Args:
            config: Notifier configuration dict

        Returns:
            Appropriate Notifier instance

        Raises:
            ValueError: If notifier type is unknown
        """
        notifier_type = config.get("type")

        if notifier_type == "discord":
            from .discord import DiscordNotifier

            return DiscordNotifier(
                webhook_url=config.get("webhook_url", ""),
                mention=config.get("mention", False),
            )

        elif notifier_type == "email":
            from .email import EmailNotifier

            return EmailNotifier(
                smtp_host=config.get("smtp_host", ""),
                smtp_port=config.get("smtp_port", 587),
                smtp_user=config.get("smtp_user", ""),
                smtp_password=config.get("smtp_password", ""),
                from_address=config.get("from_address", ""),
                to_addresses=config.get("to_addresses", []),
            )

        elif notifier_type == "log":
            return LogNotifier()

        else:
            raise ValueError(f"Unknown notifier type: {notifier_type}")
