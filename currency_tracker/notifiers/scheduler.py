"""
Notification scheduling.

Notifications are registered under an identifier and delivered later through
the configured notifiers. Registering an identifier that is already pending
replaces the pending entry.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional

from .base import Notification, NotificationResult, Notifier

logger = logging.getLogger(__name__)


def next_fire_time(hour: int, minute: int, now: datetime) -> datetime:
    """
    Next wall-clock occurrence of hour:minute strictly after now.

    Args:
        hour: 0-23
        minute: 0-59
        now: Reference time

    Returns:
        Today at hour:minute if still ahead, otherwise tomorrow
    """
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class NotificationSink(ABC):
    """Schedules and cancels user-visible notifications."""

    @abstractmethod
    def schedule_once(
        self, notification_id: str, title: str, body: str, delay: float
    ) -> None:
        """Deliver a notification once after `delay` seconds."""
        pass

    @abstractmethod
    def schedule_recurring(
        self, notification_id: str, title: str, body: str, hour: int, minute: int
    ) -> None:
        """Deliver a notification every day at hour:minute."""
        pass

    @abstractmethod
    def cancel(self, notification_id: str) -> bool:
        """Cancel a pending notification. Returns True if one was pending."""
        pass

    @abstractmethod
    def pending_ids(self) -> list[str]:
        """Identifiers of all pending notifications."""
        pass


class NotificationScheduler(NotificationSink):
    """Event-loop timer based notification sink."""

    def __init__(
        self,
        notifiers: list[Notifier],
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize scheduler.

        Args:
            notifiers: Delivery channels, all used for every notification
            clock: Source of the current local time
        """
        self.notifiers = notifiers
        self._clock = clock
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._recurring: dict[str, tuple[str, str, int, int]] = {}
        self._deliveries: set[asyncio.Task] = set()

    def schedule_once(
        self, notification_id: str, title: str, body: str, delay: float
    ) -> None:
        self._replace(notification_id)
        notification = Notification(id=notification_id, title=title, body=body)
        loop = asyncio.get_running_loop()
        self._handles[notification_id] = loop.call_later(
            max(delay, 0), self._fire_once, notification
        )
        logger.debug(f"Scheduled {notification_id} in {delay}s")

    def schedule_recurring(
        self, notification_id: str, title: str, body: str, hour: int, minute: int
    ) -> None:
        self._replace(notification_id)
        self._recurring[notification_id] = (title, body, hour, minute)
        self._arm(notification_id)

    def cancel(self, notification_id: str) -> bool:
        self._recurring.pop(notification_id, None)
        handle = self._handles.pop(notification_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.debug(f"Cancelled {notification_id}")
        return True

    def pending_ids(self) -> list[str]:
        return sorted(self._handles)

    def next_fire_at(self, notification_id: str) -> Optional[datetime]:
        """Next delivery time of a recurring notification."""
        entry = self._recurring.get(notification_id)
        if entry is None:
            return None
        _, _, hour, minute = entry
        return next_fire_time(hour, minute, self._clock())

    async def drain(self, poll_interval: float = 0.1) -> None:
        """Wait until no one-shot notification is pending or being delivered."""
        while self._deliveries or any(i not in self._recurring for i in self._handles):
            await asyncio.sleep(poll_interval)

    def close(self) -> None:
        """Cancel everything still pending."""
        for notification_id in list(self._handles):
            self.cancel(notification_id)

    async def deliver(self, notification: Notification) -> list[NotificationResult]:
        """Send a notification through every notifier."""
        results = []
        for notifier in self.notifiers:
            channel = type(notifier).__name__
            try:
                result = await asyncio.to_thread(notifier.send, notification)
            except Exception as e:
                result = NotificationResult(success=False, channel=channel, error=str(e))

            if result.success:
                logger.info(f"Delivered {notification.id} via {result.channel}")
            else:
                logger.error(
                    f"Failed to deliver {notification.id} via {result.channel}: {result.error}"
                )
            results.append(result)
        return results

    def _replace(self, notification_id: str) -> None:
        if self.cancel(notification_id):
            logger.warning(f"Replacing pending notification {notification_id}")

    def _arm(self, notification_id: str) -> None:
        _, _, hour, minute = self._recurring[notification_id]
        now = self._clock()
        delay = (next_fire_time(hour, minute, now) - now).total_seconds()
        loop = asyncio.get_running_loop()
        self._handles[notification_id] = loop.call_later(
            delay, self._fire_recurring, notification_id
        )
        logger.debug(f"Armed {notification_id} for {hour:02d}:{minute:02d} in {delay:.0f}s")

    def _fire_once(self, notification: Notification) -> None:
        self._handles.pop(notification.id, None)
        self._dispatch(notification)

    def _fire_recurring(self, notification_id: str) -> None:
        entry = self._recurring.get(notification_id)
        if entry is None:
            return
        title, body, _, _ = entry
        self._dispatch(
            Notification(id=notification_id, title=title, body=body, recurring=True)
        )
        self._arm(notification_id)

    def _dispatch(self, notification: Notification) -> None:
        task = asyncio.get_running_loop().create_task(self.deliver(notification))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)
