"""
Daily exchange rate notification.

The schedule lives under one fixed notification identifier. Every change
cancels whatever is registered under it before registering again, so at most
one daily schedule is ever active.
"""

import enum
import logging
from datetime import datetime
from typing import Callable, Optional

from currency_tracker.data.currencies import validate_pair
from currency_tracker.data.fetcher import RateSource
from currency_tracker.database.models import DailyAlertConfig
from currency_tracker.database.repository import DailyAlertRepository
from currency_tracker.exceptions import RateSourceError
from currency_tracker.notifiers.scheduler import NotificationSink, next_fire_time
from .engine import format_rate

logger = logging.getLogger(__name__)

DAILY_NOTIFICATION_ID = "daily_rate_notification"
DAILY_TITLE = "📊 Daily Exchange Rate"


class ScheduleState(enum.Enum):
    UNSCHEDULED = "unscheduled"
    SCHEDULED = "scheduled"


class DailyAlertScheduler:
    """Keeps the recurring daily notification in line with its config."""

    def __init__(
        self,
        repo: DailyAlertRepository,
        source: RateSource,
        sink: NotificationSink,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.source = source
        self.sink = sink
        self._clock = clock
        self.state = ScheduleState.UNSCHEDULED
        self._scheduled_config: Optional[DailyAlertConfig] = None

    @property
    def config(self) -> DailyAlertConfig:
        return self.repo.get()

    @property
    def next_fire_at(self) -> Optional[datetime]:
        """When the daily notification fires next, if scheduled."""
        if self.state is not ScheduleState.SCHEDULED or self._scheduled_config is None:
            return None
        return next_fire_time(
            self._scheduled_config.hour, self._scheduled_config.minute, self._clock()
        )

    async def apply(self, config: DailyAlertConfig) -> None:
        """
        Persist a config and bring the schedule in line with it.

        Raises:
            ValidationError: If the time is out of range or the pair is invalid
        """
        config.validate()
        if config.enabled:
            config.base, config.target = validate_pair(config.base, config.target)
        self.repo.save(config)

        if not config.enabled:
            self._unschedule()
            logger.info("Daily alert disabled")
            return

        try:
            sample = await self.source.get_latest(config.base, config.target)
        except RateSourceError as e:
            self._unschedule()
            logger.warning(f"Daily alert not scheduled, rate fetch failed: {e}")
            return

        self.sink.cancel(DAILY_NOTIFICATION_ID)
        self.sink.schedule_recurring(
            DAILY_NOTIFICATION_ID,
            DAILY_TITLE,
            format_rate(config.base, config.target, sample.rate),
            config.hour,
            config.minute,
        )
        self.state = ScheduleState.SCHEDULED
        self._scheduled_config = config
        logger.info(
            f"Daily alert for {config.base}/{config.target} set at "
            f"{config.hour:02d}:{config.minute:02d}, next at {self.next_fire_at}"
        )

    async def restore(self) -> None:
        """Re-apply the persisted config, e.g. on start-up."""
        await self.apply(self.repo.get())

    def _unschedule(self) -> None:
        self.sink.cancel(DAILY_NOTIFICATION_ID)
        self.state = ScheduleState.UNSCHEDULED
        self._scheduled_config = None
