"""
Application wiring.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from currency_tracker.config import AppConfig
from currency_tracker.data.aggregator import FavoritesAggregator, PairRates
from currency_tracker.data.conversions import ConversionLogger
from currency_tracker.data.currencies import parse_positive_decimal, validate_pair
from currency_tracker.data.fetcher import FrankfurterRateSource, RateSample, RateSource
from currency_tracker.data.yahoo import YahooRateSource
from currency_tracker.database.connection import Database
from currency_tracker.database.repository import (
    AlertRuleRepository,
    DailyAlertRepository,
    FavoritesRepository,
    LogRepository,
    SlotStore,
)
from currency_tracker.notifiers.base import LogNotifier, Notifier, NotifierFactory
from currency_tracker.notifiers.scheduler import NotificationScheduler, NotificationSink
from currency_tracker.rules.daily import DailyAlertScheduler
from currency_tracker.rules.engine import AlertEvaluator, EvaluationResult

logger = logging.getLogger(__name__)


def create_rate_source(config: AppConfig) -> RateSource:
    """Build the configured rate source."""
    ds = config.data_source
    if ds.provider == "yahoo_finance":
        return YahooRateSource()
    return FrankfurterRateSource(base_url=ds.base_url, timeout=ds.timeout_seconds)


def create_notifiers(config: AppConfig) -> list[Notifier]:
    """Build notifiers from config, falling back to the log."""
    notifiers = []
    for channel in config.notifications.channels:
        try:
            notifiers.append(NotifierFactory.create(channel))
        except ValueError as e:
            logger.error(f"Skipping notification channel: {e}")
    return notifiers or [LogNotifier()]


class TrackerApp:
    """Currency tracker application."""

    def __init__(
        self,
        db: Database,
        source: RateSource,
        sink: NotificationSink,
        threshold_delay_seconds: float = 5.0,
        history_days: int = 30,
    ):
        """
        Initialize the app.

        Args:
            db: Initialized database
            source: Rate source shared by all components
            sink: Notification sink shared by all components
            threshold_delay_seconds: Delay before rate-drop notifications show
            history_days: Window used by rate history
        """
        self.db = db
        self.source = source
        self.sink = sink
        self.history_days = history_days

        # Repositories
        store = SlotStore(db)
        self.favorites = FavoritesRepository(store)
        self.alert_rules = AlertRuleRepository(store)
        self.daily_alerts = DailyAlertRepository(store)
        self.logs = LogRepository(store)

        # Services
        self.aggregator = FavoritesAggregator(source)
        self.evaluator = AlertEvaluator(
            self.alert_rules, source, sink, notify_delay_seconds=threshold_delay_seconds
        )
        self.daily_scheduler = DailyAlertScheduler(self.daily_alerts, source, sink)
        self.conversions = ConversionLogger(self.logs, source)

    @classmethod
    def from_config(cls, config: AppConfig, db: Optional[Database] = None) -> "TrackerApp":
        """Build the app from configuration."""
        if db is None:
            db = Database(config.database.path)
            db.initialize()
        return cls(
            db=db,
            source=create_rate_source(config),
            sink=NotificationScheduler(create_notifiers(config)),
            threshold_delay_seconds=config.notifications.threshold_delay_seconds,
            history_days=config.data_source.history_days,
        )

    async def refresh_favorites(self) -> dict[str, PairRates]:
        """Fetch latest and previous rates for every favorite."""
        return await self.aggregator.refresh(self.favorites.list_all())

    async def add_favorite(self, base: str, target: str) -> dict[str, PairRates]:
        """Add a favorite and refresh the view."""
        if self.favorites.add(base, target) is None:
            logger.info(f"{base}/{target} is already a favorite")
        return await self.refresh_favorites()

    async def remove_favorite(self, base: str, target: str) -> dict[str, PairRates]:
        """Remove a favorite and refresh the view."""
        self.favorites.remove(base, target)
        return await self.refresh_favorites()

    async def convert(self, base: str, target: str, amount: Any) -> tuple[RateSample, Decimal]:
        """Convert an amount at the latest rate."""
        base, target = validate_pair(base, target)
        value = parse_positive_decimal(amount, field_name="amount")
        sample = await self.source.get_latest(base, target)
        return sample, sample.converted(value)

    async def history(self, base: str, target: str) -> list[RateSample]:
        """Daily rates over the configured history window."""
        base, target = validate_pair(base, target)
        return await self.source.get_recent_history(base, target, days=self.history_days)

    async def run_check(self) -> list[EvaluationResult]:
        """Re-arm the daily alert and check every rate-drop rule."""
        try:
            await self.daily_scheduler.restore()
        except ValueError as e:
            logger.error(f"Stored daily alert is invalid: {e}")
        results = await self.evaluator.check_all()
        fired = sum(1 for r in results if r.fired)
        logger.info(f"Checked {len(results)} alert rules, {fired} fired")
        return results

    async def close(self) -> None:
        """Release network and database resources."""
        if isinstance(self.sink, NotificationScheduler):
            self.sink.close()
        await self.source.close()
        self.db.close()
