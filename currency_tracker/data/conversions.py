"""
Conversion log: records exchanges made by the user at the rate of the day.
"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Optional

from currency_tracker.database.models import LogEntry
from currency_tracker.database.repository import LogRepository
from .currencies import parse_positive_decimal, validate_pair
from .fetcher import RateSource

logger = logging.getLogger(__name__)


class ConversionLogger:
    """Fetches the historical rate for an exchange and stores a log entry."""

    def __init__(
        self,
        repo: LogRepository,
        source: RateSource,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.repo = repo
        self.source = source
        self._clock = clock

    async def log(
        self,
        base: str,
        target: str,
        amount: Any,
        on_date: Optional[date] = None,
        note: str = "",
    ) -> LogEntry:
        """
        Record an exchange.

        Args:
            base: Currency exchanged from
            target: Currency exchanged into
            amount: Amount of base currency
            on_date: Day of the exchange, defaults to today
            note: Free text

        Returns:
            The stored LogEntry

        Raises:
            ValidationError: If the pair or amount is invalid
            RateSourceError: If the rate for that day could not be fetched
        """
        base, target = validate_pair(base, target)
        amount = parse_positive_decimal(amount, field_name="amount")
        now = self._clock()
        day = on_date or now.date()

        sample = await self.source.get_rate_on(base, target, day)
        entry = LogEntry(
            timestamp=now,
            base=base,
            target=target,
            amount=amount,
            converted_amount=sample.converted(amount),
            rate=sample.rate,
            note=note.strip(),
        )
        logger.info(f"Logged {amount} {base} -> {entry.converted_amount} {target} @ {sample.rate}")
        return self.repo.add(entry)

    def history(self) -> list[LogEntry]:
        """Logged exchanges, newest first."""
        return self.repo.list_all()
