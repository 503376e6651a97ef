"""
Exchange rate fetchers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from currency_tracker.exceptions import RateSourceError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class RateSample:
    """A single observed rate."""

    rate: Decimal
    as_of: date

    def converted(self, amount: Decimal) -> Decimal:
        """Convert an amount of the base currency."""
        return amount * self.rate


def parse_rate(value: Any) -> Decimal:
    """
    Parse a rate value from a provider payload.

    Raises:
        RateSourceError: If the value is not a positive finite number
    """
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise RateSourceError(f"Invalid rate value: {value!r}")
    if not rate.is_finite() or rate <= 0:
        raise RateSourceError(f"Invalid rate value: {value!r}")
    return rate


def parse_date(value: Any) -> date:
    """Parse a yyyy-MM-dd date from a provider payload."""
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise RateSourceError(f"Invalid date: {value!r}")


class RateSource(ABC):
    """Abstract source of exchange rates."""

    @abstractmethod
    async def get_latest(self, base: str, target: str) -> RateSample:
        """Fetch the most recent rate for base/target."""
        pass

    @abstractmethod
    async def get_rate_on(self, base: str, target: str, day: date) -> RateSample:
        """Fetch the rate published for a given day."""
        pass

    @abstractmethod
    async def get_history(
        self, base: str, target: str, start: date, end: date
    ) -> list[RateSample]:
        """Fetch daily rates between start and end, oldest first."""
        pass

    async def get_recent_history(
        self, base: str, target: str, days: int = 30, today: Optional[date] = None
    ) -> list[RateSample]:
        """Fetch the last `days` days of rates."""
        end = today or date.today()
        return await self.get_history(base, target, end - timedelta(days=days), end)

    async def close(self) -> None:
        """Release any held resources."""
        pass


class FrankfurterRateSource(RateSource):
    """Fetches rates from the Frankfurter API."""

    DEFAULT_BASE_URL = "https://api.frankfurter.app"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Frankfurter client.

        Args:
            base_url: API root URL
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get_latest(self, base: str, target: str) -> RateSample:
        data = await self._get("latest", base, target)
        return self._single_sample(data, target)

    async def get_rate_on(self, base: str, target: str, day: date) -> RateSample:
        data = await self._get(day.strftime(DATE_FORMAT), base, target)
        return self._single_sample(data, target)

    async def get_history(
        self, base: str, target: str, start: date, end: date
    ) -> list[RateSample]:
        path = f"{start.strftime(DATE_FORMAT)}..{end.strftime(DATE_FORMAT)}"
        data = await self._get(path, base, target)

        rates = data.get("rates")
        if not isinstance(rates, dict):
            raise RateSourceError(f"No rates in history response for {base}/{target}")

        samples = []
        for day_str, day_rates in rates.items():
            if not isinstance(day_rates, dict) or target not in day_rates:
                continue
            samples.append(
                RateSample(rate=parse_rate(day_rates[target]), as_of=parse_date(day_str))
            )
        return sorted(samples, key=lambda s: s.as_of)

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, base: str, target: str) -> dict[str, Any]:
        """Issue a GET and decode the JSON body."""
        url = f"{self.base_url}/{path}"
        params = {"from": base, "to": target}
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as e:
            raise RateSourceError(f"Request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise RateSourceError(f"HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError as e:
            raise RateSourceError(f"Invalid JSON from {url}") from e

        if not isinstance(data, dict):
            raise RateSourceError(f"Unexpected response from {url}")
        logger.debug(f"GET {path} {base}->{target}: {data}")
        return data

    def _single_sample(self, data: dict[str, Any], target: str) -> RateSample:
        rates = data.get("rates") or {}
        if target not in rates:
            raise RateSourceError(f"No rate for {target} in response")
        return RateSample(rate=parse_rate(rates[target]), as_of=parse_date(data.get("date")))
