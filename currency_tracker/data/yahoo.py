"""
Yahoo Finance rate source.
"""

import asyncio
from datetime import date, timedelta

import yfinance as yf

from currency_tracker.exceptions import RateSourceError
from .fetcher import RateSample, RateSource, parse_rate


class YahooRateSource(RateSource):
    """Fetches daily FX closes from Yahoo Finance."""

    # Days to look back when the requested day has no close (weekends, holidays)
    LOOKBACK_DAYS = 7

    @staticmethod
    def ticker_symbol(base: str, target: str) -> str:
        """Yahoo FX ticker (e.g., "USDJPY=X")."""
        return f"{base}{target}=X"

    async def get_latest(self, base: str, target: str) -> RateSample:
        samples = await asyncio.to_thread(self._fetch, base, target, {"period": "5d"})
        if not samples:
            raise RateSourceError(f"No data available: {base}/{target}")
        return samples[-1]

    async def get_rate_on(self, base: str, target: str, day: date) -> RateSample:
        kwargs = {
            "start": (day - timedelta(days=self.LOOKBACK_DAYS)).isoformat(),
            "end": (day + timedelta(days=1)).isoformat(),
        }
        samples = await asyncio.to_thread(self._fetch, base, target, kwargs)
        samples = [s for s in samples if s.as_of <= day]
        if not samples:
            raise RateSourceError(f"No data for {base}/{target} on {day}")
        return samples[-1]

    async def get_history(
        self, base: str, target: str, start: date, end: date
    ) -> list[RateSample]:
        kwargs = {
            "start": start.isoformat(),
            "end": (end + timedelta(days=1)).isoformat(),
        }
        return await asyncio.to_thread(self._fetch, base, target, kwargs)

    def _fetch(self, base: str, target: str, history_kwargs: dict) -> list[RateSample]:
        """Blocking yfinance call, run in a worker thread."""
        try:
            ticker = yf.Ticker(self.ticker_symbol(base, target))
            hist = ticker.history(**history_kwargs)
        except Exception as e:
            raise RateSourceError(f"Yahoo Finance request failed: {e}") from e

        if hist is None or hist.empty:
            return []

        samples = []
        for timestamp, close in zip(hist.index, hist["Close"].tolist()):
            try:
                rate = parse_rate(close)
            except RateSourceError:
                # Yahoo pads missing closes with NaN
                continue
            samples.append(RateSample(rate=rate, as_of=timestamp.date()))
        return samples
