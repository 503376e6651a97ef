"""
Concurrent latest/previous rate aggregation for favorite pairs.

Each refresh runs one FetchGeneration. Pairs are fetched in independent tasks;
within a pair the previous-day request is issued only once the latest response
has told us its date. Every settled request completes one slot of the
generation, and a failed latest request completes two because its previous-day
request is never issued. The generation settles when all 2N slots are done.

All generation bookkeeping runs on the event loop thread without awaiting
in between, so completion handlers never interleave mid-update.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Sequence

from currency_tracker.database.models import FavoritePair
from currency_tracker.exceptions import RateSourceError
from .fetcher import RateSample, RateSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairRates:
    """Latest and previous-day rate for one pair."""

    latest: RateSample
    previous: RateSample

    @property
    def change(self) -> Decimal:
        return self.latest.rate - self.previous.rate

    @property
    def direction(self) -> str:
        """One of "up", "down" or "flat"."""
        if self.change > 0:
            return "up"
        if self.change < 0:
            return "down"
        return "flat"


class FetchGeneration:
    """Bookkeeping for one aggregation pass."""

    def __init__(self, tag: int, pair_count: int):
        self.tag = tag
        self.expected_count = 2 * pair_count
        self.completed_count = 0
        self.latest_by_pair: dict[str, RateSample] = {}
        self.previous_by_pair: dict[str, RateSample] = {}
        self._settled: asyncio.Future = asyncio.get_running_loop().create_future()
        if self.expected_count == 0:
            self._settled.set_result({})

    @property
    def is_settled(self) -> bool:
        return self.completed_count == self.expected_count

    def complete(self, slots: int = 1) -> None:
        """
        Mark settled requests and resolve the generation when all are done.

        Raises:
            RuntimeError: If more slots complete than were expected
        """
        if slots == 0:
            return
        if self.completed_count + slots > self.expected_count:
            raise RuntimeError(
                f"Generation {self.tag} over-completed: "
                f"{self.completed_count} + {slots} > {self.expected_count}"
            )
        self.completed_count += slots
        if self.is_settled:
            self._settled.set_result(self.results())

    def results(self) -> dict[str, PairRates]:
        """Pairs that have both a latest and a previous sample."""
        return {
            key: PairRates(latest=latest, previous=self.previous_by_pair[key])
            for key, latest in self.latest_by_pair.items()
            if key in self.previous_by_pair
        }

    async def wait(self) -> dict[str, PairRates]:
        """Wait until every request of this generation has settled."""
        return await asyncio.shield(self._settled)


class FavoritesAggregator:
    """Fetches latest and previous-day rates for all favorites."""

    def __init__(self, source: RateSource):
        self.source = source
        self._tag = 0
        self._current: Optional[FetchGeneration] = None
        self._view: dict[str, PairRates] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def current_tag(self) -> int:
        return self._tag

    @property
    def current_generation(self) -> Optional[FetchGeneration]:
        return self._current

    @property
    def is_loading(self) -> bool:
        return self._current is not None and not self._current.is_settled

    @property
    def view(self) -> dict[str, PairRates]:
        """Result of the most recent generation that settled while current."""
        return dict(self._view)

    async def refresh(self, favorites: Sequence[FavoritePair]) -> dict[str, PairRates]:
        """
        Fetch rates for all favorites and wait for every request to settle.

        Args:
            favorites: Pairs to fetch, without duplicates

        Returns:
            Mapping of pair key to PairRates; pairs missing either sample are
            left out
        """
        self._tag += 1
        generation = FetchGeneration(self._tag, len(favorites))
        self._current = generation
        logger.info(f"Refreshing {len(favorites)} favorites (generation {generation.tag})")

        for pair in favorites:
            task = asyncio.create_task(self._fetch_pair(generation, pair))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        results = await generation.wait()

        if generation.tag == self._tag:
            self._view = results
        else:
            logger.info(
                f"Generation {generation.tag} superseded by {self._tag}, view not updated"
            )
        return results

    async def _fetch_pair(self, generation: FetchGeneration, pair: FavoritePair) -> None:
        remaining = 2
        try:
            latest = await self.source.get_latest(pair.base, pair.target)
            self._record(generation, generation.latest_by_pair, pair.key, latest)
            remaining -= 1
            generation.complete()

            previous_day = latest.as_of - timedelta(days=1)
            previous = await self.source.get_rate_on(pair.base, pair.target, previous_day)
            self._record(generation, generation.previous_by_pair, pair.key, previous)
        except RateSourceError as e:
            logger.warning(f"Rate fetch failed for {pair.key}: {e}")
        except Exception as e:
            logger.error(f"Error fetching {pair.key}: {e}")
        finally:
            generation.complete(remaining)

    def _record(
        self,
        generation: FetchGeneration,
        samples: dict[str, RateSample],
        key: str,
        sample: RateSample,
    ) -> None:
        if generation.tag != self._tag:
            logger.debug(f"Discarding stale sample for {key} (generation {generation.tag})")
            return
        samples[key] = sample
