"""
Pytest configuration and shared fixtures.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from currency_tracker.data.fetcher import RateSample, RateSource
from currency_tracker.database.connection import Database
from currency_tracker.database.repository import SlotStore
from currency_tracker.exceptions import RateSourceError
from currency_tracker.notifiers.scheduler import NotificationSink


def sample(rate: str, day: str) -> RateSample:
    """Shorthand for building a RateSample."""
    return RateSample(rate=Decimal(rate), as_of=date.fromisoformat(day))


class FakeRateSource(RateSource):
    """Scriptable rate source.

    Responses are looked up when the request is issued. A request can be held
    until released with `hold()`; each hold applies to the next matching
    request only.
    """

    def __init__(self):
        self.latest: dict[tuple[str, str], object] = {}
        self.previous: dict[tuple[str, str], object] = {}
        self.history: dict[tuple[str, str], list[RateSample]] = {}
        self.calls: list[tuple] = []
        self._gates: dict[tuple[str, str, str], asyncio.Event] = {}

    def hold(self, kind: str, base: str, target: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[(kind, base, target)] = gate
        return gate

    async def _respond(self, kind: str, table: dict, base: str, target: str):
        value = table.get((base, target))
        gate = self._gates.pop((kind, base, target), None)
        if gate is not None:
            await gate.wait()
        if value is None:
            raise RateSourceError(f"No {kind} rate for {base}/{target}")
        if isinstance(value, Exception):
            raise value
        return value

    async def get_latest(self, base, target):
        self.calls.append(("latest", base, target))
        return await self._respond("latest", self.latest, base, target)

    async def get_rate_on(self, base, target, day):
        self.calls.append(("previous", base, target, day))
        return await self._respond("previous", self.previous, base, target)

    async def get_history(self, base, target, start, end):
        self.calls.append(("history", base, target, start, end))
        return [s for s in self.history.get((base, target), []) if start <= s.as_of <= end]


class RecordingSink(NotificationSink):
    """Notification sink that records calls.

    Recurring registrations stack unless cancelled, so duplicate
    registrations are visible to tests.
    """

    def __init__(self):
        self.once: list[tuple[str, str, str, float]] = []
        self.recurring: list[tuple[str, str, str, int, int]] = []
        self.cancelled: list[str] = []

    def schedule_once(self, notification_id, title, body, delay):
        self.once.append((notification_id, title, body, delay))

    def schedule_recurring(self, notification_id, title, body, hour, minute):
        self.recurring.append((notification_id, title, body, hour, minute))

    def cancel(self, notification_id):
        self.cancelled.append(notification_id)
        before = len(self.recurring)
        self.recurring = [r for r in self.recurring if r[0] != notification_id]
        return len(self.recurring) != before

    def pending_ids(self):
        return sorted({r[0] for r in self.recurring} | {o[0] for o in self.once})

    def active(self, notification_id: str) -> list[tuple]:
        return [r for r in self.recurring if r[0] == notification_id]


async def wait_for_calls(source: FakeRateSource, count: int) -> None:
    """Yield to the loop until the source has seen `count` requests."""
    for _ in range(1000):
        if len(source.calls) >= count:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"Expected {count} calls, saw {len(source.calls)}")


@pytest.fixture
def source():
    return FakeRateSource()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def db():
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def store(db):
    return SlotStore(db)


@pytest.fixture
def sample_discord_webhook_url():
    """Sample Discord webhook URL for testing."""
    return "https://discord.com/api/webhooks/123456789/abcdefghijklmnop"


@pytest.fixture
def sample_smtp_config():
    """Sample SMTP configuration for testing."""
    return {
        "host": "smtp.gmail.com",
        "port": 587,
        "user": "test@gmail.com",
        "password": "test-app-password",
        "from_address": "alerts@example.com",
        "to_addresses": ["recipient@example.com"],
    }
