"""
Slot store and repositories for persisted collections.

Each repository keeps an in-memory mirror of its slot, loaded once, and writes
the whole collection back on every mutation.
"""

import json
import logging
import sqlite3
from typing import Any, Optional

from currency_tracker.data.currencies import validate_pair
from currency_tracker.exceptions import PersistenceError
from .connection import Database
from .models import DailyAlertConfig, FavoritePair, LogEntry, RateDropAlertRule

logger = logging.getLogger(__name__)

FAVORITES_SLOT = "favorite_pairs"
ALERT_RULES_SLOT = "rate_drop_alerts"
DAILY_ALERT_SLOT = "daily_alert"
LOG_HISTORY_SLOT = "log_history"


class SlotStore:
    """Named-slot load/save of JSON records."""

    def __init__(self, db: Database):
        self.db = db

    def read(self, name: str) -> Optional[Any]:
        """
        Read a slot.

        Returns:
            Decoded payload, or None if the slot is missing

        Raises:
            PersistenceError: If the slot cannot be read or decoded
        """
        try:
            cursor = self.db.connection.cursor()
            cursor.execute("SELECT payload FROM slots WHERE name = ?", (name,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot read slot {name}: {e}") from e

        if row is None:
            return None
        try:
            return json.loads(row["payload"])
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt slot {name}: {e}") from e

    def write(self, name: str, value: Any) -> None:
        """
        Write a slot, replacing any previous payload.

        Raises:
            PersistenceError: If the slot cannot be written
        """
        try:
            payload = json.dumps(value)
            cursor = self.db.connection.cursor()
            cursor.execute(
                """
                INSERT INTO slots (name, payload)
                VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (name, payload),
            )
            self.db.connection.commit()
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write slot {name}: {e}") from e

    def load(self, name: str, default: Any = None) -> Any:
        """Load a slot, falling back to default when missing or unreadable."""
        try:
            value = self.read(name)
        except PersistenceError as e:
            logger.warning(f"Using default for slot {name}: {e}")
            return default
        return default if value is None else value

    def save(self, name: str, value: Any) -> bool:
        """Best-effort save. Returns False if the write was dropped."""
        try:
            self.write(name, value)
            return True
        except PersistenceError as e:
            logger.error(f"Dropped write to slot {name}: {e}")
            return False

    def clear(self, name: str) -> None:
        """Remove a slot."""
        try:
            cursor = self.db.connection.cursor()
            cursor.execute("DELETE FROM slots WHERE name = ?", (name,))
            self.db.connection.commit()
        except sqlite3.Error as e:
            logger.error(f"Could not clear slot {name}: {e}")


def _load_records(store: SlotStore, slot: str, record_type) -> list:
    """Decode a list slot, skipping malformed records."""
    raw = store.load(slot, default=[])
    if not isinstance(raw, list):
        logger.warning(f"Slot {slot} is not a list, using empty default")
        return []

    records = []
    for item in raw:
        if not isinstance(item, dict):
            logger.warning(f"Skipping non-record item in {slot}: {item!r}")
            continue
        try:
            records.append(record_type.from_dict(item))
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            logger.warning(f"Skipping malformed record in {slot}: {e}")
    return records


class FavoritesRepository:
    """Favorite currency pairs, unique by (base, target)."""

    def __init__(self, store: SlotStore):
        self.store = store
        self._pairs: list[FavoritePair] = _load_records(
            store, FAVORITES_SLOT, FavoritePair
        )

    def list_all(self) -> list[FavoritePair]:
        """List favorites in insertion order."""
        return list(self._pairs)

    def add(self, base: str, target: str) -> Optional[FavoritePair]:
        """
        Add a pair unless it is already a favorite.

        Returns:
            The new FavoritePair, or None if it was already present

        Raises:
            ValidationError: If the pair is invalid
        """
        base, target = validate_pair(base, target)
        pair = FavoritePair(base=base, target=target)
        if pair in self._pairs:
            return None
        self._pairs.append(pair)
        self._save()
        return pair

    def remove(self, base: str, target: str) -> bool:
        """Remove a pair. Returns True if it was present."""
        candidate = FavoritePair(base=base.upper(), target=target.upper())
        if candidate not in self._pairs:
            return False
        self._pairs.remove(candidate)
        self._save()
        return True

    def _save(self) -> None:
        self.store.save(FAVORITES_SLOT, [p.to_dict() for p in self._pairs])


class AlertRuleRepository:
    """Rate-drop alert rules, unique by (base, target, threshold)."""

    def __init__(self, store: SlotStore):
        self.store = store
        self._rules: list[RateDropAlertRule] = _load_records(
            store, ALERT_RULES_SLOT, RateDropAlertRule
        )

    def list_all(self) -> list[RateDropAlertRule]:
        return list(self._rules)

    def add(self, rule: RateDropAlertRule) -> bool:
        """Persist a rule unless a structurally equal one exists."""
        if rule in self._rules:
            return False
        self._rules.append(rule)
        self._save()
        return True

    def remove(self, rule: RateDropAlertRule) -> bool:
        """Remove a structurally equal rule. Returns True if one was removed."""
        if rule not in self._rules:
            return False
        self._rules.remove(rule)
        self._save()
        return True

    def _save(self) -> None:
        self.store.save(ALERT_RULES_SLOT, [r.to_dict() for r in self._rules])


class DailyAlertRepository:
    """Singleton daily alert configuration."""

    def __init__(self, store: SlotStore):
        self.store = store
        raw = store.load(DAILY_ALERT_SLOT, default={})
        try:
            self._config = DailyAlertConfig.from_dict(raw)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Invalid daily alert config, using default: {e}")
            self._config = DailyAlertConfig()

    def get(self) -> DailyAlertConfig:
        return DailyAlertConfig(**self._config.to_dict())

    def save(self, config: DailyAlertConfig) -> None:
        self._config = DailyAlertConfig(**config.to_dict())
        self.store.save(DAILY_ALERT_SLOT, self._config.to_dict())


class LogRepository:
    """Conversion log entries."""

    def __init__(self, store: SlotStore):
        self.store = store
        self._entries: list[LogEntry] = _load_records(
            store, LOG_HISTORY_SLOT, LogEntry
        )

    def list_all(self) -> list[LogEntry]:
        """List entries, newest first."""
        return sorted(self._entries, key=lambda e: e.timestamp, reverse=True)

    def add(self, entry: LogEntry) -> LogEntry:
        self._entries.append(entry)
        self.store.save(LOG_HISTORY_SLOT, [e.to_dict() for e in self._entries])
        return entry
