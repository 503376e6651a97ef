"""
Data models for the currency tracker.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from currency_tracker.data.currencies import parse_threshold, validate_pair
from currency_tracker.exceptions import ValidationError


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class FavoritePair:
    """Currency pair tracked on the favorites screen."""

    base: str
    target: str
    id: str = field(default_factory=_new_id, compare=False)

    @property
    def key(self) -> str:
        """Pair key used in aggregated views (e.g., "USD_JPY")."""
        return f"{self.base}_{self.target}"

    def __hash__(self) -> int:
        return hash((self.base, self.target))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "base": self.base, "target": self.target}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FavoritePair":
        return cls(
            id=data.get("id") or _new_id(),
            base=data["base"],
            target=data["target"],
        )


@dataclass
class RateDropAlertRule:
    """Fire a notification when base/target falls below threshold."""

    base: str
    target: str
    threshold: Decimal
    id: str = field(default_factory=_new_id, compare=False)

    def __hash__(self) -> int:
        return hash((self.base, self.target, self.threshold))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "base": self.base,
            "target": self.target,
            "threshold": str(self.threshold),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RateDropAlertRule":
        """
        Rebuild a stored rule.

        Raises:
            ValidationError: If the stored pair or threshold is no longer valid
        """
        base, target = validate_pair(data["base"], data["target"])
        return cls(
            id=data.get("id") or _new_id(),
            base=base,
            target=target,
            threshold=parse_threshold(data["threshold"]),
        )


@dataclass
class DailyAlertConfig:
    """Recurring daily rate notification settings."""

    base: str = "USD"
    target: str = "JPY"
    hour: int = 8
    minute: int = 0
    enabled: bool = False

    def validate(self) -> None:
        """Check the time fields are in range."""
        if not 0 <= self.hour <= 23:
            raise ValidationError(f"Hour must be 0-23, got {self.hour}")
        if not 0 <= self.minute <= 59:
            raise ValidationError(f"Minute must be 0-59, got {self.minute}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "base": self.base,
            "target": self.target,
            "hour": self.hour,
            "minute": self.minute,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DailyAlertConfig":
        defaults = cls()
        enabled = data.get("enabled", defaults.enabled)
        return cls(
            base=data.get("base", defaults.base),
            target=data.get("target", defaults.target),
            hour=int(data.get("hour", defaults.hour)),
            minute=int(data.get("minute", defaults.minute)),
            # Only a real boolean counts; "false" would be truthy
            enabled=enabled if isinstance(enabled, bool) else defaults.enabled,
        )


@dataclass
class LogEntry:
    """Record of a currency exchange made by the user."""

    timestamp: datetime
    base: str
    target: str
    amount: Decimal
    converted_amount: Decimal
    rate: Decimal
    note: str = ""
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "base": self.base,
            "target": self.target,
            "amount": str(self.amount),
            "converted_amount": str(self.converted_amount),
            "rate": str(self.rate),
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        return cls(
            id=data.get("id") or _new_id(),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            base=data["base"],
            target=data["target"],
            amount=Decimal(str(data["amount"])),
            converted_amount=Decimal(str(data["converted_amount"])),
            rate=Decimal(str(data["rate"])),
            note=data.get("note", ""),
        )
