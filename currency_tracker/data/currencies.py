"""
Supported currencies and input validation.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from currency_tracker.exceptions import ValidationError

SUPPORTED_CURRENCIES = [
    "USD",
    "EUR",
    "JPY",
    "GBP",
    "AUD",
    "CAD",
    "CHF",
    "CNY",
    "KRW",
    "ZAR",
]


def normalize_code(code: str) -> str:
    """
    Normalize and validate a currency code.

    Args:
        code: Currency code, any case (e.g., "usd")

    Returns:
        Uppercase ISO code

    Raises:
        ValidationError: If the code is not in the allow-list
    """
    normalized = (code or "").strip().upper()
    if normalized not in SUPPORTED_CURRENCIES:
        raise ValidationError(f"Unsupported currency: {code!r}")
    return normalized


def validate_pair(base: str, target: str) -> tuple[str, str]:
    """Validate a base/target pair and return the normalized codes."""
    base = normalize_code(base)
    target = normalize_code(target)
    if base == target:
        raise ValidationError(f"Base and target must differ: {base}")
    return base, target


def parse_positive_decimal(value: Any, field_name: str = "value") -> Decimal:
    """
    Parse a strictly positive, finite decimal.

    Args:
        value: String, int, float or Decimal input
        field_name: Name used in error messages

    Returns:
        Parsed Decimal

    Raises:
        ValidationError: If the value is not numeric, not finite or not > 0
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number")
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}")

    if not parsed.is_finite():
        raise ValidationError(f"{field_name} must be finite, got {value!r}")
    if parsed <= 0:
        raise ValidationError(f"{field_name} must be positive, got {value!r}")
    return parsed


def parse_threshold(value: Any) -> Decimal:
    """Parse a rate-drop threshold."""
    return parse_positive_decimal(value, field_name="threshold")
