"""Shared validation utilities"""

from datetime import datetime, timezone
from typing import Optional


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC, the format stored in the database.

    Naive inputs are assumed to already be UTC.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_window(start: datetime, end: datetime) -> str:
    """Human-readable time window, e.g. '2026-05-01 10:00 to 2026-05-01 12:00'"""
    return f"{start:%Y-%m-%d %H:%M} to {end:%Y-%m-%d %H:%M}"


def validate_installments(value: int, maximum: int) -> int:
    """
    Validate an installment count.

    Raises:
        ValueError: If the count is outside 1..maximum
    """
    if value < 1 or value > maximum:
        raise ValueError(f"installments must be between 1 and {maximum}")
    return value
