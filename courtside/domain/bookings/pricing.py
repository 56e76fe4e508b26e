"""
Price calculation for bookings, class enrollments and plan subscriptions.

Hourly resources bill a minimum of one hour: anything shorter is charged as a
full hour, anything longer is billed pro rata (2.5h = 2.5 x rate).
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ...exceptions import InvalidResource
from .availability import ResourceType, validate_window

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MINIMUM_BILLABLE_HOURS = Decimal("1")
SECONDS_PER_HOUR = Decimal("3600")


def to_money(value) -> Decimal:
    """Quantize any numeric value to cents, rounding half up"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def duration_hours(start: datetime, end: datetime) -> Decimal:
    return Decimal(int((end - start).total_seconds())) / SECONDS_PER_HOUR


def _require_price(value, label: str) -> Decimal:
    if value is None:
        raise InvalidResource(f"{label} has no price configured")
    amount = to_money(value)
    if amount < 0:
        raise InvalidResource(f"{label} has a negative price configured")
    return amount


def price_for_hourly(rate, start: datetime, end: datetime, label: str = "Resource") -> Decimal:
    """rate x max(hours, 1), rounded to cents"""
    hourly_rate = _require_price(rate, f"{label} hourly rate")
    validate_window(start, end)
    hours = max(duration_hours(start, end), MINIMUM_BILLABLE_HOURS)
    return to_money(hourly_rate * hours)


def price_for_class(gym_class) -> Decimal:
    """Flat unit price; classes without one are included in the plan and cost nothing"""
    if gym_class.unit_price is None:
        return ZERO
    return _require_price(gym_class.unit_price, f"Class '{gym_class.name}'")


def price_for_plan(plan) -> Decimal:
    """Flat price per billing cycle"""
    return _require_price(plan.price, f"Plan '{plan.name}'")


def price_for(resource_type: str, resource, start: datetime = None, end: datetime = None) -> Decimal:
    """Price a court, instructor session or class occurrence"""
    if resource_type == ResourceType.COURT:
        return price_for_hourly(resource.hourly_rate, start, end, label=f"Court '{resource.name}'")
    if resource_type == ResourceType.INSTRUCTOR:
        return price_for_hourly(resource.hourly_rate, start, end, label=f"Instructor '{resource.name}'")
    if resource_type == ResourceType.CLASS_OCCURRENCE:
        return price_for_class(resource.gym_class)
    raise InvalidResource(f"Unsupported resource type: {resource_type}")
