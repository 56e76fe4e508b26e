from decimal import Decimal
from types import SimpleNamespace

import pytest

from courtside.domain.bookings.availability import ResourceType
from courtside.domain.bookings.pricing import price_for, price_for_class, price_for_hourly, price_for_plan, to_money
from courtside.exceptions import InvalidResource, InvalidWindow

from .conftest import at


@pytest.mark.parametrize(
    "rate, start, end, expected",
    [
        ("60.00", at(0), at(2), "120.00"),
        ("80.00", at(0), at(2, 30), "200.00"),
        ("80.00", at(0), at(0, 30), "80.00"),  # minimum one hour
        ("80.00", at(0), at(0, 1), "80.00"),
        ("50.00", at(0), at(1, 20), "66.67"),  # 1h20 = 1.333.. h, rounded half up
        ("0.00", at(0), at(1), "0.00"),
    ],
)
def test_hourly_price(rate, start, end, expected):
    assert price_for_hourly(Decimal(rate), start, end) == Decimal(expected)


def test_hourly_price_rejects_missing_or_negative_rate():
    with pytest.raises(InvalidResource):
        price_for_hourly(None, at(0), at(1))
    with pytest.raises(InvalidResource):
        price_for_hourly(Decimal("-1.00"), at(0), at(1))


def test_hourly_price_rejects_bad_window():
    with pytest.raises(InvalidWindow):
        price_for_hourly(Decimal("60.00"), at(2), at(1))


def test_class_price_is_flat_and_null_means_included():
    assert price_for_class(SimpleNamespace(name="Yoga", unit_price=Decimal("35"))) == Decimal("35.00")
    assert price_for_class(SimpleNamespace(name="Yoga", unit_price=None)) == Decimal("0.00")


def test_plan_price():
    plan = SimpleNamespace(name="Monthly", price=Decimal("99.90"))
    assert price_for_plan(plan) == Decimal("99.90")

    with pytest.raises(InvalidResource):
        price_for_plan(SimpleNamespace(name="Broken", price=None))


def test_price_for_dispatches_by_resource_type(court, instructor, make_occurrence):
    assert price_for(ResourceType.COURT, court, at(0), at(1)) == Decimal("80.00")
    assert price_for(ResourceType.INSTRUCTOR, instructor, at(0), at(1, 30)) == Decimal("180.00")
    assert price_for(ResourceType.CLASS_OCCURRENCE, make_occurrence()) == Decimal("35.00")

    with pytest.raises(InvalidResource):
        price_for("locker", court, at(0), at(1))


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(3) == Decimal("3.00")
