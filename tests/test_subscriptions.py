from decimal import Decimal

import pytest
from dateutil.relativedelta import relativedelta

from courtside.domain.billing.subscription_service import SubscriptionService, today
from courtside.exceptions import AlreadyCancelled, InvalidTransition, NotFound, ResourceInactive, SubscriptionConflict
from courtside.models_billing import Charge, ChargeStatus, SubscriptionEventType, SubscriptionStatus
from courtside.models_booking import ReservationKind


@pytest.fixture
def service(db):
    return SubscriptionService(db)


def test_subscribe_then_cancel_before_payment(db, service, make_plan, student):
    plan = make_plan(price=Decimal("99.90"))

    result = service.subscribe(student.id, plan.id)

    subscription = result.subscription
    assert subscription.status == SubscriptionStatus.PENDING
    assert subscription.start_date == today()
    assert subscription.next_due_date == today() + relativedelta(months=1)
    assert result.charge.total_amount == Decimal("99.90")
    assert result.charge.due_date == today()
    assert result.charge.reference_type == ReservationKind.SUBSCRIPTION
    assert result.charge.reference_id == subscription.id

    cancellation = service.cancel(subscription.id, student.id)

    assert cancellation.charge_cancelled is True
    assert cancellation.subscription.status == SubscriptionStatus.CANCELLED
    assert cancellation.subscription.end_date == today()
    db.refresh(result.charge)
    assert result.charge.status == ChargeStatus.CANCELLED
    assert [e.type for e in cancellation.subscription.events] == [
        SubscriptionEventType.CREATED,
        SubscriptionEventType.CANCELLED,
    ]


def test_one_current_subscription_per_user(service, make_plan, student):
    plan = make_plan()
    service.subscribe(student.id, plan.id)

    with pytest.raises(SubscriptionConflict):
        service.subscribe(student.id, plan.id)


def test_resubscribe_after_cancel(service, make_plan, student):
    plan = make_plan()
    first = service.subscribe(student.id, plan.id)
    service.cancel(first.subscription.id, student.id)

    second = service.subscribe(student.id, plan.id)

    assert second.subscription.id != first.subscription.id
    assert service.current_for_user(student.id).id == second.subscription.id


def test_free_plan_is_active_immediately(db, service, make_plan, student):
    plan = make_plan(price=Decimal("0.00"), name="Free trial")

    result = service.subscribe(student.id, plan.id)

    assert result.charge is None
    assert result.subscription.status == SubscriptionStatus.ACTIVE
    assert db.query(Charge).count() == 0


def test_subscription_charge_in_installments(service, make_plan, student):
    plan = make_plan(price=Decimal("600.00"), billing_cycle="yearly", name="Yearly")

    result = service.subscribe(student.id, plan.id, installments=3)

    assert [i.amount for i in result.charge.installments] == [Decimal("200.00")] * 3
    assert result.subscription.next_due_date == today() + relativedelta(years=1)


def test_subscribe_to_missing_or_inactive_plan(db, service, make_plan, student):
    with pytest.raises(NotFound):
        service.subscribe(student.id, 999)

    plan = make_plan()
    plan.status = "inactive"
    db.commit()
    with pytest.raises(ResourceInactive):
        service.subscribe(student.id, plan.id)


def test_cancel_rules(service, make_plan, student, other_student):
    result = service.subscribe(student.id, make_plan().id)
    subscription_id = result.subscription.id

    with pytest.raises(NotFound):
        service.cancel(subscription_id, other_student.id)

    service.cancel(subscription_id, student.id)
    with pytest.raises(AlreadyCancelled):
        service.cancel(subscription_id, student.id)


def test_renew_bills_next_cycle(db, service, make_plan, student):
    plan = make_plan(price=Decimal("0.00"))
    subscription = service.subscribe(student.id, plan.id).subscription
    plan.price = Decimal("150.00")
    db.commit()
    due = subscription.next_due_date

    result = service.renew(subscription.id)

    assert result.charge.total_amount == Decimal("150.00")
    assert result.charge.due_date == due
    assert result.subscription.next_due_date == due + relativedelta(months=1)
    assert result.subscription.events[-1].type == SubscriptionEventType.RENEWED


def test_renew_requires_active_auto_renewing_subscription(db, service, make_plan, student, other_student):
    pending = service.subscribe(student.id, make_plan().id).subscription
    with pytest.raises(InvalidTransition):
        service.renew(pending.id)

    manual = service.subscribe(other_student.id, make_plan(price=Decimal("0.00")).id, auto_renew=False)
    with pytest.raises(InvalidTransition):
        service.renew(manual.subscription.id)

    with pytest.raises(NotFound):
        service.renew(999)
