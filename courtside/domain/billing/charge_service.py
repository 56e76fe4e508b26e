"""Charge service - Creates charges with installment schedules and cascades cancellations"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...config import DEFAULT_CURRENCY, MAX_INSTALLMENTS
from ...exceptions import InvalidAmount, InvalidResource, NotFound
from ...models import User
from ...models_billing import (
    Charge,
    ChargeStatus,
    Installment,
    InstallmentStatus,
    PaymentStatus,
    REFERENCE_MODELS,
)
from ..bookings.pricing import to_money
from .repository import BillingRepository

logger = logging.getLogger(__name__)

BILLING_CYCLES = {
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "yearly": relativedelta(years=1),
}


def cycle_interval(billing_cycle: Optional[str]) -> relativedelta:
    """Interval for a plan billing cycle; unknown cycles are rejected"""
    try:
        return BILLING_CYCLES[billing_cycle or "monthly"]
    except KeyError:
        raise InvalidResource(f"Unknown billing cycle: {billing_cycle}") from None


@dataclass
class InstallmentPlan:
    """Split a charge into `count` installments, one `interval` apart"""

    count: int = 1
    interval: relativedelta = field(default_factory=lambda: relativedelta(months=1))


def split_amount(total: Decimal, count: int) -> list[Decimal]:
    """
    Split an amount into `count` parts that sum exactly to the total.

    Works in whole cents; the leftover cents go to the first installment,
    so 100.00 / 3 -> [33.34, 33.33, 33.33].
    """
    if count < 1:
        raise InvalidAmount("Installment count must be at least 1")
    cents = int(to_money(total) * 100)
    base, remainder = divmod(cents, count)
    parts = [base + remainder] + [base] * (count - 1)
    return [Decimal(part) / 100 for part in parts]


class ChargeService:
    """Service layer for charge creation and cancellation"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def create_charge(
        self,
        reference_type: str,
        reference_id: int,
        user_id: int,
        amount,
        due_date: date,
        installment_plan: Optional[InstallmentPlan] = None,
        description: Optional[str] = None,
    ) -> Optional[Charge]:
        """
        Stage a pending charge (and its installments) for a reservation-like record.

        The caller owns the transaction: nothing is committed here.

        Returns:
            The charge, or None when the amount is zero
        """
        if reference_type not in REFERENCE_MODELS:
            raise InvalidResource(f"Unknown charge reference type: {reference_type}")

        total = to_money(amount)
        if total < 0:
            raise InvalidAmount(f"Charge amount cannot be negative ({total})")
        if total == 0:
            logger.info(f"No charge created for {reference_type} {reference_id}: amount is zero")
            return None

        plan = installment_plan or InstallmentPlan()
        if plan.count < 1 or plan.count > MAX_INSTALLMENTS:
            raise InvalidAmount(f"Installments must be between 1 and {MAX_INSTALLMENTS}")

        charge = Charge(
            user_id=user_id,
            reference_type=reference_type,
            reference_id=reference_id,
            total_amount=total,
            amount_paid=Decimal("0.00"),
            currency=DEFAULT_CURRENCY,
            status=ChargeStatus.PENDING,
            description=description,
            due_date=due_date,
        )
        for index, part in enumerate(split_amount(total, plan.count)):
            charge.installments.append(
                Installment(
                    number=index + 1,
                    total_installments=plan.count,
                    amount=part,
                    amount_paid=Decimal("0.00"),
                    status=InstallmentStatus.PENDING,
                    due_date=due_date + plan.interval * index,
                )
            )

        self.db.add(charge)
        self.db.flush()
        logger.info(
            f"Charge {charge.id} staged for {reference_type} {reference_id}: "
            f"{total} {charge.currency} in {plan.count} installment(s)"
        )
        return charge

    def cancel_pending_charges(self, reference_type: str, reference_id: int) -> bool:
        """
        Cancel every still-pending charge of a record, with its open installments
        and payment attempts. Paid or partially paid charges are left untouched.

        The caller owns the transaction. Returns True when a charge was cancelled.
        """
        cancelled = False
        for charge in self.repo.get_charges_for_reference(
            self.db, reference_type, reference_id, for_update=True
        ):
            if charge.status != ChargeStatus.PENDING:
                logger.info(
                    f"Charge {charge.id} left as '{charge.status}' while cancelling "
                    f"{reference_type} {reference_id}"
                )
                continue

            charge.status = ChargeStatus.CANCELLED
            for installment in charge.installments:
                if installment.status == InstallmentStatus.PENDING:
                    installment.status = InstallmentStatus.CANCELLED
                for payment in installment.payments:
                    if payment.status in PaymentStatus.OPEN:
                        payment.status = PaymentStatus.CANCELLED
            cancelled = True
            logger.info(f"Charge {charge.id} cancelled with {reference_type} {reference_id}")

        return cancelled

    def get_charge(self, charge_id: int, actor: User) -> Charge:
        """Get a charge visible to the actor (owner or admin)"""
        charge = self.repo.get_charge(self.db, charge_id)
        if not charge or (charge.user_id != actor.id and not actor.is_admin):
            raise NotFound("Charge not found")
        return charge
