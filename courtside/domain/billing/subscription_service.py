"""Subscription service - Business logic for plan subscriptions"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import (
    AlreadyCancelled,
    InvalidTransition,
    NotFound,
    ResourceInactive,
    SubscriptionConflict,
)
from ...locks import acquire_resource_lock
from ...models import ResourceStatus, User
from ...models_billing import Charge, Subscription, SubscriptionEventType, SubscriptionStatus
from ...models_booking import ReservationKind
from ...models_notification import NotificationType
from ...services.notification_service import build_link, send_notification
from ..bookings.pricing import price_for_plan
from .charge_service import ChargeService, InstallmentPlan, cycle_interval
from .repository import BillingRepository

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionResult:
    subscription: Subscription
    charge: Optional[Charge]


@dataclass
class SubscriptionCancellation:
    subscription: Subscription
    charge_cancelled: bool


def today() -> date:
    return datetime.utcnow().date()


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()
        self.charges = ChargeService(db)

    def current_for_user(self, user_id: int) -> Optional[Subscription]:
        """Get the user's active or pending subscription"""
        return self.repo.get_current_subscription(self.db, user_id)

    def subscribe(
        self, user_id: int, plan_id: int, auto_renew: bool = True, installments: int = 1
    ) -> SubscriptionResult:
        """
        Subscribe a user to a plan.

        The subscription starts 'pending' with a charge of one cycle's price due
        today, and becomes 'active' once that charge is paid. Free plans have no
        charge and are active immediately.
        """
        plan = self.repo.get_plan(self.db, plan_id)
        if not plan:
            raise NotFound("Plan not found")
        if plan.status != ResourceStatus.ACTIVE:
            raise ResourceInactive(f"Plan '{plan.name}' is not available")

        price = price_for_plan(plan)
        interval = cycle_interval(plan.billing_cycle)
        start = today()

        try:
            # Serializes subscribe calls per user so the one-current-subscription rule holds
            acquire_resource_lock(self.db, "user", user_id, User)
            current = self.repo.get_current_subscription(self.db, user_id)
            if current:
                raise SubscriptionConflict(
                    f"User already has a {current.status} subscription (#{current.id})"
                )

            subscription = Subscription(
                user_id=user_id,
                plan_id=plan.id,
                status=SubscriptionStatus.PENDING if price > 0 else SubscriptionStatus.ACTIVE,
                start_date=start,
                next_due_date=start + interval,
                auto_renew=auto_renew,
            )
            self.db.add(subscription)
            self.db.flush()

            self.repo.add_subscription_event(
                self.db,
                subscription,
                SubscriptionEventType.CREATED,
                {"plan_id": plan.id, "price": str(price), "billing_cycle": plan.billing_cycle},
            )
            charge = self.charges.create_charge(
                ReservationKind.SUBSCRIPTION,
                subscription.id,
                user_id,
                price,
                due_date=start,
                installment_plan=InstallmentPlan(count=installments),
                description=f"Subscription #{subscription.id} - {plan.name} ({plan.billing_cycle})",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Subscription {subscription.id} created: user={user_id} plan={plan.id} "
            f"status={subscription.status} price={price}"
        )
        message = f"You subscribed to '{plan.name}'."
        if charge:
            message += f" A charge of {charge.total_amount} is due on {charge.due_date:%Y-%m-%d}."
        send_notification(
            self.db,
            user_id,
            NotificationType.SUBSCRIPTION,
            "Subscription created",
            message,
            link=build_link("/plans"),
        )
        return SubscriptionResult(subscription=subscription, charge=charge)

    def cancel(self, subscription_id: int, actor_id: int) -> SubscriptionCancellation:
        """Cancel a subscription and any of its still-pending charges"""
        actor = self.db.query(User).filter(User.id == actor_id).first()
        if not actor:
            raise NotFound("User not found")

        try:
            subscription = self.repo.get_subscription(self.db, subscription_id, for_update=True)
            if not subscription or (subscription.user_id != actor.id and not actor.is_admin):
                raise NotFound("Subscription not found")
            if subscription.status == SubscriptionStatus.CANCELLED:
                raise AlreadyCancelled("Subscription is already cancelled")
            if subscription.status == SubscriptionStatus.EXPIRED:
                raise InvalidTransition("An expired subscription cannot be cancelled")

            subscription.status = SubscriptionStatus.CANCELLED
            subscription.end_date = today()
            subscription.auto_renew = False
            charge_cancelled = self.charges.cancel_pending_charges(
                ReservationKind.SUBSCRIPTION, subscription.id
            )
            self.repo.add_subscription_event(
                self.db,
                subscription,
                SubscriptionEventType.CANCELLED,
                {"actor_id": actor_id, "charge_cancelled": charge_cancelled},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Subscription {subscription_id} cancelled by user {actor_id} "
            f"(pending charge cancelled: {charge_cancelled})"
        )
        message = "Your subscription was cancelled."
        if charge_cancelled:
            message += " Pending charges were cancelled as well."
        send_notification(
            self.db,
            subscription.user_id,
            NotificationType.SUBSCRIPTION,
            "Subscription cancelled",
            message,
            link=build_link("/plans"),
        )
        return SubscriptionCancellation(subscription=subscription, charge_cancelled=charge_cancelled)

    def renew(self, subscription_id: int) -> SubscriptionResult:
        """Bill the next cycle of an active auto-renewing subscription"""
        try:
            subscription = self.repo.get_subscription(self.db, subscription_id, for_update=True)
            if not subscription:
                raise NotFound("Subscription not found")
            if subscription.status != SubscriptionStatus.ACTIVE:
                raise InvalidTransition(f"Only active subscriptions renew (status is '{subscription.status}')")
            if not subscription.auto_renew:
                raise InvalidTransition("Subscription is not set to renew automatically")

            plan = subscription.plan
            price = price_for_plan(plan)
            interval = cycle_interval(plan.billing_cycle)
            due = subscription.next_due_date or today()

            charge = self.charges.create_charge(
                ReservationKind.SUBSCRIPTION,
                subscription.id,
                subscription.user_id,
                price,
                due_date=due,
                description=f"Subscription #{subscription.id} - {plan.name} renewal {due:%Y-%m-%d}",
            )
            subscription.next_due_date = due + interval
            self.repo.add_subscription_event(
                self.db,
                subscription,
                SubscriptionEventType.RENEWED,
                {
                    "charge_id": charge.id if charge else None,
                    "due_date": due.isoformat(),
                    "next_due_date": subscription.next_due_date.isoformat(),
                },
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Subscription {subscription_id} renewed; next due {subscription.next_due_date}")
        if charge:
            send_notification(
                self.db,
                subscription.user_id,
                NotificationType.CHARGE,
                "Subscription renewed",
                f"A charge of {charge.total_amount} is due on {charge.due_date:%Y-%m-%d}.",
                link=build_link("/payments"),
            )
        return SubscriptionResult(subscription=subscription, charge=charge)
