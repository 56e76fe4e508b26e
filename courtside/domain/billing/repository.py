"""Billing repository - Database operations for charges, payments and subscriptions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Plan
from ...models_billing import (
    Charge,
    Installment,
    Payment,
    PaymentWebhook,
    REFERENCE_MODELS,
    Subscription,
    SubscriptionEvent,
    SubscriptionStatus,
)


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_charge(db: Session, charge_id: int) -> Optional[Charge]:
        """Get charge by ID"""
        return db.query(Charge).filter(Charge.id == charge_id).first()

    @staticmethod
    def get_charges_for_reference(
        db: Session, reference_type: str, reference_id: int, for_update: bool = False
    ) -> list[Charge]:
        """Get every charge pointing at a reservation-like record, oldest first"""
        query = db.query(Charge).filter(
            Charge.reference_type == reference_type,
            Charge.reference_id == reference_id,
        )
        if for_update:
            query = query.with_for_update()
        return query.order_by(Charge.id.asc()).all()

    @staticmethod
    def resolve_reference(db: Session, charge: Charge):
        """Load the record a charge points at through the explicit lookup table"""
        model = REFERENCE_MODELS[charge.reference_type]
        return db.query(model).filter(model.id == charge.reference_id).first()

    @staticmethod
    def get_plan(db: Session, plan_id: int) -> Optional[Plan]:
        return db.query(Plan).filter(Plan.id == plan_id).first()

    @staticmethod
    def get_installment(db: Session, installment_id: int) -> Optional[Installment]:
        return db.query(Installment).filter(Installment.id == installment_id).first()

    @staticmethod
    def get_payment_by_external_id(
        db: Session, external_transaction_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        query = db.query(Payment).filter(Payment.external_transaction_id == external_transaction_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_webhook_by_event_id(db: Session, external_event_id: str) -> Optional[PaymentWebhook]:
        return (
            db.query(PaymentWebhook)
            .filter(PaymentWebhook.external_event_id == external_event_id)
            .first()
        )

    @staticmethod
    def get_subscription(
        db: Session, subscription_id: int, for_update: bool = False
    ) -> Optional[Subscription]:
        query = db.query(Subscription).filter(Subscription.id == subscription_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def get_current_subscription(db: Session, user_id: int) -> Optional[Subscription]:
        """Get the user's active or pending subscription, if any"""
        return (
            db.query(Subscription)
            .filter(
                Subscription.user_id == user_id,
                Subscription.status.in_(SubscriptionStatus.CURRENT),
            )
            .order_by(Subscription.id.desc())
            .first()
        )

    @staticmethod
    def add_subscription_event(
        db: Session, subscription: Subscription, event_type: str, payload: Optional[dict] = None
    ) -> SubscriptionEvent:
        """Append an event to a subscription's history (no commit)"""
        event = SubscriptionEvent(
            subscription_id=subscription.id,
            type=event_type,
            payload=payload or {},
        )
        db.add(event)
        return event
