"""Payment service - Checkout attempts and gateway webhook ingestion"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import InvalidTransition, NotFound
from ...models_billing import (
    ChargeStatus,
    InstallmentStatus,
    Payment,
    PaymentStatus,
    PaymentWebhook,
    SubscriptionEventType,
    SubscriptionStatus,
)
from ...models_booking import ReservationKind
from ...models_notification import NotificationType
from ...services.notification_service import build_link, send_notification
from .repository import BillingRepository
from .schemas import PaymentWebhookEvent

logger = logging.getLogger(__name__)

SIMULATED_CHECKOUT_PATH = "/payments/checkout"


class PaymentService:
    """Service for payment attempts and their status callbacks"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BillingRepository()

    def start_checkout(
        self, installment_id: int, user_id: int, provider: str = "simulation", method: Optional[str] = None
    ) -> Payment:
        """Create a pending payment attempt for an open installment"""
        installment = self.repo.get_installment(self.db, installment_id)
        if not installment or installment.charge.user_id != user_id:
            raise NotFound("Installment not found")

        charge = installment.charge
        if charge.status not in (ChargeStatus.PENDING, ChargeStatus.PARTIALLY_PAID):
            raise InvalidTransition(f"Charge is '{charge.status}' and cannot be paid")
        if installment.status != InstallmentStatus.PENDING:
            raise InvalidTransition(f"Installment is '{installment.status}' and cannot be paid")

        external_id = f"{provider[:3]}_{uuid.uuid4().hex}"
        payment = Payment(
            installment_id=installment.id,
            provider=provider,
            method=method,
            external_transaction_id=external_id,
            amount=installment.amount - installment.amount_paid,
            status=PaymentStatus.PENDING,
            checkout_url=build_link(f"{SIMULATED_CHECKOUT_PATH}/{external_id}"),
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)

        logger.info(
            f"Payment {payment.id} started for installment {installment.id} "
            f"(charge {charge.id}, {payment.amount}, provider={provider})"
        )
        return payment

    def apply_webhook(self, event: PaymentWebhookEvent) -> Payment:
        """
        Apply a gateway status callback.

        Exactly one payment is updated. An approved payment marks its installment
        paid; once every live installment is paid the charge becomes paid and, for
        subscription charges, the subscription is activated. Re-delivered events
        (same event_id) are acknowledged without being applied again.
        """
        existing = self.repo.get_webhook_by_event_id(self.db, event.event_id)
        if existing and existing.processed:
            logger.info(f"Webhook event {event.event_id} already processed - skipping")
            return existing.payment

        notifications = []
        try:
            payment = self.repo.get_payment_by_external_id(
                self.db, event.external_transaction_id, for_update=True
            )
            if not payment:
                raise NotFound(f"Payment {event.external_transaction_id} not found")

            if payment.status in PaymentStatus.OPEN:
                previous = payment.status
                payment.status = event.status
                logger.info(f"Payment {payment.id} status: {previous} -> {event.status}")

                if event.status == PaymentStatus.APPROVED:
                    payment.approved_at = datetime.utcnow()
                    notifications = self._settle(payment)
                elif event.status == PaymentStatus.REFUSED:
                    payment.error_message = event.message
                    notifications = self._record_refusal(payment)
            else:
                logger.warning(
                    f"Payment {payment.id} already final ('{payment.status}'), "
                    f"ignoring '{event.status}' from event {event.event_id}"
                )

            self.db.add(
                PaymentWebhook(
                    payment_id=payment.id,
                    provider=event.provider or payment.provider,
                    event_type=event.status,
                    external_event_id=event.event_id,
                    payload=event.payload,
                    processed=True,
                    processed_at=datetime.utcnow(),
                )
            )
            self.db.commit()
        except IntegrityError:
            # A concurrent delivery of the same event_id committed first
            self.db.rollback()
            existing = self.repo.get_webhook_by_event_id(self.db, event.event_id)
            if existing and existing.processed:
                logger.info(f"Webhook event {event.event_id} processed concurrently - skipping")
                return existing.payment
            raise
        except Exception:
            self.db.rollback()
            raise

        for user_id, notification_type, title, message in notifications:
            send_notification(self.db, user_id, notification_type, title, message, link=build_link("/payments"))
        return payment

    def _settle(self, payment: Payment) -> list:
        installment = payment.installment
        charge = installment.charge

        if charge.status in (ChargeStatus.CANCELLED, ChargeStatus.REFUNDED):
            logger.warning(
                f"Approved payment {payment.id} arrived for '{charge.status}' charge {charge.id}; "
                "left for manual reconciliation"
            )
            return []

        if installment.status == InstallmentStatus.PENDING:
            installment.amount_paid = min(installment.amount, installment.amount_paid + payment.amount)
            if installment.amount_paid >= installment.amount:
                installment.status = InstallmentStatus.PAID
                installment.paid_at = datetime.utcnow()

        paid = sum((i.amount_paid for i in charge.installments), Decimal("0.00"))
        charge.amount_paid = min(charge.total_amount, paid)

        live = [i for i in charge.installments if i.status != InstallmentStatus.CANCELLED]
        if live and all(i.status == InstallmentStatus.PAID for i in live):
            charge.status = ChargeStatus.PAID
        elif charge.amount_paid > 0:
            charge.status = ChargeStatus.PARTIALLY_PAID

        logger.info(
            f"Charge {charge.id}: paid {charge.amount_paid}/{charge.total_amount} -> '{charge.status}'"
        )

        notifications = [
            (
                charge.user_id,
                NotificationType.PAYMENT,
                "Payment received",
                f"We received {payment.amount} for installment {installment.number}/"
                f"{installment.total_installments} of '{charge.description or 'your charge'}'.",
            )
        ]

        if charge.status == ChargeStatus.PAID and charge.reference_type == ReservationKind.SUBSCRIPTION:
            subscription = self.repo.resolve_reference(self.db, charge)
            if subscription:
                self.repo.add_subscription_event(
                    self.db,
                    subscription,
                    SubscriptionEventType.PAYMENT_OK,
                    {"charge_id": charge.id, "payment_id": payment.id},
                )
                if subscription.status == SubscriptionStatus.PENDING:
                    subscription.status = SubscriptionStatus.ACTIVE
                    logger.info(f"Subscription {subscription.id} activated by charge {charge.id}")
                    notifications.append(
                        (
                            subscription.user_id,
                            NotificationType.SUBSCRIPTION,
                            "Subscription active",
                            f"Your '{subscription.plan.name}' subscription is now active.",
                        )
                    )
        return notifications

    def _record_refusal(self, payment: Payment) -> list:
        charge = payment.installment.charge
        if charge.reference_type == ReservationKind.SUBSCRIPTION:
            subscription = self.repo.resolve_reference(self.db, charge)
            if subscription:
                self.repo.add_subscription_event(
                    self.db,
                    subscription,
                    SubscriptionEventType.PAYMENT_FAILED,
                    {"charge_id": charge.id, "payment_id": payment.id, "message": payment.error_message},
                )
        return [
            (
                charge.user_id,
                NotificationType.PAYMENT,
                "Payment refused",
                f"Your payment of {payment.amount} was refused. Please try another payment method.",
            )
        ]
