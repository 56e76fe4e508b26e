"""
Billing models: charges with installments and payment attempts, plan
subscriptions with their append-only event log, and received gateway webhooks.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .models_booking import ClassEnrollment, CourtBooking, PersonalSession, ReservationKind


class ChargeStatus:
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class InstallmentStatus:
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    APPROVED = "approved"
    REFUSED = "refused"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    EXPIRED = "expired"

    OPEN = (PENDING, PROCESSING)


class SubscriptionStatus:
    ACTIVE = "active"
    PENDING = "pending"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    CURRENT = (ACTIVE, PENDING)


class SubscriptionEventType:
    CREATED = "created"
    RENEWED = "renewed"
    CANCELLED = "cancelled"
    PAYMENT_OK = "payment_ok"
    PAYMENT_FAILED = "payment_failed"


class Charge(Base):
    """A billing obligation tied to exactly one reservation-like record"""

    __tablename__ = "charges"
    __table_args__ = (Index("ix_charges_reference", "reference_type", "reference_id"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Polymorphic reference, resolved through REFERENCE_MODELS
    reference_type = Column(String(30), nullable=False)
    reference_id = Column(Integer, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="BRL")
    status = Column(String(20), default=ChargeStatus.PENDING, nullable=False)
    description = Column(String(255), nullable=True)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    installments = relationship(
        "Installment",
        back_populates="charge",
        order_by="Installment.number",
        cascade="all, delete-orphan",
    )
    user = relationship("User")


class Installment(Base):
    __tablename__ = "installments"

    id = Column(Integer, primary_key=True, index=True)
    charge_id = Column(Integer, ForeignKey("charges.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)  # 1-based
    total_installments = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default=InstallmentStatus.PENDING, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    charge = relationship("Charge", back_populates="installments")
    payments = relationship("Payment", back_populates="installment", order_by="Payment.id")


class Payment(Base):
    """A single payment attempt against an installment"""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    installment_id = Column(Integer, ForeignKey("installments.id"), nullable=False, index=True)
    provider = Column(String(30), nullable=False)  # simulation, pix, card, boleto
    method = Column(String(30), nullable=True)
    external_transaction_id = Column(String(255), unique=True, nullable=True, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), default=PaymentStatus.PENDING, nullable=False)
    checkout_url = Column(String(500), nullable=True)
    error_message = Column(Text, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    installment = relationship("Installment", back_populates="payments")
    webhooks = relationship("PaymentWebhook", back_populates="payment")


class PaymentWebhook(Base):
    """Raw gateway callbacks; external_event_id makes ingestion idempotent"""

    __tablename__ = "payment_webhooks"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=True, index=True)
    provider = Column(String(30), nullable=True)
    event_type = Column(String(50), nullable=True)
    external_event_id = Column(String(255), unique=True, nullable=False)
    payload = Column(JSON, default=dict, nullable=True)
    processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    payment = relationship("Payment", back_populates="webhooks")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    status = Column(String(20), default=SubscriptionStatus.PENDING, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    next_due_date = Column(Date, nullable=True)
    auto_renew = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="subscriptions")
    plan = relationship("Plan")
    events = relationship(
        "SubscriptionEvent", back_populates="subscription", order_by="SubscriptionEvent.id"
    )

    kind = ReservationKind.SUBSCRIPTION


class SubscriptionEvent(Base):
    """Append-only subscription history"""

    __tablename__ = "subscription_events"

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    payload = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    subscription = relationship("Subscription", back_populates="events")


# Explicit lookup table for Charge.reference_type
REFERENCE_MODELS = {
    ReservationKind.COURT_BOOKING: CourtBooking,
    ReservationKind.PERSONAL_SESSION: PersonalSession,
    ReservationKind.CLASS_ENROLLMENT: ClassEnrollment,
    ReservationKind.SUBSCRIPTION: Subscription,
}
