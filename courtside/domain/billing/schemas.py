"""Billing domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...config import MAX_INSTALLMENTS
from ...shared.validators import validate_installments


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    installment_id: int
    provider: str
    method: Optional[str] = None
    external_transaction_id: Optional[str] = None
    amount: Decimal
    status: str
    checkout_url: Optional[str] = None
    error_message: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class InstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    number: int
    total_installments: int
    amount: Decimal
    amount_paid: Decimal
    status: str
    due_date: date
    paid_at: Optional[datetime] = None
    payments: list[PaymentResponse] = []


class ChargeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    reference_type: str
    reference_id: int
    total_amount: Decimal
    amount_paid: Decimal
    currency: str
    status: str
    description: Optional[str] = None
    due_date: date
    installments: list[InstallmentResponse] = []
    created_at: Optional[datetime] = None


class SubscriptionCreate(BaseModel):
    """Schema for subscribing to a plan"""

    plan_id: int
    auto_renew: bool = True
    installments: int = 1

    @field_validator("installments")
    @classmethod
    def check_installments(cls, v: int) -> int:
        return validate_installments(v, MAX_INSTALLMENTS)


class SubscriptionEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    payload: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    plan_id: int
    status: str
    start_date: date
    end_date: Optional[date] = None
    next_due_date: Optional[date] = None
    auto_renew: bool
    events: list[SubscriptionEventResponse] = []


class SubscribeResponse(BaseModel):
    subscription: SubscriptionResponse
    charge: Optional[ChargeResponse] = None


class SubscriptionCancelResponse(BaseModel):
    subscription: SubscriptionResponse
    charge_cancelled: bool


class CheckoutRequest(BaseModel):
    """Schema for starting a payment on an installment"""

    provider: Literal["simulation", "pix", "card", "boleto"] = "simulation"
    method: Optional[str] = None


class PaymentWebhookEvent(BaseModel):
    """Gateway callback: one event updates exactly one payment"""

    event_id: str
    external_transaction_id: str
    status: Literal["processing", "approved", "refused", "cancelled", "expired"]
    provider: Optional[str] = None
    message: Optional[str] = None
    payload: dict[str, Any] = {}
