"""Billing router - FastAPI endpoints for subscriptions, charges and payments"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...config import PAYMENT_WEBHOOK_SECRET
from ...database import get_db
from ...models import User
from ...webhook_security import verify_payment_webhook
from .charge_service import ChargeService
from .payment_service import PaymentService
from .schemas import (
    ChargeResponse,
    CheckoutRequest,
    PaymentResponse,
    PaymentWebhookEvent,
    SubscribeResponse,
    SubscriptionCancelResponse,
    SubscriptionCreate,
    SubscriptionResponse,
)
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

subscriptions_router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])
charges_router = APIRouter(prefix="/charges", tags=["Charges"])
payments_router = APIRouter(prefix="/payments", tags=["Payments"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


def get_charge_service(db: Session = Depends(get_db)) -> ChargeService:
    return ChargeService(db)


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


@subscriptions_router.post("", response_model=SubscribeResponse, status_code=201)
async def subscribe(
    body: SubscriptionCreate,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscribe the current user to a plan"""
    result = service.subscribe(user.id, body.plan_id, auto_renew=body.auto_renew, installments=body.installments)
    return {"subscription": result.subscription, "charge": result.charge}


@subscriptions_router.get("/me", response_model=SubscriptionResponse)
async def get_my_subscription(
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Get the current user's active or pending subscription"""
    subscription = service.current_for_user(user.id)
    if not subscription:
        raise HTTPException(status_code=404, detail="No current subscription")
    return subscription


@subscriptions_router.post("/{subscription_id}/cancel", response_model=SubscriptionCancelResponse)
async def cancel_subscription(
    subscription_id: int,
    user: User = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Cancel a subscription and its pending charges"""
    result = service.cancel(subscription_id, user.id)
    return {"subscription": result.subscription, "charge_cancelled": result.charge_cancelled}


@subscriptions_router.post("/{subscription_id}/renew", response_model=SubscribeResponse)
async def renew_subscription(
    subscription_id: int,
    admin: User = Depends(get_current_admin),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Bill the next cycle of a subscription (admin function)"""
    logger.info(f"Admin {admin.id} renewing subscription {subscription_id}")
    result = service.renew(subscription_id)
    return {"subscription": result.subscription, "charge": result.charge}


# ============================================================================
# CHARGES
# ============================================================================


@charges_router.get("/{charge_id}", response_model=ChargeResponse)
async def get_charge(
    charge_id: int,
    user: User = Depends(get_current_user),
    service: ChargeService = Depends(get_charge_service),
):
    """Get a charge with its installments and payment attempts"""
    return service.get_charge(charge_id, user)


@charges_router.post("/installments/{installment_id}/checkout", response_model=PaymentResponse, status_code=201)
async def start_checkout(
    installment_id: int,
    body: CheckoutRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Start a payment attempt for an installment"""
    return service.start_checkout(installment_id, user.id, provider=body.provider, method=body.method)


# ============================================================================
# PAYMENT GATEWAY WEBHOOK
# ============================================================================


@payments_router.post("/webhook", response_model=PaymentResponse)
async def payment_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    """Receive a payment status callback from the gateway"""
    raw_body = await verify_payment_webhook(request, PAYMENT_WEBHOOK_SECRET)

    try:
        event = PaymentWebhookEvent.model_validate_json(raw_body)
    except ValidationError as e:
        logger.warning(f"Malformed payment webhook: {e.error_count()} validation error(s)")
        errors = [{"loc": err["loc"], "msg": err["msg"]} for err in e.errors()]
        raise HTTPException(status_code=422, detail=errors) from e

    logger.info(f"Payment webhook {event.event_id}: {event.external_transaction_id} -> {event.status}")
    return service.apply_webhook(event)
