"""Booking router - FastAPI endpoints for availability, reservations and cancellation"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_user
from ...database import get_db
from ...models import User
from ...models_booking import ReservationKind
from .schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingResponse,
    CancellationResponse,
    ClassEnrollmentCreate,
    CourtBookingCreate,
    PersonalSessionCreate,
    ReservationResponse,
    StatusUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# URL segment -> reservation kind
KIND_SEGMENTS = {
    "courts": ReservationKind.COURT_BOOKING,
    "personal-sessions": ReservationKind.PERSONAL_SESSION,
    "classes": ReservationKind.CLASS_ENROLLMENT,
}
KindSegment = Literal["courts", "personal-sessions", "classes"]


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(
    body: AvailabilityRequest,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Check whether a slot is free and quote its price"""
    quote = service.quote(
        body.resource_type,
        body.resource_id,
        body.start,
        body.end,
        user_id=user.id,
        court_id=body.court_id,
    )
    return AvailabilityResponse(available=quote.available, reason=quote.reason, total_price=quote.price)


@router.post("/courts", response_model=BookingResponse, status_code=201)
async def create_court_booking(
    body: CourtBookingCreate,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Book a court"""
    result = service.create_court_booking(
        user.id, body.court_id, body.start, body.end, notes=body.notes, installments=body.installments
    )
    return {"reservation": result.reservation, "charge": result.charge}


@router.post("/personal-sessions", response_model=BookingResponse, status_code=201)
async def create_personal_session(
    body: PersonalSessionCreate,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Book a 1:1 session with an instructor"""
    result = service.create_personal_session(
        user.id,
        body.instructor_id,
        body.start,
        body.end,
        court_id=body.court_id,
        notes=body.notes,
        installments=body.installments,
    )
    return {"reservation": result.reservation, "charge": result.charge}


@router.post("/classes", response_model=BookingResponse, status_code=201)
async def enroll_in_class(
    body: ClassEnrollmentCreate,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Enroll in a class occurrence"""
    result = service.enroll_in_class(user.id, body.occurrence_id, notes=body.notes)
    return {"reservation": result.reservation, "charge": result.charge}


@router.get("/{kind}/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    kind: KindSegment,
    reservation_id: int,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Get one of the user's reservations"""
    return service.get_reservation(KIND_SEGMENTS[kind], reservation_id, user)


@router.post("/{kind}/{reservation_id}/cancel", response_model=CancellationResponse)
async def cancel_reservation(
    kind: KindSegment,
    reservation_id: int,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a reservation; a still-pending charge is cancelled with it"""
    result = service.cancel_reservation(KIND_SEGMENTS[kind], reservation_id, user.id)
    return {"reservation": result.reservation, "charge_cancelled": result.charge_cancelled}


@router.patch("/{kind}/{reservation_id}/status", response_model=ReservationResponse)
async def update_reservation_status(
    kind: KindSegment,
    reservation_id: int,
    body: StatusUpdate,
    admin: User = Depends(get_current_admin),
    service: BookingService = Depends(get_booking_service),
):
    """Confirm, complete or mark a reservation as no-show (admin function)"""
    logger.info(f"Admin {admin.id} moving {kind} {reservation_id} to '{body.status}'")
    return service.transition(KIND_SEGMENTS[kind], reservation_id, body.status)
