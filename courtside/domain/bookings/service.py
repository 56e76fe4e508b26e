"""Booking service - Reservation writes, cancellation and status transitions"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import (
    AlreadyCancelled,
    ClassFull,
    InvalidResource,
    InvalidTransition,
    NotFound,
    ResourceInactive,
    SlotUnavailable,
)
from ...locks import acquire_resource_lock
from ...models import ClassOccurrence, Court, Instructor, ResourceStatus, User
from ...models_billing import Charge
from ...models_booking import (
    ClassEnrollment,
    CourtBooking,
    PersonalSession,
    ReservationKind,
    ReservationStatus,
)
from ...models_notification import NotificationType
from ...services.notification_service import (
    booking_cancelled_message,
    booking_created_message,
    build_link,
    send_notification,
)
from ...shared.validators import format_window, to_naive_utc
from ..billing.charge_service import ChargeService, InstallmentPlan
from .availability import ResourceType, check_enrollment, is_available, validate_window
from .pricing import price_for
from .repository import BookingRepository

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {
    ReservationKind.COURT_BOOKING: NotificationType.BOOKING,
    ReservationKind.PERSONAL_SESSION: NotificationType.SESSION,
    ReservationKind.CLASS_ENROLLMENT: NotificationType.CLASS,
}


@dataclass
class BookingResult:
    reservation: object
    charge: Optional[Charge]


@dataclass
class CancellationResult:
    reservation: object
    charge_cancelled: bool


@dataclass
class Quote:
    available: bool
    reason: Optional[str]
    price: Optional[Decimal]


def describe_reservation(reservation) -> str:
    """Label used in notifications, e.g. "Court 'Center' on 2026-05-01 10:00 to ...\""""
    if reservation.kind == ReservationKind.COURT_BOOKING:
        label = f"Court '{reservation.court.name}'"
    elif reservation.kind == ReservationKind.PERSONAL_SESSION:
        label = f"Session with {reservation.instructor.name}"
    else:
        label = f"Class '{reservation.occurrence.gym_class.name}'"
    return f"{label} ({format_window(reservation.starts_at, reservation.ends_at)})"


class BookingService:
    """Service layer for reservation business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.charges = ChargeService(db)

    # ------------------------------------------------------------------
    # Catalog lookups
    # ------------------------------------------------------------------

    def _active_court(self, court_id: int) -> Court:
        court = self.repo.get_court(self.db, court_id)
        if not court:
            raise NotFound("Court not found")
        if court.status != ResourceStatus.ACTIVE:
            raise ResourceInactive(f"Court '{court.name}' is not available for booking")
        return court

    def _active_instructor(self, instructor_id: int) -> Instructor:
        instructor = self.repo.get_instructor(self.db, instructor_id)
        if not instructor:
            raise NotFound("Instructor not found")
        if instructor.status != ResourceStatus.ACTIVE:
            raise ResourceInactive(f"Instructor {instructor.name} is not available for booking")
        return instructor

    def _get_actor(self, actor_id: int) -> User:
        actor = self.repo.get_user(self.db, actor_id)
        if not actor:
            raise NotFound("User not found")
        return actor

    def _ensure_available(self, resource_type, resource_id, start, end) -> None:
        availability = is_available(self.db, resource_type, resource_id, start, end)
        if not availability.available:
            raise SlotUnavailable(availability.reason)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def quote(
        self,
        resource_type: str,
        resource_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        user_id: Optional[int] = None,
        court_id: Optional[int] = None,
    ) -> Quote:
        """Availability plus price for a prospective reservation, without writing anything"""
        if resource_type == ResourceType.CLASS_OCCURRENCE:
            try:
                occurrence = check_enrollment(self.db, resource_id, user_id)
            except (SlotUnavailable, ResourceInactive, ClassFull) as e:
                return Quote(available=False, reason=e.reason, price=None)
            return Quote(available=True, reason=None, price=price_for(resource_type, occurrence))

        validate_window(start, end)
        start, end = to_naive_utc(start), to_naive_utc(end)
        if resource_type == ResourceType.COURT:
            resource = self._active_court(resource_id)
        elif resource_type == ResourceType.INSTRUCTOR:
            resource = self._active_instructor(resource_id)
        else:
            raise InvalidResource(f"Unsupported resource type: {resource_type}")

        price = price_for(resource_type, resource, start, end)
        availability = is_available(self.db, resource_type, resource_id, start, end)
        if availability.available and resource_type == ResourceType.INSTRUCTOR and court_id:
            self._active_court(court_id)
            availability = is_available(
                self.db, ResourceType.COURT, court_id, start, end,
            )
        return Quote(available=availability.available, reason=availability.reason, price=price)

    # ------------------------------------------------------------------
    # Reservation writes
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        kind: str,
        resource_id: int,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        notes: Optional[str] = None,
        installments: int = 1,
        court_id: Optional[int] = None,
    ) -> BookingResult:
        """Dispatch to the writer for a reservation kind"""
        if kind == ReservationKind.COURT_BOOKING:
            return self.create_court_booking(user_id, resource_id, start, end, notes, installments)
        if kind == ReservationKind.PERSONAL_SESSION:
            return self.create_personal_session(
                user_id, resource_id, start, end, court_id=court_id, notes=notes, installments=installments
            )
        if kind == ReservationKind.CLASS_ENROLLMENT:
            return self.enroll_in_class(user_id, resource_id, notes=notes)
        raise InvalidResource(f"Unsupported reservation kind: {kind}")

    def create_court_booking(
        self,
        user_id: int,
        court_id: int,
        start: datetime,
        end: datetime,
        notes: Optional[str] = None,
        installments: int = 1,
    ) -> BookingResult:
        """Book a court for [start, end) and stage its pending charge in one transaction"""
        validate_window(start, end)
        start, end = to_naive_utc(start), to_naive_utc(end)
        court = self._active_court(court_id)
        price = price_for(ResourceType.COURT, court, start, end)

        try:
            acquire_resource_lock(self.db, ResourceType.COURT, court_id, Court)
            self._ensure_available(ResourceType.COURT, court_id, start, end)

            booking = self.repo.add(
                self.db,
                CourtBooking(
                    court_id=court_id,
                    user_id=user_id,
                    starts_at=start,
                    ends_at=end,
                    total_price=price,
                    status=ReservationStatus.PENDING,
                    notes=notes,
                ),
            )
            charge = self.charges.create_charge(
                ReservationKind.COURT_BOOKING,
                booking.id,
                user_id,
                price,
                due_date=start.date(),
                installment_plan=InstallmentPlan(count=installments),
                description=f"Court booking #{booking.id} - {court.name}",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Court booking {booking.id} created: court={court_id} user={user_id} "
            f"{format_window(start, end)} price={price}"
        )
        self._notify_created(booking, charge)
        return BookingResult(reservation=booking, charge=charge)

    def create_personal_session(
        self,
        user_id: int,
        instructor_id: int,
        start: datetime,
        end: datetime,
        court_id: Optional[int] = None,
        notes: Optional[str] = None,
        installments: int = 1,
    ) -> BookingResult:
        """Book an instructor (and optionally a court as venue) for [start, end)"""
        validate_window(start, end)
        start, end = to_naive_utc(start), to_naive_utc(end)
        instructor = self._active_instructor(instructor_id)
        if court_id is not None:
            self._active_court(court_id)
        price = price_for(ResourceType.INSTRUCTOR, instructor, start, end)

        try:
            # Instructor before court, always, so concurrent requests lock in the same order
            acquire_resource_lock(self.db, ResourceType.INSTRUCTOR, instructor_id, Instructor)
            self._ensure_available(ResourceType.INSTRUCTOR, instructor_id, start, end)
            if court_id is not None:
                acquire_resource_lock(self.db, ResourceType.COURT, court_id, Court)
                self._ensure_available(ResourceType.COURT, court_id, start, end)

            session = self.repo.add(
                self.db,
                PersonalSession(
                    instructor_id=instructor_id,
                    user_id=user_id,
                    court_id=court_id,
                    starts_at=start,
                    ends_at=end,
                    total_price=price,
                    status=ReservationStatus.PENDING,
                    notes=notes,
                ),
            )
            charge = self.charges.create_charge(
                ReservationKind.PERSONAL_SESSION,
                session.id,
                user_id,
                price,
                due_date=start.date(),
                installment_plan=InstallmentPlan(count=installments),
                description=f"Personal session #{session.id} - {instructor.name}",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Personal session {session.id} created: instructor={instructor_id} court={court_id} "
            f"user={user_id} {format_window(start, end)} price={price}"
        )
        self._notify_created(session, charge)
        return BookingResult(reservation=session, charge=charge)

    def enroll_in_class(
        self, user_id: int, occurrence_id: int, notes: Optional[str] = None
    ) -> BookingResult:
        """Enroll a user in a class occurrence; plan-included classes create no charge"""
        try:
            acquire_resource_lock(self.db, ResourceType.CLASS_OCCURRENCE, occurrence_id, ClassOccurrence)
            occurrence = check_enrollment(self.db, occurrence_id, user_id)
            price = price_for(ResourceType.CLASS_OCCURRENCE, occurrence)

            enrollment = self.repo.add(
                self.db,
                ClassEnrollment(
                    occurrence_id=occurrence_id,
                    user_id=user_id,
                    total_price=price,
                    status=ReservationStatus.PENDING,
                    notes=notes,
                ),
            )
            charge = self.charges.create_charge(
                ReservationKind.CLASS_ENROLLMENT,
                enrollment.id,
                user_id,
                price,
                due_date=occurrence.starts_at.date(),
                description=f"Class enrollment #{enrollment.id} - {occurrence.gym_class.name}",
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Class enrollment {enrollment.id} created: occurrence={occurrence_id} "
            f"user={user_id} price={price}"
        )
        self._notify_created(enrollment, charge)
        return BookingResult(reservation=enrollment, charge=charge)

    # ------------------------------------------------------------------
    # Reads, cancellation and transitions
    # ------------------------------------------------------------------

    def get_reservation(self, kind: str, reservation_id: int, actor: User):
        """Get a reservation visible to the actor (owner or admin)"""
        reservation = self.repo.get_reservation(self.db, kind, reservation_id)
        if not reservation or (reservation.user_id != actor.id and not actor.is_admin):
            raise NotFound("Reservation not found")
        return reservation

    def cancel_reservation(self, kind: str, reservation_id: int, actor_id: int) -> CancellationResult:
        """
        Cancel a reservation and, in the same transaction, its charge if still pending.

        Paid or partially paid charges stay as they are; refunds are a separate flow.
        """
        actor = self._get_actor(actor_id)

        try:
            reservation = self.repo.get_reservation(self.db, kind, reservation_id, for_update=True)
            if not reservation or (reservation.user_id != actor.id and not actor.is_admin):
                raise NotFound("Reservation not found")
            if reservation.status == ReservationStatus.CANCELLED:
                raise AlreadyCancelled("Reservation is already cancelled")
            if reservation.status in ReservationStatus.TERMINAL:
                raise InvalidTransition(
                    f"A reservation in status '{reservation.status}' cannot be cancelled"
                )

            reservation.status = ReservationStatus.CANCELLED
            charge_cancelled = self.charges.cancel_pending_charges(kind, reservation.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"{kind} {reservation_id} cancelled by user {actor_id} "
            f"(pending charge cancelled: {charge_cancelled})"
        )
        send_notification(
            self.db,
            reservation.user_id,
            NOTIFICATION_TYPES[kind],
            "Reservation cancelled",
            booking_cancelled_message(describe_reservation(reservation), charge_cancelled),
            link=build_link("/bookings"),
        )
        return CancellationResult(reservation=reservation, charge_cancelled=charge_cancelled)

    def transition(self, kind: str, reservation_id: int, new_status: str):
        """Administrative status change: pending -> confirmed -> completed/no_show"""
        try:
            reservation = self.repo.get_reservation(self.db, kind, reservation_id, for_update=True)
            if not reservation:
                raise NotFound("Reservation not found")
            if new_status == ReservationStatus.CANCELLED:
                raise InvalidTransition("Use the cancel operation to cancel a reservation")

            allowed = ReservationStatus.TRANSITIONS.get(reservation.status, ())
            if new_status not in allowed:
                raise InvalidTransition(
                    f"Cannot move a reservation from '{reservation.status}' to '{new_status}'"
                )

            previous = reservation.status
            reservation.status = new_status
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"{kind} {reservation_id} transitioned: {previous} -> {new_status}")
        return reservation

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify_created(self, reservation, charge: Optional[Charge]) -> None:
        self.db.refresh(reservation)
        send_notification(
            self.db,
            reservation.user_id,
            NOTIFICATION_TYPES[reservation.kind],
            "Reservation created",
            booking_created_message(
                describe_reservation(reservation),
                charge.total_amount if charge else None,
            ),
            link=build_link("/bookings"),
        )
