"""
Availability checks for courts, instructors and class occurrences.

A window is the half-open interval [start, end). Two windows on the same
resource conflict when ``existing.start < end and existing.end > start``, so
back-to-back reservations (10:00-11:00 then 11:00-12:00) never collide.
Only pending/confirmed reservations and scheduled class occurrences block a
slot. All checks are read-only.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import ClassFull, InvalidResource, InvalidWindow, NotFound, ResourceInactive, SlotUnavailable
from ...models import OccurrenceStatus, ResourceStatus
from ...models_booking import ReservationKind
from ...shared.validators import format_window
from .repository import BookingRepository

logger = logging.getLogger(__name__)


class ResourceType:
    COURT = "court"
    INSTRUCTOR = "instructor"
    CLASS_OCCURRENCE = "class_occurrence"


@dataclass
class Availability:
    available: bool
    reason: Optional[str] = None


def validate_window(start, end) -> None:
    """Reject missing, non-datetime, zero-length or inverted windows"""
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        raise InvalidWindow("Start and end must both be valid timestamps")
    if (start.tzinfo is None) != (end.tzinfo is None):
        raise InvalidWindow("Start and end must both carry a timezone or neither")
    if start >= end:
        raise InvalidWindow("Start must be strictly before end")


def _conflicts_for_court(db, court_id, start, end, exclude_kind, exclude_id):
    repo = BookingRepository
    booking = repo.first_court_booking_overlap(
        db, court_id, start, end,
        exclude_id=exclude_id if exclude_kind == ReservationKind.COURT_BOOKING else None,
    )
    if booking:
        yield booking.starts_at, f"Court already booked from {format_window(booking.starts_at, booking.ends_at)}"

    session = repo.first_session_overlap(
        db, start, end, court_id=court_id,
        exclude_id=exclude_id if exclude_kind == ReservationKind.PERSONAL_SESSION else None,
    )
    if session:
        yield session.starts_at, (
            f"Court reserved for a personal session from {format_window(session.starts_at, session.ends_at)}"
        )

    occurrence = repo.first_occurrence_overlap(db, start, end, court_id=court_id)
    if occurrence:
        yield occurrence.starts_at, (
            f"Court hosts a class from {format_window(occurrence.starts_at, occurrence.ends_at)}"
        )


def _conflicts_for_instructor(db, instructor_id, start, end, exclude_kind, exclude_id):
    repo = BookingRepository
    session = repo.first_session_overlap(
        db, start, end, instructor_id=instructor_id,
        exclude_id=exclude_id if exclude_kind == ReservationKind.PERSONAL_SESSION else None,
    )
    if session:
        yield session.starts_at, (
            f"Instructor already has a session from {format_window(session.starts_at, session.ends_at)}"
        )

    occurrence = repo.first_occurrence_overlap(db, start, end, instructor_id=instructor_id)
    if occurrence:
        yield occurrence.starts_at, (
            f"Instructor teaches a class from {format_window(occurrence.starts_at, occurrence.ends_at)}"
        )


CONFLICT_SOURCES = {
    ResourceType.COURT: (_conflicts_for_court, ReservationKind.COURT_BOOKING),
    ResourceType.INSTRUCTOR: (_conflicts_for_instructor, ReservationKind.PERSONAL_SESSION),
}


def is_available(
    db: Session,
    resource_type: str,
    resource_id: int,
    start: datetime,
    end: datetime,
    exclude_reservation_id: Optional[int] = None,
    exclude_kind: Optional[str] = None,
) -> Availability:
    """
    Check whether a court or instructor is free for [start, end).

    Args:
        resource_type: "court" or "instructor"
        exclude_reservation_id: Reservation to ignore, used when re-checking an edit
        exclude_kind: Kind of the excluded reservation; defaults to the resource's own
            reservation kind (court_booking for courts, personal_session for instructors)

    Returns:
        Availability with a reason naming the earliest conflicting window
    """
    validate_window(start, end)

    if resource_type not in CONFLICT_SOURCES:
        raise InvalidResource(f"Unsupported resource type for a time window: {resource_type}")

    find_conflicts, native_kind = CONFLICT_SOURCES[resource_type]
    conflicts = list(
        find_conflicts(db, resource_id, start, end, exclude_kind or native_kind, exclude_reservation_id)
    )
    if not conflicts:
        return Availability(available=True)

    _, reason = min(conflicts, key=lambda conflict: conflict[0])
    logger.info(f"{resource_type} {resource_id} unavailable for {format_window(start, end)}: {reason}")
    return Availability(available=False, reason=reason)


def check_enrollment(db: Session, occurrence_id: int, user_id: int):
    """
    Validate that a user may enroll in a class occurrence.

    Returns:
        The occurrence

    Raises:
        NotFound, ResourceInactive, ClassFull or SlotUnavailable
    """
    repo = BookingRepository
    occurrence = repo.get_occurrence(db, occurrence_id)
    if not occurrence:
        raise NotFound("Class occurrence not found")

    gym_class = occurrence.gym_class
    if occurrence.status != OccurrenceStatus.SCHEDULED or gym_class.status != ResourceStatus.ACTIVE:
        raise ResourceInactive(f"Class '{gym_class.name}' is not open for enrollment")

    if repo.get_active_enrollment(db, occurrence_id, user_id):
        raise SlotUnavailable(
            f"Already enrolled in '{gym_class.name}' on {format_window(occurrence.starts_at, occurrence.ends_at)}"
        )

    enrolled = repo.count_active_enrollments(db, occurrence_id)
    if enrolled >= gym_class.capacity:
        raise ClassFull(f"Class '{gym_class.name}' is full ({enrolled}/{gym_class.capacity})")

    return occurrence
