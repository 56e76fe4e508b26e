"""Booking repository - Database operations for reservations and the resource catalog"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import ClassOccurrence, Court, Instructor, OccurrenceStatus, User
from ...models_booking import (
    ClassEnrollment,
    CourtBooking,
    PersonalSession,
    ReservationKind,
    ReservationStatus,
)

RESERVATION_MODELS = {
    ReservationKind.COURT_BOOKING: CourtBooking,
    ReservationKind.PERSONAL_SESSION: PersonalSession,
    ReservationKind.CLASS_ENROLLMENT: ClassEnrollment,
}


class BookingRepository:
    """Repository for booking database operations"""

    # Resource catalog lookups
    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_court(db: Session, court_id: int) -> Optional[Court]:
        return db.query(Court).filter(Court.id == court_id).first()

    @staticmethod
    def get_instructor(db: Session, instructor_id: int) -> Optional[Instructor]:
        return db.query(Instructor).filter(Instructor.id == instructor_id).first()

    @staticmethod
    def get_occurrence(db: Session, occurrence_id: int) -> Optional[ClassOccurrence]:
        return db.query(ClassOccurrence).filter(ClassOccurrence.id == occurrence_id).first()

    # Reservations
    @staticmethod
    def get_reservation(db: Session, kind: str, reservation_id: int, for_update: bool = False):
        """Get a court booking, personal session or class enrollment by kind and ID"""
        model = RESERVATION_MODELS[kind]
        query = db.query(model).filter(model.id == reservation_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def add(db: Session, reservation):
        """Stage a reservation and assign its ID without committing"""
        db.add(reservation)
        db.flush()
        return reservation

    # Overlap queries: existing.start < end AND existing.end > start
    @staticmethod
    def first_court_booking_overlap(
        db: Session,
        court_id: int,
        start: datetime,
        end: datetime,
        exclude_id: Optional[int] = None,
    ) -> Optional[CourtBooking]:
        query = db.query(CourtBooking).filter(
            CourtBooking.court_id == court_id,
            CourtBooking.status.in_(ReservationStatus.BLOCKING),
            CourtBooking.starts_at < end,
            CourtBooking.ends_at > start,
        )
        if exclude_id is not None:
            query = query.filter(CourtBooking.id != exclude_id)
        return query.order_by(CourtBooking.starts_at.asc()).first()

    @staticmethod
    def first_session_overlap(
        db: Session,
        start: datetime,
        end: datetime,
        instructor_id: Optional[int] = None,
        court_id: Optional[int] = None,
        exclude_id: Optional[int] = None,
    ) -> Optional[PersonalSession]:
        query = db.query(PersonalSession).filter(
            PersonalSession.status.in_(ReservationStatus.BLOCKING),
            PersonalSession.starts_at < end,
            PersonalSession.ends_at > start,
        )
        if instructor_id is not None:
            query = query.filter(PersonalSession.instructor_id == instructor_id)
        if court_id is not None:
            query = query.filter(PersonalSession.court_id == court_id)
        if exclude_id is not None:
            query = query.filter(PersonalSession.id != exclude_id)
        return query.order_by(PersonalSession.starts_at.asc()).first()

    @staticmethod
    def first_occurrence_overlap(
        db: Session,
        start: datetime,
        end: datetime,
        instructor_id: Optional[int] = None,
        court_id: Optional[int] = None,
    ) -> Optional[ClassOccurrence]:
        query = db.query(ClassOccurrence).filter(
            ClassOccurrence.status == OccurrenceStatus.SCHEDULED,
            ClassOccurrence.starts_at < end,
            ClassOccurrence.ends_at > start,
        )
        if instructor_id is not None:
            query = query.filter(ClassOccurrence.instructor_id == instructor_id)
        if court_id is not None:
            query = query.filter(ClassOccurrence.court_id == court_id)
        return query.order_by(ClassOccurrence.starts_at.asc()).first()

    # Class enrollments
    @staticmethod
    def count_active_enrollments(db: Session, occurrence_id: int) -> int:
        return (
            db.query(func.count(ClassEnrollment.id))
            .filter(
                ClassEnrollment.occurrence_id == occurrence_id,
                ClassEnrollment.status.in_(ReservationStatus.BLOCKING),
            )
            .scalar()
        )

    @staticmethod
    def get_active_enrollment(
        db: Session, occurrence_id: int, user_id: int
    ) -> Optional[ClassEnrollment]:
        return (
            db.query(ClassEnrollment)
            .filter(
                ClassEnrollment.occurrence_id == occurrence_id,
                ClassEnrollment.user_id == user_id,
                ClassEnrollment.status.in_(ReservationStatus.BLOCKING),
            )
            .first()
        )
