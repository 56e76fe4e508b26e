"""
Reservation models: court bookings, 1:1 personal sessions and class enrollments.

All three share the same status lifecycle and are never physically deleted;
cancellation is a status change.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class ReservationKind:
    COURT_BOOKING = "court_booking"
    PERSONAL_SESSION = "personal_session"
    CLASS_ENROLLMENT = "class_enrollment"
    SUBSCRIPTION = "subscription"


class ReservationStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    COMPLETED = "completed"

    # Statuses that occupy a slot
    BLOCKING = (PENDING, CONFIRMED)
    TERMINAL = (CANCELLED, NO_SHOW, COMPLETED)

    # Cancellation is handled separately by the cancellation flow
    TRANSITIONS = {
        PENDING: (CONFIRMED,),
        CONFIRMED: (COMPLETED, NO_SHOW),
    }


class CourtBooking(Base):
    __tablename__ = "court_bookings"
    __table_args__ = (Index("ix_court_bookings_court_window", "court_id", "starts_at", "ends_at"),)

    id = Column(Integer, primary_key=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default=ReservationStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    court = relationship("Court")
    user = relationship("User")

    kind = ReservationKind.COURT_BOOKING


class PersonalSession(Base):
    __tablename__ = "personal_sessions"
    __table_args__ = (
        Index("ix_personal_sessions_instructor_window", "instructor_id", "starts_at", "ends_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    instructor_id = Column(Integer, ForeignKey("instructors.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True, index=True)  # Optional venue
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default=ReservationStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    instructor = relationship("Instructor")
    court = relationship("Court")
    user = relationship("User")

    kind = ReservationKind.PERSONAL_SESSION


class ClassEnrollment(Base):
    """Enrollment in a fixed class occurrence; the window comes from the occurrence"""

    __tablename__ = "class_enrollments"

    id = Column(Integer, primary_key=True, index=True)
    occurrence_id = Column(Integer, ForeignKey("class_occurrences.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default=ReservationStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    occurrence = relationship("ClassOccurrence", back_populates="enrollments")
    user = relationship("User")

    kind = ReservationKind.CLASS_ENROLLMENT

    @property
    def starts_at(self):
        return self.occurrence.starts_at if self.occurrence else None

    @property
    def ends_at(self):
        return self.occurrence.ends_at if self.occurrence else None
