"""
Catalog models: users and the bookable resources (courts, instructors,
classes and their occurrences) plus membership plans.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class ResourceStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserRole:
    ADMIN = "admin"
    STUDENT = "student"
    INSTRUCTOR = "instructor"


class OccurrenceStatus:
    SCHEDULED = "scheduled"
    CANCELLED = "cancelled"
    HELD = "held"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default=UserRole.STUDENT, nullable=False)  # admin, student, instructor
    # Users are never physically removed; "inactive" blocks authentication
    status = Column(String(20), default=ResourceStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    notifications = relationship("Notification", back_populates="user")
    subscriptions = relationship("Subscription", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class Court(Base):
    __tablename__ = "courts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    sport = Column(String(100), nullable=False)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    features = Column(JSON, default=dict, nullable=True)
    status = Column(String(20), default=ResourceStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Instructor(Base):
    __tablename__ = "instructors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # Login account, if any
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    specialties = Column(JSON, default=list, nullable=True)
    bio = Column(Text, nullable=True)
    status = Column(String(20), default=ResourceStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class GymClass(Base):
    """A group class definition; concrete sessions live in ClassOccurrence"""

    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    sport = Column(String(100), nullable=False)
    level = Column(String(50), nullable=True)  # beginner, intermediate, advanced
    duration_minutes = Column(Integer, nullable=False, default=60)
    capacity = Column(Integer, nullable=False)
    # NULL means the class is included in the membership plan (no charge)
    unit_price = Column(Numeric(10, 2), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=ResourceStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    occurrences = relationship("ClassOccurrence", back_populates="gym_class")


class ClassOccurrence(Base):
    __tablename__ = "class_occurrences"

    id = Column(Integer, primary_key=True, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("instructors.id"), nullable=True, index=True)
    court_id = Column(Integer, ForeignKey("courts.id"), nullable=True, index=True)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)
    status = Column(String(20), default=OccurrenceStatus.SCHEDULED, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    gym_class = relationship("GymClass", back_populates="occurrences")
    instructor = relationship("Instructor")
    court = relationship("Court")
    enrollments = relationship("ClassEnrollment", back_populates="occurrence")


class Plan(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=True)
    billing_cycle = Column(String(20), nullable=False, default="monthly")  # monthly, quarterly, yearly
    max_future_bookings = Column(Integer, nullable=True)
    benefits = Column(JSON, default=list, nullable=True)
    status = Column(String(20), default=ResourceStatus.ACTIVE, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
