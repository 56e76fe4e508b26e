"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ...config import MAX_INSTALLMENTS
from ...shared.validators import to_naive_utc, validate_installments
from ..billing.schemas import ChargeResponse


class TimeWindow(BaseModel):
    """A requested [start, end) window; timezone-aware values are normalized to naive UTC"""

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def normalize(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_order(self):
        if self.start >= self.end:
            raise ValueError("start must be strictly before end")
        return self


class AvailabilityRequest(BaseModel):
    """Schema for an availability check / price quote"""

    resource_type: Literal["court", "instructor", "class_occurrence"]
    resource_id: int
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    court_id: Optional[int] = None  # Venue check for instructor sessions

    @field_validator("start", "end")
    @classmethod
    def normalize(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class AvailabilityResponse(BaseModel):
    available: bool
    reason: Optional[str] = None
    total_price: Optional[Decimal] = None


class CourtBookingCreate(TimeWindow):
    court_id: int
    notes: Optional[str] = None
    installments: int = 1

    @field_validator("installments")
    @classmethod
    def check_installments(cls, v: int) -> int:
        return validate_installments(v, MAX_INSTALLMENTS)


class PersonalSessionCreate(TimeWindow):
    instructor_id: int
    court_id: Optional[int] = None
    notes: Optional[str] = None
    installments: int = 1

    @field_validator("installments")
    @classmethod
    def check_installments(cls, v: int) -> int:
        return validate_installments(v, MAX_INSTALLMENTS)


class ClassEnrollmentCreate(BaseModel):
    occurrence_id: int
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Literal["confirmed", "completed", "no_show"]


class ReservationResponse(BaseModel):
    """Common payload for court bookings, personal sessions and class enrollments"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    user_id: int
    court_id: Optional[int] = None
    instructor_id: Optional[int] = None
    occurrence_id: Optional[int] = None
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    total_price: Decimal
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingResponse(BaseModel):
    reservation: ReservationResponse
    charge: Optional[ChargeResponse] = None


class CancellationResponse(BaseModel):
    reservation: ReservationResponse
    charge_cancelled: bool
