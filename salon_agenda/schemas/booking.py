import datetime as dt
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
)


class BookingErrorKind(str, Enum):
    SLOT_TAKEN = "slot_taken"
    SERVICE_INACTIVE = "service_inactive"
    OUTSIDE_OPERATING_WINDOW = "outside_operating_window"
    SLOT_IN_PAST = "slot_in_past"
    NOT_FOUND = "not_found"
    NOT_OWNER = "not_owner"
    FORBIDDEN = "forbidden"
    TOO_LATE_TO_CANCEL = "too_late_to_cancel"
    ALREADY_TERMINAL = "already_terminal"
    INVALID_TRANSITION = "invalid_transition"


class Booking(BaseModel):
    id: str
    salon_id: str
    customer_id: str
    service_id: str
    professional_id: Optional[str] = None
    date: dt.date
    start_time: dt.time
    status: BookingStatus
    notes: Optional[str] = None
    origin: str = "app"
    created_at: dt.datetime
    updated_at: dt.datetime


class BookingDraft(BaseModel):
    """Fields of a booking that does not exist in the store yet."""

    salon_id: str
    customer_id: str
    service_id: str
    professional_id: Optional[str] = None
    date: dt.date
    start_time: dt.time
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    origin: str = "app"


def _require_whole_minute(value: dt.time) -> dt.time:
    if value.second or value.microsecond:
        raise ValueError("start_time must fall on a whole minute")
    return value


class BookingCreateRequest(BaseModel):
    salon_id: str
    service_id: str
    date: dt.date
    start_time: dt.time
    customer_id: Optional[str] = Field(
        None, description="Only honoured for staff bookings made on a customer's behalf"
    )
    professional_id: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("start_time")
    def _check_start_time(cls, value: dt.time) -> dt.time:
        return _require_whole_minute(value)


class BookingStatusUpdateRequest(BaseModel):
    status: BookingStatus


class BookingRescheduleRequest(BaseModel):
    date: dt.date
    start_time: dt.time

    @field_validator("start_time")
    def _check_start_time(cls, value: dt.time) -> dt.time:
        return _require_whole_minute(value)


class BookingResult(BaseModel):
    booking: Optional[Booking] = None
    error: Optional[BookingErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.booking is not None

    @classmethod
    def success(cls, booking: Booking, message: Optional[str] = None) -> "BookingResult":
        return cls(booking=booking, message=message)

    @classmethod
    def failure(cls, error: BookingErrorKind, message: str) -> "BookingResult":
        return cls(error=error, message=message)


class BookingListResponse(BaseModel):
    total: int
    items: List[Booking]


class AgendaSummary(BaseModel):
    salon_id: str
    date: dt.date
    total: int
    counts: Dict[BookingStatus, int]
