"""Data models for reservations and availability verdicts."""

import datetime as dt
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ReservationStatus(str, Enum):
    """Lifecycle of a reservation. Cancelling never deletes."""

    ACTIVE = "active"
    CANCELLED = "cancelled"


class Reservation(BaseModel):
    """A stored reservation."""

    id: str = Field(..., description="Store-generated identifier")
    tenant_id: str = Field(..., description="Restaurant the booking belongs to")
    name: str = Field(..., description="Name for the reservation")
    phone: str = Field(..., description="Contact phone, used to find own bookings")
    date: dt.date
    time: str = Field(..., description="Start time (HH:MM)")
    party_size: int = Field(..., gt=0, description="Number of people")
    notes: str | None = Field(None, description="Special requests or notes")
    table_id: str | None = Field(None, description="Assigned table, if any")
    status: ReservationStatus = Field(default=ReservationStatus.ACTIVE)
    created_at: dt.datetime = Field(default_factory=dt.datetime.now)

    @property
    def is_active(self) -> bool:
        return self.status == ReservationStatus.ACTIVE

    @property
    def starts_at(self) -> dt.datetime:
        hour, minute = (int(part) for part in self.time.split(":"))
        return dt.datetime.combine(self.date, dt.time(hour, minute))


class NewReservation(BaseModel):
    """Fields supplied by the engine when creating a reservation."""

    model_config = ConfigDict(frozen=True)

    name: str
    phone: str
    date: dt.date
    time: str
    party_size: int = Field(..., gt=0)
    notes: str | None = None
    table_id: str | None = None


class AvailabilityStatus(str, Enum):
    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"


class AvailabilityReason(str, Enum):
    """Why a request was refused."""

    CAPACITY = "capacity"
    MAX_PARTY = "max_party"
    OUT_OF_HOURS = "out_of_hours"
    TURN_END = "turn_end"
    CLOSED = "closed"


class Alternative(BaseModel):
    """A concrete date/time proposal."""

    model_config = ConfigDict(frozen=True)

    date: dt.date
    time: str


class AvailabilityResult(BaseModel):
    """Verdict of an availability check."""

    status: AvailabilityStatus
    reason: AvailabilityReason | None = None
    alternatives: list[Alternative] = Field(default_factory=list, max_length=2)
    normalized_time: str | None = Field(
        None, description="Slot-rounded time, only when it differs from the request"
    )

    @property
    def is_available(self) -> bool:
        return self.status == AvailabilityStatus.AVAILABLE
