"""Per-tenant capacity policy models."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tablekeeper.services.time_slots import parse_time_to_minutes


class SlotRounding(str, Enum):
    """How a requested time is snapped onto the slot grid."""

    NEAREST = "nearest"
    FLOOR = "floor"
    CEIL = "ceil"


class Shift(BaseModel):
    """An open-for-business interval, half-open [start, end)."""

    model_config = ConfigDict(frozen=True)

    start: str = Field(..., description="Shift start (HH:MM)")
    end: str = Field(..., description="Shift end (HH:MM), exclusive")

    @field_validator("start", "end")
    @classmethod
    def _must_parse(cls, value: str) -> str:
        if parse_time_to_minutes(value) is None:
            raise ValueError(f"invalid time of day: {value!r}")
        return value

    @model_validator(mode="after")
    def _start_before_end(self) -> "Shift":
        if self.start_min >= self.end_min:
            raise ValueError(f"shift {self.start}-{self.end} ends before it starts")
        return self

    @property
    def start_min(self) -> int:
        return parse_time_to_minutes(self.start)

    @property
    def end_min(self) -> int:
        return parse_time_to_minutes(self.end)

    def contains(self, minute: int) -> bool:
        return self.start_min <= minute < self.end_min


DEFAULT_SHIFTS = (
    Shift(start="13:00", end="16:00"),  # Lunch
    Shift(start="20:00", end="23:30"),  # Dinner
)


class CapacityConfig(BaseModel):
    """Capacity, duration and opening-hours policy for one tenant."""

    model_config = ConfigDict(frozen=True)

    total_capacity: int = Field(default=30, ge=0, description="Total people")
    max_party_size: int = Field(default=8, ge=1, description="Max people per booking")
    standard_duration_min: int = Field(default=90, ge=1)
    buffer_min: int = Field(default=10, ge=0)
    slot_interval_min: int = Field(default=30, ge=1)
    slot_rounding: SlotRounding = Field(default=SlotRounding.CEIL)
    shifts: tuple[Shift, ...] = Field(default=DEFAULT_SHIFTS)
    closed_dates: frozenset[date] = Field(default_factory=frozenset)

    def shift_for(self, minute: int | None) -> Shift | None:
        """Return the first shift containing ``minute``, if any."""
        if minute is None:
            return None
        for shift in self.shifts:
            if shift.contains(minute):
                return shift
        return None

    def is_closed(self, day: date) -> bool:
        return day in self.closed_dates

    @property
    def window_min(self) -> int:
        """Occupied minutes of one booking, buffer included."""
        return self.standard_duration_min + self.buffer_min
