"""Action dispatch models exchanged with the orchestration layer."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from tablekeeper.models.reservation import (
    Alternative,
    AvailabilityReason,
    AvailabilityStatus,
    Reservation,
)


class ActionType(str, Enum):
    """Backend actions the orchestrator may request."""

    CHECK_AVAILABILITY = "check_availability"
    CREATE_RESERVATION = "create_reservation"
    UPDATE_RESERVATION = "update_reservation"
    CANCEL_RESERVATION = "cancel_reservation"
    NONE = "none"


class BackendAction(BaseModel):
    """A typed action with a loosely-shaped payload."""

    type: ActionType
    payload: dict[str, Any] = Field(default_factory=dict)


class EngineContext(BaseModel):
    """Who is asking, on behalf of which restaurant, and when."""

    tenant: str = Field(..., min_length=1)
    phone: str = Field(..., description="Caller phone number")
    now: datetime | None = Field(
        None, description="Reference instant for relative dates"
    )


class FailureKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    POLICY = "policy"


class EngineResponse(BaseModel):
    """Structured outcome of an action; never raised, always returned."""

    success: bool
    error: FailureKind | None = None
    data: Reservation | None = None
    availability: AvailabilityStatus | None = None
    reason: AvailabilityReason | None = None
    alternatives: list[Alternative] = Field(default_factory=list)
    normalized_time: str | None = None
    message: str | None = None


class ReservationStats(BaseModel):
    """A caller's upcoming active reservations."""

    count: int
    has_active: bool
    reservations: list[Reservation]
