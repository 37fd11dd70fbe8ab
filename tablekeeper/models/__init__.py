"""Data models for the TableKeeper engine."""

from tablekeeper.models.action import (
    ActionType,
    BackendAction,
    EngineContext,
    EngineResponse,
    FailureKind,
    ReservationStats,
)
from tablekeeper.models.capacity import CapacityConfig, Shift, SlotRounding
from tablekeeper.models.reservation import (
    Alternative,
    AvailabilityReason,
    AvailabilityResult,
    AvailabilityStatus,
    NewReservation,
    Reservation,
    ReservationStatus,
)
from tablekeeper.models.table import RestaurantTable, TableKind, TableStatus

__all__ = [
    "ActionType",
    "Alternative",
    "AvailabilityReason",
    "AvailabilityResult",
    "AvailabilityStatus",
    "BackendAction",
    "CapacityConfig",
    "EngineContext",
    "EngineResponse",
    "FailureKind",
    "NewReservation",
    "Reservation",
    "ReservationStats",
    "ReservationStatus",
    "RestaurantTable",
    "Shift",
    "SlotRounding",
    "TableKind",
    "TableStatus",
]
