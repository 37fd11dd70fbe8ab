"""Guardrails applied to orchestrator input before it reaches the engine."""

from tablekeeper.guardrails.payload_validator import (
    CancelReservationPayload,
    CheckAvailabilityPayload,
    CreateReservationPayload,
    NoPayload,
    PayloadValidator,
    ReservationChanges,
    UpdateReservationPayload,
)

__all__ = [
    "CancelReservationPayload",
    "CheckAvailabilityPayload",
    "CreateReservationPayload",
    "NoPayload",
    "PayloadValidator",
    "ReservationChanges",
    "UpdateReservationPayload",
]
