"""Validation of loosely-shaped action payloads into typed models."""

import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tablekeeper.models import ActionType, BackendAction

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 500


class _Payload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", frozen=True)

    @field_validator("date", mode="before", check_fields=False)
    @classmethod
    def _date_as_text(cls, value: Any) -> Any:
        # Already-resolved dates are accepted and re-resolved later as ISO text
        if isinstance(value, date):
            return value.isoformat()
        return value


class CheckAvailabilityPayload(_Payload):
    date: str = Field(..., min_length=1, description="ISO date or relative expression")
    time: str = Field(..., min_length=1, description="Requested time (HH:MM)")
    party_size: int = Field(..., gt=0)


class CreateReservationPayload(CheckAvailabilityPayload):
    name: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    phone: str | None = Field(None, description="Overrides the caller phone")
    notes: str | None = Field(None, max_length=MAX_TEXT_LENGTH)
    table_id: str | None = None


class ReservationChanges(_Payload):
    """Fields to change; anything left out keeps its stored value."""

    date: str | None = None
    time: str | None = None
    party_size: int | None = Field(None, gt=0)
    name: str | None = Field(None, min_length=1, max_length=MAX_TEXT_LENGTH)
    notes: str | None = Field(None, max_length=MAX_TEXT_LENGTH)
    table_id: str | None = None


class UpdateReservationPayload(_Payload):
    reservation_id: str = Field(..., min_length=1)
    changes: ReservationChanges = Field(default_factory=ReservationChanges)


class CancelReservationPayload(_Payload):
    reservation_id: str = Field(..., min_length=1)


class NoPayload(_Payload):
    pass


PAYLOAD_MODELS: dict[ActionType, type[_Payload]] = {
    ActionType.CHECK_AVAILABILITY: CheckAvailabilityPayload,
    ActionType.CREATE_RESERVATION: CreateReservationPayload,
    ActionType.UPDATE_RESERVATION: UpdateReservationPayload,
    ActionType.CANCEL_RESERVATION: CancelReservationPayload,
    ActionType.NONE: NoPayload,
}


def describe_errors(error: ValidationError) -> str:
    """Turn a pydantic ValidationError into one readable sentence."""
    missing = [
        ".".join(str(part) for part in item["loc"])
        for item in error.errors()
        if item["type"] == "missing"
    ]
    invalid = [
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}"
        for item in error.errors()
        if item["type"] != "missing"
    ]

    parts = []
    if missing:
        parts.append(f"Missing required fields: {', '.join(missing)}")
    if invalid:
        parts.append(f"Invalid fields: {'; '.join(invalid)}")
    return ". ".join(parts) + "."


class PayloadValidator:
    """Validates action payloads before dispatch."""

    @staticmethod
    def validate_payload(action: BackendAction) -> tuple[_Payload | None, str | None]:
        """Validate the payload of ``action``.

        Args:
            action: Action as received from the orchestrator

        Returns:
            Tuple of (typed payload, None) or (None, error message)
        """
        model = PAYLOAD_MODELS[action.type]
        try:
            return model.model_validate(action.payload), None
        except ValidationError as e:
            message = describe_errors(e)
            logger.warning(f"Rejected {action.type.value} payload: {message}")
            return None, message
