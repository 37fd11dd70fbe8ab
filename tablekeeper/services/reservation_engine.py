"""Action dispatcher: normalizes input, checks availability, commits writes.

This is the only component that writes reservations on behalf of the
orchestration layer. Expected failures come back as ``EngineResponse``
values; storage errors propagate.
"""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any

from tablekeeper.guardrails import (
    CancelReservationPayload,
    CheckAvailabilityPayload,
    CreateReservationPayload,
    PayloadValidator,
    UpdateReservationPayload,
)
from tablekeeper.models import (
    ActionType,
    AvailabilityResult,
    AvailabilityStatus,
    BackendAction,
    EngineContext,
    EngineResponse,
    FailureKind,
    NewReservation,
    Reservation,
    ReservationStats,
)
from tablekeeper.services.availability import AvailabilityEngine
from tablekeeper.services.dates import normalize_date_input
from tablekeeper.services.repository import ReservationRepository, TableRepository
from tablekeeper.services.table_assignment import TableAssignment
from tablekeeper.services.time_slots import minutes_to_hhmm, normalize_time, parse_time_to_minutes

logger = logging.getLogger(__name__)


def _failure(kind: FailureKind, message: str, **extra: Any) -> EngineResponse:
    return EngineResponse(success=False, error=kind, message=message, **extra)


def _rejection(result: AvailabilityResult, message: str | None = None) -> EngineResponse:
    return EngineResponse(
        success=False,
        error=FailureKind.POLICY,
        availability=AvailabilityStatus.NOT_AVAILABLE,
        reason=result.reason,
        alternatives=result.alternatives,
        normalized_time=result.normalized_time,
        message=message,
    )


class _DayLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class _DayLocks:
    """One lock per (tenant, date): the serialization point for writes.

    Entries live only while some thread holds or waits for them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[tuple[str, date], _DayLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, tenant: str, *days: date) -> Iterator[None]:
        # Sorted acquisition keeps cross-date updates deadlock free
        keys = [(tenant, day) for day in sorted(set(days))]
        with self._guard:
            entries = []
            for key in keys:
                entry = self._locks.setdefault(key, _DayLock())
                entry.holders += 1
                entries.append(entry)

        acquired: list[_DayLock] = []
        try:
            for entry in entries:
                entry.lock.acquire()
                acquired.append(entry)
            yield
        finally:
            for entry in reversed(acquired):
                entry.lock.release()
            with self._guard:
                for key, entry in zip(keys, entries):
                    entry.holders -= 1
                    if entry.holders == 0:
                        del self._locks[key]


class ReservationEngine:
    """Executes typed backend actions for one conversational turn."""

    def __init__(
        self,
        availability: AvailabilityEngine,
        reservations: ReservationRepository,
        tables: TableRepository | None = None,
        table_assignment: TableAssignment | None = None,
        verify_table_reassignment: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.availability = availability
        self.reservations = reservations
        self.tables = tables
        self.table_assignment = table_assignment or TableAssignment(availability.policy)
        self.verify_table_reassignment = verify_table_reassignment
        self.clock = clock
        self._locks = _DayLocks()

        if verify_table_reassignment and tables is None:
            raise ValueError("verify_table_reassignment requires a table repository")

    def _now(self, ctx: EngineContext) -> datetime:
        return ctx.now if ctx.now is not None else self.clock()

    def _normalize_time(self, tenant: str, time: str) -> str | None:
        cfg = self.availability.policy.get_config(tenant)
        rounded, _ = normalize_time(time, cfg.slot_interval_min, cfg.slot_rounding.value)
        return minutes_to_hhmm(rounded) if rounded is not None else None

    def execute(self, action: BackendAction, ctx: EngineContext) -> EngineResponse:
        """Run one action in the tenant and caller context.

        Args:
            action: The action and its raw payload
            ctx: Tenant, caller phone and optional reference instant

        Returns:
            EngineResponse describing the outcome
        """
        logger.info(f"Tenant {ctx.tenant}: executing {action.type.value}")

        payload, error = PayloadValidator.validate_payload(action)
        if error is not None:
            return _failure(FailureKind.VALIDATION, error)

        if action.type == ActionType.CHECK_AVAILABILITY:
            return self._check(payload, ctx)
        if action.type == ActionType.CREATE_RESERVATION:
            return self._create(payload, ctx)
        if action.type == ActionType.UPDATE_RESERVATION:
            return self._update(payload, ctx)
        if action.type == ActionType.CANCEL_RESERVATION:
            return self._cancel(payload, ctx)
        return EngineResponse(success=True)

    def _check(self, payload: CheckAvailabilityPayload, ctx: EngineContext) -> EngineResponse:
        day = normalize_date_input(payload.date, self._now(ctx).date())
        if day is None:
            return _failure(FailureKind.VALIDATION, "Invalid date format.")

        result = self.availability.check(ctx.tenant, day, payload.time, payload.party_size)
        return EngineResponse(
            success=True,
            availability=result.status,
            reason=result.reason,
            alternatives=result.alternatives,
            normalized_time=result.normalized_time,
        )

    def _create(self, payload: CreateReservationPayload, ctx: EngineContext) -> EngineResponse:
        day = normalize_date_input(payload.date, self._now(ctx).date())
        if day is None:
            return _failure(FailureKind.VALIDATION, "Invalid date format.")

        time = self._normalize_time(ctx.tenant, payload.time)
        if time is None:
            return _failure(FailureKind.VALIDATION, "Invalid time format.")

        with self._locks.hold(ctx.tenant, day):
            # Re-check right before writing: an earlier check may be turns old
            result = self.availability.check(ctx.tenant, day, payload.time, payload.party_size)
            if not result.is_available:
                return _rejection(result, "Availability changed during booking.")

            record = self.reservations.create(
                ctx.tenant,
                NewReservation(
                    name=payload.name,
                    phone=payload.phone or ctx.phone,
                    date=day,
                    time=time,
                    party_size=payload.party_size,
                    notes=payload.notes,
                    table_id=payload.table_id,
                ),
            )

        logger.info(f"Tenant {ctx.tenant}: created reservation {record.id} on {day} at {time}")
        return EngineResponse(
            success=True,
            data=record,
            availability=AvailabilityStatus.AVAILABLE,
            normalized_time=result.normalized_time,
        )

    def _update(self, payload: UpdateReservationPayload, ctx: EngineContext) -> EngineResponse:
        current = self.reservations.get_by_id(ctx.tenant, payload.reservation_id)
        if current is None:
            logger.warning(f"Tenant {ctx.tenant}: reservation {payload.reservation_id} not found")
            return _failure(FailureKind.NOT_FOUND, "Reservation not found.")

        changes = payload.changes
        patch: dict[str, Any] = {}

        day = current.date
        if changes.date is not None:
            day = normalize_date_input(changes.date, self._now(ctx).date())
            if day is None:
                return _failure(FailureKind.VALIDATION, "Invalid date format.")
            patch["date"] = day

        # An unsupplied time stays as stored, even if the slot grid changed since
        raw_time = current.time
        time = current.time
        if changes.time is not None:
            raw_time = changes.time
            time = self._normalize_time(ctx.tenant, changes.time)
            if time is None:
                return _failure(FailureKind.VALIDATION, "Invalid time format.")
            patch["time"] = time

        party_size = current.party_size
        if changes.party_size is not None:
            party_size = changes.party_size
            patch["party_size"] = party_size

        for field in ("name", "notes", "table_id"):
            value = getattr(changes, field)
            if value is not None:
                patch[field] = value

        needs_check = (day, time, party_size) != (current.date, current.time, current.party_size)
        normalized_time = None

        with self._locks.hold(ctx.tenant, day, current.date):
            if needs_check:
                result = self.availability.check(
                    ctx.tenant, day, raw_time, party_size, exclude_reservation_id=current.id
                )
                if not result.is_available:
                    return _rejection(result)
                if changes.time is not None:
                    normalized_time = result.normalized_time

            if changes.table_id is not None and changes.table_id != current.table_id:
                conflict = self._table_conflict(ctx.tenant, current, day, time, party_size, changes.table_id)
                if conflict is not None:
                    return conflict

            updated = self.reservations.update(ctx.tenant, current.id, patch)

        if updated is None:
            return _failure(FailureKind.NOT_FOUND, "Reservation not found.")

        logger.info(
            f"Tenant {ctx.tenant}: updated reservation {updated.id} "
            f"({'rechecked' if needs_check else 'no availability change'})"
        )
        return EngineResponse(
            success=True,
            data=updated,
            availability=AvailabilityStatus.AVAILABLE if needs_check else None,
            normalized_time=normalized_time,
        )

    def _table_conflict(
        self,
        tenant: str,
        current: Reservation,
        day: date,
        time: str,
        party_size: int,
        table_id: str,
    ) -> EngineResponse | None:
        """Check a manual table change, when that check is enabled."""
        if not self.verify_table_reassignment:
            logger.info(
                f"Tenant {tenant}: reservation {current.id} moved to table {table_id} "
                f"without overlap check (owner override)"
            )
            return None

        tables = self.tables.list_tables(tenant)
        day_reservations = self.reservations.list_active_by_date(tenant, day)
        free = self.table_assignment.list_available(
            tenant, day, time, party_size, tables, day_reservations, exclude_reservation_id=current.id
        )
        if any(table.id == table_id for table in free):
            return None

        logger.warning(f"Tenant {tenant}: table {table_id} is not free for reservation {current.id}")
        return _failure(
            FailureKind.POLICY,
            f"Table {table_id} is not available at that time.",
            availability=AvailabilityStatus.NOT_AVAILABLE,
            alternatives=self.table_assignment.suggest_alternative_times_by_tables(
                tenant,
                day,
                time,
                party_size,
                [table for table in tables if table.id == table_id],
                day_reservations,
                exclude_reservation_id=current.id,
            ),
        )

    def _cancel(self, payload: CancelReservationPayload, ctx: EngineContext) -> EngineResponse:
        if not self.reservations.cancel(ctx.tenant, payload.reservation_id):
            logger.warning(f"Tenant {ctx.tenant}: reservation {payload.reservation_id} not found")
            return _failure(FailureKind.NOT_FOUND, "Reservation not found.")

        logger.info(f"Tenant {ctx.tenant}: cancelled reservation {payload.reservation_id}")
        return EngineResponse(success=True)

    def get_stats(self, tenant: str, phone: str, now: datetime | None = None) -> ReservationStats:
        """Upcoming active reservations of ``phone``, soonest first.

        Used upstream to resolve which booking "my reservation" refers to.
        """
        now = now if now is not None else self.clock()
        # Reservation times are restaurant wall-clock times
        now = now.replace(tzinfo=None)
        upcoming = sorted(
            (
                r
                for r in self.reservations.list_active_by_phone(tenant, phone)
                if parse_time_to_minutes(r.time) is not None and r.starts_at >= now
            ),
            key=lambda r: (r.date, r.time),
        )
        return ReservationStats(count=len(upcoming), has_active=bool(upcoming), reservations=upcoming)

    def list_day(self, tenant: str, day: date) -> list[Reservation]:
        """All reservations of a day, any status, ordered by time (owner console)."""
        return sorted(self.reservations.list_by_date(tenant, day), key=lambda r: (r.time, r.created_at))
