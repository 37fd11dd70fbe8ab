"""Per-table overlap detection and assignment heuristics.

Everything here is pure over the table and reservation snapshots passed in
by the caller; only the tenant configuration is read from the policy.
"""

import logging
from collections.abc import Iterable
from datetime import date

from tablekeeper.models import Alternative, CapacityConfig, Reservation, RestaurantTable, TableStatus
from tablekeeper.services.availability import MAX_ALTERNATIVES, rank_by_distance, shift_slots
from tablekeeper.services.capacity_policy import CapacityPolicy
from tablekeeper.services.time_slots import minutes_to_hhmm, parse_time_to_minutes, round_to_slot, windows_overlap

logger = logging.getLogger(__name__)


def _table_order(table: RestaurantTable) -> tuple[int, str, str]:
    return table.effective_capacity, table.name.casefold(), table.name


class TableAssignment:
    """Chooses and validates physical tables for accepted bookings."""

    def __init__(self, policy: CapacityPolicy) -> None:
        self.policy = policy

    def _free_tables(
        self,
        cfg: CapacityConfig,
        tenant: str,
        day: date,
        start: int,
        party_size: int,
        tables: Iterable[RestaurantTable],
        reservations: Iterable[Reservation],
        exclude_reservation_id: str | None,
    ) -> list[RestaurantTable]:
        end = start + cfg.window_min

        # table id -> windows already booked on that table
        busy: dict[str, list[tuple[int, int]]] = {}
        for reservation in reservations:
            if (
                reservation.tenant_id != tenant
                or reservation.date != day
                or not reservation.is_active
                or not reservation.table_id
                or reservation.id == exclude_reservation_id
            ):
                continue
            other_start = parse_time_to_minutes(reservation.time)
            if other_start is None:
                continue
            busy.setdefault(reservation.table_id, []).append(
                (other_start, other_start + cfg.window_min)
            )

        candidates = [
            table
            for table in tables
            if table.tenant_id == tenant
            and table.status != TableStatus.BLOCKED
            and table.effective_capacity >= party_size
            and not any(
                windows_overlap(start, end, other_start, other_end)
                for other_start, other_end in busy.get(table.id, [])
            )
        ]
        return sorted(candidates, key=_table_order)

    def list_available(
        self,
        tenant: str,
        day: date,
        time: str,
        party_size: int,
        tables: Iterable[RestaurantTable],
        reservations: Iterable[Reservation],
        exclude_reservation_id: str | None = None,
    ) -> list[RestaurantTable]:
        """Tables that can seat the party for the whole (slot-rounded) window.

        Blocked tables, tables too small for the party, and tables with an
        overlapping active booking are left out. The result is ordered by
        effective capacity, then by name, so the smallest adequate table
        comes first.

        Args:
            tenant: Tenant identifier
            day: Booking date
            time: Requested start time (HH:MM)
            party_size: Number of people
            tables: Table snapshot
            reservations: Reservation snapshot
            exclude_reservation_id: Booking to ignore (the one being seated)

        Returns:
            Assignable tables, best candidate first
        """
        cfg = self.policy.get_config(tenant)
        start = round_to_slot(
            parse_time_to_minutes(time), cfg.slot_interval_min, cfg.slot_rounding.value
        )
        if start is None:
            return []
        return self._free_tables(
            cfg, tenant, day, start, party_size, tables, list(reservations), exclude_reservation_id
        )

    def pick_for_reservation(
        self,
        tenant: str,
        day: date,
        time: str,
        party_size: int,
        tables: Iterable[RestaurantTable],
        reservations: Iterable[Reservation],
        exclude_reservation_id: str | None = None,
    ) -> RestaurantTable | None:
        """Best assignable table, or None."""
        available = self.list_available(
            tenant, day, time, party_size, tables, reservations, exclude_reservation_id
        )
        if available:
            logger.info(f"Tenant {tenant}: picked table {available[0].name} for {party_size} at {time}")
            return available[0]
        logger.info(f"Tenant {tenant}: no table for {party_size} on {day} at {time}")
        return None

    def suggest_alternative_times_by_tables(
        self,
        tenant: str,
        day: date,
        time: str,
        party_size: int,
        tables: Iterable[RestaurantTable],
        reservations: Iterable[Reservation],
        limit: int = MAX_ALTERNATIVES,
        exclude_reservation_id: str | None = None,
    ) -> list[Alternative]:
        """Nearest times in the shift at which some table is still free.

        The shift containing the requested time is scanned; when the time is
        outside all shifts the first configured shift is used instead.
        """
        cfg = self.policy.get_config(tenant)
        requested = round_to_slot(
            parse_time_to_minutes(time), cfg.slot_interval_min, cfg.slot_rounding.value
        )
        if requested is None:
            return []

        shift = cfg.shift_for(requested) or (cfg.shifts[0] if cfg.shifts else None)
        if shift is None:
            return []

        tables = list(tables)
        reservations = list(reservations)
        candidates = [t for t in shift_slots(shift, cfg) if t != requested]

        alternatives: list[Alternative] = []
        for t in rank_by_distance(candidates, requested):
            if len(alternatives) >= limit:
                break
            if self._free_tables(
                cfg, tenant, day, t, party_size, tables, reservations, exclude_reservation_id
            ):
                alternatives.append(Alternative(date=day, time=minutes_to_hhmm(t)))
        return alternatives
