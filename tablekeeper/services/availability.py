"""Availability decisions and alternative proposals.

A check runs an ordered pipeline: closed date, max party size, out of
hours, turn end, capacity. The first failing rule decides the verdict and
short-circuits the rest. Whenever a refusal can be healed by moving the
booking, up to two concrete alternatives are attached.
"""

import logging
from datetime import date, timedelta

from tablekeeper.models import (
    Alternative,
    AvailabilityReason,
    AvailabilityResult,
    AvailabilityStatus,
    CapacityConfig,
    Shift,
)
from tablekeeper.services.capacity_policy import CapacityPolicy
from tablekeeper.services.repository import ReservationRepository
from tablekeeper.services.time_slots import (
    minutes_to_hhmm,
    normalize_time,
    parse_time_to_minutes,
    windows_overlap,
)

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 2
LOOKAHEAD_DAYS = 7


def shift_slots(shift: Shift, cfg: CapacityConfig, earliest: int | None = None) -> range:
    """Slot starts in ``shift`` that leave room for a full booking before it ends."""
    start = shift.start_min if earliest is None else max(shift.start_min, earliest)
    latest_start = shift.end_min - cfg.standard_duration_min
    return range(start, latest_start + 1, cfg.slot_interval_min)


def rank_by_distance(candidates: list[int], requested: int) -> list[int]:
    """Order by distance from ``requested``; on ties the earlier time wins."""
    return sorted(candidates, key=lambda t: (abs(t - requested), t))


class _Probe:
    """Capacity lookups for one check, caching each day's booked windows."""

    def __init__(
        self,
        reservations: ReservationRepository,
        tenant: str,
        cfg: CapacityConfig,
        party_size: int,
        exclude_reservation_id: str | None,
    ) -> None:
        self.reservations = reservations
        self.tenant = tenant
        self.cfg = cfg
        self.party_size = party_size
        self.exclude_reservation_id = exclude_reservation_id
        self._windows: dict[date, list[tuple[int, int, int]]] = {}

    def _day_windows(self, day: date) -> list[tuple[int, int, int]]:
        if day not in self._windows:
            windows = []
            for reservation in self.reservations.list_active_by_date(self.tenant, day):
                if reservation.id == self.exclude_reservation_id:
                    continue
                start = parse_time_to_minutes(reservation.time)
                if start is None:
                    logger.warning(f"Reservation {reservation.id} has unreadable time {reservation.time!r}")
                    continue
                windows.append((start, start + self.cfg.window_min, reservation.party_size))
            self._windows[day] = windows
        return self._windows[day]

    def load(self, day: date, start: int) -> int:
        """People already seated during the window starting at ``start``."""
        end = start + self.cfg.window_min
        return sum(
            size
            for other_start, other_end, size in self._day_windows(day)
            if windows_overlap(start, end, other_start, other_end)
        )

    def fits(self, day: date, start: int) -> bool:
        return self.cfg.total_capacity - self.load(day, start) >= self.party_size

    def open_slots(self, day: date, earliest: int | None = None) -> list[int]:
        """Every slot of every shift on ``day`` that still has room, ascending."""
        slots = [
            t
            for shift in self.cfg.shifts
            for t in shift_slots(shift, self.cfg, earliest)
            if self.fits(day, t)
        ]
        return sorted(slots)


class AvailabilityEngine:
    """Decides whether a booking can be honored and proposes alternatives."""

    def __init__(self, policy: CapacityPolicy, reservations: ReservationRepository) -> None:
        self.policy = policy
        self.reservations = reservations

    def check(
        self,
        tenant: str,
        day: date,
        time: str,
        party_size: int,
        exclude_reservation_id: str | None = None,
    ) -> AvailabilityResult:
        """Check a request against the tenant's policy and current bookings.

        Args:
            tenant: Tenant identifier
            day: Requested calendar date
            time: Requested time (HH:MM, slot-rounded before use)
            party_size: Number of people
            exclude_reservation_id: Booking to ignore (the one being modified)

        Returns:
            AvailabilityResult with reason and alternatives when refused
        """
        cfg = self.policy.get_config(tenant)
        requested, normalized_time = normalize_time(
            time, cfg.slot_interval_min, cfg.slot_rounding.value
        )
        probe = _Probe(self.reservations, tenant, cfg, party_size, exclude_reservation_id)

        def refuse(reason: AvailabilityReason, alternatives: list[Alternative]) -> AvailabilityResult:
            logger.info(
                f"Tenant {tenant}: {party_size} on {day} at {time} refused ({reason.value}), "
                f"{len(alternatives)} alternative(s)"
            )
            return AvailabilityResult(
                status=AvailabilityStatus.NOT_AVAILABLE,
                reason=reason,
                alternatives=alternatives,
                normalized_time=normalized_time,
            )

        if cfg.is_closed(day):
            return refuse(AvailabilityReason.CLOSED, self._next_day_alternatives(probe, day, requested))

        if party_size > cfg.max_party_size:
            return refuse(AvailabilityReason.MAX_PARTY, [])

        shift = cfg.shift_for(requested)
        if shift is None:
            return refuse(AvailabilityReason.OUT_OF_HOURS, self._out_of_hours_alternatives(probe, day, requested))

        if requested + cfg.standard_duration_min > shift.end_min:
            return refuse(AvailabilityReason.TURN_END, self._smart_alternatives(probe, day, requested, shift))

        if not probe.fits(day, requested):
            return refuse(AvailabilityReason.CAPACITY, self._smart_alternatives(probe, day, requested, shift))

        logger.info(f"Tenant {tenant}: {party_size} on {day} at {minutes_to_hhmm(requested)} available")
        return AvailabilityResult(
            status=AvailabilityStatus.AVAILABLE,
            normalized_time=normalized_time,
        )

    def _smart_alternatives(
        self, probe: _Probe, day: date, requested: int, shift: Shift
    ) -> list[Alternative]:
        """Nearest slots within the same shift that still have room."""
        candidates = [
            t for t in shift_slots(shift, probe.cfg) if t != requested and probe.fits(day, t)
        ]
        return [
            Alternative(date=day, time=minutes_to_hhmm(t))
            for t in rank_by_distance(candidates, requested)[:MAX_ALTERNATIVES]
        ]

    def _next_day_alternatives(
        self, probe: _Probe, day: date, requested: int | None
    ) -> list[Alternative]:
        """The same time of day on following open days."""
        if requested is None or probe.cfg.shift_for(requested) is None:
            return []

        alternatives: list[Alternative] = []
        for offset in range(1, LOOKAHEAD_DAYS + 1):
            if len(alternatives) >= MAX_ALTERNATIVES:
                break
            candidate_day = day + timedelta(days=offset)
            if probe.cfg.is_closed(candidate_day):
                continue
            if probe.fits(candidate_day, requested):
                alternatives.append(Alternative(date=candidate_day, time=minutes_to_hhmm(requested)))
        return alternatives

    def _out_of_hours_alternatives(
        self, probe: _Probe, day: date, requested: int | None
    ) -> list[Alternative]:
        """Later slots the same day, then the first open slots of following days."""
        alternatives = [
            Alternative(date=day, time=minutes_to_hhmm(t))
            for t in probe.open_slots(day, earliest=requested)
        ][:MAX_ALTERNATIVES]

        for offset in range(1, LOOKAHEAD_DAYS + 1):
            if len(alternatives) >= MAX_ALTERNATIVES:
                break
            candidate_day = day + timedelta(days=offset)
            if probe.cfg.is_closed(candidate_day):
                continue
            for t in probe.open_slots(candidate_day):
                alternatives.append(Alternative(date=candidate_day, time=minutes_to_hhmm(t)))
                if len(alternatives) >= MAX_ALTERNATIVES:
                    break
        return alternatives
