"""Tests for the availability decision pipeline."""

from datetime import date

import pytest

from tablekeeper.models import (
    Alternative,
    AvailabilityReason,
    AvailabilityStatus,
    Reservation,
    ReservationStatus,
)
from tablekeeper.services.availability import AvailabilityEngine, rank_by_distance
from tablekeeper.services.capacity_policy import CapacityPolicy, InMemoryConfigStore
from tablekeeper.services.repository import InMemoryReservationRepository

TENANT = "resto-1"
DAY = date(2026, 11, 2)


def make_reservation(rid, time, party_size, day=DAY, tenant=TENANT, status=ReservationStatus.ACTIVE):
    return Reservation(
        id=rid,
        tenant_id=tenant,
        name=f"Guest {rid}",
        phone="+34600000000",
        date=day,
        time=time,
        party_size=party_size,
        status=status,
    )


def make_engine(reservations=(), overrides=None):
    store = InMemoryConfigStore({TENANT: overrides} if overrides else None)
    return AvailabilityEngine(CapacityPolicy(store), InMemoryReservationRepository(reservations))


def alt(day, time):
    return Alternative(date=day, time=time)


class TestCapacity:
    """Tests for the capacity rule."""

    @pytest.fixture
    def busy_engine(self):
        """Two overlapping bookings of 15 and 14 people around 20:00."""
        return make_engine([make_reservation("a", "20:00", 15), make_reservation("b", "20:15", 14)])

    def test_overlapping_load_rejects(self, busy_engine):
        """Test that 29 seated plus 5 requested exceeds 30."""
        result = busy_engine.check(TENANT, DAY, "20:30", 5)

        assert result.status == AvailabilityStatus.NOT_AVAILABLE
        assert result.reason == AvailabilityReason.CAPACITY
        assert result.alternatives == [alt(DAY, "22:00")]

    def test_later_window_is_free(self, busy_engine):
        result = busy_engine.check(TENANT, DAY, "22:00", 5)

        assert result.status == AvailabilityStatus.AVAILABLE
        assert result.reason is None
        assert result.alternatives == []

    def test_exact_fit_is_accepted(self, busy_engine):
        result = busy_engine.check(TENANT, DAY, "20:30", 1)

        assert result.is_available

    def test_excluded_reservation_is_not_counted(self):
        engine = make_engine([make_reservation("mine", "20:00", 30)])

        assert engine.check(TENANT, DAY, "20:00", 4).reason == AvailabilityReason.CAPACITY
        assert engine.check(TENANT, DAY, "20:00", 4, exclude_reservation_id="mine").is_available

    def test_cancelled_reservations_free_capacity(self):
        engine = make_engine(
            [make_reservation("gone", "20:00", 30, status=ReservationStatus.CANCELLED)]
        )

        assert engine.check(TENANT, DAY, "20:00", 4).is_available

    def test_other_tenants_and_days_do_not_count(self):
        engine = make_engine(
            [
                make_reservation("x", "20:00", 30, tenant="resto-2"),
                make_reservation("y", "20:00", 30, day=date(2026, 11, 3)),
            ]
        )

        assert engine.check(TENANT, DAY, "20:00", 8).is_available

    def test_touching_windows_do_not_overlap(self):
        """Test that a booking may start exactly when another window ends."""
        engine = make_engine(
            [make_reservation("a", "20:00", 30)],
            overrides={"standard_duration_min": 60, "buffer_min": 0},
        )

        assert engine.check(TENANT, DAY, "21:00", 4).is_available
        assert engine.check(TENANT, DAY, "20:30", 4).reason == AvailabilityReason.CAPACITY


class TestPipelineOrder:
    """Tests for rule precedence."""

    def test_max_party_has_no_alternatives(self):
        engine = make_engine()

        for time in ("13:00", "17:00", "21:00", "23:00"):
            result = engine.check(TENANT, DAY, time, 9)
            assert result.reason == AvailabilityReason.MAX_PARTY
            assert result.alternatives == []

    def test_closed_date_wins_over_everything(self):
        """Test that a closed date is reported even if other rules also fail."""
        engine = make_engine(overrides={"closed_dates": ["2026-11-02"]})

        for time, party_size in (("21:00", 9), ("17:00", 2), ("23:00", 2)):
            assert engine.check(TENANT, DAY, time, party_size).reason == AvailabilityReason.CLOSED

    def test_closed_date_suggests_following_open_days(self):
        engine = make_engine(overrides={"closed_dates": ["2026-11-02", "2026-11-03"]})

        result = engine.check(TENANT, DAY, "21:00", 2)

        assert result.alternatives == [
            alt(date(2026, 11, 4), "21:00"),
            alt(date(2026, 11, 5), "21:00"),
        ]

    def test_closed_date_skips_full_days(self):
        engine = make_engine(
            [make_reservation("full", "21:00", 30, day=date(2026, 11, 3))],
            overrides={"closed_dates": ["2026-11-02"]},
        )

        result = engine.check(TENANT, DAY, "21:00", 2)

        assert [a.date for a in result.alternatives] == [date(2026, 11, 4), date(2026, 11, 5)]

    def test_closed_date_out_of_hours_time_has_no_alternatives(self):
        engine = make_engine(overrides={"closed_dates": ["2026-11-02"]})

        assert engine.check(TENANT, DAY, "18:00", 2).alternatives == []


class TestOutOfHours:
    """Tests for requests outside every shift."""

    def test_suggests_later_slots_same_day(self):
        result = make_engine().check(TENANT, DAY, "17:00", 2)

        assert result.reason == AvailabilityReason.OUT_OF_HOURS
        assert result.alternatives == [alt(DAY, "20:00"), alt(DAY, "20:30")]

    def test_morning_request_suggests_lunch(self):
        result = make_engine().check(TENANT, DAY, "10:00", 2)

        assert result.alternatives == [alt(DAY, "13:00"), alt(DAY, "13:30")]

    def test_shift_end_is_exclusive(self):
        """Test that 23:30 is outside the 20:00-23:30 shift and rolls to the next day."""
        result = make_engine().check(TENANT, DAY, "23:30", 2)

        next_day = date(2026, 11, 3)
        assert result.reason == AvailabilityReason.OUT_OF_HOURS
        assert result.alternatives == [alt(next_day, "13:00"), alt(next_day, "13:30")]

    def test_next_day_scan_skips_closed_days(self):
        engine = make_engine(overrides={"closed_dates": ["2026-11-03"]})

        result = engine.check(TENANT, DAY, "23:30", 2)

        assert [a.date for a in result.alternatives] == [date(2026, 11, 4)] * 2

    def test_alternatives_respect_capacity(self):
        engine = make_engine([make_reservation("full", "20:00", 30)])

        result = engine.check(TENANT, DAY, "17:00", 2)

        # 20:00-21:30 overlap the full booking
        assert result.alternatives == [alt(DAY, "22:00"), alt(date(2026, 11, 3), "13:00")]

    def test_unreadable_time_is_out_of_hours(self):
        result = make_engine().check(TENANT, DAY, "whenever", 2)

        assert result.reason == AvailabilityReason.OUT_OF_HOURS
        assert result.normalized_time is None
        assert result.alternatives == [alt(DAY, "13:00"), alt(DAY, "13:30")]


class TestTurnEnd:
    """Tests for bookings that would run past the end of the shift."""

    def test_dinner_turn_end(self):
        result = make_engine().check(TENANT, DAY, "22:30", 2)

        assert result.reason == AvailabilityReason.TURN_END
        assert result.alternatives == [alt(DAY, "22:00"), alt(DAY, "21:30")]

    def test_lunch_turn_end(self):
        result = make_engine().check(TENANT, DAY, "15:00", 2)

        assert result.reason == AvailabilityReason.TURN_END
        assert result.alternatives == [alt(DAY, "14:30"), alt(DAY, "14:00")]

    def test_last_full_slot_is_accepted(self):
        assert make_engine().check(TENANT, DAY, "22:00", 2).is_available


class TestNormalization:
    """Tests for slot rounding of the requested time."""

    def test_off_grid_time_is_reported(self):
        result = make_engine().check(TENANT, DAY, "20:10", 2)

        assert result.is_available
        assert result.normalized_time == "20:30"

    def test_aligned_time_is_not_reported(self):
        assert make_engine().check(TENANT, DAY, "20:30", 2).normalized_time is None

    def test_rounding_mode_from_config(self):
        engine = make_engine(overrides={"slot_rounding": "floor"})

        assert engine.check(TENANT, DAY, "20:10", 2).normalized_time == "20:00"

    def test_rounding_can_change_the_verdict(self):
        """Test that 21:59 rounds up to 22:00, the last slot, and is accepted."""
        engine = make_engine(overrides={"slot_interval_min": 15, "slot_rounding": "ceil"})

        result = engine.check(TENANT, DAY, "21:59", 2)

        assert result.normalized_time == "22:00"
        assert result.is_available

    def test_refusals_carry_normalized_time(self):
        result = make_engine().check(TENANT, DAY, "22:10", 2)

        assert result.reason == AvailabilityReason.TURN_END
        assert result.normalized_time == "22:30"


class TestAlternativeRanking:
    """Tests for alternative ordering."""

    def test_rank_prefers_earlier_on_ties(self):
        assert rank_by_distance([1320, 1290, 1200, 1230], 1260) == [1230, 1290, 1200, 1320]

    @pytest.mark.parametrize("time", ["20:00", "20:30", "21:00", "21:30", "22:00", "22:30"])
    def test_alternatives_ordered_and_bounded(self, time):
        """Test ordering by distance and the two-entry cap for capacity refusals."""
        engine = make_engine([make_reservation("a", time, 30)])
        requested = int(time[:2]) * 60 + int(time[3:])

        result = engine.check(TENANT, DAY, time, 2)
        minutes = [int(a.time[:2]) * 60 + int(a.time[3:]) for a in result.alternatives]

        assert len(minutes) <= 2
        assert minutes == sorted(minutes, key=lambda t: (abs(t - requested), t))
