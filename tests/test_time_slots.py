"""Tests for slot arithmetic helpers."""

import pytest

from tablekeeper.services.time_slots import (
    minutes_to_hhmm,
    normalize_time,
    parse_time_to_minutes,
    round_to_slot,
    windows_overlap,
)


class TestParseTimeToMinutes:
    """Tests for parse_time_to_minutes."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("21", 1260),
            ("21:0", 1260),
            ("21:00", 1260),
            ("9", 540),
            ("9:15", 555),
            (" 00:00 ", 0),
            ("23:59", 1439),
        ],
    )
    def test_valid_times(self, value, expected):
        """Test accepted hour and hour:minute forms."""
        assert parse_time_to_minutes(value) == expected

    @pytest.mark.parametrize(
        "value", ["", "24:00", "12:60", "7pm", "12:00:00", "-1", "123", "ab:cd", None]
    )
    def test_invalid_times_return_none(self, value):
        """Test that malformed input never raises."""
        assert parse_time_to_minutes(value) is None

    def test_round_trip_is_canonical(self):
        """Test that every valid HH:MM formats back to its zero-padded form."""
        for hour in range(24):
            for minute in range(60):
                text = f"{hour}:{minute}"
                assert minutes_to_hhmm(parse_time_to_minutes(text)) == f"{hour:02d}:{minute:02d}"


class TestMinutesToHHMM:
    """Tests for minutes_to_hhmm."""

    def test_formats_zero_padded(self):
        assert minutes_to_hhmm(65) == "01:05"

    def test_clamps_into_day(self):
        """Test that values outside the day are clamped."""
        assert minutes_to_hhmm(-30) == "00:00"
        assert minutes_to_hhmm(1440) == "23:59"
        assert minutes_to_hhmm(5000) == "23:59"

    def test_rounds_fractional_minutes(self):
        assert minutes_to_hhmm(60.6) == "01:01"

    def test_none_formats_as_midnight(self):
        assert minutes_to_hhmm(None) == "00:00"


class TestRoundToSlot:
    """Tests for round_to_slot."""

    def test_modes(self):
        """Test floor, ceil and nearest on an off-grid value."""
        assert round_to_slot(1270, 30, "floor") == 1260
        assert round_to_slot(1270, 30, "ceil") == 1290
        assert round_to_slot(1270, 30, "nearest") == 1260
        assert round_to_slot(1280, 30, "nearest") == 1290

    def test_nearest_rounds_half_up(self):
        assert round_to_slot(1275, 30, "nearest") == 1290
        assert round_to_slot(15, 30, "nearest") == 30

    @pytest.mark.parametrize("mode", ["floor", "ceil", "nearest"])
    def test_idempotent(self, mode):
        """Test that rounding twice equals rounding once."""
        for minutes in range(0, 1440, 7):
            once = round_to_slot(minutes, 15, mode)
            assert round_to_slot(once, 15, mode) == once

    def test_non_positive_interval_passes_through(self):
        assert round_to_slot(1277, 0, "ceil") == 1277
        assert round_to_slot(1277, -15, "floor") == 1277

    def test_none_passes_through(self):
        assert round_to_slot(None, 30, "ceil") is None


class TestNormalizeTime:
    """Tests for normalize_time."""

    def test_reports_changed_time(self):
        assert normalize_time("20:10", 30, "ceil") == (1230, "20:30")

    def test_aligned_time_has_no_normalized_value(self):
        assert normalize_time("20:30", 30, "ceil") == (1230, None)
        assert normalize_time("20", 30, "ceil") == (1200, None)

    def test_invalid_time(self):
        assert normalize_time("late", 30, "ceil") == (None, None)


class TestWindowsOverlap:
    """Tests for half-open window overlap."""

    def test_touching_windows_do_not_overlap(self):
        assert windows_overlap(1200, 1260, 1260, 1320) is False

    def test_overlapping_windows(self):
        assert windows_overlap(1200, 1300, 1215, 1315) is True
        assert windows_overlap(1215, 1315, 1200, 1300) is True

    def test_contained_window(self):
        assert windows_overlap(1200, 1400, 1250, 1260) is True
