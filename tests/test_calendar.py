"""
Tests for closed date-range math
"""

from datetime import date, datetime

import pytest

from furniture_rental.exceptions import InvalidRangeError
from furniture_rental.services.calendar import (
    day_in_range, inclusive_day_count, iter_days, ordered_range, ranges_overlap, to_date,
    validate_date_range
)


class TestRangesOverlap:

    def test_touching_ranges_overlap(self):
        """A range ending on the day another starts shares that day"""
        assert ranges_overlap("2025-03-01", "2025-03-05", "2025-03-05", "2025-03-10") is True

    def test_adjacent_ranges_do_not_overlap(self):
        assert ranges_overlap("2025-03-01", "2025-03-04", "2025-03-05", "2025-03-10") is False

    def test_contained_range_overlaps(self):
        assert ranges_overlap("2025-03-01", "2025-03-31", "2025-03-10", "2025-03-12") is True

    def test_overlap_is_symmetric(self):
        assert ranges_overlap("2025-03-10", "2025-03-12", "2025-03-01", "2025-03-10") is True
        assert ranges_overlap("2025-03-01", "2025-03-10", "2025-03-10", "2025-03-12") is True

    def test_strings_and_dates_mix(self):
        assert ranges_overlap(date(2025, 3, 1), "2025-03-05", "2025-03-03", date(2025, 3, 4))


class TestDayCount:

    def test_same_day_counts_as_one(self):
        assert inclusive_day_count("2025-03-01", "2025-03-01") == 1

    def test_week(self):
        assert inclusive_day_count("2025-03-01", "2025-03-07") == 7

    def test_reversed_range_uses_absolute_difference(self):
        assert inclusive_day_count("2025-03-07", "2025-03-01") == 7

    def test_crosses_month_boundary(self):
        assert inclusive_day_count("2025-02-27", "2025-03-02") == 4


class TestIterDays:

    def test_yields_every_day_inclusive(self):
        days = list(iter_days("2025-02-28", "2025-03-02"))
        assert days == [date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2)]

    def test_empty_when_reversed(self):
        assert list(iter_days("2025-03-02", "2025-03-01")) == []

    def test_day_in_range_includes_edges(self):
        assert day_in_range("2025-03-01", "2025-03-01", "2025-03-05")
        assert day_in_range("2025-03-05", "2025-03-01", "2025-03-05")
        assert not day_in_range("2025-03-06", "2025-03-01", "2025-03-05")


class TestOrderedRange:

    def test_normalizes_both_ends(self):
        assert ordered_range("2025-03-01", date(2025, 3, 1)) == (date(2025, 3, 1), date(2025, 3, 1))

    def test_rejects_end_before_start(self):
        with pytest.raises(InvalidRangeError, match="must not be after"):
            ordered_range("2025-03-02", "2025-03-01")


class TestValidateDateRange:

    def test_accepts_range_starting_today(self):
        validate_date_range("2025-03-01", "2025-03-01", today=date(2025, 3, 1))

    def test_rejects_start_after_end(self):
        with pytest.raises(InvalidRangeError):
            validate_date_range("2025-03-05", "2025-03-01", today=date(2025, 1, 1))

    def test_rejects_start_in_past(self):
        with pytest.raises(InvalidRangeError, match="in the past"):
            validate_date_range("2025-02-28", "2025-03-02", today=date(2025, 3, 1))


class TestToDate:

    def test_parses_iso_string(self):
        assert to_date("2025-03-01") == date(2025, 3, 1)

    def test_datetime_is_truncated(self):
        assert to_date(datetime(2025, 3, 1, 18, 30)) == date(2025, 3, 1)

    @pytest.mark.parametrize("value", ["01/03/2025", "not-a-date", "", 20250301])
    def test_rejects_malformed_input(self, value):
        with pytest.raises(InvalidRangeError):
            to_date(value)
