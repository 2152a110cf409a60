"""Unit tests for recurring menu date generation."""
from datetime import date

import pytest

from hostelsync.recurrence import Frequency, generate_dates


class TestGenerateDates:
    """Calendar dates for each frequency."""

    def test_daily_is_inclusive(self):
        dates = generate_dates(date(2025, 11, 10), date(2025, 11, 14), Frequency.DAILY)

        assert dates == [date(2025, 11, day) for day in range(10, 15)]

    def test_weekly_uses_sunday_as_zero(self):
        dates = generate_dates(date(2025, 11, 9), date(2025, 11, 22), "WEEKLY", [1, 3])

        assert dates == [date(2025, 11, 10), date(2025, 11, 12), date(2025, 11, 17), date(2025, 11, 19)]

    def test_weekly_sunday(self):
        dates = generate_dates(date(2025, 11, 1), date(2025, 11, 30), "WEEKLY", [0])

        assert [day.day for day in dates] == [2, 9, 16, 23, 30]

    def test_weekdays_skip_weekend(self):
        dates = generate_dates(date(2025, 11, 8), date(2025, 11, 16), Frequency.WEEKDAYS)

        assert all(day.weekday() < 5 for day in dates)
        assert len(dates) == 5

    def test_weekends_only(self):
        dates = generate_dates(date(2025, 11, 8), date(2025, 11, 16), Frequency.WEEKENDS)

        assert dates == [date(2025, 11, 8), date(2025, 11, 9), date(2025, 11, 15), date(2025, 11, 16)]

    def test_reversed_range_is_empty(self):
        assert generate_dates(date(2025, 11, 10), date(2025, 11, 1), Frequency.DAILY) == []

    def test_no_matching_day_is_empty(self):
        # Mon 10th to Tue 11th has no Friday.
        assert generate_dates(date(2025, 11, 10), date(2025, 11, 11), "WEEKLY", [5]) == []

    def test_weekly_without_days_raises(self):
        with pytest.raises(ValueError):
            generate_dates(date(2025, 11, 10), date(2025, 11, 20), Frequency.WEEKLY)

    def test_unknown_frequency_raises(self):
        with pytest.raises(ValueError):
            generate_dates(date(2025, 11, 10), date(2025, 11, 20), "MONTHLY")
