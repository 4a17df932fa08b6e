"""
Unit Tests - Time Window Resolution
"""
from datetime import datetime, time, timedelta

import pytest

from src.analytics.windows import (
    TimeWindow,
    optional_window,
    resolve_window,
    trailing_window,
    yesterday_window,
)

NOW = datetime(2025, 3, 15, 14, 30, 0)


class TestResolveWindow:
    """Tests for resolve_window"""

    def test_default_is_trailing_thirty_days(self):
        """No parameters resolves to the last 30 days"""
        window = resolve_window(now=NOW)

        assert window.end == NOW
        assert window.start == NOW - timedelta(days=30)

    def test_period_day_count(self):
        window = resolve_window(period="7", now=NOW)

        assert window.start == NOW - timedelta(days=7)
        assert window.end == NOW

    def test_yesterday_covers_one_calendar_day(self):
        """period=yesterday spans 00:00:00.000 to 23:59:59.999 of the same day"""
        window = resolve_window(period="yesterday", now=NOW)

        assert window.start.date() == window.end.date() == NOW.date() - timedelta(days=1)
        assert window.start.time() == time(0, 0, 0)
        assert window.end.time() == time(23, 59, 59, 999000)

    def test_start_date_as_day_count_ignores_end_date(self):
        """startDate=7 means seven days ago, whatever endDate says"""
        window = resolve_window(start_date="7", end_date="anything", now=NOW)

        assert window.start == NOW - timedelta(days=7)
        assert window.end == NOW

    def test_calendar_dates_expand_to_whole_days(self):
        window = resolve_window(start_date="2025-03-01", end_date="2025-03-10", now=NOW)

        assert window.start == datetime(2025, 3, 1, 0, 0, 0)
        assert window.end == datetime(2025, 3, 10, 23, 59, 59, 999000)

    def test_start_date_without_end_runs_to_now(self):
        window = resolve_window(start_date="2025-03-01", now=NOW)

        assert window.start == datetime(2025, 3, 1)
        assert window.end == NOW

    def test_iso_datetime_start(self):
        window = resolve_window(start_date="2025-03-01T08:15:00", now=NOW)

        assert window.start == datetime(2025, 3, 1, 8, 15)

    def test_period_ends_at_end_date(self):
        window = resolve_window(period="5", end_date="2025-03-10", now=NOW)

        assert window.end == datetime(2025, 3, 10, 23, 59, 59, 999000)
        assert window.start == window.end - timedelta(days=5)

    @pytest.mark.parametrize(
        "params",
        [
            {"start_date": "not-a-date"},
            {"start_date": "2025-13-45"},
            {"start_date": "0"},
            {"start_date": "-3"},
            {"period": "lastweek"},
            {"start_date": "2025-03-10", "end_date": "2025-03-01"},
            {"start_date": "20240101"},
            {"period": "1000000"},
        ],
    )
    def test_malformed_input_falls_back_to_default(self, params):
        """Bad date input never raises; it yields the trailing default"""
        window = resolve_window(now=NOW, **params)

        assert window == trailing_window(30, NOW)

    def test_custom_default_days(self):
        window = resolve_window(now=NOW, default_days=14)

        assert window.start == NOW - timedelta(days=14)


class TestOptionalWindow:
    """Tests for optional_window"""

    def test_no_parameters_means_all_time(self):
        assert optional_window() is None

    def test_any_parameter_resolves_a_window(self):
        window = optional_window(period="yesterday", now=NOW)

        assert window == yesterday_window(NOW)


class TestTimeWindow:
    """Tests for TimeWindow helpers"""

    def test_contains_is_inclusive(self):
        window = TimeWindow(start=datetime(2025, 1, 1), end=datetime(2025, 1, 2))

        assert window.contains(datetime(2025, 1, 1))
        assert window.contains(datetime(2025, 1, 2))
        assert not window.contains(datetime(2025, 1, 2, 0, 0, 1))

    def test_days(self):
        assert trailing_window(30, NOW).days == pytest.approx(30)

    def test_cache_key_is_second_precision(self):
        a = TimeWindow(start=datetime(2025, 1, 1, 0, 0, 0, 1), end=datetime(2025, 1, 2))
        b = TimeWindow(start=datetime(2025, 1, 1, 0, 0, 0, 999), end=datetime(2025, 1, 2))

        assert a.cache_key() == b.cache_key()

    def test_to_dict(self):
        window = TimeWindow(start=datetime(2025, 1, 1), end=datetime(2025, 1, 2))

        assert window.to_dict() == {"start": "2025-01-01T00:00:00", "end": "2025-01-02T00:00:00"}
