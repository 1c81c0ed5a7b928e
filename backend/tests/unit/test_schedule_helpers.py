"""
Unit tests for schedule helpers — next-run computation and display formatting.

Tests cover:
- next_daily_run rolls to tomorrow when the time has passed or equals now
- timezone-aware daily runs returned in UTC
- compute_next_run for each schedule type
- format_time_remaining and rate_limit_message wording

Version: 1.0.0
"""
from datetime import datetime, timedelta, timezone

import pytest

from supplier_sync.schemas.pricing import SchedulerConfig
from supplier_sync.utils.schedule_helpers import (
    compute_next_run,
    format_time_remaining,
    next_daily_run,
    parse_hhmm,
    rate_limit_message,
    seconds_until,
)

UTC = timezone.utc


@pytest.mark.unit
class TestNextDailyRun:

    def test_later_today(self):
        now = datetime(2024, 1, 15, 1, 0, tzinfo=UTC)
        assert next_daily_run(now, "02:00") == datetime(2024, 1, 15, 2, 0, tzinfo=UTC)

    def test_already_passed_rolls_to_tomorrow(self):
        now = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)
        assert next_daily_run(now, "02:00") == datetime(2024, 1, 16, 2, 0, tzinfo=UTC)

    def test_exact_time_rolls_to_tomorrow(self):
        now = datetime(2024, 1, 15, 2, 0, tzinfo=UTC)
        assert next_daily_run(now, "02:00") == datetime(2024, 1, 16, 2, 0, tzinfo=UTC)

    def test_month_boundary(self):
        now = datetime(2024, 1, 31, 23, 30, tzinfo=UTC)
        assert next_daily_run(now, "00:15") == datetime(2024, 2, 1, 0, 15, tzinfo=UTC)

    def test_local_timezone(self):
        # 02:00 in New York during EST is 07:00 UTC
        now = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)
        assert next_daily_run(now, "02:00", "America/New_York") == datetime(2024, 1, 15, 7, 0, tzinfo=UTC)

    def test_result_is_utc(self):
        result = next_daily_run(datetime(2024, 6, 1, tzinfo=UTC), "12:00", "Europe/Berlin")
        assert result.utcoffset() == timedelta(0)


@pytest.mark.unit
class TestComputeNextRun:

    def test_full_sync_uses_daily_time(self):
        config = SchedulerConfig(full_sync_time="04:30")
        now = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)
        assert compute_next_run("full_sync", now, config) == datetime(2024, 1, 15, 4, 30, tzinfo=UTC)

    def test_incremental_interval(self):
        config = SchedulerConfig(incremental_sync_interval_hours=4)
        now = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)
        assert compute_next_run("incremental_sync", now, config) == now + timedelta(hours=4)

    def test_request_interval(self):
        config = SchedulerConfig(request_processing_interval_minutes=10)
        now = datetime(2024, 1, 15, 3, 0, tzinfo=UTC)
        assert compute_next_run("process_requests", now, config) == now + timedelta(minutes=10)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            compute_next_run("weekly", datetime.now(UTC), SchedulerConfig())


@pytest.mark.unit
class TestFormatting:

    def test_parse_hhmm(self):
        assert parse_hhmm("07:05") == (7, 5)

    def test_seconds_until_never_negative(self):
        now = datetime(2024, 1, 15, tzinfo=UTC)
        assert seconds_until(now - timedelta(seconds=5), now) == 0.0
        assert seconds_until(now + timedelta(seconds=5), now) == 5.0

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (30, "30s"),
        (250, "4m 10s"),
        (3900, "1h 5m"),
        (-4, "0s"),
    ])
    def test_format_time_remaining(self, seconds, expected):
        assert format_time_remaining(seconds) == expected

    @pytest.mark.parametrize("seconds,expected", [
        (1, "Rate limited, retry in 1 minute"),
        (60, "Rate limited, retry in 1 minute"),
        (61, "Rate limited, retry in 2 minutes"),
        (600, "Rate limited, retry in 10 minutes"),
        (0, "Rate limited, retry in 1 minute"),
    ])
    def test_rate_limit_message(self, seconds, expected):
        assert rate_limit_message(seconds) == expected
