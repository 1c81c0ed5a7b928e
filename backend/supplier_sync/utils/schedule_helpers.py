"""
Schedule helpers — next-run computation and display formatting.
Version: 1.0.0
"""
import math
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from supplier_sync.schemas.pricing import SchedulerConfig


def parse_hhmm(value: str) -> tuple[int, int]:
    """Split a validated "HH:MM" string into (hour, minute)."""
    hour, minute = value.split(":")
    return int(hour), int(minute)


def next_daily_run(now: datetime, hhmm: str, tz_name: str = "UTC") -> datetime:
    """
    Next occurrence of the wall-clock time hhmm in tz_name strictly after now.

    Returned in UTC. A time equal to now rolls over to the next day.
    """
    tz = ZoneInfo(tz_name)
    hour, minute = parse_hhmm(hhmm)
    local_now = now.astimezone(tz)
    candidate = datetime.combine(local_now.date(), datetime.min.time(), tzinfo=tz).replace(
        hour=hour, minute=minute
    )
    if candidate <= local_now:
        next_day = local_now.date() + timedelta(days=1)
        candidate = datetime.combine(next_day, datetime.min.time(), tzinfo=tz).replace(
            hour=hour, minute=minute
        )
    return candidate.astimezone(timezone.utc)


def compute_next_run(
    schedule_type: str, now: datetime, config: SchedulerConfig, tz_name: str = "UTC"
) -> datetime:
    """Next fire time for a schedule type under config."""
    if schedule_type == "full_sync":
        return next_daily_run(now, config.full_sync_time, tz_name)
    if schedule_type == "incremental_sync":
        return now + timedelta(hours=config.incremental_sync_interval_hours)
    if schedule_type == "process_requests":
        return now + timedelta(minutes=config.request_processing_interval_minutes)
    raise ValueError(f"Unknown schedule type: {schedule_type}")


def seconds_until(target: datetime, now: datetime) -> float:
    return max(0.0, (target - now).total_seconds())


def format_time_remaining(seconds: int) -> str:
    """Human-readable wait: "1h 5m", "4m 10s" or "30s"."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def rate_limit_message(remaining_seconds: int) -> str:
    """Display message for a rate-limited manual action."""
    minutes = max(1, math.ceil(remaining_seconds / 60))
    unit = "minute" if minutes == 1 else "minutes"
    return f"Rate limited, retry in {minutes} {unit}"
