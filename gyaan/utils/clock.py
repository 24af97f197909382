"""
Calendar helpers shared by the aggregator and the study-time tracker

Naive timestamps are treated as UTC everywhere; the database stores naive UTC.
"""
from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from gyaan.config import settings

Clock = Callable[[], datetime]


def local_now() -> datetime:
    """Current wall-clock time in the configured timezone"""
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def to_utc_naive(value: datetime) -> datetime:
    """Normalise a timestamp for storage"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_local(value: datetime, now: datetime) -> datetime:
    """Express ``value`` in the timezone of ``now``"""
    if now.tzinfo is None:
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(now.tzinfo)


def local_date(value: datetime, now: datetime) -> date:
    """Calendar date of ``value`` as seen from ``now``'s timezone"""
    return as_local(value, now).date()


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def same_month(value: datetime, now: datetime) -> bool:
    local = as_local(value, now)
    return (local.year, local.month) == (now.year, now.month)


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


def format_hours_minutes(total_seconds: float) -> str:
    """Compact month-to-date display, e.g. ``"3h 25m"``"""
    total_seconds = max(int(total_seconds), 0)
    hours, remainder = divmod(total_seconds, 3600)
    return f"{hours}h {remainder // 60}m"


def format_hms(total_seconds: float) -> str:
    """Stopwatch display, e.g. ``"00:25:00"``"""
    total_seconds = max(int(total_seconds), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
