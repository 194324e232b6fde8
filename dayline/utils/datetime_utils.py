"""Utilities for day keys, RFC3339 timestamps and UTC datetimes."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

UTC = timezone.utc
DAY_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_rfc3339(s: Optional[str]) -> Optional[datetime]:
    """Parse a RFC3339 string and return a timezone-aware UTC datetime."""

    if not s:
        return None

    value = s.strip()
    if not value:
        return None

    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    if "." in value:
        head, tail = value.split(".", 1)
        if "+" in tail:
            frac, tz = tail.split("+", 1)
            sign = "+"
        elif "-" in tail:
            frac, tz = tail.split("-", 1)
            sign = "-"
        else:
            frac, tz = tail, "00:00"
            sign = "+"
        frac = (frac + "000000")[:6]
        value = f"{head}.{frac}{sign}{tz}"
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None

    return ensure_utc(dt)


def to_rfc3339_utc(dt: Optional[Union[datetime, str]]) -> Optional[str]:
    """Convert a datetime (or string) to RFC3339 in UTC with second precision."""

    if dt is None:
        return None
    if isinstance(dt, str):
        dt = parse_rfc3339(dt)
    if dt is None:
        return None
    dt = ensure_utc(dt)
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


# ----- day keys -----
def parse_day(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` day key. Raises ``ValueError`` on anything else."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value).strip()[:10], DAY_FORMAT).date()


def day_key(value: Union[str, date]) -> str:
    return parse_day(value).strftime(DAY_FORMAT)


def shift_day(value: Union[str, date], days: int) -> str:
    return day_key(parse_day(value) + timedelta(days=days))


def previous_day(value: Union[str, date]) -> str:
    return shift_day(value, -1)


def days_between(earlier: Union[str, date], later: Union[str, date]) -> int:
    return (parse_day(later) - parse_day(earlier)).days


def today_key(tz_name: str = "UTC", *, now: Optional[datetime] = None) -> str:
    """Day key for ``now`` (default: current time) as seen in ``tz_name``."""

    moment = ensure_utc(now) if now is not None else utc_now()
    return moment.astimezone(ZoneInfo(tz_name)).strftime(DAY_FORMAT)


def weekday_sunday_first(value: Union[str, date]) -> int:
    """0=Sunday ... 6=Saturday."""
    return (parse_day(value).weekday() + 1) % 7


# ----- clock times -----
def minutes_of(clock: str) -> int:
    hours, minutes = clock.strip().split(":")[:2]
    return int(hours) * 60 + int(minutes)


def duration_minutes(start: Optional[str], end: Optional[str]) -> int:
    if not start or not end:
        return 0
    return minutes_of(end) - minutes_of(start)


__all__ = [
    "UTC",
    "DAY_FORMAT",
    "day_key",
    "days_between",
    "duration_minutes",
    "ensure_utc",
    "minutes_of",
    "parse_day",
    "parse_rfc3339",
    "previous_day",
    "shift_day",
    "to_rfc3339_utc",
    "today_key",
    "utc_now",
    "weekday_sunday_first",
]
