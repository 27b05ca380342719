"""
Date and time utilities.

All "current year", day-bound and calendar-month computations go through a
``Clock`` bound to the application timezone (``APP_TIMEZONE``), so that the
year embedded in a control number, the inclusive ``startDate``/``endDate``
bounds and the monthly histogram use one convention. Timestamps are stored
timezone-aware; MongoDB persists them as UTC.
"""

from datetime import date, datetime, time, tzinfo
from typing import Optional, Tuple

from dateutil import tz

END_OF_DAY = time(23, 59, 59, 999000)


class TimezoneError(ValueError):
    """Raised when a timezone name cannot be resolved."""


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Resolve an IANA timezone name (``"UTC"``, ``"Asia/Manila"``).

    Raises:
        TimezoneError: If the name is unknown
    """
    if not name or name.upper() == "UTC":
        return tz.UTC
    resolved = tz.gettz(name)
    if resolved is None:
        raise TimezoneError(f"Unknown timezone: {name}")
    return resolved


class Clock:
    """Source of "now" in the application timezone."""

    def __init__(self, timezone_name: str = "UTC") -> None:
        self.timezone_name = timezone_name or "UTC"
        self.tzinfo = resolve_timezone(self.timezone_name)

    def now(self) -> datetime:
        return datetime.now(self.tzinfo)

    def current_year(self) -> int:
        return self.now().year

    def localize(self, value: datetime) -> datetime:
        """Express ``value`` in the application timezone (naive values are taken as UTC)."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz.UTC)
        return value.astimezone(self.tzinfo)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.timezone_name!r})"


def start_of_day(day: date, zone: tzinfo) -> datetime:
    """``00:00:00.000`` of ``day`` in ``zone``."""
    return datetime.combine(day, time.min, tzinfo=zone)


def end_of_day(day: date, zone: tzinfo) -> datetime:
    """``23:59:59.999`` of ``day`` in ``zone`` (millisecond precision, as MongoDB stores)."""
    return datetime.combine(day, END_OF_DAY, tzinfo=zone)


def day_bounds(start: Optional[date], end: Optional[date], zone: tzinfo) -> Tuple[Optional[datetime], Optional[datetime]]:
    return (
        start_of_day(start, zone) if start is not None else None,
        end_of_day(end, zone) if end is not None else None,
    )


def year_window(end_year: int, size: int) -> range:
    """Trailing ``size`` years ending at ``end_year``, ascending."""
    return range(end_year - size + 1, end_year + 1)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz.UTC)
    return value.isoformat(timespec="milliseconds")


def utc_now() -> datetime:
    return datetime.now(tz.UTC)


__all__ = [
    "TimezoneError",
    "resolve_timezone",
    "Clock",
    "start_of_day",
    "end_of_day",
    "day_bounds",
    "year_window",
    "to_iso",
    "utc_now",
]
