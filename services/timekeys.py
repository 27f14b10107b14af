"""Conversions between calendar dates and the period keys used as document ids.

Four key formats are in use:

* hour  ``YYYY-MM-DDTHH`` (UTC hour bucket)
* day   ``YYYY-MM-DD``
* week  ``YYYY-Www`` (ISO 8601 week numbering, weeks start on Monday)
* month ``YYYY-MM``

Apart from reading the clock in :func:`as_utc`, all helpers are pure. Parsers raise :class:`errors.InvalidFormat` for strings
that do not match their format or that name a date the calendar does not have.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, List, Optional

from errors import InvalidFormat

_DAY_PATTERN = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)
_HOUR_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2})T(\d{2})", re.ASCII)
_WEEK_PATTERN = re.compile(r"(\d{4})-W(\d{2})", re.ASCII)
_MONTH_PATTERN = re.compile(r"(\d{4})-(\d{2})", re.ASCII)


def day_key(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def parse_day_key(key: str) -> date:
    match = _DAY_PATTERN.fullmatch(key or "")
    if not match:
        raise InvalidFormat(f"Invalid date format: {key!r}. Expected YYYY-MM-DD")
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise InvalidFormat(f"Invalid calendar date: {key!r}") from exc


def hour_key(value: date, hour: int) -> str:
    if not 0 <= hour <= 23:
        raise InvalidFormat(f"Hour out of range: {hour}")
    return f"{day_key(value)}T{hour:02d}"


def parse_hour_key(key: str) -> tuple[date, int]:
    match = _HOUR_PATTERN.fullmatch(key or "")
    if not match:
        raise InvalidFormat(f"Invalid hour key: {key!r}. Expected YYYY-MM-DDTHH")
    hour = int(match.group(2))
    if hour > 23:
        raise InvalidFormat(f"Hour out of range in key {key!r}")
    return parse_day_key(match.group(1)), hour


def hour_keys_for_day(value: date) -> List[str]:
    return [hour_key(value, hour) for hour in range(24)]


def iso_week_key(value: date) -> str:
    iso = value.isocalendar()
    return f"{iso[0]:04d}-W{iso[1]:02d}"


def parse_iso_week_key(key: str) -> date:
    """Return the Monday of the ISO week named by ``key``."""
    match = _WEEK_PATTERN.fullmatch(key or "")
    if not match:
        raise InvalidFormat(f"Invalid ISO week format: {key!r}. Expected YYYY-Www")
    year, week = int(match.group(1)), int(match.group(2))
    try:
        return date.fromisocalendar(year, week, 1)
    except ValueError as exc:
        raise InvalidFormat(f"ISO year {year} has no week {week:02d}") from exc


def dates_in_iso_week(key: str) -> List[date]:
    monday = parse_iso_week_key(key)
    return [monday + timedelta(days=offset) for offset in range(7)]


def month_key(value: date) -> str:
    return value.strftime("%Y-%m")


def parse_month_key(key: str) -> date:
    """Return the first day of the month named by ``key``."""
    match = _MONTH_PATTERN.fullmatch(key or "")
    if not match:
        raise InvalidFormat(f"Invalid month format: {key!r}. Expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidFormat(f"Month out of range in key {key!r}")
    return date(year, month, 1)


def dates_in_month(key: str) -> List[date]:
    first = parse_month_key(key)
    _, length = calendar.monthrange(first.year, first.month)
    return [first + timedelta(days=offset) for offset in range(length)]


def week_overlaps_month(week: str, month: str) -> bool:
    """True when the closed week interval intersects the closed month interval."""
    monday = parse_iso_week_key(week)
    sunday = monday + timedelta(days=6)
    days = dates_in_month(month)
    return monday <= days[-1] and sunday >= days[0]


def iter_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def previous_day(today: date) -> str:
    return day_key(today - timedelta(days=1))


def previous_iso_week(today: date) -> str:
    return iso_week_key(today - timedelta(days=7))


def previous_month(today: date) -> str:
    return month_key(today.replace(day=1) - timedelta(days=1))


def as_utc(moment: Optional[datetime] = None) -> datetime:
    """Normalise ``moment`` (default: now) to an aware UTC datetime."""
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
