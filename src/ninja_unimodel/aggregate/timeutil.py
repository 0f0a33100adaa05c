"""ISO-8601 parsing and calendar-unit arithmetic for date groupings.

Parsing goes through pendulum; bucketing arithmetic is done on plain
timezone-aware :class:`datetime.datetime` values in UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

import pendulum

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimeComponent(str, Enum):
    """Calendar units a TimeComponent clause can bucket by."""

    YEAR = "year"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 date or datetime string into a UTC datetime.

    Raises:
        ValueError: If *text* is not an ISO-8601 date/datetime.
    """
    parsed = pendulum.parse(text)
    if isinstance(parsed, datetime):
        return to_utc(parsed)
    if isinstance(parsed, date):
        return datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc)
    raise ValueError(f"{text!r} is not an ISO-8601 timestamp")


def parse_duration(text: str) -> timedelta:
    """Parse an ISO-8601 duration with only fixed-length components.

    Year and month components have no fixed length and are rejected; use a
    TimeComponent grouping for those.

    Raises:
        ValueError: If *text* is not a fixed-length ISO-8601 duration.
    """
    parsed = pendulum.parse(text)
    if not isinstance(parsed, pendulum.Duration):
        raise ValueError(f"{text!r} is not an ISO-8601 duration")
    if parsed.years or parsed.months:
        raise ValueError(f"duration {text!r} has year or month components, which have no fixed length")
    return timedelta(seconds=parsed.total_seconds())


def to_utc(value: datetime) -> datetime:
    """Return *value* as a plain aware datetime in UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tzinfo=timezone.utc,
    )


def to_instant(value: Any) -> datetime:
    """Coerce a datetime, date or ISO-8601 string to a UTC datetime.

    Raises:
        TypeError: If *value* is not date-like.
        ValueError: If *value* is a string that does not parse as a timestamp.
    """
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        return parse_timestamp(value)
    raise TypeError(f"expected a date, datetime or ISO-8601 string, got {type(value).__name__}")


def format_instant(value: datetime) -> str:
    """Format a UTC datetime as ``YYYY-MM-DDTHH:MM:SS[.ffffff]Z``."""
    value = to_utc(value)
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d}"
        f"T{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return text + "Z"


def calendar_bucket_start(value: datetime, unit: TimeComponent, count: int = 1) -> datetime:
    """Return the start of the *count*-unit calendar bucket containing *value*.

    Years, months and weeks are counted from the start of the proleptic
    Gregorian calendar: year 1, January of year 1 and Monday 0001-01-01.
    Smaller units restart their count in the unit that contains them: days
    within the month, hours within the day, minutes within the hour and
    seconds within the minute. The last bucket of a containing unit is cut
    short when the unit does not divide evenly, so 2012-01-31 is its own
    two-day bucket and 2012-02-01 starts the next one.
    """
    value = to_utc(value)
    if unit is TimeComponent.YEAR:
        index = _floor_to(value.year - 1, count)
        return datetime(index + 1, 1, 1, tzinfo=timezone.utc)
    if unit is TimeComponent.MONTH:
        index = _floor_to((value.year - 1) * 12 + value.month - 1, count)
        return datetime(index // 12 + 1, index % 12 + 1, 1, tzinfo=timezone.utc)
    if unit is TimeComponent.WEEK:
        index = _floor_to((value.toordinal() - 1) // 7, count)
        day = date.fromordinal(index * 7 + 1)
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)

    if unit is TimeComponent.DAY:
        return datetime(value.year, value.month, _floor_to(value.day - 1, count) + 1, tzinfo=timezone.utc)
    if unit is TimeComponent.HOUR:
        return datetime(value.year, value.month, value.day, _floor_to(value.hour, count), tzinfo=timezone.utc)
    if unit is TimeComponent.MINUTE:
        return datetime(
            value.year, value.month, value.day, value.hour, _floor_to(value.minute, count), tzinfo=timezone.utc
        )
    return datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        _floor_to(value.second, count),
        tzinfo=timezone.utc,
    )


def _floor_to(index: int, count: int) -> int:
    return index - index % count
