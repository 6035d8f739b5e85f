"""Calendar-day normalization shared by every habit computation.

``datetime.date`` is the one canonical calendar-day value; the ``YYYY-MM-DD``
key is always ``date.isoformat()`` of it. Timestamps are reduced with local
calendar fields, never UTC fields, so a record logged at 00:30 local time stays
on its own day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator, Union

from ..errors import InvariantViolation

DayLike = Union[date, datetime, str]

SUNDAY = 6  # date.weekday() numbering
WINDOW_PRESETS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}


def to_calendar_day(value: DayLike) -> date:
    """Return the local calendar day for a date, datetime or ISO string.

    Naive datetimes are taken as local time; aware datetimes are converted to
    local time first. A bare ``YYYY-MM-DD`` string is already a calendar day and
    is returned without any timezone shift.
    """
    # datetime subclasses date, so it must be checked first.
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return to_calendar_day(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError as exc:
            raise InvariantViolation(f"Not a calendar day: {value!r}") from exc
    raise InvariantViolation(f"Cannot interpret {value!r} as a calendar day")


def day_key(value: DayLike) -> str:
    """Return the zero-padded ``YYYY-MM-DD`` key for a value."""

    return to_calendar_day(value).isoformat()


def today() -> date:
    """Return the current local calendar day."""

    return date.today()


def iter_days(start: DayLike, end: DayLike) -> Iterator[date]:
    """Yield every calendar day from start to end inclusive (nothing if start > end)."""

    cursor = to_calendar_day(start)
    last = to_calendar_day(end)
    while cursor <= last:
        yield cursor
        cursor += timedelta(days=1)


def days_between(start: DayLike, end: DayLike) -> int:
    """Return the inclusive number of days in [start, end], 0 when start > end."""

    span = (to_calendar_day(end) - to_calendar_day(start)).days + 1
    return max(span, 0)


def week_start(value: DayLike, *, first_weekday: int = SUNDAY) -> date:
    """Return the first day of the week containing value (Sunday-start by default)."""

    day = to_calendar_day(value)
    return day - timedelta(days=(day.weekday() - first_weekday) % 7)


def trailing_window(days: int, end: DayLike | None = None) -> tuple[date, date]:
    """Return the inclusive (start, end) window of the last ``days`` days ending at end."""

    if days < 1:
        raise InvariantViolation(f"Window must cover at least one day, got {days}")
    last = to_calendar_day(end) if end is not None else today()
    return last - timedelta(days=days - 1), last


def preset_window(name: str, end: DayLike | None = None) -> tuple[date, date]:
    """Resolve a named preset (``7d``, ``30d``, ``90d``, ``1y``) to a window."""

    try:
        days = WINDOW_PRESETS[name]
    except KeyError as exc:
        choices = ", ".join(WINDOW_PRESETS)
        raise InvariantViolation(f"Unknown window {name!r}; expected one of {choices}") from exc
    return trailing_window(days, end)


__all__ = [
    "DayLike",
    "SUNDAY",
    "WINDOW_PRESETS",
    "day_key",
    "days_between",
    "iter_days",
    "preset_window",
    "to_calendar_day",
    "today",
    "trailing_window",
    "week_start",
]
