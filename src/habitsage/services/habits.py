"""Habit consistency math: record lookup, streaks and completion rates.

Every function accepts either a ``Habit`` (its ``records`` are used, and its
``created_at``/``frequency`` where relevant) or a plain iterable of
``HabitRecord`` rows. Records may arrive in any order and may contain duplicate
days; the first record found for a day is the one that counts.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Union

from ..errors import InvariantViolation
from ..logging_config import get_logger
from ..models.habit import Habit, HabitRecord
from .calendar_days import DayLike, days_between, to_calendar_day, today, week_start

logger = get_logger(__name__)

DEFAULT_LOOKBACK_DAYS = 365
DEFAULT_RATE_PRECISION = 1

RecordSource = Union[Habit, Iterable[HabitRecord]]


def _records_of(source: RecordSource) -> list[HabitRecord]:
    records = getattr(source, "records", source)
    return list(records or [])


def _created_on(source: Any) -> date | None:
    created = getattr(source, "created_at", None)
    return to_calendar_day(created) if created is not None else None


def index_by_day(source: RecordSource) -> dict[date, HabitRecord]:
    """Map each calendar day to its first record."""

    by_day: dict[date, HabitRecord] = {}
    for record in _records_of(source):
        by_day.setdefault(to_calendar_day(record.day), record)
    return by_day


def find_duplicate_days(source: RecordSource) -> list[date]:
    """Return days that carry more than one record, oldest first."""

    seen: set[date] = set()
    duplicates: set[date] = set()
    for record in _records_of(source):
        day = to_calendar_day(record.day)
        if day in seen:
            duplicates.add(day)
        seen.add(day)
    return sorted(duplicates)


def record_for_day(source: RecordSource, day: DayLike) -> HabitRecord | None:
    """Return the record for ``day``, or None.

    Duplicate same-day records are a data-integrity problem; the first match
    wins and the duplicate is logged.
    """
    target = to_calendar_day(day)
    match: HabitRecord | None = None
    for record in _records_of(source):
        if to_calendar_day(record.day) != target:
            continue
        if match is None:
            match = record
            continue
        logger.warning(
            "Duplicate habit records for one day; using the first",
            extra={"habit_id": record.habit_id, "day": target.isoformat()},
        )
        break
    return match


def completed_days(source: RecordSource) -> set[date]:
    """Return the days whose (first) record is marked completed."""

    return {day for day, record in index_by_day(source).items() if record.is_completed}


def current_streak(
    source: RecordSource,
    reference_day: DayLike | None = None,
    *,
    created_on: DayLike | None = None,
    max_days: int = DEFAULT_LOOKBACK_DAYS,
) -> int:
    """Count consecutive completed days ending at ``reference_day`` (default today).

    A missing or incomplete record on the reference day means 0. The walk stops
    at the first gap, before the habit's creation day, or after ``max_days``.
    """
    reference = to_calendar_day(reference_day) if reference_day is not None else today()
    floor = to_calendar_day(created_on) if created_on is not None else _created_on(source)
    done = completed_days(source)

    streak = 0
    cursor = reference
    while streak < max_days and cursor in done:
        if floor is not None and cursor < floor:
            break
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(source: RecordSource) -> int:
    """Return the longest run of consecutive completed days in the whole history."""

    longest = 0
    run = 0
    last_day: date | None = None
    for day in sorted(completed_days(source)):
        if last_day is not None and day == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = day
    return longest


def compute_streaks(
    source: RecordSource, *, today: DayLike | None = None, max_days: int = DEFAULT_LOOKBACK_DAYS
) -> tuple[int, int]:
    """Return (current_streak, longest_streak)."""

    return current_streak(source, today, max_days=max_days), longest_streak(source)


def eligible_days(start: DayLike, end: DayLike, frequency: str = "daily") -> int:
    """Return how many completion opportunities the window holds.

    Daily habits get one per day; weekly habits get one per (Sunday-start)
    calendar week the window touches.
    """
    first = to_calendar_day(start)
    last = to_calendar_day(end)
    if first > last:
        return 0
    if frequency == "daily":
        return days_between(first, last)
    if frequency == "weekly":
        return (week_start(last) - week_start(first)).days // 7 + 1
    raise InvariantViolation(f"Unknown habit frequency: {frequency!r}")


def rate_percent(
    completed: int, eligible: int, *, precision: int = DEFAULT_RATE_PRECISION
) -> float:
    """Return completed/eligible as a percentage clamped to [0, 100].

    Rounded half-up to ``precision`` decimals; an empty denominator yields 0.0.
    """
    if eligible <= 0:
        return 0.0
    raw = Decimal(completed) * 100 / Decimal(eligible)
    clamped = min(max(raw, Decimal(0)), Decimal(100))
    quantum = Decimal(1).scaleb(-precision)
    return float(clamped.quantize(quantum, rounding=ROUND_HALF_UP))


def count_completed(source: RecordSource, start: DayLike, end: DayLike) -> int:
    """Count distinct completed days inside [start, end]."""

    first = to_calendar_day(start)
    last = to_calendar_day(end)
    return sum(1 for day in completed_days(source) if first <= day <= last)


def completed_opportunities(
    source: RecordSource, start: DayLike, end: DayLike, frequency: str = "daily"
) -> int:
    """Count the eligible opportunities in [start, end] that were met.

    The unit matches :func:`eligible_days`: completed days for daily habits,
    Sunday-start weeks holding at least one completion for weekly habits.
    """
    if frequency == "daily":
        return count_completed(source, start, end)
    if frequency == "weekly":
        first = to_calendar_day(start)
        last = to_calendar_day(end)
        return len({week_start(day) for day in completed_days(source) if first <= day <= last})
    raise InvariantViolation(f"Unknown habit frequency: {frequency!r}")


def completion_rate(
    source: RecordSource,
    window_start: DayLike,
    window_end: DayLike,
    *,
    frequency: str | None = None,
    precision: int = DEFAULT_RATE_PRECISION,
) -> float:
    """Percentage of eligible days in the inclusive window that were completed."""

    freq = frequency or getattr(source, "frequency", None) or "daily"
    eligible = eligible_days(window_start, window_end, freq)
    if eligible == 0:
        logger.warning(
            "Empty completion window; rate is 0",
            extra={"window_start": str(window_start), "window_end": str(window_end)},
        )
        return 0.0
    completed = completed_opportunities(source, window_start, window_end, freq)
    return rate_percent(completed, eligible, precision=precision)


__all__ = [
    "DEFAULT_LOOKBACK_DAYS",
    "DEFAULT_RATE_PRECISION",
    "RecordSource",
    "completed_days",
    "completed_opportunities",
    "completion_rate",
    "compute_streaks",
    "count_completed",
    "current_streak",
    "eligible_days",
    "find_duplicate_days",
    "index_by_day",
    "longest_streak",
    "rate_percent",
    "record_for_day",
]
