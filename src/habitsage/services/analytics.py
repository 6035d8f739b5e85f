"""Habit rollups for dashboards: leaderboards, categories, trends and heatmaps.

All percentages go through :func:`habits.rate_percent` so every view agrees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable, Sequence

from ..models.habit import Habit
from . import habits as habit_math
from .calendar_days import DayLike, iter_days, to_calendar_day, today, week_start

ON_TRACK_THRESHOLD = 80.0
NEEDS_ATTENTION_THRESHOLD = 50.0

CompletionCheck = Callable[[Habit, date], bool]


@dataclass(slots=True)
class HabitPerformance:
    """Per-habit numbers for one window."""

    habit_id: int | None
    name: str
    category: str
    color: str
    completed: int
    eligible: int
    completion_rate: float
    current_streak: int
    longest_streak: int


@dataclass(slots=True)
class CategoryRollup:
    category: str
    habit_count: int
    completed: int
    eligible: int
    completion_rate: float


@dataclass(slots=True)
class DayStatus:
    """How many of the given habits were completed on one day."""

    day: date
    completed: int
    total: int
    completion_rate: float


@dataclass(slots=True)
class WeekStatus:
    week_start: date
    week_end: date
    completed_days: int
    completion_rate: float


@dataclass(slots=True)
class HeatmapCell:
    day: date
    has_record: bool
    is_completed: bool
    notes: str | None = None


@dataclass(slots=True)
class TodayStatus:
    """Active habits split by whether they are done on a day."""

    day: date
    completed: list[Habit] = field(default_factory=list)
    pending: list[Habit] = field(default_factory=list)


@dataclass(slots=True)
class AnalyticsSummary:
    window_start: date
    window_end: date
    total_habits: int
    overall_completion_rate: float
    longest_active_streak: int
    active_streaks: int
    leaderboard: list[HabitPerformance]
    categories: list[CategoryRollup]
    on_track: list[HabitPerformance]
    needs_attention: list[HabitPerformance]


def _frequency(habit: Habit) -> str:
    return habit.frequency or "daily"


def habit_performance(
    habit: Habit,
    start: DayLike,
    end: DayLike,
    *,
    reference_day: DayLike | None = None,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
    max_days: int = habit_math.DEFAULT_LOOKBACK_DAYS,
) -> HabitPerformance:
    """Compute window numbers and streaks for one habit."""

    frequency = _frequency(habit)
    eligible = habit_math.eligible_days(start, end, frequency)
    completed = habit_math.completed_opportunities(habit, start, end, frequency)
    return HabitPerformance(
        habit_id=habit.id,
        name=habit.name,
        category=habit.category,
        color=habit.color,
        completed=completed,
        eligible=eligible,
        completion_rate=habit_math.rate_percent(completed, eligible, precision=precision),
        current_streak=habit_math.current_streak(habit, reference_day, max_days=max_days),
        longest_streak=habit_math.longest_streak(habit),
    )


def habit_leaderboard(
    habits: Iterable[Habit],
    start: DayLike,
    end: DayLike,
    *,
    reference_day: DayLike | None = None,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
    max_days: int = habit_math.DEFAULT_LOOKBACK_DAYS,
) -> list[HabitPerformance]:
    """Return per-habit performance, best completion rate first (ties by name)."""

    rows = [
        habit_performance(
            h, start, end, reference_day=reference_day, precision=precision, max_days=max_days
        )
        for h in habits
    ]
    return sorted(rows, key=lambda row: (-row.completion_rate, row.name.lower()))


def split_by_performance(
    rows: Sequence[HabitPerformance],
    *,
    on_track: float = ON_TRACK_THRESHOLD,
    needs_attention: float = NEEDS_ATTENTION_THRESHOLD,
) -> tuple[list[HabitPerformance], list[HabitPerformance]]:
    """Return (on_track, needs_attention) buckets; the middle band is in neither."""

    good = [row for row in rows if row.completion_rate >= on_track]
    weak = [row for row in rows if row.completion_rate < needs_attention]
    return good, weak


def category_rollup(
    habits: Iterable[Habit],
    start: DayLike,
    end: DayLike,
    *,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
) -> list[CategoryRollup]:
    """Pool completed and eligible counts per category, sorted by category name."""

    totals: dict[str, list[int]] = {}
    for habit in habits:
        bucket = totals.setdefault(habit.category, [0, 0, 0])
        bucket[0] += 1
        frequency = _frequency(habit)
        bucket[1] += habit_math.completed_opportunities(habit, start, end, frequency)
        bucket[2] += habit_math.eligible_days(start, end, frequency)

    return [
        CategoryRollup(
            category=category,
            habit_count=count,
            completed=completed,
            eligible=eligible,
            completion_rate=habit_math.rate_percent(completed, eligible, precision=precision),
        )
        for category, (count, completed, eligible) in sorted(totals.items())
    ]


def daily_trend(
    habits: Sequence[Habit],
    start: DayLike,
    end: DayLike,
    *,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
) -> list[DayStatus]:
    """Return one DayStatus per day in the window across the given habits."""

    done_by_habit = [habit_math.completed_days(h) for h in habits]
    total = len(habits)
    series: list[DayStatus] = []
    for day in iter_days(start, end):
        completed = sum(1 for done in done_by_habit if day in done)
        series.append(
            DayStatus(
                day=day,
                completed=completed,
                total=total,
                completion_rate=habit_math.rate_percent(completed, total, precision=precision),
            )
        )
    return series


def weekly_comparison(
    habit: Habit,
    *,
    weeks: int = 8,
    reference_day: DayLike | None = None,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
) -> list[WeekStatus]:
    """Return the last ``weeks`` Sunday-start weeks for a habit, oldest first."""

    anchor = week_start(reference_day if reference_day is not None else today())
    rows: list[WeekStatus] = []
    for offset in range(weeks - 1, -1, -1):
        first = anchor - timedelta(weeks=offset)
        last = first + timedelta(days=6)
        rows.append(
            WeekStatus(
                week_start=first,
                week_end=last,
                completed_days=habit_math.count_completed(habit, first, last),
                completion_rate=habit_math.completion_rate(
                    habit, first, last, frequency=_frequency(habit), precision=precision
                ),
            )
        )
    return rows


def year_heatmap(habit: Habit, year: int) -> list[HeatmapCell]:
    """Return one cell per day of ``year`` describing the habit's record."""

    by_day = habit_math.index_by_day(habit)
    cells: list[HeatmapCell] = []
    for day in iter_days(date(year, 1, 1), date(year, 12, 31)):
        record = by_day.get(day)
        cells.append(
            HeatmapCell(
                day=day,
                has_record=record is not None,
                is_completed=bool(record and record.is_completed),
                notes=record.notes if record is not None else None,
            )
        )
    return cells


def today_status(
    habits: Iterable[Habit],
    day: DayLike | None = None,
    *,
    is_done: CompletionCheck | None = None,
) -> TodayStatus:
    """Split active habits into completed/pending for a day.

    ``is_done`` lets callers layer optimistic state on top of stored records,
    e.g. ``ToggleStore.displayed``.
    """
    target = to_calendar_day(day) if day is not None else today()

    def _from_records(habit: Habit, when: date) -> bool:
        record = habit_math.record_for_day(habit, when)
        return bool(record and record.is_completed)

    check = is_done or _from_records
    status = TodayStatus(day=target)
    for habit in habits:
        if not habit.is_active:
            continue
        (status.completed if check(habit, target) else status.pending).append(habit)
    return status


def summarize(
    habits: Sequence[Habit],
    start: DayLike,
    end: DayLike,
    *,
    reference_day: DayLike | None = None,
    precision: int = habit_math.DEFAULT_RATE_PRECISION,
    max_days: int = habit_math.DEFAULT_LOOKBACK_DAYS,
) -> AnalyticsSummary:
    """Build the full analytics payload for a window."""

    board = habit_leaderboard(
        habits, start, end, reference_day=reference_day, precision=precision, max_days=max_days
    )
    completed = sum(row.completed for row in board)
    eligible = sum(row.eligible for row in board)
    on_track, needs_attention = split_by_performance(board)
    return AnalyticsSummary(
        window_start=to_calendar_day(start),
        window_end=to_calendar_day(end),
        total_habits=len(habits),
        overall_completion_rate=habit_math.rate_percent(completed, eligible, precision=precision),
        longest_active_streak=max((row.current_streak for row in board), default=0),
        active_streaks=sum(1 for row in board if row.current_streak > 0),
        leaderboard=board,
        categories=category_rollup(habits, start, end, precision=precision),
        on_track=on_track,
        needs_attention=needs_attention,
    )


__all__ = [
    "AnalyticsSummary",
    "CategoryRollup",
    "DayStatus",
    "HabitPerformance",
    "HeatmapCell",
    "NEEDS_ATTENTION_THRESHOLD",
    "ON_TRACK_THRESHOLD",
    "TodayStatus",
    "WeekStatus",
    "category_rollup",
    "daily_trend",
    "habit_leaderboard",
    "habit_performance",
    "split_by_performance",
    "summarize",
    "today_status",
    "weekly_comparison",
    "year_heatmap",
]
