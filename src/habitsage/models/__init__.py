"""SQLModel table exports."""

from .habit import HABIT_CATEGORIES, HABIT_FREQUENCIES, Habit, HabitRecord

__all__ = [
    "HABIT_CATEGORIES",
    "HABIT_FREQUENCIES",
    "Habit",
    "HabitRecord",
]
