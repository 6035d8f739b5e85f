"""Service module exports."""

from . import analytics, calendar_days, habits, toggles

__all__ = [
    "analytics",
    "calendar_days",
    "habits",
    "toggles",
]
