"""HabitSage: habit streaks, completion rates and optimistic toggles."""

from __future__ import annotations

from .config import BaseConfig, TestConfig
from .context import create_app_context

__all__ = ["BaseConfig", "TestConfig", "create_app_context"]
