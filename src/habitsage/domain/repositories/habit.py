"""Habit persistence protocols."""

from __future__ import annotations

from datetime import date
from typing import Optional, Protocol

from ...models.habit import Habit, HabitRecord


class HabitRepository(Protocol):
    """Synchronous repository for habits and their day records."""

    def get_by_id(self, habit_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID (records not loaded)."""
        ...

    def get_with_records(self, habit_id: int) -> Habit:
        """Retrieve a habit with its records; raise NotFound if absent."""
        ...

    def list_all(self, include_inactive: bool = False, with_records: bool = False) -> list[Habit]:
        """List habits ordered by name."""
        ...

    def list_active(self, with_records: bool = False) -> list[Habit]:
        """List only active habits."""
        ...

    def create(self, habit: Habit) -> Habit:
        """Create a new habit."""
        ...

    def update(self, habit: Habit) -> Habit:
        """Update an existing habit."""
        ...

    def delete(self, habit_id: int) -> bool:
        """Delete a habit and its records."""
        ...

    # Record operations
    def get_record(self, habit_id: int, day: date) -> Optional[HabitRecord]:
        """Get the (first) record for a habit on a day."""
        ...

    def get_records(
        self, habit_id: int, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[HabitRecord]:
        """Get records for a habit, optionally bounded, oldest first."""
        ...

    def upsert_record(
        self, habit_id: int, day: date, is_completed: bool, notes: Optional[str] = None
    ) -> HabitRecord:
        """Insert or update the record for a habit on a day."""
        ...

    def delete_record(self, habit_id: int, day: date) -> bool:
        """Delete every record for a habit on a day."""
        ...


class RecordGateway(Protocol):
    """Asynchronous persistence collaborator used by the toggle store."""

    async def fetch_records(self, habit_id: int) -> list[HabitRecord]:
        """Return all records of a habit (NotFound / PersistenceFailure on error)."""
        ...

    async def upsert_record(
        self, habit_id: int, day: date, is_completed: bool, notes: Optional[str] = None
    ) -> HabitRecord:
        """Persist one day's completion and return the authoritative record."""
        ...
