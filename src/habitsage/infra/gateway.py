"""Async record gateway over the synchronous SQLModel repository."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

from ..domain.repositories import HabitRepository
from ..models.habit import HabitRecord
from ..services.calendar_days import to_calendar_day


class RepositoryRecordGateway:
    """Run repository calls on a worker thread so the event loop never blocks."""

    def __init__(self, repository: HabitRepository):
        self._repository = repository

    async def fetch_records(self, habit_id: int) -> list[HabitRecord]:
        habit = await asyncio.to_thread(self._repository.get_with_records, habit_id)
        return list(habit.records)

    async def upsert_record(
        self, habit_id: int, day: date, is_completed: bool, notes: Optional[str] = None
    ) -> HabitRecord:
        return await asyncio.to_thread(
            self._repository.upsert_record,
            habit_id,
            to_calendar_day(day),
            is_completed,
            notes,
        )
