"""SQLModel implementation of Habit repository."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Callable, ContextManager, Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ...errors import NotFound, PersistenceFailure
from ...logging_config import get_logger
from ...models.habit import HABIT_FREQUENCIES, Habit, HabitRecord
from ...services.habits import DEFAULT_LOOKBACK_DAYS, current_streak, longest_streak

logger = get_logger(__name__)


class SQLModelHabitRepository:
    """SQLModel-based habit repository implementation."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        """Open a session and translate driver errors into PersistenceFailure."""
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(f"Habit repository {action} failed: {exc}", exc_info=True)
            raise PersistenceFailure(f"Could not {action}: {exc}") from exc

    def get_by_id(self, habit_id: int) -> Optional[Habit]:
        """Retrieve a habit by ID."""
        with self._session("load habit") as session:
            obj = session.get(Habit, habit_id)
            if obj:
                session.expunge(obj)
            return obj

    def get_with_records(self, habit_id: int) -> Habit:
        """Retrieve a habit with its records eagerly loaded."""
        with self._session("load habit") as session:
            obj = session.exec(
                select(Habit).where(Habit.id == habit_id).options(selectinload(Habit.records))
            ).first()
            if obj is None:
                raise NotFound("habit", habit_id)
            session.expunge_all()
            return obj

    def list_all(self, include_inactive: bool = False, with_records: bool = False) -> list[Habit]:
        """List all habits, optionally including inactive ones."""
        with self._session("list habits") as session:
            statement = select(Habit).order_by(Habit.name)  # type: ignore[arg-type]
            if not include_inactive:
                statement = statement.where(Habit.is_active == True)  # noqa: E712
            if with_records:
                statement = statement.options(selectinload(Habit.records))
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_active(self, with_records: bool = False) -> list[Habit]:
        """List only active habits."""
        return self.list_all(include_inactive=False, with_records=with_records)

    def create(self, habit: Habit) -> Habit:
        """Create a new habit."""
        if habit.frequency not in HABIT_FREQUENCIES:
            raise ValueError(f"Invalid frequency: {habit.frequency}")
        with self._session("create habit") as session:
            session.add(habit)
            session.commit()
            session.refresh(habit)
            session.expunge(habit)
            logger.info("Habit created", extra={"habit_id": habit.id, "habit_name": habit.name})
            return habit

    def update(self, habit: Habit) -> Habit:
        """Update an existing habit's own fields."""
        if habit.id is None:
            raise NotFound("habit", None)
        with self._session("update habit") as session:
            existing = session.get(Habit, habit.id)
            if existing is None:
                raise NotFound("habit", habit.id)
            for name in ("name", "description", "category", "frequency", "color", "is_active"):
                setattr(existing, name, getattr(habit, name))
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, habit_id: int) -> bool:
        """Delete a habit; its records go with it."""
        with self._session("delete habit") as session:
            habit = session.get(Habit, habit_id)
            if habit is None:
                return False
            session.delete(habit)
            session.commit()
            logger.info("Habit deleted", extra={"habit_id": habit_id})
            return True

    # Record operations
    def get_record(self, habit_id: int, day: date) -> Optional[HabitRecord]:
        """Get the first record for a habit on a day."""
        with self._session("load record") as session:
            statement = (
                select(HabitRecord)
                .where(HabitRecord.habit_id == habit_id)
                .where(HabitRecord.day == day)
                .order_by(HabitRecord.id)  # type: ignore[arg-type]
            )
            obj = session.exec(statement).first()
            if obj:
                session.expunge(obj)
            return obj

    def get_records(
        self, habit_id: int, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[HabitRecord]:
        """Get records for a habit, optionally within a date range, oldest first."""
        with self._session("load records") as session:
            statement = select(HabitRecord).where(HabitRecord.habit_id == habit_id)
            if start is not None:
                statement = statement.where(HabitRecord.day >= start)
            if end is not None:
                statement = statement.where(HabitRecord.day <= end)
            statement = statement.order_by(HabitRecord.day, HabitRecord.id)  # type: ignore[arg-type]
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def upsert_record(
        self, habit_id: int, day: date, is_completed: bool, notes: Optional[str] = None
    ) -> HabitRecord:
        """Insert or update the record for a day.

        Writes merge into the first existing record, so this path never adds a
        second record for the same day.
        """
        with self._session("save record") as session:
            if session.get(Habit, habit_id) is None:
                raise NotFound("habit", habit_id)
            existing = session.exec(
                select(HabitRecord)
                .where(HabitRecord.habit_id == habit_id)
                .where(HabitRecord.day == day)
                .order_by(HabitRecord.id)  # type: ignore[arg-type]
            ).first()

            if existing:
                existing.is_completed = is_completed
                if notes is not None:
                    existing.notes = notes
                record = existing
            else:
                record = HabitRecord(
                    habit_id=habit_id, day=day, is_completed=is_completed, notes=notes
                )
            session.add(record)
            session.commit()
            session.refresh(record)
            session.expunge(record)
            return record

    def delete_record(self, habit_id: int, day: date) -> bool:
        """Delete every record for a habit on a day."""
        with self._session("delete record") as session:
            rows = session.exec(
                select(HabitRecord)
                .where(HabitRecord.habit_id == habit_id)
                .where(HabitRecord.day == day)
            ).all()
            for row in rows:
                session.delete(row)
            session.commit()
            return bool(rows)

    def get_current_streak(
        self, habit_id: int, reference_day: Optional[date] = None, *, max_days: int = DEFAULT_LOOKBACK_DAYS
    ) -> int:
        """Calculate current streak for a habit."""
        return current_streak(self.get_with_records(habit_id), reference_day, max_days=max_days)

    def get_longest_streak(self, habit_id: int) -> int:
        """Calculate longest streak for a habit."""
        return longest_streak(self.get_with_records(habit_id))
