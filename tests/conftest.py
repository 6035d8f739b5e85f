"""Pytest configuration and shared fixtures for HabitSage tests.

This module provides database fixtures, habit builders and a session factory
so repository and engine tests never touch the real data directory.
"""

from __future__ import annotations

import logging
import tempfile
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterable

import pytest
from sqlmodel import Session, SQLModel, create_engine

# Import all models to ensure they're registered with SQLModel metadata
from habitsage.infra.repositories import SQLModelHabitRepository
from habitsage.logging_config import ROOT_LOGGER_NAME
from habitsage.models import Habit, HabitRecord

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    # Gateway tests reach the engine from worker threads.
    engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a database session for a single test."""
    session = Session(db_engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory matching the Callable[[], Session] repositories expect."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


@pytest.fixture
def habit_repo(session_factory) -> SQLModelHabitRepository:
    return SQLModelHabitRepository(session_factory)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def habit_factory(db_session):
    """Factory for creating persisted habits.

    Returns:
        Callable: Function that creates and persists Habit instances
    """

    def _create_habit(
        name: str = "Test Habit",
        category: str = "health",
        frequency: str = "daily",
        is_active: bool = True,
        created_at: datetime | None = None,
    ) -> Habit:
        stamp = created_at or datetime(2020, 1, 1, 8, 0)
        if stamp.tzinfo is None:
            # Naive values are local wall-clock time; the column stores aware ones.
            stamp = stamp.astimezone()
        habit = Habit(
            name=name,
            category=category,
            frequency=frequency,
            is_active=is_active,
            created_at=stamp,
        )
        db_session.add(habit)
        db_session.commit()
        db_session.refresh(habit)
        return habit

    return _create_habit


@pytest.fixture
def record_factory(db_session):
    """Factory for persisting raw records (duplicates allowed, unlike upsert)."""

    def _create_record(
        habit_id: int, day: date, is_completed: bool = True, notes: str | None = None
    ) -> HabitRecord:
        record = HabitRecord(habit_id=habit_id, day=day, is_completed=is_completed, notes=notes)
        db_session.add(record)
        db_session.commit()
        db_session.refresh(record)
        return record

    return _create_record


def build_habit(
    completed: Iterable[date] = (),
    *,
    missed: Iterable[date] = (),
    habit_id: int = 1,
    name: str = "Meditation",
    category: str = "mindfulness",
    frequency: str = "daily",
    created_at: datetime | None = None,
    is_active: bool = True,
) -> Habit:
    """Build an unsaved Habit with records for the given days."""

    habit = Habit(
        id=habit_id,
        name=name,
        category=category,
        frequency=frequency,
        is_active=is_active,
        created_at=created_at or datetime(2020, 1, 1, 8, 0),
    )
    records = [HabitRecord(habit_id=habit_id, day=d, is_completed=True) for d in completed]
    records += [HabitRecord(habit_id=habit_id, day=d, is_completed=False) for d in missed]
    habit.records = records
    return habit


def consecutive_days(end: date, count: int) -> list[date]:
    """Return ``count`` consecutive days ending at ``end`` (newest first)."""

    return [end - timedelta(days=offset) for offset in range(count)]


@pytest.fixture
def make_habit():
    return build_habit


@pytest.fixture
def days_ending():
    return consecutive_days


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def reset_logging():
    """Detach package log handlers so files under tmp_path are released."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
