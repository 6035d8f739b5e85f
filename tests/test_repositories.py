"""Unit tests for the SQLModel repository and the async gateway."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta

import pytest
from sqlmodel import Session, create_engine

from habitsage.errors import NotFound, PersistenceFailure
from habitsage.infra.gateway import RepositoryRecordGateway
from habitsage.infra.repositories import SQLModelHabitRepository
from habitsage.models import Habit
from habitsage.services.calendar_days import to_calendar_day
from habitsage.services.toggles import ToggleStore

DAY = date(2024, 1, 14)


class TestHabitCrud:
    def test_create_and_get(self, habit_repo):
        created = habit_repo.create(Habit(name="Walk", category="fitness"))
        assert created.id is not None

        loaded = habit_repo.get_by_id(created.id)
        assert loaded is not None
        assert loaded.name == "Walk"
        assert loaded.frequency == "daily"

    def test_default_creation_day_is_local_today(self, habit_repo):
        created = habit_repo.create(Habit(name="Stretch"))
        assert created.created_at.tzinfo is not None

        loaded = habit_repo.get_by_id(created.id)
        assert to_calendar_day(loaded.created_at) == date.today()

    def test_backdated_creation_day_round_trips(self, habit_repo):
        stamp = datetime(2024, 1, 10, 23, 30).astimezone()
        created = habit_repo.create(Habit(name="Floss", created_at=stamp))

        loaded = habit_repo.get_with_records(created.id)
        assert to_calendar_day(loaded.created_at) == date(2024, 1, 10)

    def test_create_rejects_unknown_frequency(self, habit_repo):
        with pytest.raises(ValueError):
            habit_repo.create(Habit(name="Odd", frequency="hourly"))

    def test_list_active_excludes_archived(self, habit_repo, habit_factory):
        habit_factory(name="Zen")
        habit_factory(name="Archived", is_active=False)
        habit_factory(name="Abs")

        assert [h.name for h in habit_repo.list_active()] == ["Abs", "Zen"]
        assert len(habit_repo.list_all(include_inactive=True)) == 3

    def test_update(self, habit_repo, habit_factory):
        habit = habit_factory(name="Read")
        habit.name = "Read 20 pages"
        habit.is_active = False

        updated = habit_repo.update(habit)
        assert updated.name == "Read 20 pages"
        assert habit_repo.list_active() == []

    def test_update_missing_habit(self, habit_repo):
        with pytest.raises(NotFound):
            habit_repo.update(Habit(id=999, name="Ghost"))

    def test_delete_cascades_records(self, habit_repo, habit_factory):
        habit = habit_factory()
        habit_repo.upsert_record(habit.id, DAY, True)

        assert habit_repo.delete(habit.id) is True
        assert habit_repo.get_by_id(habit.id) is None
        assert habit_repo.get_records(habit.id) == []
        assert habit_repo.delete(habit.id) is False

    def test_get_with_records_missing(self, habit_repo):
        with pytest.raises(NotFound):
            habit_repo.get_with_records(12345)


class TestRecords:
    def test_upsert_creates_then_updates_same_row(self, habit_repo, habit_factory):
        habit = habit_factory()

        first = habit_repo.upsert_record(habit.id, DAY, True, notes="morning")
        second = habit_repo.upsert_record(habit.id, DAY, False)

        assert second.id == first.id
        assert second.is_completed is False
        assert second.notes == "morning"
        assert len(habit_repo.get_records(habit.id, DAY, DAY)) == 1

    def test_upsert_for_missing_habit(self, habit_repo):
        with pytest.raises(NotFound):
            habit_repo.upsert_record(999, DAY, True)

    def test_upsert_merges_into_first_duplicate(self, habit_repo, habit_factory, record_factory):
        habit = habit_factory()
        original = record_factory(habit.id, DAY, is_completed=False)
        record_factory(habit.id, DAY, is_completed=False)

        saved = habit_repo.upsert_record(habit.id, DAY, True)
        assert saved.id == original.id
        assert habit_repo.get_record(habit.id, DAY).is_completed is True

    def test_records_in_range_oldest_first(self, habit_repo, habit_factory):
        habit = habit_factory()
        for offset in (4, 0, 2, 9):
            habit_repo.upsert_record(habit.id, DAY - timedelta(days=offset), True)

        rows = habit_repo.get_records(habit.id, DAY - timedelta(days=5), DAY)
        assert [r.day for r in rows] == [
            DAY - timedelta(days=4),
            DAY - timedelta(days=2),
            DAY,
        ]

    def test_delete_record(self, habit_repo, habit_factory, record_factory):
        habit = habit_factory()
        record_factory(habit.id, DAY)
        record_factory(habit.id, DAY)

        assert habit_repo.delete_record(habit.id, DAY) is True
        assert habit_repo.get_record(habit.id, DAY) is None
        assert habit_repo.delete_record(habit.id, DAY) is False

    def test_streak_helpers(self, habit_repo, habit_factory):
        habit = habit_factory(created_at=datetime(2024, 1, 10, 6, 0))
        for day in (10, 11, 12, 14):
            habit_repo.upsert_record(habit.id, date(2024, 1, day), True)

        assert habit_repo.get_current_streak(habit.id, DAY) == 1
        assert habit_repo.get_longest_streak(habit.id) == 3

    def test_driver_errors_become_persistence_failures(self, tmp_path):
        # SQLite cannot create a database file inside a missing directory
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'habits.db'}")
        repo = SQLModelHabitRepository(lambda: Session(engine))

        with pytest.raises(PersistenceFailure):
            repo.list_all()


class TestGateway:
    def test_fetch_records(self, habit_repo, habit_factory):
        habit = habit_factory()
        habit_repo.upsert_record(habit.id, DAY, True)
        gateway = RepositoryRecordGateway(habit_repo)

        records = asyncio.run(gateway.fetch_records(habit.id))
        assert [r.day for r in records] == [DAY]

    def test_fetch_records_missing_habit(self, habit_repo):
        gateway = RepositoryRecordGateway(habit_repo)
        with pytest.raises(NotFound):
            asyncio.run(gateway.fetch_records(777))

    def test_toggle_round_trip_through_database(self, habit_repo, habit_factory):
        habit = habit_repo.get_with_records(habit_factory(name="Floss").id)
        gateway = RepositoryRecordGateway(habit_repo)

        async def scenario():
            store = ToggleStore(gateway)
            on = await store.toggle(habit, DAY)
            off = await store.toggle(habit, DAY)
            return store, on, off

        store, on, off = asyncio.run(scenario())

        assert on.succeeded and on.requested is True
        assert off.succeeded and off.requested is False
        assert store.displayed(habit, DAY) is False
        rows = habit_repo.get_records(habit.id)
        assert len(rows) == 1
        assert rows[0].is_completed is False

    def test_toggle_for_deleted_habit_rolls_back(self, habit_repo, habit_factory):
        habit = habit_repo.get_with_records(habit_factory().id)
        habit_repo.delete(habit.id)
        gateway = RepositoryRecordGateway(habit_repo)

        async def scenario():
            store = ToggleStore(gateway)
            return store, await store.toggle(habit, DAY)

        store, outcome = asyncio.run(scenario())
        assert not outcome.succeeded
        assert "not found" in outcome.error
        assert store.displayed(habit, DAY) is False

    def test_refresh_picks_up_rows_written_elsewhere(self, habit_repo, habit_factory):
        habit = habit_repo.get_with_records(habit_factory().id)
        habit_repo.upsert_record(habit.id, DAY, True)
        gateway = RepositoryRecordGateway(habit_repo)

        async def scenario():
            store = ToggleStore(gateway)
            assert store.displayed(habit, DAY) is False
            await store.refresh(habit)
            return store

        store = asyncio.run(scenario())
        assert store.displayed(habit, DAY) is True
