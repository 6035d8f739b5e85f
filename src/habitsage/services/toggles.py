"""Optimistic completion toggles with per-day rollback.

A :class:`ToggleStore` owns the overlay of pending values for one session. A
toggle shows its new value to subscribers synchronously, then persists it
through a :class:`RecordGateway`. Each (habit, day) key carries a sequence
number so that the display always follows the most recently *issued* toggle,
whatever order the backend answers in.

The backend itself may apply two in-flight writes for one key in either order;
the stored value then follows the write that landed last while the display
follows the last intent. That race is accepted; :meth:`ToggleStore.refresh` reconciles it.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, Optional, Sequence

from ..domain.repositories import RecordGateway
from ..errors import HabitSageError, NotFound
from ..logging_config import get_logger
from ..models.habit import Habit, HabitRecord
from .calendar_days import DayLike, day_key, to_calendar_day
from .habits import record_for_day

logger = get_logger(__name__)

PENDING = "pending"
SETTLED = "settled"
ERROR = "error"

OverlayKey = tuple[int, str]


@dataclass(frozen=True, slots=True)
class ToggleEvent:
    """State change pushed to subscribers."""

    habit_id: int
    day: date
    state: str
    value: bool
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ToggleOutcome:
    """How one toggle request resolved; also the per-pair bulk result."""

    habit_id: int
    habit_name: str
    day: date
    requested: bool
    succeeded: bool
    superseded: bool = False
    record: Optional[HabitRecord] = None
    error: Optional[str] = None

    @property
    def state(self) -> str:
        return SETTLED if self.succeeded else ERROR


BulkToggleResult = ToggleOutcome
Listener = Callable[[ToggleEvent], None]


@dataclass(slots=True)
class _Pending:
    value: bool
    seq: int


class ToggleStore:
    """Single owned store for optimistic habit-day completion state."""

    def __init__(self, gateway: RecordGateway):
        self._gateway = gateway
        self._overlay: dict[OverlayKey, _Pending] = {}
        self._confirmed: dict[OverlayKey, HabitRecord] = {}
        self._issued: dict[OverlayKey, int] = {}
        self._settled_seq: dict[OverlayKey, int] = {}
        self._snapshots: dict[int, list[HabitRecord]] = {}
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._sequence = itertools.count(1)
        self._closed = False

    @staticmethod
    def _key(habit: Habit, day: DayLike) -> OverlayKey:
        if habit.id is None:
            raise NotFound("habit", None)
        return habit.id, day_key(day)

    # -- observers ---------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: ToggleEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Toggle listener failed", extra={"habit_id": event.habit_id})

    # -- reads -------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def settled_value(self, habit: Habit, day: DayLike) -> bool:
        """Last confirmed value: a confirmed toggle, else the stored record."""

        confirmed = self._confirmed.get(self._key(habit, day))
        if confirmed is not None:
            return bool(confirmed.is_completed)
        record = record_for_day(self._base_records(habit), day)
        return bool(record and record.is_completed)

    def displayed(self, habit: Habit, day: DayLike) -> bool:
        """Value to show right now: the pending intent if any, else the settled value."""

        pending = self._overlay.get(self._key(habit, day))
        if pending is not None:
            return pending.value
        return self.settled_value(habit, day)

    def is_pending(self, habit: Habit, day: DayLike) -> bool:
        return self._key(habit, day) in self._overlay

    def pending_keys(self) -> list[OverlayKey]:
        return sorted(self._overlay)

    def _base_records(self, habit: Habit) -> list[HabitRecord]:
        """Last fetched rows for the habit, else the records it was loaded with."""

        fetched = self._snapshots.get(habit.id)
        return list(fetched) if fetched is not None else list(habit.records or [])

    def records_for(self, habit: Habit) -> list[HabitRecord]:
        """Habit records with confirmed toggles merged in (for streaks and rates)."""

        records = self._base_records(habit)
        for (habit_id, key), confirmed in self._confirmed.items():
            if habit_id != habit.id:
                continue
            for index, record in enumerate(records):
                if day_key(record.day) == key:
                    records[index] = confirmed
                    break
            else:
                records.append(confirmed)
        return records

    # -- writes ------------------------------------------------------------

    def toggle(
        self, habit: Habit, day: DayLike, *, value: Optional[bool] = None
    ) -> asyncio.Task[ToggleOutcome]:
        """Flip (or set, when ``value`` is given) a habit-day and persist it.

        The pending value is visible before this returns. Must be called from a
        running event loop; the returned task never raises for backend errors.
        """
        if self._closed:
            raise RuntimeError("ToggleStore is closed")
        loop = asyncio.get_running_loop()
        calendar_day = to_calendar_day(day)
        key = self._key(habit, calendar_day)
        target = (not self.displayed(habit, calendar_day)) if value is None else bool(value)
        seq = next(self._sequence)

        self._overlay[key] = _Pending(target, seq)
        self._issued[key] = seq
        self._emit(ToggleEvent(key[0], calendar_day, PENDING, target))

        task = loop.create_task(self._persist(habit, calendar_day, key, target, seq))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def bulk_toggle(
        self,
        habits: Sequence[Habit],
        days: Iterable[DayLike],
        *,
        value: Optional[bool] = None,
    ) -> list[BulkToggleResult]:
        """Toggle every (habit, day) pair concurrently; one result per pair."""

        pairs = [(habit, to_calendar_day(day)) for day in days for habit in habits]
        tasks = [self.toggle(habit, day, value=value) for habit, day in pairs]
        results = list(await asyncio.gather(*tasks))
        failed = [f"{r.habit_name} ({r.day.isoformat()})" for r in results if not r.succeeded]
        if failed:
            logger.warning(
                f"Bulk toggle: {len(results) - len(failed)} saved, {len(failed)} failed",
                extra={"failed": failed},
            )
        return results

    async def refresh(self, habit: Habit) -> list[HabitRecord]:
        """Reload a habit's stored records and settle the display on them.

        The fetched rows replace the confirmed values for every day without a
        pending toggle, so writes that landed out of order are reconciled.
        Subscribers get a ``settled`` event for each day whose value changed.
        Gateway errors propagate to the caller.
        """
        if self._closed:
            raise RuntimeError("ToggleStore is closed")
        if habit.id is None:
            raise NotFound("habit", None)
        records = list(await self._gateway.fetch_records(habit.id))
        if self._closed:
            return records

        days = {day_key(record.day) for record in self._base_records(habit)}
        days |= {day_key(record.day) for record in records}
        days |= {key[1] for key in self._confirmed if key[0] == habit.id}
        before = {day: self.displayed(habit, day) for day in days}

        self._snapshots[habit.id] = records
        for key in [k for k in self._confirmed if k[0] == habit.id and k not in self._overlay]:
            del self._confirmed[key]

        for day in sorted(days):
            if (habit.id, day) in self._overlay:
                continue
            value = self.displayed(habit, day)
            if value != before[day]:
                self._emit(ToggleEvent(habit.id, to_calendar_day(day), SETTLED, value))
        logger.debug(
            "Habit records refreshed", extra={"habit_id": habit.id, "records": len(records)}
        )
        return records

    async def drain(self) -> None:
        """Wait until every in-flight toggle has resolved."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Drop overlay and listeners; late resolutions become no-ops."""

        self._closed = True
        self._overlay.clear()
        self._listeners.clear()
        self._snapshots.clear()

    # -- resolution --------------------------------------------------------

    async def _persist(
        self, habit: Habit, day: date, key: OverlayKey, target: bool, seq: int
    ) -> ToggleOutcome:
        try:
            record = await self._gateway.upsert_record(key[0], day, target)
        except asyncio.CancelledError:
            self._resolve_failure(habit, day, key, target, seq, "Request cancelled")
            raise
        except HabitSageError as exc:
            return self._resolve_failure(habit, day, key, target, seq, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error while saving habit record")
            return self._resolve_failure(habit, day, key, target, seq, f"Unexpected error: {exc}")
        return self._resolve_success(habit, day, key, target, seq, record)

    def _resolve_success(
        self, habit: Habit, day: date, key: OverlayKey, target: bool, seq: int, record: HabitRecord
    ) -> ToggleOutcome:
        latest = self._issued.get(key) == seq
        outcome = ToggleOutcome(
            habit_id=key[0],
            habit_name=habit.name,
            day=day,
            requested=target,
            succeeded=True,
            superseded=not latest,
            record=record,
        )
        if self._closed:
            logger.debug("Toggle resolved after close; ignored", extra={"habit_id": key[0]})
            return outcome

        updated = seq > self._settled_seq.get(key, 0)
        if updated:
            self._confirmed[key] = record
            self._settled_seq[key] = seq
        if latest:
            self._overlay.pop(key, None)
        if latest or (updated and key not in self._overlay):
            self._emit(ToggleEvent(key[0], day, SETTLED, self.displayed(habit, day)))
        logger.info(
            f"{habit.name} {'completed' if record.is_completed else 'unmarked'} for {day.isoformat()}",
            extra={"habit_id": key[0], "superseded": not latest},
        )
        return outcome

    def _resolve_failure(
        self, habit: Habit, day: date, key: OverlayKey, target: bool, seq: int, message: str
    ) -> ToggleOutcome:
        latest = self._issued.get(key) == seq
        outcome = ToggleOutcome(
            habit_id=key[0],
            habit_name=habit.name,
            day=day,
            requested=target,
            succeeded=False,
            superseded=not latest,
            error=message,
        )
        logger.warning(
            f"Failed to save {habit.name} for {day.isoformat()}: {message}",
            extra={"habit_id": key[0], "superseded": not latest},
        )
        if self._closed or not latest:
            return outcome

        self._overlay.pop(key, None)
        self._emit(
            ToggleEvent(
                key[0],
                day,
                ERROR,
                self.settled_value(habit, day),
                error=f"Failed to update {habit.name}: {message}",
            )
        )
        return outcome


__all__ = [
    "BulkToggleResult",
    "ERROR",
    "PENDING",
    "SETTLED",
    "ToggleEvent",
    "ToggleOutcome",
    "ToggleStore",
]
