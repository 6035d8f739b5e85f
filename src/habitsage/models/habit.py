"""Habit tracking data structures."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

HABIT_CATEGORIES = ("health", "productivity", "mindfulness", "fitness", "learning")
HABIT_FREQUENCIES = ("daily", "weekly")


def _local_now() -> datetime:
    return datetime.now().astimezone()


class Habit(SQLModel, table=True):
    """A user-defined habit tracked once per calendar day (or week)."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=80, index=True)
    description: str = Field(default="", max_length=255)
    category: str = Field(default="health", max_length=32, index=True)
    frequency: str = Field(default="daily", max_length=16)
    color: str = Field(default="#3B82F6", max_length=16)
    is_active: bool = Field(default=True, nullable=False)
    # Aware local time; the creation calendar day bounds current streaks.
    created_at: datetime = Field(default_factory=_local_now, nullable=False)

    records: list["HabitRecord"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "HabitRecord", back_populates="habit", cascade="all, delete-orphan"
        ),
    )


class HabitRecord(SQLModel, table=True):
    """Completion record for a habit on one calendar day.

    One record per (habit, day) is intended but not enforced by a constraint;
    readers apply a first-match policy when duplicates exist.
    """

    __tablename__: ClassVar[str] = "habit_record"

    id: Optional[int] = Field(default=None, primary_key=True)
    habit_id: int = Field(foreign_key="habit.id", nullable=False, index=True)
    day: date = Field(nullable=False, index=True)
    is_completed: bool = Field(default=True, nullable=False)
    notes: Optional[str] = Field(default=None, max_length=500)

    habit: "Habit" = Relationship(
        back_populates="records",
        sa_relationship=relationship("Habit", back_populates="records"),
    )
