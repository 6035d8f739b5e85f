"""Error types raised by the consistency engine and its persistence layer."""

from __future__ import annotations


class HabitSageError(Exception):
    """Base class for all package errors."""


class NotFound(HabitSageError):
    """A habit or record does not exist (or is not visible to the caller)."""

    def __init__(self, kind: str, key: object):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class PersistenceFailure(HabitSageError):
    """The persistence collaborator rejected or failed a call."""


class InvariantViolation(HabitSageError):
    """Data broke an expected invariant (duplicate day records, bad window, bad date)."""


__all__ = ["HabitSageError", "InvariantViolation", "NotFound", "PersistenceFailure"]
