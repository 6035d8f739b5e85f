"""Repository protocol definitions for domain layer."""

from .habit import HabitRepository, RecordGateway

__all__ = ["HabitRepository", "RecordGateway"]
