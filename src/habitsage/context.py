"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, create_db_engine, create_session_factory, init_database
from .infra.gateway import RepositoryRecordGateway
from .infra.repositories import SQLModelHabitRepository
from .services.toggles import ToggleStore


@dataclass
class AppContext:
    """Wiring shared by the CLI and any presentation layer."""

    config: BaseConfig
    engine: Engine
    session_factory: SessionFactory
    habit_repo: SQLModelHabitRepository
    gateway: RepositoryRecordGateway
    _toggle_store: Optional[ToggleStore] = field(default=None, repr=False)

    def toggle_store(self) -> ToggleStore:
        """Return the session's toggle store, creating it on first use."""

        if self._toggle_store is None or self._toggle_store.closed:
            self._toggle_store = ToggleStore(self.gateway)
        return self._toggle_store

    def close(self) -> None:
        if self._toggle_store is not None:
            self._toggle_store.close()
        self.engine.dispose()


def create_app_context(config: Optional[BaseConfig] = None) -> AppContext:
    """Create engine, schema, repository and gateway from configuration."""

    if config is None:
        config = BaseConfig()

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)
    habit_repo = SQLModelHabitRepository(session_factory)

    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        habit_repo=habit_repo,
        gateway=RepositoryRecordGateway(habit_repo),
    )
