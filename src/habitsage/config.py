"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable, rejecting garbage early."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "HabitSage"
    DB_FILENAME = "habitsage.db"
    SQLITE_PRAGMAS = {"journal_mode": "wal", "foreign_keys": "on"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("HABITSAGE_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("HABITSAGE_DATABASE_URL", self._build_sqlite_url())
        self.STREAK_LOOKBACK_DAYS = _env_int("HABITSAGE_STREAK_LOOKBACK_DAYS", 365)
        self.RATE_PRECISION = _env_int("HABITSAGE_RATE_PRECISION", 1)
        if self.STREAK_LOOKBACK_DAYS < 1:
            raise ValueError("HABITSAGE_STREAK_LOOKBACK_DAYS must be at least 1.")
        if self.RATE_PRECISION < 0:
            raise ValueError("HABITSAGE_RATE_PRECISION cannot be negative.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("HABITSAGE_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected locations fall back to user-local storage.
            fallback_path = Path.home() / f".{self.APP_NAME.lower()}"
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.DATABASE_URL.startswith("sqlite"):
            # Gateway calls run on worker threads via asyncio.to_thread.
            engine_options["connect_args"] = {"check_same_thread": False}
        return engine_options


class TestConfig(BaseConfig):
    """Configuration used by the test-suite; never touches the real data dir."""

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, data_dir: Path | str, database_url: str | None = None) -> None:
        self._data_dir_override = Path(data_dir)
        super().__init__()
        self.DEV_MODE = False
        if database_url is not None:
            self.DATABASE_URL = database_url

    def _resolve_data_dir(self) -> Path:
        self._data_dir_override.mkdir(parents=True, exist_ok=True)
        return self._data_dir_override.resolve()
