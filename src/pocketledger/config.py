"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    """Read a numeric environment variable, rejecting garbage early."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if parsed < 0:
        raise ConfigurationError(f"{name} cannot be negative")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "PocketLedger"
    DB_FILENAME = "pocketledger.db"
    PRICE_CACHE_FILENAME = "price_cache.json"
    DEFAULT_PRICE_API_URL = "https://www.alphavantage.co/query"

    def __init__(self) -> None:
        self.DEV_MODE = _env_bool("POCKETLEDGER_DEV_MODE", default=True)
        self.DATA_DIR = self._resolve_data_dir()
        self.DATABASE_URL = os.getenv("POCKETLEDGER_DATABASE_URL", self._build_sqlite_url())
        self.PRICE_CACHE_FILE = self.DATA_DIR / self.PRICE_CACHE_FILENAME
        self.PRICE_CACHE_TTL = timedelta(
            minutes=_env_float("POCKETLEDGER_PRICE_CACHE_TTL_MINUTES", 15.0)
        )
        self.PRICE_RATE_LIMIT_WINDOW = timedelta(
            minutes=_env_float("POCKETLEDGER_PRICE_RATE_LIMIT_MINUTES", 15.0)
        )
        self.PRICE_API_KEY = os.getenv("POCKETLEDGER_PRICE_API_KEY", "demo")
        self.PRICE_API_URL = os.getenv("POCKETLEDGER_PRICE_API_URL", self.DEFAULT_PRICE_API_URL)
        self.PRICE_API_TIMEOUT = _env_float("POCKETLEDGER_PRICE_API_TIMEOUT", 10.0)

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the database, cache and logs live."""

        data_root = os.getenv("POCKETLEDGER_DATA_DIR", "instance")
        base_path = Path(data_root).expanduser()
        try:
            path = base_path.resolve()
            path.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            # Protected install locations fall back to user-local storage.
            fallback_path = Path.home() / ".local" / "share" / self.APP_NAME.lower()
            fallback_path.mkdir(parents=True, exist_ok=True)
            return fallback_path.resolve()

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        if self.DATABASE_URL.startswith("sqlite"):
            return {"connect_args": {"check_same_thread": False}}
        return {}


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration for the test-suite backed by a shared in-memory database."""

    __test__ = False
    DEBUG = True
    TESTING = True

    def __init__(self) -> None:
        super().__init__()
        self.DATABASE_URL = "sqlite://"

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        from sqlalchemy.pool import StaticPool

        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}


__all__ = ["BaseConfig", "DevConfig", "TestConfig"]
