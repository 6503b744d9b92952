"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path


def _default_data_root() -> Path:
    """Return the platform specific directory used for persistent data."""

    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home()))
        return base / "Weinkeller"
    return Path.home() / ".weinkeller"


def _default_database_path() -> Path:
    """Resolve the database path taking overrides into account."""

    override = os.environ.get("WEINKELLER_DB")
    if override:
        return Path(override).expanduser()
    return _default_data_root() / "wine_inventory.db"


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


@dataclass(slots=True)
class Settings:
    """Runtime configuration loaded from environment variables."""

    app_name: str = field(default_factory=lambda: os.environ.get("WEINKELLER_APP_NAME", "Weinkeller"))
    host: str = field(default_factory=lambda: os.environ.get("WEINKELLER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.environ.get("WEINKELLER_PORT", "8000")))
    reload: bool = field(default_factory=lambda: os.environ.get("WEINKELLER_RELOAD", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.environ.get("WEINKELLER_LOG_LEVEL", "info"))
    database_path: Path = field(default_factory=_default_database_path)
    # seconds SQLite waits on a locked database file
    db_timeout: float = field(default_factory=lambda: _env_float("WEINKELLER_DB_TIMEOUT", "5"))
    # seconds a ledger write waits for the per-wine lock
    lock_timeout: float = field(default_factory=lambda: _env_float("WEINKELLER_LOCK_TIMEOUT", "10"))
    append_retries: int = field(default_factory=lambda: int(os.environ.get("WEINKELLER_APPEND_RETRIES", "3")))

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_path}"

    def ensure_storage(self) -> None:
        """Ensure that the database directory exists."""

        self.database_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    settings.ensure_storage()
    return settings
