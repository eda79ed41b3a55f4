"""Note store configuration loaded from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

APP_NAMESPACE = "nocturne_notes"


def default_data_dir() -> Path:
    """Per-user data directory, following XDG_DATA_HOME when set."""
    base = os.environ.get("XDG_DATA_HOME")
    if not base:
        base = os.path.join(Path.home(), ".local", "share")
    return Path(base) / APP_NAMESPACE


class Settings(BaseSettings):
    """Application settings loaded from .env file or NOCTURNE_* variables.

    KDF cost parameters are intentionally absent: they are fixed in
    :mod:`nocturne.crypto`.
    """

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "NOCTURNE_",
        "extra": "ignore",
    }

    # Storage
    data_dir: Path = Field(default_factory=default_data_dir)
    store_filename: str = "notes.dat"

    # Logging
    log_level: str = "INFO"

    # MCP tool server
    server_host: str = "127.0.0.1"
    server_port: int = 8011

    @property
    def store_path(self) -> Path:
        """Location of the primary encrypted store."""
        return self.data_dir / self.store_filename


settings = Settings()
