"""
Runtime settings for the STORA client.

Values come from the environment (``STORA_*``), optionally seeded from a
``.env`` file. Owner and bearer token are not settings; they travel in a
``Session`` passed to every call.
"""

from __future__ import annotations

import os
from pathlib import Path
from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

DEFAULT_API_BASE_URL = "http://10.0.2.2:3000/api/v1/"


class Settings(BaseModel):
    """Client configuration."""

    api_base_url: str = DEFAULT_API_BASE_URL
    server_origin: str = ""  # Derived from api_base_url when empty
    db_path: Path = Path("~/stora/data/stora.sqlite")
    log_path: Path = Path("~/stora/data/sync.log")
    log_level: str = "INFO"

    # Network
    timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 3.0
    page_size: int = Field(default=100, ge=1)

    # Background scheduling
    sync_interval_minutes: int = Field(default=15, ge=1)

    model_config = {"frozen": False}

    @model_validator(mode="after")
    def _derive_origin(self) -> Settings:
        if not self.api_base_url.endswith("/"):
            self.api_base_url += "/"
        if not self.server_origin:
            parts = urlsplit(self.api_base_url)
            self.server_origin = f"{parts.scheme}://{parts.netloc}"
        self.server_origin = self.server_origin.rstrip("/")
        self.db_path = Path(self.db_path).expanduser()
        self.log_path = Path(self.log_path).expanduser()
        return self


def _env_number(name: str, cast: type, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def load_settings(env_file: str | Path | None = None) -> Settings:
    """Load settings from an optional .env file and the process environment."""
    env_path = Path(env_file) if env_file else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    defaults = Settings()
    return Settings(
        api_base_url=os.environ.get("STORA_API_BASE_URL", defaults.api_base_url),
        server_origin=os.environ.get("STORA_SERVER_ORIGIN", ""),
        db_path=os.environ.get("STORA_DB_PATH", str(defaults.db_path)),
        log_path=os.environ.get("STORA_LOG_PATH", str(defaults.log_path)),
        log_level=os.environ.get("STORA_LOG_LEVEL", defaults.log_level).upper(),
        timeout_seconds=_env_number("STORA_TIMEOUT_SECONDS", float, defaults.timeout_seconds),
        probe_timeout_seconds=_env_number(
            "STORA_PROBE_TIMEOUT_SECONDS", float, defaults.probe_timeout_seconds
        ),
        page_size=max(1, _env_number("STORA_PAGE_SIZE", int, defaults.page_size)),
        sync_interval_minutes=max(
            1, _env_number("STORA_SYNC_INTERVAL_MINUTES", int, defaults.sync_interval_minutes)
        ),
    )
