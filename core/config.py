"""Settings loaded from environment variables (+ optional .env).

One Settings object for the whole app. Nothing is required at import time;
`Settings.validate()` is what fails fast at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from core.exceptions import ConfigError

ENV_PREFIX = "TASKIFY"
DEFAULT_SCOPES = ["https://www.googleapis.com/auth/calendar.events"]


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _first_env(*names: str, default: str = "") -> str:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


@dataclass(frozen=True)
class Settings:
    # ---- backend (PostgREST / Supabase) ----
    supabase_url: str
    supabase_key: str
    user_id: str

    # ---- Google Calendar ----
    google_client_id: str
    google_client_secret: str
    google_api_key: str
    google_scopes: List[str]
    timezone: str

    # ---- misc ----
    http_timeout: float
    log_level: str
    data_dir: Path

    @property
    def calendar_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    def validate(self) -> "Settings":
        missing = []
        if not self.supabase_url:
            missing.append(_k("SUPABASE_URL"))
        if not self.supabase_key:
            missing.append(_k("SUPABASE_KEY"))
        if missing:
            raise ConfigError(missing)
        return self

    @staticmethod
    def from_env(dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv(override=False)
        data_dir = Path(_first_env(_k("DATA_DIR"), default=".local/taskify")).expanduser()
        return Settings(
            supabase_url=_first_env(_k("SUPABASE_URL"), "SUPABASE_URL"),
            supabase_key=_first_env(_k("SUPABASE_KEY"), "SUPABASE_ANON_KEY"),
            user_id=_first_env(_k("USER_ID"), default="anonymous"),
            google_client_id=_first_env(_k("GOOGLE_CLIENT_ID"), "GOOGLE_CLIENT_ID"),
            google_client_secret=_first_env(_k("GOOGLE_CLIENT_SECRET"), "GOOGLE_CLIENT_SECRET"),
            google_api_key=_first_env(_k("GOOGLE_API_KEY"), "GOOGLE_API_KEY"),
            google_scopes=_env_list(_k("GOOGLE_SCOPES"), DEFAULT_SCOPES),
            timezone=_first_env(_k("TIMEZONE"), default="UTC"),
            http_timeout=_env_float(_k("HTTP_TIMEOUT"), 10.0),
            log_level=_first_env(_k("LOG_LEVEL"), default="INFO").upper(),
            data_dir=data_dir,
        )


_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
