# src/task_tracker/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the backend key is only needed to talk to it).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TRACKER"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Hosted backend ----
    backend_url: str
    backend_anon_key: str
    request_timeout_seconds: float
    avatars_bucket: str
    password_reset_redirect: str

    # ---- Ordering ----
    rebalance_min_gap: float

    # ---- Connectors ----
    console_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            app_name=_env(_k("APP_NAME"), "task-tracker"),
            log_level=_env(_k("LOG_LEVEL"), "INFO"),
            data_dir=_env_path(_k("DATA_DIR"), Path(".local/task-tracker")),
            backend_url=_env(_k("BACKEND_URL"), "").strip().rstrip("/"),
            backend_anon_key=_env(_k("BACKEND_ANON_KEY"), "").strip(),
            request_timeout_seconds=max(1.0, _env_float(_k("REQUEST_TIMEOUT_SECONDS"), 15.0)),
            avatars_bucket=_env(_k("AVATARS_BUCKET"), "avatars"),
            password_reset_redirect=_env(_k("PASSWORD_RESET_REDIRECT"), "").strip(),
            rebalance_min_gap=max(0.0, _env_float(_k("REBALANCE_MIN_GAP"), 1e-6)),
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
