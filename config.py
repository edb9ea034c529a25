from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from appdirs import user_data_dir, user_log_dir
from dotenv import load_dotenv

APP_NAME = "serve_tracker"


def _default_local_store() -> str:
    return str(Path(user_data_dir(APP_NAME)) / "local_store.db")


@dataclass
class Settings:
    database_url: str = ""
    local_store_path: str = field(default_factory=_default_local_store)
    log_dir: str = field(default_factory=lambda: user_log_dir(APP_NAME))
    log_level: str = "INFO"
    detailed_logging: bool = False
    supabase_url: str | None = None
    supabase_key: str | None = None
    storage_bucket: str = "client-documents"
    email_function: str = "send-email"
    sync_interval: float = 10.0
    fetch_retries: int = 3
    fetch_retry_delay: float = 0.5
    realtime_channel: str = "table_changes"
    http_timeout: float = 30.0


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


@lru_cache()
def get_settings() -> Settings:
    dotenv_path = Path(__file__).resolve().parent / ".env"
    load_dotenv(dotenv_path)

    return Settings(
        database_url=os.getenv("DATABASE_URL", ""),
        local_store_path=os.getenv("LOCAL_STORE_PATH") or _default_local_store(),
        log_dir=os.getenv("LOG_DIR") or user_log_dir(APP_NAME),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        detailed_logging=_env_flag("DETAILED_LOGGING"),
        supabase_url=(os.getenv("SUPABASE_URL") or "").rstrip("/") or None,
        supabase_key=os.getenv("SUPABASE_KEY"),
        storage_bucket=os.getenv("STORAGE_BUCKET", "client-documents"),
        email_function=os.getenv("EMAIL_FUNCTION", "send-email"),
        sync_interval=float(os.getenv("SYNC_INTERVAL", "10")),
        fetch_retries=int(os.getenv("FETCH_RETRIES", "3")),
        fetch_retry_delay=float(os.getenv("FETCH_RETRY_DELAY", "0.5")),
        realtime_channel=os.getenv("REALTIME_CHANNEL", "table_changes"),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
    )
