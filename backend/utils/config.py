"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "https://sa-cynosure.web.app",
    "https://sa-cynosure.firebaseapp.com",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    app_name: str = "Stay Booking Backend"
    app_version: str = "1.0.0"
    database_path: Path = Path("data/booking.db")
    database_timeout_seconds: float = 5.0
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    session_ttl_seconds: int = 60 * 60
    cancellation_window_days: int = 1
    featured_rooms_limit: int = 6
    seed_demo_data: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once from the process environment and optional .env file."""
    load_dotenv()
    return Settings(
        app_name=os.getenv("APP_NAME", Settings.app_name),
        app_version=os.getenv("APP_VERSION", Settings.app_version),
        database_path=Path(os.getenv("BOOKING_DB_PATH", str(Settings.database_path))),
        database_timeout_seconds=float(
            os.getenv("BOOKING_DB_TIMEOUT_SECONDS", Settings.database_timeout_seconds)
        ),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level),
        cors_origins=_env_csv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        session_ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", Settings.session_ttl_seconds)),
        cancellation_window_days=int(
            os.getenv("CANCELLATION_WINDOW_DAYS", Settings.cancellation_window_days)
        ),
        featured_rooms_limit=int(os.getenv("FEATURED_ROOMS_LIMIT", Settings.featured_rooms_limit)),
        seed_demo_data=_env_bool("SEED_DEMO_DATA", Settings.seed_demo_data),
    )
