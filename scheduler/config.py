from datetime import UTC, date, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Replaces the deprecated ``datetime.utcnow()`` while keeping datetimes
    naive so they stay compatible with SQLite (which doesn't store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "SM-2 Review Scheduler"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'scheduler.db'}"
    timezone: str = "UTC"  # IANA name; all calendar dates are computed here
    lock_ttl_seconds: int = 30
    lock_max_attempts: int = 5
    lock_retry_delay_seconds: float = 0.1
    lock_max_retry_delay_seconds: float = 1.0
    default_easiness_factor: float = 2.5
    max_due_cards: int = 50
    debug: bool = False

    model_config = {"env_prefix": "SRS_", "env_file": ".env"}


settings = Settings()


def local_today(tz_name: str | None = None) -> date:
    """Return today's calendar date in the configured timezone.

    This is the only place the scheduler reads the wall clock for dates;
    everything downstream takes ``today`` as an argument.
    """
    return datetime.now(ZoneInfo(tz_name or settings.timezone)).date()
