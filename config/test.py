from __future__ import annotations

from pydantic_settings import SettingsConfigDict

from .base import AppSettings


class TestSettings(AppSettings):
    # Tests build their own engines; this only keeps db.py importable
    DATABASE_URL: str = "sqlite+aiosqlite:///./test_notifications.db"
    APP_ENV: str = "test"
    DEBUG: bool = False
    SCHEDULER_ENABLED: bool = False
    TELEGRAM_TOKEN: str = "test-token"
    MANAGER_TELEGRAM_ID: int | None = 900

    model_config = SettingsConfigDict(
        env_file=None,
        extra="ignore",
    )
