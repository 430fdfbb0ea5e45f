from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Fields shared by every environment. Per-environment classes only change
    defaults and the env file they read.
    """

    APP_ENV: str = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Comma-separated or JSON list, parsed in main.get_cors_origins
    CORS_ORIGINS: str = ""

    # Telegram transport
    TELEGRAM_TOKEN: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_WEBHOOK_URL: str | None = None
    TELEGRAM_WEBHOOK_SECRET: str | None = None
    TELEGRAM_TIMEOUT_SECONDS: float = 10.0

    # Supervisor who receives completion notices; unset disables them
    MANAGER_TELEGRAM_ID: int | None = None

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "UTC"
    CRON_SPEC_MID_MONTH: str = "0 10 15 * *"
    CRON_SPEC_END_MONTH_CHECK: str = "0 10 * * *"
    CRON_SPEC_REMINDER_CHECK: str = "*/5 * * * *"
    CRON_SPEC_NEXT_DAY_CHECK: str = "0 9 * * *"

    # Escalation ladder
    REMINDER_DELAY_MINUTES: int = 60

    # Operation deadlines for scheduled jobs
    INITIATION_TIMEOUT_SECONDS: float = 300.0
    SWEEP_TIMEOUT_SECONDS: float = 60.0
    NEXT_DAY_SWEEP_TIMEOUT_SECONDS: float = 300.0

    @field_validator("TELEGRAM_TOKEN", mode="after")
    @classmethod
    def strip_token(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("LOG_LEVEL", mode="after")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return (v or "INFO").upper()
