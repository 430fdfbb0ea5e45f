# core/log_config.py
"""
Logging setup. Modules log through logging.getLogger(__name__); this only
decides level and format once at startup.
"""
import json
import logging
import logging.config

from config.base import AppSettings

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_STRUCTURED_ENVS = ("stage", "staging", "prod", "production")


class JsonFormatter(logging.Formatter):
    """One JSON object per record, so quotes and newlines in messages stay inside their field."""

    def __init__(self, datefmt: str | None = "%Y-%m-%dT%H:%M:%S%z"):
        super().__init__(datefmt=datefmt)

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def build_logging_config(settings: AppSettings) -> dict:
    structured = settings.APP_ENV.lower() in _STRUCTURED_ENVS
    level = settings.LOG_LEVEL if isinstance(logging.getLevelName(settings.LOG_LEVEL), int) else "INFO"
    if structured:
        formatter = {"()": JsonFormatter}
    else:
        formatter = {"format": _TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            # APScheduler logs every job submission at INFO
            "apscheduler": {"level": "WARNING"},
            # python-telegram-bot talks to the Bot API through httpx
            "httpx": {"level": "WARNING"},
            "sqlalchemy.engine": {"level": "INFO" if settings.DEBUG else "WARNING"},
        },
    }


def configure_logging(settings: AppSettings) -> None:
    logging.config.dictConfig(build_logging_config(settings))
    logging.getLogger(__name__).debug(
        "Logging configured (env=%s, level=%s)", settings.APP_ENV, settings.LOG_LEVEL
    )
