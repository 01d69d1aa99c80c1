# newsfeed/logging_setup.py
import logging
from logging.config import dictConfig
from logging import LogRecord
from pathlib import Path
import contextvars
import os

# Set per request by RequestContextMiddleware; "-" for scheduler jobs and startup
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
user_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("user_id", default="-")

# Attributes every LogRecord carries; anything else arrived through extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "request_id", "user_id", "taskName"}


class ContextFilter(logging.Filter):
    def filter(self, record: LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.user_id = user_id_var.get()
        return True


class EventFormatter(logging.Formatter):
    """
    Appends the structured fields of an event to the line, e.g.

        ... | FEED_ASSEMBLED {algorithm=balanced total=42 elapsed_ms=7}
    """

    def format(self, record: LogRecord) -> str:
        line = super().format(record)
        fields = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not fields:
            return line
        rendered = " ".join(f"{k}={v}" for k, v in fields.items())
        head, sep, tail = line.partition("\n")  # keep tracebacks below the event line
        return f"{head} {{{rendered}}}{sep}{tail}"


BASE_DIR = Path(__file__).resolve().parents[1]
LOG_DIR = Path(os.getenv("LOG_DIR", BASE_DIR / "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = LOG_DIR / "newsfeed.log"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LINE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | req=%(request_id)s user=%(user_id)s | %(message)s"


def setup_logging() -> Path:
    handlers = ["console", "file"]
    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"context": {"()": ContextFilter}},
        "formatters": {
            "events": {"()": EventFormatter, "fmt": LINE_FORMAT},
            "access": {"format": "%(asctime)s | %(levelname)s | %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "events", "filters": ["context"]},
            "file": {
                "class": "logging.handlers.TimedRotatingFileHandler",
                "formatter": "events",
                "filters": ["context"],
                "filename": str(LOG_FILE),
                "when": "midnight",
                "backupCount": 14,
                "encoding": "utf-8",
            },
            "access_console": {"class": "logging.StreamHandler", "formatter": "access"},
        },
        "loggers": {
            "newsfeed": {"handlers": handlers, "level": LOG_LEVEL, "propagate": False},
            "apscheduler": {"handlers": handlers, "level": "INFO", "propagate": False},
            # SQL echo stays off unless asked for
            "sqlalchemy.engine": {"handlers": handlers, "level": os.getenv("SQL_LOG_LEVEL", "WARNING"),
                                  "propagate": False},
            "uvicorn.error": {"handlers": ["access_console", "file"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access_console", "file"], "level": "INFO", "propagate": False},
        },
        "root": {"handlers": handlers, "level": LOG_LEVEL},
    })

    logging.getLogger("newsfeed").info("LOGGING_READY", extra={"file": str(LOG_FILE), "level": LOG_LEVEL})
    return LOG_FILE


def get_logger(name: str = "newsfeed") -> logging.Logger:
    return logging.getLogger(name)
