"""Logging configuration for PairPilot.

Every line carries the analysis request, symbol, pipeline stage and remote
capability from :mod:`pairpilot.utils.log_context`. The API server's own
lifecycle logger shares PairPilot's handlers so one file holds both.
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from pairpilot.utils.log_context import LOG_FIELDS, current_context

# Third-party loggers held at WARNING
_NOISY_LOGGERS = (
    "aiohttp",
    "asyncio",
    "httpx",
    "uvicorn.access",
)

# Loggers that write through PairPilot's handlers
_OWNED_LOGGERS = ("pairpilot", "uvicorn.error")

LOG_FORMAT = (
    "%(asctime)s "
    + " ".join(f"[%({name})s]" for name in LOG_FIELDS)
    + " [%(levelname)s] [%(name)s] %(message)s"
)


class PairPilotFormatter(logging.Formatter):
    """Formatter that fills the context fields of each record."""

    def format(self, record: logging.LogRecord) -> str:
        # fields passed via extra= win over the ambient context
        for name, value in current_context().items():
            if not hasattr(record, name):
                setattr(record, name, value)
        return super().format(record)


def _file_handler(log_file: str, formatter: logging.Formatter) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(log_path, when="midnight", backupCount=7, utc=True)
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: str = "INFO",
    log_file: str | None = "log/pairpilot.log",
) -> None:
    """Install console and rotating file handlers on PairPilot's loggers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to the rotating log file. None disables file logging.

    Raises:
        ValueError: If *level* is not a logging level name.
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    formatter = PairPilotFormatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # Console shows warnings and above; the file gets everything at *level*
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.WARNING)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]
    if log_file:
        handlers.append(_file_handler(log_file, formatter))

    for name in _OWNED_LOGGERS:
        owned = logging.getLogger(name)
        owned.handlers.clear()
        owned.setLevel(numeric_level)
        for handler in handlers:
            owned.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
