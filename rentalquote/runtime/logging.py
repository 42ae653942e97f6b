"""Package-wide logging for rentalquote.

    from rentalquote.runtime import get_logger
    logger = get_logger(__name__)

All loggers live under the ``rentalquote`` namespace with one stderr handler.
Records still propagate, so pytest's caplog and host applications see them.

Environment variables:
    RENTALQUOTE_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR (or a number). Default: INFO
"""

import logging
import os
import sys
from typing import Any, TextIO

LOGGER_NAMESPACE = "rentalquote"

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(asctime)s %(levelname)s [%(name)s:%(lineno)d] %(message)s"

# Third-party loggers that log every request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore")

_handler: logging.Handler | None = None


def parse_log_level(value: str | None, default: int = DEFAULT_LOG_LEVEL) -> int:
    """Map a level name or number from the environment to a logging level."""
    if not value:
        return default
    value = value.strip().upper()
    if value.isdigit():
        return int(value)
    if value == "WARN":
        value = "WARNING"
    level = logging.getLevelNamesMapping().get(value)
    return level if level is not None else default


def _format_for(level: int) -> str:
    return LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT


def configure_logging(level: int | None = None, stream: TextIO | None = None) -> None:
    """Attach the package handler once. Later calls are no-ops.

    Args:
        level: Log level to use. If None, reads RENTALQUOTE_LOG_LEVEL.
        stream: Handler stream, stderr by default.
    """
    global _handler

    if _handler is not None:
        return

    if level is None:
        level = parse_log_level(os.environ.get("RENTALQUOTE_LOG_LEVEL"))

    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(logging.Formatter(_format_for(level)))

    package_logger = logging.getLogger(LOGGER_NAMESPACE)
    package_logger.setLevel(level)
    package_logger.addHandler(_handler)
    package_logger.propagate = True

    _quiet_http_clients(level)


def _quiet_http_clients(level: int) -> None:
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, placed under the package namespace."""
    configure_logging()

    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


def set_log_level(level: int) -> None:
    """Change the package log level at runtime, switching to line numbers at DEBUG."""
    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(_format_for(level)))
    _quiet_http_clients(level)


def uvicorn_log_config(level: int | None = None) -> dict[str, Any]:
    """dictConfig for uvicorn so server logs share the package format."""
    if level is None:
        level = logging.getLogger(LOGGER_NAMESPACE).getEffectiveLevel()
    level_name = logging.getLevelName(level)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": _format_for(level)}},
        "handlers": {
            "default": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stderr"},
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level_name, "propagate": False},
            "uvicorn.error": {"level": level_name},
            "uvicorn.access": {"handlers": ["default"], "level": level_name, "propagate": False},
        },
    }
