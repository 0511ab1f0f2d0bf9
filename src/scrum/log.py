"""
Logging setup for the scrum command.

Library modules only ever call logging.getLogger(__name__); the handler, level and
format are installed here once, from the command-line options or the config file.
"""

import json
import logging
import sys
from typing import Optional, TextIO

from .errors import ConfigError

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

LOG_FORMATS = ("auto", "json", "human")

HUMAN_FORMAT = "%(asctime)s %(levelname)-5s %(name)s: %(message)s"
TIME_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, TIME_FORMAT),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def parse_level(level: str) -> int:
    try:
        return LOG_LEVELS[level.strip().lower()]
    except KeyError:
        supported = " ".join(k for k in LOG_LEVELS if k != "warning")
        raise ConfigError(f"unsupported log level: {level!r} (supported levels: {supported})") from None


def setup_logging(level: str = "info", fmt: str = "auto", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Configure the "scrum" logger hierarchy.

    Args:
        level: one of debug, info, warn, error, fatal
        fmt: "human", "json", or "auto" (human on a terminal, json otherwise)
        stream: where to write, stderr by default

    Returns:
        The configured "scrum" logger.
    """
    levelno = parse_level(level)
    fmt = fmt.strip().lower()
    if fmt == "zerolog":
        fmt = "json"
    if fmt not in LOG_FORMATS:
        raise ConfigError(f"unsupported log format: {fmt!r}")

    stream = stream or sys.stderr
    if fmt == "auto":
        fmt = "human" if stream.isatty() else "json"

    handler = logging.StreamHandler(stream)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(HUMAN_FORMAT, TIME_FORMAT))

    logger = logging.getLogger("scrum")
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.addHandler(handler)
    logger.setLevel(levelno)
    return logger
