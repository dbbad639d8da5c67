"""Logging from config and env.

Levels (inclusive):
- ERROR: failures only (default, keeps stderr quiet for scripted agents)
- WARNING: non-critical issues (version check failures) and ERROR
- INFO: claim events, WARNING, and ERROR
- DEBUG: workspace discovery, retries and all levels above

Configure via the config file (logging.level, logging.format,
logging.json_format), env (LOGGING_LEVEL, ...) or --log-level. Output goes
to stderr so stdout carries only the claim result.
"""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any, Mapping

from bd_claim.config import LoggingConfig
from bd_claim.ports import EventLogger

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

DEFAULT_LEVEL = "ERROR"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# LogRecord attribute carrying event fields
FIELDS_ATTR = "event_fields"


def _resolve_level(level: str) -> int:
    """Map level name to logging constant.

    Falls back to ERROR if unknown.
    """
    return LEVELS.get(level.upper().strip(), logging.ERROR)


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message and event fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, FIELDS_ATTR, None)
        if fields:
            for key, value in fields.items():
                entry.setdefault(key, value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Plain format with event fields appended as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, FIELDS_ATTR, None)
        if fields:
            line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


class ClaimLogging:
    """Configures root logger from LoggingConfig (YAML + env LOGGING_*)."""

    def __init__(self, config: LoggingConfig) -> None:
        """Store logging config (level, format, JSON switch)."""
        self._level = _resolve_level(config.level)
        self._format = config.format or DEFAULT_FORMAT
        self._json = config.json_format

    def setup(self) -> None:
        """Apply level and formatter to the root logger (stderr handler)."""
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter() if self._json else TextFormatter(self._format))
        logging.basicConfig(level=self._level, handlers=[handler], force=True)


class StdlibEventLogger(EventLogger):
    """EventLogger on top of a stdlib logger; fields ride on the record."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("bd_claim.events")

    def _log(self, level: int, msg: str, fields: Mapping[str, Any] | None) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, msg, extra={FIELDS_ATTR: dict(fields or {})})

    def debug(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, msg, fields)

    def info(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(logging.INFO, msg, fields)

    def warn(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(logging.WARNING, msg, fields)

    def error(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self._log(logging.ERROR, msg, fields)


class NullEventLogger(EventLogger):
    """Discards events; counts calls."""

    def __init__(self) -> None:
        self.call_count = 0

    def debug(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self.call_count += 1

    def info(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self.call_count += 1

    def warn(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self.call_count += 1

    def error(self, msg: str, fields: Mapping[str, Any] | None = None) -> None:
        self.call_count += 1
