# src/stockbot/logging_utils.py
"""Log formatting and handler setup shared by the server and the CLI."""

import json
import logging
import logging.handlers
import sys
import time
from typing import Any, Dict, Iterator, Optional, Tuple

from .config import Settings

# Attributes every LogRecord carries; anything else arrived via ``extra=``.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}

LOG_FILE = "bot.jsonl"
ERROR_FILE = "errors.log"
ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_KEEP = 7


def _timestamp(record: logging.LogRecord) -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created))


def _safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def _extras(record: logging.LogRecord) -> Iterator[Tuple[str, Any]]:
    for key, value in record.__dict__.items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        yield key, _safe(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, name, msg, then any extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": _timestamp(record),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        for key, value in _extras(record):
            entry.setdefault(key, value)
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class PlainFormatter(logging.Formatter):
    """Coloured console lines for local runs (``LOG_PLAIN=1``)."""

    COLOURS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelno)
        level = f"{record.levelname:<8}"
        if colour:
            level = f"{colour}{level}{self.RESET}"

        parts = [_timestamp(record), level, f"{record.name}: {record.getMessage()}"]
        parts.extend(f"{key}={value}" for key, value in _extras(record))
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _rotating(path, level: int = logging.NOTSET) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=ROTATE_BYTES, backupCount=ROTATE_KEEP, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def setup_logging(settings: Settings, level: Optional[str] = None) -> None:
    """Install root handlers for the process.

    Parameters
    ----------
    settings : Settings
        Supplies ``log_level``, ``log_plain`` and ``log_dir``.
    level : Optional[str]
        Overrides ``settings.log_level`` when given.

    Notes
    -----
    Console output is JSON unless ``log_plain`` is set. ``bot.jsonl`` gets
    every record and ``errors.log`` gets WARNING and above; both rotate. When
    ``log_dir`` cannot be created the file handlers are skipped.
    """
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel((level or settings.log_level or "INFO").upper())

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(settings.log_dir / LOG_FILE))
        root.addHandler(_rotating(settings.log_dir / ERROR_FILE, logging.WARNING))
    except OSError as e:
        sys.stderr.write(f"log_dir_unavailable dir={settings.log_dir} err={e}\n")

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(PlainFormatter() if settings.log_plain else JsonFormatter())
    root.addHandler(console)

    logging.getLogger("werkzeug").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
