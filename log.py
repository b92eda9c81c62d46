"""Structured logging for Lang2Lang.

Every record is one JSON object per line on stderr, so request traces can be
followed with `jq` (filter on `component`, `word` or the language pair).
LANG2LANG_LOG_LEVEL sets verbosity (DEBUG/INFO/WARNING/ERROR) and
LANG2LANG_LOG_FORMAT=text switches to a human-readable layout.
"""
import logging
import json
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator

# Context fields lifted from `extra=` into the JSON entry
EXTRA_KEYS = (
    "component", "endpoint", "status_code", "duration_ms", "count", "detail",
    "word", "source_language", "target_language",
)


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in EXTRA_KEYS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[1]:
            exc = record.exc_info[1]
            entry["error"] = str(exc)
            entry["error_type"] = type(exc).__name__
            if exc.__cause__ is not None:
                entry["cause"] = f"{type(exc.__cause__).__name__}: {exc.__cause__}"
        return json.dumps(entry, ensure_ascii=False, default=str)


def get_logger(name: str = "lang2lang") -> logging.Logger:
    """Get or create a structured logger.

    Usage:
        from log import get_logger
        logger = get_logger("lang2lang.lookup")
        logger.info("Cache hits", extra={"component": "lookup", "count": 3})
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        level = os.environ.get("LANG2LANG_LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))

        handler = logging.StreamHandler(sys.stderr)
        if os.environ.get("LANG2LANG_LOG_FORMAT", "json") == "text":
            handler.setFormatter(logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%H:%M:%S",
            ))
        else:
            handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.propagate = False
    return logger


@contextmanager
def log_duration(logger: logging.Logger, msg: str, **extra) -> Iterator[dict]:
    """Log `msg` with `duration_ms` once the block finishes.

    Yields the `extra` dict so the block can add fields (counts, details)
    discovered along the way. Nothing is logged if the block raises.
    """
    started = time.monotonic()
    yield extra
    extra["duration_ms"] = round((time.monotonic() - started) * 1000)
    logger.info(msg, extra=extra)
