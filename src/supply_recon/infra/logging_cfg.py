"""
Structured logging setup for the supply reconciliation service.

- Rich console handler for humans, compact JSON for the optional log file
- Throttling for repetitive warnings (retries, soft validation findings)
- log_event() helper so every event is a single JSON object
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime
from typing import Dict, Optional, Set

from rich.logging import RichHandler

LOGGER_NAME = "supply_recon"


class JsonFormatter(logging.Formatter):
    """Compact JSON formatter for structured log ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        ts = record.created
        payload = {
            "ts": ts,
            "ts_iso": datetime.fromtimestamp(ts).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


class ThrottledFilter(logging.Filter):
    """
    Filter that throttles repetitive log messages.

    Allows first occurrence, then suppresses duplicates for cooldown_sec.
    Duplicates are keyed by event name plus operation/stage, so a retry
    storm on one source does not hide the first failure on another.
    """

    def __init__(self, cooldown_sec: float = 30.0, throttled_events: Optional[Set[str]] = None):
        super().__init__()
        self._cooldown = cooldown_sec
        self._last_seen: Dict[str, float] = {}
        self._throttled_events = throttled_events or {
            "retry_attempt_failed", "supply_validation_warning",
        }

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        try:
            data = json.loads(msg)
        except (json.JSONDecodeError, TypeError):
            return True  # Not JSON, allow through
        if not isinstance(data, dict):
            return True

        event = data.get("event", "")
        if event not in self._throttled_events:
            return True

        now = time.time()
        # Message text carries live figures, so it is not part of the key
        key = f"{event}:{data.get('operation', '')}:{data.get('stage', '')}"
        last = self._last_seen.get(key, 0.0)

        if now - last < self._cooldown:
            return False

        self._last_seen[key] = now
        return True


def build_logger(
    name: str = LOGGER_NAME,
    level: int = logging.INFO,
    file_path: Optional[str] = None,
    throttle_warnings: bool = True,
) -> logging.Logger:
    """
    Build the service logger.

    Args:
        name: Logger name
        level: Minimum log level
        file_path: Path to a JSON log file (None to disable file logging)
        throttle_warnings: Apply throttling filter to the console handler

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Idempotent handler setup; a later call may still attach the file handler
    if logger.handlers:
        for h in logger.handlers:
            h.setLevel(level)
        if file_path and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
            logger.addHandler(_file_handler(file_path, level))
        return logger

    stream_handler = RichHandler(
        rich_tracebacks=False,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
    )
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("%(message)s"))
    if throttle_warnings:
        stream_handler.addFilter(ThrottledFilter(cooldown_sec=30.0))
    logger.addHandler(stream_handler)

    if file_path:
        logger.addHandler(_file_handler(file_path, level))

    logger.propagate = False
    return logger


def _file_handler(file_path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(file_path)
    handler.setFormatter(JsonFormatter())
    handler.setLevel(level)
    return handler


def log_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **data
) -> None:
    """
    Log a structured event with proper level.

    Usage:
        log_event(log, "retry_attempt", operation="L2_LATEST_SUPPLY", attempt=2)
    """
    payload = {"event": event, **data}
    logger.log(level, json.dumps(payload, default=str))
