"""Structured event logging for the import pipeline."""

from __future__ import annotations

import logging
import time
from typing import Any

_FLAT_TYPES = (str, int, float, bool, type(None))


def log_event(
    logger: logging.Logger | logging.LoggerAdapter,
    event: str,
    /,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log ``event`` as the message with ``fields`` attached as record extras.

    Field values must be scalars so every handler can render them without a
    serializer; nested structures raise :class:`TypeError`.
    """

    if not event or not event.strip():
        raise ValueError("event name must not be empty")

    extra: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if not isinstance(value, _FLAT_TYPES):
            raise TypeError(f"log field {key!r} must be a scalar, got {type(value).__name__}")
        extra[key] = value
    logger.log(level, event, extra=extra)


def now_ms() -> int:
    """Wall clock in epoch milliseconds."""

    return time.time_ns() // 1_000_000


def elapsed_ms(started_ms: int) -> int:
    return max(0, now_ms() - started_ms)


__all__ = ["elapsed_ms", "log_event", "now_ms"]
