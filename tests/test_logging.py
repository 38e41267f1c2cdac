from __future__ import annotations

import logging

import pytest

from cratedigger.logging import LOG_FORMAT, EventFormatter
from cratedigger.logging_events import log_event


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _capture() -> tuple[logging.Logger, _ListHandler]:
    logger = logging.getLogger("tests.logging.capture")
    logger.handlers.clear()
    handler = _ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, handler


def test_log_event_attaches_fields() -> None:
    logger, handler = _capture()

    log_event(logger, "reddit_import.link_failed", link="https://x", stage="resolve")

    record = handler.records[0]
    assert record.getMessage() == "reddit_import.link_failed"
    assert record.event == "reddit_import.link_failed"
    assert record.stage == "resolve"


def test_log_event_rejects_nested_values() -> None:
    logger, _ = _capture()

    with pytest.raises(TypeError):
        log_event(logger, "bad.event", payload={"nested": True})


def test_formatter_renders_extra_fields() -> None:
    logger, handler = _capture()
    log_event(logger, "reddit_import.completed", imported=2, failed=1)

    rendered = EventFormatter(LOG_FORMAT).format(handler.records[0])

    assert rendered.endswith("| event='reddit_import.completed' failed=1 imported=2")
