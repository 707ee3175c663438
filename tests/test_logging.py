"""Tests for the structured log formatter and context logging."""

import logging
import sys

from app.core.logging import StructuredFormatter, get_logger, log_with_context


def _record(msg: str = "hello", exc_info=None, **attrs) -> logging.LogRecord:
    record = logging.LogRecord("app.test", logging.INFO, __file__, 10, msg, None, exc_info, func="handler")
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_format_promotes_context_fields_and_extras():
    record = _record(user_id=7, guideline_id=12, extra_data={"turns": 3})

    line = StructuredFormatter().format(record)

    assert "level=INFO" in line
    assert "function=handler" in line
    assert "message=hello" in line
    assert "user_id=7" in line
    assert "guideline_id=12" in line
    assert line.endswith("turns=3")


def test_format_appends_traceback():
    try:
        raise ValueError("boom")
    except ValueError:
        record = _record(exc_info=sys.exc_info())

    line = StructuredFormatter().format(record)

    first, rest = line.split("\n", 1)
    assert "message=hello" in first
    assert "ValueError: boom" in rest


def test_log_with_context_splits_known_fields(caplog):
    logger = get_logger("app.test_context")

    with caplog.at_level(logging.INFO, logger="app.test_context"):
        log_with_context(logger, logging.INFO, "chat handled", user_id=7, turns=4)

    record = caplog.records[-1]
    assert record.user_id == 7
    assert record.extra_data == {"turns": 4}
    assert not hasattr(record, "guideline_id")


def test_get_logger_uses_info_outside_dev():
    logger = get_logger("app.test_level")
    assert logger.level == logging.INFO
    assert isinstance(logger.handlers[0].formatter, StructuredFormatter)
