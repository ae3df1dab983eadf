"""structlog configuration."""

import json
import logging

import pytest
import structlog

from brainbattle.config import get_settings
from brainbattle.middleware.logging import setup_logging


@pytest.fixture
def json_logging():
    setup_logging(get_settings().model_copy(update={"log_format": "json", "log_level": "INFO"}))
    yield
    setup_logging(get_settings())


def test_json_lines_carry_event_and_context(json_logging, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="brainbattle.logtest")
    with structlog.contextvars.bound_contextvars(request_id="req-42"):
        structlog.get_logger("brainbattle.logtest").warning("session_starting", session_id="s-1")

    [record] = [r for r in caplog.records if r.name == "brainbattle.logtest"]
    line = json.loads(record.getMessage())
    assert line["event"] == "session_starting"
    assert line["session_id"] == "s-1"
    assert line["request_id"] == "req-42"
    assert line["level"] == "warning"
    assert line["logger"] == "brainbattle.logtest"
    assert "timestamp" in line


def test_chatty_libraries_held_at_warning(json_logging) -> None:
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("anthropic").level == logging.WARNING
