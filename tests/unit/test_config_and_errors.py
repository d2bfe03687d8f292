"""Unit tests for settings validation, logging setup and error payloads."""

import json
import logging

import pytest
from pydantic import ValidationError

from subdesk.config import Settings
from subdesk.db.session import _engine_kwargs
from subdesk.errors import (
    AlreadyDecided,
    CoordinationError,
    Forbidden,
    NotFound,
    SameTeam,
    StoreUnavailable,
)
from subdesk.logging_config import JsonFormatter, configure_logging


def test_settings_defaults_and_normalization():
    cfg = Settings(log_level="debug", log_format="Console")
    assert cfg.log_level == "DEBUG"
    assert cfg.log_format == "console"
    assert cfg.club_timezone == "Europe/Berlin"
    assert cfg.statement_timeout_seconds() == 5.0


@pytest.mark.parametrize(
    "field, value",
    [
        ("log_level", "LOUD"),
        ("log_format", "xml"),
        ("club_timezone", "Mars/Olympus_Mons"),
        ("request_archive_grace_days", -1),
    ],
)
def test_settings_reject_invalid_values(field, value):
    with pytest.raises(ValidationError):
        Settings(**{field: value})


def test_engine_kwargs_for_postgres_carry_timeouts():
    kwargs = _engine_kwargs(Settings(database_url="postgresql://u:p@db/subdesk", db_statement_timeout_ms=2500))
    assert kwargs["pool_timeout"] == 10.0
    assert "statement_timeout=2500" in kwargs["connect_args"]["options"]
    assert "lock_timeout=2500" in kwargs["connect_args"]["options"]


def test_engine_kwargs_for_sqlite_memory_share_one_connection():
    kwargs = _engine_kwargs(Settings(database_url="sqlite:///:memory:"))
    assert kwargs["connect_args"]["check_same_thread"] is False
    assert kwargs["connect_args"]["timeout"] == 5.0
    assert kwargs["poolclass"].__name__ == "StaticPool"


def test_error_payload_and_categories():
    error = Forbidden("Not allowed to decide", user_id="cap1")
    assert error.to_dict() == {
        "error": "forbidden",
        "detail": "Not allowed to decide",
        "context": {"user_id": "cap1"},
    }
    assert str(error) == "Not allowed to decide"
    assert NotFound("gone").to_dict() == {"error": "not_found", "detail": "gone"}

    assert Forbidden.category == "authorization"
    assert SameTeam.category == "validation"
    assert AlreadyDecided.category == "state"
    assert NotFound.category == "not_found"
    assert StoreUnavailable.category == "infrastructure"
    assert issubclass(StoreUnavailable, CoordinationError)


def test_json_formatter_includes_extras():
    record = logging.LogRecord("subdesk.test", logging.INFO, __file__, 1, "decided %s", (7,), None)
    record.assignment_id = 7
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "decided 7"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "subdesk.test"
    assert payload["assignment_id"] == 7


def test_configure_logging_installs_single_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging(Settings(log_format="json", log_level="WARNING"))
        configure_logging(Settings(log_format="console", log_level="INFO"))
        assert len(root.handlers) == 1
        assert root.level == logging.INFO
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
