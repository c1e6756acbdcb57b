"""Tests for structured logging and call context."""

import json
import logging
import sys

import pytest

from utils.logging import (
    HumanReadableFormatter,
    JSONFormatter,
    LogContext,
    clear_request_context,
    configure_logging,
    get_request_id,
    get_team_id,
    set_request_context,
)


def make_record(message="Detected 2 conflict flags", exc_info=None, **extra):
    record = logging.LogRecord(
        name="services.conflict_detector",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def reset_context():
    clear_request_context()
    yield
    clear_request_context()


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "services.conflict_detector"
        assert data["message"] == "Detected 2 conflict flags"
        assert "team_id" not in data

    def test_includes_call_context(self):
        set_request_context(request_id="req-1", team_id="team-alpha")

        data = json.loads(JSONFormatter().format(make_record()))

        assert data["request_id"] == "req-1"
        assert data["team_id"] == "team-alpha"

    def test_extra_fields_nested(self):
        data = json.loads(JSONFormatter().format(make_record(decisions_in_paths=3)))

        assert data["extra"] == {"decisions_in_paths": 3}

    def test_exception_details(self):
        try:
            raise ConnectionError("refused")
        except ConnectionError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert data["exception_type"] == "ConnectionError"
        assert "refused" in data["exception"]


class TestHumanReadableFormatter:
    def test_prefixes_team_scope(self):
        set_request_context(team_id="team-alpha")

        line = HumanReadableFormatter().format(make_record())

        assert "| INFO     | services.conflict_detector | [team-alpha] Detected" in line

    def test_no_prefix_without_context(self):
        line = HumanReadableFormatter().format(make_record())

        assert line.endswith("| services.conflict_detector | Detected 2 conflict flags")


class TestLogContext:
    def test_sets_and_restores(self):
        set_request_context(team_id="outer")

        with LogContext(request_id="req-2", team_id="inner"):
            assert get_team_id() == "inner"
            assert get_request_id() == "req-2"

        assert get_team_id() == "outer"
        assert get_request_id() is None

    @pytest.mark.asyncio
    async def test_async_usage(self):
        async with LogContext(team_id="team-beta"):
            assert get_team_id() == "team-beta"

        assert get_team_id() is None


class TestConfigureLogging:
    @pytest.fixture
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield root
        root.handlers = handlers
        root.setLevel(level)

    def test_json_handler(self, restore_root):
        configure_logging(level="DEBUG", json_format=True)

        assert restore_root.level == logging.DEBUG
        assert isinstance(restore_root.handlers[-1].formatter, JSONFormatter)

    def test_debug_env_selects_human_format(self, restore_root, monkeypatch):
        monkeypatch.setenv("DEBUG", "true")

        configure_logging()

        assert isinstance(restore_root.handlers[-1].formatter, HumanReadableFormatter)

    def test_quiets_driver_loggers(self, restore_root):
        configure_logging(json_format=True)

        assert logging.getLogger("neo4j").level == logging.WARNING
