"""Tests for fbspine.logging."""

import logging

import structlog

from fbspine.logging import LogContext, bind_context, clear_context, configure_logging, get_logger


class TestConfigureLogging:
    def test_console_output(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="DEBUG", json_format=False)
        get_logger("fbspine.tests").info("connection.opened", storage="db@host")
        assert "connection.opened" in caplog.text

    def test_json_output_uses_ecs_names(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="INFO", json_format=True, service="reporting")
        get_logger("fbspine.tests").info("statement.executed", rows=3)
        assert '"event": "statement.executed"' in caplog.text
        assert '"log.level": "info"' in caplog.text
        assert '"service.name": "reporting"' in caplog.text

    def test_console_output_keeps_plain_field_names(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="INFO", json_format=False, service="reporting")
        get_logger("fbspine.tests").info("connection.opened")
        assert "connection.opened" in caplog.text
        assert "service.name" not in caplog.text
        assert "log.level" not in caplog.text

    def test_level_filtering(self, caplog):
        caplog.set_level(logging.DEBUG)
        configure_logging(level="WARNING", json_format=True)
        get_logger("fbspine.tests").debug("blob.fetched")
        assert "blob.fetched" not in caplog.text

    def teardown_method(self):
        configure_logging(level="INFO", json_format=True, service="fbspine")


class TestContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_context(self):
        bind_context(session_name="reporting")
        assert structlog.contextvars.get_contextvars() == {"session_name": "reporting"}

    def test_log_context_is_scoped(self):
        with LogContext(storage="db@host"):
            assert structlog.contextvars.get_contextvars()["storage"] == "db@host"
        assert "storage" not in structlog.contextvars.get_contextvars()
