"""
Unit tests for logging configuration.
"""

import json
import logging
from types import SimpleNamespace

import pytest

from cloakchat.core.logging_config import (
    ColoredFormatter,
    JSONFormatter,
    SessionLoggerAdapter,
    filter_sensitive_data,
    setup_logging,
    truncate_large_data,
)


def make_record(msg="hello", **extra):
    record = logging.LogRecord("cloakchat.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestFilterSensitiveData:
    def test_masks_credentials(self):
        data = {"api_key": "sk-1", "Authorization": "Bearer x", "model": "gpt-4"}
        result = filter_sensitive_data(data)
        assert result["api_key"] == "***FILTERED***"
        assert result["Authorization"] == "***FILTERED***"
        assert result["model"] == "gpt-4"

    def test_keeps_token_counts(self):
        data = {"prompt_tokens": 10, "completion_tokens": 5, "max_tokens": 4000}
        assert filter_sensitive_data(data) == data

    def test_nested(self):
        data = {"remote": [{"auth_token": "t", "chat_id": "c1"}]}
        assert filter_sensitive_data(data) == {"remote": [{"auth_token": "***FILTERED***", "chat_id": "c1"}]}


class TestTruncateLargeData:
    def test_short_unchanged(self):
        assert truncate_large_data("abc", max_length=5) == "abc"

    def test_long_truncated(self):
        result = truncate_large_data("a" * 20, max_length=5)
        assert result.startswith("aaaaa...")
        assert "total length: 20" in result


class TestFormatters:
    def test_json_formatter_includes_extra_fields(self):
        record = make_record(extra_fields={"session_id": "s1", "secret": "x"})
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["session_id"] == "s1"
        assert data["secret"] == "***FILTERED***"

    def test_json_formatter_truncates(self):
        data = json.loads(JSONFormatter(max_message_length=3).format(make_record("abcdef")))
        assert data["message"].startswith("abc...")

    def test_colored_formatter_restores_levelname(self):
        record = make_record()
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[32m" in output
        assert record.levelname == "INFO"


class TestSessionLoggerAdapter:
    def test_prefixes_session_and_adds_fields(self):
        adapter = SessionLoggerAdapter(logging.getLogger("test"), {"session_id": "s1", "chat_id": "c1"})
        msg, kwargs = adapter.process("done", {"extra": {"extra_fields": {"tokens": 3}}})
        assert msg == "[s1] done"
        assert kwargs["extra"]["extra_fields"] == {"session_id": "s1", "chat_id": "c1", "tokens": 3}


class TestSetupLogging:
    def test_file_handler_writes_json(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "app.log"
        config = SimpleNamespace(
            log_level="debug",
            log_console_enabled=False,
            log_file_enabled=True,
            log_file_path=str(log_file),
            log_json_format=True,
        )
        setup_logging(config)

        assert restore_root_logger.level == logging.DEBUG
        logging.getLogger("cloakchat.test").info("synced", extra={"extra_fields": {"created": 2}})
        for handler in restore_root_logger.handlers:
            handler.flush()

        lines = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert any(line["message"] == "synced" and line["created"] == 2 for line in lines)

    def test_console_only(self, restore_root_logger):
        config = SimpleNamespace(
            log_level="warning",
            log_console_enabled=True,
            log_file_enabled=False,
            log_file_path="",
            log_json_format=False,
        )
        setup_logging(config)
        assert restore_root_logger.level == logging.WARNING
        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, ColoredFormatter)
