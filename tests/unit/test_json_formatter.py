"""Unit tests for JSON formatter."""

import json
import logging
import sys

import pytest

from apiserver.bootstrap.logging_setup import JsonFormatter


@pytest.fixture(name="json_formatter")
def json_formatter_fixture():
    """Create a JSON formatter instance."""
    return JsonFormatter("%Y-%m-%d %H:%M:%S")


def make_record(level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="apiserver.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg="Test message",
        args=(),
        exc_info=exc_info,
    )


def test_json_formatter_basic_fields(json_formatter):
    """Test that JSON formatter includes all required basic fields."""
    record = make_record()
    record.correlation_id = "test-correlation-id"
    record.component = "test"

    log_data = json.loads(json_formatter.format(record))

    assert log_data["level"] == "INFO"
    assert log_data["correlation_id"] == "test-correlation-id"
    assert log_data["component"] == "test"
    assert log_data["message"] == "Test message"
    assert "timestamp" in log_data


def test_json_formatter_with_access_fields(json_formatter):
    """Access log fields are emitted as top-level keys."""
    record = make_record()
    record.event = "test_event"
    record.status = 404
    record.method = "GET"
    record.duration = "1.250ms"
    record.ip = "127.0.0.1:8080"
    record.path = "/missing"

    log_data = json.loads(json_formatter.format(record))

    assert log_data["event"] == "test_event"
    assert log_data["status"] == 404
    assert log_data["method"] == "GET"
    assert log_data["duration"] == "1.250ms"
    assert log_data["ip"] == "127.0.0.1:8080"
    assert log_data["path"] == "/missing"


def test_json_formatter_ignores_unlisted_attributes(json_formatter):
    record = make_record()
    record.internal_detail = "hidden"
    assert "internal_detail" not in json.loads(json_formatter.format(record))


def test_json_formatter_defaults(json_formatter):
    """Missing correlation id and component fall back to placeholders."""
    log_data = json.loads(json_formatter.format(make_record()))
    assert log_data["correlation_id"] == "-"
    assert log_data["component"] == "unknown"


def test_json_formatter_stable_key_ordering(json_formatter):
    """Test that JSON formatter produces stable key ordering."""
    record = make_record()
    record.correlation_id = "test-id"
    record.component = "test"
    record.event = "test_event"
    record.client = "127.0.0.1:8080"

    output1 = json_formatter.format(record)
    output2 = json_formatter.format(record)

    assert output1 == output2
    keys = list(json.loads(output1).keys())
    assert keys == sorted(keys)


def test_json_formatter_serializes_unusual_values(json_formatter):
    record = make_record()
    record.domains = ("a.example",)
    record.error = ValueError("boom")
    log_data = json.loads(json_formatter.format(record))
    assert log_data["domains"] == ["a.example"]
    assert log_data["error"] == "boom"


def test_json_formatter_with_exception(json_formatter):
    """Test that JSON formatter includes exception information."""
    try:
        raise ValueError("Test error")
    except ValueError:
        record = make_record(logging.ERROR, sys.exc_info())

    log_data = json.loads(json_formatter.format(record))

    assert "exception" in log_data
    assert "ValueError: Test error" in log_data["exception"]
