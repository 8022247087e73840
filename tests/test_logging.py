"""Structured log formatting and request-context stamping."""

import json
import logging

from flask import g

from app.middleware.logging_config import JSONFormatter, ReadableFormatter, _RequestContextFilter


def _record(msg="hello", **extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JSONFormatter().format(_record(event_id="e-1", evaluator_id="u-9", job_name="evaluator_assignment"))
    data = json.loads(line)
    assert data["message"] == "hello"
    assert data["level"] == "INFO"
    assert data["event_id"] == "e-1"
    assert data["evaluator_id"] == "u-9"
    assert data["job_name"] == "evaluator_assignment"
    assert "user_id" not in data


def test_readable_formatter_appends_context():
    text = ReadableFormatter().format(_record(request_id="abc", duration_ms=12.4))
    assert "hello" in text
    assert "[12ms]" in text
    assert "request_id=abc" in text


def test_request_filter_stamps_identity(app):
    with app.test_request_context("/api/v1/auth/me"):
        g.request_id = "rid-1"
        g.jwt_user_id = "user-1"
        g.scope = None
        record = _record()
        assert _RequestContextFilter().filter(record)
    assert record.request_id == "rid-1"
    assert record.user_id == "user-1"
    assert getattr(record, "effective_role", None) is None


def test_request_filter_keeps_explicit_extra(app):
    with app.test_request_context("/"):
        g.jwt_user_id = "from-g"
        record = _record(user_id="explicit")
        _RequestContextFilter().filter(record)
    assert record.user_id == "explicit"


def test_request_filter_outside_request():
    record = _record()
    assert _RequestContextFilter().filter(record)
    assert getattr(record, "request_id", None) is None
