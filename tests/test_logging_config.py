"""Tests for app.logging_config formatters and filter."""
import json
import logging

from app.logging_config import JSONFormatter, WorkflowContextFilter


def _record(**extra):
    record = logging.LogRecord("myhometech.state", logging.INFO, __file__, 10, "Status: pending -> scheduled",
                               None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_workflow_fields(self):
        record = _record(user_id=7, request_id=42, event="scheduled", extra_data={"technician_id": 7})
        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Status: pending -> scheduled"
        assert data["request_id"] == 42
        assert data["user_id"] == 7
        assert data["event"] == "scheduled"
        assert data["data"] == {"technician_id": 7}

    def test_only_known_context_keys(self):
        record = _record(request_id=3, duration_ms=12.5)
        data = json.loads(JSONFormatter().format(record))

        assert set(data) == {"timestamp", "level", "logger", "message", "module", "function", "line", "request_id"}


class TestWorkflowContextFilter:
    def test_fills_missing_fields(self):
        record = _record()
        assert WorkflowContextFilter().filter(record) is True
        assert record.user_id is None
        assert record.request_id is None
        assert record.event == ""
        assert record.extra_data is None
