import json
import logging

from originator.core.context import clear_context, set_request_id, set_tenant_id
from originator.core.logging import JsonFormatter, RequestContextFilter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("originator.audit", logging.INFO, __file__, 1, "moved %s", ("x",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_lines_carry_request_context():
    set_tenant_id("acme")
    set_request_id("req-9")
    try:
        record = _record(event="application.status_changed")
        RequestContextFilter().filter(record)
        payload = json.loads(JsonFormatter(stream_label="audit").format(record))
    finally:
        clear_context()

    assert payload["message"] == "moved x"
    assert payload["stream"] == "audit"
    assert payload["tenant_id"] == "acme"
    assert payload["request_id"] == "req-9"
    assert payload["event"] == "application.status_changed"


def test_context_defaults_to_placeholder():
    clear_context()
    record = _record()
    RequestContextFilter().filter(record)
    payload = json.loads(JsonFormatter().format(record))

    assert payload["tenant_id"] == "-"
    assert payload["actor_id"] == "-"
    assert "event" not in payload
