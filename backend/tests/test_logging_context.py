"""Tests for structured logging and request_id propagation."""

import json
import logging

from fastapi.testclient import TestClient

from backend.core.logging import JsonFormatter, PrettyFormatter, latency_bucket_ms, log_event, mask_email
from backend.tests.mocks import FakeSessionCreator, PLUS_PRICE_ID


def test_request_id_in_response_and_logs(client, caplog):
    with caplog.at_level(logging.INFO, logger="clawdbot"):
        response = client.get("/healthz")
    rid = response.headers.get("x-request-id")
    assert rid
    records = [r for r in caplog.records if getattr(r, "request_id", None) == rid]
    assert records, "Expected logs to contain request_id from response"
    assert len({r.request_id for r in records}) == 1
    assert any(r.getMessage() == "request.complete" for r in records)


def test_checkout_logs_are_correlated_and_masked(client, caplog):
    with caplog.at_level(logging.INFO, logger="clawdbot"):
        response = client.post(
            "/api/checkout",
            json={"priceId": PLUS_PRICE_ID, "email": "jane@example.com"},
            headers={"X-Request-Id": "rid-log-1"},
        )
    assert response.status_code == 200
    created = [r for r in caplog.records if r.getMessage() == "checkout.session_created"]
    assert created
    assert created[0].request_id == "rid-log-1"
    assert created[0].email == "j***@example.com"
    assert all("jane@example.com" not in str(vars(r)) for r in caplog.records)


def test_provider_error_details_stay_in_logs(app_factory, caplog):
    client = TestClient(app_factory(session_creator=FakeSessionCreator(fail=True)))
    with caplog.at_level(logging.INFO, logger="clawdbot"):
        response = client.get("/api/checkout", params={"price": PLUS_PRICE_ID}, follow_redirects=False)

    assert response.status_code == 500
    failures = [r for r in caplog.records if r.getMessage() == "checkout.provider_error"]
    assert failures
    assert "No such price" in failures[0].error
    assert failures[0].error_code == "provider_error"


def test_request_id_in_error_response(client):
    response = client.get("/api/does-not-exist")
    rid = response.headers.get("x-request-id")
    assert response.status_code == 404
    assert rid
    payload = response.json()
    assert payload["error"]["request_id"] == rid


def test_log_event_truncates_long_values(caplog):
    with caplog.at_level(logging.INFO, logger="clawdbot"):
        log_event("info", "test.long", request_id="rid-1", extra={"blob": "x" * 2000})
    record = next(r for r in caplog.records if r.getMessage() == "test.long")
    assert record.blob.endswith("...<truncated>")
    assert len(record.blob) < 600


def test_json_formatter_includes_context():
    record = logging.LogRecord("clawdbot", logging.WARNING, __file__, 1, "app.error", None, None)
    record.request_id = "rid-2"
    record.error_code = "invalid_price"
    record.status = 400

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "app.error"
    assert payload["request_id"] == "rid-2"
    assert payload["error_code"] == "invalid_price"
    assert payload["status"] == 400
    assert payload["timestamp"].endswith("Z")


def test_pretty_formatter_line():
    record = logging.LogRecord("clawdbot", logging.INFO, __file__, 1, "request.complete", None, None)
    record.request_id = "rid-3"

    line = PrettyFormatter().format(record)

    assert "[clawdbot] [rid=rid-3] request.complete" in line


def test_mask_email():
    assert mask_email("jane@example.com") == "j***@example.com"
    assert mask_email(None) is None
    assert mask_email("not-an-email") == "not-an-email"


def test_latency_buckets():
    assert latency_bucket_ms(None) == "unknown"
    assert latency_bucket_ms(5) == "<10ms"
    assert latency_bucket_ms(250) == "100-500ms"
    assert latency_bucket_ms(1500) == ">=1000ms"
