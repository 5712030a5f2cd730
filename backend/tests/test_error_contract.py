"""Tests for normalized error responses."""

from fastapi.testclient import TestClient


def _assert_contract(resp, code):
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert rid
    assert body["error"]["code"] == code
    assert body["error"]["request_id"] == rid
    assert body["detail"] == body["error"]["message"]
    assert isinstance(body["message"], str)
    assert body["message"] == body["error"]["message"]
    return body


def test_validation_error_has_standard_shape(client):
    resp = client.get("/api/checkout", params={"price": "invalid_format"}, follow_redirects=False)

    assert resp.status_code == 400
    body = _assert_contract(resp, "invalid_format")
    assert body["error"]["field"] == "price"


def test_request_id_echoed_in_error(client):
    resp = client.get("/api/checkout", headers={"X-Request-Id": "rid-checkout-1"}, follow_redirects=False)

    assert resp.headers["x-request-id"] == "rid-checkout-1"
    assert resp.json()["error"]["request_id"] == "rid-checkout-1"


def test_not_found_normalized(client):
    resp = client.get("/api/nope")

    assert resp.status_code == 404
    _assert_contract(resp, "not_found")


def test_rate_limit_error_code(client):
    for i in range(5):
        client.post("/api/subscribe", json={"email": f"fan{i}@example.com"})

    resp = client.post("/api/subscribe", json={"email": "late@example.com"})

    assert resp.status_code == 429
    _assert_contract(resp, "rate_limited")
    assert resp.headers["X-RateLimit-Limit"] == "5"
    assert resp.headers["X-RateLimit-Remaining"] == "0"


def test_not_configured_error_code(app, client):
    app.state.session_creator = None

    resp = client.post("/api/checkout", json={"priceId": "price_1SwtCbBfSldKMuDjM3p0kyG4", "email": "jane@example.com"})

    assert resp.status_code == 503
    _assert_contract(resp, "not_configured")


def test_unhandled_exception_is_generic(app):
    def boom():
        raise RuntimeError("database password is hunter2")

    app.add_api_route("/api/boom", boom)
    client = TestClient(app, raise_server_exceptions=False)

    resp = client.get("/api/boom")

    assert resp.status_code == 500
    _assert_contract(resp, "internal_error")
    assert "hunter2" not in resp.text
