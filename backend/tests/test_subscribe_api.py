"""Tests for the waitlist subscribe/unsubscribe endpoints."""

from fastapi.testclient import TestClient

from backend.core.metrics import subscribe_requests_total
from backend.features.subscribe.service import (
    SUBSCRIBED_MESSAGE,
    UNSUBSCRIBED_MESSAGE,
    is_disposable,
    unsubscribe_token,
)

SECRET = "test-unsubscribe-secret"


def test_subscribe_adds_normalized_email(app, client):
    resp = client.post("/api/subscribe", json={"email": " Fan@Example.com ", "source": "footer"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": SUBSCRIBED_MESSAGE}
    assert app.state.subscriber_store.subscribers == {"fan@example.com": "footer"}
    assert subscribe_requests_total.value({"outcome": "added"}) == 1


def test_duplicate_subscribe_looks_identical(client):
    first = client.post("/api/subscribe", json={"email": "fan@example.com"})
    second = client.post("/api/subscribe", json={"email": "FAN@example.com"})

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert subscribe_requests_total.value({"outcome": "duplicate"}) == 1


def test_subscribe_requires_email(client):
    resp = client.post("/api/subscribe", json={})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "missing_field"
    assert "Email" in resp.json()["error"]["message"]


def test_subscribe_rejects_bad_format(client):
    resp = client.post("/api/subscribe", json={"email": "nope"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_email"


def test_subscribe_rejects_disposable_domain(app, client):
    resp = client.post("/api/subscribe", json={"email": "burner@mailinator.com"})

    assert resp.status_code == 400
    assert "Disposable" in resp.json()["error"]["message"]
    assert "burner@mailinator.com" not in app.state.subscriber_store


def test_subscribe_rejects_long_email(client):
    resp = client.post("/api/subscribe", json={"email": "a" * 250 + "@example.com"})

    assert resp.status_code == 400
    assert "too long" in resp.json()["error"]["message"]


def test_subscribe_invalid_json(client):
    resp = client.post("/api/subscribe", content=b"email=fan@example.com", headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_body"


def test_subscribe_rate_limited_after_five(client):
    for i in range(5):
        assert client.post("/api/subscribe", json={"email": f"fan{i}@example.com"}).status_code == 200

    resp = client.post("/api/subscribe", json={"email": "fan5@example.com"})

    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "rate_limited"
    assert resp.headers["Retry-After"] == "3600"


def test_unsubscribe_with_valid_token(app, client):
    client.post("/api/subscribe", json={"email": "fan@example.com"})

    resp = client.delete(
        "/api/subscribe",
        params={"email": "Fan@Example.com", "token": unsubscribe_token("fan@example.com", SECRET)},
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": UNSUBSCRIBED_MESSAGE}
    assert "fan@example.com" not in app.state.subscriber_store


def test_unsubscribe_unknown_email_still_succeeds(client):
    resp = client.delete(
        "/api/subscribe",
        params={"email": "ghost@example.com", "token": unsubscribe_token("ghost@example.com", SECRET)},
    )

    assert resp.status_code == 200
    assert resp.json()["message"] == UNSUBSCRIBED_MESSAGE


def test_unsubscribe_rejects_bad_token(app, client):
    client.post("/api/subscribe", json={"email": "fan@example.com"})

    resp = client.delete("/api/subscribe", params={"email": "fan@example.com", "token": "deadbeef"})

    assert resp.status_code == 400
    assert "token" in resp.json()["error"]["message"]
    assert "fan@example.com" in app.state.subscriber_store


def test_unsubscribe_requires_email_and_token(client):
    no_email = client.delete("/api/subscribe", params={"token": "abc"})
    no_token = client.delete("/api/subscribe", params={"email": "fan@example.com"})

    assert no_email.status_code == 400
    assert "Email" in no_email.json()["error"]["message"]
    assert no_token.status_code == 400
    assert "token" in no_token.json()["error"]["message"]


def test_unsubscribe_unavailable_without_secret(app_factory):
    client = TestClient(app_factory(SUBSCRIBE_TOKEN_SECRET=None))
    resp = client.delete("/api/subscribe", params={"email": "fan@example.com", "token": "abc"})

    assert resp.status_code == 503
    assert resp.json()["error"]["code"] == "not_configured"


def test_token_is_case_insensitive_on_email():
    assert unsubscribe_token("Fan@Example.com", SECRET) == unsubscribe_token("fan@example.com", SECRET)
    assert unsubscribe_token("fan@example.com", SECRET) != unsubscribe_token("fan@example.com", "other")


def test_disposable_subdomains():
    assert is_disposable("x@mailinator.com")
    assert is_disposable("x@eu.mailinator.com")
    assert not is_disposable("x@notmailinator.com")
