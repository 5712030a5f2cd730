"""Tests for the pricing endpoints."""

from fastapi.testclient import TestClient

from backend.tests.mocks import PLUS_PRICE_ID


def test_tiers_in_display_order(client):
    resp = client.get("/api/pricing/tiers")

    assert resp.status_code == 200
    tiers = resp.json()["tiers"]
    assert [t["id"] for t in tiers] == ["free", "personal", "plus", "pro", "family", "team"]


def test_tier_payload_shape(client):
    tiers = {t["id"]: t for t in client.get("/api/pricing/tiers").json()["tiers"]}

    plus = tiers["plus"]
    assert plus["priceId"] == PLUS_PRICE_ID
    assert plus["priceLabel"] == "$19/month"
    assert plus["popular"] is True
    assert plus["badge"] == "Most Popular"
    assert plus["annual"] == {"annual": 190, "savings": 38, "savingsPercent": 17}

    free = tiers["free"]
    assert free["priceId"] is None
    assert free["priceLabel"] == "Free"
    assert "annual" not in free

    assert tiers["pro"]["messagesPerMonth"] == "unlimited"
    assert tiers["pro"]["highlighted"] is True


def test_tiers_follow_settings_price_ids(app_factory):
    client = TestClient(app_factory(STRIPE_PRICE_PLUS="price_staging"))
    tiers = {t["id"]: t for t in client.get("/api/pricing/tiers").json()["tiers"]}

    assert tiers["plus"]["priceId"] == "price_staging"


def test_upgrade_prompt_message_limit(client):
    resp = client.get("/api/pricing/upgrade-prompt", params={"tier": "free", "messages": 85})

    assert resp.status_code == 200
    assert resp.json() == {"show": True, "reason": "message_limit", "suggestedTier": "personal"}


def test_upgrade_prompt_top_tier(client):
    resp = client.get("/api/pricing/upgrade-prompt", params={"tier": "pro", "messages": 10**6})

    assert resp.json()["show"] is False


def test_upgrade_prompt_unknown_tier(client):
    resp = client.get("/api/pricing/upgrade-prompt", params={"tier": "enterprise"})

    assert resp.status_code == 200
    assert resp.json()["show"] is False


def test_upgrade_prompt_negative_usage(client):
    resp = client.get("/api/pricing/upgrade-prompt", params={"tier": "free", "skills": -1})

    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_upgrade_prompt_requires_tier(client):
    resp = client.get("/api/pricing/upgrade-prompt")

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"]["code"] == "validation_error"
    assert body["error"]["field"] == "tier"
