"""Tests for settings loading and required-key checks."""

import logging

import pytest

from backend.core.config import Settings, validate_config
from backend.tests.mocks import make_settings


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.APP_URL == "http://localhost:3000"
    assert cfg.CHECKOUT_RATE_LIMIT == 10
    assert cfg.CHECKOUT_RATE_WINDOW_SECONDS == 60
    assert cfg.SUBSCRIBE_RATE_LIMIT == 5
    assert cfg.SUBSCRIBE_RATE_WINDOW_SECONDS == 3600
    assert cfg.STRIPE_TIMEOUT_SECONDS == 10.0


def test_env_vars_override_defaults(monkeypatch):
    monkeypatch.setenv("APP_URL", "https://clawdbot.example.com")
    monkeypatch.setenv("CHECKOUT_RATE_LIMIT", "3")
    monkeypatch.setenv("STRIPE_PRICE_PLUS", "price_override")

    cfg = Settings(_env_file=None)

    assert cfg.APP_URL == "https://clawdbot.example.com"
    assert cfg.CHECKOUT_RATE_LIMIT == 3
    assert cfg.STRIPE_PRICE_PLUS == "price_override"


def test_validate_config_warns_on_missing_keys(caplog):
    cfg = make_settings(STRIPE_SECRET_KEY=None)
    logger = logging.getLogger("clawdbot.test")

    with caplog.at_level(logging.WARNING, logger="clawdbot.test"):
        assert validate_config(strict=False, settings_obj=cfg, logger=logger) is True

    assert any("STRIPE_SECRET_KEY" in r.getMessage() for r in caplog.records)
    assert not any("test-unsubscribe-secret" in r.getMessage() for r in caplog.records)


def test_validate_config_strict_raises():
    cfg = make_settings(STRIPE_SECRET_KEY=None, SUBSCRIBE_TOKEN_SECRET=None)
    with pytest.raises(RuntimeError, match="STRIPE_SECRET_KEY, SUBSCRIBE_TOKEN_SECRET"):
        validate_config(strict=True, settings_obj=cfg)


def test_validate_config_complete():
    cfg = make_settings(STRIPE_SECRET_KEY="sk_test_123")
    assert validate_config(strict=True, settings_obj=cfg) is True
