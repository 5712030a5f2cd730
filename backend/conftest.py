# backend/conftest.py
import os

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SKIP_ENV_VALIDATION", "1")

from backend.core.metrics import METRICS
from backend.tests.mocks import FakeSessionCreator, FakeTime, make_settings


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def session_creator():
    return FakeSessionCreator()


@pytest.fixture
def app_factory(fake_time):
    """
    Build a fresh app per call.

    Each app gets its own in-memory rate-limit store driven by fake_time,
    so windows never leak between tests.
    """
    from backend.main import create_app

    def _make(session_creator=None, **overrides):
        return create_app(make_settings(**overrides), session_creator=session_creator, time_fn=fake_time)

    return _make


@pytest.fixture
def app(app_factory, session_creator):
    return app_factory(session_creator=session_creator)


@pytest.fixture
def client(app):
    return TestClient(app)
