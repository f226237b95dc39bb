"""
Integration test configuration.

Builds the real application with create_app() but never runs its lifespan:
the long-lived resources it would create (Mongo connection, Redis, email
provider) are put on app.state directly, backed by mongomock and mocks.
Every app gets its own per-IP limiter, so limits never leak between tests.
"""

import json
from base64 import b64encode
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import itsdangerous
import pytest
from fastapi.testclient import TestClient

from app import create_app
from config import AppSettings, DatabaseSettings


class FakeMongoConnection:
    def __init__(self, db):
        self.db = db
        self.ping = AsyncMock(return_value=None)

    async def get_db(self):
        return self.db


@pytest.fixture
def email_provider():
    provider = AsyncMock()
    provider.send_verification_code.return_value = True
    provider.send_api_key.return_value = True
    provider.send_expiry_notice.return_value = True
    return provider


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.delenv("GATE_STRATEGY", raising=False)
    monkeypatch.delenv("REQUEST_LIMIT", raising=False)
    monkeypatch.delenv("REDIS_URI", raising=False)
    return AppSettings(
        secret_key="test-secret",
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
    )


@pytest.fixture
def make_app(async_db, email_provider):
    def _make(app_settings: AppSettings):
        application = create_app(app_settings)
        application.state.settings = app_settings
        application.state.mongo = FakeMongoConnection(async_db)
        application.state.redis = None
        application.state.email_provider = email_provider
        return application

    return _make


@pytest.fixture
def app(make_app, settings):
    return make_app(settings)


@pytest.fixture
def admin_user(users_col):
    doc = {"email": "beheer@example.org", "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)}
    doc["_id"] = users_col.sync.insert_one(doc).inserted_id
    return doc


@pytest.fixture
def sign_session(settings):
    """Session cookie value as the login flow would sign it."""

    def _sign(data: dict) -> str:
        payload = b64encode(json.dumps(data).encode("utf-8"))
        return itsdangerous.TimestampSigner(settings.secret_key).sign(payload).decode("utf-8")

    return _sign


@pytest.fixture
def session_client(app, settings, sign_session):
    """TestClient factory for the default app carrying the given session."""

    def _client(data: dict) -> TestClient:
        client = TestClient(app)
        client.cookies.set(settings.session_cookie, sign_session(data))
        return client

    return _client


@pytest.fixture
def admin_client(session_client, admin_user):
    return session_client({"user_id": str(admin_user["_id"])})
