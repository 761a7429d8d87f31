"""Shared fixtures: config, isolated demo stores, gateways and Flask test clients."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from app import create_app
from config import DEFAULT_ALLOWED_TYPES, AppConfig
from credentials import CredentialStore
from demo_data import DemoStore
from gateway import PersistenceGateway
from live_store import LiveStore

TEST_SECRET = "test-secret-please-ignore"


@pytest.fixture
def make_config():
    """Build an AppConfig in demo mode, overriding individual fields."""
    base = AppConfig(
        database_url=None,
        db_connect_timeout=1,
        jwt_secret=TEST_SECRET,
        cloudflare_account_id=None,
        cloudflare_api_token=None,
        max_upload_bytes=5 * 1024 * 1024,
        allowed_types=DEFAULT_ALLOWED_TYPES,
        app_env="development",
        log_level="INFO",
    )

    def _make(**overrides):
        return dataclasses.replace(base, **overrides)

    return _make


@pytest.fixture
def cfg(make_config):
    return make_config()


@pytest.fixture
def credentials():
    return CredentialStore(TEST_SECRET)


@pytest.fixture
def demo():
    """Fresh seeded demo store per test."""
    return DemoStore()


@pytest.fixture
def live():
    """Stand-in for the Postgres store; tests set return values or failures."""
    return MagicMock(spec=LiveStore)


@pytest.fixture
def gateway(credentials, demo):
    """Gateway with no database configured."""
    return PersistenceGateway(credentials, live=None, demo=demo)


@pytest.fixture
def live_gateway(credentials, demo, live):
    return PersistenceGateway(credentials, live=live, demo=demo)


@pytest.fixture
def app(cfg, gateway):
    return create_app(cfg, gateway=gateway)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registered(client):
    """A user registered and logged in through the HTTP API."""
    body = {"email": "ada@example.com", "password": "s3cret!", "firstName": "Ada", "lastName": "Obi"}
    resp = client.post("/auth/register", json=body)
    assert resp.status_code == 201
    resp = client.post("/auth/login", json={"email": body["email"], "password": body["password"]})
    assert resp.status_code == 200
    return resp.get_json()["user"]
