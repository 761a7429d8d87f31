"""Tests for the setup page and its JSON status endpoint."""

from app import create_app
from errors import InfrastructureError
from gateway import PersistenceGateway


class TestStatus:
    def test_demo_mode_status(self, client):
        body = client.get("/api/status").get_json()
        assert body["connection"] == {"status": "not-configured", "error": None}
        assert "DATABASE_URL" in body["environment"]["missing"]
        assert "JWT_SECRET" not in body["environment"]["missing"]
        assert body["last_call"]["mode"] == "demo"
        assert body["app"]["name"] == "Data Assembly - Braid Glossary"

    def test_reports_last_fallback(self, make_config, credentials, live):
        live.list_braids.side_effect = InfrastructureError("Database query failed: OperationalError")
        live.ping.side_effect = InfrastructureError("Database connection failed: OperationalError")
        cfg = make_config(database_url="postgresql://db.invalid/glossary")
        client = create_app(cfg, gateway=PersistenceGateway(credentials, live=live)).test_client()

        assert client.get("/braids").get_json()["source"] == "demo"
        body = client.get("/api/status").get_json()
        assert body["connection"]["status"] == "error"
        assert body["last_call"]["mode"] == "demo"
        assert "OperationalError" in body["last_call"]["reason"]
        assert body["environment"]["missing"] == ["CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_API_TOKEN"]


class TestSetupPage:
    def test_renders_html(self, client):
        resp = client.get("/setup")
        assert resp.status_code == 200
        assert resp.mimetype == "text/html"
        text = resp.get_data(as_text=True)
        assert "Database setup" in text
        assert "Not configured" in text
        assert "DATABASE_URL" in text

    def test_connected(self, make_config, credentials, live):
        cfg = make_config(database_url="postgresql://db/glossary")
        client = create_app(cfg, gateway=PersistenceGateway(credentials, live=live)).test_client()
        assert "Connected" in client.get("/setup").get_data(as_text=True)
