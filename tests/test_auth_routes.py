"""Tests for /auth/register, /auth/login, /auth/logout and /auth/me."""

import pytest

from app import AUTH_COOKIE, create_app
from errors import InfrastructureError

ADA = {"email": "ada@example.com", "password": "s3cret!", "firstName": "Ada", "lastName": "Obi"}


def _auth_cookie_header(resp):
    for header in resp.headers.getlist("Set-Cookie"):
        if header.startswith(f"{AUTH_COOKIE}="):
            return header
    return None


def _down():
    return InfrastructureError("Database connection failed: OperationalError")


class TestRegister:
    def test_created(self, client):
        resp = client.post("/auth/register", json=ADA)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["email"] == "ada@example.com"
        assert body["user"]["first_name"] == "Ada"
        assert body["source"] == "demo"
        assert "password_hash" not in body["user"]

    @pytest.mark.parametrize("missing", ["email", "password", "firstName", "lastName"])
    def test_missing_field(self, client, missing):
        body = {k: v for k, v in ADA.items() if k != missing}
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "All fields are required"

    def test_short_password(self, client):
        resp = client.post("/auth/register", json={**ADA, "password": "12345"})
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "password"

    def test_invalid_email(self, client):
        resp = client.post("/auth/register", json={**ADA, "email": "not-an-email"})
        assert resp.status_code == 400
        assert resp.get_json()["field"] == "email"

    def test_non_json_body(self, client):
        resp = client.post("/auth/register", data="email=x", content_type="text/plain")
        assert resp.status_code == 400

    def test_duplicate_email(self, client):
        assert client.post("/auth/register", json=ADA).status_code == 201
        resp = client.post("/auth/register", json={**ADA, "firstName": "Impostor"})
        assert resp.status_code == 409
        assert resp.get_json()["message"] == "Email already exists"

        login = client.post("/auth/login", json={"email": ADA["email"], "password": ADA["password"]})
        assert login.get_json()["user"]["first_name"] == "Ada"

    def test_unexpected_failure_is_500(self, client, gateway, monkeypatch):
        def boom(*_args, **_kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(gateway, "create_user", boom)
        resp = client.post("/auth/register", json=ADA)
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "internal_error"


class TestLogin:
    def test_sets_session_cookie(self, client):
        client.post("/auth/register", json=ADA)
        resp = client.post("/auth/login", json={"email": ADA["email"], "password": ADA["password"]})
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == ADA["email"]

        cookie = _auth_cookie_header(resp)
        assert cookie is not None
        assert "HttpOnly" in cookie
        assert "SameSite=Strict" in cookie
        assert "Max-Age=604800" in cookie
        assert "Secure" not in cookie

    def test_secure_cookie_in_production(self, make_config, gateway):
        client = create_app(make_config(app_env="production"), gateway=gateway).test_client()
        client.post("/auth/register", json=ADA)
        resp = client.post("/auth/login", json={"email": ADA["email"], "password": ADA["password"]})
        assert "Secure" in _auth_cookie_header(resp)

    def test_missing_fields(self, client):
        resp = client.post("/auth/login", json={"email": ADA["email"]})
        assert resp.status_code == 400

    def test_bad_credentials_are_indistinguishable(self, client):
        client.post("/auth/register", json=ADA)
        wrong_pw = client.post("/auth/login", json={"email": ADA["email"], "password": "wrong-password"})
        unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": ADA["password"]})
        assert wrong_pw.status_code == unknown.status_code == 401
        assert wrong_pw.get_json() == unknown.get_json()
        assert _auth_cookie_header(wrong_pw) is None


class TestMe:
    def test_returns_logged_in_user(self, client, registered):
        resp = client.get("/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["user"]["id"] == registered["id"]

    def test_without_cookie(self, client):
        resp = client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Not logged in"

    def test_garbage_token(self, client):
        client.set_cookie(AUTH_COOKIE, "garbage")
        resp = client.get("/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid token"

    def test_user_gone(self, client, gateway):
        client.set_cookie(AUTH_COOKIE, gateway.credentials.issue_token(999, "ghost@example.com"))
        resp = client.get("/auth/me")
        assert resp.status_code == 404

    def test_logout_clears_cookie(self, client, registered):
        resp = client.post("/auth/logout")
        assert resp.status_code == 200
        assert client.get("/auth/me").status_code == 401


class TestLiveOutage:
    @pytest.fixture
    def live_client(self, cfg, live_gateway):
        return create_app(cfg, gateway=live_gateway).test_client()

    def test_token_never_resolves_to_outage_account(self, live_client, live_gateway, live):
        alice_token = live_gateway.credentials.issue_token(1, "alice@example.com")
        live.find_user_by_email.side_effect = _down()
        live.get_user.side_effect = _down()
        mallory = dict(ADA, email="mallory@example.com", firstName="Mal", lastName="Lory")
        assert live_client.post("/auth/register", json=mallory).status_code == 201

        live_client.set_cookie(AUTH_COOKIE, alice_token)
        resp = live_client.get("/auth/me")
        assert resp.status_code == 404
        assert "mallory" not in resp.get_data(as_text=True)

    def test_outage_login_is_rejected(self, live_client, live):
        live.find_user_by_email.side_effect = _down()
        assert live_client.post("/auth/register", json=ADA).status_code == 201
        resp = live_client.post("/auth/login", json={"email": ADA["email"], "password": ADA["password"]})
        assert resp.status_code == 401
        assert _auth_cookie_header(resp) is None
