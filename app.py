from __future__ import annotations

import logging
from typing import Optional

from flask import (
    Blueprint,
    Flask,
    current_app,
    jsonify,
    make_response,
    render_template_string,
    request,
)
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from config import APP_NAME, APP_VERSION, AppConfig, get_config, validate_environment
from credentials import TOKEN_TTL, CredentialStore
from errors import AuthError, ForbiddenError, GlossaryError, NotFoundError, ValidationError
from gateway import PersistenceGateway
from live_store import LiveStore
from models import entry_from_payload
from uploads import Uploader

AUTH_COOKIE = "auth-token"
MIN_PASSWORD_LEN = 6
MAX_PAGE_SIZE = 100

bp = Blueprint("glossary", __name__)

# -------------------------------------------------------------------
# App factory
# -------------------------------------------------------------------


def create_app(
    cfg: Optional[AppConfig] = None,
    gateway: Optional[PersistenceGateway] = None,
    uploader: Optional[Uploader] = None,
) -> Flask:
    cfg = cfg or get_config()
    # No JWT_SECRET is a startup failure, even when a gateway is injected.
    secret = cfg.require_secret()

    if gateway is None:
        live = LiveStore(cfg.database_url, cfg.db_connect_timeout) if cfg.database_configured else None
        gateway = PersistenceGateway(CredentialStore(secret), live=live)

    app = Flask(__name__)
    # multipart framing on top of the file itself; Uploader enforces the exact limit
    app.config["MAX_CONTENT_LENGTH"] = cfg.max_upload_bytes + 64 * 1024
    app.extensions["braid_config"] = cfg
    app.extensions["braid_gateway"] = gateway
    app.extensions["braid_uploader"] = uploader or Uploader(cfg)
    app.register_blueprint(bp)

    if not gateway.live_configured:
        app.logger.warning("DATABASE_URL not set. Running in demo mode; submissions are not durable.")
    app.logger.info("%s %s started (%s)", APP_NAME, APP_VERSION, cfg.app_env)
    return app


def _cfg() -> AppConfig:
    return current_app.extensions["braid_config"]


def _gateway() -> PersistenceGateway:
    return current_app.extensions["braid_gateway"]


def _uploader() -> Uploader:
    return current_app.extensions["braid_uploader"]


# -------------------------------------------------------------------
# Request helpers
# -------------------------------------------------------------------


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _text(data: dict, key: str) -> str:
    v = data.get(key)
    return v.strip() if isinstance(v, str) else ""


def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def _session_claims() -> Optional[dict]:
    token = request.cookies.get(AUTH_COOKIE)
    if not token:
        return None
    return _gateway().credentials.verify_token(token)


def _require_claims() -> dict:
    token = request.cookies.get(AUTH_COOKIE)
    if not token:
        raise AuthError("Not logged in")
    claims = _gateway().credentials.verify_token(token)
    if not claims:
        raise AuthError("Invalid token")
    return claims


# -------------------------------------------------------------------
# Basic routes / errors
# -------------------------------------------------------------------


@bp.get("/health")
def health() -> dict:
    return {"ok": True}


@bp.app_errorhandler(GlossaryError)
def on_glossary_error(e: GlossaryError):
    return jsonify(e.to_dict()), e.status_code


@bp.app_errorhandler(RequestEntityTooLarge)
def too_large(_e):
    limit_mb = round(_cfg().max_upload_bytes / (1024 * 1024), 1)
    return jsonify({"error": "file_too_large", "limit_mb": limit_mb}), 413


@bp.app_errorhandler(404)
def not_found(_e):
    return jsonify({"error": "not_found", "message": "No such route"}), 404


@bp.app_errorhandler(500)
def on_error(_e):
    return jsonify({"error": "internal_error", "message": "Something went wrong"}), 500


@bp.app_errorhandler(HTTPException)
def on_http_error(e: HTTPException):
    return jsonify({"error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}), e.code


# -------------------------------------------------------------------
# Auth
# -------------------------------------------------------------------


@bp.post("/auth/register")
def register():
    data = _json_body()
    email = _text(data, "email")
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    first_name = _text(data, "firstName")
    last_name = _text(data, "lastName")

    if not (email and password and first_name and last_name):
        raise ValidationError("All fields are required")
    if "@" not in email:
        raise ValidationError("Please enter a valid email address.", field="email")
    if len(password) < MIN_PASSWORD_LEN:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LEN} characters long", field="password"
        )

    result = _gateway().create_user(email, password, first_name, last_name)
    return jsonify({"user": result.value.public(), "source": result.source}), 201


@bp.post("/auth/login")
def login():
    data = _json_body()
    email = _text(data, "email")
    password = data.get("password") if isinstance(data.get("password"), str) else ""

    if not email or not password:
        raise ValidationError("Email and password are required")

    result = _gateway().authenticate(email, password)
    session = result.value

    resp = make_response(jsonify({"user": session.user.public(), "source": result.source}), 200)
    resp.set_cookie(
        AUTH_COOKIE,
        session.token,
        max_age=int(TOKEN_TTL.total_seconds()),
        httponly=True,
        secure=_cfg().is_production,
        samesite="Strict",
    )
    return resp


@bp.post("/auth/logout")
def logout():
    resp = make_response(jsonify({"ok": True}), 200)
    resp.delete_cookie(AUTH_COOKIE, httponly=True, secure=_cfg().is_production, samesite="Strict")
    return resp


@bp.get("/auth/me")
def me():
    claims = _require_claims()
    user = _gateway().get_user_by_id(claims["userId"]).value
    if user is None:
        raise NotFoundError("User not found")
    return jsonify({"user": user.public()})


# -------------------------------------------------------------------
# Braid entries
# -------------------------------------------------------------------


@bp.get("/braids")
def list_braids():
    q = (request.args.get("q") or "").strip() or None
    try:
        page = max(0, int(request.args.get("page", 0)))
        limit_raw = request.args.get("limit")
        limit = clamp(int(limit_raw), 1, MAX_PAGE_SIZE) if limit_raw else None
    except ValueError:
        raise ValidationError("page and limit must be integers", code="invalid_parameters") from None

    result = _gateway().list_entries(query=q, page=page, limit=limit)
    return jsonify(
        {
            "braids": [b.to_dict() for b in result.value],
            "source": result.source,
            "warning": result.reason,
        }
    )


@bp.post("/braids")
def create_braid():
    claims = _session_claims()
    entry = entry_from_payload(_json_body(), user_id=claims["userId"] if claims else None)
    result = _gateway().create_entry(entry)
    return (
        jsonify({"braid": result.value.to_dict(), "source": result.source, "warning": result.reason}),
        201,
    )


@bp.get("/profile/braids")
def profile_braids():
    claims = _require_claims()
    result = _gateway().list_entries_for_user(claims["userId"])
    return jsonify({"braids": [b.to_dict() for b in result.value], "source": result.source})


@bp.post("/db")
def demo_sql():
    gw = _gateway()
    if gw.live_configured:
        raise ForbiddenError("SQL passthrough is only available in demo mode.")

    data = _json_body()
    sql = data.get("sql")
    params = data.get("params") or []
    if not isinstance(sql, str) or not sql.strip():
        raise ValidationError("sql is required", field="sql")
    if not isinstance(params, list):
        raise ValidationError("params must be a list", field="params")

    return jsonify({"rows": gw.execute_demo_sql(sql, params)})


@bp.post("/upload")
def upload():
    return jsonify(_uploader().upload(request.files.get("file")))


# -------------------------------------------------------------------
# Setup / status
# -------------------------------------------------------------------


def _status() -> dict:
    gw = _gateway()
    return {
        "app": {"name": APP_NAME, "version": APP_VERSION},
        "environment": validate_environment(_cfg()),
        "connection": gw.check_connection(),
        "last_call": gw.status(),
    }


@bp.get("/api/status")
def api_status():
    return jsonify(_status())


@bp.get("/setup")
def setup() -> str:
    return render_template_string(SETUP_HTML, **_status())


# -------------------------------------------------------------------
# Inline HTML templates
# -------------------------------------------------------------------

SETUP_HTML = r"""
<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Database setup | {{ app.name }}</title>
  <meta name="viewport" content="width=device-width,initial-scale=1">
  <style>
    body{margin:0;background:#f1f5f9;font:16px/1.6 system-ui,-apple-system,Segoe UI,Roboto,Inter;color:#111827}
    .wrap{max-width:760px;margin:0 auto;padding:32px 16px 40px}
    .card{background:#fff;border-radius:12px;border:1px solid #e2e8f0;padding:22px;margin-bottom:18px;
          box-shadow:0 10px 30px rgba(15,23,42,.08)}
    h1{font-weight:300;letter-spacing:.08em;text-transform:uppercase;text-align:center}
    h2{margin:0 0 12px;font-weight:300}
    .row{display:flex;justify-content:space-between;align-items:center;padding:10px 12px;background:#f8fafc;
         border-radius:8px;margin-bottom:8px}
    .tag{padding:2px 10px;border-radius:6px;font-size:13px}
    .ok{background:#dcfce7;color:#15803d}
    .bad{background:#fee2e2;color:#b91c1c}
    .off{background:#f1f5f9;color:#334155}
    .err{margin-top:12px;padding:10px;border:1px solid #fecaca;background:#fef2f2;color:#b91c1c;border-radius:8px;font-size:14px}
    code{background:#f1f5f9;padding:1px 4px;border-radius:4px}
    a{color:#2563eb}
  </style>
</head>
<body>
<div class="wrap">
  <p><a href="/braids">&larr; Braid entries (JSON)</a></p>
  <h1>Database setup</h1>

  <div class="card">
    <h2>Environment variables</h2>
    {% for name in ["DATABASE_URL", "JWT_SECRET", "CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_API_TOKEN"] %}
    <div class="row">
      <span>{{ name }}</span>
      {% if name in environment.missing %}
        <span class="tag bad">Missing</span>
      {% else %}
        <span class="tag ok">Set</span>
      {% endif %}
    </div>
    {% endfor %}
  </div>

  <div class="card">
    <h2>Database connection</h2>
    <div class="row">
      <span>Connection status</span>
      {% if connection.status == "connected" %}
        <span class="tag ok">Connected &#10003;</span>
      {% elif connection.status == "error" %}
        <span class="tag bad">Error &#10007;</span>
      {% else %}
        <span class="tag off">Not configured</span>
      {% endif %}
    </div>
    {% if connection.error %}<div class="err">{{ connection.error }}</div>{% endif %}
    <div class="row">
      <span>Last data call served by</span>
      <span class="tag {{ 'ok' if last_call.mode == 'live' else 'off' }}">{{ last_call.mode }}</span>
    </div>
    {% if last_call.reason %}<p style="font-size:14px;color:#475569">{{ last_call.reason }}</p>{% endif %}
  </div>

  <div class="card">
    <h2>Setup</h2>
    <ol style="font-size:14px;color:#475569">
      <li>Create a Postgres database and set <code>DATABASE_URL</code>.</li>
      <li>Run <code>sql/01-create-tables.sql</code> against it.</li>
      <li>Set <code>JWT_SECRET</code> to a long random string.</li>
      <li>Optionally set the Cloudflare Images credentials for uploads.</li>
      <li>Reload this page to re-test the connection.</li>
    </ol>
    <p style="font-size:13px;color:#64748b">
      Without a database, submissions live in memory and are lost when the server restarts.
    </p>
  </div>
</div>
</body>
</html>
"""

# -------------------------------------------------------------------


def main() -> None:
    cfg = get_config()
    logging.basicConfig(
        level=cfg.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    create_app(cfg).run(debug=not cfg.is_production)


if __name__ == "__main__":
    main()
