"""
Configuration for the Braid Glossary service.

This is the ONLY place environment variables are read.
- Loads `.env` if present (local dev)
- No DATABASE_URL means demo mode: data lives in memory only
- JWT_SECRET is required; there is no fallback signing key
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from errors import ConfigError


APP_NAME = "Data Assembly - Braid Glossary"
APP_VERSION = "1.0.0"

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MB
DEFAULT_ALLOWED_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/gif",
    "audio/mpeg",
    "audio/wav",
    "audio/webm",
    "audio/ogg",
    "audio/mp4",
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class AppConfig:
    # Live store; unset means demo mode
    database_url: Optional[str]
    db_connect_timeout: int

    # Session tokens
    jwt_secret: Optional[str]

    # Upload provider (Cloudflare Images); unset means placeholder URLs
    cloudflare_account_id: Optional[str]
    cloudflare_api_token: Optional[str]

    # Storage policy
    max_upload_bytes: int
    allowed_types: Tuple[str, ...]

    app_env: str
    log_level: str

    @property
    def database_configured(self) -> bool:
        return bool(self.database_url)

    @property
    def uploads_configured(self) -> bool:
        return bool(self.cloudflare_account_id and self.cloudflare_api_token)

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    def require_secret(self) -> str:
        if not self.jwt_secret:
            raise ConfigError("JWT_SECRET must be set; refusing to sign session tokens with a default key.")
        return self.jwt_secret


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name, default)
    if v is None:
        return None
    v = v.strip()
    return v if v else None


def _getint(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


def _getlevel(name: str, default: str) -> str:
    level = (_getenv(name) or default).upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"{name} must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    return level


def get_config() -> AppConfig:
    load_dotenv(find_dotenv(usecwd=True), override=False)

    types_raw = _getenv("UPLOAD_ALLOWED_TYPES")
    allowed = (
        tuple(t.strip().lower() for t in types_raw.split(",") if t.strip())
        if types_raw
        else DEFAULT_ALLOWED_TYPES
    )

    return AppConfig(
        database_url=_getenv("DATABASE_URL") or _getenv("POSTGRES_URL"),
        db_connect_timeout=_getint("DB_CONNECT_TIMEOUT", 5),
        jwt_secret=_getenv("JWT_SECRET"),
        cloudflare_account_id=_getenv("CLOUDFLARE_ACCOUNT_ID"),
        cloudflare_api_token=_getenv("CLOUDFLARE_API_TOKEN"),
        max_upload_bytes=_getint("UPLOAD_MAX_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        allowed_types=allowed,
        app_env=(_getenv("APP_ENV", "development") or "development").lower(),
        log_level=_getlevel("LOG_LEVEL", "INFO"),
    )


def validate_environment(cfg: AppConfig) -> dict:
    """Report which settings are missing, for the setup page."""
    missing: List[str] = []
    if not cfg.database_url:
        missing.append("DATABASE_URL")
    if not cfg.jwt_secret:
        missing.append("JWT_SECRET")
    if not cfg.cloudflare_account_id:
        missing.append("CLOUDFLARE_ACCOUNT_ID")
    if not cfg.cloudflare_api_token:
        missing.append("CLOUDFLARE_API_TOKEN")
    return {"is_valid": not missing, "missing": missing}
