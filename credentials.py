"""
Credential store: password hashes and stateless session tokens.

Hashing is delegated to werkzeug (salted, fresh salt per call); tokens are
HS256 JWTs carrying the user id and email, valid for seven days.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from errors import ConfigError

TOKEN_TTL = timedelta(days=7)
TOKEN_ALGORITHM = "HS256"


def create_credential(password: str) -> str:
    return generate_password_hash(password)


def verify_credential(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


class CredentialStore:
    """Issues and verifies session tokens with one process-wide secret."""

    def __init__(self, secret: Optional[str], ttl: timedelta = TOKEN_TTL):
        if not secret:
            raise ConfigError("A token signing secret is required.")
        self._secret = secret
        self.ttl = ttl

    # Hashing is stateless; exposed here so callers only need one collaborator.
    create_credential = staticmethod(create_credential)
    verify_credential = staticmethod(verify_credential)

    def issue_token(self, user_id: int, email: str, now: Optional[datetime] = None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "email": email,
            "iat": issued,
            "exp": issued + self.ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=TOKEN_ALGORITHM)

    def verify_token(self, token) -> Optional[dict]:
        """Return {"userId", "email"} for a valid token, None for anything else."""
        if not isinstance(token, str) or not token:
            return None
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.PyJWTError:
            return None

        user_id = claims.get("userId")
        email = claims.get("email")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(email, str):
            return None
        return {"userId": user_id, "email": email}
