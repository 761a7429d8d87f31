"""Error taxonomy shared by the gateway, the credential store and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class GlossaryError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, field: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        if code:
            self.code = code

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(GlossaryError):
    status_code = 400
    code = "invalid_input"


class AuthError(GlossaryError):
    status_code = 401
    code = "unauthorized"


class NotFoundError(GlossaryError):
    status_code = 404
    code = "not_found"


class ForbiddenError(GlossaryError):
    status_code = 403
    code = "forbidden"


class ConflictError(GlossaryError):
    status_code = 409
    code = "conflict"


class PayloadTooLarge(GlossaryError):
    status_code = 413
    code = "file_too_large"


class InfrastructureError(GlossaryError):
    """Live database, network or provider failure. Recovered by falling back to demo data."""

    status_code = 503
    code = "unavailable"


class ConfigError(RuntimeError):
    pass
