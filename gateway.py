"""
Persistence gateway.

Design rules:
- Handlers call ONLY this object for data; they never touch a store directly.
- Every call tries the live database first and falls back to the demo store
  when the database is not configured or the call fails.
- Every result says where it came from (StoreResult.source), so callers can
  branch on provenance instead of asking a separate status endpoint.
- Duplicate emails and bad credentials are NOT infrastructure failures and
  are never masked by the fallback.
- User lookups (login, token resolution) never fall back once a live store is
  configured. A demo user id could name a different live account.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from credentials import CredentialStore
from demo_data import DemoStore
from errors import AuthError, ConflictError, InfrastructureError, ValidationError
from live_store import LiveStore
from models import Braid, NewEntry, User, entry_from_payload

logger = logging.getLogger(__name__)

LIVE = "live"
DEMO = "demo"

NOT_CONFIGURED = "Database not configured; using demo data."
INVALID_CREDENTIALS = "Invalid email or password"

# Positional parameter order of the legacy braid INSERT sent to /db.
DEMO_INSERT_PARAMS = ("braid_name", "alt_names", "region", "image_url", "public_url", "contributor_name")


@dataclass(frozen=True)
class StoreResult:
    value: Any
    source: str  # "live" | "demo"
    reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == DEMO


@dataclass(frozen=True)
class Session:
    user: User
    token: str


class PersistenceGateway:
    def __init__(
        self,
        credentials: CredentialStore,
        live: Optional[LiveStore] = None,
        demo: Optional[DemoStore] = None,
    ):
        self.credentials = credentials
        self.live = live
        self.demo = demo if demo is not None else DemoStore()
        self.last_mode: str = LIVE if live is not None else DEMO
        self.last_reason: Optional[str] = None if live is not None else NOT_CONFIGURED

    @property
    def live_configured(self) -> bool:
        return self.live is not None

    def status(self) -> dict:
        return {"mode": self.last_mode, "reason": self.last_reason}

    def _record(self, result: StoreResult) -> StoreResult:
        self.last_mode = result.source
        self.last_reason = result.reason
        return result

    def _run(
        self,
        op: str,
        fn_live: Callable[[], Any],
        fn_demo: Callable[[], Any],
        fallback_on_empty: bool = False,
    ) -> StoreResult:
        if self.live is None:
            return self._record(StoreResult(fn_demo(), DEMO, NOT_CONFIGURED))
        try:
            value = fn_live()
        except InfrastructureError as e:
            logger.warning("%s: live store failed, falling back to demo data (%s)", op, e.message)
            return self._record(StoreResult(fn_demo(), DEMO, f"Fell back to demo data: {e.message}"))
        if fallback_on_empty and not value:
            logger.warning("%s: live store returned nothing, falling back to demo data", op)
            return self._record(
                StoreResult(fn_demo(), DEMO, "Live store returned no entries; showing demo data.")
            )
        return self._record(StoreResult(value, LIVE))

    def _lookup_user(self, op: str, fn_live: Callable[[], Any], fn_demo: Callable[[], Any]) -> StoreResult:
        """Like _run, but a live failure yields no user instead of a demo one."""
        if self.live is None:
            return self._record(StoreResult(fn_demo(), DEMO, NOT_CONFIGURED))
        try:
            return self._record(StoreResult(fn_live(), LIVE))
        except InfrastructureError as e:
            logger.warning("%s: live store failed, no user resolved (%s)", op, e.message)
            return self._record(StoreResult(None, LIVE, f"User lookup unavailable: {e.message}"))

    # -- braid entries -------------------------------------------------

    def list_entries(
        self, query: Optional[str] = None, page: int = 0, limit: Optional[int] = None
    ) -> StoreResult:
        """Entries newest first; a live database with no rows still shows the demo set."""
        offset = page * limit if limit else 0

        def from_demo() -> List[Braid]:
            entries = self.demo.list_entries(query)
            if limit:
                return entries[offset:offset + limit]
            return entries

        return self._run(
            "list_entries",
            lambda: self.live.list_braids(query=query, limit=limit, offset=offset),
            from_demo,
            # a search or a later page can legitimately be empty
            fallback_on_empty=not query and offset == 0,
        )

    def create_entry(self, entry: NewEntry) -> StoreResult:
        return self._run(
            "create_entry",
            lambda: self.live.insert_braid(entry),
            lambda: self.demo.add_entry(entry),
        )

    def list_entries_for_user(self, user_id: int) -> StoreResult:
        return self._run(
            "list_entries_for_user",
            lambda: self.live.braids_for_user(user_id),
            lambda: self.demo.entries_for_user(user_id),
        )

    # -- users ---------------------------------------------------------

    def create_user(self, email: str, password: str, first_name: str, last_name: str) -> StoreResult:
        password_hash = self.credentials.create_credential(password)

        def on_live() -> User:
            if self.live.find_user_by_email(email) is not None:
                raise ConflictError("Email already exists", field="email")
            return self.live.insert_user(email, password_hash, first_name, last_name)

        def on_demo() -> User:
            # keep outage-time ids clear of the live BIGSERIAL range
            min_id = int(time.time() * 1000) if self.live is not None else 1
            return self.demo.add_user(email, password_hash, first_name, last_name, min_id=min_id)

        return self._run("create_user", on_live, on_demo)

    def authenticate(self, email: str, password: str) -> StoreResult:
        """Same AuthError for an unknown email, a wrong password and an unreachable live store."""
        found = self._lookup_user(
            "authenticate",
            lambda: self.live.find_user_by_email(email),
            lambda: self.demo.find_user_by_email(email),
        )
        user: Optional[User] = found.value
        if user is None or not self.credentials.verify_credential(password, user.password_hash):
            raise AuthError(INVALID_CREDENTIALS)

        token = self.credentials.issue_token(user.id, user.email)
        return StoreResult(Session(user=user, token=token), found.source, found.reason)

    def get_user_by_id(self, user_id: int) -> StoreResult:
        return self._lookup_user(
            "get_user_by_id",
            lambda: self.live.get_user(user_id),
            lambda: self.demo.get_user(user_id),
        )

    # -- setup page ----------------------------------------------------

    def check_connection(self) -> dict:
        if self.live is None:
            return {"status": "not-configured", "error": None}
        try:
            self.live.ping()
        except InfrastructureError as e:
            return {"status": "error", "error": e.message}
        return {"status": "connected", "error": None}

    def execute_demo_sql(self, sql: str, params: Optional[list] = None) -> List[dict]:
        """Tiny stand-in for a SQL endpoint: braid INSERTs and SELECTs against demo data."""
        statement = (sql or "").strip().upper()
        params = list(params or [])

        if statement.startswith("INSERT"):
            payload = dict(zip(DEMO_INSERT_PARAMS, params))
            braid = self.demo.add_entry(entry_from_payload(payload))
            self._record(StoreResult(None, DEMO, NOT_CONFIGURED))
            return [braid.to_dict()]
        if statement.startswith("SELECT"):
            self._record(StoreResult(None, DEMO, NOT_CONFIGURED))
            return [b.to_dict() for b in self.demo.list_entries()]

        raise ValidationError("Only SELECT and INSERT statements are supported in demo mode.", field="sql")
