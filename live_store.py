from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

import psycopg2
import psycopg2.errors
from psycopg2.extras import RealDictCursor

from errors import ConflictError, InfrastructureError
from models import Braid, NewEntry, User

BRAID_COLUMNS = (
    "braid_name",
    "alt_names",
    "region",
    "image_urls",
    "audio_url",
    "audio_notes",
    "public_url",
    "link_title",
    "link_description",
    "memory_title",
    "memory_description",
    "contributor_name",
    "submission_type",
    "user_id",
)

USER_COLUMNS = "id, email, first_name, last_name, created_at"


def escape_like(text: str) -> str:
    """Make a search term match literally inside an ILIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass(frozen=True)
class LiveStore:
    """Managed Postgres database. Every driver failure surfaces as InfrastructureError."""

    dsn: str
    connect_timeout: int = 5

    @contextmanager
    def _cursor(self) -> Iterator[RealDictCursor]:
        try:
            conn = psycopg2.connect(self.dsn, connect_timeout=self.connect_timeout)
        except psycopg2.Error as e:
            raise InfrastructureError(f"Database connection failed: {type(e).__name__}") from e
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    yield cur
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError("Email already exists", field="email") from e
        except psycopg2.Error as e:
            raise InfrastructureError(f"Database query failed: {type(e).__name__}") from e
        finally:
            conn.close()

    def ping(self) -> None:
        with self._cursor() as cur:
            cur.execute("SELECT 1 FROM braids LIMIT 1")

    # -- braids --------------------------------------------------------

    def list_braids(
        self, query: Optional[str] = None, limit: Optional[int] = None, offset: int = 0
    ) -> List[Braid]:
        sql = "SELECT * FROM braids"
        params: list = []
        if query:
            sql += (
                " WHERE braid_name ILIKE %s ESCAPE '\\'"
                " OR alt_names ILIKE %s ESCAPE '\\'"
                " OR region ILIKE %s ESCAPE '\\'"
            )
            pattern = f"%{escape_like(query)}%"
            params.extend([pattern, pattern, pattern])
        sql += " ORDER BY created_at DESC"
        if limit is not None:
            sql += " LIMIT %s OFFSET %s"
            params.extend([limit, offset])

        with self._cursor() as cur:
            cur.execute(sql, params)
            return [Braid.from_row(r) for r in cur.fetchall()]

    def braids_for_user(self, user_id: int) -> List[Braid]:
        with self._cursor() as cur:
            cur.execute(
                "SELECT * FROM braids WHERE user_id = %s ORDER BY created_at DESC",
                (user_id,),
            )
            return [Braid.from_row(r) for r in cur.fetchall()]

    def insert_braid(self, entry: NewEntry) -> Braid:
        placeholders = ", ".join(["%s"] * len(BRAID_COLUMNS))
        sql = (
            f"INSERT INTO braids ({', '.join(BRAID_COLUMNS)}) "
            f"VALUES ({placeholders}) RETURNING *"
        )
        params = [getattr(entry, c) for c in BRAID_COLUMNS]
        with self._cursor() as cur:
            cur.execute(sql, params)
            return Braid.from_row(cur.fetchone())

    # -- users ---------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE email = %s",
                (email,),
            )
            row = cur.fetchone()
        return User.from_row(row) if row else None

    def get_user(self, user_id: int) -> Optional[User]:
        with self._cursor() as cur:
            cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return User.from_row(row) if row else None

    def insert_user(self, email: str, password_hash: str, first_name: str, last_name: str) -> User:
        with self._cursor() as cur:
            cur.execute(
                "INSERT INTO users (email, password_hash, first_name, last_name) "
                f"VALUES (%s, %s, %s, %s) RETURNING {USER_COLUMNS}",
                (email, password_hash, first_name, last_name),
            )
            return User.from_row(cur.fetchone())
