"""
Demo dataset: the in-memory store used when no live database is configured
or a live call fails.

Seeded at construction; lost when the process exits. A gateway owns exactly
one instance, so each test can build its own.
"""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import List, Optional

from errors import ConflictError
from models import Braid, NewEntry, User, utc_now_iso

# Newest first.
SEED_ENTRIES = [
    {
        "id": 5,
        "braid_name": "Learning to Braid",
        "region": "Ghana",
        "contributor_name": "Akosua",
        "submission_type": "memory",
        "memory_title": "Learning to Braid",
        "memory_description": "My grandmother taught me on the porch every Saturday before church.",
        "created_at": "2024-01-05T00:00:00Z",
    },
    {
        "id": 4,
        "braid_name": "Fulani Braids",
        "alt_names": "Tribal Braids",
        "region": "West Africa",
        "contributor_name": "Cultural Team",
        "submission_type": "photo",
        "created_at": "2024-01-04T00:00:00Z",
    },
    {
        "id": 3,
        "braid_name": "Cornrows",
        "alt_names": "Canerows, Kolese",
        "region": "West Africa",
        "contributor_name": "Heritage Docs",
        "submission_type": "link",
        "public_url": "https://en.wikipedia.org/wiki/Cornrows",
        "link_title": "Cornrows",
        "link_description": "History of the cornrow across Africa and the diaspora.",
        "created_at": "2024-01-03T00:00:00Z",
    },
    {
        "id": 2,
        "braid_name": "French Braid",
        "alt_names": "Tresse Française",
        "region": "Europe",
        "contributor_name": "Heritage Docs",
        "submission_type": "photo",
        "created_at": "2024-01-02T00:00:00Z",
    },
    {
        "id": 1,
        "braid_name": "Box Braids",
        "alt_names": "Square Braids",
        "region": "West Africa",
        "contributor_name": "Cultural Team",
        "submission_type": "photo",
        "created_at": "2024-01-01T00:00:00Z",
    },
]


def _matches(braid: Braid, needle: str) -> bool:
    haystacks = (braid.braid_name, braid.alt_names or "", braid.region)
    return any(needle in h.lower() for h in haystacks)


class DemoStore:
    """Seeded entries and users held in process memory, guarded by one lock."""

    def __init__(self, seed_entries: Optional[list] = None, seed_users: Optional[list] = None):
        rows = SEED_ENTRIES if seed_entries is None else seed_entries
        self._entries: List[Braid] = [Braid.from_row(r) for r in rows]
        self._users: List[User] = [User.from_row(r) for r in (seed_users or [])]
        self._lock = threading.Lock()

    # -- entries -------------------------------------------------------

    def list_entries(self, query: Optional[str] = None) -> List[Braid]:
        with self._lock:
            entries = list(self._entries)
        if query:
            needle = query.lower()
            entries = [b for b in entries if _matches(b, needle)]
        return deepcopy(entries)

    def entries_for_user(self, user_id: int) -> List[Braid]:
        with self._lock:
            return deepcopy([b for b in self._entries if b.user_id == user_id])

    def add_entry(self, entry: NewEntry) -> Braid:
        with self._lock:
            next_id = max((b.id for b in self._entries), default=0) + 1
            braid = Braid.from_new(entry, next_id, utc_now_iso())
            self._entries.insert(0, braid)
        return deepcopy(braid)

    # -- users ---------------------------------------------------------

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            for u in self._users:
                if u.email == email:
                    return deepcopy(u)
        return None

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            for u in self._users:
                if u.id == user_id:
                    return deepcopy(u)
        return None

    def add_user(
        self, email: str, password_hash: str, first_name: str, last_name: str, min_id: int = 1
    ) -> User:
        with self._lock:
            if any(u.email == email for u in self._users):
                raise ConflictError("Email already exists", field="email")
            user = User(
                id=max(max((u.id for u in self._users), default=0) + 1, min_id),
                email=email,
                first_name=first_name,
                last_name=last_name,
                created_at=utc_now_iso(),
                password_hash=password_hash,
            )
            self._users.append(user)
        return deepcopy(user)

    def entry_ids(self) -> List[int]:
        with self._lock:
            return [b.id for b in self._entries]
