from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from errors import ValidationError

SUBMISSION_TYPES = ("photo", "link", "memory")

REQUIRED_ENTRY_FIELDS = ("braid_name", "region", "contributor_name")
OPTIONAL_ENTRY_FIELDS = (
    "alt_names",
    "audio_url",
    "audio_notes",
    "public_url",
    "link_title",
    "link_description",
    "memory_title",
    "memory_description",
)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _as_iso(value: Any) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    return str(value or "")


@dataclass
class User:
    id: int
    email: str
    first_name: str
    last_name: str
    created_at: str
    password_hash: str = field(default="", repr=False)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "User":
        return cls(
            id=int(row["id"]),
            email=row["email"],
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
            created_at=_as_iso(row.get("created_at")),
            password_hash=row.get("password_hash") or "",
        )

    def public(self) -> dict:
        """Serialisable form; never includes the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "created_at": self.created_at,
        }


@dataclass
class NewEntry:
    braid_name: str
    region: str
    contributor_name: str
    submission_type: str = "photo"
    alt_names: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    audio_url: Optional[str] = None
    audio_notes: Optional[str] = None
    public_url: Optional[str] = None
    link_title: Optional[str] = None
    link_description: Optional[str] = None
    memory_title: Optional[str] = None
    memory_description: Optional[str] = None
    user_id: Optional[int] = None


@dataclass
class Braid(NewEntry):
    id: int = 0
    created_at: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Braid":
        images = row.get("image_urls")
        if images is None:
            single = row.get("image_url")
            images = [single] if single else []
        return cls(
            id=int(row["id"]),
            braid_name=row["braid_name"],
            region=row["region"],
            contributor_name=row["contributor_name"],
            submission_type=row.get("submission_type") or "photo",
            alt_names=row.get("alt_names"),
            image_urls=list(images),
            audio_url=row.get("audio_url"),
            audio_notes=row.get("audio_notes"),
            public_url=row.get("public_url"),
            link_title=row.get("link_title"),
            link_description=row.get("link_description"),
            memory_title=row.get("memory_title"),
            memory_description=row.get("memory_description"),
            user_id=row.get("user_id"),
            created_at=_as_iso(row.get("created_at")),
        )

    @classmethod
    def from_new(cls, entry: NewEntry, entry_id: int, created_at: str) -> "Braid":
        return cls(id=entry_id, created_at=created_at, **asdict(entry))

    def to_dict(self) -> dict:
        return asdict(self)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def entry_from_payload(payload: Any, user_id: Optional[int] = None) -> NewEntry:
    """Validate a submitted braid entry and normalise it into a NewEntry."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")

    values = {}
    for name in REQUIRED_ENTRY_FIELDS:
        v = _clean(payload.get(name))
        if not v:
            raise ValidationError(f"{name} is required.", field=name)
        values[name] = v

    submission_type = (_clean(payload.get("submission_type")) or "photo").lower()
    if submission_type not in SUBMISSION_TYPES:
        raise ValidationError(
            f"submission_type must be one of: {', '.join(SUBMISSION_TYPES)}.",
            field="submission_type",
        )

    images = payload.get("image_urls")
    if images is None:
        images = []
    elif isinstance(images, str):
        images = [images]
    elif not isinstance(images, list):
        raise ValidationError("image_urls must be a list of URLs.", field="image_urls")
    legacy = _clean(payload.get("image_url"))
    if legacy:
        images = [legacy] + list(images)
    image_urls = [u for u in (_clean(i) for i in images) if u]

    for name in OPTIONAL_ENTRY_FIELDS:
        values[name] = _clean(payload.get(name))

    return NewEntry(
        submission_type=submission_type,
        image_urls=image_urls,
        user_id=user_id,
        **values,
    )
