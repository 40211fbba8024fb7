"""
Domain models for the object gateway.

These models describe what gets stored and how it can be reached. They know
nothing about boto3, FastAPI or any particular storage vendor, so policy and
key logic can be tested without a backend.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Tier(Enum):
    """
    Access-control classification of an object.

    PUBLIC objects resolve to a stable address anyone can fetch.
    PRIVATE objects need a freshly minted, time-boxed locator per read.
    """
    PUBLIC = "public"
    PRIVATE = "private"


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortSpec:
    """How the backend should order a listing."""
    column: str = "created_at"
    order: SortOrder = SortOrder.DESC


@dataclass(frozen=True)
class UploadRequest:
    """
    A file a caller wants stored.

    Frozen because a request is consumed once by the gateway and never
    changed along the way. `filename` is the client's original name and
    only matters for its extension.
    """
    content: Optional[bytes]
    declared_type: str
    declared_size: int
    owner_id: str
    tier: Tier
    filename: str = ""
    folder: Optional[str] = None


@dataclass(frozen=True)
class ValidatedRequest:
    """
    An upload request that passed the tier policy.

    The folder is already resolved to the tier default when the caller
    did not choose one.
    """
    request: UploadRequest
    folder: str

    @property
    def tier(self) -> Tier:
        return self.request.tier

    @property
    def owner_id(self) -> str:
        return self.request.owner_id

    @property
    def content(self) -> bytes:
        return self.request.content or b""


@dataclass(frozen=True)
class StorageKey:
    """
    Logical path of an object inside a bucket.

    Rendered as ``folder/ownerId_timestamp.extension``. Two uploads only
    collide when folder, owner and millisecond timestamp all match.
    """
    folder: str
    owner_id: str
    timestamp: int
    extension: str = ""

    def __post_init__(self) -> None:
        if self.timestamp < 0:
            raise ValueError("Key timestamp cannot be negative")

    @property
    def filename(self) -> str:
        name = f"{self.owner_id}_{self.timestamp}"
        if self.extension:
            name = f"{name}.{self.extension}"
        return name

    def render(self) -> str:
        if not self.folder:
            return self.filename
        return f"{self.folder}/{self.filename}"

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def parse(cls, path: str) -> "StorageKey":
        """
        Rebuild a key from its rendered path.

        Only paths produced by `render` round-trip. The owner id may itself
        contain underscores or dots, so the extension is taken after the last
        dot and the timestamp after the last underscore.
        """
        folder, _, name = path.rpartition("/")
        stem, dot, extension = name.rpartition(".")
        if not dot or not extension or "_" in extension:
            stem, extension = name, ""
        owner_id, sep, timestamp = stem.rpartition("_")
        if not sep or not owner_id or not timestamp.isdigit():
            raise ValueError(f"Not a gateway key: {path!r}")
        return cls(
            folder=folder,
            owner_id=owner_id,
            timestamp=int(timestamp),
            extension=extension,
        )


@dataclass(frozen=True)
class AccessGrant:
    """
    A way to read one object right now.

    Never persisted. PUBLIC grants have no expiry; PRIVATE grants carry
    the lifetime they were minted with.
    """
    key: str
    tier: Tier
    locator: str
    expires_in: Optional[int] = None

    @property
    def is_ephemeral(self) -> bool:
        return self.expires_in is not None


@dataclass(frozen=True)
class PutOptions:
    """Options passed to the backend on every write."""
    overwrite: bool = False
    cache_hint: str = "3600"
    content_type: Optional[str] = None


@dataclass(frozen=True)
class PutResult:
    """What a backend reports after a successful write."""
    path: str
    id: Optional[str] = None


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a stored object, returned by upload."""
    key: StorageKey
    path: str
    bucket: str
    tier: Tier
    id: Optional[str] = None


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of the caller-facing upload.

    Public uploads also get their permanent locator so callers can store
    it straight away; private uploads only get the reference.
    """
    ref: ObjectRef
    locator: Optional[str] = None


@dataclass
class ObjectMeta:
    """One entry of a bucket listing."""
    name: str
    size: int = 0
    created_at: Optional[datetime] = None
