"""
The object gateway.

Decides which key an upload gets, which bucket (and so which access tier)
it lands in, and how it can be read back. The actual bytes go through a
StorageBackend, which the gateway receives at construction time.

The gateway holds no mutable state besides its dependencies, so one
instance can serve concurrent requests.
"""

from dataclasses import dataclass
from typing import Iterator, Optional, Protocol, Union

from .errors import BackendError, GatewayError, InvalidExpiry, MissingContent, PolicyViolation
from .events import EventSink, GatewayEvent, LoggingEventSink, Outcome
from .keys import PUBLIC_MARKER, Clock, derive_key, parse_locator, wall_clock_ms
from .models import (
    AccessGrant,
    ObjectMeta,
    ObjectRef,
    PutOptions,
    PutResult,
    SortSpec,
    StorageKey,
    Tier,
    UploadRequest,
    UploadResult,
    ValidatedRequest,
)
from .policy import TierPolicy

KeyLike = Union[StorageKey, str]

DEFAULT_SIGNED_TTL_SECONDS = 3600
DEFAULT_CACHE_SECONDS = 3600
DEFAULT_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class StorageBackend(Protocol):
    """
    Interface for object storage providers.

    Implementations raise BackendError for every failure so the gateway
    sees one error shape no matter which vendor sits underneath.
    """

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        options: PutOptions,
    ) -> PutResult:
        """Store bytes at key. Must refuse to replace when overwrite is off."""
        ...

    async def public_locator_for(self, bucket: str, key: str) -> str:
        """Permanent address of a public object."""
        ...

    async def signed_locator_for(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Address valid for ttl_seconds from now."""
        ...

    async def delete(self, bucket: str, key: str) -> None:
        """Delete a single object."""
        ...

    async def list(
        self,
        bucket: str,
        prefix: str,
        limit: int,
        offset: int,
        sort: SortSpec,
    ) -> list[ObjectMeta]:
        """Metadata for one page of objects under prefix."""
        ...


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BucketNames:
    """Bucket used for each tier. Names are configuration, not protocol."""
    public: str = "profile-photos"
    private: str = "documents"

    def for_tier(self, tier: Tier) -> str:
        return self.public if tier is Tier.PUBLIC else self.private


class ObjectGateway:
    """
    Policy layer between callers and object storage.

    Every operation either returns a value or raises a GatewayError
    subclass. Validation failures are raised before the backend is
    contacted; backend failures are raised as BackendError with the
    original exception attached, and never retried.
    """

    def __init__(
        self,
        backend: StorageBackend,
        buckets: Optional[BucketNames] = None,
        policy: Optional[TierPolicy] = None,
        events: Optional[EventSink] = None,
        clock: Clock = wall_clock_ms,
        cache_seconds: int = DEFAULT_CACHE_SECONDS,
        default_ttl_seconds: int = DEFAULT_SIGNED_TTL_SECONDS,
        page_size: int = DEFAULT_PAGE_SIZE,
        public_marker: str = PUBLIC_MARKER,
    ) -> None:
        self._backend = backend
        self._buckets = buckets or BucketNames()
        self._policy = policy or TierPolicy()
        self._events = events or LoggingEventSink()
        self._clock = clock
        self._cache_seconds = cache_seconds
        self._default_ttl = default_ttl_seconds
        self._page_size = page_size
        self._public_marker = public_marker

    @property
    def buckets(self) -> BucketNames:
        return self._buckets

    @property
    def policy(self) -> TierPolicy:
        return self._policy

    # -- building blocks ----------------------------------------------------

    def validate(self, request: UploadRequest) -> ValidatedRequest:
        """Apply the tier policy. Never touches the backend."""
        try:
            validated = self._policy.validate(request)
        except GatewayError as e:
            self._emit("validate", Outcome.REJECTED, request.tier, error=e)
            raise
        return validated

    def derive_key(self, validated: ValidatedRequest) -> StorageKey:
        return derive_key(validated, clock=self._clock)

    async def upload_validated(self, validated: ValidatedRequest, key: StorageKey) -> ObjectRef:
        """
        Send the bytes of a validated request to its tier's bucket.

        Overwrite protection is always on. A key that already exists
        comes back as a BackendError rather than replacing the object.
        """
        bucket = self._buckets.for_tier(validated.tier)
        path = key.render()
        options = PutOptions(
            overwrite=False,
            cache_hint=str(self._cache_seconds),
            content_type=validated.request.declared_type or None,
        )

        result = await self._call(
            "upload",
            validated.tier,
            path,
            self._backend.put(bucket, path, validated.content, options),
            bucket=bucket,
        )

        self._emit(
            "upload",
            Outcome.SUCCESS,
            validated.tier,
            path,
            bucket=bucket,
            size_bytes=validated.request.declared_size,
        )

        return ObjectRef(
            key=key,
            path=result.path or path,
            bucket=bucket,
            tier=validated.tier,
            id=result.id,
        )

    async def resolve_access(
        self,
        key: KeyLike,
        tier: Tier,
        expiry: Optional[int] = None,
    ) -> AccessGrant:
        """
        Produce a locator for reading an object.

        PUBLIC objects get their permanent address. PRIVATE objects get a
        signed locator minted for this call only, valid for `expiry`
        seconds. The expiry is checked for both tiers so a bad value
        fails the same way regardless of where the object lives.
        """
        ttl = self._default_ttl if expiry is None else expiry
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            error = InvalidExpiry(ttl)
            self._emit("resolve_access", Outcome.REJECTED, tier, error=error)
            raise error

        path = self._path(key, "resolve_access", tier)
        bucket = self._buckets.for_tier(tier)

        if tier is Tier.PUBLIC:
            locator = await self._call(
                "resolve_access",
                tier,
                path,
                self._backend.public_locator_for(bucket, path),
                bucket=bucket,
            )
            self._emit("resolve_access", Outcome.SUCCESS, tier, path, bucket=bucket)
            return AccessGrant(key=path, tier=tier, locator=locator)

        locator = await self._call(
            "resolve_access",
            tier,
            path,
            self._backend.signed_locator_for(bucket, path, ttl),
            bucket=bucket,
        )
        self._emit(
            "resolve_access",
            Outcome.SUCCESS,
            tier,
            path,
            bucket=bucket,
            expires_in=ttl,
        )
        return AccessGrant(key=path, tier=tier, locator=locator, expires_in=ttl)

    # -- caller-facing operations -----------------------------------------

    async def upload(
        self,
        request: UploadRequest,
    ) -> UploadResult:
        """
        Validate, name and store a file.

        Public uploads also return their permanent locator, which is
        what callers usually want to save on the owner's record. Once the
        bytes are stored the upload has succeeded: if the locator lookup
        fails, the ref comes back with no locator and the failure is
        reported as a FAILED resolve_access event.
        """
        validated = self.validate(request)
        key = self.derive_key(validated)
        ref = await self.upload_validated(validated, key)

        locator = None
        if ref.tier is Tier.PUBLIC:
            try:
                grant = await self.resolve_access(ref.path, Tier.PUBLIC)
            except BackendError:
                grant = None
            if grant is not None:
                locator = grant.locator

        return UploadResult(ref=ref, locator=locator)

    async def upload_file(
        self,
        content: Optional[bytes],
        owner_id: str,
        tier: Tier,
        folder: Optional[str] = None,
        *,
        filename: str = "",
        content_type: str = "",
    ) -> UploadResult:
        """Upload raw bytes; the declared size is taken from the content."""
        request = UploadRequest(
            content=content,
            declared_type=content_type,
            declared_size=len(content) if content else 0,
            owner_id=owner_id,
            tier=tier,
            filename=filename,
            folder=folder,
        )
        return await self.upload(request)

    async def get_access_url(
        self,
        key: KeyLike,
        tier: Tier,
        ttl: Optional[int] = None,
    ) -> str:
        grant = await self.resolve_access(key, tier, ttl)
        return grant.locator

    async def remove(self, key: KeyLike, tier: Tier) -> None:
        """
        Delete one object.

        Whether deleting a missing key is an error is up to the backend;
        whatever it reports reaches the caller unchanged.
        """
        path = self._path(key, "remove", tier)
        bucket = self._buckets.for_tier(tier)

        await self._call(
            "remove",
            tier,
            path,
            self._backend.delete(bucket, path),
            bucket=bucket,
        )
        self._emit("remove", Outcome.SUCCESS, tier, path, bucket=bucket)

    async def list(
        self,
        tier: Tier,
        folder: str = "",
        offset: int = 0,
    ) -> Iterator[ObjectMeta]:
        """
        One page of objects under folder, newest first.

        The page size is fixed. Callers that need more ask again with a
        larger offset; nothing here follows pages on its own. The result
        is a one-shot iterator.
        """
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            error = PolicyViolation(
                field="offset",
                limit=0,
                reason="Offset must be a non-negative integer",
            )
            self._emit("list", Outcome.REJECTED, tier, error=error)
            raise error

        bucket = self._buckets.for_tier(tier)
        prefix = (folder or "").strip("/")

        entries = await self._call(
            "list",
            tier,
            prefix,
            self._backend.list(
                bucket,
                prefix,
                self._page_size,
                offset,
                SortSpec(),
            ),
            bucket=bucket,
        )

        self._emit(
            "list",
            Outcome.SUCCESS,
            tier,
            prefix,
            bucket=bucket,
            count=len(entries),
            offset=offset,
        )

        return iter(entries)

    def parse_public_locator(self, locator: str) -> str:
        """
        Recover the object path from a public locator.

        Only public locators are supported; signed locators are never
        meant to be turned back into keys.
        """
        try:
            path = parse_locator(locator, marker=self._public_marker)
        except GatewayError as e:
            self._emit("parse_locator", Outcome.REJECTED, Tier.PUBLIC, error=e)
            raise
        return path

    # -- internals ----------------------------------------------------------

    def _path(self, key: KeyLike, operation: str, tier: Tier) -> str:
        path = key.render() if isinstance(key, StorageKey) else (key or "").strip()
        if not path:
            error = MissingContent("No file path provided")
            self._emit(operation, Outcome.REJECTED, tier, error=error)
            raise error
        return path

    async def _call(self, operation, tier, path, awaitable, bucket=None):
        """Await a backend call, reporting and normalising failures."""
        try:
            return await awaitable
        except BackendError as e:
            self._emit(operation, Outcome.FAILED, tier, path, bucket=bucket, error=e)
            raise
        except Exception as e:
            error = BackendError(
                f"{operation} failed: {e}",
                cause=e,
                operation=operation,
                bucket=bucket,
                key=path,
            )
            self._emit(operation, Outcome.FAILED, tier, path, bucket=bucket, error=error)
            raise error from e

    def _emit(
        self,
        operation: str,
        outcome: Outcome,
        tier: Optional[Tier] = None,
        key: Optional[str] = None,
        error: Optional[GatewayError] = None,
        **detail,
    ) -> None:
        if error is not None:
            detail["error_kind"] = error.kind
            detail["error"] = error.message
        self._events.emit(GatewayEvent(
            operation=operation,
            outcome=outcome,
            tier=tier,
            key=key,
            detail=detail,
        ))
