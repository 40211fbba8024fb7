"""
Object storage backends for the gateway.

The S3-compatible backend talks to AWS S3, Cloudflare R2 or Supabase
Storage (through its S3 endpoint) with boto3. Vendor responses and
exceptions stop here: everything above sees PutResult / ObjectMeta values
or a BackendError.

Mock mode keeps objects in memory, so the API and the gateway can be
exercised without provisioning real buckets.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote
from uuid import uuid4

from ...core.storage.errors import BackendError
from ...core.storage.gateway import StorageBackend
from ...core.storage.models import ObjectMeta, PutOptions, PutResult, SortOrder, SortSpec

logger = logging.getLogger(__name__)

# S3 error codes for a failed If-None-Match precondition
_ALREADY_EXISTS_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412"}


@dataclass
class StorageConfig:
    """
    Configuration for an S3-compatible provider.

    `public_base_url` is where public buckets are served from; public
    locators are ``{public_base_url}/{bucket}/{key}``. When it is not set
    the Supabase layout ``{endpoint}/object/public`` is assumed.
    """
    access_key_id: str
    secret_access_key: str
    endpoint_url: str
    region: str = "auto"
    public_base_url: Optional[str] = None

    @property
    def public_base(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        return f"{self.endpoint_url.rstrip('/')}/object/public"


def _error_code(error: Exception) -> str:
    response = getattr(error, "response", None) or {}
    return str(response.get("Error", {}).get("Code", ""))


def _sort_entries(entries: list[ObjectMeta], sort: SortSpec) -> list[ObjectMeta]:
    oldest = datetime.min.replace(tzinfo=timezone.utc)

    def sort_key(entry: ObjectMeta):
        if sort.column == "name":
            return entry.name
        return entry.created_at or oldest

    return sorted(entries, key=sort_key, reverse=sort.order is SortOrder.DESC)


def _folder_prefix(prefix: str) -> str:
    prefix = prefix.strip("/")
    return f"{prefix}/" if prefix else ""


class S3StorageBackend:
    """
    S3-compatible storage backend.

    Methods are async to match the StorageBackend protocol even though
    boto3 is synchronous, so a truly async client can replace it without
    touching the gateway.
    """

    def __init__(self, config: StorageConfig) -> None:
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        # v4 signatures and path-style addressing work on S3, R2 and Supabase
        boto_config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
        )

        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage backend",
            extra={"endpoint": config.endpoint_url}
        )

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        options: PutOptions,
    ) -> PutResult:
        """
        Upload an object.

        With overwrite disabled the write is conditional (If-None-Match),
        so an existing object at the same key is left untouched and the
        call fails instead.
        """
        params = {
            'Bucket': bucket,
            'Key': key,
            'Body': data,
            'CacheControl': f"max-age={options.cache_hint}",
        }
        if options.content_type:
            params['ContentType'] = options.content_type
        if not options.overwrite:
            params['IfNoneMatch'] = '*'

        try:
            response = self._s3_client.put_object(**params)
        except Exception as e:
            if _error_code(e) in _ALREADY_EXISTS_CODES:
                raise BackendError(
                    f"Object already exists: {key}",
                    cause=e,
                    operation="put",
                    bucket=bucket,
                    key=key,
                ) from e
            raise BackendError(
                f"Upload failed: {e}",
                cause=e,
                operation="put",
                bucket=bucket,
                key=key,
            ) from e

        logger.debug(
            "Uploaded object",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
        )

        etag = (response or {}).get('ETag')
        return PutResult(path=key, id=etag.strip('"') if etag else None)

    async def public_locator_for(self, bucket: str, key: str) -> str:
        return f"{self._config.public_base}/{bucket}/{quote(key)}"

    async def signed_locator_for(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Presigned GET URL that expires after ttl_seconds."""
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': bucket, 'Key': key},
                ExpiresIn=ttl_seconds,
            )
        except Exception as e:
            raise BackendError(
                f"Presigned URL generation failed: {e}",
                cause=e,
                operation="signed_locator_for",
                bucket=bucket,
                key=key,
            ) from e

    async def delete(self, bucket: str, key: str) -> None:
        """
        Delete one object.

        S3 reports success for keys that never existed; that is passed on
        as-is rather than turned into an error.
        """
        try:
            self._s3_client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            raise BackendError(
                f"Delete failed: {e}",
                cause=e,
                operation="delete",
                bucket=bucket,
                key=key,
            ) from e

    async def list(
        self,
        bucket: str,
        prefix: str,
        limit: int,
        offset: int,
        sort: SortSpec,
    ) -> list[ObjectMeta]:
        """
        List the objects directly under prefix.

        S3 can neither sort nor skip, so the folder is read in full, then
        sorted and sliced here.
        """
        params = {'Bucket': bucket, 'Delimiter': '/'}
        folder = _folder_prefix(prefix)
        if folder:
            params['Prefix'] = folder

        entries = []
        try:
            paginator = self._s3_client.get_paginator('list_objects_v2')
            for page in paginator.paginate(**params):
                for obj in page.get('Contents', []):
                    entries.append(ObjectMeta(
                        name=obj['Key'],
                        size=obj.get('Size', 0),
                        created_at=obj.get('LastModified'),
                    ))
        except Exception as e:
            raise BackendError(
                f"List failed: {e}",
                cause=e,
                operation="list",
                bucket=bucket,
                key=folder,
            ) from e

        entries = _sort_entries(entries, sort)
        return entries[offset:offset + limit]


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _StoredObject:
    data: bytes
    options: PutOptions
    id: str
    created_at: datetime
    sequence: int


class MockStorageBackend:
    """
    In-memory storage backend.

    Behaves like a strict provider: writes never replace an existing
    object, and deleting a missing object is an error. Every call is
    recorded in `calls` so tests can check what reached the backend.
    """

    def __init__(self, base_url: str = "mock://storage") -> None:
        self._base_url = base_url.rstrip("/")
        self._objects: dict[tuple[str, str], _StoredObject] = {}
        self._sequence = 0
        self._failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        logger.info("Initialized mock storage backend (in-memory)")

    def fail_next(self, operation: str, error: Exception) -> None:
        """Make the next call to `operation` raise `error`."""
        self._failures[operation] = error

    def contains(self, bucket: str, key: str) -> bool:
        return (bucket, key) in self._objects

    def read(self, bucket: str, key: str) -> bytes:
        if (bucket, key) not in self._objects:
            raise BackendError(
                f"Object not found: {key}",
                operation="read",
                bucket=bucket,
                key=key,
            )
        return self._objects[(bucket, key)].data

    def options_for(self, bucket: str, key: str) -> PutOptions:
        return self._objects[(bucket, key)].options

    def _check_failure(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        options: PutOptions,
    ) -> PutResult:
        self.calls.append(("put", bucket, key))
        self._check_failure("put")

        if (bucket, key) in self._objects and not options.overwrite:
            raise BackendError(
                f"Object already exists: {key}",
                operation="put",
                bucket=bucket,
                key=key,
            )

        self._sequence += 1
        stored = _StoredObject(
            data=data,
            options=options,
            id=str(uuid4()),
            created_at=datetime.now(timezone.utc),
            sequence=self._sequence,
        )
        self._objects[(bucket, key)] = stored

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(data)}
        )

        return PutResult(path=key, id=stored.id)

    async def public_locator_for(self, bucket: str, key: str) -> str:
        self.calls.append(("public_locator_for", bucket, key))
        self._check_failure("public_locator_for")
        return f"{self._base_url}/object/public/{bucket}/{quote(key)}"

    async def signed_locator_for(self, bucket: str, key: str, ttl_seconds: int) -> str:
        """Signed locator carrying its lifetime in `expires_in`."""
        self.calls.append(("signed_locator_for", bucket, key, ttl_seconds))
        self._check_failure("signed_locator_for")

        if (bucket, key) not in self._objects:
            raise BackendError(
                f"Object not found: {key}",
                operation="signed_locator_for",
                bucket=bucket,
                key=key,
            )

        token = uuid4().hex
        return (
            f"{self._base_url}/object/sign/{bucket}/{quote(key)}"
            f"?token={token}&expires_in={ttl_seconds}"
        )

    async def delete(self, bucket: str, key: str) -> None:
        self.calls.append(("delete", bucket, key))
        self._check_failure("delete")

        if (bucket, key) not in self._objects:
            raise BackendError(
                f"Object not found: {key}",
                operation="delete",
                bucket=bucket,
                key=key,
            )
        del self._objects[(bucket, key)]

    async def list(
        self,
        bucket: str,
        prefix: str,
        limit: int,
        offset: int,
        sort: SortSpec,
    ) -> list[ObjectMeta]:
        """Objects directly under prefix, like a delimited S3 listing."""
        self.calls.append(("list", bucket, prefix, limit, offset))
        self._check_failure("list")

        folder = _folder_prefix(prefix)
        matches = [
            (key, stored)
            for (b, key), stored in self._objects.items()
            if b == bucket and key.startswith(folder) and "/" not in key[len(folder):]
        ]

        if sort.column == "name":
            matches.sort(key=lambda m: m[0])
        else:
            # sequence follows creation order even within one clock tick
            matches.sort(key=lambda m: m[1].sequence)
        if sort.order is SortOrder.DESC:
            matches.reverse()

        return [
            ObjectMeta(name=key, size=len(stored.data), created_at=stored.created_at)
            for key, stored in matches[offset:offset + limit]
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_backend(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageBackend:
    """
    Create a storage backend based on configuration.

    Args:
        config: Provider configuration (required if not mock_mode)
        mock_mode: If True, return the in-memory backend

    Returns:
        StorageBackend implementation (S3-compatible or Mock)
    """
    if mock_mode:
        return MockStorageBackend()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageBackend(config)
