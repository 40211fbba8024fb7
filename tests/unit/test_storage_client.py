"""
Tests for the storage backends.

The S3 backend is built with a real boto3 client (no network is needed to
construct it or to sign URLs); calls that would hit the network go to a
MagicMock standing in for the client.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from botocore.exceptions import ClientError

from src.core.storage.errors import BackendError
from src.core.storage.gateway import ObjectGateway
from src.core.storage.models import PutOptions, SortOrder, SortSpec, Tier
from src.infrastructure.storage.client import (
    MockStorageBackend,
    S3StorageBackend,
    StorageConfig,
    create_storage_backend,
)

from ..support import run


@pytest.fixture
def config() -> StorageConfig:
    return StorageConfig(
        access_key_id="test-key",
        secret_access_key="test-secret",
        endpoint_url="https://project.supabase.co/storage/v1",
        region="us-east-1",
    )


@pytest.fixture
def s3_backend(config) -> S3StorageBackend:
    return S3StorageBackend(config)


def client_error(code: str, operation: str = "PutObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# ---------------------------------------------------------------------------
# S3-compatible backend
# ---------------------------------------------------------------------------

class TestS3Put:

    def test_conditional_write_with_cache_hint(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.put_object.return_value = {"ETag": '"abc123"'}

        result = run(s3_backend.put(
            "profile-photos",
            "profiles/u1_1.jpg",
            b"img",
            PutOptions(overwrite=False, cache_hint="3600", content_type="image/jpeg"),
        ))

        s3_backend._s3_client.put_object.assert_called_once_with(
            Bucket="profile-photos",
            Key="profiles/u1_1.jpg",
            Body=b"img",
            CacheControl="max-age=3600",
            ContentType="image/jpeg",
            IfNoneMatch="*",
        )
        assert result.path == "profiles/u1_1.jpg"
        assert result.id == "abc123"

    def test_overwrite_allowed_skips_condition(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.put_object.return_value = {}

        run(s3_backend.put("b", "k", b"x", PutOptions(overwrite=True)))

        kwargs = s3_backend._s3_client.put_object.call_args.kwargs
        assert "IfNoneMatch" not in kwargs
        assert "ContentType" not in kwargs

    def test_existing_object_reported_as_already_exists(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        error = client_error("PreconditionFailed")
        s3_backend._s3_client.put_object.side_effect = error

        with pytest.raises(BackendError, match="already exists") as exc_info:
            run(s3_backend.put("b", "k", b"x", PutOptions()))

        assert exc_info.value.cause is error

    def test_other_errors_wrapped(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.put_object.side_effect = client_error("AccessDenied")

        with pytest.raises(BackendError, match="Upload failed"):
            run(s3_backend.put("b", "k", b"x", PutOptions()))


class TestS3Locators:

    def test_public_locator_uses_supabase_layout(self, s3_backend):
        locator = run(s3_backend.public_locator_for("profile-photos", "profiles/u1 1.jpg"))
        assert locator == (
            "https://project.supabase.co/storage/v1/object/public/"
            "profile-photos/profiles/u1%201.jpg"
        )

    def test_public_base_url_override(self, config):
        config.public_base_url = "https://cdn.example.com/public/"
        backend = S3StorageBackend(config)

        locator = run(backend.public_locator_for("avatars", "a.png"))
        assert locator == "https://cdn.example.com/public/avatars/a.png"

    def test_signed_locator_carries_requested_lifetime(self, s3_backend):
        locator = run(s3_backend.signed_locator_for("documents", "certificates/a_1.pdf", 1800))

        query = parse_qs(urlparse(locator).query)
        assert query["X-Amz-Expires"] == ["1800"]
        assert "/documents/certificates/a_1.pdf" in urlparse(locator).path

    def test_public_locator_parses_back_through_gateway(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.put_object.return_value = {}
        gateway = ObjectGateway(backend=s3_backend, clock=lambda: 42)

        result = run(gateway.upload_file(
            b"img", "u1", Tier.PUBLIC, filename="me.webp", content_type="image/webp",
        ))

        assert gateway.parse_public_locator(result.locator) == "profiles/u1_42.webp"


class TestS3Delete:

    def test_missing_key_success_is_passed_on(self, s3_backend):
        """S3 accepts deletes of missing keys; the gateway does not invent an error."""
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.delete_object.return_value = {}
        gateway = ObjectGateway(backend=s3_backend)

        assert run(gateway.remove("certificates/never_1.pdf", Tier.PRIVATE)) is None
        s3_backend._s3_client.delete_object.assert_called_once_with(
            Bucket="documents", Key="certificates/never_1.pdf",
        )

    def test_failure_wrapped(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.delete_object.side_effect = client_error("AccessDenied", "DeleteObject")

        with pytest.raises(BackendError, match="Delete failed"):
            run(s3_backend.delete("documents", "k"))


class TestS3List:

    def _paginated(self, s3_backend, pages):
        paginator = MagicMock()
        paginator.paginate.return_value = pages
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.get_paginator.return_value = paginator
        return paginator

    def test_sorts_newest_first_and_slices(self, s3_backend):
        t = lambda day: datetime(2024, 1, day, tzinfo=timezone.utc)
        paginator = self._paginated(s3_backend, [
            {"Contents": [
                {"Key": "profiles/a.jpg", "Size": 1, "LastModified": t(1)},
                {"Key": "profiles/b.jpg", "Size": 2, "LastModified": t(3)},
            ]},
            {"Contents": [
                {"Key": "profiles/c.jpg", "Size": 3, "LastModified": t(2)},
            ]},
        ])

        entries = run(s3_backend.list("profile-photos", "profiles", 2, 0, SortSpec()))

        paginator.paginate.assert_called_once_with(
            Bucket="profile-photos", Delimiter="/", Prefix="profiles/",
        )
        assert [e.name for e in entries] == ["profiles/b.jpg", "profiles/c.jpg"]
        assert entries[0].size == 2

        rest = run(s3_backend.list("profile-photos", "profiles", 2, 2, SortSpec()))
        assert [e.name for e in rest] == ["profiles/a.jpg"]

    def test_root_listing_has_no_prefix(self, s3_backend):
        paginator = self._paginated(s3_backend, [{}])

        assert run(s3_backend.list("documents", "", 100, 0, SortSpec())) == []
        paginator.paginate.assert_called_once_with(Bucket="documents", Delimiter="/")

    def test_sort_by_name_ascending(self, s3_backend):
        self._paginated(s3_backend, [{"Contents": [{"Key": "b"}, {"Key": "a"}]}])

        entries = run(s3_backend.list("d", "", 10, 0, SortSpec("name", SortOrder.ASC)))
        assert [e.name for e in entries] == ["a", "b"]

    def test_failure_wrapped(self, s3_backend):
        s3_backend._s3_client = MagicMock()
        s3_backend._s3_client.get_paginator.side_effect = client_error("NoSuchBucket", "ListObjectsV2")

        with pytest.raises(BackendError, match="List failed"):
            run(s3_backend.list("d", "", 10, 0, SortSpec()))


# ---------------------------------------------------------------------------
# Mock backend and factory
# ---------------------------------------------------------------------------

class TestMockBackend:

    def test_refuses_overwrite(self):
        backend = MockStorageBackend()
        run(backend.put("b", "k", b"1", PutOptions()))

        with pytest.raises(BackendError, match="already exists"):
            run(backend.put("b", "k", b"2", PutOptions()))
        assert backend.read("b", "k") == b"1"

    def test_overwrite_when_allowed(self):
        backend = MockStorageBackend()
        run(backend.put("b", "k", b"1", PutOptions()))
        run(backend.put("b", "k", b"2", PutOptions(overwrite=True)))
        assert backend.read("b", "k") == b"2"

    def test_fail_next_applies_once(self):
        backend = MockStorageBackend()
        backend.fail_next("delete", RuntimeError("down"))

        with pytest.raises(RuntimeError):
            run(backend.delete("b", "k"))
        with pytest.raises(BackendError, match="not found"):
            run(backend.delete("b", "k"))


class TestFactory:

    def test_mock_mode(self):
        assert isinstance(create_storage_backend(mock_mode=True), MockStorageBackend)

    def test_real_mode_requires_config(self):
        with pytest.raises(ValueError, match="config is required"):
            create_storage_backend()

    def test_real_mode(self, config):
        assert isinstance(create_storage_backend(config=config), S3StorageBackend)
