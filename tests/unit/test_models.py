"""
Unit tests for the storage domain: keys, upload policy and locator parsing.

These tests never touch a backend. Policy and key naming are pure, so
we test them with plain values.
"""

import pytest

from src.core.storage.errors import MissingContent, PolicyViolation, UnrecognizedFormat
from src.core.storage.keys import derive_key, file_extension, parse_locator
from src.core.storage.models import StorageKey, Tier, UploadRequest
from src.core.storage.policy import TierPolicy, TierRules, validate

MIB = 1024 * 1024


def make_request(
    tier: Tier = Tier.PUBLIC,
    size: int = 1024,
    content_type: str = "image/jpeg",
    filename: str = "avatar.jpg",
    owner_id: str = "user123",
    folder=None,
    content: bytes = b"data",
) -> UploadRequest:
    return UploadRequest(
        content=content,
        declared_type=content_type,
        declared_size=size,
        owner_id=owner_id,
        tier=tier,
        filename=filename,
        folder=folder,
    )


# ---------------------------------------------------------------------------
# StorageKey Tests
# ---------------------------------------------------------------------------

class TestStorageKey:
    """Tests for the StorageKey value object."""

    def test_renders_folder_owner_timestamp_extension(self):
        key = StorageKey(folder="profiles", owner_id="user123", timestamp=1234567890, extension="jpg")
        assert key.render() == "profiles/user123_1234567890.jpg"

    def test_renders_without_trailing_dot_when_no_extension(self):
        key = StorageKey(folder="certificates", owner_id="eng456", timestamp=42)
        assert key.render() == "certificates/eng456_42"

    def test_renders_without_leading_slash_when_no_folder(self):
        key = StorageKey(folder="", owner_id="u1", timestamp=7, extension="png")
        assert str(key) == "u1_7.png"

    def test_rejects_negative_timestamp(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            StorageKey(folder="profiles", owner_id="u1", timestamp=-1)

    def test_parse_recovers_rendered_key(self):
        key = StorageKey(folder="a/b", owner_id="owner_with_underscores", timestamp=99, extension="pdf")
        assert StorageKey.parse(key.render()) == key

    @pytest.mark.parametrize("extension", ["jpg", ""])
    def test_parse_handles_dotted_owner_id(self, extension):
        key = StorageKey(folder="profiles", owner_id="john.doe", timestamp=5, extension=extension)
        assert StorageKey.parse(key.render()) == key

    def test_parse_rejects_foreign_paths(self):
        with pytest.raises(ValueError, match="Not a gateway key"):
            StorageKey.parse("profiles/avatar.jpg")


# ---------------------------------------------------------------------------
# Key Derivation Tests
# ---------------------------------------------------------------------------

class TestFileExtension:
    """Tests for extension parsing."""

    @pytest.mark.parametrize("filename,expected", [
        ("photo.jpg", "jpg"),
        ("archive.tar.gz", "gz"),
        ("README", ""),
        (".env", ""),
        ("", ""),
        ("dir/scan.PDF", "PDF"),
    ])
    def test_takes_last_dot_segment(self, filename, expected):
        assert file_extension(filename) == expected


class TestDeriveKey:
    """Tests for deterministic key construction."""

    def test_same_inputs_and_clock_give_same_key(self):
        validated = validate(make_request(filename="me.png", content_type="image/png"))

        first = derive_key(validated, clock=lambda: 1000)
        second = derive_key(validated, clock=lambda: 1000)

        assert first == second
        assert first.render() == second.render() == "profiles/user123_1000.png"

    def test_uses_tier_default_folder(self):
        public = validate(make_request(tier=Tier.PUBLIC))
        private = validate(make_request(tier=Tier.PRIVATE, content_type="application/pdf"))

        assert derive_key(public, clock=lambda: 1).folder == "profiles"
        assert derive_key(private, clock=lambda: 1).folder == "certificates"

    def test_explicit_folder_wins(self):
        validated = validate(make_request(folder="avatars/"))
        assert derive_key(validated, clock=lambda: 5).render() == "avatars/user123_5.jpg"

    def test_filename_without_dot_has_empty_extension(self):
        validated = validate(make_request(tier=Tier.PRIVATE, filename="scan"))
        key = derive_key(validated, clock=lambda: 5)
        assert key.extension == ""
        assert key.render() == "certificates/user123_5"


# ---------------------------------------------------------------------------
# Policy Tests
# ---------------------------------------------------------------------------

class TestPublicPolicy:
    """Public tier accepts small images only."""

    @pytest.mark.parametrize("content_type", [
        "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp",
    ])
    def test_accepts_allowed_image_types(self, content_type):
        validated = validate(make_request(content_type=content_type, size=5 * MIB))
        assert validated.folder == "profiles"

    def test_rejects_one_byte_over_five_mib(self):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(size=5 * MIB + 1))

        assert exc_info.value.field == "size"
        assert exc_info.value.limit == 5 * MIB

    def test_rejects_non_image_types(self):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(content_type="application/pdf"))

        assert exc_info.value.field == "content_type"
        assert "image/png" in exc_info.value.limit

    def test_type_check_ignores_case(self):
        validate(make_request(content_type="IMAGE/PNG"))


class TestPrivatePolicy:
    """Private tier accepts any type up to 10 MiB."""

    @pytest.mark.parametrize("content_type", ["application/pdf", "text/plain", "", "image/png"])
    def test_accepts_any_type_within_limit(self, content_type):
        validate(make_request(tier=Tier.PRIVATE, content_type=content_type, size=10 * MIB))

    def test_rejects_over_ten_mib(self):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(tier=Tier.PRIVATE, size=10 * MIB + 1))

        assert exc_info.value.to_dict() == {
            "kind": "policy_violation",
            "message": "File too large. Maximum size is 10MB",
            "field": "size",
            "limit": 10485760,
        }


class TestPolicyValidation:
    """Rules shared by both tiers."""

    @pytest.mark.parametrize("content", [None, b""])
    def test_missing_content(self, content):
        with pytest.raises(MissingContent, match="No file provided"):
            validate(make_request(content=content))

    def test_blank_owner_rejected(self):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(owner_id="  "))
        assert exc_info.value.field == "owner_id"

    @pytest.mark.parametrize("owner_id", ["../certificates/victim", "a/b", "a\\b"])
    def test_owner_with_path_separator_rejected(self, owner_id):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(owner_id=owner_id))
        assert exc_info.value.field == "owner_id"

    @pytest.mark.parametrize("folder", ["..", "../certificates", "profiles/../certificates", "./profiles"])
    def test_folder_with_dot_segments_rejected(self, folder):
        with pytest.raises(PolicyViolation) as exc_info:
            validate(make_request(folder=folder))
        assert exc_info.value.field == "folder"

    def test_nested_folder_accepted(self):
        validated = validate(make_request(folder="/users/u1.d/"))
        assert validated.folder == "users/u1.d"

    def test_negative_size_rejected(self):
        with pytest.raises(PolicyViolation):
            validate(make_request(size=-1))

    def test_custom_rules(self):
        policy = TierPolicy(
            public=TierRules(max_size_bytes=10, default_folder="avatars", allowed_types=frozenset({"image/png"})),
        )

        validated = policy.validate(make_request(content_type="image/png", size=10))
        assert validated.folder == "avatars"

        with pytest.raises(PolicyViolation):
            policy.validate(make_request(content_type="image/jpeg", size=10))


# ---------------------------------------------------------------------------
# Locator Parsing Tests
# ---------------------------------------------------------------------------

class TestParseLocator:
    """Tests for recovering paths from public locators."""

    def test_extracts_path_after_bucket(self):
        url = "https://x.supabase.co/storage/v1/object/public/profile-photos/profiles/user123.jpg"
        assert parse_locator(url) == "profiles/user123.jpg"

    def test_decodes_percent_escapes(self):
        url = "https://cdn.example.com/public/docs/my%20folder/a%2Bb.png"
        assert parse_locator(url) == "my folder/a+b.png"

    def test_custom_marker(self):
        url = "https://cdn.example.com/pub/bucket/profiles/u1_1.jpg"
        assert parse_locator(url, marker="pub") == "profiles/u1_1.jpg"

    @pytest.mark.parametrize("locator", [
        "https://x.supabase.co/storage/v1/object/sign/documents/a.pdf?token=abc",
        "https://x.supabase.co/storage/v1/object/public/profile-photos",
        "https://x.supabase.co/storage/v1/object/public/profile-photos/",
        "not a url",
        "",
        None,
    ])
    def test_rejects_unrecognized_locators(self, locator):
        with pytest.raises(UnrecognizedFormat):
            parse_locator(locator)
