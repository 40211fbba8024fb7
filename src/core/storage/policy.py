"""
Tier upload policy.

Public objects are profile-style images, so they get a narrow type
allow-set and a small size cap. Private objects are documents of any type
with a larger cap. Nothing in here touches the network.
"""

from dataclasses import dataclass, field

from .errors import MissingContent, PolicyViolation
from .models import Tier, UploadRequest, ValidatedRequest

MIB = 1024 * 1024

DEFAULT_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
})


@dataclass(frozen=True)
class TierRules:
    """Limits applied to one tier."""
    max_size_bytes: int
    default_folder: str
    allowed_types: frozenset[str] | None = None  # None means any type

    def allows_type(self, content_type: str) -> bool:
        if self.allowed_types is None:
            return True
        return (content_type or "").lower() in self.allowed_types


@dataclass(frozen=True)
class TierPolicy:
    """
    Rules for both tiers.

    Defaults match the buckets as provisioned: 5 MiB images for public
    profiles, 10 MiB documents for private certificates.
    """
    public: TierRules = field(default_factory=lambda: TierRules(
        max_size_bytes=5 * MIB,
        default_folder="profiles",
        allowed_types=DEFAULT_IMAGE_TYPES,
    ))
    private: TierRules = field(default_factory=lambda: TierRules(
        max_size_bytes=10 * MIB,
        default_folder="certificates",
    ))

    def rules_for(self, tier: Tier) -> TierRules:
        return self.public if tier is Tier.PUBLIC else self.private

    def validate(self, request: UploadRequest) -> ValidatedRequest:
        """
        Check a request against its tier's rules.

        Raises MissingContent when there are no bytes and PolicyViolation
        for anything else that is out of bounds.
        """
        if not request.content:
            raise MissingContent()

        if not request.owner_id or not request.owner_id.strip():
            raise PolicyViolation(
                field="owner_id",
                reason="Owner id is required",
            )

        if "/" in request.owner_id or "\\" in request.owner_id:
            raise PolicyViolation(
                field="owner_id",
                reason="Owner id cannot contain path separators",
            )

        rules = self.rules_for(request.tier)

        if not rules.allows_type(request.declared_type):
            raise PolicyViolation(
                field="content_type",
                limit=rules.allowed_types,
                reason=(
                    f"Invalid file type {request.declared_type!r}. "
                    "Please upload an image (JPEG, PNG, GIF, or WebP)"
                ),
            )

        if request.declared_size < 0:
            raise PolicyViolation(
                field="size",
                limit=rules.max_size_bytes,
                reason="File size cannot be negative",
            )

        if request.declared_size > rules.max_size_bytes:
            raise PolicyViolation(
                field="size",
                limit=rules.max_size_bytes,
                reason=(
                    "File too large. Maximum size is "
                    f"{rules.max_size_bytes // MIB}MB"
                ),
            )

        folder = request.folder if request.folder is not None else rules.default_folder
        if any(part in (".", "..") for part in folder.replace("\\", "/").split("/")):
            raise PolicyViolation(
                field="folder",
                reason=f"Invalid folder {folder!r}",
            )

        return ValidatedRequest(request=request, folder=folder.strip("/"))


def validate(request: UploadRequest, policy: TierPolicy | None = None) -> ValidatedRequest:
    """Validate with the default policy unless one is given."""
    return (policy or TierPolicy()).validate(request)
