"""
Object storage API endpoints.

Thin HTTP wrappers around the ObjectGateway:
1. Upload a file into a tier (public profile photos, private documents)
2. Get a locator to read it (permanent for public, signed for private)
3. List a folder, newest first
4. Delete an object
5. Turn a public locator back into its path

Gateway errors are not handled here; the application's exception handler
turns them into structured JSON responses.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, Query, Response, UploadFile, status
from pydantic import BaseModel, Field

from ...core.storage.models import Tier
from ..dependencies import AuthenticatedUser, ObjectGatewayDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadResponse(BaseModel):
    """Response after storing a file."""
    path: str = Field(description="Storage path of the object inside its bucket")
    bucket: str = Field(description="Bucket the object was written to")
    tier: Tier = Field(description="Access tier of the object")
    id: Optional[str] = Field(None, description="Backend-assigned object identifier")
    locator: Optional[str] = Field(None, description="Permanent locator (public tier only)")


class AccessUrlResponse(BaseModel):
    """A locator for reading one object."""
    path: str
    tier: Tier
    locator: str
    expires_in: Optional[int] = Field(None, description="Seconds the locator stays valid (private tier only)")


class ObjectEntry(BaseModel):
    """One listed object."""
    name: str
    size: int
    created_at: Optional[datetime] = None


class ListResponse(BaseModel):
    """One page of a folder listing."""
    tier: Tier
    folder: str
    offset: int
    entries: list[ObjectEntry]


class ParseLocatorRequest(BaseModel):
    locator: str = Field(description="Public locator previously returned by upload")


class ParseLocatorResponse(BaseModel):
    path: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

# Declared before the /{tier} routes so "parse-locator" is not read as a tier
@router.post(
    "/parse-locator",
    response_model=ParseLocatorResponse,
    status_code=status.HTTP_200_OK,
    summary="Extract path from a public locator",
)
async def parse_locator(
    request: ParseLocatorRequest,
    api_key: AuthenticatedUser = None,
    gateway: ObjectGatewayDep = None,
) -> ParseLocatorResponse:
    return ParseLocatorResponse(path=gateway.parse_public_locator(request.locator))


@router.post(
    "/{tier}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Store a file in the bucket for the given tier",
)
async def upload_object(
    tier: Tier,
    file: Annotated[UploadFile, File(description="File to store")],
    owner_id: Annotated[str, Form(description="Owner of the file, e.g. a user id")],
    folder: Annotated[Optional[str], Form(description="Folder override")] = None,
    api_key: AuthenticatedUser = None,
    gateway: ObjectGatewayDep = None,
) -> UploadResponse:
    """
    Upload a file.

    Public uploads must be images of at most 5MB; private uploads can be
    any type up to 10MB (limits are configurable).
    """
    content = await file.read()

    logger.info(
        "Object upload started",
        extra={
            "tier": tier.value,
            "owner_id": owner_id,
            "original_filename": file.filename,
            "content_type": file.content_type,
            "size_bytes": len(content),
        }
    )

    result = await gateway.upload_file(
        content,
        owner_id,
        tier,
        folder,
        filename=file.filename or "",
        content_type=file.content_type or "",
    )

    return UploadResponse(
        path=result.ref.path,
        bucket=result.ref.bucket,
        tier=result.ref.tier,
        id=result.ref.id,
        locator=result.locator,
    )


@router.get(
    "/{tier}/access-url",
    response_model=AccessUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a locator for an object",
)
async def get_access_url(
    tier: Tier,
    key: Annotated[str, Query(description="Object path inside the bucket")],
    ttl: Annotated[Optional[int], Query(description="Signed locator lifetime in seconds")] = None,
    api_key: AuthenticatedUser = None,
    gateway: ObjectGatewayDep = None,
) -> AccessUrlResponse:
    """
    Resolve access to an object.

    Private objects get a freshly signed locator on every call.
    """
    grant = await gateway.resolve_access(key, tier, ttl)
    return AccessUrlResponse(
        path=grant.key,
        tier=grant.tier,
        locator=grant.locator,
        expires_in=grant.expires_in,
    )


@router.get(
    "/{tier}",
    response_model=ListResponse,
    status_code=status.HTTP_200_OK,
    summary="List objects in a folder",
)
async def list_objects(
    tier: Tier,
    folder: str = "",
    offset: int = 0,
    api_key: AuthenticatedUser = None,
    gateway: ObjectGatewayDep = None,
) -> ListResponse:
    entries = await gateway.list(tier, folder, offset)
    return ListResponse(
        tier=tier,
        folder=folder,
        offset=offset,
        entries=[
            ObjectEntry(name=e.name, size=e.size, created_at=e.created_at)
            for e in entries
        ],
    )


@router.delete(
    "/{tier}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an object",
)
async def delete_object(
    tier: Tier,
    key: Annotated[str, Query(description="Object path inside the bucket")],
    api_key: AuthenticatedUser = None,
    gateway: ObjectGatewayDep = None,
) -> Response:
    await gateway.remove(key, tier)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
