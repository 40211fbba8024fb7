"""
FastAPI dependency injection.

Dependencies provide the gateway, its storage backend and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests
- Configuration is centralized

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.storage.gateway import BucketNames, ObjectGateway, StorageBackend
from ..core.storage.policy import TierPolicy, TierRules
from ..infrastructure.storage.client import StorageConfig, create_storage_backend

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared mock backend so objects persist across requests in mock mode
_mock_storage_backend = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8] if api_key else ""}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_storage_backend(
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageBackend:
    """
    Provide the storage backend.

    Returns either the S3-compatible backend or the mock backend based on
    settings. In mock mode the same backend is reused across requests so
    uploaded objects stay around for the session.
    """
    global _mock_storage_backend

    if settings.storage_mock_mode:
        if _mock_storage_backend is None:
            _mock_storage_backend = create_storage_backend(mock_mode=True)
            logger.info("Created shared mock storage backend for session")
        return _mock_storage_backend

    config = StorageConfig(
        access_key_id=settings.storage_access_key_id,
        secret_access_key=settings.storage_secret_access_key,
        endpoint_url=settings.storage_endpoint_url,
        region=settings.storage_region,
        public_base_url=settings.storage_public_base,
    )
    backend = create_storage_backend(config=config)
    logger.debug("Created S3 storage backend")

    return backend


def reset_mock_storage_backend() -> None:
    """Drop the shared mock backend. Used between tests."""
    global _mock_storage_backend
    _mock_storage_backend = None


def build_policy(settings: Settings) -> TierPolicy:
    """Tier policy from configured limits."""
    return TierPolicy(
        public=TierRules(
            max_size_bytes=settings.public_max_size_bytes,
            default_folder=settings.public_default_folder,
            allowed_types=settings.public_allowed_types_set,
        ),
        private=TierRules(
            max_size_bytes=settings.private_max_size_bytes,
            default_folder=settings.private_default_folder,
        ),
    )


def get_object_gateway(
    settings: Annotated[Settings, Depends(get_settings)],
    backend: Annotated[StorageBackend, Depends(get_storage_backend)],
) -> ObjectGateway:
    """
    Provide an ObjectGateway wired to the configured backend.

    The gateway is stateless apart from its dependencies, so a new one
    per request is cheap.
    """
    return ObjectGateway(
        backend=backend,
        buckets=BucketNames(
            public=settings.public_bucket,
            private=settings.private_bucket,
        ),
        policy=build_policy(settings),
        cache_seconds=settings.cache_control_seconds,
        default_ttl_seconds=settings.signed_url_ttl_seconds,
        page_size=settings.list_page_size,
        public_marker=settings.public_locator_marker,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
ObjectGatewayDep = Annotated[ObjectGateway, Depends(get_object_gateway)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
