"""
Object storage backends for the gateway.

Supports S3, R2 and Supabase Storage via the S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockStorageBackend,
    S3StorageBackend,
    StorageConfig,
    create_storage_backend,
)

__all__ = [
    "MockStorageBackend",
    "S3StorageBackend",
    "StorageConfig",
    "create_storage_backend",
]
