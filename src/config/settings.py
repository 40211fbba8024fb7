"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a storage provider.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Object Gateway API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys. Using a list enables key rotation without downtime."
    )

    # Storage provider (S3, R2, or Supabase's S3 endpoint)
    storage_endpoint_url: str = Field(
        default="",
        description="S3-compatible endpoint, e.g. https://<project>.supabase.co/storage/v1/s3"
    )
    storage_access_key_id: str = Field(
        default="",
        description="Storage access key ID"
    )
    storage_secret_access_key: str = Field(
        default="",
        description="Storage secret access key"
    )
    storage_region: str = Field(
        default="auto",
        description="Region name passed to the S3 client"
    )
    storage_public_base_url: Optional[str] = Field(
        default=None,
        description="Base URL public buckets are served from. Derived from the endpoint if not set."
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real provider. Enables local dev without buckets."
    )

    # Buckets and folders
    public_bucket: str = Field(
        default="profile-photos",
        description="Bucket for PUBLIC tier objects (profile photos)"
    )
    private_bucket: str = Field(
        default="documents",
        description="Bucket for PRIVATE tier objects (documents)"
    )
    public_default_folder: str = Field(default="profiles")
    private_default_folder: str = Field(default="certificates")

    # Upload policy
    public_max_size_bytes: int = Field(
        default=5 * MIB,
        description="Maximum PUBLIC upload size. Profile images don't need more than 5MB."
    )
    private_max_size_bytes: int = Field(
        default=10 * MIB,
        description="Maximum PRIVATE upload size"
    )
    public_allowed_types: str = Field(
        default="image/jpeg,image/jpg,image/png,image/gif,image/webp",
        description="Comma-separated content types accepted for PUBLIC uploads"
    )

    # Access and listing
    cache_control_seconds: int = Field(
        default=3600,
        description="Cache lifetime hint attached to every upload"
    )
    signed_url_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Default lifetime of signed locators for PRIVATE objects"
    )
    list_page_size: int = Field(
        default=100,
        gt=0,
        description="Entries returned per listing call"
    )
    public_locator_marker: str = Field(
        default="public",
        description="Path segment that precedes the bucket name in public locators"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Parse comma-separated API keys into a list."""
        return [key.strip() for key in self.api_keys.split(",") if key.strip()]

    @property
    def public_allowed_types_set(self) -> frozenset[str]:
        return frozenset(
            t.strip().lower() for t in self.public_allowed_types.split(",") if t.strip()
        )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def storage_public_base(self) -> str:
        """
        Base URL for public locators.

        Supabase serves public buckets from ``/storage/v1/object/public``
        next to its S3 endpoint at ``/storage/v1/s3``, so that is the
        default when the endpoint has that shape.
        """
        if self.storage_public_base_url:
            return self.storage_public_base_url.rstrip("/")
        endpoint = self.storage_endpoint_url.rstrip("/")
        if endpoint.endswith("/s3"):
            endpoint = endpoint[:-len("/s3")]
        return f"{endpoint}/object/{self.public_locator_marker}"

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        """
        missing = []

        if not self.storage_mock_mode:
            if not self.storage_endpoint_url:
                missing.append("STORAGE_ENDPOINT_URL")
            if not self.storage_access_key_id:
                missing.append("STORAGE_ACCESS_KEY_ID")
            if not self.storage_secret_access_key:
                missing.append("STORAGE_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
