"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock modes enable local development without the hosted identity,
key-value and object storage services.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "AFSP Coaching API"
    api_version: str = "v1"
    api_prefix: str = Field(
        default="/api/v1",
        description="Route prefix shared by every function route."
    )

    # Supabase (identity + key-value store)
    supabase_url: str = Field(
        default="",
        description="Supabase project URL (https://<project>.supabase.co)"
    )
    supabase_service_role_key: str = Field(
        default="",
        description="Service role key. Used for admin auth calls and the KV table."
    )
    supabase_anon_key: str = Field(
        default="",
        description="Anonymous key. Used for password sign-in and token validation."
    )
    kv_table: str = Field(
        default="kv_store_9340b842",
        description="Table holding key/value JSON documents"
    )
    supabase_mock_mode: bool = Field(
        default=False,
        description="Use in-memory identity service and KV store instead of Supabase."
    )

    # Object storage (S3-compatible)
    storage_access_key_id: str = Field(
        default="",
        description="S3 access key ID for the storage endpoint"
    )
    storage_secret_access_key: str = Field(
        default="",
        description="S3 secret access key for the storage endpoint"
    )
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        description="S3 endpoint URL. Derived from supabase_url if not provided."
    )
    storage_region: str = Field(
        default="us-east-1",
        description="Region name passed to the S3 client"
    )
    journal_media_bucket: str = Field(
        default="make-9340b842-journal-media",
        description="Bucket for athlete journal attachments"
    )
    exercise_media_bucket: str = Field(
        default="make-9340b842-exercise-media",
        description="Bucket for exercise media, program images and branding"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory object storage. Enables local dev without buckets."
    )
    signed_url_expiry_seconds: int = Field(
        default=7 * 24 * 3600,
        description="Lifetime of signed media URLs. SigV4 caps this at 7 days."
    )

    # Application Behavior
    max_upload_size_mb: int = Field(
        default=50,
        description="Maximum size of a single uploaded file in MB."
    )
    allow_admin_signup: bool = Field(
        default=False,
        description="Allow the public signup route to create admin accounts."
    )
    user_search_limit: int = Field(
        default=20,
        description="Maximum number of users returned by chat user search."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def storage_endpoint(self) -> str:
        """
        S3 endpoint for object storage.

        Supabase exposes its storage buckets through an S3-compatible
        endpoint at {supabase_url}/storage/v1/s3.
        """
        if self.storage_endpoint_url:
            return self.storage_endpoint_url
        return f"{self.supabase_url.rstrip('/')}/storage/v1/s3"

    @property
    def media_buckets(self) -> list[str]:
        return [self.journal_media_bucket, self.exercise_media_bucket]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.supabase_mock_mode:
            if not self.supabase_url:
                missing.append("SUPABASE_URL")
            if not self.supabase_service_role_key:
                missing.append("SUPABASE_SERVICE_ROLE_KEY")
            if not self.supabase_anon_key:
                missing.append("SUPABASE_ANON_KEY")

        if not self.storage_mock_mode:
            if not self.storage_endpoint_url and not self.supabase_url:
                missing.append("STORAGE_ENDPOINT_URL or SUPABASE_URL")
            if not self.storage_access_key_id:
                missing.append("STORAGE_ACCESS_KEY_ID")
            if not self.storage_secret_access_key:
                missing.append("STORAGE_SECRET_ACCESS_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
