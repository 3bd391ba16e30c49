"""
Configuration and settings for the marketplace client.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the backend clients."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Hosted platform (auth REST API and public storage URLs)
    supabase_url: Optional[str] = Field(default=None, env="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(default=None, env="SUPABASE_ANON_KEY")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible storage endpoint of the platform
    storage_s3_endpoint: Optional[str] = Field(
        default=None, env="STORAGE_S3_ENDPOINT"
    )
    storage_region: str = Field(default="us-east-1", env="STORAGE_REGION")
    storage_access_key_id: Optional[str] = Field(
        default=None, env="STORAGE_ACCESS_KEY_ID"
    )
    storage_secret_access_key: Optional[str] = Field(
        default=None, env="STORAGE_SECRET_ACCESS_KEY"
    )

    # Realtime change feed (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    realtime_channel_prefix: str = Field(
        default="marketplace:realtime", env="REALTIME_CHANNEL_PREFIX"
    )

    # Buckets
    cor_bucket: str = Field(default="cor_bucket", env="COR_BUCKET")
    product_bucket: str = Field(default="product_bucket", env="PRODUCT_BUCKET")
    profile_bucket: str = Field(default="profile_bucket", env="PROFILE_BUCKET")

    # Screen behavior
    placeholder_image_url: str = Field(
        default="https://via.placeholder.com/150", env="PLACEHOLDER_IMAGE_URL"
    )
    max_product_photos: int = Field(default=10, env="MAX_PRODUCT_PHOTOS")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "MARKETPLACE_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
