"""
Configuration and settings for the SkinScan backend.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
# SigV4 presigned URLs cannot outlive seven days.
MAX_SIGNED_URL_SECONDS = 7 * 24 * 60 * 60


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    # Identity provider (Supabase/GoTrue compatible)
    identity_url: Optional[str] = Field(default=None)
    identity_service_key: Optional[str] = Field(default=None)
    auth_timeout_seconds: float = Field(default=5.0, gt=0)

    # S3-compatible object storage
    use_s3_storage: bool = Field(default=False)
    storage_bucket: str = Field(default="skinscan-scans")
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    max_upload_bytes: int = Field(default=MAX_UPLOAD_BYTES, gt=0)
    signed_url_ttl_seconds: int = Field(
        default=MAX_SIGNED_URL_SECONDS, gt=0, le=MAX_SIGNED_URL_SECONDS
    )
    storage_timeout_seconds: float = Field(default=15.0, gt=0)

    # Hosted classifier
    classifier_url: str = Field(
        default="https://avanniiii-skin-disease-classifier.hf.space"
    )
    classifier_token: Optional[str] = Field(default=None)
    classifier_timeout_seconds: float = Field(default=30.0, gt=0)

    # Key-value persistence (SQL table or Redis)
    database_url: Optional[str] = Field(default=None)
    redis_url: Optional[str] = Field(default=None)
    redis_key_prefix: str = Field(default="skinscan:kv:")

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # Startup tasks
    run_bootstrap: bool = Field(default=True)
    demo_email: str = Field(default="demo@skincare.ai")
    demo_password: str = Field(default="demo123456")
    demo_name: str = Field(default="Demo User")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
