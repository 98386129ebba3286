"""
Configuration and settings shared by the Cloud Functions and the FastAPI service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Document database
    db_backend: Literal["firestore", "sql", "memory"] = Field(
        default="firestore", validation_alias="BICI_DB_BACKEND"
    )
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Object storage for bike photos and ownership documents
    storage_backend: Literal["firebase", "s3", "memory"] = Field(
        default="firebase", validation_alias="BICI_STORAGE_BACKEND"
    )
    storage_bucket: Optional[str] = Field(
        default=None, validation_alias="BICI_STORAGE_BUCKET"
    )
    s3_endpoint: Optional[str] = Field(default=None, validation_alias="S3_ENDPOINT")
    s3_region: Optional[str] = Field(default=None, validation_alias="S3_REGION")
    aws_access_key_id: Optional[str] = Field(
        default=None, validation_alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, validation_alias="AWS_SECRET_ACCESS_KEY"
    )
    upload_url_expiry_seconds: int = Field(
        default=900, validation_alias="BICI_UPLOAD_URL_EXPIRY_SECONDS"
    )

    # Identity
    auth_backend: Literal["firebase", "memory"] = Field(
        default="firebase", validation_alias="BICI_AUTH_BACKEND"
    )

    # Cloud Functions
    functions_region: str = Field(
        default="us-central1", validation_alias="BICI_FUNCTIONS_REGION"
    )
    enforce_app_check: bool = Field(
        default=True, validation_alias="BICI_ENFORCE_APP_CHECK"
    )
    allowed_origins: list[str] = Field(
        default=[
            "https://biciregistro.mx",
            "https://www.biciregistro.mx",
            "https://bike-guardian-hbbg6.firebaseapp.com",
            "https://bike-guardian-staging.web.app",
            r"^https://.*\.cloudworkstations\.dev$",
            "http://localhost:3000",
        ],
        validation_alias="BICI_ALLOWED_ORIGINS",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
