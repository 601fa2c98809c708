"""Application settings loaded from environment variables.

Environment Configuration:
    MARGINALIA_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    LOG_LEVEL / LOG_JSON: Root log level and JSON (default) or console output

Auth Configuration (required in all environments):
    JWKS_URL: Full URL to the identity provider's JWKS endpoint
    JWT_ISSUER: Expected JWT issuer (trailing slash stripped)
    JWT_AUDIENCES: Comma-separated list of allowed audiences

Storage Configuration:
    S3_BUCKET: Bucket holding uploaded documents. When unset, an in-memory
        store is used (local development and tests only).
    S3_REGION / S3_ENDPOINT_URL: Region and optional S3-compatible endpoint.

Every storage and persistence call is bounded by a timeout so that a stuck
upstream surfaces as a retryable 503 instead of a hung request.
"""

import logging
from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - JWKS_URL, JWT_ISSUER, JWT_AUDIENCES are required in all environments
    - S3_BUCKET is required in staging and prod only
    - Timeouts and expiry windows must be positive
    """

    marginalia_env: Environment = Field(default=Environment.LOCAL, alias="MARGINALIA_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")

    # Persistence bounds
    db_connect_timeout_s: int = Field(default=5, alias="DB_CONNECT_TIMEOUT_S")
    db_statement_timeout_ms: int = Field(default=10_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_pool_timeout_s: int = Field(default=10, alias="DB_POOL_TIMEOUT_S")

    # Auth settings (required in all environments)
    jwks_url: str | None = Field(default=None, alias="JWKS_URL")
    jwt_issuer: str | None = Field(default=None, alias="JWT_ISSUER")
    jwt_audiences: str | None = Field(default=None, alias="JWT_AUDIENCES")

    # Object storage settings
    s3_bucket: str | None = Field(default=None, alias="S3_BUCKET")
    s3_region: str = Field(default="us-east-1", alias="S3_REGION")
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    storage_connect_timeout_s: int = Field(default=5, alias="STORAGE_CONNECT_TIMEOUT_S")
    storage_read_timeout_s: int = Field(default=30, alias="STORAGE_READ_TIMEOUT_S")
    storage_max_attempts: int = Field(default=2, alias="STORAGE_MAX_ATTEMPTS")

    # Upload limits
    max_pdf_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_PDF_BYTES")  # 10 MB

    # Access grants
    signed_url_expiry_s: int = Field(default=3600, alias="SIGNED_URL_EXPIRY_S")  # 1 hour

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for the current environment."""
        missing_auth = []
        if not self.jwks_url:
            missing_auth.append("JWKS_URL")
        if not self.jwt_issuer:
            missing_auth.append("JWT_ISSUER")
        if not self.jwt_audiences:
            missing_auth.append("JWT_AUDIENCES")

        if missing_auth:
            raise ValueError(f"Missing required auth settings: {', '.join(missing_auth)}.")

        if self.log_level.upper() not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {self.log_level!r}")

        if self.marginalia_env in (Environment.STAGING, Environment.PROD):
            if not self.s3_bucket:
                raise ValueError(
                    f"S3_BUCKET is required for MARGINALIA_ENV={self.marginalia_env.value}"
                )

        for name in (
            "db_connect_timeout_s",
            "db_statement_timeout_ms",
            "db_pool_timeout_s",
            "storage_connect_timeout_s",
            "storage_read_timeout_s",
            "storage_max_attempts",
            "max_pdf_bytes",
            "signed_url_expiry_s",
        ):
            if getattr(self, name) < 1:
                alias = type(self).model_fields[name].alias
                raise ValueError(f"{alias} must be >= 1")

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.jwt_audiences:
            return [a.strip() for a in self.jwt_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.jwt_issuer:
            return self.jwt_issuer.rstrip("/")
        return None

    @property
    def uses_fake_storage(self) -> bool:
        """Whether documents are kept in the in-memory store."""
        return not self.s3_bucket


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
