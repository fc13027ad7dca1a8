"""Configuration management for Tributestream."""

from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tributestream.core.constants import API_BASE_URL, APIConstants, CacheConstants, RetryConstants
from tributestream.models.cache import StorageTier


class Config(BaseSettings):
    """Application configuration."""

    cache_dir: Path = Field(
        default_factory=lambda: Path.home() / ".tributestream" / "cache",
        alias="TS_CACHE_DIR",
        description="Root directory for the durable cache tiers",
    )
    cache_namespace: str = Field(
        default="calculator",
        alias="TS_CACHE_NAMESPACE",
        description="Namespace prefix for every cache key",
    )
    default_ttl_ms: int = Field(
        default=CacheConstants.DEFAULT_TTL_MS,
        alias="TS_DEFAULT_TTL_MS",
        description="TTL applied when a cache write does not specify one",
    )
    session_ttl_ms: int = Field(
        default=CacheConstants.SESSION_TTL_MS,
        alias="TS_SESSION_TTL_MS",
        description="How long an untouched checkout session survives",
    )
    contribution_ttl_ms: int = Field(
        default=CacheConstants.CONTRIBUTION_TTL_MS,
        alias="TS_CONTRIBUTION_TTL_MS",
        description="How long a contribution request survives locally",
    )
    session_storage_tier: StorageTier = Field(
        default=StorageTier.DURABLE_B,
        alias="TS_SESSION_STORAGE_TIER",
        description="Storage tier for checkout sessions and contribution requests",
    )

    # Content service
    strapi_url: str = Field(
        default=API_BASE_URL,
        alias="TS_STRAPI_URL",
        description="Base URL of the backend content service",
    )
    api_token: SecretStr | None = Field(
        default=None,
        alias="TS_API_TOKEN",
        description="Bearer token for the content service",
    )
    request_timeout: float = Field(
        default=float(APIConstants.REQUEST_TIMEOUT),
        alias="TS_REQUEST_TIMEOUT",
        description="Content service request timeout in seconds",
    )

    # Retry policy
    retry_max_attempts: int = Field(default=RetryConstants.MAX_ATTEMPTS, alias="TS_RETRY_MAX_ATTEMPTS")
    retry_base_delay: float = Field(default=RetryConstants.BASE_DELAY_SECONDS, alias="TS_RETRY_BASE_DELAY")
    retry_max_delay: float = Field(default=RetryConstants.MAX_DELAY_SECONDS, alias="TS_RETRY_MAX_DELAY")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @field_validator("default_ttl_ms", "session_ttl_ms", "contribution_ttl_ms")
    @classmethod
    def positive_ttl(cls, v: int) -> int:
        """Reject non-positive TTLs."""
        if v <= 0:
            raise ValueError("TTL must be a positive number of milliseconds")
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        """A retry policy always makes at least one attempt."""
        if v < 1:
            raise ValueError("retry_max_attempts must be at least 1")
        return v


def load_config() -> Config:
    """Load configuration from environment and .env file."""
    return Config()
