"""
Configuration Management for the Bill Lifecycle Engine

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, cache lifetimes and display defaults are validated
once at startup instead of being scattered across services.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BILLCYCLE_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".billcycle"),
        description="Directory holding one JSON file per collection"
    )
    key_prefix: str = Field(
        default="@billcycle_",
        description="Namespace prepended to every collection key"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a failing read/write before giving up"
    )
    audit_max_events: int = Field(
        default=5000,
        ge=1,
        description="Audit events kept in storage; the oldest are dropped first"
    )

    @field_validator('key_prefix')
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Keys end up as file names, so path separators are not allowed."""
        if "/" in v or "\\" in v:
            raise ValueError(f"Key prefix must not contain path separators: {v!r}")
        return v


class CacheSettings(BaseSettings):
    """Read-through cache lifetimes."""

    model_config = SettingsConfigDict(
        env_prefix="BILLCYCLE_CACHE_",
        extra="ignore"
    )

    bills_ttl_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="How long a bulk bill read stays cached"
    )
    categories_ttl_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="How long the category list stays cached"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Display
    currency_symbol: str = Field(
        default="$",
        max_length=3,
        description="Currency symbol used in reminder messages"
    )
    upcoming_window_days: int = Field(
        default=7,
        ge=0,
        le=366,
        description="Default look-ahead window for upcoming bills"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    "<setting_name>_error" entries describing any failure.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "cache", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
