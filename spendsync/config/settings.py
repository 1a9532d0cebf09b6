"""
Configuration Management for SpendSync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The only external dependency of the sync layer is the API base URL;
everything else (stale times, retry counts, client limits) has a sane
default that can be overridden per deployment.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS


class ApiSettings(BaseSettings):
    """Remote finance API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDSYNC_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:8080/api/v1",
        description="Base URL of the finance API (including /api/v1)"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Transport timeout for a single request"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths always start with '/'."""
        return v.rstrip("/")


class CacheSettings(BaseSettings):
    """Reactive cache freshness and retry configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDSYNC_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_stale_after_ms: int = Field(
        default=5 * MINUTE_MS,
        ge=0,
        description="Freshness window for lists and details"
    )
    summary_stale_after_ms: int = Field(
        default=5 * MINUTE_MS,
        ge=0,
        description="Freshness window for home summaries and statistics"
    )
    reference_stale_after_ms: int = Field(
        default=24 * HOUR_MS,
        ge=0,
        description="Freshness window for icon/color reference data"
    )
    preset_stale_after_ms: int = Field(
        default=HOUR_MS,
        ge=0,
        description="Freshness window for date range presets"
    )
    gc_time_ms: int = Field(
        default=5 * MINUTE_MS,
        ge=0,
        description="Idle time after which unobserved entries are collected"
    )
    read_retries: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Automatic retries for a failed read"
    )
    retry_min_wait_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Lower bound of the exponential read backoff"
    )
    retry_max_wait_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound of the exponential read backoff"
    )


class StorageSettings(BaseSettings):
    """Local persisted state configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPENDSYNC_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    state_path: Path = Field(
        default=Path("./data/spendsync-state.json"),
        description="JSON file holding account selection and preferences"
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

    # Search input throttling
    default_debounce_ms: int = Field(
        default=300,
        ge=0,
        description="Delay before a typed search value is used"
    )

    # Client limits (mirrors the server's validation)
    page_size: int = Field(default=20, ge=1, le=100)
    max_page_size: int = Field(default=100, ge=1)
    max_description_length: int = Field(default=200, ge=1)
    max_account_name_length: int = Field(default=50, ge=1)
    max_category_name_length: int = Field(default=30, ge=1)
    max_tag_name_length: int = Field(default=30, ge=1)
    default_currency: str = Field(default="USD", min_length=3, max_length=3)


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

    @property
    def api(self) -> ApiSettings:
        return ApiSettings()

    @property
    def cache(self) -> CacheSettings:
        return CacheSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

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

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("api", "cache", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
