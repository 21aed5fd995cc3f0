"""
Configuration Management for Flow Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so that crypto parameters,
storage location and logging are validated once at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CryptoSettings(BaseSettings):
    """Envelope encryption parameters."""

    model_config = SettingsConfigDict(
        env_prefix="FLOW_CRYPTO_",
        extra="ignore"
    )

    pbkdf2_iterations: int = Field(
        default=100_000,
        ge=1000,
        description="PBKDF2-HMAC-SHA256 iteration count"
    )
    salt_length: int = Field(
        default=16,
        ge=16,
        le=64,
        description="Random salt length in bytes (fresh per encryption)"
    )
    iv_length: int = Field(
        default=12,
        ge=12,
        le=16,
        description="AES-GCM nonce length in bytes (fresh per encryption)"
    )
    key_length: int = Field(
        default=32,
        description="Derived key length in bytes"
    )

    @field_validator('key_length')
    @classmethod
    def validate_key_length(cls, v: int) -> int:
        """AES only accepts 128, 192 or 256 bit keys."""
        if v not in (16, 24, 32):
            raise ValueError(f"Unsupported AES key length: {v} bytes")
        return v


class StorageSettings(BaseSettings):
    """Key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FLOW_STORAGE_",
        extra="ignore"
    )

    namespace: str = Field(
        default="flow",
        pattern="^[a-z][a-z0-9]*$",
        description="Prefix for every storage key"
    )
    data_file: Optional[Path] = Field(
        default=None,
        description="JSON file backing the store. In-memory when unset."
    )
    allow_plaintext_fallback: bool = Field(
        default=False,
        description="Write unencrypted data when encryption fails instead of raising"
    )
    secret_prefix_length: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Number of password-hash characters used as the storage secret"
    )

    @field_validator('data_file')
    @classmethod
    def validate_data_file(cls, v: Optional[Path]) -> Optional[Path]:
        """Warn if the parent directory doesn't exist (it is created on first write)."""
        if v is not None and not v.parent.exists():
            import warnings
            warnings.warn(
                f"Storage directory {v.parent} does not exist yet. "
                "It will be created on the first save."
            )
        return v


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

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for structured logs"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
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

    @property
    def crypto(self) -> CryptoSettings:
        return CryptoSettings()

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

    for name in ("crypto", "storage", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
