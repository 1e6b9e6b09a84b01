# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: provider selection,
the runtime environment, URL fetch policy, input limits and logging.
Read once at startup; components receive derived immutable values
(see security/url_validator.UrlPolicy) instead of reading the environment.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Provider ===
    image_provider: str = "google"
    gemini_model_id: str = "gemini-3-pro-image-preview"
    google_api_key: str = ""
    provider_timeout_s: float = 180.0

    # === Runtime ===
    app_env: Literal["production", "development", "test"] = "development"
    app_base_url: str = "http://localhost:3000"
    uploads_path_prefix: str = "/uploads/"

    # === URL policy ===
    trusted_storage_suffixes: str = (
        ".public.blob.vercel-storage.com,.r2.dev,"
        ".r2.cloudflarestorage.com,.storage.googleapis.com"
    )
    dns_timeout_s: float = 2.0

    # === Reference fetch limits ===
    fetch_timeout_s: float = 10.0
    max_reference_image_bytes: int = 10 * 1024 * 1024

    # === Input limits ===
    max_prompt_length: int = 10_000
    max_instruction_length: int = 5_000
    max_images_per_generation: int = 4

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("uploads_path_prefix")
    @classmethod
    def validate_uploads_prefix(cls, v: str) -> str:  # noqa: N805
        if not (v.startswith("/") and v.endswith("/")):
            raise ValueError("uploads_path_prefix must start and end with '/'")
        return v

    @field_validator(
        "provider_timeout_s", "dns_timeout_s", "fetch_timeout_s",
        "max_reference_image_bytes", "max_images_per_generation",
    )
    @classmethod
    def validate_positive(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        parts = urlsplit(self.app_base_url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            errors.append("APP_BASE_URL must be an absolute http(s) URL")
        elif self.is_production and parts.scheme != "https":
            errors.append("APP_BASE_URL must use https in production")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def app_hostname(self) -> str:
        """Hostname of the application's own public URL (lower-cased)."""
        return (urlsplit(self.app_base_url).hostname or "").lower()

    @property
    def trusted_storage_suffixes_list(self) -> list[str]:
        """Parse comma-separated storage suffixes."""
        return [
            s.strip().lower()
            for s in self.trusted_storage_suffixes.split(",")
            if s.strip()
        ]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
