# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.JWT_ISSUER)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists; scripts/install.py creates it)
#
# Only the FastAPI wiring reads settings. Core services receive explicit
# option objects (see app/dependencies.py).
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lib.tokens import MIN_SECRET_BYTES


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Token Signing
    # -------------------------------------------------------------------------
    # JWT_SECRET is required - app won't start without it.
    # Generate one with: python scripts/install.py

    JWT_SECRET: str = Field(
        ...,
        repr=False,
        description="HS256 signing secret (at least 256 bits)"
    )

    JWT_ISSUER: str = Field(
        default="http://localhost:8000/",
        min_length=1,
        description="Value of the iss claim"
    )

    JWT_AUDIENCE: str = Field(
        default="restapi_user",
        min_length=1,
        description="Value of the aud claim"
    )

    ACCESS_TOKEN_TTL: int = Field(
        default=3600,
        ge=1,
        description="Access token lifetime in seconds (1 hour)"
    )

    REMEMBER_ME_TOKEN_TTL: int = Field(
        default=604800,
        ge=1,
        description="Access token lifetime with remember_me (7 days)"
    )

    REFRESH_TOKEN_TTL: int = Field(
        default=2592000,
        ge=1,
        description="Refresh token lifetime in seconds (30 days)"
    )

    API_KEY: str | None = Field(
        default=None,
        repr=False,
        description="Shared API key for POST /auth/token (disabled when unset)"
    )

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    MAX_PAGE_SIZE: int = Field(
        default=200,
        ge=1,
        description="Upper bound for the limit query parameter"
    )

    LANGUAGES: str = Field(
        default="en,fr",
        description="Declared languages in fallback order (comma-separated)"
    )

    DEFAULT_LANGUAGE: str = Field(
        default="en",
        description="Language used when the caller asks for none"
    )

    CURRENCY: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="ISO 4217 currency of money fields"
    )

    ROOT_CATEGORY_ID: int = Field(default=1, ge=1)
    HOME_CATEGORY_ID: int = Field(default=2, ge=1)

    IMAGE_BASE_URL: str = Field(
        default="/img",
        description="Prefix of generated image URLs"
    )

    # -------------------------------------------------------------------------
    # Record Store
    # -------------------------------------------------------------------------

    RECORD_STORE_BACKEND: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Where resource records live"
    )

    RECORD_STORE_SEED_FILE: str | None = Field(
        default=None,
        description="JSON seed file loaded into the in-memory store at startup"
    )

    SUPABASE_URL: str | None = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_SERVICE_KEY: str | None = Field(
        default=None,
        repr=False,
        description="Supabase service_role key (bypasses RLS)"
    )

    # -------------------------------------------------------------------------
    # Social Login
    # -------------------------------------------------------------------------
    # Optional audience checks; providers still work without them.

    GOOGLE_CLIENT_ID: str | None = None
    FACEBOOK_APP_ID: str | None = None
    APPLE_CLIENT_ID: str | None = None

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        # Load from .env file in project root
        env_file=".env",
        env_file_encoding="utf-8",
        # Treat empty values as unset
        env_ignore_empty=True,
        # Case-sensitive environment variable names
        case_sensitive=True,
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("JWT_SECRET")
    @classmethod
    def _secret_strength(cls, value: str) -> str:
        if len(value.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ValueError(f"JWT_SECRET must be at least {MIN_SECRET_BYTES} bytes")
        return value

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://myapp.com" -> ["http://localhost:3000", "https://myapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def languages_list(self) -> list[str]:
        """
        Declared languages, default language first if it was not listed.

        Example: "en, fr" -> ["en", "fr"]
        """
        languages = [lang.strip().lower() for lang in self.LANGUAGES.split(",") if lang.strip()]
        default = self.DEFAULT_LANGUAGE.lower()
        if default not in languages:
            languages.insert(0, default)
        return languages

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
