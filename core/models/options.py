# =============================================================================
# core/models/options.py - Explicit Service Configuration
# =============================================================================
# Plain configuration objects passed into services at construction time.
# The core never reads global settings; app/dependencies.py builds these from
# app.config.Settings.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceOptions:
    """
    Resource-layer configuration.

    Attributes:
        languages: Declared language codes, in fallback order
        default_language: Language used when the caller asks for none
        currency: ISO 4217 code for money fields
        max_page_size: Upper bound for `limit`
        root_category_id: Protected root category
        home_category_id: Protected home category (default parent)
        image_base_url: Prefix for generated image URLs
    """
    languages: tuple[str, ...] = ("en",)
    default_language: str = "en"
    currency: str = "EUR"
    max_page_size: int = 200
    root_category_id: int = 1
    home_category_id: int = 2
    image_base_url: str = "/img"

    def __post_init__(self) -> None:
        if self.default_language not in self.languages:
            object.__setattr__(self, "languages", (self.default_language, *self.languages))

    def resolve_language(self, *candidates: str | None) -> str:
        """First candidate that is a declared language, else the default."""
        for candidate in candidates:
            if candidate and candidate in self.languages:
                return candidate
        return self.default_language


@dataclass(frozen=True)
class AuthOptions:
    """Token lifetimes and API-key configuration for the auth exchange."""
    access_ttl: int = 3600
    remember_me_ttl: int = 604800
    refresh_ttl: int = 2592000
    api_key: str | None = None
    api_key_ttl: int = 3600
