# =============================================================================
# core/models/auth.py - Authentication Data Model
# =============================================================================
# Plain data exchanged between the auth exchange service and its callers.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SocialIdentity:
    """Identity confirmed by a social provider."""
    provider: str
    email: str
    firstname: str = ""
    lastname: str = ""
    provider_user_id: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """
    Result of a successful credential exchange.

    `refresh_token` is None for API-key exchanges; `customer` is the stored
    customer record for customer flows.
    """
    access_token: str
    expires_in: int
    refresh_token: str | None = None
    token_type: str = "Bearer"
    customer: dict[str, Any] | None = field(default=None, compare=False)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }
        if self.refresh_token is not None:
            result["refresh_token"] = self.refresh_token
        return result
