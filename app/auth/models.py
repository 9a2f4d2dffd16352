# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data: the authenticated principal and
# the request/response bodies of the /auth endpoints.
# =============================================================================

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lib.tokens import TokenClaims


class Principal(BaseModel):
    """
    Authenticated caller extracted from a validated access token.

    Built from the token alone, without querying the record store.
    """
    model_config = ConfigDict(frozen=True)  # Make immutable

    subject: str
    customer_id: Optional[int] = None
    email: Optional[str] = None
    roles: tuple[str, ...] = ()

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Principal":
        return cls(
            subject=claims.subject,
            customer_id=claims.get("customer_id"),
            email=claims.get("email"),
            roles=tuple(claims.get("roles") or ()),
        )

    @property
    def is_customer(self) -> bool:
        return self.customer_id is not None

    def has_role(self, role: str) -> bool:
        return role in self.roles


# -----------------------------------------------------------------------------
# Requests
# -----------------------------------------------------------------------------

class ApiKeyRequest(BaseModel):
    api_key: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    remember_me: bool = False


class RegisterRequest(BaseModel):
    """
    Customer sign-up.

    Extra customer fields (birthday, newsletter, ...) are passed through to
    the customers resource.
    """
    model_config = ConfigDict(extra="allow")

    firstname: str
    lastname: str
    email: str
    password: str
    remember_me: bool = False


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class SocialLoginRequest(BaseModel):
    """
    Credential obtained from the provider.

    google/apple: the ID token; facebook: the user access token.
    """
    token: str = Field(..., min_length=1)
    profile: Optional[dict[str, Any]] = None


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------

class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_in: int
    customer: Optional[dict[str, Any]] = None
