# =============================================================================
# core/services/social.py - Social Identity Verification
# =============================================================================
# One verifier per provider turns the credential a client obtained from the
# provider into a SocialIdentity:
#
#   google    id_token  -> https://oauth2.googleapis.com/tokeninfo
#   facebook  access token -> https://graph.facebook.com/me
#   apple     id_token  -> RS256 signature checked against Apple's JWKS
#
# Any failure raises SocialVerificationError; the auth service turns it into
# a generic 401.
# =============================================================================

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Protocol

import httpx
from jose import jwt, JWTError
from jose.exceptions import JWKError

from core.models.auth import SocialIdentity

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10
JWKS_CACHE_TTL = 3600  # 1 hour


class SocialVerificationError(Exception):
    """The provider did not confirm the credential."""


class SocialIdentityVerifier(Protocol):
    provider: str

    def verify(self, credential: str, profile: Mapping[str, Any] | None = None) -> SocialIdentity:
        ...


def _split_name(full_name: str | None) -> tuple[str, str]:
    parts = (full_name or "").strip().split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


# =============================================================================
# Google
# =============================================================================

class GoogleVerifier:
    """Verify a Google ID token with the tokeninfo endpoint."""

    provider = "google"
    TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"

    def __init__(self, client_id: str | None = None, http: httpx.Client | None = None):
        self.client_id = client_id
        self.http = http

    def verify(self, credential, profile=None):
        try:
            response = (self.http or httpx).get(
                self.TOKENINFO_URL, params={"id_token": credential}, timeout=HTTP_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Google token verification failed: {type(e).__name__}")
            raise SocialVerificationError("google") from e

        if self.client_id and data.get("aud") != self.client_id:
            raise SocialVerificationError("google: audience mismatch")
        if not data.get("email") or str(data.get("email_verified", "false")).lower() != "true":
            raise SocialVerificationError("google: email not verified")

        return SocialIdentity(
            provider=self.provider,
            email=data["email"],
            firstname=data.get("given_name", ""),
            lastname=data.get("family_name", ""),
            provider_user_id=data.get("sub"),
        )


# =============================================================================
# Facebook
# =============================================================================

class FacebookVerifier:
    """Resolve a Facebook access token through the Graph API."""

    provider = "facebook"
    GRAPH_URL = "https://graph.facebook.com/me"

    def __init__(self, app_id: str | None = None, http: httpx.Client | None = None):
        self.app_id = app_id
        self.http = http

    def verify(self, credential, profile=None):
        try:
            response = (self.http or httpx).get(
                self.GRAPH_URL,
                params={"fields": "id,email,first_name,last_name", "access_token": credential},
                timeout=HTTP_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Facebook token verification failed: {type(e).__name__}")
            raise SocialVerificationError("facebook") from e

        if not data.get("email"):
            raise SocialVerificationError("facebook: no email on profile")

        return SocialIdentity(
            provider=self.provider,
            email=data["email"],
            firstname=data.get("first_name", ""),
            lastname=data.get("last_name", ""),
            provider_user_id=data.get("id"),
        )


# =============================================================================
# Apple
# =============================================================================

class AppleVerifier:
    """
    Verify a Sign in with Apple ID token against Apple's published keys.

    Apple only sends the user's name on the first sign-in, so the client may
    pass it along as `profile` ({"firstname", "lastname"} or {"name"}).
    """

    provider = "apple"
    ISSUER = "https://appleid.apple.com"
    JWKS_URL = "https://appleid.apple.com/auth/keys"

    def __init__(self, client_id: str | None = None, http: httpx.Client | None = None):
        self.client_id = client_id
        self.http = http
        self._jwks: dict[str, Any] = {}
        self._jwks_time: float = 0

    def _fetch_jwks(self) -> dict[str, Any]:
        """Fetch Apple's JWKS with caching."""
        now = time.time()
        if self._jwks and (now - self._jwks_time) < JWKS_CACHE_TTL:
            return self._jwks

        try:
            response = (self.http or httpx).get(self.JWKS_URL, timeout=HTTP_TIMEOUT)
            response.raise_for_status()
            self._jwks = response.json()
            self._jwks_time = now
            logger.debug("Fetched Apple JWKS")
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to fetch Apple JWKS: {type(e).__name__}")
            # Stale keys are better than none
            if not self._jwks:
                raise SocialVerificationError("apple: keys unavailable") from e
        return self._jwks

    def verify(self, credential, profile=None):
        try:
            header = jwt.get_unverified_header(credential)
        except JWTError as e:
            raise SocialVerificationError("apple: malformed token") from e

        key = next(
            (k for k in self._fetch_jwks().get("keys", []) if k.get("kid") == header.get("kid")),
            None,
        )
        if key is None:
            raise SocialVerificationError("apple: unknown signing key")

        try:
            claims = jwt.decode(
                credential,
                key,
                algorithms=["RS256"],
                audience=self.client_id,
                issuer=self.ISSUER,
                options={"verify_aud": bool(self.client_id)},
            )
        except (JWTError, JWKError) as e:
            logger.warning(f"Apple token rejected: {type(e).__name__}")
            raise SocialVerificationError("apple") from e

        if not claims.get("email"):
            raise SocialVerificationError("apple: no email claim")

        profile = profile or {}
        firstname = profile.get("firstname", "")
        lastname = profile.get("lastname", "")
        if not firstname and profile.get("name"):
            firstname, lastname = _split_name(profile["name"])

        return SocialIdentity(
            provider=self.provider,
            email=claims["email"],
            firstname=firstname,
            lastname=lastname,
            provider_user_id=claims.get("sub"),
        )


def build_verifiers(
    google_client_id: str | None = None,
    facebook_app_id: str | None = None,
    apple_client_id: str | None = None,
) -> dict[str, SocialIdentityVerifier]:
    return {
        "google": GoogleVerifier(google_client_id),
        "facebook": FacebookVerifier(facebook_app_id),
        "apple": AppleVerifier(apple_client_id),
    }
