# =============================================================================
# lib/tokens.py - Bearer Token Service
# =============================================================================
# Issues and validates signed, expiring bearer tokens (HS256 JWTs).
#
# Token format:
#   base64url(header) "." base64url(payload) "." base64url(HMAC-SHA256(...))
#
# Validation order:
#   1. Structure   - three canonical base64url segments, JSON header/payload,
#                    alg == HS256
#   2. Signature   - HMAC over header.payload (constant-time compare)
#   3. Issuer      - must equal the configured issuer
#   4. Audience    - must contain the configured audience
#   5. Time window - not_before <= now < expires_at
#
# Any failed check returns None. Callers cannot tell which check failed.
#
# The service is stateless apart from its read-only secret, so one instance
# can be shared by every request.
#
# Usage:
#   tokens = TokenService(secret, issuer="https://shop.example/", audience="restapi_user")
#   token = tokens.issue("customer_42", {"type": "access"}, ttl_seconds=3600)
#   claims = tokens.validate(token)  # TokenClaims | None
# =============================================================================

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from jose import jwt, JWTError
from jose.utils import base64url_decode, base64url_encode

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

# 256 bits
MIN_SECRET_BYTES = 32

# Registered claims set by the service itself
RESERVED_CLAIMS = frozenset({"sub", "iat", "nbf", "exp", "iss", "aud"})

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


class TokenConfigError(ValueError):
    """Raised when the service is constructed with an unusable configuration."""


@dataclass(frozen=True)
class TokenClaims:
    """
    Verified claims of a token.

    Immutable; `custom_claims` holds everything that is not a registered
    claim (e.g. `type`, `customer_id`, `roles`).
    """
    subject: str
    issued_at: datetime
    not_before: datetime
    expires_at: datetime
    issuer: str
    audience: str
    custom_claims: Mapping[str, Any] = field(default_factory=dict)

    @property
    def token_type(self) -> str | None:
        return self.custom_claims.get("type")

    def get(self, name: str, default: Any = None) -> Any:
        return self.custom_claims.get(name, default)


class TokenService:
    """
    Issue and validate HS256 bearer tokens.

    Args:
        secret: Signing secret, at least 256 bits
        issuer: Value of the `iss` claim
        audience: Value of the `aud` claim

    Raises:
        TokenConfigError: If the secret is too short or issuer/audience empty
    """

    def __init__(self, secret: str | bytes, issuer: str, audience: str):
        secret_bytes = secret.encode("utf-8") if isinstance(secret, str) else secret
        if len(secret_bytes) < MIN_SECRET_BYTES:
            raise TokenConfigError(
                f"Signing secret must be at least {MIN_SECRET_BYTES} bytes"
            )
        if not issuer or not audience:
            raise TokenConfigError("Issuer and audience are required")

        self._secret = secret_bytes
        self.issuer = issuer
        self.audience = audience

    def __repr__(self) -> str:
        return f"TokenService(issuer={self.issuer!r}, audience={self.audience!r})"

    # -------------------------------------------------------------------------
    # Issue
    # -------------------------------------------------------------------------

    def issue(
        self,
        subject: str,
        claims: Mapping[str, Any] | None = None,
        ttl_seconds: int = 3600,
    ) -> str:
        """
        Issue a signed token.

        Args:
            subject: Subject identifier (`sub`)
            claims: Custom claims; must not contain registered claim names
            ttl_seconds: Lifetime in seconds, must be positive

        Returns:
            The encoded token string

        Raises:
            ValueError: Empty subject, non-positive ttl, or reserved claim names
        """
        if not subject:
            raise ValueError("Token subject is required")
        if ttl_seconds <= 0:
            raise ValueError("Token ttl must be positive")

        custom = dict(claims or {})
        clash = RESERVED_CLAIMS.intersection(custom)
        if clash:
            raise ValueError(f"Reserved claims cannot be set: {', '.join(sorted(clash))}")

        now = int(time.time())
        payload = {
            **custom,
            "sub": str(subject),
            "iat": now,
            "nbf": now,
            "exp": now + ttl_seconds,
            "iss": self.issuer,
            "aud": self.audience,
        }
        # Stable key order gives a canonical payload encoding
        payload = dict(sorted(payload.items()))

        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    # -------------------------------------------------------------------------
    # Validate
    # -------------------------------------------------------------------------

    def validate(self, token: str | None) -> TokenClaims | None:
        """
        Validate a token and return its claims, or None on any failure.

        Safe to call concurrently; depends only on the token, the secret and
        the current time.
        """
        if not isinstance(token, str) or not self._is_well_formed(token):
            logger.debug("Rejected malformed token")
            return None

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require_sub": True,
                    "require_iat": True,
                    "require_nbf": True,
                    "require_exp": True,
                    "require_iss": True,
                    "require_aud": True,
                    "leeway": 0,
                },
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {type(e).__name__}")
            return None

        now = int(time.time())
        try:
            issued_at = int(payload["iat"])
            not_before = int(payload["nbf"])
            expires_at = int(payload["exp"])
        except (TypeError, ValueError):
            return None

        # Expiry is exclusive: a token is dead at its exp second
        if not (not_before <= now < expires_at):
            logger.debug("Token outside its validity window")
            return None

        audience = payload["aud"]
        if isinstance(audience, list):
            audience = self.audience

        custom = {k: v for k, v in payload.items() if k not in RESERVED_CLAIMS}

        return TokenClaims(
            subject=str(payload["sub"]),
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            not_before=datetime.fromtimestamp(not_before, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
            issuer=payload["iss"],
            audience=audience,
            custom_claims=custom,
        )

    @staticmethod
    def _is_well_formed(token: str) -> bool:
        """
        Structural check before any cryptography.

        Every segment must be canonical base64url: re-encoding the decoded
        bytes must reproduce the segment exactly, so no two spellings of the
        same signature are accepted.
        """
        segments = token.split(".")
        if len(segments) != 3:
            return False

        decoded: list[bytes] = []
        for segment in segments:
            if not _SEGMENT.match(segment):
                return False
            try:
                raw = base64url_decode(segment.encode("ascii"))
            except (ValueError, TypeError):
                return False
            if base64url_encode(raw).decode("ascii") != segment:
                return False
            decoded.append(raw)

        header_bytes, payload_bytes, _signature = decoded
        try:
            header = json.loads(header_bytes)
            payload = json.loads(payload_bytes)
        except ValueError:
            return False

        if not isinstance(header, dict) or not isinstance(payload, dict):
            return False
        return header.get("alg") == ALGORITHM
