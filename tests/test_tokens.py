# =============================================================================
# tests/test_tokens.py - Bearer Token Tests
# =============================================================================
# Tests for lib/tokens.py: issue/validate, tampering, time window and
# configuration checks.
#
# Run with: pytest tests/test_tokens.py -v
# =============================================================================

import time

import pytest
from jose import jwt

from lib.tokens import TokenConfigError, TokenService

SECRET = "unit-test-secret-with-at-least-32-bytes!"


@pytest.fixture
def service() -> TokenService:
    return TokenService(SECRET, issuer="https://shop.example/", audience="restapi_user")


def _flip(char: str) -> str:
    return "A" if char != "A" else "B"


# =============================================================================
# Issue / Validate
# =============================================================================

class TestRoundTrip:
    """Tokens issued by the service validate with the same claims."""

    def test_claims_round_trip(self, service):
        # Arrange
        token = service.issue("customer_42", {"type": "access", "customer_id": 42}, ttl_seconds=60)

        # Act
        claims = service.validate(token)

        # Assert
        assert claims is not None
        assert claims.subject == "customer_42"
        assert claims.issuer == "https://shop.example/"
        assert claims.audience == "restapi_user"
        assert dict(claims.custom_claims) == {"type": "access", "customer_id": 42}
        assert claims.token_type == "access"
        assert (claims.expires_at - claims.issued_at).total_seconds() == 60

    def test_get_reads_custom_claims(self, service):
        claims = service.validate(service.issue("api_user_x", {"roles": ["api_access"]}))

        assert claims.get("roles") == ["api_access"]
        assert claims.get("missing", "fallback") == "fallback"


# =============================================================================
# Rejection
# =============================================================================

class TestRejection:
    """Every failure is reported as None."""

    def test_every_signature_byte_matters(self, service):
        """Changing any character of the signature invalidates the token."""
        token = service.issue("customer_1", {"type": "access"})
        head, payload, signature = token.split(".")

        for index in range(len(signature)):
            tampered = signature[:index] + _flip(signature[index]) + signature[index + 1:]
            assert service.validate(f"{head}.{payload}.{tampered}") is None, index

    def test_tampered_payload(self, service):
        token = service.issue("customer_1", {"type": "access"})
        forged = service.issue("customer_2", {"type": "access"})
        head, _payload, signature = token.split(".")

        assert service.validate(f"{head}.{forged.split('.')[1]}.{signature}") is None

    def test_expired(self, service):
        token = service.issue("customer_1", ttl_seconds=1)

        time.sleep(2)

        assert service.validate(token) is None

    def test_not_yet_valid(self, service):
        now = int(time.time())
        token = jwt.encode(
            {
                "sub": "customer_1",
                "iat": now,
                "nbf": now + 100,
                "exp": now + 200,
                "iss": service.issuer,
                "aud": service.audience,
            },
            SECRET,
            algorithm="HS256",
        )

        assert service.validate(token) is None

    def test_expiry_second_is_exclusive(self, service):
        now = int(time.time())
        token = jwt.encode(
            {
                "sub": "customer_1",
                "iat": now - 10,
                "nbf": now - 10,
                "exp": now,
                "iss": service.issuer,
                "aud": service.audience,
            },
            SECRET,
            algorithm="HS256",
        )

        assert service.validate(token) is None

    def test_missing_registered_claim(self, service):
        now = int(time.time())
        token = jwt.encode(
            {"sub": "customer_1", "exp": now + 60, "iss": service.issuer, "aud": service.audience},
            SECRET,
            algorithm="HS256",
        )

        assert service.validate(token) is None

    @pytest.mark.parametrize("issuer,audience", [
        ("https://other.example/", "restapi_user"),
        ("https://shop.example/", "someone_else"),
    ])
    def test_wrong_issuer_or_audience(self, service, issuer, audience):
        other = TokenService(SECRET, issuer=issuer, audience=audience)

        assert service.validate(other.issue("customer_1")) is None

    def test_wrong_secret(self, service):
        other = TokenService("x" * 40, issuer=service.issuer, audience=service.audience)

        assert service.validate(other.issue("customer_1")) is None

    def test_unsigned_token(self, service):
        token = service.issue("customer_1")
        head, payload, _signature = token.split(".")

        assert service.validate(f"{head}.{payload}.") is None

    @pytest.mark.parametrize("token", [None, "", "abc", "a.b", "a.b.c.d", "!!.??.##", 42])
    def test_malformed(self, service, token):
        assert service.validate(token) is None


# =============================================================================
# Configuration
# =============================================================================

class TestConfiguration:
    """Construction and issue-time checks."""

    def test_short_secret_rejected(self):
        with pytest.raises(TokenConfigError):
            TokenService("too-short", issuer="a", audience="b")

    def test_issuer_required(self):
        with pytest.raises(TokenConfigError):
            TokenService(SECRET, issuer="", audience="b")

    def test_secret_never_in_repr(self, service):
        assert SECRET not in repr(service)

    @pytest.mark.parametrize("claims", [{"exp": 1}, {"sub": "x"}, {"aud": "y"}])
    def test_reserved_claims_rejected(self, service, claims):
        with pytest.raises(ValueError):
            service.issue("customer_1", claims)

    def test_subject_and_ttl_required(self, service):
        with pytest.raises(ValueError):
            service.issue("")
        with pytest.raises(ValueError):
            service.issue("customer_1", ttl_seconds=0)
