# =============================================================================
# core/services/auth_service.py - Credential Exchange
# =============================================================================
# Turns credentials into bearer tokens and tokens back into identities.
#
#   exchange_api_key  api key          -> access token (no refresh token)
#   login             email + password -> access + refresh pair
#   register          new customer     -> access + refresh pair
#   refresh           refresh token    -> new pair
#   social_login      provider token   -> access + refresh pair
#   authenticate      access token     -> TokenClaims
#
# Token failures are reported with one generic message; callers never learn
# which check rejected a token. Logout is not handled here: tokens are
# stateless and live until they expire.
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import Any, Mapping

from app.exceptions import (
    ClientInputError,
    ConflictError,
    ForbiddenError,
    ResourceNotFoundError,
    UnauthorizedError,
)
from core.models.auth import SocialIdentity, TokenPair
from core.models.options import AuthOptions
from core.services.resource_service import ResourceService
from core.services.social import SocialIdentityVerifier, SocialVerificationError
from lib.passwords import PasswordHasher
from lib.tokens import TOKEN_TYPE_ACCESS, TOKEN_TYPE_REFRESH, TokenClaims, TokenService
from lib.utils import as_bool

logger = logging.getLogger(__name__)

API_ROLE = "api_access"
INVALID_TOKEN = "Invalid or expired token."


class AuthService:
    """
    Credential exchange for customers and API clients.

    Args:
        tokens: Token service used to issue and validate tokens
        customers: Resource service of the customers resource
        hasher: Password hasher shared with the customer adapter
        options: Token lifetimes and the API key
        verifiers: Social identity verifiers by provider name
    """

    def __init__(
        self,
        tokens: TokenService,
        customers: ResourceService,
        hasher: PasswordHasher,
        options: AuthOptions,
        verifiers: Mapping[str, SocialIdentityVerifier] | None = None,
    ):
        self.tokens = tokens
        self.customers = customers
        self.hasher = hasher
        self.options = options
        self.verifiers = dict(verifiers or {})

    # -------------------------------------------------------------------------
    # Token Issuance
    # -------------------------------------------------------------------------

    def issue_pair(self, customer: Mapping[str, Any], remember_me: bool = False) -> TokenPair:
        """Issue an access/refresh pair for a stored customer."""
        customer_id = customer[self.customers.descriptor.id_field]
        subject = f"customer_{customer_id}"
        access_ttl = self.options.remember_me_ttl if remember_me else self.options.access_ttl

        access_token = self.tokens.issue(
            subject,
            {"type": TOKEN_TYPE_ACCESS, "customer_id": customer_id, "email": customer.get("email")},
            ttl_seconds=access_ttl,
        )
        refresh_token = self.tokens.issue(
            subject,
            {"type": TOKEN_TYPE_REFRESH, "customer_id": customer_id, "remember_me": bool(remember_me)},
            ttl_seconds=self.options.refresh_ttl,
        )
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=access_ttl,
            customer=dict(customer),
        )

    def exchange_api_key(self, api_key: str) -> TokenPair:
        """
        Exchange the configured API key for an access token.

        Raises:
            UnauthorizedError: No API key configured, or the key is wrong
        """
        expected = self.options.api_key
        if not expected or not api_key or not hmac.compare_digest(
            api_key.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.warning("Rejected API key exchange")
            raise UnauthorizedError("Invalid API key.", code="INVALID_API_KEY")

        digest = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:32]
        token = self.tokens.issue(
            f"api_user_{digest}",
            {"type": TOKEN_TYPE_ACCESS, "roles": [API_ROLE]},
            ttl_seconds=self.options.api_key_ttl,
        )
        logger.info("Issued API access token")
        return TokenPair(access_token=token, expires_in=self.options.api_key_ttl)

    # -------------------------------------------------------------------------
    # Customer Flows
    # -------------------------------------------------------------------------

    def login(self, email: str, password: str, remember_me: bool = False) -> TokenPair:
        """
        Password login.

        Raises:
            UnauthorizedError: Unknown email or wrong password (same message)
            ForbiddenError: The account is disabled
        """
        customer = self._find_customer(email)
        if customer is None or not self.hasher.verify(customer.get("passwd"), password or ""):
            logger.info("Failed login attempt")
            raise UnauthorizedError("Invalid email or password.", code="INVALID_CREDENTIALS")

        if not as_bool(customer.get("active", 1)):
            raise ForbiddenError("Customer account is disabled.", code="ACCOUNT_DISABLED")

        logger.info(f"Customer #{customer['id_customer']} logged in")
        return self.issue_pair(customer, remember_me=remember_me)

    def register(self, payload: Mapping[str, Any], remember_me: bool = False) -> TokenPair:
        """
        Create a customer and log them in.

        Raises:
            ConflictError: The email is already registered
            ValidationErrors: The customer payload is invalid
        """
        values = dict(payload)
        if "password" in values:
            values["passwd"] = values.pop("password")

        if self._find_customer(values.get("email")) is not None:
            raise ConflictError("A customer with this email already exists.", code="EMAIL_TAKEN")

        customer = self.customers.create(values)
        return self.issue_pair(customer, remember_me=remember_me)

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair.

        Only tokens of type `refresh` are accepted.

        Raises:
            UnauthorizedError: Invalid token, wrong type, or customer gone/disabled
        """
        claims = self.tokens.validate(refresh_token)
        if claims is None or claims.token_type != TOKEN_TYPE_REFRESH:
            raise UnauthorizedError(INVALID_TOKEN, code="INVALID_TOKEN")

        try:
            customer = self.customers.get_by_id(claims.get("customer_id"))
        except ResourceNotFoundError:
            raise UnauthorizedError(INVALID_TOKEN, code="INVALID_TOKEN")

        return self.issue_pair(customer, remember_me=bool(claims.get("remember_me")))

    def social_login(
        self,
        provider: str,
        credential: str,
        profile: Mapping[str, Any] | None = None,
    ) -> TokenPair:
        """
        Log in (or sign up) with a social provider credential.

        Raises:
            ClientInputError: Unknown provider
            UnauthorizedError: The provider did not confirm the credential
            ForbiddenError: The matching account is disabled
        """
        verifier = self.verifiers.get(provider)
        if verifier is None:
            raise ClientInputError(f"Unsupported provider: {provider}", code="UNSUPPORTED_PROVIDER")

        try:
            identity = verifier.verify(credential, profile)
        except SocialVerificationError:
            raise UnauthorizedError("Social login failed.", code="SOCIAL_LOGIN_FAILED")

        customer = self._find_customer(identity.email)
        if customer is None:
            customer = self._create_social_customer(identity)
        elif not as_bool(customer.get("active", 1)):
            raise ForbiddenError("Customer account is disabled.", code="ACCOUNT_DISABLED")

        logger.info(f"Customer #{customer['id_customer']} logged in with {provider}")
        return self.issue_pair(customer)

    def _create_social_customer(self, identity: SocialIdentity) -> dict[str, Any]:
        # Random password: the account is only reachable through the provider
        # until the customer sets one.
        return self.customers.create({
            "email": identity.email,
            "firstname": identity.firstname or "Customer",
            "lastname": identity.lastname or identity.provider.capitalize(),
            "passwd": secrets.token_urlsafe(24),
        })

    def _find_customer(self, email: str | None) -> dict[str, Any] | None:
        if not email:
            return None
        return self.customers.adapter.find_one_by("email", email.strip().lower())

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------

    def authenticate(self, token: str | None) -> TokenClaims:
        """
        Validate an access token.

        Raises:
            UnauthorizedError: Any failure, with a generic message
        """
        claims = self.tokens.validate(token)
        if claims is None or claims.token_type != TOKEN_TYPE_ACCESS:
            raise UnauthorizedError(INVALID_TOKEN, code="INVALID_TOKEN")
        return claims

    def current_customer(self, customer_id: int | None) -> dict[str, Any]:
        """
        Load the customer an access token was issued to.

        Args:
            customer_id: The token's `customer_id` claim

        Raises:
            ForbiddenError: The token does not belong to a customer
            UnauthorizedError: The customer no longer exists
        """
        if customer_id is None:
            raise ForbiddenError("Token is not bound to a customer.", code="NOT_A_CUSTOMER")
        try:
            return self.customers.get_by_id(customer_id)
        except ResourceNotFoundError:
            raise UnauthorizedError(INVALID_TOKEN, code="INVALID_TOKEN")
