# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Credential exchange endpoints. Every successful exchange returns
#   {access_token, refresh_token, token_type: "Bearer", expires_in}
# plus the customer's view for customer flows.
#
# Handlers are plain `def`: password hashing and record store access are
# blocking, so FastAPI runs them in its threadpool.
# =============================================================================

import logging

from fastapi import APIRouter, status

from app.auth.dependencies import CurrentPrincipal
from app.auth.models import (
    ApiKeyRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    SocialLoginRequest,
    TokenPairResponse,
)
from app.dependencies import AuthServiceDep, RenderContextDep
from core.models.auth import TokenPair
from core.services.auth_service import AuthService
from core.services.transform import RenderContext
from lib.filters import ViewOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _response(pair: TokenPair, auth: AuthService, context: RenderContext) -> TokenPairResponse:
    body = pair.to_dict()
    if pair.customer is not None:
        body["customer"] = auth.customers.render(pair.customer, ViewOptions(), context)
    return TokenPairResponse(**body)


@router.post("/token", response_model=TokenPairResponse, response_model_exclude_none=True)
def exchange_api_key(body: ApiKeyRequest, auth: AuthServiceDep, context: RenderContextDep) -> TokenPairResponse:
    """
    Exchange the shared API key for an access token.

    Raises:
        401: Wrong key, or no API key configured
    """
    return _response(auth.exchange_api_key(body.api_key), auth, context)


@router.post("/login", response_model=TokenPairResponse)
def login(body: LoginRequest, auth: AuthServiceDep, context: RenderContextDep) -> TokenPairResponse:
    """
    Log in with email and password.

    `remember_me` extends the access token lifetime.

    Raises:
        401: Invalid email or password
        403: Disabled account
    """
    return _response(auth.login(body.email, body.password, body.remember_me), auth, context)


@router.post("/register", response_model=TokenPairResponse, status_code=status.HTTP_201_CREATED)
def register(body: RegisterRequest, auth: AuthServiceDep, context: RenderContextDep) -> TokenPairResponse:
    """
    Create a customer account and log it in.

    Raises:
        400: Invalid customer data
        409: Email already registered
    """
    payload = body.model_dump(exclude={"remember_me"})
    return _response(auth.register(payload, remember_me=body.remember_me), auth, context)


@router.post("/refresh", response_model=TokenPairResponse)
def refresh(body: RefreshRequest, auth: AuthServiceDep, context: RenderContextDep) -> TokenPairResponse:
    """Exchange a refresh token for a new token pair."""
    return _response(auth.refresh(body.refresh_token), auth, context)


@router.post("/logout")
def logout(principal: CurrentPrincipal) -> dict:
    """
    Log out.

    Tokens are stateless; the client discards them. Nothing is revoked
    server-side.
    """
    logger.info(f"{principal.subject} logged out")
    return {"message": "Logged out successfully."}


@router.post("/social/{provider}", response_model=TokenPairResponse)
def social_login(
    provider: str,
    body: SocialLoginRequest,
    auth: AuthServiceDep,
    context: RenderContextDep,
) -> TokenPairResponse:
    """
    Log in (or sign up) with google, facebook or apple.

    Raises:
        400: Unsupported provider
        401: Provider rejected the credential
    """
    return _response(auth.social_login(provider, body.token, body.profile), auth, context)


@router.get("/me")
def get_current_customer(
    principal: CurrentPrincipal,
    auth: AuthServiceDep,
    context: RenderContextDep,
) -> dict:
    """
    Get the authenticated customer's view.

    Raises:
        401: Not authenticated
        403: Token not issued to a customer (e.g. API key token)
    """
    customer = auth.current_customer(principal.customer_id)
    return auth.customers.render(customer, ViewOptions(), context)
