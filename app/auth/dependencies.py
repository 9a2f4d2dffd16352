# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication.
#
# Tokens are HS256 bearer tokens issued by this API (see lib/tokens.py).
# Only `type=access` tokens authenticate a request; refresh tokens are
# rejected here. Catalog writes and unrestricted reads additionally need the
# `api_access` role (require_role); customer tokens lack it.
#
# Usage:
#   from app.auth import get_current_principal, Principal
#
#   @router.get("/protected")
#   def protected(principal: Principal = Depends(get_current_principal)):
#       return {"subject": principal.subject}
# =============================================================================

import logging
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.models import Principal
from app.dependencies import AuthServiceDep
from app.exceptions import ForbiddenError, UnauthorizedError
from core.services.auth_service import API_ROLE

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor; missing headers are reported by us, as 401
security = HTTPBearer(auto_error=False)


def get_current_principal(
    auth: AuthServiceDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Principal:
    """
    Extract and validate the caller from the bearer token.

    Raises:
        UnauthorizedError: 401 if the token is missing, invalid or expired
    """
    if credentials is None:
        raise UnauthorizedError()

    claims = auth.authenticate(credentials.credentials)
    logger.debug(f"Authenticated {claims.subject}")
    return Principal.from_claims(claims)


def get_current_principal_optional(
    auth: AuthServiceDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[Principal]:
    """
    Optionally get the caller from the bearer token.

    Returns None if no token is provided. A token that is present but
    invalid is still rejected with 401 so clients notice expired tokens.
    """
    if credentials is None:
        return None
    return get_current_principal(auth, credentials)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
OptionalPrincipal = Annotated[Optional[Principal], Depends(get_current_principal_optional)]


def require_role(role: str):
    """
    Build a dependency that admits only principals holding `role`.

    Raises:
        UnauthorizedError: 401 if the token is missing or invalid
        ForbiddenError: 403 if the token does not carry the role
    """
    def dependency(principal: CurrentPrincipal) -> Principal:
        if not principal.has_role(role):
            logger.warning(f"{principal.subject} denied: missing role {role}")
            raise ForbiddenError("Insufficient permissions.", code="INSUFFICIENT_ROLE")
        return principal

    return dependency


ApiPrincipal = Annotated[Principal, Depends(require_role(API_ROLE))]
