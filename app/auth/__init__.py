# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Bearer-token authentication for tokens issued by this API.
#
# Usage:
#   from app.auth import get_current_principal, Principal
#
#   @router.get("/protected")
#   def protected(principal: Principal = Depends(get_current_principal)):
#       return {"subject": principal.subject}
# =============================================================================

from app.auth.dependencies import (
    get_current_principal,
    get_current_principal_optional,
    require_role,
)
from app.auth.models import Principal, TokenPairResponse

__all__ = [
    "get_current_principal",
    "get_current_principal_optional",
    "require_role",
    "Principal",
    "TokenPairResponse",
]
