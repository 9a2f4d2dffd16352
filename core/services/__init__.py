# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .resource_service import ListResult, ResourceService
from .registry import ResourceRegistry, build_registry
from .auth_service import AuthService

__all__ = [
    "ListResult",
    "ResourceService",
    "ResourceRegistry",
    "build_registry",
    "AuthService",
]
