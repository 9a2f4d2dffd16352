# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - resources.py: Generic CRUD endpoints for every exposed resource
#
# Authentication routes live in app/auth/routes.py.
# Each router is mounted in main.py; resources must be mounted last.
# =============================================================================

from . import health
from . import resources

__all__ = [
    "health",
    "resources",
]
