# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Storefront REST API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.dependencies import ContainerDep, get_container
from app.exceptions import (
    ApiException,
    api_exception_handler,
    filter_parse_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.routers import health, resources
from app.auth import routes as auth_routes
from lib.filters import FilterParseError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: validate config, build the service graph (record store,
      resource registry, token service)
    - Shutdown: log only; the services hold no open connections of their own
    """
    # Startup
    logger.info(f"Starting Storefront API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    provider = app.dependency_overrides.get(get_container, get_container)
    container = provider()
    logger.info(f"Serving resources: {', '.join(container.registry.exposed_names())}")

    yield

    # Shutdown
    logger.info("Shutting down Storefront API")


# Create FastAPI application
app = FastAPI(
    title="Storefront API",
    description="""
## Storefront REST API

Generic CRUD over the catalog, customer and CMS resources.

### Listing

```bash
curl "http://localhost:8000/products?price__gte=10&order_by=price&order_way=DESC&limit=20"
curl "http://localhost:8000/categories?include=subcategories&lang=fr"
```

Filters: `field=value` or `field__operator=value` with operators
`eq, gt, gte, lt, lte, like, ilike, not, in, not_in, between, is_null`.

### Writing

```bash
curl -X POST http://localhost:8000/auth/token -d '{"api_key": "..."}'
curl -X PUT http://localhost:8000/products/5 \\
  -H "Authorization: Bearer <access_token>" \\
  -d '{"name_en": "New name"}'
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Auth",
            "description": "Exchange credentials for bearer tokens",
        },
        {
            "name": "Resources",
            "description": "List, read, create, update and delete resource records",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

@app.middleware("http")
async def short_circuit_options(request: Request, call_next):
    """Answer OPTIONS requests with an empty 204 before routing."""
    if request.method == "OPTIONS":
        return Response(status_code=204)
    return await call_next(request)


# CORS middleware - allows cross-origin requests. Added last so it wraps the
# OPTIONS short-circuit and answers real preflight requests itself.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=settings.is_production,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(ApiException, api_exception_handler)
app.add_exception_handler(FilterParseError, filter_parse_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root(container: ContainerDep):
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Storefront API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "resources": container.registry.exposed_names(),
    }


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    tags=["Health"]
)

# Authentication endpoints
app.include_router(
    auth_routes.router,
    tags=["Auth"]
)

# Generic resource endpoints - last, /{resource} matches any path
app.include_router(
    resources.router,
    tags=["Resources"]
)
