# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# Builds the long-lived service graph once from Settings and exposes it to
# route handlers through FastAPI's Depends().
#
#   Settings -> ServiceOptions / AuthOptions -> record store -> registry
#            -> TokenService -> AuthService
#
# Tests swap the whole graph with app.dependency_overrides[get_container].
# =============================================================================

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request

from app.config import Settings, get_settings
from core.models.options import AuthOptions, ServiceOptions
from core.resources.catalog import build_catalog
from core.services.auth_service import AuthService
from core.services.registry import ResourceRegistry, build_registry
from core.services.social import build_verifiers
from core.services.transform import RenderContext
from lib.passwords import PasswordHasher
from lib.record_store import InMemoryRecordStore, RecordStore
from lib.supabase_client import SupabaseRecordStore
from lib.tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every shared service, built once per process."""
    store: RecordStore
    registry: ResourceRegistry
    tokens: TokenService
    auth: AuthService
    options: ServiceOptions


def service_options(settings: Settings) -> ServiceOptions:
    return ServiceOptions(
        languages=tuple(settings.languages_list),
        default_language=settings.DEFAULT_LANGUAGE.lower(),
        currency=settings.CURRENCY.upper(),
        max_page_size=settings.MAX_PAGE_SIZE,
        root_category_id=settings.ROOT_CATEGORY_ID,
        home_category_id=settings.HOME_CATEGORY_ID,
        image_base_url=settings.IMAGE_BASE_URL,
    )


def auth_options(settings: Settings) -> AuthOptions:
    return AuthOptions(
        access_ttl=settings.ACCESS_TOKEN_TTL,
        remember_me_ttl=settings.REMEMBER_ME_TOKEN_TTL,
        refresh_ttl=settings.REFRESH_TOKEN_TTL,
        api_key=settings.API_KEY,
        api_key_ttl=settings.ACCESS_TOKEN_TTL,
    )


def build_store(settings: Settings) -> RecordStore:
    """
    Create the configured record store.

    Raises:
        ValueError: supabase backend without URL/service key
    """
    if settings.RECORD_STORE_BACKEND == "supabase":
        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required for the supabase backend")
        return SupabaseRecordStore(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return InMemoryRecordStore()


def build_container(settings: Settings, store: RecordStore | None = None) -> ServiceContainer:
    """
    Wire the service graph.

    Args:
        settings: Application settings
        store: Record store to use instead of the configured one
    """
    options = service_options(settings)
    hasher = PasswordHasher()

    if store is None:
        store = build_store(settings)
        if settings.RECORD_STORE_SEED_FILE and isinstance(store, InMemoryRecordStore):
            id_fields = {d.table: d.id_field for d in build_catalog(options).values()}
            store.load_file(settings.RECORD_STORE_SEED_FILE, id_fields)

    registry = build_registry(store, options, hasher=hasher)
    tokens = TokenService(settings.JWT_SECRET, issuer=settings.JWT_ISSUER, audience=settings.JWT_AUDIENCE)
    auth = AuthService(
        tokens,
        registry.get("customers"),
        hasher,
        auth_options(settings),
        verifiers=build_verifiers(
            google_client_id=settings.GOOGLE_CLIENT_ID,
            facebook_app_id=settings.FACEBOOK_APP_ID,
            apple_client_id=settings.APPLE_CLIENT_ID,
        ),
    )
    logger.info(f"Service container ready ({type(store).__name__}, languages={list(options.languages)})")
    return ServiceContainer(store=store, registry=registry, tokens=tokens, auth=auth, options=options)


@lru_cache
def get_container() -> ServiceContainer:
    """
    Get the process-wide service container.

    Built on first use and cached, like get_settings().
    """
    return build_container(get_settings())


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


def get_registry(container: ContainerDep) -> ResourceRegistry:
    return container.registry


def get_auth_service(container: ContainerDep) -> AuthService:
    return container.auth


def get_service_options(container: ContainerDep) -> ServiceOptions:
    return container.options


# Type aliases for dependency injection
RegistryDep = Annotated[ResourceRegistry, Depends(get_registry)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
OptionsDep = Annotated[ServiceOptions, Depends(get_service_options)]


def request_language(request: Request, options: ServiceOptions) -> str:
    """
    Caller language: `?lang=`, then Accept-Language, then the default.

    Example:
        Accept-Language: "fr-CH, fr;q=0.9, en;q=0.8" -> "fr"
    """
    candidates = [request.query_params.get("lang")]
    for part in request.headers.get("accept-language", "").split(","):
        tag = part.split(";")[0].strip().lower()
        if tag:
            candidates.append(tag.split("-")[0])
    return options.resolve_language(*candidates)


def get_render_context(request: Request, options: OptionsDep) -> RenderContext:
    return RenderContext(
        language=request_language(request, options),
        languages=options.languages,
        currency=options.currency,
        image_base_url=options.image_base_url,
    )


RenderContextDep = Annotated[RenderContext, Depends(get_render_context)]
