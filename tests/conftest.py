# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up test environment variables before any imports
# - Seeds an in-memory record store with a small catalog
# - Provides services, tokens and a FastAPI TestClient wired to that store
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

TEST_SECRET = "test-signing-secret-0123456789abcdef"
TEST_API_KEY = "test-api-key"

os.environ["JWT_SECRET"] = TEST_SECRET
os.environ["API_KEY"] = TEST_API_KEY
os.environ.setdefault("JWT_ISSUER", "http://testserver/")
os.environ.setdefault("JWT_AUDIENCE", "restapi_user")
os.environ.setdefault("LANGUAGES", "en,fr")
os.environ.setdefault("DEFAULT_LANGUAGE", "en")
os.environ.setdefault("RECORD_STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "false")

import pytest

from core.models.options import AuthOptions, ServiceOptions
from core.services.auth_service import AuthService
from core.services.registry import build_registry
from lib.passwords import PasswordHasher
from lib.record_store import InMemoryRecordStore
from lib.tokens import TokenService


# =============================================================================
# Sample Data
# =============================================================================

SAMPLE_CATALOG = {
    "manufacturers": ("id_manufacturer", [
        {"id_manufacturer": 1, "name": "Acme", "active": 1},
    ]),
    "categories": ("id_category", [
        {
            "id_category": 3,
            "id_parent": 2,
            "level_depth": 2,
            "name": {"en": "Clothes", "fr": "Vêtements"},
            "link_rewrite": {"en": "clothes", "fr": "vetements"},
            "position": 0,
            "active": 1,
        },
    ]),
    "products": ("id_product", [
        {
            "id_product": 1,
            "reference": "MUG-1",
            "name": {"en": "Blue Mug", "fr": "Tasse bleue"},
            "link_rewrite": {"en": "blue-mug", "fr": "tasse-bleue"},
            "price": 12.5,
            "quantity": 10,
            "id_category_default": 2,
            "categories": [2],
            "id_manufacturer": 1,
            "on_sale": 1,
            "active": 1,
        },
        {
            "id_product": 2,
            "reference": "SHIRT-1",
            "name": {"en": "Red Shirt", "fr": "Chemise rouge"},
            "price": 25.0,
            "quantity": 0,
            "id_category_default": 3,
            "categories": [2, 3],
            "active": 1,
        },
        {
            "id_product": 3,
            "reference": "LAMP-1",
            "name": {"en": "Old Lamp"},
            "price": 40.0,
            "quantity": 1,
            "id_category_default": 2,
            "categories": [2],
            "active": 0,
        },
        {
            "id_product": 5,
            "reference": "MISC-5",
            "name": {"en": "Old", "fr": "Ancien"},
            "price": 5.0,
            "quantity": 3,
            "id_category_default": 2,
            "categories": [2],
            "active": 1,
        },
    ]),
    "images": ("id_image", [
        {"id_image": 1, "id_product": 1, "position": 1, "cover": 1, "legend": {"en": "Front"}},
        {"id_image": 2, "id_product": 1, "position": 2, "cover": 0, "legend": {"en": "Back"}},
    ]),
    "stock_availables": ("id_stock_available", [
        {"id_stock_available": 1, "id_product": 1, "quantity": 10},
    ]),
}


def seed_catalog(store: InMemoryRecordStore) -> InMemoryRecordStore:
    for table, (id_field, records) in SAMPLE_CATALOG.items():
        store.load(table, id_field, records)
    return store


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def options() -> ServiceOptions:
    """Two declared languages, English default."""
    return ServiceOptions(languages=("en", "fr"), default_language="en", currency="EUR")


@pytest.fixture
def store() -> InMemoryRecordStore:
    """In-memory store seeded with the sample catalog."""
    return seed_catalog(InMemoryRecordStore())


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher()


@pytest.fixture
def registry(store, options, hasher):
    return build_registry(store, options, hasher=hasher)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(TEST_SECRET, issuer="http://testserver/", audience="restapi_user")


@pytest.fixture
def auth_service(token_service, registry, hasher) -> AuthService:
    return AuthService(
        token_service,
        registry.get("customers"),
        hasher,
        AuthOptions(api_key=TEST_API_KEY),
    )


@pytest.fixture
def container(store):
    """Service container of the app, built on the seeded store."""
    from app.config import get_settings
    from app.dependencies import build_container

    return build_container(get_settings(), store=store)


@pytest.fixture
def client(container):
    """TestClient with the app's container replaced by the seeded one."""
    from fastapi.testclient import TestClient

    from app.dependencies import get_container
    from app.main import app

    app.dependency_overrides[get_container] = lambda: container
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def api_token(container) -> str:
    """Access token obtained through the API-key exchange."""
    return container.auth.exchange_api_key(TEST_API_KEY).access_token


@pytest.fixture
def auth_headers(api_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_token}"}
