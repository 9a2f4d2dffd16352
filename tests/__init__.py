# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Storefront API:
# - test_filters.py / test_tokens.py / test_record_store.py: lib/ units
# - test_transform.py / test_write_model.py: DTO/RTO and write pipeline
# - test_resource_service.py / test_auth_service.py: core services
# - test_api.py: Integration tests through FastAPI's TestClient
#
# Run tests with: pytest
# =============================================================================
