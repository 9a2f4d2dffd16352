# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the resource framework:
# - models/: Resource descriptors, DTOs, option and auth dataclasses
# - resources/: Declarative resource catalog and per-resource adapters
# - services/: DTO/RTO pipeline, resource orchestrator, registry, auth
#
# Code in this package should NOT import from FastAPI. Error types come from
# app.exceptions, which only depends on FastAPI for its response handlers.
# =============================================================================
