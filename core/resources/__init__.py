# =============================================================================
# core/resources/ - Resource Definitions
# =============================================================================
# - catalog.py: one ResourceDescriptor builder per resource
# - adapters.py: storage adapters with per-resource rules
# =============================================================================

from .catalog import CATALOG_BUILDERS, build_catalog
from .adapters import ADAPTER_CLASSES, ResourceAdapter, build_adapter

__all__ = [
    "CATALOG_BUILDERS",
    "build_catalog",
    "ADAPTER_CLASSES",
    "ResourceAdapter",
    "build_adapter",
]
