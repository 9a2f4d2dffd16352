# =============================================================================
# core/services/registry.py - Resource Registry
# =============================================================================
# Maps resource names to their ResourceService. Built once at startup by
# build_registry(), then frozen: lookups are safe from any number of request
# threads, and registration after freeze() is an error.
# =============================================================================

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping

from app.exceptions import ResourceNotFoundError
from core.models.options import ServiceOptions
from core.models.resource import RelationSlot, ResourceDescriptor
from core.resources.adapters import build_adapter
from core.resources.catalog import build_catalog
from core.services.resource_service import ResourceService
from lib.passwords import PasswordHasher
from lib.record_store import RecordStore

logger = logging.getLogger(__name__)


class ResourceRegistry:
    """
    Resource name -> ResourceService.

    Example:
        registry = build_registry(store, options)
        products = registry.get("products")
        registry.exposed_names()  # ["addresses", "categories", ...]
    """

    def __init__(self) -> None:
        self._services: dict[str, ResourceService] | Mapping[str, ResourceService] = {}
        self._frozen = False

    def register(self, service: ResourceService) -> ResourceService:
        if self._frozen:
            raise RuntimeError("Registry is frozen; register resources at startup")
        if service.name in self._services:
            raise ValueError(f"Resource '{service.name}' is already registered")
        self._services[service.name] = service
        return service

    def freeze(self) -> ResourceRegistry:
        self._services = MappingProxyType(dict(self._services))
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: str) -> bool:
        return name in self._services

    def get(self, name: str) -> ResourceService:
        """
        Look up a service by resource name.

        Raises:
            ResourceNotFoundError: Unknown resource
        """
        service = self._services.get(name)
        if service is None:
            raise ResourceNotFoundError(f"Resource '{name}'")
        return service

    def get_exposed(self, name: str) -> ResourceService:
        """Like get(), but only for resources served over HTTP."""
        service = self._services.get(name)
        if service is None or not service.descriptor.exposed:
            raise ResourceNotFoundError(f"Resource '{name}'")
        return service

    def exposed_names(self) -> list[str]:
        return sorted(name for name, s in self._services.items() if s.descriptor.exposed)

    def descriptors(self) -> dict[str, ResourceDescriptor]:
        return {name: s.descriptor for name, s in self._services.items()}

    # -------------------------------------------------------------------------
    # Relation Loading
    # -------------------------------------------------------------------------

    def load_relation(
        self,
        owner: ResourceDescriptor,
        slot: RelationSlot,
        record: dict[str, Any],
        limit: int | None,
    ) -> tuple[ResourceDescriptor, list[dict[str, Any]]]:
        """Fetch the records a relation slot of `owner` points at."""
        target = self.get(slot.target)
        adapter = target.adapter

        if slot.local_key:
            value = record.get(slot.local_key)
            if slot.many:
                ids = list(value or [])
                if limit is not None:
                    ids = ids[:limit]
                return target.descriptor, adapter.get_many(ids)
            if not value:
                return target.descriptor, []
            related = adapter.get(value)
            return target.descriptor, [related] if related else []

        related = adapter.find_related(slot.remote_key, record.get(owner.id_field), limit=limit, order_by=slot.order_by)
        return target.descriptor, related


def build_registry(
    store: RecordStore,
    options: ServiceOptions,
    hasher: PasswordHasher | None = None,
) -> ResourceRegistry:
    """Create, register and freeze a service for every catalog resource."""
    catalog = build_catalog(options)
    registry = ResourceRegistry()
    for descriptor in catalog.values():
        adapter = build_adapter(descriptor, store, catalog, options, hasher=hasher)
        registry.register(ResourceService(adapter, options, relation_loader=registry.load_relation))
    logger.info(f"Registered {len(catalog)} resources: {', '.join(catalog)}")
    registry.freeze()
    ensure_tree_roots(registry, options)
    return registry


def ensure_tree_roots(registry: ResourceRegistry, options: ServiceOptions) -> list[str]:
    """
    Insert the root/home categories and the root CMS category if missing.

    Returns:
        Names of the records that were created
    """
    names = {lang: "" for lang in options.languages}
    roots = (
        ("categories", options.root_category_id, None, 0, "Root"),
        ("categories", options.home_category_id, options.root_category_id, 1, "Home"),
        ("cms_categories", 1, None, 0, "Home"),
    )
    created = []
    for resource, record_id, parent_id, depth, label in roots:
        adapter = registry.get(resource).adapter
        if adapter.get(record_id) is not None:
            continue
        adapter.insert({
            adapter.descriptor.id_field: record_id,
            "id_parent": parent_id,
            "level_depth": depth,
            "name": {**names, options.default_language: label},
            "link_rewrite": {lang: label.lower() for lang in options.languages},
            "active": 1,
            "position": 0,
        })
        created.append(f"{resource}#{record_id}")
    if created:
        logger.info(f"Seeded tree roots: {', '.join(created)}")
    return created
