# =============================================================================
# core/resources/adapters.py - Per-Resource Storage Adapters
# =============================================================================
# An adapter sits between the generic ResourceService and the record store.
# The base class is enough for most resources; subclasses add the rules a
# resource needs on top of its descriptor:
#
#   scope()    narrow list queries (e.g. hide the root category)
#   derive()   fill computed columns before validation (slugs, depth)
#   validate() cross-record rules (parent exists, email unique)
#   prepare()  last transformation before storage (password hashing)
#
# Every store call may raise RecordStoreError; the service converts it.
# =============================================================================

from __future__ import annotations

import logging
import secrets
from typing import Any, Mapping

from core.models.options import ServiceOptions
from core.models.resource import ResourceDescriptor
from lib.filters import (
    FilterCondition,
    FilterOperator,
    ListQuery,
    Pagination,
    parse_bool,
)
from lib.passwords import PasswordHasher
from lib.record_store import RecordStore
from lib.utils import slugify

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class ResourceAdapter:
    """
    Default adapter: descriptor-driven CRUD over the record store.

    Args:
        descriptor: The resource's descriptor
        store: Record store holding its table
        catalog: Every descriptor, for cross-resource checks
        options: Service configuration
    """

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        store: RecordStore,
        catalog: Mapping[str, ResourceDescriptor],
        options: ServiceOptions,
    ):
        self.descriptor = descriptor
        self.store = store
        self.catalog = catalog
        self.options = options

    @property
    def schema(self):
        return self.descriptor.schema

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def scope(self, query: ListQuery) -> ListQuery:
        return query

    def find(self, query: ListQuery, language: str) -> tuple[list[Any], int]:
        return self.store.find(self.schema, self.scope(query), language)

    def get(self, record_id: Any) -> dict[str, Any] | None:
        return self.store.get(self.schema, record_id)

    def get_many(self, ids: list[Any]) -> list[dict[str, Any]]:
        return self.store.get_many(self.schema, ids)

    def find_related(
        self,
        field_name: str,
        value: Any,
        limit: int | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.store.find_related(self.schema, field_name, value, limit=limit, order_by=order_by)

    def find_one_by(self, field_name: str, value: Any) -> dict[str, Any] | None:
        """First record whose field equals value."""
        query = ListQuery(
            filters=(FilterCondition(field_name, FilterOperator.EQ, value),),
            pagination=Pagination(page=1, limit=1),
        )
        ids, _total = self.store.find(self.schema, query, self.options.default_language)
        return self.get(ids[0]) if ids else None

    def exists(self, resource: str, record_id: Any) -> bool:
        descriptor = self.catalog[resource]
        return self.store.get(descriptor.schema, record_id) is not None

    # -------------------------------------------------------------------------
    # Write Hooks
    # -------------------------------------------------------------------------

    def derive(self, values: dict[str, Any], existing: Mapping[str, Any] | None) -> dict[str, Any]:
        return values

    def validate(
        self,
        record: Mapping[str, Any],
        values: Mapping[str, Any],
        existing: Mapping[str, Any] | None,
    ) -> list[str]:
        return []

    def prepare(self, values: dict[str, Any], existing: Mapping[str, Any] | None) -> dict[str, Any]:
        return values

    def is_protected(self, record_id: Any) -> bool:
        return record_id in self.descriptor.protected_ids

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        return self.store.insert(self.schema, values)

    def update(self, record_id: Any, values: dict[str, Any]) -> dict[str, Any]:
        return self.store.update(self.schema, record_id, values)

    def delete(self, record_id: Any) -> bool:
        return self.store.delete(self.schema, record_id)

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def extend_rto(self, rto: dict[str, Any], record: Mapping[str, Any]) -> dict[str, Any]:
        return rto

    # -------------------------------------------------------------------------
    # Shared Helpers
    # -------------------------------------------------------------------------

    def _fill_link_rewrite(
        self,
        values: dict[str, Any],
        existing: Mapping[str, Any] | None,
        source: str,
    ) -> None:
        """Generate `link_rewrite` per language from `source` where empty."""
        if source not in values and existing is not None:
            return
        names = values.get(source) or (existing or {}).get(source) or {}
        slugs = dict(values.get("link_rewrite") or (existing or {}).get("link_rewrite") or {})
        for lang, text in names.items():
            if text and not slugs.get(lang):
                slugs[lang] = slugify(str(text))
        values["link_rewrite"] = slugs

    def _fill_level_depth(self, values: dict[str, Any], existing: Mapping[str, Any] | None) -> None:
        if "id_parent" not in values and existing is not None:
            return
        parent_id = values.get("id_parent")
        parent = self.get(parent_id) if parent_id else None
        values["level_depth"] = (parent.get("level_depth") or 0) + 1 if parent else 0


# =============================================================================
# Catalog Resources
# =============================================================================

class ProductAdapter(ResourceAdapter):
    """Products: slugs, default category membership, reference checks."""

    def derive(self, values, existing):
        self._fill_link_rewrite(values, existing, "name")

        touches_categories = (
            existing is None or "categories" in values or "id_category_default" in values
        )
        if touches_categories:
            default = values.get("id_category_default")
            if default is None:
                default = (existing or {}).get("id_category_default") or self.options.home_category_id
                values["id_category_default"] = default
            members = list(values.get("categories", (existing or {}).get("categories") or []))
            if default not in members:
                members.insert(0, default)
            values["categories"] = members
        return values

    def validate(self, record, values, existing):
        messages = []
        category_ids = values.get("categories")
        if category_ids:
            categories = self.catalog["categories"]
            found = self.store.get_many(categories.schema, category_ids)
            if len(found) != len(set(category_ids)):
                messages.append("Invalid category IDs.")
        for field_name, resource, message in (
            ("id_manufacturer", "manufacturers", "Invalid manufacturer ID."),
            ("id_supplier", "suppliers", "Invalid supplier ID."),
        ):
            value = values.get(field_name)
            if value and not self.exists(resource, value):
                messages.append(message)
        return messages


class CategoryAdapter(ResourceAdapter):
    """Categories: tree placement and the hidden root."""

    def scope(self, query):
        if query.has_filter("id_parent"):
            return query
        if parse_bool(query.view.options.get("include_hidden_root", "0")):
            return query
        return query.with_filters(
            FilterCondition(self.descriptor.id_field, FilterOperator.NOT, self.options.root_category_id)
        )

    def derive(self, values, existing):
        if existing is None and not values.get("id_parent"):
            values["id_parent"] = self.options.home_category_id
        self._fill_level_depth(values, existing)
        self._fill_link_rewrite(values, existing, "name")
        return values

    def validate(self, record, values, existing):
        if "id_parent" not in values:
            return []
        parent_id = values["id_parent"]
        own_id = (existing or {}).get(self.descriptor.id_field)
        if own_id is not None and parent_id == own_id:
            return ["Invalid parent category ID."]
        if not self.exists("categories", parent_id):
            return ["Invalid parent category ID."]
        return []


class CmsPageAdapter(ResourceAdapter):
    def derive(self, values, existing):
        self._fill_link_rewrite(values, existing, "meta_title")
        return values

    def validate(self, record, values, existing):
        category_id = values.get("id_cms_category")
        if category_id and not self.exists("cms_categories", category_id):
            return ["Invalid CMS category ID."]
        return []


class CmsCategoryAdapter(ResourceAdapter):
    def derive(self, values, existing):
        root_id = min(self.descriptor.protected_ids, default=1)
        if existing is None and not values.get("id_parent"):
            values["id_parent"] = root_id
        self._fill_level_depth(values, existing)
        self._fill_link_rewrite(values, existing, "name")
        return values

    def validate(self, record, values, existing):
        if "id_parent" not in values:
            return []
        parent_id = values["id_parent"]
        if parent_id == (existing or {}).get(self.descriptor.id_field) or not self.exists("cms_categories", parent_id):
            return ["Invalid parent CMS category ID."]
        return []


# =============================================================================
# Customer Resources
# =============================================================================

class CustomerAdapter(ResourceAdapter):
    """Customers: unique email, hashed passwords, secure key."""

    def __init__(self, *args, hasher: PasswordHasher | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.hasher = hasher or PasswordHasher()

    def derive(self, values, existing):
        if "email" in values:
            values["email"] = values["email"].strip().lower()
        if existing is None:
            values["secure_key"] = secrets.token_hex(16)
        return values

    def validate(self, record, values, existing):
        messages = []
        password = values.get("passwd")
        if password is not None and len(password) < MIN_PASSWORD_LENGTH:
            messages.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")

        email = values.get("email")
        if email:
            other = self.find_one_by("email", email)
            own_id = (existing or {}).get(self.descriptor.id_field)
            if other is not None and other.get(self.descriptor.id_field) != own_id:
                messages.append("A customer with this email already exists.")
        return messages

    def prepare(self, values, existing):
        if values.get("passwd"):
            values["passwd"] = self.hasher.hash(values["passwd"])
        return values


class AddressAdapter(ResourceAdapter):
    def validate(self, record, values, existing):
        customer_id = values.get("id_customer")
        if customer_id and not self.exists("customers", customer_id):
            return ["Invalid customer ID."]
        return []

    def extend_rto(self, rto, record):
        name = " ".join(p for p in (record.get("firstname"), record.get("lastname")) if p)
        city_line = " ".join(p for p in (record.get("postcode"), record.get("city")) if p)
        parts = (
            record.get("company"),
            name,
            record.get("address1"),
            record.get("address2"),
            city_line,
        )
        rto["formatted_address"] = ", ".join(p for p in parts if p)
        return rto


ADAPTER_CLASSES: dict[str, type[ResourceAdapter]] = {
    "products": ProductAdapter,
    "categories": CategoryAdapter,
    "customers": CustomerAdapter,
    "addresses": AddressAdapter,
    "cms_pages": CmsPageAdapter,
    "cms_categories": CmsCategoryAdapter,
}


def build_adapter(
    descriptor: ResourceDescriptor,
    store: RecordStore,
    catalog: Mapping[str, ResourceDescriptor],
    options: ServiceOptions,
    hasher: PasswordHasher | None = None,
) -> ResourceAdapter:
    """Instantiate the adapter registered for a resource (default adapter otherwise)."""
    adapter_cls = ADAPTER_CLASSES.get(descriptor.name, ResourceAdapter)
    if adapter_cls is CustomerAdapter:
        return CustomerAdapter(descriptor, store, catalog, options, hasher=hasher)
    return adapter_cls(descriptor, store, catalog, options)
