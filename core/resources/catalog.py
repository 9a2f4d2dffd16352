# =============================================================================
# core/resources/catalog.py - Resource Descriptors
# =============================================================================
# Declarative description of every resource the API serves. Built once at
# startup by build_catalog(); the result is read-only.
#
# Exposed over HTTP:
#   products, categories, manufacturers, suppliers, customers, addresses,
#   cms_pages, cms_categories
# Relation targets only:
#   images, stock_availables
# =============================================================================

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from core.models.options import ServiceOptions
from core.models.resource import (
    FieldKind,
    FieldSpec,
    RelationPolicy,
    RelationSlot,
    ResourceDescriptor,
)

# -----------------------------------------------------------------------------
# Validation patterns (full match)
# -----------------------------------------------------------------------------

GENERIC_NAME = r"[^<>={}]*"
CATALOG_NAME = r"[^<>;=#{}]*"
LINK_REWRITE = r"[_a-zA-Z0-9-]+"
REFERENCE = r"[^<>;={}]*"
EAN13 = r"[0-9]{0,13}"
EMAIL = r"[^@\s]+@[^@\s]+\.[^@\s]+"
PERSON_NAME = r"[^0-9!<>,;?=+()@#\"°{}_$%:]*"
DATE = r"\d{4}-\d{2}-\d{2}"
POSTCODE = r"[a-zA-Z 0-9-]*"
PHONE = r"[+0-9. ()/-]*"
CLEAN_HTML = r"(?is)(?!.*<\s*script).*"


def _lang(name: str, required: bool = False, max_length: int | None = None, pattern: str | None = None) -> FieldSpec:
    return FieldSpec(name, FieldKind.LANG, required=required, max_length=max_length, pattern=pattern)


def _meta_fields() -> tuple[FieldSpec, ...]:
    return (
        _lang("meta_title", max_length=255, pattern=GENERIC_NAME),
        _lang("meta_description", max_length=512, pattern=GENERIC_NAME),
        _lang("meta_keywords", max_length=255, pattern=GENERIC_NAME),
    )


def _timestamps() -> tuple[FieldSpec, ...]:
    return (
        FieldSpec("date_add", FieldKind.DATE, read_only=True),
        FieldSpec("date_upd", FieldKind.DATE, read_only=True),
    )


ACTIVE = FieldSpec("active", FieldKind.BOOL, default=1)


# =============================================================================
# Catalog
# =============================================================================

def products(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="products",
        label="Product",
        table="products",
        id_field="id_product",
        fields=(
            FieldSpec("reference", max_length=64, pattern=REFERENCE),
            FieldSpec("ean13", max_length=13, pattern=EAN13),
            _lang("name", required=True, max_length=128, pattern=CATALOG_NAME),
            _lang("description", pattern=CLEAN_HTML),
            _lang("description_short", pattern=CLEAN_HTML),
            _lang("link_rewrite", max_length=128, pattern=LINK_REWRITE),
            *_meta_fields(),
            _lang("available_now", max_length=255, pattern=GENERIC_NAME),
            _lang("available_later", max_length=255, pattern=GENERIC_NAME),
            FieldSpec("price", FieldKind.MONEY, minimum=0, default=0.0),
            FieldSpec("wholesale_price", FieldKind.MONEY, minimum=0, default=0.0),
            FieldSpec("quantity", FieldKind.INT, default=0),
            FieldSpec("id_category_default", FieldKind.INT),
            FieldSpec("categories", FieldKind.ID_LIST),
            FieldSpec("id_manufacturer", FieldKind.INT),
            FieldSpec("id_supplier", FieldKind.INT),
            FieldSpec("weight", FieldKind.FLOAT, minimum=0, default=0.0),
            FieldSpec("width", FieldKind.FLOAT, minimum=0, default=0.0),
            FieldSpec("height", FieldKind.FLOAT, minimum=0, default=0.0),
            FieldSpec("depth", FieldKind.FLOAT, minimum=0, default=0.0),
            FieldSpec("position", FieldKind.INT, default=0),
            FieldSpec("on_sale", FieldKind.BOOL, default=0),
            FieldSpec("available_for_order", FieldKind.BOOL, default=1),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot("category", "categories", local_key="id_category_default"),
            RelationSlot("manufacturer", "manufacturers", local_key="id_manufacturer"),
            RelationSlot("supplier", "suppliers", local_key="id_supplier"),
            RelationSlot("categories", "categories", local_key="categories", many=True),
            RelationSlot(
                "images", "images",
                policy=RelationPolicy.IMAGE,
                remote_key="id_product",
                many=True,
                flag="include_images",
                group=None,
                limit_option="max_images",
                order_by="position",
            ),
            RelationSlot(
                "stock", "stock_availables",
                policy=RelationPolicy.NESTED,
                remote_key="id_product",
                many=True,
                flag="include_stock",
                group=None,
            ),
        ),
        rto_defaults={
            "include_relations": True,
            "include_images": True,
            "include_translations": True,
            "include_stock": True,
            "image_size": "large",
            "max_images": 10,
            "languages": (),
        },
        sortable_fields=frozenset({
            "id_product", "name", "price", "date_add", "date_upd",
            "position", "quantity", "reference",
        }),
        searchable_fields=("name", "description", "description_short", "reference"),
        default_sort="id_product",
        default_filters={"active": True},
    )


def categories(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="categories",
        label="Category",
        table="categories",
        id_field="id_category",
        fields=(
            _lang("name", required=True, max_length=128, pattern=CATALOG_NAME),
            _lang("description", pattern=CLEAN_HTML),
            _lang("link_rewrite", max_length=128, pattern=LINK_REWRITE),
            *_meta_fields(),
            FieldSpec("id_parent", FieldKind.INT),
            FieldSpec("level_depth", FieldKind.INT, read_only=True),
            FieldSpec("position", FieldKind.INT, default=0),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot("parent", "categories", local_key="id_parent"),
            RelationSlot(
                "subcategories", "categories",
                remote_key="id_parent",
                many=True,
                flag="include_subcategories",
                order_by="position",
            ),
            RelationSlot(
                "products", "products",
                remote_key="categories",
                many=True,
                flag="include_products",
                limit_option="product_limit",
                order_by="position",
            ),
        ),
        rto_defaults={
            "include_relations": True,
            "include_subcategories": False,
            "include_products": False,
            "product_limit": 5,
            "include_translations": True,
            "include_hidden_root": False,
            "languages": (),
        },
        sortable_fields=frozenset({
            "id_category", "name", "position", "level_depth", "date_add", "date_upd",
        }),
        searchable_fields=("name", "description"),
        default_sort="level_depth",
        default_filters={"active": True},
        protected_ids=frozenset({options.root_category_id, options.home_category_id}),
        protected_message="Cannot delete root or home category.",
    )


def manufacturers(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="manufacturers",
        label="Manufacturer",
        table="manufacturers",
        id_field="id_manufacturer",
        fields=(
            FieldSpec("name", required=True, max_length=64, pattern=CATALOG_NAME),
            _lang("description", pattern=CLEAN_HTML),
            _lang("short_description", pattern=CLEAN_HTML),
            *_meta_fields(),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot(
                "products", "products",
                remote_key="id_manufacturer",
                many=True,
                flag="include_products",
                limit_option="product_limit",
            ),
        ),
        rto_defaults={
            "include_products": False,
            "product_limit": 5,
            "include_translations": False,
            "languages": (),
        },
        sortable_fields=frozenset({"id_manufacturer", "name", "date_add", "date_upd"}),
        searchable_fields=("name",),
        default_sort="name",
        default_filters={"active": True},
    )


def suppliers(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="suppliers",
        label="Supplier",
        table="suppliers",
        id_field="id_supplier",
        fields=(
            FieldSpec("name", required=True, max_length=64, pattern=CATALOG_NAME),
            _lang("description", pattern=CLEAN_HTML),
            *_meta_fields(),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot(
                "products", "products",
                remote_key="id_supplier",
                many=True,
                flag="include_products",
                limit_option="product_limit",
            ),
        ),
        rto_defaults={
            "include_products": False,
            "product_limit": 5,
            "include_translations": False,
            "languages": (),
        },
        sortable_fields=frozenset({"id_supplier", "name", "date_add", "date_upd"}),
        searchable_fields=("name",),
        default_sort="name",
        default_filters={"active": True},
    )


def customers(options: ServiceOptions) -> ResourceDescriptor:
    personal = "include_personal_data"
    return ResourceDescriptor(
        name="customers",
        label="Customer",
        table="customers",
        id_field="id_customer",
        fields=(
            FieldSpec("id_gender", FieldKind.INT),
            FieldSpec("firstname", required=True, max_length=255, pattern=PERSON_NAME),
            FieldSpec("lastname", required=True, max_length=255, pattern=PERSON_NAME),
            FieldSpec("email", required=True, max_length=255, pattern=EMAIL),
            FieldSpec("passwd", required=True, sensitive=True, max_length=255),
            FieldSpec("secure_key", sensitive=True, read_only=True),
            FieldSpec("birthday", FieldKind.DATE, pattern=DATE),
            FieldSpec("newsletter", FieldKind.BOOL, default=0),
            FieldSpec("optin", FieldKind.BOOL, default=0),
            FieldSpec("id_default_group", FieldKind.INT, default=3),
            FieldSpec("groups", FieldKind.ID_LIST, section="include_groups"),
            FieldSpec("company", max_length=255, pattern=GENERIC_NAME, section=personal),
            FieldSpec("siret", max_length=14, section=personal),
            FieldSpec("ape", max_length=5, section=personal),
            FieldSpec("website", max_length=128, section=personal),
            FieldSpec("note", max_length=65000, section=personal),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot(
                "addresses", "addresses",
                policy=RelationPolicy.NESTED,
                remote_key="id_customer",
                many=True,
                flag="include_addresses",
                group=None,
            ),
        ),
        rto_defaults={
            "include_addresses": True,
            "include_groups": True,
            "include_personal_data": False,
        },
        sortable_fields=frozenset({"id_customer", "lastname", "firstname", "email", "date_add", "date_upd"}),
        searchable_fields=("firstname", "lastname", "email"),
        default_sort="id_customer",
        display_field="email",
        public_read=False,
        owner_field="id_customer",
    )


def addresses(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="addresses",
        label="Address",
        table="addresses",
        id_field="id_address",
        fields=(
            FieldSpec("id_customer", FieldKind.INT, required=True),
            FieldSpec("id_country", FieldKind.INT),
            FieldSpec("alias", required=True, max_length=32, pattern=GENERIC_NAME),
            FieldSpec("company", max_length=255, pattern=GENERIC_NAME),
            FieldSpec("firstname", required=True, max_length=255, pattern=PERSON_NAME),
            FieldSpec("lastname", required=True, max_length=255, pattern=PERSON_NAME),
            FieldSpec("address1", required=True, max_length=128, pattern=GENERIC_NAME),
            FieldSpec("address2", max_length=128, pattern=GENERIC_NAME),
            FieldSpec("postcode", max_length=12, pattern=POSTCODE),
            FieldSpec("city", required=True, max_length=64, pattern=GENERIC_NAME),
            FieldSpec("phone", max_length=32, pattern=PHONE),
            FieldSpec("phone_mobile", max_length=32, pattern=PHONE),
            FieldSpec("vat_number", max_length=32),
            *_timestamps(),
        ),
        sortable_fields=frozenset({"id_address", "lastname", "city", "date_add"}),
        searchable_fields=("firstname", "lastname", "company", "address1", "city"),
        default_sort="id_address",
        display_field="alias",
        active_field=None,
        public_read=False,
        owner_field="id_customer",
    )


def cms_pages(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="cms_pages",
        label="CMS page",
        table="cms_pages",
        id_field="id_cms",
        fields=(
            _lang("meta_title", required=True, max_length=255, pattern=GENERIC_NAME),
            _lang("head_seo_title", max_length=255, pattern=GENERIC_NAME),
            _lang("meta_description", max_length=512, pattern=GENERIC_NAME),
            _lang("meta_keywords", max_length=255, pattern=GENERIC_NAME),
            _lang("content", pattern=CLEAN_HTML),
            _lang("link_rewrite", max_length=128, pattern=LINK_REWRITE),
            FieldSpec("id_cms_category", FieldKind.INT, default=1),
            FieldSpec("position", FieldKind.INT, default=0),
            FieldSpec("indexation", FieldKind.BOOL, default=0),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot("category", "cms_categories", local_key="id_cms_category"),
        ),
        rto_defaults={
            "include_relations": True,
            "include_translations": True,
            "languages": (),
        },
        sortable_fields=frozenset({"id_cms", "position", "meta_title", "date_add"}),
        searchable_fields=("meta_title", "content"),
        default_sort="position",
        default_filters={"active": True},
        display_field="meta_title",
    )


def cms_categories(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="cms_categories",
        label="CMS category",
        table="cms_categories",
        id_field="id_cms_category",
        fields=(
            _lang("name", required=True, max_length=64, pattern=CATALOG_NAME),
            _lang("description", pattern=CLEAN_HTML),
            _lang("link_rewrite", max_length=64, pattern=LINK_REWRITE),
            *_meta_fields(),
            FieldSpec("id_parent", FieldKind.INT),
            FieldSpec("level_depth", FieldKind.INT, read_only=True),
            FieldSpec("position", FieldKind.INT, default=0),
            ACTIVE,
            *_timestamps(),
        ),
        relations=(
            RelationSlot("parent", "cms_categories", local_key="id_parent"),
            RelationSlot(
                "pages", "cms_pages",
                remote_key="id_cms_category",
                many=True,
                flag="include_pages",
                limit_option="page_limit",
                order_by="position",
            ),
        ),
        rto_defaults={
            "include_relations": True,
            "include_pages": False,
            "page_limit": 10,
            "include_translations": True,
            "languages": (),
        },
        sortable_fields=frozenset({"id_cms_category", "name", "position", "level_depth"}),
        searchable_fields=("name", "description"),
        default_sort="position",
        default_filters={"active": True},
        protected_ids=frozenset({1}),
        protected_message="Cannot delete the root CMS category.",
    )


def images(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="images",
        label="Image",
        table="images",
        id_field="id_image",
        fields=(
            FieldSpec("id_product", FieldKind.INT, required=True),
            FieldSpec("position", FieldKind.INT, default=0),
            FieldSpec("cover", FieldKind.BOOL, default=0),
            _lang("legend", max_length=128, pattern=GENERIC_NAME),
        ),
        sortable_fields=frozenset({"id_image", "position"}),
        default_sort="position",
        display_field="legend",
        active_field=None,
        exposed=False,
    )


def stock_availables(options: ServiceOptions) -> ResourceDescriptor:
    return ResourceDescriptor(
        name="stock_availables",
        label="Stock",
        table="stock_availables",
        id_field="id_stock_available",
        fields=(
            FieldSpec("id_product", FieldKind.INT, required=True),
            FieldSpec("id_product_attribute", FieldKind.INT, default=0),
            FieldSpec("id_shop", FieldKind.INT, default=1),
            FieldSpec("quantity", FieldKind.INT, default=0),
            FieldSpec("depends_on_stock", FieldKind.BOOL, default=0),
            FieldSpec("out_of_stock", FieldKind.INT, default=2),
        ),
        active_field=None,
        exposed=False,
    )


CATALOG_BUILDERS = (
    products,
    categories,
    manufacturers,
    suppliers,
    customers,
    addresses,
    cms_pages,
    cms_categories,
    images,
    stock_availables,
)


def build_catalog(options: ServiceOptions) -> Mapping[str, ResourceDescriptor]:
    """Build every descriptor, keyed by resource name."""
    catalog = {}
    for builder in CATALOG_BUILDERS:
        descriptor = builder(options)
        if descriptor.name in catalog:
            raise ValueError(f"Resource '{descriptor.name}' is already declared")
        catalog[descriptor.name] = descriptor
    return MappingProxyType(catalog)
