# =============================================================================
# tests/test_resource_service.py - Resource Orchestrator Tests
# =============================================================================
# Tests for core/services/resource_service.py and core/services/registry.py
# against the seeded in-memory store from conftest.py.
#
# Run with: pytest tests/test_resource_service.py -v
# =============================================================================

import pytest

from app.exceptions import (
    ForbiddenError,
    PersistenceError,
    ResourceNotFoundError,
    ValidationErrors,
)
from core.services.registry import ResourceRegistry, ensure_tree_roots
from core.services.transform import RenderContext
from lib import filters
from lib.filters import ViewOptions
from lib.record_store import RecordStoreError

EN = RenderContext(language="en", languages=("en", "fr"))


@pytest.fixture
def product_service(registry):
    return registry.get("products")


@pytest.fixture
def category_service(registry):
    return registry.get("categories")


def _failing(*args, **kwargs):
    raise RecordStoreError("connection reset", code="STORE_DOWN")


# =============================================================================
# Registry
# =============================================================================

class TestRegistry:
    """Tests for the frozen name -> service map."""

    def test_exposed_names(self, registry):
        names = registry.exposed_names()

        assert "products" in names
        assert "customers" in names
        assert "images" not in names
        assert names == sorted(names)

    def test_internal_resources_not_exposed(self, registry):
        assert "images" in registry
        with pytest.raises(ResourceNotFoundError):
            registry.get_exposed("images")

    def test_unknown_resource(self, registry):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            registry.get("orders")

        assert exc_info.value.message == "Resource 'orders' not found"

    def test_frozen_after_build(self, registry, product_service):
        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register(product_service)

    def test_duplicate_registration(self, product_service):
        registry = ResourceRegistry()
        registry.register(product_service)

        with pytest.raises(ValueError):
            registry.register(product_service)

    def test_tree_roots_seeded_once(self, registry, options, store):
        home = registry.get("categories").get_by_id(2)

        assert home["id_parent"] == 1
        assert home["name"]["en"] == "Home"
        assert ensure_tree_roots(registry, options) == []


# =============================================================================
# Reads
# =============================================================================

class TestReads:
    """List and get."""

    def test_list_applies_default_filter(self, product_service):
        query = filters.parse({}, product_service.descriptor)

        result = product_service.list(query, "en")

        assert result.ids == [1, 2, 5]
        assert result.total == 3

    def test_list_filter_in_caller_language(self, product_service):
        query = filters.parse({"name__ilike": "tasse"}, product_service.descriptor)

        assert product_service.list(query, "fr").ids == [1]
        assert product_service.list(query, "en").ids == []

    def test_list_view_pagination(self, product_service):
        query = filters.parse({"limit": "2", "order_by": "price", "order_way": "DESC"}, product_service.descriptor)

        view = product_service.list_view(query, EN)

        assert [item["id"] for item in view["data"]] == [2, 1]
        assert view["pagination"]["total_items"] == 3
        assert view["pagination"]["total_pages"] == 2
        assert view["pagination"]["has_next"] is True

    def test_inactive_hidden_unless_requested(self, product_service):
        with pytest.raises(ResourceNotFoundError):
            product_service.get_by_id(3)

        assert product_service.get_by_id(3, include_inactive=True)["reference"] == "LAMP-1"

    def test_missing(self, product_service):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            product_service.get_by_id(999)

        assert exc_info.value.details == {"id": 999}

    def test_get_view_loads_relations(self, product_service):
        rto = product_service.get_view(1, ViewOptions(), EN)

        assert rto["name"] == "Blue Mug"
        assert rto["relations"]["category"] == {"id": 2, "name": "Home", "active": True}
        assert rto["relations"]["manufacturer"] == {"id": 1, "name": "Acme", "active": True}
        assert [image["id"] for image in rto["images"]] == [1, 2]
        assert rto["stock"][0]["quantity"] == 10

    def test_get_view_sparse_fields(self, product_service):
        rto = product_service.get_view(1, ViewOptions(fields=("name",), include=("category",)), EN)

        assert set(rto) == {"id", "name"}

    def test_category_list_hides_root(self, category_service):
        query = filters.parse({}, category_service.descriptor)

        assert 1 not in category_service.list(query, "en").ids

    def test_category_root_on_request(self, category_service):
        query = filters.parse({"include_hidden_root": "1"}, category_service.descriptor)

        assert 1 in category_service.list(query, "en").ids

    def test_owner_scope(self, registry):
        customers = registry.get("customers")
        payload = {"firstname": "Ann", "lastname": "Lee", "passwd": "correct horse"}
        ann = customers.create({**payload, "email": "ann@example.com"})["id_customer"]
        bob = customers.create({**payload, "email": "bob@example.com"})["id_customer"]

        query = customers.owned_by(filters.parse({}, customers.descriptor), ann)

        assert customers.list(query).ids == [ann]
        assert customers.get_by_id(ann, owner_id=ann)["email"] == "ann@example.com"
        with pytest.raises(ResourceNotFoundError):
            customers.get_by_id(bob, owner_id=ann)

    def test_unowned_resource_has_no_owner_scope(self, product_service):
        with pytest.raises(ValueError):
            product_service.owned_by(filters.parse({}, product_service.descriptor), 1)

    def test_list_store_failure(self, product_service, monkeypatch):
        monkeypatch.setattr(product_service.adapter, "find", _failing)

        with pytest.raises(PersistenceError) as exc_info:
            product_service.list(filters.parse({}, product_service.descriptor))

        assert exc_info.value.details == {"reason": "STORE_DOWN"}


# =============================================================================
# Writes
# =============================================================================

class TestCreate:
    """Create: derive, validate, persist."""

    def test_create_derives_fields(self, product_service):
        record = product_service.create({"name": {"en": "Green Cup", "fr": "Tasse verte"}, "price": "3.5"})

        assert record["id_product"] == 6
        assert record["link_rewrite"] == {"en": "green-cup", "fr": "tasse-verte"}
        assert record["id_category_default"] == 2
        assert record["categories"] == [2]
        assert record["price"] == 3.5
        assert record["active"] == 1
        assert record["date_add"] == record["date_upd"]

    def test_create_requires_default_language_name(self, product_service):
        with pytest.raises(ValidationErrors) as exc_info:
            product_service.create({"name_fr": "Tasse"})

        assert exc_info.value.message == "Failed to create resource."
        assert exc_info.value.messages == ["Product name is required for the default language."]

    def test_create_checks_references(self, product_service):
        with pytest.raises(ValidationErrors) as exc_info:
            product_service.create({"name": "Cup", "id_manufacturer": 99, "categories": [2, 42]})

        assert exc_info.value.messages == ["Invalid category IDs.", "Invalid manufacturer ID."]

    def test_validation_runs_before_persistence(self, product_service, monkeypatch):
        monkeypatch.setattr(product_service.adapter, "insert", _failing)

        with pytest.raises(ValidationErrors):
            product_service.create({"price": "-1"})

    def test_store_failure_is_persistence_error(self, product_service, monkeypatch):
        monkeypatch.setattr(product_service.adapter, "insert", _failing)

        with pytest.raises(PersistenceError) as exc_info:
            product_service.create({"name": "Cup"})

        assert exc_info.value.message == "Failed to create product."
        assert exc_info.value.status_code == 500

    def test_category_placed_under_home(self, category_service):
        record = category_service.create({"name": "Shoes"})

        assert record["id_parent"] == 2
        assert record["level_depth"] == 2
        assert record["link_rewrite"] == {"en": "shoes"}

    def test_category_parent_must_exist(self, category_service):
        with pytest.raises(ValidationErrors) as exc_info:
            category_service.create({"name": "Shoes", "id_parent": 77})

        assert exc_info.value.messages == ["Invalid parent category ID."]

    def test_customer_password_hashed(self, registry, hasher):
        customers = registry.get("customers")

        record = customers.create({
            "firstname": "Ann",
            "lastname": "Lee",
            "email": "Ann@Example.com",
            "passwd": "correct horse",
        })

        assert record["email"] == "ann@example.com"
        assert record["passwd"] != "correct horse"
        assert hasher.verify(record["passwd"], "correct horse")
        assert len(record["secure_key"]) == 32

    def test_customer_email_unique(self, registry):
        customers = registry.get("customers")
        payload = {"firstname": "Ann", "lastname": "Lee", "email": "ann@example.com", "passwd": "correct horse"}
        customers.create(payload)

        with pytest.raises(ValidationErrors) as exc_info:
            customers.create({**payload, "email": "ANN@example.com"})

        assert exc_info.value.messages == ["A customer with this email already exists."]

    def test_address_formatted(self, registry):
        customer = registry.get("customers").create(
            {"firstname": "Ann", "lastname": "Lee", "email": "ann@example.com", "passwd": "correct horse"}
        )
        addresses = registry.get("addresses")

        record = addresses.create({
            "id_customer": customer["id_customer"],
            "alias": "Home",
            "firstname": "Ann",
            "lastname": "Lee",
            "address1": "1 Main St",
            "postcode": "75001",
            "city": "Paris",
        })
        rto = addresses.render(record, ViewOptions(), EN)

        assert rto["formatted_address"] == "Ann Lee, 1 Main St, 75001 Paris"


class TestUpdate:
    """Partial updates."""

    def test_partial_translation_update(self, product_service):
        """name_en changes English only; French and price are untouched."""
        record = product_service.update(5, {"name_en": "New"})

        assert record["name"] == {"en": "New", "fr": "Ancien"}
        assert record["price"] == 5.0

    def test_update_validates_merged_record(self, product_service):
        with pytest.raises(ValidationErrors) as exc_info:
            product_service.update(5, {"name": {"en": ""}, "price": -2})

        assert exc_info.value.message == "Failed to update resource."
        assert exc_info.value.messages == ["Invalid price."]

    def test_update_missing(self, product_service):
        with pytest.raises(ResourceNotFoundError):
            product_service.update(999, {"price": 1})

    def test_update_stamps_date_upd(self, product_service):
        record = product_service.update(1, {"quantity": 4})

        assert record["quantity"] == 4
        assert record["date_upd"]
        assert "date_add" not in record

    def test_category_cannot_be_its_own_parent(self, category_service):
        with pytest.raises(ValidationErrors):
            category_service.update(3, {"id_parent": 3})


class TestDelete:
    """Delete: protection first, then existence."""

    @pytest.mark.parametrize("record_id", [1, 2])
    def test_protected_categories(self, category_service, record_id):
        with pytest.raises(ForbiddenError) as exc_info:
            category_service.delete(record_id)

        assert exc_info.value.code == "PROTECTED_RECORD"
        assert category_service.get_by_id(record_id, include_inactive=True)

    def test_protected_checked_before_existence(self, registry):
        cms = registry.get("cms_categories")
        cms.adapter.delete(1)

        with pytest.raises(ForbiddenError):
            cms.delete(1)

    def test_delete_then_missing(self, product_service):
        product_service.delete(2)

        with pytest.raises(ResourceNotFoundError):
            product_service.get_by_id(2, include_inactive=True)
        with pytest.raises(ResourceNotFoundError):
            product_service.delete(2)
