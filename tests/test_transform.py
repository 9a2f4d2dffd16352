# =============================================================================
# tests/test_transform.py - DTO / RTO Pipeline Tests
# =============================================================================
# Tests for core/services/transform.py: option gating, translations,
# sensitive fields, money rendering and relation embedding.
#
# Run with: pytest tests/test_transform.py -v
# =============================================================================

import pytest

from core.models.dto import Dto, ImageDescriptor, Projection
from core.models.options import ServiceOptions
from core.resources.catalog import categories, customers, images, products, stock_availables
from core.services.transform import (
    RenderContext,
    build_dto,
    build_rto,
    relations_to_load,
    resolve_rto_config,
    resolve_translation,
    select_fields,
)
from lib.utils import format_price

OPTIONS = ServiceOptions(languages=("en", "fr"))

PRODUCT = {
    "id_product": 7,
    "reference": "MUG-7",
    "name": {"en": "Lamp", "fr": "Lampe"},
    "description": {"en": "A lamp"},
    "price": 1234.5,
    "on_sale": 1,
    "active": 1,
    "id_category_default": 2,
    "categories": [2],
}


@pytest.fixture
def product_descriptor():
    return products(OPTIONS)


@pytest.fixture
def en():
    return RenderContext(language="en", languages=("en", "fr"))


@pytest.fixture
def fr():
    return RenderContext(language="fr", languages=("en", "fr"))


def fake_loader(slot, record, limit):
    """Serves one home category, two images and one stock row."""
    if slot.target == "categories":
        return categories(OPTIONS), [{"id_category": 2, "name": {"en": "Home", "fr": "Accueil"}, "active": 1}]
    if slot.target == "images":
        rows = [
            {"id_image": 1, "position": 1, "cover": 1, "legend": {"en": "Front"}},
            {"id_image": 2, "position": 2, "cover": 0},
        ]
        return images(OPTIONS), rows[:limit] if limit is not None else rows
    if slot.target == "stock_availables":
        return stock_availables(OPTIONS), [{"id_stock_available": 3, "id_product": 7, "quantity": 4}]
    return products(OPTIONS), []


def _render(descriptor, record, context, overrides=None, include=()):
    config = resolve_rto_config(descriptor, overrides or {}, include)
    slots = relations_to_load(descriptor, include, config)
    dto = build_dto(record, descriptor, fake_loader, slots)
    return build_rto(dto, include, config, context)


# =============================================================================
# DTO
# =============================================================================

class TestBuildDto:
    """Tests for the internal snapshot."""

    def test_splits_translations(self, product_descriptor):
        dto = build_dto(PRODUCT, product_descriptor)

        assert dto.id == 7
        assert dto.translations["fr"] == {"name": "Lampe"}
        assert dto.translations["en"]["description"] == "A lamp"
        assert "name" not in dto.fields
        assert dto.relations == {}

    def test_relations_resolved_by_policy(self, product_descriptor):
        dto = build_dto(PRODUCT, product_descriptor, fake_loader, ("category", "images", "stock"))

        assert dto.relations["category"] == Projection(id=2, name={"en": "Home", "fr": "Accueil"}, active=True)
        assert dto.relations["images"][0] == ImageDescriptor(id=1, position=1, cover=True, legend={"en": "Front"})
        nested = dto.relations["stock"][0]
        assert isinstance(nested, Dto)
        assert nested.relations == {}

    def test_limits_passed_to_loader(self, product_descriptor):
        dto = build_dto(PRODUCT, product_descriptor, fake_loader, ("images",), {"images": 1})

        assert len(dto.relations["images"]) == 1


# =============================================================================
# RTO
# =============================================================================

class TestBuildRto:
    """Tests for the external view."""

    def test_core_fields_and_money(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en)

        assert rto["id"] == 7
        assert rto["name"] == "Lamp"
        assert rto["price"] == {"base": 1234.5, "formatted": "€1,234.50", "currency": "EUR"}
        assert rto["on_sale"] is True
        assert rto["available_for_order"] is False
        assert rto["categories"] == [2]

    def test_french_money_format(self, product_descriptor, fr):
        rto = _render(product_descriptor, PRODUCT, fr)

        assert rto["price"]["formatted"] == "1\u202f234,50 €"

    def test_caller_language_wins(self, product_descriptor, fr):
        assert _render(product_descriptor, PRODUCT, fr)["name"] == "Lampe"

    def test_missing_translation_falls_back(self, product_descriptor, fr):
        rto = _render(product_descriptor, PRODUCT, fr)

        assert rto["description"] == "A lamp"

    def test_translations_off(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, {"include_translations": "0"})

        assert "translations" not in rto

    def test_translations_restricted_to_languages(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, {"languages": "en"})

        assert list(rto["translations"]) == ["en"]
        assert rto["translations"]["en"]["name"] == "Lamp"

    def test_include_translations_overrides_flag(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, {"include_translations": "0"}, include=("translations",))

        assert set(rto["translations"]) == {"en", "fr"}

    def test_default_relations(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en)

        assert rto["relations"]["category"] == {"id": 2, "name": "Home", "active": True}
        assert rto["images"][0]["url"] == "/img/1-large_default.jpg"
        assert rto["images"][0]["legend"] == "Front"
        assert rto["stock"][0]["id"] == 3
        assert rto["stock"][0]["quantity"] == 4
        assert rto["stock"][0]["depends_on_stock"] is False

    def test_image_size_and_limit(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, {"image_size": "small", "max_images": "1"})

        assert len(rto["images"]) == 1
        assert rto["images"][0]["url"] == "/img/1-small_default.jpg"
        assert set(rto["images"][0]["urls"]) == {"small", "medium", "large"}

    def test_include_narrows_relations(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, include=("category", "unknown"))

        assert list(rto["relations"]) == ["category"]
        assert "images" not in rto
        assert "stock" not in rto

    def test_flag_off_hides_relations(self, product_descriptor, en):
        rto = _render(product_descriptor, PRODUCT, en, {"include_relations": "false", "include_images": "0"})

        assert "relations" not in rto
        assert "images" not in rto

    def test_sensitive_fields_never_rendered(self, en):
        descriptor = customers(OPTIONS)
        record = {
            "id_customer": 4,
            "email": "ann@example.com",
            "passwd": "$argon2id$secret",
            "secure_key": "abc",
            "company": "Acme",
        }

        rto = _render(descriptor, record, en, {"include_personal_data": "1"}, include=("all",))

        assert "passwd" not in rto
        assert "secure_key" not in rto
        assert rto["company"] == "Acme"

    def test_sections_gated(self, en):
        rto = _render(customers(OPTIONS), {"id_customer": 4, "company": "Acme"}, en)

        assert "company" not in rto
        assert "groups" in rto

    def test_select_fields_keeps_id(self, product_descriptor, en):
        rto = select_fields(_render(product_descriptor, PRODUCT, en), ("name", "price"))

        assert set(rto) == {"id", "name", "price"}


class TestConfig:
    @pytest.mark.parametrize("overrides,name,expected", [
        ({"max_images": "3"}, "max_images", 3),
        ({"max_images": "abc"}, "max_images", 10),
        ({"include_images": "maybe"}, "include_images", True),
        ({"languages": "EN, fr"}, "languages", ("en", "fr")),
        ({"image_size": "medium"}, "image_size", "medium"),
        ({"unknown": "1"}, "unknown", None),
    ])
    def test_overrides_coerced(self, product_descriptor, overrides, name, expected):
        config = resolve_rto_config(product_descriptor, overrides)

        assert config.get(name) == expected

    def test_include_all_sets_every_flag(self):
        config = resolve_rto_config(customers(OPTIONS), {}, ("all",))

        assert config["include_personal_data"] is True


class TestTranslationHelpers:
    @pytest.mark.parametrize("texts,language,expected", [
        ({"en": "Lamp", "fr": "Lampe"}, "fr", "Lampe"),
        ({"en": "Lamp", "fr": ""}, "fr", "Lamp"),
        ({"fr": "Lampe"}, "de", "Lampe"),
        ({}, "en", None),
        ("Acme", "fr", "Acme"),
    ])
    def test_resolve_translation(self, texts, language, expected):
        assert resolve_translation(texts, language, ("en", "fr")) == expected

    @pytest.mark.parametrize("amount,currency,language,expected", [
        (1234.5, "EUR", "en", "€1,234.50"),
        (0, "USD", "en", "$0.00"),
        (-5, "EUR", "en", "-€5.00"),
        (1234567.891, "EUR", "fr", "1\u202f234\u202f567,89 €"),
    ])
    def test_format_price(self, amount, currency, language, expected):
        assert format_price(amount, currency, language) == expected
