# =============================================================================
# tests/test_write_model.py - Write Payload Tests
# =============================================================================
# Tests for core/services/write_model.py: payload parsing, per-language
# merge and field validation.
#
# Run with: pytest tests/test_write_model.py -v
# =============================================================================

import pytest

from core.models.options import ServiceOptions
from core.resources.catalog import customers, products
from core.services.write_model import merge_values, parse_payload, validate_record

LANGUAGES = ("en", "fr")


@pytest.fixture
def product_descriptor():
    return products(ServiceOptions(languages=LANGUAGES))


class TestParsePayload:
    """Payload spellings and coercion."""

    def test_translation_spellings(self, product_descriptor):
        """Map, flat `<field>_<lang>` and scalar (default language) forms."""
        payload = {
            "name": {"en": "Mug", "de": "Becher"},
            "name_fr": "Tasse",
            "description": "Plain text",
        }

        write = parse_payload(payload, product_descriptor, LANGUAGES, "en")

        assert write.translations["name"] == {"en": "Mug", "fr": "Tasse"}
        assert write.translations["description"] == {"en": "Plain text"}

    def test_read_only_and_unknown_keys_ignored(self, product_descriptor):
        write = parse_payload({"date_add": "2020-01-01", "bogus": 1, "price": None}, product_descriptor, LANGUAGES, "en")

        assert write.is_empty()

    def test_coercion(self, product_descriptor):
        write = parse_payload(
            {"price": "9.5", "quantity": 3.0, "active": "false", "categories": "2,3,2"},
            product_descriptor,
            LANGUAGES,
            "en",
        )

        assert write.fields == {"price": 9.5, "quantity": 3, "active": 0, "categories": [2, 3]}
        assert write.errors == []

    @pytest.mark.parametrize("payload,message", [
        ({"quantity": "many"}, "Invalid quantity."),
        ({"quantity": 1.5}, "Invalid quantity."),
        ({"price": True}, "Invalid price."),
        ({"categories": {"a": 1}}, "Invalid categories."),
        ({"reference": ["a"]}, "Invalid reference."),
    ])
    def test_coercion_errors(self, product_descriptor, payload, message):
        write = parse_payload(payload, product_descriptor, LANGUAGES, "en")

        assert write.errors == [message]


class TestMergeValues:
    def test_create_fills_defaults(self, product_descriptor):
        write = parse_payload({"name": "Mug"}, product_descriptor, LANGUAGES, "en")

        values = merge_values(write, product_descriptor)

        assert values["price"] == 0.0
        assert values["active"] == 1
        assert values["name"] == {"en": "Mug"}

    def test_update_merges_per_language(self, product_descriptor):
        existing = {"name": {"en": "Old", "fr": "Ancien"}, "price": 5.0}
        write = parse_payload({"name_en": "New"}, product_descriptor, LANGUAGES, "en")

        values = merge_values(write, product_descriptor, existing)

        assert values == {"name": {"en": "New", "fr": "Ancien"}}

    def test_empty_text_keeps_stored_translation(self, product_descriptor):
        existing = {"name": {"en": "Old", "fr": "Ancien"}}
        write = parse_payload({"name": {"fr": ""}}, product_descriptor, LANGUAGES, "en")

        values = merge_values(write, product_descriptor, existing)

        assert values["name"]["fr"] == "Ancien"


class TestValidateRecord:
    def test_default_language_required(self, product_descriptor):
        messages = validate_record({"name": {"fr": "Tasse"}}, product_descriptor, "en")

        assert "Product name is required for the default language." in messages

    def test_invalid_translation_names_language(self, product_descriptor):
        messages = validate_record({"name": {"en": "Mug", "fr": "<b>Tasse</b>"}}, product_descriptor, "en")

        assert messages == ["Invalid product name for language ISO: fr"]

    def test_negative_price(self, product_descriptor):
        messages = validate_record({"name": {"en": "Mug"}, "price": -1.0}, product_descriptor, "en")

        assert messages == ["Invalid price."]

    def test_required_plain_fields(self):
        messages = validate_record({"firstname": "Ann"}, customers(ServiceOptions()), "en")

        assert "Customer lastname is required." in messages
        assert "Customer email is required." in messages
        assert "Customer passwd is required." in messages

    def test_pattern(self):
        record = {"firstname": "Ann", "lastname": "Lee", "email": "not-an-email", "passwd": "x" * 10}

        assert validate_record(record, customers(ServiceOptions()), "en") == ["Invalid email."]
