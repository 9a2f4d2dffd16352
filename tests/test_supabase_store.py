# =============================================================================
# tests/test_supabase_store.py - Supabase Record Store Tests
# =============================================================================
# Tests for lib/supabase_client.py with a mocked postgrest query builder.
# No network access.
#
# Run with: pytest tests/test_supabase_store.py -v
# =============================================================================

from unittest.mock import MagicMock

import pytest

from lib.filters import (
    FilterCondition,
    FilterOperator,
    ListQuery,
    Pagination,
    SortDirection,
    SortSpec,
)
from lib.record_store import RecordStoreError, TableSchema
from lib.supabase_client import SupabaseRecordStore, escape_like, quote_filter_value

SCHEMA = TableSchema(
    name="products",
    id_field="id_product",
    translatable=frozenset({"name"}),
    list_fields=frozenset({"categories"}),
)

BUILDER_METHODS = (
    "select", "eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "in_",
    "is_", "or_", "order", "range", "limit", "contains", "overlaps", "single",
    "insert", "update", "delete",
)


@pytest.fixture
def builder():
    """Chainable query builder: every call returns the builder itself."""
    mock = MagicMock()
    for name in BUILDER_METHODS:
        getattr(mock, name).return_value = mock
    mock.not_ = mock
    mock.execute.return_value = MagicMock(data=[{"id_product": 2}], count=7)
    return mock


@pytest.fixture
def supabase_store(builder):
    store = SupabaseRecordStore("https://example.supabase.co", "service-key")
    client = MagicMock()
    client.table.return_value = builder
    store._client = client
    return store


class TestFind:
    """find() builds one bounded query."""

    def test_filters_sort_and_range(self, supabase_store, builder):
        # Arrange
        query = ListQuery(
            filters=(
                FilterCondition("price", FilterOperator.GTE, 10.0),
                FilterCondition("name", FilterOperator.ILIKE, "mug"),
                FilterCondition("categories", FilterOperator.EQ, 3),
            ),
            sort=SortSpec("price", SortDirection.DESC),
            pagination=Pagination(page=2, limit=10),
        )

        # Act
        ids, total = supabase_store.find(SCHEMA, query, "fr")

        # Assert
        assert (ids, total) == ([2], 7)
        builder.select.assert_called_once_with("id_product", count="exact")
        builder.gte.assert_called_once_with("price", 10.0)
        builder.ilike.assert_called_once_with("name->>fr", "%mug%")
        builder.contains.assert_called_once_with("categories", [3])
        builder.order.assert_called_once_with("price", desc=True)
        builder.range.assert_called_once_with(10, 19)

    def test_search_values_are_quoted(self, supabase_store, builder):
        query = ListQuery(search=(
            FilterCondition("name", FilterOperator.ILIKE, 'a,b"c'),
            FilterCondition("reference", FilterOperator.ILIKE, 'a,b"c'),
        ))

        supabase_store.find(SCHEMA, query, "en")

        builder.or_.assert_called_once_with(
            'name->>en.ilike."*a,b\\"c*",reference.ilike."*a,b\\"c*"'
        )

    def test_like_wildcards_match_literally(self, supabase_store, builder):
        query = ListQuery(filters=(
            FilterCondition("reference", FilterOperator.LIKE, "%"),
            FilterCondition("name", FilterOperator.ILIKE, "50%_off"),
        ))

        supabase_store.find(SCHEMA, query, "en")

        builder.like.assert_called_once_with("reference", "%\\%%")
        builder.ilike.assert_called_once_with("name->>en", "%50\\%\\_off%")

    def test_search_wildcards_match_literally(self, supabase_store, builder):
        query = ListQuery(search=(FilterCondition("name", FilterOperator.ILIKE, "100%"),))

        supabase_store.find(SCHEMA, query, "en")

        builder.or_.assert_called_once_with('name->>en.ilike."*100\\\\%*"')

    def test_between_is_two_bounds(self, supabase_store, builder):
        query = ListQuery(filters=(FilterCondition("price", FilterOperator.BETWEEN, (1.0, 5.0)),))

        supabase_store.find(SCHEMA, query, "en")

        builder.gte.assert_called_once_with("price", 1.0)
        builder.lte.assert_called_once_with("price", 5.0)

    def test_failure_wrapped(self, supabase_store, builder):
        builder.execute.side_effect = Exception("connection refused")

        with pytest.raises(RecordStoreError) as exc_info:
            supabase_store.find(SCHEMA, ListQuery(), "en")

        assert exc_info.value.code == "FIND_FAILED"


class TestReadsAndWrites:
    def test_get_missing_row(self, supabase_store, builder):
        builder.execute.side_effect = Exception("{'code': 'PGRST116'}")

        assert supabase_store.get(SCHEMA, 9) is None

    def test_get_many_keeps_order(self, supabase_store, builder):
        builder.execute.return_value = MagicMock(data=[{"id_product": 1}, {"id_product": 3}])

        records = supabase_store.get_many(SCHEMA, [3, 2, 1])

        assert [r["id_product"] for r in records] == [3, 1]

    def test_insert_failure(self, supabase_store, builder):
        builder.execute.side_effect = Exception("duplicate key")

        with pytest.raises(RecordStoreError) as exc_info:
            supabase_store.insert(SCHEMA, {"price": 1.0})

        assert exc_info.value.code == "INSERT_FAILED"

    def test_update_missing(self, supabase_store, builder):
        builder.execute.return_value = MagicMock(data=[])

        with pytest.raises(RecordStoreError) as exc_info:
            supabase_store.update(SCHEMA, 9, {"price": 1.0})

        assert exc_info.value.code == "RECORD_MISSING"

    def test_delete_reports_removal(self, supabase_store, builder):
        assert supabase_store.delete(SCHEMA, 2) is True


def test_quote_filter_value():
    assert quote_filter_value('a\\b"c') == '"a\\\\b\\"c"'


@pytest.mark.parametrize("raw,expected", [
    ("mug", "mug"),
    ("50%_off", "50\\%\\_off"),
    ("a\\b", "a\\\\b"),
    ("a*b", "a_b"),
])
def test_escape_like(raw, expected):
    assert escape_like(raw) == expected


def test_repr_hides_key():
    assert "service-key" not in repr(SupabaseRecordStore("https://example.supabase.co", "service-key"))
