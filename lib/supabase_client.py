# =============================================================================
# lib/supabase_client.py - Supabase (PostgREST) Record Store
# =============================================================================
# RecordStore implementation on top of a Supabase/PostgREST database.
#
# Every filter is sent through the postgrest query builder (`.eq`, `.gte`,
# `.in_`, ...), which transmits values as request parameters. The only
# hand-built filter string is the OR group used by `search`, where each
# value is double-quoted with PostgREST's escaping rules.
#
# Translatable columns are JSONB `{lang: text}` maps and are addressed with
# the `column->>lang` path.
#
# Usage:
#   from lib.supabase_client import SupabaseRecordStore
#   store = SupabaseRecordStore(url, service_key)
#   ids, total = store.find(schema, query, "en")
# =============================================================================

from __future__ import annotations

import logging
from typing import Any, Iterable

from supabase import create_client, Client

from lib.filters import FilterCondition, FilterOperator, ListQuery
from lib.record_store import RecordStoreError, TableSchema

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows" on .single()
NO_ROWS_CODE = "PGRST116"


def quote_filter_value(value: Any) -> str:
    """
    Quote a value for use inside a PostgREST logic-tree filter string.

    Example:
        quote_filter_value('a,b"c')  # '"a,b\\"c"'
    """
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def escape_like(value: Any) -> str:
    """
    Escape LIKE wildcards so a value matches literally inside `%...%`.

    PostgREST rewrites every `*` to `%` and has no escape for it, so a
    literal `*` becomes the single-character wildcard `_`.

    Example:
        escape_like("50%_off")  # '50\\%\\_off'
    """
    text = str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return text.replace("*", "_")


class SupabaseRecordStore:
    """
    Record store backed by Supabase.

    The client is created lazily on first use and shared afterwards.

    Args:
        url: Supabase project URL
        service_key: service_role key (bypasses RLS; server-side only)
    """

    def __init__(self, url: str, service_key: str):
        self._url = url
        self._service_key = service_key
        self._client: Client | None = None

    def __repr__(self) -> str:
        return f"SupabaseRecordStore(url={self._url!r})"

    def get_client(self) -> Client:
        """
        Get or create the Supabase client.

        Raises:
            RecordStoreError: If client creation fails
        """
        if self._client is None:
            try:
                self._client = create_client(self._url, self._service_key)
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise RecordStoreError(
                    f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                )
        return self._client

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find(self, schema: TableSchema, query: ListQuery, language: str) -> tuple[list[Any], int]:
        """
        Run one bounded query: filters, search, sort and range together.

        Returns:
            (ids of the requested page, total number of matching records)
        """
        client = self.get_client()

        try:
            builder = client.table(schema.name).select(schema.id_field, count="exact")

            for condition in query.filters:
                builder = self._apply_condition(builder, condition, schema, language)

            if query.search:
                group = ",".join(
                    f"{self._column(c.field, schema, language)}.ilike.{quote_filter_value(f'*{escape_like(c.value)}*')}"
                    for c in query.search
                )
                builder = builder.or_(group)

            if query.sort is not None:
                builder = builder.order(
                    self._column(query.sort.field, schema, language),
                    desc=query.sort.descending,
                )

            start = query.pagination.offset
            builder = builder.range(start, start + query.pagination.limit - 1)

            response = builder.execute()
            rows = response.data or []
            total = response.count if response.count is not None else len(rows)

            logger.debug(f"Found {total} {schema.name} records, returning {len(rows)}")
            return [row[schema.id_field] for row in rows], total

        except RecordStoreError:
            raise
        except Exception as e:
            raise RecordStoreError(
                f"Failed to query {schema.name}: {e}",
                code="FIND_FAILED",
                details={"table": schema.name},
            )

    def get(self, schema: TableSchema, record_id: Any) -> dict[str, Any] | None:
        client = self.get_client()

        try:
            response = (
                client.table(schema.name)
                .select("*")
                .eq(schema.id_field, record_id)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if NO_ROWS_CODE in str(e):
                return None
            raise RecordStoreError(
                f"Failed to fetch {schema.name}#{record_id}: {e}",
                code="GET_FAILED",
                details={"table": schema.name, "id": record_id},
            )

    def get_many(self, schema: TableSchema, ids: Iterable[Any]) -> list[dict[str, Any]]:
        ids = list(ids)
        if not ids:
            return []
        client = self.get_client()

        try:
            response = (
                client.table(schema.name)
                .select("*")
                .in_(schema.id_field, ids)
                .execute()
            )
        except Exception as e:
            raise RecordStoreError(
                f"Failed to fetch {schema.name} records: {e}",
                code="GET_MANY_FAILED",
                details={"table": schema.name, "ids": ids},
            )

        by_id = {row[schema.id_field]: row for row in response.data or []}
        return [by_id[i] for i in ids if i in by_id]

    def find_related(
        self,
        schema: TableSchema,
        field_name: str,
        value: Any,
        limit: int | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        client = self.get_client()

        try:
            builder = client.table(schema.name).select("*")
            if field_name in schema.list_fields:
                builder = builder.contains(field_name, [value])
            else:
                builder = builder.eq(field_name, value)
            builder = builder.order(order_by or schema.id_field)
            if limit is not None:
                builder = builder.limit(limit)
            return builder.execute().data or []

        except Exception as e:
            raise RecordStoreError(
                f"Failed to load related {schema.name}: {e}",
                code="FIND_RELATED_FAILED",
                details={"table": schema.name, "field": field_name},
            )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, schema: TableSchema, values: dict[str, Any]) -> dict[str, Any]:
        client = self.get_client()

        try:
            response = client.table(schema.name).insert(values).execute()
        except Exception as e:
            raise RecordStoreError(
                f"Failed to insert into {schema.name}: {e}",
                code="INSERT_FAILED",
                details={"table": schema.name},
            )

        if not response.data:
            raise RecordStoreError(
                f"Insert into {schema.name} returned no data",
                code="INSERT_FAILED",
                details={"table": schema.name},
            )
        record = response.data[0]
        logger.debug(f"Inserted {schema.name}#{record.get(schema.id_field)}")
        return record

    def update(self, schema: TableSchema, record_id: Any, values: dict[str, Any]) -> dict[str, Any]:
        client = self.get_client()

        try:
            response = (
                client.table(schema.name)
                .update(values)
                .eq(schema.id_field, record_id)
                .execute()
            )
        except Exception as e:
            raise RecordStoreError(
                f"Failed to update {schema.name}#{record_id}: {e}",
                code="UPDATE_FAILED",
                details={"table": schema.name, "id": record_id},
            )

        if not response.data:
            raise RecordStoreError(
                f"{schema.name}#{record_id} does not exist",
                code="RECORD_MISSING",
                details={"table": schema.name, "id": record_id},
            )
        return response.data[0]

    def delete(self, schema: TableSchema, record_id: Any) -> bool:
        client = self.get_client()

        try:
            response = (
                client.table(schema.name)
                .delete()
                .eq(schema.id_field, record_id)
                .execute()
            )
        except Exception as e:
            raise RecordStoreError(
                f"Failed to delete {schema.name}#{record_id}: {e}",
                code="DELETE_FAILED",
                details={"table": schema.name, "id": record_id},
            )
        return bool(response.data)

    def ping(self) -> bool:
        try:
            self.get_client().table("categories").select("id_category").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Supabase ping failed: {e}")
            return False

    # -------------------------------------------------------------------------
    # Query Building
    # -------------------------------------------------------------------------

    @staticmethod
    def _column(name: str, schema: TableSchema, language: str) -> str:
        if name in schema.translatable:
            return f"{name}->>{language}"
        return name

    def _apply_condition(self, builder, condition: FilterCondition, schema: TableSchema, language: str):
        """Map one FilterCondition onto the postgrest query builder."""
        column = self._column(condition.field, schema, language)
        op = condition.operator
        value = condition.value

        if condition.field in schema.list_fields:
            if op == FilterOperator.EQ:
                return builder.contains(column, [value])
            if op == FilterOperator.IN:
                return builder.overlaps(column, list(value))
            if op == FilterOperator.NOT:
                return builder.not_.contains(column, [value])
            if op == FilterOperator.NOT_IN:
                return builder.not_.overlaps(column, list(value))

        if op == FilterOperator.EQ:
            return builder.eq(column, value)
        if op == FilterOperator.NOT:
            return builder.neq(column, value)
        if op == FilterOperator.GT:
            return builder.gt(column, value)
        if op == FilterOperator.GTE:
            return builder.gte(column, value)
        if op == FilterOperator.LT:
            return builder.lt(column, value)
        if op == FilterOperator.LTE:
            return builder.lte(column, value)
        if op == FilterOperator.LIKE:
            return builder.like(column, f"%{escape_like(value)}%")
        if op == FilterOperator.ILIKE:
            return builder.ilike(column, f"%{escape_like(value)}%")
        if op == FilterOperator.IN:
            return builder.in_(column, list(value))
        if op == FilterOperator.NOT_IN:
            return builder.not_.in_(column, list(value))
        if op == FilterOperator.BETWEEN:
            low, high = value
            return builder.gte(column, low).lte(column, high)
        if op == FilterOperator.IS_NULL:
            if value:
                return builder.is_(column, "null")
            return builder.not_.is_(column, "null")

        raise RecordStoreError(
            f"Unsupported operator for PostgREST: {op.value}",
            code="UNSUPPORTED_OPERATOR",
        )
