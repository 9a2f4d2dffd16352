# =============================================================================
# lib/record_store.py - Record Store Contract + In-Memory Store
# =============================================================================
# The record store is the persistence layer behind every resource. The API
# core only talks to it through the RecordStore protocol:
#
#   find(schema, query, language)      -> (ids, total)   one bounded query
#   get(schema, record_id)             -> record | None
#   get_many(schema, ids)              -> [records] in id order given
#   find_related(schema, field, value) -> [records]      relation loading
#   insert / update / delete
#
# Records are plain dicts. Translatable columns hold a {lang: text} map.
#
# InMemoryRecordStore is a thread-safe implementation used for development,
# seeding and tests. lib/supabase_client.py provides the PostgREST-backed one.
# =============================================================================

from __future__ import annotations

import copy
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Protocol

from lib.filters import FilterCondition, FilterOperator, ListQuery
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)


class RecordStoreError(ApplicationError):
    """Raised when the underlying storage fails. Never retried by the core."""

    def __init__(self, message: str, code: str = "RECORD_STORE_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


@dataclass(frozen=True)
class TableSchema:
    """
    Storage-level facts about one table.

    Attributes:
        name: Table name
        id_field: Primary key column
        translatable: Columns holding a {lang: text} map
        list_fields: Columns holding a list of ids (many-to-many)
    """
    name: str
    id_field: str
    translatable: frozenset[str] = field(default_factory=frozenset)
    list_fields: frozenset[str] = field(default_factory=frozenset)


class RecordStore(Protocol):
    """Synchronous, possibly blocking persistence layer."""

    def find(self, schema: TableSchema, query: ListQuery, language: str) -> tuple[list[Any], int]:
        ...

    def get(self, schema: TableSchema, record_id: Any) -> dict[str, Any] | None:
        ...

    def get_many(self, schema: TableSchema, ids: Iterable[Any]) -> list[dict[str, Any]]:
        ...

    def find_related(
        self,
        schema: TableSchema,
        field_name: str,
        value: Any,
        limit: int | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        ...

    def insert(self, schema: TableSchema, values: dict[str, Any]) -> dict[str, Any]:
        ...

    def update(self, schema: TableSchema, record_id: Any, values: dict[str, Any]) -> dict[str, Any]:
        ...

    def delete(self, schema: TableSchema, record_id: Any) -> bool:
        ...

    def ping(self) -> bool:
        ...


# =============================================================================
# In-Memory Implementation
# =============================================================================

class InMemoryRecordStore:
    """
    Dict-backed record store.

    Each table is `{id: record}` with an auto-increment sequence. All access
    goes through one re-entrant lock; records are deep-copied in and out so
    callers never share mutable state with the store.

    Example:
        store = InMemoryRecordStore()
        product = store.insert(schema, {"name": {"en": "Mug"}, "price": 9.5})
        ids, total = store.find(schema, ListQuery(), "en")
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[Any, dict[str, Any]]] = {}
        self._sequences: dict[str, int] = {}
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    def load(self, table: str, id_field: str, records: Iterable[dict[str, Any]]) -> int:
        """Bulk-load records that already carry their ids."""
        count = 0
        with self._lock:
            rows = self._tables.setdefault(table, {})
            for record in records:
                record_id = record[id_field]
                rows[record_id] = copy.deepcopy(record)
                if isinstance(record_id, int):
                    self._sequences[table] = max(self._sequences.get(table, 0), record_id)
                count += 1
        return count

    def load_file(self, path: str | Path, id_fields: dict[str, str]) -> int:
        """
        Load a JSON seed file of the form {"table": [records...]}.

        Args:
            path: Path to the JSON file
            id_fields: Table name -> primary key column

        Raises:
            RecordStoreError: If the file is unreadable or names an unknown table
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RecordStoreError(
                f"Failed to read seed file: {e}",
                code="SEED_READ_FAILED",
                details={"path": str(path)},
            )

        total = 0
        for table, records in data.items():
            if table not in id_fields:
                raise RecordStoreError(
                    f"Seed file references unknown table: {table}",
                    code="SEED_UNKNOWN_TABLE",
                    details={"table": table},
                )
            total += self.load(table, id_fields[table], records)
        logger.info(f"Loaded {total} seed records from {path}")
        return total

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find(self, schema: TableSchema, query: ListQuery, language: str) -> tuple[list[Any], int]:
        with self._lock:
            rows = list(self._tables.get(schema.name, {}).values())

            matched = [
                row for row in rows
                if all(self._matches(row, c, schema, language) for c in query.filters)
                and (
                    not query.search
                    or any(self._matches(row, c, schema, language) for c in query.search)
                )
            ]

            if query.sort is not None:
                sort_field = query.sort.field

                def sort_key(row: dict[str, Any]) -> tuple:
                    value = self._column(row, sort_field, schema, language)
                    return (value is None, value if value is not None else 0)

                # Ties keep id order
                matched.sort(key=lambda row: row[schema.id_field])
                try:
                    matched.sort(key=sort_key, reverse=query.sort.descending)
                except TypeError as e:
                    raise RecordStoreError(
                        f"Cannot sort {schema.name} by {sort_field}: {e}",
                        code="SORT_FAILED",
                    )

            total = len(matched)
            offset = query.pagination.offset
            page = matched[offset:offset + query.pagination.limit]
            return [row[schema.id_field] for row in page], total

    def get(self, schema: TableSchema, record_id: Any) -> dict[str, Any] | None:
        with self._lock:
            row = self._tables.get(schema.name, {}).get(record_id)
            return copy.deepcopy(row) if row is not None else None

    def get_many(self, schema: TableSchema, ids: Iterable[Any]) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._tables.get(schema.name, {})
            return [copy.deepcopy(rows[i]) for i in ids if i in rows]

    def find_related(
        self,
        schema: TableSchema,
        field_name: str,
        value: Any,
        limit: int | None = None,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = [
                row for row in self._tables.get(schema.name, {}).values()
                if self._equals(row.get(field_name), value)
            ]
            sort_field = order_by or schema.id_field
            rows.sort(key=lambda row: (
                row.get(sort_field) is None,
                row.get(sort_field) if row.get(sort_field) is not None else 0,
            ))
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def insert(self, schema: TableSchema, values: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            rows = self._tables.setdefault(schema.name, {})
            record_id = values.get(schema.id_field)
            if record_id is None:
                record_id = self._sequences.get(schema.name, 0) + 1
            elif record_id in rows:
                raise RecordStoreError(
                    f"Duplicate id {record_id} in {schema.name}",
                    code="DUPLICATE_ID",
                    details={"table": schema.name, "id": record_id},
                )
            if isinstance(record_id, int):
                self._sequences[schema.name] = max(self._sequences.get(schema.name, 0), record_id)

            record = copy.deepcopy(values)
            record[schema.id_field] = record_id
            rows[record_id] = record
            logger.debug(f"Inserted {schema.name}#{record_id}")
            return copy.deepcopy(record)

    def update(self, schema: TableSchema, record_id: Any, values: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            rows = self._tables.get(schema.name, {})
            if record_id not in rows:
                raise RecordStoreError(
                    f"{schema.name}#{record_id} does not exist",
                    code="RECORD_MISSING",
                    details={"table": schema.name, "id": record_id},
                )
            record = rows[record_id]
            record.update(copy.deepcopy(values))
            record[schema.id_field] = record_id
            logger.debug(f"Updated {schema.name}#{record_id}")
            return copy.deepcopy(record)

    def delete(self, schema: TableSchema, record_id: Any) -> bool:
        with self._lock:
            removed = self._tables.get(schema.name, {}).pop(record_id, None)
            return removed is not None

    def ping(self) -> bool:
        return True

    # -------------------------------------------------------------------------
    # Predicate Evaluation
    # -------------------------------------------------------------------------

    @staticmethod
    def _column(row: dict[str, Any], name: str, schema: TableSchema, language: str) -> Any:
        value = row.get(name)
        if name in schema.translatable and isinstance(value, dict):
            return value.get(language)
        return value

    @staticmethod
    def _equals(stored: Any, value: Any) -> bool:
        if isinstance(stored, list):
            return value in stored
        return stored == value

    def _matches(
        self,
        row: dict[str, Any],
        condition: FilterCondition,
        schema: TableSchema,
        language: str,
    ) -> bool:
        """Evaluate one condition against a row."""
        stored = self._column(row, condition.field, schema, language)
        op = condition.operator
        value = condition.value

        if op == FilterOperator.IS_NULL:
            is_null = stored is None or stored == ""
            return is_null if value else not is_null

        if stored is None:
            # SQL semantics: NULL never satisfies a comparison
            return False

        if isinstance(stored, list):
            if op == FilterOperator.EQ:
                return value in stored
            if op == FilterOperator.NOT:
                return value not in stored
            if op == FilterOperator.IN:
                return any(v in stored for v in value)
            if op == FilterOperator.NOT_IN:
                return not any(v in stored for v in value)
            return False

        try:
            if op == FilterOperator.EQ:
                return stored == value
            if op == FilterOperator.NOT:
                return stored != value
            if op == FilterOperator.GT:
                return stored > value
            if op == FilterOperator.GTE:
                return stored >= value
            if op == FilterOperator.LT:
                return stored < value
            if op == FilterOperator.LTE:
                return stored <= value
            if op == FilterOperator.IN:
                return stored in value
            if op == FilterOperator.NOT_IN:
                return stored not in value
            if op == FilterOperator.BETWEEN:
                low, high = value
                return low <= stored <= high
            if op == FilterOperator.LIKE:
                return str(value) in str(stored)
            if op == FilterOperator.ILIKE:
                return str(value).lower() in str(stored).lower()
        except TypeError:
            return False

        return False
