# =============================================================================
# lib/filters.py - Filter / Sort / Paginate Engine
# =============================================================================
# Turns the flat key/value query string of a list request into a structured,
# bounded query description:
#
#   ?name__ilike=shirt&price__between=10,50&order_by=price&order_way=desc
#
#   -> ListQuery(
#          filters=(FilterCondition("name", ILIKE, "shirt"),
#                   FilterCondition("price", BETWEEN, (10.0, 50.0))),
#          sort=SortSpec("price", DESC),
#          pagination=Pagination(page=1, limit=10),
#      )
#
# The output is plain data. Turning it into a storage query (with bound
# parameters) is the record store's job, never this module's.
#
# The engine has no dependency on the rest of the application: a resource is
# anything that satisfies the QueryableResource protocol.
# =============================================================================

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Sequence

MAX_PAGE_SIZE = 200

# Keys that are never treated as field filters
RESERVED_KEYS = frozenset({
    "page",
    "limit",
    "offset",
    "order_by",
    "order_way",
    "include",
    "fields",
    "search",
    "lang",
})

OPERATOR_SEPARATOR = "__"

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_BRACKETED = re.compile(r"^filter\[([^\]]+)\]$")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


# =============================================================================
# Enums
# =============================================================================

class FilterOperator(str, Enum):
    """Operators accepted after the `__` suffix of a filter key."""
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    ILIKE = "ilike"
    NOT = "not"
    IN = "in"
    NOT_IN = "not_in"
    BETWEEN = "between"
    IS_NULL = "is_null"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class ParseErrorReason(str, Enum):
    UNKNOWN_OPERATOR = "UNKNOWN_OPERATOR"
    MALFORMED_BETWEEN = "MALFORMED_BETWEEN"
    EMPTY_IN_LIST = "EMPTY_IN_LIST"
    MALFORMED_VALUE = "MALFORMED_VALUE"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"


class FilterParseError(Exception):
    """
    Raised when a query string cannot be turned into a safe query.

    Always a client error: the request is rejected, never widened to
    "match everything".

    Attributes:
        reason: Machine-readable ParseErrorReason
        message: Human-readable message
        key: The offending query key (if any)
    """

    def __init__(self, reason: ParseErrorReason, message: str, key: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.key = key

    def __str__(self) -> str:
        return f"[{self.reason.value}] {self.message}"


# =============================================================================
# Query Description
# =============================================================================

@dataclass(frozen=True)
class FilterCondition:
    """One predicate: `field <operator> value`."""
    field: str
    operator: FilterOperator
    value: Any = None


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC


@dataclass(frozen=True)
class PaginationInfo:
    """Pagination block returned alongside list results."""
    total_items: int
    current_page: int
    items_per_page: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_items": self.total_items,
            "current_page": self.current_page,
            "items_per_page": self.items_per_page,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_previous": self.has_previous,
        }


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total_items: int) -> int:
        """ceil(total_items / limit); zero items means zero pages."""
        if total_items <= 0:
            return 0
        return math.ceil(total_items / self.limit)

    def info(self, total_items: int) -> PaginationInfo:
        return PaginationInfo(
            total_items=total_items,
            current_page=self.page,
            items_per_page=self.limit,
            total_pages=self.total_pages(total_items),
        )


@dataclass(frozen=True)
class ViewOptions:
    """
    Response-shaping parameters shared by list and single-record reads.

    Attributes:
        include: Requested relation names (`?include=category,images`)
        fields: Requested output fields for a sparse response (`?fields=id,name`)
        options: Raw RTO option overrides keyed by option name
        language: Requested language code (`?lang=fr`), if any
    """
    include: tuple[str, ...] = ()
    fields: tuple[str, ...] = ()
    options: Mapping[str, Any] = field(default_factory=dict)
    language: str | None = None


@dataclass(frozen=True)
class ListQuery:
    """
    Structured description of a list request.

    `filters` are AND-ed together; `search` is a single OR group of
    case-insensitive LIKE conditions over the resource's searchable fields.
    """
    filters: tuple[FilterCondition, ...] = ()
    search: tuple[FilterCondition, ...] = ()
    sort: SortSpec | None = None
    pagination: Pagination = field(default_factory=Pagination)
    view: ViewOptions = field(default_factory=ViewOptions)

    def has_filter(self, field_name: str) -> bool:
        return any(condition.field == field_name for condition in self.filters)

    def with_filters(self, *conditions: FilterCondition) -> ListQuery:
        """Return a copy with extra AND conditions appended."""
        return ListQuery(
            filters=self.filters + tuple(conditions),
            search=self.search,
            sort=self.sort,
            pagination=self.pagination,
            view=self.view,
        )


class QueryableResource(Protocol):
    """What the engine needs to know about a resource."""
    default_sort: str
    default_limit: int
    sortable_fields: frozenset[str]
    searchable_fields: tuple[str, ...]
    filterable_fields: frozenset[str]
    default_filters: Mapping[str, Any]
    option_names: frozenset[str]
    value_types: Mapping[str, type]


# =============================================================================
# Public API
# =============================================================================

def parse(
    raw_params: Mapping[str, Any],
    resource: QueryableResource,
    max_page_size: int = MAX_PAGE_SIZE,
    apply_default_filters: bool = True,
) -> ListQuery:
    """
    Parse list query parameters for a resource.

    Args:
        raw_params: Query parameters; values may be strings or lists of
            strings (repeated keys)
        resource: The resource the query targets
        max_page_size: Hard ceiling for `limit`
        apply_default_filters: Whether the resource's default filters
            (e.g. active=1) apply when the caller does not filter that field

    Returns:
        ListQuery with filters, search group, sort, pagination and view

    Raises:
        FilterParseError: Unknown operator, malformed between, empty in-list,
            uncoercible value, or a field the resource does not allow

    Example:
        query = parse({"price__gte": "10", "limit": "500"}, product_descriptor)
        query.pagination.limit  # 200
    """
    params = normalize_params(raw_params)

    pagination = _parse_pagination(params, resource, max_page_size)
    sort = _parse_sort(params, resource)
    view = parse_view(params, resource)
    search = _parse_search(params, resource)

    filters: list[FilterCondition] = []
    for key, values in params.items():
        if key in RESERVED_KEYS or key in resource.option_names:
            continue
        filters.append(_parse_filter(key, values, resource))

    if apply_default_filters:
        filtered = {condition.field for condition in filters}
        for field_name, value in resource.default_filters.items():
            if field_name not in filtered:
                filters.append(FilterCondition(field_name, FilterOperator.EQ, value))

    return ListQuery(
        filters=tuple(filters),
        search=search,
        sort=sort,
        pagination=pagination,
        view=view,
    )


def parse_view(raw_params: Mapping[str, Any], resource: QueryableResource) -> ViewOptions:
    """
    Extract only the response-shaping parameters (include, fields, lang and
    RTO options). Used for single-record reads, where filters are ignored.
    """
    params = normalize_params(raw_params)

    options = {
        name: _last(values)
        for name, values in params.items()
        if name in resource.option_names
    }
    language = _last(params.get("lang", []))

    return ViewOptions(
        include=_split_list(params.get("include", []), lower=True),
        fields=_split_list(params.get("fields", [])),
        options=options,
        language=language.strip().lower() if language else None,
    )


def normalize_params(raw_params: Mapping[str, Any]) -> dict[str, list[str]]:
    """
    Normalize raw parameters to `{key: [values...]}`.

    `filter[name]=x` is folded into `name=x`; scalar values become
    one-element lists.
    """
    normalized: dict[str, list[str]] = {}
    for key, value in raw_params.items():
        match = _BRACKETED.match(key)
        if match:
            key = match.group(1)
        values = value if isinstance(value, (list, tuple)) else [value]
        normalized.setdefault(key, []).extend(
            "" if v is None else str(v) for v in values
        )
    return normalized


def params_from_pairs(pairs: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    """Build normalized parameters from (key, value) pairs, e.g. a query string."""
    params: dict[str, list[str]] = {}
    for key, value in pairs:
        params.setdefault(key, []).append(value)
    return normalize_params(params)


def parse_bool(value: Any) -> bool | None:
    """Parse a boolean-ish query value. Returns None when not recognised."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return None


# =============================================================================
# Internal Helpers
# =============================================================================

def _last(values: Sequence[str]) -> str | None:
    return values[-1] if values else None


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _split_list(values: Sequence[str], lower: bool = False) -> tuple[str, ...]:
    items: list[str] = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if lower:
                part = part.lower()
            if part and part not in items:
                items.append(part)
    return tuple(items)


def _parse_pagination(
    params: Mapping[str, list[str]],
    resource: QueryableResource,
    max_page_size: int,
) -> Pagination:
    limit = _parse_int(_last(params.get("limit", [])))
    if limit is None or limit < 1:
        limit = resource.default_limit
    limit = min(limit, max_page_size)

    page = _parse_int(_last(params.get("page", [])))
    if page is None:
        offset = _parse_int(_last(params.get("offset", [])))
        if offset is not None:
            page = max(offset, 0) // limit + 1

    return Pagination(page=max(page or 1, 1), limit=limit)


def _parse_sort(params: Mapping[str, list[str]], resource: QueryableResource) -> SortSpec:
    order_by = (_last(params.get("order_by", [])) or "").strip()
    order_way = (_last(params.get("order_way", [])) or "").strip().upper()

    if order_by not in resource.sortable_fields:
        order_by = resource.default_sort

    direction = SortDirection.DESC if order_way == "DESC" else SortDirection.ASC
    return SortSpec(field=order_by, direction=direction)


def _parse_search(
    params: Mapping[str, list[str]],
    resource: QueryableResource,
) -> tuple[FilterCondition, ...]:
    term = (_last(params.get("search", [])) or "").strip()
    if not term or not resource.searchable_fields:
        return ()
    return tuple(
        FilterCondition(field_name, FilterOperator.ILIKE, term)
        for field_name in resource.searchable_fields
    )


def _parse_filter(
    key: str,
    values: list[str],
    resource: QueryableResource,
) -> FilterCondition:
    field_name, separator, token = key.rpartition(OPERATOR_SEPARATOR)
    if not separator:
        field_name, token = key, ""

    if not _FIELD_NAME.match(field_name) or (
        resource.filterable_fields and field_name not in resource.filterable_fields
    ):
        raise FilterParseError(
            ParseErrorReason.UNKNOWN_FIELD,
            f"Unknown filter field: {field_name}",
            key=key,
        )

    # A trailing separator with no operator (`name__`) is malformed, not equality
    if separator:
        try:
            operator = FilterOperator(token.lower())
        except ValueError:
            raise FilterParseError(
                ParseErrorReason.UNKNOWN_OPERATOR,
                f"Unknown filter operator '{token}' in '{key}'",
                key=key,
            )
    else:
        operator = FilterOperator.EQ

    value_type = resource.value_types.get(field_name, str)

    if operator in (FilterOperator.IN, FilterOperator.NOT_IN):
        items = _split_list(values)
        if not items:
            raise FilterParseError(
                ParseErrorReason.EMPTY_IN_LIST,
                f"'{key}' requires at least one value",
                key=key,
            )
        return FilterCondition(field_name, operator, tuple(_coerce(key, v, value_type) for v in items))

    if operator == FilterOperator.BETWEEN:
        items = [part.strip() for value in values for part in value.split(",")]
        if len(items) != 2 or not all(items):
            raise FilterParseError(
                ParseErrorReason.MALFORMED_BETWEEN,
                f"'{key}' requires exactly two comma-separated values",
                key=key,
            )
        low, high = (_coerce(key, v, value_type) for v in items)
        return FilterCondition(field_name, operator, (low, high))

    if operator == FilterOperator.IS_NULL:
        flag = parse_bool(_last(values) or "1")
        if flag is None:
            raise FilterParseError(
                ParseErrorReason.MALFORMED_VALUE,
                f"'{key}' expects a boolean value",
                key=key,
            )
        return FilterCondition(field_name, operator, flag)

    # A plain field repeated several times selects any of the given values
    if operator == FilterOperator.EQ and len(values) > 1:
        items = _split_list(values)
        if not items:
            raise FilterParseError(
                ParseErrorReason.EMPTY_IN_LIST,
                f"'{key}' requires at least one non-empty value",
                key=key,
            )
        return FilterCondition(field_name, FilterOperator.IN, tuple(_coerce(key, v, value_type) for v in items))

    raw = _last(values) or ""
    if operator in (FilterOperator.LIKE, FilterOperator.ILIKE):
        return FilterCondition(field_name, operator, raw)
    return FilterCondition(field_name, operator, _coerce(key, raw, value_type))


def _coerce(key: str, raw: str, value_type: type) -> Any:
    """Coerce an untrusted query value to the field's scalar type."""
    raw = raw.strip()
    if value_type is str:
        return raw
    if value_type is bool:
        flag = parse_bool(raw)
        if flag is None:
            raise FilterParseError(
                ParseErrorReason.MALFORMED_VALUE,
                f"'{key}' expects a boolean value, got '{raw}'",
                key=key,
            )
        return flag
    try:
        return value_type(raw)
    except (TypeError, ValueError):
        raise FilterParseError(
            ParseErrorReason.MALFORMED_VALUE,
            f"'{key}' expects a {value_type.__name__} value, got '{raw}'",
            key=key,
        )
