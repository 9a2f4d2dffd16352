# =============================================================================
# core/models/resource.py - Resource Descriptors
# =============================================================================
# Static, per-resource-type metadata:
# - FieldSpec: one stored field (kind, validation rules, sensitivity)
# - RelationSlot: one relation and how it is embedded in the DTO
# - ResourceDescriptor: fields + relations + query rules + RTO defaults
#
# Descriptors are built once at startup and never mutated: they are frozen
# dataclasses and every mapping is wrapped in a read-only MappingProxyType.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from lib.record_store import TableSchema


class FieldKind(str, Enum):
    """Storage kind of a field; drives coercion, validation and rendering."""
    STRING = "string"
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"           # stored as 0/1, rendered as true/false
    MONEY = "money"         # rendered as {base, formatted, currency}
    DATE = "date"
    LANG = "lang"           # {lang: text} map
    ID_LIST = "id_list"     # list of related ids (many-to-many)


class RelationPolicy(str, Enum):
    """How a related record is embedded in the DTO."""
    PROJECTION = "projection"   # {id, name, active}
    IMAGE = "image"             # image descriptor
    NESTED = "nested"           # one-level snapshot DTO, never recurses


# Python type used to coerce filter values for each kind
FILTER_VALUE_TYPES: dict[FieldKind, type] = {
    FieldKind.STRING: str,
    FieldKind.INT: int,
    FieldKind.FLOAT: float,
    FieldKind.BOOL: bool,
    FieldKind.MONEY: float,
    FieldKind.DATE: str,
    FieldKind.LANG: str,
    FieldKind.ID_LIST: int,
}


@dataclass(frozen=True)
class FieldSpec:
    """
    One stored field of a resource.

    Attributes:
        name: Column / payload key
        kind: FieldKind
        required: Must be present (LANG: for the default language)
        sensitive: Write-only; never rendered in any response
        read_only: Ignored in write payloads
        max_length: Maximum text length
        pattern: Regex the text must fully match
        minimum: Lower bound for numeric fields
        section: RTO option flag gating this field (None = core field)
        default: Value used on create when omitted
    """
    name: str
    kind: FieldKind = FieldKind.STRING
    required: bool = False
    sensitive: bool = False
    read_only: bool = False
    max_length: int | None = None
    pattern: str | None = None
    minimum: float | None = None
    section: str | None = None
    default: Any = None


@dataclass(frozen=True)
class RelationSlot:
    """
    A relation declared by a resource.

    Exactly one of `local_key` (this record holds the target id or id list)
    or `remote_key` (target records point back at this one) is set.

    Attributes:
        name: Relation name, also the `?include=` token and output key
        target: Target resource name
        policy: RelationPolicy
        local_key: Field on this record holding the target id(s)
        remote_key: Field on the target holding this record's id
        many: List of related records instead of one
        flag: RTO option flag that enables this relation by default
        group: Output group ("relations") or None for a top-level key
        limit_option: RTO option bounding the number of loaded records
        order_by: Target field ordering loaded records
    """
    name: str
    target: str
    policy: RelationPolicy = RelationPolicy.PROJECTION
    local_key: str | None = None
    remote_key: str | None = None
    many: bool = False
    flag: str = "include_relations"
    group: str | None = "relations"
    limit_option: str | None = None
    order_by: str | None = None


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Everything the core knows about one resource type.

    Shared read-only by every request for that resource.
    """
    name: str
    label: str
    table: str
    id_field: str
    fields: tuple[FieldSpec, ...]
    relations: tuple[RelationSlot, ...] = ()
    rto_defaults: Mapping[str, Any] = field(default_factory=dict)
    sortable_fields: frozenset[str] = frozenset()
    searchable_fields: tuple[str, ...] = ()
    filterable_fields: frozenset[str] = frozenset()
    default_sort: str = ""
    default_limit: int = 10
    default_filters: Mapping[str, Any] = field(default_factory=dict)
    protected_ids: frozenset[Any] = frozenset()
    protected_message: str = "This record cannot be deleted."
    display_field: str = "name"
    active_field: str | None = "active"
    exposed: bool = True
    public_read: bool = True
    # Field holding the owning customer; customer tokens only see their own records
    owner_field: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rto_defaults", MappingProxyType(dict(self.rto_defaults)))
        object.__setattr__(self, "default_filters", MappingProxyType(dict(self.default_filters)))
        if not self.default_sort:
            object.__setattr__(self, "default_sort", self.id_field)
        if not self.filterable_fields:
            names = {self.id_field} | {f.name for f in self.fields if not f.sensitive}
            object.__setattr__(self, "filterable_fields", frozenset(names))
        if not self.sortable_fields:
            object.__setattr__(self, "sortable_fields", frozenset({self.id_field}))

    # -------------------------------------------------------------------------
    # Field Lookup
    # -------------------------------------------------------------------------

    def get_field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def get_relation(self, name: str) -> RelationSlot | None:
        for slot in self.relations:
            if slot.name == name:
                return slot
        return None

    @property
    def translatable_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.kind == FieldKind.LANG)

    @property
    def sensitive_fields(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields if f.sensitive)

    @property
    def relation_names(self) -> frozenset[str]:
        return frozenset(slot.name for slot in self.relations)

    # -------------------------------------------------------------------------
    # Filter Engine Protocol
    # -------------------------------------------------------------------------

    @property
    def option_names(self) -> frozenset[str]:
        """Query keys interpreted as RTO options rather than filters."""
        return frozenset(self.rto_defaults)

    @property
    def value_types(self) -> Mapping[str, type]:
        types = {self.id_field: int}
        for spec in self.fields:
            types[spec.name] = FILTER_VALUE_TYPES[spec.kind]
        return types

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    @property
    def schema(self) -> TableSchema:
        return TableSchema(
            name=self.table,
            id_field=self.id_field,
            translatable=frozenset(self.translatable_fields),
            list_fields=frozenset(f.name for f in self.fields if f.kind == FieldKind.ID_LIST),
        )
