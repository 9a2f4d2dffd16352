# =============================================================================
# core/services/resource_service.py - Generic Resource Orchestrator
# =============================================================================
# One ResourceService per resource type. It owns the request lifecycle:
#
#   list:    ListQuery -> adapter.find (one bounded query) -> ids + total
#   get:     id -> record | NotFound (inactive hidden unless authenticated)
#   create:  payload -> WriteDto -> derive -> validate -> persist
#   update:  payload -> merge onto stored record -> validate merged -> persist
#   delete:  protected? Forbidden : delete | NotFound
#
# Shaping (record -> DTO -> RTO) happens in render()/list_view()/get_view().
#
# Errors:
#   ResourceNotFoundError, ValidationErrors, ForbiddenError from the rules
#   PersistenceError for any RecordStoreError, surfaced immediately
# =============================================================================

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterator, Mapping

from app.exceptions import (
    ForbiddenError,
    PersistenceError,
    ResourceNotFoundError,
    ValidationErrors,
)
from core.models.options import ServiceOptions
from core.models.resource import RelationSlot, ResourceDescriptor
from core.resources.adapters import ResourceAdapter
from core.services.transform import (
    RenderContext,
    build_dto,
    build_rto,
    relation_limits,
    relations_to_load,
    resolve_rto_config,
    select_fields,
)
from core.services.write_model import merge_values, parse_payload, validate_record
from lib.filters import FilterCondition, FilterOperator, ListQuery, ViewOptions
from lib.record_store import RecordStoreError
from lib.utils import as_bool, utc_timestamp

logger = logging.getLogger(__name__)

OwnedRelationLoader = Callable[
    [ResourceDescriptor, RelationSlot, dict[str, Any], int | None],
    tuple[ResourceDescriptor, list[dict[str, Any]]],
]


@dataclass(frozen=True)
class ListResult:
    """Ids of the requested page plus the total number of matches."""
    ids: list[Any]
    total: int


class ResourceService:
    """
    CRUD orchestration for one resource.

    Args:
        adapter: Storage adapter for the resource
        options: Service configuration
        relation_loader: Resolves relation slots for an owning descriptor
            (ResourceRegistry.load_relation)
    """

    def __init__(
        self,
        adapter: ResourceAdapter,
        options: ServiceOptions,
        relation_loader: OwnedRelationLoader | None = None,
    ):
        self.adapter = adapter
        self.options = options
        self.relation_loader = relation_loader

    @property
    def descriptor(self) -> ResourceDescriptor:
        return self.adapter.descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    @contextmanager
    def _persistence(self, action: str) -> Iterator[None]:
        """Convert record store failures into PersistenceError."""
        try:
            yield
        except RecordStoreError as e:
            logger.error(f"Failed to {action} {self.name}: {e}")
            raise PersistenceError(
                f"Failed to {action} {self.descriptor.label.lower()}.",
                details={"reason": e.code},
            ) from e

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def list(self, query: ListQuery, language: str | None = None) -> ListResult:
        """
        Run a list query as one bounded store query.

        Args:
            query: Parsed query (filters, search, sort, pagination)
            language: Language used for translatable filter/sort columns

        Returns:
            ListResult with the page's ids and the total match count
        """
        language = language or self.options.default_language
        with self._persistence("list"):
            ids, total = self.adapter.find(query, language)
        logger.debug(f"Listed {len(ids)}/{total} {self.name}")
        return ListResult(ids=ids, total=total)

    def get_by_id(
        self,
        record_id: Any,
        include_inactive: bool = False,
        owner_id: Any = None,
    ) -> dict[str, Any]:
        """
        Fetch one record.

        Args:
            record_id: Record id
            include_inactive: Return inactive records too
            owner_id: When set, the record must belong to this owner

        Raises:
            ResourceNotFoundError: Missing, inactive and not include_inactive,
                or owned by someone else
        """
        with self._persistence("load"):
            record = self.adapter.get(record_id)

        if record is None:
            raise ResourceNotFoundError(self.descriptor.label, record_id)

        active_field = self.descriptor.active_field
        if active_field and not include_inactive and not as_bool(record.get(active_field, 1)):
            raise ResourceNotFoundError(self.descriptor.label, record_id)

        owner_field = self.descriptor.owner_field
        if owner_id is not None and (owner_field is None or record.get(owner_field) != owner_id):
            raise ResourceNotFoundError(self.descriptor.label, record_id)

        return record

    def owned_by(self, query: ListQuery, owner_id: Any) -> ListQuery:
        """Restrict a list query to the records of one owner."""
        owner_field = self.descriptor.owner_field
        if owner_field is None:
            raise ValueError(f"{self.name} records have no owner")
        return query.with_filters(FilterCondition(owner_field, FilterOperator.EQ, owner_id))

    def create(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validate then persist a new record.

        Raises:
            ValidationErrors: Payload fails the resource's rules
            PersistenceError: Store failed after validation passed
        """
        write = parse_payload(payload, self.descriptor, self.options.languages, self.options.default_language)
        values = merge_values(write, self.descriptor)

        with self._persistence("create"):
            values = self.adapter.derive(values, None)
            messages = write.errors + validate_record(values, self.descriptor, self.options.default_language)
            if not messages:
                messages = self.adapter.validate(values, values, None)

        if messages:
            raise ValidationErrors("Failed to create resource.", messages)

        self._stamp(values, creating=True)

        with self._persistence("create"):
            values = self.adapter.prepare(values, None)
            record = self.adapter.insert(values)

        logger.info(f"Created {self.name}#{record.get(self.descriptor.id_field)}")
        return record

    def update(self, record_id: Any, payload: Mapping[str, Any]) -> dict[str, Any]:
        """
        Partially update a record.

        Omitted fields keep their stored value; translatable fields merge per
        language. The merged record is validated as a whole.

        Raises:
            ResourceNotFoundError: No such record
            ValidationErrors: Merged record fails the resource's rules
            PersistenceError: Store failed after validation passed
        """
        with self._persistence("update"):
            existing = self.adapter.get(record_id)
        if existing is None:
            raise ResourceNotFoundError(self.descriptor.label, record_id)

        write = parse_payload(payload, self.descriptor, self.options.languages, self.options.default_language)
        values = merge_values(write, self.descriptor, existing)

        with self._persistence("update"):
            values = self.adapter.derive(values, existing)
            merged = {**existing, **values}
            messages = write.errors + validate_record(merged, self.descriptor, self.options.default_language)
            if not messages:
                messages = self.adapter.validate(merged, values, existing)

        if messages:
            raise ValidationErrors("Failed to update resource.", messages)

        self._stamp(values, creating=False)

        with self._persistence("update"):
            values = self.adapter.prepare(values, existing)
            record = self.adapter.update(record_id, values)

        logger.info(f"Updated {self.name}#{record_id} ({', '.join(sorted(values))})")
        return record

    def delete(self, record_id: Any) -> None:
        """
        Delete a record.

        Raises:
            ForbiddenError: The record is protected (checked first, always)
            ResourceNotFoundError: No such record
            PersistenceError: Store failure
        """
        if self.adapter.is_protected(record_id):
            logger.warning(f"Refused to delete protected {self.name}#{record_id}")
            raise ForbiddenError(self.descriptor.protected_message, code="PROTECTED_RECORD")

        with self._persistence("delete"):
            if self.adapter.get(record_id) is None:
                raise ResourceNotFoundError(self.descriptor.label, record_id)
            deleted = self.adapter.delete(record_id)

        if not deleted:
            raise ResourceNotFoundError(self.descriptor.label, record_id)
        logger.info(f"Deleted {self.name}#{record_id}")

    def _loader(self):
        if self.relation_loader is None:
            return None
        return partial(self.relation_loader, self.descriptor)

    def _stamp(self, values: dict[str, Any], creating: bool) -> None:
        now = utc_timestamp()
        if creating and self.descriptor.get_field("date_add"):
            values["date_add"] = now
        if self.descriptor.get_field("date_upd"):
            values["date_upd"] = now

    # -------------------------------------------------------------------------
    # Shaping
    # -------------------------------------------------------------------------

    def render(self, record: Mapping[str, Any], view: ViewOptions, context: RenderContext) -> dict[str, Any]:
        """
        Shape one record into its response view.

        Only the relations the view will show are loaded.
        """
        config = resolve_rto_config(self.descriptor, view.options, view.include)
        slots = relations_to_load(self.descriptor, view.include, config)

        with self._persistence("load relations of"):
            dto = build_dto(
                dict(record),
                self.descriptor,
                self._loader() if slots else None,
                slots=slots,
                limits=relation_limits(self.descriptor, config),
            )

        rto = build_rto(dto, view.include, config, context)
        rto = self.adapter.extend_rto(rto, record)
        return select_fields(rto, view.fields)

    def list_view(self, query: ListQuery, context: RenderContext) -> dict[str, Any]:
        """List and shape: `{data: [...], pagination: {...}}`."""
        result = self.list(query, context.language)
        with self._persistence("list"):
            records = self.adapter.get_many(result.ids)
        return {
            "data": [self.render(record, query.view, context) for record in records],
            "pagination": query.pagination.info(result.total).to_dict(),
        }

    def get_view(
        self,
        record_id: Any,
        view: ViewOptions,
        context: RenderContext,
        include_inactive: bool = False,
        owner_id: Any = None,
    ) -> dict[str, Any]:
        record = self.get_by_id(record_id, include_inactive=include_inactive, owner_id=owner_id)
        return self.render(record, view, context)
