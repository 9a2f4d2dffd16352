# =============================================================================
# core/models/dto.py - Data Transfer Objects
# =============================================================================
# In-memory shapes produced by the read and write pipelines:
# - Projection / ImageDescriptor: minimal embedded forms of related records
# - Dto: full snapshot of one record plus its resolved relations
# - WriteDto: the fields a write payload actually supplied
#
# All of these are request-scoped and discarded once the response is built.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from core.models.resource import ResourceDescriptor


@dataclass(frozen=True)
class Projection:
    """Minimal embedded form of a related record."""
    id: Any
    # {lang: text} for translatable display fields, plain text otherwise
    name: Any
    active: bool = True


@dataclass(frozen=True)
class ImageDescriptor:
    id: Any
    position: int = 0
    cover: bool = False
    legend: Any = None


@dataclass
class Dto:
    """
    Full internal snapshot of one record.

    Attributes:
        descriptor: Descriptor of the record's resource
        id: Record id
        fields: Non-translatable stored fields (sensitive ones included)
        translations: lang -> field -> text, for translatable fields
        relations: relation name -> Projection | ImageDescriptor | Dto | list
            (None for an unresolved single relation). Nested Dto values never
            carry relations of their own.
    """
    descriptor: ResourceDescriptor
    id: Any
    fields: dict[str, Any] = field(default_factory=dict)
    translations: dict[str, dict[str, Any]] = field(default_factory=dict)
    relations: dict[str, Any] = field(default_factory=dict)

    def translation(self, field_name: str, language: str) -> Any:
        return self.translations.get(language, {}).get(field_name)


@dataclass
class WriteDto:
    """
    Parsed write payload.

    Attributes:
        fields: Supplied non-translatable values, already coerced
        translations: field -> {lang: text} for supplied translations
        errors: Coercion problems, reported as validation messages
    """
    fields: dict[str, Any] = field(default_factory=dict)
    translations: dict[str, dict[str, Any]] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.fields and not self.translations
