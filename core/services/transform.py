# =============================================================================
# core/services/transform.py - DTO / RTO Read Pipeline
# =============================================================================
# record --build_dto--> Dto --build_rto--> JSON-ready dict
#
# build_dto copies the record's own fields and resolves each requested
# relation slot through a relation loader:
#   PROJECTION -> Projection(id, name, active)
#   IMAGE      -> ImageDescriptor
#   NESTED     -> a snapshot Dto of the related record, built without any
#                 loader, so nesting stops at one level
#
# build_rto renders the caller-configurable view:
#   - core fields always (sensitive fields never)
#   - field sections and relations gated by boolean RTO options
#   - `?include=` narrows relations to the named, known ones
#   - translatable fields resolved to the caller's language with a
#     deterministic fallback in declared language order
#   - money as {base, formatted, currency}; 0/1 flags as real booleans
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from core.models.dto import Dto, ImageDescriptor, Projection
from core.models.resource import FieldKind, FieldSpec, RelationPolicy, RelationSlot, ResourceDescriptor
from lib.filters import parse_bool
from lib.utils import as_bool, format_price

logger = logging.getLogger(__name__)

INCLUDE_ALL = "all"
INCLUDE_TRANSLATIONS = "translations"
IMAGE_SIZES = ("small", "medium", "large")

# (slot, owning record, limit) -> (target descriptor, related records)
RelationLoader = Callable[
    [RelationSlot, dict[str, Any], int | None],
    tuple[ResourceDescriptor, list[dict[str, Any]]],
]


@dataclass(frozen=True)
class RenderContext:
    """Per-request rendering inputs."""
    language: str
    languages: tuple[str, ...]
    currency: str = "EUR"
    image_base_url: str = "/img"


# =============================================================================
# DTO
# =============================================================================

def build_dto(
    record: dict[str, Any],
    descriptor: ResourceDescriptor,
    relation_loader: RelationLoader | None = None,
    slots: Iterable[str] | None = None,
    limits: Mapping[str, int] | None = None,
) -> Dto:
    """
    Build the full internal snapshot of a record.

    Args:
        record: Stored record
        descriptor: Resource descriptor of the record
        relation_loader: Loader for related records; None skips relations
        slots: Relation names to resolve (None = all declared)
        limits: Per-relation maximum number of loaded records

    Returns:
        Dto with fields, translations and resolved relations
    """
    dto = _snapshot(record, descriptor)
    if relation_loader is None:
        return dto

    wanted = None if slots is None else set(slots)
    for slot in descriptor.relations:
        if wanted is not None and slot.name not in wanted:
            continue
        limit = (limits or {}).get(slot.name)
        target, related = relation_loader(slot, record, limit)
        dto.relations[slot.name] = _embed(slot, target, related)

    return dto


def _snapshot(record: dict[str, Any], descriptor: ResourceDescriptor) -> Dto:
    """Own fields only. Never resolves relations."""
    fields: dict[str, Any] = {}
    translations: dict[str, dict[str, Any]] = {}

    for spec in descriptor.fields:
        value = record.get(spec.name)
        if spec.kind == FieldKind.LANG:
            for lang, text in (value or {}).items():
                translations.setdefault(lang, {})[spec.name] = text
        else:
            fields[spec.name] = value

    return Dto(
        descriptor=descriptor,
        id=record.get(descriptor.id_field),
        fields=fields,
        translations=translations,
    )


def _embed(slot: RelationSlot, target: ResourceDescriptor, related: list[dict[str, Any]]) -> Any:
    if slot.policy == RelationPolicy.PROJECTION:
        items = [project(record, target) for record in related]
    elif slot.policy == RelationPolicy.IMAGE:
        items = [
            ImageDescriptor(
                id=record.get(target.id_field),
                position=record.get("position") or 0,
                cover=as_bool(record.get("cover")),
                legend=record.get("legend"),
            )
            for record in related
        ]
    else:
        items = [_snapshot(record, target) for record in related]

    if slot.many:
        return items
    return items[0] if items else None


def project(record: dict[str, Any], descriptor: ResourceDescriptor) -> Projection:
    """Minimal projection: id + display name + active flag."""
    active = True
    if descriptor.active_field:
        active = as_bool(record.get(descriptor.active_field, 1))
    return Projection(
        id=record.get(descriptor.id_field),
        name=record.get(descriptor.display_field),
        active=active,
    )


# =============================================================================
# RTO Configuration
# =============================================================================

def resolve_rto_config(
    descriptor: ResourceDescriptor,
    overrides: Mapping[str, Any] | None = None,
    include: Iterable[str] = (),
) -> dict[str, Any]:
    """
    Merge resource defaults with caller overrides.

    Override values arrive as query strings and are coerced to the type of
    the default they replace; values that cannot be coerced are ignored.
    `include=all` switches every boolean option on.
    """
    config = dict(descriptor.rto_defaults)

    for name, raw in (overrides or {}).items():
        if name not in config:
            continue
        config[name] = _coerce_option(config[name], raw)

    if INCLUDE_ALL in set(include):
        for name, value in config.items():
            if isinstance(value, bool):
                config[name] = True

    return config


def _coerce_option(default: Any, raw: Any) -> Any:
    if isinstance(default, bool):
        flag = parse_bool(raw)
        return default if flag is None else flag
    if isinstance(default, int):
        try:
            return max(int(str(raw).strip()), 0)
        except ValueError:
            return default
    if isinstance(default, tuple):
        if isinstance(raw, (list, tuple)):
            raw = ",".join(str(v) for v in raw)
        return tuple(part.strip().lower() for part in str(raw).split(",") if part.strip())
    return raw


def relations_to_load(
    descriptor: ResourceDescriptor,
    include: Iterable[str],
    config: Mapping[str, Any],
) -> tuple[str, ...]:
    """
    Relation slots the RTO will render.

    A non-empty `include` naming known relations selects exactly those;
    unknown names are ignored. Otherwise each slot's option flag decides.
    """
    include = set(include)
    if INCLUDE_ALL in include:
        return tuple(slot.name for slot in descriptor.relations)

    named = include & descriptor.relation_names
    if named:
        return tuple(slot.name for slot in descriptor.relations if slot.name in named)

    return tuple(slot.name for slot in descriptor.relations if config.get(slot.flag))


def relation_limits(descriptor: ResourceDescriptor, config: Mapping[str, Any]) -> dict[str, int]:
    limits = {}
    for slot in descriptor.relations:
        if slot.limit_option and isinstance(config.get(slot.limit_option), int):
            limits[slot.name] = config[slot.limit_option]
    return limits


# =============================================================================
# RTO
# =============================================================================

def build_rto(
    dto: Dto,
    include: Iterable[str],
    config: Mapping[str, Any],
    context: RenderContext,
) -> dict[str, Any]:
    """
    Render the external view of a DTO.

    Args:
        dto: Snapshot built by build_dto
        include: Caller-supplied relation names (`?include=`)
        config: Resolved RTO options (see resolve_rto_config)
        context: Language, declared languages, currency

    Returns:
        JSON-serializable dict
    """
    descriptor = dto.descriptor
    include = tuple(include)
    rto = _render_fields(dto, context, config)

    include_set = set(include)
    wants_translations = (
        bool(config.get("include_translations"))
        or INCLUDE_TRANSLATIONS in include_set
        or INCLUDE_ALL in include_set
    )
    if wants_translations and descriptor.translatable_fields:
        rto["translations"] = render_translations(dto, config.get("languages") or (), context)

    image_size = config.get("image_size") or "large"
    for name in relations_to_load(descriptor, include, config):
        if name not in dto.relations:
            continue
        slot = descriptor.get_relation(name)
        rendered = _render_relation(dto.relations[name], context, image_size)
        if slot.group:
            rto.setdefault(slot.group, {})[name] = rendered
        else:
            rto[name] = rendered

    return rto


def select_fields(rto: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    """Sparse response: keep `id` plus the requested keys."""
    fields = set(fields)
    if not fields:
        return rto
    return {key: value for key, value in rto.items() if key == "id" or key in fields}


def _render_fields(dto: Dto, context: RenderContext, config: Mapping[str, Any]) -> dict[str, Any]:
    rto: dict[str, Any] = {"id": dto.id}
    for spec in dto.descriptor.fields:
        if spec.sensitive:
            continue
        if spec.section and not config.get(spec.section):
            continue
        rto[spec.name] = render_field(dto, spec, context)
    return rto


def render_field(dto: Dto, spec: FieldSpec, context: RenderContext) -> Any:
    """Render one stored field according to its kind."""
    if spec.kind == FieldKind.LANG:
        return resolve_translation(
            {lang: values.get(spec.name) for lang, values in dto.translations.items()},
            context.language,
            context.languages,
        )

    value = dto.fields.get(spec.name)

    if spec.kind == FieldKind.BOOL:
        return as_bool(value) if value is not None else False
    if value is None:
        return None
    if spec.kind == FieldKind.MONEY:
        return {
            "base": float(value),
            "formatted": format_price(value, context.currency, context.language),
            "currency": context.currency,
        }
    if spec.kind == FieldKind.INT:
        return int(value)
    if spec.kind == FieldKind.FLOAT:
        return float(value)
    if spec.kind == FieldKind.ID_LIST:
        return list(value)
    return value


def resolve_translation(
    texts: Mapping[str, Any] | Any,
    language: str,
    languages: Iterable[str],
) -> Any:
    """
    Pick one text from a {lang: text} map.

    The caller's language wins when non-empty; otherwise the first non-empty
    text in declared language order. Plain (non-map) values pass through.
    """
    if not isinstance(texts, Mapping):
        return texts

    preferred = texts.get(language)
    if preferred not in (None, ""):
        return preferred
    for lang in languages:
        text = texts.get(lang)
        if text not in (None, ""):
            return text
    return None


def render_translations(
    dto: Dto,
    requested: Iterable[str],
    context: RenderContext,
) -> dict[str, dict[str, Any]]:
    """lang -> field -> text, restricted to requested declared languages."""
    requested = tuple(requested)
    languages = [
        lang for lang in context.languages
        if not requested or lang in requested
    ]
    return {
        lang: {
            name: dto.translation(name, lang)
            for name in dto.descriptor.translatable_fields
        }
        for lang in languages
    }


def _render_relation(value: Any, context: RenderContext, image_size: str) -> Any:
    if isinstance(value, list):
        return [_render_relation(item, context, image_size) for item in value]

    if isinstance(value, Projection):
        return {
            "id": value.id,
            "name": resolve_translation(value.name, context.language, context.languages),
            "active": value.active,
        }

    if isinstance(value, ImageDescriptor):
        urls = {
            size: f"{context.image_base_url}/{value.id}-{size}_default.jpg"
            for size in IMAGE_SIZES
        }
        return {
            "id": value.id,
            "position": value.position,
            "cover": value.cover,
            "legend": resolve_translation(value.legend, context.language, context.languages),
            "url": urls.get(image_size, urls["large"]),
            "urls": urls,
        }

    if isinstance(value, Dto):
        # Nested snapshots render their core fields only
        return _render_fields(value, context, {})

    return value
