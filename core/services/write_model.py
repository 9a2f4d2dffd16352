# =============================================================================
# core/services/write_model.py - Write Payload Parsing, Merge and Validation
# =============================================================================
# payload --parse_payload--> WriteDto --merge_values--> column values
#                                           |
#                                 validate_record(existing + values)
#
# Translatable fields accept three payload spellings, combined in this order:
#   {"name": {"en": "Mug", "fr": "Tasse"}}
#   {"name": "Mug"}                          (default language)
#   {"name_en": "Mug", "name_fr": "Tasse"}
#
# Partial updates: omitted fields keep their stored value, per field and, for
# translatable fields, per language. An empty string for one language also
# keeps the stored text.
# =============================================================================

from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from core.models.dto import WriteDto
from core.models.resource import FieldKind, FieldSpec, ResourceDescriptor
from lib.utils import as_bool


def humanize(name: str) -> str:
    return name.replace("_", " ")


# =============================================================================
# Parsing
# =============================================================================

def parse_payload(
    payload: Mapping[str, Any],
    descriptor: ResourceDescriptor,
    languages: Iterable[str],
    default_language: str,
) -> WriteDto:
    """
    Extract the writable fields a payload supplies.

    Unknown keys, read-only fields and explicit nulls are ignored. Values
    that cannot be coerced to the field kind become error messages.
    """
    languages = tuple(languages)
    write = WriteDto()

    for spec in descriptor.fields:
        if spec.read_only:
            continue

        if spec.kind == FieldKind.LANG:
            texts = _collect_translations(payload, spec.name, languages, default_language)
            if texts:
                write.translations[spec.name] = texts
            continue

        raw = payload.get(spec.name)
        if raw is None:
            continue
        try:
            write.fields[spec.name] = coerce_value(spec, raw)
        except (TypeError, ValueError):
            write.errors.append(f"Invalid {humanize(spec.name)}.")

    return write


def _collect_translations(
    payload: Mapping[str, Any],
    name: str,
    languages: tuple[str, ...],
    default_language: str,
) -> dict[str, str]:
    texts: dict[str, str] = {}
    raw = payload.get(name)

    if isinstance(raw, Mapping):
        for lang, text in raw.items():
            if lang in languages and text is not None:
                texts[lang] = str(text)
    elif isinstance(raw, (str, int, float)) and not isinstance(raw, bool):
        texts[default_language] = str(raw)

    for lang in languages:
        flat = payload.get(f"{name}_{lang}")
        if flat is not None and not isinstance(flat, (Mapping, list)):
            texts[lang] = str(flat)

    return texts


def coerce_value(spec: FieldSpec, raw: Any) -> Any:
    """
    Coerce one payload value to the field kind.

    Raises:
        ValueError / TypeError: If the value does not fit the kind
    """
    kind = spec.kind

    if kind == FieldKind.INT:
        if isinstance(raw, bool):
            raise TypeError("boolean is not an integer")
        if isinstance(raw, float):
            if not raw.is_integer():
                raise ValueError("not an integer")
            return int(raw)
        return int(str(raw).strip())

    if kind in (FieldKind.FLOAT, FieldKind.MONEY):
        if isinstance(raw, bool):
            raise TypeError("boolean is not a number")
        return float(str(raw).strip()) if isinstance(raw, str) else float(raw)

    if kind == FieldKind.BOOL:
        if isinstance(raw, (Mapping, list)):
            raise TypeError("not a boolean")
        return 1 if as_bool(raw) else 0

    if kind == FieldKind.ID_LIST:
        if isinstance(raw, str):
            raw = [part for part in raw.split(",") if part.strip()]
        if not isinstance(raw, (list, tuple)):
            raise TypeError("not a list")
        ids: list[int] = []
        for item in raw:
            if isinstance(item, bool):
                raise TypeError("boolean is not an id")
            value = int(str(item).strip())
            if value not in ids:
                ids.append(value)
        return ids

    if isinstance(raw, (Mapping, list, tuple)):
        raise TypeError("not a scalar")
    return str(raw)


# =============================================================================
# Merge
# =============================================================================

def merge_values(
    write: WriteDto,
    descriptor: ResourceDescriptor,
    existing: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Column values to persist.

    On create (`existing` is None) declared defaults fill omitted fields.
    On update only supplied columns are returned; translatable columns are
    merged per language onto the stored map.
    """
    creating = existing is None
    values: dict[str, Any] = {}

    for spec in descriptor.fields:
        if spec.kind == FieldKind.LANG:
            supplied = write.translations.get(spec.name)
            if supplied is None and not creating:
                continue
            merged = dict((existing or {}).get(spec.name) or {})
            for lang, text in (supplied or {}).items():
                if text == "" and merged.get(lang):
                    continue
                merged[lang] = text
            values[spec.name] = merged
            continue

        if spec.name in write.fields:
            values[spec.name] = write.fields[spec.name]
        elif creating and spec.default is not None:
            values[spec.name] = spec.default

    return values


# =============================================================================
# Validation
# =============================================================================

def validate_record(
    record: Mapping[str, Any],
    descriptor: ResourceDescriptor,
    default_language: str,
) -> list[str]:
    """
    Check a full (merged) record against the descriptor's field rules.

    Returns:
        List of human-readable messages; empty when valid
    """
    messages: list[str] = []
    label = descriptor.label
    lower_label = label.lower()

    for spec in descriptor.fields:
        value = record.get(spec.name)
        name = humanize(spec.name)

        if spec.kind == FieldKind.LANG:
            texts = value or {}
            if spec.required and not texts.get(default_language):
                messages.append(f"{label} {name} is required for the default language.")
            for lang, text in texts.items():
                if text in (None, ""):
                    continue
                if not _text_ok(spec, str(text)):
                    messages.append(f"Invalid {lower_label} {name} for language ISO: {lang}")
            continue

        if value is None or value == "" or value == []:
            if spec.required:
                messages.append(f"{label} {name} is required.")
            continue

        if isinstance(value, str) and not _text_ok(spec, value):
            messages.append(f"Invalid {name}.")
        elif spec.minimum is not None and isinstance(value, (int, float)) and value < spec.minimum:
            messages.append(f"Invalid {name}.")

    return messages


def _text_ok(spec: FieldSpec, text: str) -> bool:
    if spec.max_length is not None and len(text) > spec.max_length:
        return False
    if spec.pattern is not None and not re.fullmatch(spec.pattern, text):
        return False
    return True
