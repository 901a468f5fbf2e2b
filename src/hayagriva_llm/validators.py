"""Guardrails for model responses.

Each validator takes an arbitrary decoded JSON value and either returns a typed
record or raises :class:`ResponseValidationError` naming the offending field.
Package-level fields fail loudly; per-export noise is dropped entry by entry so one
malformed export never voids its siblings.
"""

from __future__ import annotations

from typing import Any

from hayagriva_llm.config import (
    EXPORT_CORE_KEYS,
    EXPORT_OPTIONAL_STR_KEYS,
    EXPORT_SIDE_EFFECT_KEY,
    OVERVIEW_OPTIONAL_LIST_KEYS,
    OVERVIEW_OPTIONAL_STR_KEYS,
    OVERVIEW_REQUIRED_KEYS,
    ExportKind,
)
from hayagriva_llm.exceptions import ResponseValidationError
from hayagriva_llm.logging import logger
from hayagriva_llm.schemas import ExportDescriptor, ExportsBatch, PackageOverview

_EXPORT_KINDS: frozenset[str] = frozenset(ExportKind)
_EXPORT_KNOWN_KEYS: frozenset[str] = frozenset(
    (*EXPORT_CORE_KEYS, *EXPORT_OPTIONAL_STR_KEYS, EXPORT_SIDE_EFFECT_KEY),
)
_OVERVIEW_KNOWN_KEYS: frozenset[str] = frozenset(
    (*OVERVIEW_REQUIRED_KEYS, *OVERVIEW_OPTIONAL_STR_KEYS, *OVERVIEW_OPTIONAL_LIST_KEYS),
)


def is_string_list(value: Any) -> bool:  # noqa: ANN401
    """Return True if ``value`` is a list whose items are all strings (an empty list qualifies)."""
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _require_object(raw: Any) -> dict[str, Any]:  # noqa: ANN401
    if not isinstance(raw, dict):
        msg = "Response must be a JSON object"
        raise ResponseValidationError(msg)
    return raw


def validate_package_overview(raw: Any) -> PackageOverview:  # noqa: ANN401
    """Validate the package overview step.

    ``summary`` must be a string and ``sideEffects``, ``keywords`` and ``frameworks``
    string arrays. The extended fields (``whenToUse``, ``reasonToUse``, ``useCases``,
    ``documentation``, ``relatedPackages``) are dropped when mistyped or blank. Any
    other non-null key is kept in ``extras``.

    Args:
        raw (Any): Decoded JSON returned by the model.

    Raises:
        ResponseValidationError: If the response is not an object or a required field is malformed.

    Returns:
        PackageOverview: The validated overview, with ``summary`` trimmed.
    """
    data = _require_object(raw)
    summary = data.get("summary")
    if not isinstance(summary, str):
        msg = 'Missing or invalid "summary" (must be a string)'
        raise ResponseValidationError(msg)
    for key in OVERVIEW_REQUIRED_KEYS[1:]:
        if not is_string_list(data.get(key)):
            msg = f'"{key}" must be an array of strings'
            raise ResponseValidationError(msg)

    fields: dict[str, Any] = {key: data[key] for key in OVERVIEW_REQUIRED_KEYS[1:]}
    fields["summary"] = summary.strip()
    for key in OVERVIEW_OPTIONAL_STR_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            fields[key] = value.strip()
    for key in OVERVIEW_OPTIONAL_LIST_KEYS:
        value = data.get(key)
        if is_string_list(value):
            fields[key] = value
    fields["extras"] = {
        key: value for key, value in data.items() if key not in _OVERVIEW_KNOWN_KEYS and value is not None
    }
    return PackageOverview.model_validate(fields)


def normalize_export_entry(name: str, value: Any) -> ExportDescriptor | None:  # noqa: ANN401
    """Normalize one entry of an ``exports`` object, or return None to drop it.

    Args:
        name (str): Export name (used for logging only).
        value (Any): The entry as returned by the model.

    Returns:
        ExportDescriptor | None: The normalized entry, or None when it is not an object
            or its ``type`` is not one of ``function``, ``class``, ``type``.
    """
    if not isinstance(value, dict):
        return None
    kind = value.get("type")
    if not isinstance(kind, str) or kind not in _EXPORT_KINDS:
        logger.debug("export_entry_invalid_type", name=name, type=repr(kind))
        return None

    description = value.get("description")
    optional: dict[str, Any] = {
        key: value[key] for key in EXPORT_OPTIONAL_STR_KEYS if isinstance(value.get(key), str)
    }
    side_effect = value.get(EXPORT_SIDE_EFFECT_KEY)
    if isinstance(side_effect, bool):
        optional["side_effect"] = side_effect
    extra = {key: val for key, val in value.items() if key not in _EXPORT_KNOWN_KEYS and val is not None}

    return ExportDescriptor(
        type=ExportKind(kind),
        description=description if isinstance(description, str) else "",
        hook=bool(value.get("hook")),
        extra=extra,
        **optional,
    )


def validate_exports_batch(raw: Any) -> ExportsBatch:  # noqa: ANN401
    """Validate one export-detail batch.

    Args:
        raw (Any): Decoded JSON returned by the model.

    Raises:
        ResponseValidationError: If the response is not an object or ``exports`` is not an object.

    Returns:
        ExportsBatch: The kept entries; ``hooks`` defaults to an empty list when missing or malformed.
    """
    data = _require_object(raw)
    exports = data.get("exports")
    if not isinstance(exports, dict):
        msg = 'Missing or invalid "exports" (must be an object)'
        raise ResponseValidationError(msg)

    kept: dict[str, ExportDescriptor] = {}
    dropped: list[str] = []
    for name, value in exports.items():
        entry = normalize_export_entry(name, value)
        if entry is None:
            dropped.append(name)
        else:
            kept[name] = entry
    if dropped:
        logger.debug("export_entries_dropped", names=dropped)

    hooks = data.get("hooks")
    return ExportsBatch(exports=kept, hooks=hooks if is_string_list(hooks) else [])


def validate_export_names(raw: Any) -> list[str]:  # noqa: ANN401
    """Validate the name-listing step and return the export names.

    Raises:
        ResponseValidationError: If ``names`` is missing or not an array of strings.
    """
    data = _require_object(raw)
    names = data.get("names")
    if not is_string_list(names):
        msg = 'Missing or invalid "names" (must be an array of strings)'
        raise ResponseValidationError(msg)
    return list(names)
