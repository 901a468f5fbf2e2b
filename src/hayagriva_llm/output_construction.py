from __future__ import annotations

import io
import json
from typing import TYPE_CHECKING, Any

from hayagriva_llm.config import GENERATED_KEYS
from hayagriva_llm.schemas import CanonicalMetadata

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from hayagriva_llm.config import GenerationMode
    from hayagriva_llm.schemas import ExportDescriptor, PackageOverview


def build_json_metadata(
    manifest: Mapping[str, Any],
    *,
    exports: Mapping[str, ExportDescriptor],
    hooks: Sequence[str],
    frameworks: Sequence[str],
    mode: GenerationMode,
    generated_by: str,
    overview: PackageOverview | None = None,
    extras: Mapping[str, Any] | None = None,
) -> CanonicalMetadata:
    """Assemble the canonical ``llm.package.json`` structure.

    Identity fields come from the manifest (``name`` defaults to ``unknown``,
    ``version`` to ``0.0.0``, ``description`` to an empty string). Overview fields are
    set only when the overview defines them. Extras are copied only for keys this tool
    does not generate itself, so known fields always win.

    Args:
        manifest (Mapping[str, Any]): Parsed ``package.json``.
        exports (Mapping[str, ExportDescriptor]): Export name to descriptor.
        hooks (Sequence[str]): Hook export names.
        frameworks (Sequence[str]): Frameworks the package targets.
        mode (GenerationMode): Mode that produced the exports.
        generated_by (str): Provenance label, ``hayagriva-llm@<version>``.
        overview (PackageOverview | None): Package overview from AI mode.
        extras (Mapping[str, Any] | None): Additional top-level keys to pass through.

    Returns:
        CanonicalMetadata: The assembled structure.
    """
    name = manifest.get("name")
    version = manifest.get("version")
    description = manifest.get("description")
    fields: dict[str, Any] = {
        "name": name if isinstance(name, str) and name else "unknown",
        "version": version if isinstance(version, str) and version else "0.0.0",
        "description": description if isinstance(description, str) else "",
        "exports": dict(exports),
        "hooks": list(hooks),
        "frameworks": list(frameworks),
        "generated_by": generated_by,
        "mode": mode,
    }
    if overview is not None:
        fields.update(overview.model_dump(exclude={"frameworks", "extras"}, exclude_none=True))
    fields["extras"] = {
        key: value for key, value in (extras or {}).items() if key not in GENERATED_KEYS and value is not None
    }
    return CanonicalMetadata.model_validate(fields)


def merge_with_prior(fresh: CanonicalMetadata, prior: Mapping[str, Any]) -> CanonicalMetadata:
    """Layer a fresh result over a previously written file.

    Every key this tool generates comes from ``fresh``; every other key of ``prior``
    is carried forward unchanged, overwriting a same-named extra of ``fresh``.

    Args:
        fresh (CanonicalMetadata): The structure built in this run.
        prior (Mapping[str, Any]): The decoded existing ``llm.package.json``.

    Returns:
        CanonicalMetadata: The merged structure (``fresh`` is left untouched).
    """
    extras = dict(fresh.extras)
    for key, value in prior.items():
        if key not in GENERATED_KEYS:
            extras[key] = value
    return fresh.model_copy(update={"extras": extras})


def extras_from_overview(overview: PackageOverview) -> dict[str, Any]:
    """Return the extra top-level keys the model added to its overview."""
    return {key: value for key, value in overview.extras.items() if key not in GENERATED_KEYS}


def render_json(meta: CanonicalMetadata) -> str:
    """Render ``llm.package.json``: two-space indent and a trailing newline."""
    return json.dumps(meta.to_dict(), indent=2, ensure_ascii=False) + "\n"


def format_export_line(name: str, info: ExportDescriptor) -> str:
    """Format one bullet of the ``Exports:`` section."""
    line = f"- {name}"
    if info.hook:
        line += " (Hook)"
    if info.description:
        line += f": {info.description}"
    if info.params:
        line += f" — params: {info.params}"
    if info.returns:
        line += f" — returns: {info.returns}"
    if info.side_effect:
        line += " — side effect"
    if info.example:
        line += f" — e.g. {info.example}"
    return line


def _write_block(out: io.StringIO, title: str, body: str | None) -> None:
    if body:
        out.write(f"{title}:\n{body}\n\n")


def _write_bullets(out: io.StringIO, title: str, items: Sequence[str] | None) -> None:
    if items:
        out.write(f"{title}:\n")
        out.writelines(f"- {item}\n" for item in items)
        out.write("\n")


def _write_joined(out: io.StringIO, title: str, items: Sequence[str] | None) -> None:
    if items:
        out.write(f"{title}:\n{', '.join(items)}\n\n")


def build_txt_metadata(meta: CanonicalMetadata) -> str:
    """Render ``llm.package.txt``, a flat text view for crawlers and models.

    Sections always appear in the same order and optional ones are left out when
    empty. Exports are sorted by name regardless of their order in ``meta``.

    Args:
        meta (CanonicalMetadata): The structure to render.

    Returns:
        str: The text, with trailing whitespace trimmed and exactly one final newline.
    """
    out = io.StringIO()
    out.write(f"Package: {meta.name}\n")
    out.write(f"Version: {meta.version}\n\n")
    out.write(f"Description:\n{meta.description or '(none)'}\n\n")

    _write_block(out, "Summary", meta.summary)
    _write_block(out, "When to use", meta.when_to_use)
    _write_bullets(out, "Reason to use", meta.reason_to_use)
    _write_bullets(out, "Use cases", meta.use_cases)
    _write_bullets(out, "Side effects", meta.side_effects)
    _write_joined(out, "Keywords", meta.keywords)
    _write_block(out, "Documentation", meta.documentation)
    _write_joined(out, "Related packages", meta.related_packages)

    out.write("Exports:\n")
    for name in sorted(meta.exports):
        out.write(format_export_line(name, meta.exports[name]) + "\n")
    out.write("\n")

    _write_bullets(out, "Hooks", meta.hooks)
    _write_joined(out, "Frameworks", meta.frameworks)

    return out.getvalue().rstrip() + "\n"
