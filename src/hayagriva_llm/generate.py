"""Generation driver: load the manifest, run a mode, write both artifacts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict

from hayagriva_llm import PACKAGE_NAME, __version__
from hayagriva_llm.ai_mode import AiModeInput, run_ai_mode
from hayagriva_llm.config import JSON_OUTPUT, MANIFEST, TXT_OUTPUT, GenerationMode, ProbeFailure
from hayagriva_llm.exceptions import AuthError, ManifestError, MissingApiKeyError
from hayagriva_llm.logging import logger
from hayagriva_llm.openrouter import probe
from hayagriva_llm.output_construction import (
    build_json_metadata,
    build_txt_metadata,
    extras_from_overview,
    merge_with_prior,
    render_json,
)
from hayagriva_llm.static_mode import detect_entry_file, extract_static_exports, hooks_from_exports

if TYPE_CHECKING:
    from hayagriva_llm.ai_mode import ProgressCallback
    from hayagriva_llm.schemas import ExportDescriptor, PackageOverview
    from hayagriva_llm.settings import Settings

AUTH_HINTS: dict[ProbeFailure, str] = {
    ProbeFailure.INVALID_CREDENTIALS: "Check the key passed with --api-key or set in OPEN_ROUTER_API_KEY.",
    ProbeFailure.RATE_LIMITED: (
        "Wait and retry, switch model with --model, or add your own provider key in your OpenRouter settings."
    ),
}


class GenerationReport(BaseModel):
    """What a successful run wrote."""

    model_config = ConfigDict(frozen=True)

    json_path: Path
    txt_path: Path
    json_existed: bool
    txt_existed: bool
    mode: GenerationMode
    export_count: int


def generated_by() -> str:
    """Provenance label written to ``generatedBy``."""
    return f"{PACKAGE_NAME}@{__version__}"


def load_manifest(cwd: Path) -> dict[str, Any]:
    """Load ``package.json`` from ``cwd``.

    Raises:
        ManifestError: If the file is missing, unparsable or not a JSON object.
    """
    path = (cwd / MANIFEST).resolve()
    if not path.is_file():
        msg = f"No package.json found at {path}. Run this command from your package root (where package.json lives)."
        raise ManifestError(msg, path=path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"Failed to load package.json at {path}: {e}"
        raise ManifestError(msg, path=path) from e
    if not isinstance(data, dict):
        msg = f"Failed to load package.json at {path}: expected a JSON object"
        raise ManifestError(msg, path=path)
    return data


def load_existing_meta(json_path: Path) -> dict[str, Any] | None:
    """Load a previously generated ``llm.package.json``; None if absent or unusable."""
    if not json_path.is_file():
        return None
    try:
        data = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("existing_metadata_ignored", path=str(json_path), error=str(e))
        return None
    if not isinstance(data, dict):
        logger.warning("existing_metadata_ignored", path=str(json_path), error="not a JSON object")
        return None
    return data


def write_text_atomic(path: Path, content: str) -> None:
    """Write ``content`` through a sibling temporary file, then replace ``path``."""
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(content, encoding="utf-8")
    tmp.replace(path)


def check_credentials(api_key: str, model: str, *, client: httpx.Client) -> None:
    """Probe the endpoint before the multi-step flow.

    Raises:
        AuthError: If the key is rejected or the model is rate-limited.
    """
    result = probe(api_key, model, client=client)
    if result.ok or result.reason is None:
        return
    if result.reason == ProbeFailure.INVALID_CREDENTIALS:
        msg = f"OpenRouter rejected the API key: {result.message}"
    else:
        msg = f"Model {model} is rate-limited: {result.message}"
    raise AuthError(msg, reason=result.reason.value, hint=AUTH_HINTS[result.reason])


def generate(
    settings: Settings,
    *,
    client: httpx.Client | None = None,
    on_progress: ProgressCallback | None = None,
) -> GenerationReport:
    """Generate ``llm.package.json`` and ``llm.package.txt`` in ``settings.cwd``.

    Both files are rendered first and written only once every step has succeeded.

    Args:
        settings (Settings): Run configuration.
        client (httpx.Client | None): HTTP client for AI mode; one is created from
            ``settings.timeout`` when None.
        on_progress (ProgressCallback | None): Receives one event per AI step.

    Raises:
        ManifestError: If ``package.json`` cannot be loaded.
        MissingApiKeyError: If AI mode has no API key.
        AuthError: If the credential probe fails.

    Returns:
        GenerationReport: Paths written and whether they existed before.
    """
    cwd = settings.cwd.resolve()
    json_path = cwd / JSON_OUTPUT
    txt_path = cwd / TXT_OUTPUT
    existing = load_existing_meta(json_path)
    if existing is not None:
        logger.info("existing_metadata_loaded", path=str(json_path))

    manifest = load_manifest(cwd)
    entry_path = detect_entry_file(manifest, cwd)
    logger.info("entry_detected", entry=str(entry_path) if entry_path else None)

    overview: PackageOverview | None = None
    extras: dict[str, Any] = {}
    frameworks: list[str] = []
    exports: dict[str, ExportDescriptor]
    if settings.mode == GenerationMode.STATIC:
        exports = extract_static_exports(entry_path) if entry_path else {}
        hooks = hooks_from_exports(exports)
    else:
        if not settings.api_key:
            raise MissingApiKeyError
        ai_input = AiModeInput(
            package_json_content=json.dumps(manifest, indent=2, ensure_ascii=False),
            entry_path=entry_path,
            include_src=settings.include_src,
            existing_llm_package_json=json.dumps(existing, indent=2, ensure_ascii=False) if existing else None,
        )
        owned = client is None
        http = client if client is not None else httpx.Client(timeout=settings.timeout)
        try:
            check_credentials(settings.api_key, settings.model, client=http)
            result = run_ai_mode(ai_input, settings.api_key, settings.model, on_progress=on_progress, client=http)
        finally:
            if owned:
                http.close()
        exports = result.exports
        hooks = result.hooks
        overview = result.overview
        frameworks = result.overview.frameworks
        extras = extras_from_overview(result.overview)

    meta = build_json_metadata(
        manifest,
        exports=exports,
        hooks=hooks,
        frameworks=frameworks,
        mode=settings.mode,
        generated_by=generated_by(),
        overview=overview,
        extras=extras,
    )
    if existing is not None:
        meta = merge_with_prior(meta, existing)

    json_text = render_json(meta)
    txt_text = build_txt_metadata(meta)
    report = GenerationReport(
        json_path=json_path,
        txt_path=txt_path,
        json_existed=json_path.exists(),
        txt_existed=txt_path.exists(),
        mode=settings.mode,
        export_count=len(meta.exports),
    )
    write_text_atomic(json_path, json_text)
    write_text_atomic(txt_path, txt_text)
    logger.info("metadata_written", json=str(json_path), txt=str(txt_path), exports=report.export_count)
    return report
