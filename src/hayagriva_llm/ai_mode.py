"""AI mode: guarded multi-step OpenRouter flow.

Steps run strictly in order, one request at a time:

1. list export names only (so the number of steps is known up front),
2. package overview,
3. export details, in batches of :data:`~hayagriva_llm.config.EXPORT_BATCH_SIZE` names.

A progress event follows every step. Any failure aborts the run; there is no
partial result.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from hayagriva_llm.config import EXPORT_BATCH_SIZE, FALLBACK_PACKAGE_LABEL
from hayagriva_llm.logging import logger
from hayagriva_llm.openrouter import CompletionOptions, complete_validated
from hayagriva_llm.schemas import AiModeResult, ExportDescriptor, ExportsBatch, ProgressEvent
from hayagriva_llm.validators import validate_export_names, validate_exports_batch, validate_package_overview

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    import httpx

    ProgressCallback = Callable[[ProgressEvent], None]

STEP_NAMES_PROMPT = """You are a strict metadata generator for Node.js packages. Output ONLY valid JSON, no markdown, no explanation.

Task: From the package manifest (and optional source, and current llm.package.json if provided) list the name of every exported symbol. Names only, no descriptions.

Output schema:
{
  "names": ["exportA", "exportB"]
}

Rules: "names" must be an array of strings. List each name once. Use an empty array if the package exports nothing."""

STEP_OVERVIEW_PROMPT = """You are a strict metadata generator for Node.js packages. Output ONLY valid JSON, no markdown, no explanation.

Task: From the package manifest (and optional source, and current llm.package.json if provided) produce a package-level overview. If current llm.package.json is given, use it as reference and update or refine the sections.

Output schema (summary, sideEffects, keywords and frameworks are required; use an empty array if none):
{
  "summary": "One short paragraph describing what this package does, for IDE search and context.",
  "sideEffects": ["package-level side effects, e.g. patches globals, reads process.env"],
  "keywords": ["search", "terms", "e.g. http, validation, react"],
  "frameworks": ["react", "vue", "etc or empty array"],
  "whenToUse": "optional: one or two sentences on when to pick this package",
  "reasonToUse": ["optional: reasons to choose it over alternatives"],
  "useCases": ["optional: concrete use cases"],
  "documentation": "optional: documentation URL",
  "relatedPackages": ["optional: related or alternative npm packages"]
}

Rules: summary must be 1-4 sentences. Arrays must be string arrays only. Omit optional fields you cannot fill."""

STEP_EXPORTS_BATCH_PROMPT = """You are a strict metadata generator for Node.js packages. Output ONLY valid JSON, no markdown, no explanation.

Task: Describe ONLY the export names listed in the user message. Only these names — do not invent exports outside this list. If current llm.package.json is given, use it as reference and refine the entries.

Output schema:
{
  "exports": {
    "<exportName>": {
      "type": "function" | "class" | "type",
      "description": "One-line summary of what this export does.",
      "hook": false,
      "params": "optional: e.g. url: string, options?: RequestInit",
      "returns": "optional: e.g. Promise<Response> or brief description",
      "sideEffect": false,
      "example": "optional: one-line usage example"
    }
  },
  "hooks": ["useX"]
}

Rules:
- type must be exactly "function", "class", or "type".
- description must be a non-empty string for every export.
- hook: true only for functions whose name starts with "use" (React-style hooks).
- hooks must list exactly those export names (from this batch) where hook is true.
- params, returns, sideEffect, example are optional; omit if not relevant."""


class AiModeInput(BaseModel):
    """What the model gets to see about the package."""

    model_config = ConfigDict(frozen=True)

    package_json_content: str
    entry_path: Path | None = None
    include_src: bool = False
    existing_llm_package_json: str | None = None


def build_user_content(ai_input: AiModeInput) -> str:
    """Build the user message shared by every step.

    The entry source is appended only when ``include_src`` is set and the file is
    readable; an unreadable entry is left out.

    Args:
        ai_input (AiModeInput): Manifest text, entry path and optional existing metadata.

    Returns:
        str: The user message.
    """
    content = "Package manifest:\n" + ai_input.package_json_content
    if ai_input.existing_llm_package_json:
        content += (
            "\n\nCurrent llm.package.json (use as reference; update sections as needed):\n"
            + ai_input.existing_llm_package_json
        )
    if ai_input.include_src and ai_input.entry_path is not None:
        try:
            source = ai_input.entry_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("entry_source_unreadable", path=str(ai_input.entry_path), error=str(e))
        else:
            content += "\n\nEntry file source:\n" + source
    return content


def package_label(package_json_content: str) -> str:
    """Return ``name@version`` from the manifest text, or a generic label if it cannot be read."""
    try:
        manifest = json.loads(package_json_content)
    except json.JSONDecodeError:
        return FALLBACK_PACKAGE_LABEL
    if not isinstance(manifest, dict) or not isinstance(manifest.get("name"), str):
        return FALLBACK_PACKAGE_LABEL
    version = manifest.get("version")
    return f"{manifest['name']}@{version}" if isinstance(version, str) and version else manifest["name"]


def chunk_names(names: Sequence[str], size: int = EXPORT_BATCH_SIZE) -> list[list[str]]:
    """Split ``names`` into consecutive chunks of at most ``size`` (none for an empty list)."""
    return [list(names[i : i + size]) for i in range(0, len(names), size)]


def batch_user_content(base_content: str, label: str, names: Sequence[str]) -> str:
    """Build the user message for one export batch."""
    return (
        f"{base_content}\n\nPackage: {label}\n"
        f"Describe ONLY these export names (JSON array):\n{json.dumps(list(names))}"
    )


def merge_batches(batches: Iterable[ExportsBatch]) -> tuple[dict[str, ExportDescriptor], list[str]]:
    """Union the batches.

    Later batches overwrite duplicate export names; hook names are de-duplicated
    in first-seen order.

    Args:
        batches (Iterable[ExportsBatch]): Validated batches in request order.

    Returns:
        tuple[dict[str, ExportDescriptor], list[str]]: Merged exports and hook names.
    """
    exports: dict[str, ExportDescriptor] = {}
    hooks: list[str] = []
    for batch in batches:
        exports.update(batch.exports)
        for hook in batch.hooks:
            if hook not in hooks:
                hooks.append(hook)
    return exports, hooks


def run_ai_mode(
    ai_input: AiModeInput,
    api_key: str,
    model: str,
    *,
    on_progress: ProgressCallback | None = None,
    client: httpx.Client | None = None,
) -> AiModeResult:
    """Run every AI step in order and merge the results.

    Args:
        ai_input (AiModeInput): What to tell the model about the package.
        api_key (str): OpenRouter API key.
        model (str): OpenRouter model id.
        on_progress (ProgressCallback | None): Called after each step with ``current``/``total``.
        client (httpx.Client | None): HTTP client shared by all steps.

    Returns:
        AiModeResult: Overview plus merged exports and hooks.
    """
    user_content = build_user_content(ai_input)

    def options(system_prompt: str, content: str) -> CompletionOptions:
        return CompletionOptions(api_key=api_key, model=model, system_prompt=system_prompt, user_content=content)

    def report(current: int, total: int, message: str) -> None:
        logger.info("ai_step_completed", current=current, total=total, message=message)
        if on_progress is not None:
            on_progress(ProgressEvent(current=current, total=total, message=message))

    names = complete_validated(
        options(STEP_NAMES_PROMPT, user_content),
        validate_export_names,
        "export-names",
        client=client,
    )
    chunks = chunk_names(names)
    total = 2 + len(chunks)
    report(1, total, f"Listed {len(names)} export names")

    overview = complete_validated(
        options(STEP_OVERVIEW_PROMPT, user_content),
        validate_package_overview,
        "package-overview",
        client=client,
    )
    report(2, total, "Package overview")

    label = package_label(ai_input.package_json_content)
    batches: list[ExportsBatch] = []
    for index, chunk in enumerate(chunks, start=1):
        batch = complete_validated(
            options(STEP_EXPORTS_BATCH_PROMPT, batch_user_content(user_content, label, chunk)),
            validate_exports_batch,
            f"exports-batch-{index}/{len(chunks)}",
            client=client,
        )
        batches.append(batch)
        report(2 + index, total, f"Exports batch {index}/{len(chunks)} ({len(batch.exports)} described)")

    exports, hooks = merge_batches(batches)
    return AiModeResult(overview=overview, exports=exports, hooks=hooks)
