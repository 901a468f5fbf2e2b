from __future__ import annotations

from enum import StrEnum, auto


class GenerationMode(StrEnum):
    """How export metadata is produced.

    ``STATIC`` scans the entry file locally, ``AI`` asks a remote chat-completion
    model through the guarded multi-step protocol.
    """

    STATIC = auto()
    AI = auto()


class ExportKind(StrEnum):
    """Kind of an exported symbol.

    ``TYPE`` covers interfaces, type aliases and any other non-callable declaration.
    """

    FUNCTION = auto()
    CLASS = auto()
    TYPE = auto()


class ProbeFailure(StrEnum):
    """Reasons an auth/liveness probe can fail before the main flow starts."""

    INVALID_CREDENTIALS = auto()
    RATE_LIMITED = auto()


OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "openai/gpt-4o-mini"
DEFAULT_TIMEOUT = 120.0

ENV_API_KEY_KEYS = ("OPEN_ROUTER_API_KEY", "OPENROUTER_API_KEY")
ENV_MODEL_KEYS = ("OPEN_ROUTER_MODEL", "HAYAGRIVA_LLM_MODEL")

JSON_OUTPUT = "llm.package.json"
TXT_OUTPUT = "llm.package.txt"
MANIFEST = "package.json"

EXPORT_BATCH_SIZE = 8
ERROR_SNIPPET_CHARS = 500
HOOK_PREFIX = "use"
FALLBACK_PACKAGE_LABEL = "this package"

# Manifest fields checked in order, then fallback paths relative to the package root.
ENTRY_FIELDS = ("source", "module", "main")
ENTRY_FALLBACKS = ("src/index.ts", "index.ts", "src/index.js", "index.js")

# Top-level keys this tool produces; anything else in an existing file is preserved.
GENERATED_KEYS: frozenset[str] = frozenset(
    {
        "name",
        "version",
        "description",
        "summary",
        "whenToUse",
        "reasonToUse",
        "useCases",
        "sideEffects",
        "keywords",
        "documentation",
        "relatedPackages",
        "exports",
        "hooks",
        "frameworks",
        "generatedBy",
        "mode",
    },
)

# Keys of an export entry with a dedicated field; the rest land in the extras map.
EXPORT_CORE_KEYS = ("type", "description", "hook")
EXPORT_OPTIONAL_STR_KEYS = ("params", "returns", "example")
EXPORT_SIDE_EFFECT_KEY = "sideEffect"

# Overview keys validated by the overview step.
OVERVIEW_REQUIRED_KEYS = ("summary", "sideEffects", "keywords", "frameworks")
OVERVIEW_OPTIONAL_STR_KEYS = ("whenToUse", "documentation")
OVERVIEW_OPTIONAL_LIST_KEYS = ("reasonToUse", "useCases", "relatedPackages")

# Module resolution for relative re-exports, tried in order after the literal path.
MODULE_SUFFIXES = (".ts", ".tsx", ".d.ts", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs")
# TypeScript sources may import their siblings by the compiled name (``./util.js`` for ``util.ts``).
TS_SOURCE_SUFFIXES: dict[str, tuple[str, ...]] = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}
# Parsed with the TSX grammar since they may contain JSX; everything else uses the TypeScript grammar.
JSX_SUFFIXES = frozenset({".tsx", ".jsx", ".js", ".mjs", ".cjs"})
DEFAULT_EXPORT = "default"
