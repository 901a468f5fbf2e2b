"""Static mode: entry-file resolution and export scanning, no API calls.

Sources are parsed with tree-sitter, using the TypeScript grammar (TSX for files
that may contain JSX). Relative re-exports (``export * from``,
``export { x } from``) and local exports of relative imports are followed into
the referenced modules; bare package specifiers are not.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

import tree_sitter_typescript
from tree_sitter import Language, Parser

from hayagriva_llm.config import (
    DEFAULT_EXPORT,
    ENTRY_FALLBACKS,
    ENTRY_FIELDS,
    HOOK_PREFIX,
    JSX_SUFFIXES,
    MODULE_SUFFIXES,
    TS_SOURCE_SUFFIXES,
    ExportKind,
)
from hayagriva_llm.logging import logger
from hayagriva_llm.schemas import ExportDescriptor

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from tree_sitter import Node

_TYPESCRIPT = Language(tree_sitter_typescript.language_typescript())
_TSX = Language(tree_sitter_typescript.language_tsx())

_FUNCTION_NODES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function_signature",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
    },
)
_CLASS_NODES = frozenset({"class_declaration", "abstract_class_declaration", "class"})
_TYPE_NODES = frozenset(
    {"interface_declaration", "type_alias_declaration", "enum_declaration", "internal_module", "module"},
)
_BINDING_NODES = frozenset({"lexical_declaration", "variable_declaration"})
_WRAPPER_NODES = frozenset({"parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression"})


class _Declaration(NamedTuple):
    kind: ExportKind
    description: str


class _Import(NamedTuple):
    specifier: str
    name: str


def is_hook_name(name: str) -> bool:
    """Return True for hook-like names: ``use`` followed by at least one more character."""
    return len(name) > len(HOOK_PREFIX) and name.startswith(HOOK_PREFIX)


def detect_entry_file(manifest: Mapping[str, Any], cwd: Path) -> Path | None:
    """Resolve the package entry file.

    Priority: manifest ``source``, ``module``, ``main``, then ``src/index.ts``,
    ``index.ts``, ``src/index.js``, ``index.js``.

    Args:
        manifest (Mapping[str, Any]): Parsed ``package.json``.
        cwd (Path): Package root.

    Returns:
        Path | None: Absolute path of the first existing candidate, or None.
    """
    for field in ENTRY_FIELDS:
        value = manifest.get(field)
        if isinstance(value, str) and value.strip():
            candidate = (cwd / value.strip()).resolve()
            if candidate.is_file():
                return candidate
    for rel in ENTRY_FALLBACKS:
        candidate = (cwd / rel).resolve()
        if candidate.is_file():
            return candidate
    return None


def resolve_module(importer: Path, specifier: str) -> Path | None:
    """Resolve a relative module specifier the way a TypeScript bundler would.

    Tries the TypeScript source behind a compiled extension (``./a.js`` → ``a.ts``),
    the literal path, the path with each known suffix, then an ``index`` file.

    Args:
        importer (Path): File containing the import or re-export.
        specifier (str): Module specifier as written in the source.

    Returns:
        Path | None: The resolved file, or None for bare specifiers and missing files.
    """
    if not specifier.startswith("."):
        return None
    base = importer.parent / specifier
    candidates = [base.with_suffix(suffix) for suffix in TS_SOURCE_SUFFIXES.get(base.suffix, ())]
    candidates.append(base)
    candidates.extend(base.with_name(base.name + suffix) for suffix in MODULE_SUFFIXES)
    candidates.extend(base / f"index{suffix}" for suffix in MODULE_SUFFIXES)
    for candidate in candidates:
        if candidate.is_file():
            return candidate.resolve()
    return None


def jsdoc_description(comment: str) -> str:
    """Return the description of a ``/** ... */`` block: lines up to the first ``@`` tag, space-joined."""
    lines: list[str] = []
    for raw in comment.removeprefix("/**").removesuffix("*/").splitlines():
        line = raw.strip().lstrip("*").strip()
        if line.startswith("@"):
            break
        if line:
            lines.append(line)
    return " ".join(lines)


def _text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _name(node: Node, source: bytes) -> str:
    return _text(node, source).strip("'\"")


def _leading_jsdoc(node: Node, source: bytes) -> str:
    previous = node.prev_named_sibling
    if previous is None or previous.type != "comment":
        return ""
    text = _text(previous, source)
    return jsdoc_description(text) if text.startswith("/**") else ""


def _value_kind(node: Node | None) -> ExportKind:
    while node is not None and node.type in _WRAPPER_NODES:
        node = node.named_children[0] if node.named_children else None
    if node is None:
        return ExportKind.TYPE
    if node.type in _FUNCTION_NODES:
        return ExportKind.FUNCTION
    if node.type in _CLASS_NODES:
        return ExportKind.CLASS
    return ExportKind.TYPE


def _declared(node: Node, source: bytes, description: str) -> Iterator[tuple[str, _Declaration]]:
    """Yield ``(local name, declaration)`` for every name a declaration node introduces."""
    if node.type == "ambient_declaration":
        for child in node.named_children:
            yield from _declared(child, source, description)
        return
    if node.type in _BINDING_NODES:
        for declarator in node.named_children:
            name = declarator.child_by_field_name("name") if declarator.type == "variable_declarator" else None
            if name is not None and name.type == "identifier":
                kind = _value_kind(declarator.child_by_field_name("value"))
                yield _text(name, source), _Declaration(kind, description)
        return
    name = node.child_by_field_name("name")
    if name is None:
        return
    if node.type in _FUNCTION_NODES:
        kind = ExportKind.FUNCTION
    elif node.type in _CLASS_NODES:
        kind = ExportKind.CLASS
    elif node.type in _TYPE_NODES:
        kind = ExportKind.TYPE
    else:
        return
    yield _name(name, source), _Declaration(kind, description)


def _imports(statement: Node, source: bytes) -> Iterator[tuple[str, _Import]]:
    """Yield ``(local name, import)`` for default and named imports of ``statement``."""
    module = statement.child_by_field_name("source")
    if module is None:
        return
    specifier = _name(module, source)
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                yield _text(part, source), _Import(specifier, DEFAULT_EXPORT)
            elif part.type == "named_imports":
                for item in part.named_children:
                    name = item.child_by_field_name("name") if item.type == "import_specifier" else None
                    if name is None:
                        continue
                    alias = item.child_by_field_name("alias")
                    imported = _name(name, source)
                    yield (_text(alias, source) if alias is not None else imported), _Import(specifier, imported)


class _ExportScanner:
    """Collects the exported declarations of a module graph, parsing each file once."""

    def __init__(self) -> None:
        self._cache: dict[Path, dict[str, _Declaration]] = {}
        self._active: set[Path] = set()

    def exports_of(self, path: Path) -> dict[str, _Declaration]:
        path = path.resolve()
        if path in self._cache:
            return self._cache[path]
        if path in self._active:
            logger.debug("reexport_cycle", path=str(path))
            return {}
        self._active.add(path)
        try:
            exports = self._scan(path)
        finally:
            self._active.discard(path)
        self._cache[path] = exports
        return exports

    def _follow(self, importer: Path, specifier: str) -> dict[str, _Declaration]:
        target = resolve_module(importer, specifier)
        if target is None:
            logger.debug("reexport_unresolved", importer=str(importer), specifier=specifier)
            return {}
        try:
            return self.exports_of(target)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("reexport_unreadable", path=str(target), error=str(e))
            return {}

    def _scan(self, path: Path) -> dict[str, _Declaration]:
        source = path.read_text(encoding="utf-8").encode("utf-8")
        parser = Parser(_TSX if path.suffix in JSX_SUFFIXES else _TYPESCRIPT)
        statements = parser.parse(source).root_node.named_children

        local: dict[str, _Declaration] = {}
        imported: dict[str, _Import] = {}
        for statement in statements:
            if statement.type == "import_statement":
                for name, item in _imports(statement, source):
                    imported.setdefault(name, item)
                continue
            node = statement
            if statement.type == "export_statement":
                node = statement.child_by_field_name("declaration")
                if node is None:
                    continue
            for name, declaration in _declared(node, source, _leading_jsdoc(statement, source)):
                local.setdefault(name, declaration)

        def lookup(name: str) -> _Declaration | None:
            if name in local:
                return local[name]
            item = imported.get(name)
            if item is None:
                return None
            return self._follow(path, item.specifier).get(item.name)

        explicit: dict[str, _Declaration] = {}
        starred: dict[str, _Declaration] = {}
        for statement in statements:
            if statement.type == "export_statement":
                self._collect(statement, source, path, lookup, explicit, starred)

        # Local and named exports shadow names pulled in by ``export *``.
        for name, declaration in starred.items():
            explicit.setdefault(name, declaration)
        return explicit

    def _collect(  # noqa: PLR0913
        self,
        statement: Node,
        source: bytes,
        path: Path,
        lookup: Callable[[str], _Declaration | None],
        explicit: dict[str, _Declaration],
        starred: dict[str, _Declaration],
    ) -> None:
        module = statement.child_by_field_name("source")
        specifier = _name(module, source) if module is not None else None
        kinds = {child.type for child in statement.children}
        description = _leading_jsdoc(statement, source)

        if "default" in kinds:
            declaration = statement.child_by_field_name("declaration")
            value = statement.child_by_field_name("value")
            found: _Declaration | None = None
            if declaration is not None:
                found = next((item for _, item in _declared(declaration, source, description)), None)
            elif value is not None and value.type == "identifier":
                found = lookup(_text(value, source))
            if found is None:
                found = _Declaration(_value_kind(value if value is not None else declaration), description)
            explicit.setdefault(DEFAULT_EXPORT, found)
            return

        declaration = statement.child_by_field_name("declaration")
        if declaration is not None:
            for name, _ in _declared(declaration, source, description):
                explicit.setdefault(name, lookup(name) or _Declaration(ExportKind.TYPE, description))
            return

        for child in statement.named_children:
            if child.type == "namespace_export" and child.named_children:
                explicit.setdefault(_name(child.named_children[0], source), _Declaration(ExportKind.TYPE, description))
                return
            if child.type == "export_clause":
                targets = self._follow(path, specifier) if specifier is not None else None
                for item in child.named_children:
                    name = item.child_by_field_name("name") if item.type == "export_specifier" else None
                    if name is None:
                        continue
                    alias = item.child_by_field_name("alias")
                    local_name = _name(name, source)
                    public = _name(alias, source) if alias is not None else local_name
                    found = targets.get(local_name) if targets is not None else lookup(local_name)
                    if found is None:
                        logger.debug("export_unresolved", name=local_name, path=str(path))
                        continue
                    explicit.setdefault(public, found)
                return

        if "*" in kinds and specifier is not None:
            for name, found in self._follow(path, specifier).items():
                if name != DEFAULT_EXPORT:
                    starred.setdefault(name, found)


def extract_static_exports(entry_path: Path) -> dict[str, ExportDescriptor]:
    """Extract exported functions, classes and types reachable from an entry file.

    Declarations are classified from the syntax tree: functions and function-valued
    bindings are ``function``, classes and class-valued bindings ``class``, anything
    else ``type``. The description is the JSDoc block preceding the declaration, up
    to its first tag. ``export default`` is recorded under ``default``. Relative
    re-exports are followed; ``export *`` never re-exports ``default`` and never
    overrides a name the module exports itself.

    Args:
        entry_path (Path): The entry file.

    Returns:
        dict[str, ExportDescriptor]: Export name to descriptor, in source order, with
            names from ``export *`` last.
    """
    exports: dict[str, ExportDescriptor] = {}
    for name, declaration in _ExportScanner().exports_of(entry_path).items():
        hook = declaration.kind is ExportKind.FUNCTION and is_hook_name(name)
        exports[name] = ExportDescriptor(type=declaration.kind, description=declaration.description, hook=hook)
    return exports


def hooks_from_exports(exports: Mapping[str, ExportDescriptor]) -> list[str]:
    """Return the names of hook exports, sorted."""
    return sorted(name for name, info in exports.items() if info.hook)
