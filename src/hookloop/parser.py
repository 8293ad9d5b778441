"""
Source parsing for hookloop.

Wraps the tree-sitter TypeScript/TSX grammars and pre-extracts the facts the
analyzers need from every file: hook call sites, import records, the
local-variable dependency map and the components memoized in the file.

hookloop/src/hookloop/parser.py
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Tuple

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser, Tree

from .syntax import (
    call_arguments,
    callee,
    is_named_call,
    is_pascal_case,
    line_of,
    column_of,
    node_text,
    referenced_identifiers,
    string_value,
    unwrap,
    walk,
)

__all__ = [
    "HOOK_TYPES",
    "EFFECT_HOOKS",
    "MEMO_HOOKS",
    "ParseError",
    "HookNode",
    "ImportRecord",
    "ParsedFile",
    "parse_file",
    "parse_source",
]

logger = logging.getLogger(__name__)

EFFECT_HOOKS = frozenset({"useEffect", "useLayoutEffect", "useInsertionEffect"})
MEMO_HOOKS = frozenset({"useCallback", "useMemo"})
HOOK_TYPES = EFFECT_HOOKS | MEMO_HOOKS

_TYPESCRIPT_SUFFIXES = {".ts", ".mts", ".cts"}


class ParseError(Exception):
    """Raised when a source file cannot be read or contains syntax errors."""

    def __init__(self, path: str, message: str, line: int = 0):
        self.path = path
        self.line = line
        self.message = message
        location = f"{path}:{line}" if line else path
        super().__init__(f"{location}: {message}")


@dataclass(frozen=True)
class HookNode:
    """A tracked effect/memoization call site."""

    hook_type: str
    node: Node
    line: int
    column: int
    has_dependency_array: bool
    dependencies: Tuple[str, ...] = ()

    @property
    def callback(self) -> Optional[Node]:
        args = call_arguments(self.node)
        return unwrap(args[0]) if args else None

    @property
    def dependency_nodes(self) -> List[Node]:
        args = call_arguments(self.node)
        if len(args) < 2:
            return []
        deps = unwrap(args[1])
        if deps is None or deps.type != "array":
            return []
        return [unwrap(el) for el in deps.named_children if el.type != "comment"]


@dataclass(frozen=True)
class ImportRecord:
    source: str
    line: int
    default: Optional[str] = None
    namespace: Optional[str] = None
    specifiers: Tuple[Tuple[str, str], ...] = ()  # (imported, local)
    reexport: bool = False

    @property
    def local_names(self) -> List[str]:
        names = [local for _, local in self.specifiers]
        if self.default:
            names.append(self.default)
        if self.namespace:
            names.append(self.namespace)
        return names


@dataclass(frozen=True)
class ParsedFile:
    """Immutable parse result handed to the analyzers."""

    file: str
    content: str
    tree: Tree
    hooks: Tuple[HookNode, ...] = ()
    imports: Tuple[ImportRecord, ...] = ()
    variables: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    local_memoized_components: FrozenSet[str] = frozenset()

    @property
    def ast(self) -> Node:
        return self.tree.root_node

    @property
    def lines(self) -> List[str]:
        return self.content.splitlines()


@lru_cache(maxsize=None)
def _language(name: str) -> Language:
    if name == "typescript":
        return Language(tree_sitter_typescript.language_typescript())
    return Language(tree_sitter_typescript.language_tsx())


def _grammar_for(path: str) -> str:
    return "typescript" if Path(path).suffix.lower() in _TYPESCRIPT_SUFFIXES else "tsx"


def _first_error(root: Node) -> Optional[Node]:
    for node in walk(root):
        if node.type == "ERROR" or node.is_missing:
            return node
    return None


def parse_file(path) -> ParsedFile:
    """Read and parse ``path``.

    Raises:
        ParseError: if the file cannot be read or has syntax errors.
    """
    path_str = str(path)
    try:
        source = Path(path_str).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(path_str, f"cannot read file: {e}") from e
    return parse_source(source, path_str)


def parse_source(source: str, path: str = "<memory>.tsx") -> ParsedFile:
    """Parse ``source`` as if it lived at ``path`` (the suffix picks the grammar)."""
    parser = Parser(_language(_grammar_for(path)))
    tree = parser.parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        error = _first_error(root)
        line = line_of(error) if error is not None else 0
        raise ParseError(path, "syntax error", line)

    return ParsedFile(
        file=path,
        content=source,
        tree=tree,
        hooks=tuple(_extract_hooks(root)),
        imports=tuple(_extract_imports(root)),
        variables=_extract_variables(root),
        local_memoized_components=frozenset(_extract_memoized_components(root)),
    )


def _extract_hooks(root: Node) -> List[HookNode]:
    hooks = []
    for node in walk(root):
        if node.type != "call_expression" or not is_named_call(node, HOOK_TYPES):
            continue
        target = callee(node)
        if target.type == "member_expression":
            hook_type = node_text(target.child_by_field_name("property"))
        else:
            hook_type = node_text(target)
        args = call_arguments(node)
        has_deps = len(args) >= 2
        dependencies: Tuple[str, ...] = ()
        if has_deps:
            deps = unwrap(args[1])
            if deps is not None and deps.type == "array":
                dependencies = tuple(
                    node_text(unwrap(el)) for el in deps.named_children if el.type != "comment"
                )
        hooks.append(
            HookNode(
                hook_type=hook_type,
                node=node,
                line=line_of(node),
                column=column_of(node),
                has_dependency_array=has_deps,
                dependencies=dependencies,
            )
        )
    return hooks


def _extract_imports(root: Node) -> List[ImportRecord]:
    records = []
    for node in root.named_children:
        if node.type == "export_statement" and node.child_by_field_name("source") is not None:
            record = _reexport_record(node)
            if record is not None:
                records.append(record)
            continue
        if node.type != "import_statement":
            continue
        source_node = node.child_by_field_name("source")
        if source_node is None:
            continue
        default = None
        namespace = None
        specifiers: List[Tuple[str, str]] = []
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is not None:
            for child in clause.named_children:
                if child.type == "identifier":
                    default = node_text(child)
                elif child.type == "namespace_import":
                    ident = next((c for c in child.named_children if c.type == "identifier"), None)
                    namespace = node_text(ident) if ident is not None else None
                elif child.type == "named_imports":
                    for spec in child.named_children:
                        if spec.type != "import_specifier":
                            continue
                        name = node_text(spec.child_by_field_name("name"))
                        alias = spec.child_by_field_name("alias")
                        specifiers.append((name, node_text(alias) if alias is not None else name))
        records.append(
            ImportRecord(
                source=string_value(source_node),
                line=line_of(node),
                default=default,
                namespace=namespace,
                specifiers=tuple(specifiers),
            )
        )
    return records


def _reexport_record(node: Node) -> Optional[ImportRecord]:
    """``export { a as b } from './x'`` links the files like an import does."""
    source_node = node.child_by_field_name("source")
    specifiers = []
    clause = next((c for c in node.named_children if c.type == "export_clause"), None)
    if clause is not None:
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            name = node_text(spec.child_by_field_name("name"))
            alias = spec.child_by_field_name("alias")
            specifiers.append((name, node_text(alias) if alias is not None else name))
    return ImportRecord(
        source=string_value(source_node),
        line=line_of(node),
        specifiers=tuple(specifiers),
        reexport=True,
    )


def _extract_variables(root: Node) -> Dict[str, FrozenSet[str]]:
    variables: Dict[str, set] = {}
    for node in walk(root):
        if node.type != "variable_declarator":
            continue
        name = node.child_by_field_name("name")
        value = node.child_by_field_name("value")
        if name is None or value is None or name.type != "identifier":
            continue
        variables.setdefault(node_text(name), set()).update(referenced_identifiers(value))
    return {name: frozenset(refs) for name, refs in variables.items()}


def _extract_memoized_components(root: Node) -> List[str]:
    names = []
    for node in walk(root):
        if node.type != "call_expression" or not is_named_call(node, {"memo"}):
            continue
        parent = node.parent
        while parent is not None and parent.type in ("parenthesized_expression", "as_expression"):
            parent = parent.parent
        if parent is not None and parent.type == "variable_declarator":
            target = parent.child_by_field_name("name")
            if target is not None and is_pascal_case(node_text(target)):
                names.append(node_text(target))
    return names
