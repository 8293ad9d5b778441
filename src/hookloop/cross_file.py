"""
Cross-file analysis: the import graph, its cycles, and which exported
functions invoke a setter handed to them as an argument.

hookloop/src/hookloop/cross_file.py
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

import networkx as nx
from tree_sitter import Node

from .context import AnalysisContext
from .models import CrossFileCycle
from .parser import ParsedFile
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    call_arguments,
    callee,
    function_body,
    function_params,
    node_text,
    unwrap,
    walk,
)

__all__ = [
    "MAX_CHAIN_DEPTH",
    "FunctionFact",
    "CrossFileFacts",
    "build_import_graph",
    "find_cycles",
    "build_cross_file_facts",
]

logger = logging.getLogger(__name__)

MAX_CHAIN_DEPTH = 5
MAX_RELAXATION_ROUNDS = 20


@dataclass(frozen=True)
class FunctionFact:
    """A function that calls one or more of its parameters as setters.

    ``setter_params`` maps parameter index to the length of the call chain
    from the function to the setter invocation (1 = called directly).
    """

    source_file: str
    function_name: str
    setter_params: Dict[int, int] = field(default_factory=dict)


@dataclass
class _LocalFunction:
    name: str
    node: Node
    params: List[Optional[str]]


@dataclass
class CrossFileFacts:
    """Fact table consulted when a component hands its setter to an imported function."""

    graph: nx.DiGraph = field(default_factory=nx.DiGraph)
    cycles: List[CrossFileCycle] = field(default_factory=list)
    functions: Dict[str, Dict[str, FunctionFact]] = field(default_factory=dict)
    local_functions: Dict[str, Set[str]] = field(default_factory=dict)
    exports: Dict[str, Dict[str, str]] = field(default_factory=dict)
    reexports: Dict[str, Dict[str, Tuple[str, str]]] = field(default_factory=dict)
    star_exports: Dict[str, List[str]] = field(default_factory=dict)
    bindings: Dict[str, Dict[str, Tuple[str, str]]] = field(default_factory=dict)
    namespaces: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def resolve_export(self, file: str, exported: str) -> Optional[Tuple[str, str]]:
        """Follow exports and re-exports of ``file`` to ``(defining file, local name)``."""
        pending = [(file, exported)]
        seen: Set[Tuple[str, str]] = set()
        while pending:
            current, name = pending.pop()
            if (current, name) in seen:
                continue
            seen.add((current, name))
            local = self.exports.get(current, {}).get(name)
            if local is not None and local in self.local_functions.get(current, ()):
                return current, local
            target = self.reexports.get(current, {}).get(name)
            if target is not None:
                pending.append(target)
            for star in self.star_exports.get(current, ()):
                pending.append((star, name))
        return None

    def resolve_callee(self, file: str, callee_key: str) -> Optional[Tuple[str, str]]:
        """Function behind ``name(...)`` or ``ns.name(...)`` as called in ``file``."""
        if "." in callee_key:
            ns, _, prop = callee_key.partition(".")
            target = self.namespaces.get(file, {}).get(ns)
            return self.resolve_export(target, prop) if target else None
        if callee_key in self.local_functions.get(file, ()):
            return file, callee_key
        binding = self.bindings.get(file, {}).get(callee_key)
        return self.resolve_export(*binding) if binding else None

    def lookup(self, file: str, callee_key: str) -> Optional[FunctionFact]:
        """Fact for an imported function called from ``file``; same-file calls are not cross-file."""
        target = self.resolve_callee(file, callee_key)
        if target is None or target[0] == file:
            return None
        return self.functions.get(target[0], {}).get(target[1])


def build_import_graph(parsed_files: Mapping[str, ParsedFile], resolver) -> nx.DiGraph:
    """Directed graph of resolved imports between the given files."""
    graph = nx.DiGraph()
    for file in parsed_files:
        graph.add_node(file)
    if resolver is None:
        return graph
    for file, parsed in parsed_files.items():
        for record in parsed.imports:
            target = resolver.resolve(file, record.source)
            if target is None or target not in parsed_files:
                continue
            names = set(record.local_names) | {imported for imported, _ in record.specifiers}
            if graph.has_edge(file, target):
                graph.edges[file, target]["names"] |= names
            else:
                graph.add_edge(file, target, names=names)
    return graph


def find_cycles(graph: nx.DiGraph) -> List[CrossFileCycle]:
    """One record per strongly connected component of two or more files, or a self-import."""
    cycles = []
    for component in nx.strongly_connected_components(graph):
        if len(component) < 2:
            node = next(iter(component))
            if not graph.has_edge(node, node):
                continue
        shared: Set[str] = set()
        for _, _, names in graph.subgraph(component).edges(data="names"):
            shared |= names or set()
        cycles.append(CrossFileCycle(files=tuple(sorted(component)), shared_dependencies=tuple(sorted(shared))))
    cycles.sort(key=lambda c: c.files)
    return cycles


def _local_functions(root: Node) -> Dict[str, _LocalFunction]:
    functions = {}
    for node in walk(root):
        fn = None
        name = None
        if node.type in ("function_declaration", "generator_function_declaration"):
            fn, name = node, node_text(node.child_by_field_name("name"))
        elif node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            value = unwrap(node.child_by_field_name("value"))
            if target is not None and target.type == "identifier" and value is not None:
                if value.type in FUNCTION_EXPRESSION_TYPES:
                    fn, name = value, node_text(target)
        if fn is None or not name or name in functions:
            continue
        params = [node_text(p) if p.type == "identifier" else None for p in function_params(fn)]
        functions[name] = _LocalFunction(name=name, node=fn, params=params)
    return functions


def _exports(root: Node) -> Dict[str, str]:
    """Exported name -> local name for declarations exported by this file itself."""
    exports: Dict[str, str] = {}
    for node in root.named_children:
        if node.type != "export_statement" or node.child_by_field_name("source") is not None:
            continue
        is_default = any(child.type == "default" for child in node.children)
        declaration = node.child_by_field_name("declaration")
        value = unwrap(node.child_by_field_name("value"))
        if declaration is not None:
            if declaration.type in ("function_declaration", "generator_function_declaration"):
                name = node_text(declaration.child_by_field_name("name"))
                exports["default" if is_default else name] = name
            elif declaration.type in ("lexical_declaration", "variable_declaration"):
                for declarator in declaration.named_children:
                    if declarator.type != "variable_declarator":
                        continue
                    target = declarator.child_by_field_name("name")
                    if target is not None and target.type == "identifier":
                        exports[node_text(target)] = node_text(target)
        elif value is not None and value.type == "identifier":
            exports["default"] = node_text(value)
        for clause in node.named_children:
            if clause.type != "export_clause":
                continue
            for spec in clause.named_children:
                if spec.type != "export_specifier":
                    continue
                local = node_text(spec.child_by_field_name("name"))
                alias = spec.child_by_field_name("alias")
                exports[node_text(alias) if alias is not None else local] = local
    return exports


def _delegations(fn: _LocalFunction) -> Tuple[Set[int], List[Tuple[str, int, int]]]:
    """Parameters ``fn`` calls directly, and ``(callee, arg index, param index)`` hand-offs."""
    direct: Set[int] = set()
    handoffs: List[Tuple[str, int, int]] = []
    index_of = {name: i for i, name in enumerate(fn.params) if name}
    body = function_body(fn.node)
    if not index_of or body is None:
        return direct, handoffs
    for node in walk(body):
        if node.type != "call_expression":
            continue
        target = callee(node)
        if target is None:
            continue
        if target.type == "identifier":
            key = node_text(target)
            if key in index_of:
                direct.add(index_of[key])
                continue
        elif target.type == "member_expression":
            obj = unwrap(target.child_by_field_name("object"))
            if obj is None or obj.type != "identifier":
                continue
            key = f"{node_text(obj)}.{node_text(target.child_by_field_name('property'))}"
        else:
            continue
        for arg_index, arg in enumerate(call_arguments(node)):
            arg = unwrap(arg)
            if arg is not None and arg.type == "identifier" and node_text(arg) in index_of:
                handoffs.append((key, arg_index, index_of[node_text(arg)]))
    return direct, handoffs


def _is_updater(ctx: AnalysisContext, name: Optional[str]) -> bool:
    return bool(name) and (ctx.is_updater_param(name) or ctx.is_setter_name(name))


def _index_file(facts: CrossFileFacts, file: str, parsed: ParsedFile, parsed_files, resolver) -> None:
    facts.exports[file] = _exports(parsed.ast)
    bindings: Dict[str, Tuple[str, str]] = {}
    namespaces: Dict[str, str] = {}
    reexports: Dict[str, Tuple[str, str]] = {}
    stars: List[str] = []
    for record in parsed.imports:
        target = resolver.resolve(file, record.source) if resolver is not None else None
        if target is None or target not in parsed_files:
            continue
        if record.reexport:
            if not record.specifiers:
                stars.append(target)
            for imported, exported in record.specifiers:
                reexports[exported] = (target, imported)
            continue
        for imported, local in record.specifiers:
            bindings[local] = (target, imported)
        if record.default:
            bindings[record.default] = (target, "default")
        if record.namespace:
            namespaces[record.namespace] = target
    facts.bindings[file] = bindings
    facts.namespaces[file] = namespaces
    facts.reexports[file] = reexports
    facts.star_exports[file] = stars


def build_cross_file_facts(
    parsed_files: Mapping[str, ParsedFile], resolver, ctx: AnalysisContext
) -> CrossFileFacts:
    """Import graph, cycles and setter-invoking functions for ``parsed_files``.

    Keys of ``parsed_files`` are absolute paths, matching what the resolver
    returns. Chain depths are relaxed iteratively with a round cap, so
    mutually delegating helpers terminate.
    """
    facts = CrossFileFacts(graph=build_import_graph(parsed_files, resolver))
    facts.cycles = find_cycles(facts.graph)

    depth: Dict[Tuple[str, str], Dict[int, int]] = {}
    handoffs: Dict[Tuple[str, str], List[Tuple[str, int, int]]] = {}
    for file, parsed in parsed_files.items():
        functions = _local_functions(parsed.ast)
        facts.local_functions[file] = set(functions)
        _index_file(facts, file, parsed, parsed_files, resolver)
        for name, fn in functions.items():
            if not any(_is_updater(ctx, p) for p in fn.params):
                continue
            direct, calls = _delegations(fn)
            depth[(file, name)] = {i: 1 for i in direct if _is_updater(ctx, fn.params[i])}
            handoffs[(file, name)] = [h for h in calls if _is_updater(ctx, fn.params[h[2]])]

    for _ in range(MAX_RELAXATION_ROUNDS):
        changed = False
        for owner, calls in handoffs.items():
            for key, arg_index, param_index in calls:
                target = facts.resolve_callee(owner[0], key)
                if target is None or target == owner:
                    continue
                inner = depth.get(target, {}).get(arg_index)
                if inner is None or inner >= MAX_CHAIN_DEPTH:
                    continue
                current = depth[owner].get(param_index)
                if current is None or inner + 1 < current:
                    depth[owner][param_index] = inner + 1
                    changed = True
        if not changed:
            break

    for (file, name), params in depth.items():
        if params:
            facts.functions.setdefault(file, {})[name] = FunctionFact(
                source_file=file, function_name=name, setter_params=dict(params)
            )
    logger.debug(
        f"Cross-file facts: {facts.graph.number_of_nodes()} files, {len(facts.cycles)} cycles, "
        f"{sum(len(v) for v in facts.functions.values())} setter-invoking functions"
    )
    return facts
