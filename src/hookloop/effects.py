"""
Effect-body analysis: what a hook callback does with tracked state.

The local call graph maps every same-file function to the setters it
eventually reaches; hook bodies are then scanned call by call, separating
unconditional, guarded, deferred and cleanup-phase updates.

hookloop/src/hookloop/effects.py
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Optional, Set, Tuple

import networkx as nx
from tree_sitter import Node

from .context import AnalysisContext
from .guards import analyze_effect_guard
from .models import (
    Category,
    Confidence,
    CrossFileCall,
    DebugInfo,
    Finding,
    FindingType,
    FunctionReference,
    GuardedModification,
    RefMutation,
    Severity,
    StateInteraction,
)
from .parser import HOOK_TYPES, HookNode
from .stability import StabilityFacts
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    FUNCTION_TYPES,
    call_arguments,
    callee,
    callee_name,
    contains,
    function_body,
    is_function,
    is_named_call,
    is_pascal_case,
    line_of,
    node_key,
    node_text,
    unwrap,
    walk,
    walk_shallow,
)
from .utils import make_finding

__all__ = [
    "EVENT_LISTENER_METHODS",
    "ASYNC_CALLBACK_FUNCTIONS",
    "OBSERVER_CONSTRUCTORS",
    "MAX_PROPAGATION_ITERATIONS",
    "LocalFunctionMap",
    "build_local_function_setter_map",
    "analyze_state_interactions",
    "uses_state",
    "detect_effect_without_deps",
]

logger = logging.getLogger(__name__)

EVENT_LISTENER_METHODS = frozenset(
    {
        "addEventListener",
        "addListener",
        "on",
        "once",
        "subscribe",
        "listen",
        "onSnapshot",
        "onAuthStateChanged",
        "onIdTokenChanged",
        "onValue",
        "onChildAdded",
        "onMessage",
        "watch",
        "observe",
    }
)

ASYNC_CALLBACK_FUNCTIONS = EVENT_LISTENER_METHODS | frozenset(
    {
        "setTimeout",
        "setInterval",
        "setImmediate",
        "requestAnimationFrame",
        "requestIdleCallback",
        "queueMicrotask",
        "nextTick",
        "then",
        "catch",
        "finally",
    }
)

OBSERVER_CONSTRUCTORS = frozenset(
    {"MutationObserver", "ResizeObserver", "IntersectionObserver", "PerformanceObserver"}
)

MAX_PROPAGATION_ITERATIONS = 100


def _callee_key(call: Node) -> Optional[str]:
    """``name`` for ``name()``, ``obj.method`` for ``obj.method()``."""
    target = callee(call)
    if target is None:
        return None
    if target.type == "identifier":
        return node_text(target)
    if target.type == "member_expression":
        obj = unwrap(target.child_by_field_name("object"))
        if obj is not None and obj.type == "identifier":
            return f"{node_text(obj)}.{node_text(target.child_by_field_name('property'))}"
    return None


def _is_deferred_receiver(call: Node, ctx: AnalysisContext) -> bool:
    if call.type == "new_expression":
        target = callee(call)
        return target is not None and node_text(target) in OBSERVER_CONSTRUCTORS
    name = callee_name(call)
    if name in ASYNC_CALLBACK_FUNCTIONS:
        return True
    deferred = ctx.options.deferred_functions
    return bool(deferred) and (name in deferred or _callee_key(call) in deferred)


def _is_hook_call(call: Node, ctx: AnalysisContext) -> bool:
    return is_named_call(call, HOOK_TYPES) or ctx.is_custom_hook_name(callee_name(call))


def _receiving_call(fn: Node) -> Optional[Node]:
    """The call a function literal is passed to as an argument, if any."""
    parent = fn.parent
    while parent is not None and parent.type in ("parenthesized_expression", "as_expression"):
        parent = parent.parent
    if parent is None or parent.type != "arguments":
        return None
    call = parent.parent
    if call is None or call.type not in ("call_expression", "new_expression"):
        return None
    return call


def _is_async(fn: Node) -> bool:
    return any(child.type == "async" for child in fn.children)


def _after_await(call: Node, fn: Node) -> bool:
    body = function_body(fn)
    if body is None:
        return False
    for node in walk_shallow(body):
        if node.type == "await_expression" and node.end_byte <= call.end_byte and not contains(node, call):
            return True
    return False


def _scan_calls(
    root: Node, ctx: AnalysisContext, skip: FrozenSet[Tuple[int, int, str]] = frozenset()
) -> Iterator[Tuple[Node, bool]]:
    """Yield ``(call, deferred)`` for every call evaluated as part of ``root``.

    Nested functions listed in ``skip`` and callbacks handed to hooks are not
    entered. Callbacks handed to deferred receivers, and code after an
    ``await``, are reported with ``deferred=True``.
    """
    stack: List[Tuple[Node, bool, Optional[Node]]] = [(root, False, root if _is_async(root) else None)]
    root_key = node_key(root)
    while stack:
        node, deferred, async_fn = stack.pop()
        if node.type in FUNCTION_TYPES and node_key(node) != root_key:
            if node_key(node) in skip:
                continue
            receiver = _receiving_call(node)
            if receiver is not None:
                if receiver.type == "call_expression" and _is_hook_call(receiver, ctx):
                    continue
                if _is_deferred_receiver(receiver, ctx):
                    deferred = True
            async_fn = node if _is_async(node) else None
        elif node.type in ("call_expression", "new_expression"):
            yield node, deferred or (async_fn is not None and _after_await(node, async_fn))
        for child in reversed(node.children):
            stack.append((child, deferred, async_fn))


@dataclass
class LocalFunctionMap:
    """Same-file function definitions and the setters each one reaches."""

    definitions: Dict[str, List[Node]] = field(default_factory=dict)
    reaches: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    deferred: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    graph: nx.DiGraph = field(default_factory=nx.DiGraph)

    @property
    def definition_keys(self) -> FrozenSet[Tuple[int, int, str]]:
        return frozenset(node_key(fn) for nodes in self.definitions.values() for fn in nodes)

    def setters_for(self, name: str) -> FrozenSet[str]:
        return self.reaches.get(name, frozenset())


def _collect_definitions(root: Node, ctx: AnalysisContext) -> Dict[str, List[Node]]:
    definitions: Dict[str, List[Node]] = {}

    def add(name: Optional[str], fn: Node) -> None:
        if not name or is_pascal_case(name.split(".")[-1]) or ctx.is_custom_hook_name(name):
            return
        definitions.setdefault(name, []).append(fn)

    for node in walk(root):
        if node.type in ("function_declaration", "generator_function_declaration"):
            add(node_text(node.child_by_field_name("name")), node)
        elif node.type == "variable_declarator":
            target = node.child_by_field_name("name")
            value = unwrap(node.child_by_field_name("value"))
            if target is None or target.type != "identifier" or value is None:
                continue
            name = node_text(target)
            if value.type in FUNCTION_EXPRESSION_TYPES:
                add(name, value)
            elif value.type == "object":
                for member in value.named_children:
                    if member.type == "method_definition":
                        add(f"{name}.{node_text(member.child_by_field_name('name'))}", member)
                    elif member.type == "pair":
                        fn = unwrap(member.child_by_field_name("value"))
                        if fn is not None and fn.type in FUNCTION_EXPRESSION_TYPES:
                            add(f"{name}.{node_text(member.child_by_field_name('key'))}", fn)
    return definitions


def build_local_function_setter_map(
    root: Node, setters: FrozenSet[str], ctx: AnalysisContext
) -> LocalFunctionMap:
    """Map each local function to the setters it reaches, directly or transitively.

    Propagation iterates to a fixed point over the call graph, bounded by
    ``MAX_PROPAGATION_ITERATIONS`` so mutually recursive helpers terminate.
    """
    result = LocalFunctionMap(definitions=_collect_definitions(root, ctx))
    skip = result.definition_keys
    graph = result.graph
    direct: Dict[str, Set[str]] = {}
    direct_deferred: Dict[str, Set[str]] = {}

    for name, nodes in result.definitions.items():
        graph.add_node(name)
        direct.setdefault(name, set())
        direct_deferred.setdefault(name, set())
        for fn in nodes:
            for call, deferred in _scan_calls(fn, ctx, skip):
                key = _callee_key(call)
                if key in setters:
                    (direct_deferred if deferred else direct)[name].add(key)
                elif key in result.definitions and key != name:
                    if graph.has_edge(name, key):
                        deferred = deferred and graph.edges[name, key]["deferred"]
                    graph.add_edge(name, key, deferred=deferred)
                if _is_deferred_receiver(call, ctx):
                    for arg in call_arguments(call):
                        arg = unwrap(arg)
                        if arg is not None and arg.type == "identifier":
                            ref = node_text(arg)
                            if ref in setters:
                                direct_deferred[name].add(ref)
                            elif ref in result.definitions and ref != name:
                                graph.add_edge(name, ref, deferred=True)

    reaches = {name: set(found) for name, found in direct.items()}
    deferred_reach = {name: set(found) for name, found in direct_deferred.items()}
    for iteration in range(MAX_PROPAGATION_ITERATIONS):
        changed = False
        for name in graph.nodes:
            for target, attrs in graph[name].items():
                if attrs["deferred"]:
                    gained_deferred = (reaches[target] | deferred_reach[target]) - deferred_reach[name]
                    gained = set()
                else:
                    gained = reaches[target] - reaches[name]
                    gained_deferred = deferred_reach[target] - deferred_reach[name]
                if gained:
                    reaches[name] |= gained
                    changed = True
                if gained_deferred:
                    deferred_reach[name] |= gained_deferred
                    changed = True
        if not changed:
            break
    else:
        logger.debug(f"Local call graph propagation stopped after {MAX_PROPAGATION_ITERATIONS} iterations")

    result.reaches = {name: frozenset(found) for name, found in reaches.items() if found}
    result.deferred = {name: frozenset(found) for name, found in deferred_reach.items() if found}
    return result


def uses_state(node: Node, states, variables: Dict[str, FrozenSet[str]]) -> bool:
    """True when ``node`` reads a state variable, directly or through local variables."""
    pending = [node_text(n) for n in walk(node) if n.type in ("identifier", "shorthand_property_identifier")]
    seen: Set[str] = set()
    while pending:
        name = pending.pop()
        if name in seen:
            continue
        seen.add(name)
        if name in states:
            return True
        pending.extend(variables.get(name, ()))
    return False


def _cleanup_nodes(callback: Node, local_map: LocalFunctionMap) -> List[Node]:
    """Closures returned from an effect callback."""
    body = function_body(callback)
    if body is None or body.type != "statement_block":
        return []
    cleanups = []
    for node in walk_shallow(body):
        if node.type != "return_statement":
            continue
        value = next((unwrap(c) for c in node.named_children if c.type != "comment"), None)
        if value is None:
            continue
        if value.type in FUNCTION_EXPRESSION_TYPES:
            cleanups.append(value)
        elif value.type == "identifier":
            cleanups.extend(local_map.definitions.get(node_text(value), ()))
    return cleanups


class _InteractionBuilder:
    def __init__(self, callback, facts, local_map, cross, file_key, ctx, variables):
        self.callback = callback
        self.facts = facts
        self.local_map = local_map
        self.cross = cross
        self.file_key = file_key
        self.ctx = ctx
        self.variables = variables
        self.setter_to_state = facts.setter_to_state
        self.modifications: List[str] = []
        self.conditional: List[str] = []
        self.guarded: List[GuardedModification] = []
        self.functional: List[str] = []
        self.deferred: List[str] = []
        self.cleanup: List[str] = []
        self.references: List[FunctionReference] = []
        self.cross_calls: List[CrossFileCall] = []
        self.indirect: List[Tuple[str, str]] = []

    def _record(self, call: Node, setter: str, in_cleanup: bool) -> None:
        if in_cleanup:
            self.cleanup.append(setter)
            return
        guard = analyze_effect_guard(call, setter, self.setter_to_state.get(setter), self.callback)
        if guard is None:
            self.modifications.append(setter)
        else:
            self.guarded.append(guard)
            if not guard.is_safe:
                self.conditional.append(setter)

    def _references(self, call: Node, in_cleanup: bool) -> None:
        receiver = callee_name(call) or ""
        if call.type == "new_expression":
            receiver = node_text(callee(call))
        if receiver in EVENT_LISTENER_METHODS:
            context = "event-listener"
        elif _is_deferred_receiver(call, self.ctx):
            context = "callback-arg"
        else:
            return
        for arg in call_arguments(call):
            arg = unwrap(arg)
            if arg is None or arg.type not in ("identifier", "member_expression"):
                continue
            name = node_text(arg)
            if name not in self.facts.setters and name not in self.local_map.definitions:
                continue
            self.references.append(FunctionReference(name, context, receiver))
            if in_cleanup:
                continue
            if name in self.facts.setters:
                self.deferred.append(name)
            else:
                self.deferred.extend(self.local_map.setters_for(name))
                self.deferred.extend(self.local_map.deferred.get(name, ()))

    def _cross_file(self, call: Node, key: str, in_cleanup: bool) -> bool:
        if self.cross is None:
            return False
        fact = self.cross.lookup(self.file_key, key)
        if fact is None:
            return False
        matched = False
        for index, arg in enumerate(call_arguments(call)):
            arg = unwrap(arg)
            if arg is None or arg.type != "identifier" or node_text(arg) not in self.facts.setters:
                continue
            depth = fact.setter_params.get(index)
            if depth is None:
                continue
            setter = node_text(arg)
            self.cross_calls.append(
                CrossFileCall(
                    setter=setter,
                    function_name=fact.function_name,
                    source_file=fact.source_file,
                    chain_depth=depth,
                    line=line_of(call),
                )
            )
            self._record(call, setter, in_cleanup)
            matched = True
        return matched

    def build(self) -> StateInteraction:
        cleanups = _cleanup_nodes(self.callback, self.local_map)
        own_key = node_key(self.callback)
        skip = frozenset(k for k in self.local_map.definition_keys if k != own_key)
        for call, deferred in _scan_calls(self.callback, self.ctx, skip):
            in_cleanup = any(contains(c, call) for c in cleanups)
            key = _callee_key(call)
            self._references(call, in_cleanup)
            if key is None:
                continue
            if key in self.facts.setters:
                if deferred:
                    self.deferred.append(key)
                    continue
                first = call_arguments(call)
                if first and unwrap(first[0]).type in FUNCTION_EXPRESSION_TYPES:
                    self.functional.append(key)
                self._record(call, key, in_cleanup)
            elif key in self.local_map.definitions:
                for setter in sorted(self.local_map.setters_for(key)):
                    if deferred:
                        self.deferred.append(setter)
                        continue
                    self.indirect.append((key, setter))
                    self._record(call, setter, in_cleanup)
                self.deferred.extend(self.local_map.deferred.get(key, ()))
            elif not deferred:
                self._cross_file(call, key, in_cleanup)

        states = self.facts.state_bindings
        reads = set()
        ref_mutations = []
        for node in walk(self.callback):
            if node.type == "identifier" and node_text(node) in states:
                parent = node.parent
                if parent is not None and parent.type == "assignment_expression":
                    left = parent.child_by_field_name("left")
                    if left is not None and node_key(left) == node_key(node):
                        continue
                reads.add(node_text(node))
            elif node.type == "assignment_expression":
                mutation = _ref_mutation(node, self.facts, self.variables)
                if mutation is not None:
                    ref_mutations.append(mutation)

        return StateInteraction(
            reads=tuple(sorted(reads)),
            modifications=_unique(self.modifications),
            conditional_modifications=_unique(self.conditional),
            guarded_modifications=tuple(dict.fromkeys(self.guarded)),
            functional_updates=_unique(self.functional),
            deferred_modifications=_unique(self.deferred),
            cleanup_modifications=_unique(self.cleanup),
            ref_mutations=tuple(ref_mutations),
            function_references=tuple(dict.fromkeys(self.references)),
            cross_file_calls=tuple(dict.fromkeys(self.cross_calls)),
            indirect_modifications=tuple(dict.fromkeys(self.indirect)),
        )


def _unique(items: List[str]) -> Tuple[str, ...]:
    return tuple(sorted(set(items)))


def _ref_mutation(node: Node, facts: StabilityFacts, variables) -> Optional[RefMutation]:
    """``ref.current = value`` for a ref created with useRef."""
    left = unwrap(node.child_by_field_name("left"))
    right = node.child_by_field_name("right")
    if left is None or right is None or left.type != "member_expression":
        return None
    obj = unwrap(left.child_by_field_name("object"))
    if obj is None or obj.type != "identifier" or node_text(obj) not in facts.ref_bindings:
        return None
    if node_text(left.child_by_field_name("property")) != "current":
        return None
    return RefMutation(
        ref_name=node_text(obj),
        assigned_value=node_text(right),
        uses_state_value=uses_state(right, facts.state_bindings, variables),
        line=line_of(node),
    )


def analyze_state_interactions(
    callback: Node,
    facts: StabilityFacts,
    local_map: LocalFunctionMap,
    ctx: AnalysisContext,
    cross=None,
    file_key: str = "",
    variables: Optional[Dict[str, FrozenSet[str]]] = None,
) -> StateInteraction:
    """Classify every state-touching construct of one hook callback."""
    if not is_function(callback):
        return StateInteraction()
    return _InteractionBuilder(callback, facts, local_map, cross, file_key, ctx, variables or {}).build()


def detect_effect_without_deps(
    hook: HookNode, interaction: StateInteraction, ctx: AnalysisContext, file: str
) -> List[Finding]:
    """An effect with no dependency array that reaches a setter runs after every render."""
    reached = set(interaction.modifications) | set(interaction.deferred_modifications)
    reached |= {g.setter for g in interaction.guarded_modifications if not g.is_safe}
    if not reached:
        return []
    setter_to_state = {}
    for guard in interaction.guarded_modifications:
        setter_to_state[guard.setter] = guard.state_variable

    direct = sorted(s for s in reached if interaction.via_function(s) is None)
    if direct:
        setter = direct[0]
        confidence = Confidence.HIGH
        explanation = (
            f"{hook.hook_type} has no dependency array and calls '{setter}', so it runs after "
            "every render and each run schedules another render."
        )
    else:
        setter = sorted(reached)[0]
        via = interaction.via_function(setter)
        confidence = Confidence.MEDIUM
        explanation = (
            f"{hook.hook_type} has no dependency array and calls '{via}()', which calls "
            f"'{setter}'. The effect runs after every render and each run schedules another render."
        )
    return [
        make_finding(
            ctx,
            type=FindingType.CONFIRMED_INFINITE_LOOP,
            error_code="RLD-201",
            category=Category.CRITICAL,
            severity=Severity.HIGH,
            confidence=confidence,
            file=file,
            line=hook.line,
            column=hook.column,
            hook_type=hook.hook_type,
            problematic_dependency="(no dependency array)",
            setter_function=setter,
            state_variable=setter_to_state.get(setter),
            explanation=explanation,
            suggestion="Add a dependency array listing the values the effect reads, or [] to run it once.",
            actual_state_modifications=sorted(reached),
            state_reads=interaction.reads,
            debug_info=DebugInfo(
                reason="effect without dependency array reaches a setter",
                state_tracking={"modifications": list(interaction.modifications)},
                deferred_info={"deferred": list(interaction.deferred_modifications)},
                guard_info={g.setter: g.guard_type.value for g in interaction.guarded_modifications},
            ),
        )
    ]
