"""
Stability extraction: which bindings of a file are state, refs, memoized or
recreated on every render.

Call results are classified by an ordered list of independent strategies.
Each strategy answers stable / unstable / don't know; the first definite
answer wins and a call nobody recognises is unstable.

hookloop/src/hookloop/stability.py
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from tree_sitter import Node

from .context import AnalysisContext
from .models import UnstableVariable
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    FUNCTION_TYPES,
    call_arguments,
    callee,
    callee_name,
    callee_text,
    contains,
    is_named_call,
    is_pascal_case,
    line_of,
    node_text,
    pattern_identifiers,
    unwrap,
)

__all__ = [
    "STATE_HOOKS",
    "STABLE_REACT_HOOKS",
    "MODULE_SCOPE",
    "StabilityVerdict",
    "StabilityStrategy",
    "DEFAULT_STRATEGIES",
    "classify_call",
    "ComponentScope",
    "StabilityFacts",
    "component_scope_for",
    "extract_stability",
]

logger = logging.getLogger(__name__)

STATE_HOOKS = frozenset({"useState", "useReducer"})
STABLE_REACT_HOOKS = frozenset({"useRef", "useId"})
MEMO_HOOK_NAMES = frozenset({"useMemo", "useCallback"})
MODULE_SCOPE = "__module__"

STABLE_FUNCTION_CALLS = frozenset({"require", "String", "Number", "Boolean", "parseInt", "parseFloat"})

PRIMITIVE_RETURNING_METHODS = frozenset(
    {
        # strings
        "join", "toString", "toLocaleString", "valueOf", "charAt", "charCodeAt",
        "codePointAt", "substring", "substr", "slice", "trim", "trimStart", "trimEnd",
        "toLowerCase", "toUpperCase", "toLocaleLowerCase", "toLocaleUpperCase",
        "normalize", "padStart", "padEnd", "repeat", "replace", "replaceAll",
        # numbers
        "toFixed", "toExponential", "toPrecision",
        # searches and predicates
        "indexOf", "lastIndexOf", "length", "includes", "startsWith", "endsWith",
        "every", "some",
    }
)
# Map/Set/URLSearchParams/Headers lookups return a stored value for one key;
# with more arguments `.get` is usually an HTTP client returning a new object.
SINGLE_ARGUMENT_LOOKUPS = frozenset({"get", "has"})

PRIMITIVE_RETURNING_STATIC_METHODS: Dict[str, Optional[FrozenSet[str]]] = {
    "Math": None,
    "Number": frozenset({"isFinite", "isInteger", "isNaN", "isSafeInteger", "parseFloat", "parseInt"}),
    "String": frozenset({"fromCharCode", "fromCodePoint"}),
    "Object": frozenset({"is", "hasOwn"}),
    "Array": frozenset({"isArray"}),
    "Date": frozenset({"now", "parse", "UTC"}),
    "JSON": frozenset({"stringify"}),
}


@dataclass(frozen=True)
class StabilityVerdict:
    stable: bool
    source: str

    @property
    def inferred(self) -> bool:
        """True when no strategy recognised the call and the default applied."""
        return self.source == "default"


class StabilityStrategy:
    """One step of the call-result stability precedence chain."""

    name: str = ""

    def classify(self, call: Node, ctx: AnalysisContext, file: str) -> Optional[bool]:
        """Return True (stable), False (unstable) or None (no opinion)."""
        raise NotImplementedError


class StableHookStrategy(StabilityStrategy):
    name = "react-stable-hook"

    def classify(self, call, ctx, file):
        return True if is_named_call(call, STABLE_REACT_HOOKS) else None


class BuiltinCallStrategy(StabilityStrategy):
    name = "builtin-call"

    def classify(self, call, ctx, file):
        target = callee(call)
        if target is not None and target.type == "identifier" and node_text(target) in STABLE_FUNCTION_CALLS:
            return True
        return None


class ConfiguredStabilityStrategy(StabilityStrategy):
    """Explicit lists first (unstable before stable), then regex patterns."""

    name = "config"

    def classify(self, call, ctx, file):
        opts = ctx.options
        names = {n for n in (callee_name(call), callee_text(call)) if n}
        if not names:
            return None
        custom = [opts.custom_functions[n] for n in names if n in opts.custom_functions]
        if names & set(opts.unstable_hooks) or any(entry.stable is False for entry in custom):
            return False
        if names & set(opts.stable_hooks) or any(entry.stable for entry in custom):
            return True
        for pattern in opts.unstable_hook_patterns:
            if any(pattern.search(n) for n in names):
                return False
        for pattern in opts.stable_hook_patterns:
            if any(pattern.search(n) for n in names):
                return True
        return None


class TypeCheckerStrategy(StabilityStrategy):
    name = "type-checker"

    def classify(self, call, ctx, file):
        checker = ctx.type_checker
        name = callee_name(call)
        if checker is None or not name:
            return None
        try:
            info = checker.get_function_return_type(file, line_of(call), name)
        except Exception as e:
            logger.debug(f"Type checker could not resolve {name} at {file}:{line_of(call)}: {e}")
            return None
        return None if info is None else bool(info.is_stable_return)


class CustomHookStrategy(StabilityStrategy):
    """Custom hooks are assumed to return stable values."""

    name = "custom-hook"

    def classify(self, call, ctx, file):
        target = callee(call)
        if target is None:
            return None
        if target.type == "identifier" and ctx.is_custom_hook_name(node_text(target)):
            return True
        return None


class PrimitiveReturnStrategy(StabilityStrategy):
    name = "primitive-return"

    def classify(self, call, ctx, file):
        target = callee(call)
        if target is None or target.type != "member_expression":
            return None
        prop = node_text(target.child_by_field_name("property"))
        obj = unwrap(target.child_by_field_name("object"))
        if prop == "getState":
            return True
        if obj is not None and obj.type == "identifier":
            allowed = PRIMITIVE_RETURNING_STATIC_METHODS.get(node_text(obj), ())
            if allowed is None or prop in allowed:
                return True
        if prop in PRIMITIVE_RETURNING_METHODS:
            return True
        if prop in SINGLE_ARGUMENT_LOOKUPS and len(call_arguments(call)) == 1:
            return True
        return None


DEFAULT_STRATEGIES: Tuple[StabilityStrategy, ...] = (
    StableHookStrategy(),
    BuiltinCallStrategy(),
    ConfiguredStabilityStrategy(),
    TypeCheckerStrategy(),
    CustomHookStrategy(),
    PrimitiveReturnStrategy(),
)


def classify_call(
    call: Node,
    ctx: AnalysisContext,
    file: str = "",
    strategies: Sequence[StabilityStrategy] = DEFAULT_STRATEGIES,
) -> StabilityVerdict:
    """Run the strategies in priority order; unrecognised calls are unstable."""
    for strategy in strategies:
        verdict = strategy.classify(call, ctx, file)
        if verdict is not None:
            return StabilityVerdict(stable=verdict, source=strategy.name)
    return StabilityVerdict(stable=False, source="default")


@dataclass(frozen=True)
class ComponentScope:
    name: str
    start_byte: int
    end_byte: int
    start_line: int
    end_line: int

    def contains(self, node: Node) -> bool:
        return self.start_byte <= node.start_byte and node.end_byte <= self.end_byte


@dataclass(frozen=True)
class StabilityFacts:
    """Everything the extractor proved about one file's bindings."""

    state_bindings: Dict[str, str] = field(default_factory=dict)
    setters: FrozenSet[str] = frozenset()
    ref_bindings: FrozenSet[str] = frozenset()
    unstable_variables: Dict[Tuple[str, str], UnstableVariable] = field(default_factory=dict)
    memoized: Dict[str, FrozenSet[str]] = field(default_factory=dict)
    module_level: FrozenSet[str] = frozenset()
    components: Tuple[ComponentScope, ...] = ()

    @property
    def setter_to_state(self) -> Dict[str, str]:
        return {setter: state for state, setter in self.state_bindings.items()}

    def component_at(self, node: Node) -> Optional[ComponentScope]:
        """Innermost component whose body contains ``node``."""
        best = None
        for scope in self.components:
            if scope.contains(node) and (best is None or scope.start_byte >= best.start_byte):
                best = scope
        return best

    def unstable(self, component: Optional[str], name: str) -> Optional[UnstableVariable]:
        if component is None:
            return None
        return self.unstable_variables.get((component, name))


def component_scope_for(fn: Node) -> Optional[ComponentScope]:
    """Component boundary for a function: named with a capital, directly or via memo/forwardRef."""
    name = None
    if fn.type in ("function_declaration", "generator_function_declaration"):
        ident = fn.child_by_field_name("name")
        name = node_text(ident) if ident is not None else None
    elif fn.type in FUNCTION_EXPRESSION_TYPES:
        parent = _skip_wrappers(fn.parent)
        if parent is not None and parent.type == "arguments":
            call = parent.parent
            if call is not None and is_named_call(call, {"memo", "forwardRef"}):
                parent = _skip_wrappers(call.parent)
        if parent is not None and parent.type == "variable_declarator":
            target = parent.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                name = node_text(target)
    if not is_pascal_case(name):
        return None
    return ComponentScope(
        name=name,
        start_byte=fn.start_byte,
        end_byte=fn.end_byte,
        start_line=fn.start_point[0] + 1,
        end_line=fn.end_point[0] + 1,
    )


def _skip_wrappers(node: Optional[Node]) -> Optional[Node]:
    while node is not None and node.type in (
        "parenthesized_expression",
        "as_expression",
        "satisfies_expression",
        "non_null_expression",
    ):
        node = node.parent
    return node


def _array_pattern_elements(pattern: Node) -> List[Optional[Node]]:
    """Positional elements of an array pattern; holes (``[, b]``) become None."""
    elements: List[Optional[Node]] = [None]
    for child in pattern.children:
        if child.type == ",":
            elements.append(None)
        elif child.is_named and child.type != "comment":
            elements[-1] = child
    return elements


def _initializer_kind(value: Node) -> Optional[str]:
    if value.type == "object":
        return "object"
    if value.type == "array":
        return "array"
    if value.type in FUNCTION_EXPRESSION_TYPES:
        return "function"
    if value.type == "call_expression":
        return "call-result"
    return None


class _Extractor:
    def __init__(self, root: Node, ctx: AnalysisContext, file: str):
        self.root = root
        self.ctx = ctx
        self.file = file
        self.state_bindings: Dict[str, str] = {}
        self.setters: Set[str] = set()
        self.refs: Set[str] = set()
        self.memoized: Dict[str, Set[str]] = {}
        self.module_level: Set[str] = set()
        self.unstable: Dict[Tuple[str, str], UnstableVariable] = {}
        self.components: List[ComponentScope] = []

    def run(self) -> StabilityFacts:
        scopes: List[Tuple[Node, Optional[ComponentScope]]] = []
        stack: List[Tuple[Node, bool]] = [(self.root, False)]
        while stack:
            node, exiting = stack.pop()
            if exiting:
                scopes.pop()
                continue
            if node.type in FUNCTION_TYPES:
                scope = component_scope_for(node)
                if scope is not None:
                    self.components.append(scope)
                scopes.append((node, scope))
                stack.append((node, True))
            elif node.type == "variable_declarator":
                self._visit_declarator(node, scopes)
            for child in reversed(node.children):
                stack.append((child, False))
        self._prune()
        return StabilityFacts(
            state_bindings=dict(self.state_bindings),
            setters=frozenset(self.setters),
            ref_bindings=frozenset(self.refs),
            unstable_variables=dict(self.unstable),
            memoized={k: frozenset(v) for k, v in self.memoized.items()},
            module_level=frozenset(self.module_level),
            components=tuple(self.components),
        )

    def _add_state(self, state: Optional[str], setter: Optional[str]) -> None:
        if setter:
            self.setters.add(setter)
        if state and setter:
            self.state_bindings[state] = setter

    def _visit_declarator(self, node: Node, scopes) -> None:
        target = node.child_by_field_name("name")
        value = unwrap(node.child_by_field_name("value"))
        if target is None or value is None:
            return
        at_module = not scopes
        direct_component = scopes[-1][1] if scopes else None
        component = next((scope for _, scope in reversed(scopes) if scope is not None), None)
        owner = component.name if component is not None else MODULE_SCOPE
        is_call = value.type == "call_expression"

        if target.type == "array_pattern":
            if is_call and self._array_state(target, value):
                return
        elif target.type == "object_pattern":
            if is_call and self._context_state(target, value):
                return
        elif target.type == "identifier":
            name = node_text(target)
            if is_call and is_named_call(value, {"useRef"}):
                self.refs.add(name)
                return
            if is_call and is_named_call(value, MEMO_HOOK_NAMES):
                self.memoized.setdefault(owner, set()).add(name)
                return
            if is_call and is_named_call(value, STATE_HOOKS):
                return
        else:
            return

        names = pattern_identifiers(target)
        if at_module:
            self.module_level.update(names)
            return
        if direct_component is None:
            return

        if target.type == "identifier":
            kind = _initializer_kind(value)
        else:
            kind = "call-result" if is_call else None
        if kind is None:
            return
        inferred = False
        if kind == "call-result":
            if target.type == "object_pattern" and self.ctx.is_custom_hook_name(callee_name(value)):
                return
            verdict = classify_call(value, self.ctx, self.file)
            if verdict.stable:
                logger.debug(f"{self.file}:{line_of(node)} '{node_text(target)}' stable via {verdict.source}")
                return
            inferred = verdict.inferred
        for name in names:
            self.unstable[(direct_component.name, name)] = UnstableVariable(
                name=name,
                kind=kind,
                line=line_of(node),
                owning_component=direct_component.name,
                component_start_line=direct_component.start_line,
                component_end_line=direct_component.end_line,
                inferred=inferred,
            )

    def _array_state(self, target: Node, value: Node) -> bool:
        elements = _array_pattern_elements(target)
        first = elements[0] if elements else None
        second = elements[1] if len(elements) > 1 else None
        state = node_text(first) if first is not None and first.type == "identifier" else None
        setter = node_text(second) if second is not None and second.type == "identifier" else None
        if is_named_call(value, STATE_HOOKS):
            self._add_state(state, setter)
            return True
        if self.ctx.is_custom_hook_name(callee_name(value)) and self.ctx.is_setter_name(setter):
            self._add_state(state, setter)
            return True
        return False

    def _context_state(self, target: Node, value: Node) -> bool:
        if not is_named_call(value, {"useContext"}):
            return False
        names = set(pattern_identifiers(target))
        for name in names:
            if not self.ctx.is_setter_name(name):
                continue
            base = name[3:]
            state = base[:1].lower() + base[1:]
            if state in names:
                self._add_state(state, name)
        return True

    def _prune(self) -> None:
        protected = set(self.state_bindings) | self.setters | self.refs | self.module_level
        for key in list(self.unstable):
            component, name = key
            if name in protected or name in self.memoized.get(component, ()):
                del self.unstable[key]


def extract_stability(root: Node, ctx: AnalysisContext, file: str = "") -> StabilityFacts:
    """Classify every local binding of a file as state, ref, memoized or unstable."""
    return _Extractor(root, ctx, file).run()
