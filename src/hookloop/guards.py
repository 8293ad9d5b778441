"""
Guard classification for conditionals that wrap a state update.

Two variants share the condition matcher: the effect variant stops at the
nearest recognised guard, the render-phase variant keeps searching outward for
a safe derived-state guard. Neither ever approves a shape it does not
recognise.

hookloop/src/hookloop/guards.py
"""

import logging
from typing import List, Optional

from tree_sitter import Node

from .models import GuardedModification, GuardType
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    call_arguments,
    callee_text,
    contains,
    function_body,
    function_params,
    is_falsy_literal,
    is_reset_value,
    node_key,
    node_text,
    nodes_equivalent,
    pattern_identifiers,
    referenced_identifiers,
    root_identifier,
    unwrap,
    walk,
    walk_shallow,
)

__all__ = ["OBJECT_SPREAD_WARNING", "analyze_effect_guard", "analyze_render_guard"]

logger = logging.getLogger(__name__)

OBJECT_SPREAD_WARNING = (
    "Guard checks property of '{state}' but setter creates new object reference. "
    "Even after the property matches, the object reference changes each render, "
    "which may cause issues if other effects or memoized values depend on object identity."
)

_INEQUALITY = ("!==", "!=")
_SHORT_CIRCUIT = ("&&", "||", "??")


def _operator(node: Node) -> str:
    op = node.child_by_field_name("operator")
    return node_text(op) if op is not None else ""


def _is_state(node: Optional[Node], state: str) -> bool:
    node = unwrap(node)
    return node is not None and node.type == "identifier" and node_text(node) == state


def _is_state_member(node: Optional[Node], state: str) -> bool:
    node = unwrap(node)
    return (
        node is not None
        and node.type in ("member_expression", "subscript_expression")
        and root_identifier(node) == state
    )


def _first_argument(call: Node) -> Optional[Node]:
    args = call_arguments(call)
    return unwrap(args[0]) if args else None


def _spreads(node: Node, names) -> bool:
    """True when ``node`` builds a new object/array by spreading any of ``names``."""
    for child in walk_shallow(node):
        if child.type == "spread_element":
            inner = next((c for c in child.named_children if c.type != "comment"), None)
            if root_identifier(inner) in names:
                return True
        elif child.type == "call_expression" and callee_text(child) == "Object.assign":
            if any(root_identifier(arg) in names for arg in call_arguments(child)):
                return True
    return False


def _spreads_state(arg: Optional[Node], state: str) -> bool:
    if arg is None:
        return False
    if arg.type in FUNCTION_EXPRESSION_TYPES:
        params = set()
        for param in function_params(arg):
            params.update(pattern_identifiers(param))
        body = function_body(arg)
        return bool(params) and body is not None and _spreads(body, params | {state})
    return _spreads(arg, {state})


def _guard(setter: str, state: str, kind: GuardType, safe: bool, warning: Optional[str] = None):
    return GuardedModification(
        setter=setter, state_variable=state, guard_type=kind, is_safe=safe, warning=warning
    )


def _match_condition(
    condition: Node, call: Node, setter: str, state: str, derived: bool = False
) -> Optional[GuardedModification]:
    """Classify one ``if`` test, or None when its shape is not recognised."""
    cond = unwrap(condition)
    if cond is None:
        return None
    arg = _first_argument(call)

    if derived and cond.type == "binary_expression" and _operator(cond) in _INEQUALITY:
        left = unwrap(cond.child_by_field_name("left"))
        right = unwrap(cond.child_by_field_name("right"))
        for mine, other in ((left, right), (right, left)):
            if _is_state(mine, state) and arg is not None and nodes_equivalent(arg, other):
                return _guard(setter, state, GuardType.DERIVED_STATE, True)
        simple = ("identifier", "member_expression", "subscript_expression")
        if (
            left is not None
            and right is not None
            and left.type in simple
            and right.type in simple
            and is_reset_value(arg)
        ):
            return _guard(setter, state, GuardType.DERIVED_STATE, True)

    if cond.type == "unary_expression" and _operator(cond) == "!":
        if _is_state(cond.child_by_field_name("argument"), state):
            if derived:
                # render re-runs the test at once, so the new value must be truthy
                if arg is not None and not is_falsy_literal(arg):
                    return _guard(setter, state, GuardType.TOGGLE, True)
            elif arg is None:
                # setState() writes undefined; only a helper call can flip the state
                if callee_text(call) != setter:
                    return _guard(setter, state, GuardType.TOGGLE, True)
            elif not _is_state(arg, state):
                return _guard(setter, state, GuardType.TOGGLE, True)
        return None

    if _is_state(cond, state) and is_falsy_literal(arg):
        return _guard(setter, state, GuardType.TOGGLE, True)

    if cond.type != "binary_expression":
        return None
    op = _operator(cond)
    left = cond.child_by_field_name("left")
    right = cond.child_by_field_name("right")

    if op in _INEQUALITY:
        if _is_state(left, state) or _is_state(right, state):
            return _guard(setter, state, GuardType.EQUALITY, True)
        if _is_state_member(left, state) or _is_state_member(right, state):
            if _spreads_state(arg, state):
                return _guard(
                    setter,
                    state,
                    GuardType.OBJECT_SPREAD_RISK,
                    False,
                    OBJECT_SPREAD_WARNING.format(state=state),
                )
            return _guard(setter, state, GuardType.EQUALITY, True)
        return None

    if op == "&&":
        fallback = None
        for side in (left, right):
            result = _match_condition(side, call, setter, state, derived)
            if result is not None and result.is_safe:
                return result
            fallback = fallback or result
        return fallback
    return None


def _enclosing_conditionals(call: Node, boundary: Optional[Node]) -> List[Optional[Node]]:
    """Conditions guarding ``call``, nearest first.

    A recognisable ``if`` test is returned as its condition node; every other
    kind of conditional (else branch, ternary, short-circuit operand) as None.
    """
    found: List[Optional[Node]] = []
    stop = node_key(boundary) if boundary is not None else None
    child = call
    current = call.parent
    while current is not None and (stop is None or node_key(current) != stop):
        kind = current.type
        if kind == "if_statement":
            consequence = current.child_by_field_name("consequence")
            condition = current.child_by_field_name("condition")
            if consequence is not None and contains(consequence, child):
                found.append(condition)
            elif condition is None or not contains(condition, child):
                found.append(None)
        elif kind == "ternary_expression":
            condition = current.child_by_field_name("condition")
            if condition is None or not contains(condition, child):
                found.append(None)
        elif kind == "binary_expression" and _operator(current) in _SHORT_CIRCUIT:
            right = current.child_by_field_name("right")
            if right is not None and contains(right, child):
                found.append(None)
        elif kind in ("switch_case", "catch_clause"):
            found.append(None)
        child = current
        current = current.parent
    return found


def _is_bare_return(node: Optional[Node]) -> bool:
    if node is None:
        return False
    if node.type == "return_statement":
        return True
    if node.type == "statement_block":
        statements = [c for c in node.named_children if c.type != "comment"]
        return len(statements) == 1 and statements[0].type == "return_statement"
    return False


def _early_return_guard(call: Node, boundary: Optional[Node], state: str) -> bool:
    """``if (<test reading state>) return;`` earlier in an enclosing block."""
    stop = node_key(boundary) if boundary is not None else None
    child = call
    current = call.parent
    while current is not None and (stop is None or node_key(current) != stop):
        if current.type == "statement_block":
            for statement in current.named_children:
                if statement.start_byte >= child.start_byte:
                    break
                if statement.type != "if_statement":
                    continue
                if statement.child_by_field_name("alternative") is not None:
                    continue
                if not _is_bare_return(statement.child_by_field_name("consequence")):
                    continue
                condition = statement.child_by_field_name("condition")
                if condition is not None and state in referenced_identifiers(condition):
                    return True
        child = current
        current = current.parent
    return False


def analyze_effect_guard(
    call: Node, setter: str, state: Optional[str], boundary: Optional[Node] = None
) -> Optional[GuardedModification]:
    """Classify the conditional around a setter call inside an effect body.

    Args:
        call: The setter (or local function) call expression.
        setter: Setter name the call ultimately reaches.
        state: State variable paired with ``setter``.
        boundary: Hook callback node; ancestors at or above it are ignored.

    Returns:
        The recognised guard, an unsafe ``unknown`` guard when the call is
        conditional but no shape matched, or None when nothing encloses it.
    """
    if not state:
        return None
    conditionals = _enclosing_conditionals(call, boundary)
    for condition in conditionals:
        if condition is None:
            continue
        result = _match_condition(condition, call, setter, state)
        if result is not None:
            return result
    if _early_return_guard(call, boundary, state):
        return _guard(setter, state, GuardType.EARLY_RETURN, True)
    if conditionals:
        logger.debug(f"Unrecognised guard around {setter}() at line {call.start_point[0] + 1}")
        return _guard(setter, state, GuardType.UNKNOWN, False)
    return None


def analyze_render_guard(
    call: Node, setter: str, state: Optional[str], boundary: Optional[Node] = None
) -> Optional[GuardedModification]:
    """Render-phase variant: any enclosing safe guard wins, otherwise unsafe."""
    conditionals = _enclosing_conditionals(call, boundary)
    if not conditionals:
        return None
    first_unsafe = None
    for condition in conditionals:
        if condition is None or not state:
            continue
        result = _match_condition(condition, call, setter, state, derived=True)
        if result is None:
            continue
        if result.is_safe:
            return result
        first_unsafe = first_unsafe or result
    return first_unsafe or _guard(setter, state or "", GuardType.UNKNOWN, False)
