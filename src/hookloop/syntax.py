"""
Helpers over tree-sitter nodes for the TSX/TypeScript grammars.

Nodes are re-created by tree-sitter on every access, so identity is never
used: containment goes through byte ranges and node identity through
``node_key``.

hookloop/src/hookloop/syntax.py
"""

import re
from typing import Iterable, Iterator, List, Optional, Tuple

from tree_sitter import Node

__all__ = [
    "FUNCTION_TYPES",
    "FUNCTION_EXPRESSION_TYPES",
    "node_text",
    "line_of",
    "column_of",
    "node_key",
    "contains",
    "unwrap",
    "walk",
    "walk_shallow",
    "ancestors",
    "is_function",
    "function_body",
    "function_params",
    "function_name",
    "callee",
    "callee_name",
    "callee_text",
    "is_named_call",
    "call_arguments",
    "pattern_identifiers",
    "referenced_identifiers",
    "is_pascal_case",
    "is_falsy_literal",
    "is_reset_value",
    "string_value",
    "nodes_equivalent",
    "root_identifier",
    "jsx_attributes",
    "jsx_element_name",
]

FUNCTION_EXPRESSION_TYPES = frozenset(
    {"arrow_function", "function_expression", "function", "generator_function"}
)
FUNCTION_TYPES = FUNCTION_EXPRESSION_TYPES | frozenset(
    {"function_declaration", "generator_function_declaration", "method_definition"}
)

_TRANSPARENT = frozenset(
    {
        "parenthesized_expression",
        "as_expression",
        "satisfies_expression",
        "non_null_expression",
        "type_assertion",
    }
)
_PARAMETER_WRAPPERS = frozenset({"required_parameter", "optional_parameter"})
_PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9_$]*$")


def node_text(node: Optional[Node]) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def line_of(node: Node) -> int:
    """1-based line of the node start."""
    return node.start_point[0] + 1


def column_of(node: Node) -> int:
    return node.start_point[1]


def node_key(node: Node) -> Tuple[int, int, str]:
    return (node.start_byte, node.end_byte, node.type)


def contains(outer: Node, inner: Node) -> bool:
    """True when ``inner`` lies within ``outer`` (inclusive)."""
    return outer.start_byte <= inner.start_byte and inner.end_byte <= outer.end_byte


def unwrap(node: Optional[Node]) -> Optional[Node]:
    """Strip parentheses and TypeScript-only wrappers around an expression."""
    while node is not None and node.type in _TRANSPARENT:
        named = [child for child in node.named_children if child.type != "comment"]
        if not named:
            return node
        # `<T>expr` keeps the expression last, every other wrapper keeps it first
        node = named[-1] if node.type == "type_assertion" else named[0]
    return node


def walk(root: Node) -> Iterator[Node]:
    """Iterative preorder traversal of ``root`` and all its descendants."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def walk_shallow(root: Node) -> Iterator[Node]:
    """Preorder traversal that does not descend into nested functions.

    ``root`` itself is always expanded even when it is a function.
    """
    stack = list(reversed(root.children))
    yield root
    while stack:
        node = stack.pop()
        yield node
        if node.type in FUNCTION_TYPES:
            continue
        stack.extend(reversed(node.children))


def ancestors(node: Node, stop: Optional[Node] = None) -> Iterator[Node]:
    """Yield the parents of ``node``, nearest first, ending at ``stop`` (exclusive)."""
    current = node.parent
    stop_key = node_key(stop) if stop is not None else None
    while current is not None:
        if stop_key is not None and node_key(current) == stop_key:
            return
        yield current
        current = current.parent


def is_function(node: Optional[Node]) -> bool:
    return node is not None and node.type in FUNCTION_TYPES


def function_body(fn: Node) -> Optional[Node]:
    return fn.child_by_field_name("body")


def function_params(fn: Node) -> List[Node]:
    """Parameter pattern nodes of a function, with TypeScript wrappers removed."""
    single = fn.child_by_field_name("parameter")
    if single is not None:
        return [single]
    params = fn.child_by_field_name("parameters")
    if params is None:
        return []
    result = []
    for child in params.named_children:
        if child.type == "comment":
            continue
        if child.type in _PARAMETER_WRAPPERS:
            pattern = child.child_by_field_name("pattern")
            if pattern is not None:
                result.append(pattern)
            continue
        result.append(child)
    return result


def function_name(fn: Node) -> Optional[str]:
    """Name a function is known by: its own name or the declarator it is bound to."""
    name = fn.child_by_field_name("name")
    if name is not None and fn.type != "method_definition":
        return node_text(name)
    parent = fn.parent
    while parent is not None and parent.type in _TRANSPARENT:
        parent = parent.parent
    if parent is not None and parent.type == "variable_declarator":
        target = parent.child_by_field_name("name")
        if target is not None and target.type == "identifier":
            return node_text(target)
    return None


def callee(call: Node) -> Optional[Node]:
    target = call.child_by_field_name("function")
    if target is None:
        target = call.child_by_field_name("constructor")
    return unwrap(target)


def callee_name(call: Node) -> Optional[str]:
    """Identifier name, or the property name of a member callee."""
    target = callee(call)
    if target is None:
        return None
    if target.type == "identifier":
        return node_text(target)
    if target.type == "member_expression":
        prop = target.child_by_field_name("property")
        return node_text(prop) if prop is not None else None
    return None


def callee_text(call: Node) -> str:
    """``name`` or ``object.property`` for a call's callee."""
    target = callee(call)
    if target is None:
        return ""
    if target.type == "member_expression":
        obj = unwrap(target.child_by_field_name("object"))
        prop = target.child_by_field_name("property")
        return f"{node_text(obj)}.{node_text(prop)}"
    return node_text(target)


def is_named_call(node: Optional[Node], names: Iterable[str], namespaces: Iterable[str] = ("React",)) -> bool:
    """Match ``name(...)`` or ``React.name(...)`` for any of ``names``."""
    if node is None or node.type != "call_expression":
        return False
    target = callee(node)
    if target is None:
        return False
    names = set(names)
    if target.type == "identifier":
        return node_text(target) in names
    if target.type == "member_expression":
        obj = unwrap(target.child_by_field_name("object"))
        prop = target.child_by_field_name("property")
        return (
            obj is not None
            and obj.type == "identifier"
            and node_text(obj) in set(namespaces)
            and node_text(prop) in names
        )
    return False


def call_arguments(call: Node) -> List[Node]:
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return [child for child in args.named_children if child.type != "comment"]


def pattern_identifiers(pattern: Optional[Node]) -> List[str]:
    """Expand a (possibly nested) destructuring pattern to its leaf binding names."""
    names: List[str] = []
    if pattern is None:
        return names
    stack = [pattern]
    while stack:
        node = stack.pop()
        kind = node.type
        if kind in ("identifier", "shorthand_property_identifier_pattern"):
            names.append(node_text(node))
        elif kind == "pair_pattern":
            value = node.child_by_field_name("value")
            if value is not None:
                stack.append(value)
        elif kind in ("assignment_pattern", "object_assignment_pattern"):
            left = node.child_by_field_name("left")
            if left is not None:
                stack.append(left)
        elif kind in ("array_pattern", "object_pattern", "rest_pattern") or kind in _PARAMETER_WRAPPERS:
            stack.extend(reversed([c for c in node.named_children if c.type != "comment"]))
    return names


def referenced_identifiers(node: Node) -> List[str]:
    """Identifier names read anywhere inside ``node``."""
    return [node_text(child) for child in walk(node) if child.type == "identifier"]


def is_pascal_case(name: Optional[str]) -> bool:
    return bool(name) and bool(_PASCAL_CASE.match(name))


def string_value(node: Node) -> str:
    raw = node_text(node)
    return raw[1:-1] if len(raw) >= 2 else ""


def is_falsy_literal(node: Optional[Node]) -> bool:
    """``false``, ``0``, ``''``, ``null`` or ``undefined``."""
    node = unwrap(node)
    if node is None:
        return False
    if node.type in ("false", "null", "undefined"):
        return True
    if node.type == "identifier" and node_text(node) == "undefined":
        return True
    if node.type == "number":
        try:
            return float(node_text(node).replace("_", "")) == 0
        except ValueError:
            return False
    if node.type == "string":
        return string_value(node) == ""
    return False


def is_reset_value(node: Optional[Node]) -> bool:
    """Falsy literal or an empty array/object literal."""
    node = unwrap(node)
    if node is None:
        return False
    if node.type in ("array", "object"):
        return not [c for c in node.named_children if c.type != "comment"]
    return is_falsy_literal(node)


def root_identifier(node: Optional[Node]) -> Optional[str]:
    """``user`` for ``user``, ``user.id``, ``user?.profile['x']``."""
    node = unwrap(node)
    while node is not None and node.type in ("member_expression", "subscript_expression"):
        node = unwrap(node.child_by_field_name("object"))
    if node is not None and node.type == "identifier":
        return node_text(node)
    return None


def _subscript_property(node: Node) -> Optional[str]:
    index = unwrap(node.child_by_field_name("index"))
    if index is not None and index.type == "string":
        return string_value(index)
    return None


def nodes_equivalent(a: Optional[Node], b: Optional[Node]) -> bool:
    """Structural equality over identifiers, property accesses and literals.

    ``obj.prop`` and ``obj['prop']`` compare equal in every combination.
    """
    stack = [(a, b)]
    while stack:
        left, right = stack.pop()
        left, right = unwrap(left), unwrap(right)
        if left is None or right is None:
            return False
        lt, rt = left.type, right.type
        if lt == "identifier" and rt == "identifier":
            if node_text(left) != node_text(right):
                return False
            continue
        if lt == "this" and rt == "this":
            continue
        if lt in ("member_expression", "subscript_expression") and rt in (
            "member_expression",
            "subscript_expression",
        ):
            if lt == "subscript_expression" and rt == "subscript_expression":
                stack.append((left.child_by_field_name("index"), right.child_by_field_name("index")))
            else:
                left_prop = (
                    node_text(left.child_by_field_name("property"))
                    if lt == "member_expression"
                    else _subscript_property(left)
                )
                right_prop = (
                    node_text(right.child_by_field_name("property"))
                    if rt == "member_expression"
                    else _subscript_property(right)
                )
                if left_prop is None or left_prop != right_prop:
                    return False
            stack.append((left.child_by_field_name("object"), right.child_by_field_name("object")))
            continue
        if lt != rt:
            return False
        if lt == "number":
            try:
                if float(node_text(left).replace("_", "")) != float(node_text(right).replace("_", "")):
                    return False
            except ValueError:
                return False
            continue
        if lt == "string":
            if string_value(left) != string_value(right):
                return False
            continue
        if lt in ("true", "false", "null", "undefined"):
            continue
        return False
    return True


def jsx_attributes(element: Node) -> List[Tuple[str, Optional[Node]]]:
    """``(name, value)`` pairs of a JSX opening/self-closing element.

    The value is the expression inside ``{...}``, the string node for quoted
    values, or None for bare boolean attributes.
    """
    attributes = []
    for attr in element.named_children:
        if attr.type != "jsx_attribute":
            continue
        parts = [c for c in attr.named_children if c.type != "comment"]
        if not parts:
            continue
        name = node_text(parts[0])
        value = parts[1] if len(parts) > 1 else None
        if value is not None and value.type == "jsx_expression":
            inner = [c for c in value.named_children if c.type != "comment"]
            value = unwrap(inner[0]) if inner else None
        attributes.append((name, value))
    return attributes


def jsx_element_name(element: Node) -> str:
    return node_text(element.child_by_field_name("name"))
