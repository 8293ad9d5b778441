"""
List key checks: keys that change on every render remount the element.

hookloop/src/hookloop/keys.py
"""

import logging
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from .context import AnalysisContext
from .models import Category, Confidence, DebugInfo, Finding, FindingType, Severity
from .parser import ParsedFile
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    callee,
    callee_name,
    callee_text,
    column_of,
    function_params,
    jsx_attributes,
    line_of,
    node_text,
    unwrap,
    walk,
)
from .utils import make_finding

__all__ = ["RANDOM_GENERATING_CALLS", "RANDOM_GENERATING_OBJECTS", "is_random_call", "check_unstable_keys"]

logger = logging.getLogger(__name__)

RANDOM_GENERATING_CALLS = frozenset(
    {"random", "now", "randomUUID", "uuid", "uuidv4", "v4", "nanoid", "uniqueId", "generateId", "createId", "cuid"}
)
RANDOM_GENERATING_OBJECTS = frozenset(
    {"Math.random", "Date.now", "crypto.randomUUID", "crypto.getRandomValues", "performance.now"}
)
_RANDOM_MEMBER_METHODS = frozenset({"v1", "v4", "randomUUID", "nanoid", "uniqueId"})

_ELEMENTS = ("jsx_opening_element", "jsx_self_closing_element")


def is_random_call(node: Optional[Node]) -> bool:
    """``Math.random()``, ``uuid()``, ``nanoid()``, ``new Date().getTime()`` style values."""
    node = unwrap(node)
    if node is None or node.type != "call_expression":
        return False
    target = callee(node)
    if target is None:
        return False
    if target.type == "identifier":
        return node_text(target) in RANDOM_GENERATING_CALLS
    if target.type == "member_expression":
        if callee_text(node) in RANDOM_GENERATING_OBJECTS:
            return True
        if callee_name(node) in _RANDOM_MEMBER_METHODS:
            return True
        obj = unwrap(target.child_by_field_name("object"))
        return callee_name(node) == "getTime" and obj is not None and obj.type == "new_expression"
    return False


def _random_bindings(root: Node) -> Dict[str, int]:
    bindings = {}
    for node in walk(root):
        if node.type != "variable_declarator":
            continue
        target = node.child_by_field_name("name")
        if target is not None and target.type == "identifier" and is_random_call(node.child_by_field_name("value")):
            bindings[node_text(target)] = line_of(node)
    return bindings


def _map_index_param(attr_owner: Node) -> Optional[str]:
    """Second parameter of the nearest enclosing ``.map`` callback."""
    current = attr_owner.parent
    while current is not None:
        if current.type in FUNCTION_EXPRESSION_TYPES:
            parent = current.parent
            call = parent.parent if parent is not None and parent.type == "arguments" else None
            if call is not None and call.type == "call_expression" and callee_name(call) == "map":
                params = function_params(current)
                if len(params) > 1 and params[1].type == "identifier":
                    return node_text(params[1])
                return None
        current = current.parent
    return None


def _classify(value: Node, random_names: Dict[str, int], index_name: Optional[str]) -> Optional[Tuple[str, str]]:
    """``(error_code, reason)`` for an unstable key expression, searching inside templates and concatenations."""
    stack = [value]
    index_hit = None
    while stack:
        node = unwrap(stack.pop())
        if node is None:
            continue
        if node.type == "object":
            return "RLD-408", "an inline object literal"
        if node.type == "array":
            return "RLD-408", "an inline array literal"
        if is_random_call(node):
            return "RLD-408", f"'{node_text(node)}', which returns a new value on every render"
        if node.type == "identifier":
            name = node_text(node)
            if name in random_names:
                return "RLD-408", f"'{name}', which is generated randomly on every render"
            if index_name is not None and name == index_name:
                index_hit = ("RLD-409", f"the array index '{name}'")
        elif node.type == "template_string":
            for child in node.named_children:
                if child.type == "template_substitution":
                    stack.extend(c for c in child.named_children if c.type != "comment")
        elif node.type == "binary_expression":
            stack.append(node.child_by_field_name("left"))
            stack.append(node.child_by_field_name("right"))
    return index_hit


def check_unstable_keys(parsed: ParsedFile, ctx: AnalysisContext) -> List[Finding]:
    """Flag ``key`` props that change between renders."""
    findings = []
    random_names = _random_bindings(parsed.ast)
    for element in walk(parsed.ast):
        if element.type not in _ELEMENTS:
            continue
        for name, value in jsx_attributes(element):
            if name != "key" or value is None or value.type == "string":
                continue
            index_name = _map_index_param(element) if ctx.options.warn_on_index_key else None
            verdict = _classify(value, random_names, index_name)
            if verdict is None:
                continue
            code, reason = verdict
            via_binding = reason.endswith("generated randomly on every render")
            if code == "RLD-409":
                category, severity = Category.PERFORMANCE, Severity.LOW
                confidence = Confidence.MEDIUM
                explanation = (
                    f"The key is {reason}. Reordering, inserting or removing items reuses the wrong "
                    "element state."
                )
                suggestion = "Use a stable identifier from the item, such as item.id."
            else:
                category, severity = Category.WARNING, Severity.MEDIUM
                confidence = Confidence.MEDIUM if via_binding else Confidence.HIGH
                explanation = (
                    f"The key is {reason}. React sees a different key on every render and remounts "
                    "the element, losing its state and effects."
                )
                suggestion = "Derive the key from stable item data, or generate ids once when the data is created."
            findings.append(
                make_finding(
                    ctx,
                    type=FindingType.POTENTIAL_ISSUE,
                    error_code=code,
                    category=category,
                    severity=severity,
                    confidence=confidence,
                    file=parsed.file,
                    line=line_of(value),
                    column=column_of(value),
                    hook_type="key-prop",
                    problematic_dependency=node_text(value),
                    explanation=explanation,
                    suggestion=suggestion,
                    debug_info=DebugInfo(reason="unstable key prop", dependency_analysis={"key": node_text(value)}),
                )
            )
    return findings
