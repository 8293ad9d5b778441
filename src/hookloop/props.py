"""
JSX prop checks: unstable values handed to context providers and memoized
components, and snapshot functions that never return the same value.

hookloop/src/hookloop/props.py
"""

import logging
from typing import List, Optional

from tree_sitter import Node

from .context import AnalysisContext
from .models import Category, Confidence, DebugInfo, Finding, FindingType, Severity
from .parser import ParsedFile
from .stability import StabilityFacts
from .syntax import (
    FUNCTION_EXPRESSION_TYPES,
    call_arguments,
    column_of,
    function_body,
    is_named_call,
    jsx_attributes,
    jsx_element_name,
    line_of,
    node_text,
    unwrap,
    walk,
    walk_shallow,
)
from .utils import make_finding

__all__ = ["check_unstable_props", "check_sync_external_store"]

logger = logging.getLogger(__name__)

_ELEMENTS = ("jsx_opening_element", "jsx_self_closing_element")
_IGNORED_PROPS = frozenset({"key", "ref", "children"})
_INLINE_KINDS = {"object": "an inline object", "array": "an inline array"}


def _describe_unstable(value: Node, element: Node, facts: StabilityFacts) -> Optional[str]:
    if value.type in _INLINE_KINDS:
        return _INLINE_KINDS[value.type]
    if value.type in FUNCTION_EXPRESSION_TYPES:
        return "an inline function"
    if value.type == "identifier":
        component = facts.component_at(element)
        variable = facts.unstable(component.name if component else None, node_text(value))
        if variable is not None:
            return f"'{variable.name}', which is recreated on every render"
    return None


def check_unstable_props(parsed: ParsedFile, facts: StabilityFacts, ctx: AnalysisContext) -> List[Finding]:
    """RLD-404 for Context providers, RLD-405 for components memoized in this file."""
    findings = []
    memoized = parsed.local_memoized_components
    for element in walk(parsed.ast):
        if element.type not in _ELEMENTS:
            continue
        name = jsx_element_name(element)
        is_provider = name.endswith(".Provider")
        if not is_provider and name not in memoized:
            continue
        for prop, value in jsx_attributes(element):
            if value is None or prop in _IGNORED_PROPS or (is_provider and prop != "value"):
                continue
            description = _describe_unstable(value, element, facts)
            if description is None:
                continue
            if is_provider:
                code = "RLD-404"
                explanation = (
                    f"<{name}> receives {description} as value. Every render of the provider "
                    "re-renders all consumers."
                )
                suggestion = "Memoize the context value with useMemo."
            else:
                code = "RLD-405"
                explanation = (
                    f"<{name}> is memoized but prop '{prop}' is {description}, so memo never "
                    "skips a render."
                )
                suggestion = f"Memoize '{prop}' with useMemo or useCallback before passing it."
            findings.append(
                make_finding(
                    ctx,
                    type=FindingType.POTENTIAL_ISSUE,
                    error_code=code,
                    category=Category.PERFORMANCE,
                    severity=Severity.LOW,
                    confidence=Confidence.HIGH,
                    file=parsed.file,
                    line=line_of(value),
                    column=column_of(value),
                    hook_type="jsx-prop",
                    problematic_dependency=prop,
                    explanation=explanation,
                    suggestion=suggestion,
                    debug_info=DebugInfo(reason="unstable JSX prop", dependency_analysis={"element": name}),
                )
            )
    return findings


def _returns_fresh_literal(fn: Node) -> bool:
    body = function_body(fn)
    if body is None:
        return False
    body = unwrap(body)
    if body.type != "statement_block":
        return body.type in ("object", "array")
    for node in walk_shallow(body):
        if node.type == "return_statement":
            value = next((unwrap(c) for c in node.named_children if c.type != "comment"), None)
            if value is not None and value.type in ("object", "array"):
                return True
    return False


def check_sync_external_store(parsed: ParsedFile, ctx: AnalysisContext) -> List[Finding]:
    """RLD-407: an inline getSnapshot that builds a new object each call never settles."""
    findings = []
    for call in walk(parsed.ast):
        if call.type != "call_expression" or not is_named_call(call, {"useSyncExternalStore"}):
            continue
        args = call_arguments(call)
        if len(args) < 2:
            continue
        snapshot = unwrap(args[1])
        if snapshot is None or snapshot.type not in FUNCTION_EXPRESSION_TYPES:
            continue
        if not _returns_fresh_literal(snapshot):
            continue
        findings.append(
            make_finding(
                ctx,
                type=FindingType.CONFIRMED_INFINITE_LOOP,
                error_code="RLD-407",
                category=Category.CRITICAL,
                severity=Severity.HIGH,
                confidence=Confidence.HIGH,
                file=parsed.file,
                line=line_of(call),
                column=column_of(call),
                hook_type="useSyncExternalStore",
                problematic_dependency="getSnapshot",
                explanation=(
                    "getSnapshot returns a new object or array on every call. React compares "
                    "snapshots by identity, sees a change every time and re-renders forever."
                ),
                suggestion="Return a cached value from getSnapshot, or select a primitive.",
                debug_info=DebugInfo(
                    reason="getSnapshot returns a fresh literal",
                    dependency_analysis={"getSnapshot": node_text(snapshot)[:80]},
                ),
            )
        )
    return findings
