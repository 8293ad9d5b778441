"""
Render-phase checks: state updates and ref writes that run while a component
renders, outside any hook or event handler.

hookloop/src/hookloop/render_phase.py
"""

import logging
from typing import List, Optional

from tree_sitter import Node

from .context import AnalysisContext
from .effects import LocalFunctionMap, uses_state
from .guards import analyze_render_guard
from .models import Category, Confidence, DebugInfo, Finding, FindingType, Severity
from .parser import ParsedFile
from .stability import StabilityFacts, component_scope_for
from .syntax import (
    FUNCTION_TYPES,
    callee,
    column_of,
    line_of,
    node_text,
    unwrap,
    walk,
    walk_shallow,
)
from .utils import CONDITIONAL_REASON, make_finding

__all__ = ["check_render_phase"]

logger = logging.getLogger(__name__)


def _component_functions(root: Node):
    for node in walk(root):
        if node.type in FUNCTION_TYPES:
            scope = component_scope_for(node)
            if scope is not None:
                yield node, scope


def _setter_finding(ctx, parsed, call, component, setter, state, guard, via=None) -> Finding:
    code = "RLD-101" if via else "RLD-100"
    action = f"calls '{via}()', which calls '{setter}'," if via else f"calls '{setter}'"
    if guard is None:
        return make_finding(
            ctx,
            type=FindingType.CONFIRMED_INFINITE_LOOP,
            error_code=code,
            category=Category.CRITICAL,
            severity=Severity.HIGH,
            confidence=Confidence.MEDIUM if via else Confidence.HIGH,
            file=parsed.file,
            line=line_of(call),
            column=column_of(call),
            hook_type="render",
            problematic_dependency=state or setter,
            state_variable=state,
            setter_function=setter,
            explanation=(
                f"{component.name} {action} while rendering. Updating state during render "
                "schedules another render, which updates state again."
            ),
            suggestion="Move the update into an event handler or a useEffect, or derive the value during render.",
            actual_state_modifications=[setter],
            debug_info=DebugInfo(reason="unconditional setter call in render body", state_tracking={"via": via}),
        )
    return make_finding(
        ctx,
        type=FindingType.POTENTIAL_ISSUE,
        error_code=code,
        category=Category.WARNING,
        severity=Severity.MEDIUM,
        confidence=Confidence.HIGH,
        file=parsed.file,
        line=line_of(call),
        column=column_of(call),
        hook_type="render",
        problematic_dependency=state or setter,
        state_variable=state,
        setter_function=setter,
        explanation=(
            f"{component.name} {action} during render inside a condition that is not "
            "recognised as converging. If the condition stays true after the update, rendering never settles."
        ),
        suggestion="Guard the update with a comparison against the value being set, or move it into a useEffect.",
        actual_state_modifications=[setter],
        debug_info=DebugInfo(
            reason="guarded setter call in render body",
            guard_info={"type": guard.guard_type.value, "safe": guard.is_safe},
        ),
        downgrade_reasons=[CONDITIONAL_REASON],
    )


def check_render_phase(
    parsed: ParsedFile, facts: StabilityFacts, local_map: LocalFunctionMap, ctx: AnalysisContext
) -> List[Finding]:
    """Find setter calls and state-derived ref writes in component render bodies."""
    findings = []
    setter_to_state = facts.setter_to_state
    for fn, component in _component_functions(parsed.ast):
        for node in walk_shallow(fn):
            if node.type == "call_expression":
                target = callee(node)
                if target is None or target.type != "identifier":
                    continue
                name = node_text(target)
                if name in facts.setters:
                    reached = [(name, None)]
                else:
                    reached = [(setter, name) for setter in sorted(local_map.setters_for(name))]
                for setter, via in reached:
                    state = setter_to_state.get(setter)
                    guard = analyze_render_guard(node, setter, state, fn)
                    if guard is not None and guard.is_safe:
                        logger.debug(
                            f"{parsed.file}:{line_of(node)} render-phase {setter}() guarded by {guard.guard_type.value}"
                        )
                        continue
                    findings.append(_setter_finding(ctx, parsed, node, component, setter, state, guard, via))
            elif node.type == "assignment_expression":
                finding = _ref_write(node, parsed, facts, component, ctx)
                if finding is not None:
                    findings.append(finding)
    return findings


def _ref_write(node: Node, parsed: ParsedFile, facts: StabilityFacts, component, ctx) -> Optional[Finding]:
    left = unwrap(node.child_by_field_name("left"))
    right = node.child_by_field_name("right")
    if left is None or right is None or left.type != "member_expression":
        return None
    obj = unwrap(left.child_by_field_name("object"))
    if obj is None or obj.type != "identifier" or node_text(obj) not in facts.ref_bindings:
        return None
    if node_text(left.child_by_field_name("property")) != "current":
        return None
    if not uses_state(right, facts.state_bindings, parsed.variables):
        return None
    ref = node_text(obj)
    return make_finding(
        ctx,
        type=FindingType.POTENTIAL_ISSUE,
        error_code="RLD-600",
        category=Category.WARNING,
        severity=Severity.MEDIUM,
        confidence=Confidence.MEDIUM,
        file=parsed.file,
        line=line_of(node),
        column=column_of(node),
        hook_type="render",
        problematic_dependency=ref,
        explanation=(
            f"{component.name} writes a state-derived value to '{ref}.current' during render. "
            "Render may run more than once per commit, so the ref can hold a value that was never committed."
        ),
        suggestion=f"Update '{ref}.current' inside a useEffect or an event handler.",
        debug_info=DebugInfo(reason="ref mutation with state value during render"),
    )
