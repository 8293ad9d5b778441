"""
Per-hook verdicts over dependency arrays.

hookloop/src/hookloop/dependencies.py
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .context import AnalysisContext
from .models import (
    Category,
    Confidence,
    DebugInfo,
    Finding,
    FindingType,
    GuardType,
    Severity,
    StateInteraction,
    UnstableVariable,
)
from .parser import HookNode
from .stability import StabilityFacts
from .syntax import node_text
from .utils import CHAIN_DEPTH_REASON, CONDITIONAL_REASON, TYPE_INFERENCE_REASON, make_finding

__all__ = [
    "UNSTABLE_KIND_CODES",
    "check_unstable_references",
    "check_effect_loops",
    "check_memo_hook",
]

logger = logging.getLogger(__name__)

UNSTABLE_KIND_CODES = {
    "object": "RLD-400",
    "array": "RLD-401",
    "function": "RLD-402",
    "call-result": "RLD-403",
}

_KIND_TEXT = {
    "object": "an object literal",
    "array": "an array literal",
    "function": "a function",
    "call-result": "the result of a function call",
}

_KIND_SUGGESTION = {
    "object": "Wrap '{name}' in useMemo, move it outside the component, or depend on its primitive fields.",
    "array": "Wrap '{name}' in useMemo, move it outside the component, or depend on its primitive fields.",
    "function": "Wrap '{name}' in useCallback or move it inside the hook body.",
    "call-result": "Wrap the call that creates '{name}' in useMemo or depend on a primitive derived from it.",
}

MAX_DIRECT_CHAIN_DEPTH = 2


def _unstable_dependency(hook: HookNode, facts: StabilityFacts) -> Optional[UnstableVariable]:
    component = facts.component_at(hook.node)
    if component is None:
        return None
    for dep in hook.dependency_nodes:
        if dep is None or dep.type != "identifier":
            continue
        variable = facts.unstable(component.name, node_text(dep))
        if variable is not None:
            return variable
    return None


def check_unstable_references(
    hook: HookNode,
    facts: StabilityFacts,
    interaction: StateInteraction,
    ctx: AnalysisContext,
    file: str,
    is_effect: bool,
) -> Optional[Finding]:
    """Report the first dependency that is recreated on every render, if any."""
    variable = _unstable_dependency(hook, facts)
    if variable is None:
        return None
    name = variable.name
    code = UNSTABLE_KIND_CODES[variable.kind]
    if hook.hook_type == "useCallback" and variable.kind == "function":
        code = "RLD-406"
    reasons = [TYPE_INFERENCE_REASON] if variable.inferred and not ctx.strict else []
    base = (
        f"'{name}' is {_KIND_TEXT[variable.kind]} created on every render of "
        f"{variable.owning_component}, so {hook.hook_type} sees a new dependency each time"
    )
    debug = DebugInfo(
        reason=f"unstable {variable.kind} dependency",
        dependency_analysis={
            "dependency": name,
            "kind": variable.kind,
            "declaredAt": variable.line,
            "component": variable.owning_component,
            "inferred": variable.inferred,
        },
        state_tracking={"modifications": list(interaction.modifications)},
    )
    common = dict(
        file=file,
        line=hook.line,
        column=hook.column,
        hook_type=hook.hook_type,
        problematic_dependency=name,
        suggestion=_KIND_SUGGESTION[variable.kind].format(name=name),
        actual_state_modifications=interaction.modifications,
        state_reads=interaction.reads,
        debug_info=debug,
        downgrade_reasons=reasons,
    )
    if is_effect and interaction.modifications:
        setter = interaction.modifications[0]
        return make_finding(
            ctx,
            type=FindingType.CONFIRMED_INFINITE_LOOP,
            error_code=code,
            category=Category.CRITICAL,
            severity=Severity.HIGH,
            confidence=Confidence.HIGH,
            setter_function=setter,
            state_variable=facts.setter_to_state.get(setter),
            explanation=f"{base}, and it calls '{setter}' unconditionally, which renders again.",
            **common,
        )
    return make_finding(
        ctx,
        type=FindingType.POTENTIAL_ISSUE,
        error_code=code,
        category=Category.PERFORMANCE,
        severity=Severity.LOW,
        confidence=Confidence.MEDIUM,
        explanation=f"{base} and runs after every render.",
        **common,
    )


def check_effect_loops(
    hook: HookNode,
    facts: StabilityFacts,
    interaction: StateInteraction,
    ctx: AnalysisContext,
    file: str,
    file_key: str = "",
) -> List[Finding]:
    """Verdict for every state variable the effect both depends on and updates."""
    findings = []
    for state in dict.fromkeys(hook.dependencies):
        setter = facts.state_bindings.get(state)
        if setter is None:
            continue
        finding = _effect_verdict(hook, state, setter, interaction, ctx, file, file_key)
        if finding is not None:
            findings.append(finding)
    return findings


def _effect_verdict(hook, state, setter, interaction, ctx, file, file_key) -> Optional[Finding]:
    cross = interaction.cross_file_call_for(setter)
    if cross is not None and cross.source_file == file_key:
        cross = None
    via = interaction.via_function(setter)
    guard = interaction.guard_for(setter)
    debug = DebugInfo(
        reason="",
        state_tracking={
            "reads": list(interaction.reads),
            "modifications": list(interaction.modifications),
            "conditional": list(interaction.conditional_modifications),
        },
        dependency_analysis={"dependency": state, "setter": setter, "via": via},
        guard_info={"type": guard.guard_type.value, "safe": guard.is_safe} if guard else {},
        deferred_info={
            "deferred": list(interaction.deferred_modifications),
            "cleanup": list(interaction.cleanup_modifications),
        },
        cross_file_info=(
            {"function": cross.function_name, "file": cross.source_file, "depth": cross.chain_depth}
            if cross
            else {}
        ),
    )
    common = dict(
        file=file,
        line=hook.line,
        column=hook.column,
        hook_type=hook.hook_type,
        problematic_dependency=state,
        state_variable=state,
        setter_function=setter,
        actual_state_modifications=interaction.modifications + interaction.conditional_modifications,
        state_reads=interaction.reads,
    )
    route = f"calls '{setter}'"
    if cross is not None:
        route = f"passes '{setter}' to '{cross.function_name}' in {cross.source_file}, which calls it"
    elif via is not None:
        route = f"calls '{via}()', which calls '{setter}'"

    if setter in interaction.modifications:
        reasons = [CHAIN_DEPTH_REASON] if cross is not None and cross.chain_depth > MAX_DIRECT_CHAIN_DEPTH else []
        if cross is not None:
            code = "RLD-300"
        elif hook.hook_type == "useLayoutEffect":
            code = "RLD-202"
        else:
            code = "RLD-200"
        return make_finding(
            ctx,
            type=FindingType.CONFIRMED_INFINITE_LOOP,
            error_code=code,
            category=Category.CRITICAL,
            severity=Severity.HIGH,
            confidence=Confidence.HIGH,
            explanation=(
                f"{hook.hook_type} depends on '{state}' and unconditionally {route}. "
                f"Every update changes '{state}', which runs the effect again."
            ),
            suggestion=(
                f"Guard the update (for example compare against the current '{state}'), "
                f"use a functional update without listing '{state}', or remove '{state}' from the dependencies."
            ),
            debug_info=replace(debug, reason="unconditional modification of a dependency"),
            downgrade_reasons=reasons,
            **common,
        )

    if guard is not None and not guard.is_safe:
        if guard.guard_type == GuardType.OBJECT_SPREAD_RISK:
            code, category = "RLD-410", Category.PERFORMANCE
            explanation = guard.warning
            suggestion = f"Compare and set the primitive field, or return the previous '{state}' when nothing changed."
        else:
            code = "RLD-301" if cross is not None else "RLD-501"
            category = Category.WARNING
            explanation = (
                f"{hook.hook_type} depends on '{state}' and {route} inside a condition that is not "
                f"recognised as converging. Check that the condition becomes false once '{state}' is updated."
            )
            suggestion = f"Compare the new value with '{state}' before updating it."
        return make_finding(
            ctx,
            type=FindingType.POTENTIAL_ISSUE,
            error_code=code,
            category=category,
            severity=Severity.MEDIUM,
            confidence=Confidence.HIGH,
            explanation=explanation,
            suggestion=suggestion,
            debug_info=replace(debug, reason=f"unsafe guard ({guard.guard_type.value})"),
            downgrade_reasons=[CONDITIONAL_REASON],
            **common,
        )

    exempt = (
        guard is not None
        or setter in interaction.deferred_modifications
        or setter in interaction.cleanup_modifications
    )
    if not exempt:
        return None
    if guard is not None:
        why = f"the update is protected by a {guard.guard_type.value}"
    elif setter in interaction.deferred_modifications:
        why = "the update runs asynchronously"
    else:
        why = "the update only runs during cleanup"
    logger.debug(f"{file}:{hook.line} {hook.hook_type} on '{state}' not flagged: {why}")
    return make_finding(
        ctx,
        type=FindingType.SAFE_PATTERN,
        error_code="RLD-202" if hook.hook_type == "useLayoutEffect" else "RLD-200",
        category=Category.SAFE,
        severity=Severity.LOW,
        confidence=Confidence.HIGH,
        explanation=f"{hook.hook_type} depends on '{state}' and updates it, but {why}.",
        debug_info=replace(debug, reason=why),
        **common,
    )


def check_memo_hook(
    hook: HookNode,
    facts: StabilityFacts,
    interaction: StateInteraction,
    ctx: AnalysisContext,
    file: str,
) -> List[Finding]:
    """Missing dependency array and self-modifying dependencies on useMemo/useCallback."""
    if not hook.has_dependency_array:
        return [
            make_finding(
                ctx,
                type=FindingType.POTENTIAL_ISSUE,
                error_code="RLD-500",
                category=Category.PERFORMANCE,
                severity=Severity.LOW,
                confidence=Confidence.HIGH,
                file=file,
                line=hook.line,
                column=hook.column,
                hook_type=hook.hook_type,
                problematic_dependency="(no dependency array)",
                explanation=f"{hook.hook_type} without a dependency array recomputes on every render.",
                suggestion="Pass the values the callback reads as the second argument.",
                debug_info=DebugInfo(reason="memo hook without dependency array"),
            )
        ]
    findings = []
    modified = set(interaction.modifications) | set(interaction.conditional_modifications)
    for state in dict.fromkeys(hook.dependencies):
        setter = facts.state_bindings.get(state)
        if setter is None or setter not in modified:
            continue
        if setter in interaction.functional_updates:
            logger.debug(f"{file}:{hook.line} {hook.hook_type} updates '{state}' functionally")
            continue
        findings.append(
            make_finding(
                ctx,
                type=FindingType.POTENTIAL_ISSUE,
                error_code="RLD-420",
                category=Category.WARNING,
                severity=Severity.MEDIUM,
                confidence=Confidence.MEDIUM,
                file=file,
                line=hook.line,
                column=hook.column,
                hook_type=hook.hook_type,
                problematic_dependency=state,
                state_variable=state,
                setter_function=setter,
                explanation=(
                    f"{hook.hook_type} depends on '{state}' and calls '{setter}' with a new value. "
                    f"Each call recreates the memoized value, and anything depending on it may update '{state}' again."
                ),
                suggestion=f"Use a functional update ({setter}(prev => ...)) and drop '{state}' from the dependencies.",
                actual_state_modifications=sorted(modified),
                state_reads=interaction.reads,
                debug_info=DebugInfo(reason="memoized hook modifies its own dependency"),
            )
        )
    return findings
