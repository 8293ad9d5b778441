"""Tests for guard classification around state updates."""

import pytest

from hookloop.guards import OBJECT_SPREAD_WARNING, analyze_effect_guard, analyze_render_guard
from hookloop.models import GuardType
from hookloop.parser import parse_source
from hookloop.syntax import callee_text, walk


def _setter_call(source: str, setter: str):
    root = parse_source(source, "guards.tsx").ast
    for node in walk(root):
        if node.type == "call_expression" and callee_text(node) == setter:
            return node
    raise AssertionError(f"no call to {setter}")


def _effect_guard(source: str, setter: str, state: str):
    return analyze_effect_guard(_setter_call(source, setter), setter, state)


def _render_guard(source: str, setter: str, state: str):
    return analyze_render_guard(_setter_call(source, setter), setter, state)


def test_unconditional_call_has_no_guard():
    assert _effect_guard("setCount(count + 1);", "setCount", "count") is None
    assert _render_guard("setCount(count + 1);", "setCount", "count") is None


def test_equality_guard():
    guard = _effect_guard("if (count !== 5) setCount(5);", "setCount", "count")
    assert guard.guard_type == GuardType.EQUALITY
    assert guard.is_safe
    assert guard.setter == "setCount"
    assert guard.state_variable == "count"


def test_toggle_guards():
    negated = _effect_guard("if (!token) setToken(createToken());", "setToken", "token")
    assert negated.guard_type == GuardType.TOGGLE
    assert negated.is_safe

    truthy = _effect_guard("if (loading) { setLoading(false); }", "setLoading", "loading")
    assert truthy.guard_type == GuardType.TOGGLE


def test_negation_writing_state_back_is_not_a_toggle():
    guard = _effect_guard("if (!open) setOpen(open);", "setOpen", "open")
    assert guard.guard_type == GuardType.UNKNOWN
    assert not guard.is_safe


def test_property_guard_with_spread_is_object_spread_risk():
    guard = _effect_guard(
        "if (user.id !== id) setUser({ ...user, id });", "setUser", "user"
    )
    assert guard.guard_type == GuardType.OBJECT_SPREAD_RISK
    assert not guard.is_safe
    assert guard.warning == OBJECT_SPREAD_WARNING.format(state="user")


def test_property_guard_with_functional_spread():
    guard = _effect_guard(
        "if (user.id !== id) setUser(prev => ({ ...prev, id }));", "setUser", "user"
    )
    assert guard.guard_type == GuardType.OBJECT_SPREAD_RISK


def test_property_guard_without_spread_is_equality():
    guard = _effect_guard("if (user.id !== id) setUser(fetched);", "setUser", "user")
    assert guard.guard_type == GuardType.EQUALITY
    assert guard.is_safe


def test_unrecognised_condition_is_unknown():
    guard = _effect_guard("if (count > 5) setCount(0);", "setCount", "count")
    assert guard.guard_type == GuardType.UNKNOWN
    assert not guard.is_safe


def test_short_circuit_call_is_unknown():
    guard = _effect_guard("ready && setCount(1);", "setCount", "count")
    assert guard.guard_type == GuardType.UNKNOWN


def test_conjunction_uses_safe_operand():
    guard = _effect_guard("if (enabled && count !== 0) setCount(0);", "setCount", "count")
    assert guard.guard_type == GuardType.EQUALITY
    assert guard.is_safe


def test_early_return_guard():
    source = """
    function run() {
      if (done) return;
      setDone(true);
    }
    """
    guard = _effect_guard(source, "setDone", "done")
    assert guard.guard_type == GuardType.EARLY_RETURN
    assert guard.is_safe


def test_early_return_must_read_state():
    source = """
    function run() {
      if (other) return;
      setDone(true);
    }
    """
    assert _effect_guard(source, "setDone", "done") is None


def test_effect_guard_needs_state_name():
    assert _effect_guard("if (x) setThing(1);", "setThing", None) is None


def test_render_guard_derived_state():
    guard = _render_guard("if (prev !== value) { setPrev(value); }", "setPrev", "prev")
    assert guard.guard_type == GuardType.DERIVED_STATE
    assert guard.is_safe


def test_render_guard_derived_reset():
    guard = _render_guard(
        "if (items !== prevItems) { setSelection(null); }", "setSelection", "selection"
    )
    assert guard.guard_type == GuardType.DERIVED_STATE


def test_render_guard_searches_outward_for_safe_guard():
    source = """
    if (count !== limit) {
      if (count > 3) {
        setCount(limit);
      }
    }
    """
    guard = _render_guard(source, "setCount", "count")
    assert guard.is_safe


def test_render_guard_unrecognised_is_unsafe():
    guard = _render_guard("if (flag > 1) setCount(count + 1);", "setCount", "count")
    assert guard.guard_type == GuardType.UNKNOWN
    assert not guard.is_safe


def test_effect_variant_skips_unrecognised_inner_condition():
    source = """
    if (count !== limit) {
      if (count > 3) {
        setCount(limit);
      }
    }
    """
    guard = _effect_guard(source, "setCount", "count")
    assert guard.guard_type == GuardType.EQUALITY


@pytest.mark.parametrize(
    "condition",
    [
        "count > limit",
        "count <= 3",
        "isReady(count)",
        "flag",
        "count === 0",
        "a || b",
        "typeof count === 'number'",
        "!other",
    ],
)
def test_unrecognised_shapes_are_never_safe(condition):
    source = f"if ({condition}) setCount(count + 1);"
    for guard in (
        _effect_guard(source, "setCount", "count"),
        _render_guard(source, "setCount", "count"),
    ):
        assert guard.guard_type == GuardType.UNKNOWN
        assert not guard.is_safe


def test_bare_setter_call_under_negation_is_not_a_toggle():
    """setToken() writes undefined, so !token stays true."""
    guard = _effect_guard("if (!token) { setToken(); }", "setToken", "token")
    assert guard.guard_type == GuardType.UNKNOWN
    assert not guard.is_safe


def test_helper_call_under_negation_is_a_toggle():
    root = parse_source("if (!token) { refreshToken(); }", "guards.tsx").ast
    call = next(n for n in walk(root) if n.type == "call_expression")
    guard = analyze_effect_guard(call, "setToken", "token")
    assert guard.guard_type == GuardType.TOGGLE
    assert guard.is_safe


@pytest.mark.parametrize(
    "source",
    [
        "if (!loaded) { setLoaded(false); }",
        "if (!loaded) { setLoaded(null); }",
        "if (!loaded) { setLoaded(); }",
    ],
)
def test_render_negation_needs_truthy_value(source):
    guard = _render_guard(source, "setLoaded", "loaded")
    assert guard.guard_type == GuardType.UNKNOWN
    assert not guard.is_safe


def test_render_negation_with_truthy_value_is_toggle():
    guard = _render_guard("if (!loaded) { setLoaded(true); }", "setLoaded", "loaded")
    assert guard.guard_type == GuardType.TOGGLE
    assert guard.is_safe
