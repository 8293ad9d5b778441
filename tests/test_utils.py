"""Tests for shared helpers and result types."""

import pytest

from hookloop.context import AnalysisContext, AnalyzerOptions
from hookloop.models import (
    Category,
    Confidence,
    DebugInfo,
    Finding,
    FindingType,
    Severity,
    error_family,
    summarize,
)
from hookloop.utils import (
    CHAIN_DEPTH_REASON,
    CONDITIONAL_REASON,
    TYPE_INFERENCE_REASON,
    adjust_confidence,
    is_line_ignored,
    make_finding,
)


def _finding(**overrides) -> Finding:
    values = dict(
        type=FindingType.CONFIRMED_INFINITE_LOOP,
        error_code="RLD-200",
        category=Category.CRITICAL,
        severity=Severity.HIGH,
        confidence=Confidence.HIGH,
        file="src/Counter.tsx",
        line=4,
        hook_type="useEffect",
        problematic_dependency="count",
        explanation="Loops.",
    )
    values.update(overrides)
    return Finding(**values)


LINES = [
    "const a = 1; // rld-ignore",
    "const b = 2; /* rld-ignore */",
    "// rld-ignore-next-line",
    "const c = 3;",
    "/* rld-ignore-next-line */",
    "const d = 4;",
    "const e = 5; // rld-ignored",
    "const f = 6;",
]


@pytest.mark.parametrize(
    "line, ignored",
    [(1, True), (2, True), (3, False), (4, True), (6, True), (7, False), (8, False), (0, False), (99, False)],
)
def test_is_line_ignored(line, ignored):
    assert is_line_ignored(LINES, line) is ignored


def test_next_line_marker_does_not_ignore_its_own_line():
    assert not is_line_ignored(["foo(); // rld-ignore-next-line"], 1)


def test_adjust_confidence_caps_high_at_medium():
    adjusted = adjust_confidence(_finding(), [CONDITIONAL_REASON, CHAIN_DEPTH_REASON, CONDITIONAL_REASON])
    assert adjusted.confidence == Confidence.MEDIUM
    assert adjusted.explanation == (
        f"Loops. Confidence is medium because {CONDITIONAL_REASON} and {CHAIN_DEPTH_REASON}."
    )


@pytest.mark.parametrize("confidence", [Confidence.MEDIUM, Confidence.LOW])
def test_adjust_confidence_never_raises(confidence):
    finding = _finding(confidence=confidence)
    assert adjust_confidence(finding, [TYPE_INFERENCE_REASON]) is finding


def test_adjust_confidence_without_reasons():
    finding = _finding()
    assert adjust_confidence(finding, []) is finding


def test_make_finding_drops_debug_info_outside_debug_mode():
    debug = DebugInfo(reason="why")
    kwargs = dict(
        type=FindingType.POTENTIAL_ISSUE,
        error_code="RLD-501",
        category=Category.WARNING,
        severity=Severity.MEDIUM,
        confidence=Confidence.HIGH,
        file="x.tsx",
        line=1,
        hook_type="useEffect",
        problematic_dependency="count",
        explanation="Check.",
        debug_info=debug,
        downgrade_reasons=[CONDITIONAL_REASON],
    )
    quiet = make_finding(AnalysisContext(), **kwargs)
    assert quiet.debug_info is None
    assert quiet.confidence == Confidence.MEDIUM

    verbose = make_finding(AnalysisContext(AnalyzerOptions(debug=True)), **kwargs)
    assert verbose.debug_info == debug


def test_error_family_and_description():
    assert error_family("RLD-100") == "render-phase"
    assert error_family("RLD-300") == "cross-file"
    assert error_family("RLD-600") == "ref-mutation"
    assert error_family("bogus") == "unknown"
    assert _finding(error_code="RLD-407").family == "unstable-reference"
    assert _finding().description


def test_severity_and_confidence_ordering():
    assert Severity.LOW < Severity.MEDIUM < Severity.HIGH
    assert sorted([Confidence.HIGH, Confidence.LOW, Confidence.MEDIUM]) == [
        Confidence.LOW,
        Confidence.MEDIUM,
        Confidence.HIGH,
    ]


def test_finding_to_dict_uses_camel_case():
    data = _finding(setter_function="setCount", state_reads=("count",)).to_dict()
    assert data["errorCode"] == "RLD-200"
    assert data["type"] == "confirmed-infinite-loop"
    assert data["setterFunction"] == "setCount"
    assert data["stateReads"] == ["count"]
    assert "debugInfo" not in data
    with_debug = _finding(debug_info=DebugInfo(reason="r")).to_dict()
    assert with_debug["debugInfo"]["reason"] == "r"


def test_summarize_counts_every_type():
    findings = [_finding(), _finding(), _finding(type=FindingType.POTENTIAL_ISSUE)]
    assert summarize(findings) == {
        "confirmed-infinite-loop": 2,
        "potential-issue": 1,
        "safe-pattern": 0,
    }
