"""
Shared helpers for the analyzers: ignore comments, confidence caps and
finding construction.

hookloop/src/hookloop/utils.py
"""

import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence

from .context import AnalysisContext
from .models import Category, Confidence, DebugInfo, Finding, FindingType, Severity

__all__ = [
    "IGNORE_MARKER",
    "IGNORE_NEXT_LINE_MARKER",
    "TYPE_INFERENCE_REASON",
    "CHAIN_DEPTH_REASON",
    "CONDITIONAL_REASON",
    "is_line_ignored",
    "adjust_confidence",
    "make_finding",
]

logger = logging.getLogger(__name__)

IGNORE_MARKER = "rld-ignore"
IGNORE_NEXT_LINE_MARKER = "rld-ignore-next-line"

_SAME_LINE = re.compile(r"(//|/\*)\s*rld-ignore(?!-next-line)\b")
_NEXT_LINE = re.compile(r"(//|/\*)\s*rld-ignore-next-line\b")

TYPE_INFERENCE_REASON = "the stability of a call result was inferred without type information"
CHAIN_DEPTH_REASON = "the cross-file call chain is more than two functions deep"
CONDITIONAL_REASON = "the state update is conditional"


def is_line_ignored(lines: Sequence[str], line: int) -> bool:
    """True when ``line`` (1-based) carries or follows an ignore comment."""
    if 1 <= line <= len(lines) and _SAME_LINE.search(lines[line - 1]):
        return True
    if 2 <= line <= len(lines) + 1 and _NEXT_LINE.search(lines[line - 2]):
        return True
    return False


def adjust_confidence(finding: Finding, reasons: Sequence[str]) -> Finding:
    """Cap a high-confidence finding at medium, explaining why.

    Never raises confidence; findings already at medium or low are returned
    unchanged.
    """
    if not reasons or finding.confidence != Confidence.HIGH:
        return finding
    unique: List[str] = []
    for reason in reasons:
        if reason not in unique:
            unique.append(reason)
    suffix = f" Confidence is medium because {' and '.join(unique)}."
    return replace(finding, confidence=Confidence.MEDIUM, explanation=finding.explanation + suffix)


def make_finding(
    ctx: AnalysisContext,
    *,
    type: FindingType,
    error_code: str,
    category: Category,
    severity: Severity,
    confidence: Confidence,
    file: str,
    line: int,
    hook_type: str,
    problematic_dependency: str,
    explanation: str,
    column: Optional[int] = None,
    state_variable: Optional[str] = None,
    setter_function: Optional[str] = None,
    suggestion: Optional[str] = None,
    actual_state_modifications: Sequence[str] = (),
    state_reads: Sequence[str] = (),
    debug_info: Optional[DebugInfo] = None,
    downgrade_reasons: Sequence[str] = (),
) -> Finding:
    """Build a finding, dropping debug info outside debug mode and applying confidence caps."""
    finding = Finding(
        type=type,
        error_code=error_code,
        category=category,
        severity=severity,
        confidence=confidence,
        file=file,
        line=line,
        hook_type=hook_type,
        problematic_dependency=problematic_dependency,
        explanation=explanation,
        column=column,
        state_variable=state_variable,
        setter_function=setter_function,
        suggestion=suggestion,
        actual_state_modifications=tuple(actual_state_modifications),
        state_reads=tuple(state_reads),
        debug_info=debug_info if ctx.options.debug else None,
    )
    return adjust_confidence(finding, downgrade_reasons)
