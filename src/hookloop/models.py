"""
Core result types for hookloop.

Findings, severities, error codes and the per-body interaction records the
analyzers hand to the orchestrator.

hookloop/src/hookloop/models.py
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

__all__ = [
    "Severity",
    "Confidence",
    "Category",
    "FindingType",
    "GuardType",
    "ERROR_CODES",
    "error_family",
    "GuardedModification",
    "RefMutation",
    "FunctionReference",
    "CrossFileCall",
    "StateInteraction",
    "UnstableVariable",
    "CrossFileCycle",
    "DebugInfo",
    "Finding",
    "summarize",
]


class Severity(Enum):
    """Severity levels for findings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __lt__(self, other):
        """Enable sorting by severity."""
        order = {"low": 0, "medium": 1, "high": 2}
        return order[self.value] < order[other.value]


class Confidence(Enum):
    """How sure the analyzer is about a finding."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def __lt__(self, other):
        order = {"low": 0, "medium": 1, "high": 2}
        return order[self.value] < order[other.value]


class Category(Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    PERFORMANCE = "performance"
    SAFE = "safe"


class FindingType(Enum):
    CONFIRMED_INFINITE_LOOP = "confirmed-infinite-loop"
    POTENTIAL_ISSUE = "potential-issue"
    SAFE_PATTERN = "safe-pattern"


class GuardType(Enum):
    """Recognised shapes of a conditional wrapping a state update."""

    TOGGLE = "toggle-guard"
    EQUALITY = "equality-guard"
    EARLY_RETURN = "early-return"
    OBJECT_SPREAD_RISK = "object-spread-risk"
    DERIVED_STATE = "derived-state"
    UNKNOWN = "unknown"


ERROR_CODES: Dict[str, str] = {
    "RLD-100": "setState during render phase",
    "RLD-101": "setState via function call during render",
    "RLD-200": "Unconditional setState in effect dependency loop",
    "RLD-201": "Missing dependency array with setState",
    "RLD-202": "Unconditional setState in useLayoutEffect",
    "RLD-300": "Cross-file infinite loop",
    "RLD-301": "Cross-file conditional modification",
    "RLD-400": "Unstable object in dependency array",
    "RLD-401": "Unstable array in dependency array",
    "RLD-402": "Unstable function in dependency array",
    "RLD-403": "Unstable function call in dependency array",
    "RLD-404": "Unstable Context.Provider value",
    "RLD-405": "Unstable prop to memoized component",
    "RLD-406": "Unstable callback in useCallback deps",
    "RLD-407": "Unstable getSnapshot in useSyncExternalStore",
    "RLD-408": "Unstable key prop causes remounting",
    "RLD-409": "Index used as key",
    "RLD-410": "Object spread guard may not prevent loop",
    "RLD-420": "Memoized hook modifies its dependency",
    "RLD-500": "Missing dependency array",
    "RLD-501": "Conditional modification needs review",
    "RLD-600": "Render-phase ref mutation with state value",
}

_FAMILIES = {
    "1": "render-phase",
    "2": "effect-loop",
    "3": "cross-file",
    "4": "unstable-reference",
    "5": "missing-deps",
    "6": "ref-mutation",
}


def error_family(error_code: str) -> str:
    """Return the family name for an error code, grouped by its leading digit."""
    digits = error_code.split("-", 1)[-1]
    return _FAMILIES.get(digits[:1], "unknown")


@dataclass(frozen=True)
class GuardedModification:
    """A setter call wrapped in a conditional, with the verdict on that conditional."""

    setter: str
    state_variable: str
    guard_type: GuardType
    is_safe: bool
    warning: Optional[str] = None


@dataclass(frozen=True)
class RefMutation:
    ref_name: str
    assigned_value: str
    uses_state_value: bool
    line: int


@dataclass(frozen=True)
class FunctionReference:
    """A function passed by reference (not invoked) to another call."""

    function_name: str
    context: str  # event-listener | callback-arg | unknown
    receiving_function: str


@dataclass(frozen=True)
class CrossFileCall:
    """A setter handed to a function that is known to invoke it."""

    setter: str
    function_name: str
    source_file: str
    chain_depth: int
    line: int


@dataclass(frozen=True)
class StateInteraction:
    """Everything a single hook body does with tracked state.

    Built once per analyzed body and never mutated afterwards.
    """

    reads: Tuple[str, ...] = ()
    modifications: Tuple[str, ...] = ()
    conditional_modifications: Tuple[str, ...] = ()
    guarded_modifications: Tuple[GuardedModification, ...] = ()
    functional_updates: Tuple[str, ...] = ()
    deferred_modifications: Tuple[str, ...] = ()
    cleanup_modifications: Tuple[str, ...] = ()
    ref_mutations: Tuple[RefMutation, ...] = ()
    function_references: Tuple[FunctionReference, ...] = ()
    cross_file_calls: Tuple[CrossFileCall, ...] = ()
    indirect_modifications: Tuple[Tuple[str, str], ...] = ()

    def guard_for(self, setter: str) -> Optional[GuardedModification]:
        """First recorded guard for ``setter``, unsafe guards preferred."""
        candidates = [g for g in self.guarded_modifications if g.setter == setter]
        for guard in candidates:
            if not guard.is_safe:
                return guard
        return candidates[0] if candidates else None

    def cross_file_call_for(self, setter: str) -> Optional[CrossFileCall]:
        for call in self.cross_file_calls:
            if call.setter == setter:
                return call
        return None

    def via_function(self, setter: str) -> Optional[str]:
        """Name of the local function through which ``setter`` is reached, if any."""
        for function_name, reached in self.indirect_modifications:
            if reached == setter:
                return function_name
        return None


@dataclass(frozen=True)
class UnstableVariable:
    """A component-local binding whose identity changes on every render."""

    name: str
    kind: str  # object | array | function | call-result
    line: int
    owning_component: Optional[str] = None
    component_start_line: int = 0
    component_end_line: int = 0
    is_memoized: bool = False
    is_module_level: bool = False
    inferred: bool = False


@dataclass(frozen=True)
class CrossFileCycle:
    files: Tuple[str, ...]
    shared_dependencies: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"files": list(self.files), "sharedDependencies": list(self.shared_dependencies)}


@dataclass(frozen=True)
class DebugInfo:
    """Internal decision trail attached to findings in debug mode."""

    reason: str
    state_tracking: Dict[str, Any] = field(default_factory=dict)
    dependency_analysis: Dict[str, Any] = field(default_factory=dict)
    guard_info: Dict[str, Any] = field(default_factory=dict)
    deferred_info: Dict[str, Any] = field(default_factory=dict)
    cross_file_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "stateTracking": self.state_tracking,
            "dependencyAnalysis": self.dependency_analysis,
            "guardInfo": self.guard_info,
            "deferredInfo": self.deferred_info,
            "crossFileInfo": self.cross_file_info,
        }


@dataclass(frozen=True)
class Finding:
    """A single hook analysis result (``HookAnalysis`` in the JSON output)."""

    type: FindingType
    error_code: str
    category: Category
    severity: Severity
    confidence: Confidence
    file: str
    line: int
    hook_type: str
    problematic_dependency: str
    explanation: str
    column: Optional[int] = None
    state_variable: Optional[str] = None
    setter_function: Optional[str] = None
    suggestion: Optional[str] = None
    actual_state_modifications: Tuple[str, ...] = ()
    state_reads: Tuple[str, ...] = ()
    debug_info: Optional[DebugInfo] = None

    @property
    def family(self) -> str:
        return error_family(self.error_code)

    @property
    def description(self) -> str:
        return ERROR_CODES.get(self.error_code, "")

    def sort_key(self) -> Tuple:
        return (
            self.file,
            self.line,
            self.column or 0,
            self.error_code,
            self.problematic_dependency,
            self.setter_function or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert finding to dictionary for JSON output."""
        data: Dict[str, Any] = {
            "type": self.type.value,
            "errorCode": self.error_code,
            "category": self.category.value,
            "severity": self.severity.value,
            "confidence": self.confidence.value,
            "file": self.file,
            "line": self.line,
            "column": self.column,
            "hookType": self.hook_type,
            "problematicDependency": self.problematic_dependency,
            "stateVariable": self.state_variable,
            "setterFunction": self.setter_function,
            "explanation": self.explanation,
            "suggestion": self.suggestion,
            "actualStateModifications": list(self.actual_state_modifications),
            "stateReads": list(self.state_reads),
        }
        if self.debug_info is not None:
            data["debugInfo"] = self.debug_info.to_dict()
        return data


def summarize(findings: List[Finding]) -> Dict[str, int]:
    """Count findings by type for report summaries."""
    summary = {kind.value: 0 for kind in FindingType}
    for finding in findings:
        summary[finding.type.value] += 1
    return summary
