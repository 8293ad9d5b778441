"""Tests for rules engine."""

from hookloop.config import Config
from hookloop.models import Category, Confidence, Finding, FindingType, Severity
from hookloop.rules import RuleEngine


def _finding(**overrides) -> Finding:
    values = dict(
        type=FindingType.POTENTIAL_ISSUE,
        error_code="RLD-501",
        category=Category.WARNING,
        severity=Severity.MEDIUM,
        confidence=Confidence.MEDIUM,
        file="Counter.tsx",
        line=3,
        hook_type="useEffect",
        problematic_dependency="count",
        explanation="Check the guard.",
    )
    values.update(overrides)
    return Finding(**values)


CONFIRMED = _finding(
    type=FindingType.CONFIRMED_INFINITE_LOOP,
    error_code="RLD-200",
    category=Category.CRITICAL,
    severity=Severity.HIGH,
    confidence=Confidence.HIGH,
)
SAFE = _finding(type=FindingType.SAFE_PATTERN, error_code="RLD-200", category=Category.SAFE, severity=Severity.LOW)


def test_rule_engine_initialization(sample_config: Config):
    """Test RuleEngine initialization."""
    engine = RuleEngine(sample_config)

    assert engine.config == sample_config
    assert isinstance(engine._rule_overrides, dict)
    assert engine.min_severity == Severity.LOW
    assert engine.min_confidence == Confidence.LOW
    assert engine.include_potential_issues


def test_rule_engine_default_enabled(sample_config: Config):
    """Test that rules are enabled by default."""
    engine = RuleEngine(sample_config)

    assert engine.is_rule_enabled("RLD-100")
    assert engine.is_rule_enabled("RLD-409")


def test_rule_engine_disable_rule():
    """Test disabling a rule with "off"."""
    engine = RuleEngine({"rules": {"RLD-501": "off", "RLD-410": False}})

    assert not engine.is_rule_enabled("RLD-501")
    assert not engine.is_rule_enabled("RLD-410")
    assert engine.apply(_finding()) is None


def test_rule_engine_severity_override():
    """Overrides change the reported severity."""
    engine = RuleEngine({"rules": {"RLD-501": "HIGH"}})

    assert engine.get_rule_severity("RLD-501", Severity.MEDIUM) == Severity.HIGH
    assert engine.get_rule_severity("RLD-100", Severity.HIGH) == Severity.HIGH
    finding = engine.apply(_finding())
    assert finding.severity == Severity.HIGH
    assert finding.error_code == "RLD-501"


def test_rule_engine_invalid_override_is_ignored(caplog):
    engine = RuleEngine({"rules": {"RLD-501": "extreme"}})

    assert engine.is_rule_enabled("RLD-501")
    assert engine.apply(_finding()).severity == Severity.MEDIUM
    assert "Ignoring invalid severity" in caplog.text


def test_safe_patterns_only_in_debug():
    assert RuleEngine({}).apply(SAFE) is None
    assert RuleEngine({}, debug=True).apply(SAFE) is SAFE


def test_confirmed_only():
    engine = RuleEngine({}, confirmed_only=True)
    assert engine.filter([_finding(), CONFIRMED]) == [CONFIRMED]


def test_include_potential_issues_from_config():
    assert RuleEngine({"include_potential_issues": False}).filter([_finding(), CONFIRMED]) == [CONFIRMED]
    explicit = RuleEngine({"include_potential_issues": False}, include_potential_issues=True)
    assert len(explicit.filter([_finding(), CONFIRMED])) == 2


def test_minimum_levels():
    low = _finding(severity=Severity.LOW, confidence=Confidence.HIGH)
    unsure = _finding(confidence=Confidence.LOW)

    engine = RuleEngine({"min_severity": "medium"})
    assert engine.filter([low, unsure, CONFIRMED]) == [unsure, CONFIRMED]

    engine = RuleEngine({"min_severity": "medium"}, min_confidence="medium")
    assert engine.filter([low, unsure, CONFIRMED]) == [CONFIRMED]


def test_override_applies_before_minimum_severity():
    engine = RuleEngine({"rules": {"RLD-501": "low"}}, min_severity="medium")
    assert engine.apply(_finding()) is None


def test_filter_keeps_order():
    first = _finding(line=9)
    second = _finding(line=1)
    assert RuleEngine({}).filter([first, second]) == [first, second]
