"""
Rule management for hookloop.

Handles per-code overrides and the report filters applied to findings
before they reach a formatter.

hookloop/src/hookloop/rules.py
"""

import dataclasses
import logging
from typing import Dict, Iterable, List, Optional

from .models import Category, Confidence, Finding, FindingType, Severity

__all__ = ["RuleEngine"]

logger = logging.getLogger(__name__)

OFF = "off"


class RuleEngine:
    """Manages rule configuration and filtering decisions."""

    def __init__(
        self,
        config: Dict,
        min_severity: Optional[str] = None,
        min_confidence: Optional[str] = None,
        confirmed_only: bool = False,
        include_potential_issues: Optional[bool] = None,
        debug: bool = False,
    ):
        """
        Initialize rule engine with configuration.

        Explicit arguments win over the matching configuration keys.

        Args:
            config: Settings mapping (``hookloop.toml`` or ``[tool.hookloop]``)
        """
        self.config = config
        self._rule_overrides: Dict[str, Optional[Severity]] = {}
        self.min_severity = Severity(min_severity or config.get("min_severity", "low"))
        self.min_confidence = Confidence(min_confidence or config.get("min_confidence", "low"))
        if include_potential_issues is None:
            include_potential_issues = config.get("include_potential_issues", True)
        self.include_potential_issues = include_potential_issues
        self.confirmed_only = confirmed_only
        self.debug = debug
        self._load_rule_config()

    def _load_rule_config(self):
        """Load per-code overrides from config."""
        for rule_id, setting in self.config.get("rules", {}).items():
            if setting == OFF or setting is False:
                self._rule_overrides[rule_id] = None
                continue
            try:
                self._rule_overrides[rule_id] = Severity(str(setting).lower())
            except ValueError:
                logger.warning(f"Ignoring invalid severity {setting!r} for rule {rule_id}")

    def is_rule_enabled(self, rule_id: str) -> bool:
        """Check if a rule is enabled (not set to off)."""
        return not (rule_id in self._rule_overrides and self._rule_overrides[rule_id] is None)

    def get_rule_severity(self, rule_id: str, default: Severity) -> Severity:
        """Get effective severity for a rule."""
        return self._rule_overrides.get(rule_id) or default

    def apply(self, finding: Finding) -> Optional[Finding]:
        """The finding as it should be reported, or None when filtered out."""
        if not self.is_rule_enabled(finding.error_code):
            return None
        if finding.type is FindingType.SAFE_PATTERN or finding.category is Category.SAFE:
            return finding if self.debug else None
        if self.confirmed_only and finding.type is not FindingType.CONFIRMED_INFINITE_LOOP:
            return None
        if not self.include_potential_issues and finding.type is FindingType.POTENTIAL_ISSUE:
            return None
        severity = self.get_rule_severity(finding.error_code, finding.severity)
        if severity < self.min_severity or finding.confidence < self.min_confidence:
            return None
        if severity is not finding.severity:
            finding = dataclasses.replace(finding, severity=severity)
        return finding

    def filter(self, findings: Iterable[Finding]) -> List[Finding]:
        """Apply overrides and filters to ``findings``, keeping their order."""
        kept = []
        for finding in findings:
            result = self.apply(finding)
            if result is not None:
                kept.append(result)
        return kept
