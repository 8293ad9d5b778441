"""
Report formatters for hookloop analysis results.

Human (rich), compact, JSON and SARIF 2.1.0 renderings of a
``DetectionResults``.

hookloop/src/hookloop/reporting.py
"""

import json
from abc import ABC, abstractmethod
from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .models import Category, CrossFileCycle, Finding, FindingType, Severity

__all__ = [
    "BaseFormatter",
    "HumanFormatter",
    "CompactFormatter",
    "JsonFormatter",
    "SarifFormatter",
    "BUILTIN_FORMATTERS",
    "FORMAT_CHOICES",
    "DEFAULT_FORMAT",
]

_CATEGORY_STYLES = {
    Category.CRITICAL: "bold red",
    Category.WARNING: "yellow",
    Category.PERFORMANCE: "cyan",
    Category.SAFE: "green",
}


def _display_path(file: str, root: Optional[Path]) -> str:
    if root is None:
        return file
    try:
        return Path(file).relative_to(root).as_posix()
    except ValueError:
        return file


class BaseFormatter(ABC):
    """Base class for formatters."""

    name: str = ""
    description: str = ""

    def __init__(self, root: Optional[Path] = None):
        self.root = root

    @abstractmethod
    def format_results(
        self, findings: List[Finding], summary: Dict[str, Any], cycles: Optional[List[CrossFileCycle]] = None
    ) -> str:
        """Format analysis results for output."""


class HumanFormatter(BaseFormatter):
    """Grouped, colored output for terminals."""

    name = "human"
    description = "Human-readable format with colors and styling"

    def __init__(self, root: Optional[Path] = None, color: bool = True, width: int = 100):
        super().__init__(root)
        self.color = color
        self.width = width

    def format_results(
        self, findings: List[Finding], summary: Dict[str, Any], cycles: Optional[List[CrossFileCycle]] = None
    ) -> str:
        buffer = StringIO()
        console = Console(file=buffer, force_terminal=self.color, no_color=not self.color, width=self.width)

        if not findings:
            console.print("[green]No hook loop issues found.[/green]")
        by_file: Dict[str, List[Finding]] = {}
        for finding in findings:
            by_file.setdefault(finding.file, []).append(finding)
        for file, file_findings in by_file.items():
            console.print(Text(_display_path(file, self.root), style="bold underline"))
            for finding in file_findings:
                style = _CATEGORY_STYLES.get(finding.category, "")
                header = Text("  ")
                header.append(f"{finding.line}:{(finding.column or 0) + 1}", style="dim")
                header.append(f"  {finding.error_code} ", style=style)
                header.append(f"[{finding.type.value}] ", style=style)
                header.append(f"{finding.hook_type} ")
                header.append(f"({finding.severity.value}/{finding.confidence.value})", style="dim")
                console.print(header)
                console.print(Text(f"      {finding.explanation}"))
                if finding.suggestion:
                    console.print(Text(f"      -> {finding.suggestion}", style="italic"))
            console.print()

        if cycles:
            console.print("[bold magenta]Import cycles[/bold magenta]")
            for cycle in cycles:
                files = " -> ".join(_display_path(f, self.root) for f in cycle.files)
                console.print(Text(f"  {files}"))
            console.print()

        table = Table(title="Summary", show_header=False, box=None)
        table.add_column("key", style="bold")
        table.add_column("value", justify="right")
        confirmed = sum(1 for f in findings if f.type is FindingType.CONFIRMED_INFINITE_LOOP)
        potential = sum(1 for f in findings if f.type is FindingType.POTENTIAL_ISSUE)
        table.add_row("Files analyzed", str(summary.get("files_analyzed", 0)))
        table.add_row("Hooks analyzed", str(summary.get("hooks_analyzed", 0)))
        table.add_row("Confirmed infinite loops", str(confirmed))
        table.add_row("Potential issues", str(potential))
        if summary.get("parse_errors"):
            table.add_row("Files with errors", str(summary["parse_errors"]))
        console.print(table)
        return buffer.getvalue().rstrip("\n")


class CompactFormatter(BaseFormatter):
    """One line per finding, suitable for editors and grep."""

    name = "compact"
    description = "file:line:column: code message"

    def format_results(
        self, findings: List[Finding], summary: Dict[str, Any], cycles: Optional[List[CrossFileCycle]] = None
    ) -> str:
        lines = []
        for finding in findings:
            location = f"{_display_path(finding.file, self.root)}:{finding.line}:{(finding.column or 0) + 1}"
            lines.append(f"{location}: {finding.error_code} {finding.severity.value} {finding.explanation}")
        return "\n".join(lines)


class JsonFormatter(BaseFormatter):
    """JSON output formatter for machine processing."""

    name = "json"
    description = "JSON output format for CI/tooling integration"

    def format_results(
        self, findings: List[Finding], summary: Dict[str, Any], cycles: Optional[List[CrossFileCycle]] = None
    ) -> str:
        """Format results as JSON."""
        result = {
            "summary": summary,
            "findings": [finding.to_dict() for finding in findings],
            "crossFileCycles": [cycle.to_dict() for cycle in cycles or []],
        }
        return json.dumps(result, indent=2, default=str)


class SarifFormatter(BaseFormatter):
    """SARIF output formatter for code scanning integrations."""

    name = "sarif"
    description = "SARIF 2.1.0 for code scanning"

    def format_results(
        self, findings: List[Finding], summary: Dict[str, Any], cycles: Optional[List[CrossFileCycle]] = None
    ) -> str:
        """Format results as SARIF JSON."""
        rules = {}
        results = []

        for finding in findings:
            if finding.error_code not in rules:
                rules[finding.error_code] = {
                    "id": finding.error_code,
                    "name": finding.family,
                    "shortDescription": {"text": finding.description or finding.error_code},
                    "defaultConfiguration": {"level": self._severity_to_sarif_level(finding.severity)},
                }

            result = {
                "ruleId": finding.error_code,
                "level": self._severity_to_sarif_level(finding.severity),
                "message": {"text": finding.explanation},
                "locations": [
                    {
                        "physicalLocation": {
                            "artifactLocation": {"uri": _display_path(finding.file, self.root)},
                            "region": {
                                "startLine": max(1, finding.line),
                                "startColumn": (finding.column or 0) + 1,
                            },
                        }
                    }
                ],
                "properties": {"type": finding.type.value, "confidence": finding.confidence.value},
            }
            if finding.suggestion:
                result["fixes"] = [{"description": {"text": finding.suggestion}}]
            results.append(result)

        sarif_output = {
            "$schema": "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json",
            "version": "2.1.0",
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": "hookloop",
                            "version": __version__,
                            "rules": list(rules.values()),
                        }
                    },
                    "results": results,
                }
            ],
        }
        return json.dumps(sarif_output, indent=2)

    def _severity_to_sarif_level(self, severity: Severity) -> str:
        mapping = {
            Severity.HIGH: "error",
            Severity.MEDIUM: "warning",
            Severity.LOW: "note",
        }
        return mapping.get(severity, "warning")


BUILTIN_FORMATTERS = {
    "human": HumanFormatter,
    "compact": CompactFormatter,
    "json": JsonFormatter,
    "sarif": SarifFormatter,
}

# Format choices for CLI
FORMAT_CHOICES = list(BUILTIN_FORMATTERS.keys())
DEFAULT_FORMAT = "human"
