"""hookloop: static detection of React hook infinite loops

Finds effects, render-phase updates and unstable references that make
React components re-render forever.
"""

__version__ = "0.1.0"

from hookloop.config import Config, ConfigError, config_to_options, load_config
from hookloop.context import AnalysisContext, AnalyzerOptions, CustomFunction
from hookloop.detector import DetectionResults, detect_project
from hookloop.models import (
    Category,
    Confidence,
    CrossFileCycle,
    Finding,
    FindingType,
    GuardType,
    Severity,
)
from hookloop.orchestrator import AnalysisResult, run_analysis
from hookloop.parser import ParsedFile, ParseError, parse_file, parse_source
from hookloop.resolver import PathResolver

__all__ = [
    # Configuration
    "Config",
    "ConfigError",
    "load_config",
    "config_to_options",
    "AnalyzerOptions",
    "AnalysisContext",
    "CustomFunction",
    # Parsing
    "ParsedFile",
    "ParseError",
    "parse_file",
    "parse_source",
    "PathResolver",
    # Analysis
    "run_analysis",
    "AnalysisResult",
    "detect_project",
    "DetectionResults",
    # Results
    "Finding",
    "FindingType",
    "Category",
    "Severity",
    "Confidence",
    "GuardType",
    "CrossFileCycle",
]
