"""
Project-level driver: discover, parse, analyze and filter.

hookloop/src/hookloop/detector.py
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from .config import Config, config_to_options, load_config
from .discovery import discover_files
from .models import CrossFileCycle, Finding
from .orchestrator import run_analysis
from .parser import ParsedFile, ParseError, parse_file
from .resolver import PathResolver, find_tsconfig
from .rules import RuleEngine

__all__ = [
    "PARALLEL_THRESHOLD",
    "StrictModeDetection",
    "DetectionResults",
    "resolve_strict_mode",
    "parse_files",
    "detect_project",
]

logger = logging.getLogger(__name__)

PARALLEL_THRESHOLD = 20


@dataclass(frozen=True)
class StrictModeDetection:
    """How strict mode was decided: ``explicit``, ``disabled``, ``auto-detected`` or ``no-tsconfig``."""

    enabled: bool
    reason: str
    tsconfig_path: Optional[Path] = None


@dataclass
class DetectionResults:
    findings: List[Finding] = field(default_factory=list)
    cycles: List[CrossFileCycle] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    strict_mode: Optional[StrictModeDetection] = None
    project_root: Optional[Path] = None


def resolve_strict_mode(
    target: Path, config: Config, strict: Optional[bool] = None, tsconfig: Optional[Path] = None
) -> StrictModeDetection:
    """Explicit flag, then the config's ``strict``, then a tsconfig.json found near ``target``."""
    configured_tsconfig = None
    if config.get("tsconfig") and config.project_root is not None:
        configured_tsconfig = config.project_root / config.get("tsconfig")
    if strict is True:
        return StrictModeDetection(True, "explicit", tsconfig or configured_tsconfig)
    if strict is False:
        return StrictModeDetection(False, "disabled")
    if config.get("strict") is True:
        return StrictModeDetection(True, "explicit", tsconfig or configured_tsconfig)
    if config.get("strict") is False:
        return StrictModeDetection(False, "disabled")
    detected = tsconfig or configured_tsconfig or find_tsconfig(target)
    if detected is not None:
        return StrictModeDetection(True, "auto-detected", Path(detected))
    return StrictModeDetection(False, "no-tsconfig")


def _parse_one(path: Path) -> Tuple[Path, Optional[ParsedFile], Optional[str]]:
    try:
        return path, parse_file(str(path)), None
    except ParseError as e:
        return path, None, str(e)


def parse_files(
    files: List[Path],
    parallel: bool = False,
    workers: Optional[int] = None,
    show_progress: bool = False,
) -> Tuple[List[ParsedFile], List[str]]:
    """Parse ``files`` in order, returning the parsed files and the paths that failed."""
    parsed: List[ParsedFile] = []
    failed: List[str] = []
    if parallel:
        workers = workers or max(1, (os.cpu_count() or 2) - 1)
    logger.debug(f"Parsing {len(files)} files ({'parallel, ' + str(workers) + ' workers' if parallel else 'sequential'})")

    progress_cm = (
        Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=Console(stderr=True),
            transient=True,
        )
        if show_progress
        else nullcontext()
    )
    with progress_cm as progress:
        task_id = progress.add_task(f"Parsing {len(files)} files...", total=len(files)) if progress else None
        if parallel:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = executor.map(_parse_one, files)
                outcomes = []
                for outcome in results:
                    outcomes.append(outcome)
                    if progress:
                        progress.update(task_id, advance=1)
        else:
            outcomes = []
            for path in files:
                outcomes.append(_parse_one(path))
                if progress:
                    progress.update(task_id, advance=1)

    for path, result, error in outcomes:
        if result is None:
            logger.warning(f"Could not parse {path}: {error}")
            failed.append(str(path))
        else:
            parsed.append(result)
    return parsed, failed


def detect_project(
    target: Union[str, Path],
    config: Optional[Config] = None,
    *,
    debug: bool = False,
    parallel: Optional[bool] = None,
    workers: Optional[int] = None,
    strict: Optional[bool] = None,
    tsconfig: Optional[Union[str, Path]] = None,
    use_presets: Optional[bool] = None,
    min_severity: Optional[str] = None,
    min_confidence: Optional[str] = None,
    confirmed_only: bool = False,
    show_progress: bool = False,
    **option_overrides: Any,
) -> DetectionResults:
    """Analyze every React source file under ``target``.

    Configuration is loaded from ``target`` upward unless given. Findings are
    filtered through a ``RuleEngine`` built from the configuration and the
    explicit filter arguments; ``summary['filtered_count']`` counts what the
    filters removed.

    Raises:
        ConfigError: if the configuration is invalid.
    """
    start_time = time.perf_counter()
    target = Path(target).resolve()
    if config is None:
        config = load_config(target)
    tsconfig_path = Path(tsconfig).resolve() if tsconfig else None

    strict_mode = resolve_strict_mode(target, config, strict, tsconfig_path)
    logger.debug(f"Strict mode {'on' if strict_mode.enabled else 'off'} ({strict_mode.reason})")
    has_checker = any(
        option_overrides.get(key) is not None
        for key in ("type_checker", "type_checker_pool", "type_checker_factory")
    )
    # an auto-detected tsconfig alone does not warrant the missing-checker warning
    use_strict = strict_mode.enabled and (strict_mode.reason == "explicit" or has_checker)
    options = config_to_options(
        config,
        use_presets=use_presets,
        debug=debug,
        strict=use_strict,
        tsconfig=strict_mode.tsconfig_path or tsconfig_path,
        **option_overrides,
    )

    files = discover_files([target], config)
    if parallel is None:
        parallel = config.get("parallel")
    if parallel is None:
        parallel = len(files) >= config.get("parallel_threshold", PARALLEL_THRESHOLD)
    parsed, failed = parse_files(files, parallel, workers or config.get("max_workers"), show_progress)

    resolver = PathResolver(options.project_root or target, options.tsconfig_path)
    result = run_analysis(parsed, options, resolver)

    engine = RuleEngine(
        config.settings,
        min_severity=min_severity,
        min_confidence=min_confidence,
        confirmed_only=confirmed_only,
        debug=debug,
    )
    findings = engine.filter(result.findings)
    summary = {
        "files_analyzed": result.files_analyzed,
        "hooks_analyzed": result.hooks_analyzed,
        "cross_file_cycles": len(result.cycles),
        "findings": len(findings),
        "filtered_count": len(result.findings) - len(findings),
        "parse_errors": len(failed) + len(result.failed_files),
        "duration_ms": round((time.perf_counter() - start_time) * 1000),
    }
    logger.debug(f"Detection summary: {summary}")
    return DetectionResults(
        findings=findings,
        cycles=result.cycles,
        summary=summary,
        strict_mode=strict_mode,
        project_root=config.project_root,
    )
