"""
Analysis orchestration: runs the per-file analyzers with cross-file facts
available and merges their findings.

hookloop/src/hookloop/orchestrator.py
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from .context import AnalysisContext, AnalyzerOptions
from .cross_file import CrossFileFacts, build_cross_file_facts
from .dependencies import check_effect_loops, check_memo_hook, check_unstable_references
from .effects import analyze_state_interactions, build_local_function_setter_map, detect_effect_without_deps
from .keys import check_unstable_keys
from .models import CrossFileCycle, Finding
from .parser import EFFECT_HOOKS, HookNode, ParsedFile, ParseError, parse_file
from .props import check_sync_external_store, check_unstable_props
from .render_phase import check_render_phase
from .resolver import SOURCE_SUFFIXES, PathResolver
from .stability import StabilityFacts, extract_stability
from .utils import is_line_ignored

__all__ = ["AnalysisResult", "run_analysis", "analyze_file", "analyze_hook", "expand_import_closure"]

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    findings: List[Finding] = field(default_factory=list)
    cycles: List[CrossFileCycle] = field(default_factory=list)
    files_analyzed: int = 0
    hooks_analyzed: int = 0
    failed_files: List[str] = field(default_factory=list)


def _key(path: str) -> str:
    return str(Path(path).resolve())


def expand_import_closure(
    requested: Dict[str, ParsedFile],
    resolver,
    parse: Callable[[str], ParsedFile] = parse_file,
    limit: int = 500,
) -> Dict[str, ParsedFile]:
    """Add every source file reachable through imports, up to ``limit`` extra files."""
    universe = dict(requested)
    if resolver is None or limit <= 0:
        return universe
    queue = deque(requested)
    attempted = set(universe)
    added = 0
    while queue:
        file = queue.popleft()
        for record in universe[file].imports:
            target = resolver.resolve(file, record.source)
            if target is None or target in attempted or Path(target).suffix not in SOURCE_SUFFIXES:
                continue
            attempted.add(target)
            if added >= limit:
                logger.debug(f"Import closure limit {limit} reached; not following {target}")
                continue
            try:
                universe[target] = parse(target)
            except ParseError as e:
                logger.warning(f"Skipping imported file {target}: {e}")
                continue
            added += 1
            queue.append(target)
    return universe


def analyze_hook(
    hook: HookNode,
    parsed: ParsedFile,
    facts: StabilityFacts,
    local_map,
    cross: Optional[CrossFileFacts],
    ctx: AnalysisContext,
    file_key: str = "",
) -> List[Finding]:
    """Findings for a single hook call site."""
    interaction = analyze_state_interactions(
        hook.callback, facts, local_map, ctx, cross=cross, file_key=file_key, variables=parsed.variables
    )
    is_effect = hook.hook_type in EFFECT_HOOKS
    if is_effect and not hook.has_dependency_array:
        return detect_effect_without_deps(hook, interaction, ctx, parsed.file)
    if not is_effect and not hook.has_dependency_array:
        return check_memo_hook(hook, facts, interaction, ctx, parsed.file)

    unstable = check_unstable_references(hook, facts, interaction, ctx, parsed.file, is_effect)
    if unstable is not None:
        return [unstable]
    if is_effect:
        return check_effect_loops(hook, facts, interaction, ctx, parsed.file, file_key)
    return check_memo_hook(hook, facts, interaction, ctx, parsed.file)


def analyze_file(
    parsed: ParsedFile,
    ctx: AnalysisContext,
    cross: Optional[CrossFileFacts] = None,
    file_key: str = "",
    failed_files: Optional[List[str]] = None,
) -> List[Finding]:
    """All findings for one parsed file, with ignore comments applied.

    A failure in one stage is logged and ends the file's analysis; findings
    from the stages that already ran are still returned, and the file is
    appended to ``failed_files`` when given.
    """
    findings: List[Finding] = []
    try:
        ctx.select_checker(parsed.file)
        facts = extract_stability(parsed.ast, ctx, parsed.file)
        local_map = build_local_function_setter_map(parsed.ast, facts.setters, ctx)

        findings.extend(check_render_phase(parsed, facts, local_map, ctx))
        for hook in parsed.hooks:
            findings.extend(analyze_hook(hook, parsed, facts, local_map, cross, ctx, file_key))
        findings.extend(check_unstable_props(parsed, facts, ctx))
        findings.extend(check_sync_external_store(parsed, ctx))
        findings.extend(check_unstable_keys(parsed, ctx))
    except Exception as e:
        logger.warning(f"Analysis failed for {parsed.file}, keeping {len(findings)} earlier findings: {e}")
        logger.debug(f"Traceback for {parsed.file}", exc_info=True)
        if failed_files is not None:
            failed_files.append(parsed.file)

    lines = parsed.lines
    kept = []
    for finding in findings:
        if is_line_ignored(lines, finding.line):
            logger.debug(f"{parsed.file}:{finding.line} {finding.error_code} suppressed by ignore comment")
            continue
        kept.append(finding)
    return kept


def run_analysis(
    parsed_files: Iterable[ParsedFile],
    options: Optional[AnalyzerOptions] = None,
    resolver=None,
    parse: Callable[[str], ParsedFile] = parse_file,
) -> AnalysisResult:
    """Analyze ``parsed_files`` and return their merged, deterministically ordered findings.

    Files reached only through imports contribute cross-file facts and cycles
    but no findings of their own. A failure inside one file is logged, the
    findings it produced before failing are kept, and the run continues.
    """
    options = options or AnalyzerOptions()
    if resolver is None:
        resolver = PathResolver(options.project_root, options.tsconfig_path)
    ctx = AnalysisContext(options, resolver)

    requested: Dict[str, ParsedFile] = {}
    for parsed in parsed_files:
        requested[_key(parsed.file)] = parsed

    universe = expand_import_closure(requested, resolver, parse, options.max_import_closure)
    try:
        cross = build_cross_file_facts(universe, resolver, ctx)
    except Exception as e:
        logger.warning(f"Cross-file analysis failed, continuing with single-file analysis: {e}")
        logger.debug("Cross-file failure details", exc_info=True)
        cross = None

    result = AnalysisResult(cycles=list(cross.cycles) if cross is not None else [])
    for key in sorted(requested):
        parsed = requested[key]
        failures = len(result.failed_files)
        result.findings.extend(analyze_file(parsed, ctx, cross, key, result.failed_files))
        if len(result.failed_files) > failures:
            continue
        result.files_analyzed += 1
        result.hooks_analyzed += len(parsed.hooks)

    result.findings.sort(key=Finding.sort_key)
    return result
