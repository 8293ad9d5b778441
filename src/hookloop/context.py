"""
Run-scoped analysis configuration.

``AnalyzerOptions`` is what callers configure; ``AnalysisContext`` is created
once per top-level run from those options and handed explicitly to every
analyzer, so two runs never share mutable state.

hookloop/src/hookloop/context.py
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Pattern, Union

from .typecheck import TypeChecker, TypeCheckerPool

__all__ = ["CustomFunction", "AnalyzerOptions", "AnalysisContext"]

logger = logging.getLogger(__name__)

DEFAULT_SETTER_PATTERN = r"^set[A-Z]"
DEFAULT_CUSTOM_HOOK_PATTERN = r"^use[A-Z0-9]"
DEFAULT_UPDATER_PARAM_PATTERN = r"^(set|update)[A-Z]|^(setter|updater|update|dispatch)$|(Setter|Updater)$"
DEFAULT_MAX_IMPORT_CLOSURE = 500


def _compile(patterns: List[Union[str, Pattern]]) -> List[Pattern]:
    compiled = []
    for pattern in patterns:
        if isinstance(pattern, str):
            try:
                compiled.append(re.compile(pattern))
            except re.error as e:
                raise ValueError(f"Invalid hook pattern {pattern!r}: {e}") from e
        else:
            compiled.append(pattern)
    return compiled


@dataclass(frozen=True)
class CustomFunction:
    """Per-function overrides: ``stable`` return value, ``deferred`` callback receiver."""

    stable: Optional[bool] = None
    deferred: Optional[bool] = None


@dataclass
class AnalyzerOptions:
    """Configuration for one analysis run."""

    stable_hooks: List[str] = field(default_factory=list)
    unstable_hooks: List[str] = field(default_factory=list)
    stable_hook_patterns: List[Union[str, Pattern]] = field(default_factory=list)
    unstable_hook_patterns: List[Union[str, Pattern]] = field(default_factory=list)
    custom_functions: Dict[str, CustomFunction] = field(default_factory=dict)
    debug: bool = False
    strict: bool = False
    warn_on_index_key: bool = False
    project_root: Optional[Path] = None
    tsconfig_path: Optional[Path] = None
    type_checker: Optional[TypeChecker] = None
    type_checker_pool: Optional[TypeCheckerPool] = None
    type_checker_factory: Optional[Callable[[], TypeChecker]] = None
    setter_name_pattern: str = DEFAULT_SETTER_PATTERN
    custom_hook_pattern: str = DEFAULT_CUSTOM_HOOK_PATTERN
    updater_param_pattern: str = DEFAULT_UPDATER_PARAM_PATTERN
    max_import_closure: int = DEFAULT_MAX_IMPORT_CLOSURE

    def __post_init__(self):
        """Compile regex patterns and normalise custom function entries."""
        self.stable_hook_patterns = _compile(self.stable_hook_patterns)
        self.unstable_hook_patterns = _compile(self.unstable_hook_patterns)
        normalised = {}
        for name, entry in self.custom_functions.items():
            if isinstance(entry, dict):
                entry = CustomFunction(stable=entry.get("stable"), deferred=entry.get("deferred"))
            normalised[name] = entry
        self.custom_functions = normalised
        if self.max_import_closure < 0:
            raise ValueError("max_import_closure must not be negative")

    @property
    def deferred_functions(self) -> List[str]:
        return sorted(name for name, entry in self.custom_functions.items() if entry.deferred)


class AnalysisContext:
    """Per-run view of the options plus the collaborators resolved for the run.

    Attributes:
        options: The run configuration.
        resolver: Import path resolver, or None when imports are not followed.
        type_checker: Checker for the file currently being analysed (strict mode only).
    """

    def __init__(self, options: Optional[AnalyzerOptions] = None, resolver=None):
        self.options = options or AnalyzerOptions()
        self.resolver = resolver
        self.type_checker: Optional[TypeChecker] = None
        self._default_checker: Optional[TypeChecker] = None
        self._checker_failed = False
        self._setter_re = re.compile(self.options.setter_name_pattern)
        self._custom_hook_re = re.compile(self.options.custom_hook_pattern)
        self._updater_re = re.compile(self.options.updater_param_pattern)
        self._init_type_checker()

    def _init_type_checker(self) -> None:
        opts = self.options
        if not opts.strict:
            return
        if opts.type_checker is not None or opts.type_checker_pool is not None:
            self._default_checker = opts.type_checker
            return
        if opts.type_checker_factory is None:
            logger.warning(
                "Strict mode requested but no type checker is available; using heuristics only."
            )
            self._checker_failed = True
            return
        try:
            self._default_checker = opts.type_checker_factory()
        except Exception as e:
            logger.warning(f"Type checker initialization failed, falling back to heuristics: {e}")
            self._checker_failed = True

    @property
    def strict(self) -> bool:
        """True only when strict mode is on and a checker actually backs it."""
        return self.options.strict and not self._checker_failed

    def select_checker(self, file: str) -> Optional[TypeChecker]:
        """Pick the checker for ``file`` and make it current for the analyzers."""
        checker = None
        if self.strict:
            pool = self.options.type_checker_pool
            if pool is not None:
                try:
                    checker = pool.get_checker_for_file(file)
                except Exception as e:
                    logger.debug(f"Type checker pool failed for {file}: {e}")
            if checker is None:
                checker = self._default_checker
        self.type_checker = checker
        return checker

    def is_setter_name(self, name: Optional[str]) -> bool:
        return bool(name) and bool(self._setter_re.search(name))

    def is_custom_hook_name(self, name: Optional[str]) -> bool:
        return bool(name) and bool(self._custom_hook_re.search(name))

    def is_updater_param(self, name: Optional[str]) -> bool:
        return bool(name) and bool(self._updater_re.search(name))
