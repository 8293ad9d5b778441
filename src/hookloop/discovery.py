"""
File discovery routines for hookloop.

Uses pathlib glob/rglob based on include patterns from the configuration,
then filters results using exclude patterns and a cheap React sniff.

hookloop/src/hookloop/discovery.py
"""

import fnmatch
import logging
import time
from pathlib import Path
from typing import List, Optional, Set

from .config import DEFAULT_EXCLUDE_GLOBS, DEFAULT_INCLUDE_GLOBS, Config
from .resolver import SOURCE_SUFFIXES

__all__ = ["discover_files", "is_likely_react_file", "DEFAULT_MAX_FILE_SIZE"]
logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024
SNIFF_BYTES = 2048

_JSX_EXTENSIONS = {".tsx", ".jsx"}
_REACT_MARKERS = ("react", "React", "useState", "useEffect", "useLayoutEffect", "useMemo", "useCallback", "</", "/>")


def _is_excluded(file_path_abs: Path, project_root: Path, exclude_globs: List[str]) -> bool:
    """
    Checks if a discovered file path matches one of the exclude globs.

    Patterns are matched against the path relative to ``project_root``
    with forward slashes. A leading ``**/`` also matches at the root.

    hookloop/src/hookloop/discovery.py
    """
    try:
        rel_path_str = file_path_abs.relative_to(project_root).as_posix()
    except ValueError:
        logger.warning(f"Path {file_path_abs} is outside project root {project_root}. Excluding.")
        return True

    for pattern in exclude_globs:
        normalized_pattern = pattern.replace("\\", "/")
        if fnmatch.fnmatch(rel_path_str, normalized_pattern) or (
            normalized_pattern.startswith("**/") and fnmatch.fnmatch(rel_path_str, normalized_pattern[3:])
        ):
            logger.debug(f"Excluding '{rel_path_str}' due to pattern '{pattern}'")
            return True
    return False


def is_likely_react_file(path: Path, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> bool:
    """Whether ``path`` is worth parsing.

    Files larger than ``max_file_size`` are skipped. ``.tsx``/``.jsx`` files are
    always kept; other sources only when their first 2 KB mention React,
    a hook, or JSX.
    """
    try:
        size = path.stat().st_size
    except OSError as e:
        logger.warning(f"Cannot stat {path}: {e}")
        return False
    if max_file_size and size > max_file_size:
        logger.debug(f"Skipping {path}: {size} bytes exceeds {max_file_size}")
        return False
    if path.suffix in _JSX_EXTENSIONS:
        return True
    try:
        with open(path, "rb") as f:
            head = f.read(SNIFF_BYTES).decode("utf-8", errors="ignore")
    except OSError as e:
        logger.warning(f"Cannot read {path}: {e}")
        return False
    return any(marker in head for marker in _REACT_MARKERS)


def discover_files(
    paths: List[Path],
    config: Config,
    max_file_size: Optional[int] = None,
) -> List[Path]:
    """
    Discovers source files under ``paths``.

    Explicit file arguments are taken as-is (if they have a source extension).
    Directories are globbed with ``include_globs`` (defaults to every
    JavaScript/TypeScript extension) and filtered with ``exclude_globs``
    (defaults skip node_modules, build output and tool caches). Symlinks are
    skipped. Candidates then go through ``is_likely_react_file``.

    Returns:
    A sorted list of unique absolute Path objects.

    hookloop/src/hookloop/discovery.py
    """
    include_globs = [p.replace("\\", "/") for p in config.get("include_globs", DEFAULT_INCLUDE_GLOBS)]
    exclude_globs = [p.replace("\\", "/") for p in config.get("exclude_globs", DEFAULT_EXCLUDE_GLOBS)]
    if max_file_size is None:
        max_file_size = config.get("max_file_size", DEFAULT_MAX_FILE_SIZE)

    logger.debug(f"Include globs: {include_globs}")
    logger.debug(f"Exclude globs: {exclude_globs}")

    start_time = time.time()
    candidate_files: Set[Path] = set()
    for target in paths:
        target = Path(target).resolve()
        if target.is_file():
            if target.suffix in SOURCE_SUFFIXES:
                candidate_files.add(target)
            else:
                logger.debug(f"Ignoring non-source file argument {target}")
            continue
        if not target.is_dir():
            logger.warning(f"Path does not exist: {target}")
            continue

        for pattern in include_globs:
            recursive = pattern.startswith("**/")
            glob_method = target.rglob if recursive else target.glob
            glob_pattern = pattern[3:] if recursive else pattern
            try:
                for p in glob_method(glob_pattern):
                    if p.is_symlink():
                        logger.debug(f"Skipping discovered symlink: {p}")
                        continue
                    if not p.is_file() or _is_excluded(p, target, exclude_globs):
                        continue
                    candidate_files.add(p.resolve())
            except PermissionError as e:
                logger.warning(f"Permission denied during glob for pattern '{pattern}': {e}. Skipping.")

    final_files = sorted(p for p in candidate_files if is_likely_react_file(p, max_file_size))
    logger.debug(
        f"Discovery finished in {time.time() - start_time:.4f} seconds: "
        f"{len(candidate_files)} candidates, {len(final_files)} kept"
    )
    return final_files
