"""
Import specifier resolution.

Turns ``import x from './y'`` or ``'@/components/y'`` into an absolute file
path, following ``tsconfig.json``/``jsconfig.json`` ``baseUrl`` and ``paths``.
Bare package specifiers resolve to None.

hookloop/src/hookloop/resolver.py
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

__all__ = ["SOURCE_EXTENSIONS", "SOURCE_SUFFIXES", "PathResolver", "find_tsconfig", "load_jsonc"]

logger = logging.getLogger(__name__)

SOURCE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js", ".mjs", ".cjs")
SOURCE_SUFFIXES = SOURCE_EXTENSIONS + (".mts", ".cts")
CONFIG_NAMES = ("tsconfig.json", "jsconfig.json")
MAX_EXTENDS_DEPTH = 5

# TypeScript lets `./x.js` name the `./x.ts` source
_EMITTED_TO_SOURCE = {
    ".js": (".ts", ".tsx"),
    ".jsx": (".tsx",),
    ".mjs": (".mts",),
    ".cjs": (".cts",),
}

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def _strip_comments(text: str) -> str:
    out = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def load_jsonc(path: Union[str, Path]) -> dict:
    """Load a JSON file that may contain comments and trailing commas."""
    text = Path(path).read_text(encoding="utf-8")
    cleaned = _TRAILING_COMMA.sub(r"\1", _strip_comments(text))
    data = json.loads(cleaned)
    return data if isinstance(data, dict) else {}


def find_tsconfig(start: Union[str, Path]) -> Optional[Path]:
    """Nearest tsconfig.json/jsconfig.json at or above ``start``."""
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    while True:
        for name in CONFIG_NAMES:
            candidate = current / name
            if candidate.is_file():
                return candidate
        if current.parent == current:
            return None
        current = current.parent


class PathResolver:
    """Resolves import specifiers relative to a project's compiler options."""

    def __init__(self, project_root: Optional[Union[str, Path]] = None, tsconfig_path: Optional[Union[str, Path]] = None):
        self.project_root = Path(project_root).resolve() if project_root else None
        self.base_url: Optional[Path] = None
        self.paths: Dict[str, List[str]] = {}
        self._paths_base: Optional[Path] = None

        config = Path(tsconfig_path) if tsconfig_path else None
        if config is None and self.project_root is not None:
            config = find_tsconfig(self.project_root)
        if config is not None:
            self._load_compiler_options(config)

    def _load_compiler_options(self, config: Path) -> None:
        chain = []
        current: Optional[Path] = config.resolve()
        for _ in range(MAX_EXTENDS_DEPTH):
            if current is None or not current.is_file():
                break
            try:
                data = load_jsonc(current)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not read {current}: {e}")
                break
            chain.append((current, data.get("compilerOptions") or {}))
            extends = data.get("extends")
            if not isinstance(extends, str) or not extends.startswith("."):
                break
            target = (current.parent / extends).resolve()
            current = target if target.suffix == ".json" else target.with_name(target.name + ".json")

        # the closest config overrides what it extends
        for path, options in reversed(chain):
            if "baseUrl" in options:
                self.base_url = (path.parent / options["baseUrl"]).resolve()
            if isinstance(options.get("paths"), dict):
                self.paths = {k: list(v) for k, v in options["paths"].items() if isinstance(v, list)}
                self._paths_base = path.parent
        logger.debug(f"Loaded compiler options from {config}: baseUrl={self.base_url}, {len(self.paths)} path aliases")

    def resolve(self, from_file: Union[str, Path], specifier: str) -> Optional[str]:
        """Absolute path of the module ``specifier`` imported from ``from_file``, or None."""
        if not specifier:
            return None
        if specifier.startswith("."):
            return self._probe(Path(from_file).resolve().parent / specifier)
        if specifier.startswith("/"):
            return self._probe(Path(specifier))
        for candidate in self._alias_candidates(specifier):
            resolved = self._probe(candidate)
            if resolved is not None:
                return resolved
        if self.base_url is not None:
            return self._probe(self.base_url / specifier)
        return None

    def _alias_candidates(self, specifier: str) -> List[Path]:
        base = self.base_url or self._paths_base
        if base is None or not self.paths:
            return []
        best = None
        best_prefix = -1
        for pattern in self.paths:
            if "*" in pattern:
                prefix, _, suffix = pattern.partition("*")
                if specifier.startswith(prefix) and specifier.endswith(suffix) and len(prefix) > best_prefix:
                    best = (pattern, specifier[len(prefix) : len(specifier) - len(suffix)])
                    best_prefix = len(prefix)
            elif pattern == specifier:
                best = (pattern, "")
                break
        if best is None:
            return []
        pattern, matched = best
        return [base / target.replace("*", matched) for target in self.paths[pattern]]

    def _probe(self, candidate: Path) -> Optional[str]:
        if candidate.suffix in SOURCE_SUFFIXES and candidate.is_file():
            return str(candidate.resolve())
        for ext in _EMITTED_TO_SOURCE.get(candidate.suffix, ()):
            source = candidate.with_suffix(ext)
            if source.is_file():
                return str(source.resolve())
        for ext in SOURCE_EXTENSIONS:
            with_ext = candidate.with_name(candidate.name + ext)
            if with_ext.is_file():
                return str(with_ext.resolve())
        if candidate.is_dir():
            for ext in SOURCE_EXTENSIONS:
                index = candidate / f"index{ext}"
                if index.is_file():
                    return str(index.resolve())
        return None
