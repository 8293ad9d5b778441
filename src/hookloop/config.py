"""Configuration loading for hookloop.

Reads settings from a standalone ``hookloop.toml`` (top-level keys) or from the
``[tool.hookloop]`` section of ``pyproject.toml``, whichever is found first
walking up from the starting directory.

hookloop/src/hookloop/config.py
"""

import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

from .context import AnalyzerOptions, CustomFunction
from .presets import detect_presets, merge_presets

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

__all__ = [
    "ConfigError",
    "Config",
    "CONFIG_FILENAME",
    "DEFAULT_EXCLUDE_GLOBS",
    "DEFAULT_INCLUDE_GLOBS",
    "DEFAULT_CONFIG_TEMPLATE",
    "load_config",
    "config_to_options",
]

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "hookloop.toml"

DEFAULT_INCLUDE_GLOBS = ["**/*.tsx", "**/*.ts", "**/*.jsx", "**/*.js", "**/*.mjs", "**/*.cjs"]
DEFAULT_EXCLUDE_GLOBS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
    "**/.next/**",
    "**/.expo/**",
    "**/.nuxt/**",
    "**/.cache/**",
]

_LIST_KEYS = (
    "include_globs",
    "exclude_globs",
    "stable_hooks",
    "unstable_hooks",
    "stable_hook_patterns",
    "unstable_hook_patterns",
)
_BOOL_KEYS = ("presets", "include_potential_issues", "warn_on_index_key", "strict", "parallel")
_INT_KEYS = ("max_workers", "parallel_threshold", "max_file_size", "max_import_closure")
_LEVELS = ("low", "medium", "high")

DEFAULT_CONFIG_TEMPLATE = """\
# hookloop configuration
# Keys may also live under [tool.hookloop] in pyproject.toml.

# Files to analyze, relative to this file.
include_globs = ["**/*.tsx", "**/*.ts", "**/*.jsx", "**/*.js"]
exclude_globs = ["**/node_modules/**", "**/dist/**", "**/build/**", "**/.next/**", "**/.expo/**"]

# Hooks whose return value is a stable reference (exact names or regexes).
stable_hooks = []
stable_hook_patterns = []

# Hooks that return a new object on every call.
unstable_hooks = []
unstable_hook_patterns = []

# Detect stable hooks of known libraries from package.json.
presets = true

# Report filters.
min_severity = "low"
min_confidence = "medium"
include_potential_issues = true

# Flag key={index}; off by default because of its false-positive rate.
warn_on_index_key = false

# Per-rule overrides: "off" or a severity.
[rules]
# "RLD-409" = "off"

# Per-function overrides.
[custom_functions]
# fetchData = { stable = true }
# scheduleUpdate = { deferred = true }
"""


class ConfigError(ValueError):
    """Raised when configuration values are malformed."""


class Config:
    """Holds the hookloop configuration and the project root it was found in.

    Attributes:
        project_root: Directory containing the configuration file, or the
            starting directory when no file was found.
        settings: Read-only view of the loaded keys. Empty when no file was found.
        source: Path of the file the settings were read from, if any.

    hookloop/src/hookloop/config.py
    """

    def __init__(self, project_root: Optional[Path], config_dict: dict, source: Optional[Path] = None):
        self._project_root = project_root
        self._config_dict = dict(config_dict)
        self.source = source

    @property
    def project_root(self) -> Optional[Path]:
        return self._project_root

    @property
    def settings(self) -> Mapping[str, Any]:
        """Read-only view of the loaded settings.

        hookloop/src/hookloop/config.py
        """
        return self._config_dict

    def get(self, key: str, default: Any = None) -> Any:
        """Gets a value from the loaded settings, returning default if not found."""
        return self._config_dict.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Gets a value, raising KeyError if the key is not found.

        hookloop/src/hookloop/config.py
        """
        if key not in self._config_dict:
            raise KeyError(f"Required configuration key '{key}' not found in {self.source or CONFIG_FILENAME}.")
        return self._config_dict[key]

    def __contains__(self, key: str) -> bool:
        return key in self._config_dict

    def is_present(self) -> bool:
        """Checks if a project root was found and some settings were loaded."""
        return self._project_root is not None and bool(self._config_dict)


def _validate(settings: dict, source: Path) -> dict:
    for key in _LIST_KEYS:
        value = settings.get(key)
        if value is not None and not (isinstance(value, list) and all(isinstance(v, str) for v in value)):
            raise ConfigError(f"{source}: '{key}' must be a list of strings")
    for key in _BOOL_KEYS:
        value = settings.get(key)
        if value is not None and not isinstance(value, bool):
            raise ConfigError(f"{source}: '{key}' must be true or false")
    for key in _INT_KEYS:
        value = settings.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
            raise ConfigError(f"{source}: '{key}' must be a non-negative integer")
    for key in ("min_severity", "min_confidence"):
        value = settings.get(key)
        if value is not None and value not in _LEVELS:
            raise ConfigError(f"{source}: '{key}' must be one of {', '.join(_LEVELS)}")
    rules = settings.get("rules", {})
    if not isinstance(rules, dict):
        raise ConfigError(f"{source}: 'rules' must be a table")
    for code, value in rules.items():
        if value != "off" and value not in _LEVELS:
            raise ConfigError(f"{source}: rule '{code}' must be 'off' or a severity, got {value!r}")
    custom = settings.get("custom_functions", {})
    if not isinstance(custom, dict):
        raise ConfigError(f"{source}: 'custom_functions' must be a table")
    for name, entry in custom.items():
        if not isinstance(entry, dict) or any(
            k not in ("stable", "deferred") or not isinstance(v, bool) for k, v in entry.items()
        ):
            raise ConfigError(f"{source}: custom function '{name}' takes only boolean 'stable'/'deferred'")
    tsconfig = settings.get("tsconfig")
    if tsconfig is not None and not isinstance(tsconfig, str):
        raise ConfigError(f"{source}: 'tsconfig' must be a path string")
    return settings


def _read_toml(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Error parsing {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {path}: {e}") from e


def load_config(start_path: Union[str, Path]) -> Config:
    """Loads hookloop configuration, walking upward from ``start_path``.

    In each directory a ``hookloop.toml`` wins over a ``pyproject.toml``;
    a ``pyproject.toml`` without a ``[tool.hookloop]`` table is skipped.

    Raises:
        ConfigError: if the file found cannot be parsed or has invalid values.

    hookloop/src/hookloop/config.py
    """
    start = Path(start_path).resolve()
    current = start.parent if start.is_file() else start
    while True:
        standalone = current / CONFIG_FILENAME
        if standalone.is_file():
            logger.debug(f"Loading configuration from {standalone}")
            return Config(current, _validate(_read_toml(standalone), standalone), standalone)
        pyproject = current / "pyproject.toml"
        if pyproject.is_file():
            data = _read_toml(pyproject)
            section = data.get("tool", {}).get("hookloop")
            if section is not None:
                if not isinstance(section, dict):
                    raise ConfigError(f"[tool.hookloop] in {pyproject} is not a table")
                logger.debug(f"Loading [tool.hookloop] from {pyproject}")
                return Config(current, _validate(section, pyproject), pyproject)
        if current.parent == current:
            break
        current = current.parent
    logger.debug(f"No hookloop configuration found above {start}; using defaults")
    return Config(start.parent if start.is_file() else start, {})


def config_to_options(
    config: Config,
    *,
    use_presets: Optional[bool] = None,
    debug: bool = False,
    strict: bool = False,
    tsconfig: Optional[Union[str, Path]] = None,
    warn_on_index_key: Optional[bool] = None,
    **extra: Any,
) -> AnalyzerOptions:
    """Build the run configuration: defaults < library presets < config file < arguments.

    Raises:
        ConfigError: if a configured regex pattern does not compile.
    """
    stable_hooks: list = []
    unstable_hooks: list = []
    stable_patterns: list = []
    if use_presets is None:
        use_presets = config.get("presets", True)
    if use_presets and config.project_root is not None:
        merged = merge_presets(detect_presets(config.project_root))
        stable_hooks.extend(merged["stable_hooks"])
        unstable_hooks.extend(merged["unstable_hooks"])
        stable_patterns.extend(merged["stable_hook_patterns"])

    stable_hooks.extend(config.get("stable_hooks", []))
    unstable_hooks.extend(config.get("unstable_hooks", []))
    stable_patterns.extend(config.get("stable_hook_patterns", []))

    custom = {
        name: CustomFunction(stable=entry.get("stable"), deferred=entry.get("deferred"))
        for name, entry in config.get("custom_functions", {}).items()
    }
    if tsconfig is None and config.get("tsconfig") and config.project_root is not None:
        tsconfig = config.project_root / config.get("tsconfig")
    if warn_on_index_key is None:
        warn_on_index_key = config.get("warn_on_index_key", False)

    settings = dict(
        stable_hooks=stable_hooks,
        unstable_hooks=unstable_hooks,
        stable_hook_patterns=stable_patterns,
        unstable_hook_patterns=list(config.get("unstable_hook_patterns", [])),
        custom_functions=custom,
        debug=debug,
        strict=strict,
        warn_on_index_key=warn_on_index_key,
        project_root=config.project_root,
        tsconfig_path=Path(tsconfig) if tsconfig else None,
    )
    if "max_import_closure" in config:
        settings["max_import_closure"] = config["max_import_closure"]
    settings.update(extra)
    try:
        return AnalyzerOptions(**settings)
    except ValueError as e:
        raise ConfigError(str(e)) from e
