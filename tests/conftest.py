"""Pytest configuration and fixtures for hookloop tests."""

import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Iterator, List

import pytest

from hookloop.config import Config
from hookloop.context import AnalyzerOptions
from hookloop.models import Finding
from hookloop.orchestrator import run_analysis
from hookloop.parser import parse_file
from hookloop.resolver import PathResolver


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def write_source(temp_dir: Path) -> Callable[..., Path]:
    """Write a dedented source file below temp_dir and return its path."""

    def _write(name: str, source: str) -> Path:
        path = temp_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def analyze_source(temp_dir: Path, write_source) -> Callable[..., List[Finding]]:
    """Write one component file and return the findings for it."""

    def _analyze(source: str, name: str = "Component.tsx", **options) -> List[Finding]:
        path = write_source(name, source)
        result = run_analysis(
            [parse_file(path)],
            AnalyzerOptions(project_root=temp_dir, **options),
            PathResolver(temp_dir),
        )
        return result.findings

    return _analyze


@pytest.fixture
def sample_config(temp_dir: Path) -> Config:
    """Create a sample Config object for testing."""
    return Config(
        project_root=temp_dir,
        config_dict={
            "include_globs": ["**/*.tsx", "**/*.ts"],
            "exclude_globs": ["**/node_modules/**"],
            "rules": {},
        },
    )
