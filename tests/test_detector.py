"""Tests for the project-level detector."""

from pathlib import Path

import pytest

from hookloop.config import Config, ConfigError
from hookloop.detector import detect_project, parse_files, resolve_strict_mode
from hookloop.models import FindingType

LOOPING = """
import { useEffect, useState } from 'react';
export function Counter() {
  const [count, setCount] = useState(0);
  useEffect(() => { setCount(count + 1); }, [count]);
  return <span>{count}</span>;
}
"""

GUARDED = """
import { useEffect, useState } from 'react';
export function Limited() {
  const [count, setCount] = useState(0);
  useEffect(() => { if (count < 3) setCount(count + 1); }, [count]);
  return <span>{count}</span>;
}
"""


@pytest.fixture
def project(temp_dir: Path, write_source) -> Path:
    write_source("src/Counter.tsx", LOOPING)
    write_source("src/Limited.tsx", GUARDED)
    write_source("src/Broken.tsx", "export function Broken() { return <div>; }\n")
    write_source("node_modules/pkg/Looping.tsx", LOOPING)
    return temp_dir


def test_detect_project(project: Path):
    """Discovery, parsing, analysis and summary in one call."""
    results = detect_project(project, Config(project, {}))

    codes = {(Path(f.file).name, f.error_code) for f in results.findings}
    assert ("Counter.tsx", "RLD-200") in codes
    assert all("node_modules" not in f.file for f in results.findings)
    assert results.project_root == project
    assert results.summary["files_analyzed"] == 2
    assert results.summary["hooks_analyzed"] >= 2
    assert results.summary["parse_errors"] == 1
    assert results.summary["findings"] == len(results.findings)
    assert results.cycles == []
    assert results.strict_mode.reason == "no-tsconfig"


def test_detect_project_filters(project: Path):
    everything = detect_project(project, Config(project, {}))
    confirmed = detect_project(project, Config(project, {}), confirmed_only=True)

    assert all(f.type is FindingType.CONFIRMED_INFINITE_LOOP for f in confirmed.findings)
    assert confirmed.findings
    removed = confirmed.summary["filtered_count"] - everything.summary["filtered_count"]
    assert removed == len(everything.findings) - len(confirmed.findings) > 0


def test_detect_project_rule_overrides(project: Path):
    config = Config(project, {"rules": {"RLD-200": "off"}})
    results = detect_project(project, config)
    assert "RLD-200" not in {f.error_code for f in results.findings}


def test_detect_project_parallel_matches_sequential(project: Path):
    sequential = detect_project(project, Config(project, {}), parallel=False)
    parallel = detect_project(project, Config(project, {}), parallel=True, workers=2)
    assert [f.to_dict() for f in parallel.findings] == [f.to_dict() for f in sequential.findings]


def test_detect_project_loads_config(project: Path):
    (project / "hookloop.toml").write_text('exclude_globs = ["**/Counter.tsx", "**/node_modules/**"]\n')
    results = detect_project(project)
    assert all(Path(f.file).name != "Counter.tsx" for f in results.findings)


def test_detect_project_invalid_config(project: Path):
    (project / "hookloop.toml").write_text('min_severity = "extreme"\n')
    with pytest.raises(ConfigError):
        detect_project(project)


def test_parse_files_reports_failures(temp_dir: Path, write_source):
    good = write_source("Good.tsx", "export const Good = () => <div />;\n")
    bad = write_source("Bad.tsx", "export const Bad = () => <div>;\n")

    parsed, failed = parse_files([good, bad])
    assert [p.file for p in parsed] == [str(good)]
    assert failed == [str(bad)]


@pytest.mark.parametrize(
    "strict, settings, enabled, reason",
    [
        (True, {}, True, "explicit"),
        (False, {"strict": True}, False, "disabled"),
        (None, {"strict": True}, True, "explicit"),
        (None, {"strict": False}, False, "disabled"),
        (None, {}, False, "no-tsconfig"),
    ],
)
def test_resolve_strict_mode(temp_dir: Path, strict, settings, enabled, reason):
    detection = resolve_strict_mode(temp_dir, Config(temp_dir, settings), strict)
    assert detection.enabled is enabled
    assert detection.reason == reason


def test_resolve_strict_mode_auto_detects_tsconfig(temp_dir: Path):
    tsconfig = temp_dir / "tsconfig.json"
    tsconfig.write_text("{}")
    nested = temp_dir / "src"
    nested.mkdir()

    detection = resolve_strict_mode(nested, Config(temp_dir, {}))
    assert detection.enabled
    assert detection.reason == "auto-detected"
    assert detection.tsconfig_path == tsconfig

    configured = resolve_strict_mode(nested, Config(temp_dir, {"tsconfig": "tsconfig.app.json"}), True)
    assert configured.tsconfig_path == temp_dir / "tsconfig.app.json"
