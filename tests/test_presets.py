"""Tests for library preset detection."""

import json
from pathlib import Path

from hookloop.presets import LIBRARY_PRESETS, detect_presets, find_package_json, merge_presets


def _package_json(directory: Path, **sections) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps({"name": "app", **sections}), encoding="utf-8")
    return path


def test_detect_presets_from_all_dependency_sections(temp_dir: Path):
    _package_json(
        temp_dir,
        dependencies={"react": "^18.0.0", "zustand": "^4.0.0"},
        devDependencies={"react-redux": "^9.0.0"},
        peerDependencies={"jotai": "^2.0.0"},
    )
    presets = detect_presets(temp_dir)
    assert [p.package for p in presets] == ["jotai", "react-redux", "zustand"]


def test_find_package_json_skips_node_modules(temp_dir: Path):
    root = _package_json(temp_dir)
    nested = temp_dir / "node_modules" / "lib"
    _package_json(nested)
    assert find_package_json(nested / "index.js") == root
    assert find_package_json(temp_dir / "src") == root


def test_detect_presets_without_package_json(temp_dir: Path, monkeypatch):
    monkeypatch.setattr("hookloop.presets.find_package_json", lambda start: None)
    assert detect_presets(temp_dir) == []


def test_detect_presets_invalid_json(temp_dir: Path, caplog):
    (temp_dir / "package.json").write_text("{ broken", encoding="utf-8")
    assert detect_presets(temp_dir) == []
    assert "Could not read" in caplog.text


def test_merge_presets_deduplicates():
    merged = merge_presets([LIBRARY_PRESETS["react-router"], LIBRARY_PRESETS["react-router-dom"]])
    assert merged["stable_hooks"].count("useNavigate") == 1
    assert merged["unstable_hooks"] == []

    zustand = merge_presets([LIBRARY_PRESETS["zustand"]])
    assert zustand["stable_hook_patterns"] == [r"^use\w*Store$"]
    assert merge_presets([]) == {"stable_hooks": [], "unstable_hooks": [], "stable_hook_patterns": []}
