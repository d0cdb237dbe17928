"""Tests for the HTML report script."""

from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path
from types import ModuleType

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "run_classification.py"


@pytest.fixture
def script(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> ModuleType:
    """Import the report script with no ambient config file."""
    monkeypatch.delenv("PHENOCLUSTER_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    spec = importlib.util.spec_from_file_location("run_classification", SCRIPT)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(script: ModuleType, monkeypatch: pytest.MonkeyPatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["run_classification.py", *args])
    script.main()


@pytest.mark.unit
class TestRunClassification:
    """Verify the command-line report."""

    def test_demo_report(
        self, script: ModuleType, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        report = tmp_path / "report.html"
        leaflet = tmp_path / "map.html"
        _run(
            script,
            monkeypatch,
            "--demo",
            "-k",
            "3",
            "-o",
            str(report),
            "--map",
            str(leaflet),
        )

        page = report.read_text(encoding="utf-8")
        assert "data:image/png;base64," in page
        assert "<title>Land Cover Classification" in page
        assert "interpretation" in page
        assert "leaflet" in leaflet.read_text(encoding="utf-8").lower()

    def test_missing_config_file_exits(
        self,
        script: ModuleType,
        monkeypatch: pytest.MonkeyPatch,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        report = tmp_path / "report.html"
        with pytest.raises(SystemExit) as excinfo:
            _run(
                script,
                monkeypatch,
                "--demo",
                "--config",
                str(tmp_path / "absent.json"),
                "-o",
                str(report),
            )

        assert excinfo.value.code == 1
        assert "File not found" in capsys.readouterr().out
        assert not report.exists()

    def test_relative_output_under_output_dir(
        self, script: ModuleType, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        out_dir = tmp_path / "out"
        config_file = tmp_path / "config.json"
        config_file.write_text(
            json.dumps({"output_dir": str(out_dir), "n_clusters": 3}), encoding="utf-8"
        )
        monkeypatch.chdir(tmp_path)
        _run(script, monkeypatch, "--demo", "--config", str(config_file), "-o", "report.html")

        assert (out_dir / "report.html").exists()
        assert not (tmp_path / "report.html").exists()

    def test_invalid_cluster_count_exits(
        self, script: ModuleType, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with pytest.raises(SystemExit) as excinfo:
            _run(script, monkeypatch, "--demo", "-k", "0")
        assert excinfo.value.code == 1

    def test_resolve_output_path_keeps_absolute(
        self, script: ModuleType, tmp_path: Path
    ) -> None:
        target = tmp_path / "a" / "report.html"
        assert script.resolve_output_path(str(target), tmp_path / "other") == target
        assert target.parent.is_dir()
