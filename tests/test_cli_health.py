import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from issue_graph.cli import app

runner = CliRunner()


def test_cli_health_ok():
    r = runner.invoke(app, ["health", "examples/basic-graph.yaml"])
    assert r.exit_code == 0
    assert "OK: graph is healthy" in r.stdout


def test_cli_health_reports_dirty_edges():
    r = runner.invoke(app, ["health", "examples/dirty-graph.yaml"])
    assert r.exit_code == 2
    assert "L_INVALID_EDGE" in r.output
    assert "L_REDUNDANT_EDGE" in r.output
    assert "issues.A.dependencies" in r.output


def test_cli_health_json_cycle():
    r = runner.invoke(app, ["health", "examples/cyclic-graph.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert len(payload["cycles"]) == 1
    assert set(payload["cycles"][0]) == {"A", "B", "C"}
    assert payload["invalid_edges"] == []


def test_cli_fix_removes_dirty_edges(tmp_path: Path):
    out = tmp_path / "fixed.yaml"
    r = runner.invoke(app, ["fix", "examples/dirty-graph.yaml", "--out", str(out)])
    assert r.exit_code == 0
    assert "invalid_removed=1, redundant_removed=1" in r.stdout

    data = yaml.safe_load(out.read_text(encoding="utf-8"))
    deps = {i["id"]: i["dependencies"] for i in data["issues"]}
    assert deps == {"A": ["B"], "B": ["C"], "C": []}

    r = runner.invoke(app, ["health", str(out)])
    assert r.exit_code == 0


def test_cli_fix_can_keep_redundant(tmp_path: Path):
    out = tmp_path / "fixed.yaml"
    r = runner.invoke(app, ["fix", "examples/dirty-graph.yaml", "--out", str(out), "--keep-redundant"])
    assert r.exit_code == 0
    data = yaml.safe_load(out.read_text(encoding="utf-8"))
    assert data["issues"][0]["dependencies"] == ["B", "C"]


def test_cli_fix_leaves_cycles_for_the_user(tmp_path: Path):
    out = tmp_path / "fixed.yaml"
    r = runner.invoke(app, ["fix", "examples/cyclic-graph.yaml", "--out", str(out)])
    assert r.exit_code == 2
    assert out.exists()
    assert "cycles need manual resolution" in r.output
