from pathlib import Path

import yaml
from typer.testing import CliRunner

from issue_graph.cli import app

runner = CliRunner()


def test_cli_add_dep_success(tmp_path: Path):
    out = tmp_path / "out.yaml"
    r = runner.invoke(app, ["add-dep", "examples/basic-graph.yaml", "D", "B", "--out", str(out)])
    assert r.exit_code == 0
    assert "OK: D now depends on B" in r.stdout

    data = yaml.safe_load(out.read_text(encoding="utf-8"))
    deps = {i["id"]: i["dependencies"] for i in data["issues"]}
    assert deps["D"] == ["A", "B"]


def test_cli_add_dep_rejects_cycle(tmp_path: Path):
    out = tmp_path / "out.yaml"
    r = runner.invoke(app, ["add-dep", "examples/basic-graph.yaml", "A", "C", "--out", str(out)])
    assert r.exit_code == 2
    assert not out.exists()
    assert "E_CYCLE_DETECTED" in r.output
    assert "Remove one of these edges" in r.output
    assert "C -> B" in r.output
    assert "B -> A" in r.output


def test_cli_add_dep_self_and_unknown(tmp_path: Path):
    out = tmp_path / "out.yaml"
    r = runner.invoke(app, ["add-dep", "examples/basic-graph.yaml", "A", "A", "--out", str(out)])
    assert r.exit_code == 2
    assert "E_SELF_REFERENCE" in r.output

    r = runner.invoke(app, ["add-dep", "examples/basic-graph.yaml", "A", "ZZZ", "--out", str(out)])
    assert r.exit_code == 2
    assert "E_NOT_FOUND" in r.output
