import json
from typer.testing import CliRunner

from issue_graph.cli import app

runner = CliRunner()


def test_cli_validate_json_success():
    r = runner.invoke(app, ["validate", "examples/basic-graph.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["error_count"] == 0
    assert payload["errors"] == []
    assert payload["summary"]["issue_count"] == 4
    assert payload["summary"]["ready"] == ["A"]
    assert payload["summary"]["blocked"] == ["B", "C", "D"]


def test_cli_validate_json_failure_contains_codes():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-status.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["summary"] is None
    codes = {e["code"] for e in payload["errors"]}
    assert codes == {"E_INVALID_ENUM", "E_INVALID_TYPE"}
    assert {e["source"] for e in payload["errors"]} == {"validate"}


def test_cli_validate_json_load_failure():
    r = runner.invoke(app, ["validate", "examples/nope.yaml", "--format", "json"])
    assert r.exit_code == 1
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_FILE_NOT_FOUND"
    assert payload["errors"][0]["source"] == "load"
