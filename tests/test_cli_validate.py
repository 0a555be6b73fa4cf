from typer.testing import CliRunner

from issue_graph.cli import app


runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/basic-graph.yaml"])
    assert r.exit_code == 0
    assert "OK: 4 issues (open=4, in_progress=0, closed=0)" in r.stdout
    assert "Ready: A" in r.stdout


def test_cli_validate_failure():
    r = runner.invoke(app, ["validate", "examples/invalid-duplicate-id.yaml"])
    assert r.exit_code == 2
    assert "E_DUPLICATE_ID" in r.output


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/nope.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output


def test_cli_validate_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-graph.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in r.output
