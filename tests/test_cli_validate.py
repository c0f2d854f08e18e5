import json

from typer.testing import CliRunner

from opsflow.cli import app


runner = CliRunner()


def test_cli_validate_success():
    r = runner.invoke(app, ["validate", "examples/basic-process.yaml"])
    assert r.exit_code == 0
    assert "OK: 6 nodes" in r.stdout
    assert "Tasks: 5 (4 assigned)" in r.stdout


def test_cli_validate_failure():
    r = runner.invoke(app, ["validate", "examples/invalid-bad-kind.yaml"])
    assert r.exit_code == 2
    assert "E_INVALID_ENUM" in (r.stdout + r.stderr)


def test_cli_validate_missing_file():
    r = runner.invoke(app, ["validate", "examples/nope.yaml"])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in (r.stdout + r.stderr)


def test_cli_validate_json():
    r = runner.invoke(app, ["validate", "examples/basic-process.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["command"] == "validate"
    assert payload["ok"] is True
    assert payload["summary"]["node_count"] == 6
    assert payload["summary"]["kind_counts"] == {"start": 1, "step": 4, "end": 1}


def test_cli_validate_json_failure():
    r = runner.invoke(app, ["validate", "examples/invalid-missing-field.yaml", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert {e["code"] for e in payload["errors"]} == {"E_REQUIRED_FIELD"}
    assert all(e["source"] == "validate" for e in payload["errors"])


def test_cli_unknown_format():
    r = runner.invoke(app, ["validate", "examples/basic-process.yaml", "--format", "xml"])
    assert r.exit_code == 2
    assert "E_VALIDATE_UNKNOWN_FORMAT" in (r.stdout + r.stderr)
