import json
from pathlib import Path

from typer.testing import CliRunner

from opsflow.cli import app


runner = CliRunner()


def test_cli_deadline_text():
    r = runner.invoke(app, ["deadline", "examples/basic-process.yaml"])
    assert r.exit_code == 0, r.stdout + r.stderr
    assert r.stdout.strip() == "relative: +5 days (from step-4 'Archive records')"


def test_cli_deadline_json():
    r = runner.invoke(app, ["deadline", "examples/minimal-process.yaml", "--format", "json"])
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["deadline"] == {
        "type": "absolute",
        "value": "2024-04-02T17:00:00",
        "unit": None,
        "source_node_id": "step-1",
        "source_node_label": "Approve request",
    }


def test_cli_deadline_none(tmp_path: Path):
    out_path = tmp_path / "flow.yaml"
    r = runner.invoke(app, ["generate", "examples/sop.md", "--out", str(out_path)])
    assert r.exit_code == 0, r.stdout + r.stderr

    r = runner.invoke(app, ["deadline", str(out_path)])
    assert r.exit_code == 0
    assert "No deadline configured" in r.stdout


def test_cli_deadline_invalid_document():
    r = runner.invoke(app, ["deadline", "examples/invalid-bad-kind.yaml"])
    assert r.exit_code == 2
    assert "E_INVALID_ENUM" in (r.stdout + r.stderr)
