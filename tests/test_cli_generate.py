from pathlib import Path

import yaml
from typer.testing import CliRunner

from opsflow.cli import app


runner = CliRunner()


def _load_yaml(p: Path) -> dict:
    return yaml.safe_load(p.read_text(encoding="utf-8"))


def test_generate_from_sop(tmp_path: Path):
    out_path = tmp_path / "close.yaml"
    r = runner.invoke(app, ["generate", "examples/sop.md", "--out", str(out_path), "--name", "Month-end close"])
    assert r.exit_code == 0, r.stdout + r.stderr
    assert "steps=3" in r.stdout

    got = _load_yaml(out_path)
    assert got["name"] == "Month-end close"
    kinds = [n["kind"] for n in got["nodes"]]
    assert kinds == ["start", "step", "step", "step", "end"]
    assert len(got["edges"]) == 4

    step_ids = [n["id"] for n in got["nodes"] if n["kind"] == "step"]
    assert [t["node_id"] for t in got["tasks"]] == step_ids
    assert [n["attributes"]["label"] for n in got["nodes"][1:4]] == [t["text"] for t in got["tasks"]]
    assert [n["position"]["y"] for n in got["nodes"]] == [50, 200, 350, 500, 650]

    r = runner.invoke(app, ["validate", str(out_path)])
    assert r.exit_code == 0, r.stdout + r.stderr


def test_generate_uses_settings_layout(tmp_path: Path):
    settings = tmp_path / "settings.yaml"
    settings.write_text("column_x: 10\nstart_y: 0\nnode_spacing: 100\n", encoding="utf-8")
    out_path = tmp_path / "flow.yaml"
    r = runner.invoke(
        app, ["generate", "examples/sop.md", "--out", str(out_path), "--settings", str(settings)]
    )
    assert r.exit_code == 0, r.stdout + r.stderr
    got = _load_yaml(out_path)
    assert got["name"] == "sop"
    assert [n["position"] for n in got["nodes"]][-1] == {"x": 10, "y": 400}


def test_generate_missing_inputs(tmp_path: Path):
    r = runner.invoke(app, ["generate", "examples/missing.md", "--out", str(tmp_path / "x.yaml")])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in (r.stdout + r.stderr)

    r = runner.invoke(
        app,
        ["generate", "examples/sop.md", "--out", str(tmp_path / "x.yaml"), "--settings", str(tmp_path / "none.yaml")],
    )
    assert r.exit_code == 1
    assert "E_SETTINGS_FILE_NOT_FOUND" in (r.stdout + r.stderr)
