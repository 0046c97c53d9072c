import json
import shutil
from pathlib import Path

import yaml
from typer.testing import CliRunner

from taskgraph.cli import app


runner = CliRunner()


def _workspace(tmp_path: Path) -> str:
    p = tmp_path / "workspace.yaml"
    shutil.copy("examples/diamond.yaml", p)
    return str(p)


def _deps(path: str) -> list[dict]:
    return yaml.safe_load(Path(path).read_text(encoding="utf-8"))["dependencies"]


def test_cli_deps_list():
    r = runner.invoke(app, ["deps", "list", "examples/diamond.yaml", "WEB"])
    assert r.exit_code == 0, r.output
    assert r.stdout.splitlines() == [
        "1: A -> B (FS, lag=0)",
        "2: A -> C (FS, lag=0)",
        "3: B -> D (SS, lag=2)",
        "4: C -> D (FS, lag=0)",
    ]

    r = runner.invoke(app, ["deps", "list", "examples/diamond.yaml", "OPS"])
    assert r.exit_code == 0
    assert "No dependencies in project OPS" in r.stdout


def test_cli_deps_list_json():
    r = runner.invoke(app, ["deps", "list", "examples/diamond.yaml", "WEB", "--format", "json"])
    assert r.exit_code == 0
    data = json.loads(r.stdout)["data"]
    assert len(data) == 4
    assert data[2]["predecessor"] == {"id": "B", "task_key": "WEB-2", "title": "Copywriting", "status": "in_progress"}
    assert data[2]["type"] == "SS"


def test_cli_deps_add_persists(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["deps", "add", path, "B", "C", "--type", "SS", "--lag=-1"])
    assert r.exit_code == 0, r.output
    assert "OK: added dependency 5: B -> C (SS, lag=-1)" in r.stdout

    added = _deps(path)[-1]
    assert added == {"id": 5, "predecessor_id": "B", "successor_id": "C", "type": "SS", "lag_days": -1}

    r = runner.invoke(app, ["validate", path])
    assert r.exit_code == 0, r.output


def test_cli_deps_add_cycle_rejected(tmp_path: Path):
    path = _workspace(tmp_path)
    before = Path(path).read_text(encoding="utf-8")

    r = runner.invoke(app, ["deps", "add", path, "D", "A"])
    assert r.exit_code == 2
    assert "E_CYCLE" in r.output
    assert "D -> A -> B -> D" in r.output
    assert Path(path).read_text(encoding="utf-8") == before


def test_cli_deps_add_errors_json(tmp_path: Path):
    path = _workspace(tmp_path)
    cases = [
        (["A", "A"], "E_VALIDATION"),
        (["A", "NOPE"], "E_NOT_FOUND"),
        (["A", "X"], "E_CROSS_PROJECT"),
        (["A", "B"], "E_DUPLICATE"),
        (["B", "C", "--type", "XX"], "E_VALIDATION"),
    ]
    for args, code in cases:
        r = runner.invoke(app, ["--log-level", "ERROR", "deps", "add", path, *args, "--format", "json"])
        assert r.exit_code == 2, args
        payload = json.loads(r.stdout)
        assert payload["ok"] is False
        assert payload["errors"][0]["code"] == code
    assert len(_deps(path)) == 4


def test_cli_deps_update(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["deps", "update", path, "3", "--lag", "0"])
    assert r.exit_code == 0, r.output
    assert "OK: updated dependency 3 (SS, lag=0)" in r.stdout
    edge = next(d for d in _deps(path) if d["id"] == 3)
    assert (edge["predecessor_id"], edge["successor_id"], edge["lag_days"]) == ("B", "D", 0)

    r = runner.invoke(app, ["deps", "update", path, "99", "--type", "FF"])
    assert r.exit_code == 2
    assert "E_NOT_FOUND" in r.output


def test_cli_deps_remove(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["deps", "remove", path, "2"])
    assert r.exit_code == 0, r.output
    assert "OK: removed dependency 2" in r.stdout
    assert [d["id"] for d in _deps(path)] == [1, 3, 4]

    r = runner.invoke(app, ["schedule", path, "WEB", "--format", "json"])
    assert json.loads(r.stdout)["data"]["project_duration"] == 4

    r = runner.invoke(app, ["deps", "remove", path, "2"])
    assert r.exit_code == 2
    assert "E_NOT_FOUND" in r.output
