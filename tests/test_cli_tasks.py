import json
import shutil
from datetime import date
from pathlib import Path

import yaml
from typer.testing import CliRunner

from taskgraph.cli import app


runner = CliRunner()


def _workspace(tmp_path: Path) -> str:
    p = tmp_path / "workspace.yaml"
    shutil.copy("examples/diamond.yaml", p)
    return str(p)


def _tasks(path: str) -> dict[str, dict]:
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return {t["id"]: t for t in data["tasks"]}


def test_cli_set_dates(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["tasks", "set-dates", path, "X", "--due", "2024-03-10", "--actor", "olivia"])
    assert r.exit_code == 0, r.output
    assert "OK: X start=2024-03-04 due=2024-03-10 progress=0" in r.stdout
    assert _tasks(path)["X"]["due_date"] == date(2024, 3, 10)

    r = runner.invoke(app, ["schedule", path, "OPS", "--format", "json"])
    assert json.loads(r.stdout)["data"]["project_duration"] == 6


def test_cli_set_dates_json(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["tasks", "set-dates", path, "B", "--progress", "75", "--format", "json"])
    assert r.exit_code == 0, r.output
    assert json.loads(r.stdout)["data"] == {
        "id": "B",
        "task_key": "WEB-2",
        "start_date": None,
        "due_date": None,
        "progress": 75,
    }


def test_cli_set_dates_errors(tmp_path: Path):
    path = _workspace(tmp_path)
    before = Path(path).read_text(encoding="utf-8")

    r = runner.invoke(app, ["tasks", "set-dates", path, "X", "--progress", "10", "--actor", "mika"])
    assert r.exit_code == 2
    assert "E_FORBIDDEN" in r.output

    r = runner.invoke(app, ["tasks", "set-dates", path, "X", "--start", "someday"])
    assert r.exit_code == 2
    assert "E_VALIDATION" in r.output

    r = runner.invoke(app, ["tasks", "set-dates", path, "X", "--progress", "120"])
    assert r.exit_code == 2

    r = runner.invoke(app, ["tasks", "set-dates", path, "NOPE", "--progress", "10"])
    assert r.exit_code == 2
    assert "E_NOT_FOUND" in r.output

    assert Path(path).read_text(encoding="utf-8") == before


def test_cli_batch_update(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(app, ["tasks", "batch-update", path, "examples/batch-edits.yaml"])
    assert r.exit_code == 0, r.output
    assert "Updated 2 tasks" in r.stdout
    assert "Y: E_NOT_FOUND" in r.output

    tasks = _tasks(path)
    assert tasks["X"]["start_date"] == date(2024, 3, 11)
    assert tasks["X"]["due_date"] == date(2024, 3, 15)
    assert tasks["Z"]["progress"] == 50


def test_cli_batch_update_json(tmp_path: Path):
    path = _workspace(tmp_path)
    r = runner.invoke(
        app,
        ["--log-level", "ERROR", "tasks", "batch-update", path, "examples/batch-edits.yaml", "--format", "json"],
    )
    assert r.exit_code == 0, r.output
    data = json.loads(r.stdout)["data"]
    assert [s["id"] for s in data["applied"]] == ["X", "Z"]
    assert data["errors"] == [{"id": "Y", "code": "E_NOT_FOUND", "error": "task not found: Y"}]


def test_cli_batch_update_bad_payload(tmp_path: Path):
    path = _workspace(tmp_path)
    edits = tmp_path / "edits.yaml"
    edits.write_text("id: X\n", encoding="utf-8")

    r = runner.invoke(app, ["tasks", "batch-update", path, str(edits)])
    assert r.exit_code == 2
    assert "tasks array is required" in r.output

    r = runner.invoke(app, ["tasks", "batch-update", path, str(tmp_path / "missing.yaml")])
    assert r.exit_code == 1
    assert "E_FILE_NOT_FOUND" in r.output

    edits_dir = tmp_path / "edits-dir.yaml"
    edits_dir.mkdir()
    r = runner.invoke(app, ["tasks", "batch-update", path, str(edits_dir)])
    assert r.exit_code == 1
    assert "E_FILE_READ" in r.output
