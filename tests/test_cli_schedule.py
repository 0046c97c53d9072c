import json

from typer.testing import CliRunner

from taskgraph.cli import app


runner = CliRunner()


def test_cli_schedule_text():
    r = runner.invoke(app, ["schedule", "examples/diamond.yaml", "WEB"])
    assert r.exit_code == 0, r.output
    assert "Schedule: WEB" in r.stdout
    assert "Project duration: 5 days" in r.stdout
    assert "Critical path: A -> C -> D" in r.stdout


def test_cli_schedule_json():
    r = runner.invoke(app, ["schedule", "examples/diamond.yaml", "WEB", "--format", "json"])
    assert r.exit_code == 0
    data = json.loads(r.stdout)["data"]
    assert data["project_duration"] == 5
    assert [n["id"] for n in data["critical_path"]] == ["A", "C", "D"]
    slack = {n["id"]: n["slack"] for n in data["all_tasks"]}
    assert slack == {"A": 0, "B": 1, "C": 0, "D": 0}


def test_cli_schedule_uses_settings():
    r = runner.invoke(
        app,
        [
            "--settings",
            "examples/settings.yaml",
            "--log-level",
            "ERROR",
            "schedule",
            "examples/diamond.yaml",
            "WEB",
            "--format",
            "json",
        ],
    )
    assert r.exit_code == 0, r.output
    assert json.loads(r.stdout)["data"]["project_duration"] == 9


def test_cli_schedule_empty_or_unknown_project():
    r = runner.invoke(app, ["schedule", "examples/diamond.yaml", "EMPTY"])
    assert r.exit_code == 2
    assert "E_NOT_FOUND" in r.output

    r = runner.invoke(app, ["schedule", "examples/diamond.yaml", "NOPE", "--format", "json"])
    assert r.exit_code == 2
    payload = json.loads(r.stdout)
    assert payload["errors"][0]["code"] == "E_NOT_FOUND"
    assert payload["errors"][0]["source"] == "graph"


def test_cli_schedule_cycle_in_file():
    r = runner.invoke(app, ["schedule", "examples/invalid-cycle.yaml", "P1"])
    assert r.exit_code == 2
    assert "E_CYCLE" in r.output
