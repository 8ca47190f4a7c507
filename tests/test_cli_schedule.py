import json
from pathlib import Path

from typer.testing import CliRunner

from workgraph.cli import app

runner = CliRunner()

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _wg(graph_file: Path, *args: str):
    return runner.invoke(app, ["--graph", str(graph_file), *args])


def _add(graph_file: Path, *args: str) -> str:
    r = _wg(graph_file, "add", *args)
    assert r.exit_code == 0, r.output
    return r.stdout.strip().splitlines()[-1]


def test_schedule_reports_conflict(tmp_path: Path):
    g = tmp_path / "graph.yaml"
    dep = _add(g, "epic", "Dep", "--start", "2025-01-01", "--end", "2025-01-08")
    node = _add(g, "epic", "Node", "--start", "2025-01-05", "--end", "2025-01-10")
    assert _wg(g, "link", node, dep).exit_code == 0

    r = _wg(g, "schedule", "--format", "json")
    assert r.exit_code == 0
    payload = json.loads(r.stdout)
    assert payload["ok"] is False
    assert payload["order"] == [dep, node]
    assert payload["conflicts"][0]["id"] == node
    assert payload["conflicts"][0]["blocking_ids"] == [dep]

    r = _wg(g, "schedule")
    assert r.exit_code == 0
    assert "CONFLICT:" in r.stdout


def test_schedule_warns_on_unscheduled_dependency(tmp_path: Path):
    g = tmp_path / "graph.yaml"
    dep = _add(g, "epic", "Dep")
    node = _add(g, "epic", "Node", "--start", "2025-01-05")
    _wg(g, "link", node, dep)

    r = _wg(g, "schedule")
    assert r.exit_code == 0
    assert "WARN:" in r.stdout
    assert "OK: no scheduling conflicts" in r.stdout


def test_critical_path(tmp_path: Path):
    g = tmp_path / "graph.yaml"
    a = _add(g, "epic", "Alpha", "--start", "2025-01-01", "--hours", "10")
    b = _add(g, "epic", "Beta", "--start", "2025-01-02", "--hours", "5")
    _add(g, "epic", "Gamma", "--start", "2025-01-01", "--hours", "12")
    _wg(g, "link", b, a)

    r = _wg(g, "critical-path")
    assert r.exit_code == 0
    assert "Total: 15 hours" in r.stdout


def test_view_swimlane_json(tmp_path: Path):
    g = tmp_path / "graph.yaml"
    epic = _add(g, "epic", "Epic")
    _add(g, "user_story", "S1", "--assignee", "ana", "--part-of", epic)
    _add(g, "user_story", "S2", "--part-of", epic)

    r = _wg(g, "view", "swimlane", "--format", "json")
    assert r.exit_code == 0
    rows = json.loads(r.stdout)["rows"]
    assert [(x["lane"], x["name"]) for x in rows] == [("epic", "Epic"), ("ana", "S1"), ("unassigned", "S2")]


def test_view_gantt(tmp_path: Path):
    g = tmp_path / "graph.yaml"
    _add(g, "epic", "Timed", "--start", "2025-01-01", "--end", "2025-01-03")
    _add(g, "epic", "Untimed")

    r = _wg(g, "view", "gantt", "--format", "json")
    assert r.exit_code == 0
    rows = json.loads(r.stdout)["rows"]
    assert [x["name"] for x in rows] == ["Timed"]

    r = _wg(g, "view", "gantt")
    assert r.exit_code == 0
    assert "Timed" in r.stdout
    assert "Untimed" not in r.stdout


def test_view_unknown(tmp_path: Path):
    r = _wg(tmp_path / "graph.yaml", "view", "pie")
    assert r.exit_code == 2
    assert "E_UNKNOWN_VIEW" in r.output


def test_view_on_example_file():
    r = runner.invoke(app, ["--graph", str(EXAMPLES / "basic-graph.yaml"), "view", "swimlane"])
    assert r.exit_code == 0
    assert "Swim lanes" in r.stdout
