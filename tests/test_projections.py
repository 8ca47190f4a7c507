from datetime import datetime, timezone

from workgraph.core.graph.project_graph import ProjectGraph
from workgraph.core.timeline import Timeline
from workgraph.core.views.projections import gantt, swimlane


def test_swimlane_groups_by_assignee_or_kind():
    g = ProjectGraph()
    epic = g.add_node("epic", "Epic")
    s1 = g.add_node("user_story", "S1", assignee="ana")
    s2 = g.add_node("user_story", "S2", assignee="raj")
    s3 = g.add_node("user_story", "S3", assignee="ana")
    s4 = g.add_node("user_story", "S4")
    for s in (s1, s2, s3, s4):
        g.add_edge(s, epic, "part_of")

    rows = swimlane(g, g.topological_order())
    assert [(r.lane, r.name) for r in rows] == [
        ("epic", "Epic"),
        ("ana", "S1"),
        ("ana", "S3"),
        ("raj", "S2"),
        ("unassigned", "S4"),
    ]


def test_gantt_only_timed_nodes():
    g = ProjectGraph()
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)
    timed = g.add_node("epic", "Timed", timeline=Timeline(start=start, estimated_hours=4))
    g.add_node("epic", "Untimed")

    rows = gantt(g, g.topological_order())
    assert [r.id for r in rows] == [timed]
    assert rows[0].start == start
    assert rows[0].end is None


def test_projections_tolerate_empty_and_unknown_input():
    g = ProjectGraph()
    assert swimlane(g, []) == []
    assert gantt(g, ["not-a-node"]) == []


def test_projections_do_not_mutate():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    before = (g.nodes(), g.edges())
    swimlane(g, [a])
    gantt(g, [a])
    assert (g.nodes(), g.edges()) == before
