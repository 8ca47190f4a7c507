import random

import pytest

from workgraph.core.errors import CycleDetectedError, InvalidAttributeError, NotFoundError
from workgraph.core.graph.project_graph import ProjectGraph


def _example():
    g = ProjectGraph()
    s = g.add_node("spec", "S")
    p = g.add_node("project", "P")
    e1 = g.add_node("epic", "E1")
    e2 = g.add_node("epic", "E2")
    g.add_edge(e2, e1, "depends_on")
    g.add_edge(p, s, "part_of")
    return g, s, p, e1, e2


def test_topological_order_example():
    g, s, p, e1, e2 = _example()
    order = g.topological_order()
    assert order.index(e1) < order.index(e2)
    assert order.index(s) < order.index(p)
    assert sorted(order) == sorted([s, p, e1, e2])


def test_topological_order_respects_every_edge_and_is_deterministic():
    g, *_ = _example()
    order = g.topological_order()
    pos = {nid: i for i, nid in enumerate(order)}
    for e in g.edges():
        assert pos[e.target] < pos[e.source]
    assert g.topological_order() == order


def test_ties_broken_by_creation_order():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    c = g.add_node("epic", "C")
    # a waits on c; b and c are free, so b (created first) comes before c.
    g.add_edge(a, c, "depends_on")
    assert g.topological_order() == [b, c, a]


def test_cycle_rejected_and_graph_unchanged():
    g = ProjectGraph()
    e1 = g.add_node("epic", "E1")
    e2 = g.add_node("epic", "E2")
    g.add_edge(e1, e2, "depends_on")
    before = g.edges()

    with pytest.raises(CycleDetectedError) as ei:
        g.add_edge(e2, e1, "depends_on")
    assert ei.value.code == "E_CYCLE_DETECTED"
    assert ei.value.ids == (e2, e1, e2)
    assert g.edges() == before


def test_mixed_type_cycle_rejected():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    c = g.add_node("epic", "C")
    g.add_edge(a, b, "depends_on")
    g.add_edge(b, c, "blocked_by")
    with pytest.raises(CycleDetectedError):
        g.add_edge(c, a, "part_of")
    assert len(g.edges()) == 2


def test_self_loop_rejected():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    with pytest.raises(CycleDetectedError):
        g.add_edge(a, a, "depends_on")
    assert g.edges() == []


def test_duplicate_edge_is_noop():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    g.add_edge(a, b, "depends_on")
    g.add_edge(a, b, "depends_on")
    assert len(g.edges()) == 1
    # Same pair, different type is a distinct edge.
    g.add_edge(a, b, "blocked_by")
    assert len(g.edges()) == 2
    assert g.topological_order() == [b, a]


def test_blocked_by_is_not_mirrored():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    g.add_edge(a, b, "depends_on")
    assert not g.has_edge(b, a, "blocked_by")
    assert not g.has_edge(a, b, "blocked_by")


def test_add_edge_missing_endpoint():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    with pytest.raises(NotFoundError):
        g.add_edge(a, "nope", "depends_on")
    with pytest.raises(NotFoundError):
        g.add_edge("nope", a, "depends_on")


def test_add_edge_unknown_type():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    with pytest.raises(InvalidAttributeError):
        g.add_edge(a, b, "requires")


def test_remove_edge():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    g.add_edge(a, b, "depends_on")
    with pytest.raises(NotFoundError):
        g.remove_edge(a, b, "blocked_by")
    g.remove_edge(a, b, "depends_on")
    assert g.edges() == []
    # Now the reverse direction is allowed.
    g.add_edge(b, a, "depends_on")


def test_remove_node_cascades_edges():
    g, s, p, e1, e2 = _example()
    g.remove_node(e1)
    assert e1 not in g
    assert all(e1 not in (e.source, e.target) for e in g.edges())
    assert g.dependencies(e2) == []
    assert g.topological_order() == [s, p, e2]
    with pytest.raises(NotFoundError):
        g.remove_node(e1)


def test_creation_order_survives_removal():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    g.remove_node(a)
    c = g.add_node("epic", "C")
    assert [n.id for n in g.nodes()] == [b, c]
    assert g.creation_rank(b) < g.creation_rank(c)


def test_random_successful_mutations_always_validate():
    rng = random.Random(7)
    g = ProjectGraph()
    ids = [g.add_node("epic", f"E{i}") for i in range(25)]
    for _ in range(200):
        a, b = rng.choice(ids), rng.choice(ids)
        count = len(g.edges())
        try:
            g.add_edge(a, b, rng.choice(["depends_on", "blocked_by", "part_of"]))
        except CycleDetectedError:
            assert len(g.edges()) == count
    g.validate()
    order = g.topological_order()
    pos = {nid: i for i, nid in enumerate(order)}
    for e in g.edges():
        assert pos[e.target] < pos[e.source]


def test_validate_detects_raw_cycle():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    b = g.add_node("epic", "B")
    g._insert_edge(a, b, "depends_on")
    g._insert_edge(b, a, "depends_on")
    with pytest.raises(CycleDetectedError) as ei:
        g.validate()
    assert set(ei.value.ids) == {a, b}
    assert g.find_cycle() is not None


def test_validate_handles_long_chains():
    g = ProjectGraph()
    ids = [g.add_node("user_story", f"S{i}") for i in range(3000)]
    for prev, nxt in zip(ids, ids[1:]):
        g._insert_edge(nxt, prev, "depends_on")
    g.validate()
    assert g.topological_order() == ids


def test_attribute_mutations_through_engine():
    g = ProjectGraph()
    spec = g.add_node("spec", "Spec")
    story = g.add_node("user_story", "Story")
    g.set_points(story, 3)
    g.set_assignee(story, "ana")
    g.rename(story, "Better story")
    node = g.get_node(story)
    assert (node.points, node.assignee, node.name) == (3, "ana", "Better story")

    with pytest.raises(InvalidAttributeError):
        g.set_points(spec, 3)
    with pytest.raises(NotFoundError):
        g.set_points("missing", 3)


def test_resolve_prefix():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    assert g.resolve(a) == a
    assert g.resolve(a[:8]) == a
    with pytest.raises(NotFoundError):
        g.resolve("zzzz-not-there")
    with pytest.raises(NotFoundError):
        g.resolve("")


def test_dependencies_and_dependents():
    g, s, p, e1, e2 = _example()
    assert g.dependencies(e2) == [(e1, "depends_on")]
    assert g.dependents(e1) == [(e2, "depends_on")]
    assert g.dependencies(p, {"depends_on"}) == []
    assert g.dependencies(p, {"part_of"}) == [(s, "part_of")]


def test_raw_insert_reports_duplicate_id():
    g = ProjectGraph()
    a = g.add_node("epic", "A")
    with pytest.raises(InvalidAttributeError) as ei:
        g._insert_node(g.get_node(a))
    assert ei.value.code == "E_DUPLICATE_ID"
    assert ei.value.ids == (a,)
    assert len(g) == 1
