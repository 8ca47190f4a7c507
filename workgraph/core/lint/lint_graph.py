from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from workgraph.core.graph.project_graph import ProjectGraph


# Advisory rules (never enforced by the engine):
# - L_INVALID_CONNECTION: kind pair not allowed for the edge type
# - L_ORPHAN_NODE: project/subproject without a part_of edge to its parent kind
# - L_MISSING_POINTS: epic/user_story without a points estimate

CONTAINMENT: set[tuple[str, str]] = {
    ("project", "spec"),
    ("subproject", "project"),
    ("epic", "subproject"),
    ("epic", "project"),
    ("user_story", "epic"),
}

SEQUENCING: set[tuple[str, str]] = {
    ("project", "project"),
    ("subproject", "subproject"),
    ("epic", "epic"),
    ("user_story", "user_story"),
    ("user_story", "epic"),
}


@dataclass(frozen=True)
class GraphLintIssue:
    code: str
    message: str
    node_id: str
    related_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.node_id}: {self.code}: {self.message}"


def is_valid_connection(source_kind: str, target_kind: str, edge_type: str) -> bool:
    if edge_type == "part_of":
        return (source_kind, target_kind) in CONTAINMENT
    return (source_kind, target_kind) in SEQUENCING


def lint_graph(graph: ProjectGraph) -> list[GraphLintIssue]:
    """Lint a loaded graph. Runs on top of validate(); reports, never raises."""
    issues: list[GraphLintIssue] = []

    for edge in graph.edges():
        src = graph.get_node(edge.source)
        dst = graph.get_node(edge.target)
        if not is_valid_connection(src.kind, dst.kind, edge.type):
            issues.append(
                GraphLintIssue(
                    code="L_INVALID_CONNECTION",
                    message=f"{src.kind} cannot be {edge.type} {dst.kind}",
                    node_id=src.id,
                    related_id=dst.id,
                )
            )

    for node in graph.nodes():
        parent_kind = node.parent_kind
        if parent_kind is not None:
            parents = [
                tid
                for tid, _et in graph.dependencies(node.id, {"part_of"})
                if graph.get_node(tid).kind == parent_kind
            ]
            if not parents:
                issues.append(
                    GraphLintIssue(
                        code="L_ORPHAN_NODE",
                        message=f"{node.kind} is not part_of any {parent_kind}",
                        node_id=node.id,
                    )
                )
        if node.kind in {"epic", "user_story"} and node.points is None:
            issues.append(
                GraphLintIssue(
                    code="L_MISSING_POINTS",
                    message=f"{node.kind} has no points estimate",
                    node_id=node.id,
                )
            )

    order = {nid: i for i, nid in enumerate(n.id for n in graph.nodes())}
    return sorted(issues, key=lambda i: (order.get(i.node_id, 0), i.code, i.related_id or ""))
