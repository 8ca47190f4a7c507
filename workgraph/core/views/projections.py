"""Display-row projections over an ordered graph.

Both projections are pure: they read the graph, never mutate it, and skip ids
they cannot resolve instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from workgraph.core.graph.project_graph import ProjectGraph
from workgraph.core.model import Node


UNASSIGNED_LANE = "unassigned"


@dataclass(frozen=True)
class SwimlaneRow:
    lane: str
    id: str
    name: str
    kind: str
    points: Optional[int] = None


@dataclass(frozen=True)
class GanttRow:
    id: str
    name: str
    kind: str
    start: datetime
    end: Optional[datetime]
    estimated_hours: int


def lane_key(node: Node) -> str:
    if node.kind == "user_story":
        return node.assignee or UNASSIGNED_LANE
    return node.kind


def swimlane(graph: ProjectGraph, order: list[str]) -> list[SwimlaneRow]:
    lanes: dict[str, list[SwimlaneRow]] = {}
    for node_id in order:
        if node_id not in graph:
            continue
        node = graph.get_node(node_id)
        key = lane_key(node)
        lanes.setdefault(key, []).append(
            SwimlaneRow(lane=key, id=node.id, name=node.name, kind=node.kind, points=node.points)
        )
    return [row for rows in lanes.values() for row in rows]


def gantt(graph: ProjectGraph, order: list[str]) -> list[GanttRow]:
    rows: list[GanttRow] = []
    for node_id in order:
        if node_id not in graph:
            continue
        node = graph.get_node(node_id)
        if node.timeline is None:
            continue
        rows.append(
            GanttRow(
                id=node.id,
                name=node.name,
                kind=node.kind,
                start=node.timeline.start,
                end=node.timeline.end,
                estimated_hours=node.timeline.estimated_hours,
            )
        )
    return rows
