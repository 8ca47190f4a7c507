from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from workgraph.core.graph.project_graph import ProjectGraph


# Edge types that mean "cannot start before the target finishes".
SCHEDULING_EDGE_TYPES: set[str] = {"depends_on", "blocked_by"}

IntervalSource = Literal["declared", "computed", "unscheduled"]


@dataclass(frozen=True)
class ScheduledItem:
    id: str
    start: Optional[datetime]
    end: Optional[datetime]
    estimated_hours: int
    source: IntervalSource


@dataclass(frozen=True)
class Conflict:
    id: str
    start: datetime
    required_start: datetime
    blocking_ids: tuple[str, ...]

    def describe(self) -> str:
        return (
            f"{self.id} starts {self.start.isoformat()} before its dependencies finish "
            f"({self.required_start.isoformat()}; {', '.join(self.blocking_ids)})"
        )


@dataclass(frozen=True)
class UnscheduledDependency:
    id: str
    dependency_id: str

    def describe(self) -> str:
        return f"{self.id} depends on unscheduled {self.dependency_id}"


@dataclass(frozen=True)
class Schedule:
    items: list[ScheduledItem]
    conflicts: list[Conflict] = field(default_factory=list)
    warnings: list[UnscheduledDependency] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.conflicts

    def item(self, node_id: str) -> Optional[ScheduledItem]:
        for it in self.items:
            if it.id == node_id:
                return it
        return None


@dataclass(frozen=True)
class CriticalPath:
    ids: list[str]
    total_hours: int


def allocate(graph: ProjectGraph, order: list[str]) -> Schedule:
    """Walk `order` and check each timed node against its direct dependencies.

    A node whose start precedes the latest dependency end is recorded as a
    conflict; allocation carries on. Dependencies without a finished timeline
    add no constraint and are reported as warnings instead.
    """
    items: list[ScheduledItem] = []
    conflicts: list[Conflict] = []
    warnings: list[UnscheduledDependency] = []

    for node_id in order:
        node = graph.get_node(node_id)

        ends: list[tuple[datetime, str]] = []
        for dep_id, _et in graph.dependencies(node_id, SCHEDULING_EDGE_TYPES):
            dep_tl = graph.get_node(dep_id).timeline
            if dep_tl is None or dep_tl.end is None:
                warning = UnscheduledDependency(id=node_id, dependency_id=dep_id)
                if warning not in warnings:
                    warnings.append(warning)
                continue
            ends.append((dep_tl.end, dep_id))

        required = max((end for end, _ in ends), default=None)
        tl = node.timeline

        if tl is None:
            items.append(
                ScheduledItem(
                    id=node_id,
                    start=required,
                    end=None,
                    estimated_hours=0,
                    source="computed" if required is not None else "unscheduled",
                )
            )
            continue

        items.append(
            ScheduledItem(
                id=node_id,
                start=tl.start,
                end=tl.end,
                estimated_hours=tl.estimated_hours,
                source="declared",
            )
        )
        if required is not None and tl.start < required:
            blocking: list[str] = []
            for end, dep_id in ends:
                if end > tl.start and dep_id not in blocking:
                    blocking.append(dep_id)
            conflicts.append(
                Conflict(
                    id=node_id,
                    start=tl.start,
                    required_start=required,
                    blocking_ids=tuple(blocking),
                )
            )

    return Schedule(items=items, conflicts=conflicts, warnings=warnings)


def critical_path(graph: ProjectGraph, order: Optional[list[str]] = None) -> CriticalPath:
    """Longest chain of cumulative estimated_hours along depends_on edges.

    Returned in execution order (dependency first). Untimed nodes weigh 0.
    """
    if order is None:
        order = graph.topological_order()
    if not order:
        return CriticalPath(ids=[], total_hours=0)

    best: dict[str, int] = {}
    prev: dict[str, Optional[str]] = {}
    position = {nid: i for i, nid in enumerate(order)}

    for node_id in order:
        tl = graph.get_node(node_id).timeline
        weight = tl.estimated_hours if tl is not None else 0

        chosen: Optional[str] = None
        for dep_id, _et in graph.dependencies(node_id, {"depends_on"}):
            if dep_id not in best:
                continue
            if (
                chosen is None
                or best[dep_id] > best[chosen]
                or (best[dep_id] == best[chosen] and position[dep_id] < position[chosen])
            ):
                chosen = dep_id
        best[node_id] = weight + (best[chosen] if chosen is not None else 0)
        prev[node_id] = chosen

    end_id = order[0]
    for node_id in order:
        if best[node_id] > best[end_id]:
            end_id = node_id

    chain: list[str] = []
    cur: Optional[str] = end_id
    while cur is not None:
        chain.append(cur)
        cur = prev[cur]
    chain.reverse()
    return CriticalPath(ids=chain, total_hours=best[end_id])
