from __future__ import annotations

import heapq
from collections import deque
from typing import Any, Callable, Iterator, Optional

from workgraph.core import model
from workgraph.core.errors import (
    CycleDetectedError,
    InternalInvariantViolation,
    InvalidAttributeError,
    NotFoundError,
    invalid_attribute,
    not_found,
)
from workgraph.core.model import EDGE_TYPES, Edge, Node
from workgraph.core.timeline import Timeline


class ProjectGraph:
    """Mutable DAG of project nodes joined by typed edges.

    Nodes live in an arena indexed by creation order; the public handle is the
    node id. Removed nodes leave a tombstone so creation order never shifts.
    Every public mutation either succeeds or leaves the graph unchanged, and no
    mutation can introduce a cycle or a dangling edge.

    An edge A -> B reads "A depends on / is blocked by / is part of B", so B
    comes first in `topological_order()`.
    """

    def __init__(self) -> None:
        self._slots: list[Optional[Node]] = []
        self._index: dict[str, int] = {}
        # idx -> {(other_idx, edge_type): None}; dicts keep insertion order.
        self._out: dict[int, dict[tuple[int, str], None]] = {}
        self._in: dict[int, dict[tuple[int, str], None]] = {}
        self._edges: dict[tuple[int, int, str], None] = {}

    # -- queries -----------------------------------------------------------

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index

    def get_node(self, node_id: str) -> Node:
        return self._node_at(self._idx(node_id))

    def nodes(self, kind: Optional[str] = None) -> list[Node]:
        """Live nodes in creation order, optionally filtered by kind."""
        out = [n for n in self._slots if n is not None]
        if kind is not None:
            out = [n for n in out if n.kind == kind]
        return out

    def edges(self) -> list[Edge]:
        """All edges in insertion order."""
        return [
            Edge(source=self._id_at(s), target=self._id_at(t), type=et)  # type: ignore[arg-type]
            for (s, t, et) in self._edges
        ]

    def has_edge(self, source: str, target: str, edge_type: str) -> bool:
        s = self._index.get(source)
        t = self._index.get(target)
        if s is None or t is None:
            return False
        return (s, t, edge_type) in self._edges

    def dependencies(self, node_id: str, types: Optional[set[str]] = None) -> list[tuple[str, str]]:
        """Outgoing edges of `node_id` as (target_id, edge_type)."""
        idx = self._idx(node_id)
        return [
            (self._id_at(t), et)
            for (t, et) in self._out.get(idx, {})
            if types is None or et in types
        ]

    def dependents(self, node_id: str, types: Optional[set[str]] = None) -> list[tuple[str, str]]:
        """Incoming edges of `node_id` as (source_id, edge_type)."""
        idx = self._idx(node_id)
        return [
            (self._id_at(s), et)
            for (s, et) in self._in.get(idx, {})
            if types is None or et in types
        ]

    def creation_rank(self, node_id: str) -> int:
        return self._idx(node_id)

    def resolve(self, ref: str) -> str:
        """Map an id or a unique id prefix to the full id."""
        if ref in self._index:
            return ref
        matches = [nid for nid in self._index if nid.startswith(ref)] if ref else []
        if len(matches) == 1:
            return matches[0]
        if not matches:
            raise not_found(ref)
        raise NotFoundError(
            code="E_NOT_FOUND",
            message=f"id prefix is ambiguous: {ref} (matches {len(matches)} nodes)",
            ids=tuple(sorted(matches)),
        )

    # -- node mutations ----------------------------------------------------

    def add_node(self, kind: str, name: str, **attributes: Any) -> str:
        node = model.new_node(kind, name, **attributes)
        self._insert_node(node)
        return node.id

    def remove_node(self, node_id: str) -> None:
        idx = self._idx(node_id)
        for (t, et) in list(self._out.pop(idx, {})):
            self._in[t].pop((idx, et), None)
            self._edges.pop((idx, t, et), None)
        for (s, et) in list(self._in.pop(idx, {})):
            self._out[s].pop((idx, et), None)
            self._edges.pop((s, idx, et), None)
        self._slots[idx] = None
        del self._index[node_id]

    def set_points(self, node_id: str, value: int) -> None:
        self._update(node_id, lambda n: model.set_points(n, value))

    def set_timeline(self, node_id: str, value: Optional[Timeline]) -> None:
        self._update(node_id, lambda n: model.set_timeline(n, value))

    def rename(self, node_id: str, name: str) -> None:
        self._update(node_id, lambda n: model.set_name(n, name))

    def set_assignee(self, node_id: str, assignee: Optional[str]) -> None:
        self._update(node_id, lambda n: model.set_assignee(n, assignee))

    def set_owner(self, node_id: str, owner: Optional[str]) -> None:
        self._update(node_id, lambda n: model.set_owner(n, owner))

    def set_link(self, node_id: str, link: Optional[str]) -> None:
        self._update(node_id, lambda n: model.set_link(n, link))

    def add_participant(self, node_id: str, participant: str) -> None:
        self._update(node_id, lambda n: model.add_participant(n, participant))

    def remove_participant(self, node_id: str, participant: str) -> None:
        self._update(node_id, lambda n: model.remove_participant(n, participant))

    # -- edge mutations ----------------------------------------------------

    def add_edge(self, source: str, target: str, edge_type: str) -> None:
        if edge_type not in EDGE_TYPES:
            raise invalid_attribute(f"edge type must be one of {list(EDGE_TYPES)}, got: {edge_type}")
        s = self._idx(source)
        t = self._idx(target)
        if (s, t, edge_type) in self._edges:
            return

        path = self._path(t, s)
        if path is not None:
            cycle = [source] + [self._id_at(i) for i in path]
            raise CycleDetectedError(
                code="E_CYCLE_DETECTED",
                message="edge would create a cycle: " + " -> ".join(cycle),
                ids=tuple(cycle),
            )
        self._link(s, t, edge_type)

    def remove_edge(self, source: str, target: str, edge_type: str) -> None:
        s = self._index.get(source)
        t = self._index.get(target)
        if s is None or t is None or (s, t, edge_type) not in self._edges:
            raise NotFoundError(
                code="E_NOT_FOUND",
                message=f"no {edge_type} edge from {source} to {target}",
                ids=(source, target),
            )
        del self._edges[(s, t, edge_type)]
        del self._out[s][(t, edge_type)]
        del self._in[t][(s, edge_type)]

    # -- ordering and validation -------------------------------------------

    def topological_order(self) -> list[str]:
        """Dependencies before dependents; ties go to the earliest-created node."""
        remaining: dict[int, int] = {idx: len(self._out.get(idx, {})) for idx in self._index.values()}
        ready = [idx for idx, count in remaining.items() if count == 0]
        heapq.heapify(ready)

        order: list[int] = []
        while ready:
            idx = heapq.heappop(ready)
            order.append(idx)
            for (s, _et) in self._in.get(idx, {}):
                remaining[s] -= 1
                if remaining[s] == 0:
                    heapq.heappush(ready, s)

        if len(order) != len(remaining):
            stuck = sorted(set(remaining) - set(order))
            raise InternalInvariantViolation(
                code="E_INTERNAL",
                message=f"topological sort stalled with {len(stuck)} nodes left",
                ids=tuple(self._id_at(i) for i in stuck),
            )
        return [self._id_at(i) for i in order]

    def find_cycle(self) -> Optional[list[str]]:
        """Full-graph DFS. Returns one cycle as a closed id path, or None."""
        WHITE, GRAY, BLACK = 0, 1, 2
        state: dict[int, int] = {idx: WHITE for idx in self._index.values()}

        for root in sorted(state):
            if state[root] != WHITE:
                continue
            state[root] = GRAY
            stack: list[int] = [root]
            iters: list[Iterator[tuple[int, str]]] = [iter(list(self._out.get(root, {})))]
            while stack:
                advanced = False
                for (v, _et) in iters[-1]:
                    if state[v] == GRAY:
                        cycle = stack[stack.index(v):] + [v]
                        return [self._id_at(i) for i in cycle]
                    if state[v] == WHITE:
                        state[v] = GRAY
                        stack.append(v)
                        iters.append(iter(list(self._out.get(v, {}))))
                        advanced = True
                        break
                if not advanced:
                    state[stack.pop()] = BLACK
                    iters.pop()
        return None

    def validate(self) -> None:
        """Check the whole graph: every edge endpoint exists and there is no cycle."""
        for (s, t, et) in self._edges:
            for idx in (s, t):
                if idx >= len(self._slots) or self._slots[idx] is None:
                    raise NotFoundError(
                        code="E_DANGLING_EDGE",
                        message=f"{et} edge references a missing node",
                        ids=tuple(self._raw_id(i) for i in (s, t)),
                    )
        cycle = self.find_cycle()
        if cycle is not None:
            raise CycleDetectedError(
                code="E_CYCLE_DETECTED",
                message="dependency cycle detected: " + " -> ".join(cycle),
                ids=tuple(cycle),
            )

    # -- raw reconstruction (persistence) ----------------------------------

    def _insert_node(self, node: Node) -> None:
        if node.id in self._index:
            raise InvalidAttributeError(
                code="E_DUPLICATE_ID", message=f"duplicate node id: {node.id}", ids=(node.id,)
            )
        self._index[node.id] = len(self._slots)
        self._slots.append(node)

    def _insert_edge(self, source: str, target: str, edge_type: str) -> None:
        """Add an edge without the cycle check. Callers must run validate() afterwards."""
        if edge_type not in EDGE_TYPES:
            raise invalid_attribute(f"edge type must be one of {list(EDGE_TYPES)}, got: {edge_type}")
        s = self._idx(source)
        t = self._idx(target)
        if (s, t, edge_type) not in self._edges:
            self._link(s, t, edge_type)

    # -- internals ---------------------------------------------------------

    def _idx(self, node_id: str) -> int:
        idx = self._index.get(node_id)
        if idx is None:
            raise not_found(node_id)
        return idx

    def _node_at(self, idx: int) -> Node:
        node = self._slots[idx]
        if node is None:
            raise InternalInvariantViolation(
                code="E_INTERNAL", message=f"index {idx} points at a removed node"
            )
        return node

    def _id_at(self, idx: int) -> str:
        return self._node_at(idx).id

    def _raw_id(self, idx: int) -> str:
        if idx < len(self._slots) and self._slots[idx] is not None:
            return self._slots[idx].id  # type: ignore[union-attr]
        return f"#{idx}"

    def _update(self, node_id: str, fn: Callable[[Node], Node]) -> None:
        idx = self._idx(node_id)
        self._slots[idx] = fn(self._node_at(idx))

    def _link(self, s: int, t: int, edge_type: str) -> None:
        self._edges[(s, t, edge_type)] = None
        self._out.setdefault(s, {})[(t, edge_type)] = None
        self._in.setdefault(t, {})[(s, edge_type)] = None

    def _path(self, start: int, goal: int) -> Optional[list[int]]:
        """BFS along edge direction. Returns start..goal indices, or None when unreachable."""
        if start == goal:
            return [start]
        parent: dict[int, int] = {start: start}
        q: deque[int] = deque([start])
        while q:
            cur = q.popleft()
            for (nxt, _et) in self._out.get(cur, {}):
                if nxt in parent:
                    continue
                parent[nxt] = cur
                if nxt == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parent[path[-1]])
                    return list(reversed(path))
                q.append(nxt)
        return None
