from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Literal, Optional

from workgraph.core.errors import invalid_attribute
from workgraph.core.timeline import Timeline


NodeKind = Literal["spec", "project", "subproject", "epic", "user_story"]
EdgeType = Literal["depends_on", "blocked_by", "part_of"]

# Creation-hierarchy order, also used for display.
NODE_KINDS: tuple[str, ...] = ("spec", "project", "subproject", "epic", "user_story")
EDGE_TYPES: tuple[str, ...] = ("depends_on", "blocked_by", "part_of")

# Per-kind capabilities.
POINT_KINDS: frozenset[str] = frozenset({"epic", "user_story"})
ASSIGNABLE_KINDS: frozenset[str] = frozenset({"user_story"})
PARTICIPANT_KINDS: frozenset[str] = frozenset({"project", "epic"})
PARENT_KIND: dict[str, str] = {"project": "spec", "subproject": "project"}


@dataclass(frozen=True)
class Node:
    id: str
    kind: NodeKind
    name: str

    timeline: Optional[Timeline] = None
    points: Optional[int] = None
    assignee: Optional[str] = None
    owner: Optional[str] = None
    link: Optional[str] = None
    participants: frozenset[str] = field(default_factory=frozenset)

    @property
    def parent_kind(self) -> Optional[str]:
        return PARENT_KIND.get(self.kind)


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    type: EdgeType


def new_id() -> str:
    return str(uuid.uuid4())


def new_node(kind: str, name: str, *, node_id: Optional[str] = None, **attributes: Any) -> Node:
    """Build a node of `kind`, rejecting attributes the kind does not carry."""
    if kind not in NODE_KINDS:
        raise invalid_attribute(f"kind must be one of {list(NODE_KINDS)}, got: {kind}")
    if not isinstance(name, str) or not name.strip():
        raise invalid_attribute("name is required and must be a non-empty string")

    node = Node(id=node_id or new_id(), kind=kind, name=name.strip())  # type: ignore[arg-type]

    timeline_value = attributes.pop("timeline", None)
    if timeline_value is not None:
        node = set_timeline(node, timeline_value)
    points_value = attributes.pop("points", None)
    if points_value is not None:
        node = set_points(node, points_value)
    assignee_value = attributes.pop("assignee", None)
    if assignee_value is not None:
        node = set_assignee(node, assignee_value)
    owner_value = attributes.pop("owner", None)
    if owner_value is not None:
        node = set_owner(node, owner_value)
    link_value = attributes.pop("link", None)
    if link_value is not None:
        node = set_link(node, link_value)
    participants_value = attributes.pop("participants", None) or []
    if not isinstance(participants_value, (list, tuple, set, frozenset)):
        raise invalid_attribute("participants must be a list of strings", node.id)
    for participant in participants_value:
        node = add_participant(node, participant)

    if attributes:
        raise invalid_attribute(f"unknown attributes: {sorted(attributes)}", node.id)
    return node


def identifier(node: Node) -> str:
    return node.id


def points(node: Node) -> Optional[int]:
    if node.kind not in POINT_KINDS:
        return None
    return node.points


def set_points(node: Node, value: int) -> Node:
    if node.kind not in POINT_KINDS:
        raise invalid_attribute(f"{node.kind} does not carry points", node.id)
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise invalid_attribute("points must be a non-negative integer", node.id)
    return replace(node, points=value)


def timeline(node: Node) -> Optional[Timeline]:
    return node.timeline


def set_timeline(node: Node, value: Optional[Timeline]) -> Node:
    if value is not None and not isinstance(value, Timeline):
        raise invalid_attribute("timeline must be a Timeline", node.id)
    return replace(node, timeline=value)


def set_name(node: Node, name: str) -> Node:
    if not isinstance(name, str) or not name.strip():
        raise invalid_attribute("name must be a non-empty string", node.id)
    return replace(node, name=name.strip())


def set_assignee(node: Node, assignee: Optional[str]) -> Node:
    if node.kind not in ASSIGNABLE_KINDS:
        raise invalid_attribute(f"{node.kind} cannot be assigned", node.id)
    if assignee is not None and (not isinstance(assignee, str) or not assignee.strip()):
        raise invalid_attribute("assignee must be a non-empty string", node.id)
    return replace(node, assignee=assignee.strip() if assignee else None)


def set_owner(node: Node, owner: Optional[str]) -> Node:
    if owner is not None and (not isinstance(owner, str) or not owner.strip()):
        raise invalid_attribute("owner must be a non-empty string", node.id)
    return replace(node, owner=owner.strip() if owner else None)


def set_link(node: Node, link: Optional[str]) -> Node:
    if link is not None and (not isinstance(link, str) or not link.strip()):
        raise invalid_attribute("link must be a non-empty string", node.id)
    return replace(node, link=link.strip() if link else None)


def add_participant(node: Node, participant: str) -> Node:
    if node.kind not in PARTICIPANT_KINDS:
        raise invalid_attribute(f"{node.kind} does not support participants", node.id)
    if not isinstance(participant, str) or not participant.strip():
        raise invalid_attribute("participant must be a non-empty string", node.id)
    return replace(node, participants=node.participants | {participant.strip()})


def remove_participant(node: Node, participant: str) -> Node:
    if node.kind not in PARTICIPANT_KINDS:
        raise invalid_attribute(f"{node.kind} does not support participants", node.id)
    if participant not in node.participants:
        raise invalid_attribute(f"participant does not exist: {participant}", node.id)
    return replace(node, participants=node.participants - {participant})


def node_to_dict(node: Node) -> dict[str, Any]:
    """Order-preserving record used by persistence and JSON output. Omits unset fields."""
    out: dict[str, Any] = {"id": node.id, "kind": node.kind, "name": node.name}
    if node.timeline is not None:
        out["timeline"] = node.timeline.to_dict()
    if node.points is not None:
        out["points"] = node.points
    if node.assignee is not None:
        out["assignee"] = node.assignee
    if node.owner is not None:
        out["owner"] = node.owner
    if node.link is not None:
        out["link"] = node.link
    if node.participants:
        out["participants"] = sorted(node.participants)
    return out


def node_from_dict(raw: dict[str, Any]) -> Node:
    attributes = {k: v for k, v in raw.items() if k not in {"id", "kind", "name"}}
    tl = attributes.get("timeline")
    if isinstance(tl, dict):
        attributes["timeline"] = Timeline.from_dict(tl)
    elif tl is not None:
        raise invalid_attribute("timeline must be a mapping", raw.get("id"))
    node_id = raw.get("id")
    if not isinstance(node_id, str) or not node_id.strip():
        raise invalid_attribute("id is required and must be a non-empty string")
    return new_node(raw.get("kind", ""), raw.get("name", ""), node_id=node_id, **attributes)
