from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from workgraph.core.errors import GraphError, PersistenceError
from workgraph.core.graph.project_graph import ProjectGraph
from workgraph.core.model import EDGE_TYPES, node_from_dict, node_to_dict


FORMAT_VERSION = "1"
YAML_SUFFIXES = {".yaml", ".yml"}

logger = logging.getLogger(__name__)


def graph_to_dict(graph: ProjectGraph) -> dict[str, Any]:
    """Nodes in creation order, edges in insertion order."""
    return {
        "format_version": FORMAT_VERSION,
        "nodes": [node_to_dict(n) for n in graph.nodes()],
        "edges": [
            {"from": e.source, "to": e.target, "type": e.type} for e in graph.edges()
        ],
    }


def save_graph(graph: ProjectGraph, path: str | Path) -> None:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix not in YAML_SUFFIXES and suffix != ".json":
        raise PersistenceError(
            code="E_UNSUPPORTED_FORMAT",
            message="supported formats are .yaml/.yml and .json",
            file=str(p),
        )

    data = graph_to_dict(graph)
    if suffix == ".json":
        text = json.dumps(data, indent=2) + "\n"
    else:
        text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    # Write beside the target, then swap it in.
    tmp = p.with_name(p.name + ".tmp")
    try:
        if str(p.parent) not in (".", ""):
            p.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(p)
    except OSError as e:
        if tmp.is_file():
            tmp.unlink()
        raise PersistenceError(code="E_FILE_WRITE", message=str(e), file=str(p)) from e
    logger.debug("saved %d nodes and %d edges to %s", len(data["nodes"]), len(data["edges"]), p)


def load_graph(path: str | Path) -> ProjectGraph:
    """Load a graph file and validate it before handing it out.

    Edges are inserted without the per-edge cycle check, then the whole graph
    is validated once. Cyclic or dangling content fails the load; nothing is
    repaired.
    """
    p = Path(path)
    if not p.exists():
        raise PersistenceError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise PersistenceError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in YAML_SUFFIXES:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise PersistenceError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except PersistenceError:
        raise
    except (yaml.YAMLError, ValueError) as e:
        code = "E_YAML_PARSE" if suffix in YAML_SUFFIXES else "E_JSON_PARSE"
        raise PersistenceError(code=code, message=str(e), file=str(p)) from e

    graph = graph_from_dict(data, file=str(p))
    logger.debug("loaded %d nodes from %s", len(graph), p)
    return graph


def load_or_create(path: str | Path) -> ProjectGraph:
    p = Path(path)
    if not p.exists():
        logger.info("graph file %s does not exist yet; starting empty", p)
        return ProjectGraph()
    return load_graph(p)


def graph_from_dict(data: Any, *, file: str | None = None) -> ProjectGraph:
    if data is None:
        return ProjectGraph()
    if not isinstance(data, dict):
        raise PersistenceError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=file,
        )

    nodes = data.get("nodes") or []
    edges = data.get("edges") or []
    if not isinstance(nodes, list):
        raise PersistenceError(code="E_INVALID_TOP_LEVEL", message="nodes must be an array", file=file)
    if not isinstance(edges, list):
        raise PersistenceError(code="E_INVALID_TOP_LEVEL", message="edges must be an array", file=file)

    graph = ProjectGraph()
    for i, raw in enumerate(nodes):
        if not isinstance(raw, dict):
            raise PersistenceError(
                code="E_INVALID_NODE", message=f"nodes[{i}] must be an object", file=file
            )
        nid = raw.get("id")
        if isinstance(nid, str) and nid in graph:
            raise PersistenceError(
                code="E_DUPLICATE_ID",
                message=f"duplicate node id: {nid}",
                ids=(nid,),
                file=file,
            )
        try:
            node = node_from_dict(raw)
        except GraphError as e:
            raise PersistenceError(
                code="E_INVALID_NODE", message=f"nodes[{i}]: {e.message}", ids=e.ids, file=file
            ) from e
        graph._insert_node(node)

    for i, raw in enumerate(edges):
        if not isinstance(raw, dict):
            raise PersistenceError(
                code="E_INVALID_EDGE", message=f"edges[{i}] must be an object", file=file
            )
        source, target, edge_type = raw.get("from"), raw.get("to"), raw.get("type")
        if not isinstance(source, str) or not isinstance(target, str) or edge_type not in EDGE_TYPES:
            raise PersistenceError(
                code="E_INVALID_EDGE",
                message=f"edges[{i}] needs string from/to and type in {list(EDGE_TYPES)}",
                file=file,
            )
        missing = tuple(x for x in (source, target) if x not in graph)
        if missing:
            raise PersistenceError(
                code="E_DANGLING_EDGE",
                message=f"edges[{i}] references unknown node id(s): {', '.join(missing)}",
                ids=missing,
                file=file,
            )
        graph._insert_edge(source, target, edge_type)

    try:
        graph.validate()
    except GraphError as e:
        raise PersistenceError(code=e.code, message=e.message, ids=e.ids, file=file) from e
    return graph
