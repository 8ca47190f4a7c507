from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from workgraph.core.config import ConfigError, WorkgraphConfig, resolve_config
from workgraph.core.errors import (
    EXIT_CYCLE,
    EXIT_USAGE,
    GraphError,
    PersistenceError,
)
from workgraph.core.graph.project_graph import ProjectGraph
from workgraph.core.io.store import load_graph, load_or_create, save_graph
from workgraph.core.lint.lint_graph import lint_graph
from workgraph.core.model import EDGE_TYPES, NODE_KINDS, node_to_dict
from workgraph.core.schedule.allocate import allocate, critical_path
from workgraph.core.timeline import Duration, Timeline, parse_instant
from workgraph.core.views.projections import gantt, swimlane

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
logger = logging.getLogger(__name__)


@app.callback()
def _callback(
    ctx: typer.Context,
    graph: Optional[str] = typer.Option(
        None, "--graph", "-g", help="Graph file (.yaml/.yml/.json); defaults to $WORKGRAPH_FILE"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
) -> None:
    """Workgraph CLI: project DAG, schedule and views."""
    try:
        cfg = resolve_config(graph)
    except ConfigError as e:
        _fail(GraphError(code="E_CONFIG_INVALID", message=str(e), file=None))
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, cfg.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )
    logger.debug("using graph file %s", cfg.graph_file)
    ctx.obj = cfg


@app.command("init")
def init(ctx: typer.Context) -> None:
    """Create an empty graph file if none exists."""
    cfg: WorkgraphConfig = ctx.obj
    if cfg.graph_file.exists():
        typer.echo(f"OK: {cfg.graph_file} already exists")
        return
    _save(ProjectGraph(), cfg)
    typer.echo(f"OK: created {cfg.graph_file}")


@app.command("add")
def add(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help=f"Node kind: {'|'.join(NODE_KINDS)}"),
    name: str = typer.Argument(..., help="Display name"),
    points: Optional[int] = typer.Option(None, "--points", help="Points (epic, user_story)"),
    assignee: Optional[str] = typer.Option(None, "--assignee", help="Assignee (user_story)"),
    owner: Optional[str] = typer.Option(None, "--owner"),
    link: Optional[str] = typer.Option(None, "--link"),
    participants: list[str] = typer.Option([], "--participant", help="Repeatable (project, epic)"),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 start"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 end"),
    duration: Optional[str] = typer.Option(None, "--duration", help="Instead of --end: 6h, 3d, 2w"),
    hours: int = typer.Option(0, "--hours", help="Estimated hours"),
    part_of: Optional[str] = typer.Option(None, "--part-of", help="Parent node id (adds part_of edge)"),
) -> None:
    """Add a node and print its id."""
    cfg, graph = _open(ctx)
    try:
        tl = _timeline(start, end, duration, hours)
        parent = graph.resolve(part_of) if part_of else None
        node_id = graph.add_node(
            kind,
            name,
            points=points,
            assignee=assignee,
            owner=owner,
            link=link,
            participants=participants,
            timeline=tl,
        )
        if parent is not None:
            graph.add_edge(node_id, parent, "part_of")
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo(node_id)


@app.command("remove")
def remove(ctx: typer.Context, node: str = typer.Argument(..., help="Node id or unique prefix")) -> None:
    """Remove a node and every edge touching it."""
    cfg, graph = _open(ctx)
    try:
        node_id = graph.resolve(node)
        graph.remove_node(node_id)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo(f"OK: removed {node_id}")


@app.command("rename")
def rename(ctx: typer.Context, node: str = typer.Argument(...), name: str = typer.Argument(...)) -> None:
    """Rename a node."""
    cfg, graph = _open(ctx)
    try:
        graph.rename(graph.resolve(node), name)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: renamed")


@app.command("link")
def link_cmd(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Dependent node"),
    target: str = typer.Argument(..., help="Node it depends on / is blocked by / is part of"),
    edge_type: str = typer.Option("depends_on", "--type", "-t", help=f"{'|'.join(EDGE_TYPES)}"),
) -> None:
    """Add a typed edge SOURCE -> TARGET."""
    cfg, graph = _open(ctx)
    try:
        s, t = graph.resolve(source), graph.resolve(target)
        graph.add_edge(s, t, edge_type)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo(f"OK: {_short(s)} {edge_type} {_short(t)}")


@app.command("unlink")
def unlink(
    ctx: typer.Context,
    source: str = typer.Argument(...),
    target: str = typer.Argument(...),
    edge_type: str = typer.Option("depends_on", "--type", "-t"),
) -> None:
    """Remove the edge SOURCE -> TARGET of the given type."""
    cfg, graph = _open(ctx)
    try:
        s, t = graph.resolve(source), graph.resolve(target)
        graph.remove_edge(s, t, edge_type)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: edge removed")


@app.command("list")
def list_nodes(
    ctx: typer.Context,
    kind: Optional[str] = typer.Option(None, "--kind", help="Only this kind"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List nodes in creation order."""
    _check_format(format)
    if kind is not None and kind not in NODE_KINDS:
        _fail(
            GraphError(
                code="E_UNKNOWN_KIND",
                message=f"unknown kind: {kind} (choose one of: {', '.join(NODE_KINDS)})",
            )
        )
    _, graph = _open(ctx)
    nodes = graph.nodes(kind)

    if format == "json":
        _emit_json("list", {"nodes": [node_to_dict(n) for n in nodes]})
        return

    table = Table(title="Nodes")
    table.add_column("ID")
    table.add_column("Kind")
    table.add_column("Name")
    table.add_column("Points")
    table.add_column("Assignee")
    table.add_column("Start")
    table.add_column("End")
    for n in nodes:
        table.add_row(
            _short(n.id),
            n.kind,
            n.name,
            _text(n.points),
            n.assignee or "-",
            _when(n.timeline.start if n.timeline else None),
            _when(n.timeline.end if n.timeline else None),
        )
    console.print(table)


@app.command("show")
def show(
    ctx: typer.Context,
    node: str = typer.Argument(...),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Show one node with its edges."""
    _check_format(format)
    _, graph = _open(ctx)
    try:
        n = graph.get_node(graph.resolve(node))
        deps = graph.dependencies(n.id)
        dependents = graph.dependents(n.id)
    except GraphError as e:
        _fail(e)

    if format == "json":
        payload = node_to_dict(n)
        payload["dependencies"] = [{"to": t, "type": et} for t, et in deps]
        payload["dependents"] = [{"from": s, "type": et} for s, et in dependents]
        _emit_json("show", {"node": payload})
        return

    typer.echo(f"{n.name} ({n.kind})")
    typer.echo(f"id: {n.id}")
    if n.parent_kind:
        typer.echo(f"parent kind: {n.parent_kind}")
    for label, value in (("points", n.points), ("assignee", n.assignee), ("owner", n.owner), ("link", n.link)):
        if value is not None:
            typer.echo(f"{label}: {value}")
    if n.participants:
        typer.echo(f"participants: {', '.join(sorted(n.participants))}")
    if n.timeline is not None:
        tl = n.timeline
        typer.echo(
            f"timeline: {_when(tl.start)} -> {_when(tl.end)}"
            f" ({tl.duration or 'open'}, {tl.estimated_hours}h estimated)"
        )
    for t, et in deps:
        typer.echo(f"  {et} -> {graph.get_node(t).name} [{_short(t)}]")
    for s, et in dependents:
        typer.echo(f"  <- {et} {graph.get_node(s).name} [{_short(s)}]")


@app.command("set-timeline")
def set_timeline(
    ctx: typer.Context,
    node: str = typer.Argument(...),
    start: Optional[str] = typer.Option(None, "--start", help="ISO-8601 start"),
    end: Optional[str] = typer.Option(None, "--end", help="ISO-8601 end"),
    duration: Optional[str] = typer.Option(None, "--duration", help="Instead of --end: 6h, 3d, 2w"),
    hours: int = typer.Option(0, "--hours", help="Estimated hours"),
    clear: bool = typer.Option(False, "--clear", help="Remove the timeline"),
) -> None:
    """Set (or clear) a node's timeline."""
    cfg, graph = _open(ctx)
    try:
        node_id = graph.resolve(node)
        if clear:
            tl = None
        else:
            tl = _timeline(start, end, duration, hours)
            if tl is None:
                _fail(GraphError(code="E_MISSING_START", message="--start is required (or use --clear)"))
        graph.set_timeline(node_id, tl)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: timeline updated")


@app.command("set-points")
def set_points(ctx: typer.Context, node: str = typer.Argument(...), points: int = typer.Argument(...)) -> None:
    """Set points on an epic or user story."""
    cfg, graph = _open(ctx)
    try:
        graph.set_points(graph.resolve(node), points)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: points updated")


@app.command("assign")
def assign(ctx: typer.Context, node: str = typer.Argument(...), assignee: str = typer.Argument(...)) -> None:
    """Assign a user story."""
    cfg, graph = _open(ctx)
    try:
        graph.set_assignee(graph.resolve(node), assignee)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: assigned")


@app.command("set-owner")
def set_owner(ctx: typer.Context, node: str = typer.Argument(...), owner: str = typer.Argument(...)) -> None:
    """Set a node's owner."""
    cfg, graph = _open(ctx)
    try:
        graph.set_owner(graph.resolve(node), owner)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: owner updated")


@app.command("set-link")
def set_link(ctx: typer.Context, node: str = typer.Argument(...), url: str = typer.Argument(...)) -> None:
    """Attach a link (ticket, doc) to a node."""
    cfg, graph = _open(ctx)
    try:
        graph.set_link(graph.resolve(node), url)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: link updated")


@app.command("add-participant")
def add_participant(ctx: typer.Context, node: str = typer.Argument(...), person: str = typer.Argument(...)) -> None:
    """Add a participant to a project or epic."""
    cfg, graph = _open(ctx)
    try:
        graph.add_participant(graph.resolve(node), person)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: participant added")


@app.command("remove-participant")
def remove_participant(
    ctx: typer.Context, node: str = typer.Argument(...), person: str = typer.Argument(...)
) -> None:
    """Remove a participant from a project or epic."""
    cfg, graph = _open(ctx)
    try:
        graph.remove_participant(graph.resolve(node), person)
    except GraphError as e:
        _fail(e)
    _save(graph, cfg)
    typer.echo("OK: participant removed")


@app.command("order")
def order_cmd(ctx: typer.Context) -> None:
    """Print the execution order (dependencies first)."""
    _, graph = _open(ctx)
    try:
        order = graph.topological_order()
    except GraphError as e:
        _fail(e)
    for i, node_id in enumerate(order, start=1):
        n = graph.get_node(node_id)
        typer.echo(f"{i}. {n.name} ({n.kind}) [{_short(n.id)}]")


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check timelines against the execution order and report conflicts."""
    _check_format(format)
    _, graph = _open(ctx)
    try:
        order = graph.topological_order()
        result = allocate(graph, order)
    except GraphError as e:
        _fail(e)

    if format == "json":
        _emit_json(
            "schedule",
            {
                "order": order,
                "items": [
                    {
                        "id": it.id,
                        "start": it.start.isoformat() if it.start else None,
                        "end": it.end.isoformat() if it.end else None,
                        "estimated_hours": it.estimated_hours,
                        "source": it.source,
                    }
                    for it in result.items
                ],
                "conflicts": [
                    {
                        "id": c.id,
                        "start": c.start.isoformat(),
                        "required_start": c.required_start.isoformat(),
                        "blocking_ids": list(c.blocking_ids),
                    }
                    for c in result.conflicts
                ],
                "warnings": [
                    {"id": w.id, "dependency_id": w.dependency_id} for w in result.warnings
                ],
            },
            ok=result.ok,
        )
        return

    conflicted = {c.id for c in result.conflicts}
    table = Table(title="Schedule")
    table.add_column("#")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Hours")
    table.add_column("Source")
    for i, it in enumerate(result.items, start=1):
        table.add_row(
            str(i),
            _short(it.id),
            graph.get_node(it.id).name,
            _when(it.start),
            _when(it.end),
            str(it.estimated_hours),
            it.source,
            style="bold red" if it.id in conflicted else None,
        )
    console.print(table)

    for c in result.conflicts:
        typer.echo(f"CONFLICT: {_describe_conflict(graph, c.id, c.required_start, c.blocking_ids)}")
    for w in result.warnings:
        typer.echo(
            f"WARN: {graph.get_node(w.id).name} depends on unscheduled "
            f"{graph.get_node(w.dependency_id).name}"
        )
    if result.ok:
        typer.echo("OK: no scheduling conflicts")


@app.command("critical-path")
def critical_path_cmd(ctx: typer.Context) -> None:
    """Longest chain of estimated hours along depends_on edges."""
    _, graph = _open(ctx)
    try:
        cp = critical_path(graph)
    except GraphError as e:
        _fail(e)
    if not cp.ids:
        typer.echo("No critical path found.")
        return

    table = Table(title="Critical Path")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Hours")
    for node_id in cp.ids:
        n = graph.get_node(node_id)
        table.add_row(_short(n.id), n.name, str(n.timeline.estimated_hours if n.timeline else 0))
    console.print(table)
    typer.echo(f"Total: {cp.total_hours} hours")


@app.command("validate")
def validate(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Load the graph file and check it for cycles and dangling edges."""
    _check_format(format)
    cfg: WorkgraphConfig = ctx.obj
    try:
        graph = load_graph(cfg.graph_file)
    except PersistenceError as e:
        # A cyclic file is a cycle report, not an I/O failure.
        code = EXIT_CYCLE if e.code == "E_CYCLE_DETECTED" else e.exit_code
        if format == "json":
            _emit_json("validate", {"errors": [_error_item(e)]}, ok=False, exit_code=code)
        typer.echo(str(e), err=True)
        raise typer.Exit(code=code)

    if format == "json":
        _emit_json("validate", {"summary": _summary(graph), "errors": []})
        return
    counts = _summary(graph)["kind_counts"]
    parts = [f"{k}={counts.get(k, 0)}" for k in NODE_KINDS]
    typer.echo(f"OK: {len(graph)} nodes (" + ", ".join(parts) + f"), {len(graph.edges())} edges")


@app.command("lint")
def lint(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check connection rules, orphaned projects and missing estimates."""
    _check_format(format)
    _, graph = _open(ctx)
    issues = lint_graph(graph)

    if format == "json":
        items = [
            {"code": i.code, "message": i.message, "id": i.node_id, "related_id": i.related_id}
            for i in issues
        ]
        _emit_json(
            "lint",
            {"error_count": len(items), "errors": items},
            ok=not issues,
            exit_code=EXIT_USAGE if issues else 0,
        )
        return

    if issues:
        for i in issues:
            typer.echo(str(i), err=True)
        raise typer.Exit(code=EXIT_USAGE)
    typer.echo("OK: lint passed")


@app.command("view")
def view(
    ctx: typer.Context,
    kind: str = typer.Argument(..., help="swimlane|gantt"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Render the graph as swim lanes or a Gantt table."""
    _check_format(format)
    if kind not in ("swimlane", "gantt"):
        _fail(GraphError(code="E_UNKNOWN_VIEW", message=f"unknown view: {kind} (choose one of: swimlane, gantt)"))
    _, graph = _open(ctx)
    try:
        order = graph.topological_order()
    except GraphError as e:
        _fail(e)

    if kind == "swimlane":
        lanes = swimlane(graph, order)
        if format == "json":
            _emit_json(
                "view",
                {
                    "view": "swimlane",
                    "rows": [
                        {"lane": r.lane, "id": r.id, "name": r.name, "kind": r.kind, "points": r.points}
                        for r in lanes
                    ],
                },
            )
            return
        table = Table(title="Swim lanes")
        table.add_column("Lane")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Points")
        prev_lane: Optional[str] = None
        for r in lanes:
            table.add_row(r.lane if r.lane != prev_lane else "", _short(r.id), r.name, _text(r.points))
            prev_lane = r.lane
        console.print(table)
        return

    bars = gantt(graph, order)
    if format == "json":
        _emit_json(
            "view",
            {
                "view": "gantt",
                "rows": [
                    {
                        "id": r.id,
                        "name": r.name,
                        "start": r.start.isoformat(),
                        "end": r.end.isoformat() if r.end else None,
                        "estimated_hours": r.estimated_hours,
                    }
                    for r in bars
                ],
            },
        )
        return
    table = Table(title="Gantt")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Start")
    table.add_column("End")
    table.add_column("Hours")
    for r in bars:
        table.add_row(_short(r.id), r.name, _when(r.start), _when(r.end), str(r.estimated_hours))
    console.print(table)


def _open(ctx: typer.Context) -> tuple[WorkgraphConfig, ProjectGraph]:
    cfg: WorkgraphConfig = ctx.obj
    try:
        return cfg, load_or_create(cfg.graph_file)
    except GraphError as e:
        _fail(e)


def _save(graph: ProjectGraph, cfg: WorkgraphConfig) -> None:
    try:
        save_graph(graph, cfg.graph_file)
    except GraphError as e:
        _fail(e)


def _timeline(
    start: Optional[str], end: Optional[str], duration: Optional[str], hours: int
) -> Optional[Timeline]:
    if start is None:
        if end is not None or duration is not None:
            raise GraphError(code="E_MISSING_START", message="--end/--duration need --start")
        return None
    if end is not None and duration is not None:
        raise GraphError(code="E_TIMELINE_ARGS", message="use either --end or --duration, not both")
    st = parse_instant(start)
    if duration is not None:
        return Timeline.from_start_duration(st, Duration.parse(duration), estimated_hours=hours)
    return Timeline(start=st, end=parse_instant(end) if end is not None else None, estimated_hours=hours)


def _check_format(format: str) -> None:
    if format not in ("text", "json"):
        _fail(
            GraphError(
                code="E_UNKNOWN_FORMAT",
                message=f"unknown format: {format} (choose one of: text, json)",
            )
        )


def _emit_json(command: str, body: dict[str, Any], *, ok: bool = True, exit_code: int = 0) -> None:
    payload = {"tool": "workgraph", "command": command, "ok": ok}
    payload.update(body)
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    if exit_code:
        raise typer.Exit(code=exit_code)


def _error_item(e: GraphError) -> dict[str, Any]:
    return {"code": e.code, "message": e.message, "ids": list(e.ids), "file": e.file}


def _summary(graph: ProjectGraph) -> dict[str, Any]:
    counts: dict[str, int] = {}
    for n in graph.nodes():
        counts[n.kind] = counts.get(n.kind, 0) + 1
    return {"node_count": len(graph), "edge_count": len(graph.edges()), "kind_counts": counts}


def _describe_conflict(graph: ProjectGraph, node_id: str, required: datetime, blocking: tuple[str, ...]) -> str:
    names = ", ".join(graph.get_node(b).name for b in blocking)
    return f"{graph.get_node(node_id).name} starts before {names} finishes (earliest {_when(required)})"


def _fail(e: GraphError) -> NoReturn:
    typer.echo(str(e), err=True)
    raise typer.Exit(code=e.exit_code)


def _short(node_id: str) -> str:
    return node_id[:8]


def _text(value: Optional[Any]) -> str:
    return "-" if value is None else str(value)


def _when(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def main() -> None:
    app(prog_name="workgraph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
