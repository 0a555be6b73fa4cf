from __future__ import annotations

import json
import logging
from dataclasses import asdict, replace
from typing import Any, Optional

import typer

from issue_graph.core.config import ConfigError, EngineConfig, load_config
from issue_graph.core.errors import GraphError, GraphLoadError, GraphValidationError, sort_errors
from issue_graph.core.graph.engine import GraphEngine
from issue_graph.core.io.load_graph import build_engine, dump_graph_yaml, load_estimates, load_graph
from issue_graph.core.layout.layered_layout import layout_graph
from issue_graph.core.model import DurationEstimate
from issue_graph.core.schedule.critical_path import schedule_graph
from issue_graph.core.schedule.importance import importance_map
from issue_graph.core.validate.graph_health import (
    find_cycles,
    health,
    health_errors,
    remove_invalid_edges,
    remove_redundant_edges,
)

app = typer.Typer(add_completion=False, no_args_is_help=True)

CONFIG_ENVVAR = "ISSUE_GRAPH_CONFIG"


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine passes at DEBUG level"),
) -> None:
    """Issue dependency graph CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _check_format(fmt: str, command: str) -> None:
    if fmt not in ("text", "json"):
        _print_errors(
            [
                GraphValidationError(
                    code=f"E_{command.upper().replace('-', '_')}_UNKNOWN_FORMAT",
                    message=f"unknown format: {fmt} (choose one of: text, json)",
                    file=None,
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _load(path: str) -> tuple[GraphEngine, dict[str, Any]]:
    try:
        raw = load_graph(path)
    except GraphLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    engine, errors = build_engine(raw)
    if errors or engine is None:
        _print_errors(errors)
        raise typer.Exit(code=2)
    return engine, raw


def _config(config_file: Optional[str]) -> EngineConfig:
    try:
        return load_config(config_file)
    except FileNotFoundError:
        _print_errors(
            [
                GraphLoadError(
                    code="E_CONFIG_FILE_NOT_FOUND",
                    message=f"config file not found: {config_file}",
                    file=None,
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=1)
    except ConfigError as e:
        _print_errors(
            [
                GraphValidationError(
                    code="E_CONFIG_FILE_INVALID",
                    message=str(e),
                    file=config_file,
                    path="config",
                )
            ]
        )
        raise typer.Exit(code=2)


def _emit_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate the shape of an issue graph file."""
    _check_format(format, "validate")

    def _to_item(e: GraphError) -> dict:
        source = "load" if isinstance(e, GraphLoadError) else "validate"
        return {
            "code": e.code,
            "message": e.message,
            "file": e.file,
            "path": e.path,
            "severity": "error",
            "source": source,
        }

    def _emit_failure(errors: list[GraphError], exit_code: int) -> None:
        _emit_json(
            {
                "tool": "issue-graph",
                "command": "validate",
                "ok": False,
                "error_count": len(errors),
                "errors": [_to_item(e) for e in sort_errors(errors)],
                "summary": None,
            }
        )
        raise typer.Exit(code=exit_code)

    try:
        raw = load_graph(path)
    except GraphLoadError as e:
        if format == "json":
            _emit_failure([e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    built, build_errors = build_engine(raw)
    if build_errors or built is None:
        if format == "json":
            _emit_failure(list(build_errors), 2)
        _print_errors(build_errors)
        raise typer.Exit(code=2)
    engine = built

    statuses = {k: len(v) for k, v in engine.by_status().items()}
    ready = [i.id for i in engine.ready()]

    if format == "json":
        _emit_json(
            {
                "tool": "issue-graph",
                "command": "validate",
                "ok": True,
                "error_count": 0,
                "errors": [],
                "summary": {
                    "issue_count": len(engine),
                    "status_counts": statuses,
                    "ready": ready,
                    "blocked": [i.id for i in engine.blocked()],
                },
            }
        )
        return

    parts = [f"{k}={statuses.get(k, 0)}" for k in ("open", "in_progress", "closed")]
    typer.echo(f"OK: {len(engine)} issues (" + ", ".join(parts) + ")")
    typer.echo("Ready: " + ", ".join(ready))


@app.command("health")
def health_cmd(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Report cycles, invalid edges and redundant edges."""
    _check_format(format, "health")
    engine, raw = _load(path)

    report = health(engine)
    errors = health_errors(report, file=raw.get("__file__"))

    if format == "json":
        _emit_json(
            {
                "tool": "issue-graph",
                "command": "health",
                "ok": report.is_healthy,
                "cycles": report.cycles,
                "invalid_edges": [asdict(e) for e in report.invalid_edges],
                "redundant_edges": [asdict(e) for e in report.redundant_edges],
            }
        )
        if not report.is_healthy:
            raise typer.Exit(code=2)
        return

    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: graph is healthy")


@app.command("fix")
def fix(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    out: str = typer.Option(..., "--out", help="Path to write the repaired YAML graph"),
    invalid: bool = typer.Option(True, "--invalid/--keep-invalid", help="Remove dangling dependencies"),
    redundant: bool = typer.Option(True, "--redundant/--keep-redundant", help="Remove redundant dependencies"),
) -> None:
    """Repair invalid and redundant edges. Cycles are reported, never broken."""
    engine, raw = _load(path)

    removed_invalid = remove_invalid_edges(engine) if invalid else 0
    removed_redundant = remove_redundant_edges(engine) if redundant else 0

    schema_version = raw.get("schema_version") or "0.1.0"
    dump_graph_yaml(engine, out, schema_version=schema_version)
    typer.echo(
        f"OK: wrote {out} (invalid_removed={removed_invalid}, redundant_removed={removed_redundant})"
    )

    cycles = find_cycles(engine)
    if cycles:
        typer.echo("WARN: cycles need manual resolution:", err=True)
        for c in cycles:
            typer.echo("  " + " -> ".join(c), err=True)
        raise typer.Exit(code=2)


@app.command("add-dep")
def add_dep(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    dependent: str = typer.Argument(..., help="Issue that must wait"),
    prerequisite: str = typer.Argument(..., help="Issue that must finish first"),
    out: str = typer.Option(..., "--out", help="Path to write the updated YAML graph"),
) -> None:
    """Add a dependency, refusing anything that would create a cycle."""
    engine, raw = _load(path)

    result = engine.add_dependency(dependent, prerequisite)
    if not result.ok:
        assert result.error is not None
        _print_errors([replace(result.error, file=raw.get("__file__"))])
        if result.cycle_break_options:
            typer.echo("Remove one of these edges to allow it:", err=True)
            for opt in result.cycle_break_options:
                typer.echo(
                    f"  {opt.dependent_id} -> {opt.prerequisite_id} "
                    f"({opt.dependent_title} waits on {opt.prerequisite_title})",
                    err=True,
                )
        raise typer.Exit(code=2)

    schema_version = raw.get("schema_version") or "0.1.0"
    dump_graph_yaml(engine, out, schema_version=schema_version)
    typer.echo(f"OK: {dependent} now depends on {prerequisite}; wrote {out}")


@app.command("layout")
def layout(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    format: str = typer.Option("json", "--format", help="Output format: text|json"),
    config: Optional[str] = typer.Option(None, "--config", envvar=CONFIG_ENVVAR, help="Engine settings YAML"),
) -> None:
    """Compute a layered drawing of the graph."""
    _check_format(format, "layout")
    engine, _ = _load(path)
    cfg = _config(config)

    result = layout_graph(engine, config=cfg.layout, policy=cfg.importance)

    if format == "json":
        _emit_json(
            {
                "tool": "issue-graph",
                "command": "layout",
                "width": result.width,
                "height": result.height,
                "crossings": result.crossings,
                "positions": [asdict(p) for p in result.positions],
                "edges": [asdict(e) for e in result.edges],
            }
        )
        return

    typer.echo(f"Canvas: {result.width:g} x {result.height:g} (crossings={result.crossings})")
    for p in result.positions:
        typer.echo(f"- {p.issue_id}: layer={p.layer} order={p.order:g} x={p.x:g} y={p.y:g} h={p.height:g}")


@app.command("schedule")
def schedule(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    estimates: Optional[str] = typer.Option(
        None, "--estimates", help="Duration-estimate file (estimates + optional critical_path)"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    config: Optional[str] = typer.Option(None, "--config", envvar=CONFIG_ENVVAR, help="Engine settings YAML"),
) -> None:
    """Schedule the graph and compute its critical path."""
    _check_format(format, "schedule")
    engine, raw = _load(path)
    cfg = _config(config)

    provided: dict[str, DurationEstimate] = {}
    asserted = raw.get("critical_path")
    if estimates:
        try:
            provided, provider_path = load_estimates(estimates)
        except GraphLoadError as e:
            _print_errors([e])
            raise typer.Exit(code=1)
        if provider_path is not None:
            asserted = provider_path

    result = schedule_graph(engine, estimates=provided, asserted_critical_path=asserted, config=cfg.schedule)

    if format == "json":
        _emit_json(
            {
                "tool": "issue-graph",
                "command": "schedule",
                "min_days": result.min_days,
                "expected_days": result.expected_days,
                "max_days": result.max_days,
                "critical_path": result.critical_path,
                "disagreement": asdict(result.disagreement) if result.disagreement else None,
                "tasks": [asdict(t) for t in result.tasks],
            }
        )
        return

    typer.echo(
        f"Total: {result.expected_days} days expected "
        f"(min {result.min_days}, max {result.max_days})"
    )
    typer.echo("Critical path: " + " -> ".join(result.critical_path))
    for t in result.tasks:
        flag = " *" if t.is_on_critical_path else ""
        typer.echo(f"- {t.issue_id}: day {t.start_day}-{t.end_day} row={t.row} slack={t.slack}{flag}")
    if result.disagreement:
        typer.echo(
            "WARN: asserted critical path differs "
            f"(only asserted: {', '.join(result.disagreement.only_asserted) or '-'}; "
            f"only computed: {', '.join(result.disagreement.only_computed) or '-'})",
            err=True,
        )


@app.command("importance")
def importance_cmd(
    path: str = typer.Argument(..., help="Path to an issue graph file (.yaml/.yml/.json)"),
    config: Optional[str] = typer.Option(None, "--config", envvar=CONFIG_ENVVAR, help="Engine settings YAML"),
) -> None:
    """Score each issue by how much open work waits on it."""
    engine, _ = _load(path)
    cfg = _config(config)

    sched = schedule_graph(engine, config=cfg.schedule) if cfg.importance.critical_path_bonus else None
    scores = importance_map(engine, policy=cfg.importance, schedule=sched)
    for nid, score in sorted(scores.items(), key=lambda kv: (-kv[1], kv[0])):
        typer.echo(f"{nid}: {score:.2f}")


def _print_errors(errors: list[GraphError]) -> None:
    for e in sort_errors(errors):
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="issue-graph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
