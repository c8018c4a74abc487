"""Command-line interface for inspecting and calling registered functions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from gridfn import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridfn")
@click.option(
    "--config",
    "config_dir",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Directory containing gridfn.yaml.",
)
@click.pass_context
def main(ctx: click.Context, config_dir: str | None) -> None:
    """gridfn -- spreadsheet function execution pipeline."""
    from gridfn.config import configure_logging, load_config
    from gridfn.errors import ConfigError

    try:
        config = load_config(Path(config_dir) if config_dir else Path.cwd())
    except ConfigError as exc:
        raise click.ClickException(str(exc))
    configure_logging(config)
    ctx.obj = {"config": config}


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _registry(ctx: click.Context):
    from gridfn.loader import build_registry

    obj = ctx.obj
    if "registry" not in obj:
        obj["registry"] = build_registry(obj["config"])
    return obj["registry"]


def _payload_dict(payload: Any) -> dict[str, Any]:
    return payload.model_dump(exclude_none=True)


def _render_payload(payload: Any) -> str:
    if payload.is_error:
        return f"{payload.value}: {payload.message}" if payload.message else str(payload.value)
    from gridfn.functions.helpers import to_string

    return to_string(payload.value)


# ---------------------------------------------------------------------------
# functions / describe
# ---------------------------------------------------------------------------


@main.command("functions")
@click.option("--category", default=None, help="Only list functions of this category.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def functions_cmd(ctx: click.Context, category: str | None, as_json: bool) -> None:
    """List registered functions."""
    registry = _registry(ctx)
    names = registry.names(category=category)
    if as_json:
        data = [
            {
                "name": n,
                "category": registry.get(n).category,
                "description": registry.get(n).description,
            }
            for n in names
        ]
        click.echo(json.dumps(data, indent=2))
        return
    if not names:
        click.echo("No functions registered.")
        return
    for n in names:
        descr = registry.get(n)
        click.echo(f"  {n:<16} {descr.category or '':<10} {descr.description}")


@main.command()
@click.argument("name")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def describe(ctx: click.Context, name: str, as_json: bool) -> None:
    """Show the arguments and metadata of function NAME."""
    from gridfn.errors import UnknownFunctionError

    registry = _registry(ctx)
    try:
        descr = registry.get(name)
    except UnknownFunctionError as exc:
        raise click.ClickException(str(exc))

    if as_json:
        data = descr.model_dump(exclude={"compute"})
        click.echo(json.dumps(data, indent=2, default=str))
        return

    click.echo(f"{descr.name} ({descr.category})")
    click.echo(f"  {descr.description}")
    max_args = "unbounded" if descr.max_arg_possible is None else descr.max_arg_possible
    click.echo(f"  Arguments: {descr.min_arg_required} required, {max_args} max")
    for spec in descr.args:
        flags = [f for f in ("optional", "repeating", "lazy") if getattr(spec, f)]
        if spec.default:
            flags.append(f"default={spec.default_value}")
        types = ", ".join(t.lower() for t in spec.types)
        extra = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"    {spec.name} ({types}){extra}: {spec.description}")
    click.echo(f"  Returns: {', '.join(descr.returns)}")


# ---------------------------------------------------------------------------
# call
# ---------------------------------------------------------------------------


@main.command()
@click.argument("name")
@click.argument("args", nargs=-1)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def call(ctx: click.Context, name: str, args: tuple[str, ...], as_json: bool) -> None:
    """Call function NAME with literal ARGS.

    ARGS are numbers, "quoted strings", TRUE/FALSE or array constants such as
    {1,2;3,4} (commas between columns, semicolons between rows).
    """
    from gridfn.literals import LiteralParseError, parse_literal
    from gridfn.logging import EventType, emit_info
    from gridfn.values import MappingEvalContext, grid_to_frame, grid_to_rows, is_grid

    try:
        values = [parse_literal(a) for a in args]
    except LiteralParseError as exc:
        raise click.ClickException(str(exc))

    registry = _registry(ctx)
    result = registry.invoke(name, values, MappingEvalContext())
    emit_info(
        EventType.cli_call,
        f"gridfn call {name.upper()}",
        {"function_name": name.upper(), "arg_count": len(values)},
    )

    if as_json:
        if is_grid(result):
            data: Any = [[_payload_dict(p) for p in row] for row in grid_to_rows(result)]
        else:
            data = _payload_dict(result)
        click.echo(json.dumps(data, indent=2, default=str))
        return

    if is_grid(result):
        click.echo(str(grid_to_frame(result)))
    else:
        click.echo(_render_payload(result))


# ---------------------------------------------------------------------------
# logs
# ---------------------------------------------------------------------------


@main.command()
@click.option("--dir", "log_dir", default=None, type=click.Path(), help="Log directory (defaults to the configured log_dir).")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--function", "function_name", default=None, help="Filter by function name.")
@click.option("--limit", default=50, show_default=True, help="Maximum events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def logs(
    ctx: click.Context,
    log_dir: str | None,
    level: str | None,
    function_name: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show recent structured events, most recent first."""
    from gridfn.logging import EventSink

    directory = log_dir or ctx.obj["config"].get("log_dir")
    if not directory:
        raise click.ClickException("No log directory configured; pass --dir or set log_dir in gridfn.yaml.")
    sink = EventSink(Path(directory))
    events = sink.read_global(
        level=level,
        function_name=function_name.upper() if function_name else None,
        limit=limit,
    )
    if as_json:
        click.echo(json.dumps(events, indent=2))
        return
    if not events:
        click.echo("No events.")
        return
    for e in events:
        click.echo(f"{e.get('ts', '')}  {e.get('level', ''):<7}  {e.get('event_type', ''):<20}  {e.get('message', '')}")
