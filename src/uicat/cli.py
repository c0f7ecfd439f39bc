from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
import signal
import subprocess
import sys
from typing import Annotated, Any, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from uicat.assemble import RELAXED, STRICT
from uicat.config import SearchConfig, default_config_path, load_config, write_default_config
from uicat.errors import CatalogError, SearchValidationError
from uicat.evaluate import DEFAULT_EVAL_LIMIT, DEFAULT_EVAL_QUERIES, default_eval_path, run_eval, write_records
from uicat.filters import NO_FILTERS, ComponentFilters, normalize_filters
from uicat.mcp.server_http import run_http_server
from uicat.mcp.server_stdio import run_stdio_server
from uicat.models import ANIMATION_LIBRARIES, FRAMEWORKS, MOTION_LEVELS, PRIMITIVE_LIBRARIES, STYLINGS
from uicat.output_models import SearchResponse
from uicat.service import CatalogService
from uicat.util.logging import setup_logging, use_color

CLI_NAME = "uicat"

app = typer.Typer(help="uicat: search a catalog of UI components")


@dataclass(slots=True)
class AppState:
    service: CatalogService
    console: Console
    config_path: Path
    show_tips: bool = True


def _state(ctx: typer.Context) -> AppState:
    st = ctx.obj
    if not isinstance(st, AppState):
        raise RuntimeError("app state not initialized")
    return st


def _parse_choice(value: str | None, allowed: Sequence[str], option: str) -> str | None:
    if value is None:
        return None
    cleaned = value.strip().lower()
    if cleaned not in allowed:
        raise typer.BadParameter(f"expected one of {', '.join(allowed)}, received: {value}", param_hint=option)
    return cleaned


def _parse_choices(values: list[str] | None, allowed: Sequence[str], option: str) -> list[str] | None:
    if not values:
        return None
    return [v for v in (_parse_choice(x, allowed, option) for x in values) if v is not None]


def parse_filters(
    framework: str | None = None,
    styling: str | None = None,
    motion: list[str] | None = None,
    primitive_library: list[str] | None = None,
    animation_library: str | None = None,
) -> ComponentFilters:
    return normalize_filters(
        framework=_parse_choice(framework, FRAMEWORKS, "--framework"),
        styling=_parse_choice(styling, STYLINGS, "--styling"),
        motion=_parse_choices(motion, MOTION_LEVELS, "--motion"),
        primitive_library=_parse_choices(primitive_library, PRIMITIVE_LIBRARIES, "--primitive-library"),
        animation_library=_parse_choice(animation_library, ANIMATION_LIBRARIES, "--animation-library"),
    )


def configured_filters(
    defaults: SearchConfig,
    framework: str | None = None,
    styling: str | None = None,
    motion: list[str] | None = None,
    primitive_library: list[str] | None = None,
    animation_library: str | None = None,
) -> ComponentFilters:
    return parse_filters(
        framework if framework is not None else defaults.framework,
        styling if styling is not None else defaults.styling,
        motion or list(defaults.motion),
        primitive_library or list(defaults.primitive_library),
        animation_library,
    )


def _fail(console: Console, exc: Exception) -> typer.Exit:
    console.print(f"[red]{escape(str(exc))}[/red]")
    return typer.Exit(1)


def _emit_obj(console: Console, obj: dict, json_out: bool) -> None:
    if json_out:
        typer.echo(json.dumps(obj, indent=2))
        return
    for k, v in obj.items():
        console.print(f"[bold]{k}[/bold]: {v}")


def _print_no_match_guidance(console: Console, query: str, relax_hint: bool) -> None:
    console.print(f'No matches in current catalog for "{escape(query)}".')
    if relax_hint:
        console.print(f'[dim]Try: {CLI_NAME} search "{escape(query)}" --relax[/dim]')
    console.print(f'[dim]Try: {CLI_NAME} search "<broader term>" --limit 20[/dim]')
    console.print("[dim]This component may not exist in the current catalog.[/dim]")


def _print_results(console: Console, response: SearchResponse, debug: bool) -> None:
    for idx, row in enumerate(response.results, start=1):
        console.print(
            f"[bold cyan]{idx}.[/bold cyan] [bold]{escape(row.name)}[/bold] "
            f"[magenta]({row.id})[/magenta]  [green]{row.score:.4f}[/green] [dim]{row.reason}[/dim]"
        )
        console.print(
            f"   framework: {row.framework} | styling: {row.styling} | motion: {row.motion_level}"
        )
        console.print(f"   primitive: {row.primitive_library} | animation: {row.animation_library}")
        if row.dependencies:
            deps = ", ".join(f"{d.name} ({d.kind})" for d in row.dependencies)
            console.print(f"   dependencies: {escape(deps)}")
        else:
            console.print("   dependencies: [dim]none[/dim]")
        console.print(f"   source: {escape(row.source_url)}")
        console.print(f"   intent: {escape(row.intent)}")
        if debug and row.scores is not None:
            s = row.scores
            console.print(
                "   [dim]Debug: "
                f"rrf_lexical={s.rrf_lexical:.4f} rrf_semantic={s.rrf_semantic:.4f} "
                f"lexical_rank={s.lexical_rank} semantic_rank={s.semantic_rank} "
                f"lexical_distance={s.lexical_distance} semantic_similarity={s.semantic_similarity}"
                "[/dim]"
            )

    if debug and response.debug is not None:
        d = response.debug
        console.print(
            f"[dim]seed={d.seed_query} profile={d.lexical_profile} candidates={response.candidate_count} "
            f"lexical_pool={d.lexical_pool_size} semantic_pool={d.semantic_pool_size} fused={d.fused_count}[/dim]"
        )


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[Path | None, typer.Option("--config", help="Config YAML path")] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Override the catalog database path")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Verbose logging")] = False,
) -> None:
    setup_logging(verbose)
    cfg_path = config.expanduser() if config else default_config_path()
    if not cfg_path.exists():
        write_default_config(cfg_path)
    overrides = {"db_path": str(db.expanduser())} if db else None
    cfg = load_config(cfg_path, overrides=overrides)
    color_on = use_color()
    console = Console(color_system="auto" if color_on else None, force_terminal=color_on)
    ctx.obj = AppState(
        service=CatalogService(cfg),
        console=console,
        config_path=cfg_path,
        show_tips=cfg.ui.show_tips,
    )


@app.command("init-config")
def init_config(
    ctx: typer.Context,
    path: Annotated[Path | None, typer.Option("--path", help="Write config to this path")] = None,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    written = write_default_config(path.expanduser() if path else None)
    if json_out:
        typer.echo(json.dumps({"config_path": str(written)}, indent=2))
        return
    st.console.print(f"[green]config:[/green] {written}")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Catalog file (YAML or JSON)")],
    no_embed: Annotated[bool, typer.Option("--no-embed", help="Skip refreshing embeddings")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        stats = st.service.import_catalog(path.expanduser(), embed=not no_embed)
    except CatalogError as exc:
        raise _fail(st.console, exc) from exc
    _emit_obj(st.console, stats, json_out)


@app.command("embed")
def embed_cmd(
    ctx: typer.Context,
    force: Annotated[bool, typer.Option("--force", help="Re-embed every component")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        stats = st.service.embed(force=force)
    except CatalogError as exc:
        raise _fail(st.console, exc) from exc
    _emit_obj(st.console, stats, json_out)


@app.command("search")
def search_cmd(
    ctx: typer.Context,
    query: str,
    limit: Annotated[int | None, typer.Option("-n", "--limit", help="Maximum results")] = None,
    framework: Annotated[str | None, typer.Option("--framework")] = None,
    styling: Annotated[str | None, typer.Option("--styling")] = None,
    motion: Annotated[list[str] | None, typer.Option("--motion", help="Repeatable")] = None,
    primitive_library: Annotated[list[str] | None, typer.Option("--primitive-library", help="Repeatable")] = None,
    animation_library: Annotated[str | None, typer.Option("--animation-library")] = None,
    relax: Annotated[bool, typer.Option("--relax", help="Best-effort fuzzy matching")] = False,
    debug: Annotated[bool, typer.Option("--debug")] = False,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    filters = configured_filters(
        st.service.config.search, framework, styling, motion, primitive_library, animation_library
    )
    try:
        response = st.service.search_sync(
            query,
            filters=filters,
            limit=limit,
            mode=RELAXED if relax else STRICT,
            debug=debug,
        )
    except SearchValidationError as exc:
        raise _fail(st.console, exc) from exc

    if json_out:
        typer.echo(json.dumps(response.model_dump(exclude_none=True), indent=2))
        return

    if not response.relaxed and not response.results:
        _print_no_match_guidance(st.console, response.query, relax_hint=True)
        return
    if response.relaxed and response.strict_result_count == 0 and response.results:
        st.console.print("[yellow]No strict matches; showing relaxed best-effort results.[/yellow]")
    if not response.results:
        _print_no_match_guidance(st.console, response.query, relax_hint=False)
        return

    _print_results(st.console, response, debug)
    if response.relaxed and st.show_tips:
        st.console.print("[dim]Tip: refine with --framework/--styling/--motion for higher precision.[/dim]")


@app.command("eval")
def eval_cmd(
    ctx: typer.Context,
    queries: Annotated[list[str] | None, typer.Argument(help="Queries to run (defaults to a built-in set)")] = None,
    limit: Annotated[int, typer.Option("-n", "--limit", min=1, help="Results kept per query")] = DEFAULT_EVAL_LIMIT,
    relax: Annotated[bool, typer.Option("--relax")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Record the score breakdown of each hit")] = False,
    use_project_config: Annotated[
        bool, typer.Option("--use-project-config", help="Apply the configured search filters")
    ] = False,
    out: Annotated[Path | None, typer.Option("--out", help="JSONL output path")] = None,
) -> None:
    st = _state(ctx)
    batch = list(queries) if queries else list(DEFAULT_EVAL_QUERIES)
    filters = configured_filters(st.service.config.search) if use_project_config else NO_FILTERS
    mode = RELAXED if relax else STRICT
    st.console.print(
        f"Search eval: queries={len(batch)}, limit={limit}, mode={mode}, "
        f"debug={'on' if debug else 'off'}, config={'project' if use_project_config else 'unfiltered'}"
    )

    run = run_eval(st.service, batch, limit=limit, mode=mode, debug=debug, filters=filters)
    for record in run.records:
        st.console.print(f'\nQuery: "{escape(record["query"])}"')
        if not record["success"]:
            st.console.print(f"  [red]ERROR:[/red] {escape(record['error'])}")
            continue
        st.console.print(
            f"  count={record['result_count']}, strict_count={record['strict_result_count']}, mode={record['mode']}"
        )
        top = " | ".join(escape(f"{t['rank']}. {t['id']} ({t['name']}) [{t['reason']}]") for t in record["top"])
        st.console.print(f"  top: {top or '(none)'}")

    path = write_records(out.expanduser() if out else default_eval_path(), run.records)
    st.console.print(f"\nWrote {len(run.records)} eval rows to {path}")
    if run.failed:
        st.console.print(f"[red]Completed with {run.failed} query error(s).[/red]")
        raise typer.Exit(1)
    st.console.print("Completed without errors.")


@app.command("get")
def get_cmd(
    ctx: typer.Context,
    identifier: str,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    try:
        row = st.service.get(identifier)
    except SearchValidationError as exc:
        raise _fail(st.console, exc) from exc
    if row is None:
        st.console.print(f"[red]component not found:[/red] {identifier}")
        raise typer.Exit(1)
    if json_out:
        typer.echo(json.dumps(row, indent=2))
        return

    table = Table(title=str(row["name"]), show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    for key in ("id", "intent", "framework", "styling", "motion_level", "primitive_library", "animation_library"):
        table.add_row(key, str(row[key]))
    table.add_row("source_url", str(row["source_url"]))
    for key in ("source_library", "source_author"):
        if row.get(key):
            table.add_row(key, str(row[key]))
    for key in ("topics", "capabilities", "synonyms"):
        if row[key]:
            table.add_row(key, ", ".join(row[key]))
    deps: list[dict[str, Any]] = row["dependencies"]
    if deps:
        table.add_row("dependencies", ", ".join(f"{d['name']} ({d['kind']})" for d in deps))
    st.console.print(table)


@app.command("status")
def status_cmd(
    ctx: typer.Context,
    json_out: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    st = _state(ctx)
    _emit_obj(st.console, st.service.status(), json_out)


@app.command("mcp")
def mcp_cmd(
    ctx: typer.Context,
    action: Annotated[str, typer.Argument(help="start|stop")] = "start",
    http: Annotated[bool, typer.Option("--http", help="Use HTTP transport")] = False,
    daemon: Annotated[bool, typer.Option("--daemon", help="Run HTTP tool server as daemon")] = False,
    host: Annotated[str, typer.Option("--host")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port")] = 8181,
    serve_only: Annotated[bool, typer.Option("--serve-only", hidden=True)] = False,
) -> None:
    st = _state(ctx)
    pid_path = st.service.config.pid_path

    if action == "stop":
        if not pid_path.exists():
            typer.echo("not running")
            raise typer.Exit(0)
        pid = int(pid_path.read_text().strip())
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            pass
        pid_path.unlink(missing_ok=True)
        typer.echo(f"stopped pid {pid}")
        raise typer.Exit(0)

    if action != "start":
        raise typer.BadParameter(f"expected start or stop, received: {action}", param_hint="action")
    if daemon and not http:
        raise typer.BadParameter("--daemon currently requires --http")

    if daemon and not serve_only:
        cmd = [
            sys.executable,
            "-m",
            "uicat.cli",
            "--config",
            str(st.config_path),
            "--db",
            str(st.service.config.db_path),
            "mcp",
            "start",
            "--http",
            "--host",
            host,
            "--port",
            str(port),
            "--serve-only",
        ]
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
            start_new_session=True,
        )
        pid_path.write_text(str(proc.pid))
        typer.echo(f"started daemon pid={proc.pid} http://{host}:{port}")
        raise typer.Exit(0)

    if http:
        raise typer.Exit(run_http_server(st.service, host=host, port=port))

    raise typer.Exit(run_stdio_server(st.service))


if __name__ == "__main__":
    app()
