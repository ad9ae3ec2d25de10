from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from typeroute.config import GenerateOptions, load_options
from typeroute.domain.models import RouteSummary
from typeroute.errors import ConfigurationError
from typeroute.logs import configure_logging
from typeroute.orchestrator.pipeline import collect_declarations, compile_declarations, write_outputs

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _options(
    project: str,
    patterns: Optional[list[str]],
    source_root: Optional[str],
    out_dir: Optional[str],
    name: Optional[str],
    max_files: Optional[int],
    debug: bool,
) -> GenerateOptions:
    project_path = Path(project).expanduser().resolve()
    if not project_path.exists():
        raise typer.BadParameter(f"Project path does not exist: {project_path}")
    if not project_path.is_dir():
        raise typer.BadParameter(f"Project path is not a directory: {project_path}")

    opts = load_options(
        project_path,
        patterns=patterns or None,
        source_root=source_root,
        out_dir=out_dir,
        project_name=name,
        max_files=max_files,
        debug=debug or None,
    )
    if not opts.source_root.is_dir():
        raise typer.BadParameter(f"Source root is not a directory: {opts.source_root}")
    # generated files are never inputs
    opts.ignore_dirs.append(opts.out_dir.name)
    return opts


def _routes_table(routes: list[RouteSummary]) -> Table:
    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("OPERATION", no_wrap=True)
    for r in routes:
        table.add_row(r.method, r.path, f"{r.controller}.{r.handler}", r.operation_id)
    return table


@app.command()
def generate(
    project: str = typer.Argument(".", help="Project directory (holds pyproject.toml)"),
    pattern: Optional[list[str]] = typer.Option(None, "--pattern", "-p", help="Glob of source files, repeatable"),
    source_root: Optional[str] = typer.Option(None, help="Directory module names are relative to"),
    out: Optional[str] = typer.Option(None, help="Output directory"),
    name: Optional[str] = typer.Option(None, help="Project name for the API documents"),
    max_files: Optional[int] = typer.Option(None, help="Limit scanned files (debug)"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log JSON lines"),
) -> None:
    opts = _options(project, pattern, source_root, out, name, max_files, debug)
    configure_logging(debug=opts.debug, use_json=json_logs)

    try:
        decls = collect_declarations(opts.patterns, opts.source_root, opts.compile_options())
        compiled = compile_declarations(decls, opts.project_name, opts.source_root)
    except ConfigurationError as e:
        console.print(f"[bold red]error[/bold red] {e}")
        raise typer.Exit(code=1)

    written = write_outputs(compiled, opts.out_dir)

    console.print(f"[bold green]typeroute[/bold green] generate: {opts.source_root}")
    console.print(f"Routes: [bold]{len(compiled.routes)}[/bold]")
    console.print(_routes_table(compiled.routes))
    for path in written:
        console.print(f"[bold green]Wrote[/bold green] {path}")


@app.command()
def endpoints(
    project: str = typer.Argument(".", help="Project directory (holds pyproject.toml)"),
    pattern: Optional[list[str]] = typer.Option(None, "--pattern", "-p", help="Glob of source files, repeatable"),
    source_root: Optional[str] = typer.Option(None, help="Directory module names are relative to"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/...)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on HTTP path"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    opts = _options(project, pattern, source_root, None, None, None, False)
    configure_logging(debug=False)

    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    try:
        decls = collect_declarations(opts.patterns, opts.source_root, opts.compile_options())
        compiled = compile_declarations(decls, opts.project_name, opts.source_root)
    except ConfigurationError as e:
        console.print(f"[bold red]error[/bold red] {e}")
        raise typer.Exit(code=1)

    routes = compiled.routes
    if method:
        routes = [r for r in routes if r.method == method.upper()]
    if path_contains:
        routes = [r for r in routes if path_contains in r.path]

    if fmt == "json":
        typer.echo(json.dumps([r.model_dump() for r in routes], indent=2))
        return

    console.print(f"[bold]Routes:[/bold] {len(routes)}")
    console.print(_routes_table(routes))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
