"""CLI interface for reposeek.

Typer-based command-line interface with Rich output formatting. Logs go to
stderr so that ``reposeek serve`` over stdio keeps stdout for the protocol.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from reposeek import __version__
from reposeek.config import save_config
from reposeek.exceptions import ConfigError, InvalidRequestError, ReposeekError
from reposeek.project import ProjectManager
from reposeek.service import SearchService, create_service

__all__ = ["app"]

app = typer.Typer(
    name="reposeek",
    help="Local semantic search over a repository, served over MCP.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)

_TRUTHY = {"1", "true", "yes", "on"}


def _setup_logging(verbose: bool) -> None:
    """Route all logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def _project() -> ProjectManager:
    return ProjectManager(ProjectManager.find_project_root())


def _service(pm: ProjectManager) -> SearchService:
    try:
        config = pm.load()
        if config.logging.verbose:
            _setup_logging(True)
        return create_service(config, pm)
    except ReposeekError as e:
        console.print(f"[red]Failed to initialize:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """reposeek: semantic code and document search."""
    _setup_logging(verbose)


@app.command()
def version() -> None:
    """Show reposeek version."""
    console.print(f"reposeek {__version__}")


@app.command()
def init(
    root: Annotated[
        str,
        typer.Option("--root", "-r", help="Directory to index (default: project root)"),
    ] = "",
) -> None:
    """Initialize a new reposeek project in the current directory."""
    pm = ProjectManager()
    try:
        project_dir = pm.init(index_root=root)
    except (ReposeekError, OSError) as e:
        console.print(f"[red]Failed to initialize project:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Initialized reposeek project[/green] at {project_dir}")
    console.print("\nCreated:")
    console.print(f"  {pm.config_path}")

    console.print("\nNext steps:")
    console.print("  reposeek index           Build the search index")
    console.print("  reposeek search <query>  Search the index")
    console.print("  reposeek serve           Start the MCP server")


@app.command()
def index() -> None:
    """Build or incrementally update the index."""
    pm = _project()
    service = _service(pm)
    console.print(f"Indexing [bold]{service.root}[/bold] ...")

    try:
        report = service.reindex()
    except ReposeekError as e:
        console.print(f"[red]Indexing failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    if report.mode == "unchanged":
        console.print(f"[dim]Index up to date ({report.chunks_total} chunks).[/dim]")
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Mode", report.mode)
    table.add_row("Files", str(report.files_discovered))
    table.add_row("Changed", str(report.files_changed))
    table.add_row("Removed", str(report.files_removed))
    table.add_row("Embedded", str(report.chunks_embedded))
    table.add_row("Chunks", str(report.chunks_total))
    console.print(table)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query")],
    top_k: Annotated[
        int,
        typer.Option("--top-k", "-k", help="Number of results"),
    ] = 5,
) -> None:
    """Search the index (updating it first if files changed)."""
    pm = _project()
    service = _service(pm)

    try:
        service.reindex()
        result = service.search(query, top_k)
    except ReposeekError as e:
        console.print(f"[red]Search failed:[/red] {e}")
        raise typer.Exit(code=1) from e

    matches = result["matches"]
    if not matches:
        console.print(f"[yellow]No results found for:[/yellow] {query}")
        return

    for i, m in enumerate(matches, 1):
        console.print(f"{i}. [bold]{m['path']}[/bold] [dim]score={m['score']}[/dim]")
        snippet = str(m["snippet"])
        text = snippet[:200].replace("\n", " ")
        if len(snippet) > 200:
            text += "..."
        console.print(f"   {text}", markup=False)


@app.command()
def read(
    path: Annotated[str, typer.Argument(help="File path relative to the indexed root")],
    start: Annotated[
        int | None,
        typer.Option("--start", "-s", help="First line (1-based)"),
    ] = None,
    end: Annotated[
        int | None,
        typer.Option("--end", "-e", help="Last line (inclusive)"),
    ] = None,
) -> None:
    """Print a file, or a line range of it."""
    pm = _project()
    service = _service(pm)
    try:
        text = service.read_range(path, start, end)
    except InvalidRequestError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e
    typer.echo(text)


@app.command()
def ls(
    directory: Annotated[
        str,
        typer.Argument(help="Directory relative to the indexed root"),
    ] = ".",
    recursive: Annotated[
        bool,
        typer.Option("--recursive", "-r", help="Descend into subdirectories"),
    ] = False,
    depth: Annotated[
        int | None,
        typer.Option("--depth", "-d", help="Maximum depth when recursive (0 = children)"),
    ] = None,
    ext: Annotated[
        list[str] | None,
        typer.Option("--ext", "-e", help="Only list files with this extension"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Maximum number of entries"),
    ] = 500,
) -> None:
    """List files and folders under the indexed root."""
    pm = _project()
    service = _service(pm)
    try:
        result = service.list_directory(directory, recursive, depth, ext, limit)
    except InvalidRequestError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    entries = result["entries"]
    if not entries:
        console.print("[dim]No entries.[/dim]")
        return

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Path")
    table.add_column("Size", justify="right", style="dim")
    for entry in entries:
        if entry["type"] == "directory":
            table.add_row(f"[bold]{entry['path']}/[/bold]", "")
        else:
            table.add_row(str(entry["path"]), str(entry.get("size", "")))
    console.print(table)


@app.command()
def status() -> None:
    """Show project status: indexed root, stored chunks, config."""
    pm = _project()
    try:
        st = pm.status()
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    if not st.initialized:
        console.print(
            "[yellow]No reposeek project found.[/yellow] "
            "Using defaults; run [bold]reposeek init[/bold] to create one."
        )
    else:
        console.print(f"[bold]reposeek project:[/bold] {st.root.name}")

    config = st.config or pm.load()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Root", str(st.index_root))
    table.add_row("Store", str(st.store_path) if st.store_path else "(disabled)")
    table.add_row("Provider", config.embedding.provider)
    table.add_row("Model", config.embedding.model)
    table.add_row("Files", str(st.file_count))
    table.add_row("Chunks", str(st.chunk_count))
    console.print(table)

    if st.chunk_count == 0:
        console.print("\n[dim]Nothing indexed yet. Run [bold]reposeek index[/bold] to start.[/dim]")


@app.command()
def serve(
    transport: Annotated[
        str | None,
        typer.Option("--transport", "-t", help="stdio or http"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="HTTP port"),
    ] = None,
) -> None:
    """Start the MCP server (indexing runs in the background)."""
    from reposeek.server import run_server

    pm = _project()
    config = pm.load()
    if transport:
        config.server.transport = transport.lower()
    if port is not None:
        config.server.port = port
    if config.server.transport not in ("stdio", "http"):
        err_console.print(f"[red]Unknown transport:[/red] {config.server.transport}")
        raise typer.Exit(code=1)

    service = _service(pm)
    run_server(
        service,
        transport=config.server.transport,
        host=config.server.host,
        port=config.server.port,
        folder_info_name=config.server.folder_info_name,
        allowed_hosts=config.server.allowed_hosts,
        dns_rebinding_protection=config.server.dns_rebinding_protection,
    )


@app.command(name="config")
def config_cmd(
    key: Annotated[
        str | None,
        typer.Argument(help="Config key as section.name (e.g. index.chunk_size)"),
    ] = None,
    value: Annotated[
        str | None,
        typer.Argument(help="Value to set"),
    ] = None,
) -> None:
    """Get or set configuration values."""
    pm = _project()
    try:
        config = pm.load(env_overrides=False)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e

    if key is None:
        for section in dataclasses.fields(config):
            values = getattr(config, section.name)
            for f in dataclasses.fields(values):
                console.print(f"{section.name}.{f.name} = {getattr(values, f.name)!r}")
        return

    section_name, _, field_name = key.partition(".")
    section = getattr(config, section_name, None)
    if section is None or not dataclasses.is_dataclass(section) or not hasattr(section, field_name):
        console.print(f"[red]Unknown config key:[/red] {key}")
        raise typer.Exit(code=1)

    if value is None:
        console.print(repr(getattr(section, field_name)))
        return

    if not pm.is_initialized:
        console.print("[yellow]No reposeek project found.[/yellow] Run [bold]reposeek init[/bold] first.")
        raise typer.Exit(code=1)

    try:
        setattr(section, field_name, _coerce(getattr(section, field_name), value))
        save_config(config, pm.config_path)
    except (ValueError, ConfigError) as e:
        console.print(f"[red]Invalid value for {key}:[/red] {e}")
        raise typer.Exit(code=1) from e
    console.print(f"[green]Set[/green] {key} = {getattr(section, field_name)!r}")


# ── Module-level helpers ────────────────────────────────────────────


def _coerce(current: object, raw: str) -> object:
    """Parse ``raw`` into the type of the current value."""
    if isinstance(current, bool):
        return raw.strip().lower() in _TRUTHY
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, list):
        return [s.strip() for s in raw.split(",") if s.strip()]
    return raw
