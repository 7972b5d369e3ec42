"""CLI for managing knowledge nodes."""

import json
import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from .backend import build_backend
from .config import BACKENDS, load_settings
from .constants import CONTENT_PREVIEW_CHARS, DEFAULT_LIST_LIMIT
from .errors import KindexError
from .models import KnowledgeNode
from .store import KnowledgeStore
from .timeutil import format_relative_time

console = Console()


def _preview(content: str, width: int = CONTENT_PREVIEW_CHARS) -> str:
    content = " ".join(content.split())
    return content if len(content) <= width else content[: width - 1] + "…"


def _get_store(ctx: click.Context) -> KnowledgeStore:
    """Return the injected store or build one from settings (once per run)."""
    if "store" not in ctx.obj:
        try:
            settings = load_settings(
                url=ctx.obj.get("url"),
                backend=ctx.obj.get("backend"),
            )
        except ValueError as e:
            _fail(str(e))
        ctx.obj["store"] = KnowledgeStore(build_backend(settings))
        ctx.call_on_close(ctx.obj["store"].backend.close)
    return ctx.obj["store"]


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


def _print_nodes(nodes: list[KnowledgeNode], as_json: bool, title: str) -> None:
    if as_json:
        click.echo(json.dumps([n.to_summary() for n in nodes], indent=2, default=str))
        return

    if not nodes:
        console.print("[dim]No nodes found.[/dim]")
        return

    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Content")
    table.add_column("Keywords", style="green")
    table.add_column("Created", style="yellow")

    for node in nodes:
        table.add_row(
            node.id,
            node.type,
            _preview(node.content),
            ", ".join(node.keywords),
            format_relative_time(node.created_at),
        )
    console.print(table)


@click.group()
@click.option(
    "--url",
    envvar="KINDEX_URL",
    help="Backend URL (redis://host:port/db). Also read from DRAGONFLY_URL / REDIS_URL.",
)
@click.option(
    "--backend",
    envvar="KINDEX_BACKEND",
    type=click.Choice(BACKENDS),
    help="Storage backend",
)
@click.option("-v", "--verbose", is_flag=True, help="Log store activity to stderr")
@click.pass_context
def cli(ctx, url, backend, verbose):
    """kindex - keyword-indexed knowledge notes."""
    ctx.ensure_object(dict)
    ctx.obj.setdefault("url", url)
    ctx.obj.setdefault("backend", backend)
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        )


@cli.command()
@click.argument("content")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def add(ctx, content, as_json):
    """Add a note or URL."""
    try:
        node = _get_store(ctx).create(content)
    except KindexError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(node.to_summary(), indent=2, default=str))
    else:
        console.print(f"[green]✓[/green] Added {node.type} [dim]{node.id}[/dim]")
        if node.keywords:
            console.print(f"  Keywords: {', '.join(node.keywords)}")


@cli.command()
@click.argument("node_id")
@click.argument("content")
@click.pass_context
def edit(ctx, node_id, content):
    """Replace a node's content."""
    try:
        node = _get_store(ctx).update(node_id, content)
    except KindexError as e:
        _fail(str(e))

    console.print(f"[green]✓[/green] Updated [dim]{node.id}[/dim]")
    console.print(f"  Keywords: {', '.join(node.keywords) or '-'}")


@cli.command()
@click.argument("node_id")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def rm(ctx, node_id, yes):
    """Delete a node."""
    store = _get_store(ctx)
    try:
        if not yes:
            node = store.get(node_id)
            click.confirm(f"Delete '{_preview(node.content)}'?", abort=True)
        store.delete(node_id)
    except KindexError as e:
        _fail(str(e))

    console.print(f"[green]✓[/green] Deleted [dim]{node_id}[/dim]")


@cli.command()
@click.argument("node_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def show(ctx, node_id, as_json):
    """Show a single node."""
    try:
        node = _get_store(ctx).get(node_id)
    except KindexError as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(node.to_summary(), indent=2, default=str))
        return

    console.print(f"[bold]{node.id}[/bold] ([cyan]{node.type}[/cyan])")
    console.print(f"Created: {node.created_at.isoformat()} ({format_relative_time(node.created_at)})")
    console.print(f"Keywords: [green]{', '.join(node.keywords) or '-'}[/green]")
    console.print()
    console.print(node.content, markup=False)


@cli.command("ls")
@click.option("-n", "--limit", type=int, default=DEFAULT_LIST_LIMIT, help="Max nodes to show")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def ls(ctx, limit, as_json):
    """List nodes, newest first."""
    try:
        nodes = _get_store(ctx).list_nodes()
    except KindexError as e:
        _fail(str(e))

    total = len(nodes)
    nodes = nodes[:limit] if limit > 0 else nodes
    _print_nodes(nodes, as_json, title=f"Nodes ({len(nodes)} of {total})")


@cli.command()
@click.argument("query")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(ctx, query, as_json):
    """Find nodes sharing any keyword with QUERY."""
    try:
        nodes = _get_store(ctx).search(query)
    except KindexError as e:
        _fail(str(e))

    _print_nodes(nodes, as_json, title=f"Matches for '{query}'")


@cli.command()
@click.pass_context
def check(ctx):
    """Verify registry and keyword index against node records."""
    try:
        errors = _get_store(ctx).check()
    except KindexError as e:
        _fail(str(e))

    if not errors:
        console.print("[green]✓[/green] Index is consistent")
        return

    console.print(f"[yellow]Found {len(errors)} problem(s):[/yellow]")
    for error in errors:
        console.print(f"  - {error}", markup=False)
    console.print("Run [bold]kindex repair[/bold] to rebuild the index.")
    sys.exit(1)


@cli.command()
@click.pass_context
def repair(ctx):
    """Rebuild registry and keyword index from node records."""
    try:
        report = _get_store(ctx).repair()
    except KindexError as e:
        _fail(str(e))

    if not report.changed:
        console.print("[green]✓[/green] Nothing to repair")
    else:
        console.print("[green]✓[/green] Repaired index")
        console.print(f"  Registry: +{len(report.registered)} / -{len(report.unregistered)}")
        console.print(f"  Keyword entries: +{report.index_added} / -{report.index_removed}")
    if report.unparsable:
        console.print(
            f"[yellow]![/yellow] {len(report.unparsable)} unparsable record(s) left in place: "
            f"{', '.join(report.unparsable)}"
        )


def main():
    """Entry point for the kindex CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
