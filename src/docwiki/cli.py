"""docwiki CLI: hierarchical Markdown wiki backed by a git repository.

Commands:
    docwiki init [NAME]            create wiki.toml + data/ (git repository)
    docwiki serve                  start the JSON HTTP API
    docwiki tree [PATH]            print the document tree
    docwiki show PATH              print a document
    docwiki create TITLE           create a document
    docwiki search QUERY           stemmed full-text search
    docwiki history PATH           commits in a document's lineage
    docwiki restore PATH COMMIT    restore a document from history
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TextIO

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from docwiki.config import WikiConfig, init_config, load_config
from docwiki.errors import WikiError
from docwiki.gitstore import GitStore
from docwiki.search import SearchIndex

console = Console()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> WikiConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _open_store(cfg: WikiConfig) -> GitStore:
    cfg.ensure_dirs()
    try:
        return GitStore(cfg.data_dir)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(package_name="docwiki")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
def cli(verbose: bool) -> None:
    """Versioned Markdown wiki."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(message)s")


# ---------------------------------------------------------------------------
# docwiki init / serve
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create wiki.toml and the data repository in the current project."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name=name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("wiki.toml already exists, skipping init")

    cfg = load_config(root_path)
    store = _open_store(cfg)
    click.echo(f"Data dir : {cfg.data_dir}")
    click.echo(f"Docs dir : {store.docs_dir}")


@cli.command()
@click.option("--host", default=None, help="Bind address (default: [server].host)")
@click.option("--port", default=None, type=int, help="Port (default: [server].port)")
def serve(host: str | None, port: int | None) -> None:
    """Start the JSON HTTP API (blocking)."""
    from docwiki.web import serve as _serve

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
    cfg = _load_cfg()
    _serve(cfg, host or cfg.server.host, port or cfg.server.port)


# ---------------------------------------------------------------------------
# docwiki tree / show / create
# ---------------------------------------------------------------------------


def _add_branch(store: GitStore, branch: Tree, path: str) -> None:
    for child in store.get_child_documents(path):
        node = branch.add(f"{escape(child.title) or '[dim](untitled)[/dim]'}  [dim]{escape(child.path)}[/dim]")
        if child.has_children:
            _add_branch(store, node, child.path)


@cli.command()
@click.argument("path", default="")
def tree(path: str) -> None:
    """Print the document tree below PATH (default: everything)."""
    cfg = _load_cfg()
    store = _open_store(cfg)
    try:
        root = Tree(f"[bold]{escape(path or cfg.name)}[/bold]")
        _add_branch(store, root, path)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(root)


@cli.command()
@click.argument("path")
def show(path: str) -> None:
    """Print a document's title, metadata and content."""
    store = _open_store(_load_cfg())
    try:
        doc = store.get_document(path)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc
    modified = doc.modified.strftime("%Y-%m-%d %H:%M") if doc.modified else "?"
    pending = "  [uncommitted]" if doc.uncommitted else ""
    click.echo(f"# {doc.title}  [{doc.path}]  modified {modified}{pending}")
    if doc.children:
        click.echo(f"  children: {', '.join(c.id for c in doc.children)}")
    click.echo("")
    click.echo(doc.content)


@cli.command()
@click.argument("title")
@click.option("--parent", default="", help="Parent document path (default: top level)")
@click.option("--file", "source", type=click.File("r", encoding="utf-8"), default=None,
              help="Read content from a file ('-' for stdin)")
@click.option("--content", default="", help="Inline content")
def create(title: str, parent: str, source: TextIO | None, content: str) -> None:
    """Create a document and commit it."""
    store = _open_store(_load_cfg())
    text = source.read() if source is not None else content
    try:
        doc = store.create_document(parent, title, text)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Created {doc.path}")


# ---------------------------------------------------------------------------
# docwiki search
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("query")
@click.option("--page", "-p", default=1, show_default=True)
@click.option("--page-size", "-n", default=None, type=int, help="Results per page (default: [search].page_size)")
def search(query: str, page: int, page_size: int | None) -> None:
    """Search all documents (builds the index in memory first)."""
    cfg = _load_cfg()
    store = _open_store(cfg)
    index = SearchIndex(cfg.search.languages)
    index.load_from_storage(store)
    result = index.search(query, page, page_size or cfg.search.page_size)
    if not result.results:
        click.echo(f"No results ({result.total} total)")
        return
    table = Table(title=f'"{escape(query)}"  page {result.page}/{result.total_pages}  ({result.total} total)')
    table.add_column("Path", style="cyan")
    table.add_column("Title")
    for doc in result.results:
        table.add_row(escape(doc.path), escape(doc.title))
    console.print(table)


# ---------------------------------------------------------------------------
# docwiki history / restore
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("path")
def history(path: str) -> None:
    """List the commits in a document's lineage, newest first."""
    store = _open_store(_load_cfg())
    try:
        entries = store.get_document_history(path)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc
    if not entries:
        click.echo("No history yet")
        return
    table = Table()
    table.add_column("Commit", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Location")
    table.add_column("+/-", justify="right")
    table.add_column("Message")
    for e in entries:
        table.add_row(
            e.commit_hash[:10],
            e.date.strftime("%Y-%m-%d %H:%M"),
            escape(e.file_path),
            f"+{e.added}/-{e.deleted}",
            escape(e.message.splitlines()[0]) if e.message else "",
        )
    console.print(table)


@cli.command()
@click.argument("path")
@click.argument("commit")
@click.option("--original-path", default=None, help="Where the document lived at COMMIT (default: PATH)")
def restore(path: str, commit: str, original_path: str | None) -> None:
    """Restore PATH to its content at COMMIT."""
    store = _open_store(_load_cfg())
    try:
        doc = store.restore_historical_document(path, original_path or path, commit)
    except WikiError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Restored {doc.path} ({doc.title}) from {commit[:10]}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
