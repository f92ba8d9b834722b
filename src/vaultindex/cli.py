"""Command line interface for vaultindex."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from vaultindex.analysis.enrich import analyze, apply_link_suggestions
from vaultindex.analysis.health import add_missing_frontmatter, build_health_report
from vaultindex.config import AppConfig
from vaultindex.embedding.encoder import EmbeddingConfig, EmbeddingError, EmbeddingModel
from vaultindex.index.indexer import Indexer
from vaultindex.index.search import MODE_HYBRID, Searcher
from vaultindex.index.storage import SQLiteIndexStore, StoreError
from vaultindex.ingestion.markdown_loader import VaultSource
from vaultindex.utils.text import note_name

console = Console()
app = typer.Typer(help="vaultindex - keyword and semantic search for markdown vaults")

VaultOption = typer.Option(None, "--vault", help="Vault directory (default: $OBSIDIAN_VAULT_PATH)")
DbOption = typer.Option(None, "--db", help="SQLite index path (default: <vault>/.obsidian/search.db)")
JsonOption = typer.Option(False, "--json", help="Emit JSON instead of a report")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(vault: Optional[Path], db: Optional[Path]) -> AppConfig:
    config = AppConfig.from_env(vault_path=vault, db_path=db)
    try:
        config.resolve_vault_path()
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return config


def _make_embedder(config: AppConfig) -> EmbeddingModel:
    return EmbeddingModel(EmbeddingConfig(api_key=config.api_key, model_name=config.model_name))


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]{message}[/red]")
    return typer.Exit(code=1)


def _echo_json(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.command()
def index(
    vault: Optional[Path] = VaultOption,
    db: Optional[Path] = DbOption,
    json_output: bool = JsonOption,
    verbose: bool = VerboseOption,
) -> None:
    """Build or incrementally update the search index for a vault."""
    _setup_logging(verbose)
    config = _load_config(vault, db)
    vault_path = config.resolve_vault_path()
    if not vault_path.is_dir():
        raise _fail(f"Vault directory not found: {vault_path}")
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    try:
        with SQLiteIndexStore(resolved_db) as store, _make_embedder(config) as embedder:
            if not embedder.is_available() and not json_output:
                console.print(
                    "[yellow]Warning: Gemini API key not configured, indexing without embeddings.[/yellow]"
                )
            indexer = Indexer(
                embedder,
                store,
                batch_size=config.batch_size,
                body_budget=config.body_budget,
            )
            if not json_output:
                console.print(f"Indexing into [bold]{resolved_db}[/bold]...")
            stats = indexer.index(VaultSource(vault_path))
    except StoreError as exc:
        raise _fail(f"Failed to open index: {exc}") from exc

    if json_output:
        _echo_json({**stats.as_dict(), "db_path": str(resolved_db)})
        return
    console.print(
        f"Index updated: {stats.indexed} indexed, {stats.skipped} skipped, "
        f"{stats.removed} removed ({stats.total} total, {stats.errors} errors)"
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    mode: str = typer.Option(MODE_HYBRID, "--mode", "-m", help="keyword, semantic or hybrid"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of results to display"),
    vault: Optional[Path] = VaultOption,
    db: Optional[Path] = DbOption,
    json_output: bool = JsonOption,
    verbose: bool = VerboseOption,
) -> None:
    """Search the index by keyword, meaning, or both."""
    _setup_logging(verbose)
    config = _load_config(vault, db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(
            f"Index not found: {resolved_db}. Run 'vaultindex index' first."
        )

    try:
        with SQLiteIndexStore(resolved_db) as store, _make_embedder(config) as embedder:
            response = Searcher(embedder, store).search(query, mode=mode, limit=limit)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (StoreError, EmbeddingError) as exc:
        raise _fail(f"Search failed: {exc}") from exc

    if json_output:
        _echo_json(response.to_dict())
        return

    if response.notice:
        console.print(f"[yellow]Warning: {response.notice}[/yellow]")
    if not response.results:
        console.print(f"[yellow]No results for {query!r} ({response.mode} mode).[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Note")
    table.add_column("Title")
    table.add_column("Snippet")
    for hit in response.results:
        snippet = hit.snippet.replace("\n", " ")
        table.add_row(f"{hit.score:.4f}", hit.path, hit.title, snippet[:180])
    console.print(table)


@app.command()
def enrich(
    apply: bool = typer.Option(False, "--apply", help="Write suggested links into the notes"),
    vault: Optional[Path] = VaultOption,
    db: Optional[Path] = DbOption,
    json_output: bool = JsonOption,
    verbose: bool = VerboseOption,
) -> None:
    """Suggest links and tags between similar notes and list orphans."""
    _setup_logging(verbose)
    config = _load_config(vault, db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise _fail("Index not found. Run 'vaultindex index' first.")

    try:
        with SQLiteIndexStore(resolved_db) as store:
            report = analyze(store)
    except StoreError as exc:
        raise _fail(f"Failed to load index: {exc}") from exc

    if apply and report.link_suggestions:
        report.applied = apply_link_suggestions(
            VaultSource(config.resolve_vault_path()), report.link_suggestions
        )

    if json_output:
        _echo_json(report.to_dict())
        return

    console.print("[bold]Enrichment Report[/bold]")
    if report.link_suggestions:
        table = Table(title="Suggested Links", show_header=True, header_style="bold magenta")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Similarity")
        for suggestion in report.link_suggestions:
            table.add_row(
                note_name(suggestion.source),
                note_name(suggestion.target),
                f"{suggestion.similarity:.2f}",
            )
        console.print(table)
    if report.tag_suggestions:
        console.print("\nSuggested Tags:")
        for tag_suggestion in report.tag_suggestions:
            console.print(
                f"  {note_name(tag_suggestion.path)!r} -> add tags: [{', '.join(tag_suggestion.tags)}]"
            )
    if report.orphans:
        console.print("\nOrphan Notes (no incoming links):")
        for path in report.orphans:
            console.print(f"  - {path}")

    summary = report.summary()
    line = (
        f"\nSummary: {summary['links_found']} link suggestions, "
        f"{summary['tags_found']} tag suggestions, {summary['orphans_found']} orphan notes"
    )
    if apply and report.applied:
        line += f", {report.applied} notes updated"
    console.print(line)


@app.command()
def maintain(
    stale_days: int = typer.Option(30, "--stale-days", help="Days without edits before a note is stale"),
    fix: bool = typer.Option(False, "--fix", help="Add empty frontmatter where it is missing"),
    vault: Optional[Path] = VaultOption,
    db: Optional[Path] = DbOption,
    json_output: bool = JsonOption,
    verbose: bool = VerboseOption,
) -> None:
    """Report vault health: stale, empty, large and broken-link notes."""
    _setup_logging(verbose)
    config = _load_config(vault, db)
    source = VaultSource(config.resolve_vault_path())
    resolved_db = config.resolve_db_path(Path.cwd())

    try:
        if resolved_db.exists():
            with SQLiteIndexStore(resolved_db) as store:
                report = build_health_report(source, store, stale_days=stale_days)
        else:
            report = build_health_report(source, stale_days=stale_days)
    except (StoreError, FileNotFoundError) as exc:
        raise _fail(str(exc)) from exc

    if fix and report.no_frontmatter:
        report.fixed = add_missing_frontmatter(source, report.no_frontmatter)

    if json_output:
        _echo_json(report.as_dict())
        return

    stats = report.stats
    console.print("[bold]Vault Health Report[/bold]")
    console.print(f"  Total notes: {stats.total_notes}")
    console.print(f"  Indexed: {stats.indexed_notes}, with embeddings: {stats.with_embeddings}")
    console.print(f"  Average note size: {stats.avg_size_bytes / 1024:.1f} KB")
    sections = [
        (f"Stale Notes ({stale_days}+ days)", [f"{s.path} ({s.days_ago} days ago)" for s in report.stale_notes]),
        ("Broken Wikilinks", [f"{b.source} links to [[{b.target}]]" for b in report.broken_links]),
        ("Empty Notes", report.empty_notes),
        ("Large Notes (>10KB)", [f"{n.path} ({n.size_bytes / 1024:.1f} KB)" for n in report.large_notes]),
        ("Missing Frontmatter", report.no_frontmatter),
    ]
    for heading, items in sections:
        if items:
            console.print(f"\n{heading}: {len(items)}")
            for item in items:
                console.print(f"  - {item}")
    if fix and report.fixed:
        console.print(f"\nFixed: {report.fixed} notes (frontmatter added)")
    console.print(f"\nHealth Score: [bold]{report.health_score}/100[/bold]")


@app.command()
def stats(
    vault: Optional[Path] = VaultOption,
    db: Optional[Path] = DbOption,
    json_output: bool = JsonOption,
) -> None:
    """Show index size and embedding coverage."""
    config = _load_config(vault, db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise _fail(f"Index not found: {resolved_db}")
    try:
        with SQLiteIndexStore(resolved_db) as store:
            data = store.stats()
    except StoreError as exc:
        raise _fail(str(exc)) from exc

    if json_output:
        _echo_json(data)
        return
    console.print(
        f"{data['note_count']} notes indexed, {data['embedding_count']} with embeddings "
        f"([bold]{data['db_path']}[/bold])"
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from vaultindex.web.app import app as web_app

    console.print(f"Starting HTTP API on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
