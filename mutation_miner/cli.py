"""
Command-line interface for the mutation miner.

Uses Typer to expose the batch run and the work-list helpers around it.
A scheduler (cron, systemd timer, ...) is expected to call `run`
periodically. Supports loading .env files for the NCBI API key.
"""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .core.errors import BatchLocked, FetchFailure, ParseFailure
from .core.mutations import find_mutations
from .fetch.factory import create_fetcher
from .runner import render_batch_result, run_pending
from .storage.store import MutationStore
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False)
console = Console()


def _load(
    config: Path | None,
    db: Path | None = None,
    log_level: str | None = None,
    log_file: bool | None = None,
) -> AppConfig:
    load_dotenv()
    try:
        cfg = load_config(str(config) if config else None)
    except ValueError as exc:
        console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(code=1)
    if db is not None:
        cfg.storage.db_path = str(db)
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file
    return cfg


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path."),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Max pending articles to process."),
    chunk_size: int | None = typer.Option(
        None, "--chunk-size", min=1, help="Identifiers per fetch."
    ),
    protein: str | None = typer.Option(
        None, "--protein", "-p", help="Only process this protein's articles."
    ),
    backend: str | None = typer.Option(None, "--backend", help="Fetch backend: edirect or eutils."),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
):
    """Extract mutations for pending articles.

    Pulls up to LIMIT pending identifiers from the store, optionally only
    those collected for PROTEIN, fetches their abstracts in chunks and
    records the mutations found per article.
    """
    cfg = _load(config, db, log_level, log_file)
    if chunk_size is not None:
        cfg.batch.chunk_size = chunk_size
    if backend:
        cfg.fetch.backend = backend

    logger = setup_logging(cfg.logging, Path(cfg.logging.log_dir))
    fetcher = create_fetcher(cfg.fetch, logger)

    with MutationStore(cfg.storage.db_path) as store:
        try:
            result = run_pending(
                fetcher,
                store,
                cfg,
                limit,
                protein=protein,
                logger=logger,
                show_progress=progress,
                console=console,
            )
        except BatchLocked as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(code=2)

    render_batch_result(result, console)


@app.command()
def enqueue(
    identifiers: list[str] = typer.Argument(None, help="PMIDs to add."),
    file: Path | None = typer.Option(
        None, "--file", "-f", exists=True, readable=True, help="File with one PMID per line."
    ),
    query: str | None = typer.Option(None, "--query", "-q", help="Add every PMID matching a search."),
    protein: str | None = typer.Option(
        None, "--protein", "-p", help="Protein to file the articles under (defaults to the query)."
    ),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path."),
):
    """Add article identifiers to the pending work list.

    Articles found with --query are filed under the query as protein name
    unless --protein names another one.
    """
    cfg = _load(config, db, log_file=False)
    logger = setup_logging(cfg.logging, None)

    pmids = list(identifiers or [])
    if file is not None:
        pmids.extend(line.strip() for line in file.read_text(encoding="utf-8").splitlines())
    if query:
        try:
            pmids.extend(create_fetcher(cfg.fetch, logger).fetch_identifiers(query))
        except (FetchFailure, ParseFailure) as exc:
            console.print(f"[red]Search failed:[/red] {exc}")
            raise typer.Exit(code=1)

    pmids = [pmid for pmid in pmids if pmid]
    invalid = [pmid for pmid in pmids if not pmid.isdigit()]
    if invalid:
        console.print(f"[yellow]Ignoring non-numeric identifiers:[/yellow] {', '.join(invalid)}")
    valid = [pmid for pmid in pmids if pmid.isdigit()]

    protein = (protein or query or "").strip() or None
    with MutationStore(cfg.storage.db_path) as store:
        added = store.add_articles(valid, protein=protein)
    scope = f" for {protein}" if protein else ""
    console.print(f"Queued {added} new article(s) ({len(valid) - added} already known){scope}")


@app.command()
def count(
    query: str = typer.Argument(..., help="Search query, e.g. a protein name."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    backend: str | None = typer.Option(None, "--backend", help="Fetch backend: edirect or eutils."),
):
    """Print the number of articles matching a search."""
    cfg = _load(config, log_file=False)
    if backend:
        cfg.fetch.backend = backend
    logger = setup_logging(cfg.logging, None)
    try:
        total = create_fetcher(cfg.fetch, logger).search_count(query)
    except (FetchFailure, ParseFailure) as exc:
        console.print(f"[red]Search failed:[/red] {exc}")
        raise typer.Exit(code=1)
    console.print(str(total))


@app.command()
def scan(
    text: str = typer.Argument(..., help="Text to scan for mutation tokens."),
):
    """Print the distinct mutation tokens found in TEXT."""
    for token in dict.fromkeys(find_mutations(text)):
        console.print(token)


@app.command()
def mentions(
    pmid: str | None = typer.Argument(None, help="Show mutations of one article."),
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path."),
    protein: str | None = typer.Option(None, "--protein", "-p", help="Restrict to one protein."),
    top: int = typer.Option(20, "--top", help="Rows shown without PMID."),
):
    """Show stored mutations for an article, or the most frequent ones."""
    cfg = _load(config, db)
    with MutationStore(cfg.storage.db_path) as store:
        if pmid:
            status = store.article_status(pmid, protein=protein)
            if status is None:
                console.print(f"[red]Unknown article {pmid}[/red]")
                raise typer.Exit(code=1)
            console.print(f"{pmid}: {status.name.lower()}")
            for name in store.mentions_for(pmid, protein=protein):
                console.print(name)
            return

        table = Table("Mutation", "Articles")
        for name, n in store.mention_counts(top, protein=protein):
            table.add_row(name, str(n))
        console.print(table)


@app.command()
def proteins(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True),
    db: Path | None = typer.Option(None, "--db", help="SQLite database path."),
):
    """List collected proteins with their article and pending counts."""
    cfg = _load(config, db)
    with MutationStore(cfg.storage.db_path) as store:
        rows = store.protein_summary()
    table = Table("Protein", "Articles", "Pending")
    for name, total, pending in rows:
        table.add_row(name, str(total), str(pending))
    console.print(table)


if __name__ == "__main__":
    app()
