"""
Batch orchestration for mutation extraction.

This module coordinates one batch run:
1. Deduplicate the work list and take the run lock
2. Partition identifiers into fixed-size chunks
3. Per chunk: fetch, sanitize and parse the abstracts document
4. Per article: extract mutations, then mark success and store mentions
   inside one transaction

Fetch and parse failures skip the chunk. Persistence failures roll back a
single article. Neither stops the run; the affected articles stay pending
and are picked up again by a future work list.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from .config import AppConfig
from .core.errors import FetchFailure, ParseFailure
from .core.lock import batch_token, run_lock
from .core.mutations import extract_mutations
from .core.types import ArticleRecord, ArticleStatus, BatchResult, ItemState, MutationMention
from .fetch.base import AbstractFetcher
from .input.sanitizer import build_entity_table, sanitize_xml
from .input.xml_parser import parse_articles
from .storage.store import MutationStore
from .utils.logging import get_logger, log_event

PENDING_QUEUE_KEY = "pending-queue"


def chunked(items: Sequence[str], size: int) -> Iterator[list[str]]:
    """Yield consecutive slices of at most size items."""
    if size < 1:
        raise ValueError("chunk_size must be at least 1")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def unique_identifiers(identifiers: Iterable[str]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: set[str] = set()
    kept: list[str] = []
    for item in identifiers:
        pmid = str(item).strip()
        if not pmid or pmid in seen:
            continue
        seen.add(pmid)
        kept.append(pmid)
    return kept


def run_batch(
    identifiers: Iterable[str],
    fetcher: AbstractFetcher,
    store: MutationStore,
    cfg: AppConfig,
    *,
    lock_key: str | None = None,
    protein: str | None = None,
    logger: logging.Logger | None = None,
    show_progress: bool = False,
    console: Console | None = None,
) -> BatchResult:
    """Extract and persist mutations for a list of article identifiers.

    Args:
        identifiers: PMIDs to process; duplicates are ignored
        fetcher: Retrieval backend
        store: Open persistence gateway
        cfg: Application configuration
        lock_key: Run-lock key, derived from the identifier set when None
        protein: Restrict status and mention writes to this protein's articles
        logger: Logger for events (package logger when None)
        show_progress: Whether to display a Rich progress bar
        console: Rich console for progress output

    Returns:
        Aggregate BatchResult

    Raises:
        BatchLocked: If another run holds the same lock key or any of the
            same identifiers
        ValueError: If batch.chunk_size is below 1
    """
    if cfg.batch.chunk_size < 1:
        raise ValueError("batch.chunk_size must be at least 1")
    logger = logger or get_logger()
    work = unique_identifiers(identifiers)
    key = lock_key or batch_token(work)

    with run_lock(Path(cfg.batch.lock_dir), key, work):
        log_event(
            logger,
            "Batch start",
            event="batch_start",
            lock_key=key,
            protein=protein,
            total=len(work),
            chunk_size=cfg.batch.chunk_size,
        )
        if not show_progress:
            result = _run_chunks(work, fetcher, store, cfg, logger, protein)
        else:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeRemainingColumn(),
                console=console or Console(),
            )
            with progress:
                task = progress.add_task("Extract mutations", total=len(work))
                result = _run_chunks(work, fetcher, store, cfg, logger, protein, progress, task)

        log_event(logger, "Batch complete", event="batch_complete", lock_key=key, **result.as_dict())
    return result


def run_pending(
    fetcher: AbstractFetcher,
    store: MutationStore,
    cfg: AppConfig,
    limit: int | None = None,
    protein: str | None = None,
    **kwargs,
) -> BatchResult:
    """Process up to limit pending articles from the store's work list.

    Invocations on the same queue (all articles, or one protein) share a
    lock key; overlapping identifiers across queues are refused by the
    identifier claims of run_lock.
    """
    identifiers = store.pending_identifiers(limit, protein=protein)
    key = PENDING_QUEUE_KEY if protein is None else f"{PENDING_QUEUE_KEY}-{protein}"
    kwargs.setdefault("lock_key", key)
    return run_batch(identifiers, fetcher, store, cfg, protein=protein, **kwargs)


def _run_chunks(
    work: list[str],
    fetcher: AbstractFetcher,
    store: MutationStore,
    cfg: AppConfig,
    logger: logging.Logger,
    protein: str | None = None,
    progress: Progress | None = None,
    task: int | None = None,
) -> BatchResult:
    result = BatchResult()
    entities = build_entity_table(cfg.sanitize.named_entities)

    for index, chunk in enumerate(chunked(work, cfg.batch.chunk_size)):
        result.chunks += 1
        states = {pmid: ItemState.QUEUED for pmid in chunk}
        records = _load_chunk(chunk, index, fetcher, entities, states, result, logger)
        if records is not None:
            seen: set[str] = set()
            for record in records:
                if record.identifier in seen:
                    continue
                seen.add(record.identifier)
                _persist_record(record, store, states, result, logger, protein)
            missing = [pmid for pmid, state in states.items() if state is ItemState.PARSED]
            if missing:
                result.missing += len(missing)
                log_event(
                    logger,
                    "Identifiers missing from document",
                    level=logging.WARNING,
                    event="chunk_missing_records",
                    chunk=index,
                    pmids=missing,
                )
        if progress is not None and task is not None:
            progress.advance(task, len(chunk))

    return result


def _load_chunk(
    chunk: list[str],
    index: int,
    fetcher: AbstractFetcher,
    entities: dict[str, str],
    states: dict[str, ItemState],
    result: BatchResult,
    logger: logging.Logger,
) -> list[ArticleRecord] | None:
    """Fetch, sanitize and parse one chunk; None means the chunk is skipped."""
    stage = "fetch"
    _set_states(states, chunk, ItemState.FETCHING)
    try:
        raw = fetcher.fetch_abstracts(chunk)
        stage = "parse"
        records = parse_articles(sanitize_xml(raw, entities), logger)
    except (FetchFailure, ParseFailure) as exc:
        result.skipped_chunks += 1
        result.failed += len(chunk)
        for pmid in chunk:
            result.failures.append((pmid, stage, str(exc)))
        _set_states(states, chunk, ItemState.FAILED)
        log_event(
            logger,
            "Chunk skipped",
            level=logging.ERROR,
            event="chunk_failed",
            stage=stage,
            chunk=index,
            pmids=chunk,
            error=str(exc),
        )
        return None

    _set_states(states, chunk, ItemState.PARSED)
    log_event(
        logger,
        "Chunk parsed",
        event="chunk_parsed",
        chunk=index,
        requested=len(chunk),
        records=len(records),
    )
    return records


def _persist_record(
    record: ArticleRecord,
    store: MutationStore,
    states: dict[str, ItemState],
    result: BatchResult,
    logger: logging.Logger,
    protein: str | None = None,
) -> None:
    """Commit one article's status and mentions, or roll back and log."""
    mentions = _mentions_of(record)
    states[record.identifier] = ItemState.EXTRACTED
    try:
        with store.transaction():
            store.update_article_status(record.identifier, ArticleStatus.SUCCESS, protein=protein)
            store.insert_mentions(record.identifier, [m.token for m in mentions], protein=protein)
    except Exception as exc:  # noqa: BLE001
        states[record.identifier] = ItemState.FAILED
        result.failed += 1
        result.failures.append((record.identifier, "persist", str(exc)))
        log_event(
            logger,
            "Article rolled back",
            level=logging.ERROR,
            event="article_failed",
            pmid=record.identifier,
            stage="persist",
            error=f"{type(exc).__name__}: {exc}",
        )
        return

    states[record.identifier] = ItemState.PERSISTED
    result.processed += 1
    log_event(
        logger,
        "Article persisted",
        level=logging.DEBUG,
        event="article_persisted",
        pmid=record.identifier,
        mutations=[m.token for m in mentions],
    )


def _mentions_of(record: ArticleRecord) -> list[MutationMention]:
    return [
        MutationMention(article_identifier=record.identifier, token=token)
        for token in sorted(extract_mutations(record.abstract_text))
    ]


def _set_states(states: dict[str, ItemState], pmids: Iterable[str], state: ItemState) -> None:
    for pmid in pmids:
        states[pmid] = state


def render_batch_result(result: BatchResult, console: Console) -> None:
    """Display batch statistics to the console."""
    console.print(
        "[bold]Batch summary[/bold]: "
        f"processed={result.processed}, failed={result.failed}, missing={result.missing}, "
        f"chunks={result.chunks}, skipped_chunks={result.skipped_chunks}"
    )
