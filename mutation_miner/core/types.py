"""
Core data types for the mutation extraction pipeline.

This module defines the fundamental data structures used throughout the pipeline:
- ArticleStatus: Persisted per-article extraction flag
- ArticleRecord: One article parsed out of a fetched document
- MutationMention: A mutation token attributed to an article
- ProcessResult: Captured output of an external retrieval process
- BatchResult: Aggregate outcome of a batch run
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ArticleStatus(Enum):
    """Extraction status stored on each article row.

    PENDING articles are eligible for the next work list. SUCCESS is set once,
    after a completed extraction attempt, including one that found nothing.
    """

    PENDING = 0
    SUCCESS = 1


class ItemState(str, Enum):
    """Per-work-item progress within a single batch run."""

    QUEUED = "queued"
    FETCHING = "fetching"
    PARSED = "parsed"
    EXTRACTED = "extracted"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass(frozen=True)
class ArticleRecord:
    """A parsed article.

    Attributes:
        identifier: Numeric PMID as a string
        abstract_text: Abstract text, empty when the article has none
    """

    identifier: str
    abstract_text: str = ""


@dataclass(frozen=True)
class MutationMention:
    """A mutation token found in an article's abstract."""

    article_identifier: str
    token: str


@dataclass
class ProcessResult:
    """Result of a successful external process invocation.

    Attributes:
        args: The argument vector that was executed
        returncode: Process exit status (always 0 when returned)
        stdout: Captured standard output
        stderr: Captured standard error
    """

    args: list[str]
    returncode: int
    stdout: str
    stderr: str = ""


@dataclass
class BatchResult:
    """Aggregate statistics for one batch run.

    Attributes:
        processed: Articles committed as success
        failed: Articles rolled back plus work items of skipped chunks
        missing: Requested identifiers absent from the fetched documents
        skipped_chunks: Chunks dropped on fetch or parse failure
        chunks: Total number of chunks attempted
        failures: (identifier, stage, message) for each failed item
    """

    processed: int = 0
    failed: int = 0
    missing: int = 0
    skipped_chunks: int = 0
    chunks: int = 0
    failures: list[tuple[str, str, str]] = field(default_factory=list)

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "missing": self.missing,
            "skipped_chunks": self.skipped_chunks,
            "chunks": self.chunks,
        }
