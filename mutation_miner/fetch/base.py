"""Abstract interface for bibliographic retrieval backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence


class AbstractFetcher(ABC):
    """Retrieval interface used by the batch orchestrator and the CLI.

    Every method covers one request atomically: a failure raises
    FetchFailure for the whole request, never for a single article.
    """

    @abstractmethod
    def search_count(self, query: str) -> int:
        """Return the total number of records matching query."""
        raise NotImplementedError

    @abstractmethod
    def fetch_identifiers(self, query: str) -> list[str]:
        """Return every identifier matching query."""
        raise NotImplementedError

    @abstractmethod
    def fetch_abstracts(self, identifiers: Sequence[str]) -> str:
        """Return the raw full-record XML document for identifiers."""
        raise NotImplementedError


def join_identifiers(identifiers: Sequence[str]) -> str:
    """Build the comma-joined id argument accepted by efetch."""
    ids = [str(item).strip() for item in identifiers if str(item).strip()]
    if not ids:
        raise ValueError("At least one identifier is required")
    return ",".join(ids)
