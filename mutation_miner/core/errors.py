"""
Exceptions raised by the mutation extraction pipeline.

Chunk-level failures (fetch, parse) make the orchestrator skip a chunk,
article-level failures (persistence) roll back one article. BatchLocked is
the only error that escapes a batch run.
"""

from __future__ import annotations

from typing import Any


class MutationMinerError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class FetchFailure(MutationMinerError):
    """External retrieval failed (non-zero exit, unreachable, timeout)."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if returncode is not None:
            details.setdefault("returncode", returncode)
        super().__init__(message, details)
        self.returncode = returncode
        self.stderr = stderr


class ParseFailure(MutationMinerError):
    """Document is not well-formed after sanitization."""

    pass


class PersistenceFailure(MutationMinerError):
    """Status or mention write failed for one article."""

    pass


class BatchLocked(MutationMinerError):
    """Another run holds the same lock key or some of the same identifiers."""

    def __init__(self, lock_key: str, identifiers: list[str] | None = None) -> None:
        details: dict[str, Any] = {"lock_key": lock_key}
        if identifiers:
            message = f"Identifiers already claimed by batch '{lock_key}'"
            details["identifiers"] = identifiers[:20]
        else:
            message = f"Batch '{lock_key}' is already running"
        super().__init__(message, details)
        self.lock_key = lock_key
        self.identifiers = list(identifiers or [])
