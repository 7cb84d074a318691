"""
Retrieval through the NCBI EDirect command-line tools.

esearch and efetch are spawned synchronously from the configured install
directory; their standard output is captured directly instead of being
redirected to intermediate files.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from ..config import FetchConfig
from ..input.xml_parser import parse_identifier_list, parse_search_count
from ..utils.logging import get_logger, log_event
from .base import AbstractFetcher, join_identifiers
from .terminal import run_command


class EDirectFetcher(AbstractFetcher):
    """Fetcher backed by the ``esearch`` / ``efetch`` executables."""

    def __init__(self, cfg: FetchConfig, logger: logging.Logger | None = None):
        self._cfg = cfg
        self._logger = logger or get_logger()

    def _tool(self, name: str) -> str:
        # An empty edirect_dir means the tools are on PATH.
        if not self._cfg.edirect_dir:
            return name
        return str(Path(self._cfg.edirect_dir) / name)

    def search_args(self, query: str) -> list[str]:
        return [self._tool("esearch"), "-db", self._cfg.database, "-query", query]

    def fetch_args(self, identifiers: Sequence[str], fmt: str = "xml") -> list[str]:
        return [
            self._tool("efetch"),
            "-db",
            self._cfg.database,
            "-id",
            join_identifiers(identifiers),
            "-format",
            fmt,
        ]

    def search_count(self, query: str) -> int:
        result = run_command(
            self.search_args(query), timeout=self._cfg.timeout_seconds, logger=self._logger
        )
        count = parse_search_count(result.stdout)
        log_event(self._logger, "Search count", event="search_count", query=query, count=count)
        return count

    def fetch_identifiers(self, query: str) -> list[str]:
        search = run_command(
            self.search_args(query), timeout=self._cfg.timeout_seconds, logger=self._logger
        )
        # efetch reads the esearch environment from stdin, like a shell pipe.
        uids = run_command(
            [self._tool("efetch"), "-format", "uid"],
            timeout=self._cfg.timeout_seconds,
            input_text=search.stdout,
            logger=self._logger,
        )
        identifiers = parse_identifier_list(uids.stdout)
        log_event(
            self._logger,
            "Identifiers fetched",
            event="identifiers_fetched",
            query=query,
            count=len(identifiers),
        )
        return identifiers

    def fetch_abstracts(self, identifiers: Sequence[str]) -> str:
        result = run_command(
            self.fetch_args(identifiers), timeout=self._cfg.timeout_seconds, logger=self._logger
        )
        return result.stdout
