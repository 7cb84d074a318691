"""
Retrieval through the NCBI E-utilities HTTP endpoints.

Alternative to the EDirect CLI for hosts without the tools installed.
Implements the same three operations with httpx, retrying transport errors
and 5xx/429 responses with linear backoff.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ..config import FetchConfig, get_api_key
from ..core.errors import FetchFailure
from ..input.xml_parser import parse_identifier_list, parse_search_count, parse_search_history
from ..utils.logging import get_logger, log_event
from .base import AbstractFetcher, join_identifiers

# Page size for uid listings; esearch itself cannot page past 9,999.
MAX_RETMAX = 10000
_RETRY_STATUS = {429, 500, 502, 503, 504}


class EutilsFetcher(AbstractFetcher):
    """Fetcher backed by ``esearch.fcgi`` / ``efetch.fcgi``."""

    def __init__(
        self,
        cfg: FetchConfig,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self._cfg = cfg
        self._logger = logger or get_logger()
        self._transport = transport
        self._api_key = get_api_key(cfg)

    def _params(self, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {"db": self._cfg.database}
        if self._api_key:
            params["api_key"] = self._api_key
        if self._cfg.email:
            params["email"] = self._cfg.email
        params.update(extra)
        return params

    def _request(self, method: str, endpoint: str, params: dict[str, Any]) -> str:
        url = f"{self._cfg.base_url.rstrip('/')}/{endpoint}"
        last_error: str | None = None
        status_code: int | None = None

        for attempt in range(self._cfg.retries + 1):
            try:
                with httpx.Client(
                    timeout=self._cfg.timeout_seconds,
                    follow_redirects=True,
                    trust_env=self._cfg.trust_env,
                    transport=self._transport,
                ) as client:
                    if method == "POST":
                        resp = client.post(url, data=params)
                    else:
                        resp = client.get(url, params=params)
                status_code = resp.status_code
                if resp.status_code in _RETRY_STATUS:
                    last_error = f"HTTP {resp.status_code}"
                elif resp.status_code >= 400:
                    raise FetchFailure(
                        f"{endpoint} returned HTTP {resp.status_code}",
                        details={"status_code": resp.status_code},
                    )
                else:
                    return resp.text
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"

            if attempt < self._cfg.retries:
                log_event(
                    self._logger,
                    "Request retry",
                    level=logging.WARNING,
                    event="request_retry",
                    endpoint=endpoint,
                    attempt=attempt + 1,
                    error=last_error,
                )
                time.sleep(0.5 * (attempt + 1))

        log_event(
            self._logger,
            "Request failed",
            level=logging.ERROR,
            event="request_failed",
            endpoint=endpoint,
            error=last_error,
            status_code=status_code,
        )
        raise FetchFailure(
            f"{endpoint} failed: {last_error}",
            details={"status_code": status_code},
        )

    def search_count(self, query: str) -> int:
        text = self._request("GET", "esearch.fcgi", self._params(term=query, retmax=0))
        count = parse_search_count(text)
        log_event(self._logger, "Search count", event="search_count", query=query, count=count)
        return count

    def fetch_identifiers(self, query: str) -> list[str]:
        """Return every identifier matching query.

        The search is stored on the history server and the uid list is paged
        out of efetch, which has no 10,000 record ceiling.

        Raises:
            FetchFailure: If fewer identifiers arrive than the search counted
        """
        text = self._request(
            "GET", "esearch.fcgi", self._params(term=query, retmax=0, usehistory="y")
        )
        total, webenv, query_key = parse_search_history(text)
        identifiers: list[str] = []
        for retstart in range(0, total, MAX_RETMAX):
            text = self._request(
                "GET",
                "efetch.fcgi",
                self._params(
                    WebEnv=webenv,
                    query_key=query_key,
                    rettype="uid",
                    retmode="text",
                    retstart=retstart,
                    retmax=MAX_RETMAX,
                ),
            )
            identifiers.extend(parse_identifier_list(text))
        if len(identifiers) < total:
            log_event(
                self._logger,
                "Identifier list incomplete",
                level=logging.ERROR,
                event="identifiers_incomplete",
                query=query,
                expected=total,
                received=len(identifiers),
            )
            raise FetchFailure(
                f"Search returned {len(identifiers)} of {total} identifiers",
                details={"query": query, "expected": total, "received": len(identifiers)},
            )
        log_event(
            self._logger,
            "Identifiers fetched",
            event="identifiers_fetched",
            query=query,
            count=len(identifiers),
        )
        return identifiers

    def fetch_abstracts(self, identifiers: Sequence[str]) -> str:
        # POST keeps long id lists out of the URL.
        return self._request(
            "POST",
            "efetch.fcgi",
            self._params(id=join_identifiers(identifiers), retmode="xml"),
        )
