"""Fetcher factory and registry for swappable retrieval backends."""

from __future__ import annotations

import logging

from ..config import FetchConfig
from .base import AbstractFetcher
from .edirect import EDirectFetcher
from .eutils import EutilsFetcher


FetcherBuilder = type[AbstractFetcher]

_FETCHER_REGISTRY: dict[str, FetcherBuilder] = {
    "edirect": EDirectFetcher,
    "eutils": EutilsFetcher,
    "http": EutilsFetcher,
}


def available_fetchers() -> list[str]:
    """Return the set of registered backend names."""
    return sorted(_FETCHER_REGISTRY.keys())


def create_fetcher(cfg: FetchConfig, logger: logging.Logger | None = None) -> AbstractFetcher:
    """Build a fetcher instance from runtime config."""
    name = cfg.backend.lower().strip()
    builder = _FETCHER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_fetchers())
        raise ValueError(f"Unsupported fetch backend: {cfg.backend}. Supported: {supported}")
    return builder(cfg, logger=logger)
