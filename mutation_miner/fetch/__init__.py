"""
Abstract retrieval.

This package wraps external process invocation and the EDirect /
E-utilities backends that return raw PubMed documents.
"""

from .base import AbstractFetcher
from .edirect import EDirectFetcher
from .eutils import EutilsFetcher
from .factory import available_fetchers, create_fetcher
from .terminal import run_command

__all__ = [
    "AbstractFetcher",
    "EDirectFetcher",
    "EutilsFetcher",
    "available_fetchers",
    "create_fetcher",
    "run_command",
]
