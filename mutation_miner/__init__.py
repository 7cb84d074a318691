"""
Mutation Miner - batch extraction of mutation mentions from PubMed abstracts.

This package takes a list of PubMed identifiers, fetches their abstracts in
bulk through NCBI EDirect (or the E-utilities HTTP API), repairs and parses
the returned XML, extracts tokens such as ``G1043D`` and stores them with
one transaction per article.

Main entry point is the CLI via `mutation-miner run` command.

Example:
    $ mutation-miner enqueue 31452104 31452105
    $ mutation-miner run --limit 500
"""

__all__ = [
    "__version__",
    "extract_mutations",
    "sanitize_xml",
    "parse_articles",
    "run_batch",
    "run_pending",
    "MutationStore",
]
__version__ = "0.1.0"

from .core.mutations import extract_mutations
from .input.sanitizer import sanitize_xml
from .input.xml_parser import parse_articles
from .runner import run_batch, run_pending
from .storage.store import MutationStore
