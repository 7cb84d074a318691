"""
Core domain models and business logic.

This package contains data types, errors, the mutation extractor and the
run lock, independent of any specific retrieval backend or store.
"""

from .errors import BatchLocked, FetchFailure, MutationMinerError, ParseFailure, PersistenceFailure
from .lock import batch_token, run_lock
from .mutations import MUTATION_RE, extract_mutations, find_mutations
from .types import ArticleRecord, ArticleStatus, BatchResult, ItemState, MutationMention, ProcessResult

__all__ = [
    "ArticleRecord",
    "ArticleStatus",
    "BatchResult",
    "ItemState",
    "MutationMention",
    "ProcessResult",
    "MutationMinerError",
    "FetchFailure",
    "ParseFailure",
    "PersistenceFailure",
    "BatchLocked",
    "batch_token",
    "run_lock",
    "MUTATION_RE",
    "extract_mutations",
    "find_mutations",
]
