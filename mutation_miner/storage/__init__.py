"""Persistence of article status and mutation mentions."""

from .store import MutationStore

__all__ = ["MutationStore"]
