"""
Mutation token extraction from abstract text.

A mutation mention is a token of the form LETTER DIGITS(2..5) LETTER, for
example ``G1043D``, standing alone between word boundaries. Tokens are not
validated against any biological ontology.
"""

from __future__ import annotations

import re
from typing import Iterator

# ASCII boundaries: "G12D" inside "xG12D" or "G12Dx" is not a mention.
MUTATION_RE = re.compile(r"\b[A-Z][0-9]{2,5}[A-Z]\b", re.ASCII)


def find_mutations(text: str | None) -> Iterator[str]:
    """Yield every mutation token in document order, duplicates included."""
    if not text:
        return
    for match in MUTATION_RE.finditer(text):
        yield match.group(0)


def extract_mutations(text: str | None) -> set[str]:
    """Return the distinct mutation tokens found in text.

    Args:
        text: Abstract text; None or empty yields an empty set

    Returns:
        Set of unique tokens

    Examples:
        >>> sorted(extract_mutations("patients carrying G1043D and G14313D"))
        ['G1043D', 'G14313D']
    """
    return set(find_mutations(text))
