"""
Repair of malformed XML returned by the bibliographic source.

PubMed exports are not guaranteed to be strict XML: stray control
characters, bare ampersands and HTML named entities unknown to an XML
parser all occur in real abstracts. sanitize_xml() rewrites those so that
xml.etree can parse the document instead of rejecting it outright.
"""

from __future__ import annotations

import re
from typing import Mapping

# Everything below 0x20 except tab (0x09), LF (0x0A) and CR (0x0D).
CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")

# An ampersand that does not open a named, decimal or hex reference.
BARE_AMPERSAND_RE = re.compile(r"&(?!(?:[a-zA-Z0-9]+;|#[0-9]+;|#x[a-fA-F0-9]+;))")

DEFAULT_NAMED_ENTITIES: dict[str, str] = {
    "&alpha;": "&#945;",
    "&beta;": "&#946;",
    "&gamma;": "&#947;",
    "&delta;": "&#948;",
    "&epsilon;": "&#949;",
    "&zeta;": "&#950;",
    "&eta;": "&#951;",
    "&theta;": "&#952;",
    "&kappa;": "&#954;",
    "&lambda;": "&#955;",
    "&mu;": "&#956;",
    "&pi;": "&#960;",
    "&sigma;": "&#963;",
    "&tau;": "&#964;",
    "&phi;": "&#966;",
    "&chi;": "&#967;",
    "&psi;": "&#968;",
    "&omega;": "&#969;",
    "&Delta;": "&#916;",
    "&Omega;": "&#937;",
}


def build_entity_table(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    """Merge configured substitutions over the built-in table.

    Keys may be given bare (``"nu"``) or in reference form (``"&nu;"``);
    values may be a code point number or a ready ``&#N;`` reference.
    """
    table = dict(DEFAULT_NAMED_ENTITIES)
    for name, value in (extra or {}).items():
        key = name if name.startswith("&") else f"&{name};"
        ref = str(value)
        if not ref.startswith("&#"):
            ref = f"&#{ref};"
        table[key] = ref
    return table


def sanitize_xml(raw: str | bytes, entities: Mapping[str, str] | None = None) -> str:
    """Make a raw document safe for a strict XML parser.

    Rules are applied in order: strip control characters, escape bare
    ampersands, substitute named entities, normalize to UTF-8 text.
    Applying the function twice gives the same result as applying it once.

    Args:
        raw: Document text or undecoded bytes
        entities: Named entity table, DEFAULT_NAMED_ENTITIES when None

    Returns:
        Sanitized document text
    """
    table = DEFAULT_NAMED_ENTITIES if entities is None else entities
    text = _to_text(raw)

    text = CONTROL_CHARS_RE.sub("", text)
    text = BARE_AMPERSAND_RE.sub("&amp;", text)
    for name, ref in table.items():
        text = text.replace(name, ref)

    return _normalize_encoding(text)


def _to_text(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return raw


def _normalize_encoding(text: str) -> str:
    # Lone surrogates cannot be encoded and would break the parser downstream.
    text = text.encode("utf-8", errors="replace").decode("utf-8")
    return text.lstrip("\ufeff")
