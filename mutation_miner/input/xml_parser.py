"""
Parser for EDirect / E-utilities XML documents.

Handles the three document shapes the fetchers return:
- PubmedArticleSet from ``efetch -format xml`` (one PubmedArticle per record)
- ENTREZ_DIRECT / eSearchResult from a search request (hit count, history)
- Plain uid lists or eSearchResult IdList (identifiers)
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ..core.errors import ParseFailure
from ..core.types import ArticleRecord
from ..utils.logging import get_logger, log_event, truncate_text


def parse_articles(text: str, logger: logging.Logger | None = None) -> list[ArticleRecord]:
    """Parse a sanitized PubmedArticleSet document into article records.

    The whole document fails if it is not well-formed. A PubmedArticle
    without a numeric PMID is skipped on its own; one without an abstract
    yields a record with empty abstract text.

    Args:
        text: Sanitized XML text
        logger: Logger for skipped-record events (package logger when None)

    Returns:
        Records in document order, possibly empty

    Raises:
        ParseFailure: If the document is not well-formed XML
    """
    logger = logger or get_logger()
    root = _parse_root(text)

    records: list[ArticleRecord] = []
    for index, element in enumerate(root.iter("PubmedArticle")):
        identifier = _text_of(element.find("MedlineCitation/PMID"))
        if not identifier.isdigit():
            log_event(
                logger,
                "Record skipped: missing or non-numeric PMID",
                level=logging.WARNING,
                event="record_parse_failed",
                position=index,
                pmid=identifier or None,
            )
            continue
        records.append(
            ArticleRecord(identifier=identifier, abstract_text=_abstract_of(element))
        )
    return records


def parse_search_count(text: str) -> int:
    """Return the total hit count of a search document."""
    root = _parse_root(text)
    _raise_on_error(root)
    return _count_of(root)


def parse_search_history(text: str) -> tuple[int, str, str]:
    """Return (count, WebEnv, QueryKey) of a search run with usehistory=y.

    Raises:
        ParseFailure: If the document reports an error or lacks history keys
    """
    root = _parse_root(text)
    _raise_on_error(root)
    count = _count_of(root)
    webenv = _text_of(root.find("WebEnv"))
    query_key = _text_of(root.find("QueryKey"))
    if not webenv or not query_key:
        raise ParseFailure("Search document has no WebEnv/QueryKey", {"count": count})
    return count, webenv, query_key


def parse_identifier_list(text: str) -> list[str]:
    """Return identifiers from a uid listing or an eSearchResult IdList."""
    stripped = text.strip()
    if stripped.startswith("<"):
        root = _parse_root(stripped)
        _raise_on_error(root)
        return [_text_of(el) for el in root.iter("Id") if _text_of(el)]
    return [line.strip() for line in stripped.splitlines() if line.strip()]


def _parse_root(text: str) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ParseFailure(
            f"Malformed document: {exc}",
            {"position": getattr(exc, "position", None), "head": truncate_text(text, 200)},
        ) from exc


def _raise_on_error(root: ET.Element) -> None:
    # E-utilities report request errors (e.g. retstart beyond 9999) in-band.
    error = root if root.tag == "ERROR" else root.find("ERROR")
    if error is not None:
        raise ParseFailure(f"Search request rejected: {_text_of(error)}", {"error": _text_of(error)})


def _count_of(root: ET.Element) -> int:
    count = root.find("Count")
    if count is None:
        count = root.find(".//Count")
    value = _text_of(count)
    if not value.isdigit():
        raise ParseFailure("Search document has no numeric Count", {"count": value or None})
    return int(value)


def _abstract_of(article: ET.Element) -> str:
    parts = []
    for node in article.iterfind("MedlineCitation/Article/Abstract/AbstractText"):
        # Inline markup such as <i> or <sup> is kept as plain text.
        chunk = " ".join("".join(node.itertext()).split())
        if chunk:
            parts.append(chunk)
    return " ".join(parts)


def _text_of(element: ET.Element | None) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()
