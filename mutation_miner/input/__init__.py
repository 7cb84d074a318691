"""
Document input handling.

This package sanitizes raw PubMed XML and parses it into article records.
"""

from .sanitizer import DEFAULT_NAMED_ENTITIES, build_entity_table, sanitize_xml
from .xml_parser import (
    parse_articles,
    parse_identifier_list,
    parse_search_count,
    parse_search_history,
)

__all__ = [
    "DEFAULT_NAMED_ENTITIES",
    "build_entity_table",
    "sanitize_xml",
    "parse_articles",
    "parse_identifier_list",
    "parse_search_count",
    "parse_search_history",
]
