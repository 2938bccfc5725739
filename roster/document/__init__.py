"""
Roster Document - Parser and atomic writer for the project RULEBOOK.
"""

from roster.document.parser import (
    ACTIVE_SECTION_TITLE,
    ConfigDocument,
    Section,
    get_active_ids,
    parse,
    with_active_ids,
)
from roster.document.writer import read_document, write_document

__all__ = [
    "ACTIVE_SECTION_TITLE",
    "ConfigDocument",
    "Section",
    "get_active_ids",
    "parse",
    "with_active_ids",
    "read_document",
    "write_document",
]
