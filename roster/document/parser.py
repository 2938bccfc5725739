"""
RULEBOOK Parser - Structured view of the project configuration document.

The document is a Markdown file split into sections on heading lines
(one or more '#' followed by a space). Section bodies are kept verbatim,
so an unmodified document serializes back to the exact same bytes.

One section is special: "Active Capabilities" (legacy title "Active
Agents"). Its bullet lines ('- <id>') name the active capabilities.
Deeper headings nested under it belong to the same block; those whose
body holds no bullets are user notes and survive every rewrite verbatim.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple

from roster.core.errors import DocumentParseError
from roster.core.models import normalize_id

ACTIVE_SECTION_TITLE = "Active Capabilities"
ACTIVE_SECTION_ALIASES = ("active capabilities", "active agents")
ACTIVE_SECTION_LEVEL = 2

HEADING_PATTERN = re.compile(r"^(#+) (.*)$")
FENCE_PATTERN = re.compile(r"^ {0,3}(```|~~~)")
BULLET_PATTERN = re.compile(r"^-\s+(\S+)")
ID_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


@dataclass(frozen=True)
class Section:
    """A heading line and the verbatim text up to the next heading."""
    heading: str   # Raw heading line, including its line terminator
    body: str
    level: int
    title: str

    @property
    def key(self) -> Tuple[int, str]:
        """Identity used for duplicate detection."""
        return (self.level, self.title.casefold())

    @property
    def is_active(self) -> bool:
        return self.title.casefold() in ACTIVE_SECTION_ALIASES

    def text(self) -> str:
        return self.heading + self.body


@dataclass(frozen=True)
class ConfigDocument:
    """
    Parsed configuration document.

    Immutable: with_active_ids() returns a new document. Every section
    other than the Active block is carried over untouched.
    """
    preamble: str = ""
    sections: Tuple[Section, ...] = field(default_factory=tuple)
    newline: str = "\n"

    # ==================== Serialization ====================

    def serialize(self) -> str:
        return self.preamble + "".join(s.text() for s in self.sections)

    def __str__(self) -> str:
        return self.serialize()

    # ==================== Lookup ====================

    def titles(self) -> List[str]:
        return [s.title for s in self.sections]

    def find(self, title: str) -> Optional[Section]:
        """First section with the given title (case-insensitive)."""
        wanted = title.casefold()
        for section in self.sections:
            if section.title.casefold() == wanted:
                return section
        return None

    def has_section(self, title: str) -> bool:
        return self.find(title) is not None

    def duplicate_headings(self) -> List[Section]:
        """Sections whose (level, title) repeats an earlier heading."""
        seen = set()
        reported = set()
        duplicates = []
        for section in self.sections:
            if section.key in seen and section.key not in reported:
                duplicates.append(section)
                reported.add(section.key)
            seen.add(section.key)
        return duplicates

    def active_block(self) -> Optional[Tuple[int, int]]:
        """
        Index range [start, end) of the Active section and its nested
        subsections, or None when the section is absent.
        """
        for start, section in enumerate(self.sections):
            if section.is_active:
                end = start + 1
                while end < len(self.sections) and self.sections[end].level > section.level:
                    end += 1
                return start, end
        return None

    def active_section(self) -> Optional[Section]:
        block = self.active_block()
        return self.sections[block[0]] if block else None

    def section_text(self, title: str) -> str:
        """Body of a section including its nested subsections."""
        for start, section in enumerate(self.sections):
            if section.title.casefold() == title.casefold():
                parts = [section.body]
                for nested in self.sections[start + 1:]:
                    if nested.level <= section.level:
                        break
                    parts.append(nested.text())
                return "".join(parts)
        return ""

    # ==================== Active Capabilities ====================

    def _active_lines(self) -> List[str]:
        block = self.active_block()
        if block is None:
            return []
        start, end = block
        lines = self.sections[start].body.splitlines()
        for section in self.sections[start + 1:end]:
            lines.extend(section.body.splitlines())
        return lines

    def active_ids(self) -> List[str]:
        """Ids listed in the Active block, in document order, de-duplicated."""
        ids: List[str] = []
        for line in self._active_lines():
            capability_id = _bullet_id(line)
            if capability_id and capability_id not in ids:
                ids.append(capability_id)
        return ids

    def malformed_entries(self) -> List[str]:
        """Bullet lines in the Active block that do not name an id."""
        return [
            line.strip()
            for line in self._active_lines()
            if BULLET_PATTERN.match(line) and _bullet_id(line) is None
        ]

    def with_active_ids(self, ids: Iterable[str]) -> "ConfigDocument":
        """
        Return a document whose Active block lists exactly `ids`.

        Ids are written sorted and de-duplicated, one '- id' per line.
        Nested subsections listing ids are collapsed into it; nested
        subsections without bullets are kept verbatim after the entries. If
        there is no Active section, one is appended at the end of the document.
        """
        nl = self.newline
        entries = "".join(f"- {capability_id}{nl}" for capability_id in sorted(set(ids)))
        block = self.active_block()

        if block is None:
            text = self.serialize()
            separator = ""
            if text and not text.endswith(nl):
                separator += nl
            if text and not (text + separator).endswith(nl * 2):
                separator += nl

            section = Section(
                heading=f"{'#' * ACTIVE_SECTION_LEVEL} {ACTIVE_SECTION_TITLE}{nl}",
                body=nl + entries,
                level=ACTIVE_SECTION_LEVEL,
                title=ACTIVE_SECTION_TITLE,
            )
            if self.sections:
                last = self.sections[-1]
                if not last.body and not last.heading.endswith(("\n", "\r")):
                    last = replace(last, heading=last.heading + separator[:len(nl)])
                    separator = separator[len(nl):]
                last = replace(last, body=last.body + separator)
                return replace(self, sections=self.sections[:-1] + (last, section))
            return replace(self, preamble=self.preamble + separator, sections=(section,))

        start, end = block
        active = self.sections[start]
        heading = active.heading
        if not heading.endswith(("\n", "\r")):
            heading += nl
        kept = tuple(s for s in self.sections[start + 1:end] if not _lists_entries(s))
        body = nl + entries
        if kept or end < len(self.sections):
            body += nl
        new_active = replace(active, heading=heading, body=body)
        sections = self.sections[:start] + (new_active,) + kept + self.sections[end:]
        return replace(self, sections=sections)

    def normalized(self) -> "ConfigDocument":
        """
        Rewrite the Active block in canonical form: current heading title
        and level, nested id lists collapsed, ids sorted.
        """
        document = self.with_active_ids(self.active_ids())
        start, _ = document.active_block()
        active = document.sections[start]
        canonical = replace(
            active,
            heading=f"{'#' * ACTIVE_SECTION_LEVEL} {ACTIVE_SECTION_TITLE}{self.newline}",
            level=ACTIVE_SECTION_LEVEL,
            title=ACTIVE_SECTION_TITLE,
        )
        sections = document.sections[:start] + (canonical,) + document.sections[start + 1:]
        return replace(document, sections=sections)


def _lists_entries(section: Section) -> bool:
    return any(BULLET_PATTERN.match(line) for line in section.body.splitlines())


def _bullet_id(line: str) -> Optional[str]:
    match = BULLET_PATTERN.match(line)
    if not match:
        return None
    token = match.group(1).strip("`*_,;:")
    if not ID_TOKEN_PATTERN.match(token):
        return None
    return normalize_id(token)


# ============================================================
# Parsing
# ============================================================

def parse(text: str) -> ConfigDocument:
    """
    Parse document text into sections.

    Args:
        text: Full document text

    Returns:
        ConfigDocument whose serialize() reproduces `text` exactly

    Raises:
        DocumentParseError: Text is not a textual document
    """
    if "\x00" in text:
        raise DocumentParseError("Document contains NUL bytes; not a text document")

    newline = "\r\n" if "\r\n" in text else "\n"
    preamble: List[str] = []
    sections: List[Section] = []
    heading: Optional[Tuple[str, int, str]] = None
    body: List[str] = []
    in_fence = False

    for line in text.splitlines(keepends=True):
        bare = _strip_eol(line)
        if FENCE_PATTERN.match(bare):
            in_fence = not in_fence

        match = None if in_fence else HEADING_PATTERN.match(bare)
        if match is None:
            (body if heading else preamble).append(line)
            continue

        if heading is not None:
            sections.append(Section(heading[0], "".join(body), heading[1], heading[2]))
        heading = (line, len(match.group(1)), match.group(2).strip())
        body = []

    if heading is not None:
        sections.append(Section(heading[0], "".join(body), heading[1], heading[2]))

    return ConfigDocument(
        preamble="".join(preamble),
        sections=tuple(sections),
        newline=newline,
    )


def get_active_ids(doc: ConfigDocument) -> set:
    """Set of ids listed in the Active Capabilities section."""
    return set(doc.active_ids())


def with_active_ids(doc: ConfigDocument, ids: Iterable[str]) -> ConfigDocument:
    """Module-level alias for ConfigDocument.with_active_ids."""
    return doc.with_active_ids(ids)
