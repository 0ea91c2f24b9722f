"""Checklist document parser.

Turns the markdown checklist (``docs/SPEC.md`` by default) into a typed
tree of areas and items. The parser is line-oriented and single pass;
anything it does not recognise is kept verbatim in ``SpecDocument.lines``
so ``serialize`` can write the document back unchanged apart from the
checkbox glyphs of items whose status moved.

Recognised constructs::

    # Project title
    ## Site Design (SD)
    - [ ] **SD.1 Landing page** - Marketing entry point
    > As a visitor I want to understand the product.
    **Key requirements:**
    - Hero section
      - [x] Hero banner
        - [~] Copy review
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

from .models import (
    METADATA_SECTIONS,
    Area,
    Item,
    SpecDocument,
    status_for_glyph,
)

TITLE_RE = re.compile(r"^#\s+(?P<title>.+?)\s*$")
AREA_RE = re.compile(r"^##\s+(?P<name>.+?)\s*\((?P<code>[A-Z][A-Z0-9]{1,3})\)(?P<trail>.*)$")
SECTION_HEADING_RE = re.compile(r"^#{1,2}\s")
CHECKBOX_RE = re.compile(r"^(?P<prefix>(?P<indent>[ \t]*)[-*]\s+\[)(?P<mark>.)(?P<suffix>\].*)$")
BOLD_TITLE_RE = re.compile(r"^\*\*(?P<title>.+?)\*\*(?:\s*[-:]\s*(?P<description>.*))?$")
NUMBER_PREFIX_RE = re.compile(r"^(?:[A-Za-z][A-Za-z0-9]{0,3}|\d+)\.\d+\s+")
STORY_RE = re.compile(r"^>\s?(?P<text>.*)$")
METADATA_HEADING_RE = re.compile(r"^\*\*(?P<name>[^*]+?):\*\*\s*$")
BULLET_RE = re.compile(r"^\s*[-*]\s+(?P<text>.+)$")

KNOWN_GLYPHS = (" ", "x", "X", "~", "-")
MAX_ID_LENGTH = 100


def slugify(text: str) -> str:
    """Lowercase text with runs of non-alphanumerics collapsed to dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "item"


def indent_width(prefix: str) -> int:
    """Width of the leading whitespace of a line, tabs counting as two."""
    stripped = prefix.lstrip(" \t")
    return len(prefix[: len(prefix) - len(stripped)].replace("\t", "  "))


@dataclass
class Issue:
    """A problem found while reading the document."""

    type: str
    line: int
    message: str
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "line": self.line,
            "message": self.message,
            "suggestion": self.suggestion,
        }


class _Reader:
    """Single pass over the document lines, building the area tree."""

    def __init__(self, text: str):
        self.lines = text.split("\n")
        self.document = SpecDocument(lines=self.lines)
        self.issues: List[Issue] = []
        self._area: Optional[Area] = None
        self._stack: List[Tuple[int, Item]] = []
        self._metadata_item: Optional[Item] = None
        self._section: Optional[str] = None
        self._seen_ids: Set[str] = set()
        self._area_lines: Dict[str, int] = {}

    def read(self) -> SpecDocument:
        for index, raw in enumerate(self.lines):
            line = raw.rstrip("\r")
            checkbox = CHECKBOX_RE.match(raw)
            if checkbox:
                self._read_item(index, checkbox)
            elif SECTION_HEADING_RE.match(line):
                self._read_heading(index, line)
            else:
                self._read_metadata(line)
        self._check_empty_areas()
        return self.document

    # ------------------------------------------------------------------
    # Headings
    # ------------------------------------------------------------------

    def _read_heading(self, index: int, line: str) -> None:
        self._stack = []
        self._metadata_item = None
        self._section = None

        area_match = AREA_RE.match(line)
        if area_match:
            code = area_match.group("code")
            existing = self.document.area(code)
            if existing is not None:
                self.issues.append(Issue(
                    "error", index + 1,
                    f"Duplicate area code {code} (first declared on line {self._area_lines[code]})",
                    "Merge the sections or give one of them a different code",
                ))
                self._area = existing
                return
            self._area = Area(code=code, display_name=area_match.group("name").strip(), line_index=index)
            self._area_lines[code] = index + 1
            self.document.areas.append(self._area)
            return

        title_match = TITLE_RE.match(line)
        if title_match and not self.document.title:
            self.document.title = title_match.group("title")
        self._area = None

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def _read_item(self, index: int, match: "re.Match[str]") -> None:
        line_number = index + 1
        self._section = None
        self._metadata_item = None

        if self._area is None:
            self.issues.append(Issue(
                "warning", line_number,
                "Checkbox outside any area is ignored",
                "Move it under an area header such as '## Frontend (FE)'",
            ))
            return

        mark = match.group("mark")
        if mark not in KNOWN_GLYPHS:
            self.issues.append(Issue(
                "warning", line_number,
                f"Unknown checkbox glyph [{mark}] treated as open",
                "Use [ ], [~], [x] or [-]",
            ))

        body = match.group("suffix")[1:].strip()
        title, description = self._split_title(body)
        if not title:
            self.issues.append(Issue("warning", line_number, "Checkbox without a title is ignored"))
            return

        width = indent_width(match.group("indent"))
        while self._stack and self._stack[-1][0] >= width:
            self._stack.pop()

        parent = self._stack[-1][1] if self._stack else None
        if parent is None and width > 0:
            self.issues.append(Issue(
                "warning", line_number,
                "Indented checkbox has no parent item and is ignored",
                "Indent sub-items two spaces under a top-level item",
            ))
            return

        area = self._area
        item = Item(
            internal_id=self._make_id(area.code, title, parent),
            title=title,
            area_code=area.code,
            status=status_for_glyph(mark),
            parent_id=parent.internal_id if parent else None,
            description=description,
            depth=parent.depth + 1 if parent else 0,
            line_index=index,
            line_prefix=match.group("prefix"),
            mark=mark,
            line_suffix=match.group("suffix"),
        )

        if parent is None:
            area.items.append(item)
            item.display_id = f"{area.code}.{len(area.items)}"
            self._metadata_item = item
        else:
            parent.children.append(item)
        self._stack.append((width, item))

    @staticmethod
    def _split_title(body: str) -> Tuple[str, str]:
        bold = BOLD_TITLE_RE.match(body)
        if bold:
            title = NUMBER_PREFIX_RE.sub("", bold.group("title").strip(), count=1)
            return title.strip(), (bold.group("description") or "").strip()
        return body, ""

    def _make_id(self, code: str, title: str, parent: Optional[Item]) -> str:
        if parent is None:
            base = f"{code.lower()}-{slugify(title)}"
        else:
            base = f"{parent.internal_id}-{slugify(title)}"
        base = base[:MAX_ID_LENGTH].rstrip("-")
        candidate = base
        suffix = 2
        while candidate in self._seen_ids:
            candidate = f"{base}-{suffix}"
            suffix += 1
        self._seen_ids.add(candidate)
        return candidate

    # ------------------------------------------------------------------
    # Free text under a top-level item
    # ------------------------------------------------------------------

    def _read_metadata(self, line: str) -> None:
        item = self._metadata_item
        if item is None:
            return

        stripped = line.strip()
        if not stripped:
            return

        story = STORY_RE.match(stripped)
        if story:
            text = story.group("text").strip()
            item.story = f"{item.story} {text}".strip() if item.story else text
            self._section = None
            return

        heading = METADATA_HEADING_RE.match(stripped)
        if heading:
            self._section = METADATA_SECTIONS.get(heading.group("name").strip().lower())
            return

        bullet = BULLET_RE.match(line)
        if bullet and self._section:
            getattr(item, self._section).append(bullet.group("text").strip())
            return

        self._section = None

    def _check_empty_areas(self) -> None:
        for area in self.document.areas:
            if not area.items:
                self.issues.append(Issue(
                    "warning", area.line_index + 1,
                    f"Area {area.code} has no items",
                    "Add items or remove the empty section",
                ))


def parse(text: str) -> SpecDocument:
    """Parse checklist text into a SpecDocument. Never raises on bad input."""
    return _Reader(text).read()


def serialize(document: SpecDocument) -> str:
    """Render the document back to text, rewriting only item checkbox lines."""
    lines = list(document.lines)
    for item in document.iter_items():
        if 0 <= item.line_index < len(lines):
            lines[item.line_index] = item.render_line()
    return "\n".join(lines)


def validate(text: str) -> Dict[str, Any]:
    """Parse the text and report structural problems with a summary."""
    reader = _Reader(text)
    document = reader.read()
    progress = document.progress()
    errors = [issue for issue in reader.issues if issue.type == "error"]
    return {
        "valid": not errors,
        "issues": [issue.to_dict() for issue in reader.issues],
        "summary": {
            "areas_found": len(document.areas),
            "total_items": progress["total_items"],
            "completed_items": progress["completed_items"],
            "progress": progress["progress"],
            "empty_areas": [area.code for area in document.areas if not area.items],
        },
    }
