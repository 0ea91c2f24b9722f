"""Mutations of the checklist document.

Status changes rewrite only the item's checkbox line in place. Insertions
splice new lines into ``SpecDocument.lines`` and return a freshly parsed
document, since line indices of everything after the insertion move.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from .errors import InvalidInput, NotFound
from .models import ITEM_STATUSES, STATUS_GLYPHS, Area, Item, SpecDocument
from .parser import CHECKBOX_RE, SECTION_HEADING_RE, indent_width, parse, serialize

TBC = "TBC"
TBC_SECTIONS = (
    ("key_requirements", "Key requirements"),
    ("files_to_change", "Files to change"),
    ("testing_notes", "Testing"),
)


def set_status(document: SpecDocument, item: Item, status: str) -> None:
    """Change an item's status and rewrite its checkbox line."""
    if status not in ITEM_STATUSES:
        raise InvalidInput(f"Unknown status '{status}'", f"Use one of: {', '.join(ITEM_STATUSES)}")
    item.status = status
    item.mark = STATUS_GLYPHS[status]
    document.lines[item.line_index] = item.render_line()


def tbc_fields(item: Item) -> List[str]:
    """Metadata sections of an item that are missing or still TBC."""
    missing = []
    for attribute, label in TBC_SECTIONS:
        values = getattr(item, attribute)
        if not values or all(value.strip().upper() == TBC for value in values):
            missing.append(label)
    return missing


def _area_insertion_point(document: SpecDocument, area: Area) -> int:
    lines = document.lines
    end = len(lines)
    for index in range(area.line_index + 1, len(lines)):
        if SECTION_HEADING_RE.match(lines[index]):
            end = index
            break
    last = area.line_index
    for index in range(area.line_index + 1, end):
        if lines[index].strip():
            last = index
    return last + 1


def _subtree_insertion_point(document: SpecDocument, parent: Item) -> int:
    lines = document.lines
    parent_width = indent_width(parent.line_prefix)
    last = parent.line_index
    for index in range(parent.line_index + 1, len(lines)):
        line = lines[index]
        if SECTION_HEADING_RE.match(line):
            break
        checkbox = CHECKBOX_RE.match(line)
        if checkbox and indent_width(checkbox.group("indent")) <= parent_width:
            break
        if line.strip():
            last = index
    return last + 1


def _splice(document: SpecDocument, index: int, new_lines: Sequence[str]) -> SpecDocument:
    # Inserted lines follow the document's line ending
    eol = "\r" if any(line.endswith("\r") for line in document.lines) else ""
    lines = serialize(document).split("\n")
    lines[index:index] = [line + eol for line in new_lines]
    return parse("\n".join(lines))


def _item_at_line(document: SpecDocument, line_index: int) -> Item:
    for item in document.iter_items():
        if item.line_index == line_index:
            return item
    raise NotFound(f"line {line_index + 1}")


def add_item(
    document: SpecDocument,
    area_code: str,
    title: str,
    description: str = "",
    story: Optional[str] = None,
    key_requirements: Optional[Sequence[str]] = None,
    files_to_change: Optional[Sequence[str]] = None,
    testing: Optional[Sequence[str]] = None,
    sub_items: Optional[Sequence[str]] = None,
) -> Tuple[SpecDocument, Item]:
    """Append a top-level item to an area.

    Metadata sections left empty are written as TBC so they show up as
    unconfirmed when the task is started.
    """
    title = title.strip()
    if not title:
        raise InvalidInput("Title cannot be empty")
    area = document.area(area_code)
    if area is None:
        available = ", ".join(a.code for a in document.areas) or "none"
        raise InvalidInput(f'Area "{area_code}" not found', f"Available areas: {available}")

    display_id = f"{area.code}.{len(area.items) + 1}"
    heading = f"- [ ] **{display_id} {title}**"
    if description:
        heading = f"{heading} - {description.strip()}"

    new_lines = ["", heading]
    if story:
        new_lines += ["", f"> {story.strip()}"]
    for label, values in (
        ("Key requirements", key_requirements),
        ("Files to change", files_to_change),
        ("Testing", testing),
    ):
        new_lines += ["", f"**{label}:**"]
        new_lines += [f"- {value}" for value in (values or [TBC])]
    children = [sub.strip() for sub in (sub_items or []) if sub.strip()]
    if children:
        new_lines.append("")
        new_lines += [f"  - [ ] {child}" for child in children]

    index = _area_insertion_point(document, area)
    if index < len(document.lines) and document.lines[index].strip():
        new_lines.append("")
    updated = _splice(document, index, new_lines)
    return updated, _item_at_line(updated, index + 1)


def add_child(document: SpecDocument, parent: Item, title: str) -> Tuple[SpecDocument, Item]:
    """Append a child checkbox as the last line of the parent's subtree."""
    title = title.strip()
    if not title:
        raise InvalidInput("Title cannot be empty")
    indent = " " * (indent_width(parent.line_prefix) + 2)
    index = _subtree_insertion_point(document, parent)
    updated = _splice(document, index, [f"{indent}- [ ] {title}"])
    return updated, _item_at_line(updated, index)
