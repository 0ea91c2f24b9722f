"""Item resolution.

Maps a terse query ("SD.1", "2.3", "hero") onto exactly one item. Rules
are tried in a fixed order and the first non-empty match wins:

1. ``CODE.N``: area code plus 1-based position. A query of this shape
   never falls back to title search.
2. ``N.M``: area index plus position, when legacy numbering is enabled.
3. Exact internal id.
4. Title substring within the current task's subtree.
5. Title substring across the whole document.

Title matches are case-insensitive and only consider incomplete items,
so finished work has to be addressed by id.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from .errors import NotFound
from .models import Item, ItemRef, Session, SpecDocument

EXPLICIT_ID_RE = re.compile(r"^(?P<code>[A-Za-z][A-Za-z0-9]{1,3})\.(?P<position>\d+)$")
LEGACY_ID_RE = re.compile(r"^(?P<area>\d+)\.(?P<position>\d+)$")


def _first_title_match(items: Iterable[Item], needle: str) -> Optional[Item]:
    for item in items:
        if item.is_incomplete and needle in item.title.lower():
            return item
    return None


def find_item(
    document: SpecDocument,
    query: str,
    session: Optional[Session] = None,
    *,
    top_level_only: bool = False,
    allow_legacy: bool = True,
) -> Item:
    """Resolve ``query`` to an item in ``document`` or raise NotFound."""
    query = (query or "").strip()
    if not query:
        raise NotFound(query, "Provide an item id or part of its title")

    explicit = EXPLICIT_ID_RE.match(query)
    if explicit:
        area = document.area(explicit.group("code"))
        item = area.item_at(int(explicit.group("position"))) if area else None
        if item is None:
            raise NotFound(query, "Check the area code and item number")
        return item

    legacy = LEGACY_ID_RE.match(query)
    if legacy and allow_legacy:
        area_index = int(legacy.group("area"))
        if 1 <= area_index <= len(document.areas):
            item = document.areas[area_index - 1].item_at(int(legacy.group("position")))
            if item is not None:
                return item

    by_id = document.find_by_id(query.lower())
    if by_id is not None and (not top_level_only or by_id.parent_id is None):
        return by_id

    needle = query.lower()
    if not top_level_only and session is not None and session.current_task is not None:
        task = document.find_by_id(session.current_task.internal_id)
        if task is not None:
            match = _first_title_match(task.iter_descendants(), needle)
            if match is not None:
                return match

    if top_level_only:
        candidates: Iterable[Item] = document.top_level_items()
    else:
        candidates = document.iter_items()
    match = _first_title_match(candidates, needle)
    if match is not None:
        return match

    raise NotFound(query)


def resolve(
    document: SpecDocument,
    query: str,
    session: Optional[Session] = None,
    *,
    top_level_only: bool = False,
    allow_legacy: bool = True,
) -> ItemRef:
    """Resolve ``query`` to an ItemRef or raise NotFound."""
    return find_item(
        document, query, session,
        top_level_only=top_level_only,
        allow_legacy=allow_legacy,
    ).to_ref()
