"""Data models for the chkd session engine.

This module contains the core data structures used throughout chkd,
representing the parsed checklist document, the per-project session,
and the queue, handover and audit records kept alongside it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


# Item completion statuses
STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in-progress"
STATUS_DONE = "done"
STATUS_SKIPPED = "skipped"

ITEM_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_DONE, STATUS_SKIPPED)
INCOMPLETE_STATUSES = (STATUS_OPEN, STATUS_IN_PROGRESS)
COMPLETE_STATUSES = (STATUS_DONE, STATUS_SKIPPED)

# Checkbox glyph written for each status
STATUS_GLYPHS: Dict[str, str] = {
    STATUS_OPEN: " ",
    STATUS_IN_PROGRESS: "~",
    STATUS_DONE: "x",
    STATUS_SKIPPED: "-",
}


def status_for_glyph(glyph: str) -> str:
    """Map a checkbox glyph to an item status; unknown glyphs are open."""
    if glyph in ("x", "X"):
        return STATUS_DONE
    if glyph == "~":
        return STATUS_IN_PROGRESS
    if glyph == "-":
        return STATUS_SKIPPED
    return STATUS_OPEN


# Session statuses and modes
SESSION_IDLE = "idle"
SESSION_BUILDING = "building"
SESSION_DEBUGGING = "debugging"
SESSION_IMPROMPTU = "impromptu"
SESSION_READY_FOR_TESTING = "ready_for_testing"
SESSION_REWORK = "rework"
SESSION_COMPLETE = "complete"

SESSION_STATUSES = (
    SESSION_IDLE,
    SESSION_BUILDING,
    SESSION_DEBUGGING,
    SESSION_IMPROMPTU,
    SESSION_READY_FOR_TESTING,
    SESSION_REWORK,
    SESSION_COMPLETE,
)

MODE_NORMAL = "normal"
MODE_DEBUGGING = "debugging"
MODE_IMPROMPTU = "impromptu"
MODE_QUICKWIN = "quickwin"

SESSION_MODES = (MODE_NORMAL, MODE_DEBUGGING, MODE_IMPROMPTU, MODE_QUICKWIN)

# Ad-hoc session kinds mapped to (status, mode)
ADHOC_KINDS: Dict[str, Tuple[str, str]] = {
    "impromptu": (SESSION_IMPROMPTU, MODE_IMPROMPTU),
    "debug": (SESSION_DEBUGGING, MODE_DEBUGGING),
    "quickwin": (SESSION_IMPROMPTU, MODE_QUICKWIN),
}

# Metadata sections recognised under a top-level item
METADATA_SECTIONS: Dict[str, str] = {
    "key requirements": "key_requirements",
    "files to change": "files_to_change",
    "testing": "testing_notes",
}

DEVIATION_OUTCOMES = ("added", "rejected", "allowed")


@dataclass(frozen=True, slots=True)
class ItemRef:
    """Lightweight, comparable pointer to an item in the document."""

    internal_id: str
    title: str
    area_code: str
    display_id: Optional[str] = None
    parent_id: Optional[str] = None

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    @property
    def label(self) -> str:
        """Human readable label, preferring the display id."""
        if self.display_id:
            return f"{self.display_id} {self.title}"
        return self.title

    def to_dict(self) -> Dict[str, Optional[str]]:
        """Convert to dictionary representation."""
        return {
            "internal_id": self.internal_id,
            "title": self.title,
            "area_code": self.area_code,
            "display_id": self.display_id,
            "parent_id": self.parent_id,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ItemRef":
        """Create from dictionary representation."""
        return cls(
            internal_id=data["internal_id"],
            title=data["title"],
            area_code=data.get("area_code", ""),
            display_id=data.get("display_id"),
            parent_id=data.get("parent_id"),
        )


@dataclass(slots=True)
class Item:
    """A checklist item with its nested children.

    The ``line_*`` and ``mark`` fields hold the raw text of the item's
    checkbox line so the document can be written back without touching
    anything but the glyph.
    """

    internal_id: str
    title: str
    area_code: str
    status: str = STATUS_OPEN
    display_id: Optional[str] = None
    parent_id: Optional[str] = None
    description: str = ""
    story: str = ""
    key_requirements: List[str] = field(default_factory=list)
    files_to_change: List[str] = field(default_factory=list)
    testing_notes: List[str] = field(default_factory=list)
    children: List["Item"] = field(default_factory=list)
    depth: int = 0
    line_index: int = -1
    line_prefix: str = ""
    mark: str = " "
    line_suffix: str = ""

    @property
    def is_complete(self) -> bool:
        return self.status in COMPLETE_STATUSES

    @property
    def is_incomplete(self) -> bool:
        return self.status in INCOMPLETE_STATUSES

    def iter_descendants(self) -> Iterator["Item"]:
        """Yield every descendant depth-first in document order."""
        for child in self.children:
            yield child
            yield from child.iter_descendants()

    def incomplete_descendants(self) -> List["Item"]:
        """Return descendants still open or in progress."""
        return [child for child in self.iter_descendants() if child.is_incomplete]

    def render_line(self) -> str:
        """Render the checkbox line for the item's current status."""
        glyph = self.mark
        if status_for_glyph(glyph) != self.status:
            glyph = STATUS_GLYPHS[self.status]
        return f"{self.line_prefix}{glyph}{self.line_suffix}"

    def to_ref(self) -> ItemRef:
        """Create an ItemRef pointing at this item."""
        return ItemRef(
            internal_id=self.internal_id,
            title=self.title,
            area_code=self.area_code,
            display_id=self.display_id,
            parent_id=self.parent_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "internal_id": self.internal_id,
            "display_id": self.display_id,
            "title": self.title,
            "area_code": self.area_code,
            "status": self.status,
            "parent_id": self.parent_id,
            "description": self.description,
            "story": self.story,
            "key_requirements": list(self.key_requirements),
            "files_to_change": list(self.files_to_change),
            "testing_notes": list(self.testing_notes),
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(slots=True)
class Area:
    """A coded group of top-level items."""

    code: str
    display_name: str
    items: List[Item] = field(default_factory=list)
    line_index: int = -1

    def item_at(self, position: int) -> Optional[Item]:
        """Return the item at a 1-based position, if any."""
        if 1 <= position <= len(self.items):
            return self.items[position - 1]
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "code": self.code,
            "display_name": self.display_name,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(slots=True)
class SpecDocument:
    """Parsed checklist document.

    ``lines`` keeps the raw text so the document round-trips; the area
    tree points back into it by line index.
    """

    title: str = ""
    areas: List[Area] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)

    def area(self, code: str) -> Optional[Area]:
        """Find an area by code, case-insensitively."""
        wanted = code.upper()
        for area in self.areas:
            if area.code == wanted:
                return area
        return None

    def walk(self) -> Iterator[Tuple[Item, Area, Tuple[Item, ...]]]:
        """Yield (item, area, ancestors) depth-first in document order."""

        def _visit(item: Item, area: Area, ancestors: Tuple[Item, ...]):
            yield item, area, ancestors
            for child in item.children:
                yield from _visit(child, area, ancestors + (item,))

        for area in self.areas:
            for item in area.items:
                yield from _visit(item, area, ())

    def iter_items(self) -> Iterator[Item]:
        for item, _area, _ancestors in self.walk():
            yield item

    def top_level_items(self) -> List[Item]:
        return [item for area in self.areas for item in area.items]

    def locate(self, internal_id: str) -> Optional[Tuple[Item, Area, Tuple[Item, ...]]]:
        """Find an item by internal id along with its area and ancestors."""
        for item, area, ancestors in self.walk():
            if item.internal_id == internal_id:
                return item, area, ancestors
        return None

    def find_by_id(self, internal_id: str) -> Optional[Item]:
        located = self.locate(internal_id)
        return located[0] if located else None

    def next_open_task(self, exclude: Optional[str] = None) -> Optional[Item]:
        """Return the first incomplete top-level item in document order."""
        for item in self.top_level_items():
            if item.internal_id != exclude and item.is_incomplete:
                return item
        return None

    def progress(self) -> Dict[str, Any]:
        """Summarise completion across every item in the document."""
        items = list(self.iter_items())
        total = len(items)
        done = sum(1 for item in items if item.status == STATUS_DONE)
        skipped = sum(1 for item in items if item.status == STATUS_SKIPPED)
        in_progress = sum(1 for item in items if item.status == STATUS_IN_PROGRESS)
        counted = total - skipped
        return {
            "total_items": total,
            "completed_items": done,
            "in_progress_items": in_progress,
            "skipped_items": skipped,
            "progress": round(done / counted * 100) if counted else 0,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "title": self.title,
            "areas": [area.to_dict() for area in self.areas],
            **self.progress(),
        }


@dataclass(slots=True)
class CurrentItem:
    """The item a session is actively working on."""

    ref: ItemRef
    started_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {"ref": self.ref.to_dict(), "started_at": self.started_at}


@dataclass(slots=True)
class Session:
    """Per-project session record mutated by the engine."""

    status: str = SESSION_IDLE
    mode: str = MODE_NORMAL
    current_task: Optional[ItemRef] = None
    current_item: Optional[CurrentItem] = None
    iteration: int = 1
    anchor: Optional[ItemRef] = None
    adhoc_description: Optional[str] = None
    started_at: Optional[float] = None

    @property
    def is_idle(self) -> bool:
        return self.status == SESSION_IDLE

    @property
    def is_adhoc(self) -> bool:
        return not self.is_idle and self.current_task is None and self.adhoc_description is not None

    @property
    def is_corrupt(self) -> bool:
        """A current item without a current task cannot be recovered normally."""
        return self.current_item is not None and self.current_task is None

    def clear(self) -> None:
        """Reset to idle, keeping only the anchor."""
        self.status = SESSION_IDLE
        self.mode = MODE_NORMAL
        self.current_task = None
        self.current_item = None
        self.iteration = 1
        self.adhoc_description = None
        self.started_at = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "status": self.status,
            "mode": self.mode,
            "current_task": self.current_task.to_dict() if self.current_task else None,
            "current_item": self.current_item.to_dict() if self.current_item else None,
            "iteration": self.iteration,
            "anchor": self.anchor.to_dict() if self.anchor else None,
            "adhoc_description": self.adhoc_description,
            "started_at": self.started_at,
        }


@dataclass(frozen=True, slots=True)
class QueueItem:
    """A deferred request submitted while a task was active."""

    id: str
    title: str
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "title": self.title, "created_at": self.created_at}


@dataclass(slots=True)
class HandoverNote:
    """Note left on a paused task, surfaced when the task is next started."""

    task_id: str
    task_title: str
    note: str
    paused_by: str
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "task_id": self.task_id,
            "task_title": self.task_title,
            "note": self.note,
            "paused_by": self.paused_by,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "HandoverNote":
        """Create from dictionary representation."""
        return cls(
            task_id=data["task_id"],
            task_title=data.get("task_title", ""),
            note=data.get("note", ""),
            paused_by=data.get("paused_by", "user"),
            created_at=float(data.get("created_at", 0.0)),
        )

    def validate(self) -> List[str]:
        """Validate the note and return any issues."""
        issues = []
        if not self.task_id:
            issues.append("Task ID is required")
        if not self.paused_by:
            issues.append("Paused-by is required")
        return issues


@dataclass(frozen=True, slots=True)
class Deviation:
    """An off-plan request and how it was handled."""

    request: str
    handled: str
    created_at: float
    task_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request,
            "handled": self.handled,
            "created_at": self.created_at,
            "task_id": self.task_id,
        }


@dataclass(frozen=True, slots=True)
class AuditItem:
    """Off-plan work recorded during an active task."""

    id: str
    title: str
    kind: str
    added_during_task: Optional[str]
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind,
            "added_during_task": self.added_during_task,
            "created_at": self.created_at,
        }


@dataclass(frozen=True, slots=True)
class ScopeChange:
    """An item added to or removed from the document mid-task."""

    kind: str
    item_id: str
    title: str
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "item_id": self.item_id,
            "title": self.title,
            "created_at": self.created_at,
        }
