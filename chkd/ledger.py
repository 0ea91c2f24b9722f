"""Queue and audit ledgers kept per project.

The queue holds requests a human submits while a task is running; it is
drained as a whole when an item is ticked. The audit ledger is an
append-only record of deviations, also-did notes and scope changes.
Both live in memory for the lifetime of the process.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from .errors import InvalidInput, NotFound
from .models import DEVIATION_OUTCOMES, AuditItem, Deviation, QueueItem, ScopeChange


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class QueueLedger:
    """Deferred requests, drained all at once."""

    def __init__(self):
        self._items: List[QueueItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def enqueue(self, title: str, now: float) -> QueueItem:
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Queue item title cannot be empty")
        item = QueueItem(id=_new_id("q"), title=title, created_at=now)
        self._items.append(item)
        return item

    def items(self) -> List[QueueItem]:
        return list(self._items)

    def remove(self, item_id: str) -> QueueItem:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return self._items.pop(index)
        raise NotFound(item_id, "List the queue to see current ids")

    def drain_all(self) -> List[QueueItem]:
        """Return every queued item and leave the queue empty."""
        drained, self._items = self._items, []
        return drained


class AuditLedger:
    """Write-once records of off-plan activity."""

    def __init__(self):
        self._deviations: List[Deviation] = []
        self._also_did: List[AuditItem] = []
        self._scope_changes: List[ScopeChange] = []

    @property
    def deviations(self) -> List[Deviation]:
        return list(self._deviations)

    @property
    def also_did(self) -> List[AuditItem]:
        return list(self._also_did)

    @property
    def scope_changes(self) -> List[ScopeChange]:
        return list(self._scope_changes)

    def record_deviation(self, request: str, handled: str, now: float,
                         task_id: Optional[str] = None) -> Deviation:
        if handled not in DEVIATION_OUTCOMES:
            raise InvalidInput(
                f"Unknown deviation outcome '{handled}'",
                f"Use one of: {', '.join(DEVIATION_OUTCOMES)}",
            )
        if not (request or "").strip():
            raise InvalidInput("Deviation request cannot be empty")
        deviation = Deviation(request=request.strip(), handled=handled, created_at=now, task_id=task_id)
        self._deviations.append(deviation)
        return deviation

    def record_also_did(self, title: str, task_id: Optional[str], now: float) -> AuditItem:
        if not (title or "").strip():
            raise InvalidInput("Description cannot be empty")
        record = AuditItem(
            id=_new_id("a"),
            title=title.strip(),
            kind="also-did",
            added_during_task=task_id,
            created_at=now,
        )
        self._also_did.append(record)
        return record

    def record_scope_change(self, kind: str, item_id: str, title: str, now: float) -> ScopeChange:
        change = ScopeChange(kind=kind, item_id=item_id, title=title, created_at=now)
        self._scope_changes.append(change)
        return change

    def to_dict(self) -> dict:
        return {
            "deviations": [d.to_dict() for d in self._deviations],
            "also_did": [a.to_dict() for a in self._also_did],
            "scope_changes": [s.to_dict() for s in self._scope_changes],
        }
