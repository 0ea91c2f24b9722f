"""Session engine for chkd.

``SessionEngine`` is the one entry point the MCP tools (and any other
client) talk to. Each operation re-reads the checklist, validates the
request completely, writes the document, and only then mutates the
session. Recoverable problems come back as a failed ``Outcome`` with a
typed reason; anything else (an unreadable checklist, a corrupt handover
file) is logged and propagates.

Two guards protect against batching work:

* debounce: ticking the item passed to ``working`` before the minimum
  work window has elapsed is rejected outright;
* rapid tick: two successful ticks on the project within a few seconds
  succeed but carry a warning.

Concurrent ticks on the same project are not locked against each other;
the second one may act on a stale document.
"""

from __future__ import annotations

import logging
import math
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .chkd_logging import (
    log_error_with_context,
    log_item_update,
    log_performance,
    log_transition,
    observability_hooks,
)
from .config import EngineSettings
from .errors import (
    AlreadyComplete,
    ChkdError,
    Debounced,
    IncompleteChildren,
    InvalidInput,
    InvalidTransition,
    NoActiveTask,
    NotFound,
    Outcome,
)
from .handover import HandoverStore
from .models import (
    ADHOC_KINDS,
    SESSION_BUILDING,
    SESSION_DEBUGGING,
    SESSION_IMPROMPTU,
    SESSION_REWORK,
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    STATUS_SKIPPED,
    CurrentItem,
    HandoverNote,
    Item,
    ItemRef,
    SpecDocument,
)
from .parser import validate as validate_text
from .resolver import find_item
from .session import ProjectState, SessionStore
from .workspace import Workspace
from . import writer

WORKING_STATUSES = (SESSION_BUILDING, SESSION_DEBUGGING, SESSION_IMPROMPTU, SESSION_REWORK)

RAPID_TICK_WARNING = "Rapid ticking detected - tick items as you complete them, not in batches!"


def iteration_reminder(iteration: int) -> str:
    """Nudge scaled to how many cycles the current task has taken."""
    if iteration <= 2:
        return "Stay focused on the current item."
    if iteration <= 5:
        return "Multiple iterations - ensure you're making progress."
    if iteration <= 10:
        return "Extended work cycle. Consider summarizing what's been done/agreed."
    return "Long session. Check in with user if unsure about direction."


def engine_operation(name: str):
    """Convert typed failures into an Outcome and time the operation."""
    def decorator(func):
        @log_performance(name)
        @wraps(func)
        def wrapper(self: "SessionEngine", *args, **kwargs) -> Outcome:
            try:
                return func(self, *args, **kwargs)
            except ChkdError as e:
                self.logger.warning(
                    f"{name} rejected: {e.message}",
                    extra={"extra_fields": {
                        "operation": name,
                        "project": self.project,
                        "reason": e.reason.value,
                    }},
                )
                return Outcome.failed(e)
            except Exception as e:
                log_error_with_context(e, {"operation": name, "project": self.project})
                raise
        return wrapper
    return decorator


class SessionEngine:
    """Session state machine for one project root."""

    def __init__(
        self,
        root: Path | str,
        store: Optional[SessionStore] = None,
        settings: Optional[EngineSettings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or EngineSettings.from_env()
        self.workspace = Workspace(root, self.settings)
        self.store = store or SessionStore()
        self.state: ProjectState = self.store.get(self.workspace.root)
        self.handover = HandoverStore(self.workspace.state_dir)
        self.clock = clock
        self.project = str(self.workspace.root)
        self.logger = logging.getLogger("chkd.engine")

    @property
    def session(self):
        return self.state.session

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self) -> SpecDocument:
        return self.workspace.load_document()

    def _save(self, document: SpecDocument, item: Item) -> None:
        self.workspace.save_document(document)
        log_item_update(self.project, item.internal_id, item.status, title=item.title)

    def _find(self, document: SpecDocument, query: str, *, top_level_only: bool = False) -> Item:
        return find_item(
            document,
            query,
            self.session,
            top_level_only=top_level_only,
            allow_legacy=self.settings.legacy_numbering,
        )

    def _task_item(self, document: SpecDocument) -> Item:
        task = self.session.current_task
        item = document.find_by_id(task.internal_id)
        if item is None:
            raise NotFound(task.title, "The active task is no longer in the checklist; pause or force idle")
        return item

    def _guard_corrupt(self) -> None:
        if self.session.is_corrupt:
            raise InvalidTransition(
                "Session has a current item but no task",
                "Run force_idle to reset the session",
                status=self.session.status,
            )

    def _require_task(self, operation: str) -> ItemRef:
        if self.session.current_task is None:
            raise NoActiveTask(operation)
        return self.session.current_task

    def _finish_session(self) -> None:
        if not self.session.is_idle:
            self.state.machine.fire("finish")
        self.session.clear()

    def _next_task(self, document: SpecDocument, exclude: Optional[str] = None) -> Optional[Dict[str, Any]]:
        anchor = self.session.anchor
        if anchor is not None:
            target = document.find_by_id(anchor.internal_id)
            if target is None or not target.is_incomplete:
                # Finished or removed anchors stop steering
                self.session.anchor = None
            elif target.internal_id != exclude:
                return target.to_ref().to_dict()
        item = document.next_open_task(exclude=exclude)
        return item.to_ref().to_dict() if item else None

    # ------------------------------------------------------------------
    # Core transitions
    # ------------------------------------------------------------------

    @engine_operation("start")
    def start(self, query: str) -> Outcome:
        """Begin a top-level task."""
        self._guard_corrupt()
        if not self.session.is_idle:
            active = self.session.current_task.label if self.session.current_task else self.session.status
            raise InvalidTransition(
                f"Session already active ({active})",
                "Pause or finish the current task first",
                status=self.session.status,
            )
        self.state.machine.require("begin_task")

        document = self._load()
        item = self._find(document, query, top_level_only=True)
        ref = item.to_ref()
        reopened = item.status == STATUS_DONE
        unconfirmed = writer.tbc_fields(item)

        now = self.clock()
        note = self.handover.consume(ref.internal_id)
        session = self.session
        session.current_task = ref
        session.current_item = None
        session.iteration = 1
        session.started_at = now
        session.adhoc_description = None
        if session.anchor is not None and session.anchor.internal_id == ref.internal_id:
            session.anchor = None
        self.state.machine.fire("begin_task")

        observability_hooks.log_session_event("task_started", self.project, task_id=ref.internal_id, reopened=reopened)
        result: Dict[str, Any] = {
            "task": ref.to_dict(),
            "task_id": ref.internal_id,
            "title": ref.title,
            "display_id": ref.display_id,
            "area_code": ref.area_code,
            "iteration": session.iteration,
            "reopened": reopened,
            "handover_note": note.to_dict() if note else None,
            "context": {
                "story": item.story,
                "key_requirements": list(item.key_requirements),
                "files_to_change": list(item.files_to_change),
                "testing": list(item.testing_notes),
            },
            "tbc_fields": unconfirmed,
            "next_step": "Call working on the first sub-item before you begin it.",
            "message": f"Started {ref.label}",
        }
        if reopened:
            result["warning"] = f"{ref.label} was already done; it has been reopened for more work."
        elif unconfirmed:
            result["warning"] = f"Unconfirmed sections: {', '.join(unconfirmed)}. Fill them in before building."
        return Outcome.ok(**result)

    @engine_operation("working")
    def working(self, query: str) -> Outcome:
        """Record which item is being worked on now."""
        self._guard_corrupt()
        self._require_task("mark an item as working")
        if self.session.status not in WORKING_STATUSES:
            raise InvalidTransition(
                f"Cannot start work while session is {self.session.status}",
                "Send the task back for rework first",
                status=self.session.status,
            )

        document = self._load()
        item = self._find(document, query)
        ref = item.to_ref()
        marked = item.status == STATUS_OPEN
        if marked:
            writer.set_status(document, item, STATUS_IN_PROGRESS)
            self._save(document, item)

        now = self.clock()
        self.session.current_item = CurrentItem(ref=ref, started_at=now)

        result: Dict[str, Any] = {
            "item": ref.to_dict(),
            "started_at": now,
            "marked_in_progress": marked,
            "message": f"Working on {ref.label}",
        }
        if item.status in (STATUS_DONE, STATUS_SKIPPED):
            result["warning"] = f"{ref.label} is already {item.status}."
        return Outcome.ok(**result)

    @engine_operation("tick")
    def tick(self, query: Optional[str] = None) -> Outcome:
        """Mark an item done, defaulting to the current task."""
        self._guard_corrupt()
        document = self._load()
        if query:
            item = self._find(document, query)
        else:
            self._require_task("tick")
            item = self._task_item(document)
        ref = item.to_ref()

        if item.status == STATUS_DONE:
            raise AlreadyComplete(item.title)
        incomplete = item.incomplete_descendants()
        if incomplete:
            raise IncompleteChildren(item.title, [child.title for child in incomplete])

        now = self.clock()
        current = self.session.current_item
        is_current = current is not None and current.ref.internal_id == ref.internal_id
        if is_current:
            elapsed = now - current.started_at
            window = self.settings.min_work_seconds
            if elapsed < window:
                raise Debounced(item.title, math.ceil(window - elapsed))

        writer.set_status(document, item, STATUS_DONE)
        self._save(document, item)

        duration = None
        if is_current:
            duration = now - current.started_at
            self.state.durations[ref.internal_id] = duration
        self.session.current_item = None

        last_tick = self.state.last_tick_at
        rapid = last_tick is not None and now - last_tick < self.settings.rapid_tick_seconds
        self.state.last_tick_at = now

        task = self.session.current_task
        session_cleared = ref.parent_id is None and task is not None and task.internal_id == ref.internal_id
        if session_cleared:
            self._finish_session()

        queued = self.state.queue.drain_all()

        parent_title = None
        remaining: List[Item] = []
        if ref.parent_id is not None:
            parent = document.find_by_id(ref.parent_id)
            if parent is not None:
                parent_title = parent.title
                remaining = [child for child in parent.children if child.is_incomplete]

        if session_cleared:
            next_step = "Task complete. You are now idle."
        elif remaining:
            next_step = f'Continue to next sub-item: "{remaining[0].title}"'
        elif parent_title is not None:
            next_step = f'Sub-items done. Close the task: tick "{parent_title}"'
        else:
            next_step = "Item complete."

        observability_hooks.log_session_event(
            "item_ticked", self.project,
            item_id=ref.internal_id, duration=duration, rapid=rapid, queued=len(queued),
        )
        result: Dict[str, Any] = {
            "item": ref.to_dict(),
            "title": ref.title,
            "status": STATUS_DONE,
            "duration_seconds": duration,
            "session_cleared": session_cleared,
            "queued_items": [entry.to_dict() for entry in queued],
            "rapid_tick": rapid,
            "parent_title": parent_title,
            "has_more_siblings": bool(remaining),
            "next_step": next_step,
            "message": f"Ticked {ref.label}",
        }
        if session_cleared:
            result["next_task"] = self._next_task(document, exclude=ref.internal_id)
        if rapid:
            result["warning"] = RAPID_TICK_WARNING
        return Outcome.ok(**result)

    @engine_operation("pause")
    def pause(self, note: Optional[str] = None, paused_by: str = "user") -> Outcome:
        """Leave the current task, optionally with a handover note."""
        self._guard_corrupt()
        if self.session.is_idle:
            raise NoActiveTask("pause")
        task = self.session.current_task
        if task is None:
            raise InvalidTransition(
                "Ad-hoc sessions have no task to pause",
                "Use done to close the ad-hoc session",
                status=self.session.status,
            )
        self.state.machine.require("finish")

        saved = None
        if note and note.strip():
            saved = self.handover.set(HandoverNote(
                task_id=task.internal_id,
                task_title=task.title,
                note=note.strip(),
                paused_by=paused_by or "user",
                created_at=self.clock(),
            ))
        self._finish_session()

        observability_hooks.log_session_event("task_paused", self.project, task_id=task.internal_id, note_saved=saved is not None)
        return Outcome.ok(
            task=task.to_dict(),
            handover_note=saved.to_dict() if saved else None,
            message=f"Paused {task.label}. Start it again to pick up where you left off.",
        )

    @engine_operation("done")
    def done(self, force: bool = False) -> Outcome:
        """Close the current task or ad-hoc session."""
        self._guard_corrupt()
        if self.session.is_idle:
            raise NoActiveTask("finish")

        task = self.session.current_task
        if task is None:
            kind = self.session.mode
            description = self.session.adhoc_description
            started = self.session.started_at
            duration = self.clock() - started if started is not None else None
            self._finish_session()
            return Outcome.ok(
                adhoc=True,
                kind=kind,
                description=description,
                duration_seconds=duration,
                message=f"Closed {kind} session",
            )

        document = self._load()
        item = self._task_item(document)
        incomplete = item.incomplete_descendants()
        if incomplete and not force:
            raise IncompleteChildren(item.title, [child.title for child in incomplete])

        now = self.clock()
        if item.status != STATUS_DONE:
            writer.set_status(document, item, STATUS_DONE)
            self._save(document, item)

        forced = bool(incomplete)
        if forced:
            self.state.audit.record_deviation(
                f"Completed {task.label} with {len(incomplete)} open sub-item(s)",
                "allowed",
                now,
                task_id=task.internal_id,
            )
        current = self.session.current_item
        if current is not None:
            self.state.durations[current.ref.internal_id] = now - current.started_at

        next_task = self._next_task(document, exclude=task.internal_id)
        self._finish_session()

        observability_hooks.log_session_event("task_done", self.project, task_id=task.internal_id, forced=forced)
        return Outcome.ok(
            task=task.to_dict(),
            forced=forced,
            incomplete=[child.title for child in incomplete],
            next_task=next_task,
            message=f"Completed {task.label}" + (" (forced)" if forced else ""),
        )

    @engine_operation("adhoc")
    def adhoc(self, kind: str, description: str) -> Outcome:
        """Open an impromptu, debug or quick-win session with no checklist item."""
        self._guard_corrupt()
        if kind not in ADHOC_KINDS:
            raise InvalidInput(f"Unknown ad-hoc kind '{kind}'", f"Use one of: {', '.join(ADHOC_KINDS)}")
        if not (description or "").strip():
            raise InvalidInput("Description cannot be empty", "Say briefly what you are working on")

        status, mode = ADHOC_KINDS[kind]
        trigger = "begin_debug" if status == SESSION_DEBUGGING else "begin_impromptu"
        if not self.session.is_idle:
            raise InvalidTransition(
                f"Session already active ({self.session.status})",
                "Pause or finish the current task first",
                status=self.session.status,
            )
        self.state.machine.require(trigger)

        self.session.mode = mode
        self.session.adhoc_description = description.strip()
        self.session.started_at = self.clock()
        self.session.iteration = 1
        self.state.machine.fire(trigger)

        return Outcome.ok(
            kind=kind,
            status=self.session.status,
            mode=mode,
            description=self.session.adhoc_description,
            message=f"Started {kind} session: {self.session.adhoc_description}",
        )

    @engine_operation("idle")
    def idle(self, force: bool = False) -> Outcome:
        """Return to idle when nothing would be lost, or when forced."""
        session = self.session
        if session.is_idle and not session.is_corrupt:
            return Outcome.ok(already_idle=True, message="Already idle")
        if not (force or session.is_corrupt or session.is_adhoc):
            label = session.current_task.label if session.current_task else session.status
            raise InvalidTransition(
                f"Session is active on {label}",
                "Pause or finish the task first, or use force",
                status=session.status,
            )
        return Outcome.ok(**self._reset("idle"))

    @engine_operation("force_idle")
    def force_idle(self) -> Outcome:
        """Reset the session to idle without any validation."""
        return Outcome.ok(**self._reset("force_idle"))

    def _reset(self, trigger: str) -> Dict[str, Any]:
        previous = self.session.to_dict()
        self.state.reset()
        log_transition(self.project, trigger, previous["status"], self.session.status)
        return {"previous": previous, "message": "Session reset to idle"}

    # ------------------------------------------------------------------
    # Review loop and iteration
    # ------------------------------------------------------------------

    def _review_transition(self, trigger: str, message: str) -> Outcome:
        self._guard_corrupt()
        task = self._require_task(trigger.replace("_", " "))
        self.state.machine.require(trigger)
        self.state.machine.fire(trigger)
        return Outcome.ok(task=task.to_dict(), status=self.session.status, message=message)

    @engine_operation("request_review")
    def request_review(self) -> Outcome:
        return self._review_transition("request_review", "Ready for testing")

    @engine_operation("send_back")
    def send_back(self) -> Outcome:
        return self._review_transition("send_back", "Sent back for rework")

    @engine_operation("approve")
    def approve(self) -> Outcome:
        return self._review_transition("approve", "Approved. Call done to close the task.")

    @engine_operation("iterate")
    def iterate(self) -> Outcome:
        """Count another work cycle on the current session."""
        self._guard_corrupt()
        if self.session.is_idle:
            raise NoActiveTask("iterate")
        self.session.iteration += 1
        iteration = self.session.iteration
        return Outcome.ok(iteration=iteration, reminder=iteration_reminder(iteration))

    # ------------------------------------------------------------------
    # Anchor
    # ------------------------------------------------------------------

    @engine_operation("set_anchor")
    def set_anchor(self, query: str) -> Outcome:
        """Pin the task that should be started next."""
        document = self._load()
        ref = self._find(document, query, top_level_only=True).to_ref()
        self.session.anchor = ref
        return Outcome.ok(anchor=ref.to_dict(), message=f"Anchor set to {ref.label}")

    @engine_operation("clear_anchor")
    def clear_anchor(self) -> Outcome:
        previous = self.session.anchor
        self.session.anchor = None
        return Outcome.ok(cleared=previous is not None, previous=previous.to_dict() if previous else None)

    def _on_track(self) -> bool:
        anchor = self.session.anchor
        if anchor is None:
            return True
        task = self.session.current_task
        return task is not None and task.internal_id == anchor.internal_id

    # ------------------------------------------------------------------
    # Ledgers
    # ------------------------------------------------------------------

    @engine_operation("also_did")
    def also_did(self, description: str) -> Outcome:
        """Record off-plan work done while on the current task."""
        task = self._require_task("record also-did work")
        record = self.state.audit.record_also_did(description, task.internal_id, self.clock())
        return Outcome.ok(record=record.to_dict(), message=f"Logged: {record.title}")

    @engine_operation("deviate")
    def deviate(self, request: str, handled: str = "added") -> Outcome:
        task = self.session.current_task
        deviation = self.state.audit.record_deviation(
            request, handled, self.clock(), task_id=task.internal_id if task else None,
        )
        return Outcome.ok(deviation=deviation.to_dict())

    @engine_operation("enqueue")
    def enqueue(self, title: str) -> Outcome:
        """Queue a request to surface on the next tick."""
        entry = self.state.queue.enqueue(title, self.clock())
        return Outcome.ok(item=entry.to_dict(), queue_size=len(self.state.queue))

    @engine_operation("queue_items")
    def queue_items(self) -> Outcome:
        return Outcome.ok(items=[entry.to_dict() for entry in self.state.queue.items()])

    @engine_operation("remove_queued")
    def remove_queued(self, item_id: str) -> Outcome:
        entry = self.state.queue.remove(item_id)
        return Outcome.ok(removed=entry.to_dict(), queue_size=len(self.state.queue))

    @engine_operation("audit")
    def audit(self) -> Outcome:
        return Outcome.ok(**self.state.audit.to_dict())

    # ------------------------------------------------------------------
    # Handover notes
    # ------------------------------------------------------------------

    def _handover_key(self, task_query: str) -> str:
        """Internal id for a note lookup; unresolvable queries are used as-is."""
        if self.workspace.spec_exists():
            try:
                return self._find(self._load(), task_query, top_level_only=True).internal_id
            except NotFound:
                pass
        return task_query

    @engine_operation("get_handover")
    def get_handover(self, task_query: str) -> Outcome:
        task_id = self._handover_key(task_query)
        note = self.handover.get(task_id)
        return Outcome.ok(task_id=task_id, handover_note=note.to_dict() if note else None)

    @engine_operation("set_handover")
    def set_handover(self, task_query: str, note: str, paused_by: str = "user") -> Outcome:
        """Attach a note to a task without pausing anything."""
        if not (note or "").strip():
            raise InvalidInput("Note cannot be empty")
        document = self._load()
        ref = self._find(document, task_query, top_level_only=True).to_ref()
        saved = self.handover.set(HandoverNote(
            task_id=ref.internal_id,
            task_title=ref.title,
            note=note.strip(),
            paused_by=paused_by or "user",
            created_at=self.clock(),
        ))
        return Outcome.ok(handover_note=saved.to_dict())

    @engine_operation("clear_handover")
    def clear_handover(self, task_query: str) -> Outcome:
        task_id = self._handover_key(task_query)
        return Outcome.ok(task_id=task_id, cleared=self.handover.clear(task_id))

    @engine_operation("handover_notes")
    def handover_notes(self) -> Outcome:
        return Outcome.ok(notes=[note.to_dict() for note in self.handover.all()])

    # ------------------------------------------------------------------
    # Document edits
    # ------------------------------------------------------------------

    @engine_operation("skip")
    def skip(self, query: str) -> Outcome:
        """Mark an item skipped so it no longer blocks its parent."""
        self._guard_corrupt()
        document = self._load()
        item = self._find(document, query)
        if item.status == STATUS_DONE:
            raise AlreadyComplete(item.title)
        if item.status != STATUS_SKIPPED:
            writer.set_status(document, item, STATUS_SKIPPED)
            self._save(document, item)
            if self.session.current_task is not None:
                self.state.audit.record_scope_change("removed", item.internal_id, item.title, self.clock())
        return Outcome.ok(item=item.to_ref().to_dict(), status=STATUS_SKIPPED)

    @engine_operation("unskip")
    def unskip(self, query: str) -> Outcome:
        self._guard_corrupt()
        document = self._load()
        item = self._find(document, query)
        if item.status != STATUS_SKIPPED:
            raise InvalidInput(f'"{item.title}" is not skipped', status=item.status)
        writer.set_status(document, item, STATUS_OPEN)
        self._save(document, item)
        return Outcome.ok(item=item.to_ref().to_dict(), status=STATUS_OPEN)

    @engine_operation("add_item")
    def add_item(
        self,
        area_code: str,
        title: str,
        description: str = "",
        story: Optional[str] = None,
        key_requirements: Optional[Sequence[str]] = None,
        files_to_change: Optional[Sequence[str]] = None,
        testing: Optional[Sequence[str]] = None,
        sub_items: Optional[Sequence[str]] = None,
    ) -> Outcome:
        """Append a new top-level item to an area."""
        self._guard_corrupt()
        document = self._load()
        updated, item = writer.add_item(
            document, area_code, title,
            description=description,
            story=story,
            key_requirements=key_requirements,
            files_to_change=files_to_change,
            testing=testing,
            sub_items=sub_items,
        )
        self._save(updated, item)
        if self.session.current_task is not None:
            self.state.audit.record_scope_change("added", item.internal_id, item.title, self.clock())
        return Outcome.ok(
            item=item.to_ref().to_dict(),
            display_id=item.display_id,
            line=item.line_index + 1,
            tbc_fields=writer.tbc_fields(item),
            message=f"Added {item.display_id} {item.title}",
        )

    @engine_operation("add_child")
    def add_child(self, parent_query: str, title: str) -> Outcome:
        """Append a sub-item under an existing item."""
        self._guard_corrupt()
        document = self._load()
        parent = self._find(document, parent_query)
        updated, item = writer.add_child(document, parent, title)
        self._save(updated, item)
        if self.session.current_task is not None:
            self.state.audit.record_scope_change("added", item.internal_id, item.title, self.clock())
        return Outcome.ok(
            item=item.to_ref().to_dict(),
            parent=parent.to_ref().to_dict(),
            line=item.line_index + 1,
            message=f'Added "{item.title}" under {parent.to_ref().label}',
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @engine_operation("resolve")
    def resolve(self, query: str, top_level_only: bool = False) -> Outcome:
        document = self._load()
        item = self._find(document, query, top_level_only=top_level_only)
        return Outcome.ok(item=item.to_ref().to_dict(), status=item.status)

    @engine_operation("durations")
    def durations(self) -> Outcome:
        return Outcome.ok(durations=dict(self.state.durations))

    @engine_operation("validate")
    def validate(self) -> Outcome:
        return Outcome.ok(**validate_text(self.workspace.read_text()))

    @engine_operation("status")
    def status(self) -> Outcome:
        """Snapshot of the session, checklist progress and ledgers."""
        session = self.session
        progress = None
        task_progress = None
        if self.workspace.spec_exists():
            document = self._load()
            progress = document.progress()
            if session.current_task is not None:
                task = document.find_by_id(session.current_task.internal_id)
                if task is not None:
                    descendants = list(task.iter_descendants())
                    task_progress = {
                        "total": len(descendants),
                        "done": sum(1 for child in descendants if child.is_complete),
                    }
        return Outcome.ok(
            session=session.to_dict(),
            corrupt=session.is_corrupt,
            available_triggers=[] if session.is_corrupt else self.state.machine.available_triggers(),
            progress=progress,
            task_progress=task_progress,
            on_track=self._on_track(),
            queue_size=len(self.state.queue),
            handover_notes=[note.to_dict() for note in self.handover.all()],
            spec_path=str(self.workspace.spec_path),
        )
