"""Per-project session state and the session status machine.

Status changes go through a ``transitions`` state machine so only the
explicit triggers below can move a session between statuses::

    idle -> building | impromptu | debugging
    building/rework -> ready_for_testing -> rework | complete
    any active status -> idle

Debounce and rate-limit baselines live on ``ProjectState`` and are
scoped to one project root; nothing here is process-global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from transitions import Machine

from .chkd_logging import log_transition
from .errors import InvalidTransition
from .ledger import AuditLedger, QueueLedger
from .models import SESSION_IDLE, SESSION_STATUSES, Session

logger = logging.getLogger("chkd.session")

ACTIVE_STATUSES = [status for status in SESSION_STATUSES if status != SESSION_IDLE]

TRANSITIONS = [
    # Starting work
    {"trigger": "begin_task", "source": "idle", "dest": "building"},
    {"trigger": "begin_impromptu", "source": "idle", "dest": "impromptu"},
    {"trigger": "begin_debug", "source": "idle", "dest": "debugging"},

    # Review loop
    {"trigger": "request_review", "source": ["building", "rework"], "dest": "ready_for_testing"},
    {"trigger": "send_back", "source": "ready_for_testing", "dest": "rework"},
    {"trigger": "approve", "source": "ready_for_testing", "dest": "complete"},

    # Pause, done, tick of the task itself
    {"trigger": "finish", "source": ACTIVE_STATUSES, "dest": "idle"},
]


class SessionMachine:
    """Drives ``Session.status`` through the allowed triggers."""

    def __init__(self, session: Session, project: str = "",
                 on_transition: Optional[Callable[[str, str, str], None]] = None):
        self.session = session
        self.project = project
        self.on_transition = on_transition
        self.machine = Machine(
            model=self,
            states=list(SESSION_STATUSES),
            transitions=TRANSITIONS,
            initial=session.status,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def sync(self) -> None:
        # The session may have been reset directly (force idle)
        if self.state != self.session.status:
            self.machine.set_state(self.session.status, model=self)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in the current status."""
        self.sync()
        return trigger in self.machine.get_triggers(self.state)

    def available_triggers(self) -> List[str]:
        self.sync()
        return self.machine.get_triggers(self.state)

    def require(self, trigger: str, hint: Optional[str] = None) -> None:
        """Raise InvalidTransition unless ``trigger`` is allowed now."""
        if not self.can(trigger):
            raise InvalidTransition(
                f"Cannot {trigger.replace('_', ' ')} while session is {self.session.status}",
                hint,
                status=self.session.status,
                trigger=trigger,
            )

    def fire(self, trigger: str) -> str:
        """Execute a trigger that ``require`` has already allowed."""
        self.require(trigger)
        getattr(self, trigger)()
        return self.state

    def on_state_change(self, event) -> None:
        source = event.transition.source
        dest = event.transition.dest
        trigger = event.event.name
        self.session.status = dest
        logger.info(f"[FSM] {self.project}: {source} -> {dest} ({trigger})")
        log_transition(self.project, trigger, source, dest)
        if self.on_transition:
            self.on_transition(source, dest, trigger)


@dataclass
class ProjectState:
    """Everything the engine remembers about one project between calls."""

    root: str
    session: Session = field(default_factory=Session)
    queue: QueueLedger = field(default_factory=QueueLedger)
    audit: AuditLedger = field(default_factory=AuditLedger)
    last_tick_at: Optional[float] = None
    durations: Dict[str, float] = field(default_factory=dict)
    machine: SessionMachine = field(init=False)

    def __post_init__(self):
        self.machine = SessionMachine(self.session, project=self.root)

    def reset(self) -> None:
        """Return the session to idle without any validation."""
        self.session.clear()
        self.machine.sync()


class SessionStore:
    """Map of project root to ProjectState."""

    def __init__(self):
        self._projects: Dict[str, ProjectState] = {}

    @staticmethod
    def key_for(root: Path | str) -> str:
        return str(Path(root).resolve())

    def get(self, root: Path | str) -> ProjectState:
        key = self.key_for(root)
        state = self._projects.get(key)
        if state is None:
            state = ProjectState(root=key)
            self._projects[key] = state
            logger.debug(f"Created session state for {key}")
        return state

    def discard(self, root: Path | str) -> None:
        self._projects.pop(self.key_for(root), None)

    def projects(self) -> List[str]:
        return sorted(self._projects)
