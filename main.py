"""MCP server exposing the chkd session engine as tools."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from chkd import EngineSettings, SessionEngine, SessionStore
from chkd.chkd_logging import setup_logging

mcp = FastMCP("chkd")

# Session state for every project this server process has touched
SESSIONS = SessionStore()


def _candidate_bases() -> List[Path]:
    cwd = Path.cwd().resolve()
    return [cwd, *cwd.parents]


def _locate_workspace_root(settings: EngineSettings) -> Optional[Path]:
    for base in _candidate_bases():
        if (base / settings.storage_dir).is_dir() or (base / settings.spec_path).is_file():
            return base
    return None


def _resolve_root(root: Optional[str], settings: EngineSettings) -> Path:
    if root:
        resolved = Path(root).expanduser().resolve()
        if not resolved.exists():
            raise ValueError(f"Provided root '{root}' does not exist.")
        return resolved

    env_root = os.getenv("CHKD_PROJECT_ROOT")
    if env_root:
        env_path = Path(env_root).expanduser().resolve()
        if not env_path.exists():
            raise ValueError(
                f"Environment variable CHKD_PROJECT_ROOT points to '{env_root}', which does not exist."
            )
        return env_path

    detected_root = _locate_workspace_root(settings)
    if detected_root:
        return detected_root

    raise ValueError(
        "Unable to determine project root automatically. Provide the 'root' argument when calling the tool "
        "or set the CHKD_PROJECT_ROOT environment variable."
    )


def _engine(root: Optional[str]) -> SessionEngine:
    settings = EngineSettings.from_env()
    return SessionEngine(_resolve_root(root, settings), store=SESSIONS, settings=settings)


@mcp.tool()
def chkd_status(root: Optional[str] = None) -> Dict[str, Any]:
    """Show the session (status, current task and item, anchor), checklist progress,
    queue size and any handover notes. Call this first when resuming work."""

    return _engine(root).status().to_dict()


@mcp.tool()
def chkd_resolve(query: str, top_level_only: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Show which checklist item a query (SD.1, an internal id, or part of a title) points at."""

    return _engine(root).resolve(query, top_level_only=top_level_only).to_dict()


@mcp.tool()
def chkd_start(task: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Start a top-level task such as SD.1. Returns the task context and any handover
    note left when it was last paused. Fails if a session is already active."""

    return _engine(root).start(task).to_dict()


@mcp.tool()
def chkd_working(item: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Signal that you are starting on a sub-item. Marks it [~] in the checklist.
    Call this BEFORE doing the work; ticking too soon afterwards is rejected."""

    return _engine(root).working(item).to_dict()


@mcp.tool()
def chkd_tick(item: Optional[str] = None, root: Optional[str] = None) -> Dict[str, Any]:
    """Mark an item done. Without an item, ticks the current task, which also ends the session.
    Fails if sub-items are still open. Returns any queued user requests."""

    return _engine(root).tick(item).to_dict()


@mcp.tool()
def chkd_pause(note: Optional[str] = None, paused_by: str = "user", root: Optional[str] = None) -> Dict[str, Any]:
    """Pause the current task and return to idle. The note is shown the next time the task starts."""

    return _engine(root).pause(note, paused_by=paused_by).to_dict()


@mcp.tool()
def chkd_done(force: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Finish the current task (or ad-hoc session). Use force only when the user agrees
    to close it with open sub-items; the override is recorded."""

    return _engine(root).done(force=force).to_dict()


@mcp.tool()
def chkd_impromptu(description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Start an impromptu session for work that is not on the checklist."""

    return _engine(root).adhoc("impromptu", description).to_dict()


@mcp.tool()
def chkd_debug(description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Start a debugging session for a problem that is not on the checklist."""

    return _engine(root).adhoc("debug", description).to_dict()


@mcp.tool()
def chkd_quickwin(description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Start a quick-win session for a small fix that is not on the checklist."""

    return _engine(root).adhoc("quickwin", description).to_dict()


@mcp.tool()
def chkd_idle(force: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Return to idle. Refuses while a task is active unless force is set."""

    return _engine(root).idle(force=force).to_dict()


@mcp.tool()
def chkd_force_idle(root: Optional[str] = None) -> Dict[str, Any]:
    """Operator recovery: reset a stuck or inconsistent session to idle."""

    return _engine(root).force_idle().to_dict()


@mcp.tool()
def chkd_iterate(root: Optional[str] = None) -> Dict[str, Any]:
    """Count another work cycle on the current session and get a focus reminder."""

    return _engine(root).iterate().to_dict()


@mcp.tool()
def chkd_review(action: str = "request", root: Optional[str] = None) -> Dict[str, Any]:
    """Move the current task through review: 'request' (ready for testing),
    'rework' (send back) or 'approve'."""

    engine = _engine(root)
    actions = {
        "request": engine.request_review,
        "rework": engine.send_back,
        "approve": engine.approve,
    }
    if action not in actions:
        raise ValueError(f"Unknown review action '{action}'. Use one of: {', '.join(actions)}")
    return actions[action]().to_dict()


@mcp.tool()
def chkd_anchor(task: Optional[str] = None, clear: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Set (or clear) the task the user wants worked on next. Status reports whether you are on track."""

    engine = _engine(root)
    if clear or not task:
        return engine.clear_anchor().to_dict()
    return engine.set_anchor(task).to_dict()


@mcp.tool()
def chkd_also(description: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Log off-plan work done while on the current task."""

    return _engine(root).also_did(description).to_dict()


@mcp.tool()
def chkd_deviate(request: str, handled: str = "added", root: Optional[str] = None) -> Dict[str, Any]:
    """Record an off-plan user request and whether it was added, rejected or allowed."""

    return _engine(root).deviate(request, handled).to_dict()


@mcp.tool()
def chkd_queue(title: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Queue a user request; it is handed back on the next successful tick."""

    return _engine(root).enqueue(title).to_dict()


@mcp.tool()
def chkd_queue_list(root: Optional[str] = None) -> Dict[str, Any]:
    """List queued user requests without draining them."""

    return _engine(root).queue_items().to_dict()


@mcp.tool()
def chkd_queue_remove(item_id: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Remove one queued request by id."""

    return _engine(root).remove_queued(item_id).to_dict()


@mcp.tool()
def chkd_handover(
    task_id: Optional[str] = None,
    note: Optional[str] = None,
    clear: bool = False,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Read, write or clear the handover note for a task. Without a task id, lists all notes."""

    engine = _engine(root)
    if not task_id:
        return engine.handover_notes().to_dict()
    if clear:
        return engine.clear_handover(task_id).to_dict()
    if note:
        return engine.set_handover(task_id, note).to_dict()
    return engine.get_handover(task_id).to_dict()


@mcp.tool()
def chkd_skip(item: str, unskip: bool = False, root: Optional[str] = None) -> Dict[str, Any]:
    """Mark an item skipped ([-]) so it no longer blocks its parent, or reopen a skipped item."""

    engine = _engine(root)
    return (engine.unskip(item) if unskip else engine.skip(item)).to_dict()


@mcp.tool()
def chkd_add(
    area_code: str,
    title: str,
    description: str = "",
    story: Optional[str] = None,
    key_requirements: Optional[List[str]] = None,
    files_to_change: Optional[List[str]] = None,
    testing: Optional[List[str]] = None,
    sub_items: Optional[List[str]] = None,
    root: Optional[str] = None,
) -> Dict[str, Any]:
    """Add a top-level item to an area. Sections you leave out are written as TBC."""

    return _engine(root).add_item(
        area_code,
        title,
        description=description,
        story=story,
        key_requirements=key_requirements,
        files_to_change=files_to_change,
        testing=testing,
        sub_items=sub_items,
    ).to_dict()


@mcp.tool()
def chkd_add_child(parent: str, title: str, root: Optional[str] = None) -> Dict[str, Any]:
    """Add a sub-item under an existing item."""

    return _engine(root).add_child(parent, title).to_dict()


@mcp.tool()
def chkd_validate(root: Optional[str] = None) -> Dict[str, Any]:
    """Check the checklist for duplicate areas, empty areas and lines the parser ignores."""

    return _engine(root).validate().to_dict()


@mcp.tool()
def chkd_durations(root: Optional[str] = None) -> Dict[str, Any]:
    """Seconds spent on each item between working and tick, for this server process."""

    return _engine(root).durations().to_dict()


@mcp.tool()
def chkd_audit(root: Optional[str] = None) -> Dict[str, Any]:
    """Deviations, also-did notes and scope changes recorded for this project."""

    return _engine(root).audit().to_dict()


@mcp.resource("chkd://spec")
def resource_spec() -> str:
    """The checklist document of the detected project."""

    settings = EngineSettings.from_env()
    try:
        root = _resolve_root(None, settings)
    except ValueError as e:
        return str(e)
    spec_path = root / settings.spec_path
    if not spec_path.exists():
        return f"No checklist found at {spec_path}."
    return spec_path.read_text(encoding="utf-8")


if __name__ == "__main__":
    settings = EngineSettings.from_env()
    setup_logging(settings.log_level, Path(settings.log_file) if settings.log_file else None)
    mcp.run(transport="stdio")
