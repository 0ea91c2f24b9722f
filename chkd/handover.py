"""Durable handover notes for paused tasks.

Notes are stored as one JSON object keyed by task id. Every mutation
rewrites the whole map through a temporary file and an atomic rename, so
a crash mid-write never leaves notes for other tasks half written.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from .errors import InvalidInput
from .models import HandoverNote

logger = logging.getLogger("chkd.handover")


class HandoverStore:
    """File-backed map of task id to HandoverNote."""

    FILENAME = "handover.json"

    def __init__(self, state_dir: Path | str):
        self.path = Path(state_dir) / self.FILENAME

    def _load(self) -> Dict[str, HandoverNote]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        return {task_id: HandoverNote.from_dict(entry) for task_id, entry in data.items()}

    def _save(self, notes: Dict[str, HandoverNote]) -> None:
        if not notes:
            if self.path.exists():
                self.path.unlink()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {task_id: note.to_dict() for task_id, note in sorted(notes.items())}
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, task_id: str) -> Optional[HandoverNote]:
        return self._load().get(task_id)

    def all(self) -> List[HandoverNote]:
        """Every live note, oldest first."""
        return sorted(self._load().values(), key=lambda note: note.created_at)

    def set(self, note: HandoverNote) -> HandoverNote:
        """Store a note, replacing any earlier note for the same task."""
        issues = note.validate()
        if issues:
            raise InvalidInput("; ".join(issues))
        notes = self._load()
        replaced = note.task_id in notes
        notes[note.task_id] = note
        self._save(notes)
        logger.info(f"Handover note {'replaced' if replaced else 'saved'} for {note.task_id}")
        return note

    def clear(self, task_id: str) -> bool:
        """Delete the note for a task. Returns whether one existed."""
        notes = self._load()
        if task_id not in notes:
            return False
        del notes[task_id]
        self._save(notes)
        logger.info(f"Handover note cleared for {task_id}")
        return True

    def consume(self, task_id: str) -> Optional[HandoverNote]:
        """Return and delete the note for a task."""
        notes = self._load()
        note = notes.pop(task_id, None)
        if note is not None:
            self._save(notes)
            logger.info(f"Handover note consumed for {task_id}")
        return note
