"""Workspace layout for a chkd project.

A project root holds the checklist document (``docs/SPEC.md`` unless
configured otherwise) and a storage directory (``.chkd/``) whose
``state/`` subdirectory keeps the durable engine files.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from .chkd_logging import log_operation
from .config import EngineSettings
from .models import SpecDocument
from .parser import parse, serialize


class Workspace:
    """Filesystem locations and document I/O for one project root."""

    def __init__(self, root: Path | str, settings: Optional[EngineSettings] = None):
        """Initialize workspace with given root directory."""
        self.settings = settings or EngineSettings()
        self.root = Path(root).resolve()
        self.base_dir = self.root / self.settings.storage_dir
        self.state_dir = self.base_dir / "state"
        self.spec_path = self.root / self.settings.spec_path

    def spec_exists(self) -> bool:
        return self.spec_path.exists()

    def read_text(self) -> str:
        if not self.spec_path.exists():
            raise FileNotFoundError(
                f"No checklist found at {self.spec_path}. Create it or set CHKD_SPEC_PATH."
            )
        # newline="" keeps CRLF documents byte-identical on rewrite
        with open(self.spec_path, encoding="utf-8", newline="") as handle:
            return handle.read()

    def load_document(self) -> SpecDocument:
        """Parse the checklist document from disk."""
        return parse(self.read_text())

    def save_document(self, document: SpecDocument) -> Path:
        """Write the document back, replacing the file atomically."""
        self.spec_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.spec_path.with_name(self.spec_path.name + ".tmp")
        with log_operation("write_checklist", path=str(self.spec_path)):
            with open(tmp_path, "w", encoding="utf-8", newline="") as handle:
                handle.write(serialize(document))
            os.replace(tmp_path, self.spec_path)
        return self.spec_path
