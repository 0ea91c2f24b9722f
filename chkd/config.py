"""
Configuration for the chkd engine.

Settings are read from CHKD_* environment variables with defaults that
match a typical project layout (checklist at docs/SPEC.md, engine state
under .chkd/).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


DEFAULT_SPEC_PATH = "docs/SPEC.md"
DEFAULT_STORAGE_DIR = ".chkd"
DEFAULT_MIN_WORK_SECONDS = 10.0
DEFAULT_RAPID_TICK_SECONDS = 5.0


def _parse_seconds(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}")
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {raw!r}")
    return value


def _parse_flag(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EngineSettings:
    """Engine tunables loaded from the environment."""
    spec_path: str = DEFAULT_SPEC_PATH  # Relative to the project root
    storage_dir: str = DEFAULT_STORAGE_DIR
    min_work_seconds: float = DEFAULT_MIN_WORK_SECONDS  # Debounce window after `working`
    rapid_tick_seconds: float = DEFAULT_RAPID_TICK_SECONDS  # Soft warning between ticks
    legacy_numbering: bool = True  # Allow bare N.M addressing
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Load settings from CHKD_* variables."""
        env = os.environ if env is None else env
        return cls(
            spec_path=env.get("CHKD_SPEC_PATH", DEFAULT_SPEC_PATH),
            storage_dir=env.get("CHKD_STORAGE_DIR", DEFAULT_STORAGE_DIR),
            min_work_seconds=_parse_seconds(env, "CHKD_MIN_WORK_SECONDS", DEFAULT_MIN_WORK_SECONDS),
            rapid_tick_seconds=_parse_seconds(env, "CHKD_RAPID_TICK_SECONDS", DEFAULT_RAPID_TICK_SECONDS),
            legacy_numbering=_parse_flag(env, "CHKD_LEGACY_NUMBERING", True),
            log_level=env.get("CHKD_LOG_LEVEL", "INFO").upper(),
            log_file=env.get("CHKD_LOG_FILE") or None,
        )
