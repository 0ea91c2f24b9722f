"""chkd - spec-driven session engine."""

from .config import EngineSettings
from .engine import SessionEngine
from .errors import ChkdError, FailureReason, Outcome
from .models import Item, ItemRef, Session, SpecDocument
from .parser import parse, serialize, validate
from .resolver import resolve
from .session import SessionStore

__all__ = [
    "ChkdError",
    "EngineSettings",
    "FailureReason",
    "Item",
    "ItemRef",
    "Outcome",
    "Session",
    "SessionEngine",
    "SessionStore",
    "SpecDocument",
    "parse",
    "resolve",
    "serialize",
    "validate",
]
