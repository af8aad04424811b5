from __future__ import annotations

from ._store import HistoryStore
from .types import CommandEvent, ContextSummary, TimeBucket
from .utils import escape_like, glob_to_like

__all__ = [
    "CommandEvent",
    "ContextSummary",
    "HistoryStore",
    "TimeBucket",
    "escape_like",
    "glob_to_like",
]
