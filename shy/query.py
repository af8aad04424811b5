from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace

from .errors import InvalidArgument, NotFound
from .range_resolver import EMPTY_RANGE, LIST_DEFAULT_COUNT, Mode, resolve_range
from .store import CommandEvent, HistoryStore


@dataclass(frozen=True)
class QueryOptions:
    """Filters and presentation flags for one invocation."""

    pattern: str | None = None
    session_pid: int | None = None
    reverse: bool = False
    allow_empty: bool = False

    @property
    def filtered(self) -> bool:
        return bool(self.pattern) or self.session_pid is not None


def fetch_range(
    store: HistoryStore, first: int, last: int, options: QueryOptions
) -> list[CommandEvent]:
    events = store.range(first, last, pattern=options.pattern, session_pid=options.session_pid)
    if not events and options.filtered and not options.allow_empty:
        raise NotFound("no matching events found")
    if options.reverse:
        events.reverse()
    return events


def resolve_and_fetch(
    store: HistoryStore,
    args: Sequence[str],
    mode: Mode,
    options: QueryOptions,
    *,
    last: int | None = None,
    default_count: int = LIST_DEFAULT_COUNT,
) -> list[CommandEvent]:
    bounds = resolve_range(args, mode, store, last=last, default_count=default_count)
    if bounds == EMPTY_RANGE:
        return []
    if mode == "file-export" and not options.allow_empty:
        options = replace(options, allow_empty=True)
    return fetch_range(store, bounds[0], bounds[1], options)


def picker_entries(store: HistoryStore) -> list[tuple[int, str]]:
    entries: list[tuple[int, str]] = []
    store.for_fzf(lambda event_id, text: entries.append((event_id, text)))
    return entries


def context_window(
    store: HistoryStore, event_id: int, window: int
) -> tuple[list[CommandEvent], CommandEvent, list[CommandEvent]]:
    return store.with_context(event_id, window)


def parse_session_filter(text: str) -> tuple[str, int | None]:
    """Parse ``app`` or ``app:pid``."""

    value = text.strip()
    if not value:
        raise InvalidArgument("session filter cannot be empty")
    if ":" not in value:
        return value, None
    app, _, pid_text = value.partition(":")
    if not app or ":" in pid_text:
        raise InvalidArgument(f"invalid session format {text!r}: expected app or app:pid")
    try:
        pid = int(pid_text)
    except ValueError as exc:
        raise InvalidArgument(f"invalid pid in session filter: {pid_text!r}") from exc
    if pid <= 0:
        raise InvalidArgument(f"invalid pid in session filter: {pid_text!r}")
    return app, pid


def detect_current_session(env: Mapping[str, str] | None = None) -> tuple[str, int] | None:
    env = os.environ if env is None else env
    pid_text = env.get("SHY_SESSION_PID", "").strip()
    if not pid_text:
        return None
    try:
        pid = int(pid_text)
    except ValueError as exc:
        raise InvalidArgument(f"invalid SHY_SESSION_PID: {pid_text!r}") from exc
    if pid <= 0:
        raise InvalidArgument(f"invalid SHY_SESSION_PID: {pid_text!r}")
    shell = env.get("SHELL", "")
    app = os.path.basename(shell) if shell else ""
    if not app:
        raise InvalidArgument("cannot determine shell from SHELL")
    return app, pid
