from __future__ import annotations

from collections.abc import Callable

import typer
from rich import print

from ..session_stack import DEFAULT_STORE, SessionRouter
from ..store import HistoryStore
from .common import emit_lines, exit_on_error

StoreFactory = Callable[[str | None], HistoryStore]


def close_session_cmd(*, store_from_path: StoreFactory, db_path: str | None, pid: int) -> None:
    """Mark every active command of a finished shell as inactive."""

    with exit_on_error():
        store = store_from_path(db_path)
        try:
            closed = store.close_session(pid)
        finally:
            store.close()
    print(f"Closed session {pid} ({closed} command(s))")


def cleanup_session_cmd(*, router: SessionRouter, pid: int) -> None:
    router.cleanup(pid)


def db_current_cmd(*, router: SessionRouter, session: int, default_path: str) -> None:
    current = router.current(session)
    typer.echo(current if current != DEFAULT_STORE else default_path)


def db_stack_cmd(*, router: SessionRouter, session: int, default_path: str) -> None:
    entries = router.stack(session)
    lines = [f"{depth}  {path}" for depth, path in enumerate(reversed(entries), start=1)]
    lines.append(f"{len(entries) + 1}  {default_path} (default)")
    emit_lines(lines)


def db_push_cmd(*, router: SessionRouter, session: int, path: str) -> None:
    with exit_on_error():
        resolved = router.push(session, path)
    print(f"Using {resolved}")


def db_pop_cmd(*, router: SessionRouter, session: int, default_path: str) -> None:
    with exit_on_error():
        previous = router.pop(session)
    print(f"Using {previous or default_path}")


def init_db_cmd(*, open_unchecked: StoreFactory, db_path: str | None) -> None:
    """Create or migrate a store; report only a newly created one."""

    with exit_on_error():
        store = open_unchecked(db_path)
        try:
            created = store.init_schema()
            path = store.db_path
        finally:
            store.close()
    if created:
        typer.echo(f"Database initialized: {path}")
