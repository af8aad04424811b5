from __future__ import annotations

import os
from collections.abc import Callable

from rich import print
from rich.markup import escape

from ..errors import NotFound
from ..store import HistoryStore
from .common import emit_lines, exit_on_error, require_current_session

StoreFactory = Callable[[str | None], HistoryStore]

STAR_PREVIEW_CHARS = 60


def _preview(text: str) -> str:
    if len(text) > STAR_PREVIEW_CHARS:
        return text[: STAR_PREVIEW_CHARS - 3] + "..."
    return text


def star_add_cmd(*, store_from_path: StoreFactory, db_path: str | None, event_id: int) -> None:
    with exit_on_error():
        store = store_from_path(db_path)
        try:
            store.star(event_id)
        finally:
            store.close()
    print(f"Starred command {event_id}")


def star_remove_cmd(
    *, store_from_path: StoreFactory, db_path: str | None, event_id: int
) -> None:
    with exit_on_error():
        store = store_from_path(db_path)
        try:
            store.unstar(event_id)
        finally:
            store.close()
    print(f"Unstarred command {event_id}")


def star_recent_cmd(*, store_from_path: StoreFactory, db_path: str | None) -> None:
    """Star the newest command of the current shell session."""

    with exit_on_error():
        source_app, source_pid = require_current_session()
        store = store_from_path(db_path)
        try:
            recent = store.list(1, source_app=source_app, source_pid=source_pid)
            event = recent[-1] if recent else None
            if event is None or event.id is None:
                raise NotFound("no commands found in current session")
            store.star(event.id)
        finally:
            store.close()
    print(f"Starred #{event.id}: {escape(_preview(event.command_text))}")


def star_list_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    pwd: bool,
    current_session: bool,
) -> None:
    with exit_on_error():
        source_app: str | None = None
        source_pid: int | None = None
        if current_session:
            source_app, source_pid = require_current_session()
        store = store_from_path(db_path)
        try:
            events = store.list_starred(
                source_app=source_app,
                source_pid=source_pid,
                working_dir=os.getcwd() if pwd else None,
            )
        finally:
            store.close()
    emit_lines([f"{e.id}\t{e.command_text}" for e in events])
