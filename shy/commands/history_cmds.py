from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

import typer
from rich import print

from ..config import ShyConfig
from ..errors import InvalidArgument
from ..git_info import detect_git_context
from ..history_file import read_history_file, write_history_file
from ..query import QueryOptions, context_window, picker_entries, resolve_and_fetch
from ..range_resolver import EMPTY_RANGE, resolve_range
from ..replay import (
    CommandExecutor,
    EditorAborted,
    EditorInvoker,
    apply_substitutions,
    edit_and_replay,
    parse_substitutions,
)
from ..session_stack import SessionRouter
from ..store import CommandEvent, HistoryStore
from ..store.summary import format_duration, period_bounds
from .common import (
    emit_lines,
    exit_on_error,
    format_event_line,
    format_timestamp,
    require_current_session,
    resolve_session_filter,
    session_id,
)

logger = logging.getLogger(__name__)

StoreFactory = Callable[[str | None], HistoryStore]

LIST_COLUMNS = ("timestamp", "status", "pwd", "cmd", "gb", "gr", "durs", "durms")


def _attach_hook_log(path: Path | None) -> logging.Handler | None:
    if path is None:
        return None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path)
    except OSError:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logging.getLogger("shy").addHandler(handler)
    return handler


def insert_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    cfg: ShyConfig,
    command: str,
    directory: str,
    status: int,
    git_repo: str | None,
    git_branch: str | None,
    timestamp: int | None,
    duration_ms: int | None,
    source_app: str | None,
    source_pid: int | None,
    best_effort: bool,
) -> None:
    """Record one command. Best-effort mode never fails the calling shell hook."""

    if not best_effort:
        with exit_on_error():
            _insert(
                store_from_path,
                db_path,
                command=command,
                directory=directory,
                status=status,
                git_repo=git_repo,
                git_branch=git_branch,
                timestamp=timestamp,
                duration_ms=duration_ms,
                source_app=source_app,
                source_pid=source_pid,
            )
        return

    handler = _attach_hook_log(cfg.hook_log)
    try:
        _insert(
            store_from_path,
            db_path,
            command=command,
            directory=directory,
            status=status,
            git_repo=git_repo,
            git_branch=git_branch,
            timestamp=timestamp,
            duration_ms=duration_ms,
            source_app=source_app,
            source_pid=source_pid,
        )
    except Exception as exc:
        logger.exception("insert hook failed for %r", command, exc_info=exc)
    finally:
        if handler is not None:
            logging.getLogger("shy").removeHandler(handler)
            handler.close()


def _insert(
    store_from_path: StoreFactory,
    db_path: str | None,
    *,
    command: str,
    directory: str,
    status: int,
    git_repo: str | None,
    git_branch: str | None,
    timestamp: int | None,
    duration_ms: int | None,
    source_app: str | None,
    source_pid: int | None,
) -> int:
    if not command.strip():
        raise InvalidArgument("--command is required")
    if not directory:
        raise InvalidArgument("--dir is required")
    if git_repo is None and git_branch is None:
        git_repo, git_branch = detect_git_context(directory)
    if duration_ms is not None and duration_ms < 0:
        raise InvalidArgument("--duration must not be negative")
    event = CommandEvent(
        command_text=command,
        working_dir=directory,
        timestamp=timestamp if timestamp is not None else int(time.time()),
        exit_status=status,
        duration_ms=duration_ms,
        git_repo=git_repo or None,
        git_branch=git_branch or None,
        source_app=source_app or None,
        source_pid=source_pid,
        source_active=True if source_pid is not None else None,
    )
    store = store_from_path(db_path)
    try:
        return store.insert(event)
    finally:
        store.close()


def _list_period(today: bool, yesterday: bool, this_week: bool, last_week: bool) -> str | None:
    chosen = [
        name
        for name, flag in (
            ("today", today),
            ("yesterday", yesterday),
            ("this-week", this_week),
            ("last-week", last_week),
        )
        if flag
    ]
    if len(chosen) > 1:
        raise InvalidArgument("choose at most one of --today, --yesterday, --this-week, --last-week")
    return chosen[0] if chosen else None


def _format_columns(event: CommandEvent, columns: list[str]) -> str:
    values = {
        "timestamp": format_timestamp(event.timestamp),
        "status": str(event.exit_status),
        "pwd": event.working_dir,
        "cmd": event.command_text,
        "gb": event.git_branch or "",
        "gr": event.git_repo or "",
        "durs": format_duration(event.duration_ms),
        "durms": "" if event.duration_ms is None else str(event.duration_ms),
    }
    return "\t".join(values[column] for column in columns)


def list_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    limit: int,
    fmt: str | None,
    today: bool,
    yesterday: bool,
    this_week: bool,
    last_week: bool,
    session: str | None,
    current_session: bool,
    pwd: bool,
) -> None:
    with exit_on_error():
        columns: list[str] = []
        if fmt:
            columns = [c.strip() for c in fmt.split(",") if c.strip()]
            unknown = [c for c in columns if c not in LIST_COLUMNS]
            if unknown:
                raise InvalidArgument(f"unknown column(s): {', '.join(unknown)}")
        period = _list_period(today, yesterday, this_week, last_week)
        source_app, source_pid = resolve_session_filter(session, current_session)
        working_dir = os.getcwd() if pwd else None
        store = store_from_path(db_path)
        try:
            if period is None:
                events = store.list(
                    limit,
                    source_app=source_app,
                    source_pid=source_pid,
                    working_dir=working_dir,
                )
            else:
                start, end = period_bounds(period)
                events = store.list_in_range(
                    start,
                    end,
                    limit,
                    source_app=source_app,
                    source_pid=source_pid,
                    working_dir=working_dir,
                )
        finally:
            store.close()
    if not events:
        print("No commands found")
        return
    if columns:
        emit_lines([_format_columns(e, columns) for e in events])
    else:
        emit_lines([e.command_text for e in events])


def _session_options(
    pattern: str | None, internal: bool, reverse: bool, *, allow_empty: bool = False
) -> QueryOptions:
    session_pid = require_current_session()[1] if internal else None
    return QueryOptions(
        pattern=pattern or None,
        session_pid=session_pid,
        reverse=reverse,
        allow_empty=allow_empty,
    )


def fc_cmd(
    *,
    store_from_path: StoreFactory,
    router: SessionRouter,
    db_path: str | None,
    cfg: ShyConfig,
    args: list[str],
    list_mode: bool,
    no_numbers: bool,
    reverse: bool,
    show_time: bool,
    show_duration: bool,
    pattern: str | None,
    internal: bool,
    last: int | None,
    write_file: str | None,
    append_file: str | None,
    read_file: str | None,
    push_path: str | None,
    pop: bool,
    editor: EditorInvoker | None,
    executor: CommandExecutor | None,
    quick_exec: bool,
) -> None:
    """Fix command: list, edit-and-replay, export, import, or switch stores."""

    result = None
    with exit_on_error():
        exclusive = [
            bool(push_path),
            pop,
            bool(read_file),
            bool(write_file or append_file),
        ]
        if sum(exclusive) > 1 or (write_file and append_file):
            raise InvalidArgument("-p, -P, -R, -W and -A are mutually exclusive")
        if push_path:
            router.push(session_id(), push_path)
            return
        if pop:
            router.pop(session_id())
            return

        store = store_from_path(db_path)
        try:
            if read_file:
                read_history_file(read_file, store, cwd=os.getcwd(), now=int(time.time()))
                return
            if write_file or append_file:
                options = _session_options(pattern, internal, False, allow_empty=True)
                events = resolve_and_fetch(store, args, "file-export", options, last=last)
                write_history_file(
                    write_file or append_file or "", events, append=bool(append_file)
                )
                return

            substitutions, range_args = parse_substitutions(args)
            if list_mode:
                options = _session_options(pattern, internal, reverse)
                events = resolve_and_fetch(
                    store,
                    range_args,
                    "list",
                    options,
                    last=last,
                    default_count=cfg.list_default_count,
                )
                emit_lines(
                    [
                        format_event_line(
                            e,
                            numbered=not no_numbers,
                            show_time=show_time,
                            show_duration=show_duration,
                            text=apply_substitutions(e.command_text, substitutions),
                        )
                        for e in events
                    ]
                )
                return

            first, last_id = resolve_range(range_args, "edit", store, last=last)
            if (first, last_id) == EMPTY_RANGE:
                return
            if editor is None or executor is None:
                raise InvalidArgument("no editor or executor configured")
            try:
                result = edit_and_replay(
                    store,
                    first,
                    last_id,
                    _session_options(pattern, internal, False),
                    editor=editor,
                    executor=executor,
                    substitutions=substitutions,
                    quick_exec=quick_exec,
                )
            except EditorAborted as exc:
                raise typer.Exit(code=exc.status) from exc
        finally:
            store.close()
    if result is not None:
        emit_lines(result.commands)
        if result.exit_status != 0:
            raise typer.Exit(code=result.exit_status)


def delete_cmd(*, store_from_path: StoreFactory, db_path: str | None, ids: list[int]) -> None:
    with exit_on_error():
        if not ids:
            raise InvalidArgument("at least one event id is required")
        store = store_from_path(db_path)
        try:
            count = store.delete(ids)
        finally:
            store.close()
    print(f"Deleted {count} command(s)")


def fzf_cmd(*, store_from_path: StoreFactory, db_path: str | None, null: bool) -> None:
    store = store_from_path(db_path)
    try:
        entries = picker_entries(store)
    finally:
        store.close()
    terminator = "\0" if null else "\n"
    for event_id, text in entries:
        typer.echo(f"{event_id}\t{text}{terminator}", nl=False)


def context_cmd(
    *, store_from_path: StoreFactory, db_path: str | None, event_id: int, window: int
) -> None:
    with exit_on_error():
        store = store_from_path(db_path)
        try:
            before, target, after = context_window(store, event_id, window)
        finally:
            store.close()
    emit_lines([format_event_line(e) for e in before])
    typer.echo(f">{target.id:4d}  {target.command_text}")
    emit_lines([format_event_line(e) for e in after])


def last_command_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    offset: int,
    session: str | None,
    current_session: bool,
) -> None:
    with exit_on_error():
        if offset < 1:
            raise InvalidArgument("--offset must be at least 1")
        source_app, source_pid = resolve_session_filter(session, current_session)
        if source_app is None or source_pid is None:
            source_app, source_pid = require_current_session()
        store = store_from_path(db_path)
        try:
            commands = store.recent_without_consecutive_duplicates(
                offset,
                source_app=source_app,
                source_pid=source_pid,
                working_dir=os.getcwd(),
            )
        finally:
            store.close()
    if len(commands) >= offset:
        typer.echo(commands[offset - 1])


def list_all_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    fmt: str | None,
    session: str | None,
    current_session: bool,
) -> None:
    list_cmd(
        store_from_path=store_from_path,
        db_path=db_path,
        limit=0,
        fmt=fmt,
        today=False,
        yesterday=False,
        this_week=False,
        last_week=False,
        session=session,
        current_session=current_session,
        pwd=False,
    )


def like_recent_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    prefix: str,
    include_shy: bool,
    exclude: str | None,
    limit: int,
    pwd: bool,
) -> None:
    with exit_on_error():
        if limit < 0:
            raise InvalidArgument("--limit must not be negative")
        session = None
        if os.getenv("SHY_SESSION_PID"):
            session = require_current_session()
        store = store_from_path(db_path)
        try:
            found = store.like_recent(
                prefix,
                include_shy=include_shy,
                exclude=exclude or None,
                limit=limit,
                working_dir=os.getcwd() if pwd else None,
                source_app=session[0] if session else None,
                source_pid=session[1] if session else None,
            )
        finally:
            store.close()
    emit_lines(found)


def like_recent_after_cmd(
    *,
    store_from_path: StoreFactory,
    db_path: str | None,
    prefix: str,
    prev: str,
    include_shy: bool,
    exclude: str | None,
    limit: int,
) -> None:
    """Suggest what usually follows ``prev``; silent when nothing does."""

    with exit_on_error():
        if limit < 0:
            raise InvalidArgument("--limit must not be negative")
        store = store_from_path(db_path)
        try:
            found = store.like_recent_after(
                prefix, prev, include_shy=include_shy, exclude=exclude or None, limit=limit
            )
        finally:
            store.close()
    emit_lines(found)
