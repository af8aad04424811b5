from __future__ import annotations

import datetime as dt
import os
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich import print
from rich.markup import escape

from ..errors import InvalidArgument, ShyError
from ..query import detect_current_session, parse_session_filter
from ..store import CommandEvent
from ..store.summary import format_duration


@contextmanager
def exit_on_error() -> Iterator[None]:
    try:
        yield
    except ShyError as exc:
        print(f"[red]shy: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def session_id() -> int:
    """The interactive shell that launched this process."""

    return os.getppid()


def resolve_session_filter(
    session: str | None, current_session: bool
) -> tuple[str | None, int | None]:
    if session and current_session:
        raise InvalidArgument("--session and --current-session are mutually exclusive")
    if session:
        return parse_session_filter(session)
    if current_session:
        detected = detect_current_session()
        if detected is None:
            raise InvalidArgument("could not auto-detect session: SHY_SESSION_PID not set")
        return detected
    return None, None


def require_current_session() -> tuple[str, int]:
    detected = detect_current_session()
    if detected is None:
        raise InvalidArgument("could not detect current session: SHY_SESSION_PID not set")
    return detected


def format_event_line(
    event: CommandEvent,
    *,
    numbered: bool = True,
    show_time: bool = False,
    show_duration: bool = False,
    text: str | None = None,
) -> str:
    parts: list[str] = []
    if numbered:
        parts.append(f"{event.id:5d}")
    if show_time:
        parts.append(format_timestamp(event.timestamp))
    if show_duration:
        parts.append(format_duration(event.duration_ms))
    parts.append(event.command_text if text is None else text)
    return "  ".join(parts)


def format_timestamp(timestamp: int) -> str:
    return dt.datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def emit_lines(lines: list[str]) -> None:
    for line in lines:
        typer.echo(line)
