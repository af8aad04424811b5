from __future__ import annotations

import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidArgument
from .store import CommandEvent, HistoryStore

EXTENDED_LINE = re.compile(r"^:\s*(\d+):(\d+);(.*)$")


@dataclass(frozen=True)
class ParsedLine:
    command_text: str
    timestamp: int
    duration_ms: int | None


def parse_line(line: str, now: int) -> ParsedLine:
    match = EXTENDED_LINE.match(line)
    if match is None:
        return ParsedLine(command_text=line, timestamp=now, duration_ms=None)
    return ParsedLine(
        command_text=match.group(3),
        timestamp=int(match.group(1)),
        duration_ms=int(match.group(2)) * 1000,
    )


def format_line(event: CommandEvent) -> str:
    seconds = (event.duration_ms or 0) // 1000
    return f": {event.timestamp}:{seconds};{event.command_text}"


def read_history_file(
    path: str | Path,
    store: HistoryStore,
    *,
    cwd: str,
    now: int,
) -> int:
    """Import a history file, returning the number of events inserted.

    Plain lines get ``now`` as their timestamp, advanced by a second per
    imported line so their order survives.
    """

    source = Path(path).expanduser()
    try:
        text = source.read_text(errors="replace")
    except FileNotFoundError as exc:
        raise InvalidArgument(f"cannot read {source}: no such file or directory") from exc
    except OSError as exc:
        raise InvalidArgument(f"cannot read {source}: {exc.strerror or exc}") from exc

    count = 0
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        parsed = parse_line(line, now)
        store.insert(
            CommandEvent(
                command_text=parsed.command_text,
                working_dir=cwd,
                timestamp=parsed.timestamp,
                exit_status=0,
                duration_ms=parsed.duration_ms,
            )
        )
        count += 1
        now += 1
    return count


def write_history_file(
    path: str | Path, events: Iterable[CommandEvent], *, append: bool = False
) -> int:
    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    flags = os.O_WRONLY | os.O_CREAT | (os.O_APPEND if append else os.O_TRUNC)
    written = 0
    with os.fdopen(os.open(target, flags, 0o600), "w") as handle:
        for event in events:
            handle.write(format_line(event) + "\n")
            written += 1
    return written
