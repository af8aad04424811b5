from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .errors import InvalidArgument, InvalidRange, NotFound
from .query import QueryOptions, fetch_range
from .store import CommandEvent, HistoryStore

logger = logging.getLogger(__name__)

Substitution = tuple[str, str]


class EditorInvoker(Protocol):
    def edit(self, path: Path) -> int:
        """Open ``path`` for interactive editing and return the editor's exit status."""
        ...


class CommandExecutor(Protocol):
    def execute(self, command_text: str) -> int: ...


@dataclass
class SubprocessEditor:
    editor: str

    def edit(self, path: Path) -> int:
        # The editor value is a program name, not a shell snippet.
        try:
            return subprocess.run([self.editor, str(path)], check=False).returncode
        except FileNotFoundError as exc:
            raise InvalidArgument(f"editor not found: {self.editor}") from exc


@dataclass
class ShellExecutor:
    shell: str = field(default_factory=lambda: os.getenv("SHELL") or "/bin/sh")

    def execute(self, command_text: str) -> int:
        return subprocess.run([self.shell, "-c", command_text], check=False).returncode


@dataclass(frozen=True)
class ReplayResult:
    commands: list[str]
    exit_status: int
    event_id: int | None = None


class EditorAborted(InvalidArgument):
    def __init__(self, status: int):
        super().__init__(f"editor exited with status {status}")
        self.status = status


def parse_substitutions(args: Sequence[str]) -> tuple[list[Substitution], list[str]]:
    """Split leading ``old=new`` tokens from the range arguments that follow."""

    substitutions: list[Substitution] = []
    remaining: list[str] = []
    for arg in args:
        if not remaining and "=" in arg:
            old, _, new = arg.partition("=")
            if not old:
                raise InvalidArgument(f"invalid substitution format: {arg}")
            substitutions.append((old, new))
            continue
        remaining.append(arg)
    return substitutions, remaining


def apply_substitutions(text: str, substitutions: Sequence[Substitution]) -> str:
    for old, new in substitutions:
        text = text.replace(old, new)
    return text


def _is_recursive(command_text: str) -> bool:
    trimmed = command_text.strip()
    return (
        trimmed == "fc"
        or trimmed.startswith("fc ")
        or trimmed.startswith("shy fc")
        or "/shy fc" in trimmed
    )


def parse_edited_text(text: str) -> list[str]:
    commands: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        commands.append(line)
    return commands


def _edit(editor: EditorInvoker, commands: list[str]) -> list[str]:
    fd, name = tempfile.mkstemp(prefix="fc-", suffix=".sh")
    path = Path(name)
    try:
        with os.fdopen(fd, "w") as handle:
            for text in commands:
                handle.write(text.replace("\\n", "\n") + "\n")
        status = editor.edit(path)
        if status != 0:
            raise EditorAborted(status)
        return parse_edited_text(path.read_text())
    finally:
        path.unlink(missing_ok=True)


def edit_and_replay(
    store: HistoryStore,
    first: int,
    last: int,
    options: QueryOptions,
    *,
    editor: EditorInvoker,
    executor: CommandExecutor,
    substitutions: Sequence[Substitution] = (),
    quick_exec: bool = False,
    cwd: str | None = None,
) -> ReplayResult | None:
    """Edit the events in ``[first, last]`` and run the result.

    Returns None when the edited buffer is empty. Otherwise every command is
    run in order, failures included, and the batch is recorded as one event.
    """

    if first > last:
        raise InvalidRange("history events can't be executed backwards")
    events = fetch_range(store, first, last, options)
    if not events or any(_is_recursive(e.command_text) for e in events):
        raise NotFound("current history line would recurse endlessly")

    commands = [apply_substitutions(e.command_text, substitutions) for e in events]
    if not quick_exec:
        commands = _edit(editor, commands)
    if not commands:
        return None

    status = 0
    for text in commands:
        status = executor.execute(text)
    event_id = store.insert(
        CommandEvent(
            command_text="\n".join(commands),
            working_dir=cwd or os.getcwd(),
            timestamp=int(time.time()),
            exit_status=0,
        )
    )
    logger.debug("replayed %s command(s) as event %s", len(commands), event_id)
    return ReplayResult(commands=commands, exit_status=status, event_id=event_id)

