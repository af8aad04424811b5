from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from shy.errors import InvalidArgument
from shy.history_file import format_line, parse_line, read_history_file, write_history_file
from shy.store import CommandEvent, HistoryStore


def test_parse_extended_line() -> None:
    parsed = parse_line(": 1700000000:3;make build", now=5)

    assert parsed.command_text == "make build"
    assert parsed.timestamp == 1700000000
    assert parsed.duration_ms == 3000


def test_parse_plain_line_uses_now() -> None:
    parsed = parse_line("ls -la", now=1234)

    assert parsed.command_text == "ls -la"
    assert parsed.timestamp == 1234
    assert parsed.duration_ms is None


def test_format_line_writes_seconds_and_zero_for_unmeasured() -> None:
    measured = CommandEvent(command_text="sleep 2", working_dir="/", timestamp=10, duration_ms=2500)
    unmeasured = CommandEvent(command_text="ls", working_dir="/", timestamp=11)

    assert format_line(measured) == ": 10:2;sleep 2"
    assert format_line(unmeasured) == ": 11:0;ls"


def test_read_history_file_skips_comments_and_orders_plain_lines(
    tmp_path: Path, store: HistoryStore
) -> None:
    source = tmp_path / "zsh_history"
    source.write_text(
        "# exported history\n"
        "\n"
        ": 1600000000:4;git status\n"
        "ls\n"
        "pwd\n"
    )

    count = read_history_file(source, store, cwd="/home/me", now=2000)

    assert count == 3
    events = store.list()
    assert [(e.command_text, e.timestamp, e.duration_ms) for e in events] == [
        ("git status", 1600000000, 4000),
        ("ls", 2001, None),
        ("pwd", 2002, None),
    ]
    assert all(e.working_dir == "/home/me" and e.exit_status == 0 for e in events)


def test_read_missing_file(tmp_path: Path, store: HistoryStore) -> None:
    with pytest.raises(InvalidArgument, match="no such file or directory"):
        read_history_file(tmp_path / "missing", store, cwd="/", now=0)


def test_write_and_append(
    tmp_path: Path, store: HistoryStore, add: Callable[..., int]
) -> None:
    add("one", timestamp=100, duration_ms=1000)
    add("two", timestamp=200)
    target = tmp_path / "out" / "history"

    assert write_history_file(target, store.list()) == 2
    assert target.read_text() == ": 100:1;one\n: 200:0;two\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o600

    write_history_file(target, store.list()[:1], append=True)
    assert target.read_text().splitlines()[-1] == ": 100:1;one"

    write_history_file(target, store.list()[1:])
    assert target.read_text() == ": 200:0;two\n"
