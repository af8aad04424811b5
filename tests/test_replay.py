from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from shy.errors import InvalidArgument, InvalidRange, NotFound
from shy.query import QueryOptions
from shy.replay import (
    EditorAborted,
    apply_substitutions,
    edit_and_replay,
    parse_edited_text,
    parse_substitutions,
)
from shy.store import HistoryStore


class RecordingExecutor:
    def __init__(self, status: int = 0):
        self.status = status
        self.executed: list[str] = []

    def execute(self, command_text: str) -> int:
        self.executed.append(command_text)
        return self.status


class ScriptedEditor:
    def __init__(self, replacement: str | None = None, status: int = 0):
        self.replacement = replacement
        self.status = status
        self.seen: str | None = None

    def edit(self, path: Path) -> int:
        self.seen = path.read_text()
        if self.replacement is not None:
            path.write_text(self.replacement)
        return self.status


def test_parse_substitutions_only_before_range() -> None:
    subs, rest = parse_substitutions(["foo=bar", "a=", "10", "x=y"])

    assert subs == [("foo", "bar"), ("a", "")]
    assert rest == ["10", "x=y"]
    with pytest.raises(InvalidArgument):
        parse_substitutions(["=oops"])


def test_apply_substitutions_in_order() -> None:
    assert apply_substitutions("git push origin", [("push", "pull"), ("origin", "up")]) == (
        "git pull up"
    )


def test_parse_edited_text_drops_blank_and_comment_lines() -> None:
    assert parse_edited_text("  ls  \n\n# note\npwd\n") == ["ls", "pwd"]


def test_quick_exec_runs_and_records(store: HistoryStore, add: Callable[..., int]) -> None:
    add("echo one")
    add("echo two")
    executor = RecordingExecutor()

    result = edit_and_replay(
        store,
        1,
        2,
        QueryOptions(),
        editor=ScriptedEditor(),
        executor=executor,
        substitutions=[("echo", "printf")],
        quick_exec=True,
        cwd="/tmp",
    )

    assert result is not None
    assert executor.executed == ["printf one", "printf two"]
    recorded = store.get(result.event_id or 0)
    assert recorded.command_text == "printf one\nprintf two"
    assert recorded.working_dir == "/tmp"


def test_editor_output_is_executed(store: HistoryStore, add: Callable[..., int]) -> None:
    add("make build")
    editor = ScriptedEditor(replacement="make test\n")
    executor = RecordingExecutor(status=3)

    result = edit_and_replay(
        store, 1, 1, QueryOptions(), editor=editor, executor=executor, cwd="/src"
    )

    assert editor.seen == "make build\n"
    assert executor.executed == ["make test"]
    assert result is not None and result.exit_status == 3


def test_empty_edit_runs_nothing(store: HistoryStore, add: Callable[..., int]) -> None:
    add("rm -rf build")
    executor = RecordingExecutor()

    result = edit_and_replay(
        store, 1, 1, QueryOptions(), editor=ScriptedEditor(replacement=""), executor=executor
    )

    assert result is None
    assert executor.executed == []
    assert store.count() == 1


def test_editor_failure_aborts(store: HistoryStore, add: Callable[..., int]) -> None:
    add("ls")
    executor = RecordingExecutor()

    with pytest.raises(EditorAborted) as excinfo:
        edit_and_replay(
            store, 1, 1, QueryOptions(), editor=ScriptedEditor(status=2), executor=executor
        )

    assert excinfo.value.status == 2
    assert executor.executed == []


def test_backwards_range_is_rejected(store: HistoryStore, add: Callable[..., int]) -> None:
    add("a")
    add("b")

    with pytest.raises(InvalidRange, match="backwards"):
        edit_and_replay(
            store, 2, 1, QueryOptions(), editor=ScriptedEditor(), executor=RecordingExecutor()
        )


def test_refuses_to_replay_fc_itself(store: HistoryStore, add: Callable[..., int]) -> None:
    add("shy fc -s")

    with pytest.raises(NotFound, match="recurse"):
        edit_and_replay(
            store,
            1,
            1,
            QueryOptions(),
            editor=ScriptedEditor(),
            executor=RecordingExecutor(),
            quick_exec=True,
        )
