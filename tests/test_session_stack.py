from __future__ import annotations

import os
from pathlib import Path

import pytest

from shy import session_stack
from shy.config import load_config
from shy.errors import InvalidArgument, StackUnderflow
from shy.session_stack import DEFAULT_STORE, SessionRouter, resolve_db_path


def test_push_pop_round_trip(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    router = SessionRouter(tmp_path / "sessions")

    a_path = router.push(1234, "a.db")
    b_path = router.push(1234, "b.db")

    assert a_path == str(Path.cwd() / "a.db")
    assert b_path == str(Path.cwd() / "b.db")
    assert router.current(1234) == b_path
    assert router.pop(1234) == a_path
    assert router.pop(1234) == DEFAULT_STORE
    with pytest.raises(StackUnderflow, match="cannot pop default database"):
        router.pop(1234)


def test_pop_without_stack_file(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")

    with pytest.raises(StackUnderflow, match="no previous database"):
        router.pop(1)


def test_push_creates_store_and_adds_extension(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")

    resolved = router.push(7, str(tmp_path / "project" / "history"))

    assert resolved == str(tmp_path / "project" / "history.db")
    assert Path(resolved).exists()


def test_push_expands_home(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")

    resolved = router.push(7, "~/work.db")

    assert resolved == str(Path(os.environ["HOME"]) / "work.db")


def test_push_rejects_empty_and_directory(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")
    folder = tmp_path / "folder.db"
    folder.mkdir()

    with pytest.raises(InvalidArgument):
        router.push(7, "")
    with pytest.raises(InvalidArgument):
        router.push(7, "   ")
    with pytest.raises(InvalidArgument, match="is a directory"):
        router.push(7, str(folder))
    assert not router.stack_file(7).exists()


def test_stack_file_lists_bottom_first(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")
    first = router.push(9, str(tmp_path / "one.db"))
    second = router.push(9, str(tmp_path / "two.db"))

    assert router.stack_file(9).read_text() == f"{first}\n{second}\n"
    assert router.stack(9) == [first, second]


def test_sessions_are_isolated(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")
    router.push(1, str(tmp_path / "one.db"))

    assert router.current(2) == DEFAULT_STORE
    with pytest.raises(StackUnderflow, match="no previous database"):
        router.pop(2)


def test_cleanup_is_idempotent(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")
    router.push(3, str(tmp_path / "one.db"))

    assert router.cleanup(3) is True
    assert router.cleanup(3) is False
    assert router.current(3) == DEFAULT_STORE


def test_no_temp_files_left_behind(tmp_path: Path) -> None:
    router = SessionRouter(tmp_path / "sessions")
    router.push(3, str(tmp_path / "one.db"))
    router.pop(3)

    assert sorted(p.name for p in (tmp_path / "sessions").iterdir()) == ["3.txt"]


def test_module_functions_use_configured_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    sessions = tmp_path / "custom-sessions"
    monkeypatch.setenv("SHY_SESSIONS_DIR", str(sessions))

    pushed = session_stack.push(55, str(tmp_path / "x.db"))

    assert (sessions / "55.txt").exists()
    assert session_stack.current(55) == pushed
    assert session_stack.pop(55) == DEFAULT_STORE
    assert session_stack.cleanup(55) is True


def test_resolve_db_path_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHY_DB_PATH", str(tmp_path / "default.db"))
    monkeypatch.setenv("SHY_SESSIONS_DIR", str(tmp_path / "sessions"))
    cfg = load_config()

    assert resolve_db_path(None, 11, cfg) == tmp_path / "default.db"

    pushed = SessionRouter(cfg.sessions_dir).push(11, str(tmp_path / "project.db"))
    assert resolve_db_path(None, 11, cfg) == Path(pushed)
    assert resolve_db_path(str(tmp_path / "explicit.db"), 11, cfg) == tmp_path / "explicit.db"
