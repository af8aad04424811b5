from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from shy.store import CommandEvent, HistoryStore


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / ".local" / "state"))
    monkeypatch.setenv("SHY_CONFIG", str(home / ".config" / "shy" / "config.json"))
    for var in (
        "SHY_DB_PATH",
        "SHY_SESSIONS_DIR",
        "SHY_BUSY_TIMEOUT_MS",
        "SHY_LIST_DEFAULT_COUNT",
        "SHY_CONTEXT_WINDOW",
        "SHY_HOOK_LOG",
        "SHY_EDITOR",
        "SHY_SESSION_PID",
        "FCEDIT",
        "EDITOR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> Iterator[HistoryStore]:
    history = HistoryStore(tmp_path / "history.db")
    try:
        yield history
    finally:
        history.close()


@pytest.fixture
def add(store: HistoryStore) -> Callable[..., int]:
    counter = {"ts": 1_700_000_000}

    def _add(text: str, **fields: object) -> int:
        counter["ts"] += 1
        values: dict[str, object] = {
            "command_text": text,
            "working_dir": "/home/me/project",
            "timestamp": counter["ts"],
        }
        values.update(fields)
        if values.get("source_pid") is not None:
            values.setdefault("source_active", True)
        return store.insert(CommandEvent(**values))  # type: ignore[arg-type]

    return _add
