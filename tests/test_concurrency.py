from __future__ import annotations

import multiprocessing
from pathlib import Path

from shy.store import CommandEvent, HistoryStore

WRITERS = 4
EVENTS_PER_WRITER = 25


def _write_events(db_path: str, writer: int) -> None:
    with HistoryStore(db_path, busy_timeout_ms=10_000) as store:
        for i in range(EVENTS_PER_WRITER):
            store.insert(
                CommandEvent(
                    command_text=f"writer {writer} cmd {i}",
                    working_dir="/",
                    timestamp=1_700_000_000 + i,
                    source_app="zsh",
                    source_pid=1000 + writer,
                    source_active=True,
                )
            )


def test_parallel_writers_get_unique_increasing_ids(tmp_path: Path) -> None:
    db_path = str(tmp_path / "shared.db")
    HistoryStore(db_path).close()

    ctx = multiprocessing.get_context("spawn")
    procs = [ctx.Process(target=_write_events, args=(db_path, n)) for n in range(WRITERS)]
    for proc in procs:
        proc.start()
    for proc in procs:
        proc.join(timeout=60)
    assert all(proc.exitcode == 0 for proc in procs)

    with HistoryStore(db_path) as store:
        assert store.count() == WRITERS * EVENTS_PER_WRITER
        assert store.most_recent_id() == WRITERS * EVENTS_PER_WRITER
        for writer in range(WRITERS):
            own = store.list(source_app="zsh", source_pid=1000 + writer)
            ids = [e.id for e in own]
            assert len(ids) == EVENTS_PER_WRITER
            assert [e.command_text for e in sorted(own, key=lambda e: e.id or 0)] == [
                f"writer {writer} cmd {i}" for i in range(EVENTS_PER_WRITER)
            ]
