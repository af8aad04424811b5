from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field


@dataclass
class CommandEvent:
    command_text: str
    working_dir: str
    timestamp: int
    exit_status: int = 0
    duration_ms: int | None = None
    git_repo: str | None = None
    git_branch: str | None = None
    source_app: str | None = None
    source_pid: int | None = None
    source_active: bool | None = None
    starred: bool = False
    id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> CommandEvent:
        keys = row.keys()
        active = row["source_active"] if "source_active" in keys else None
        return cls(
            id=int(row["id"]),
            timestamp=int(row["timestamp"]),
            exit_status=int(row["exit_status"]),
            duration_ms=None if row["duration"] is None else int(row["duration"]),
            command_text=str(row["command_text"]),
            working_dir=str(row["working_dir"]),
            git_repo=row["git_repo"],
            git_branch=row["git_branch"],
            source_app=row["source_app"],
            source_pid=None if row["source_pid"] is None else int(row["source_pid"]),
            source_active=None if active is None else bool(active),
            starred=bool(row["starred"]) if "starred" in keys else False,
        )


@dataclass(frozen=True)
class ContextSummary:
    working_dir: str
    git_branch: str | None
    command_count: int
    first_time: int
    last_time: int

    @property
    def span_seconds(self) -> int:
        return self.last_time - self.first_time


@dataclass
class TimeBucket:
    """Commands of one context that fall into the same hour, period, day or week."""

    size: str
    bucket_id: int
    commands: list[CommandEvent] = field(default_factory=list)
    first_time: int = 0
    last_time: int = 0
    counts: dict[str, int] = field(default_factory=dict)
