from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from .. import db
from ..errors import NotFound, SchemaError, StoreContention, is_lock_error
from . import search as store_search
from . import summary as store_summary
from .types import CommandEvent, ContextSummary
from .utils import session_clause, where_sql

logger = logging.getLogger(__name__)


class HistoryStore:
    def __init__(
        self,
        db_path: Path | str = db.DEFAULT_DB_PATH,
        *,
        busy_timeout_ms: int = db.DEFAULT_BUSY_TIMEOUT_MS,
        check_schema: bool = True,
        check_same_thread: bool = True,
    ):
        self.db_path = Path(db_path).expanduser()
        if self.db_path.is_dir():
            raise SchemaError(f"{self.db_path} is a directory")
        self.conn = db.connect(
            self.db_path, busy_timeout_ms=busy_timeout_ms, check_same_thread=check_same_thread
        )
        if check_schema:
            try:
                db.initialize_schema(self.conn)
            except SchemaError:
                self.conn.close()
                raise

    def close(self) -> None:
        self.conn.close()

    def init_schema(self) -> bool:
        """Create or migrate the schema; True when the commands table was new."""

        return db.initialize_schema(self.conn)

    def __enter__(self) -> HistoryStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _write(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            with self.conn:
                return self.conn.execute(sql, tuple(params))
        except sqlite3.OperationalError as exc:
            if is_lock_error(exc):
                raise StoreContention(f"history store is busy: {self.db_path}") from exc
            raise

    def insert(self, event: CommandEvent) -> int:
        cur = self._write(
            """
            INSERT INTO commands(
                timestamp, exit_status, duration, command_text, working_dir,
                git_repo, git_branch, source_app, source_pid, source_active, starred
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.timestamp,
                event.exit_status,
                event.duration_ms,
                event.command_text,
                event.working_dir,
                event.git_repo,
                event.git_branch,
                event.source_app,
                event.source_pid,
                None if event.source_active is None else int(event.source_active),
                int(event.starred),
            ),
        )
        event_id = int(cur.lastrowid or 0)
        event.id = event_id
        return event_id

    def get(self, event_id: int) -> CommandEvent:
        row = self.conn.execute("SELECT * FROM commands WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            raise NotFound(f"event not found: {event_id}")
        return CommandEvent.from_row(row)

    def delete(self, ids: Iterable[int]) -> int:
        unique = sorted({int(i) for i in ids})
        if not unique:
            return 0
        placeholders = ",".join("?" for _ in unique)
        cur = self._write(f"DELETE FROM commands WHERE id IN ({placeholders})", unique)
        return int(cur.rowcount)

    def count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) AS n FROM commands").fetchone()
        return int(row["n"])

    def most_recent_id(self) -> int:
        row = self.conn.execute("SELECT MAX(id) AS max_id FROM commands").fetchone()
        if row is None or row["max_id"] is None:
            return 0
        return int(row["max_id"])

    def list(
        self,
        limit: int = 0,
        *,
        source_app: str | None = None,
        source_pid: int | None = None,
        working_dir: str | None = None,
    ) -> list[CommandEvent]:
        return self.list_in_range(
            0,
            0,
            limit,
            source_app=source_app,
            source_pid=source_pid,
            working_dir=working_dir,
        )

    def list_in_range(
        self,
        start_ts: int,
        end_ts: int,
        limit: int = 0,
        *,
        source_app: str | None = None,
        source_pid: int | None = None,
        working_dir: str | None = None,
        end_exclusive: bool = True,
    ) -> list[CommandEvent]:
        """Most recent ``limit`` events in the window, returned oldest first."""

        clauses: list[str] = []
        params: list[Any] = []
        if start_ts > 0:
            clauses.append("timestamp >= ?")
            params.append(start_ts)
        if end_ts > 0:
            clauses.append("timestamp < ?" if end_exclusive else "timestamp <= ?")
            params.append(end_ts)
        clause, session_params = session_clause(source_app, source_pid)
        clauses.append(clause)
        params.extend(session_params)
        if working_dir:
            clauses.append("working_dir = ?")
            params.append(working_dir)
        sql = f"SELECT * FROM commands{where_sql(clauses)} ORDER BY timestamp DESC, id DESC"
        if limit > 0:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [CommandEvent.from_row(row) for row in reversed(rows)]

    def range(
        self,
        first: int,
        last: int,
        *,
        pattern: str | None = None,
        session_pid: int | None = None,
    ) -> list[CommandEvent]:
        return store_search.range_events(
            self, first, last, pattern=pattern, session_pid=session_pid
        )

    def find_most_recent_matching(self, text: str) -> int:
        return store_search.find_most_recent_matching(self, text)

    def find_most_recent_matching_before(self, text: str, before_id: int) -> int:
        return store_search.find_most_recent_matching(self, text, before_id=before_id)

    def for_fzf(self, callback: Callable[[int, str], None]) -> None:
        store_search.for_fzf(self, callback)

    def with_context(
        self, event_id: int, window: int
    ) -> tuple[list[CommandEvent], CommandEvent, list[CommandEvent]]:
        return store_search.with_context(self, event_id, window)

    def recent_without_consecutive_duplicates(
        self,
        limit: int,
        *,
        source_app: str,
        source_pid: int,
        working_dir: str | None = None,
    ) -> list[str]:
        return store_search.recent_without_consecutive_duplicates(
            self, limit, source_app=source_app, source_pid=source_pid, working_dir=working_dir
        )

    def like_recent(
        self,
        prefix: str,
        *,
        include_shy: bool = False,
        exclude: str | None = None,
        limit: int = 1,
        working_dir: str | None = None,
        source_app: str | None = None,
        source_pid: int | None = None,
    ) -> list[str]:
        return store_search.like_recent(
            self,
            prefix,
            include_shy=include_shy,
            exclude=exclude,
            limit=limit,
            working_dir=working_dir,
            source_app=source_app,
            source_pid=source_pid,
        )

    def like_recent_after(
        self,
        prefix: str,
        prev: str,
        *,
        include_shy: bool = False,
        exclude: str | None = None,
        limit: int = 1,
    ) -> list[str]:
        return store_search.like_recent_after(
            self, prefix, prev, include_shy=include_shy, exclude=exclude, limit=limit
        )

    def close_session(self, source_pid: int) -> int:
        cur = self._write(
            "UPDATE commands SET source_active = 0 WHERE source_pid = ? AND source_active = 1",
            (source_pid,),
        )
        closed = int(cur.rowcount)
        logger.debug("closed session pid=%s rows=%s", source_pid, closed)
        return closed

    def _set_starred(self, event_id: int, starred: bool) -> None:
        cur = self._write(
            "UPDATE commands SET starred = ? WHERE id = ?", (int(starred), event_id)
        )
        if cur.rowcount == 0:
            raise NotFound(f"event not found: {event_id}")

    def star(self, event_id: int) -> None:
        self._set_starred(event_id, True)

    def unstar(self, event_id: int) -> None:
        self._set_starred(event_id, False)

    def is_starred(self, event_id: int) -> bool:
        return self.get(event_id).starred

    def list_starred(
        self,
        *,
        source_app: str | None = None,
        source_pid: int | None = None,
        working_dir: str | None = None,
    ) -> list[CommandEvent]:
        clauses = ["starred = 1"]
        params: list[Any] = []
        clause, session_params = session_clause(source_app, source_pid)
        clauses.append(clause)
        params.extend(session_params)
        if working_dir:
            clauses.append("working_dir = ?")
            params.append(working_dir)
        rows = self.conn.execute(
            f"SELECT * FROM commands{where_sql(clauses)} ORDER BY id ASC", params
        ).fetchall()
        return [CommandEvent.from_row(row) for row in rows]

    def context_summary(self, start_ts: int, end_ts: int) -> list[ContextSummary]:
        return store_summary.context_summary(self, start_ts, end_ts)
