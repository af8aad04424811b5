from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .types import CommandEvent
from .utils import escape_like, glob_to_like, session_clause, where_sql

if TYPE_CHECKING:
    from ._store import HistoryStore

# Rows scanned per source when collapsing consecutive repeats.
RECENT_FETCH_MIN = 100
RECENT_FETCH_MAX = 10_000

_SHY_EXCLUDE = "command_text NOT LIKE 'shy %' AND command_text != 'shy'"

# Prefix matches inspected when looking for a preceding command.
LIKE_RECENT_AFTER_WINDOW = 200


def range_events(
    store: HistoryStore,
    first: int,
    last: int,
    *,
    pattern: str | None = None,
    session_pid: int | None = None,
) -> list[CommandEvent]:
    if first > last:
        return []
    inner: list[str] = ["id BETWEEN ? AND ?"]
    params: list[Any] = [first, last]
    if pattern:
        inner.append("command_text LIKE ? ESCAPE '\\'")
        params.append(glob_to_like(pattern))
    if session_pid is not None:
        inner.append("source_pid = ? AND source_active = 1")
        params.append(session_pid)
    rows = store.conn.execute(
        f"""
        SELECT * FROM commands
        WHERE id IN (
            SELECT MAX(id) FROM commands{where_sql(inner)}
            GROUP BY command_text
        )
        ORDER BY id ASC
        """,
        params,
    ).fetchall()
    return [CommandEvent.from_row(row) for row in rows]


def find_most_recent_matching(
    store: HistoryStore, text: str, *, before_id: int | None = None
) -> int:
    clauses = ["command_text LIKE ? ESCAPE '\\'"]
    params: list[Any] = [f"%{escape_like(text)}%"]
    if before_id is not None:
        clauses.append("id <= ?")
        params.append(before_id)
    row = store.conn.execute(
        f"SELECT id FROM commands{where_sql(clauses)} ORDER BY id DESC LIMIT 1",
        params,
    ).fetchone()
    return int(row["id"]) if row else 0


def for_fzf(store: HistoryStore, callback: Callable[[int, str], None]) -> None:
    cursor = store.conn.execute(
        """
        SELECT id, command_text FROM commands
        WHERE id IN (SELECT MAX(id) FROM commands GROUP BY command_text)
        ORDER BY id DESC
        """
    )
    try:
        for row in cursor:
            callback(int(row["id"]), str(row["command_text"]))
    finally:
        cursor.close()


def with_context(
    store: HistoryStore, event_id: int, window: int
) -> tuple[list[CommandEvent], CommandEvent, list[CommandEvent]]:
    target = store.get(event_id)
    window = max(0, window)
    before_rows = store.conn.execute(
        "SELECT * FROM commands WHERE id < ? ORDER BY id DESC LIMIT ?",
        (event_id, window),
    ).fetchall()
    after_rows = store.conn.execute(
        "SELECT * FROM commands WHERE id > ? ORDER BY id ASC LIMIT ?",
        (event_id, window),
    ).fetchall()
    before = [CommandEvent.from_row(row) for row in reversed(before_rows)]
    after = [CommandEvent.from_row(row) for row in after_rows]
    return before, target, after


def _collapse_consecutive(texts: list[str], limit: int) -> list[str]:
    collapsed: list[str] = []
    prev: str | None = None
    for text in texts:
        if text != prev:
            collapsed.append(text)
            if len(collapsed) >= limit:
                break
        prev = text
    return collapsed


def _recent_texts(store: HistoryStore, clause: str, params: list[Any], fetch: int) -> list[str]:
    rows = store.conn.execute(
        f"SELECT command_text FROM commands WHERE {clause} "
        "ORDER BY timestamp DESC, id DESC LIMIT ?",
        [*params, fetch],
    ).fetchall()
    return [str(row["command_text"]) for row in rows]


def recent_without_consecutive_duplicates(
    store: HistoryStore,
    limit: int,
    *,
    source_app: str,
    source_pid: int,
    working_dir: str | None = None,
) -> list[str]:
    """Most recent commands first, consecutive repeats collapsed.

    The session's own commands come first; when the session is short the list
    is padded with recent commands from ``working_dir``.
    """

    if limit <= 0:
        return []
    fetch = min(max(limit * 10, RECENT_FETCH_MIN), RECENT_FETCH_MAX)
    clause, params = session_clause(source_app, source_pid)
    combined = _collapse_consecutive(_recent_texts(store, clause, params, fetch), limit)
    if len(combined) >= limit or not working_dir:
        return combined
    directory = _collapse_consecutive(
        _recent_texts(store, "working_dir = ?", [working_dir], fetch), limit
    )
    combined.extend(directory[: limit - len(combined)])
    return combined


def _prefix_filters(
    prefix: str, include_shy: bool, exclude: str | None
) -> tuple[list[str], list[Any]]:
    clauses = ["command_text LIKE ? ESCAPE '\\'"]
    params: list[Any] = [f"{escape_like(prefix)}%"]
    if not include_shy:
        clauses.append(_SHY_EXCLUDE)
    if exclude:
        clauses.append("command_text NOT LIKE ? ESCAPE '\\'")
        params.append(glob_to_like(exclude))
    return clauses, params


def like_recent(
    store: HistoryStore,
    prefix: str,
    *,
    include_shy: bool = False,
    exclude: str | None = None,
    limit: int = 1,
    working_dir: str | None = None,
    source_app: str | None = None,
    source_pid: int | None = None,
) -> list[str]:
    """Newest commands starting with ``prefix`` from the narrowest scope that has any.

    Scopes are tried in order: the session (in ``working_dir`` when given), the
    directory, then all history. ``limit`` 0 returns every match of the scope.
    """

    base, base_params = _prefix_filters(prefix, include_shy, exclude)

    scopes: list[tuple[list[str], list[Any]]] = []
    if source_app and source_pid:
        clause, params = session_clause(source_app, source_pid)
        scope = [clause]
        if working_dir:
            scope.append("working_dir = ?")
            params = [*params, working_dir]
        scopes.append((scope, params))
    elif working_dir:
        scopes.append((["working_dir = ?"], [working_dir]))
    scopes.append(([], []))

    for extra, params in scopes:
        sql = (
            f"SELECT command_text FROM commands{where_sql(base + extra)} "
            "ORDER BY timestamp DESC, id DESC"
        )
        args = [*base_params, *params]
        if limit > 0:
            sql += " LIMIT ?"
            args.append(limit)
        rows = store.conn.execute(sql, args).fetchall()
        if rows:
            return [str(row["command_text"]) for row in rows]
    return []


def like_recent_after(
    store: HistoryStore,
    prefix: str,
    prev: str,
    *,
    include_shy: bool = False,
    exclude: str | None = None,
    limit: int = 1,
) -> list[str]:
    """Recent commands starting with ``prefix`` that were run right after ``prev``.

    Only the newest ``LIKE_RECENT_AFTER_WINDOW`` prefix matches are considered;
    "right after" means the event with the previous id.
    """

    if not prev:
        return []
    clauses, params = _prefix_filters(prefix, include_shy, exclude)
    sql = f"""
        WITH recent AS (
            SELECT id, command_text, timestamp FROM commands{where_sql(clauses)}
            ORDER BY timestamp DESC, id DESC
            LIMIT ?
        )
        SELECT recent.command_text FROM recent
        JOIN commands AS prev ON prev.id = recent.id - 1
        WHERE prev.command_text = ?
        ORDER BY recent.timestamp DESC, recent.id DESC
    """
    args = [*params, LIKE_RECENT_AFTER_WINDOW, prev]
    if limit > 0:
        sql += " LIMIT ?"
        args.append(limit)
    rows = store.conn.execute(sql, args).fetchall()
    return [str(row["command_text"]) for row in rows]
