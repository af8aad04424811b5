from __future__ import annotations

from typing import Any

LIKE_ESCAPE = "\\"


def escape_like(text: str) -> str:
    """Escape LIKE metacharacters so ``text`` matches literally with ``ESCAPE '\\'``."""

    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def glob_to_like(pattern: str) -> str:
    """Translate a shell glob (``*`` and ``?``) into a LIKE pattern."""

    return escape_like(pattern).replace("*", "%").replace("?", "_")


def session_clause(
    source_app: str | None, source_pid: int | None
) -> tuple[str, list[Any]]:
    if source_app is None and source_pid is None:
        return "", []
    clauses: list[str] = []
    params: list[Any] = []
    if source_app is not None:
        clauses.append("source_app = ?")
        params.append(source_app)
    if source_pid is not None:
        clauses.append("source_pid = ?")
        clauses.append("source_active = 1")
        params.append(source_pid)
    return "(" + " AND ".join(clauses) + ")", params


def where_sql(clauses: list[str]) -> str:
    parts = [clause for clause in clauses if clause]
    if not parts:
        return ""
    return " WHERE " + " AND ".join(parts)
