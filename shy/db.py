from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from .errors import SchemaError
from .fs_paths import default_db_path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = default_db_path()
DEFAULT_BUSY_TIMEOUT_MS = 5000
SCHEMA_VERSION = 3


def connect(
    db_path: Path | str,
    *,
    busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
    check_same_thread: bool = True,
) -> sqlite3.Connection:
    path = Path(db_path).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SchemaError(f"cannot create directory for {path}: {exc}") from exc
    try:
        conn = sqlite3.connect(
            path, timeout=busy_timeout_ms / 1000, check_same_thread=check_same_thread
        )
    except sqlite3.Error as exc:
        raise SchemaError(f"cannot open database {path}: {exc}") from exc
    conn.row_factory = sqlite3.Row
    try:
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode = DELETE")
        conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.Error as exc:
        conn.close()
        raise SchemaError(f"cannot open database {path}: {exc}") from exc
    return conn


def _schema_user_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    if row is None:
        return 0
    return int(row[0])


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    ).fetchone()
    return row is not None


def initialize_schema(conn: sqlite3.Connection) -> bool:
    """Create or migrate the schema. Returns True when the table was created."""

    try:
        return _initialize_schema(conn)
    except sqlite3.Error as exc:
        raise SchemaError(f"cannot initialize schema: {exc}") from exc


def _initialize_schema(conn: sqlite3.Connection) -> bool:
    version = _schema_user_version(conn)
    if version >= SCHEMA_VERSION and _table_exists(conn, "commands"):
        return False
    created = not _table_exists(conn, "commands")
    if created:
        logger.info("creating commands table")
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS commands (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp INTEGER NOT NULL,
            exit_status INTEGER NOT NULL,
            duration INTEGER,
            command_text TEXT NOT NULL,
            working_dir TEXT NOT NULL,
            git_repo TEXT,
            git_branch TEXT,
            source_app TEXT,
            source_pid INTEGER,
            source_active INTEGER DEFAULT 1,
            starred INTEGER NOT NULL DEFAULT 0
        );
        """
    )
    # Older stores predate duration, session tracking and stars.
    _ensure_column(conn, "commands", "duration", "INTEGER")
    _ensure_column(conn, "commands", "source_app", "TEXT")
    _ensure_column(conn, "commands", "source_pid", "INTEGER")
    _ensure_column(conn, "commands", "source_active", "INTEGER DEFAULT 1")
    _ensure_column(conn, "commands", "starred", "INTEGER NOT NULL DEFAULT 0")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_timestamp_desc ON commands(timestamp DESC)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_command_text_like ON commands(command_text COLLATE NOCASE)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_command_text ON commands(command_text, id)")
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_source_desc
        ON commands(source_pid, source_app, timestamp DESC)
        WHERE source_active = 1
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_starred ON commands(starred) WHERE starred = 1")
    if version != SCHEMA_VERSION:
        logger.debug("schema user_version %s -> %s", version, SCHEMA_VERSION)
    conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()
    return created


def _ensure_column(conn: sqlite3.Connection, table: str, column: str, column_type: str) -> None:
    existing = {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}
    if column in existing:
        return
    logger.info("adding column %s.%s", table, column)
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
