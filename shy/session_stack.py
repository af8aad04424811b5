from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from .config import ShyConfig, load_config
from .errors import InvalidArgument, StackUnderflow
from .fs_paths import normalize_store_path
from .store import HistoryStore

logger = logging.getLogger(__name__)

DEFAULT_STORE = ""


class SessionRouter:
    """Per-session stack of history store paths, one text file per session id.

    Each file lists absolute store paths, bottom of the stack first and the
    active store on the last line.
    """

    def __init__(self, sessions_dir: Path | str):
        self.sessions_dir = Path(sessions_dir).expanduser()

    def stack_file(self, session_id: int | str) -> Path:
        return self.sessions_dir / f"{session_id}.txt"

    def _read(self, session_id: int | str) -> list[str] | None:
        path = self.stack_file(session_id)
        try:
            raw = path.read_text()
        except FileNotFoundError:
            return None
        return [line.strip() for line in raw.splitlines() if line.strip()]

    def _write(self, session_id: int | str, entries: list[str]) -> None:
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        target = self.stack_file(session_id)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=self.sessions_dir)
        try:
            with os.fdopen(fd, "w") as handle:
                handle.write("".join(f"{entry}\n" for entry in entries))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def push(self, session_id: int | str, path: str | Path) -> str:
        if not str(path).strip():
            raise InvalidArgument("database path cannot be empty")
        resolved = normalize_store_path(str(path).strip())
        if resolved.is_dir():
            raise InvalidArgument(f"{resolved} is a directory")
        # Opening the store creates the file and schema.
        HistoryStore(resolved).close()
        entries = self._read(session_id) or []
        entries.append(str(resolved))
        self._write(session_id, entries)
        logger.info("session %s pushed %s (depth %s)", session_id, resolved, len(entries))
        return str(resolved)

    def pop(self, session_id: int | str) -> str:
        entries = self._read(session_id)
        if entries is None:
            raise StackUnderflow("no previous database")
        if not entries:
            raise StackUnderflow("cannot pop default database")
        popped = entries.pop()
        self._write(session_id, entries)
        logger.info("session %s popped %s", session_id, popped)
        return entries[-1] if entries else DEFAULT_STORE

    def current(self, session_id: int | str) -> str:
        entries = self._read(session_id)
        if not entries:
            return DEFAULT_STORE
        return entries[-1]

    def stack(self, session_id: int | str) -> list[str]:
        return self._read(session_id) or []

    def cleanup(self, session_id: int | str) -> bool:
        path = self.stack_file(session_id)
        existed = path.exists()
        path.unlink(missing_ok=True)
        if existed:
            logger.debug("removed session stack %s", path)
        return existed


def router(cfg: ShyConfig | None = None) -> SessionRouter:
    return SessionRouter((cfg or load_config()).sessions_dir)


def push(session_id: int | str, path: str | Path) -> str:
    return router().push(session_id, path)


def pop(session_id: int | str) -> str:
    return router().pop(session_id)


def current(session_id: int | str) -> str:
    return router().current(session_id)


def cleanup(session_id: int | str) -> bool:
    return router().cleanup(session_id)


def resolve_db_path(
    explicit: str | Path | None,
    session_id: int | str | None,
    cfg: ShyConfig | None = None,
) -> Path:
    """Pick the store for this invocation: explicit path, then session stack, then default."""

    cfg = cfg or load_config()
    if explicit:
        return Path(explicit).expanduser()
    if session_id is not None:
        top = SessionRouter(cfg.sessions_dir).current(session_id)
        if top:
            return Path(top)
    return Path(cfg.db_path)
