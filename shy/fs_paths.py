from __future__ import annotations

import os
from pathlib import Path


def _xdg_dir(env_var: str, fallback: str) -> Path:
    value = os.getenv(env_var)
    if value:
        return Path(value).expanduser()
    return Path.home() / fallback


def default_db_path() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local/share") / "shy" / "history.db"


def default_sessions_dir() -> Path:
    return _xdg_dir("XDG_CACHE_HOME", ".cache") / "shy" / "sessions"


def default_hook_log() -> Path:
    return _xdg_dir("XDG_STATE_HOME", ".local/state") / "shy" / "hook.log"


def normalize_store_path(path: str | Path, *, cwd: str | Path | None = None) -> Path:
    """Expand ``~``, anchor relative paths at ``cwd`` and default the suffix to ``.db``."""

    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = Path(cwd or os.getcwd()) / candidate
    if not candidate.suffix:
        candidate = candidate.with_name(candidate.name + ".db")
    return Path(os.path.normpath(candidate))
