from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .fs_paths import default_db_path, default_hook_log, default_sessions_dir

DEFAULT_CONFIG_PATH = Path("~/.config/shy/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "SHY_DB_PATH",
    "sessions_dir": "SHY_SESSIONS_DIR",
    "busy_timeout_ms": "SHY_BUSY_TIMEOUT_MS",
    "list_default_count": "SHY_LIST_DEFAULT_COUNT",
    "context_window": "SHY_CONTEXT_WINDOW",
    "hook_log": "SHY_HOOK_LOG",
    "editor": "SHY_EDITOR",
}

_INT_KEYS = {"busy_timeout_ms", "list_default_count", "context_window"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("SHY_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    """The config object, or an empty dict when the file is missing or blank."""

    config_path = get_config_path(path)
    try:
        raw = config_path.read_text()
    except FileNotFoundError:
        return {}
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid config json (line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be a JSON object")
    return data


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class ShyConfig:
    db_path: Path = field(default_factory=default_db_path)
    sessions_dir: Path = field(default_factory=default_sessions_dir)
    busy_timeout_ms: int = 5000
    list_default_count: int = 16
    context_window: int = 5
    hook_log: Path | None = field(default_factory=default_hook_log)
    editor: str | None = None

    def resolved_editor(self) -> str:
        return self.editor or os.getenv("FCEDIT") or os.getenv("EDITOR") or "vi"


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _coerce_path(value: object, default: Path | None, *, key: str) -> Path | None:
    if value is None:
        return default
    if isinstance(value, (str, Path)):
        text = str(value).strip()
        return Path(text).expanduser() if text else None
    warnings.warn(f"Invalid path for {key}: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> ShyConfig:
    cfg = ShyConfig()
    try:
        data = read_config_file(path)
    except ValueError as exc:
        warnings.warn(
            f"Ignoring config file {get_config_path(path)}: {exc}", RuntimeWarning, stacklevel=2
        )
        data = {}
    cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: ShyConfig, data: dict[str, Any]) -> ShyConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in {"db_path", "sessions_dir"}:
            parsed = _coerce_path(value, getattr(cfg, key), key=key)
            if parsed is not None:
                setattr(cfg, key, parsed)
            continue
        if key == "hook_log":
            # An empty string disables the hook log file.
            cfg.hook_log = _coerce_path(value, cfg.hook_log, key=key)
            continue
        setattr(cfg, key, value or None)
    return cfg
