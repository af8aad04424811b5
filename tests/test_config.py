import json
from pathlib import Path

import pytest

from shy.config import (
    ShyConfig,
    get_config_path,
    get_env_overrides,
    load_config,
    read_config_file,
)


def test_read_config_file_rejects_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("{not-json}")
    with pytest.raises(ValueError, match="invalid config json"):
        read_config_file(config_path)


def test_read_config_file_requires_object(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="config must be a JSON object"):
        read_config_file(config_path)


def test_read_config_file_missing_or_blank(tmp_path: Path) -> None:
    assert read_config_file(tmp_path / "missing.json") == {}
    blank = tmp_path / "blank.json"
    blank.write_text("  \n")
    assert read_config_file(blank) == {}


def test_get_config_path_uses_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHY_CONFIG", str(tmp_path / "alt.json"))
    assert get_config_path() == tmp_path / "alt.json"
    assert get_config_path(tmp_path / "explicit.json") == tmp_path / "explicit.json"


def test_defaults_follow_xdg_dirs(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "missing.json")

    home = tmp_path / "home"
    assert cfg.db_path == home / ".local" / "share" / "shy" / "history.db"
    assert cfg.sessions_dir == home / ".cache" / "shy" / "sessions"
    assert cfg.hook_log == home / ".local" / "state" / "shy" / "hook.log"
    assert cfg.busy_timeout_ms == 5000
    assert cfg.list_default_count == 16
    assert cfg.context_window == 5


def test_load_config_file_then_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps(
            {"db_path": str(tmp_path / "from-file.db"), "list_default_count": 8, "unknown": 1}
        )
    )
    monkeypatch.setenv("SHY_LIST_DEFAULT_COUNT", "25")

    cfg = load_config(config_path)

    assert cfg.db_path == tmp_path / "from-file.db"
    assert cfg.list_default_count == 25
    assert not hasattr(cfg, "unknown")


def test_invalid_int_env_warns(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHY_BUSY_TIMEOUT_MS", "soon")

    with pytest.warns(RuntimeWarning, match="busy_timeout_ms"):
        cfg = load_config(tmp_path / "missing.json")

    assert cfg.busy_timeout_ms == 5000


def test_empty_hook_log_disables_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHY_HOOK_LOG", "")

    assert load_config(tmp_path / "missing.json").hook_log is None


def test_env_overrides_only_include_set_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHY_EDITOR", "nano")

    assert get_env_overrides() == {"editor": "nano"}


def test_resolved_editor_order(monkeypatch: pytest.MonkeyPatch) -> None:
    assert ShyConfig().resolved_editor() == "vi"
    monkeypatch.setenv("EDITOR", "emacs")
    assert ShyConfig().resolved_editor() == "emacs"
    monkeypatch.setenv("FCEDIT", "ed")
    assert ShyConfig().resolved_editor() == "ed"
    assert ShyConfig(editor="nano").resolved_editor() == "nano"


def test_load_config_warns_on_invalid_json(tmp_path: Path) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text('{"list_default_count": 30,')

    with pytest.warns(RuntimeWarning, match="invalid config json"):
        cfg = load_config(config_path)

    assert cfg.list_default_count == 16
