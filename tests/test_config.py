from __future__ import annotations

import json
from pathlib import Path

from spcstr.config import SpcstrConfig, config_path, load_config, save_config
from spcstr.state.manager import StateManager


def test_missing_config_gives_defaults(tmp_path: Path):
    config = load_config(tmp_path)
    assert config == SpcstrConfig()
    assert config.audit.enabled is True
    assert config.safety.blocked_commands == []


def test_partial_config_fills_defaults(project_dir: Path):
    config_path(project_dir).write_text(
        json.dumps({"state": {"lock_timeout": 1.5}, "safety": {"blocked_commands": ["shutdown"]}}),
        encoding="utf-8",
    )
    config = load_config(project_dir)
    assert config.state.lock_timeout == 1.5
    assert config.state.timeout == 5.0
    assert config.safety.blocked_commands == ["shutdown"]


def test_corrupt_config_is_backed_up(project_dir: Path, capsys):
    path = config_path(project_dir)
    path.write_text("{oops", encoding="utf-8")

    assert load_config(project_dir) == SpcstrConfig()
    assert not path.exists()
    assert (path.parent / "config.bad.json").read_text(encoding="utf-8") == "{oops"
    assert "config.bad.json" in capsys.readouterr().err


def test_unreadable_config_falls_back_to_defaults(project_dir: Path, capsys):
    path = config_path(project_dir)
    path.mkdir()

    assert load_config(project_dir) == SpcstrConfig()
    assert path.is_dir()
    assert "using defaults" in capsys.readouterr().err


def test_save_and_manager_timeouts(project_dir: Path):
    config = SpcstrConfig()
    config.state.lock_timeout = 0.25
    config.state.stale_lock_timeout = 9.0
    save_config(project_dir, config)

    loaded = load_config(project_dir)
    manager = StateManager.for_project(project_dir, loaded)
    assert manager.lock_timeout == 0.25
    assert manager.stale_lock_timeout == 9.0
    assert manager.base_path == project_dir / ".spcstr"
