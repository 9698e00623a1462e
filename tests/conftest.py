from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from spcstr.state.manager import StateManager  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_telemetry(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep telemetry out of the working tree."""
    log_path = tmp_path / "telemetry" / "debug.log"
    monkeypatch.setenv("SPCSTR_LOG_PATH", str(log_path))
    monkeypatch.delenv("SPCSTR_LOG_LEVEL", raising=False)
    monkeypatch.delenv("CLAUDE_PROJECT_DIR", raising=False)
    return log_path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """An initialized project: .spcstr/sessions and .spcstr/logs exist."""
    root = tmp_path / "project"
    (root / ".spcstr" / "sessions").mkdir(parents=True)
    (root / ".spcstr" / "logs").mkdir(parents=True)
    return root


@pytest.fixture
def manager(project_dir: Path) -> StateManager:
    return StateManager.for_project(project_dir)
