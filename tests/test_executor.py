from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from spcstr.config import AuditConfig, SpcstrConfig, save_config
from spcstr.hooks.errors import BlockedOperationError, HookNotFoundError, HookValidationError, InvalidProjectError
from spcstr.hooks.executor import execute_hook
from spcstr.hooks.handlers import register_default_handlers
from spcstr.hooks.registry import HookRegistry
from spcstr.state.manager import StateManager


@pytest.fixture
def registry() -> HookRegistry:
    # No injected manager: handlers resolve the project from the working directory.
    return register_default_handlers(HookRegistry())


def payload(**fields) -> bytes:
    return json.dumps(fields).encode("utf-8")


def audit_entries(project_dir: Path, hook: str) -> list:
    return json.loads((project_dir / ".spcstr" / "logs" / f"{hook}.json").read_text(encoding="utf-8"))


def test_uninitialized_project_is_rejected(tmp_path: Path, registry: HookRegistry):
    with pytest.raises(InvalidProjectError):
        execute_hook("session_start", tmp_path, payload(session_id="s1", source="startup"), registry=registry)
    assert not (tmp_path / ".spcstr").exists()


def test_success_writes_state_and_audit_and_restores_cwd(project_dir: Path, registry: HookRegistry):
    cwd = os.getcwd()
    execute_hook("session_start", project_dir, payload(session_id="s1", source="startup"), registry=registry)

    assert os.getcwd() == cwd
    assert StateManager.for_project(project_dir).load_state("s1").session_active is True
    entries = audit_entries(project_dir, "session_start")
    assert len(entries) == 1
    assert entries[0]["session_id"] == "s1"
    assert entries[0]["hook_name"] == "session_start"
    assert entries[0]["success"] is True
    assert entries[0]["input_data"] == {"session_id": "s1", "source": "startup"}


def test_failure_is_audited_and_reraised(project_dir: Path, registry: HookRegistry):
    cwd = os.getcwd()
    with pytest.raises(HookValidationError):
        execute_hook("session_start", project_dir, b"{broken", registry=registry)

    assert os.getcwd() == cwd
    entries = audit_entries(project_dir, "session_start")
    assert entries[0]["success"] is False
    assert entries[0]["session_id"] == ""
    assert entries[0]["input_data"] == "{broken"


def test_unreadable_config_still_runs_and_audits(project_dir: Path, registry: HookRegistry):
    (project_dir / ".spcstr" / "config.json").mkdir()
    execute_hook("session_start", project_dir, payload(session_id="s1", source="startup"), registry=registry)

    assert StateManager.for_project(project_dir).session_exists("s1")
    assert audit_entries(project_dir, "session_start")[0]["success"] is True


def test_unknown_hook_raises_not_found(project_dir: Path, registry: HookRegistry):
    with pytest.raises(HookNotFoundError):
        execute_hook("bogus", project_dir, payload(session_id="s1"), registry=registry)


def test_blocked_operation_records_critical_error(project_dir: Path, registry: HookRegistry):
    execute_hook("session_start", project_dir, payload(session_id="s1", source="startup"), registry=registry)
    with pytest.raises(BlockedOperationError):
        execute_hook(
            "pre_tool_use",
            project_dir,
            payload(session_id="s1", tool_name="Bash", tool_input={"command": "mkfs /dev/sda1"}),
            registry=registry,
        )

    state = StateManager.for_project(project_dir).load_state("s1")
    assert "Bash" not in state.tools_used
    assert state.errors[-1].severity == "critical"
    assert state.errors[-1].source == "pre_tool_use"
    assert audit_entries(project_dir, "pre_tool_use")[-1]["success"] is False


def test_audit_disabled_by_config(project_dir: Path, registry: HookRegistry):
    save_config(project_dir, SpcstrConfig(audit=AuditConfig(enabled=False)))
    execute_hook("session_start", project_dir, payload(session_id="s1", source="startup"), registry=registry)
    assert not (project_dir / ".spcstr" / "logs" / "session_start.json").exists()


def test_audit_failure_only_warns(project_dir: Path, registry: HookRegistry, capsys):
    # A directory where the audit file should be makes the write fail.
    (project_dir / ".spcstr" / "logs" / "session_start.json").mkdir()
    execute_hook("session_start", project_dir, payload(session_id="s1", source="startup"), registry=registry)

    assert StateManager.for_project(project_dir).session_exists("s1")
    assert "failed to write audit log" in capsys.readouterr().err


def test_default_registry_is_populated(project_dir: Path):
    execute_hook("session_start", project_dir, payload(session_id="s9", source="startup"))
    assert StateManager.for_project(project_dir).session_exists("s9")
