from __future__ import annotations

import json
import multiprocessing
from pathlib import Path

import pytest

from spcstr.state.atomic import AtomicWriter
from spcstr.state.errors import (
    CorruptedStateError,
    InvalidOperationError,
    InvalidSessionIDError,
    SessionNotFoundError,
)
from spcstr.state.manager import StateManager
from spcstr.state.models import FileOperation, SessionState


def read_raw(manager: StateManager, session_id: str) -> dict:
    return json.loads(manager.session_path(session_id).read_text(encoding="utf-8"))


def test_initialize_state_writes_zero_value_document(manager: StateManager):
    state = manager.initialize_state("s1")

    raw = read_raw(manager, "s1")
    assert raw["session_id"] == "s1"
    assert raw["session_active"] is True
    assert raw["agents"] == [] and raw["agents_history"] == []
    assert raw["files"] == {"new": [], "edited": [], "read": []}
    assert raw["tools_used"] == {}
    assert raw["todos"]["recent"] == []
    assert raw["updated_at"] >= raw["created_at"]
    assert state.session_id == "s1"
    assert manager.session_path("s1") == manager.base_path / "sessions" / "s1" / "state.json"


@pytest.mark.parametrize("session_id", ["", "   ", "a/b", "..", ".", "a\\b"])
def test_invalid_session_ids_are_rejected(manager: StateManager, session_id: str):
    with pytest.raises(InvalidSessionIDError):
        manager.initialize_state(session_id)


def test_initialize_resets_existing_state(manager: StateManager):
    manager.initialize_state("s1")
    manager.add_agent("s1", "reviewer")
    state = manager.initialize_state("s1")
    assert state.agents == []
    assert manager.load_state("s1").agents_history == []


def test_load_missing_session_raises_not_found(manager: StateManager):
    with pytest.raises(SessionNotFoundError):
        manager.load_state("missing")


def test_update_on_missing_session_does_not_create_directories(manager: StateManager):
    with pytest.raises(SessionNotFoundError):
        manager.increment_tool_usage("missing", "Read")
    assert not (manager.sessions_dir / "missing").exists()


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"created_at": "x"}'])
def test_load_corrupted_state_raises(manager: StateManager, content: str):
    manager.initialize_state("s1")
    manager.session_path("s1").write_text(content, encoding="utf-8")
    with pytest.raises(CorruptedStateError):
        manager.load_state("s1")


def test_update_state_recovers_from_corruption(manager: StateManager):
    manager.initialize_state("s1")
    manager.session_path("s1").write_text("{garbage", encoding="utf-8")

    state = manager.increment_tool_usage("s1", "Read")

    assert state.tools_used == {"Read": 1}
    assert state.errors[0].source == "recovery"
    assert state.errors[0].severity == "warning"
    backups = list(manager.session_dir("s1").glob("state.json.corrupted.*"))
    assert len(backups) == 1
    assert backups[0].read_text(encoding="utf-8") == "{garbage"
    assert backups[0].name in state.errors[0].message


def test_recover_state_uses_unique_backup_names(manager: StateManager):
    manager.initialize_state("s1")
    manager.recover_state("s1")
    manager.recover_state("s1")
    backups = sorted(p.name for p in manager.session_dir("s1").glob("state.json.corrupted.*"))
    assert len(backups) == 2
    assert backups[0] != backups[1]


def test_raising_mutation_leaves_file_untouched(manager: StateManager):
    manager.initialize_state("s1")
    before = manager.session_path("s1").read_text(encoding="utf-8")

    def boom(state: SessionState) -> None:
        state.increment_tool("Bash")
        raise RuntimeError("nope")

    with pytest.raises(RuntimeError):
        manager.update_state("s1", boom)

    assert manager.session_path("s1").read_text(encoding="utf-8") == before
    assert not (manager.session_dir("s1") / "state.lock").exists()


def test_agent_lifecycle(manager: StateManager):
    manager.initialize_state("s1")
    manager.add_agent("s1", "reviewer")
    manager.add_agent("s1", "reviewer")
    state = manager.load_state("s1")
    assert state.agents == ["reviewer"]
    assert len(state.agents_history) == 1

    state = manager.complete_agent("s1", "reviewer")
    assert state.agents == []
    assert state.agents_history[0].completed_at is not None
    assert state.agents_history[0].completed_at >= state.agents_history[0].started_at

    state = manager.complete_agent("s1", "ghost")
    assert len(state.agents_history) == 1


def test_record_file_operation_dedupes_within_category_only(manager: StateManager):
    manager.initialize_state("s1")
    manager.record_file_operation("s1", "a.py", "new")
    manager.record_file_operation("s1", "a.py", FileOperation.NEW)
    manager.record_file_operation("s1", "a.py", "edited")
    state = manager.record_file_operation("s1", "b.py", "read")

    assert state.files.new == ["a.py"]
    assert state.files.edited == ["a.py"]
    assert state.files.read == ["b.py"]


def test_record_file_operation_rejects_unknown_operation(manager: StateManager):
    manager.initialize_state("s1")
    before = manager.session_path("s1").read_text(encoding="utf-8")
    with pytest.raises(InvalidOperationError):
        manager.record_file_operation("s1", "a.py", "deleted")
    assert manager.session_path("s1").read_text(encoding="utf-8") == before


def test_update_todos_counts_and_keeps_five_recent(manager: StateManager):
    manager.initialize_state("s1")
    todos = [{"content": f"t{i}", "status": "pending", "activeForm": f"doing t{i}"} for i in range(5)]
    todos += [{"content": "t5", "status": "in_progress"}, {"content": "t6", "status": "completed"}]

    state = manager.update_todos("s1", todos)

    assert (state.todos.total, state.todos.pending, state.todos.in_progress, state.todos.completed) == (7, 5, 1, 1)
    assert [t.content for t in state.todos.recent] == ["t0", "t1", "t2", "t3", "t4"]
    assert state.todos.last_updated


def test_end_session_closes_open_agents(manager: StateManager):
    manager.initialize_state("s1")
    manager.add_agent("s1", "a")
    manager.add_agent("s1", "b")
    state = manager.end_session("s1")
    assert state.session_active is False
    assert state.agents == []
    assert all(run.completed_at for run in state.agents_history)


def test_list_delete_and_exists(manager: StateManager):
    assert manager.list_sessions() == []
    manager.initialize_state("b")
    manager.initialize_state("a")
    assert manager.list_sessions() == ["a", "b"]
    assert manager.session_exists("a")

    manager.delete_state("a")
    assert manager.list_sessions() == ["b"]
    assert not manager.session_dir("a").exists()
    with pytest.raises(SessionNotFoundError):
        manager.delete_state("a")


def test_record_error_appends(manager: StateManager):
    manager.initialize_state("s1")
    manager.record_error("s1", "first", "pre_tool_use")
    state = manager.record_error("s1", "second", "executor", "critical")
    assert [(e.message, e.severity) for e in state.errors] == [("first", "error"), ("second", "critical")]


def test_unsynchronized_read_modify_write_loses_updates(manager: StateManager):
    """Two writers that each load, mutate and save without the lock lose one update."""
    manager.initialize_state("s1")
    writer = AtomicWriter()
    path = manager.session_path("s1")

    first = manager.load_state("s1")
    second = manager.load_state("s1")
    first.increment_tool("Read")
    second.increment_tool("Write")
    writer.write_json(path, first.to_dict())
    writer.write_json(path, second.to_dict())

    assert manager.load_state("s1").tools_used == {"Write": 1}


def _bump_counter(base_path: str, iterations: int) -> None:
    manager = StateManager(base_path, lock_timeout=30.0)
    for _ in range(iterations):
        manager.increment_tool_usage("shared", "Bash")


def test_locked_updates_from_many_processes_are_not_lost(manager: StateManager):
    manager.initialize_state("shared")
    ctx = multiprocessing.get_context("spawn")
    workers = [ctx.Process(target=_bump_counter, args=(str(manager.base_path), 10)) for _ in range(4)]
    for proc in workers:
        proc.start()
    for proc in workers:
        proc.join(timeout=120)
        assert proc.exitcode == 0

    assert manager.load_state("shared").tools_used == {"Bash": 40}
