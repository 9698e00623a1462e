from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from spcstr.hooks.audit import HookAuditLog


def test_record_appends_entries(tmp_path: Path):
    audit = HookAuditLog(tmp_path)
    audit.record("s1", "stop", b'{"session_id": "s1"}', True)
    audit.record(None, "stop", "not json", False)

    entries = json.loads((tmp_path / "stop.json").read_text(encoding="utf-8"))
    assert [e["success"] for e in entries] == [True, False]
    assert entries[0]["input_data"] == {"session_id": "s1"}
    assert entries[1]["input_data"] == "not json"
    assert entries[1]["session_id"] == ""
    assert set(entries[0]) == {"timestamp", "session_id", "hook_name", "input_data", "success"}
    assert not (tmp_path / "stop.lock").exists()


@pytest.mark.parametrize("name", ["", "../escape", "a b", "x/y"])
def test_invalid_hook_names_are_rejected(tmp_path: Path, name: str):
    with pytest.raises(ValueError):
        HookAuditLog(tmp_path).record("s1", name, "{}", True)


def test_corrupt_log_is_moved_aside(tmp_path: Path):
    (tmp_path / "stop.json").write_text("{oops", encoding="utf-8")
    HookAuditLog(tmp_path).record("s1", "stop", "{}", True)

    assert len(json.loads((tmp_path / "stop.json").read_text(encoding="utf-8"))) == 1
    backups = list(tmp_path.glob("stop.json.corrupted.*"))
    assert len(backups) == 1 and backups[0].read_text(encoding="utf-8") == "{oops"


def test_concurrent_appends_are_not_lost(tmp_path: Path):
    audit = HookAuditLog(tmp_path, timeout=30.0)

    def append(i: int) -> None:
        audit.record(f"s{i}", "notification", "{}", True)

    threads = [threading.Thread(target=append, args=(i,)) for i in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    entries = audit.entries("notification")
    assert sorted(e["session_id"] for e in entries) == sorted(f"s{i}" for i in range(20))
