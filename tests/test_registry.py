from __future__ import annotations

import threading

import pytest

from spcstr.hooks.errors import HookNotFoundError
from spcstr.hooks.events import HookName
from spcstr.hooks.handlers import HANDLERS, HookHandler, register_default_handlers
from spcstr.hooks.registry import HookRegistry


class RecordingHandler(HookHandler):
    name = "recording"

    def __init__(self) -> None:
        super().__init__()
        self.payloads: list = []

    def execute(self, payload) -> None:
        self.payloads.append(payload)


class FailingHandler(HookHandler):
    name = "failing"

    def execute(self, payload) -> None:
        raise ValueError("handler exploded")


def test_register_and_execute():
    registry = HookRegistry()
    handler = RecordingHandler()
    registry.register(handler)

    registry.execute("recording", b"{}")

    assert handler.payloads == [b"{}"]
    assert "recording" in registry
    assert registry.get_handler("recording") is handler


def test_unknown_hook_raises_not_found():
    registry = HookRegistry()
    with pytest.raises(HookNotFoundError):
        registry.execute("nope", b"{}")
    assert registry.get_handler("nope") is None


def test_handler_errors_propagate_unchanged():
    registry = HookRegistry()
    registry.register(FailingHandler())
    with pytest.raises(ValueError, match="handler exploded"):
        registry.execute("failing", b"{}")


def test_default_handlers_cover_every_event_exactly_once():
    assert set(HANDLERS) == set(HookName)
    assert len({cls.name for cls in HANDLERS.values()}) == len(HookName)

    registry = register_default_handlers(HookRegistry())
    assert registry.list_hooks() == sorted(name.value for name in HookName)
    assert HookName.PRE_TOOL_USE in registry


def test_concurrent_registration_and_lookup():
    registry = HookRegistry()
    errors: list = []

    def register(i: int) -> None:
        handler = RecordingHandler()
        handler.name = f"hook-{i}"
        try:
            registry.register(handler)
            assert registry.get_handler(f"hook-{i}") is handler
        except AssertionError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=register, args=(i,)) for i in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(registry.list_hooks()) == 50
