"""Error types raised while dispatching hook events."""
from __future__ import annotations


class HookError(RuntimeError):
    """Base class for hook dispatch failures."""


class HookValidationError(HookError):
    """The payload is not valid JSON or lacks a required field."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class HookNotFoundError(HookError):
    def __init__(self, hook_name: str) -> None:
        self.hook_name = hook_name
        super().__init__(f"no handler registered for hook {hook_name!r}")


class BlockedOperationError(HookError):
    """The agent asked to run a command that must not run.

    Maps to exit status 2 at the CLI boundary, which tells the agent framework
    to refuse the tool call.
    """

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"dangerous command blocked ({reason}): {command}")


class InvalidProjectError(HookError):
    """The project directory has not been initialized with ``spcstr init``."""


def is_blocking(exc: BaseException) -> bool:
    return isinstance(exc, BlockedOperationError)


__all__ = [
    "BlockedOperationError",
    "HookError",
    "HookNotFoundError",
    "HookValidationError",
    "InvalidProjectError",
    "is_blocking",
]
