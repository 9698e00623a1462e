"""Hook event dispatch: parsing, registry, handlers, audit and execution."""
from __future__ import annotations

from .errors import (
    BlockedOperationError,
    HookError,
    HookNotFoundError,
    HookValidationError,
    InvalidProjectError,
    is_blocking,
)
from .events import HookEvent, HookName, parse_event, parse_timestamp
from .registry import DEFAULT_REGISTRY, HookRegistry
from .safety import find_dangerous_pattern, is_dangerous
from .audit import HookAuditLog
from .executor import execute_hook, validate_project

__all__ = [
    "BlockedOperationError",
    "DEFAULT_REGISTRY",
    "HookAuditLog",
    "HookError",
    "HookEvent",
    "HookName",
    "HookNotFoundError",
    "HookRegistry",
    "HookValidationError",
    "InvalidProjectError",
    "execute_hook",
    "find_dangerous_pattern",
    "is_blocking",
    "is_dangerous",
    "parse_event",
    "parse_timestamp",
    "validate_project",
]
