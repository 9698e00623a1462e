"""Run one hook event against a project directory.

This is the whole life of a ``spcstr hook <name>`` process: check the project
layout, dispatch through the registry with the working directory pointed at
the project, then append an audit entry whatever happened.
"""
from __future__ import annotations

import contextlib
from pathlib import Path
from typing import Optional

from spcstr import SPCSTR_DIRNAME
from spcstr.config import SpcstrConfig, load_config
from spcstr.state.errors import SessionNotFoundError, StateError
from spcstr.state.logger import event_timer, log_event, warn
from spcstr.state.manager import StateManager

from .audit import HookAuditLog
from .errors import HookNotFoundError, InvalidProjectError, is_blocking
from .events import extract_session_id
from .registry import DEFAULT_REGISTRY, HookRegistry

REQUIRED_DIRS = ("sessions", "logs")


def validate_project(project_dir: Path | str) -> Path:
    root = Path(project_dir).absolute()
    spcstr_dir = root / SPCSTR_DIRNAME
    missing = [name for name in REQUIRED_DIRS if not (spcstr_dir / name).is_dir()]
    if missing:
        raise InvalidProjectError(
            f"{root} is not an initialized spcstr project (missing {', '.join(f'{SPCSTR_DIRNAME}/{m}' for m in missing)}); "
            "run `spcstr init` there first"
        )
    return root


def _default_registry() -> HookRegistry:
    if not len(DEFAULT_REGISTRY):
        from .handlers import register_default_handlers

        register_default_handlers(DEFAULT_REGISTRY)
    return DEFAULT_REGISTRY


def execute_hook(
    hook_name: str,
    project_dir: Path | str,
    payload: bytes | str,
    *,
    registry: Optional[HookRegistry] = None,
) -> None:
    """Dispatch ``payload`` to the handler for ``hook_name``.

    Raises whatever the handler raised, after the audit entry and (for
    business-logic failures) an ErrorEntry in the session have been recorded.
    """
    root = validate_project(project_dir)
    if registry is None:
        registry = _default_registry()
    session_id = extract_session_id(payload)

    with contextlib.chdir(root):
        config = load_config(root)
        success = False
        try:
            with event_timer(event="hook_executed", component="executor", hook=hook_name, session_id=session_id):
                registry.execute(hook_name, payload)
            success = True
        except HookNotFoundError:
            raise
        except Exception as exc:
            _record_failure(root, config, session_id, hook_name, exc)
            raise
        finally:
            _audit(root, config, session_id, hook_name, payload, success)


def _audit(
    root: Path,
    config: SpcstrConfig,
    session_id: Optional[str],
    hook_name: str,
    payload: bytes | str,
    success: bool,
) -> None:
    if not config.audit.enabled:
        return
    audit = HookAuditLog(root / SPCSTR_DIRNAME / "logs", timeout=config.audit.timeout)
    try:
        audit.record(session_id, hook_name, payload, success)
    except (OSError, ValueError, StateError) as exc:
        warn(f"failed to write audit log for {hook_name}: {exc}")
        log_event(event="audit_failed", component="executor", level="warn", hook=hook_name, error=str(exc))


def _record_failure(
    root: Path,
    config: SpcstrConfig,
    session_id: Optional[str],
    hook_name: str,
    exc: Exception,
) -> None:
    """Best-effort ErrorEntry for a failed handler; never masks the original error."""
    if not session_id or isinstance(exc, SessionNotFoundError):
        return
    manager = StateManager.for_project(root, config)
    try:
        if not manager.session_exists(session_id):
            return
        severity = "critical" if is_blocking(exc) else "error"
        manager.record_error(session_id, str(exc), hook_name, severity)
    except (OSError, StateError) as record_exc:
        log_event(
            event="error_record_failed",
            component="executor",
            level="warn",
            hook=hook_name,
            session_id=session_id,
            error=str(record_exc),
        )


__all__ = ["execute_hook", "validate_project"]
