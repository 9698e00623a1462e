"""JSON-lines telemetry for hook dispatch and state operations."""
from __future__ import annotations

import json
import os
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, MutableMapping

from spcstr import SPCSTR_DIRNAME

LOG_LEVELS = {"error": 40, "warn": 30, "info": 20, "debug": 10}

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_BACKUPS = 3
DEFAULT_LOG_NAME = "debug.log"


def _level_name(value: str | None) -> str:
    lowered = (value or "").lower()
    return lowered if lowered in LOG_LEVELS else "info"


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw:
        try:
            return max(int(raw), minimum)
        except ValueError:
            pass
    return default


def resolve_log_path() -> Path | None:
    """Return the configured log path, or None when telemetry has nowhere to go.

    Without ``SPCSTR_LOG_PATH`` the log lives in ``.spcstr/logs`` of the current
    directory, and only if that project has been initialized.
    """
    env_path = os.getenv("SPCSTR_LOG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    root = Path.cwd() / SPCSTR_DIRNAME
    if not root.is_dir():
        return None
    return root / "logs" / DEFAULT_LOG_NAME


def _rotate_logs(log_path: Path) -> None:
    """Shift ``debug.log`` -> ``debug.log.1`` -> ... once it reaches the size limit."""
    max_bytes = _int_env("SPCSTR_LOG_MAX_BYTES", DEFAULT_MAX_BYTES, 0)
    try:
        if max_bytes == 0 or log_path.stat().st_size < max_bytes:
            return
    except FileNotFoundError:
        return

    count = _int_env("SPCSTR_LOG_MAX_BACKUPS", DEFAULT_MAX_BACKUPS, 1)
    backups = [log_path.with_name(f"{log_path.name}.{n}") for n in range(1, count + 1)]
    backups[-1].unlink(missing_ok=True)
    for older, newer in zip(reversed(backups), reversed(backups[:-1])):
        if newer.exists():
            newer.replace(older)
    log_path.replace(backups[0])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def warn(message: str) -> None:
    """Print a user-facing warning on stderr."""
    print(f"spcstr: warning: {message}", file=sys.stderr)


def log_event(
    *,
    event: str,
    component: str,
    level: str = "info",
    hook: str | None = None,
    **fields: Any,
) -> Dict[str, Any] | None:
    """Append one telemetry entry and return it. Never raises on I/O failure.

    Returns None when ``level`` is below ``SPCSTR_LOG_LEVEL``. Fields whose
    value is None are left out.
    """
    level = _level_name(level)
    if LOG_LEVELS[level] < LOG_LEVELS[_level_name(os.getenv("SPCSTR_LOG_LEVEL"))]:
        return None

    payload: Dict[str, Any] = {"ts": _timestamp(), "level": level, "component": component, "event": event}
    if hook:
        payload["hook"] = hook
    payload.update((key, value) for key, value in fields.items() if value is not None)

    log_path = resolve_log_path()
    if log_path is None:
        return payload
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _rotate_logs(log_path)
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, separators=(",", ":"), default=str) + "\n")
    except OSError as exc:
        warn(f"could not write telemetry to {log_path}: {exc}")
    return payload


@contextmanager
def event_timer(
    *,
    event: str,
    component: str,
    level: str = "info",
    hook: str | None = None,
    **base_fields: Any,
) -> Iterator[Callable[[MutableMapping[str, Any] | None], None]]:
    """Time the block and log ``event`` with ``latency_ms`` when it exits.

    The yielded callable merges extra fields into the entry. A block that
    raises is logged at error level with the exception, then re-raised.
    """
    start = time.perf_counter()
    fields: Dict[str, Any] = dict(base_fields)

    def finalize(extra: MutableMapping[str, Any] | None = None) -> None:
        if extra:
            fields.update(extra)

    def elapsed_ms() -> float:
        return round((time.perf_counter() - start) * 1000, 3)

    try:
        yield finalize
    except Exception as exc:
        fields.update(error=str(exc), error_type=type(exc).__name__)
        log_event(event=event, component=component, hook=hook, level="error", latency_ms=elapsed_ms(), **fields)
        raise
    log_event(event=event, component=component, hook=hook, level=level, latency_ms=elapsed_ms(), **fields)


__all__ = [
    "event_timer",
    "log_event",
    "resolve_log_path",
    "warn",
]
