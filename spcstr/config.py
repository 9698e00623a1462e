"""Project configuration stored in ``.spcstr/config.json``."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

from spcstr import SPCSTR_DIRNAME
from spcstr.state.atomic import AtomicWriter
from spcstr.state.logger import warn

CONFIG_FILENAME = "config.json"


@dataclass
class StateConfig:
    timeout: float = 5.0
    lock_timeout: float = 5.0
    stale_lock_timeout: float = 30.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeout": self.timeout,
            "lock_timeout": self.lock_timeout,
            "stale_lock_timeout": self.stale_lock_timeout,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StateConfig":
        defaults = cls()
        return cls(
            timeout=float(data.get("timeout", defaults.timeout)),
            lock_timeout=float(data.get("lock_timeout", defaults.lock_timeout)),
            stale_lock_timeout=float(data.get("stale_lock_timeout", defaults.stale_lock_timeout)),
        )


@dataclass
class AuditConfig:
    enabled: bool = True
    timeout: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "timeout": self.timeout}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuditConfig":
        return cls(
            enabled=bool(data.get("enabled", True)),
            timeout=float(data.get("timeout", 1.0)),
        )


@dataclass
class SafetyConfig:
    """Bash command screening used by pre_tool_use.

    ``blocked_commands`` adds literal substrings on top of the built-in list.
    """

    enabled: bool = True
    blocked_commands: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "blocked_commands": list(self.blocked_commands)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SafetyConfig":
        extra = data.get("blocked_commands") or []
        if isinstance(extra, str):
            extra = [extra]
        return cls(
            enabled=bool(data.get("enabled", True)),
            blocked_commands=[str(item) for item in extra if str(item).strip()],
        )


@dataclass
class SpcstrConfig:
    state: StateConfig = field(default_factory=StateConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.to_dict(),
            "audit": self.audit.to_dict(),
            "safety": self.safety.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SpcstrConfig":
        return cls(
            state=StateConfig.from_dict(data.get("state") or {}),
            audit=AuditConfig.from_dict(data.get("audit") or {}),
            safety=SafetyConfig.from_dict(data.get("safety") or {}),
        )


def config_path(project_dir: Path | str) -> Path:
    return Path(project_dir).absolute() / SPCSTR_DIRNAME / CONFIG_FILENAME


def load_config(project_dir: Path | str) -> SpcstrConfig:
    """Read the project's config, falling back to defaults.

    A corrupt file is moved aside to ``config.bad.json`` once and defaults are
    used; the user is told on stderr. A file that cannot be read at all is
    left in place and defaults are used.
    """
    path = config_path(project_dir)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return SpcstrConfig()
    except (OSError, UnicodeDecodeError) as exc:
        warn(f"cannot read config {path} ({exc}); using defaults")
        return SpcstrConfig()
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config root must be a JSON object")
        return SpcstrConfig.from_dict(data)
    except (ValueError, TypeError, AttributeError) as exc:
        backup = path.with_name("config.bad.json")
        try:
            path.replace(backup)
        except OSError:
            backup = path
        warn(f"ignoring unreadable config {path} ({exc}); saved as {backup.name}, using defaults")
        return SpcstrConfig()


def save_config(project_dir: Path | str, config: SpcstrConfig) -> Path:
    return AtomicWriter().write_json(config_path(project_dir), config.to_dict())


__all__ = [
    "AuditConfig",
    "SafetyConfig",
    "SpcstrConfig",
    "StateConfig",
    "config_path",
    "load_config",
    "save_config",
]
