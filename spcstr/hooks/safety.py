"""Best-effort screening of Bash commands requested by the agent.

This is a heuristic tripwire for obviously destructive commands, not a
sandbox: anything not on the list runs, and a determined caller can always
obfuscate around substring checks.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

# Literal substrings matched against the lowercased, whitespace-collapsed command.
DANGEROUS_SUBSTRINGS = (
    "rm -rf /",
    "rm -fr /",
    "chmod -r 777 /",
    "mkfs",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    "dd if=/dev/urandom",
    "> /dev/sda",
    ":(){ :|:& };:",
)

FORK_BOMB = ":(){:|:&};:"

# rm with both recursive and force flags, spelled any way, aimed at anything under /.
_RM_ROOT = re.compile(
    r"(?:^|[;&|]\s*|\s)(?:sudo\s+)?rm\s+"
    r"(?:-[a-z]*(?:r[a-z]*f|f[a-z]*r)[a-z]*|-[a-z]*r[a-z]*\s+-[a-z]*f[a-z]*|-[a-z]*f[a-z]*\s+-[a-z]*r[a-z]*"
    r"|--recursive\s+--force|--force\s+--recursive)"
    r"(?:\s+--no-preserve-root)?\s+/"
)
_CHMOD_ROOT = re.compile(r"\bchmod\s+(?:-r|--recursive)\s+777\s+/")
_REMOTE_PIPE = re.compile(r"\b(?:curl|wget)\b[^|]*\|\s*(?:sudo\s+)?(?:ba|z|k|da)?sh\b")
_EVAL = re.compile(r"(?:^|[;&|]\s*|\s)eval(?:\s|$)")


def normalize_command(command: str) -> str:
    return " ".join(command.lower().split())


def find_dangerous_pattern(command: str, extra: Iterable[str] = ()) -> Optional[str]:
    """Return a short description of the first dangerous pattern in ``command``."""
    normalized = normalize_command(command)
    if not normalized:
        return None
    for needle in DANGEROUS_SUBSTRINGS:
        if needle in normalized:
            return needle
    if FORK_BOMB in normalized.replace(" ", ""):
        return "fork bomb"
    if _RM_ROOT.search(normalized):
        return "rm -rf /"
    if _CHMOD_ROOT.search(normalized):
        return "chmod -R 777 /"
    if _REMOTE_PIPE.search(normalized):
        return "remote script piped into a shell"
    if _EVAL.search(normalized):
        return "eval"
    for needle in extra:
        candidate = normalize_command(needle)
        if candidate and candidate in normalized:
            return needle
    return None


def is_dangerous(command: str, extra: Iterable[str] = ()) -> bool:
    return find_dangerous_pattern(command, extra) is not None


__all__ = ["DANGEROUS_SUBSTRINGS", "find_dangerous_pattern", "is_dangerous", "normalize_command"]
