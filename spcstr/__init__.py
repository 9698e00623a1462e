"""Session persistence and hook recording for Claude Code agents."""

from __future__ import annotations

__version__ = "0.1.0"

SPCSTR_DIRNAME = ".spcstr"
