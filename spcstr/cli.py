"""Command-line entry point.

``spcstr hook <name>`` is what the agent framework runs once per event, with
the JSON payload on stdin. It must never interrupt the framework for an
observability problem: every failure exits 0 with a warning, except a blocked
command, which exits 2 so the framework refuses the tool call.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Sequence

from spcstr import SPCSTR_DIRNAME, __version__
from spcstr.config import SpcstrConfig, config_path, load_config, save_config
from spcstr.hooks.errors import BlockedOperationError
from spcstr.hooks.executor import execute_hook
from spcstr.state.errors import StateError
from spcstr.state.logger import warn
from spcstr.state.manager import StateManager

BLOCKED_EXIT_CODE = 2


def _default_cwd() -> str:
    return os.environ.get("CLAUDE_PROJECT_DIR") or os.getcwd()


def _cmd_hook(args: argparse.Namespace) -> int:
    payload = sys.stdin.buffer.read()
    try:
        execute_hook(args.hook_name, Path(args.cwd), payload)
    except BlockedOperationError as exc:
        print(f"Hook blocked: {exc}", file=sys.stderr)
        return BLOCKED_EXIT_CODE
    except Exception as exc:
        # Observability failures must never halt the agent framework.
        warn(f"hook {args.hook_name} failed: {exc}")
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    root = Path(args.cwd).absolute()
    base = root / SPCSTR_DIRNAME
    for name in ("sessions", "logs"):
        (base / name).mkdir(parents=True, exist_ok=True)
    path = config_path(root)
    if args.force or not path.exists():
        save_config(root, SpcstrConfig())
        print(f"Wrote {path}")
    else:
        print(f"Keeping existing {path}")
    print(f"Initialized {base}")
    return 0


def _session_summary(manager: StateManager, session_id: str) -> Dict[str, Any]:
    try:
        state = manager.load_state(session_id)
    except StateError as exc:
        return {"session_id": session_id, "error": exc.code}
    return {
        "session_id": session_id,
        "active": state.session_active,
        "updated_at": state.updated_at,
        "tool_calls": state.total_tool_calls,
        "agents": list(state.agents),
        "errors": len(state.errors),
    }


def _cmd_sessions(args: argparse.Namespace) -> int:
    root = Path(args.cwd).absolute()
    manager = StateManager.for_project(root, load_config(root))
    summaries: List[Dict[str, Any]] = [_session_summary(manager, sid) for sid in manager.list_sessions()]

    if args.json:
        print(json.dumps(summaries, indent=2))
        return 0
    if not summaries:
        print("No sessions recorded.")
        return 0
    for item in summaries:
        if "error" in item:
            print(f"{item['session_id']}  unreadable ({item['error']})")
            continue
        status = "active" if item["active"] else "ended"
        print(f"{item['session_id']}  {status:<6}  updated {item['updated_at']}  tools={item['tool_calls']}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spcstr", description="Record agent session activity.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    hook = sub.add_parser("hook", help="Process one hook event read from stdin.")
    hook.add_argument("hook_name", help="Event name, e.g. session_start or pre_tool_use.")
    hook.add_argument(
        "--cwd",
        default=None,
        help="Project directory (defaults to $CLAUDE_PROJECT_DIR, then the current directory).",
    )
    hook.set_defaults(func=_cmd_hook)

    init = sub.add_parser("init", help="Create the .spcstr directory layout.")
    init.add_argument("--cwd", default=None, help="Project directory (defaults to the current directory).")
    init.add_argument("--force", action="store_true", help="Overwrite an existing config.json with defaults.")
    init.set_defaults(func=_cmd_init)

    sessions = sub.add_parser("sessions", help="List recorded sessions.")
    sessions.add_argument("--cwd", default=None, help="Project directory (defaults to the current directory).")
    sessions.add_argument("--json", action="store_true", help="Emit JSON instead of a table.")
    sessions.set_defaults(func=_cmd_sessions)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    parser = _build_parser()
    tokens = list(argv) if argv is not None else sys.argv[1:]
    try:
        args = parser.parse_args(tokens)
    except SystemExit as exc:
        # argparse exits 2 on a usage error, which the framework reads as a block.
        if tokens[:1] == ["hook"] and exc.code not in (0, None):
            warn(f"ignoring malformed hook invocation: {' '.join(tokens)}")
            return 0
        raise
    if args.cwd is None:
        args.cwd = _default_cwd() if args.command == "hook" else os.getcwd()
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
