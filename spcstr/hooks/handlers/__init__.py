"""Built-in handlers, one per hook event."""
from __future__ import annotations

from typing import Dict, Optional, Type

from spcstr.hooks.events import HookName
from spcstr.hooks.registry import DEFAULT_REGISTRY, HookRegistry

from .base import HookHandler
from .notification import NotificationHandler
from .post_tool_use import PostToolUseHandler
from .pre_compact import PreCompactHandler
from .pre_tool_use import PreToolUseHandler
from .session_end import SessionEndHandler
from .session_start import SessionStartHandler
from .stop import StopHandler
from .subagent_stop import SubagentStopHandler
from .user_prompt_submit import UserPromptSubmitHandler

HANDLERS: Dict[HookName, Type[HookHandler]] = {
    HookName.SESSION_START: SessionStartHandler,
    HookName.USER_PROMPT_SUBMIT: UserPromptSubmitHandler,
    HookName.PRE_TOOL_USE: PreToolUseHandler,
    HookName.POST_TOOL_USE: PostToolUseHandler,
    HookName.NOTIFICATION: NotificationHandler,
    HookName.PRE_COMPACT: PreCompactHandler,
    HookName.SESSION_END: SessionEndHandler,
    HookName.STOP: StopHandler,
    HookName.SUBAGENT_STOP: SubagentStopHandler,
}


def register_default_handlers(registry: Optional[HookRegistry] = None, **kwargs) -> HookRegistry:
    """Register every built-in handler; ``kwargs`` (manager, config) go to each one."""
    registry = DEFAULT_REGISTRY if registry is None else registry
    for handler_cls in HANDLERS.values():
        registry.register(handler_cls(**kwargs))
    return registry


__all__ = [
    "HANDLERS",
    "HookHandler",
    "NotificationHandler",
    "PostToolUseHandler",
    "PreCompactHandler",
    "PreToolUseHandler",
    "SessionEndHandler",
    "SessionStartHandler",
    "StopHandler",
    "SubagentStopHandler",
    "UserPromptSubmitHandler",
    "register_default_handlers",
]
