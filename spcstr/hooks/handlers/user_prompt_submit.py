from __future__ import annotations

import re

from spcstr.hooks.events import HookEvent, HookName, parse_timestamp
from spcstr.state.logger import log_event

from .base import HookHandler

SENSITIVE_WORDS = (
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "private_key",
    "privatekey",
    "ssh_key",
    "sshkey",
)
_SENSITIVE_RE = re.compile("|".join(re.escape(word) for word in SENSITIVE_WORDS), re.IGNORECASE)


def mentions_credentials(prompt: str) -> bool:
    return _SENSITIVE_RE.search(prompt) is not None


class UserPromptSubmitHandler(HookHandler):
    """Append the submitted prompt to the session's prompt log.

    Prompts that look like they carry credentials are still recorded; the
    match only produces a warning in the telemetry log.
    """

    name = HookName.USER_PROMPT_SUBMIT.value

    def handle(self, event: HookEvent) -> None:
        session_id = event.require("session_id")
        prompt = event.require("prompt")
        timestamp = parse_timestamp(event.get("timestamp"))

        if mentions_credentials(prompt):
            log_event(
                event="sensitive_prompt",
                component="hooks",
                level="warn",
                hook=self.name,
                session_id=session_id,
            )

        with self.manager.edit_state(session_id) as state:
            state.add_prompt(prompt, timestamp=timestamp)
