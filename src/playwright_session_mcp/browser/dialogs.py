"""
JavaScript dialog handling

A page blocks while an alert, confirm, prompt or beforeunload dialog is open,
so every dialog is answered as soon as it appears. The answer comes from a
one-shot policy armed by the browser_handle_dialog tool; without one the
dialog is dismissed, which is also what Playwright does for unhandled dialogs.
Answered dialogs are kept in a short per-page history.
"""

import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

MAX_DIALOG_HISTORY = 50


@dataclass(frozen=True)
class DialogPolicy:
    accept: bool
    prompt_text: str | None = None

    def describe(self) -> str:
        if not self.accept:
            return "dismiss next dialog"
        if self.prompt_text is not None:
            return f"accept next dialog with text '{self.prompt_text}'"
        return "accept next dialog"


DISMISS = DialogPolicy(accept=False)


@dataclass(frozen=True)
class HandledDialog:
    type: str
    message: str
    accepted: bool
    prompt_text: str | None
    timestamp: int  # milliseconds since epoch

    def format(self) -> str:
        action = "accepted" if self.accepted else "dismissed"
        line = f"[{self.type}] {self.message!r} {action}"
        if self.accepted and self.prompt_text is not None:
            line += f" with text '{self.prompt_text}'"
        return line


class DialogHandler:
    """Answers the dialogs of one page."""

    def __init__(self, max_history: int = MAX_DIALOG_HISTORY):
        self.policy: DialogPolicy | None = None
        self._history: deque[HandledDialog] = deque(maxlen=max_history)

    def arm(self, policy: DialogPolicy) -> None:
        """Use `policy` for the next dialog only."""
        self.policy = policy

    @property
    def history(self) -> list[HandledDialog]:
        return list(self._history)

    async def handle(self, dialog: Any) -> HandledDialog | None:
        """
        Answer a Playwright Dialog with the armed policy, or dismiss it.

        Returns:
            The handled dialog, or None if the page went away first
        """
        policy = self.policy or DISMISS
        self.policy = None
        prompt_text = policy.prompt_text if dialog.type == "prompt" else None

        try:
            if not policy.accept:
                await dialog.dismiss()
            elif prompt_text is not None:
                await dialog.accept(prompt_text)
            else:
                await dialog.accept()
        except PlaywrightError as e:
            logger.warning(f"Could not answer {dialog.type} dialog: {e}")
            return None

        handled = HandledDialog(
            type=dialog.type,
            message=dialog.message,
            accepted=policy.accept,
            prompt_text=prompt_text,
            timestamp=int(time.time() * 1000),
        )
        self._history.append(handled)
        logger.info(f"Dialog {handled.format()}")
        return handled
