"""
Console message capture

Each page gets its own bounded buffer; once a buffer holds MAX_CONSOLE_MESSAGES
entries the oldest message is evicted for every new one.
"""

import time
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

MAX_CONSOLE_MESSAGES = 1000


class ConsoleLevel(IntEnum):
    """Minimum severity filter; each level includes the more severe ones."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3

    @classmethod
    def parse(cls, value: str) -> "ConsoleLevel":
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(
                f"Invalid console level '{value}'. Expected one of: debug, info, warning, error"
            ) from None

    @classmethod
    def of_message_type(cls, message_type: str) -> "ConsoleLevel":
        """Severity of a console message type as reported by the browser."""
        if message_type in ("error", "assert"):
            return cls.ERROR
        if message_type in ("warning", "warn"):
            return cls.WARNING
        if message_type == "debug":
            return cls.DEBUG
        return cls.INFO


@dataclass(frozen=True)
class StoredConsoleMessage:
    type: str
    text: str
    timestamp: int  # milliseconds since epoch
    url: str | None = None
    line_number: int | None = None

    @classmethod
    def from_driver(cls, message: Any) -> "StoredConsoleMessage":
        """Build from a Playwright ConsoleMessage."""
        location = message.location or {}
        return cls(
            type=message.type,
            text=message.text,
            timestamp=int(time.time() * 1000),
            url=location.get("url") or None,
            line_number=location.get("lineNumber"),
        )

    @property
    def level(self) -> ConsoleLevel:
        return ConsoleLevel.of_message_type(self.type)

    def format(self) -> str:
        line = f"[{self.type.upper()}] {self.text}"
        if self.url:
            line += f" @ {self.url}"
            if self.line_number is not None:
                line += f":{self.line_number}"
        return line


class ConsoleBuffer:
    """Bounded FIFO of console messages for one page."""

    def __init__(self, max_messages: int = MAX_CONSOLE_MESSAGES):
        self._messages: deque[StoredConsoleMessage] = deque(maxlen=max_messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: StoredConsoleMessage) -> None:
        self._messages.append(message)

    def clear(self) -> None:
        self._messages.clear()

    def messages(self, level: ConsoleLevel = ConsoleLevel.INFO) -> list[StoredConsoleMessage]:
        return [m for m in self._messages if m.level >= level]
