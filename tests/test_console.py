"""Tests for console message capture."""

import pytest

from playwright_session_mcp.browser.console import (
    MAX_CONSOLE_MESSAGES,
    ConsoleBuffer,
    ConsoleLevel,
    StoredConsoleMessage,
)
from tests.fixtures.fake_driver import FakeConsoleMessage


def _message(text, type="log"):
    return StoredConsoleMessage(type=type, text=text, timestamp=0)


class TestConsoleLevel:
    def test_parse(self):
        assert ConsoleLevel.parse("warning") is ConsoleLevel.WARNING
        assert ConsoleLevel.parse("ERROR") is ConsoleLevel.ERROR

    def test_parse_invalid(self):
        with pytest.raises(ValueError, match="Invalid console level"):
            ConsoleLevel.parse("verbose")

    @pytest.mark.parametrize(
        "message_type,level",
        [
            ("error", ConsoleLevel.ERROR),
            ("assert", ConsoleLevel.ERROR),
            ("warning", ConsoleLevel.WARNING),
            ("debug", ConsoleLevel.DEBUG),
            ("log", ConsoleLevel.INFO),
            ("table", ConsoleLevel.INFO),
        ],
    )
    def test_of_message_type(self, message_type, level):
        assert ConsoleLevel.of_message_type(message_type) is level


class TestStoredConsoleMessage:
    def test_from_driver(self):
        stored = StoredConsoleMessage.from_driver(
            FakeConsoleMessage("error", "boom", url="https://example.com/app.js", line_number=12)
        )
        assert stored.type == "error"
        assert stored.text == "boom"
        assert stored.url == "https://example.com/app.js"
        assert stored.line_number == 12
        assert stored.timestamp > 0

    def test_format(self):
        stored = StoredConsoleMessage("warning", "slow", 0, "https://x/app.js", 3)
        assert stored.format() == "[WARNING] slow @ https://x/app.js:3"

    def test_format_without_location(self):
        assert _message("hi").format() == "[LOG] hi"


class TestConsoleBuffer:
    def test_fifo_eviction_at_capacity(self):
        buffer = ConsoleBuffer()
        for i in range(MAX_CONSOLE_MESSAGES + 5):
            buffer.append(_message(f"msg {i}"))

        messages = buffer.messages(ConsoleLevel.DEBUG)
        assert len(buffer) == MAX_CONSOLE_MESSAGES
        assert messages[0].text == "msg 5"
        assert messages[-1].text == f"msg {MAX_CONSOLE_MESSAGES + 4}"

    def test_level_filter_includes_more_severe(self):
        buffer = ConsoleBuffer()
        for type in ("debug", "log", "warning", "error"):
            buffer.append(_message(type, type=type))

        assert [m.type for m in buffer.messages(ConsoleLevel.WARNING)] == ["warning", "error"]
        assert len(buffer.messages(ConsoleLevel.DEBUG)) == 4
        assert [m.type for m in buffer.messages()] == ["log", "warning", "error"]

    def test_clear(self):
        buffer = ConsoleBuffer(max_messages=3)
        buffer.append(_message("a"))
        buffer.clear()
        assert len(buffer) == 0
