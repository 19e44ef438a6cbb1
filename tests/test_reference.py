"""Tests for element reference parsing and resolution."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from playwright_session_mcp.snapshot.errors import InvalidRefFormat, StaleRefError
from playwright_session_mcp.snapshot.reference import ElementRef, resolve


class TestElementRefParse:
    def test_plain_ref(self):
        ref = ElementRef.parse("e42")
        assert ref.ref == "e42"
        assert ref.context is None
        assert str(ref) == "e42"

    def test_prefixed_ref(self):
        ref = ElementRef.parse("work:e42")
        assert ref.ref == "e42"
        assert ref.context == "work"
        assert str(ref) == "work:e42"

    def test_surrounding_whitespace_ignored(self):
        assert ElementRef.parse(" e1 ").ref == "e1"

    @pytest.mark.parametrize(
        "text", ["", "42", "e", "button#submit", "a:b:e1", "work:", ":e1", "e1x", "E1"]
    )
    def test_invalid_refs(self, text):
        with pytest.raises(InvalidRefFormat) as exc_info:
            ElementRef.parse(text)
        assert "e<number> or <context>:e<number>" in str(exc_info.value)


@pytest.mark.asyncio
class TestResolve:
    async def test_resolve_returns_locator(self):
        locator = MagicMock()
        driver = MagicMock()
        driver.locate = AsyncMock(return_value=locator)

        result = await resolve(driver, MagicMock(url="https://example.com"), ElementRef("e3"))

        assert result is locator
        driver.locate.assert_awaited_once()

    async def test_unknown_element_is_stale(self):
        driver = MagicMock()
        driver.locate = AsyncMock(return_value=None)

        with pytest.raises(StaleRefError, match="Take a new snapshot"):
            await resolve(driver, MagicMock(url="about:blank"), ElementRef("e3", "work"))
