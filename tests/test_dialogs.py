"""Tests for JavaScript dialog handling."""

import logging

import pytest
from playwright.async_api import Error as PlaywrightError

from playwright_session_mcp.browser.dialogs import DialogHandler, DialogPolicy
from tests.fixtures.fake_driver import FakeDialog


class TestDialogPolicy:
    @pytest.mark.parametrize(
        "policy,description",
        [
            (DialogPolicy(accept=False), "dismiss next dialog"),
            (DialogPolicy(accept=True), "accept next dialog"),
            (DialogPolicy(accept=True, prompt_text="42"), "accept next dialog with text '42'"),
        ],
    )
    def test_describe(self, policy, description):
        assert policy.describe() == description


class TestDialogHandler:
    async def test_dismissed_without_policy(self):
        handler = DialogHandler()
        dialog = FakeDialog("beforeunload", "")

        handled = await handler.handle(dialog)

        dialog.dismiss.assert_awaited_once()
        assert handled.accepted is False

    async def test_prompt_text_only_for_prompts(self):
        handler = DialogHandler()
        handler.arm(DialogPolicy(accept=True, prompt_text="yes"))
        dialog = FakeDialog("confirm", "Proceed?")

        handled = await handler.handle(dialog)

        dialog.accept.assert_awaited_once_with()
        assert handled.prompt_text is None

    async def test_policy_is_one_shot(self):
        handler = DialogHandler()
        handler.arm(DialogPolicy(accept=True, prompt_text="Ada"))

        first = await handler.handle(FakeDialog("prompt", "Name?"))
        second = await handler.handle(FakeDialog("prompt", "Name again?"))

        assert first.format() == "[prompt] 'Name?' accepted with text 'Ada'"
        assert second.format() == "[prompt] 'Name again?' dismissed"
        assert handler.policy is None

    async def test_history_bounded(self):
        handler = DialogHandler(max_history=2)
        for i in range(3):
            await handler.handle(FakeDialog("alert", f"alert {i}"))

        assert [d.message for d in handler.history] == ["alert 1", "alert 2"]

    async def test_page_gone_before_answer(self, caplog):
        handler = DialogHandler()
        dialog = FakeDialog("alert", "Bye")
        dialog.dismiss.side_effect = PlaywrightError("Target page, context or browser has been closed")

        with caplog.at_level(logging.WARNING):
            handled = await handler.handle(dialog)

        assert handled is None
        assert handler.history == []
        assert "Could not answer alert dialog" in caplog.text
