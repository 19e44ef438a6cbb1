"""Tests for per-context state: active page, event capture and snapshot cache."""

import time
from unittest.mock import patch

import pytest

from playwright_session_mcp.browser.console import ConsoleLevel
from playwright_session_mcp.browser.context import CachedSnapshot, ContextState
from playwright_session_mcp.browser.dialogs import DialogPolicy
from playwright_session_mcp.snapshot.capture import build_snapshot
from tests.fixtures.fake_driver import FakeContext, FakeDriver


async def _attached(page_count: int = 1, cache_ttl: float = 5.0) -> tuple[ContextState, FakeDriver]:
    driver = FakeDriver()
    state = ContextState("default", FakeContext(page_count=page_count), driver, cache_ttl=cache_ttl)
    await state.attach()
    return state, driver


@pytest.mark.asyncio
class TestActivePage:
    async def test_attach_selects_first_page(self):
        state, _ = await _attached(page_count=2)
        assert state.active_page_index == 0
        assert state.active_page() is state.pages[0]

    async def test_no_pages(self):
        state, _ = await _attached(page_count=0)
        assert state.active_page() is None
        assert state.active_page_index is None

    async def test_index_clamped_after_external_close(self):
        state, _ = await _attached(page_count=3)
        await state.switch_page(2)
        # The page closes itself without going through close_page()
        state.context.pages.pop()

        assert state.active_page() is state.pages[1]
        assert state.active_page_index == 1

    async def test_ensure_page_opens_page(self):
        state, _ = await _attached(page_count=0)
        page = await state.ensure_page()
        assert state.pages == [page]
        assert state.active_page_index == 0

    async def test_new_page_becomes_active(self):
        state, _ = await _attached(page_count=1)
        index, page = await state.new_page()
        assert index == 1
        assert state.active_page() is page

    async def test_switch_page(self):
        state, _ = await _attached(page_count=2)
        page = await state.switch_page(1)
        assert page.brought_to_front == 1
        assert state.active_page_index == 1

    async def test_switch_page_out_of_range(self):
        state, _ = await _attached(page_count=1)
        with pytest.raises(ValueError, match="out of range"):
            await state.switch_page(3)

    async def test_close_active_page(self):
        state, _ = await _attached(page_count=3)
        await state.switch_page(2)
        closed = await state.close_page()
        assert closed == 2
        assert state.active_page_index == 1

    async def test_close_page_before_active_shifts_index(self):
        state, _ = await _attached(page_count=3)
        await state.switch_page(2)
        active = state.active_page()
        await state.close_page(0)
        assert state.active_page() is active
        assert state.active_page_index == 1

    async def test_close_last_page(self):
        state, _ = await _attached(page_count=1)
        await state.close_page()
        assert state.active_page() is None

    async def test_close_page_without_pages(self):
        state, _ = await _attached(page_count=0)
        with pytest.raises(ValueError, match="no open tabs"):
            await state.close_page()


@pytest.mark.asyncio
class TestPendingActivation:
    async def test_activation_applied_on_next_read(self):
        state, driver = await _attached(page_count=2)
        target = state.pages[1]

        driver.activate(target)

        # Not applied until the active page is read
        assert state.active_page_index == 0
        assert state.active_page() is target
        assert state.active_page_index == 1

    async def test_activation_of_closed_page_ignored(self):
        state, driver = await _attached(page_count=2)
        target = state.pages[1]
        driver.activate(target)
        await target.close()

        assert state.active_page() is state.pages[0]

    async def test_popup_is_watched(self):
        state, _ = await _attached(page_count=1)
        popup = state.context.open_popup("https://example.com/popup")
        popup.log("log", "from popup")

        assert len(state.console_buffer(popup)) == 1


@pytest.mark.asyncio
class TestConsole:
    async def test_messages_of_active_page(self):
        state, _ = await _attached(page_count=2)
        state.pages[0].log("log", "first page")
        state.pages[1].log("error", "second page")

        assert [m.text for m in state.console_messages()] == ["first page"]
        await state.switch_page(1)
        assert [m.text for m in state.console_messages(ConsoleLevel.ERROR)] == ["second page"]

    async def test_buffer_dropped_on_close(self):
        state, _ = await _attached(page_count=2)
        page = state.pages[1]
        page.log("log", "bye")
        await page.close()
        assert state.console_buffer(page) is None

    async def test_no_pages_no_messages(self):
        state, _ = await _attached(page_count=0)
        assert state.console_messages() == []


@pytest.mark.asyncio
class TestPageSubscriptions:
    async def test_closed_page_handlers_removed(self):
        state, driver = await _attached(page_count=2)
        page = state.pages[1]
        page_id = driver.page_id(page)

        await state.close_page(1)

        assert page_id not in state.watched_pages
        assert all(handlers == [] for handlers in page.listeners.values())

    async def test_open_close_cycles_do_not_accumulate(self):
        state, _ = await _attached(page_count=1)

        for _ in range(5):
            index, _page = await state.new_page()
            await state.close_page(index)

        assert len(state.watched_pages) == 1

    async def test_detach_removes_every_handler(self):
        state, _ = await _attached(page_count=2)
        pages = state.pages

        state.detach()

        assert state.watched_pages == []
        assert state.context.listeners["page"] == []
        for page in pages:
            assert all(handlers == [] for handlers in page.listeners.values())


@pytest.mark.asyncio
class TestNetwork:
    async def test_requests_of_active_page(self):
        state, _ = await _attached(page_count=2)
        state.pages[0].respond("https://example.com/")
        state.pages[0].respond("https://example.com/app.js", resource_type="script")
        state.pages[1].respond("https://other.example.com/")

        assert [r.url for r in state.network_requests()] == ["https://example.com/"]
        assert len(state.network_requests(include_static=True)) == 2

    async def test_failed_requests_recorded(self):
        state, _ = await _attached(page_count=1)
        state.pages[0].fail_request("https://example.com/font.woff2", "net::ERR_ABORTED", resource_type="font")

        (request,) = state.network_requests()
        assert request.failure == "net::ERR_ABORTED"
        assert request.status is None

    async def test_log_dropped_on_close(self):
        state, driver = await _attached(page_count=2)
        page = state.pages[1]
        page.respond("https://example.com/")
        await page.close()
        await state.switch_page(0)

        assert state.network_requests() == []
        assert driver.page_id(page) not in state._network

    async def test_no_pages_no_requests(self):
        state, _ = await _attached(page_count=0)
        assert state.network_requests() == []


@pytest.mark.asyncio
class TestDialogs:
    async def test_popup_dialog_dismissed(self):
        state, _ = await _attached(page_count=1)
        popup = state.context.open_popup("https://example.com/popup")

        dialog = await popup.open_dialog("alert", "Hello")

        dialog.dismiss.assert_awaited_once()
        assert [d.message for d in state.dialog_handler(popup).history] == ["Hello"]

    async def test_armed_policy_used(self):
        state, _ = await _attached(page_count=1)
        page = state.pages[0]
        state.dialog_handler(page).arm(DialogPolicy(accept=True))

        dialog = await page.open_dialog("confirm", "Continue?")

        dialog.accept.assert_awaited_once_with()



@pytest.mark.asyncio
class TestSnapshotCache:
    async def test_cache_hit(self, sample_tree):
        state, _ = await _attached()
        snapshot = build_snapshot(sample_tree, url=state.pages[0].url)
        state.cache(snapshot)
        assert state.get_cached() is snapshot

    async def test_invalidate(self, sample_tree):
        state, _ = await _attached()
        state.cache(build_snapshot(sample_tree, url=state.pages[0].url))
        state.invalidate()
        assert state.get_cached() is None
        # Invalidation is consumed by the miss
        assert state.get_cached() is None

    async def test_expired(self, sample_tree):
        state, _ = await _attached(cache_ttl=0.01)
        state.cache(build_snapshot(sample_tree, url=state.pages[0].url))
        time.sleep(0.02)
        assert state.get_cached() is None

    async def test_url_change_misses(self, sample_tree):
        state, _ = await _attached()
        state.cache(build_snapshot(sample_tree, url=state.pages[0].url))
        state.pages[0].url = "https://example.com/other"
        assert state.get_cached() is None

    async def test_page_switch_invalidates(self, sample_tree):
        state, _ = await _attached(page_count=2)
        state.cache(build_snapshot(sample_tree, url=state.pages[0].url))
        await state.switch_page(1)
        assert state.get_cached() is None

    async def test_activation_invalidates(self, sample_tree):
        state, driver = await _attached(page_count=2)
        state.cache(build_snapshot(sample_tree, url=state.pages[0].url))
        driver.activate(state.pages[1])
        assert state.get_cached() is None

    async def test_record_generation_keeps_one_prior(self, sample_tree):
        state, _ = await _attached()
        first, second, third = (build_snapshot(sample_tree) for _ in range(3))
        state.record_generation(first)
        state.record_generation(second)
        state.record_generation(third)
        assert state.latest_snapshot is third
        assert third.previous is second
        assert second.previous is None


class TestCachedSnapshot:
    def test_default_ttl(self, sample_tree):
        entry = CachedSnapshot(snapshot=build_snapshot(sample_tree), url="", page_index=0)
        assert entry.ttl == 5.0
        assert not entry.is_expired

    def test_expired_after_ttl(self, sample_tree):
        entry = CachedSnapshot(snapshot=build_snapshot(sample_tree), url="", page_index=0)
        with patch("playwright_session_mcp.browser.context.time.monotonic", return_value=entry.created_at + 5.0):
            assert entry.is_expired


@pytest.mark.asyncio
class TestLifecycle:
    async def test_close(self):
        state, _ = await _attached(page_count=2)
        pages = state.pages
        await state.close()
        assert all(page.closed for page in pages)
        assert state.context.closed
        assert state.context.listeners["page"] == []

    async def test_info(self):
        state, _ = await _attached(page_count=1)
        state.proxy = {"server": "http://proxy:3128"}
        info = state.info()
        assert info == {
            "name": "default",
            "pages": 1,
            "active_page_index": 0,
            "url": "about:blank",
            "proxy": "http://proxy:3128",
        }
