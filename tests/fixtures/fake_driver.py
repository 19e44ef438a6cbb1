"""
In-memory stand-ins for the browser driver.

FakeDriver implements the driver surface used by BrowserSession and
ContextState; FakeContext and FakePage emit "page", "console", "response",
"dialog", "close" and related events the way Playwright objects do, so event
handling can be tested without a browser.
"""

import asyncio
import inspect
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import TimeoutError as PlaywrightTimeoutError


def node(role: str, name: str = "", ref: str | None = None, *children: dict, **extra: Any) -> dict:
    """Build a raw accessibility node as produced by the driver adapter."""
    raw: dict[str, Any] = {"role": role, "name": name, "children": list(children)}
    if ref is not None:
        raw["ref"] = ref
    raw.update(extra)
    return raw


def document(*children: dict) -> dict:
    return node("document", "", None, *children)


def buttons(count: int, start: int = 1) -> list[dict]:
    return [node("button", f"Button {i}", f"e{i}") for i in range(start, start + count)]


class FakeEmitter:
    def __init__(self):
        self.listeners: dict[str, list[Any]] = defaultdict(list)
        self.tasks: list[asyncio.Future] = []

    def on(self, event: str, handler: Any) -> None:
        self.listeners[event].append(handler)

    def remove_listener(self, event: str, handler: Any) -> None:
        self.listeners[event].remove(handler)

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self.listeners[event]):
            result = handler(*args)
            # Coroutine handlers are scheduled, as Playwright does
            if inspect.iscoroutine(result):
                self.tasks.append(asyncio.ensure_future(result))

    async def settle(self) -> None:
        """Wait for scheduled coroutine handlers."""
        await asyncio.gather(*self.tasks)


class FakeConsoleMessage:
    def __init__(self, type: str, text: str, url: str = "", line_number: int | None = None):
        self.type = type
        self.text = text
        self.location = {"url": url, "lineNumber": line_number} if url else {}


class FakeRequest:
    def __init__(self, url: str, method: str = "GET", resource_type: str = "document", failure: str | None = None):
        self.url = url
        self.method = method
        self.resource_type = resource_type
        self.failure = failure


class FakeResponse:
    def __init__(self, request: FakeRequest, status: int = 200):
        self.request = request
        self.status = status


class FakeDialog:
    def __init__(self, type: str, message: str):
        self.type = type
        self.message = message
        self.accept = AsyncMock()
        self.dismiss = AsyncMock()


class FakePage(FakeEmitter):
    def __init__(self, context: "FakeContext | None" = None, url: str = "about:blank", title: str = ""):
        super().__init__()
        self.context = context
        self.url = url
        self._title = title
        self.closed = False
        self.brought_to_front = 0
        self.keyboard = MagicMock()
        self.keyboard.press = AsyncMock()
        self.mouse = MagicMock()
        for method in ("move", "click", "down", "up"):
            setattr(self.mouse, method, AsyncMock())
        self.wait_for_load_state = AsyncMock()
        self.screenshot = AsyncMock(return_value=b"\x89PNG")
        self.pdf = AsyncMock(return_value=b"%PDF-1.4")
        self.evaluate = AsyncMock(return_value=None)
        self.set_viewport_size = AsyncMock()
        self.go_back = AsyncMock(return_value=None)
        self.get_by_text = MagicMock()
        self.get_by_text.return_value.first.wait_for = AsyncMock()
        self.locator = MagicMock()
        self.locator.return_value.count = AsyncMock(return_value=1)
        self.locator.return_value.first.set_input_files = AsyncMock()
        self.navigates = False
        self.navigation_waits = 0

    async def title(self) -> str:
        return self._title

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.url = url

    @asynccontextmanager
    async def expect_navigation(self, timeout: float | None = None):
        self.navigation_waits += 1
        yield MagicMock()
        if not self.navigates:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded while waiting for navigation")

    async def bring_to_front(self) -> None:
        self.brought_to_front += 1

    async def close(self) -> None:
        self.closed = True
        if self.context is not None and self in self.context.pages:
            self.context.pages.remove(self)
        self.emit("close", self)

    def log(self, type: str, text: str, **kwargs: Any) -> None:
        self.emit("console", FakeConsoleMessage(type, text, **kwargs))

    def respond(self, url: str, status: int = 200, **kwargs: Any) -> None:
        self.emit("response", FakeResponse(FakeRequest(url, **kwargs), status))

    def fail_request(self, url: str, failure: str, **kwargs: Any) -> None:
        self.emit("requestfailed", FakeRequest(url, failure=failure, **kwargs))

    async def open_dialog(self, type: str, message: str) -> FakeDialog:
        """Open a dialog and wait until the page's handlers answered it."""
        dialog = FakeDialog(type, message)
        self.emit("dialog", dialog)
        await self.settle()
        return dialog


class FakeContext(FakeEmitter):
    def __init__(self, name: str = "default", page_count: int = 0):
        super().__init__()
        self.name = name
        self.pages: list[FakePage] = [FakePage(self) for _ in range(page_count)]
        self.closed = False
        self.storage = {"cookies": [{"name": "sid"}], "origins": []}

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        self.emit("page", page)
        return page

    def open_popup(self, url: str = "about:blank") -> FakePage:
        """A page opened by the site itself (window.open, target=_blank)."""
        page = FakePage(self, url=url)
        self.pages.append(page)
        self.emit("page", page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakeDriver:
    """Driver double recording launches, contexts and activation callbacks."""

    def __init__(self, tree: dict | None = None):
        self.tree = tree
        self.trees: dict[str, dict | None] = {}
        self.launches = 0
        self.closes = 0
        self.forgets = 0
        self.contexts: list[FakeContext] = []
        self.activation_callbacks: dict[int, Any] = {}
        self.connected = True
        self.launch_error: Exception | None = None
        self.tree_error: Exception | None = None
        self.pages_per_context = 0
        self._page_ids: dict[int, str] = {}
        self.locators: dict[str, Any] = {}

    async def launch(self) -> None:
        self.launches += 1
        if self.launch_error is not None:
            raise self.launch_error

    async def new_context(self, name: str, proxy: Any = None) -> FakeContext:
        context = FakeContext(name, self.pages_per_context)
        context.proxy = proxy
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closes += 1

    def forget(self) -> None:
        self.forgets += 1

    def is_connected(self) -> bool:
        return self.connected

    def page_id(self, page: Any) -> str:
        key = id(page)
        if key not in self._page_ids:
            self._page_ids[key] = f"page-{len(self._page_ids) + 1}"
        return self._page_ids[key]

    async def subscribe_page_activated(self, context: Any, callback: Any) -> None:
        self.activation_callbacks[id(context)] = callback

    def activate(self, page: FakePage) -> None:
        """Simulate the page reporting focus/visibility."""
        self.activation_callbacks[id(page.context)](page)

    async def save_storage_state(self, context: FakeContext, path: str) -> dict:
        return context.storage

    async def accessibility_tree(self, page: Any) -> dict | None:
        if self.tree_error is not None:
            raise self.tree_error
        return self.trees.get(self.page_id(page), self.tree)

    async def locate(self, page: Any, ref: str) -> Any:
        if ref not in self.locators:
            locator = MagicMock(name=f"locator-{ref}")
            for method in (
                "click",
                "dblclick",
                "fill",
                "press",
                "press_sequentially",
                "hover",
                "select_option",
                "drag_to",
                "evaluate",
                "check",
                "uncheck",
                "scroll_into_view_if_needed",
            ):
                setattr(locator, method, AsyncMock())
            locator.screenshot = AsyncMock(return_value=b"\x89PNG")
            self.locators[ref] = locator
        return self.locators[ref]
