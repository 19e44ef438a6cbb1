"""
Browser context state

One ContextState per isolated browser context. It tracks which page is
active, keeps console output, completed requests and dialog handling per
page, and holds the snapshot cache.

Driver events (page created, page activated, console message, ...) arrive as
event-loop callbacks independently of tool calls. Activation callbacks only
publish a pending marker; the active page index is resolved lazily on the
next read, so neither path needs a lock.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..snapshot.element import AccessibilitySnapshot
from .config import ProxyConfig
from .console import ConsoleBuffer, ConsoleLevel, StoredConsoleMessage
from .dialogs import DialogHandler
from .network import RequestLog, StoredRequest

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_TTL = 5.0  # seconds

# (emitter, event, handler)
Subscription = tuple[Any, str, Callable[..., Any]]


@dataclass(frozen=True)
class PendingActivation:
    """A page activation seen by the event handler but not yet applied."""

    page_id: str
    timestamp: float


@dataclass
class CachedSnapshot:
    """Cache entry for the most recent default-mode snapshot."""

    snapshot: AccessibilitySnapshot
    url: str
    page_index: int | None
    ttl: float = SNAPSHOT_CACHE_TTL
    created_at: float = field(default_factory=time.monotonic)

    @property
    def is_expired(self) -> bool:
        return time.monotonic() - self.created_at >= self.ttl


class ContextState:
    """State of one named browser context."""

    def __init__(
        self,
        name: str,
        context: Any,
        driver: Any,
        proxy: ProxyConfig | None = None,
        cache_ttl: float = SNAPSHOT_CACHE_TTL,
    ):
        self.name = name
        self.context = context
        self.driver = driver
        self.proxy = proxy
        self.cache_ttl = cache_ttl

        self.active_page_index: int | None = None
        self.current_url = ""
        self.latest_snapshot: AccessibilitySnapshot | None = None

        self._console: dict[str, ConsoleBuffer] = {}
        self._network: dict[str, RequestLog] = {}
        self._dialogs: dict[str, DialogHandler] = {}
        self._cache: CachedSnapshot | None = None
        self._cache_invalidated = False
        self._pending_activation: PendingActivation | None = None
        self._subscriptions: list[Subscription] = []
        # Handlers registered on each watched page, dropped when the page closes
        self._page_subscriptions: dict[str, list[Subscription]] = {}

    # -------------------------------------------------------------------------
    # Event subscriptions
    # -------------------------------------------------------------------------

    async def attach(self) -> None:
        """Register driver event handlers. Called once, right after creation."""
        self._subscribe(self._subscriptions, self.context, "page", self._handle_page_created)
        await self.driver.subscribe_page_activated(self.context, self._handle_page_activated)

        for page in self.pages:
            self._watch_page(page)
        if self.pages:
            self.active_page_index = 0
            self.current_url = self.pages[0].url

    def detach(self) -> None:
        """Remove every event handler registered by this context."""
        self._unsubscribe(self._subscriptions)
        for subscriptions in self._page_subscriptions.values():
            self._unsubscribe(subscriptions)
        self._page_subscriptions.clear()

    @staticmethod
    def _subscribe(
        subscriptions: list[Subscription], emitter: Any, event: str, handler: Callable[..., Any]
    ) -> None:
        emitter.on(event, handler)
        subscriptions.append((emitter, event, handler))

    @staticmethod
    def _unsubscribe(subscriptions: list[Subscription]) -> None:
        for emitter, event, handler in subscriptions:
            emitter.remove_listener(event, handler)
        subscriptions.clear()

    @property
    def watched_pages(self) -> list[str]:
        return list(self._page_subscriptions)

    def _watch_page(self, page: Any) -> None:
        page_id = self.driver.page_id(page)
        if page_id in self._page_subscriptions:
            return
        subscriptions: list[Subscription] = []
        self._page_subscriptions[page_id] = subscriptions
        self._console[page_id] = ConsoleBuffer()
        network = self._network[page_id] = RequestLog()
        dialogs = self._dialogs[page_id] = DialogHandler()

        def on_console(message: Any) -> None:
            self._record_console(page_id, message)

        def on_response(response: Any) -> None:
            network.append(StoredRequest.from_response(response))

        def on_request_failed(request: Any) -> None:
            network.append(StoredRequest.from_failed_request(request))

        async def on_dialog(dialog: Any) -> None:
            await dialogs.handle(dialog)

        def on_close(_page: Any) -> None:
            self._handle_page_closed(page_id)

        self._subscribe(subscriptions, page, "console", on_console)
        self._subscribe(subscriptions, page, "response", on_response)
        self._subscribe(subscriptions, page, "requestfailed", on_request_failed)
        self._subscribe(subscriptions, page, "dialog", on_dialog)
        self._subscribe(subscriptions, page, "close", on_close)
        logger.debug(f"Context '{self.name}': watching page {page_id}")

    def _handle_page_created(self, page: Any) -> None:
        self._watch_page(page)

    def _handle_page_activated(self, page: Any) -> None:
        self._pending_activation = PendingActivation(self.driver.page_id(page), time.monotonic())
        self.current_url = page.url
        self.invalidate()

    def _handle_page_closed(self, page_id: str) -> None:
        self._unsubscribe(self._page_subscriptions.pop(page_id, []))
        self._console.pop(page_id, None)
        self._network.pop(page_id, None)
        self._dialogs.pop(page_id, None)
        self.invalidate()

    def _record_console(self, page_id: str, message: Any) -> None:
        buffer = self._console.setdefault(page_id, ConsoleBuffer())
        buffer.append(StoredConsoleMessage.from_driver(message))

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------

    @property
    def pages(self) -> list[Any]:
        return list(self.context.pages)

    def _apply_pending_activation(self) -> None:
        pending = self._pending_activation
        if pending is None:
            return
        self._pending_activation = None
        for index, page in enumerate(self.pages):
            if self.driver.page_id(page) == pending.page_id:
                self.active_page_index = index
                return
        logger.debug(f"Context '{self.name}': activated page {pending.page_id} already closed")

    def active_page(self) -> Any | None:
        """
        Return the active page, or None if the context has no pages.

        An index left out of range by closed pages is clamped to the last page.
        """
        self._apply_pending_activation()
        pages = self.pages
        if not pages:
            self.active_page_index = None
            return None
        if self.active_page_index is None or self.active_page_index >= len(pages):
            self.active_page_index = len(pages) - 1
        page = pages[self.active_page_index]
        self.current_url = page.url
        return page

    async def ensure_page(self) -> Any:
        """Return the active page, opening one first if the context has none."""
        page = self.active_page()
        if page is None:
            _, page = await self.new_page()
        return page

    async def new_page(self) -> tuple[int, Any]:
        """Open a new page and make it active."""
        page = await self.context.new_page()
        self._watch_page(page)
        self._pending_activation = None
        self.active_page_index = self.pages.index(page)
        self.current_url = page.url
        self.invalidate()
        logger.info(f"Context '{self.name}': opened page at index {self.active_page_index}")
        return self.active_page_index, page

    def _check_index(self, index: int) -> list[Any]:
        pages = self.pages
        if not 0 <= index < len(pages):
            raise ValueError(
                f"Tab index {index} out of range (context '{self.name}' has {len(pages)} tabs)"
            )
        return pages

    async def switch_page(self, index: int) -> Any:
        pages = self._check_index(index)
        page = pages[index]
        await page.bring_to_front()
        self._pending_activation = None
        self.active_page_index = index
        self.current_url = page.url
        self.invalidate()
        return page

    async def close_page(self, index: int | None = None) -> int:
        """
        Close the page at `index` (default: the active page).

        Returns:
            The index of the closed page
        """
        active = self.active_page()
        if index is None:
            if active is None:
                raise ValueError(f"Context '{self.name}' has no open tabs")
            target = self.active_page_index or 0
        else:
            target = index
        pages = self._check_index(target)

        await pages[target].close()

        remaining = len(self.pages)
        current = self.active_page_index
        if remaining == 0:
            self.active_page_index = None
            self.current_url = ""
        elif current is not None and target < current:
            self.active_page_index = current - 1
        elif current is not None and current >= remaining:
            self.active_page_index = remaining - 1
        self.invalidate()
        return target

    # -------------------------------------------------------------------------
    # Console
    # -------------------------------------------------------------------------

    def console_buffer(self, page: Any) -> ConsoleBuffer | None:
        return self._console.get(self.driver.page_id(page))

    def console_messages(self, level: ConsoleLevel = ConsoleLevel.INFO) -> list[StoredConsoleMessage]:
        """Console messages of the active page at or above `level`."""
        page = self.active_page()
        if page is None:
            return []
        buffer = self.console_buffer(page)
        return buffer.messages(level) if buffer else []

    # -------------------------------------------------------------------------
    # Network and dialogs
    # -------------------------------------------------------------------------

    def network_requests(self, include_static: bool = False) -> list[StoredRequest]:
        """Completed requests of the active page, oldest first."""
        page = self.active_page()
        if page is None:
            return []
        log = self._network.get(self.driver.page_id(page))
        return log.requests(include_static) if log else []

    def dialog_handler(self, page: Any) -> DialogHandler:
        """Dialog handler of a page, watching the page first if needed."""
        self._watch_page(page)
        return self._dialogs[self.driver.page_id(page)]

    # -------------------------------------------------------------------------
    # Snapshot cache
    # -------------------------------------------------------------------------

    def invalidate(self) -> None:
        self._cache_invalidated = True

    def get_cached(self) -> AccessibilitySnapshot | None:
        """
        Return the cached snapshot if it is still usable.

        The cache is dropped when invalidated, older than the TTL, or taken
        on a different page or URL than the current one.
        """
        if self._cache_invalidated:
            self._cache_invalidated = False
            self._cache = None
            return None

        entry = self._cache
        if entry is None:
            return None

        page = self.active_page()
        url = page.url if page is not None else ""
        if entry.is_expired or entry.page_index != self.active_page_index or entry.url != url:
            self._cache = None
            return None
        return entry.snapshot

    def cache(self, snapshot: AccessibilitySnapshot) -> None:
        self._cache = CachedSnapshot(
            snapshot=snapshot,
            url=snapshot.url,
            page_index=self.active_page_index,
            ttl=self.cache_ttl,
        )
        self._cache_invalidated = False

    def record_generation(self, snapshot: AccessibilitySnapshot) -> None:
        """Make `snapshot` the latest generation, keeping one prior generation."""
        snapshot.link_previous(self.latest_snapshot)
        self.latest_snapshot = snapshot

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close every page and then the context itself."""
        self.detach()
        try:
            for page in self.pages:
                await page.close()
        finally:
            await self.context.close()
        self._console.clear()
        self._network.clear()
        self._dialogs.clear()
        self._cache = None
        self.latest_snapshot = None
        logger.info(f"Context '{self.name}' closed")

    def info(self) -> dict[str, Any]:
        page = self.active_page()
        return {
            "name": self.name,
            "pages": len(self.pages),
            "active_page_index": self.active_page_index,
            "url": page.url if page is not None else self.current_url,
            "proxy": self.proxy["server"] if self.proxy else None,
        }
