"""
Browser Session Manager

Owns the single browser connection and the named browser contexts running
in it. Exactly one context is active at a time; a context named "default"
is created on initialization.

Lifecycle:

    UNINITIALIZED --initialize()--> INITIALIZING --> READY
    READY --connection loss detected--> UNINITIALIZED

Connection loss is detected reactively: errors escaping `guard()` are
inspected, and a match resets the session without touching the dead
connection. The next `initialize()` relaunches the browser.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..snapshot.capture import capture
from ..snapshot.element import AccessibilitySnapshot, SnapshotElement
from ..snapshot.reference import ElementRef, resolve
from ..snapshot.stale import compare, enforce_policy
from .config import BrowserConfig, ProxyConfig, default_proxy
from .context import ContextState
from .driver import PlaywrightDriver
from .errors import (
    CannotCloseLastContext,
    ConnectionLost,
    ContextAlreadyExists,
    ContextNotFound,
    NoActivePage,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT = "default"

# Matched case-insensitively against "<ExceptionType>: <message>"
CONNECTION_LOSS_SIGNATURES = (
    "websocket connection lost",
    "connectionlost",
    "connection closed",
    "browser has been closed",
    "browser has disconnected",
    "browser closed",
)

# Playwright's TargetClosedError text. It is raised both for a closed page and
# for a dead browser, so on its own it only counts while the driver reports
# the browser as disconnected.
TARGET_CLOSED_MESSAGE = "target page, context or browser has been closed"


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass
class ResolvedRef:
    """An element ref resolved against a fresh snapshot."""

    ref: ElementRef
    locator: Any
    page: Any
    context: ContextState
    element: SnapshotElement | None
    note: str | None = None

    @property
    def description(self) -> str:
        return self.element.describe() if self.element else str(self.ref)


def is_connection_loss(error: BaseException, browser_connected: bool = True) -> bool:
    """
    Check an error and its cause chain for connection-loss signatures.

    Args:
        error: The error escaping a block of driver work
        browser_connected: Driver's view of the browser connection; a
            target-closed error only counts as a loss when this is False
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        message = f"{type(current).__name__}: {current}".lower()
        if TARGET_CLOSED_MESSAGE in message:
            if not browser_connected:
                return True
            message = message.replace(TARGET_CLOSED_MESSAGE, "")
        if any(signature in message for signature in CONNECTION_LOSS_SIGNATURES):
            return True
        current = current.__cause__ or current.__context__
    return False


class BrowserSession:
    """Single browser connection with named, isolated contexts."""

    def __init__(self, config: BrowserConfig, driver: Any = None):
        self.config = config
        self.driver = driver if driver is not None else PlaywrightDriver(config)
        self.contexts: dict[str, ContextState] = {}
        self.active_context_name = DEFAULT_CONTEXT
        self.initialized = False
        self.state = SessionState.UNINITIALIZED
        self._init_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Launch (or connect to) the browser and create the default context.

        Idempotent: concurrent callers wait on the same initialization and
        never trigger a second launch.

        Raises:
            LaunchFailed: If the browser cannot be launched
            ConnectFailed: If the CDP endpoint cannot be reached
        """
        if self.initialized:
            return

        async with self._init_lock:
            if self.initialized:
                return

            self.state = SessionState.INITIALIZING
            logger.info("=" * 50)
            logger.info("Initializing browser session")
            logger.info("=" * 50)

            try:
                await self.driver.launch()
                await self._create_context(DEFAULT_CONTEXT, default_proxy(self.config))
            except Exception as e:
                logger.error(f"Browser session initialization failed: {e}", exc_info=True)
                self.contexts.clear()
                self.state = SessionState.UNINITIALIZED
                try:
                    await self.driver.close()
                except Exception as close_error:
                    logger.warning(f"Error cleaning up after failed launch: {close_error}")
                raise

            self.active_context_name = DEFAULT_CONTEXT
            self.initialized = True
            self.state = SessionState.READY
            logger.info("Browser session ready")

    async def shutdown(self) -> None:
        """Close every context and the browser. Best-effort: errors are logged."""
        logger.info("Shutting down browser session...")

        names = list(self.contexts)
        results = await asyncio.gather(
            *(self.contexts[name].close() for name in names), return_exceptions=True
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning(f"Error closing context '{name}': {result}")
        self.contexts.clear()

        try:
            await self.driver.close()
        except Exception as e:
            logger.warning(f"Error closing browser: {e}")

        self.initialized = False
        self.state = SessionState.UNINITIALIZED
        self.active_context_name = DEFAULT_CONTEXT
        logger.info("Browser session shut down")

    def detect_and_recover(self, error: BaseException) -> bool:
        """
        Reset the session if `error` signals a lost browser connection.

        The dead connection is not closed; contexts and the initialized flag
        are simply dropped so the next call relaunches.

        Returns:
            True if the session was reset
        """
        if not is_connection_loss(error, browser_connected=self.driver.is_connected()):
            return False

        logger.warning("=" * 50)
        logger.warning(f"Browser connection lost: {error}")
        logger.warning(f"Dropping {len(self.contexts)} context(s); browser will relaunch on next use")
        logger.warning("=" * 50)

        self.contexts.clear()
        self.initialized = False
        self.state = SessionState.UNINITIALIZED
        self.active_context_name = DEFAULT_CONTEXT
        self.driver.forget()
        return True

    @asynccontextmanager
    async def guard(self) -> AsyncIterator["BrowserSession"]:
        """
        Run a block of driver work.

        Raises:
            ConnectionLost: If the block failed because the browser went away;
                the session has been reset and the next call relaunches
        """
        try:
            yield self
        except ConnectionLost:
            raise
        except Exception as e:
            if self.detect_and_recover(e):
                raise ConnectionLost(str(e)) from e
            raise

    # -------------------------------------------------------------------------
    # Contexts
    # -------------------------------------------------------------------------

    @property
    def is_multi_context(self) -> bool:
        return len(self.contexts) > 1

    def context_prefix(self, state: ContextState) -> str | None:
        """Ref prefix for a context: its name in multi-context mode, otherwise None."""
        return state.name if self.is_multi_context else None

    async def _create_context(self, name: str, proxy: ProxyConfig | None) -> ContextState:
        browser_context = await self.driver.new_context(name, proxy)
        state = ContextState(name, browser_context, self.driver, proxy)
        await state.attach()
        self.contexts[name] = state
        logger.info(
            f"Created browser context '{name}'"
            + (f" (proxy: {proxy['server']})" if proxy else "")
        )
        return state

    async def get_or_create_context(self, name: str, proxy: ProxyConfig | None = None) -> ContextState:
        """Return the named context, creating it (and "default" if missing) as needed."""
        await self.initialize()
        if name in self.contexts:
            return self.contexts[name]

        if DEFAULT_CONTEXT not in self.contexts:
            await self._create_context(DEFAULT_CONTEXT, default_proxy(self.config))
            if name == DEFAULT_CONTEXT:
                return self.contexts[DEFAULT_CONTEXT]

        return await self._create_context(name, proxy or default_proxy(self.config))

    async def create_context(self, name: str, proxy: ProxyConfig | None = None) -> ContextState:
        """
        Create a new named context and make it active.

        Raises:
            ValueError: If the name cannot be used as a ref prefix
            ContextAlreadyExists: If the name is taken
        """
        if not name or ":" in name or any(ch.isspace() for ch in name):
            raise ValueError(f"Invalid context name '{name}': must be non-empty without ':' or spaces")
        await self.initialize()
        if name in self.contexts:
            raise ContextAlreadyExists(name)

        state = await self.get_or_create_context(name, proxy)
        self.active_context_name = name
        return state

    def switch_active_context(self, name: str) -> ContextState:
        """
        Raises:
            ContextNotFound: If no context has that name
        """
        state = self.contexts.get(name)
        if state is None:
            raise ContextNotFound(name, list(self.contexts))
        self.active_context_name = name
        logger.info(f"Switched active context to '{name}'")
        return state

    async def close_context(self, name: str) -> str:
        """
        Close a context and its pages.

        If the closed context was active, "default" becomes active (or the
        oldest remaining context when "default" itself was closed).

        Returns:
            Name of the context that is active afterwards

        Raises:
            ContextNotFound: If no context has that name
            CannotCloseLastContext: If it is the only remaining context
        """
        if name not in self.contexts:
            raise ContextNotFound(name, list(self.contexts))
        if len(self.contexts) == 1:
            raise CannotCloseLastContext(name)

        state = self.contexts.pop(name)
        if self.active_context_name == name:
            self.active_context_name = (
                DEFAULT_CONTEXT if DEFAULT_CONTEXT in self.contexts else next(iter(self.contexts))
            )
            logger.info(f"Closed active context '{name}', now using '{self.active_context_name}'")

        await state.close()
        return self.active_context_name

    def active_context(self) -> ContextState:
        state = self.contexts.get(self.active_context_name)
        if state is None:
            raise ContextNotFound(self.active_context_name, list(self.contexts))
        return state

    async def current_context(self) -> ContextState:
        """Initialize if needed and return the active context."""
        await self.initialize()
        return self.active_context()

    def list_contexts(self) -> list[dict[str, Any]]:
        return [
            {**state.info(), "active": name == self.active_context_name}
            for name, state in self.contexts.items()
        ]

    async def save_storage_state(self, path: str, name: str | None = None) -> dict[str, Any]:
        """Export cookies and local storage of a context (default: active) to a JSON file."""
        await self.initialize()
        if name is not None and name not in self.contexts:
            raise ContextNotFound(name, list(self.contexts))
        state = self.contexts[name] if name is not None else self.active_context()
        storage = await self.driver.save_storage_state(state.context, path)
        return {
            "context": state.name,
            "path": path,
            "cookies": len(storage.get("cookies", [])),
            "origins": len(storage.get("origins", [])),
        }

    # -------------------------------------------------------------------------
    # Pages
    # -------------------------------------------------------------------------

    async def ensure_page(self) -> Any:
        """Active page of the active context, opening one if there is none."""
        state = await self.current_context()
        return await state.ensure_page()

    async def active_page(self) -> Any:
        """
        Raises:
            NoActivePage: If the active context has no pages
        """
        state = await self.current_context()
        page = state.active_page()
        if page is None:
            raise NoActivePage(state.name)
        return page

    def invalidate(self) -> None:
        """Invalidate the active context's snapshot cache after a mutating action."""
        state = self.contexts.get(self.active_context_name)
        if state is not None:
            state.invalidate()

    # -------------------------------------------------------------------------
    # Snapshots and refs
    # -------------------------------------------------------------------------

    async def snapshot(self, all_refs: bool = False) -> AccessibilitySnapshot:
        """
        Snapshot of the active page, served from cache when still valid.

        Full-ref snapshots always capture fresh and are never cached.
        """
        state = await self.current_context()
        page = state.active_page()
        if page is None:
            raise NoActivePage(state.name)

        prefix = self.context_prefix(state)
        if not all_refs:
            cached = state.get_cached()
            if cached is not None:
                logger.debug(f"Serving cached snapshot for context '{state.name}'")
                cached.context_prefix = prefix
                return cached

        snapshot = await capture(self.driver, page, all_refs=all_refs, context_prefix=prefix)
        state.record_generation(snapshot)
        if not all_refs:
            state.cache(snapshot)
        return snapshot

    async def resolve_ref(self, ref_text: str) -> ResolvedRef:
        """
        Resolve a ref from a snapshot to a locator, checking for staleness.

        A fresh full-ref snapshot is captured and compared with the previous
        generation; removed or materially changed elements are rejected.

        Raises:
            InvalidRefFormat: If the ref is malformed
            StaleRefError: If the element was removed or changed
            ContextNotFound: If the ref names an unknown context
            NoActivePage: If the target context has no pages
        """
        resolved = await self.resolve_refs([ref_text])
        return resolved[0]

    async def resolve_refs(self, ref_texts: list[str]) -> list[ResolvedRef]:
        """
        Resolve several refs for one action.

        Each context involved is captured once and every ref is checked
        against that capture before any locator is handed out, so an action
        on several elements gets all of its targets or none.
        """
        refs = [ElementRef.parse(text) for text in ref_texts]
        await self.initialize()

        captures: dict[str, tuple[Any, AccessibilitySnapshot]] = {}
        checked = []
        for ref in refs:
            if ref.context is not None:
                state = self.contexts.get(ref.context)
                if state is None:
                    raise ContextNotFound(ref.context, list(self.contexts))
            else:
                state = self.active_context()

            if state.name not in captures:
                page = state.active_page()
                if page is None:
                    raise NoActivePage(state.name)
                current = await capture(
                    self.driver, page, all_refs=True, context_prefix=self.context_prefix(state)
                )
                state.record_generation(current)
                captures[state.name] = (page, current)

            page, current = captures[state.name]
            note = enforce_policy(compare(current, current.previous, ref.ref))
            checked.append((ref, state, page, current, note))

        resolved = []
        for ref, state, page, current, note in checked:
            locator = await resolve(self.driver, page, ref)
            resolved.append(
                ResolvedRef(
                    ref=ref,
                    locator=locator,
                    page=page,
                    context=state,
                    element=current.get(ref.ref),
                    note=note,
                )
            )
        return resolved
