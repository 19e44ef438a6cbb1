"""
Playwright browser driver adapter

Everything that talks to Playwright or to the Chrome DevTools Protocol lives
here: launching or connecting to the browser, creating contexts, reading the
accessibility tree, resolving element refs, and the page-activation event.

Element refs are `e<backendDOMNodeId>`. The accessibility tree is read with
Accessibility.getFullAXTree and refs are resolved back to elements with
DOM.resolveNode, then tagged so a regular Playwright locator can target them.
"""

import itertools
import logging
import weakref
from collections.abc import Callable
from pathlib import Path
from typing import Any

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from .config import BrowserConfig, ProxyConfig, default_proxy, parse_viewport
from .errors import ConnectFailed, ContextCreateFailed, LaunchFailed

logger = logging.getLogger(__name__)

REF_ATTRIBUTE = "data-session-mcp-ref"
ACTIVATION_BINDING = "__sessionMcpPageActivated"
MAX_FRAME_DEPTH = 3

# Reports page activation (tab switch, window focus) back to Python
ACTIVATION_SCRIPT = """
(() => {
  if (window !== window.top || window.__sessionMcpActivationHooked) return;
  window.__sessionMcpActivationHooked = true;
  const notify = () => {
    if (document.visibilityState === 'visible' && window.__BINDING__) {
      window.__BINDING__().catch(() => {});
    }
  };
  document.addEventListener('visibilitychange', notify);
  window.addEventListener('focus', notify);
})();
""".replace("__BINDING__", ACTIVATION_BINDING)

TAG_FUNCTION = f"""
function(ref) {{
  const el = this.nodeType === Node.ELEMENT_NODE ? this : this.parentElement;
  if (el) el.setAttribute('{REF_ATTRIBUTE}', ref);
}}
"""

# Chrome-internal role names mapped to the names shown in snapshots
ROLE_ALIASES = {
    "RootWebArea": "document",
    "WebArea": "document",
    "StaticText": "text",
    "Iframe": "iframe",
    "IframePresentational": "iframe",
    "LabelText": "label",
}
SKIPPED_ROLES = frozenset({"InlineTextBox", "LineBreak", "ListMarker"})
FLATTENED_ROLES = frozenset({"generic", "none", "presentation"})


def _ax_value(value: Any) -> Any:
    """CDP AXValue is usually a dict with {type,value}. Return the underlying value."""
    if isinstance(value, dict) and "value" in value:
        return value.get("value")
    return value


def _ax_properties(node: dict[str, Any]) -> dict[str, Any]:
    props = {}
    for prop in node.get("properties") or []:
        if isinstance(prop, dict) and prop.get("name"):
            props[prop["name"]] = _ax_value(prop.get("value"))
    return props


def _tristate(value: Any) -> bool | str | None:
    if value in (True, "true"):
        return True
    if value in (False, "false"):
        return False
    if value == "mixed":
        return "mixed"
    return None


def convert_ax_nodes(
    nodes: list[dict[str, Any]], tab_indexes: dict[int, int] | None = None
) -> dict[str, Any] | None:
    """
    Convert a flat CDP AX node list into the nested raw tree used by capture.

    Ignored nodes and unnamed generic wrappers are dropped; their children are
    attached to the nearest kept ancestor.
    """
    tab_indexes = tab_indexes or {}
    by_id = {node["nodeId"]: node for node in nodes if isinstance(node, dict) and "nodeId" in node}
    if not by_id:
        return None

    def convert(node: dict[str, Any]) -> list[dict[str, Any]]:
        children: list[dict[str, Any]] = []
        for child_id in node.get("childIds") or []:
            child = by_id.get(child_id)
            if child is not None:
                children.extend(convert(child))

        chrome_role = str(_ax_value(node.get("role")) or "")
        if node.get("ignored") or chrome_role in SKIPPED_ROLES:
            return children

        name = str(_ax_value(node.get("name")) or "")
        backend_id = node.get("backendDOMNodeId")
        tab_index = tab_indexes.get(backend_id) if backend_id is not None else None
        if chrome_role in FLATTENED_ROLES and not name and tab_index is None:
            return children

        props = _ax_properties(node)
        role = ROLE_ALIASES.get(chrome_role, chrome_role)
        value = _ax_value(node.get("value"))
        level = props.get("level")
        return [
            {
                "role": role,
                "name": name,
                "ref": f"e{backend_id}" if backend_id is not None else None,
                "backend_id": backend_id,
                "description": _ax_value(node.get("description")) or None,
                "value": str(value) if value not in (None, "") else None,
                "tab_index": tab_index,
                "disabled": props.get("disabled") is True,
                "expanded": props.get("expanded") if isinstance(props.get("expanded"), bool) else None,
                "selected": props.get("selected") is True,
                "checked": _tristate(props.get("checked")),
                "pressed": _tristate(props.get("pressed")) is True,
                "level": int(level) if isinstance(level, (int, float)) else None,
                "is_frame": role == "iframe",
                "children": children,
            }
        ]

    roots = [node for node in by_id.values() if node.get("parentId") not in by_id]
    if not roots:
        return None
    converted = convert(roots[0])
    if len(converted) == 1:
        return converted[0]
    return {"role": "document", "name": "", "children": converted}


def _collect_tab_indexes(document: dict[str, Any]) -> dict[int, int]:
    """Map backendNodeId -> tabindex for every element with an explicit tabindex."""
    result: dict[int, int] = {}
    stack = [document]
    while stack:
        node = stack.pop()
        attributes = node.get("attributes") or []
        for name, value in zip(attributes[::2], attributes[1::2]):
            if name == "tabindex" and value.strip().lstrip("-").isdigit():
                result[node["backendNodeId"]] = int(value)
        stack.extend(node.get("children") or [])
        stack.extend(node.get("shadowRoots") or [])
        if node.get("contentDocument"):
            stack.append(node["contentDocument"])
    return result


class PlaywrightDriver:
    """Owns the Playwright runtime and the browser connection."""

    def __init__(self, config: BrowserConfig):
        self.config = config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._persistent_context: BrowserContext | None = None
        self._persistent_context_used = False
        self._persistent_context_closed = False
        self._connected_over_cdp = False
        self._page_ids: "weakref.WeakKeyDictionary[Page, str]" = weakref.WeakKeyDictionary()
        self._page_counter = itertools.count(1)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._browser is not None or self._persistent_context is not None

    async def start(self) -> Playwright:
        """Start the Playwright runtime"""
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return self._playwright

    def _launch_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {"headless": self.config.get("headless", False)}
        browser = self.config.get("browser", "chromium")
        if browser != "chromium":
            options["channel"] = browser
        return options

    def _context_options(self, proxy: ProxyConfig | None) -> dict[str, Any]:
        options: dict[str, Any] = {}
        viewport = parse_viewport(self.config.get("viewport_size"))
        if viewport:
            options["viewport"] = {"width": viewport[0], "height": viewport[1]}
        if self.config.get("user_agent"):
            options["user_agent"] = self.config["user_agent"]
        if self.config.get("ignore_https_errors"):
            options["ignore_https_errors"] = True
        storage_state = self.config.get("storage_state")
        if storage_state and Path(storage_state).exists():
            options["storage_state"] = storage_state
        if proxy:
            options["proxy"] = {key: value for key, value in proxy.items() if value}
        return options

    async def launch(self) -> None:
        """
        Launch a browser, or connect to one when a CDP endpoint is configured.

        Raises:
            LaunchFailed: If the browser cannot be launched
            ConnectFailed: If the CDP endpoint cannot be reached
        """
        try:
            playwright = await self.start()
        except PlaywrightError as e:
            raise LaunchFailed(str(e)) from e
        chromium = playwright.chromium

        endpoint = self.config.get("cdp_endpoint")
        if endpoint:
            logger.info(f"Connecting to browser over CDP: {endpoint}")
            try:
                self._browser = await chromium.connect_over_cdp(endpoint)
            except PlaywrightError as e:
                raise ConnectFailed(endpoint, str(e)) from e
            self._connected_over_cdp = True
            return

        options = self._launch_options()
        user_data_dir = self.config.get("user_data_dir")
        logger.info(f"Launching browser: {options}, user_data_dir={user_data_dir}")
        try:
            if user_data_dir:
                self._persistent_context = await chromium.launch_persistent_context(
                    user_data_dir, **options, **self._context_options(default_proxy(self.config))
                )
                self._persistent_context_used = False
                self._persistent_context_closed = False
                self._persistent_context.on("close", self._on_persistent_context_closed)
            else:
                self._browser = await chromium.launch(**options)
        except PlaywrightError as e:
            raise LaunchFailed(str(e)) from e

    async def new_context(self, name: str, proxy: ProxyConfig | None = None) -> BrowserContext:
        """
        Create a new isolated browser context.

        With a persistent user data directory there is exactly one context,
        handed out on the first call.

        Raises:
            ContextCreateFailed: If the driver cannot create the context
        """
        if self._persistent_context is not None:
            if self._persistent_context_used:
                raise ContextCreateFailed(
                    name, "additional contexts are not available with a persistent user data directory"
                )
            self._persistent_context_used = True
            return self._persistent_context

        if self._browser is None:
            raise ContextCreateFailed(name, "browser is not running")

        try:
            return await self._browser.new_context(**self._context_options(proxy))
        except PlaywrightError as e:
            raise ContextCreateFailed(name, str(e)) from e

    async def close(self) -> None:
        """Close the browser (disconnect when connected over CDP) and stop Playwright."""
        playwright = self._playwright
        try:
            if self._persistent_context is not None:
                await self._persistent_context.close()
            elif self._browser is not None:
                if self._connected_over_cdp:
                    logger.info("Disconnecting from CDP browser (the browser keeps running)")
                await self._browser.close()
        finally:
            self.forget()
            if playwright is not None:
                await playwright.stop()

    def forget(self) -> None:
        """
        Drop the browser connection without closing it (it is already dead).

        The Playwright runtime is dropped too: when the loss was the driver
        connection itself, reusing the runtime would fail every relaunch.
        """
        self._browser = None
        self._persistent_context = None
        self._persistent_context_used = False
        self._persistent_context_closed = False
        self._connected_over_cdp = False
        self._playwright = None

    def is_connected(self) -> bool:
        """Whether the browser is still reachable, as far as Playwright knows."""
        if self._browser is not None:
            return self._browser.is_connected()
        if self._persistent_context is not None:
            return not self._persistent_context_closed
        return False

    def _on_persistent_context_closed(self, _context: BrowserContext) -> None:
        self._persistent_context_closed = True

    # -------------------------------------------------------------------------
    # Pages and events
    # -------------------------------------------------------------------------

    def page_id(self, page: Page) -> str:
        """Stable identity of a page for the lifetime of the page."""
        page_id = self._page_ids.get(page)
        if page_id is None:
            page_id = f"page-{next(self._page_counter)}"
            self._page_ids[page] = page_id
        return page_id

    async def subscribe_page_activated(
        self, context: BrowserContext, callback: Callable[[Page], None]
    ) -> None:
        """Call `callback(page)` whenever a page of the context becomes visible or focused."""

        def on_activated(source: dict[str, Any]) -> None:
            page = source.get("page")
            if page is not None:
                callback(page)

        await context.expose_binding(ACTIVATION_BINDING, on_activated)
        await context.add_init_script(script=ACTIVATION_SCRIPT)
        for page in context.pages:
            try:
                await page.evaluate(ACTIVATION_SCRIPT)
            except PlaywrightError as e:
                logger.warning(f"Could not hook activation events on {page.url}: {e}")

    async def save_storage_state(self, context: BrowserContext, path: str) -> dict[str, Any]:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return await context.storage_state(path=path)

    # -------------------------------------------------------------------------
    # Accessibility tree and refs
    # -------------------------------------------------------------------------

    async def accessibility_tree(self, page: Page) -> dict[str, Any] | None:
        """
        Read the page's accessibility tree, including same-process iframes.

        Returns:
            Raw nested tree, or None if the page exposes no accessible content
        """
        session = await page.context.new_cdp_session(page)
        try:
            document = await session.send("DOM.getDocument", {"depth": -1, "pierce": True})
            tab_indexes = _collect_tab_indexes(document.get("root") or {})
            result = await session.send("Accessibility.getFullAXTree")
            root = convert_ax_nodes(result.get("nodes") or [], tab_indexes)
            if root is not None:
                await self._attach_frames(session, root, tab_indexes, depth=1)
        finally:
            await session.detach()
        return root

    async def _attach_frames(
        self, session: Any, node: dict[str, Any], tab_indexes: dict[int, int], depth: int
    ) -> None:
        for child in node.get("children") or []:
            await self._attach_frames(session, child, tab_indexes, depth)

        if not node.get("is_frame") or node.get("backend_id") is None or depth > MAX_FRAME_DEPTH:
            return

        try:
            described = await session.send("DOM.describeNode", {"backendNodeId": node["backend_id"]})
            frame_id = described.get("node", {}).get("frameId")
            if not frame_id:
                return
            result = await session.send("Accessibility.getFullAXTree", {"frameId": frame_id})
        except PlaywrightError as e:
            # Out-of-process iframes are not reachable from the page session
            logger.debug(f"Skipping frame content for {node.get('ref')}: {e}")
            return

        frame_root = convert_ax_nodes(result.get("nodes") or [], tab_indexes)
        if frame_root is None:
            return
        await self._attach_frames(session, frame_root, tab_indexes, depth + 1)
        if frame_root.get("role") == "document":
            node["children"] = list(node.get("children") or []) + list(frame_root.get("children") or [])
        else:
            node["children"] = list(node.get("children") or []) + [frame_root]

    async def locate(self, page: Page, ref: str) -> Any | None:
        """
        Resolve a driver ref to a Playwright locator.

        Returns:
            Locator for the element, or None if the element no longer exists
        """
        backend_id = int(ref[1:])
        session = await page.context.new_cdp_session(page)
        try:
            try:
                resolved = await session.send("DOM.resolveNode", {"backendNodeId": backend_id})
            except PlaywrightError as e:
                if "node" not in str(e).lower():
                    raise
                logger.debug(f"Ref {ref} did not resolve: {e}")
                return None
            object_id = resolved.get("object", {}).get("objectId")
            if not object_id:
                return None
            await session.send(
                "Runtime.callFunctionOn",
                {
                    "objectId": object_id,
                    "functionDeclaration": TAG_FUNCTION,
                    "arguments": [{"value": ref}],
                },
            )
        finally:
            await session.detach()

        selector = f'[{REF_ATTRIBUTE}="{ref}"]'
        for frame in page.frames:
            locator = frame.locator(selector)
            if await locator.count() > 0:
                return locator.first
        return None
