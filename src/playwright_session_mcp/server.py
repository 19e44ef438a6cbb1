"""
Playwright Session MCP Server

Browser automation for LLM agents over MCP. The server drives a single
Playwright-controlled Chromium and exposes it as tools:

1. Accessibility snapshots with element refs (`e42`, or `work:e42` when
   several browser contexts are open)
2. Ref-based actions (click, type, hover, ...) with stale-ref detection
3. Named, isolated browser contexts with optional per-context proxies
4. Tabs, console and network capture, dialogs, screenshots, storage-state export

The browser is launched lazily on the first tool call and relaunched
transparently after a lost connection.
"""

import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .browser import (
    BrowserSession,
    ConsoleLevel,
    DialogPolicy,
    ProxyConfig,
    ResolvedRef,
    load_browser_config,
    load_logging_config,
    run_action,
    wait_for_settle,
)
from .browser.config import BrowserConfig
from .capabilities import TOOL_CAPABILITIES, is_tool_available, parse_capabilities
from .middleware import MCPLoggingMiddleware
from .snapshot import counts, format_snapshot
from .types import (
    ConsoleResponse,
    ContextResponse,
    DialogResponse,
    EvaluationResponse,
    FileResponse,
    FormField,
    NetworkResponse,
    SnapshotResponse,
    TabsResponse,
    ToolResponse,
)
from .utils.logging_config import get_logger, log_dict, log_tool_result, setup_file_logging

# Configure logging using centralized utility
_logging_config = load_logging_config()
setup_file_logging(
    log_file=_logging_config["log_file"],
    level=getattr(logging, _logging_config["log_level"], logging.INFO),
)
logger = get_logger(__name__)

logger.info(f"Python interpreter: {sys.executable}")
logger.info(f"Python version: {sys.version}")

# Global components
browser_config: BrowserConfig | None = None
session: BrowserSession | None = None


@asynccontextmanager
async def lifespan_context(server):
    """Lifespan context manager for startup and shutdown"""
    global browser_config, session

    logger.info("Starting Playwright Session MCP...")

    try:
        browser_config = load_browser_config()
        log_dict(logger, "Browser configuration:", dict(browser_config))

        enabled = parse_capabilities(browser_config.get("caps"))
        for tool_name in TOOL_CAPABILITIES:
            if not is_tool_available(tool_name, enabled):
                server.remove_tool(tool_name)
                logger.info(f"Tool '{tool_name}' disabled (capability not enabled)")

        # The browser itself is launched on first use
        session = BrowserSession(browser_config)

        logger.info("Playwright Session MCP started successfully")

        yield

    except Exception as e:
        logger.error(f"Failed to start Playwright Session MCP: {e}", exc_info=True)
        raise

    finally:
        logger.info("Shutting down Playwright Session MCP...")

        try:
            if session:
                await session.shutdown()
            logger.info("Playwright Session MCP shut down successfully")

        except Exception as e:
            logger.error(f"Error during shutdown: {e}", exc_info=True)


# Initialize the MCP server
mcp = FastMCP(
    name="Playwright Session MCP",
    instructions="""
    Browser automation through accessibility snapshots.

    Call browser_snapshot to see the page as an accessibility tree. Interactive
    elements carry refs like [ref=e42]; pass the ref to browser_click,
    browser_type and the other element tools.

    If a tool reports that an element no longer exists or has changed, take a
    new snapshot and use the refs from it.

    Several isolated browser contexts can be open at once (browser_context_*
    tools). While more than one exists, refs are shown as <context>:e42.

    JavaScript dialogs are dismissed unless browser_handle_dialog was called
    beforehand to accept the next one.
    """,
    lifespan=lifespan_context,
)

# Register MCP request/response logging middleware
# Logs all client MCP requests and responses with "CLIENT_MCP" prefix for easy filtering
mcp.add_middleware(
    MCPLoggingMiddleware(log_request_params=True, log_response_data=True, max_log_length=10000)
)


# =============================================================================
# HELPERS
# =============================================================================


def _get_session() -> BrowserSession:
    if not session:
        raise RuntimeError("Browser session not initialized")
    return session


def _setting(key: str, default: Any) -> Any:
    if not browser_config:
        return default
    return browser_config.get(key, default)


@asynccontextmanager
async def _browser() -> AsyncIterator[BrowserSession]:
    """Yield the session; driver errors pass through connection-loss detection."""
    current = _get_session()
    async with current.guard():
        yield current


async def _perform(resolved: ResolvedRef, action: Any, may_navigate: bool = False) -> bool:
    """Run an element action; the snapshot cache is invalidated even if it fails."""
    try:
        return await run_action(
            resolved.page,
            action,
            may_navigate=may_navigate,
            navigation_timeout_ms=_setting("timeout_navigation", 10000),
            settle_timeout_ms=_setting("settle_timeout", 5000),
        )
    finally:
        resolved.context.invalidate()


def _action_response(message: str, resolved: ResolvedRef, navigated: bool = False) -> ToolResponse:
    return ToolResponse(
        success=True,
        message=message,
        url=resolved.page.url,
        context=resolved.context.name,
        navigated=navigated,
        note=resolved.note,
    )


def _output_path(filename: str | None, default_stem: str, suffix: str) -> Path:
    """Resolve an output file name; relative names land in the output directory."""
    if filename:
        path = Path(filename)
    else:
        stamp = datetime.now().strftime("%Y%m%dT%H%M%S%f")
        path = Path(f"{default_stem}-{stamp}.{suffix}")
    if not path.is_absolute():
        path = Path(_setting("output_dir", "output")) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


async def _snapshot_response(browser: BrowserSession, all_refs: bool = False) -> SnapshotResponse:
    snapshot = await browser.snapshot(all_refs=all_refs)
    ref_count, element_count = counts(snapshot.root)
    page = await browser.active_page()

    header = f"Page snapshot ({element_count} elements, {ref_count} refs"
    header += ", compact mode)" if snapshot.compact else ")"

    return SnapshotResponse(
        success=True,
        url=page.url,
        title=await page.title(),
        context=browser.active_context_name,
        elements=element_count,
        refs=ref_count,
        compact=snapshot.compact,
        snapshot=f"{header}\n\n{format_snapshot(snapshot)}",
    )


# =============================================================================
# NAVIGATION TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def browser_navigate(url: str) -> SnapshotResponse:
    """
    Navigate to a URL and return the page snapshot.

    Opens a tab first if the active context has none.

    Args:
        url: The URL to navigate to

    Returns:
        Snapshot of the loaded page
    """
    async with _browser() as browser:
        page = await browser.ensure_page()
        try:
            await page.goto(
                url, wait_until="domcontentloaded", timeout=_setting("timeout_navigation", 10000)
            )
        finally:
            browser.invalidate()
        await wait_for_settle(page, _setting("settle_timeout", 5000))
        return await _snapshot_response(browser)


@mcp.tool()
@log_tool_result(logger)
async def browser_navigate_back() -> ToolResponse:
    """
    Go back to the previous page.

    Returns:
        Navigation result
    """
    async with _browser() as browser:
        page = await browser.active_page()
        try:
            response = await page.go_back(timeout=_setting("timeout_navigation", 10000))
        finally:
            browser.invalidate()
        return ToolResponse(
            success=True,
            message=f"Navigated back to {page.url}" if response else "No previous page in history",
            url=page.url,
            title=await page.title(),
            context=browser.active_context_name,
        )


# =============================================================================
# SNAPSHOT TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def browser_snapshot(allRefs: bool = False) -> SnapshotResponse:
    """
    Capture an accessibility snapshot of the current page.

    On pages with more than 100 interactive elements only the primary
    controls (buttons, links, inputs, ...) get refs; list, tree and grid items
    are then shown without refs unless allRefs is true.

    Args:
        allRefs: Assign refs to every eligible element regardless of count

    Returns:
        Snapshot text with element and ref counts
    """
    async with _browser() as browser:
        return await _snapshot_response(browser, all_refs=allRefs)


# =============================================================================
# ELEMENT INTERACTION TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def browser_click(
    element: str,
    ref: str,
    doubleClick: bool = False,
    button: str = "left",
    modifiers: list[str] | None = None,
) -> ToolResponse:
    """
    Perform click on a web page.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot
        doubleClick: Whether to perform a double click instead of a single click
        button: Button to click, must be 'left', 'right', or 'middle'. Defaults to 'left'.
        modifiers: Modifier keys to press. Can include: 'Alt', 'Control', 'ControlOrMeta', 'Meta', 'Shift'.

    Returns:
        Click result
    """
    if button not in ("left", "right", "middle"):
        raise ValueError(f"Invalid button '{button}'. Must be 'left', 'right', or 'middle'")

    async with _browser() as browser:
        resolved = await browser.resolve_ref(ref)
        options: dict[str, Any] = {"button": button, "timeout": _setting("timeout_action", 5000)}
        if modifiers:
            options["modifiers"] = modifiers

        async def click() -> None:
            if doubleClick:
                await resolved.locator.dblclick(**options)
            else:
                await resolved.locator.click(**options)

        navigated = await _perform(resolved, click, may_navigate=True)
        verb = "Double-clicked" if doubleClick else "Clicked"
        return _action_response(f"{verb} {element} [ref={ref}]", resolved, navigated)


@mcp.tool()
@log_tool_result(logger)
async def browser_type(
    element: str,
    ref: str,
    text: str,
    submit: bool = False,
    slowly: bool = False,
) -> ToolResponse:
    """
    Type text into editable element.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot
        text: Text to type into the element
        submit: Whether to submit entered text (press Enter after)
        slowly: Whether to type one character at a time. Useful for triggering key handlers in the page.

    Returns:
        Type result
    """
    async with _browser() as browser:
        resolved = await browser.resolve_ref(ref)
        timeout = _setting("timeout_action", 5000)

        async def type_text() -> None:
            if slowly:
                await resolved.locator.press_sequentially(text, timeout=timeout)
            else:
                await resolved.locator.fill(text, timeout=timeout)
            if submit:
                await resolved.locator.press("Enter", timeout=timeout)

        navigated = await _perform(resolved, type_text, may_navigate=submit)
        message = f"Typed into {element} [ref={ref}]" + (" and submitted" if submit else "")
        return _action_response(message, resolved, navigated)


@mcp.tool()
@log_tool_result(logger)
async def browser_hover(element: str, ref: str) -> ToolResponse:
    """
    Hover over element on page.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot

    Returns:
        Hover result
    """
    async with _browser() as browser:
        resolved = await browser.resolve_ref(ref)

        async def hover() -> None:
            await resolved.locator.hover(timeout=_setting("timeout_action", 5000))

        await _perform(resolved, hover)
        return _action_response(f"Hovered {element} [ref={ref}]", resolved)


@mcp.tool()
@log_tool_result(logger)
async def browser_select_option(element: str, ref: str, values: list[str]) -> ToolResponse:
    """
    Select an option in a dropdown.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot
        values: Array of values to select in the dropdown. This can be a single value or multiple values.

    Returns:
        Selection result
    """
    async with _browser() as browser:
        resolved = await browser.resolve_ref(ref)

        async def select() -> None:
            await resolved.locator.select_option(values, timeout=_setting("timeout_action", 5000))

        await _perform(resolved, select)
        return _action_response(f"Selected {', '.join(values)} in {element} [ref={ref}]", resolved)


@mcp.tool()
@log_tool_result(logger)
async def browser_drag(startElement: str, startRef: str, endElement: str, endRef: str) -> ToolResponse:
    """
    Perform drag and drop between two elements.

    Args:
        startElement: Human-readable source element description used to obtain the permission to interact with the element
        startRef: Exact source element reference from the page snapshot
        endElement: Human-readable target element description used to obtain the permission to interact with the element
        endRef: Exact target element reference from the page snapshot

    Returns:
        Drag result
    """
    async with _browser() as browser:
        source, target = await browser.resolve_refs([startRef, endRef])

        async def drag() -> None:
            await source.locator.drag_to(target.locator, timeout=_setting("timeout_action", 5000))

        await _perform(source, drag)
        response = _action_response(f"Dragged {startElement} to {endElement}", source)
        notes = [note for note in (source.note, target.note) if note]
        response["note"] = "\n".join(notes) or None
        return response


FORM_FIELD_TYPES = ("textbox", "checkbox", "radio", "combobox", "slider")


async def _fill_field(field: FormField, locator: Any, timeout: int) -> None:
    field_type = field["type"]
    value = field["value"]
    if field_type in ("textbox", "slider"):
        await locator.fill(value, timeout=timeout)
    elif field_type == "checkbox":
        if value.strip().lower() == "true":
            await locator.check(timeout=timeout)
        else:
            await locator.uncheck(timeout=timeout)
    elif field_type == "radio":
        await locator.check(timeout=timeout)
    else:
        await locator.select_option(value, timeout=timeout)


@mcp.tool()
@log_tool_result(logger)
async def browser_fill_form(fields: list[FormField]) -> ToolResponse:
    """
    Fill multiple form fields at once.

    Args:
        fields: Fields to fill in. Each field has a human-readable `name`, a `type`
                ('textbox', 'checkbox', 'radio', 'combobox' or 'slider'), the `ref`
                from the page snapshot and the `value` to set. For checkboxes use
                'true' or 'false'; for comboboxes use the option value or label.

    Returns:
        Fill result
    """
    if not fields:
        raise ValueError("At least one field must be provided")
    for field in fields:
        if field["type"] not in FORM_FIELD_TYPES:
            raise ValueError(
                f"Invalid type '{field['type']}' for field '{field['name']}'. "
                f"Must be one of: {', '.join(FORM_FIELD_TYPES)}"
            )

    async with _browser() as browser:
        # All refs are checked before any field is touched
        resolved = await browser.resolve_refs([field["ref"] for field in fields])
        timeout = _setting("timeout_action", 5000)

        for field, target in zip(fields, resolved):
            await _perform(target, lambda f=field, t=target: _fill_field(f, t.locator, timeout))

        names = [field["name"] for field in fields]
        response = _action_response(
            f"Filled {len(names)} field(s): {', '.join(names)}", resolved[-1]
        )
        notes = [target.note for target in resolved if target.note]
        response["note"] = "\n".join(notes) or None
        return response


@mcp.tool()
@log_tool_result(logger)
async def browser_scroll_into_view(element: str, ref: str) -> ToolResponse:
    """
    Scroll an element into the visible viewport.

    Useful before taking screenshots or when an element is outside the viewport.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot

    Returns:
        Scroll result
    """
    async with _browser() as browser:
        resolved = await browser.resolve_ref(ref)

        async def scroll() -> None:
            await resolved.locator.scroll_into_view_if_needed(timeout=_setting("timeout_action", 5000))

        await _perform(resolved, scroll)
        return _action_response(f"Scrolled {element} into view [ref={ref}]", resolved)


@mcp.tool()
@log_tool_result(logger)
async def browser_file_upload(paths: list[str] | None = None) -> ToolResponse:
    """
    Upload one or multiple files to the file input of the active tab.

    Call this after clicking the file input or the button that opens the file
    chooser. With no paths, the files already chosen in the input are cleared.

    Args:
        paths: Absolute paths to the files to upload

    Returns:
        Upload result
    """
    files = paths or []
    for path in files:
        file_path = Path(path)
        if not file_path.exists():
            raise ValueError(f"File not found: {path}")
        if not file_path.is_file():
            raise ValueError(f"Path is not a file: {path}")

    async with _browser() as browser:
        page = await browser.active_page()
        inputs = page.locator("input[type=file]")
        if await inputs.count() == 0:
            raise ValueError(
                "No file input found on the page. Click the upload button or file input "
                "before calling this tool."
            )
        try:
            await inputs.first.set_input_files(files, timeout=_setting("timeout_action", 5000))
        finally:
            browser.invalidate()

        if files:
            message = f"Uploaded {len(files)} file(s): {', '.join(Path(p).name for p in files)}"
        else:
            message = "Cleared the file input"
        return ToolResponse(
            success=True,
            message=message,
            url=page.url,
            context=browser.active_context_name,
        )


@mcp.tool()
@log_tool_result(logger)
async def browser_press_key(key: str) -> ToolResponse:
    """
    Press a key on the keyboard.

    Args:
        key: Name of the key to press or a character to generate, such as `ArrowLeft` or `a`

    Returns:
        Key press result
    """
    async with _browser() as browser:
        page = await browser.active_page()
        try:
            navigated = await run_action(
                page,
                lambda: page.keyboard.press(key),
                may_navigate=True,
                navigation_timeout_ms=_setting("timeout_navigation", 10000),
                settle_timeout_ms=_setting("settle_timeout", 5000),
            )
        finally:
            browser.invalidate()
        return ToolResponse(
            success=True,
            message=f"Pressed key {key}",
            url=page.url,
            context=browser.active_context_name,
            navigated=navigated,
        )


@mcp.tool()
@log_tool_result(logger)
async def browser_wait_for(
    time: float | None = None,
    text: str | None = None,
    textGone: str | None = None,
) -> ToolResponse:
    """
    Wait for text to appear or disappear or a specified time to pass.

    Args:
        time: The time to wait in seconds
        text: The text to wait for
        textGone: The text to wait for to disappear

    Returns:
        Wait result
    """
    if time is None and text is None and textGone is None:
        raise ValueError("Either time, text or textGone must be provided")

    async with _browser() as browser:
        page = await browser.active_page()
        try:
            if time is not None:
                await asyncio.sleep(min(time, 30.0))
            if textGone is not None:
                await page.get_by_text(textGone).first.wait_for(state="hidden")
            if text is not None:
                await page.get_by_text(text).first.wait_for(state="visible")
        finally:
            browser.invalidate()

        waited = [f"{time}s" if time is not None else None,
                  f"text '{text}' to appear" if text is not None else None,
                  f"text '{textGone}' to disappear" if textGone is not None else None]
        return ToolResponse(
            success=True,
            message="Waited for " + ", ".join(w for w in waited if w),
            url=page.url,
            context=browser.active_context_name,
        )


@mcp.tool()
@log_tool_result(logger)
async def browser_evaluate(
    function: str,
    element: str | None = None,
    ref: str | None = None,
) -> EvaluationResponse:
    """
    Evaluate JavaScript expression on page or element.

    Args:
        function: () => { /* code */ } or (element) => { /* code */ } when element is provided
        element: Human-readable element description used to obtain permission to interact with the element
        ref: Exact target element reference from the page snapshot

    Returns:
        The JSON-serializable result of the expression
    """
    async with _browser() as browser:
        if ref is not None:
            resolved = await browser.resolve_ref(ref)
            try:
                result = await resolved.locator.evaluate(function)
            finally:
                resolved.context.invalidate()
            return EvaluationResponse(
                success=True,
                url=resolved.page.url,
                context=resolved.context.name,
                result=result,
                note=resolved.note,
            )

        page = await browser.active_page()
        try:
            result = await page.evaluate(function)
        finally:
            browser.invalidate()
        return EvaluationResponse(
            success=True, url=page.url, context=browser.active_context_name, result=result
        )


# =============================================================================
# PAGE TOOLS
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def browser_take_screenshot(
    type: str = "png",
    filename: str | None = None,
    element: str | None = None,
    ref: str | None = None,
    fullPage: bool = False,
) -> FileResponse:
    """
    Take a screenshot of the current page. You can't perform actions based on the screenshot, use browser_snapshot for actions.

    Args:
        type: Image format for the screenshot. Must be 'png' or 'jpeg'. Default is 'png'.
        filename: File name to save the screenshot to. Defaults to page-{timestamp}.{png|jpeg} if not specified.
                  Relative file names are placed in the output directory.
        element: Human-readable element description used to obtain permission to screenshot the element.
        ref: Exact target element reference from the page snapshot. If not provided, the screenshot will be taken of viewport.
        fullPage: When true, takes a screenshot of the full scrollable page. Cannot be used with element screenshots.

    Returns:
        Path and size of the saved screenshot
    """
    if type not in ("png", "jpeg"):
        raise ValueError(f"Invalid image type '{type}'. Must be 'png' or 'jpeg'")
    if ref is not None and fullPage:
        raise ValueError("fullPage cannot be used with element screenshots")

    path = _output_path(filename, "page", type)
    async with _browser() as browser:
        if ref is not None:
            resolved = await browser.resolve_ref(ref)
            data = await resolved.locator.screenshot(path=str(path), type=type)
            context_name = resolved.context.name
            target = element or resolved.description
        else:
            page = await browser.active_page()
            data = await page.screenshot(path=str(path), type=type, full_page=fullPage)
            context_name = browser.active_context_name
            target = "full page" if fullPage else "viewport"

    return FileResponse(
        success=True,
        message=f"Saved screenshot of {target} to {path}",
        path=str(path),
        mime_type=f"image/{type}",
        size_bytes=len(data),
        context=context_name,
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_console_messages(level: str = "info") -> ConsoleResponse:
    """
    Returns console messages of the active tab.

    Args:
        level: Minimum level to return: 'debug', 'info', 'warning' or 'error'.
               Each level includes the more severe ones. Defaults to 'info'.

    Returns:
        Console messages, oldest first
    """
    min_level = ConsoleLevel.parse(level)

    async with _browser() as browser:
        state = await browser.current_context()
        messages = state.console_messages(min_level)

    return ConsoleResponse(
        success=True,
        context=state.name,
        level=min_level.name.lower(),
        total=len(messages),
        messages=[
            {
                "type": m.type,
                "text": m.text,
                "timestamp": m.timestamp,
                "url": m.url,
                "line_number": m.line_number,
            }
            for m in messages
        ],
        formatted="\n".join(m.format() for m in messages) or "No console messages",
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_network_requests(includeStatic: bool = False) -> NetworkResponse:
    """
    Returns the network requests made by the active tab since it was opened.

    Args:
        includeStatic: Include successfully loaded static resources (images, fonts,
                       stylesheets, scripts, media). Failed requests are always included.

    Returns:
        Completed requests, oldest first
    """
    async with _browser() as browser:
        state = await browser.current_context()
        requests = state.network_requests(include_static=includeStatic)

    if requests:
        scope = "" if includeStatic else ", excluding static resources"
        formatted = f"Network requests ({len(requests)} total{scope}):\n" + "\n".join(
            r.format() for r in requests
        )
    else:
        formatted = "No network requests recorded"

    return NetworkResponse(
        success=True,
        context=state.name,
        include_static=includeStatic,
        total=len(requests),
        requests=[
            {
                "method": r.method,
                "url": r.url,
                "resource_type": r.resource_type,
                "status": r.status,
                "failure": r.failure,
            }
            for r in requests
        ],
        formatted=formatted,
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_handle_dialog(accept: bool, promptText: str | None = None) -> DialogResponse:
    """
    Decide how the next dialog (alert, confirm, prompt or beforeunload) of the active tab is answered.

    Dialogs are answered as soon as they open; without a decision they are dismissed.

    Args:
        accept: Whether to accept (true) or dismiss (false) the next dialog
        promptText: Text to enter in a prompt dialog

    Returns:
        The armed decision and the dialogs answered so far on the active tab
    """
    policy = DialogPolicy(accept=accept, prompt_text=promptText)

    async with _browser() as browser:
        state = await browser.current_context()
        page = await browser.active_page()
        handler = state.dialog_handler(page)
        handler.arm(policy)
        handled = handler.history

    return DialogResponse(
        success=True,
        message=f"Dialog handler configured: will {policy.describe()}",
        context=state.name,
        handled=[
            {
                "type": d.type,
                "message": d.message,
                "accepted": d.accepted,
                "prompt_text": d.prompt_text,
            }
            for d in handled
        ],
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_tabs(action: str, index: int | None = None) -> TabsResponse:
    """
    List, create, close, or select a browser tab.

    Args:
        action: Operation to perform. Must be 'list', 'new', 'close', or 'select'.
        index: Tab index, used for close/select. If omitted for close, current tab is closed.

    Returns:
        Tab operation result with the current tab list
    """
    if action not in ("list", "new", "close", "select"):
        raise ValueError(f"Invalid action '{action}'. Must be 'list', 'new', 'close', or 'select'")

    async with _browser() as browser:
        state = await browser.current_context()

        if action == "new":
            new_index, _ = await state.new_page()
            message = f"Created new tab at index {new_index} ({len(state.pages)} tabs total)"
        elif action == "close":
            closed = await state.close_page(index)
            message = f"Closed tab at index {closed} ({len(state.pages)} tabs remaining)"
        elif action == "select":
            if index is None:
                raise ValueError("index is required for action 'select'")
            await state.switch_page(index)
            message = f"Switched to tab at index {index}"
        else:
            message = f"Tabs ({len(state.pages)} total):"

        active = state.active_page()
        tabs = [
            {
                "index": i,
                "url": page.url,
                "title": await page.title(),
                "active": page is active,
            }
            for i, page in enumerate(state.pages)
        ]

    listing = "\n".join(
        f"- {tab['index']}: {tab['title'] or '(untitled)'} ({tab['url']})"
        + (" [active]" if tab["active"] else "")
        for tab in tabs
    )
    return TabsResponse(
        success=True,
        message=f"{message}\n{listing}" if listing else message,
        context=state.name,
        tabs=tabs,  # type: ignore[typeddict-item]
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_resize(width: int, height: int) -> ToolResponse:
    """
    Resize the browser window.

    Args:
        width: Width of the browser window
        height: Height of the browser window

    Returns:
        Resize result
    """
    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive")

    async with _browser() as browser:
        page = await browser.active_page()
        try:
            await page.set_viewport_size({"width": width, "height": height})
        finally:
            browser.invalidate()
        return ToolResponse(
            success=True,
            message=f"Resized viewport to {width}x{height}",
            url=page.url,
            context=browser.active_context_name,
        )


@mcp.tool()
@log_tool_result(logger)
async def browser_close() -> ToolResponse:
    """
    Close the browser and all of its contexts.

    The next browser tool call launches a fresh browser.

    Returns:
        Close result
    """
    current = _get_session()
    await current.shutdown()
    return ToolResponse(success=True, message="Browser closed")


# =============================================================================
# CONTEXT TOOLS
# =============================================================================


def _context_response(browser: BrowserSession, message: str) -> ContextResponse:
    return ContextResponse(
        success=True,
        message=message,
        active_context=browser.active_context_name,
        contexts=browser.list_contexts(),  # type: ignore[typeddict-item]
    )


@mcp.tool()
@log_tool_result(logger)
async def browser_context_create(
    name: str,
    proxyServer: str | None = None,
    proxyUsername: str | None = None,
    proxyPassword: str | None = None,
    proxyBypass: str | None = None,
) -> ContextResponse:
    """
    Create a new isolated browser context and make it active.

    Contexts do not share cookies, storage or cache. While more than one
    context exists, snapshot refs are prefixed with the context name
    (e.g. 'work:e42').

    Args:
        name: Context name (no spaces or ':')
        proxyServer: Proxy for this context, e.g. 'http://proxy:3128' or 'socks5://proxy:1080'
        proxyUsername: Proxy username
        proxyPassword: Proxy password
        proxyBypass: Comma-separated hosts that bypass the proxy

    Returns:
        Context list after creation
    """
    proxy: ProxyConfig | None = None
    if proxyServer:
        proxy = {
            "server": proxyServer,
            "username": proxyUsername,
            "password": proxyPassword,
            "bypass": proxyBypass,
        }

    async with _browser() as browser:
        await browser.create_context(name, proxy)
        return _context_response(browser, f"Created and switched to context '{name}'")


@mcp.tool()
@log_tool_result(logger)
async def browser_context_switch(name: str) -> ContextResponse:
    """
    Switch the active browser context.

    Args:
        name: Name of an existing context

    Returns:
        Context list after switching
    """
    async with _browser() as browser:
        await browser.initialize()
        browser.switch_active_context(name)
        return _context_response(browser, f"Switched to context '{name}'")


@mcp.tool()
@log_tool_result(logger)
async def browser_context_close(name: str) -> ContextResponse:
    """
    Close a browser context and all of its tabs.

    The last remaining context cannot be closed. Closing the active context
    switches to 'default'.

    Args:
        name: Name of the context to close

    Returns:
        Context list after closing
    """
    async with _browser() as browser:
        await browser.initialize()
        active = await browser.close_context(name)
        return _context_response(browser, f"Closed context '{name}'; active context is '{active}'")


@mcp.tool()
@log_tool_result(logger)
async def browser_context_list() -> ContextResponse:
    """
    List browser contexts with their tab count, URL and proxy.

    Returns:
        All contexts and the active one
    """
    async with _browser() as browser:
        await browser.initialize()
        return _context_response(browser, f"{len(browser.contexts)} context(s)")


@mcp.tool()
@log_tool_result(logger)
async def browser_context_save_storage(
    filename: str | None = None,
    name: str | None = None,
) -> FileResponse:
    """
    Save cookies and local storage of a context to a JSON file.

    The file can be loaded at startup through the STORAGE_STATE setting.

    Args:
        filename: Output file. Defaults to storage-{context}-{timestamp}.json in the output directory.
        name: Context to export. Defaults to the active context.

    Returns:
        Path of the saved file with cookie and origin counts
    """
    async with _browser() as browser:
        await browser.initialize()
        context_name = name or browser.active_context_name
        path = _output_path(filename, f"storage-{context_name}", "json")
        saved = await browser.save_storage_state(str(path), name)

    return FileResponse(
        success=True,
        message=(
            f"Saved storage state of context '{saved['context']}' "
            f"({saved['cookies']} cookies, {saved['origins']} origins) to {path}"
        ),
        path=str(path),
        mime_type="application/json",
        size_bytes=path.stat().st_size if path.exists() else 0,
        context=saved["context"],
    )


# =============================================================================
# VISION TOOLS (coordinate based, require the 'vision' capability)
# =============================================================================


async def _mouse_action(description: str, action: Any) -> ToolResponse:
    async with _browser() as browser:
        page = await browser.active_page()
        try:
            await action(page.mouse)
            await wait_for_settle(page, _setting("settle_timeout", 5000))
        finally:
            browser.invalidate()
        return ToolResponse(
            success=True, message=description, url=page.url, context=browser.active_context_name
        )


@mcp.tool()
@log_tool_result(logger)
async def browser_mouse_move_xy(element: str, x: float, y: float) -> ToolResponse:
    """
    Move mouse to a given position.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        x: X coordinate
        y: Y coordinate

    Returns:
        Mouse move result
    """

    async def move(mouse: Any) -> None:
        await mouse.move(x, y)

    return await _mouse_action(f"Moved mouse to ({x}, {y}) over {element}", move)


@mcp.tool()
@log_tool_result(logger)
async def browser_mouse_click_xy(element: str, x: float, y: float) -> ToolResponse:
    """
    Click left mouse button at a given position.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        x: X coordinate
        y: Y coordinate

    Returns:
        Mouse click result
    """

    async def click(mouse: Any) -> None:
        await mouse.click(x, y)

    return await _mouse_action(f"Clicked at ({x}, {y}) on {element}", click)


@mcp.tool()
@log_tool_result(logger)
async def browser_mouse_drag_xy(
    element: str, startX: float, startY: float, endX: float, endY: float
) -> ToolResponse:
    """
    Drag left mouse button to a given position.

    Args:
        element: Human-readable element description used to obtain permission to interact with the element
        startX: Start X coordinate
        startY: Start Y coordinate
        endX: End X coordinate
        endY: End Y coordinate

    Returns:
        Mouse drag result
    """

    async def drag(mouse: Any) -> None:
        await mouse.move(startX, startY)
        await mouse.down()
        await mouse.move(endX, endY)
        await mouse.up()

    return await _mouse_action(
        f"Dragged {element} from ({startX}, {startY}) to ({endX}, {endY})", drag
    )


# =============================================================================
# PDF TOOLS (require the 'pdf' capability)
# =============================================================================


@mcp.tool()
@log_tool_result(logger)
async def browser_pdf_save(filename: str | None = None) -> FileResponse:
    """
    Save page as PDF (headless Chromium only).

    Args:
        filename: File name to save the pdf to. Defaults to page-{timestamp}.pdf if not specified.

    Returns:
        Path and size of the saved PDF
    """
    path = _output_path(filename, "page", "pdf")
    async with _browser() as browser:
        page = await browser.active_page()
        data = await page.pdf(path=str(path))
        context_name = browser.active_context_name

    return FileResponse(
        success=True,
        message=f"Saved page as PDF to {path}",
        path=str(path),
        mime_type="application/pdf",
        size_bytes=len(data),
        context=context_name,
    )


# =============================================================================
# RESOURCES
# =============================================================================


@mcp.resource("playwright-session://status")
async def get_session_status() -> str:
    """Get the current browser session status"""
    if not session:
        return "Playwright Session MCP is not initialized"
    if not session.initialized:
        return f"Browser not running (state: {session.state.value})"
    return (
        f"Browser running with {len(session.contexts)} context(s); "
        f"active context '{session.active_context_name}'"
    )


# =============================================================================
# MAIN
# =============================================================================


def main() -> None:
    """Run the MCP server"""
    logger.info("Initializing Playwright Session MCP Server...")
    mcp.run()


if __name__ == "__main__":
    main()
