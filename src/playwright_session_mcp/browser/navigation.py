"""
Action completion waits

Actions that may trigger a navigation (click, key press, form submit) wait
for that navigation with a bounded timeout. Other actions wait briefly for
the network to settle. Running out of time is not an error in either case:
the page is simply used in whatever state it reached.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

logger = logging.getLogger(__name__)

NAVIGATION_TIMEOUT_MS = 10000
SETTLE_TIMEOUT_MS = 5000


async def wait_for_settle(page: Any, timeout_ms: int = SETTLE_TIMEOUT_MS) -> bool:
    """
    Wait for network quiescence.

    Returns:
        True if the page settled within the timeout
    """
    try:
        await page.wait_for_load_state("networkidle", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.debug(f"Page did not settle within {timeout_ms}ms: {page.url}")
        return False
    return True


async def run_action(
    page: Any,
    action: Callable[[], Awaitable[Any]],
    may_navigate: bool = False,
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
    settle_timeout_ms: int = SETTLE_TIMEOUT_MS,
) -> bool:
    """
    Run a page action and wait for it to take effect.

    Args:
        page: Page the action runs on
        action: Coroutine function performing the action
        may_navigate: Wait for a triggered navigation instead of network settle
        navigation_timeout_ms: Upper bound for the navigation wait
        settle_timeout_ms: Upper bound for the settle wait

    Returns:
        True if a navigation completed (always False when may_navigate is False)

    Raises:
        Whatever the action itself raises
    """
    if not may_navigate:
        await action()
        await wait_for_settle(page, settle_timeout_ms)
        return False

    action_error: BaseException | None = None

    async def tracked_action() -> None:
        nonlocal action_error
        try:
            await action()
        except BaseException as e:
            action_error = e
            raise

    try:
        async with page.expect_navigation(timeout=navigation_timeout_ms):
            await tracked_action()
    except PlaywrightTimeoutError:
        if action_error is not None:
            raise
        logger.debug(f"No navigation within {navigation_timeout_ms}ms after action on {page.url}")
        return False
    return True
