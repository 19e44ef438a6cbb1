"""
Pytest Configuration and Fixtures

This module provides shared fixtures for all tests.
"""

import pytest

from playwright_session_mcp.browser.config import BrowserConfig
from playwright_session_mcp.browser.session import BrowserSession
from tests.fixtures.fake_driver import FakeDriver, buttons, document, node


@pytest.fixture
def browser_config() -> BrowserConfig:
    """Default browser configuration without touching the environment."""
    return {
        "browser": "chromium",
        "headless": True,
        "viewport_size": None,
        "ignore_https_errors": False,
        "caps": "",
        "output_dir": "output",
        "timeout_action": 5000,
        "timeout_navigation": 10000,
        "settle_timeout": 5000,
    }


@pytest.fixture
def sample_tree() -> dict:
    """A small page: heading, form controls and a listbox with options."""
    return document(
        node("heading", "Welcome", None, level=1),
        node("textbox", "Email", "e1"),
        node("button", "Submit", "e2"),
        node(
            "listbox",
            "Colors",
            "e3",
            node("option", "Red", "e4", selected=True),
            node("option", "Green", "e5"),
        ),
        node("list", "", None, node("listitem", "Plain item", "e6")),
    )


@pytest.fixture
def large_tree() -> dict:
    """More than 100 ref candidates: 60 buttons plus 60 options in a listbox."""
    options = [node("option", f"Option {i}", f"e{i}") for i in range(101, 161)]
    return document(*buttons(60), node("listbox", "Many", None, *options))


@pytest.fixture
def fake_driver(sample_tree) -> FakeDriver:
    driver = FakeDriver(tree=sample_tree)
    driver.pages_per_context = 1
    return driver


@pytest.fixture
def session(browser_config, fake_driver) -> BrowserSession:
    return BrowserSession(browser_config, driver=fake_driver)
