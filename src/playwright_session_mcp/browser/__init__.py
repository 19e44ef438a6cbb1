"""
Browser Session Package

Browser lifecycle, named contexts, active-page tracking, console capture and
connection-loss recovery on top of Playwright.
"""

from .config import (
    BrowserConfig,
    LoggingConfig,
    ProxyConfig,
    load_browser_config,
    load_logging_config,
)
from .console import ConsoleLevel, StoredConsoleMessage
from .context import ContextState
from .dialogs import DialogPolicy, HandledDialog
from .driver import PlaywrightDriver
from .errors import (
    BrowserError,
    CannotCloseLastContext,
    ConnectFailed,
    ConnectionLost,
    ContextAlreadyExists,
    ContextCreateFailed,
    ContextNotFound,
    LaunchFailed,
    NoActivePage,
)
from .navigation import run_action, wait_for_settle
from .network import StoredRequest
from .session import DEFAULT_CONTEXT, BrowserSession, ResolvedRef, SessionState

__all__ = [
    "DEFAULT_CONTEXT",
    "BrowserConfig",
    "BrowserError",
    "BrowserSession",
    "CannotCloseLastContext",
    "ConnectFailed",
    "ConnectionLost",
    "ConsoleLevel",
    "ContextAlreadyExists",
    "ContextCreateFailed",
    "ContextNotFound",
    "ContextState",
    "DialogPolicy",
    "HandledDialog",
    "LaunchFailed",
    "LoggingConfig",
    "NoActivePage",
    "PlaywrightDriver",
    "ProxyConfig",
    "ResolvedRef",
    "SessionState",
    "StoredConsoleMessage",
    "StoredRequest",
    "load_browser_config",
    "load_logging_config",
    "run_action",
    "wait_for_settle",
]
