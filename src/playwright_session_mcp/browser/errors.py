"""Exceptions raised by the browser session manager."""


class BrowserError(Exception):
    """Base exception for browser session errors."""

    remediation: str = ""


class LaunchFailed(BrowserError):
    """The browser could not be launched."""

    remediation = "Check that the browser is installed (playwright install chromium)."

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to launch browser: {reason}. {self.remediation}")


class ConnectFailed(BrowserError):
    """Connecting to an existing browser over CDP failed."""

    remediation = "Check that the browser is running with remote debugging enabled."

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Failed to connect to browser at {endpoint}: {reason}")


class ConnectionLost(BrowserError):
    """The connection to the browser dropped; the session has been reset."""

    remediation = "Retry the operation; the browser will be relaunched."

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Browser connection lost: {reason}. {self.remediation}")


class ContextNotFound(BrowserError):
    """No browser context with the requested name exists."""

    def __init__(self, name: str, available: list[str] | None = None):
        self.name = name
        self.available = available or []
        message = f"Browser context '{name}' not found"
        if self.available:
            message += f". Available contexts: {', '.join(self.available)}"
        super().__init__(message)


class ContextAlreadyExists(BrowserError):
    """A browser context with the requested name already exists."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Browser context '{name}' already exists")


class CannotCloseLastContext(BrowserError):
    """Closing the only remaining context is refused."""

    remediation = "Create another context first, or use browser_close to end the session."

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cannot close context '{name}': it is the last remaining browser context "
            f"and at least one context must stay open. {self.remediation}"
        )


class NoActivePage(BrowserError):
    """The active context has no open page."""

    remediation = "Navigate to a URL or open a new tab first."

    def __init__(self, context_name: str):
        self.context_name = context_name
        super().__init__(f"No open page in context '{context_name}'. {self.remediation}")


class ContextCreateFailed(BrowserError):
    """The driver refused to create a new browser context."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to create browser context '{name}': {reason}")
