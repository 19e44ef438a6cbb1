"""
Type Definitions

TypedDict classes for the responses returned by the browser tools.
"""

from typing import Any, Literal, TypedDict


class ToolResponse(TypedDict, total=False):
    """
    Generic response from a browser action.

    `note` carries a non-fatal warning, e.g. that the targeted element
    changed slightly since the last snapshot.
    """

    success: bool
    message: str
    url: str
    title: str | None
    context: str
    navigated: bool
    note: str | None


class SnapshotResponse(TypedDict, total=False):
    """Response for browser_snapshot and browser_navigate."""

    success: bool
    url: str
    title: str | None
    context: str
    elements: int
    refs: int
    compact: bool
    snapshot: str


class EvaluationResponse(TypedDict, total=False):
    """Response for browser_evaluate."""

    success: bool
    url: str
    context: str
    result: Any
    note: str | None


class FileResponse(TypedDict, total=False):
    """Response for tools that write a file (screenshots, PDFs, storage state)."""

    success: bool
    message: str
    path: str
    mime_type: str | None
    size_bytes: int
    context: str


class TabInfo(TypedDict):
    index: int
    url: str
    title: str
    active: bool


class TabsResponse(TypedDict, total=False):
    """Response for browser_tabs."""

    success: bool
    message: str
    context: str
    tabs: list[TabInfo]


class ContextInfo(TypedDict, total=False):
    name: str
    active: bool
    pages: int
    active_page_index: int | None
    url: str
    proxy: str | None


class ContextResponse(TypedDict, total=False):
    """Response for the browser_context_* tools."""

    success: bool
    message: str
    active_context: str
    contexts: list[ContextInfo]


class ConsoleMessageInfo(TypedDict, total=False):
    type: str
    text: str
    timestamp: int
    url: str | None
    line_number: int | None


class ConsoleResponse(TypedDict, total=False):
    """Response for browser_console_messages."""

    success: bool
    context: str
    level: str
    total: int
    messages: list[ConsoleMessageInfo]
    formatted: str


class FormField(TypedDict):
    """One field for browser_fill_form."""

    name: str
    type: Literal["textbox", "checkbox", "radio", "combobox", "slider"]
    ref: str
    value: str


class RequestInfo(TypedDict, total=False):
    method: str
    url: str
    resource_type: str
    status: int | None
    failure: str | None


class NetworkResponse(TypedDict, total=False):
    """Response for browser_network_requests."""

    success: bool
    context: str
    include_static: bool
    total: int
    requests: list[RequestInfo]
    formatted: str


class DialogInfo(TypedDict, total=False):
    type: str
    message: str
    accepted: bool
    prompt_text: str | None


class DialogResponse(TypedDict, total=False):
    """Response for browser_handle_dialog."""

    success: bool
    message: str
    context: str
    handled: list[DialogInfo]
