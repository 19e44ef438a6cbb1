"""
Capability-gated tools

Some tools are only offered when the matching capability is enabled through
the CAPS setting (e.g. PW_SESSION_MCP_CAPS=vision,pdf). Gating is a static
table from tool name to capability plus a membership check.
"""

from enum import Enum


class Capability(Enum):
    VISION = "vision"
    PDF = "pdf"


TOOL_CAPABILITIES: dict[str, Capability] = {
    "browser_mouse_move_xy": Capability.VISION,
    "browser_mouse_click_xy": Capability.VISION,
    "browser_mouse_drag_xy": Capability.VISION,
    "browser_pdf_save": Capability.PDF,
}


def parse_capabilities(value: str | None) -> frozenset[Capability]:
    """
    Parse a comma-separated capability list.

    Raises:
        ValueError: On an unknown capability name
    """
    enabled = set()
    for item in (value or "").split(","):
        name = item.strip().lower()
        if not name:
            continue
        try:
            enabled.add(Capability(name))
        except ValueError:
            known = ", ".join(c.value for c in Capability)
            raise ValueError(f"Unknown capability '{name}'. Known capabilities: {known}") from None
    return frozenset(enabled)


def is_tool_available(tool_name: str, enabled: frozenset[Capability]) -> bool:
    """Ungated tools are always available; gated ones need their capability."""
    required = TOOL_CAPABILITIES.get(tool_name)
    return required is None or required in enabled
