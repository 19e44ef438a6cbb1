"""
Snapshot text formatting

Renders an accessibility tree as an indented outline, one node per line:

    - document
      - heading "Welcome" (level 1)
      - button "Submit" [ref=e42]
      - iframe "Payment" [frame-boundary]
        - textbox "Card number" [ref=e77]
      - paragraph: Some body text...
"""

from .element import AccessibilitySnapshot, SnapshotElement

MAX_TEXT_LENGTH = 100
ELLIPSIS = "..."
INDENT = "  "
FRAME_BOUNDARY = "[frame-boundary]"


def truncate(text: str, limit: int = MAX_TEXT_LENGTH) -> str:
    """Keep the first `limit` characters, marking any cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def _states(element: SnapshotElement) -> list[str]:
    states = []
    if element.disabled:
        states.append("disabled")
    if element.expanded is True:
        states.append("expanded")
    elif element.expanded is False:
        states.append("collapsed")
    if element.selected:
        states.append("selected")
    if element.checked == "mixed":
        states.append("mixed")
    elif element.checked is True:
        states.append("checked")
    elif element.checked is False:
        states.append("unchecked")
    if element.pressed:
        states.append("pressed")
    if element.level is not None:
        states.append(f"level {element.level}")
    if element.value:
        states.append(f"value: {truncate(element.value)}")
    return states


def format_line(element: SnapshotElement, context_prefix: str | None = None) -> str:
    """Format a single element without indentation."""
    parts = [f"- {element.role}"]
    if element.name:
        parts.append(f'"{truncate(element.name)}"')
    parts.extend(f"({state})" for state in _states(element))
    if element.is_frame:
        parts.append(FRAME_BOUNDARY)
    if element.ref:
        ref = f"{context_prefix}:{element.ref}" if context_prefix else element.ref
        parts.append(f"[ref={ref}]")

    line = " ".join(parts)
    if element.text and element.text != element.name:
        line += f": {truncate(element.text)}"
    return line


def format_tree(root: SnapshotElement, context_prefix: str | None = None) -> str:
    lines: list[str] = []
    stack: list[tuple[SnapshotElement, int]] = [(root, 0)]
    while stack:
        element, depth = stack.pop()
        lines.append(INDENT * depth + format_line(element, context_prefix))
        stack.extend((child, depth + 1) for child in reversed(element.children))
    return "\n".join(lines)


def format_snapshot(snapshot: AccessibilitySnapshot) -> str:
    """Format a snapshot's tree followed by its notes."""
    text = format_tree(snapshot.root, snapshot.context_prefix)
    if snapshot.notes:
        text += "\n\n" + "\n".join(snapshot.notes)
    return text
