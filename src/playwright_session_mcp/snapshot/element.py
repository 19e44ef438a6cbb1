"""Data models for accessibility snapshots."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class ElementTier(Enum):
    """How an element participates in reference assignment."""

    TIER1 = 1  # Always interactive, always gets a ref
    TIER2 = 2  # Gets a ref only inside an interactive container
    TIER3 = 3  # Structural or text, never gets a ref


@dataclass
class SnapshotElement:
    """
    One node of a captured accessibility tree.

    `ref` is the driver-native reference string (never prefixed); the context
    prefix is applied only when the snapshot is formatted.
    """

    role: str
    name: str = ""
    text: str | None = None
    description: str | None = None
    ref: str | None = None
    tier: ElementTier = ElementTier.TIER3
    children: list["SnapshotElement"] = field(default_factory=list)

    # ARIA states
    disabled: bool = False
    expanded: bool | None = None
    selected: bool = False
    checked: bool | Literal["mixed"] | None = None
    pressed: bool = False
    level: int | None = None
    value: str | None = None

    is_frame: bool = False

    def iter_tree(self):
        """Yield this element and all of its descendants, depth first."""
        stack = [self]
        while stack:
            element = stack.pop()
            yield element
            stack.extend(reversed(element.children))

    def describe(self) -> str:
        """Short human-readable description, e.g. 'button "Submit"'."""
        return f'{self.role} "{self.name}"' if self.name else self.role


@dataclass
class AccessibilitySnapshot:
    """
    A captured accessibility tree plus its reference map.

    Only one prior generation is retained through `previous`; linking a new
    generation drops the older one's own link.
    """

    root: SnapshotElement
    refs: dict[str, SnapshotElement] = field(default_factory=dict)
    all_refs: bool = False
    compact: bool = False
    notes: list[str] = field(default_factory=list)
    context_prefix: str | None = None
    url: str = ""
    captured_at: float = field(default_factory=time.monotonic)
    previous: "AccessibilitySnapshot | None" = None

    @property
    def ref_count(self) -> int:
        return len(self.refs)

    def get(self, ref: str) -> SnapshotElement | None:
        return self.refs.get(ref)

    def link_previous(self, previous: "AccessibilitySnapshot | None") -> None:
        if previous is not None:
            previous.previous = None
        self.previous = previous

    def display_ref(self, ref: str) -> str:
        """Ref as shown to the caller (context-prefixed in multi-context mode)."""
        if self.context_prefix:
            return f"{self.context_prefix}:{ref}"
        return ref
