"""
Staleness detection

Compares an element between the latest snapshot and the one generation
before it, and applies one policy for every action that takes a ref:

    REMOVED       -> rejected
    CHANGED       -> rejected (role or accessible name differs)
    MINOR_CHANGE  -> allowed, the tool result carries a warning note
    FRESH         -> allowed
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .element import AccessibilitySnapshot, SnapshotElement
from .errors import StaleRefError

logger = logging.getLogger(__name__)


class StaleKind(Enum):
    FRESH = "fresh"
    CHANGED = "changed"
    REMOVED = "removed"
    MINOR_CHANGE = "minor_change"


@dataclass(frozen=True)
class Staleness:
    """Result of comparing one ref across two snapshot generations."""

    kind: StaleKind
    ref: str
    old_role: str | None = None
    old_name: str | None = None
    new_role: str | None = None
    new_name: str | None = None
    detail: str | None = None

    @property
    def is_stale(self) -> bool:
        return self.kind in (StaleKind.CHANGED, StaleKind.REMOVED)

    def message(self) -> str:
        """User-facing explanation, with re-snapshot guidance when stale."""
        if self.kind is StaleKind.REMOVED:
            description = (
                f'{self.old_role} "{self.old_name}"' if self.old_role else "unknown element"
            )
            return (
                f"Element '{description}' (ref: {self.ref}) no longer exists. "
                "It may have been removed by a page update or navigation. "
                "Take a new snapshot to see current page state."
            )
        if self.kind is StaleKind.CHANGED:
            return (
                "Element changed since snapshot.\n"
                f'Was: {self.old_role} "{self.old_name}"\n'
                f'Now: {self.new_role} "{self.new_name}"\n'
                "Take a new snapshot to get current element state."
            )
        if self.kind is StaleKind.MINOR_CHANGE:
            return f"Note: Element may have changed ({self.detail}). Using current state."
        return ""


def _minor_differences(old: SnapshotElement, new: SnapshotElement) -> list[str]:
    differences = []
    if old.text != new.text:
        differences.append("text content differs")
    if old.value != new.value:
        differences.append("value differs")
    if old.description != new.description:
        differences.append("description differs")
    return differences


def compare(
    current: AccessibilitySnapshot,
    previous: AccessibilitySnapshot | None,
    ref: str,
) -> Staleness:
    """
    Classify a ref by comparing the current snapshot with the previous one.

    Args:
        current: Latest snapshot
        previous: The generation before it (None if there is none)
        ref: Unprefixed driver ref

    Returns:
        Staleness with kind FRESH, CHANGED, REMOVED or MINOR_CHANGE
    """
    old = previous.get(ref) if previous is not None else None
    new = current.get(ref)

    if new is None:
        return Staleness(
            StaleKind.REMOVED,
            ref,
            old_role=old.role if old else None,
            old_name=old.name if old else None,
        )

    if old is None:
        return Staleness(StaleKind.FRESH, ref, new_role=new.role, new_name=new.name)

    if old.role != new.role or old.name != new.name:
        return Staleness(
            StaleKind.CHANGED,
            ref,
            old_role=old.role,
            old_name=old.name,
            new_role=new.role,
            new_name=new.name,
        )

    differences = _minor_differences(old, new)
    if differences:
        return Staleness(
            StaleKind.MINOR_CHANGE,
            ref,
            old_role=old.role,
            old_name=old.name,
            new_role=new.role,
            new_name=new.name,
            detail=", ".join(differences),
        )

    return Staleness(StaleKind.FRESH, ref, new_role=new.role, new_name=new.name)


def enforce_policy(staleness: Staleness) -> str | None:
    """
    Apply the staleness policy.

    Returns:
        A warning note for MINOR_CHANGE, None for FRESH

    Raises:
        StaleRefError: For REMOVED and CHANGED
    """
    if staleness.is_stale:
        logger.info(f"Rejecting stale ref {staleness.ref}: {staleness.kind.value}")
        raise StaleRefError(staleness.ref, staleness.message(), staleness)
    if staleness.kind is StaleKind.MINOR_CHANGE:
        logger.debug(f"Ref {staleness.ref} has minor changes: {staleness.detail}")
        return staleness.message()
    return None
