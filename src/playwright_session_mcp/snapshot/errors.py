"""Exceptions raised by the snapshot engine and reference subsystem."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .stale import Staleness

REF_FORMAT = "e<number> or <context>:e<number>"
RESNAPSHOT_HINT = "Take a new snapshot to see current page state."


class SnapshotError(Exception):
    """Base exception for snapshot capture and reference handling."""

    remediation: str = RESNAPSHOT_HINT


class CaptureFailed(SnapshotError):
    """The driver failed to produce an accessibility tree."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to capture accessibility snapshot: {reason}")


class InvalidRefFormat(SnapshotError):
    """A reference string does not match the expected pattern."""

    def __init__(self, ref: str):
        self.ref = ref
        self.remediation = f"Expected format: {REF_FORMAT}"
        super().__init__(f"Invalid element reference '{ref}'. {self.remediation}")


class StaleRefError(SnapshotError):
    """A reference points at an element that is gone or has materially changed."""

    def __init__(self, ref: str, message: str, staleness: "Staleness | None" = None):
        self.ref = ref
        self.staleness = staleness
        super().__init__(message)
