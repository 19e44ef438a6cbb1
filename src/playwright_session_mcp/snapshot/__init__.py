"""
Accessibility Snapshot Engine

Captures accessibility trees, classifies interactive elements, assigns
element references, formats snapshots, and detects stale references.
"""

from .capture import COMPACT_NOTE, MAX_DEFAULT_REFS, NO_CONTENT_NOTE, build_snapshot, capture, counts
from .classification import classify, receives_ref
from .element import AccessibilitySnapshot, ElementTier, SnapshotElement
from .errors import CaptureFailed, InvalidRefFormat, SnapshotError, StaleRefError
from .format import format_line, format_snapshot, format_tree, truncate
from .reference import ElementRef, resolve
from .stale import StaleKind, Staleness, compare, enforce_policy

__all__ = [
    "COMPACT_NOTE",
    "MAX_DEFAULT_REFS",
    "NO_CONTENT_NOTE",
    "AccessibilitySnapshot",
    "CaptureFailed",
    "ElementRef",
    "ElementTier",
    "InvalidRefFormat",
    "SnapshotElement",
    "SnapshotError",
    "StaleKind",
    "StaleRefError",
    "Staleness",
    "build_snapshot",
    "capture",
    "classify",
    "compare",
    "counts",
    "enforce_policy",
    "format_line",
    "format_snapshot",
    "format_tree",
    "receives_ref",
    "resolve",
    "truncate",
]
