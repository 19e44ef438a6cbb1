"""
Accessibility snapshot capture

Turns the raw accessibility tree reported by the browser driver into an
AccessibilitySnapshot: nodes are classified, reference candidates are
collected, and the ref-count policy decides which of them keep their refs.

Raw nodes are plain dicts produced by the driver adapter:

    {
        "role": "button",
        "name": "Submit",
        "ref": "e42",          # driver-native reference, passed through as-is
        "text": None,
        "tab_index": None,
        "disabled": False,
        ...
        "children": [...],
    }
"""

import logging
from typing import Any

from .classification import classify, receives_ref
from .element import AccessibilitySnapshot, ElementTier, SnapshotElement
from .errors import CaptureFailed

logger = logging.getLogger(__name__)

# Above this many candidates only Tier 1 elements keep refs (unless all_refs)
MAX_DEFAULT_REFS = 100

NO_CONTENT_NOTE = "no accessible content"
COMPACT_NOTE = (
    "[Note: Page has many interactive elements. "
    "Use browser_snapshot with allRefs: true for complete refs.]"
)


def _build_element(raw: dict[str, Any]) -> SnapshotElement:
    checked = raw.get("checked")
    level = raw.get("level")
    return SnapshotElement(
        role=str(raw.get("role") or "generic"),
        name=str(raw.get("name") or ""),
        text=raw.get("text") or None,
        description=raw.get("description") or None,
        disabled=bool(raw.get("disabled", False)),
        expanded=raw.get("expanded"),
        selected=bool(raw.get("selected", False)),
        checked=checked if checked in (True, False, "mixed") else None,
        pressed=bool(raw.get("pressed", False)),
        level=int(level) if level is not None else None,
        value=str(raw["value"]) if raw.get("value") is not None else None,
        is_frame=bool(raw.get("is_frame", False)),
    )


def build_tree(
    raw_root: dict[str, Any],
) -> tuple[SnapshotElement, list[tuple[SnapshotElement, str]]]:
    """
    Convert a raw tree and collect reference candidates.

    Returns:
        (root element, [(element, driver ref), ...]) in document order
    """
    candidates: list[tuple[SnapshotElement, str]] = []

    def visit(raw: dict[str, Any], ancestors: tuple[str, ...]) -> SnapshotElement:
        element = _build_element(raw)
        element.tier = classify(element.role, raw.get("tab_index"))

        driver_ref = raw.get("ref")
        if driver_ref and receives_ref(element.tier, ancestors):
            candidates.append((element, str(driver_ref)))

        child_ancestors = ancestors + (element.role,)
        element.children = [visit(child, child_ancestors) for child in raw.get("children") or []]
        return element

    root = visit(raw_root, ())
    return root, candidates


def build_snapshot(
    raw_root: dict[str, Any] | None,
    all_refs: bool = False,
    context_prefix: str | None = None,
    url: str = "",
) -> AccessibilitySnapshot:
    """
    Build a snapshot from a raw driver tree.

    A missing tree is a degraded result rather than an error: the snapshot
    holds a single "document" node and the "no accessible content" note.

    Args:
        raw_root: Raw tree from the driver (None when the page exposes nothing)
        all_refs: Assign refs to every candidate regardless of count
        context_prefix: Context name to prefix refs with (multi-context mode)
        url: Page URL at capture time

    Returns:
        The captured snapshot
    """
    if not raw_root:
        logger.debug(f"Empty accessibility tree for {url or 'page'}")
        return AccessibilitySnapshot(
            root=SnapshotElement(role="document"),
            all_refs=all_refs,
            notes=[NO_CONTENT_NOTE],
            context_prefix=context_prefix,
            url=url,
        )

    root, candidates = build_tree(raw_root)

    compact = not all_refs and len(candidates) > MAX_DEFAULT_REFS
    if compact:
        logger.info(
            f"Compact snapshot: {len(candidates)} ref candidates exceed {MAX_DEFAULT_REFS}, "
            f"keeping Tier 1 only"
        )
        candidates = [(el, ref) for el, ref in candidates if el.tier is ElementTier.TIER1]

    refs: dict[str, SnapshotElement] = {}
    for element, ref in candidates:
        element.ref = ref
        refs[ref] = element

    return AccessibilitySnapshot(
        root=root,
        refs=refs,
        all_refs=all_refs,
        compact=compact,
        notes=[COMPACT_NOTE] if compact else [],
        context_prefix=context_prefix,
        url=url,
    )


async def capture(
    driver: Any,
    page: Any,
    all_refs: bool = False,
    context_prefix: str | None = None,
) -> AccessibilitySnapshot:
    """
    Capture the accessibility tree of a page.

    Raises:
        CaptureFailed: If the driver fails to report a tree
    """
    try:
        raw_root = await driver.accessibility_tree(page)
    except CaptureFailed:
        raise
    except Exception as e:
        raise CaptureFailed(str(e)) from e

    return build_snapshot(raw_root, all_refs=all_refs, context_prefix=context_prefix, url=page.url)


def counts(root: SnapshotElement) -> tuple[int, int]:
    """Return (ref count, element count) in one traversal."""
    ref_count = 0
    element_count = 0
    for element in root.iter_tree():
        element_count += 1
        if element.ref:
            ref_count += 1
    return ref_count, element_count
