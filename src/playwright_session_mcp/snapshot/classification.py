"""
Interactive element classification

Decides which accessibility nodes receive element references:

- Tier 1: always interactive (buttons, links, form controls, ...) or any
  node with an explicit non-negative tab index.
- Tier 2: list/tree/grid items, which only get a reference when they sit
  inside an interactive container (listbox, combobox, tree, grid, ...).
- Tier 3: everything else (structure, headings, text, images).

Role matching is case-insensitive; unknown roles are Tier 3.
"""

from collections.abc import Iterable

from .element import ElementTier

TIER1_ROLES = frozenset(
    {
        "button",
        "link",
        "textbox",
        "searchbox",
        "checkbox",
        "radio",
        "combobox",
        "slider",
        "spinbutton",
        "switch",
        "tab",
        "menuitem",
        "menuitemcheckbox",
        "menuitemradio",
        "scrollbar",
        "progressbar",
    }
)

TIER2_ROLES = frozenset(
    {
        "listitem",
        "option",
        "treeitem",
        "row",
        "cell",
        "gridcell",
        "columnheader",
        "rowheader",
    }
)

INTERACTIVE_CONTAINER_ROLES = frozenset(
    {
        "listbox",
        "combobox",
        "tree",
        "treegrid",
        "grid",
        "menu",
        "menubar",
        "tablist",
        "radiogroup",
    }
)


def classify(role: str, tab_index: int | None = None) -> ElementTier:
    """
    Classify an accessibility role.

    Args:
        role: ARIA role (any case)
        tab_index: Explicit tab index of the node, if any

    Returns:
        The element's tier
    """
    normalized = role.lower()
    if normalized in TIER1_ROLES:
        return ElementTier.TIER1
    if tab_index is not None and tab_index >= 0:
        return ElementTier.TIER1
    if normalized in TIER2_ROLES:
        return ElementTier.TIER2
    return ElementTier.TIER3


def is_interactive_container(role: str) -> bool:
    return role.lower() in INTERACTIVE_CONTAINER_ROLES


def receives_ref(tier: ElementTier, ancestor_roles: Iterable[str]) -> bool:
    """
    Whether a node of the given tier is a reference candidate.

    Tier 2 nodes qualify only when one of their ancestors is an
    interactive container.
    """
    if tier is ElementTier.TIER1:
        return True
    if tier is ElementTier.TIER2:
        return any(is_interactive_container(role) for role in ancestor_roles)
    return False
