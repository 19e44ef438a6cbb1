"""
Element references

References are the driver's own per-node strings (`e<number>`), handed out
unchanged. In multi-context mode they are shown as `<context>:e<number>` so a
caller can address an element in a context other than the active one.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from .errors import RESNAPSHOT_HINT, InvalidRefFormat, StaleRefError

logger = logging.getLogger(__name__)

REF_PATTERN = re.compile(r"^(?:(?P<context>[^:\s]+):)?(?P<ref>e\d+)$")


@dataclass(frozen=True)
class ElementRef:
    """A parsed element reference."""

    ref: str
    context: str | None = None

    @classmethod
    def parse(cls, text: str) -> "ElementRef":
        """
        Parse `e<number>` or `<context>:e<number>`.

        Raises:
            InvalidRefFormat: If the text matches neither form
        """
        match = REF_PATTERN.match(text.strip()) if text else None
        if match is None:
            raise InvalidRefFormat(text)
        return cls(ref=match.group("ref"), context=match.group("context"))

    def __str__(self) -> str:
        return f"{self.context}:{self.ref}" if self.context else self.ref


async def resolve(driver: Any, page: Any, ref: ElementRef) -> Any:
    """
    Resolve a reference to a driver locator on the given page.

    Raises:
        StaleRefError: If the driver no longer knows the element
    """
    locator = await driver.locate(page, ref.ref)
    if locator is None:
        logger.info(f"Ref {ref} could not be resolved on {page.url}")
        raise StaleRefError(
            str(ref),
            f"Element (ref: {ref}) no longer exists on the page. {RESNAPSHOT_HINT}",
        )
    return locator
