"""Discover other content stores linked from a hierarchy."""

from __future__ import annotations

import re

from aem2hierarchy.schemas import HierarchyDocument
from aem2hierarchy.traversal import iter_items

CONTENT_STORE_ROOT = "/content/share/us/en/"

_HTML_SUFFIX_RE = re.compile(r"\.html$")


def linked_content_stores(
    document: HierarchyDocument,
    *,
    current_path: str | None = None,
    root: str = CONTENT_STORE_ROOT,
) -> list[str]:
    """List the content paths the document's clickable links point to.

    Links are taken without their ``.html`` suffix. Paths outside ``root``
    and the document's own path are left out.

    Returns:
        Sorted, distinct content paths.
    """
    current = current_path or document.link_url
    found: set[str] = set()
    for visit in iter_items(document.items):
        sources = visit.item.link_sources
        if not sources or not sources.clickable_url:
            continue
        path = _HTML_SUFFIX_RE.sub("", sources.clickable_url)
        if path == current or not path.startswith(root):
            continue
        found.add(path)
    return sorted(found)
