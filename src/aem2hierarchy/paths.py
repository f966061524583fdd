"""Final path computation."""

from __future__ import annotations

from aem2hierarchy.config import PATH_SEPARATOR
from aem2hierarchy.schemas import HierarchyItem
from aem2hierarchy.traversal import iter_items


def recalculate_paths(items: list[HierarchyItem], separator: str = PATH_SEPARATOR) -> list[HierarchyItem]:
    """Overwrite every ``path`` with the join of the titles from the root down.

    Paths set earlier are ignored, so calling this twice yields the same tree.

    Args:
        items: Top-level items of the finished hierarchy.
        separator: String placed between titles.

    Returns:
        ``items``, updated in place.
    """
    for visit in iter_items(items):
        visit.item.path = separator.join((*visit.ancestors, visit.item.title))
    return items
