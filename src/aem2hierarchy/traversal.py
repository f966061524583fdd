"""Iterative traversal of hierarchy item trees."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from aem2hierarchy.config import PATH_SEPARATOR
from aem2hierarchy.schemas import HierarchyItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 100


@dataclass(frozen=True)
class Visit:
    """One step of a traversal.

    Attributes:
        item: The visited node.
        siblings: The list that holds ``item`` (its parent's children).
        ancestors: Titles of the node's ancestors, root first.
        depth: Zero for top-level nodes.
    """

    item: HierarchyItem
    siblings: list[HierarchyItem]
    ancestors: tuple[str, ...]
    depth: int

    @property
    def path(self) -> str:
        """Path computed from the node's current position."""
        return PATH_SEPARATOR.join((*self.ancestors, self.item.title))

    @property
    def top_level_title(self) -> str:
        return self.ancestors[0] if self.ancestors else self.item.title


def iter_items(
    items: list[HierarchyItem],
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Iterator[Visit]:
    """Yield every node in pre-order (document order) using an explicit stack.

    Branches deeper than ``max_depth`` are not descended into; a warning is
    logged for each truncated branch.
    """
    stack: list[tuple[list[HierarchyItem], int, tuple[str, ...], int]] = [(items, 0, (), 0)]
    while stack:
        siblings, index, ancestors, depth = stack.pop()
        if index >= len(siblings):
            continue
        item = siblings[index]
        stack.append((siblings, index + 1, ancestors, depth))
        yield Visit(item=item, siblings=siblings, ancestors=ancestors, depth=depth)
        if item.children:
            if depth + 1 > max_depth:
                logger.warning(
                    "Maximum depth %s reached below %r; skipping %s child item(s)",
                    max_depth,
                    PATH_SEPARATOR.join((*ancestors, item.title)),
                    len(item.children),
                )
                continue
            stack.append((item.children, 0, (*ancestors, item.title), depth + 1))


def iter_sibling_lists(
    items: list[HierarchyItem],
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> list[tuple[list[HierarchyItem], tuple[str, ...], int]]:
    """Collect every children list of the tree, parents before children.

    Returns (list, ancestor titles, depth) triples; iterating the result in
    reverse processes the deepest lists first.
    """
    lists: list[tuple[list[HierarchyItem], tuple[str, ...], int]] = [(items, (), 0)]
    for visit in iter_items(items, max_depth=max_depth):
        if visit.item.children and visit.depth + 1 <= max_depth:
            lists.append((visit.item.children, (*visit.ancestors, visit.item.title), visit.depth + 1))
    return lists
