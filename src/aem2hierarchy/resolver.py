"""Type resolution passes over a built hierarchy.

Each pass is a whole-tree rewrite ``(items, dialect) -> items``. They run in
the order of ``RESOLVER_PASSES``; later passes rely on the kinds assigned by
earlier ones (tab conversion must not see panels that are accordions, the
residual text pass must not see containers that became tabs).
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable

from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect
from aem2hierarchy.schemas import HierarchyItem, ItemKind
from aem2hierarchy.traversal import iter_items, iter_sibling_lists

logger = logging.getLogger(__name__)

MAX_PASS_DEPTH = 100

PassFunction = Callable[[list[HierarchyItem], SourceDialect], list[HierarchyItem]]


@dataclass(frozen=True)
class ResolverPass:
    """A named tree rewrite."""

    name: str
    apply: PassFunction


def is_wrapper(item: HierarchyItem, dialect: SourceDialect = DEFAULT_DIALECT) -> bool:
    """Check whether an item is a structural wrapper named after its kind.

    Wrappers are titled ``item_*``, ``{kind}_*`` or exactly ``{kind}``.
    """
    title = item.title
    if not title:
        return False
    kind_name = item.kind.value
    return (
        title.startswith(dialect.wrapper_title_prefix)
        or title.startswith(f"{kind_name}_")
        or title == kind_name
    )


def is_accordion_panel(item: HierarchyItem, dialect: SourceDialect = DEFAULT_DIALECT) -> bool:
    """Check whether a container looks like an accordion panel."""
    return bool(
        item.panel_title
        and item.key
        and dialect.accordion_key_pattern.search(item.key)
        and item.text
        and not item.children
    )


def _unwrap_list(items: list[HierarchyItem], dialect: SourceDialect) -> list[HierarchyItem]:
    pending = deque(items)
    result: list[HierarchyItem] = []
    while pending:
        item = pending.popleft()
        if item.title in dialect.skipped_titles:
            logger.debug("Dropping authoring artifact %r", item.title)
            continue
        if dialect.is_boilerplate(item.text):
            logger.debug("Dropping boilerplate text item %r", item.title)
            continue
        if not is_wrapper(item, dialect):
            result.append(item)
        elif item.children:
            pending.extendleft(reversed(item.children))
        elif item.text and item.text.strip():
            result.append(item)
    return result


def unwrap_wrappers(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
    *,
    max_depth: int = MAX_PASS_DEPTH,
) -> list[HierarchyItem]:
    """Replace structural wrappers by their children.

    A wrapper without children is dropped unless it carries text. Items with
    a skipped title and items whose text is authoring boilerplate are removed
    wherever they appear.

    Returns:
        The rewritten top-level list. Children lists are replaced in place.
    """
    roots = _unwrap_list(items, dialect)
    stack = [(item, 1) for item in roots]
    while stack:
        item, depth = stack.pop()
        if not item.children:
            continue
        if depth > max_depth:
            logger.warning("unwrap_wrappers: depth %s exceeded below %r; branch left untouched", max_depth, item.title)
            continue
        item.children = _unwrap_list(item.children, dialect)
        stack.extend((child, depth + 1) for child in item.children)
    return roots


def convert_accordions(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Turn containers shaped like accordion panels into accordions."""
    for visit in iter_items(items, max_depth=MAX_PASS_DEPTH):
        item = visit.item
        if item.kind is ItemKind.CONTAINER and is_accordion_panel(item, dialect):
            item.kind = ItemKind.ACCORDION
    return items


def convert_tabs(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Turn containers with children or a panel title into tabs."""
    for visit in iter_items(items, max_depth=MAX_PASS_DEPTH):
        item = visit.item
        if item.kind is not ItemKind.CONTAINER:
            continue
        if (item.children or item.panel_title) and not is_accordion_panel(item, dialect):
            item.kind = ItemKind.TAB
    return items


def hoist_mixed_text(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Move the text of a node that also has children into a leading text child."""
    for visit in iter_items(items, max_depth=MAX_PASS_DEPTH):
        item = visit.item
        if not (item.text and item.children):
            continue
        text_item = HierarchyItem(
            title=dialect.text_label,
            kind=ItemKind.TEXT,
            text=item.text,
            source=item.source,
            section=item.section,
        )
        item.children.insert(0, text_item)
        item.text = None
        logger.debug("Hoisted text of %r into a %r child", item.title, dialect.text_label)
    return items


def convert_residual_text(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Turn leftover leaf containers that carry text into text items."""
    for visit in iter_items(items, max_depth=MAX_PASS_DEPTH):
        item = visit.item
        if item.kind is ItemKind.CONTAINER and item.text and not item.children:
            item.kind = ItemKind.TEXT
            item.title = dialect.text_label
    return items


def prune_empty_containers(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Remove containers with neither children nor text, deepest lists first.

    A container whose children are all pruned becomes empty and is pruned
    as well.
    """
    for siblings, _ancestors, _depth in reversed(iter_sibling_lists(items, max_depth=MAX_PASS_DEPTH)):
        kept = []
        for item in siblings:
            if item.kind is ItemKind.CONTAINER and not item.children and not item.text:
                logger.debug("Pruning empty container %r (key: %s)", item.title, item.key)
                continue
            kept.append(item)
        siblings[:] = kept
    return items


RESOLVER_PASSES: tuple[ResolverPass, ...] = (
    ResolverPass("unwrap_wrappers", unwrap_wrappers),
    ResolverPass("convert_accordions", convert_accordions),
    ResolverPass("convert_tabs", convert_tabs),
    ResolverPass("hoist_mixed_text", hoist_mixed_text),
    ResolverPass("convert_residual_text", convert_residual_text),
    ResolverPass("prune_empty_containers", prune_empty_containers),
)


def resolve_types(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
    passes: tuple[ResolverPass, ...] = RESOLVER_PASSES,
) -> list[HierarchyItem]:
    """Run the resolver passes in order and return the rewritten items."""
    for resolver_pass in passes:
        items = resolver_pass.apply(items, dialect)
        logger.debug("Resolver pass %s done", resolver_pass.name)
    return items
