"""Build the primary item tree from a (combined) Sling tabs model."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aem2hierarchy.config import AEM2HIERARCHY_MAX_TREE_DEPTH, PATH_SEPARATOR
from aem2hierarchy.context import ExtractionContext
from aem2hierarchy.dialect import ordered_model_children
from aem2hierarchy.extractor import extract_item, raw_title, source_key, structural_children
from aem2hierarchy.schemas import HierarchyItem, ItemKind, SourceTag
from aem2hierarchy.traversal import iter_items

logger = logging.getLogger(__name__)

_MERGEABLE_KINDS = frozenset({ItemKind.CONTAINER, ItemKind.ITEM})


@dataclass
class _Pending:
    key: str
    node: dict
    target: list[HierarchyItem]
    parent_key: str | None
    section: str | None
    ancestors: tuple[str, ...]
    parent_path: str
    depth: int


def is_spliced_wrapper(key: str, node: dict, item: HierarchyItem, ctx: ExtractionContext) -> bool:
    """Check whether a node only groups its children and carries nothing to show.

    Untitled tabs wrappers and button containers titled by their own key are
    spliced, as are generic ``container_*`` nodes titled by their own key
    and without text: their children take their place in the parent.
    """
    dialect = ctx.dialect
    bare_key = source_key(key)
    if dialect.is_structural_key(bare_key) and not raw_title(node):
        return True
    if bare_key.startswith(dialect.button_container_prefix) and item.title == bare_key:
        return True
    return dialect.is_generic_container_title(item.title) and item.title == bare_key and not item.text


def build_model_tree(
    model: dict,
    ctx: ExtractionContext,
    *,
    max_depth: int = AEM2HIERARCHY_MAX_TREE_DEPTH,
) -> list[HierarchyItem]:
    """Walk a tabs model and return its normalized item tree.

    The walk uses an explicit stack of pending nodes. Each pending node
    remembers the list it must be appended to, which is how spliced wrappers
    hand their children to their own parent without losing order.

    Args:
        model: The model document; its ``:items`` are the top-level nodes.
        ctx: Lookup tables of the page.
        max_depth: Nodes nested deeper than this are dropped with a warning.

    Returns:
        The top-level items, in ``:itemsOrder`` order.
    """
    roots: list[HierarchyItem] = []
    stack = [
        _Pending(key, node, roots, None, None, (), "", 0)
        for key, node in reversed(ordered_model_children(model))
    ]
    while stack:
        pending = stack.pop()
        if pending.depth > max_depth:
            logger.warning(
                "Maximum depth %s exceeded at %r; truncating branch",
                max_depth,
                "/".join((*pending.ancestors, pending.key)),
            )
            continue

        item = extract_item(
            pending.node,
            pending.key,
            ctx=ctx,
            parent_key=pending.parent_key,
            section=pending.section,
            source=SourceTag.PRIMARY,
        )
        if item is None:
            continue

        if is_spliced_wrapper(pending.key, pending.node, item, ctx):
            child_target = pending.target
            child_path = pending.parent_path
        else:
            item.path = f"{pending.parent_path}{PATH_SEPARATOR}{item.title}" if pending.parent_path else item.title
            pending.target.append(item)
            child_target = item.children
            child_path = item.path

        ancestors = (*pending.ancestors, source_key(pending.key))
        for key, child in reversed(structural_children(pending.node, ctx)):
            stack.append(
                _Pending(
                    key,
                    child,
                    child_target,
                    source_key(pending.key),
                    item.section,
                    ancestors,
                    child_path,
                    pending.depth + 1,
                )
            )

    collapse_duplicate_containers(roots)
    return roots


def collapse_duplicate_containers(items: list[HierarchyItem]) -> list[HierarchyItem]:
    """Merge a container into its only child when both carry the same title.

    ``Promo > Promo > ...`` becomes ``Promo > ...``. The parent keeps its own
    text and links when it has them. Mutates ``items`` in place and returns it.
    """
    for visit in iter_items(items):
        parent = visit.item
        while (
            len(parent.children) == 1
            and parent.kind in _MERGEABLE_KINDS
            and parent.children[0].kind in _MERGEABLE_KINDS
            and parent.children[0].title == parent.title
        ):
            child = parent.children[0]
            parent.text = parent.text or child.text
            parent.link_sources = parent.link_sources or child.link_sources
            parent.panel_title = parent.panel_title or child.panel_title
            parent.children = child.children
    return items
