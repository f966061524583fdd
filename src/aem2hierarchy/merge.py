"""Fold the secondary tree into the primary one and remove duplicates.

Duplicate detection never trusts stored ``path`` values: every decision uses
paths computed from the current position of the item in the tree.
"""

from __future__ import annotations

import logging
from typing import Iterable

from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect
from aem2hierarchy.schemas import HierarchyItem, ItemKind, SourceTag
from aem2hierarchy.traversal import Visit, iter_items, iter_sibling_lists

logger = logging.getLogger(__name__)

UNORDERED_SECTION = 9999

PANEL_TITLE_WEIGHT = 10.0
REAL_BUTTON_ID_WEIGHT = 5.0
TEXT_LENGTH_WEIGHT = 0.001

GroupKey = tuple[ItemKind, str | None, str]


def is_represented(candidate: HierarchyItem, items: list[HierarchyItem]) -> bool:
    """Check whether an equivalent item (same kind and title) exists in a tree.

    Text items must also carry the same text to count as equivalent.
    """
    for visit in iter_items(items):
        item = visit.item
        if item.kind is not candidate.kind or item.title != candidate.title:
            continue
        if candidate.kind is ItemKind.TEXT and item.text != candidate.text:
            continue
        return True
    return False


def fold_secondary(
    primary: list[HierarchyItem],
    secondary: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Fold the top-level nodes of the secondary tree into the primary tree.

    A secondary node titled like a primary top-level node hands its children
    to that node, and its page position becomes the node's ordering hint.
    Other secondary nodes are appended at the top level. Children of a kind
    outside ``dialect.dedup_kinds`` are skipped when an equivalent item is
    already present, since only the dedup kinds are reconciled afterwards.

    Returns:
        ``primary``, updated in place.
    """
    by_title: dict[str, HierarchyItem] = {}
    for item in primary:
        by_title.setdefault(item.title.strip(), item)

    for node in secondary:
        target = by_title.get(node.title.strip())
        if target is None:
            if node.kind not in dialect.dedup_kinds and is_represented(node, primary):
                logger.debug("Secondary item %r already present; skipping", node.title)
                continue
            primary.append(node)
            continue

        added = 0
        for child in node.children:
            if child.kind in dialect.dedup_kinds or not is_represented(child, target.children):
                target.children.append(child)
                added += 1
        if node.section_order is not None:
            target.section_order = node.section_order
        logger.debug("Folded %s secondary item(s) into %r", added, target.title)
    return primary


def _url_signature(item: HierarchyItem) -> str | None:
    return item.primary_url()


def score_item(item: HierarchyItem, dialect: SourceDialect = DEFAULT_DIALECT) -> float:
    """Score a duplicate candidate by how much content it carries.

    The weights (panel title 10, real button id 5, 0.001 per text character)
    are an arbitrary heuristic kept for output compatibility.
    """
    score = 0.0
    if item.panel_title:
        score += PANEL_TITLE_WEIGHT
    if dialect.is_real_button_id(item.id):
        score += REAL_BUTTON_ID_WEIGHT
    if item.text:
        score += len(item.text) * TEXT_LENGTH_WEIGHT
    return score


def _has_conflicting_content(members: list[Visit]) -> bool:
    kind = members[0].item.kind
    if kind is ItemKind.BUTTON:
        values = {_url_signature(member.item) for member in members}
    else:
        values = {member.item.text for member in members}
    values.discard(None)
    values.discard("")
    return len(values) > 1


def select_survivors(members: list[Visit], dialect: SourceDialect = DEFAULT_DIALECT) -> list[Visit]:
    """Choose which members of a duplicate group stay in the tree.

    Args:
        members: Visits of the items sharing one (kind, key, title), in
            document order.
        dialect: Source dialect used for scoring.

    Returns:
        The members to keep; never empty.
    """
    if len(members) < 2:
        return members
    if len({member.top_level_title for member in members}) > 1:
        return members
    if _has_conflicting_content(members):
        return members

    first = members[0]
    if len({member.path for member in members}) == 1 and len({member.item.source for member in members}) == 1:
        logger.warning(
            "Same-path duplicate %r inserted %s times at %r; keeping the first",
            first.item.title,
            len(members),
            first.path,
        )
        return [first]

    ordered = [m for m in members if m.item.source is SourceTag.PRIMARY]
    ordered += [m for m in members if m.item.source is not SourceTag.PRIMARY]
    best = ordered[0]
    best_score = score_item(best.item, dialect)
    for member in ordered[1:]:
        member_score = score_item(member.item, dialect)
        if member_score > best_score:
            best, best_score = member, member_score
    return [best]


def _remove_items(items: list[HierarchyItem], doomed: set[int]) -> None:
    for siblings, _ancestors, _depth in iter_sibling_lists(items):
        siblings[:] = [item for item in siblings if id(item) not in doomed]


def dedupe_items(
    items: list[HierarchyItem],
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Remove duplicate buttons and accordions.

    Items of the dialect's dedup kinds are grouped by (kind, key, title);
    each group keeps the members chosen by ``select_survivors``.

    Returns:
        ``items``, updated in place.
    """
    groups: dict[GroupKey, list[Visit]] = {}
    for visit in iter_items(items):
        item = visit.item
        if item.kind in dialect.dedup_kinds:
            groups.setdefault((item.kind, item.key, item.title), []).append(visit)

    doomed: set[int] = set()
    for (kind, key, title), members in groups.items():
        survivors = {id(member.item) for member in select_survivors(members, dialect)}
        dropped = [member for member in members if id(member.item) not in survivors]
        if dropped:
            logger.debug("Dropping %s duplicate %s item(s) %r (key: %s)", len(dropped), kind.value, title, key)
            doomed.update(id(member.item) for member in dropped)

    if doomed:
        _remove_items(items, doomed)
    return items


def _content_signature(item: HierarchyItem) -> tuple[str | None, str | None, str | None]:
    return item.primary_url(), item.image_url, item.text or None


def _collapse_siblings(siblings: list[HierarchyItem]) -> list[HierarchyItem]:
    groups: dict[tuple[str, tuple], list[HierarchyItem]] = {}
    for item in siblings:
        groups.setdefault((item.title, _content_signature(item)), []).append(item)

    kept: list[HierarchyItem] = []
    for item in siblings:
        members = groups[(item.title, _content_signature(item))]
        if item is not members[0]:
            continue
        if len(members) == 1:
            kept.append(item)
            continue
        with_children = [m for m in members if m.children]
        winner = with_children[0] if with_children else next((m for m in members if m.text), members[0])
        for member in members:
            if member is winner:
                continue
            if winner.kind is not ItemKind.TEXT:
                winner.children.extend(member.children)
            if winner.section_order is None:
                winner.section_order = member.section_order
        logger.debug("Collapsed %s items sharing path segment %r", len(members), item.title)
        kept.append(winner)
    return kept


def dedupe_paths(items: Iterable[HierarchyItem]) -> list[HierarchyItem]:
    """Collapse siblings that share a computed path and the same content.

    Content is the (URL, image URL, text) triple of the item. The first
    member with children is kept, else the first with text; the children of
    the others are appended to it (never to a text node) and deduplicated
    in turn. The ``section_order`` hint of any member survives.

    Returns:
        The collapsed top-level list.
    """
    roots = _collapse_siblings(list(items))
    stack = list(roots)
    while stack:
        item = stack.pop()
        if item.children:
            item.children = _collapse_siblings(item.children)
            stack.extend(item.children)
    return roots


def sort_sections(items: list[HierarchyItem]) -> list[HierarchyItem]:
    """Stable-sort top-level items by their ``section_order`` hint."""
    items.sort(key=lambda item: UNORDERED_SECTION if item.section_order is None else item.section_order)
    return items
