"""Reconcile the raw JCR tree and the tabs model of a page into one hierarchy."""

from __future__ import annotations

import logging

from aem2hierarchy.config import AEM2HIERARCHY_MAX_TREE_DEPTH
from aem2hierarchy.context import build_context
from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect
from aem2hierarchy.images import extract_banner_images
from aem2hierarchy.jcr_builder import build_jcr_tree
from aem2hierarchy.merge import dedupe_items, dedupe_paths, fold_secondary, sort_sections
from aem2hierarchy.paths import recalculate_paths
from aem2hierarchy.resolver import resolve_types
from aem2hierarchy.schemas import HierarchyDocument, HierarchyItem
from aem2hierarchy.sections import group_into_sections
from aem2hierarchy.tree_builder import build_model_tree

logger = logging.getLogger(__name__)


def page_title(jcr: dict, content_path: str) -> str:
    """Return the page's ``jcr:title``, or the last segment of its path."""
    title = jcr.get("jcr:title")
    if title:
        return str(title).strip()
    return content_path.rstrip("/").rsplit("/", 1)[-1]


def reconcile_items(
    jcr: dict,
    model: dict | None,
    *,
    content_path: str,
    dialect: SourceDialect = DEFAULT_DIALECT,
    max_depth: int = AEM2HIERARCHY_MAX_TREE_DEPTH,
) -> list[HierarchyItem]:
    """Build, resolve, merge and deduplicate the item tree of a page.

    Args:
        jcr: The page's ``jcr:content`` document.
        model: The (combined) tabs model, or None when the page has no tabs.
        content_path: Repository path of the page.
        dialect: Naming patterns of the export.
        max_depth: Depth limit of both tree builders.

    Returns:
        The final top-level items, with paths computed.
    """
    ctx = build_context(jcr, content_path=content_path, dialect=dialect)

    primary: list[HierarchyItem] = []
    if model:
        primary = build_model_tree(model, ctx, max_depth=max_depth)
        primary = group_into_sections(primary, jcr, dialect)
        primary = resolve_types(primary, dialect)
    logger.debug("Primary tree: %s top-level item(s)", len(primary))

    secondary = build_jcr_tree(jcr, ctx, max_depth=max_depth)
    logger.debug("Secondary tree: %s top-level item(s)", len(secondary))

    items = fold_secondary(primary, secondary, dialect)
    items = dedupe_items(items, dialect)
    items = dedupe_paths(items)
    items = resolve_types(items, dialect)
    items = sort_sections(items)
    return recalculate_paths(items)


def reconcile(
    jcr: dict,
    model: dict | None,
    *,
    content_path: str,
    dialect: SourceDialect = DEFAULT_DIALECT,
    max_depth: int = AEM2HIERARCHY_MAX_TREE_DEPTH,
) -> HierarchyDocument:
    """Reconcile both sources of a page into its hierarchy document."""
    items = reconcile_items(jcr, model, content_path=content_path, dialect=dialect, max_depth=max_depth)
    banners = extract_banner_images(jcr, content_path, dialect=dialect)
    return HierarchyDocument(
        title=page_title(jcr, content_path),
        items=items,
        link_url=content_path,
        banner_images=banners or None,
    )
