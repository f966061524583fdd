"""Derive the fields of one hierarchy item from one raw source node."""

from __future__ import annotations

import logging
import re

from aem2hierarchy.context import ExtractionContext
from aem2hierarchy.dialect import ordered_model_children
from aem2hierarchy.html_utils import clean_link_url, humanize_key, strip_hosts_from_text, strip_markup
from aem2hierarchy.images import teaser_image_url
from aem2hierarchy.naming import create_deterministic_id
from aem2hierarchy.schemas import HierarchyItem, ItemKind, LinkSources, SourceTag

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200

_COMBINED_KEY_SUFFIX = re.compile(r"__tabs\d+$")
_TEXT_LOOKUP_KINDS = frozenset(
    {ItemKind.CONTAINER, ItemKind.ACCORDION, ItemKind.TAB, ItemKind.TEXT, ItemKind.ITEM}
)


def source_key(key: str) -> str:
    """Drop the suffix added to keys when several tabs models are combined."""
    return _COMBINED_KEY_SUFFIX.sub("", key)


def type_hint(node: dict) -> str | None:
    return node.get(":type") or node.get("sling:resourceType")


def raw_title(node: dict) -> object:
    """Return the first authored title field: panel title, title, jcr:title, text."""
    for field_name in ("cq:panelTitle", "title", "jcr:title", "text"):
        value = node.get(field_name)
        if value:
            return value
    return None


def classify_kind(node: dict, key: str, ctx: ExtractionContext) -> ItemKind:
    """Classify a node: structural hint, then key prefix, then id prefix."""
    dialect = ctx.dialect
    title = raw_title(node)
    hint = type_hint(node) or ctx.resource_type_for(title if isinstance(title, str) else None)
    return (
        dialect.kind_from_hint(hint)
        or dialect.kind_from_key(key)
        or dialect.kind_from_id(node.get("id"))
        or ItemKind.ITEM
    )


def resolve_title(node: dict, key: str, kind: ItemKind) -> str | None:
    """Resolve the display title of a node.

    Returns None when the only title available is markup on a node that
    carries no text, which makes the node unresolvable.
    """
    title = raw_title(node)
    if not title:
        return key
    title = str(title)
    if "<" not in title:
        return title.strip()
    if kind is not ItemKind.TEXT:
        return None
    cleaned = strip_markup(title)
    if cleaned and len(cleaned) < MAX_TITLE_LENGTH:
        return cleaned
    return humanize_key(key)


def is_text_fragment(key: str, child: dict, ctx: ExtractionContext) -> bool:
    """Check whether a child only contributes text to its parent."""
    return ctx.dialect.is_text_fragment_key(key) or ctx.dialect.is_component(child, "text")


def structural_children(node: dict, ctx: ExtractionContext) -> list[tuple[str, dict]]:
    """Return the ordered model children that become items of their own."""
    return [
        (key, child)
        for key, child in ordered_model_children(node)
        if not is_text_fragment(key, child, ctx)
    ]


def collect_text(
    node: dict,
    key: str,
    kind: ItemKind,
    *,
    title: str | None,
    parent_key: str | None,
    ctx: ExtractionContext,
) -> str | None:
    """Collect the text payload of a node, host-stripped.

    Order: the node's own text (text nodes only), its ordered text fragment
    children joined by newlines, then the JCR text index.
    """
    text = None
    if kind is ItemKind.TEXT and node.get("text"):
        text = node["text"]
    if not text:
        fragments = [
            child["text"]
            for child_key, child in ordered_model_children(node)
            if is_text_fragment(child_key, child, ctx) and child.get("text")
        ]
        if fragments:
            text = "\n".join(fragments)
    if not text and kind in _TEXT_LOOKUP_KINDS:
        text = ctx.text_for(title=title, key=key, parent_key=parent_key)
    return strip_hosts_from_text(text) if text else None


def collect_link_sources(
    node: dict,
    key: str,
    kind: ItemKind,
    *,
    title: str,
    ctx: ExtractionContext,
) -> LinkSources | None:
    """Gather every URL-bearing field of a node, in priority order.

    For buttons the authored button link, then the search link, outrank the
    raw ``linkURL``, which only fills ``clickableUrl`` when nothing else did.
    """
    link = node.get("link") if isinstance(node.get("link"), dict) else {}
    clickable = clean_link_url(link.get("url"))
    storage = None

    raw_link = clean_link_url(node.get("linkURL"))
    if kind is ItemKind.BUTTON:
        button_link = node.get("buttonLink") if isinstance(node.get("buttonLink"), dict) else {}
        clickable = clickable or clean_link_url(button_link.get("url")) or clean_link_url(node.get("searchLink"))
        if clickable is None:
            clickable = raw_link
        elif raw_link and raw_link != clickable:
            storage = raw_link
        if clickable is None:
            clickable = clean_link_url(ctx.button_links.get((key, title)))
    else:
        storage = raw_link

    image_resource = node.get("imageResource") if isinstance(node.get("imageResource"), dict) else {}
    sources = LinkSources(
        clickable_url=clickable,
        storage_url=storage,
        analytics_url=clean_link_url(_data_layer_url(node)),
        image_resource_url=clean_link_url(image_resource.get("linkURL")),
    )
    return None if sources.is_empty() else sources


def _data_layer_url(node: dict) -> str | None:
    data_layer = node.get("dataLayer")
    if not isinstance(data_layer, dict):
        return None
    entry = data_layer.get(node.get("id")) if node.get("id") else None
    if isinstance(entry, dict) and entry.get("xdm:linkURL"):
        return entry["xdm:linkURL"]
    return data_layer.get("xdm:linkURL")


def extract_item(
    node: dict,
    key: str,
    *,
    ctx: ExtractionContext,
    parent_key: str | None = None,
    section: str | None = None,
    source: SourceTag = SourceTag.PRIMARY,
) -> HierarchyItem | None:
    """Build a childless hierarchy item from one model node.

    Args:
        node: The raw node.
        key: The node's key in its parent (possibly with a combined-model suffix).
        ctx: Lookup tables of the page.
        parent_key: Source key of the parent, used for JCR text lookups.
        section: Section inherited from the nearest ancestor that recorded one.
        source: Which input tree the node comes from.

    Returns:
        The item, or None when the node is unresolvable.
    """
    item_key = source_key(key)
    kind = classify_kind(node, item_key, ctx)
    title = resolve_title(node, item_key, kind)
    if title is None:
        logger.debug("Skipping %r: title is markup on a non-text node", item_key)
        return None

    panel_title = node.get("cq:panelTitle")
    item = HierarchyItem(
        title=title,
        kind=kind,
        key=item_key,
        id=node.get("id"),
        link_sources=collect_link_sources(node, item_key, kind, title=title, ctx=ctx),
        text=collect_text(
            node,
            item_key,
            kind,
            title=str(panel_title or title),
            parent_key=parent_key,
            ctx=ctx,
        ),
        source=source,
        panel_title=str(panel_title) if panel_title else None,
        section=node.get("__jcrSection") or section,
    )
    if kind is ItemKind.TEASER:
        item.image_url = _teaser_image(node, item, ctx)
    return item


def _teaser_image(node: dict, item: HierarchyItem, ctx: ExtractionContext) -> str | None:
    image = ctx.teaser_image_for(item.key or "", item.title)
    if image is None:
        return None
    image_resource = node.get("imageResource") if isinstance(node.get("imageResource"), dict) else {}
    last_modified = image_resource.get("jcr:lastModified") or image.last_modified
    item_id = item.id or f"teaser-{create_deterministic_id(item.title + (item.key or ''))}"
    return teaser_image_url(
        ctx.content_path,
        jcr_path=image.jcr_path,
        file_name=image.file_name,
        last_modified=last_modified,
        item_id=item_id,
    )
