"""Build the secondary item tree straight from the raw JCR page tree.

The JCR tree has no ``:itemsOrder`` and no templating layer, but it keeps
components the tabs models never expose: buttons, teasers and accordions
placed outside any tabs component, and the title components that name the
page's sections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from aem2hierarchy.config import AEM2HIERARCHY_MAX_TREE_DEPTH
from aem2hierarchy.context import ExtractionContext
from aem2hierarchy.dialect import SourceDialect, content_keys
from aem2hierarchy.html_utils import clean_link_url, strip_hosts_from_text
from aem2hierarchy.images import teaser_image_url
from aem2hierarchy.naming import create_deterministic_id
from aem2hierarchy.schemas import HierarchyItem, ItemKind, LinkSources, SourceTag

logger = logging.getLogger(__name__)

MAX_SECTION_SCAN_DEPTH = 5


@dataclass
class JcrSection:
    """A run of root-level containers introduced by one title component.

    ``title_node`` is None for containers that precede the first title.
    """

    title_node: dict | None
    containers: list[dict] = field(default_factory=list)

    @property
    def title(self) -> str | None:
        return self.title_node.get("jcr:title") if self.title_node else None


def direct_title_component(container: dict, dialect: SourceDialect) -> dict | None:
    """Return the first titled title component directly inside a container."""
    for key in content_keys(container):
        child = container[key]
        if dialect.is_component(child, "title") and child.get("jcr:title"):
            return child
    return None


def scan_sections(
    container: dict,
    dialect: SourceDialect,
    *,
    depth: int = 0,
) -> list[JcrSection]:
    """Split a container's child containers into titled sections.

    A child container holding a title component opens a section; the
    containers after it belong to that section until the next title.
    Untitled containers before the first title are searched for nested
    sections, and kept as untitled sections when they hold none.
    """
    if depth > MAX_SECTION_SCAN_DEPTH:
        return []

    found: list[JcrSection] = []
    current: JcrSection | None = None
    preceding: list[dict] = []

    for key in content_keys(container):
        child = container[key]
        if not dialect.is_component(child, "container"):
            continue
        title_node = direct_title_component(child, dialect)
        if title_node is not None:
            if current is None:
                found.extend(JcrSection(None, [untitled]) for untitled in preceding)
                preceding = []
            else:
                found.append(current)
            current = JcrSection(title_node, [child])
        elif current is not None:
            current.containers.append(child)
        else:
            nested = scan_sections(child, dialect, depth=depth + 1)
            if nested:
                found.extend(nested)
            else:
                preceding.append(child)

    if current is not None:
        found.append(current)
    else:
        found.extend(JcrSection(None, [untitled]) for untitled in preceding)
    return found


def has_carousel(container: dict, dialect: SourceDialect) -> bool:
    stack = [container]
    while stack:
        node = stack.pop()
        for key in content_keys(node):
            child = node[key]
            if dialect.is_component(child, "carousel"):
                return True
            stack.append(child)
    return False


def _text_children(node: dict, dialect: SourceDialect) -> tuple[str | None, bool]:
    """Join a container's direct text components; report other typed children."""
    texts: list[str] = []
    has_other = False
    for key in content_keys(node):
        child = node[key]
        if dialect.is_component(child, "text"):
            if child.get("text"):
                texts.append(child["text"])
        elif child.get("sling:resourceType"):
            has_other = True
    return ("\n".join(texts) if texts else None), has_other


def _text_item(key: str, text: str, dialect: SourceDialect) -> HierarchyItem:
    return HierarchyItem(
        title=dialect.text_label,
        kind=ItemKind.TEXT,
        key=key,
        text=strip_hosts_from_text(text),
        source=SourceTag.SECONDARY,
    )


def _button_item(key: str, node: dict) -> HierarchyItem:
    title = str(node.get("jcr:title") or node.get("text") or key)
    url = clean_link_url(node.get("searchLink")) or clean_link_url(node.get("linkURL"))
    return HierarchyItem(
        title=title,
        kind=ItemKind.BUTTON,
        key=key,
        id=f"button-{create_deterministic_id(title + key)}",
        link_sources=LinkSources(clickable_url=url) if url else None,
        source=SourceTag.SECONDARY,
    )


def _accordion_items(node: dict, dialect: SourceDialect) -> list[HierarchyItem]:
    panels = []
    for panel_key in content_keys(node):
        if not panel_key.startswith(dialect.wrapper_title_prefix):
            continue
        panel = node[panel_key]
        panel_title = panel.get("cq:panelTitle")
        title = str(panel_title or panel.get("jcr:title") or panel_key)
        fragments = [
            panel[key]["text"]
            for key in content_keys(panel)
            if key.startswith(dialect.text_fragment_key) and panel[key].get("text")
        ]
        panels.append(
            HierarchyItem(
                title=title,
                kind=ItemKind.ACCORDION,
                key=panel_key,
                id=f"accordion-{create_deterministic_id(title + panel_key)}",
                text=strip_hosts_from_text("\n".join(fragments)) if fragments else None,
                source=SourceTag.SECONDARY,
                panel_title=str(panel_title) if panel_title else None,
            )
        )
    return panels


def _teaser_item(key: str, node: dict, ctx: ExtractionContext) -> HierarchyItem:
    title = str(node.get("jcr:title") or key)
    url = clean_link_url(node.get("linkURL"))
    item = HierarchyItem(
        title=title,
        kind=ItemKind.TEASER,
        key=key,
        id=f"teaser-{create_deterministic_id(title + key)}",
        link_sources=LinkSources(clickable_url=url) if url else None,
        source=SourceTag.SECONDARY,
    )
    image = ctx.teaser_image_for(key, title)
    if image is not None:
        item.image_url = teaser_image_url(
            ctx.content_path,
            jcr_path=image.jcr_path,
            file_name=image.file_name,
            last_modified=image.last_modified,
            item_id=item.id or "",
        )
    return item


def extract_components(
    container: dict,
    ctx: ExtractionContext,
    *,
    max_depth: int = AEM2HIERARCHY_MAX_TREE_DEPTH,
) -> list[HierarchyItem]:
    """Extract the content components of one JCR container, in document order.

    Nested containers are transparent: a container holding only text becomes
    one text item, any other container contributes its components to the
    same list. Tabs components become tab items holding their panels'
    components.
    """
    dialect = ctx.dialect
    result: list[HierarchyItem] = []
    stack: list[tuple[str, dict, list[HierarchyItem], int]] = [
        (key, container[key], result, 1) for key in reversed(content_keys(container))
    ]
    while stack:
        key, node, target, depth = stack.pop()
        if depth > max_depth:
            logger.warning("Maximum depth %s exceeded at JCR node %r; truncating branch", max_depth, key)
            continue

        if dialect.is_component(node, "button") or dialect.is_component(node, "custom-button"):
            target.append(_button_item(key, node))
        elif dialect.is_component(node, "accordion"):
            target.extend(_accordion_items(node, dialect))
        elif dialect.is_component(node, "teaser"):
            target.append(_teaser_item(key, node, ctx))
        elif dialect.is_component(node, "text"):
            if node.get("text"):
                target.append(_text_item(key, node["text"], dialect))
        elif dialect.is_component(node, "tabs"):
            tabs = []
            for panel_key in content_keys(node):
                panel = node[panel_key]
                tab = HierarchyItem(
                    title=str(panel.get("cq:panelTitle") or panel.get("jcr:title") or panel_key),
                    kind=ItemKind.TAB,
                    key=panel_key,
                    source=SourceTag.SECONDARY,
                    panel_title=panel.get("cq:panelTitle"),
                )
                tabs.append(tab)
                stack.extend(
                    (child_key, panel[child_key], tab.children, depth + 2)
                    for child_key in reversed(content_keys(panel))
                )
            target.extend(tabs)
        elif dialect.is_component(node, "container"):
            text, has_other = _text_children(node, dialect)
            if text and not has_other:
                target.append(_text_item(key, text, dialect))
            else:
                stack.extend(
                    (child_key, node[child_key], target, depth + 1)
                    for child_key in reversed(content_keys(node))
                )
    return result


def build_jcr_tree(
    jcr: dict,
    ctx: ExtractionContext,
    *,
    max_depth: int = AEM2HIERARCHY_MAX_TREE_DEPTH,
) -> list[HierarchyItem]:
    """Build the secondary tree: one node per titled section, in page order.

    Items of untitled leading containers become top-level items. Sections
    holding a carousel are skipped. Every top-level node records its page
    position in ``section_order``.
    """
    dialect = ctx.dialect
    root = jcr.get("root")
    container = root.get("container") if isinstance(root, dict) else None
    if not isinstance(container, dict):
        return []

    items: list[HierarchyItem] = []
    order = 0
    for section in scan_sections(container, dialect):
        if section.title is None:
            for untitled in section.containers:
                for item in extract_components(untitled, ctx, max_depth=max_depth):
                    item.section_order = order
                    order += 1
                    items.append(item)
            continue

        if any(has_carousel(part, dialect) for part in section.containers):
            logger.debug("Skipping carousel section %r", section.title)
            continue

        children: list[HierarchyItem] = []
        for part in section.containers:
            children.extend(extract_components(part, ctx, max_depth=max_depth))
        items.append(
            HierarchyItem(
                title=str(section.title),
                kind=dialect.kind_from_hint(section.title_node.get("sling:resourceType")) or ItemKind.TITLE,
                children=children,
                source=SourceTag.SECONDARY,
                section=str(section.title),
                section_order=order,
            )
        )
        order += 1
    return items
