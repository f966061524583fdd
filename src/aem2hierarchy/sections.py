"""Group top-level items into the page's titled sections."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from aem2hierarchy.config import PATH_SEPARATOR
from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect, content_keys
from aem2hierarchy.schemas import HierarchyItem, ItemKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionInfo:
    """A section announced by a title component of the raw page tree."""

    title: str
    kind: ItemKind
    order: int


def extract_jcr_sections(jcr: dict, dialect: SourceDialect = DEFAULT_DIALECT) -> list[SectionInfo]:
    """List the page's sections in document order, one per distinct title.

    Every titled title component found while walking the root container and
    its nested containers opens a section.
    """
    root = jcr.get("root")
    container = root.get("container") if isinstance(root, dict) else None
    if not isinstance(container, dict):
        return []

    sections: list[SectionInfo] = []
    seen: set[str] = set()
    stack = [container]
    while stack:
        node = stack.pop()
        nested = []
        for key in content_keys(node):
            child = node[key]
            if dialect.is_component(child, "title") and child.get("jcr:title"):
                title = str(child["jcr:title"]).strip()
                if title not in seen:
                    seen.add(title)
                    kind = dialect.kind_from_hint(child.get("sling:resourceType")) or ItemKind.SECTION
                    sections.append(SectionInfo(title=title, kind=kind, order=len(sections)))
            elif dialect.is_component(child, "container"):
                nested.append(child)
        stack.extend(reversed(nested))
    return sections


def group_by_sections(items: list[HierarchyItem], sections: list[SectionInfo]) -> list[HierarchyItem]:
    """Group items by the section recorded on them while building the tree.

    A section whose only member carries the section's own title is
    flattened: the member takes the section's place and kind. Items without
    a known section follow the sections, in their original order.
    """
    grouped: list[HierarchyItem] = []
    matched: set[int] = set()
    for section in sections:
        members = [item for item in items if item.section and item.section.strip() == section.title]
        if not members:
            continue
        matched.update(id(item) for item in members)
        if len(members) == 1 and members[0].title.strip() == section.title:
            flattened = members[0]
            flattened.kind = section.kind
            flattened.section_order = section.order
            grouped.append(flattened)
            logger.debug("Section %r flattened into its only item", section.title)
            continue
        for member in members:
            if not member.path.startswith(section.title):
                member.path = f"{section.title}{PATH_SEPARATOR}{member.path or member.title}"
        grouped.append(
            HierarchyItem(
                title=section.title,
                path=section.title,
                kind=section.kind,
                children=members,
                section=section.title,
                section_order=section.order,
            )
        )

    unmatched = [item for item in items if id(item) not in matched]
    if unmatched:
        logger.debug("%s top-level item(s) carry no section metadata", len(unmatched))
    return grouped + unmatched


def group_by_first_path_segment(items: list[HierarchyItem]) -> list[HierarchyItem]:
    """Group items by the first segment of their path.

    Used when no section metadata is available. A group made of a single item
    titled like the group is kept as the item itself.
    """
    groups: dict[str, list[HierarchyItem]] = {}
    for item in items:
        segments = item.path.split(PATH_SEPARATOR) if item.path else []
        name = segments[0] if len(segments) > 1 else item.title
        groups.setdefault(name, []).append(item)

    grouped: list[HierarchyItem] = []
    for name, members in groups.items():
        if len(members) == 1 and members[0].title.strip() == name.strip():
            grouped.append(members[0])
            continue
        grouped.append(HierarchyItem(title=name, path=name, kind=ItemKind.SECTION, children=members))
    return grouped


def group_into_sections(
    items: list[HierarchyItem],
    jcr: dict,
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[HierarchyItem]:
    """Group top-level items, preferring section metadata over path heuristics."""
    sections = extract_jcr_sections(jcr, dialect)
    if sections and any(item.section for item in items):
        grouped = group_by_sections(items, sections)
        if any(item.section_order is not None for item in grouped):
            return grouped
    logger.debug("No section metadata matched; grouping by first path segment")
    return group_by_first_path_segment(items)
