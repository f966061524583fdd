"""Serialize hierarchy documents and summarize them."""

from __future__ import annotations

import json
from typing import Iterable

from aem2hierarchy.exceptions import ConversionError
from aem2hierarchy.schemas import HierarchyDocument, HierarchyItem, ItemKind
from aem2hierarchy.traversal import iter_items


def document_to_dict(document: HierarchyDocument) -> dict:
    """Dump a document with its wire names, dropping empty fields.

    ``None`` values and empty ``items`` lists are omitted so leaves carry no
    ``items`` key.
    """
    data = document.model_dump(mode="json", by_alias=True, exclude_none=True)
    stack = list(data.get("items", []))
    while stack:
        node = stack.pop()
        children = node.get("items")
        if children:
            stack.extend(children)
        elif "items" in node:
            del node["items"]
    return data


def format_document(document: HierarchyDocument, *, indent: int = 2) -> str:
    """Render a document as pretty-printed JSON."""
    try:
        return json.dumps(document_to_dict(document), indent=indent, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ConversionError(f"Cannot serialize hierarchy document: {exc}") from exc


def load_document(content: str) -> HierarchyDocument:
    """Parse a serialized hierarchy document."""
    try:
        return HierarchyDocument.model_validate_json(content)
    except ValueError as exc:
        raise ConversionError(f"Invalid hierarchy document: {exc}") from exc


def count_items(items: list[HierarchyItem]) -> int:
    """Count every node of the tree."""
    return sum(1 for _ in iter_items(items))


def count_by_kind(items: list[HierarchyItem]) -> dict[ItemKind, int]:
    counts: dict[ItemKind, int] = {}
    for visit in iter_items(items):
        counts[visit.item.kind] = counts.get(visit.item.kind, 0) + 1
    return counts


def summarize(document: HierarchyDocument, image_urls: Iterable[str] = ()) -> str:
    """Create the run summary printed after an extraction."""
    lines = []
    if document.title:
        lines.append(f"Title: {document.title}")
    lines.append(f"Link: {document.link_url}")
    lines.append(f"Sections: {len(document.items)}")
    lines.append(f"Items: {count_items(document.items)}")
    by_kind = count_by_kind(document.items)
    if by_kind:
        parts = sorted(f"{kind.value}={count}" for kind, count in by_kind.items())
        lines.append(f"Kinds: {', '.join(parts)}")
    images = list(image_urls)
    if images:
        lines.append(f"Images: {len(images)}")
    if document.banner_images:
        lines.append(f"Banner images: {len(document.banner_images)}")
    return "\n".join(lines)
