"""Lookup tables built from the raw JCR tree before extraction.

The context is built once per page by ``build_context`` and then only read:
every builder and extractor receives it explicitly instead of consulting
module-level state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping

from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect, content_keys

_JS_DATE_RE = re.compile(
    r"^\w{3} (\w{3}) (\d{1,2}) (\d{4}) (\d{2}):(\d{2}):(\d{2}) GMT([+-])(\d{2})(\d{2})"
)
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


@dataclass(frozen=True)
class TeaserImage:
    """Image metadata of one teaser component in the JCR tree."""

    key: str
    title: str | None
    file_name: str
    last_modified: int | None
    jcr_path: str


@dataclass(frozen=True)
class ExtractionContext:
    """Read-only indexes over one page's JCR tree.

    Attributes:
        content_path: Repository path of the page (e.g. ``/content/share/...``).
        dialect: Naming patterns of the export.
        title_resource_types: Display title to ``sling:resourceType``.
        button_links: (key, title) of a JCR button to its raw link target.
        texts: Text content by ``title|parentKey``, ``key|parentKey``,
            title and key.
        teaser_images: Teaser image metadata in document order.
    """

    content_path: str
    dialect: SourceDialect = DEFAULT_DIALECT
    title_resource_types: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    button_links: Mapping[tuple[str, str], str] = field(default_factory=lambda: MappingProxyType({}))
    texts: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    teaser_images: tuple[TeaserImage, ...] = ()

    def resource_type_for(self, title: str | None) -> str | None:
        if not title:
            return None
        return self.title_resource_types.get(title)

    def text_for(self, *, title: str | None, key: str, parent_key: str | None) -> str | None:
        """Look up JCR text for a node, most specific context first."""
        parent = parent_key or "root"
        candidates = []
        if title:
            candidates.append(f"{title}|{parent}")
        candidates.extend([f"{key}|{parent}", key])
        for candidate in candidates:
            text = self.texts.get(candidate)
            if text:
                return text
        return None

    def teaser_image_for(self, key: str, title: str | None) -> TeaserImage | None:
        """Find a teaser's image by key, using the title to pick among equal keys."""
        matches = [image for image in self.teaser_images if image.key == key]
        if not matches:
            return None
        if len(matches) > 1:
            for image in matches:
                if image.title == title:
                    return image
        return matches[0]


def _parse_js_date(match: re.Match[str]) -> int | None:
    month, day, year, hour, minute, second, sign, offset_hours, offset_minutes = match.groups()
    if month not in _MONTHS:
        return None
    offset = timedelta(hours=int(offset_hours), minutes=int(offset_minutes))
    try:
        tz = timezone(-offset if sign == "-" else offset)
        parsed = datetime(
            int(year),
            _MONTHS.index(month) + 1,
            int(day),
            int(hour),
            int(minute),
            int(second),
            tzinfo=tz,
        )
    except ValueError:
        return None
    return int(parsed.timestamp() * 1000)


def parse_jcr_timestamp(value: object) -> int | None:
    """Convert a JCR date property to epoch milliseconds.

    Accepts epoch numbers, ISO-8601 strings and the JavaScript date strings
    found in ``infinity.json`` exports (``Wed Jan 15 2025 10:21:33 GMT-0500``).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    match = _JS_DATE_RE.match(text)
    if match:
        return _parse_js_date(match)
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return int(parsed.timestamp() * 1000)


def build_context(
    jcr: dict,
    *,
    content_path: str,
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> ExtractionContext:
    """Index a JCR page tree in a single iterative walk.

    Args:
        jcr: The ``jcr:content`` document (the object holding ``root``).
        content_path: Repository path of the page.
        dialect: Naming patterns of the export.

    Returns:
        A frozen ``ExtractionContext``.
    """
    title_resource_types: dict[str, str] = {}
    button_links: dict[tuple[str, str], str] = {}
    texts: dict[str, str] = {}
    teaser_images: list[TeaserImage] = []

    root = jcr.get("root")
    stack: list[tuple[dict, str, str]] = [(root, "", "")] if isinstance(root, dict) else []
    while stack:
        node, parent_path, parent_key = stack.pop()
        keys = content_keys(node)
        for key in reversed(keys):
            stack.append((node[key], f"{parent_path}/{key}", key))

        for key in keys:
            child = node[key]
            resource_type = child.get("sling:resourceType")
            title = child.get("cq:panelTitle") or child.get("jcr:title") or child.get("title")
            title = str(title) if title else None
            context_parent = parent_key or "root"

            if title and resource_type:
                title_resource_types[title] = resource_type

            if title and resource_type and "button" in resource_type:
                link = child.get("searchLink") or child.get("linkURL")
                if link:
                    button_links.setdefault((key, title), link)

            if key.startswith("teaser") and child.get("fileName") and isinstance(child.get("file"), dict):
                file_node = child["file"]
                teaser_images.append(
                    TeaserImage(
                        key=key,
                        title=child.get("jcr:title"),
                        file_name=child["fileName"],
                        last_modified=parse_jcr_timestamp(
                            child.get("jcr:lastModified")
                            or file_node.get("jcr:lastModified")
                            or file_node.get("jcr:created")
                        ),
                        jcr_path=f"{parent_path}/{key}",
                    )
                )

            text = _collect_text(child, resource_type, dialect)
            if not text:
                continue
            if title:
                texts[f"{title}|{context_parent}"] = text
                texts.setdefault(title, text)
            elif resource_type and "text" in resource_type:
                texts[f"{key}|{context_parent}"] = text
                texts.setdefault(key, text)

    return ExtractionContext(
        content_path=content_path,
        dialect=dialect,
        title_resource_types=MappingProxyType(title_resource_types),
        button_links=MappingProxyType(button_links),
        texts=MappingProxyType(texts),
        teaser_images=tuple(teaser_images),
    )


def _collect_text(node: dict, resource_type: str | None, dialect: SourceDialect) -> str | None:
    if resource_type and "text" in resource_type and node.get("text"):
        return node["text"]
    order = node.get(":itemsOrder")
    keys = order if isinstance(order, list) else list(node)
    fragments = [
        node[key]["text"]
        for key in keys
        if dialect.is_text_fragment_key(key) and isinstance(node.get(key), dict) and node[key].get("text")
    ]
    return "\n".join(fragments) if fragments else None
