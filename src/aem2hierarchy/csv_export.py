"""Flatten a hierarchy document into spreadsheet rows."""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qs, quote, urlsplit

from aem2hierarchy.html_utils import html_to_plain_text
from aem2hierarchy.images import image_file_name
from aem2hierarchy.schemas import HierarchyDocument, HierarchyItem
from aem2hierarchy.traversal import iter_items

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("path", "title", "imageUrl", "linkURL", "type", "text")
SEARCH_PAGE = "search-assets.html"
SEARCH_URL_TEMPLATE = "/search/all?query={query}"

_CONTENT_STORE_URL_RE = re.compile(r"^/content/share/us/en/((?:all|bottler)-content-stores/[^.]+)\.html$")
_SEARCH_HREF_RE = re.compile(r"""href=(["'])([^"']*search-assets\.html[^"']*)\1""", re.IGNORECASE)


@dataclass
class CsvOptions:
    """Options for CSV rendering.

    Attributes:
        store_prefix: Prefix of rewritten content store links (e.g. a site
            folder); empty for site-root links.
        image_base_url: When set, image cells hold this URL joined with the
            local image file name instead of the AEM rendition URL.
        images_dir: When set, image cells are left empty for images that
            were not downloaded into this directory.
        keep_html: Keep the rich text markup in the text column.
    """

    store_prefix: str = ""
    image_base_url: str | None = None
    images_dir: Path | None = None
    keep_html: bool = False


def transform_search_url(url: str) -> str:
    """Rewrite a legacy asset search link to the new search page.

    Examples:
        >>> transform_search_url("/content/share/search-assets.html?fulltext=fanta%20cans")
        '/search/all?query=fanta%20cans'
        >>> transform_search_url("/content/other.html")
        '/content/other.html'
    """
    if not url or SEARCH_PAGE not in url:
        return url
    query = parse_qs(urlsplit(url.replace("&amp;", "&")).query)
    fulltext = query.get("fulltext")
    if not fulltext or not fulltext[0]:
        return url
    return SEARCH_URL_TEMPLATE.format(query=quote(fulltext[0], safe=""))


def transform_content_store_url(url: str, store_prefix: str = "") -> str:
    """Rewrite a link to another content store to its migrated location.

    Examples:
        >>> transform_content_store_url("/content/share/us/en/bottler-content-stores/coke-holiday.html")
        '/content-stores/bottler-content-stores-coke-holiday'
    """
    match = _CONTENT_STORE_URL_RE.match(url or "")
    if not match:
        return url
    prefix = f"/{store_prefix.strip().strip('/')}" if store_prefix.strip() else ""
    return f"{prefix}/content-stores/{match.group(1).replace('/', '-')}"


def transform_search_urls_in_text(text: str) -> str:
    """Rewrite every legacy search link inside rich text."""
    if not text or SEARCH_PAGE not in text:
        return text
    return _SEARCH_HREF_RE.sub(
        lambda m: f"href={m.group(1)}{transform_search_url(m.group(2))}{m.group(1)}",
        text,
    )


def link_cell(item: HierarchyItem, store_prefix: str = "") -> str:
    url = item.link_sources.clickable_url if item.link_sources else None
    if not url:
        return ""
    return transform_content_store_url(transform_search_url(url), store_prefix)


def image_cell(item: HierarchyItem, options: CsvOptions) -> str:
    if not item.image_url:
        return ""
    file_name = image_file_name(item.image_url)
    if options.images_dir is not None and not (options.images_dir / file_name).exists():
        return ""
    if options.image_base_url:
        return f"{options.image_base_url.rstrip('/')}/{file_name}"
    return item.image_url


def text_cell(item: HierarchyItem, options: CsvOptions) -> str:
    text = transform_search_urls_in_text(item.text or "")
    return text if options.keep_html else html_to_plain_text(text)


def document_rows(document: HierarchyDocument, options: CsvOptions | None = None) -> list[dict[str, str]]:
    """Flatten a document into rows, parents before their children."""
    opts = options or CsvOptions()
    rows = []
    for visit in iter_items(document.items):
        item = visit.item
        rows.append(
            {
                "path": item.path or visit.path,
                "title": item.title,
                "imageUrl": image_cell(item, opts),
                "linkURL": link_cell(item, opts.store_prefix),
                "type": item.kind.value,
                "text": text_cell(item, opts),
            }
        )
    return rows


def render_csv(document: HierarchyDocument, options: CsvOptions | None = None) -> str:
    """Render a document as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\n")
    writer.writeheader()
    rows = document_rows(document, options)
    writer.writerows(rows)
    logger.debug("Rendered %s CSV row(s)", len(rows))
    return buffer.getvalue()
