"""Image URL construction and validation for AEM renditions."""

from __future__ import annotations

import re
from typing import Final, Iterable

from aem2hierarchy.context import parse_jcr_timestamp
from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect, content_keys
from aem2hierarchy.naming import build_file_name_with_id, sanitize_file_name
from aem2hierarchy.schemas import BannerImage, HierarchyItem
from aem2hierarchy.traversal import iter_items

TEASER_RENDITION: Final[str] = "coreimg.85.1600"
BANNER_RENDITION: Final[str] = "coreimg"
MIN_IMAGE_BYTES: Final[int] = 100

_SIZE_VARIANT = "85.1600."
_TEASER_PREFIX_RE = re.compile(r"^teaser-[a-f0-9]+-")
_HTML_SIGNATURES: Final[tuple[bytes, ...]] = (b"<!DOCTYPE", b"<!doctype", b"<html")


def _split_extension(file_name: str) -> tuple[str, str]:
    dot = file_name.rfind(".")
    if dot <= 0:
        return file_name, ""
    return file_name[:dot], file_name[dot + 1 :]


def teaser_image_url(
    content_path: str,
    *,
    jcr_path: str,
    file_name: str,
    last_modified: int | str | None,
    item_id: str,
) -> str:
    """Build the rendition URL of a teaser image.

    Args:
        content_path: Repository path of the page.
        jcr_path: Path of the teaser below ``root`` (e.g. ``/container/teaser_1``).
        file_name: Authored file name of the image.
        last_modified: Modification timestamp used as cache-busting segment.
        item_id: Id of the teaser, prepended to the file name for uniqueness.

    Returns:
        A site-relative URL starting with ``content_path``.
    """
    _, extension = _split_extension(file_name)
    final_name = sanitize_file_name(build_file_name_with_id(item_id, file_name))
    return (
        f"{content_path}/_jcr_content/root{jcr_path}.{TEASER_RENDITION}.{extension}"
        f"/{last_modified or 0}/{final_name}"
    )


def banner_image_url(
    content_path: str,
    *,
    jcr_path: str,
    file_name: str,
    last_modified: int | str | None,
) -> str:
    _, extension = _split_extension(file_name)
    return (
        f"{content_path}/_jcr_content/root{jcr_path}.{BANNER_RENDITION}.{extension}"
        f"/{last_modified or 0}/{sanitize_file_name(file_name)}"
    )


def extract_banner_images(
    jcr: dict,
    content_path: str,
    *,
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> list[BannerImage]:
    """Collect the image components of a page (hero banners)."""
    banners: list[BannerImage] = []
    root = jcr.get("root")
    stack: list[tuple[dict, str]] = [(root, "")] if isinstance(root, dict) else []
    while stack:
        node, path = stack.pop()
        keys = content_keys(node)
        for key in keys:
            child = node[key]
            if dialect.is_component(child, "image") and child.get("fileName"):
                file_node = child.get("file") if isinstance(child.get("file"), dict) else {}
                timestamp = parse_jcr_timestamp(
                    child.get("jcr:lastModified") or file_node.get("jcr:lastModified")
                )
                banners.append(
                    BannerImage(
                        image_url=banner_image_url(
                            content_path,
                            jcr_path=f"{path}/{key}",
                            file_name=child["fileName"],
                            last_modified=timestamp,
                        ),
                        alt=child.get("alt") or child.get("jcr:title") or "",
                        file_name=sanitize_file_name(child["fileName"]),
                    )
                )
        for key in reversed(keys):
            stack.append((node[key], f"{path}/{key}"))
    return banners


def fallback_image_url(image_url: str) -> str | None:
    """Derive the retry URL for a failed rendition download.

    Drops the ``85.1600.`` size variant and the ``teaser-<hex>-`` file name
    prefix. Returns None when neither applies.
    """
    head, _, file_name = image_url.rpartition("/")
    fallback = f"{head.replace(_SIZE_VARIANT, '')}/{_TEASER_PREFIX_RE.sub('', file_name)}"
    return fallback if fallback != image_url else None


def image_file_name(image_url: str) -> str:
    """Local file name of a downloaded image: the sanitized last URL segment."""
    return sanitize_file_name(image_url.rstrip("/").rsplit("/", 1)[-1])


def is_valid_image_bytes(data: bytes) -> bool:
    """Check downloaded bytes against known image signatures.

    Payloads under ``MIN_IMAGE_BYTES`` and HTML error or login pages are
    rejected.
    """
    if len(data) < MIN_IMAGE_BYTES:
        return False
    head = data[:20]
    if any(signature in head[:15] for signature in _HTML_SIGNATURES):
        return False
    if head.startswith(b"\x89PNG"):
        return True
    if head.startswith(b"\xff\xd8\xff"):
        return True
    if head.startswith(b"GIF"):
        return True
    if head[8:12] == b"WEBP":
        return True
    return b"<?xml" in head[:15] or b"<svg" in head[:15]


def collect_image_urls(
    items: Iterable[HierarchyItem],
    banners: Iterable[BannerImage] = (),
) -> list[str]:
    """List every image URL of a hierarchy once, in document order."""
    urls = [banner.image_url for banner in banners]
    urls.extend(visit.item.image_url for visit in iter_items(list(items)) if visit.item.image_url)
    return list(dict.fromkeys(urls))
