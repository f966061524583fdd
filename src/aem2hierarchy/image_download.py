"""Parallel download of the images referenced by a hierarchy."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Iterable

import httpx

from aem2hierarchy.cache_utils import mkdir_async, write_bytes_async
from aem2hierarchy.config import AEM2HIERARCHY_AEM_AUTHOR, AEM2HIERARCHY_MAX_CONCURRENT_DOWNLOADS
from aem2hierarchy.exceptions import AuthenticationExpiredError, FetchError
from aem2hierarchy.http_utils import create_client, fetch_with_retries
from aem2hierarchy.images import fallback_image_url, image_file_name, is_valid_image_bytes

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS: Final[frozenset[str]] = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"})
_HTML_MARKERS: Final[tuple[bytes, ...]] = (b"<!DOCTYPE", b"<!doctype", b"<html")


@dataclass
class ImageFailure:
    """One image that could not be downloaded."""

    url: str
    file_name: str
    reason: str
    auth_expired: bool = False


@dataclass
class DownloadReport:
    """Outcome of a batch of image downloads."""

    downloaded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[ImageFailure] = field(default_factory=list)

    @property
    def auth_expired(self) -> bool:
        return any(failure.auth_expired for failure in self.failures)

    def summary(self) -> str:
        return (
            f"{len(self.downloaded)} downloaded, {len(self.skipped)} already present, "
            f"{len(self.failures)} failed"
        )


def _looks_like_html(data: bytes) -> bool:
    head = data[:15]
    return any(marker in head for marker in _HTML_MARKERS)


async def _fetch_image(url: str, client: httpx.AsyncClient, author: str) -> bytes:
    result = await fetch_with_retries(f"{author}{url}", client=client, return_bytes=True)
    return result if isinstance(result, bytes) else result.encode("utf-8")


async def download_image(
    image_url: str,
    images_dir: Path,
    report: DownloadReport,
    *,
    client: httpx.AsyncClient,
    author: str = AEM2HIERARCHY_AEM_AUTHOR,
) -> None:
    """Download one image into ``images_dir`` and record the outcome.

    The file is named after the original URL even when the fallback URL
    served it. Existing files are not downloaded again. Errors never
    propagate; they are recorded in ``report``.
    """
    file_name = image_file_name(image_url)
    target = images_dir / file_name
    if target.exists():
        logger.debug("Skipping %s (already exists)", file_name)
        report.skipped.append(file_name)
        return

    candidates = [image_url]
    fallback = fallback_image_url(image_url)
    if fallback:
        candidates.append(fallback)

    last_error = ""
    for attempt, url in enumerate(candidates):
        try:
            data = await _fetch_image(url, client, author)
        except AuthenticationExpiredError as exc:
            logger.error("Authentication expired while downloading %s", url)
            report.failures.append(ImageFailure(url, file_name, str(exc), auth_expired=True))
            return
        except FetchError as exc:
            last_error = str(exc)
            if attempt + 1 < len(candidates):
                logger.info("Failed %s (%s); trying fallback %s", url, exc, candidates[attempt + 1])
            continue

        if _looks_like_html(data):
            logger.error("Received an HTML page instead of image %s", url)
            report.failures.append(
                ImageFailure(url, file_name, "HTML page instead of image (login required)", auth_expired=True)
            )
            return
        if not is_valid_image_bytes(data):
            last_error = f"Invalid image data ({len(data)} bytes)"
            continue

        await write_bytes_async(target, data)
        logger.debug("Downloaded %s -> %s", url, file_name)
        report.downloaded.append(file_name)
        return

    logger.warning("Failed to download %s: %s", image_url, last_error)
    report.failures.append(ImageFailure(image_url, file_name, last_error))


async def download_images(
    image_urls: Iterable[str],
    images_dir: Path,
    *,
    client: httpx.AsyncClient | None = None,
    author: str = AEM2HIERARCHY_AEM_AUTHOR,
    max_concurrency: int = AEM2HIERARCHY_MAX_CONCURRENT_DOWNLOADS,
) -> DownloadReport:
    """Download images concurrently; one failure never cancels the others.

    Args:
        image_urls: Site-relative image URLs.
        images_dir: Destination directory, created when missing.
        client: Optional shared client carrying the session cookie.
        author: Author instance the URLs are relative to.
        max_concurrency: Maximum number of downloads in flight.

    Returns:
        The download report.

    Raises:
        AuthenticationExpiredError: If any image hit the login page. The
            report is logged before raising.
    """
    urls = list(dict.fromkeys(image_urls))
    report = DownloadReport()
    if not urls:
        return report

    await mkdir_async(images_dir, parents=True, exist_ok=True)
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def bounded(url: str, http_client: httpx.AsyncClient) -> None:
        async with semaphore:
            await download_image(url, images_dir, report, client=http_client, author=author)

    if client is not None:
        await asyncio.gather(*(bounded(url, client) for url in urls))
    else:
        async with create_client() as new_client:
            await asyncio.gather(*(bounded(url, new_client) for url in urls))

    logger.info("Images: %s", report.summary())
    for failure in report.failures:
        logger.warning("  %s: %s (%s)", failure.file_name, failure.reason, failure.url)

    if report.auth_expired:
        raise AuthenticationExpiredError(
            "Authentication expired while downloading images; refresh the session cookie and rerun"
        )
    return report


def cleanup_corrupted_images(images_dir: Path) -> int:
    """Delete image files left corrupted by an earlier run.

    Returns:
        The number of files deleted.

    Raises:
        AuthenticationExpiredError: If any deleted file held an HTML page,
            the signature of an expired session.
    """
    if not images_dir.is_dir():
        return 0

    deleted = 0
    html_files: list[str] = []
    for path in sorted(images_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        data = path.read_bytes()
        if is_valid_image_bytes(data):
            continue
        if _looks_like_html(data):
            html_files.append(path.name)
        logger.info("Deleting corrupted image %s", path.name)
        path.unlink()
        deleted += 1

    if html_files:
        raise AuthenticationExpiredError(
            f"{len(html_files)} image file(s) contain HTML instead of image data: {', '.join(html_files)}"
        )
    return deleted
