"""Cache utilities for the local copy of fetched AEM documents."""

from __future__ import annotations

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlsplit


def is_cache_fresh(path: Path, ttl_seconds: int) -> bool:
    """Check if a cached file is still fresh based on its modification time.

    Args:
        path: Path to the cached file or marker file.
        ttl_seconds: Time-to-live in seconds. If <= 0, cache is considered
            fresh indefinitely (cache forever mode).

    Returns:
        True if the cache is fresh and usable, False otherwise.
    """
    if not path.exists():
        return False
    if ttl_seconds <= 0:
        return True
    mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
    age_seconds = (datetime.now(timezone.utc) - mtime).total_seconds()
    return age_seconds <= ttl_seconds


def cache_path_for_url(url: str, cache_dir: Path) -> Path:
    """Get the cache file path for a fetched URL.

    The file keeps the last segment of the URL path for readability and adds
    the first 8 hex digits of the URL's MD5 so equal names fetched from
    different paths never collide. Colons become dashes.

    Args:
        url: The fetched URL.
        cache_dir: Directory holding the cache files.

    Returns:
        Path to the cache file, e.g. ``jcr-content.infinity-1a2b3c4d.json``.
    """
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()[:8]
    base_name = urlsplit(url).path.rsplit("/", 1)[-1].replace(":", "-")
    dot = base_name.rfind(".")
    if dot == -1:
        stem, extension = base_name, ""
    else:
        stem, extension = base_name[:dot], base_name[dot:]
    return cache_dir / f"{stem}-{digest}{extension}"


async def read_text_async(path: Path, encoding: str = "utf-8") -> str:
    """Read text from a file asynchronously using a thread pool.

    Args:
        path: Path to the file to read.
        encoding: Text encoding to use.

    Returns:
        The file contents as a string.
    """
    return await asyncio.to_thread(path.read_text, encoding=encoding)


async def write_text_async(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write text to a file asynchronously using a thread pool.

    Args:
        path: Path to the file to write.
        content: Text content to write.
        encoding: Text encoding to use.
    """
    await asyncio.to_thread(path.write_text, content, encoding=encoding)


async def mkdir_async(
    path: Path, parents: bool = False, exist_ok: bool = False
) -> None:
    """Create a directory asynchronously using a thread pool.

    Args:
        path: Path to the directory to create.
        parents: If True, create parent directories as needed.
        exist_ok: If True, don't raise an error if directory exists.
    """
    await asyncio.to_thread(path.mkdir, parents=parents, exist_ok=exist_ok)


async def write_bytes_async(path: Path, content: bytes) -> None:
    """Write binary content to a file asynchronously using a thread pool."""
    await asyncio.to_thread(path.write_bytes, content)
