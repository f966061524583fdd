"""Fetch and cache the JSON exports of an AEM page."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import httpx

from aem2hierarchy.cache_utils import (
    cache_path_for_url,
    is_cache_fresh,
    mkdir_async,
    read_text_async,
    write_text_async,
)
from aem2hierarchy.config import AEM2HIERARCHY_AEM_AUTHOR, AEM2HIERARCHY_CACHE_TTL_SECONDS
from aem2hierarchy.exceptions import AuthenticationExpiredError, FetchError, SourceLoadError
from aem2hierarchy.http_utils import fetch_with_retries
from aem2hierarchy.loaders import parse_json_document

logger = logging.getLogger(__name__)

JCR_SUFFIX = "/jcr:content.infinity.json"
MODEL_SUFFIX = ".model.json"


def jcr_url(content_path: str, author: str = AEM2HIERARCHY_AEM_AUTHOR) -> str:
    return f"{author}{content_path}{JCR_SUFFIX}"


def tabs_model_url(content_path: str, tabs_path: str, author: str = AEM2HIERARCHY_AEM_AUTHOR) -> str:
    """URL of the Sling model of one tabs component (``tabs_path`` starts with ``/jcr:content``)."""
    return f"{author}{content_path}{tabs_path}{MODEL_SUFFIX}"


async def fetch_json(
    url: str,
    *,
    cache_dir: Path | None = None,
    use_cache: bool = True,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Fetch a JSON document, reading and refreshing the local cache.

    Cached copies are stored pretty-printed so they can be inspected.

    Args:
        url: Full URL of the document.
        cache_dir: Cache directory, or None to bypass caching entirely.
        use_cache: Whether a fresh cached copy may be returned.
        client: Optional shared client.

    Returns:
        The parsed JSON object.

    Raises:
        FetchError: If the document cannot be fetched.
        SourceLoadError: If the response is not a JSON object.
    """
    cache_path = cache_path_for_url(url, cache_dir) if cache_dir is not None else None
    if cache_path is not None and use_cache and is_cache_fresh(cache_path, AEM2HIERARCHY_CACHE_TTL_SECONDS):
        logger.debug("Using cached %s", cache_path.name)
        return parse_json_document(await read_text_async(cache_path), str(cache_path))

    result = await fetch_with_retries(url, client=client)
    text = result.decode("utf-8") if isinstance(result, bytes) else result
    document = parse_json_document(text, url)

    if cache_path is not None:
        await mkdir_async(cache_path.parent, parents=True, exist_ok=True)
        await write_text_async(cache_path, json.dumps(document, indent=2, ensure_ascii=False))
    return document


async def fetch_jcr(
    content_path: str,
    *,
    cache_dir: Path | None = None,
    use_cache: bool = True,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Fetch the full ``jcr:content`` tree of a page."""
    return await fetch_json(jcr_url(content_path), cache_dir=cache_dir, use_cache=use_cache, client=client)


async def fetch_tabs_model(
    content_path: str,
    tabs_path: str,
    *,
    cache_dir: Path | None = None,
    use_cache: bool = True,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Fetch the Sling model of one tabs component."""
    return await fetch_json(
        tabs_model_url(content_path, tabs_path),
        cache_dir=cache_dir,
        use_cache=use_cache,
        client=client,
    )


async def fetch_tabs_models(
    content_path: str,
    tabs_paths: list[str],
    *,
    cache_dir: Path | None = None,
    use_cache: bool = True,
    client: httpx.AsyncClient | None = None,
) -> list[tuple[str, dict]]:
    """Fetch several tabs models concurrently.

    A model that fails to download is logged and left out; the others are
    still returned, in the order of ``tabs_paths``.

    Raises:
        AuthenticationExpiredError: If any request hit the login page.
    """
    results = await asyncio.gather(
        *(
            fetch_tabs_model(content_path, path, cache_dir=cache_dir, use_cache=use_cache, client=client)
            for path in tabs_paths
        ),
        return_exceptions=True,
    )

    models: list[tuple[str, dict]] = []
    for path, result in zip(tabs_paths, results):
        if isinstance(result, AuthenticationExpiredError):
            raise result
        if isinstance(result, (FetchError, SourceLoadError)):
            logger.warning("Failed to download tabs model %s: %s", path, result)
            continue
        if isinstance(result, BaseException):
            raise result
        models.append((path, result))
    return models
