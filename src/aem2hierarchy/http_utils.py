"""HTTP utilities for fetching AEM content with retry logic and connection pooling."""

from __future__ import annotations

import asyncio
from typing import Final

import httpx

from aem2hierarchy.config import (
    AEM2HIERARCHY_AUTH_COOKIE,
    AEM2HIERARCHY_FETCH_BACKOFF_S,
    AEM2HIERARCHY_FETCH_MAX_RETRIES,
    AEM2HIERARCHY_FETCH_TIMEOUT_S,
    AEM2HIERARCHY_USER_AGENT,
)
from aem2hierarchy.exceptions import AuthenticationExpiredError, FetchError

RETRY_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
LOGIN_PATH: Final[str] = "/libs/granite/core/content/login"
LOGIN_PAGE_MARKERS: Final[tuple[str, ...]] = ("AEM Sign In", "j_security_check")

_MAX_REDIRECTS: Final[int] = 5


def request_headers(cookie: str | None = None) -> dict[str, str]:
    """Headers sent with every request to the author instance."""
    headers = {"User-Agent": AEM2HIERARCHY_USER_AGENT}
    cookie = cookie if cookie is not None else AEM2HIERARCHY_AUTH_COOKIE
    if cookie:
        headers["Cookie"] = cookie
    return headers


def create_client(cookie: str | None = None) -> httpx.AsyncClient:
    """Create a pooled client carrying the session cookie."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(AEM2HIERARCHY_FETCH_TIMEOUT_S),
        headers=request_headers(cookie),
        follow_redirects=True,
        max_redirects=_MAX_REDIRECTS,
    )


def is_login_response(response: httpx.Response) -> bool:
    """Check whether AEM answered with (or redirected to) its login page."""
    if response.status_code == 401:
        return True
    if LOGIN_PATH in str(response.url):
        return True
    if any(LOGIN_PATH in redirect.headers.get("location", "") for redirect in response.history):
        return True
    if "text/html" not in response.headers.get("content-type", ""):
        return False
    head = response.text[:4096]
    return any(marker in head for marker in LOGIN_PAGE_MARKERS)


async def fetch_with_retries(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    return_bytes: bool = False,
    on_404: type[Exception] | None = None,
    on_404_message: str | None = None,
    cookie: str | None = None,
) -> str | bytes:
    """Fetch content from a URL with retry logic for transient failures.

    Args:
        url: The URL to fetch.
        client: Optional httpx.AsyncClient for connection pooling. If not
            provided, a new client is created for this request.
        return_bytes: If True, return raw bytes instead of decoded text.
        on_404: Custom exception class to raise on 404. Defaults to FetchError.
        on_404_message: Custom error message for 404 responses. If None,
            a generic message is used.
        cookie: Session cookie for a client created here. Defaults to
            ``AEM2HIERARCHY_AUTH_COOKIE``.

    Returns:
        The fetched content as a string (default) or bytes (if return_bytes=True).

    Raises:
        AuthenticationExpiredError: If AEM answers with its login page.
        FetchError (or custom on_404 exception): If the fetch fails after all
            retries or returns 404.
    """
    last_exc: Exception | None = None
    not_found_exc_class = on_404 or FetchError

    async def do_fetch(http_client: httpx.AsyncClient) -> str | bytes:
        nonlocal last_exc

        for attempt in range(AEM2HIERARCHY_FETCH_MAX_RETRIES + 1):
            try:
                response = await http_client.get(url)

                if response.status_code == 404:
                    message = on_404_message or f"Resource not found at {url}"
                    raise not_found_exc_class(message)

                if is_login_response(response):
                    raise AuthenticationExpiredError(
                        f"AEM returned its login page for {url}; refresh the session cookie"
                    )

                if response.status_code in RETRY_STATUS_CODES:
                    last_exc = FetchError(f"HTTP {response.status_code} from {url}")
                else:
                    response.raise_for_status()
                    return response.content if return_bytes else response.text
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                last_exc = exc
            except (not_found_exc_class, AuthenticationExpiredError):
                raise

            if attempt < AEM2HIERARCHY_FETCH_MAX_RETRIES:
                backoff = AEM2HIERARCHY_FETCH_BACKOFF_S * (2**attempt)
                await asyncio.sleep(backoff)

        raise FetchError(f"Failed to fetch {url}: {last_exc}")

    if client is not None:
        return await do_fetch(client)

    async with create_client(cookie) as new_client:
        return await do_fetch(new_client)
