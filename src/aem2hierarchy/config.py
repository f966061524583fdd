"""Local configuration for aem2hierarchy."""

from __future__ import annotations

import os
from pathlib import Path


DEFAULT_AEM_AUTHOR = "http://localhost:4502"
DEFAULT_CONTENT_PATH = "/content/share/us/en/all-content-stores"
DEFAULT_DATA_DIR = "DATA"
DEFAULT_CACHE_TTL_SECONDS = 0
DEFAULT_FETCH_TIMEOUT_S = 30.0
DEFAULT_FETCH_MAX_RETRIES = 0
DEFAULT_FETCH_BACKOFF_S = 0.5
DEFAULT_USER_AGENT = "aem2hierarchy/0.1 (AEM content extractor)"
DEFAULT_MAX_CONCURRENT_DOWNLOADS = 8
DEFAULT_MAX_TREE_DEPTH = 50

PATH_SEPARATOR = " > "

# Author instance and session cookie used for every request.
AEM2HIERARCHY_AEM_AUTHOR = os.getenv("AEM2HIERARCHY_AEM_AUTHOR", DEFAULT_AEM_AUTHOR).rstrip("/")
AEM2HIERARCHY_AUTH_COOKIE = os.getenv("AEM2HIERARCHY_AUTH_COOKIE", "")
AEM2HIERARCHY_CONTENT_PATH = os.getenv("AEM2HIERARCHY_CONTENT_PATH", DEFAULT_CONTENT_PATH)

# Each content store gets DATA_DIR/<store>/extracted-results with caches/ and images/ inside.
AEM2HIERARCHY_DATA_DIR = Path(os.getenv("AEM2HIERARCHY_DATA_DIR", DEFAULT_DATA_DIR)).expanduser().resolve()
AEM2HIERARCHY_CACHE_TTL_SECONDS = int(os.getenv("AEM2HIERARCHY_CACHE_TTL_SECONDS", str(DEFAULT_CACHE_TTL_SECONDS)))
AEM2HIERARCHY_FETCH_TIMEOUT_S = float(os.getenv("AEM2HIERARCHY_FETCH_TIMEOUT_S", str(DEFAULT_FETCH_TIMEOUT_S)))
AEM2HIERARCHY_FETCH_MAX_RETRIES = int(os.getenv("AEM2HIERARCHY_FETCH_MAX_RETRIES", str(DEFAULT_FETCH_MAX_RETRIES)))
AEM2HIERARCHY_FETCH_BACKOFF_S = float(os.getenv("AEM2HIERARCHY_FETCH_BACKOFF_S", str(DEFAULT_FETCH_BACKOFF_S)))
AEM2HIERARCHY_USER_AGENT = os.getenv("AEM2HIERARCHY_USER_AGENT", DEFAULT_USER_AGENT)
AEM2HIERARCHY_MAX_CONCURRENT_DOWNLOADS = int(
    os.getenv("AEM2HIERARCHY_MAX_CONCURRENT_DOWNLOADS", str(DEFAULT_MAX_CONCURRENT_DOWNLOADS))
)
AEM2HIERARCHY_MAX_TREE_DEPTH = int(os.getenv("AEM2HIERARCHY_MAX_TREE_DEPTH", str(DEFAULT_MAX_TREE_DEPTH)))


def read_cookie_file(path: Path) -> str:
    """Read the author session cookie from a ``KEY=value`` config file.

    The file is expected to hold an ``AUTHOR_AUTH_COOKIE=...`` line, the
    format shared with the other migration tools.

    Args:
        path: Path to the config file.

    Returns:
        The cookie value.

    Raises:
        ValueError: If no ``AUTHOR_AUTH_COOKIE`` entry is present.
    """
    for line in path.read_text(encoding="utf-8").splitlines():
        name, sep, value = line.partition("=")
        if sep and name.strip() == "AUTHOR_AUTH_COOKIE" and value.strip():
            return value.strip()
    raise ValueError(f"AUTHOR_AUTH_COOKIE not found in {path}")
