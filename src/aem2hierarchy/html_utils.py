"""Shared HTML and URL utilities for AEM content."""

from __future__ import annotations

import re
from typing import Final
from urllib.parse import urlsplit

from aem2hierarchy.exceptions import ConversionError

try:
    from bs4 import BeautifulSoup
except ImportError as exc:  # pragma: no cover - runtime dependency check
    raise ConversionError(
        "BeautifulSoup4 is required for HTML parsing (pip install beautifulsoup4)."
    ) from exc

MAX_MARKUP_PASSES: Final[int] = 10

_TAG_RE = re.compile(r"<[^>]*>")
_HREF_RE = re.compile(r"""href=(["'])([^"']+)\1""", re.IGNORECASE)
_NUMERIC_ENTITY_RE = re.compile(r"&#(\d+);")
_HEX_ENTITY_RE = re.compile(r"&#x([0-9a-fA-F]+);")
_WHITESPACE_RE = re.compile(r"\s+")

_NAMED_ENTITIES: Final[tuple[tuple[str, str], ...]] = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&copy;", "©"),
    ("&reg;", "®"),
    ("&trade;", "™"),
    # Must stay last so "&amp;lt;" decodes to "&lt;" and not "<".
    ("&amp;", "&"),
)


def is_valid_link_url(url: object) -> bool:
    """Check whether a link field holds a usable URL rather than authoring noise.

    Valid URLs start with ``http://``, ``https://`` or ``/``; site-relative
    paths must be at least 5 characters long.
    """
    if not url or not isinstance(url, str):
        return False
    if not url.startswith(("http://", "https://", "/")):
        return False
    if url.startswith("/") and len(url) < 5:
        return False
    return True


def strip_host_only(url: str) -> str:
    """Reduce an absolute URL to path, query and fragment.

    Strings that are not absolute URLs are returned unchanged.

    Examples:
        >>> strip_host_only("https://author.example.com/content/a.html?q=1#top")
        '/content/a.html?q=1#top'
    """
    if not url:
        return url
    parts = urlsplit(url)
    if not (parts.scheme and parts.netloc):
        return url
    result = parts.path or "/"
    if parts.query:
        result += f"?{parts.query}"
    if parts.fragment:
        result += f"#{parts.fragment}"
    return result


def clean_link_url(url: object) -> str | None:
    """Validate a link field and strip its host, or return None."""
    if not is_valid_link_url(url):
        return None
    return strip_host_only(url)  # type: ignore[arg-type]


def strip_hosts_from_text(text: str | None) -> str | None:
    """Strip the host from every absolute ``href`` inside rich text.

    The quote style of each attribute is preserved; relative hrefs are left
    untouched.
    """
    if not text or not isinstance(text, str):
        return text

    def _replace(match: re.Match[str]) -> str:
        quote, url = match.group(1), match.group(2)
        if url.startswith(("http://", "https://")):
            return f"href={quote}{strip_host_only(url)}{quote}"
        return match.group(0)

    return _HREF_RE.sub(_replace, text)


def _code_point_entity(match: re.Match[str], base: int) -> str:
    code = int(match.group(1), base)
    if 0 < code <= 0x10FFFF and not 0xD800 <= code <= 0xDFFF:
        return chr(code)
    return match.group(0)


def decode_entities(text: str) -> str:
    """Decode the HTML entities AEM rich text uses, plus numeric entities.

    Numeric entities outside the Unicode range (or naming a surrogate) are
    left as written.
    """
    for entity, char in _NAMED_ENTITIES[:-1]:
        text = text.replace(entity, char)
    text = _NUMERIC_ENTITY_RE.sub(lambda m: _code_point_entity(m, 10), text)
    text = _HEX_ENTITY_RE.sub(lambda m: _code_point_entity(m, 16), text)
    return text.replace(*_NAMED_ENTITIES[-1])


def strip_markup(html: str, max_passes: int = MAX_MARKUP_PASSES) -> str:
    """Remove tags repeatedly until none are left or the pass budget is spent.

    Nested or malformed markup (``<<b>b>``) can leave new tags behind after a
    single pass. Stray angle brackets left after the last pass are dropped
    and entities are decoded.
    """
    text = html
    for _ in range(max_passes):
        stripped = _TAG_RE.sub("", text)
        if stripped == text:
            break
        text = stripped
    return decode_entities(text.replace("<", "").replace(">", "")).strip()


def html_to_plain_text(html: str | None) -> str:
    """Convert rich text to multi-line plain text for tabular output.

    Block boundaries (paragraphs, list items, line breaks) become newlines;
    runs of blank lines are collapsed.
    """
    if not html:
        return ""
    soup = BeautifulSoup(html, "lxml")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "div", "li", "h1", "h2", "h3", "h4", "h5", "h6"]):
        block.append("\n")
    text = soup.get_text()
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def humanize_key(key: str) -> str:
    """Turn a component key into a display label (``promo_cards`` -> ``Promo Cards``)."""
    words = key.replace("_", " ").split()
    return " ".join(word[:1].upper() + word[1:] for word in words)
