"""Deterministic ids and filesystem-safe names."""

from __future__ import annotations

import re

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_UNSAFE_FILE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_WHITESPACE_RE = re.compile(r"\s+")
_CONTENT_STORES_SUFFIX = "-content-stores"


def create_deterministic_id(value: str) -> str:
    """Derive a stable 10-character base36 id from a string.

    Uses the 31-multiplier string hash over UTF-16 code units with 32-bit
    signed wrap-around, so ids match those produced by the other migration
    tools for the same input.

    Args:
        value: Input string, typically ``title + key``.

    Returns:
        A 10-character id, zero-padded on the left.
    """
    if not value:
        return "0" * 10
    hash_value = 0
    encoded = value.encode("utf-16-le")
    for index in range(0, len(encoded), 2):
        code_unit = encoded[index] | (encoded[index + 1] << 8)
        hash_value = (hash_value * 31 + code_unit) & 0xFFFFFFFF
    if hash_value >= 0x80000000:
        hash_value -= 0x100000000
    return _to_base36(abs(hash_value)).rjust(10, "0")[:10]


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def sanitize(value: str) -> str:
    """Lowercase and hyphenate whitespace (``"Fanta Cans"`` -> ``"fanta-cans"``)."""
    return _WHITESPACE_RE.sub("-", value.strip().lower())


def sanitize_file_name(file_name: str) -> str:
    """Make a file name filesystem-safe while keeping its extension."""
    dot = file_name.rfind(".")
    if dot > 0:
        stem, extension = file_name[:dot], file_name[dot:]
    else:
        stem, extension = file_name, ""
    return _UNSAFE_FILE_CHARS.sub("_", sanitize(stem)) + extension


def build_file_name_with_id(item_id: str, file_name: str) -> str:
    return f"{item_id}-{file_name}"


def output_dir_name(content_path: str) -> str:
    """Name the output directory of a content store.

    A store nested directly under a ``*-content-stores`` parent is prefixed
    with the parent name so sibling stores of different parents never clash.

    Examples:
        >>> output_dir_name("/content/share/us/en/all-content-stores")
        'all-content-stores'
        >>> output_dir_name("/content/share/us/en/all-content-stores/fanta")
        'all-content-stores-fanta'
    """
    parts = [part for part in content_path.split("/") if part]
    if not parts:
        return "content"
    name = parts[-1]
    if len(parts) < 2 or name.endswith(_CONTENT_STORES_SUFFIX):
        return name
    parent = parts[-2]
    if parent.endswith(_CONTENT_STORES_SUFFIX):
        return f"{parent}-{name}"
    return name
