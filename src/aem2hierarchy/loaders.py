"""Load source documents and combine the tabs models of a page."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from aem2hierarchy.dialect import DEFAULT_DIALECT, SourceDialect, content_keys
from aem2hierarchy.exceptions import SourceLoadError

logger = logging.getLogger(__name__)

JCR_CONTENT_PREFIX = "/jcr:content"
MAX_SECTION_TITLE_DEPTH = 10
COMBINED_MODEL_ID = "combined-tabs"


def parse_json_document(content: str, source: str) -> dict:
    """Parse a JSON object, raising ``SourceLoadError`` on anything else."""
    try:
        document = json.loads(content)
    except json.JSONDecodeError as exc:
        raise SourceLoadError(f"Invalid JSON in {source}: {exc}") from exc
    if not isinstance(document, dict):
        raise SourceLoadError(f"Expected a JSON object in {source}, got {type(document).__name__}")
    return document


def load_json_file(path: Path | str) -> dict:
    """Read and parse one JSON source document.

    Raises:
        SourceLoadError: If the file is missing, unreadable, not valid JSON,
            or not a JSON object.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise SourceLoadError(f"Input file not found: {path}") from exc
    except OSError as exc:
        raise SourceLoadError(f"Cannot read {path}: {exc}") from exc
    return parse_json_document(content, str(path))


def find_tabs_paths(jcr: dict) -> list[str]:
    """Return the path of every tabs component of a JCR tree, in document order.

    Paths are relative to the page and start with ``/jcr:content/``, ready to
    be appended to the page URL.
    """
    found: list[str] = []
    stack: list[tuple[dict, str]] = [(jcr, "")]
    while stack:
        node, path = stack.pop()
        keys = content_keys(node)
        for key in keys:
            child = node[key]
            child_path = f"{path}/{key}"
            resource_type = child.get("sling:resourceType") or ""
            if isinstance(resource_type, str) and "tabs" in resource_type:
                found.append(f"{JCR_CONTENT_PREFIX}{child_path}")
        stack.extend((node[key], f"{path}/{key}") for key in reversed(keys))
    return found


def top_level_tabs_paths(paths: list[str]) -> list[str]:
    """Drop tabs nested inside other tabs (paths with more than one ``/tabs``)."""
    return [path for path in paths if path.count("/tabs") <= 1]


def section_for_tabs_path(
    jcr: dict,
    tabs_path: str,
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> str | None:
    """Find the title of the page section a tabs component lives in.

    The section is the root-level container the path runs through; its
    title is the first titled title component found inside it.
    """
    root = jcr.get("root")
    root_container = root.get("container") if isinstance(root, dict) else None
    if not isinstance(root_container, dict):
        return None

    parts = [part for part in tabs_path.split("/") if part and part not in ("jcr:content", "root")]
    root_keys = content_keys(root_container)
    candidates = [key for key in root_keys if key in parts]
    if not candidates:
        return None
    container = root_container[max(candidates, key=len)]

    stack: list[tuple[dict, int]] = [(container, 0)]
    while stack:
        node, depth = stack.pop()
        if depth > MAX_SECTION_TITLE_DEPTH:
            continue
        keys = content_keys(node)
        for key in keys:
            child = node[key]
            if dialect.is_component(child, "title") and child.get("jcr:title"):
                return str(child["jcr:title"])
        stack.extend((node[key], depth + 1) for key in reversed(keys))
    return None


def combine_tabs_models(
    models: list[dict],
    sections: list[str | None] | None = None,
    dialect: SourceDialect = DEFAULT_DIALECT,
) -> dict:
    """Merge several tabs models into one model.

    Keys of model ``i`` become ``{key}__tabs{i}`` so equal keys of different
    models never collide. When ``sections`` is given, each top-level item
    records the section of its model under ``__jcrSection``.

    Args:
        models: Tabs models, in page order.
        sections: Section title of each model, or None.
        dialect: Source dialect (for the combined model's type).

    Returns:
        A model with ``:items`` and ``:itemsOrder`` holding every item.
    """
    combined: dict = {
        ":itemsOrder": [],
        ":items": {},
        ":type": dialect.resource_type("tabs"),
        "id": COMBINED_MODEL_ID,
    }
    for index, model in enumerate(models):
        section = sections[index] if sections and index < len(sections) else None
        items = model.get(":items") or {}
        for key in model.get(":itemsOrder") or list(items):
            item = items.get(key)
            if not isinstance(item, dict):
                continue
            unique_key = f"{key}__tabs{index}"
            if section:
                item = {**item, "__jcrSection": section}
            combined[":itemsOrder"].append(unique_key)
            combined[":items"][unique_key] = item
    logger.debug("Combined %s tabs model(s) into %s item(s)", len(models), len(combined[":itemsOrder"]))
    return combined


def most_comprehensive_model(models: list[dict]) -> dict | None:
    """Return the model with the most top-level items (first one on ties)."""
    best = None
    best_count = -1
    for model in models:
        count = len(model.get(":itemsOrder") or [])
        if count > best_count:
            best, best_count = model, count
    return best
