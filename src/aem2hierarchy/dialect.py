"""Naming patterns of the source CMS export.

Every hard-coded component name, key prefix and boilerplate string the
reconciler relies on lives here, so a different export shape can supply its
own ``SourceDialect`` without touching the reconciliation passes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from aem2hierarchy.schemas import ItemKind

_RESERVED_PREFIXES = ("jcr:", "cq:", "sling:", ":")


@dataclass(frozen=True)
class SourceDialect:
    """Patterns describing one CMS export dialect.

    Attributes:
        component_prefix: Prefix shared by all component resource types.
        resource_kinds: Ordered (substring, kind) pairs used to classify a
            resource type hint. The first matching substring wins.
        key_prefix_kinds: Ordered (key prefix, kind) pairs used when no
            resource type hint classifies the node.
        id_prefix_kinds: Ordered (id prefix, kind) pairs used as the last
            classification fallback.
        structural_keys: Key names whose untitled nodes are spliced away.
        structural_key_prefixes: Prefixes of such keys (e.g. ``tabs_``).
        button_container_prefix: Key prefix of button wrapper containers.
        container_title_prefix: Title prefix of generic, untitled containers.
        wrapper_title_prefix: Title prefix of generic panel wrappers.
        accordion_key_pattern: Keys shaped like accordion panels.
        text_fragment_key: Key (or ``key_`` prefix) of text fragments.
        boilerplate_texts: Authoring instructions that are never content.
        skipped_titles: Items that are authoring artifacts, never content.
        real_button_id_prefix: Id prefix of authored button components.
        synthetic_button_id_prefix: Id prefix of generated custom buttons.
        dedup_kinds: Kinds that take part in item-level deduplication.
        text_label: Title given to synthetic and residual text nodes.
    """

    component_prefix: str = "tccc-dam/components/"
    resource_kinds: tuple[tuple[str, ItemKind], ...] = (
        ("tabs", ItemKind.CONTAINER),
        ("accordion", ItemKind.ACCORDION),
        ("teaser", ItemKind.TEASER),
        ("container", ItemKind.CONTAINER),
        ("button", ItemKind.BUTTON),
        ("title", ItemKind.TITLE),
        ("text", ItemKind.TEXT),
    )
    key_prefix_kinds: tuple[tuple[str, ItemKind], ...] = (
        ("teaser_", ItemKind.TEASER),
        ("accordion", ItemKind.ACCORDION),
        ("button", ItemKind.BUTTON),
    )
    id_prefix_kinds: tuple[tuple[str, ItemKind], ...] = (
        ("custom-button-", ItemKind.BUTTON),
        ("button-", ItemKind.BUTTON),
        ("accordion-", ItemKind.ACCORDION),
        ("tabs-", ItemKind.CONTAINER),
        ("container-", ItemKind.CONTAINER),
        ("text-", ItemKind.TEXT),
    )
    structural_keys: frozenset[str] = frozenset({"tabs"})
    structural_key_prefixes: tuple[str, ...] = ("tabs_",)
    button_container_prefix: str = "button_container_"
    container_title_prefix: str = "container_"
    wrapper_title_prefix: str = "item_"
    accordion_key_pattern: re.Pattern[str] = field(
        default_factory=lambda: re.compile(r"^item_\d+$|^item_copy")
    )
    text_fragment_key: str = "text"
    boilerplate_texts: tuple[str, ...] = (
        "Explore tabs below to access various content",
    )
    skipped_titles: frozenset[str] = frozenset({"Content Store Request Form"})
    real_button_id_prefix: str = "button-"
    synthetic_button_id_prefix: str = "custom-button-"
    dedup_kinds: frozenset[ItemKind] = frozenset({ItemKind.BUTTON, ItemKind.ACCORDION})
    text_label: str = "Text"

    def resource_type(self, name: str) -> str:
        """Return the full resource type of a component, e.g. ``title``."""
        return f"{self.component_prefix}{name}"

    def is_component(self, node: dict, name: str) -> bool:
        """Check whether a raw node is the named component."""
        hint = node.get(":type") or node.get("sling:resourceType")
        return hint == self.resource_type(name)

    def kind_from_hint(self, hint: str | None) -> ItemKind | None:
        """Classify a structural type hint, or return None when it says nothing."""
        if not hint:
            return None
        for needle, kind in self.resource_kinds:
            if needle in hint:
                return kind
        return None

    def kind_from_key(self, key: str) -> ItemKind | None:
        for prefix, kind in self.key_prefix_kinds:
            if key.startswith(prefix):
                return kind
        return None

    def kind_from_id(self, item_id: str | None) -> ItemKind | None:
        if not item_id:
            return None
        for prefix, kind in self.id_prefix_kinds:
            if item_id.startswith(prefix):
                return kind
        return None

    def is_structural_key(self, key: str) -> bool:
        """Check whether a key names a tabs wrapper that carries no title."""
        return key in self.structural_keys or key.startswith(self.structural_key_prefixes)

    def is_text_fragment_key(self, key: str) -> bool:
        return key == self.text_fragment_key or key.startswith(f"{self.text_fragment_key}_")

    def is_generic_container_title(self, title: str) -> bool:
        lowered = title.lower()
        return lowered == "container" or lowered.startswith(self.container_title_prefix)

    def is_boilerplate(self, text: str | None) -> bool:
        return bool(text) and any(phrase in text for phrase in self.boilerplate_texts)

    def is_real_button_id(self, item_id: str | None) -> bool:
        return bool(item_id) and item_id.startswith(self.real_button_id_prefix) and not item_id.startswith(
            self.synthetic_button_id_prefix
        )


DEFAULT_DIALECT = SourceDialect()


def content_keys(node: dict) -> list[str]:
    """Return the child keys of a raw JCR node that hold child objects.

    Property keys (``jcr:``, ``cq:``, ``sling:`` and ``:`` prefixed) and scalar
    values are skipped. Insertion order is preserved.
    """
    return [
        key
        for key, value in node.items()
        if isinstance(value, dict) and not key.startswith(_RESERVED_PREFIXES)
    ]


def ordered_model_children(node: dict) -> list[tuple[str, dict]]:
    """Return the ``:items`` children of a model node in ``:itemsOrder`` order."""
    items = node.get(":items")
    if not isinstance(items, dict):
        return []
    order = node.get(":itemsOrder")
    if not isinstance(order, list):
        order = list(items)
    return [(key, items[key]) for key in order if isinstance(items.get(key), dict)]
