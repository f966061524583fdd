"""Hierarchy item models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ItemKind(str, Enum):
    """Kind of a normalized hierarchy node."""

    TAB = "tab"
    ACCORDION = "accordion"
    BUTTON = "button"
    TEASER = "teaser"
    TEXT = "text"
    CONTAINER = "container"
    TITLE = "title"
    SECTION = "section"
    ITEM = "item"


class SourceTag(str, Enum):
    """Which input tree produced a node."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class LinkSources(BaseModel):
    """Every URL found for one item, host-stripped."""

    model_config = ConfigDict(populate_by_name=True)

    clickable_url: str | None = Field(default=None, alias="clickableUrl")
    storage_url: str | None = Field(default=None, alias="storageUrl")
    analytics_url: str | None = Field(default=None, alias="analyticsUrl")
    image_resource_url: str | None = Field(default=None, alias="imageResourceUrl")

    def is_empty(self) -> bool:
        return not (self.clickable_url or self.storage_url or self.analytics_url or self.image_resource_url)

    def primary_url(self) -> str | None:
        """Return the URL a reader would follow, preferring the clickable one."""
        return self.clickable_url or self.analytics_url or self.storage_url


class HierarchyItem(BaseModel):
    """A node of the reconciled hierarchy.

    ``path`` is only meaningful after the final path recalculation. The
    excluded fields are bookkeeping for the reconciliation passes and are
    never serialized.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str
    path: str = ""
    kind: ItemKind = Field(default=ItemKind.ITEM, alias="type")
    key: str | None = None
    id: str | None = None
    link_sources: LinkSources | None = Field(default=None, alias="linkSources")
    text: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    children: list["HierarchyItem"] = Field(default_factory=list, alias="items")

    source: SourceTag = Field(default=SourceTag.PRIMARY, exclude=True)
    panel_title: str | None = Field(default=None, exclude=True)
    section: str | None = Field(default=None, exclude=True)
    section_order: int | None = Field(default=None, exclude=True)

    def primary_url(self) -> str | None:
        return self.link_sources.primary_url() if self.link_sources else None
