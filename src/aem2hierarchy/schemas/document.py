"""Output document models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from aem2hierarchy.schemas.hierarchy import HierarchyItem


class BannerImage(BaseModel):
    """A page banner image referenced outside the item tree."""

    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl")
    alt: str = ""
    file_name: str = Field(..., alias="fileName")


class HierarchyDocument(BaseModel):
    """The reconciled hierarchy of one content store."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    items: list[HierarchyItem] = Field(default_factory=list)
    link_url: str = Field(..., alias="linkURL")
    banner_images: list[BannerImage] | None = Field(default=None, alias="bannerImages")
