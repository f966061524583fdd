"""Schemas for aem2hierarchy."""

from aem2hierarchy.schemas.document import BannerImage, HierarchyDocument
from aem2hierarchy.schemas.hierarchy import HierarchyItem, ItemKind, LinkSources, SourceTag

__all__ = [
    "BannerImage",
    "HierarchyDocument",
    "HierarchyItem",
    "ItemKind",
    "LinkSources",
    "SourceTag",
]
