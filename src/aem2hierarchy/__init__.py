"""aem2hierarchy: reconcile AEM content store pages into one hierarchy."""

from aem2hierarchy.exceptions import (
    Aem2HierarchyError,
    AuthenticationExpiredError,
    ConversionError,
    FetchError,
    SourceLoadError,
)
from aem2hierarchy.ingestion import IngestionOptions, IngestionResult, ingest_content_store
from aem2hierarchy.reconcile import reconcile, reconcile_items
from aem2hierarchy.schemas import HierarchyDocument, HierarchyItem, ItemKind

__all__ = [
    "Aem2HierarchyError",
    "AuthenticationExpiredError",
    "ConversionError",
    "FetchError",
    "HierarchyDocument",
    "HierarchyItem",
    "IngestionOptions",
    "IngestionResult",
    "ItemKind",
    "SourceLoadError",
    "ingest_content_store",
    "reconcile",
    "reconcile_items",
]
