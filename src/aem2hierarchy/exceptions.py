"""Custom exceptions for aem2hierarchy."""


class Aem2HierarchyError(Exception):
    """Base exception for aem2hierarchy operations."""


class FetchError(Aem2HierarchyError):
    """Error during content fetching."""


class AuthenticationExpiredError(FetchError):
    """The author session cookie is no longer accepted by AEM."""


class SourceLoadError(Aem2HierarchyError):
    """A source document is missing or is not valid JSON."""


class ConversionError(Aem2HierarchyError):
    """Error during output rendering."""
