"""
Error types raised by auto_sitemap.

All errors derive from SitemapError so callers can catch the whole family.
FingerprintAbsent is deliberately not here: a page without a fingerprint is
handled by the reconciler as a changed page, not reported as an error.
"""

from typing import Optional


class SitemapError(Exception):
    """Base class for all auto_sitemap errors."""


class FetchError(SitemapError):
    """A page, seed URL or old sitemap document could not be retrieved."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MalformedDocumentError(SitemapError):
    """The document is not a valid urlset or misses a required field."""

    def __init__(self, message: str, source: Optional[str] = None):
        if source:
            message = f"{message} (in {source})"
        super().__init__(message)
        self.source = source


class TimestampFormatError(MalformedDocumentError):
    """A <lastmod> value is not a W3C datetime."""

    def __init__(self, value: str, source: Optional[str] = None):
        super().__init__(f"Invalid lastmod value: {value!r}", source=source)
        self.value = value


class InvalidUrlError(SitemapError, ValueError):
    """A URL is not an absolute http:// or https:// URL."""
