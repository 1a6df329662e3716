"""
auto_sitemap - Sitemaps with lastmods that follow content changes

Modules:
- fingerprint: Content fingerprints (MD5 hex)
- sitemap: Sitemap model and top-level operations
- sitemap_parser / sitemap_writer: urlset XML with fingerprint meta elements
- sitemap_fetcher: HTTP fetching with retry logic
- crawler: Site traversal feeding a new sitemap
- reconciler: Combination of new and old sitemaps
- change_log: CSV record of what each run changed
- config / main: JSON configuration and batch orchestrator
"""

__version__ = "0.2.1"

from auto_sitemap.exceptions import (  # noqa: E402
    FetchError,
    InvalidUrlError,
    MalformedDocumentError,
    SitemapError,
    TimestampFormatError,
)
from auto_sitemap.fingerprint import fingerprint  # noqa: E402
from auto_sitemap.reconciler import UpdateInfo, combine, compare  # noqa: E402
from auto_sitemap.sitemap import Page, Sitemap  # noqa: E402

__all__ = [
    "FetchError",
    "InvalidUrlError",
    "MalformedDocumentError",
    "Page",
    "Sitemap",
    "SitemapError",
    "TimestampFormatError",
    "UpdateInfo",
    "combine",
    "compare",
    "fingerprint",
]
