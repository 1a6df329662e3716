"""
1.0 Sitemap Module
In-memory sitemap model and the top-level operations built on it.

Key features:
- Ordered mapping of page location to fingerprint and lastmod
- Generation by crawling a site
- Import of a previously published sitemap (URL, file or bytes)
- Combination with the old sitemap to carry unchanged lastmods forward
- Serialization to the sitemap XML dialect
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, Iterable, Iterator, List, Optional, Union
from urllib.parse import urlsplit

from auto_sitemap.exceptions import FetchError
from auto_sitemap.urls import normalize_location, validate_http_url

logger = logging.getLogger(__name__)


def to_utc_seconds(value: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to UTC with whole-second precision (naive = UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0)


@dataclass
class Page:
    """
    2.0 One <url> record of the sitemap.

    Attributes:
        url: Absolute page URL, the identity of the page within a sitemap
        lastmod: Last time the page content was seen to change (UTC)
        md5_hash: Fingerprint of the page content, None when unknown
    """
    url: str
    lastmod: Optional[datetime] = None
    md5_hash: Optional[str] = None

    def __post_init__(self):
        # The document keeps whole seconds in UTC; so does the model.
        self.lastmod = to_utc_seconds(self.lastmod)


class Sitemap:
    """
    3.0 Sitemap Class
    Pages keyed by location, iterated in insertion (crawl discovery) order.
    """

    def __init__(self, pages: Optional[Iterable[Page]] = None):
        self._pages: Dict[str, Page] = {}
        for page in pages or []:
            self.add(page)

    # =========================================================================
    # 3.1 MAPPING OPERATIONS
    # =========================================================================

    def add(self, page: Page) -> None:
        """Insert a page, replacing any page with the same location."""
        self._pages[page.url] = page

    def get(self, url: str) -> Optional[Page]:
        return self._pages.get(url)

    def __contains__(self, url: object) -> bool:
        return url in self._pages

    def __iter__(self) -> Iterator[Page]:
        return iter(list(self._pages.values()))

    def __len__(self) -> int:
        return len(self._pages)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sitemap):
            return NotImplemented
        return self._as_dict() == other._as_dict()

    def __repr__(self) -> str:
        return f"Sitemap({len(self)} pages)"

    def _as_dict(self) -> Dict[str, Any]:
        return {url: (page.md5_hash, page.lastmod) for url, page in self._pages.items()}

    @property
    def pages(self) -> List[Page]:
        return list(self._pages.values())

    @property
    def urls(self) -> List[str]:
        return list(self._pages.keys())

    def sort_by_url(self) -> None:
        """Reorder pages by URL."""
        self._pages = dict(sorted(self._pages.items()))

    def update_domain(self, new_domain: str) -> None:
        """
        3.2 Move every page to another origin.

        A sitemap generated for a locally running site (e.g. localhost:8000)
        can be published for the deployed domain (e.g. https://example.com).
        Scheme, host and port are replaced; path, query and fragment stay.

        Args:
            new_domain: Absolute URL whose origin should be used

        Raises:
            InvalidUrlError: If new_domain is not an http(s) URL with a host
        """
        target = urlsplit(validate_http_url(new_domain))
        netloc = target.hostname
        if target.port is not None:
            netloc = f"{netloc}:{target.port}"

        moved: Dict[str, Page] = {}
        for page in self._pages.values():
            parts = urlsplit(page.url)
            new_url = parts._replace(scheme=target.scheme, netloc=netloc).geturl()
            moved[new_url] = Page(url=new_url, lastmod=page.lastmod, md5_hash=page.md5_hash)
        logger.info(f"Moved {len(moved)} pages to {target.scheme}://{netloc}")
        self._pages = moved

    # =========================================================================
    # 4.0 TOP-LEVEL OPERATIONS
    # =========================================================================

    @classmethod
    def generate_by_crawling(
        cls,
        seed_url: str,
        crawler: Optional[Any] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> "Sitemap":
        """
        4.1 Generate a sitemap by crawling a website.

        Every page gets its fingerprint and the same provisional lastmod (the
        crawl start time). Pages that fail to load are left out.

        Args:
            seed_url: Where the crawl starts; must be http:// or https://
            crawler: Object with a crawl(seed_url) method yielding (url, content)
                     pairs. Defaults to a SiteCrawler built from config.
            config: Crawler configuration (see SiteCrawler)

        Raises:
            InvalidUrlError: If seed_url is not an http(s) URL
            FetchError: If the seed page cannot be fetched
        """
        from auto_sitemap.crawler import SiteCrawler, build_sitemap

        seed_url = normalize_location(seed_url)
        if crawler is None:
            crawler = SiteCrawler(config=config)

        now = datetime.now(timezone.utc)
        logger.info(f"Generating sitemap by crawling {seed_url}")
        sitemap = build_sitemap(crawler.crawl(seed_url), now)
        logger.info(f"Crawl of {seed_url} found {len(sitemap)} pages")
        return sitemap

    @classmethod
    def import_sitemap(
        cls,
        url_or_path: Union[str, bytes],
        fetcher: Optional[Any] = None,
    ) -> "Sitemap":
        """
        4.2 Import a previously published sitemap.

        Args:
            url_or_path: http(s) URL, local file path, or the document bytes
            fetcher: Object with fetch_sitemap_xml(url) -> bytes, used for URLs.
                     Defaults to a SitemapFetcher.

        Raises:
            FetchError: If the document cannot be fetched or read
            MalformedDocumentError: If the document is not a valid urlset
        """
        if isinstance(url_or_path, bytes):
            return cls.deserialize(url_or_path)

        if url_or_path.startswith(("http://", "https://")):
            if fetcher is None:
                from auto_sitemap.sitemap_fetcher import SitemapFetcher
                fetcher = SitemapFetcher()
            content = fetcher.fetch_sitemap_xml(url_or_path)
            return cls.deserialize(content, source=url_or_path)

        try:
            with open(url_or_path, "rb") as f:
                content = f.read()
        except OSError as e:
            raise FetchError(f"Failed to open {url_or_path}: {e}", url=url_or_path) from e
        return cls.deserialize(content, source=url_or_path)

    @classmethod
    def deserialize(cls, data: Union[bytes, str, BinaryIO], source: str = "") -> "Sitemap":
        """Parse a sitemap document. Unknown elements are ignored."""
        from auto_sitemap.sitemap_parser import SitemapParser

        if hasattr(data, "read"):
            data = data.read()
        return SitemapParser().parse_sitemap(data, source=source)

    def combine_with_old_sitemap(self, old_sitemap: "Sitemap"):
        """
        4.3 Combine with the previously published sitemap, in place.

        Keeps the old lastmod where the fingerprint is unchanged, keeps the
        crawl time otherwise, and drops pages missing from this sitemap.
        The old sitemap is not modified.

        Returns:
            UpdateInfo listing new, updated, unchanged and removed pages
        """
        from auto_sitemap.reconciler import combine, compare

        info = compare(self, old_sitemap)
        self._pages = combine(self, old_sitemap)._pages
        logger.info(f"Combined with old sitemap: {info.summary()}")
        return info

    def serialize(self, writer: BinaryIO) -> None:
        """4.4 Write the sitemap document to a binary file-like object."""
        from auto_sitemap.sitemap_writer import SitemapWriter

        SitemapWriter().write(self, writer)

    def to_xml(self) -> bytes:
        from auto_sitemap.sitemap_writer import SitemapWriter

        return SitemapWriter().to_bytes(self)
