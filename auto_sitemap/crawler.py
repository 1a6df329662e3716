"""
1.0 Crawler Module
Discovers the pages of a site and turns them into a fresh Sitemap.

Key features:
- Breadth-first traversal from a seed URL, staying on the seed's origin
- Link discovery with BeautifulSoup (<a href> only, fragments dropped)
- Each BFS level fetched in parallel with a ThreadPoolExecutor
- Pages that fail to load are logged and left out; a failing seed raises
- build_sitemap() ingests (url, content) pairs from any crawler
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from auto_sitemap.exceptions import FetchError
from auto_sitemap.fingerprint import fingerprint, normalize_content
from auto_sitemap.sitemap import Page, Sitemap
from auto_sitemap.sitemap_fetcher import FetchedPage, SitemapFetcher
from auto_sitemap.urls import normalize_location, same_origin

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 10000
DEFAULT_MAX_WORKERS = 4

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class CrawledPage(NamedTuple):
    """A discovered page: its location and raw body."""
    url: str
    content: bytes


def is_html(content_type: str) -> bool:
    # Servers that send no Content-Type are given the benefit of the doubt.
    if not content_type:
        return True
    content_type = content_type.lower()
    return any(ct in content_type for ct in HTML_CONTENT_TYPES)


def extract_links(base_url: str, content: bytes) -> List[str]:
    """
    2.0 Extract same-origin links from an HTML page.

    Returns normalized locations in document order, without duplicates.
    """
    soup = BeautifulSoup(content, "html.parser")
    links = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        try:
            location = normalize_location(urljoin(base_url, anchor["href"].strip()))
        except ValueError:
            continue  # mailto:, javascript:, bad ports or IPv6 brackets...
        if not same_origin(location, base_url) or location in seen:
            continue
        seen.add(location)
        links.append(location)
    return links


class SiteCrawler:
    """
    3.0 SiteCrawler Class
    Default crawl collaborator: yields every reachable page of a site once.
    """

    def __init__(self, fetcher: Optional[Any] = None, config: Optional[Dict[str, Any]] = None):
        """
        3.1 Initialize the crawler.

        Args:
            fetcher: Object with fetch_page(url) -> FetchedPage raising
                     FetchError on failure. Defaults to a SitemapFetcher.
            config: Configuration dictionary with optional keys:
                - max_pages: Stop after this many pages (default: 10000)
                - max_workers: Parallel fetches per level (default: 4)
                - plus the SitemapFetcher keys when no fetcher is given
        """
        config = config or {}
        self.fetcher = fetcher or SitemapFetcher(config=config)
        self.max_pages = int(config.get("max_pages", DEFAULT_MAX_PAGES))
        self.max_workers = max(1, int(config.get("max_workers", DEFAULT_MAX_WORKERS)))

    def _fetch_or_none(self, url: str) -> Tuple[str, Optional[FetchedPage]]:
        try:
            return url, self.fetcher.fetch_page(url)
        except FetchError as e:
            logger.warning(f"Skipping {url}: {e}")
            return url, None

    def _fetch_level(self, urls: List[str]) -> Iterator[Tuple[str, Optional[FetchedPage]]]:
        """Fetch a batch of URLs in parallel, yielding results in request order."""
        if self.max_workers == 1 or len(urls) == 1:
            for url in urls:
                yield self._fetch_or_none(url)
            return
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            yield from executor.map(self._fetch_or_none, urls)

    def crawl(self, seed_url: str) -> Iterator[CrawledPage]:
        """
        3.2 Crawl a site breadth-first from seed_url.

        Yields:
            CrawledPage for each HTML page on the seed's origin

        Raises:
            FetchError: If the seed page cannot be fetched
        """
        seed_url = normalize_location(seed_url)
        seed_page = self.fetcher.fetch_page(seed_url)

        # The seed's final URL (after redirects) defines the crawl origin.
        origin = normalize_location(seed_page.url or seed_url)
        queued = {seed_url, origin}
        yielded = set()
        level: List[Tuple[str, Optional[FetchedPage]]] = [(seed_url, seed_page)]

        while level:
            next_urls: List[str] = []
            for requested_url, fetched in level:
                if fetched is None or len(yielded) >= self.max_pages:
                    continue

                location = normalize_location(fetched.url or requested_url)
                if not same_origin(location, origin):
                    logger.debug(f"{requested_url} redirected off-site to {location}, skipping")
                    continue
                if location in yielded:
                    continue
                if not is_html(fetched.content_type):
                    logger.debug(f"Skipping non-HTML page {location} ({fetched.content_type})")
                    continue

                yielded.add(location)
                queued.add(location)
                yield CrawledPage(location, fetched.content)

                for link in extract_links(location, fetched.content):
                    if link not in queued:
                        queued.add(link)
                        next_urls.append(link)

            remaining = self.max_pages - len(yielded)
            if remaining <= 0:
                if next_urls:
                    logger.warning(f"Reached max_pages={self.max_pages}, {len(next_urls)} URLs not visited")
                break
            level = list(self._fetch_level(next_urls)) if next_urls else []

        logger.info(f"Crawled {len(yielded)} pages from {seed_url}")


def build_sitemap(pages: Iterable[Tuple[str, bytes]], now: datetime) -> Sitemap:
    """
    4.0 Build a new Sitemap from crawled (url, content) pairs.

    Each page is fingerprinted once; a location seen again in the same run is
    ignored. Every page gets `now` as its provisional lastmod.
    """
    sitemap = Sitemap()
    for url, content in pages:
        location = normalize_location(url)
        if location in sitemap:
            logger.debug(f"Duplicate page {location} in crawl, keeping the first")
            continue
        sitemap.add(Page(url=location, lastmod=now, md5_hash=fingerprint(normalize_content(content))))
    return sitemap
