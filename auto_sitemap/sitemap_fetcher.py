"""
1.0 Sitemap Fetcher Module
Fetches pages and sitemap documents over HTTP with retry logic.

Key features:
- Automatic retry on transient failures (429, 500, 502, 503, 504)
- Exponential backoff between retries
- Configurable timeout and user agent
- Session reuse for connection pooling
- Optional download delay between requests, shared across threads
- Failures raise FetchError instead of returning partial data
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from auto_sitemap import __version__
from auto_sitemap.exceptions import FetchError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"AutoSitemap/{__version__}"


@dataclass
class FetchedPage:
    """Result of a successful GET."""
    url: str
    status_code: int
    content_type: str
    content: bytes


class SitemapFetcher:
    """
    2.0 SitemapFetcher Class
    Fetches page and sitemap content with built-in retry logic.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        2.1 Initialize the SitemapFetcher with retry strategy.

        Args:
            config: Configuration dictionary with optional keys:
                - user_agent: Custom user agent string
                - timeout: Request timeout in seconds (default: 30)
                - max_retries: Number of retry attempts (default: 3)
                - download_delay: Delay between requests in seconds (default: 0)
        """
        config = config or {}

        self.user_agent = config.get("user_agent", DEFAULT_USER_AGENT)
        if not isinstance(self.user_agent, str) or not self.user_agent.strip():
            self.user_agent = DEFAULT_USER_AGENT
            logger.warning(f"Invalid user_agent in config. Using default: {self.user_agent}")

        self.timeout = config.get("timeout", 30)
        self.max_retries = config.get("max_retries", 3)
        self.download_delay = float(config.get("download_delay", 0.0))

        # 2.1.1 Track requests for delay logic (fetches may come from worker threads)
        self.request_count = 0
        self.last_request_time = 0.0
        self._delay_lock = threading.Lock()

        self.session = self._create_session_with_retries()

        logger.debug(
            f"SitemapFetcher initialized: "
            f"User-Agent={self.user_agent[:50]}, "
            f"timeout={self.timeout}s, "
            f"delay={self.download_delay}s"
        )

    def _create_session_with_retries(self) -> requests.Session:
        """
        2.2 Create a requests Session with automatic retry logic.

        Retry strategy:
        - Retries on: 429 (rate limit), 500, 502, 503, 504 (server errors)
        - Backoff: 1s, 2s, 4s between retries (exponential)
        - Also retries on connection errors
        """
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
            raise_on_status=False,  # Final status is checked by _get
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.user_agent})

        return session

    def _apply_politeness_delay(self) -> None:
        """2.3 Keep at least download_delay seconds between request starts."""
        if self.download_delay <= 0:
            return

        with self._delay_lock:
            if self.request_count > 0:
                elapsed = time.time() - self.last_request_time
                wait_time = max(0, self.download_delay - elapsed)
                if wait_time > 0:
                    time.sleep(wait_time)
            self.request_count += 1
            self.last_request_time = time.time()

    def _get(self, url: str, timeout: Optional[int] = None) -> requests.Response:
        """
        2.4 GET a URL and return the 200 response.

        Raises:
            FetchError: On invalid URL, timeout, connection error or non-200 status
        """
        if not url or not url.startswith(("http://", "https://")):
            raise FetchError(f"Invalid URL: {url}", url=url)

        self._apply_politeness_delay()
        timeout = timeout or self.timeout

        try:
            response = self.session.get(url, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise FetchError(f"Timeout fetching {url} after {timeout}s", url=url) from e
        except requests.exceptions.ConnectionError as e:
            raise FetchError(f"Connection error fetching {url}: {e}", url=url) from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request error fetching {url}: {e}", url=url) from e

        if response.status_code != 200:
            raise FetchError(
                f"Failed to fetch {url}: status={response.status_code}",
                url=url,
                status_code=response.status_code,
            )
        return response

    def fetch_page(self, url: str, timeout: Optional[int] = None) -> FetchedPage:
        """
        2.5 Fetch a web page.

        Returns:
            FetchedPage with the final URL (after redirects) and raw body
        """
        response = self._get(url, timeout=timeout)
        logger.debug(f"Fetched {url} (status={response.status_code}, size={len(response.content):,} bytes)")
        return FetchedPage(
            url=response.url or url,
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type", ""),
            content=response.content,
        )

    def fetch_sitemap_xml(self, sitemap_url: str, timeout: Optional[int] = None) -> bytes:
        """
        2.6 Fetch XML content from a sitemap URL.

        Returns:
            Raw document bytes (the XML parser handles the encoding)
        """
        logger.info(f"Fetching sitemap: {sitemap_url}")
        response = self._get(sitemap_url, timeout=timeout)
        logger.info(
            f"Successfully fetched {sitemap_url} "
            f"(status={response.status_code}, size={len(response.content):,} bytes)"
        )
        return response.content
