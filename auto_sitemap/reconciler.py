"""
1.0 Reconciler Module
Merges a freshly crawled sitemap with the previously published one.

Rules, per page of the new sitemap:
- same location in the old sitemap, both fingerprints present and equal:
  the old lastmod is carried forward
- anything else (new page, changed content, fingerprint unknown on either
  side): the provisional lastmod from the crawl stays
Pages only present in the old sitemap are dropped.

Nothing here does I/O or mutates its inputs.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from auto_sitemap.sitemap import Page, Sitemap

logger = logging.getLogger(__name__)


def is_unchanged(new_page: Page, old_page: Optional[Page]) -> bool:
    """
    True when the old lastmod may be kept for new_page.

    Equality has to be proven: a missing fingerprint or a missing old lastmod
    counts as a change. Fingerprints are compared as-is, no case folding.
    """
    if old_page is None:
        return False
    if new_page.md5_hash is None or old_page.md5_hash is None:
        return False
    if old_page.lastmod is None:
        return False
    return new_page.md5_hash == old_page.md5_hash


def combine(new: Sitemap, old: Sitemap) -> Sitemap:
    """
    2.0 Combine a new sitemap with the old one.

    Args:
        new: Sitemap from the current crawl (provisional lastmods)
        old: Previously published sitemap

    Returns:
        A new Sitemap with the pages of `new`, in the same order
    """
    result = Sitemap()
    for page in new:
        old_page = old.get(page.url)
        lastmod = old_page.lastmod if is_unchanged(page, old_page) else page.lastmod
        result.add(Page(url=page.url, lastmod=lastmod, md5_hash=page.md5_hash))
    return result


@dataclass
class UpdateInfo:
    """
    3.0 What changed between the old and the new sitemap.

    Every list holds page URLs, sorted.
    """
    new_pages: List[str] = field(default_factory=list)
    updated_pages: List[str] = field(default_factory=list)
    unchanged_pages: List[str] = field(default_factory=list)
    removed_pages: List[str] = field(default_factory=list)

    def sort(self) -> None:
        self.new_pages.sort()
        self.updated_pages.sort()
        self.unchanged_pages.sort()
        self.removed_pages.sort()

    def summary(self) -> Dict[str, int]:
        return {
            "new": len(self.new_pages),
            "updated": len(self.updated_pages),
            "unchanged": len(self.unchanged_pages),
            "removed": len(self.removed_pages),
        }

    @property
    def has_changes(self) -> bool:
        return bool(self.new_pages or self.updated_pages or self.removed_pages)


def compare(new: Sitemap, old: Sitemap) -> UpdateInfo:
    """
    3.1 Classify every location of both sitemaps.

    Uses the same rule as combine(), so a page listed as unchanged is exactly
    a page whose old lastmod combine() keeps.
    """
    info = UpdateInfo()
    for page in new:
        old_page = old.get(page.url)
        if old_page is None:
            info.new_pages.append(page.url)
        elif is_unchanged(page, old_page):
            info.unchanged_pages.append(page.url)
        else:
            info.updated_pages.append(page.url)

    info.removed_pages = [page.url for page in old if page.url not in new]
    info.sort()
    logger.debug(f"Compared sitemaps: {info.summary()}")
    return info
