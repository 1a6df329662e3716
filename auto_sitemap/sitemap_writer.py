"""
1.0 Sitemap Writer Module
Serializes a Sitemap to the urlset dialect with fingerprint meta elements.

Output shape:
    <urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"
            xmlns:xhtml="http://www.w3.org/1999/xhtml">
      <url>
        <loc>https://example.com/</loc>
        <lastmod>2023-08-13T11:30:46Z</lastmod>
        <xhtml:meta name="auto_sitemap_md5_hash" content="1f0e88..."/>
      </url>
    </urlset>
"""

import logging
from datetime import datetime, timezone
from typing import BinaryIO

from lxml import etree

from auto_sitemap.sitemap import Sitemap
from auto_sitemap.sitemap_parser import (
    FINGERPRINT_META_NAME,
    SITEMAP_NAMESPACE,
    VENDOR_NAMESPACE,
    VENDOR_PREFIX,
)

logger = logging.getLogger(__name__)

NSMAP = {
    None: SITEMAP_NAMESPACE,
    VENDOR_PREFIX: VENDOR_NAMESPACE,
}


def format_w3c_datetime(value: datetime) -> str:
    """Format a datetime as YYYY-MM-DDThh:mm:ssZ (UTC, whole seconds)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _sm(tag: str) -> str:
    return f"{{{SITEMAP_NAMESPACE}}}{tag}"


class SitemapWriter:
    """
    2.0 SitemapWriter Class
    Builds the urlset tree with lxml and writes it out pretty-printed.
    """

    def build_tree(self, sitemap: Sitemap) -> etree._Element:
        """
        2.1 Build the <urlset> element for a sitemap.

        Raises:
            ValueError: If a page has no lastmod
        """
        root = etree.Element(_sm('urlset'), nsmap=NSMAP)
        for page in sitemap:
            if page.lastmod is None:
                raise ValueError(f"Page {page.url} has no lastmod and cannot be serialized")

            url_el = etree.SubElement(root, _sm('url'))
            etree.SubElement(url_el, _sm('loc')).text = page.url
            etree.SubElement(url_el, _sm('lastmod')).text = format_w3c_datetime(page.lastmod)
            if page.md5_hash is not None:
                etree.SubElement(
                    url_el,
                    f"{{{VENDOR_NAMESPACE}}}meta",
                    attrib={'name': FINGERPRINT_META_NAME, 'content': page.md5_hash},
                )
        return root

    def to_bytes(self, sitemap: Sitemap) -> bytes:
        """2.2 Serialize a sitemap to UTF-8 XML bytes."""
        root = self.build_tree(sitemap)
        return etree.tostring(root, xml_declaration=True, encoding='UTF-8', pretty_print=True)

    def write(self, sitemap: Sitemap, writer: BinaryIO) -> None:
        """2.3 Serialize a sitemap into a binary file-like object."""
        data = self.to_bytes(sitemap)
        writer.write(data)
        logger.debug(f"Wrote sitemap with {len(sitemap)} pages ({len(data):,} bytes)")
