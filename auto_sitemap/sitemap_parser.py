import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from lxml import etree # Using lxml for robust parsing and namespace handling

from auto_sitemap.exceptions import InvalidUrlError, MalformedDocumentError, TimestampFormatError
from auto_sitemap.fingerprint import is_fingerprint
from auto_sitemap.sitemap import Page, Sitemap
from auto_sitemap.urls import normalize_location

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = 'http://www.sitemaps.org/schemas/sitemap/0.9'
# The fingerprint travels in an xhtml:meta element, which search engines
# already tolerate inside <url> records.
VENDOR_NAMESPACE = 'http://www.w3.org/1999/xhtml'
VENDOR_PREFIX = 'xhtml'
FINGERPRINT_META_NAME = 'auto_sitemap_md5_hash'

SITEMAP_NS = {
    'sm': SITEMAP_NAMESPACE,
    VENDOR_PREFIX: VENDOR_NAMESPACE,
}

# W3C datetime: YYYY-MM-DD, or a date-time with minutes, optional seconds and
# fraction, and a mandatory zone designator.
_W3C_DATETIME_RE = re.compile(
    r'^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})'
    r'(?:T(?P<hour>\d{2}):(?P<minute>\d{2})'
    r'(?::(?P<second>\d{2})(?:\.\d+)?)?'
    r'(?P<tz>Z|[+-]\d{2}:\d{2}))?$'
)


def parse_w3c_datetime(value: str, source: Optional[str] = None) -> datetime:
    """
    Parse a <lastmod> value into an aware UTC datetime.

    Fractions of a second are dropped. A bare date means midnight UTC.

    Raises:
        TimestampFormatError: If the value is not a W3C datetime
    """
    match = _W3C_DATETIME_RE.match(value.strip())
    if not match:
        raise TimestampFormatError(value, source=source)

    tz_str = match.group('tz')
    try:
        tz = timezone.utc
        if tz_str and tz_str != 'Z':
            sign = -1 if tz_str[0] == '-' else 1
            hours, minutes = int(tz_str[1:3]), int(tz_str[4:6])
            tz = timezone(sign * timedelta(hours=hours, minutes=minutes))

        parsed = datetime(
            int(match.group('year')),
            int(match.group('month')),
            int(match.group('day')),
            int(match.group('hour') or 0),
            int(match.group('minute') or 0),
            int(match.group('second') or 0),
            tzinfo=tz,
        )
        # Offsets near year 1 or 9999 can push the UTC value out of range
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError) as e:
        raise TimestampFormatError(value, source=source) from e


class SitemapParser:
    def __init__(self):
        logger.debug("SitemapParser initialized.")

    def parse_sitemap(self, xml_content: Union[bytes, str], source: str = "") -> Sitemap:
        """
        Parses the given XML sitemap content into a Sitemap.

        Only <urlset> documents are accepted. Every <url> needs a <loc> and a
        <lastmod>. The fingerprint comes from the xhtml:meta element named
        auto_sitemap_md5_hash; pages without it get md5_hash=None. Elements
        and attributes the parser does not know are ignored.

        Args:
            xml_content: The XML content of the sitemap (bytes or string).
            source: Where the content came from (for error messages/logging).

        Returns:
            The parsed Sitemap, in document order.

        Raises:
            MalformedDocumentError: Empty content, XML syntax errors, a root
                other than urlset, or a <url> missing a required field.
            TimestampFormatError: A <lastmod> that is not a W3C datetime.
        """
        if not xml_content or not xml_content.strip():
            raise MalformedDocumentError("Empty XML content", source=source)

        if isinstance(xml_content, str):
            # lxml refuses str input carrying an encoding declaration
            xml_content = xml_content.encode('utf-8')

        try:
            parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
            root = etree.fromstring(xml_content, parser=parser)
        except etree.XMLSyntaxError as e:
            raise MalformedDocumentError(f"XML syntax error: {e}", source=source) from e

        root_name = etree.QName(root.tag)
        if root_name.localname != 'urlset' or root_name.namespace != SITEMAP_NAMESPACE:
            raise MalformedDocumentError(
                f"Expected <urlset> in namespace {SITEMAP_NAMESPACE}, found '{root.tag}'",
                source=source,
            )

        sitemap = Sitemap()
        for url_element in root.findall('sm:url', SITEMAP_NS):
            sitemap.add(self._parse_url_element(url_element, source))

        logger.debug(f"Extracted {len(sitemap)} URL entries from urlset {source}.")
        return sitemap

    def _parse_url_element(self, url_element: etree._Element, source: str) -> Page:
        """Builds a Page from one <url> element."""
        loc_el = url_element.find('sm:loc', SITEMAP_NS)
        if loc_el is None or not (loc_el.text or '').strip():
            raise MalformedDocumentError(
                f"<url> entry without <loc> at line {url_element.sourceline}", source=source
            )
        try:
            loc = normalize_location(loc_el.text)
        except InvalidUrlError as e:
            raise MalformedDocumentError(f"Invalid <loc> at line {loc_el.sourceline}: {e}", source=source) from e

        lastmod_el = url_element.find('sm:lastmod', SITEMAP_NS)
        if lastmod_el is None or not (lastmod_el.text or '').strip():
            raise MalformedDocumentError(f"<url> entry for {loc} without <lastmod>", source=source)
        lastmod = parse_w3c_datetime(lastmod_el.text, source=source)

        return Page(url=loc, lastmod=lastmod, md5_hash=self._extract_fingerprint(url_element))

    def _extract_fingerprint(self, url_element: etree._Element) -> Optional[str]:
        """Returns the first valid fingerprint meta value, or None."""
        for meta_el in url_element.findall(f'{VENDOR_PREFIX}:meta', SITEMAP_NS):
            name = (meta_el.get('name') or '').strip()
            content = (meta_el.get('content') or '').strip()
            if name == FINGERPRINT_META_NAME and is_fingerprint(content):
                return content
        return None
