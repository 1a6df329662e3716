"""URL helpers shared by the parser, the crawler and the model."""

from urllib.parse import urldefrag, urlsplit

from auto_sitemap.exceptions import InvalidUrlError


def validate_http_url(url: str) -> str:
    """
    Check that a URL is an absolute http:// or https:// URL.

    Returns the URL stripped of surrounding whitespace, raises InvalidUrlError
    otherwise (including unbalanced IPv6 brackets and out-of-range ports).
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(f"Invalid URL: {url!r}")
    url = url.strip()
    try:
        parts = urlsplit(url)
        # .port raises ValueError for a port outside 0-65535
        hostname, _port = parts.hostname, parts.port
    except ValueError as e:
        raise InvalidUrlError(f"Invalid URL {url}: {e}") from e
    if parts.scheme not in ("http", "https"):
        raise InvalidUrlError(f"URL should start with http:// or https://: {url}")
    if not hostname:
        raise InvalidUrlError(f"URL has no host: {url}")
    return url


def normalize_location(url: str) -> str:
    """
    Turn a URL into a sitemap key: validated, fragment dropped, and an empty
    path written as "/".
    """
    url, _ = urldefrag(validate_http_url(url))
    parts = urlsplit(url)
    if not parts.path:
        url = parts._replace(path="/").geturl()
    return url


def same_origin(url: str, other: str) -> bool:
    """True when both URLs share scheme, host and port."""
    try:
        a, b = urlsplit(url), urlsplit(other)
        return (a.scheme, a.hostname, a.port) == (b.scheme, b.hostname, b.port)
    except ValueError:
        return False
