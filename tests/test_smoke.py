"""
SMOKE TESTS - Fast, Deterministic, No Network

Run: pytest tests/test_smoke.py
Time: < 2 seconds

Imports, fingerprints, the sitemap model, import/export wiring and config
validation.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from auto_sitemap import FetchError, InvalidUrlError, MalformedDocumentError, Page, Sitemap
from auto_sitemap.config import DEFAULTS, load_config, validate_config
from auto_sitemap.fingerprint import FINGERPRINT_LENGTH, fingerprint, is_fingerprint, normalize_content

DATA_DIR = Path(__file__).parent / "data"

T0 = datetime(2023, 8, 13, 11, 30, 46, tzinfo=timezone.utc)
HASH_A = "0123456789abcdef0123456789abcdef"


# =============================================================================
# 1. IMPORTS
# =============================================================================

def test_imports():
    from auto_sitemap import change_log, config, crawler, main, reconciler  # noqa: F401
    from auto_sitemap import sitemap_fetcher, sitemap_parser, sitemap_writer  # noqa: F401
    import bs4, lxml, pandas, requests  # noqa: F401,E401


# =============================================================================
# 2. FINGERPRINTS
# =============================================================================

def test_fingerprint_is_deterministic():
    content = b"<html><body>Hello</body></html>"
    assert fingerprint(content) == fingerprint(content)
    assert len(fingerprint(content)) == FINGERPRINT_LENGTH


def test_fingerprint_detects_any_byte_change():
    samples = [b"<html></html>", b"<html> </html>", b"<html></html>\n", b"<HTML></HTML>", b""]
    assert len({fingerprint(s) for s in samples}) == len(samples)


def test_fingerprint_of_empty_content():
    assert fingerprint(b"") == "d41d8cd98f00b204e9800998ecf8427e"


def test_fingerprint_is_lowercase_hex():
    value = fingerprint(b"abc")
    assert value == "900150983cd24fb0d6963f7d28e17f72"
    assert is_fingerprint(value)


def test_fingerprint_accepts_text():
    assert fingerprint("héllo") == fingerprint("héllo".encode("utf-8"))


def test_normalize_content_line_endings_and_whitespace():
    unix = b"<html>\n<body></body>\n</html>"
    windows = b"  <html>\r\n<body></body>\r\n</html>\r\n"
    assert normalize_content(windows) == unix
    assert fingerprint(normalize_content(windows)) == fingerprint(normalize_content(unix))


@pytest.mark.parametrize("value, expected", [
    (HASH_A, True),
    (HASH_A.upper(), True),
    (HASH_A[:-1], False),
    ("z" * 32, False),
    (None, False),
])
def test_is_fingerprint(value, expected):
    assert is_fingerprint(value) is expected


# =============================================================================
# 3. SITEMAP MODEL
# =============================================================================

def test_add_get_and_iterate():
    sitemap = Sitemap()
    sitemap.add(Page("https://example.com/", T0, HASH_A))
    sitemap.add(Page("https://example.com/b", T0, None))

    assert len(sitemap) == 2
    assert "https://example.com/" in sitemap
    assert "https://example.com/missing" not in sitemap
    assert sitemap.get("https://example.com/missing") is None
    assert [p.url for p in sitemap] == ["https://example.com/", "https://example.com/b"]


def test_add_replaces_same_location_in_place():
    sitemap = Sitemap([
        Page("https://example.com/a", T0, HASH_A),
        Page("https://example.com/b", T0, HASH_A),
    ])
    sitemap.add(Page("https://example.com/a", T0, None))

    assert len(sitemap) == 2
    assert sitemap.urls == ["https://example.com/a", "https://example.com/b"]
    assert sitemap.get("https://example.com/a").md5_hash is None


def test_page_lastmod_normalized_to_utc_seconds():
    naive = Page("https://example.com/", datetime(2023, 8, 13, 11, 30, 46, 500))
    assert naive.lastmod == T0
    assert naive.lastmod.tzinfo is not None


def test_equality_ignores_order():
    a = Sitemap([Page("https://example.com/a", T0, HASH_A), Page("https://example.com/b", T0, None)])
    b = Sitemap([Page("https://example.com/b", T0, None), Page("https://example.com/a", T0, HASH_A)])
    assert a == b
    b.add(Page("https://example.com/b", T0, HASH_A))
    assert a != b


def test_sort_by_url():
    sitemap = Sitemap([Page(f"https://example.com/{name}", T0) for name in ["c", "a", "b"]])
    sitemap.sort_by_url()
    assert sitemap.urls == ["https://example.com/a", "https://example.com/b", "https://example.com/c"]


def test_update_domain():
    sitemap = Sitemap([
        Page("http://localhost:8000/", T0, HASH_A),
        Page("http://localhost:8000/blog/post?id=1#top", T0, None),
    ])

    sitemap.update_domain("https://example.com")

    assert sitemap.urls == ["https://example.com/", "https://example.com/blog/post?id=1#top"]
    assert sitemap.get("https://example.com/").md5_hash == HASH_A
    assert sitemap.get("https://example.com/").lastmod == T0


def test_update_domain_keeps_explicit_port():
    sitemap = Sitemap([Page("https://example.com/a", T0)])
    sitemap.update_domain("http://localhost:3000/ignored/path")
    assert sitemap.urls == ["http://localhost:3000/a"]


@pytest.mark.parametrize("new_domain", [
    "ftp://example.com", "example.com", "https://", "", "https://example.com:99999", "http://[::1/",
])
def test_update_domain_rejects_invalid(new_domain):
    sitemap = Sitemap([Page("https://example.com/a", T0)])
    with pytest.raises(InvalidUrlError):
        sitemap.update_domain(new_domain)
    assert sitemap.urls == ["https://example.com/a"]


# =============================================================================
# 4. IMPORT
# =============================================================================

class FakeFetcher:
    def __init__(self, documents):
        self.documents = documents
        self.requested = []

    def fetch_sitemap_xml(self, url):
        self.requested.append(url)
        if url not in self.documents:
            raise FetchError(f"Failed to fetch {url}: status=404", url=url, status_code=404)
        return self.documents[url]


def test_import_from_file():
    sitemap = Sitemap.import_sitemap(str(DATA_DIR / "old-sitemap.xml"))
    assert len(sitemap) == 4


def test_import_from_bytes():
    sitemap = Sitemap.import_sitemap((DATA_DIR / "old-sitemap.xml").read_bytes())
    assert len(sitemap) == 4


def test_import_from_url_uses_fetcher():
    url = "https://example.com/sitemap.xml"
    fetcher = FakeFetcher({url: (DATA_DIR / "old-sitemap.xml").read_bytes()})

    sitemap = Sitemap.import_sitemap(url, fetcher=fetcher)

    assert fetcher.requested == [url]
    assert sitemap.get("https://example.com/").md5_hash == "1f0e8893210f6496401d171ff77c7e92"


def test_import_missing_url_raises_fetch_error():
    with pytest.raises(FetchError) as exc_info:
        Sitemap.import_sitemap("https://example.com/sitemap.xml", fetcher=FakeFetcher({}))
    assert exc_info.value.status_code == 404


def test_import_missing_file_raises_fetch_error(tmp_path):
    with pytest.raises(FetchError):
        Sitemap.import_sitemap(str(tmp_path / "nope.xml"))


def test_import_malformed_document(tmp_path):
    path = tmp_path / "sitemap.xml"
    path.write_text("<urlset><url>")
    with pytest.raises(MalformedDocumentError):
        Sitemap.import_sitemap(str(path))


# =============================================================================
# 5. CONFIG VALIDATION
# =============================================================================

VALID_CONFIG = {
    "targets": [{"domain": "example.com", "seed_url": "http://localhost:8000/"}],
    "max_pages": 50,
}


def test_validate_config_accepts_minimal():
    assert validate_config(VALID_CONFIG)


@pytest.mark.parametrize("config", [
    [],
    {},
    {"targets": "example.com"},
    {"targets": ["example.com"]},
    {"targets": [{"domain": "example.com"}]},
    {"targets": [{"domain": "", "seed_url": "https://example.com/"}]},
    {"targets": [{"domain": "example.com", "seed_url": "example.com"}]},
    {"targets": [{"domain": "example.com", "seed_url": "https://example.com/", "deploy_url": 3}]},
    {"targets": [], "max_pages": -1},
    {"targets": [], "timeout": "30"},
    {"targets": [], "max_workers": True},
    {"targets": [
        {"domain": "example.com", "seed_url": "https://example.com/"},
        {"domain": "example.com", "seed_url": "https://example.com/blog/"},
    ]},
])
def test_validate_config_rejects(config):
    assert not validate_config(config)


def test_load_config_fills_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(VALID_CONFIG))

    config = load_config(str(path))

    assert config["max_pages"] == 50
    assert config["timeout"] == DEFAULTS["timeout"]
    assert config["targets"] == VALID_CONFIG["targets"]


def test_load_config_missing_or_invalid(tmp_path):
    assert load_config(str(tmp_path / "missing.json")) is None

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    assert load_config(str(bad)) is None


def test_example_config_is_valid():
    with open(PROJECT_ROOT / "config.json") as f:
        assert validate_config(json.load(f))
