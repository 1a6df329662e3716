"""
LIVE TESTS - Real HTTP against a local server

Run: pytest tests/test_live.py
Time: ~1 second

Starts a throwaway HTTP server on 127.0.0.1 and crawls it with the real
SitemapFetcher, so requests, retries and BeautifulSoup are all exercised.
Nothing leaves the machine.
"""

import sys
import threading
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from auto_sitemap import FetchError, Page, Sitemap
from auto_sitemap.fingerprint import fingerprint, normalize_content
from auto_sitemap.main import main

T0 = datetime(2023, 8, 13, 11, 30, 46, tzinfo=timezone.utc)

PAGES = {
    # Reachable from / and /c. CRLF line endings, like a file checked out on Windows.
    "/": "<html>\r\n  <body>\r\n    <a href=\"/a\">Reachable from home</a>\r\n"
         "    <a href=\"/b\">Reachable from home and a</a>\r\n  </body>\r\n</html>\r\n",
    # Reachable from /.
    "/a": '<html><body><a href="/b">b</a><a href="/c">c</a></body></html>',
    # Reachable from / and /a.
    "/b": "<html><body></body></html>",
    # Reachable from /a and /c.
    "/c": '<html><body><a href="/c">itself</a><a href="/root">missing</a></body></html>',
    # Unreachable.
    "/d": "<html><body><h1>Unreachable!</h1></body></html>",
}


class SiteHandler(BaseHTTPRequestHandler):
    def do_GET(self):
        body = PAGES.get(self.path)
        if body is None:
            self.send_error(404)
            return
        data = body.encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def site():
    server = ThreadingHTTPServer(("127.0.0.1", 0), SiteHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_port}"
    finally:
        server.shutdown()
        server.server_close()


CRAWL_CONFIG = {"max_retries": 0, "timeout": 5, "max_workers": 2}


# =============================================================================
# 1. GENERATION AND UPDATE
# =============================================================================

def test_generation_and_update(site):
    start_time = datetime.now(timezone.utc).replace(microsecond=0)

    new_sitemap = Sitemap.generate_by_crawling(site, config=CRAWL_CONFIG)
    new_sitemap.sort_by_url()

    assert new_sitemap.urls == [f"{site}/", f"{site}/a", f"{site}/b", f"{site}/c"]

    old_sitemap = Sitemap([
        Page(f"{site}/", T0, fingerprint(normalize_content(PAGES["/"].replace("\r\n", "\n")))),
        Page(f"{site}/a", T0, fingerprint(b"previous version of a")),
        Page(f"{site}/b", T0, None),
        Page(f"{site}/d", T0, fingerprint(PAGES["/d"])),
    ])
    # Exercise the document round trip on the way
    old_sitemap = Sitemap.deserialize(old_sitemap.to_xml())

    info = new_sitemap.combine_with_old_sitemap(old_sitemap)
    end_time = datetime.now(timezone.utc)

    assert new_sitemap.get(f"{site}/").lastmod == T0
    for url in [f"{site}/a", f"{site}/b", f"{site}/c"]:
        assert start_time <= new_sitemap.get(url).lastmod <= end_time
    assert f"{site}/d" not in new_sitemap

    assert info.unchanged_pages == [f"{site}/"]
    assert info.updated_pages == [f"{site}/a", f"{site}/b"]
    assert info.new_pages == [f"{site}/c"]
    assert info.removed_pages == [f"{site}/d"]


def test_unreachable_seed(site):
    with pytest.raises(FetchError):
        Sitemap.generate_by_crawling(f"{site}/d-does-not-exist", config=CRAWL_CONFIG)


def test_import_over_http(site, tmp_path):
    sitemap = Sitemap([Page(f"{site}/", T0, fingerprint(b"x"))])
    PAGES["/sitemap.xml"] = sitemap.to_xml().decode("utf-8")
    try:
        imported = Sitemap.import_sitemap(f"{site}/sitemap.xml")
    finally:
        del PAGES["/sitemap.xml"]

    assert imported == sitemap


# =============================================================================
# 2. COMMAND LINE
# =============================================================================

def test_main_writes_sitemap(site, tmp_path):
    output_path = tmp_path / "public" / "sitemap.xml"
    config_path = tmp_path / "config.json"
    config_path.write_text(
        '{"max_retries": 0, "timeout": 5, '
        f'"data_directory": "{(tmp_path / "data").as_posix()}", '
        '"targets": [{"domain": "example.com", '
        f'"seed_url": "{site}/", "deploy_url": "https://example.com", '
        f'"output_path": "{output_path.as_posix()}"'
        '}]}'
    )

    exit_code = main(["--config", str(config_path), "--log-file", ""])

    assert exit_code == 0
    sitemap = Sitemap.import_sitemap(str(output_path))
    assert sitemap.urls == [
        "https://example.com/",
        "https://example.com/a",
        "https://example.com/b",
        "https://example.com/c",
    ]
    assert all(page.md5_hash for page in sitemap)
    assert list((tmp_path / "data" / "example.com").glob("example.com_changes_*.csv"))
    assert not list((tmp_path / "public").glob("*.csv"))


def test_main_bad_config(tmp_path):
    assert main(["--config", str(tmp_path / "missing.json"), "--log-file", ""]) == 1
