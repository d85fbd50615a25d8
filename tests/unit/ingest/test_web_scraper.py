"""Tests for WebScraper (network and browser paths are patched out)."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from rfpdesk.config import ScraperCfg
from rfpdesk.errors import InvalidInputError, ScrapeError
from playwright.sync_api import Error as PlaywrightError

from rfpdesk.ingest.web import (
    RedirectLimitError,
    SsrfError,
    WebScraper,
    _check_navigation,
    _guard_route,
)

PAGE = b"""<html><head><title>District RFP 2025-04</title><script>var x = 1;</script></head>
<body>
<nav>Home | About</nav>
<main><h2>Requirements</h2><p>Gigabit    uplinks to every school.</p></main>
<footer>Copyright</footer>
</body></html>"""


@pytest.fixture
def no_ssrf():
    with patch.object(WebScraper, "_check_ssrf"):
        yield


def test_rejects_non_http_scheme():
    with pytest.raises(InvalidInputError, match="scheme"):
        WebScraper().scrape("ftp://example.com/rfp.txt")


@pytest.mark.parametrize("url", ["http://127.0.0.1/admin", "http://10.0.0.5/", "http://169.254.169.254/"])
def test_private_addresses_blocked(url):
    with pytest.raises(SsrfError, match="internal address"):
        WebScraper._check_ssrf(url)


def test_missing_hostname_rejected():
    with pytest.raises(InvalidInputError, match="no hostname"):
        WebScraper._check_ssrf("http:///path")


def test_http_fetch_extracts_main_content(no_ssrf):
    with patch.object(WebScraper, "_fetch", return_value=(PAGE, "text/html")) as fetch:
        page = WebScraper(ScraperCfg(timeout=5)).scrape("  https://district.example/rfp  ")

    assert fetch.call_args.args[0] == "https://district.example/rfp"
    assert fetch.call_args.args[1] == 5
    assert page.method == "http"
    assert page.url == "https://district.example/rfp"
    assert page.title == "District RFP 2025-04"
    assert "Gigabit uplinks to every school." in page.content
    assert "var x" not in page.content
    assert "Home | About" not in page.content
    assert "Copyright" not in page.content


def test_h1_used_when_title_missing(no_ssrf):
    body = b"<html><body><h1>Bid Notice</h1><p>Open until May.</p></body></html>"
    with patch.object(WebScraper, "_fetch", return_value=(body, "text/html")):
        page = WebScraper().scrape("https://x.example/")
    assert page.title == "Bid Notice"


def test_plain_text_body(no_ssrf):
    with patch.object(WebScraper, "_fetch", return_value=(b"Line one\n\n\n\nLine  two", "text/plain")):
        page = WebScraper().scrape("https://x.example/notice.txt")
    assert page.title == "Untitled"
    assert page.content == "Line one\n\nLine two"


def test_browser_fallback_after_fetch_failure(no_ssrf):
    with patch.object(WebScraper, "_fetch", side_effect=RuntimeError("403")), \
            patch.object(WebScraper, "_render_with_browser", return_value=PAGE.decode()) as render:
        page = WebScraper(ScraperCfg(browser_timeout_ms=1234)).scrape("https://spa.example/")

    render.assert_called_once_with("https://spa.example/", 1234)
    assert page.method == "browser"
    assert "Gigabit uplinks" in page.content


def test_browser_fallback_when_page_has_no_text(no_ssrf):
    empty = b"<html><body><script>render()</script></body></html>"
    with patch.object(WebScraper, "_fetch", return_value=(empty, "text/html")), \
            patch.object(WebScraper, "_render_with_browser", return_value=PAGE.decode()):
        page = WebScraper().scrape("https://spa.example/")
    assert page.method == "browser"


def test_fallback_disabled_raises(no_ssrf):
    with patch.object(WebScraper, "_fetch", side_effect=ValueError("Unsupported Content-Type")), \
            patch.object(WebScraper, "_render_with_browser") as render:
        with pytest.raises(ScrapeError, match="Content-Type"):
            WebScraper(ScraperCfg(browser_fallback=False)).scrape("https://x.example/file.zip")
    render.assert_not_called()


def test_both_paths_failing_raises(no_ssrf):
    with patch.object(WebScraper, "_fetch", side_effect=RuntimeError("timeout")), \
            patch.object(WebScraper, "_render_with_browser", side_effect=RuntimeError("HTTP 500")):
        with pytest.raises(ScrapeError, match="browser render failed"):
            WebScraper().scrape("https://x.example/")


def test_browser_page_without_text_raises(no_ssrf):
    with patch.object(WebScraper, "_fetch", side_effect=RuntimeError("timeout")), \
            patch.object(WebScraper, "_render_with_browser", return_value="<html></html>"):
        with pytest.raises(ScrapeError, match="No readable text"):
            WebScraper().scrape("https://x.example/")


# ------------------------------------------------------------------
# Redirect and browser guards
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "failure",
    [RedirectLimitError("Redirect limit reached"), SsrfError("'db.local' resolves to an internal address")],
)
def test_redirect_guard_failure_skips_browser(no_ssrf, failure):
    with patch.object(WebScraper, "_fetch", side_effect=failure), \
            patch.object(WebScraper, "_render_with_browser", return_value="<p>internal data</p>") as render:
        with pytest.raises(type(failure)):
            WebScraper().scrape("https://hops.example/")
    render.assert_not_called()


def _fake_route(url):
    return MagicMock(request=SimpleNamespace(url=url))


def test_route_guard_aborts_internal_request():
    blocked: list[str] = []
    route = _fake_route("http://10.0.0.5/secrets")
    _guard_route(route, blocked)

    route.abort.assert_called_once_with("blockedbyclient")
    route.continue_.assert_not_called()
    assert "internal address" in blocked[0]


def test_route_guard_aborts_non_http_scheme():
    blocked: list[str] = []
    route = _fake_route("file:///etc/passwd")
    _guard_route(route, blocked)
    route.abort.assert_called_once()
    assert blocked


def test_route_guard_lets_public_request_through():
    blocked: list[str] = []
    route = _fake_route("https://93.184.216.34/rfp")
    _guard_route(route, blocked)
    route.continue_.assert_called_once_with()
    assert blocked == []


def _response(*chain):
    """Response whose request redirect chain is *chain*, first URL first."""
    request = None
    for url in chain:
        request = SimpleNamespace(url=url, redirected_from=request)
    return SimpleNamespace(request=request, status=200)


def test_navigation_check_rejects_internal_hop():
    response = _response("https://93.184.216.34/", "http://127.0.0.1/admin", "https://93.184.216.34/done")
    with pytest.raises(SsrfError):
        _check_navigation(response, "https://93.184.216.34/done")


def test_navigation_check_rejects_long_chain():
    response = _response(*[f"https://93.184.216.34/{i}" for i in range(5)])
    with pytest.raises(RedirectLimitError):
        _check_navigation(response, "https://93.184.216.34/4")


def test_navigation_check_accepts_public_chain():
    response = _response("https://93.184.216.34/", "https://93.184.216.34/final")
    _check_navigation(response, "https://93.184.216.34/final")


def _browser_page():
    pw = MagicMock()
    page = pw.chromium.launch.return_value.new_page.return_value
    playwright_cm = MagicMock()
    playwright_cm.__enter__.return_value = pw
    return playwright_cm, page


def test_browser_render_blocks_internal_navigation():
    playwright_cm, page = _browser_page()

    def goto(url, wait_until):
        handler = page.route.call_args.args[1]
        handler(_fake_route("http://169.254.169.254/latest/meta-data"))
        raise PlaywrightError("net::ERR_BLOCKED_BY_CLIENT")

    page.goto.side_effect = goto
    with patch("rfpdesk.ingest.web.sync_playwright", return_value=playwright_cm):
        with pytest.raises(SsrfError, match="internal address"):
            WebScraper._render_with_browser("https://93.184.216.34/", 1000)
    page.content.assert_not_called()


def test_browser_render_rechecks_final_url():
    playwright_cm, page = _browser_page()
    page.goto.return_value = _response("https://93.184.216.34/")
    page.url = "http://10.0.0.5/"
    with patch("rfpdesk.ingest.web.sync_playwright", return_value=playwright_cm):
        with pytest.raises(SsrfError):
            WebScraper._render_with_browser("https://93.184.216.34/", 1000)
    page.content.assert_not_called()


def test_browser_render_returns_public_page():
    playwright_cm, page = _browser_page()
    page.goto.return_value = _response("https://93.184.216.34/")
    page.url = "https://93.184.216.34/"
    page.content.return_value = "<p>ok</p>"
    with patch("rfpdesk.ingest.web.sync_playwright", return_value=playwright_cm):
        assert WebScraper._render_with_browser("https://93.184.216.34/", 1000) == "<p>ok</p>"
    page.route.assert_called_once()
