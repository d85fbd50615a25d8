"""Scrape a public web page into a title and readable text.

Only http(s) URLs are accepted, and every host (including each redirect
target, at most three) must resolve to a public address. Bodies must be
text/html or text/plain and fit the configured size cap.

The first attempt is a plain urllib fetch cleaned with BeautifulSoup and
html2text. If that fails or yields nothing (script-rendered pages), headless
Chromium renders the page through Playwright and the resulting HTML gets the
same cleanup. The browser is held to the same address check on every
request it makes.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http.client import HTTPResponse

import html2text
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeout
from playwright.sync_api import sync_playwright

from rfpdesk.config import ScraperCfg
from rfpdesk.errors import InvalidInputError, ScrapeError

logger = logging.getLogger(__name__)

_USER_AGENT = "Mozilla/5.0 (compatible; rfpdesk/0.1; +https://example.invalid/rfpdesk)"
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain"}
_STRIP_TAGS = ["script", "style", "nav", "header", "footer", "noscript", "iframe"]
_CONTENT_SELECTORS = ("main", "article", "[role=main]", "#content", ".content", "body")

_h2t = html2text.HTML2Text()
_h2t.ignore_links = True
_h2t.ignore_images = True
_h2t.body_width = 0


class SsrfError(InvalidInputError):
    """Raised when a URL resolves to a private or reserved address."""


class RedirectLimitError(ScrapeError):
    """Raised when a page redirects more than the allowed number of times."""


@dataclass
class ScrapedPage:
    url: str
    title: str
    content: str
    method: str  # "http" | "browser"
    scraped_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class WebScraper:
    """Fetch a URL and reduce it to a title plus readable text.

    Args:
        cfg: Timeouts, size cap and whether the browser fallback is enabled.
    """

    def __init__(self, cfg: ScraperCfg | None = None) -> None:
        self._cfg = cfg or ScraperCfg()

    def scrape(self, url: str) -> ScrapedPage:
        """Validate *url*, fetch it, and return the cleaned page.

        Raises:
            InvalidInputError: For a bad scheme, missing host or blocked address,
                including a redirect to one.
            RedirectLimitError: If the page redirects too many times. Neither
                this nor a blocked address falls back to the browser.
            ScrapeError: If neither fetch path produced any text.
        """
        url = url.strip()
        self._validate_scheme(url)
        self._check_ssrf(url)

        http_error: Exception | None = None
        try:
            body, content_type = self._fetch(url, self._cfg.timeout, self._cfg.max_bytes)
            title, text = self._to_plain_text(body.decode("utf-8", errors="replace"), content_type)
            if text:
                return ScrapedPage(url=url, title=title, content=text, method="http")
            http_error = ScrapeError(f"No readable text at '{url}'")
        except (RuntimeError, ValueError) as exc:
            http_error = exc
        logger.info("Lightweight fetch of %s failed (%s)", url, http_error)

        if not self._cfg.browser_fallback:
            raise ScrapeError(f"Failed to scrape '{url}': {http_error}")

        try:
            html = self._render_with_browser(url, self._cfg.browser_timeout_ms)
        except (PlaywrightError, RuntimeError) as exc:
            raise ScrapeError(
                f"Failed to scrape '{url}': {http_error}; browser render failed: {exc}"
            ) from exc
        title, text = self._to_plain_text(html, "text/html")
        if not text:
            raise ScrapeError(f"No readable text at '{url}' after browser render")
        return ScrapedPage(url=url, title=title, content=text, method="browser")

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        scheme = urllib.parse.urlsplit(url).scheme
        if scheme not in _ALLOWED_SCHEMES:
            raise InvalidInputError(
                f"URL scheme '{scheme or '(none)'}' is not supported; use http:// or https://."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the host and refuse it if any address is internal.

        Runs before the first request and again on every redirect target.
        """
        hostname = urllib.parse.urlsplit(url).hostname
        if not hostname:
            raise InvalidInputError(f"URL has no hostname: {url}")
        try:
            resolved = {info[4][0] for info in socket.getaddrinfo(hostname, None)}
        except socket.gaierror as exc:
            raise InvalidInputError(f"Cannot resolve '{hostname}': {exc}") from exc

        blocked = sorted(addr for addr in resolved if _is_internal(addr))
        if blocked:
            raise SsrfError(
                f"'{hostname}' resolves to an internal address ({blocked[0]}); "
                "scraping internal networks is not allowed."
            )

    # ------------------------------------------------------------------
    # Fetch paths
    # ------------------------------------------------------------------

    @staticmethod
    def _fetch(url: str, timeout: int, max_bytes: int) -> tuple[bytes, str]:
        """GET *url* and return ``(body, media_type)``.

        Raises RuntimeError for network failures and ValueError for a
        disallowed media type or an oversized body.
        """
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        opener = urllib.request.build_opener(_GuardedRedirectHandler(_MAX_REDIRECTS))
        try:
            response: HTTPResponse = opener.open(request, timeout=timeout)
        except (urllib.error.URLError, TimeoutError) as exc:
            raise RuntimeError(f"Failed to fetch URL '{url}': {exc}") from exc

        with response:
            media_type = response.headers.get_content_type()
            if media_type not in _ALLOWED_CONTENT_TYPES:
                raise ValueError(
                    f"Unsupported Content-Type '{media_type}' at '{url}'; "
                    "only HTML and plain text pages can be scraped."
                )
            body = response.read(max_bytes + 1)
        if len(body) > max_bytes:
            raise ValueError(f"Page at '{url}' is larger than {max_bytes} bytes.")
        return body, media_type

    @staticmethod
    def _render_with_browser(url: str, timeout_ms: int) -> str:
        """Render *url* in headless Chromium and return the final HTML.

        Every request the page makes passes the same address check as the
        lightweight fetch; blocked subresources are simply aborted. The
        navigation's redirect chain and final URL are re-checked before any
        HTML is returned.
        """
        blocked: list[str] = []
        with sync_playwright() as pw:
            browser = pw.chromium.launch(
                headless=True,
                args=["--disable-gpu", "--disable-dev-shm-usage", "--no-sandbox"],
            )
            try:
                page = browser.new_page(user_agent=_USER_AGENT)
                page.set_default_navigation_timeout(timeout_ms)
                page.route("**/*", lambda route: _guard_route(route, blocked))
                try:
                    response = page.goto(url, wait_until="networkidle")
                except PlaywrightTimeout as exc:
                    raise RuntimeError(f"Page load timeout after {timeout_ms}ms: {url}") from exc
                except PlaywrightError:
                    if blocked:
                        raise SsrfError(blocked[0]) from None
                    raise
                _check_navigation(response, page.url)
                if response is not None and response.status >= 400:
                    raise RuntimeError(f"HTTP {response.status} for {url}")
                return page.content()
            finally:
                browser.close()

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    @staticmethod
    def _to_plain_text(text: str, content_type: str) -> tuple[str, str]:
        """Return ``(title, readable_text)`` for a decoded body."""
        if content_type == "text/plain":
            return "Untitled", _normalize_whitespace(text)

        soup = BeautifulSoup(text, "html.parser")
        title = ""
        if soup.title and soup.title.string:
            title = soup.title.string.strip()
        if not title:
            h1 = soup.find("h1")
            title = h1.get_text(strip=True) if h1 else ""

        for tag in soup.find_all(_STRIP_TAGS):
            tag.decompose()

        root = None
        for selector in _CONTENT_SELECTORS:
            root = soup.select_one(selector)
            if root is not None and root.get_text(strip=True):
                break
        if root is None:
            root = soup

        return title or "Untitled", _normalize_whitespace(_h2t.handle(str(root)))


def _normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces and blank lines; keep paragraph breaks."""
    lines = [re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in text.splitlines()]
    collapsed = re.sub(r"\n{3,}", "\n\n", "\n".join(lines))
    return collapsed.strip()


class _GuardedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Follow at most *limit* redirects, re-checking each target host."""

    def __init__(self, limit: int) -> None:
        self._remaining = limit

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        if self._remaining == 0:
            raise RedirectLimitError(f"Redirect limit reached while fetching '{req.full_url}'.")
        self._remaining -= 1
        WebScraper._check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


def _is_internal(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not ip.is_global or ip.is_multicast


def _guard_route(route, blocked: list[str]) -> None:
    """Abort a browser request whose URL is not public http(s); record why."""
    target = route.request.url
    try:
        WebScraper._validate_scheme(target)
        WebScraper._check_ssrf(target)
    except InvalidInputError as exc:
        logger.warning("Browser request to %s blocked: %s", target, exc)
        blocked.append(exc.message)
        route.abort("blockedbyclient")
        return
    route.continue_()


def _check_navigation(response, final_url: str) -> None:
    """Re-check every hop of the browser's redirect chain and the final URL.

    Raises:
        RedirectLimitError: If the chain is longer than the redirect cap.
        SsrfError: If any hop resolves to an internal address.
    """
    hops: list[str] = []
    request = response.request if response is not None else None
    while request is not None:
        hops.append(request.url)
        request = request.redirected_from
    if len(hops) - 1 > _MAX_REDIRECTS:
        raise RedirectLimitError(f"Redirect limit reached while rendering '{hops[-1]}'.")
    for hop in {*hops, final_url}:
        if urllib.parse.urlsplit(hop).scheme in _ALLOWED_SCHEMES:
            WebScraper._check_ssrf(hop)
