"""
HTTP snapshot provider.

Fetches a page with httpx and extracts the signals the analysis works
from: title, meta tags, heading outline, image alt coverage, resource
counts, word count, Open Graph tags and a best-effort framework guess.
"""

import re
from typing import Optional

import httpx
import structlog
from bs4 import BeautifulSoup

from siteplan.core.config import settings
from siteplan.core.errors import ExternalTimeoutError, FetchError
from siteplan.core.schemas import Headings, ImageStats, OpenGraph, WebsiteSnapshot

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

_WORD_RE = re.compile(r"\S+")


def _meta_content(soup: BeautifulSoup, **attrs: str) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = (tag.get("content") or "").strip()
    return content or None


def detect_framework(soup: BeautifulSoup, html: str) -> Optional[str]:
    """Guess the framework or platform that rendered the page."""
    if soup.find(id="__next") is not None or "_next" in html:
        return "Next.js"
    if soup.find(id="root") is not None and "react" in html:
        return "React"
    if soup.find(attrs={"data-v-app": True}) is not None or "vue" in html:
        return "Vue.js"
    if soup.find(attrs={"ng-version": True}) is not None or "angular" in html:
        return "Angular"
    if "wp-content" in html or "wordpress" in html:
        return "WordPress"
    return _meta_content(soup, name="generator")


def extract_snapshot(url: str, html: str) -> WebsiteSnapshot:
    """Build a snapshot from raw HTML."""
    soup = BeautifulSoup(html, "html.parser")

    title_tag = soup.find("title")
    title = title_tag.get_text(strip=True) if title_tag else ""

    headings = Headings(**{
        level: [h.get_text(" ", strip=True) for h in soup.find_all(level)]
        for level in ("h1", "h2", "h3", "h4", "h5", "h6")
    })

    images = soup.find_all("img")
    with_alt = sum(1 for img in images if (img.get("alt") or "") != "")

    scripts = len(soup.find_all("script"))
    stylesheets = len(soup.find_all("link", rel="stylesheet"))

    open_graph = OpenGraph(
        title=_meta_content(soup, property="og:title"),
        description=_meta_content(soup, property="og:description"),
        image=_meta_content(soup, property="og:image"),
        type=_meta_content(soup, property="og:type"),
    )

    framework = detect_framework(soup, html)

    # Word count excludes script/style bodies
    body = soup.body or soup
    for tag in body.find_all(["script", "style", "noscript"]):
        tag.decompose()
    word_count = len(_WORD_RE.findall(body.get_text(" ")))

    return WebsiteSnapshot(
        url=url,
        title=title or None,
        meta_description=_meta_content(soup, name="description"),
        meta_keywords=_meta_content(soup, name="keywords"),
        headings=headings,
        images=ImageStats(total=len(images), with_alt=with_alt, without_alt=len(images) - with_alt),
        scripts=scripts,
        stylesheets=stylesheets,
        word_count=word_count,
        framework=framework,
        open_graph=open_graph if (open_graph.title or open_graph.description) else None,
    )


class HttpSnapshotProvider:
    """
    Snapshot provider backed by httpx.

    A shared ``httpx.AsyncClient`` may be injected; otherwise one is
    created per fetch and closed before returning.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        max_bytes: Optional[int] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self._client = client
        self.timeout = timeout or settings.FETCH_TIMEOUT_SECONDS
        self.user_agent = user_agent or settings.FETCH_USER_AGENT
        self.max_bytes = max_bytes or settings.FETCH_MAX_BYTES
        self.logger = logger or structlog.get_logger(__name__)

    async def fetch_snapshot(self, url: str) -> WebsiteSnapshot:
        if self._client is not None:
            return await self._fetch(self._client, url)

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._fetch(client, url)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> WebsiteSnapshot:
        try:
            async with client.stream("GET", url, headers={"User-Agent": self.user_agent}) as response:
                self._check_response(url, response)
                html = await self._read_capped(url, response)
                status_code = response.status_code
        except httpx.TimeoutException as exc:
            self.logger.warning("website_fetch_timeout", url=url)
            raise ExternalTimeoutError("The website took too long to respond", stage="fetch") from exc
        except httpx.HTTPError as exc:
            self.logger.warning("website_fetch_failed", url=url, error=str(exc))
            raise FetchError("The website could not be reached") from exc

        snapshot = extract_snapshot(url, html)

        self.logger.info(
            "website_fetched",
            url=url,
            status=status_code,
            word_count=snapshot.word_count,
        )
        return snapshot

    def _check_response(self, url: str, response: httpx.Response) -> None:
        """Reject error statuses and non-HTML bodies before reading them."""
        if response.status_code >= 400:
            self.logger.warning("website_fetch_bad_status", url=url, status=response.status_code)
            raise FetchError(
                f"Failed to fetch website: HTTP {response.status_code} {response.reason_phrase}".strip()
            )

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type and content_type not in HTML_CONTENT_TYPES:
            raise FetchError(f"The URL did not return an HTML page (got {content_type})")

    async def _read_capped(self, url: str, response: httpx.Response) -> str:
        """Read at most ``max_bytes`` of the body and decode it."""
        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            chunk = chunk[: self.max_bytes - received]
            chunks.append(chunk)
            received += len(chunk)
            if received >= self.max_bytes:
                self.logger.info("website_body_truncated", url=url, max_bytes=self.max_bytes)
                break

        return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")
