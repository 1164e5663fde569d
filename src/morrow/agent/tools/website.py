"""
Website intelligence fetcher.

Fetches a public page under the request-forgery policy and extracts the
title, description, headings and a sample of body text.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from ..domain.errors import BlockedURLError, ToolExecutionError
from .url_policy import DEFAULT_URL_POLICY, URLPolicy

logger = logging.getLogger(__name__)

USER_AGENT = "MorrowAI/1.0 (+https://smartlocal.ai)"
FETCH_TIMEOUT_SECONDS = 8.0
MAX_REDIRECTS = 5
MAX_PAGE_BYTES = 2 * 1024 * 1024

MAX_H1 = 5
MAX_H2 = 8
MAX_TEXT_BLOCKS = 30
MIN_BLOCK_CHARS = 40
MAX_BLOCK_CHARS = 500


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return (tag.get("content") or "").strip()


def extract_page_intel(html: str, url: str) -> dict[str, Any]:
    """Pull SEO-relevant fields out of an HTML document.

    Args:
        html: Page markup
        url: URL the page was fetched from (echoed back)

    Returns:
        Dict with url, title, description, h1, h2 and contentSample
    """
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    og_title = _meta_content(soup, property="og:title")
    description = (
        _meta_content(soup, name="description")
        or _meta_content(soup, property="og:description")
    )

    h1 = [el.get_text(" ", strip=True) for el in soup.find_all("h1")][:MAX_H1]
    h2 = [el.get_text(" ", strip=True) for el in soup.find_all("h2")][:MAX_H2]

    text_blocks = []
    for el in soup.find_all(["p", "li"]):
        text = " ".join(el.get_text(" ").split())
        if MIN_BLOCK_CHARS < len(text) < MAX_BLOCK_CHARS:
            text_blocks.append(text)

    return {
        "url": url,
        "title": og_title or title,
        "description": description,
        "h1": h1,
        "h2": h2,
        "contentSample": text_blocks[:MAX_TEXT_BLOCKS],
    }


class WebsiteIntelFetcher:
    """Guarded HTML fetcher backing the ``website_intel`` tool.

    Every hop of a redirect chain is re-checked against the policy, so a
    public page cannot bounce the fetch onto a private address.

    Usage:
        fetcher = WebsiteIntelFetcher()
        intel = await fetcher.fetch("https://example.com")
        print(intel["title"], intel["h1"])
    """

    def __init__(
        self,
        policy: URLPolicy = DEFAULT_URL_POLICY,
        timeout: float = FETCH_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        resolve_dns: bool = True,
        max_bytes: int = MAX_PAGE_BYTES,
    ):
        """Initialize the fetcher.

        Args:
            policy: Request-forgery policy
            timeout: Per-request timeout in seconds
            client: Optional shared httpx client (tests inject a mock)
            resolve_dns: Also check the addresses hostnames resolve to
            max_bytes: Largest page body that will be read
        """
        self.policy = policy
        self.timeout = timeout
        self.resolve_dns = resolve_dns
        self.max_bytes = max_bytes
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                headers={
                    "User-Agent": USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml",
                },
            )
        return self._client

    async def _check(self, url: str) -> None:
        host = self.policy.check(url)
        if self.resolve_dns:
            await self.policy.check_resolved(url, host)

    async def _read_capped(self, response: httpx.Response) -> str:
        """Read a streamed body, refusing anything over ``max_bytes``."""
        chunks = []
        size = 0
        async for chunk in response.aiter_bytes():
            size += len(chunk)
            if size > self.max_bytes:
                raise ToolExecutionError(
                    f"Failed to fetch website: page larger than {self.max_bytes} bytes",
                    tool="website_intel",
                )
            chunks.append(chunk)
        return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    def _check_response(self, response: httpx.Response) -> None:
        """Refuse error statuses and non-HTML content from the headers alone."""
        if response.status_code >= 400:
            raise ToolExecutionError(
                f"Failed to fetch website: HTTP {response.status_code}",
                tool="website_intel",
            )

        content_type = response.headers.get("content-type", "")
        if content_type and "text/html" not in content_type.lower():
            raise ToolExecutionError(
                f"Failed to fetch website: Unsupported content-type: {content_type}",
                tool="website_intel",
            )

    async def fetch(self, url: str) -> dict[str, Any]:
        """Fetch and analyze a public web page.

        The body is only read once the status and content type have been
        accepted, and never past ``max_bytes``.

        Raises:
            BlockedURLError: If the URL (or a redirect target) is refused
            ToolExecutionError: On HTTP errors, timeouts, oversized or
                non-HTML content
        """
        if not url or not isinstance(url, str):
            raise BlockedURLError(str(url), "Valid URL required (http/https)")

        client = self._get_client()
        current = url
        html: Optional[str] = None
        try:
            for _ in range(MAX_REDIRECTS + 1):
                await self._check(current)
                async with client.stream(
                    "GET",
                    current,
                    headers={
                        "User-Agent": USER_AGENT,
                        "Accept": "text/html,application/xhtml+xml",
                    },
                    timeout=self.timeout,
                ) as response:
                    location = response.headers.get("location")
                    if response.is_redirect and location:
                        current = urljoin(current, location)
                        continue
                    self._check_response(response)
                    html = await self._read_capped(response)
                    break
            else:
                raise ToolExecutionError(
                    f"Failed to fetch website: too many redirects (>{MAX_REDIRECTS})",
                    tool="website_intel",
                )
        except httpx.TimeoutException as e:
            raise ToolExecutionError(
                f"Failed to fetch website: timed out after {self.timeout:g}s",
                tool="website_intel",
                cause=e,
            )
        except httpx.RequestError as e:
            raise ToolExecutionError(
                f"Failed to fetch website: {e}",
                tool="website_intel",
                cause=e,
            )

        logger.debug(f"Fetched {current} ({len(html)} chars)")
        return extract_page_intel(html, url)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
