"""Built-in fetch tools: single-page scrape and same-host crawl.

Both tools run every URL (including each redirect hop) through the SSRF guard
before connecting, accept only HTML / plain-text responses up to 5 MB and
convert HTML to markdown-flavoured plain text.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urldefrag, urljoin, urlsplit

import html2text
import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from knowledge_agent.agent.registry import Tool, ToolRegistry
from knowledge_agent.agent.selector import parse_url
from knowledge_agent.errors import ExecutionFailureError
from knowledge_agent.security.url_guard import Resolver, is_secure_url
from knowledge_agent.types import ToolErrorKind, ToolExecutionResult

logger = logging.getLogger(__name__)

_USER_AGENT = "knowledge-agent/0.1"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_MAX_REDIRECTS = 3
_ALLOWED_CONTENT_TYPES = {"text/html", "text/plain", "application/xhtml+xml"}


class ScrapeInput(BaseModel):
    url: str = Field(min_length=1)
    max_length: int | None = Field(default=None, ge=1)


class CrawlInput(BaseModel):
    url: str = Field(min_length=1)
    max_pages: int = Field(default=10, ge=1, le=50)
    max_depth: int = Field(default=2, ge=0, le=5)


@dataclass(slots=True)
class _Page:
    url: str
    title: str
    text: str
    links: list[str] = field(default_factory=list)


class WebTool(Tool):
    """Shared HTTP plumbing for the fetch tools."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        resolver: Resolver | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self._timeout_seconds = timeout_seconds

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self._timeout_seconds,
            headers={"User-Agent": _USER_AGENT},
        ) as client:
            yield client

    async def _fetch_page(self, client: httpx.AsyncClient, url: str) -> _Page:
        current = url
        for _ in range(_MAX_REDIRECTS + 1):
            if not await is_secure_url(current, resolver=self._resolver):
                raise ExecutionFailureError(f"URL blocked by safety policy: {current}")

            response = await client.get(current, follow_redirects=False)
            if response.is_redirect:
                location = response.headers.get("location")
                if not location:
                    raise ExecutionFailureError(f"Redirect without location from {current}")
                current = urljoin(current, location)
                continue

            response.raise_for_status()
            content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
            if content_type not in _ALLOWED_CONTENT_TYPES:
                raise ExecutionFailureError(f"Unsupported content type '{content_type}' at {current}")
            if len(response.content) > _MAX_BYTES:
                raise ExecutionFailureError(f"Response body exceeds {_MAX_BYTES} bytes at {current}")
            return _parse_page(current, response.text, content_type)

        raise ExecutionFailureError(f"Too many redirects (>{_MAX_REDIRECTS}) for {url}")


class ScrapeTool(WebTool):
    name = "ScrapeTool"
    description = "Fetch a single web page and extract its readable text."
    capabilities = ("web-scraping", "html-extraction")
    args_schema = ScrapeInput

    async def execute(self, payload: dict[str, Any]) -> ToolExecutionResult:
        data = ScrapeInput.model_validate(payload)
        url = normalize_url(data.url)
        try:
            async with self._session() as client:
                page = await self._fetch_page(client, url)
        except (ExecutionFailureError, httpx.HTTPError) as exc:
            return ToolExecutionResult.failure(
                str(exc) or type(exc).__name__,
                ToolErrorKind.EXECUTION_FAILURE,
                toolName=self.name,
                url=url,
            )

        text = page.text.strip()
        if not text:
            return ToolExecutionResult.failure(
                f"No content extracted from {page.url}", toolName=self.name, url=url
            )
        if data.max_length is not None:
            text = text[: data.max_length]

        return ToolExecutionResult.ok(
            {
                "content": text,
                "url": page.url,
                "title": page.title,
                "scrapedAt": datetime.now(timezone.utc).isoformat(),
            },
            toolName=self.name,
            contentLength=len(text),
        )


class CrawlTool(WebTool):
    name = "CrawlTool"
    description = "Crawl pages on the same host breadth-first and merge their text."
    capabilities = ("web-crawling", "html-extraction")
    args_schema = CrawlInput

    async def execute(self, payload: dict[str, Any]) -> ToolExecutionResult:
        data = CrawlInput.model_validate(payload)
        start = normalize_url(data.url)
        host = urlsplit(start).hostname

        queue: deque[tuple[str, int]] = deque([(start, 0)])
        seen = {start}
        pages: list[_Page] = []
        failed: list[str] = []

        async with self._session() as client:
            while queue and len(pages) < data.max_pages:
                url, depth = queue.popleft()
                try:
                    page = await self._fetch_page(client, url)
                except (ExecutionFailureError, httpx.HTTPError) as exc:
                    if url == start:
                        return ToolExecutionResult.failure(
                            str(exc) or type(exc).__name__, toolName=self.name, url=start
                        )
                    logger.info("Skipping %s during crawl: %s", url, exc)
                    failed.append(url)
                    continue

                pages.append(page)
                if depth >= data.max_depth:
                    continue
                for link in page.links:
                    parts = urlsplit(link)
                    if parts.scheme in ("http", "https") and parts.hostname == host and link not in seen:
                        seen.add(link)
                        queue.append((link, depth + 1))

        sections = [f"# {page.title or page.url}\n\n{page.text.strip()}" for page in pages]
        return ToolExecutionResult.ok(
            {
                "content": "\n\n".join(sections),
                "url": start,
                "title": pages[0].title,
                "pages": [page.url for page in pages],
                "pageCount": len(pages),
                "crawledAt": datetime.now(timezone.utc).isoformat(),
            },
            toolName=self.name,
            failedPages=failed,
        )


def register_default_tools(
    registry: ToolRegistry,
    *,
    client: httpx.AsyncClient | None = None,
    resolver: Resolver | None = None,
) -> None:
    """Register the single-page and multi-page fetch tools."""
    registry.register(ScrapeTool(client=client, resolver=resolver))
    registry.register(CrawlTool(client=client, resolver=resolver))


def normalize_url(url: str) -> str:
    """Add the https scheme to bare `www.` URLs; other URLs pass through."""
    try:
        return parse_url(url).geturl()
    except ValueError:
        return url


def _parse_page(url: str, body: str, content_type: str) -> _Page:
    if content_type == "text/plain":
        return _Page(url=url, title="", text=body)

    soup = BeautifulSoup(body, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    links: list[str] = []
    for anchor in soup.find_all("a", href=True):
        link, _ = urldefrag(urljoin(url, str(anchor["href"])))
        if link not in links:
            links.append(link)

    converter = html2text.HTML2Text()
    converter.ignore_links = True
    converter.ignore_images = True
    converter.body_width = 0
    return _Page(url=url, title=title, text=converter.handle(body), links=links)
