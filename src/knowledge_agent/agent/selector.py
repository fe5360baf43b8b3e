"""Fetch tool selection for URL intents."""

from __future__ import annotations

import logging
import re
from urllib.parse import SplitResult, urlsplit

from knowledge_agent.config import AgentConfig
from knowledge_agent.errors import MalformedInputError
from knowledge_agent.types import IntentKind, ParsedIntent

logger = logging.getLogger(__name__)

MULTI_PAGE_HINTS: tuple[str, ...] = ("crawl", "entire", "all pages")
_SCHEME_PATTERN = re.compile(r"^[a-z][a-z0-9+.\-]*://", flags=re.IGNORECASE)


class ToolSelector:
    """Picks the single-page or multi-page tool for the first URL of an intent."""

    def __init__(self, config: AgentConfig | None = None) -> None:
        self.config = config or AgentConfig()

    def select_tool(self, intent: ParsedIntent) -> str | None:
        if intent.kind is not IntentKind.URL or not intent.urls:
            return None

        lowered = intent.raw_query.lower()
        if any(hint in lowered for hint in MULTI_PAGE_HINTS):
            return self.config.multi_page_tool

        try:
            parsed = parse_url(intent.urls[0])
        except MalformedInputError as exc:
            logger.debug("Falling back to single-page tool: %s", exc)
            return self.config.single_page_tool

        if parsed.path and parsed.path != "/":
            return self.config.single_page_tool
        return self.config.multi_page_tool


def parse_url(url: str) -> SplitResult:
    """Parse `url`, assuming https when no scheme is given."""
    candidate = url if _SCHEME_PATTERN.match(url) else f"https://{url}"
    try:
        parsed = urlsplit(candidate)
        parsed.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError as exc:
        raise MalformedInputError(f"Malformed URL: {url}") from exc
    if not parsed.hostname:
        raise MalformedInputError(f"Malformed URL: {url}")
    return parsed
