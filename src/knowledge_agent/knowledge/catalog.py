"""Per-source overview of the documents held by a knowledge store."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from knowledge_agent.types import KnowledgeDocument

UNKNOWN_SOURCE_URL = "unknown://source"
INTERNAL_SCHEME = "internal://"


@dataclass(slots=True)
class SourceSummary:
    url: str
    title: str
    source: str
    document_count: int = 0
    total_size: int = 0
    last_updated: str | None = None


def group_by_source(documents: Iterable[KnowledgeDocument]) -> list[SourceSummary]:
    """Group documents (chunks included) by their `url` metadata.

    Title, origin and `last_updated` come from the first document seen for a
    source; `last_updated` prefers the crawl or scrape time over the index time.
    """
    grouped: dict[str, SourceSummary] = {}
    for document in documents:
        metadata = document.metadata
        url = str(metadata.get("url") or UNKNOWN_SOURCE_URL)
        summary = grouped.get(url)
        if summary is None:
            internal = url.startswith(INTERNAL_SCHEME)
            summary = grouped[url] = SourceSummary(
                url=url,
                title="Project Documentation" if internal else str(metadata.get("title") or "Untitled"),
                source=str(metadata.get("source") or ("Internal" if internal else "External")),
                last_updated=(
                    metadata.get("crawledAt") or metadata.get("scrapedAt") or metadata.get("indexedAt")
                ),
            )
        summary.document_count += 1
        summary.total_size += len(document.content)
    return list(grouped.values())
