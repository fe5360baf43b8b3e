"""Normalizes tool results into chunked, ingestible content."""

from __future__ import annotations

import logging

from knowledge_agent.config import ChunkingConfig
from knowledge_agent.ingest.chunker import SemanticChunker
from knowledge_agent.types import ProcessedContent, ToolExecutionResult

logger = logging.getLogger(__name__)


class ContentProcessor:
    """Extracts text and provenance metadata from a tool result.

    Oversized content is split with the shared `SemanticChunker`; content that
    fits in a single unit is left unchunked (`chunks is None`).
    """

    def __init__(
        self,
        config: ChunkingConfig | None = None,
        chunker: SemanticChunker | None = None,
    ) -> None:
        self.config = config or ChunkingConfig()
        self.chunker = chunker or SemanticChunker(self.config)

    def process(self, result: ToolExecutionResult) -> ProcessedContent:
        if not result.success or result.data is None:
            return ProcessedContent(content="", metadata={"error": result.error or "no data"})

        data = result.data
        content = data.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            content = str(content)
        metadata = {key: value for key, value in data.items() if key != "content"}

        chunks: list[str] | None = None
        if len(content) > self.chunker.config.max_size:
            pieces = [chunk.content for chunk in self.chunker.chunk(content)]
            if len(pieces) >= 2:
                chunks = pieces
            logger.debug(
                "Chunked %d characters into %d chunk(s) using %s strategy",
                len(content),
                len(pieces),
                self.chunker.config.strategy.value,
            )

        return ProcessedContent(content=content, chunks=chunks, metadata=metadata)
