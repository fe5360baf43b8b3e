"""Knowledge store contract and the adapter used by the orchestrator."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from knowledge_agent.errors import NoKnowledgeStoreError
from knowledge_agent.types import KnowledgeAnswer, ProcessedContent

logger = logging.getLogger(__name__)

NO_KNOWLEDGE_BASE_ANSWER = "no knowledge base available"


class KnowledgeStore(Protocol):
    """Minimal knowledge store contract for ingestion and answering."""

    async def add_document(self, content: str, metadata: dict[str, Any]) -> None:
        """Index one document."""

    async def query(self, text: str) -> KnowledgeAnswer:
        """Answer `text` from indexed documents."""


class KnowledgeAdapter:
    """Writes processed content into, and reads answers from, a knowledge store.

    The write path is strict: ingesting without a store raises
    `NoKnowledgeStoreError`. The read path degrades to a zero-confidence
    sentinel answer instead.
    """

    def __init__(self, store: KnowledgeStore | None = None) -> None:
        self.store = store

    async def ingest(self, processed: ProcessedContent) -> int:
        if self.store is None:
            raise NoKnowledgeStoreError()

        if not processed.chunks:
            await self.store.add_document(processed.content, processed.metadata)
            return 1

        total = len(processed.chunks)
        for index, chunk in enumerate(processed.chunks):
            await self.store.add_document(
                chunk,
                {**processed.metadata, "chunkIndex": index, "totalChunks": total},
            )
        logger.debug("Ingested %d chunk(s)", total)
        return total

    async def query(self, text: str) -> KnowledgeAnswer:
        if self.store is None:
            logger.warning("Query answered without a knowledge store")
            return KnowledgeAnswer(answer=NO_KNOWLEDGE_BASE_ANSWER, confidence=0.0)
        return await self.store.query(text)
