import asyncio
from typing import Any

import pytest

from knowledge_agent.errors import NoKnowledgeStoreError
from knowledge_agent.knowledge.adapter import NO_KNOWLEDGE_BASE_ANSWER, KnowledgeAdapter
from knowledge_agent.types import KnowledgeAnswer, ProcessedContent


class RecordingStore:
    def __init__(self) -> None:
        self.documents: list[tuple[str, dict[str, Any]]] = []
        self.queries: list[str] = []

    async def add_document(self, content: str, metadata: dict[str, Any]) -> None:
        self.documents.append((content, metadata))

    async def query(self, text: str) -> KnowledgeAnswer:
        self.queries.append(text)
        return KnowledgeAnswer(answer="stored answer", confidence=0.8, sources=("s",))


def test_unchunked_content_is_ingested_as_one_document() -> None:
    store = RecordingStore()
    processed = ProcessedContent(content="hello world", metadata={"url": "https://example.com"})

    count = asyncio.run(KnowledgeAdapter(store).ingest(processed))

    assert count == 1
    assert store.documents == [("hello world", {"url": "https://example.com"})]


def test_chunks_are_ingested_with_position_metadata() -> None:
    store = RecordingStore()
    processed = ProcessedContent(
        content="abc",
        chunks=["a", "b", "c"],
        metadata={"url": "https://example.com"},
    )

    count = asyncio.run(KnowledgeAdapter(store).ingest(processed))

    assert count == 3
    assert [content for content, _ in store.documents] == ["a", "b", "c"]
    assert [meta["chunkIndex"] for _, meta in store.documents] == [0, 1, 2]
    assert all(meta["totalChunks"] == 3 for _, meta in store.documents)
    assert all(meta["url"] == "https://example.com" for _, meta in store.documents)
    assert processed.metadata == {"url": "https://example.com"}


def test_ingest_without_store_raises() -> None:
    with pytest.raises(NoKnowledgeStoreError, match="No knowledge store configured"):
        asyncio.run(KnowledgeAdapter().ingest(ProcessedContent(content="x")))


def test_query_delegates_to_store() -> None:
    store = RecordingStore()

    answer = asyncio.run(KnowledgeAdapter(store).query("What is X?"))

    assert store.queries == ["What is X?"]
    assert answer.answer == "stored answer"


def test_query_without_store_returns_sentinel() -> None:
    answer = asyncio.run(KnowledgeAdapter().query("What is X?"))

    assert answer.answer == NO_KNOWLEDGE_BASE_ANSWER
    assert answer.confidence == 0.0
    assert answer.sources == ()
