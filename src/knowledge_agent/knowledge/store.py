"""In-memory knowledge store with hashing embeddings and confidence scoring."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

from langchain_core.prompts import ChatPromptTemplate

from knowledge_agent.config import RetrievalConfig
from knowledge_agent.knowledge.confidence import ConfidenceCalculator
from knowledge_agent.knowledge.embedder import Embedder, HashingEmbedder, cosine_similarity
from knowledge_agent.types import KnowledgeAnswer, KnowledgeDocument, RetrievedChunk

logger = logging.getLogger(__name__)

INSUFFICIENT_INFORMATION_ANSWER = "I don't have enough information to answer accurately."

ANSWER_SYSTEM_PROMPT = """
You answer questions using only the provided context.

Rules:
1) Ground every statement in the context passages.
2) If the context does not contain enough information, say so explicitly.
3) Prefer concise, accurate answers.
""".strip()

ANSWER_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", ANSWER_SYSTEM_PROMPT),
        ("human", "Context:\n{context}\n\nQuestion: {question}\n\nAnswer:"),
    ]
)


@dataclass(slots=True)
class _StoredDocument:
    document_id: str
    content: str
    metadata: dict[str, Any]
    embedding: list[float]


class InMemoryKnowledgeStore:
    """Deterministic knowledge store used for local runs and tests.

    Answers are extractive (top snippets with their sources) unless a LangChain
    chat model is supplied, in which case the retrieved context is passed
    through `ANSWER_PROMPT` and the model's reply is returned.
    """

    def __init__(
        self,
        *,
        embedder: Embedder | None = None,
        config: RetrievalConfig | None = None,
        confidence: ConfidenceCalculator | None = None,
        llm: Any | None = None,
    ) -> None:
        self.embedder = embedder or HashingEmbedder()
        self.config = config or RetrievalConfig()
        self.confidence = confidence or ConfidenceCalculator()
        self.llm = llm
        self._documents: list[_StoredDocument] = []
        self._lock = threading.Lock()

    async def add_document(self, content: str, metadata: dict[str, Any]) -> None:
        document = _StoredDocument(
            document_id=str(uuid.uuid4()),
            content=content,
            metadata={"indexedAt": datetime.now(timezone.utc).isoformat(), **metadata},
            embedding=self.embedder.embed_documents([content])[0],
        )
        with self._lock:
            self._documents.append(document)

    async def query(self, text: str) -> KnowledgeAnswer:
        query_embedding = self.embedder.embed_query(text)
        with self._lock:
            documents = list(self._documents)

        ranked = sorted(
            (
                RetrievedChunk(
                    document_id=doc.document_id,
                    content=doc.content,
                    score=max(0.0, cosine_similarity(query_embedding, doc.embedding)),
                    metadata=dict(doc.metadata),
                )
                for doc in documents
            ),
            key=lambda item: item.score,
            reverse=True,
        )[: self.config.top_k]

        if not ranked:
            return KnowledgeAnswer(answer=INSUFFICIENT_INFORMATION_ANSWER, confidence=0.0)

        relevant = [item for item in ranked if item.score >= self.config.min_similarity]
        if not relevant:
            logger.info("No results above similarity threshold %.2f", self.config.min_similarity)
            return KnowledgeAnswer(
                answer=INSUFFICIENT_INFORMATION_ANSWER,
                confidence=min(1.0, ranked[0].score),
                retrieved_chunks=tuple(ranked),
            )

        item_sources = [_source_of(item) for item in relevant]
        scored = self.confidence.calculate(
            [item.score for item in relevant],
            [ts for ts in (_indexed_at(item) for item in relevant) if ts is not None],
            [urlsplit(source).hostname or source for source in item_sources],
        )
        answer = await self._compose_answer(text, relevant)
        return KnowledgeAnswer(
            answer=answer,
            confidence=scored.score,
            sources=tuple(_dedupe(item_sources)),
            retrieved_chunks=tuple(relevant),
        )

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def documents(self) -> list[KnowledgeDocument]:
        """Indexed documents in insertion order."""
        with self._lock:
            stored = list(self._documents)
        return [
            KnowledgeDocument(doc.document_id, doc.content, dict(doc.metadata)) for doc in stored
        ]

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()

    async def _compose_answer(self, question: str, relevant: list[RetrievedChunk]) -> str:
        snippets = relevant[: self.config.max_answer_snippets]
        if self.llm is None:
            return _build_extractive_answer(snippets)

        context = "\n\n".join(item.content for item in snippets)
        messages = ANSWER_PROMPT.format_messages(context=context, question=question)
        response = await self.llm.ainvoke(messages)
        return str(getattr(response, "content", response))


def _build_extractive_answer(snippets: list[RetrievedChunk]) -> str:
    lines: list[str] = []
    for idx, item in enumerate(snippets, start=1):
        body = " ".join(item.content.split())
        if len(body) > 320:
            body = body[:317] + "..."
        lines.append(f"{idx}. {body} [{_source_of(item)}]")
    return "\n".join(lines)


def _source_of(item: RetrievedChunk) -> str:
    url = item.metadata.get("url")
    return str(url) if url else item.document_id


def _indexed_at(item: RetrievedChunk) -> datetime | None:
    raw = item.metadata.get("indexedAt")
    if not isinstance(raw, str):
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _dedupe(values: list[str]) -> list[str]:
    deduped: list[str] = []
    for value in values:
        if value not in deduped:
            deduped.append(value)
    return deduped
