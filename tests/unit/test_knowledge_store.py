import asyncio
import math
from datetime import datetime, timedelta, timezone

import pytest
from langchain_core.messages import AIMessage

from knowledge_agent.config import RetrievalConfig
from knowledge_agent.knowledge.confidence import ConfidenceCalculator, ConfidenceLevel
from knowledge_agent.knowledge.embedder import Embedder, HashingEmbedder, cosine_similarity
from knowledge_agent.knowledge.store import INSUFFICIENT_INFORMATION_ANSWER, InMemoryKnowledgeStore


class VocabularyEmbedder(Embedder):
    vocabulary = ("paris", "france", "capital", "berlin", "germany", "zebra")

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        words = text.lower().replace("?", " ").replace(".", " ").split()
        return [float(words.count(term)) for term in self.vocabulary]


class FakeChatModel:
    def __init__(self) -> None:
        self.messages: list = []

    async def ainvoke(self, messages: list) -> AIMessage:
        self.messages = messages
        return AIMessage(content="Paris is the capital of France.")


def _store(**kwargs) -> InMemoryKnowledgeStore:
    store = InMemoryKnowledgeStore(embedder=VocabularyEmbedder(), **kwargs)

    async def _seed() -> None:
        await store.add_document(
            "Paris is the capital of France.", {"url": "https://travel.example.com/france"}
        )
        await store.add_document("Berlin is the capital of Germany.", {"title": "Germany"})

    asyncio.run(_seed())
    return store


def test_empty_store_has_insufficient_information() -> None:
    answer = asyncio.run(InMemoryKnowledgeStore().query("anything"))

    assert answer.answer == INSUFFICIENT_INFORMATION_ANSWER
    assert answer.confidence == 0.0


def test_extractive_answer_cites_best_source_first() -> None:
    store = _store()

    answer = asyncio.run(store.query("What is the capital of France?"))

    assert answer.answer.startswith("1. Paris is the capital of France. [https://travel.example.com/france]")
    assert answer.sources[0] == "https://travel.example.com/france"
    assert 0.0 < answer.confidence <= 1.0
    assert answer.retrieved_chunks[0].metadata["url"] == "https://travel.example.com/france"
    assert "indexedAt" in answer.retrieved_chunks[0].metadata


def test_document_without_url_is_cited_by_id() -> None:
    store = _store()

    answer = asyncio.run(store.query("Germany"))

    assert answer.sources == (answer.retrieved_chunks[0].document_id,)
    assert "Berlin" in answer.answer


def test_results_below_threshold_are_not_answered() -> None:
    store = _store(config=RetrievalConfig(min_similarity=0.5))

    answer = asyncio.run(store.query("zebra"))

    assert answer.answer == INSUFFICIENT_INFORMATION_ANSWER
    assert answer.confidence == 0.0
    assert answer.sources == ()
    assert len(answer.retrieved_chunks) == 2


def test_top_k_limits_retrieved_chunks() -> None:
    store = _store(config=RetrievalConfig(top_k=1, min_similarity=0.1))

    answer = asyncio.run(store.query("capital"))

    assert len(answer.retrieved_chunks) == 1


def test_chat_model_answers_from_retrieved_context() -> None:
    llm = FakeChatModel()
    store = _store(llm=llm)

    answer = asyncio.run(store.query("What is the capital of France?"))

    assert answer.answer == "Paris is the capital of France."
    assert llm.messages[0].type == "system"
    assert "Paris is the capital of France." in llm.messages[1].content
    assert "Question: What is the capital of France?" in llm.messages[1].content


def test_count_and_clear() -> None:
    store = _store()

    assert store.count() == 2
    store.clear()
    assert store.count() == 0


def test_hashing_embedder_is_normalized_and_deterministic() -> None:
    embedder = HashingEmbedder(dimension=64)

    first = embedder.embed_query("Data governance requires access control")
    second = embedder.embed_documents(["data GOVERNANCE requires access control"])[0]

    assert first == second
    assert cosine_similarity(first, second) == pytest.approx(1.0)
    assert sum(value * value for value in first) == pytest.approx(1.0)
    assert embedder.embed_query("") == [0.0] * 64


def test_cosine_similarity_handles_degenerate_vectors() -> None:
    assert cosine_similarity([], [1.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == 0.0


def test_confidence_without_results_is_low() -> None:
    result = ConfidenceCalculator().calculate([], [], [])

    assert result.score == 0.0
    assert result.level is ConfidenceLevel.LOW


def test_confidence_blends_weighted_factors() -> None:
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    ten_days_ago = now - timedelta(days=10)

    result = ConfidenceCalculator().calculate(
        [0.5, 0.5], [ten_days_ago, ten_days_ago], ["a.com", "b.com"], now=now
    )

    assert result.factors.similarity == pytest.approx(0.5)
    assert result.factors.source_count == pytest.approx(0.4)
    assert result.factors.recency == pytest.approx(0.5)
    assert result.factors.diversity == pytest.approx(1.0)
    assert result.score == pytest.approx(0.58)
    assert result.level is ConfidenceLevel.MEDIUM


def test_confidence_for_stale_single_source_is_low() -> None:
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)

    result = ConfidenceCalculator().calculate(
        [0.1], [now - timedelta(days=200)], ["a.com"], now=now
    )

    assert result.factors.recency == pytest.approx(0.1)
    assert result.factors.diversity == pytest.approx(0.5)
    assert result.score == pytest.approx(0.2)
    assert result.level is ConfidenceLevel.LOW


def test_hashing_features_use_sublinear_counts_and_bigrams() -> None:
    features = HashingEmbedder()._features("Alpha alpha beta")

    assert features["alpha"] == pytest.approx(1.0 + math.log(2))
    assert features["beta"] == pytest.approx(1.0)
    assert features["alpha alpha"] == pytest.approx(0.5)
    assert features["alpha beta"] == pytest.approx(0.5)
    assert set(HashingEmbedder(bigrams=False)._features("Alpha alpha beta")) == {"alpha", "beta"}


def test_bigrams_change_the_embedding() -> None:
    text = "capital of france"

    assert HashingEmbedder().embed_query(text) != HashingEmbedder(bigrams=False).embed_query(text)


def test_embed_documents_embeds_each_text() -> None:
    embedder = HashingEmbedder(dimension=32)

    vectors = embedder.embed_documents(["one", "two three"])

    assert vectors == [embedder.embed_query("one"), embedder.embed_query("two three")]


def test_documents_lists_indexed_content_in_order() -> None:
    store = _store()

    documents = store.documents()

    assert [doc.content for doc in documents] == [
        "Paris is the capital of France.",
        "Berlin is the capital of Germany.",
    ]
    assert documents[0].metadata["url"] == "https://travel.example.com/france"
    assert "indexedAt" in documents[1].metadata
    documents[0].metadata["url"] = "changed"
    assert store.documents()[0].metadata["url"] == "https://travel.example.com/france"
