from typing import Any

from fastapi.testclient import TestClient

from knowledge_agent.agent.orchestrator import AgentContext
from knowledge_agent.agent.registry import Tool, ToolRegistry
from knowledge_agent.api.main import create_app
from knowledge_agent.knowledge.adapter import KnowledgeAdapter
from knowledge_agent.knowledge.store import InMemoryKnowledgeStore
from knowledge_agent.types import KnowledgeAnswer, ToolExecutionResult


class StaticScrapeTool(Tool):
    name = "ScrapeTool"

    async def execute(self, payload: dict[str, Any]) -> ToolExecutionResult:
        return ToolExecutionResult.ok(
            {
                "content": "Premium plan pricing is 20 dollars per month.",
                "url": payload["url"],
                "title": "Pricing",
                "scrapedAt": "2024-05-01T00:00:00+00:00",
            }
        )


class BrokenStore:
    async def add_document(self, content: str, metadata: dict[str, Any]) -> None:
        return None

    async def query(self, text: str) -> KnowledgeAnswer:
        raise RuntimeError("index offline")


def _client(store: Any = None) -> TestClient:
    context = AgentContext(
        knowledge=KnowledgeAdapter(store if store is not None else InMemoryKnowledgeStore()),
        registry=ToolRegistry([StaticScrapeTool()]),
    )
    return TestClient(create_app(context))


def test_api_query_trace_metrics() -> None:
    client = _client()

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["document_count"] == 0
    assert health.json()["tools"] == ["ScrapeTool"]

    query_resp = client.post(
        "/query", json={"query": "What is the premium plan pricing? https://example.com/pricing"}
    )
    assert query_resp.status_code == 200
    payload = query_resp.json()
    assert set(payload) == {
        "answer",
        "confidence",
        "sources",
        "retrieved_chunks",
        "trace_id",
        "latency_ms",
    }
    assert 0.0 <= payload["confidence"] <= 1.0

    trace_resp = client.get(f"/traces/{payload['trace_id']}")
    assert trace_resp.status_code == 200
    trace = trace_resp.json()
    assert trace["intent_kind"] == "url"
    assert trace["fetched_url"] == "https://example.com/pricing"
    assert trace["documents_ingested"] == 1
    assert trace["tool_traces"][0]["name"] == "ScrapeTool"

    health = client.get("/health")
    assert health.json()["document_count"] == 1
    assert health.json()["cached_urls"] == 1

    assert client.get("/traces").json()["items"][0]["trace_id"] == payload["trace_id"]

    metrics = client.get("/metrics").json()
    assert metrics["total_requests"] == 1
    assert metrics["fetch_runs"] == 1
    assert metrics["fetch_failures"] == 0
    assert metrics["total_documents_ingested"] == 1


def test_unknown_trace_is_404() -> None:
    assert _client().get("/traces/does-not-exist").status_code == 404


def test_empty_query_is_rejected() -> None:
    assert _client().post("/query", json={"query": ""}).status_code == 422


def test_store_failure_is_500() -> None:
    response = _client(BrokenStore()).post("/query", json={"query": "What is the pricing?"})

    assert response.status_code == 500
    assert "index offline" in response.json()["detail"]


def test_knowledge_browser_lists_sources_and_searches() -> None:
    client = _client()

    empty = client.get("/knowledge").json()
    assert empty == {"sources": [], "total_documents": 0}

    client.post("/query", json={"query": "Fetch https://example.com/pricing"})

    listing = client.get("/knowledge").json()
    assert listing["total_documents"] == 1
    assert listing["sources"] == [
        {
            "url": "https://example.com/pricing",
            "title": "Pricing",
            "source": "External",
            "document_count": 1,
            "total_size": len("Premium plan pricing is 20 dollars per month."),
            "last_updated": "2024-05-01T00:00:00+00:00",
        }
    ]

    search = client.get("/knowledge", params={"q": "premium plan pricing"}).json()
    assert search["query"] == "premium plan pricing"
    assert search["count"] == len(search["results"]) == 1
    assert search["results"][0]["metadata"]["url"] == "https://example.com/pricing"
    assert 0.0 <= search["results"][0]["score"] <= 1.0
    assert 0.0 <= search["confidence"] <= 1.0


def test_knowledge_search_rejects_empty_query() -> None:
    assert _client().get("/knowledge", params={"q": ""}).status_code == 422


def test_knowledge_search_failure_is_500() -> None:
    response = _client(BrokenStore()).get("/knowledge", params={"q": "pricing"})

    assert response.status_code == 500


def test_trace_listing_requires_positive_limit() -> None:
    assert _client().get("/traces", params={"limit": 0}).status_code == 422
