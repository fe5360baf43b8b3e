"""FastAPI entrypoint for query, knowledge, trace and metrics endpoints."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from knowledge_agent.agent.orchestrator import AgentContext, Orchestrator
from knowledge_agent.agent.registry import ToolRegistry
from knowledge_agent.agent.tools import register_default_tools
from knowledge_agent.config import AgentConfig
from knowledge_agent.knowledge.adapter import KnowledgeAdapter
from knowledge_agent.knowledge.catalog import group_by_source
from knowledge_agent.knowledge.store import InMemoryKnowledgeStore
from knowledge_agent.obs.tracing import TraceStore

logger = logging.getLogger(__name__)


def _create_llm() -> Any:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"), temperature=0)


def _config_from_env() -> AgentConfig:
    overrides: dict[str, Any] = {}
    timeout = os.getenv("KNOWLEDGE_AGENT_FETCH_TIMEOUT_MS")
    if timeout:
        overrides["fetch_timeout_ms"] = float(timeout)
    ttl = os.getenv("KNOWLEDGE_AGENT_CACHE_TTL_MS")
    if ttl:
        overrides["cache_ttl_ms"] = int(ttl)
    return AgentConfig(**overrides)


def build_default_context() -> AgentContext:
    """Wire the built-in fetch tools and the in-memory knowledge store."""
    registry = ToolRegistry()
    register_default_tools(registry)
    store = InMemoryKnowledgeStore(llm=_create_llm())
    return AgentContext(
        knowledge=KnowledgeAdapter(store),
        registry=registry,
        config=_config_from_env(),
    )


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)


def create_app(context: AgentContext | None = None) -> FastAPI:
    context = context or build_default_context()
    trace_store = TraceStore()
    orchestrator = Orchestrator(context, trace_store=trace_store)

    app = FastAPI(title="Knowledge Agent", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, Any]:
        store = context.knowledge.store
        count = getattr(store, "count", None)
        return {
            "status": "ok",
            "knowledge_store_configured": store is not None,
            "document_count": count() if callable(count) else None,
            "llm_configured": getattr(store, "llm", None) is not None,
            "cached_urls": len(context.cache),
            "tools": context.registry.names() if context.registry else [],
        }

    @app.post("/query")
    async def query(request: QueryRequest) -> dict[str, Any]:
        try:
            result = await orchestrator.run(request.query)
        except Exception as exc:
            logger.exception("Query failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        answer = result.answer
        return {
            "answer": answer.answer,
            "confidence": answer.confidence,
            "sources": list(answer.sources),
            "retrieved_chunks": [asdict(chunk) for chunk in answer.retrieved_chunks],
            "trace_id": result.trace.trace_id,
            "latency_ms": result.trace.latency_ms,
        }

    @app.get("/traces")
    def traces(limit: int = Query(default=20, ge=1)) -> dict[str, Any]:
        return {"items": [asdict(record) for record in trace_store.list_recent(limit=limit)]}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/knowledge")
    async def knowledge(q: str | None = Query(default=None, min_length=1)) -> dict[str, Any]:
        try:
            if q is not None:
                answer = await context.knowledge.query(q)
                results = [
                    {"content": chunk.content, "score": chunk.score, "metadata": chunk.metadata}
                    for chunk in answer.retrieved_chunks
                ]
                return {
                    "query": q,
                    "results": results,
                    "count": len(results),
                    "confidence": answer.confidence,
                }

            list_documents = getattr(context.knowledge.store, "documents", None)
            documents = list_documents() if callable(list_documents) else []
        except Exception as exc:
            logger.exception("Knowledge base access failed")
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return {
            "sources": [asdict(summary) for summary in group_by_source(documents)],
            "total_documents": len(documents),
        }

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return trace_store.summary()

    return app


app = create_app()
