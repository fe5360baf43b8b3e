"""Fetch-then-answer orchestration pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from knowledge_agent.agent.dispatcher import ToolDispatcher
from knowledge_agent.agent.freshness import FreshnessCache
from knowledge_agent.agent.intent import IntentClassifier
from knowledge_agent.agent.registry import ToolRegistry
from knowledge_agent.agent.selector import ToolSelector
from knowledge_agent.config import AgentConfig
from knowledge_agent.ingest.processor import ContentProcessor
from knowledge_agent.knowledge.adapter import KnowledgeAdapter
from knowledge_agent.obs.tracing import RunTrace, Timer, TraceRecord, TraceStore
from knowledge_agent.types import KnowledgeAnswer, ParsedIntent, ToolTrace

logger = logging.getLogger(__name__)


class OrchestrationState(str, Enum):
    START = "start"
    INTENT_CLASSIFIED = "intent_classified"
    FETCH_DECISION = "fetch_decision"
    FETCHING = "fetching"
    PROCESSING = "processing"
    INGESTING = "ingesting"
    QUERYING = "querying"
    DONE = "done"


@dataclass(slots=True)
class AgentContext:
    """Process-wide resources shared by every orchestration run.

    Construct once at process start and pass by reference to request handlers.
    """

    knowledge: KnowledgeAdapter
    registry: ToolRegistry | None = None
    config: AgentConfig = field(default_factory=AgentConfig)
    cache: FreshnessCache | None = None

    def __post_init__(self) -> None:
        if self.cache is None:
            self.cache = FreshnessCache(ttl_ms=self.config.cache_ttl_ms)


@dataclass(slots=True)
class OrchestrationResult:
    answer: KnowledgeAnswer
    trace: TraceRecord


class Orchestrator:
    """Classifies a query, refreshes knowledge when needed, then answers.

    States: START -> INTENT_CLASSIFIED -> FETCH_DECISION
    -> [FETCHING -> PROCESSING -> INGESTING] -> QUERYING -> DONE.

    Every failure before QUERYING is logged and swallowed so a run always
    produces an answer from whatever the knowledge store holds. Only the first
    URL of a multi-URL query is fetched. Errors raised by the knowledge store's
    query propagate to the caller.
    """

    def __init__(
        self,
        context: AgentContext,
        *,
        classifier: IntentClassifier | None = None,
        selector: ToolSelector | None = None,
        processor: ContentProcessor | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.context = context
        self.classifier = classifier or IntentClassifier()
        self.selector = selector or ToolSelector(context.config)
        self.processor = processor or ContentProcessor(context.config.chunking)
        self.dispatcher = ToolDispatcher(context.registry, context.cache)
        self.trace_store = trace_store or TraceStore()

    async def execute(self, query: str) -> KnowledgeAnswer:
        result = await self.run(query)
        return result.answer

    async def run(self, query: str) -> OrchestrationResult:
        run = RunTrace(query=query)
        with Timer() as timer:
            self._enter(run, OrchestrationState.START)
            intent = self.classifier.classify(query)
            run.intent_kind = intent.kind.value
            self._enter(run, OrchestrationState.INTENT_CLASSIFIED)

            await self._refresh_knowledge(intent, run)

            self._enter(run, OrchestrationState.QUERYING)
            answer = await self.context.knowledge.query(intent.raw_query)
            self._enter(run, OrchestrationState.DONE)

        record = self.trace_store.create_record(
            run, confidence=answer.confidence, latency_ms=timer.elapsed_ms
        )
        logger.info(
            "Answered %s query in %.1fms (confidence=%.3f, fetched=%s)",
            intent.kind.value,
            record.latency_ms,
            answer.confidence,
            run.fetched_url,
        )
        return OrchestrationResult(answer=answer, trace=record)

    async def _refresh_knowledge(self, intent: ParsedIntent, run: RunTrace) -> None:
        self._enter(run, OrchestrationState.FETCH_DECISION)
        try:
            if not self.context.cache.should_fetch(intent) or not intent.urls:
                return
            tool_name = self.selector.select_tool(intent)
            if tool_name is None:
                return

            url = intent.urls[0]
            self._enter(run, OrchestrationState.FETCHING)
            payload = {"url": url}
            with Timer() as timer:
                result = await self.dispatcher.dispatch(
                    tool_name, payload, timeout_ms=self.context.config.fetch_timeout_ms
                )
            run.fetched_url = url
            run.tool_traces.append(
                ToolTrace(
                    name=tool_name,
                    input_payload=payload,
                    success=result.success,
                    latency_ms=timer.elapsed_ms,
                    error=result.error,
                )
            )
            if not result.success:
                run.fetch_error = result.error
                return

            self._enter(run, OrchestrationState.PROCESSING)
            processed = self.processor.process(result)

            self._enter(run, OrchestrationState.INGESTING)
            run.documents_ingested = await self.context.knowledge.ingest(processed)
        except Exception as exc:  # the pipeline always proceeds to querying
            logger.exception("Fetch stage failed for query %r", intent.raw_query)
            run.fetch_error = f"{type(exc).__name__}: {exc}"

    @staticmethod
    def _enter(run: RunTrace, state: OrchestrationState) -> None:
        logger.debug("Orchestration state -> %s", state.value)
        run.enter(state.value)
