"""Run tracing and aggregate metrics for orchestration runs."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from knowledge_agent.types import ToolTrace


@dataclass(slots=True)
class TraceRecord:
    trace_id: str
    timestamp_utc: str
    query: str
    intent_kind: str
    states: list[str]
    tool_traces: list[ToolTrace]
    fetched_url: str | None
    documents_ingested: int
    confidence: float
    latency_ms: float
    fetch_error: str | None = None


@dataclass(slots=True)
class RunTrace:
    """Mutable trace collected while a single orchestration run progresses."""

    query: str
    intent_kind: str = "unknown"
    states: list[str] = field(default_factory=list)
    tool_traces: list[ToolTrace] = field(default_factory=list)
    fetched_url: str | None = None
    documents_ingested: int = 0
    fetch_error: str | None = None

    def enter(self, state: str) -> None:
        self.states.append(state)


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TraceRecord] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self, run: RunTrace, *, confidence: float, latency_ms: float
    ) -> TraceRecord:
        record = TraceRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            query=run.query,
            intent_kind=run.intent_kind,
            states=list(run.states),
            tool_traces=list(run.tool_traces),
            fetched_url=run.fetched_url,
            documents_ingested=run.documents_ingested,
            confidence=confidence,
            latency_ms=latency_ms,
            fetch_error=run.fetch_error,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                self._records.pop(next(iter(self._records)))
        return record

    def get(self, trace_id: str) -> TraceRecord:
        with self._lock:
            record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate core observability metrics for dashboard display."""
        with self._lock:
            records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "fetch_runs": 0,
                "fetch_failures": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "avg_confidence": 0.0,
                "total_documents_ingested": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        fetch_runs = sum(1 for record in records if record.fetched_url is not None)
        fetch_failures = sum(1 for record in records if record.fetch_error is not None)

        return {
            "total_requests": total,
            "fetch_runs": fetch_runs,
            "fetch_failures": fetch_failures,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "avg_confidence": sum(record.confidence for record in records) / total,
            "total_documents_ingested": sum(record.documents_ingested for record in records),
        }


class Timer:
    """Simple context timer used by the dispatcher and orchestrator."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
