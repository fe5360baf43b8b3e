"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentKind(str, Enum):
    URL = "url"
    QUESTION = "question"
    COMMAND = "command"
    UNKNOWN = "unknown"


class ChunkStrategy(str, Enum):
    FIXED = "fixed"
    SEMANTIC = "semantic"
    MARKDOWN = "markdown"


class ToolErrorKind(str, Enum):
    """Normalized failure categories attached to failed tool results."""

    CONFIGURATION = "configuration"
    TOOL_NOT_FOUND = "tool_not_found"
    MALFORMED_INPUT = "malformed_input"
    TIMEOUT = "timeout"
    EXECUTION_FAILURE = "execution_failure"


@dataclass(frozen=True, slots=True)
class ParsedIntent:
    """Classified purpose of one query. Produced once and never mutated."""

    kind: IntentKind
    raw_query: str
    urls: tuple[str, ...] | None = None
    keywords: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if self.kind is IntentKind.URL and not self.urls:
            raise ValueError("URL intents must carry at least one url")
        if self.kind is not IntentKind.URL and self.urls is not None:
            raise ValueError(f"{self.kind.value} intents cannot carry urls")


@dataclass(slots=True)
class ToolExecutionResult:
    """Outcome of one tool execution, consumed once by the content processor."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    error_kind: ToolErrorKind | None = None

    @classmethod
    def ok(cls, data: dict[str, Any], **metadata: Any) -> "ToolExecutionResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def failure(
        cls,
        error: str,
        kind: ToolErrorKind = ToolErrorKind.EXECUTION_FAILURE,
        **metadata: Any,
    ) -> "ToolExecutionResult":
        return cls(success=False, error=error, metadata=metadata, error_kind=kind)


@dataclass(slots=True)
class ProcessedContent:
    """Normalized tool output ready for ingestion.

    `chunks` is either `None` (content fits in one unit) or holds at least two
    entries, each within the configured maximum chunk size.
    """

    content: str
    chunks: list[str] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Chunk:
    """A bounded slice of text produced by the chunker."""

    content: str
    index: int
    start_offset: int
    end_offset: int
    strategy_used: ChunkStrategy
    has_overlap_with_previous: bool = False
    total_chunks_in_batch: int = 0


@dataclass(frozen=True, slots=True)
class RetrievedChunk:
    document_id: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class KnowledgeAnswer:
    """Terminal artifact of one orchestration run."""

    answer: str
    confidence: float
    sources: tuple[str, ...] = ()
    retrieved_chunks: tuple[RetrievedChunk, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")


@dataclass(slots=True)
class ToolTrace:
    """Trace record for a dispatched tool call."""

    name: str
    input_payload: dict[str, Any]
    success: bool
    latency_ms: float
    error: str | None = None


@dataclass(frozen=True, slots=True)
class KnowledgeDocument:
    """Read-only view of one indexed document."""

    document_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
