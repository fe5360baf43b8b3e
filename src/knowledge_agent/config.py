"""Configuration models for the knowledge agent."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from knowledge_agent.types import ChunkStrategy

MAX_ALLOWED_CHUNK_SIZE = 8000
MAX_OVERLAP_RATIO = 0.25


class ChunkingConfig(BaseModel):
    """Configures fixed / semantic / markdown chunking.

    Out-of-range values are clamped rather than rejected: `max_size` is capped
    at 8000 characters, `min_size` at `max_size` and `overlap` at 25% of
    `max_size`.
    """

    max_size: int = Field(default=3000, ge=1)
    min_size: int = Field(default=500, ge=0)
    overlap: int = Field(default=200, ge=0)
    strategy: ChunkStrategy = ChunkStrategy.SEMANTIC
    preserve_code_blocks: bool = True

    @model_validator(mode="after")
    def _clamp(self) -> "ChunkingConfig":
        self.max_size = min(self.max_size, MAX_ALLOWED_CHUNK_SIZE)
        self.min_size = min(self.min_size, self.max_size)
        self.overlap = min(self.overlap, int(self.max_size * MAX_OVERLAP_RATIO))
        return self


class RetrievalConfig(BaseModel):
    """Configures the in-memory knowledge store's search and answer shaping."""

    top_k: int = Field(default=5, ge=1)
    min_similarity: float = Field(default=0.2, ge=0.0, le=1.0)
    max_answer_snippets: int = Field(default=3, ge=1)


class AgentConfig(BaseModel):
    """Configures orchestration: freshness window, fetch timeout and tool names."""

    cache_ttl_ms: int = Field(default=300_000, ge=0)
    fetch_timeout_ms: float | None = Field(default=None, gt=0.0)
    single_page_tool: str = "ScrapeTool"
    multi_page_tool: str = "CrawlTool"
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
